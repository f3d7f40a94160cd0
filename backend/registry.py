from typing import Callable, Dict, List, Optional
import logging
import secrets
import time

import config
from game_session import Session

logger = logging.getLogger(__name__)


def generate_join_code() -> str:
    """Random numeric PIN. Not unique on its own; the registry re-rolls collisions."""
    return ''.join(secrets.choice('0123456789') for _ in range(config.JOIN_CODE_LENGTH))


class SessionRegistry:
    """Active sessions keyed by join code. Lives for one process, nothing is persisted."""

    def __init__(self, code_generator: Callable[[], str] = generate_join_code,
                 clock: Callable[[], float] = time.monotonic):
        self.sessions: Dict[str, Session] = {}
        self._code_generator = code_generator
        self._clock = clock

    def __len__(self) -> int:
        return len(self.sessions)

    def create(self, host_identity: str) -> Session:
        for _ in range(config.MAX_JOIN_CODE_ATTEMPTS):
            code = self._code_generator()
            if code not in self.sessions:
                session = Session(code, host_identity, clock=self._clock)
                self.sessions[code] = session
                logger.info("Session %s created by host %s", code, host_identity)
                return session
            logger.debug("Join code collision on %s, re-rolling", code)
        raise RuntimeError("Failed to generate unique join code")

    def get(self, code) -> Optional[Session]:
        if not isinstance(code, str):
            return None
        return self.sessions.get(code)

    def remove_by_code(self, code: str) -> Optional[Session]:
        session = self.sessions.pop(code, None)
        if session:
            logger.info("Session %s removed", code)
        return session

    def remove_by_host(self, host_identity: str) -> List[Session]:
        owned = [code for code, s in self.sessions.items() if s.host_id == host_identity]
        return [self.sessions.pop(code) for code in owned]

    def find_by_player(self, identity: str) -> Optional[Session]:
        for session in self.sessions.values():
            if identity in session.roster:
                return session
        return None

    def clear(self):
        self.sessions.clear()

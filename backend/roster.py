from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import logging

import config
from sanitize import collapse_whitespace, sanitize_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Answer:
    index: int
    submitted_at: float


@dataclass
class Player:
    connection_id: str
    display_name: str
    score: int = 0
    current_answer: Optional[Answer] = None

    def to_public(self) -> dict:
        return {"id": self.connection_id, "name": self.display_name, "score": self.score}


def sanitize_name(name) -> str:
    if not isinstance(name, str):
        return config.DEFAULT_PLAYER_NAME
    name = collapse_whitespace(sanitize_text(name))[:config.MAX_NAME_LENGTH].strip()
    return name or config.DEFAULT_PLAYER_NAME


class Roster:
    """Players of one session, keyed by connection id in join order."""

    def __init__(self, on_change: Optional[Callable[[], None]] = None):
        self._players: Dict[str, Player] = {}
        self._on_change = on_change

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, identity: str) -> bool:
        return identity in self._players

    def _unique_name(self, desired: str) -> str:
        taken = {p.display_name.lower() for p in self._players.values()}
        candidate = desired
        suffix = 2
        while candidate.lower() in taken:
            candidate = f"{desired} #{suffix}"
            suffix += 1
        return candidate

    def add_player(self, identity: str, requested_name) -> str:
        existing = self._players.get(identity)
        if existing:
            return existing.display_name
        final_name = self._unique_name(sanitize_name(requested_name))
        self._players[identity] = Player(connection_id=identity, display_name=final_name)
        logger.debug("Player '%s' added (%s)", final_name, identity)
        self._changed()
        return final_name

    def remove_player(self, identity: str) -> Optional[Player]:
        player = self._players.pop(identity, None)
        if player:
            logger.debug("Player '%s' removed (%s)", player.display_name, identity)
            self._changed()
        return player

    def get(self, identity: str) -> Optional[Player]:
        return self._players.get(identity)

    def all(self) -> List[Player]:
        return list(self._players.values())

    def ids(self) -> List[str]:
        return list(self._players)

    def reset_answers(self):
        for player in self._players.values():
            player.current_answer = None

    def _changed(self):
        if self._on_change:
            self._on_change()

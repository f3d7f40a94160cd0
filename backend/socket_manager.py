from fastapi import WebSocket, WebSocketDisconnect
from typing import Dict, List, Optional
import json
import time
import uuid
import asyncio
import logging

import config
from auth import HostGate, require_host
from errors import AuthorizationError, GameError, InvalidStateError, NotFoundError
from game_session import (
    HOST, PLAYERS, Advance, ArmTimer, EndGame, HostLeft, HostRejoin, Join, Leave,
    QuestionTimeout, Session, StartGame, SubmitAnswer,
)
from registry import SessionRegistry

logger = logging.getLogger(__name__)

HOST_MESSAGES = ("CREATE_GAME", "START_GAME", "NEXT", "END", "HOST_JOIN")


class Connection:
    def __init__(self, client_id: str, websocket: WebSocket, is_host: bool):
        self.client_id = client_id
        self.websocket = websocket
        self.is_host = is_host  # fixed for the lifetime of the connection
        self.msg_timestamps: List[float] = []


class SocketManager:
    def __init__(self, registry: SessionRegistry, gate: HostGate,
                 surface_state_errors: bool = False):
        self.registry = registry
        self.gate = gate
        self.surface_state_errors = surface_state_errors
        self.connections: Dict[str, Connection] = {}
        self.timer_tasks: Dict[str, asyncio.Task] = {}  # join code -> question timer
        self.allowed_origins: List[str] = []
        self._routes = {
            "CREATE_GAME": self._create_game,
            "START_GAME": self._start_game,
            "NEXT": self._next,
            "END": self._end,
            "HOST_JOIN": self._host_join,
            "JOIN": self._join,
            "ANSWER": self._answer,
        }

    def reset(self):
        """Drop every session, timer and connection."""
        for task in self.timer_tasks.values():
            task.cancel()
        self.timer_tasks.clear()
        self.registry.clear()
        self.connections.clear()

    def register(self, websocket: WebSocket, host_key: str = "") -> Connection:
        client_id = uuid.uuid4().hex
        conn = Connection(client_id, websocket, self.gate.is_host_capable(host_key))
        self.connections[client_id] = conn
        return conn

    async def connect(self, websocket: WebSocket, host_key: str = ""):
        # Validate WebSocket origin
        origin = websocket.headers.get("origin", "")
        if self.allowed_origins and origin not in self.allowed_origins:
            logger.warning("Rejected WebSocket from unauthorized origin: %s", origin)
            await websocket.close(code=1008)
            return

        await websocket.accept()
        conn = self.register(websocket, host_key)
        client_id = conn.client_id
        logger.info("Client %s connected (host=%s)", client_id, conn.is_host)

        try:
            await websocket.send_json({"type": "CONNECTED", "id": client_id, "isHost": conn.is_host})
            while True:
                data = await websocket.receive_text()

                # Enforce message size limit
                if len(data.encode()) > config.MAX_WS_MESSAGE_SIZE:
                    await websocket.send_json({"type": "ERROR", "message": "Message too large"})
                    continue

                # Per-client rate limiting
                now = time.monotonic()
                timestamps = conn.msg_timestamps
                timestamps[:] = [t for t in timestamps if now - t < 1.0]
                if len(timestamps) >= config.WS_RATE_LIMIT_PER_SEC:
                    await websocket.send_json({"type": "ERROR", "message": "Too many messages"})
                    continue
                timestamps.append(now)

                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    logger.warning("Malformed JSON from client %s: %s", client_id, data[:100])
                    await websocket.send_json({"type": "ERROR", "message": "Invalid message format"})
                    continue

                await self.handle_message(client_id, message)
        except WebSocketDisconnect:
            logger.info("Client %s disconnected", client_id)
        except Exception:
            logger.exception("WebSocket error for client %s", client_id)
        finally:
            await self.disconnect(client_id)

    async def handle_message(self, client_id: str, message):
        conn = self.connections.get(client_id)
        if conn is None:
            return
        if not isinstance(message, dict):
            await self._send(client_id, {"type": "ERROR", "message": "Invalid message format"})
            return
        msg_type = message.get("type")
        handler = self._routes.get(msg_type) if isinstance(msg_type, str) else None
        if handler is None:
            await self._send(client_id, {"type": "ERROR", "message": "Unknown message type"})
            return

        error_type = "HOST_ERROR" if msg_type in HOST_MESSAGES else "PLAYER_ERROR"
        try:
            await handler(conn, message)
        except InvalidStateError as exc:
            logger.debug("Dropped %s from %s: %s", msg_type, client_id, exc.message)
            if self.surface_state_errors:
                await self._send(client_id, {"type": error_type, "message": exc.message})
        except GameError as exc:
            logger.info("Rejected %s from %s: %s", msg_type, client_id, exc.message)
            await self._send(client_id, {"type": error_type, "message": exc.message})

    # --- host messages ---

    def _owned_session(self, conn: Connection, message: dict) -> Session:
        require_host(conn.is_host)
        session = self.registry.get(_code_of(message))
        if session is None:
            raise NotFoundError()
        if session.host_id != conn.client_id:
            raise AuthorizationError("You are not the host of this game.")
        return session

    async def _create_game(self, conn: Connection, message: dict):
        require_host(conn.is_host)
        session = self.registry.create(conn.client_id)
        await self._send(conn.client_id, {"type": "GAME_CREATED", "code": session.code})

    async def _start_game(self, conn: Connection, message: dict):
        session = self._owned_session(conn, message)
        await self.apply(session, StartGame(message.get("questions")))

    async def _next(self, conn: Connection, message: dict):
        session = self._owned_session(conn, message)
        await self.apply(session, Advance())

    async def _end(self, conn: Connection, message: dict):
        session = self._owned_session(conn, message)
        await self.apply(session, EndGame())

    async def _host_join(self, conn: Connection, message: dict):
        session = self._owned_session(conn, message)
        await self.apply(session, HostRejoin())

    # --- player messages ---

    async def _join(self, conn: Connection, message: dict):
        session = self.registry.get(_code_of(message))
        if session is None:
            raise NotFoundError()
        previous = self.registry.find_by_player(conn.client_id)
        if previous is not None and previous is not session:
            await self.apply(previous, Leave(conn.client_id))
        await self.apply(session, Join(conn.client_id, message.get("name", "")))

    async def _answer(self, conn: Connection, message: dict):
        session = self.registry.get(_code_of(message))
        if session is None:
            return
        await self.apply(session, SubmitAnswer(conn.client_id, message.get("index")))

    # --- lifecycle ---

    async def disconnect(self, client_id: str):
        self.connections.pop(client_id, None)
        owned = self.registry.remove_by_host(client_id)
        for session in owned:
            self._cancel_timer(session.code)
            await self.apply(session, HostLeft())
        if owned:
            return
        session = self.registry.find_by_player(client_id)
        if session is not None:
            await self.apply(session, Leave(client_id))

    async def apply(self, session: Session, action):
        """Run an action on a session and deliver what it produced."""
        effects = session.apply(action)
        outgoing = []
        for effect in effects:
            if isinstance(effect, ArmTimer):
                self._arm_timer(session, effect)
                continue
            if effect.to == HOST:
                recipients = [session.host_id]
            elif effect.to == PLAYERS:
                recipients = session.roster.ids()
            else:
                recipients = [effect.to]
            message = effect.as_message()
            outgoing.extend((cid, message) for cid in recipients)
        for cid, message in outgoing:
            await self._send(cid, message)

    async def _send(self, client_id: str, message: dict):
        conn = self.connections.get(client_id)
        if conn is None:
            return
        try:
            await conn.websocket.send_json(message)
        except Exception:
            logger.warning("Failed to send %s to client %s, dropping it", message.get("type"), client_id)
            self.connections.pop(client_id, None)

    # --- question timers ---

    def _arm_timer(self, session: Session, timer: ArmTimer):
        self._cancel_timer(session.code)
        self.timer_tasks[session.code] = asyncio.create_task(
            self._question_timer(session, timer.index, timer.delay)
        )

    def _cancel_timer(self, code: str):
        task: Optional[asyncio.Task] = self.timer_tasks.pop(code, None)
        if task and task is not asyncio.current_task():
            task.cancel()

    async def _question_timer(self, session: Session, index: int, delay: float):
        """Close the question after its time limit. The session ignores it if stale."""
        try:
            await asyncio.sleep(delay)
            if self.timer_tasks.get(session.code) is asyncio.current_task():
                del self.timer_tasks[session.code]
            if self.registry.get(session.code) is not session:
                return
            await self.apply(session, QuestionTimeout(index))
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Question timer failed for session %s", session.code)


def _code_of(message: dict) -> str:
    code = message.get("code")
    if isinstance(code, int) and not isinstance(code, bool):
        code = str(code).zfill(config.JOIN_CODE_LENGTH)
    if not isinstance(code, str):
        return ""
    return code.strip()

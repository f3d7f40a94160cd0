"""Per-session game state machine.

A ``Session`` never touches sockets or timers. Callers feed it action objects
through :meth:`Session.apply` and get back the messages to deliver plus any
question timer that needs arming::

    lobby --StartGame--> question --QuestionTimeout--> reveal --Advance--> question
                                                                    \\--> ended (past last)
    any --EndGame--> ended

``ended`` is terminal.
"""
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Union
import logging
import math
import time

import config
from errors import InvalidStateError
from questions import Question, parse_question_set
from roster import Answer, Roster
from scoring import count_answers, leaderboard, rank_players, score_answer

logger = logging.getLogger(__name__)

LOBBY = "lobby"
QUESTION = "question"
REVEAL = "reveal"
ENDED = "ended"

# Audiences for outbound messages; anything else is a single connection id
HOST = "@host"
PLAYERS = "@players"


@dataclass(frozen=True)
class Outbound:
    to: str
    type: str
    payload: dict

    def as_message(self) -> dict:
        return {"type": self.type, **self.payload}


@dataclass(frozen=True)
class ArmTimer:
    """Request to fire ``QuestionTimeout(index)`` after ``delay`` seconds."""
    index: int
    delay: float


Effect = Union[Outbound, ArmTimer]


# --- Actions ---

@dataclass(frozen=True)
class StartGame:
    questions: Any


@dataclass(frozen=True)
class Advance:
    pass


@dataclass(frozen=True)
class EndGame:
    pass


@dataclass(frozen=True)
class Join:
    identity: str
    name: Any = ""


@dataclass(frozen=True)
class SubmitAnswer:
    identity: str
    index: Any


@dataclass(frozen=True)
class Leave:
    identity: str


@dataclass(frozen=True)
class QuestionTimeout:
    index: int


@dataclass(frozen=True)
class HostRejoin:
    pass


@dataclass(frozen=True)
class HostLeft:
    pass


def coerce_answer_index(raw) -> Optional[int]:
    """Clamp a client-supplied option index into range.

    Returns None for anything that is not a finite number; such answers are
    dropped rather than counted as option 0.
    """
    if isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return min(config.NUM_OPTIONS - 1, max(0, int(value)))


class Session:
    def __init__(self, code: str, host_id: str, clock: Callable[[], float] = time.monotonic):
        self.code = code
        self.host_id = host_id
        self.state = LOBBY
        self.questions: tuple = ()
        self.current_index = 0
        self.question_started_at: Optional[float] = None
        self.roster = Roster(on_change=self._roster_changed)
        self._clock = clock
        self._outbox: List[Effect] = []
        self._handlers = {
            StartGame: self._start,
            Advance: self._advance,
            EndGame: self._end_game,
            Join: self._join,
            SubmitAnswer: self._answer,
            Leave: self._leave,
            QuestionTimeout: self._timeout,
            HostRejoin: self._host_rejoin,
            HostLeft: self._host_left,
        }

    def apply(self, action) -> List[Effect]:
        """Run one action to completion and return the effects it produced."""
        handler = self._handlers.get(type(action))
        if handler is None:
            raise TypeError(f"Unknown action {type(action).__name__}")
        self._outbox = []
        try:
            handler(action)
            return self._outbox
        finally:
            self._outbox = []

    @property
    def current_question(self) -> Optional[Question]:
        if self.state == LOBBY or not self.questions:
            return None
        return self.questions[self.current_index]

    @property
    def answered_count(self) -> int:
        return sum(1 for p in self.roster.all() if p.current_answer is not None)

    # --- helpers ---

    def _emit(self, to: str, msg_type: str, payload: dict):
        self._outbox.append(Outbound(to, msg_type, payload))

    def _emit_both(self, msg_type: str, payload: dict):
        self._emit(PLAYERS, msg_type, payload)
        self._emit(HOST, msg_type, dict(payload))

    def lobby_view(self) -> dict:
        return {
            "players": [p.to_public() for p in self.roster.all()],
            "count": len(self.roster),
            "code": self.code,
        }

    def _roster_changed(self):
        self._emit_both("LOBBY_UPDATE", self.lobby_view())

    def _require(self, *states: str):
        if self.state not in states:
            raise InvalidStateError(f"Not allowed while the game is in '{self.state}'")

    # --- host actions ---

    def _start(self, action: StartGame):
        self._require(LOBBY)
        self.questions = tuple(parse_question_set(action.questions))
        self.current_index = 0
        logger.info("Session %s started with %d questions, %d players",
                    self.code, len(self.questions), len(self.roster))
        self._begin_question()

    def _advance(self, action: Advance):
        # during QUESTION this is a no-op, so a double advance cannot skip a question
        self._require(REVEAL)
        next_index = self.current_index + 1
        if next_index >= len(self.questions):
            self._finish()
            return
        self.current_index = next_index
        self._begin_question()

    def _end_game(self, action: EndGame):
        if self.state == ENDED:
            raise InvalidStateError("Game already over")
        self._finish()

    def _host_rejoin(self, action: HostRejoin):
        self._roster_changed()

    def _host_left(self, action: HostLeft):
        self.state = ENDED
        self.question_started_at = None
        self._emit(PLAYERS, "HOST_DISCONNECTED", {"code": self.code})
        logger.info("Session %s closed: host disconnected", self.code)

    # --- player actions ---

    def _join(self, action: Join):
        self._require(LOBBY)
        name = self.roster.add_player(action.identity, action.name)
        self._emit(action.identity, "JOINED", {"code": self.code, "name": name})

    def _leave(self, action: Leave):
        self.roster.remove_player(action.identity)

    def _answer(self, action: SubmitAnswer):
        # Every rejection below is silent on purpose; callers cannot tell them apart.
        if self.state != QUESTION:
            return
        player = self.roster.get(action.identity)
        if player is None or player.current_answer is not None:
            return
        now = self._clock()
        if now - self.question_started_at > self.current_question.time_limit_seconds:
            logger.debug("Late answer from %s in session %s", action.identity, self.code)
            return
        index = coerce_answer_index(action.index)
        if index is None:
            return
        player.current_answer = Answer(index=index, submitted_at=now)
        self._emit(action.identity, "ANSWER_LOCKED", {"index": index})
        self._emit(HOST, "ANSWER_PROGRESS", {
            "answered": self.answered_count,
            "total": len(self.roster),
        })

    # --- timer ---

    def _timeout(self, action: QuestionTimeout):
        if self.state != QUESTION or action.index != self.current_index:
            logger.debug("Stale timer for question %d in session %s ignored",
                         action.index + 1, self.code)
            return
        self._reveal()

    # --- transitions ---

    def _begin_question(self):
        question = self.questions[self.current_index]
        self.state = QUESTION
        self.question_started_at = self._clock()
        self.roster.reset_answers()
        self._emit_both("QUESTION_SHOW", {
            "index": self.current_index + 1,
            "total": len(self.questions),
            **question.to_public(),
            "code": self.code,
        })
        self._outbox.append(ArmTimer(
            index=self.current_index,
            delay=question.time_limit_seconds + config.TIMER_GRACE_SECONDS,
        ))

    def _reveal(self):
        question = self.current_question
        self.state = REVEAL
        players = self.roster.all()
        for player in players:
            player.score += score_answer(question, player.current_answer, self.question_started_at)

        ranked = rank_players(players)
        self._emit_both("QUESTION_REVEAL", {
            "index": self.current_index + 1,
            "total": len(self.questions),
            "correctIndex": question.correct_index,
            "countsPerOption": count_answers(players),
            "leaderboard": ranked[:config.REVEAL_LEADERBOARD_SIZE],
        })
        rank_by_id = {entry["id"]: entry["rank"] for entry in ranked}
        for player in players:
            answer = player.current_answer
            self._emit(player.connection_id, "REVEAL_RESULT", {
                "correct": answer is not None and answer.index == question.correct_index,
                "yourScore": player.score,
                "yourRank": rank_by_id[player.connection_id],
            })
        logger.info("Session %s revealed question %d/%d", self.code,
                    self.current_index + 1, len(self.questions))

    def _finish(self):
        self.state = ENDED
        self.question_started_at = None
        board = leaderboard(self.roster.all(), config.FINAL_LEADERBOARD_SIZE)
        self._emit_both("GAME_OVER", {"leaderboard": board})
        logger.info("Session %s ended", self.code)

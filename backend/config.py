"""Centralized configuration: all env vars in one place."""
import os
import logging
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

# --- Server ---
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "")

# --- Host authorization ---
HOST_KEY = os.getenv("HOST_KEY", "")  # empty = host capability disabled

# --- WebSocket Security ---
WS_RATE_LIMIT_PER_SEC = 10  # max messages per second per client
MAX_WS_MESSAGE_SIZE = 256 * 1024  # bytes, a full question set fits comfortably

# --- Join codes ---
JOIN_CODE_LENGTH = 6
MAX_JOIN_CODE_ATTEMPTS = 10

# --- Players ---
MAX_NAME_LENGTH = 24
DEFAULT_PLAYER_NAME = "Player"

# --- Questions ---
MAX_PROMPT_LENGTH = 300
MAX_OPTION_LENGTH = 120
NUM_OPTIONS = 4
MIN_TIME_LIMIT = 5
MAX_TIME_LIMIT = 120
DEFAULT_TIME_LIMIT = 20
MAX_QUESTIONS = 100

# --- Scoring ---
BASE_POINTS = 500
SPEED_BONUS_POINTS = 1000
REVEAL_LEADERBOARD_SIZE = 10
FINAL_LEADERBOARD_SIZE = 20

# --- Timing ---
TIMER_GRACE_SECONDS = 0.05  # absorbs scheduling jitter on the question timeout

# Report illegal-state actions back to the sender instead of dropping them
SURFACE_STATE_ERRORS = os.getenv("SURFACE_STATE_ERRORS", "").lower() in ("1", "true", "yes")

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE", "")  # empty = stdout only


@dataclass(frozen=True)
class Settings:
    """Snapshot of the values needed to build the app."""
    host_key: str = HOST_KEY
    allowed_origins: str = ALLOWED_ORIGINS
    surface_state_errors: bool = SURFACE_STATE_ERRORS


def setup_logging():
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if LOG_FILE:
        handlers.append(logging.FileHandler(LOG_FILE))
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )

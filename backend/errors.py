"""Game error taxonomy. Every error carries a message safe to show a user."""


class GameError(Exception):
    default_message = "Something went wrong"

    def __init__(self, message: str = ""):
        self.message = str(message).strip() or self.default_message
        super().__init__(self.message)


class AuthorizationError(GameError):
    default_message = "Not authorized (HOST_KEY required)."


class NotFoundError(GameError):
    default_message = "Game not found. Check the PIN."


class InvalidStateError(GameError):
    """Action is not legal in the session's current state. Dropped by default."""
    default_message = "Action not allowed right now."


class ValidationError(GameError):
    default_message = "Invalid question set."

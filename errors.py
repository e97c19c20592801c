"""
Errors raised by the prediction game.

Every error here is a rejected request, never a crash: handlers turn the
message into a reply and the bot keeps serving.
"""


class GameError(Exception):
    """Base class; ``str(exc)`` is safe to show to the user."""

    message = "Something went wrong."

    def __init__(self, message=None):
        super().__init__(message or self.message)


class InvalidScoreFormat(GameError):
    message = "Invalid score format. Use runs/wickets (e.g., 200/4)."


class AlreadyActive(GameError):
    message = "A match is already running. End it before starting a new one."


class NoActiveMatch(GameError):
    message = "No active match."


class PollClosed(GameError):
    message = "Poll closed. No further predictions will be accepted."


class MatchNotFound(GameError):
    message = "Match ID not found."


class Unauthorized(GameError):
    message = "Only admins can do that."


class StorageUnavailable(GameError):
    message = "Storage is temporarily unavailable. Please try again."

"""Error taxonomy for match handling.

Every error carries a player-facing message. Handlers catch BattleshipError
and surface the message to the acting player; nothing here is fatal.
"""


class BattleshipError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidMoveError(BattleshipError):
    """Bad placement or shot input: overlap, misaligned line, unknown ship."""


class StateError(BattleshipError):
    """Action out of turn, on a confirmed board, or in the wrong phase."""


class NoZoneAvailableError(BattleshipError):
    """Every zone is occupied; the caller queues the match instead."""

    def __init__(self, message: str = "no zone available"):
        super().__init__(message)


class PromptPendingError(BattleshipError):
    """A prompt is already outstanding for this identity."""


class PromptTimeoutError(BattleshipError):
    """A prompt was not answered in time."""


class IdentifierError(BattleshipError):
    """Identifier released twice or released without being held."""


class InvalidCommandError(BattleshipError):
    """Bad command input: missing argument, unknown player or zone, no such invite."""

"""
Domain exceptions for tournament and bracket operations.
"""


class TournamentError(Exception):
    """Base exception for tournament-related errors."""

    code = 'TOURNAMENT_ERROR'

    def __init__(self, message: str, code: str = None) -> None:
        self.message = message
        if code:
            self.code = code
        super().__init__(message)


class NotFound(TournamentError):
    """A tournament, bracket, match or user does not exist."""

    code = 'NOT_FOUND'


class InvalidArgument(TournamentError):
    """Request data violates a precondition (participant count, winner id...)."""

    code = 'BAD_USER_INPUT'


class AlreadyExists(TournamentError):
    """A record that may be created only once already exists."""

    code = 'ALREADY_EXISTS'


class Conflict(TournamentError):
    """The operation clashes with the current state of a record."""

    code = 'CONFLICT'


class BracketIntegrityError(TournamentError):
    """Stored bracket data breaks a structural invariant."""

    code = 'INTEGRITY_ERROR'

from __future__ import annotations


class TournamentError(Exception):
    """Base exception for every failure raised by the tournament engine."""


class ValidationError(TournamentError, ValueError):
    """Raised when an input value is malformed."""


class ConflictError(TournamentError):
    """Raised when a registration or state-transition invariant is violated."""


class NotFoundError(TournamentError, LookupError):
    """Raised when a referenced tournament, zone, match or entrant is absent."""


class PreconditionError(TournamentError):
    """Raised when an operation runs before its dependencies are resolved."""


__all__ = [
    "TournamentError",
    "ValidationError",
    "ConflictError",
    "NotFoundError",
    "PreconditionError",
]

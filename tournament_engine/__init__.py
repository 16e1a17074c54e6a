"""Couple tournament engine: registration, zones, seeding and brackets."""

from .errors import (
    ConflictError,
    NotFoundError,
    PreconditionError,
    TournamentError,
    ValidationError,
)
from .models import (
    BracketMatch,
    BracketState,
    Entrant,
    MatchStatus,
    ScoringRule,
    Seed,
    Standing,
    Tournament,
    TournamentConfig,
    TournamentFormat,
    TournamentStage,
    TournamentStatus,
    ZoneState,
    utc_now_iso,
)
from .orchestrator import TournamentOrchestrator
from .ranking import RankingAdjustment
from .registration import RegistrationGuard
from .storage import TournamentStorage

__all__ = [
    "ConflictError",
    "NotFoundError",
    "PreconditionError",
    "TournamentError",
    "ValidationError",
    "BracketMatch",
    "BracketState",
    "Entrant",
    "MatchStatus",
    "ScoringRule",
    "Seed",
    "Standing",
    "Tournament",
    "TournamentConfig",
    "TournamentFormat",
    "TournamentStage",
    "TournamentStatus",
    "ZoneState",
    "utc_now_iso",
    "TournamentOrchestrator",
    "RankingAdjustment",
    "RegistrationGuard",
    "TournamentStorage",
]

from __future__ import annotations

import re

from .errors import ValidationError
from .models import ScoringRule, TournamentConfig

_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.:\-]+$")
MAX_COURT_LENGTH = 50
MAX_NAME_LENGTH = 100
MAX_BRACKET_ENTRANTS = 128


def normalize_identifier(raw: str, *, label: str = "Identifier") -> str:
    value = (raw or "").strip()
    if not value:
        raise ValidationError(f"{label} cannot be empty")
    if "#" in value or not _ID_PATTERN.match(value):
        raise ValidationError(f"Invalid {label.lower()}: {value}")
    return value


def validate_player_pair(player_a_id: str, player_b_id: str) -> tuple[str, str]:
    first = normalize_identifier(player_a_id, label="Player id")
    second = normalize_identifier(player_b_id, label="Player id")
    if first == second:
        raise ValidationError("A couple needs two different players")
    return first, second


def validate_court(raw: str | None) -> str:
    court = (raw or "").strip()
    if not court:
        raise ValidationError("A court is required to start a match")
    if len(court) > MAX_COURT_LENGTH:
        raise ValidationError(
            f"Court name must be {MAX_COURT_LENGTH} characters or fewer"
        )
    return court


def validate_score(value: int, *, label: str = "Score") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label} must be a whole number")
    if value < 0:
        raise ValidationError(f"{label} cannot be negative")
    return value


def validate_zone_scores(score_a: int, score_b: int) -> tuple[int, int]:
    return validate_score(score_a, label="Score A"), validate_score(
        score_b, label="Score B"
    )


def validate_bracket_scores(score_one: int, score_two: int) -> tuple[int, int]:
    first, second = validate_zone_scores(score_one, score_two)
    if first == second:
        raise ValidationError("Elimination matches need a winner; scores cannot tie")
    return first, second


def validate_tournament_name(raw: str) -> str:
    name = (raw or "").strip()
    if len(name) < 3:
        raise ValidationError("Tournament name must be at least 3 characters long")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Tournament name must be {MAX_NAME_LENGTH} characters or fewer"
        )
    return name


def validate_scoring_rule(rule: ScoringRule) -> ScoringRule:
    if min(rule.win, rule.tie, rule.loss) < 0:
        raise ValidationError("Scoring points cannot be negative")
    if not rule.win > rule.tie >= rule.loss:
        raise ValidationError("Scoring must reward a win over a tie over a loss")
    return rule


def validate_tournament_config(config: TournamentConfig) -> TournamentConfig:
    validate_scoring_rule(config.scoring)
    if config.min_entrants < 1:
        raise ValidationError("Minimum entrants must be at least 1")
    if config.max_entrants < config.min_entrants:
        raise ValidationError("Maximum entrants must not be below the minimum")
    if config.max_entrants > MAX_BRACKET_ENTRANTS:
        raise ValidationError(
            f"Maximum entrants above {MAX_BRACKET_ENTRANTS} are not supported"
        )
    if config.zone_size < 2:
        raise ValidationError("Zones need at least 2 entrants")
    return config


__all__ = [
    "normalize_identifier",
    "validate_player_pair",
    "validate_court",
    "validate_score",
    "validate_zone_scores",
    "validate_bracket_scores",
    "validate_tournament_name",
    "validate_scoring_rule",
    "validate_tournament_config",
]

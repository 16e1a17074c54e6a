"""Configuration helpers for the tournament engine runtime."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Final

import boto3

from .models import ScoringRule, TournamentConfig
from .validation import validate_tournament_config

LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_AWS_REGION: Final[str] = "us-east-1"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

log = logging.getLogger(__name__)


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("Invalid %s=%s; expected an integer", name, raw)
        return default


def env_str(name: str, *, default: str | None = None) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip()
    return value or default


@dataclass(frozen=True)
class EngineConfig:
    table_name: str | None
    aws_region: str
    log_level: str
    consistent_reads: bool
    defaults: TournamentConfig


def read_engine_config() -> EngineConfig:
    scoring = ScoringRule(
        win=env_int("TOURNAMENT_POINTS_WIN", default=2) or 0,
        tie=env_int("TOURNAMENT_POINTS_TIE", default=1) or 0,
        loss=env_int("TOURNAMENT_POINTS_LOSS", default=0) or 0,
    )
    defaults = TournamentConfig(
        scoring=scoring,
        min_entrants=env_int("TOURNAMENT_MIN_ENTRANTS", default=2) or 0,
        max_entrants=env_int("TOURNAMENT_MAX_ENTRANTS", default=32) or 0,
        zone_size=env_int("TOURNAMENT_ZONE_SIZE", default=4) or 0,
    )
    validate_tournament_config(defaults)
    return EngineConfig(
        table_name=env_str("TOURNAMENT_TABLE_NAME"),
        aws_region=env_str("AWS_REGION", default=DEFAULT_AWS_REGION)
        or DEFAULT_AWS_REGION,
        log_level=(env_str("TOURNAMENT_LOG_LEVEL", default="INFO") or "INFO").upper(),
        consistent_reads=env_bool("TOURNAMENT_CONSISTENT_READS", default=True),
        defaults=defaults,
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def build_table(config: EngineConfig):
    if not config.table_name:
        raise RuntimeError("TOURNAMENT_TABLE_NAME is not configured")
    session = boto3.Session(region_name=config.aws_region)
    return session.resource("dynamodb").Table(config.table_name)


__all__ = [
    "EngineConfig",
    "env_bool",
    "env_int",
    "env_str",
    "read_engine_config",
    "configure_logging",
    "build_table",
]

from __future__ import annotations

import logging
from collections.abc import Sequence

from .errors import ConflictError, NotFoundError, PreconditionError, ValidationError
from .models import Entrant, MatchStatus, ZoneMatch, ZoneState, utc_now_iso
from .validation import validate_zone_scores

log = logging.getLogger(__name__)

DEFAULT_ZONE_SIZE = 4
MIN_ZONE_ENTRANTS = 2


def plan_zone_sizes(count: int, zone_size: int = DEFAULT_ZONE_SIZE) -> list[int]:
    """Return the sizes of the zones ``count`` entrants are split into.

    With the default size of four the split favours zones of four and fills
    the remainder with zones of three.
    """
    if count < MIN_ZONE_ENTRANTS:
        raise PreconditionError(
            f"At least {MIN_ZONE_ENTRANTS} entrants are required to form zones"
        )
    if zone_size < MIN_ZONE_ENTRANTS:
        raise ValidationError("Zones need at least 2 entrants")

    if zone_size == DEFAULT_ZONE_SIZE:
        if count < 6:
            return [count]
        remainder = count % 4
        if remainder == 0:
            fours, threes = count // 4, 0
        elif remainder == 1:
            fours, threes = count // 4 - 2, 3
        elif remainder == 2:
            fours, threes = count // 4 - 1, 2
        else:
            fours, threes = count // 4, 1
        return [4] * fours + [3] * threes

    if count <= zone_size:
        return [count]
    zone_count = -(-count // zone_size)
    base, extra = divmod(count, zone_count)
    return [base + 1] * extra + [base] * (zone_count - extra)


def zone_letter(index: int) -> str:
    letters = ""
    value = index + 1
    while value > 0:
        value, remainder = divmod(value - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def round_robin_pairs(entrant_ids: Sequence[str]) -> list[tuple[str, str]]:
    """Every pairing exactly once, ordered round by round (circle method)."""
    rotation: list[str | None] = list(entrant_ids)
    if len(rotation) < 2:
        return []
    if len(rotation) % 2:
        rotation.append(None)
    size = len(rotation)
    pairs: list[tuple[str, str]] = []
    for _ in range(size - 1):
        for index in range(size // 2):
            home = rotation[index]
            away = rotation[size - 1 - index]
            if home is not None and away is not None:
                pairs.append((home, away))
        rotation = [rotation[0], rotation[-1], *rotation[1:-1]]
    return pairs


def build_zone(
    tournament_id: str, index: int, entrant_ids: Sequence[str], *, created_at: str
) -> ZoneState:
    if len(entrant_ids) < MIN_ZONE_ENTRANTS:
        raise ValidationError(
            f"Zone {zone_letter(index)} needs at least {MIN_ZONE_ENTRANTS} entrants"
        )
    zone_id = zone_letter(index)
    matches = [
        ZoneMatch(match_id=f"{zone_id}-M{number}", entrant_a=home, entrant_b=away)
        for number, (home, away) in enumerate(round_robin_pairs(entrant_ids), start=1)
    ]
    return ZoneState(
        tournament_id=tournament_id,
        zone_id=zone_id,
        name=f"Zone {zone_id}",
        entrant_ids=list(entrant_ids),
        matches=matches,
        created_at=created_at,
    )


def build_zones(
    tournament_id: str, groups: Sequence[Sequence[str]]
) -> list[ZoneState]:
    created_at = utc_now_iso()
    return [
        build_zone(tournament_id, index, group, created_at=created_at)
        for index, group in enumerate(groups)
    ]


def generate_zones(
    tournament_id: str,
    entrants: Sequence[Entrant],
    zone_size: int = DEFAULT_ZONE_SIZE,
) -> list[ZoneState]:
    """Fill zones in registration order."""
    ordered = sorted(entrants, key=lambda entrant: entrant.registration_order)
    sizes = plan_zone_sizes(len(ordered), zone_size)
    groups: list[list[str]] = []
    cursor = 0
    for size in sizes:
        groups.append([entrant.entrant_id for entrant in ordered[cursor : cursor + size]])
        cursor += size
    return build_zones(tournament_id, groups)


def record_zone_result(
    zone: ZoneState,
    match_id: str,
    score_a: int,
    score_b: int,
    *,
    correction: bool = False,
) -> ZoneMatch:
    first, second = validate_zone_scores(score_a, score_b)
    match = zone.find_match(match_id)
    if match is None:
        raise NotFoundError(f"Match {match_id} not found in {zone.name}")
    if match.is_finished and not correction:
        raise ConflictError(
            f"Match {match_id} already has a result; submit a correction to change it"
        )
    if correction and not match.is_finished:
        raise ConflictError(f"Match {match_id} has no result to correct")
    match.score_a = first
    match.score_b = second
    match.status = MatchStatus.FINISHED
    match.updated_at = utc_now_iso()
    log.info(
        "Recorded %s result %s-%s for %s (%s vs %s)",
        zone.name,
        first,
        second,
        match_id,
        match.entrant_a,
        match.entrant_b,
    )
    return match


__all__ = [
    "DEFAULT_ZONE_SIZE",
    "plan_zone_sizes",
    "zone_letter",
    "round_robin_pairs",
    "build_zone",
    "build_zones",
    "generate_zones",
    "record_zone_result",
]

from __future__ import annotations

from .models import ScoringRule, Standing, ZoneState


def _sort_key(standing: Standing) -> tuple[int, int, int, int]:
    return (
        -standing.points,
        -standing.differential,
        -standing.games_for,
        standing.registration_index,
    )


def compute_standings(zone: ZoneState, scoring: ScoringRule) -> list[Standing]:
    """Aggregate the finished matches of ``zone`` into an ordered table.

    Standings are never stored; callers recompute them whenever a result
    changes. Entrants that have not played keep their registration order at
    the bottom of any tie.
    """
    table = {
        entrant_id: Standing(entrant_id=entrant_id, registration_index=index)
        for index, entrant_id in enumerate(zone.entrant_ids)
    }
    for match in zone.matches:
        if not match.is_finished or match.score_a is None or match.score_b is None:
            continue
        home = table.get(match.entrant_a)
        away = table.get(match.entrant_b)
        if home is None or away is None:
            continue
        _apply_result(home, match.score_a, match.score_b, scoring)
        _apply_result(away, match.score_b, match.score_a, scoring)
    return sorted(table.values(), key=_sort_key)


def _apply_result(
    standing: Standing, games_for: int, games_against: int, scoring: ScoringRule
) -> None:
    standing.played += 1
    standing.games_for += games_for
    standing.games_against += games_against
    standing.points += scoring.points(games_for, games_against)
    if games_for > games_against:
        standing.wins += 1
    elif games_for < games_against:
        standing.losses += 1
    else:
        standing.ties += 1


def zone_leader(zone: ZoneState, scoring: ScoringRule) -> str | None:
    standings = compute_standings(zone, scoring)
    if not standings:
        return None
    return standings[0].entrant_id


__all__ = ["compute_standings", "zone_leader"]

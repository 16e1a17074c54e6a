from __future__ import annotations

from collections.abc import Sequence

from .errors import PreconditionError
from .models import Seed, Standing

ZoneTable = tuple[str, Sequence[Standing]]


def next_power_of_two(value: int) -> int:
    if value <= 0:
        raise ValueError("Value must be positive")
    return 1 << (value - 1).bit_length()


def plan_bracket(count: int) -> tuple[int, int]:
    """Return ``(bracket_size, byes)`` for ``count`` seeded entrants."""
    if count <= 0:
        raise PreconditionError("A bracket needs at least one entrant")
    size = next_power_of_two(count)
    return size, size - count


def _level_key(item: tuple[str, Standing]) -> tuple[int, int, int, str]:
    zone_name, standing = item
    points, differential, games_for = standing.strength()
    return (-points, -differential, -games_for, zone_name)


def seed_entrants(zones: Sequence[ZoneTable]) -> list[Seed]:
    """Seed zone finishers level by level: every zone winner, then every runner-up.

    Within a level, zones compare by the standing at that level; identical
    records fall back to the zone name. Zones that have no entrant at a level
    are skipped for it.
    """
    depth = max((len(standings) for _, standings in zones), default=0)
    seeds: list[Seed] = []
    for level in range(depth):
        contenders = [
            (zone_name, standings[level])
            for zone_name, standings in zones
            if len(standings) > level
        ]
        for zone_name, standing in sorted(contenders, key=_level_key):
            seeds.append(
                Seed(
                    seed=len(seeds) + 1,
                    entrant_id=standing.entrant_id,
                    zone_name=zone_name,
                    zone_position=level + 1,
                )
            )
    _, byes = plan_bracket(len(seeds))
    for seed in seeds[:byes]:
        seed.has_bye = True
    return seeds


__all__ = ["next_power_of_two", "plan_bracket", "seed_entrants"]

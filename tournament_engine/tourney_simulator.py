"""Utility script to run a seeded tournament simulation from the CLI."""

from __future__ import annotations

import argparse
import random
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from .bracket import build_bracket, render_bracket, simulate_tournament
from .config import configure_logging
from .models import (
    ISO_FORMAT,
    BracketState,
    Entrant,
    ScoringRule,
    Seed,
    TournamentFormat,
    ZoneState,
)
from .seeding import seed_entrants
from .standings import compute_standings, zone_leader
from .zones import DEFAULT_ZONE_SIZE, build_zones, generate_zones, record_zone_result

DEFAULT_BASE_TIME = datetime(2025, 1, 1, tzinfo=UTC)
MAX_SIMULATED_GAMES = 6


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Simulate a couples tournament: zones, seeding and bracket"
    )
    parser.add_argument(
        "--couples",
        type=int,
        default=8,
        help="Number of couples taking part (default: 8)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for zone scores, for reproducible runs",
    )
    parser.add_argument(
        "--format",
        choices=[str(option) for option in TournamentFormat],
        default=str(TournamentFormat.ZONE_THEN_BRACKET),
        help="Tournament format to simulate",
    )
    parser.add_argument(
        "--zone-size",
        type=int,
        default=DEFAULT_ZONE_SIZE,
        help="Preferred number of couples per zone",
    )
    parser.add_argument(
        "--no-bracket",
        action="store_true",
        help="Skip printing the rendered bracket (snapshots are still noted)",
    )
    parser.add_argument(
        "--base-time",
        type=str,
        default=DEFAULT_BASE_TIME.isoformat().replace("+00:00", "Z"),
        help="Registration timestamp seed (ISO-8601, defaults to 2025-01-01T00:00:00Z)",
    )
    args = parser.parse_args(argv)
    if args.couples < 1:
        parser.error("--couples must be at least 1")
    return args


def build_entrants(
    tournament_id: str, count: int, *, base_time: datetime
) -> list[Entrant]:
    entrants: list[Entrant] = []
    for index in range(1, count + 1):
        registered = base_time + timedelta(seconds=index)
        entrants.append(
            Entrant(
                tournament_id=tournament_id,
                couple_id=f"C{index:02d}",
                player_ids=(f"P{index:02d}A", f"P{index:02d}B"),
                registered_at=registered.strftime(ISO_FORMAT),
            )
        )
    return entrants


def play_zones(zones: Sequence[ZoneState], rng: random.Random) -> None:
    for zone in zones:
        for match in zone.matches:
            record_zone_result(
                zone,
                match.match_id,
                rng.randint(0, MAX_SIMULATED_GAMES),
                rng.randint(0, MAX_SIMULATED_GAMES),
            )


def print_standings(zones: Sequence[ZoneState], scoring: ScoringRule) -> None:
    for zone in zones:
        print(f"=== {zone.name} ===")
        for position, standing in enumerate(compute_standings(zone, scoring), start=1):
            print(
                f"  {position}. {standing.entrant_id}  pts={standing.points} "
                f"W{standing.wins}-T{standing.ties}-L{standing.losses} "
                f"diff={standing.differential:+d} gf={standing.games_for}"
            )


def print_seeds(seeds: Sequence[Seed]) -> None:
    print("=== Seeds ===")
    for seed in seeds:
        bye = " (bye)" if seed.has_bye else ""
        print(
            f"  #{seed.seed} {seed.entrant_id} - {seed.zone_name} "
            f"position {seed.zone_position}{bye}"
        )


def print_snapshots(snapshots):
    for idx, (label, _) in enumerate(snapshots, start=1):
        print(f"Snapshot {idx}: {label}")


def render_final_bracket(bracket_state):
    print("\n=== Final Bracket ===")
    print(render_bracket(bracket_state))
    print("====================\n")


def run(args: argparse.Namespace) -> str | None:
    """Simulate one tournament and return the champion's couple id."""
    base_time = datetime.fromisoformat(
        args.base_time.replace("Z", "+00:00")
    ).astimezone(UTC)
    rng = random.Random(args.seed)
    scoring = ScoringRule()
    tournament_id = "simulation"
    entrants = build_entrants(tournament_id, args.couples, base_time=base_time)

    if args.couples == 1:
        champion = entrants[0].entrant_id
        print(f"Champion: {champion}")
        return champion

    if args.format == TournamentFormat.ROUND_ROBIN_ONLY:
        zones = build_zones(tournament_id, [[entrant.entrant_id for entrant in entrants]])
    else:
        zones = generate_zones(tournament_id, entrants, args.zone_size)
    play_zones(zones, rng)
    print_standings(zones, scoring)

    if args.format == TournamentFormat.ROUND_ROBIN_ONLY:
        champion = zone_leader(zones[0], scoring)
        print(f"Champion: {champion}")
        return champion

    seeds = seed_entrants(
        [(zone.name, compute_standings(zone, scoring)) for zone in zones]
    )
    print_seeds(seeds)
    bracket: BracketState = build_bracket(tournament_id, seeds)
    final_state, snapshots = simulate_tournament(bracket)

    print_snapshots(snapshots)
    if not args.no_bracket:
        render_final_bracket(final_state)
    print(f"Champion: {final_state.champion_id}")
    return final_state.champion_id


def main(argv: Sequence[str] | None = None) -> None:
    configure_logging("WARNING")
    run(parse_args(argv))


if __name__ == "__main__":
    main()

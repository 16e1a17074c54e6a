from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from .errors import PreconditionError, ValidationError
from .models import (
    BracketMatch,
    BracketRound,
    BracketSlot,
    BracketState,
    MatchEvent,
    MatchStatus,
    Seed,
    utc_now_iso,
)
from .seeding import plan_bracket

log = logging.getLogger(__name__)


def _seed_order(slots: int) -> list[int]:
    if slots == 1:
        return [1]
    if slots == 2:
        return [1, 2]
    half = _seed_order(slots // 2)
    expanded: list[int] = []
    for seed in half:
        expanded.extend([seed, slots + 1 - seed])
    return expanded


def round_name(round_index: int, total_rounds: int) -> str:
    remaining = total_rounds - round_index
    if remaining == 1:
        return "FINAL"
    if remaining == 2:
        return "SEMIFINAL"
    if remaining == 3:
        return "QUARTERFINAL"
    return f"ROUND_OF_{2**remaining}"


def match_id_for(round_index: int, slot: int) -> str:
    return f"R{round_index + 1}M{slot + 1}"


def winner_label(match_id: str) -> str:
    return f"Winner {match_id}"


def _slot_for_seed(
    seed_number: int, seed_lookup: Mapping[int, Seed], labels: Mapping[str, str]
) -> BracketSlot:
    seed = seed_lookup.get(seed_number)
    if seed is None:
        return BracketSlot.bye()
    label = labels.get(seed.entrant_id, seed.entrant_id).strip() or seed.entrant_id
    return BracketSlot(entrant_id=seed.entrant_id, seed=seed.seed, label=label)


def _validate_seeds(seeds: Sequence[Seed]) -> dict[int, Seed]:
    lookup: dict[int, Seed] = {}
    entrants: set[str] = set()
    for seed in seeds:
        if seed.seed in lookup:
            raise ValidationError(f"Seed {seed.seed} is assigned twice")
        if seed.entrant_id in entrants:
            raise ValidationError(f"Entrant {seed.entrant_id} is seeded twice")
        lookup[seed.seed] = seed
        entrants.add(seed.entrant_id)
    if sorted(lookup) != list(range(1, len(seeds) + 1)):
        raise ValidationError("Seeds must be numbered 1..N without gaps")
    return lookup


def _same_zone(seed_lookup: Mapping[int, Seed], first: int, second: int) -> bool:
    one = seed_lookup.get(first)
    two = seed_lookup.get(second)
    return one is not None and two is not None and one.zone_name == two.zone_name


def _separate_zone_pairs(order: Sequence[int], seed_lookup: Mapping[int, Seed]) -> list[int]:
    """Swap the weaker side of a same-zone first-round pair with a seed of the
    same zone position, as long as neither resulting pair shares a zone.

    Only round one is repaired; two couples of one zone can still meet later.
    """
    order = list(order)
    for index in range(1, len(order), 2):
        if not _same_zone(seed_lookup, order[index - 1], order[index]):
            continue
        weaker = seed_lookup[order[index]]
        for other in range(1, len(order), 2):
            candidate = seed_lookup.get(order[other])
            if other == index or candidate is None:
                continue
            if candidate.zone_position != weaker.zone_position:
                continue
            if _same_zone(seed_lookup, order[index - 1], order[other]) or _same_zone(
                seed_lookup, order[other - 1], order[index]
            ):
                continue
            order[index], order[other] = order[other], order[index]
            break
    return order


def build_bracket(
    tournament_id: str,
    seeds: Sequence[Seed],
    bracket_size: int | None = None,
    *,
    labels: Mapping[str, str] | None = None,
) -> BracketState:
    """Lay seeds into the standard pairing table and resolve every bye.

    First-round pairs from the same zone are split where a seed of the same
    zone position can be swapped in.
    """
    if not seeds:
        raise PreconditionError("A bracket needs at least one seeded entrant")
    size, byes = plan_bracket(len(seeds))
    if bracket_size is not None and bracket_size != size:
        raise ValidationError(
            f"Bracket size {bracket_size} does not fit {len(seeds)} entrants (expected {size})"
        )
    seed_lookup = _validate_seeds(seeds)
    labels = labels or {}
    created_at = utc_now_iso()

    if size == 1:
        champion = seed_lookup[1].entrant_id
        log.info(
            "Bracket for tournament %s has a single entrant; %s is champion",
            tournament_id,
            champion,
        )
        return BracketState(
            tournament_id=tournament_id,
            bracket_size=1,
            byes=0,
            seeds=list(seeds),
            rounds=[],
            created_at=created_at,
            champion_id=champion,
        )

    total_rounds = size.bit_length() - 1
    first_round_slots = [
        _slot_for_seed(seed_number, seed_lookup, labels)
        for seed_number in _separate_zone_pairs(_seed_order(size), seed_lookup)
    ]
    matches: list[BracketMatch] = []
    for index in range(0, len(first_round_slots), 2):
        slot = index // 2
        matches.append(
            BracketMatch(
                match_id=match_id_for(0, slot),
                round_index=0,
                slot=slot,
                round_name=round_name(0, total_rounds),
                competitor_one=first_round_slots[index],
                competitor_two=first_round_slots[index + 1],
            )
        )
    rounds = [BracketRound(name=round_name(0, total_rounds), matches=matches)]

    previous_round_matches = matches
    for round_idx in range(1, total_rounds):
        name = round_name(round_idx, total_rounds)
        next_round_matches: list[BracketMatch] = []
        for slot in range(len(previous_round_matches) // 2):
            feeder_one = previous_round_matches[slot * 2]
            feeder_two = previous_round_matches[slot * 2 + 1]
            next_round_matches.append(
                BracketMatch(
                    match_id=match_id_for(round_idx, slot),
                    round_index=round_idx,
                    slot=slot,
                    round_name=name,
                    competitor_one=BracketSlot.placeholder(
                        winner_label(feeder_one.match_id)
                    ),
                    competitor_two=BracketSlot.placeholder(
                        winner_label(feeder_two.match_id)
                    ),
                )
            )
        rounds.append(BracketRound(name=name, matches=next_round_matches))
        previous_round_matches = next_round_matches

    state = BracketState(
        tournament_id=tournament_id,
        bracket_size=size,
        byes=byes,
        seeds=list(seeds),
        rounds=rounds,
        created_at=created_at,
    )
    auto_resolve(state)
    log.info(
        "Built %s-slot bracket for tournament %s with %s entrants and %s byes",
        size,
        tournament_id,
        len(seeds),
        byes,
    )
    return state


def propagate_winner(state: BracketState, match: BracketMatch) -> None:
    """Copy the winner of ``match`` into the slot it feeds, or crown it."""
    winner = match.winner_slot()
    if winner is None:
        return
    target = state.next_match(match)
    if target is None:
        state.champion_id = winner.entrant_id
        return
    next_match, side = target
    next_match.competitors()[side].adopt_from(winner)


def withdraw_winner(state: BracketState, match: BracketMatch) -> None:
    target = state.next_match(match)
    if target is None:
        state.champion_id = None
        return
    next_match, side = target
    next_match.competitors()[side].reset(winner_label(match.match_id))


def auto_resolve(state: BracketState) -> int:
    """Advance every pending match that has a bye on one side; repeat until stable."""
    resolved = 0
    changed = True
    while changed:
        changed = False
        for match in state.all_matches():
            if match.status != MatchStatus.PENDING:
                continue
            one, two = match.competitors()
            if not (one.is_resolved and two.is_resolved):
                continue
            if not (one.is_bye or two.is_bye):
                continue
            match.winner_index = 1 if one.is_bye and not two.is_bye else 0
            match.apply(MatchEvent.ADVANCE_BYE)
            propagate_winner(state, match)
            resolved += 1
            changed = True
    return resolved


def settle_match(
    state: BracketState,
    match: BracketMatch,
    score_one: int,
    score_two: int,
    *,
    event: MatchEvent = MatchEvent.FINISH,
) -> None:
    match.apply(event)
    match.score_one = score_one
    match.score_two = score_two
    match.winner_index = 0 if score_one > score_two else 1
    propagate_winner(state, match)
    auto_resolve(state)


def champion_label(state: BracketState) -> str | None:
    if state.champion_id is None:
        return None
    final = state.final_match()
    if final is not None:
        winner = final.winner_slot()
        if winner is not None and winner.entrant_id == state.champion_id:
            return winner.display()
    seed = state.seed_for(state.champion_id)
    if seed is not None:
        return f"#{seed.seed} {seed.entrant_id}"
    return state.champion_id


def _result_line(match: BracketMatch) -> str:
    winner = match.winner_slot()
    if match.status == MatchStatus.CANCELED:
        return "    -> Canceled"
    if winner is None or not winner.has_entrant:
        if match.status == MatchStatus.IN_PROGRESS and match.court:
            return f"    -> In progress on {match.court}"
        return "    -> Winner: TBD"
    if match.score_one is None or match.score_two is None:
        return f"    -> Winner: {winner.display()} (bye)"
    return f"    -> Winner: {winner.display()} ({match.score_one}-{match.score_two})"


def render_bracket(state: BracketState, *, shrink_completed: bool = False) -> str:
    start_index = 0
    if shrink_completed and state.rounds:
        last_index = len(state.rounds) - 1
        for idx, round_ in enumerate(state.rounds):
            if any(match.status != MatchStatus.FINISHED for match in round_.matches):
                start_index = idx
                break
        else:
            start_index = last_index

    lines: list[str] = []
    for round_ in state.rounds[start_index:]:
        lines.append(round_.name)
        for match in round_.matches:
            competitor_one = match.competitor_one.display()
            competitor_two = match.competitor_two.display()
            lines.append(f"  [{match.match_id}] {competitor_one} vs {competitor_two}")
            lines.append(_result_line(match))
        lines.append("")
    if lines and not lines[-1]:
        lines.pop()
    champion = champion_label(state)
    if champion:
        lines.append(f"Champion: {champion}")
    return "\n".join(line.rstrip() for line in lines)


def simulate_tournament(
    state: BracketState,
) -> tuple[BracketState, list[tuple[str, BracketState]]]:
    """Play out every open match on a copy; the better seed always wins."""
    working = state.clone()
    auto_resolve(working)
    snapshots: list[tuple[str, BracketState]] = [("Initial Bracket", working.clone())]
    for round_ in working.rounds:
        for match in round_.matches:
            if match.status == MatchStatus.PENDING and match.is_playable:
                match.court = match.court or "Simulated"
                match.apply(MatchEvent.START)
            if match.status != MatchStatus.IN_PROGRESS:
                continue
            seed_one = match.competitor_one.seed or 999
            seed_two = match.competitor_two.seed or 999
            if seed_one <= seed_two:
                settle_match(working, match, 6, 3)
            else:
                settle_match(working, match, 3, 6)
        snapshots.append((f"After {round_.name}", working.clone()))
    return working, snapshots


__all__ = [
    "round_name",
    "match_id_for",
    "winner_label",
    "build_bracket",
    "propagate_winner",
    "withdraw_winner",
    "auto_resolve",
    "settle_match",
    "champion_label",
    "render_bracket",
    "simulate_tournament",
]

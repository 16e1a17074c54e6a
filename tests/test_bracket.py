from __future__ import annotations

import pytest

from tournament_engine import PreconditionError, ValidationError
from tournament_engine.bracket import (
    build_bracket,
    render_bracket,
    round_name,
    simulate_tournament,
)
from tournament_engine.models import BracketState, MatchStatus, Seed


def make_seeds(count: int) -> list[Seed]:
    byes = (1 << (count - 1).bit_length()) - count
    return [
        Seed(
            seed=index,
            entrant_id=f"E{index}",
            zone_name="Zone A",
            zone_position=index,
            has_bye=index <= byes,
        )
        for index in range(1, count + 1)
    ]


def test_round_names_assigned_backwards():
    assert [round_name(i, 5) for i in range(5)] == [
        "ROUND_OF_32",
        "ROUND_OF_16",
        "QUARTERFINAL",
        "SEMIFINAL",
        "FINAL",
    ]


def test_four_entrants_use_standard_pairing():
    state = build_bracket("t1", make_seeds(4))

    first_round = state.rounds[0]
    assert first_round.name == "SEMIFINAL"
    assert [match.match_id for match in first_round.matches] == ["R1M1", "R1M2"]
    top = first_round.matches[0]
    assert (top.competitor_one.seed, top.competitor_two.seed) == (1, 4)
    bottom = first_round.matches[1]
    assert (bottom.competitor_one.seed, bottom.competitor_two.seed) == (2, 3)
    assert state.rounds[1].matches[0].competitor_one.label == "Winner R1M1"
    assert all(match.status == MatchStatus.PENDING for match in first_round.matches)


def test_six_entrants_give_byes_to_top_two_seeds():
    state = build_bracket("t1", make_seeds(6), 8)

    assert (state.bracket_size, state.byes) == (8, 2)
    resolved = [m for m in state.rounds[0].matches if m.status == MatchStatus.FINISHED]
    assert sorted(m.winner_slot().seed for m in resolved) == [1, 2]
    played = [m for m in state.rounds[0].matches if m.status == MatchStatus.PENDING]
    assert all(m.competitor_one.has_entrant and m.competitor_two.has_entrant for m in played)

    semifinal_slots = [
        slot.seed for match in state.rounds[1].matches for slot in match.competitors()
    ]
    assert 1 in semifinal_slots and 2 in semifinal_slots


@pytest.mark.parametrize("count", [4, 5, 8, 13, 16, 32])
def test_top_two_seeds_only_meet_in_final(count):
    state = build_bracket("t1", make_seeds(count))
    half = state.bracket_size // 2

    first_round_seeds = [
        slot.seed for match in state.rounds[0].matches for slot in match.competitors()
    ]
    top_half = first_round_seeds[:half]
    bottom_half = first_round_seeds[half:]
    assert 1 in top_half
    assert 2 in bottom_half


def test_only_bye_seeds_skip_the_first_round():
    state = build_bracket("t1", make_seeds(5))

    auto = [m for m in state.rounds[0].matches if m.status == MatchStatus.FINISHED]
    assert sorted(m.winner_slot().seed for m in auto) == [1, 2, 3]
    assert all(m.score_one is None for m in auto)


def test_single_entrant_is_champion_without_rounds():
    state = build_bracket("t1", make_seeds(1))

    assert state.rounds == []
    assert state.champion_id == "E1"
    assert state.bracket_size == 1
    assert "Champion: #1 E1" in render_bracket(state)


def test_build_bracket_validates_inputs():
    with pytest.raises(PreconditionError):
        build_bracket("t1", [])
    with pytest.raises(ValidationError):
        build_bracket("t1", make_seeds(6), 16)
    seeds = make_seeds(3)
    seeds[2].seed = 5
    with pytest.raises(ValidationError):
        build_bracket("t1", seeds)


def test_bracket_item_round_trip_keeps_state():
    state = build_bracket("t1", make_seeds(6), labels={"E1": "Ana / Bea"})

    restored = BracketState.from_item(state.to_item())

    assert restored.to_item() == state.to_item()
    assert restored.find_match("R1M1").competitor_one.label == "Ana / Bea"


def test_simulation_crowns_top_seed():
    state = build_bracket("t1", make_seeds(6))

    final_state, snapshots = simulate_tournament(state)

    assert final_state.champion_id == "E1"
    assert [label for label, _ in snapshots] == [
        "Initial Bracket",
        "After QUARTERFINAL",
        "After SEMIFINAL",
        "After FINAL",
    ]
    assert state.champion_id is None
    rendered = render_bracket(final_state)
    assert rendered.splitlines()[0] == "QUARTERFINAL"
    assert rendered.endswith("Champion: #1 E1")


def test_render_shrinks_completed_rounds():
    final_state, _ = simulate_tournament(build_bracket("t1", make_seeds(4)))

    rendered = render_bracket(final_state, shrink_completed=True)

    assert rendered.splitlines()[0] == "FINAL"


def test_first_round_separates_couples_from_the_same_zone():
    zones = "ABC"
    seeds = [
        Seed(
            seed=index,
            entrant_id=f"E{index}",
            zone_name=f"Zone {zones[(index - 1) % 3]}",
            zone_position=(index - 1) // 3 + 1,
            has_bye=index <= 4,
        )
        for index in range(1, 13)
    ]

    state = build_bracket("t1", seeds)

    first_round = state.rounds[0].matches
    pairs = [(m.competitor_one.seed, m.competitor_two.seed) for m in first_round]
    assert pairs == [
        (1, None),
        (8, 9),
        (4, None),
        (5, 10),
        (2, None),
        (7, 12),
        (3, None),
        (6, 11),
    ]
    for match in first_round:
        one, two = match.competitor_one, match.competitor_two
        if one.is_bye or two.is_bye:
            continue
        assert state.seed_for(one.entrant_id).zone_name != state.seed_for(
            two.entrant_id
        ).zone_name


def test_same_zone_pairs_kept_when_no_swap_helps():
    state = build_bracket("t1", make_seeds(8))

    assert [
        (m.competitor_one.seed, m.competitor_two.seed) for m in state.rounds[0].matches
    ] == [(1, 8), (4, 5), (2, 7), (3, 6)]

from __future__ import annotations

import itertools
from unittest.mock import patch

import pytest

from tournament_engine import (
    ConflictError,
    NotFoundError,
    PreconditionError,
    TournamentOrchestrator,
    ValidationError,
)
from tournament_engine.config import EngineConfig
from tournament_engine.models import (
    EntrantStatus,
    MatchStatus,
    TournamentConfig,
    TournamentFormat,
    TournamentStage,
    TournamentStatus,
)


def sequential_ids(prefix: str):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


def register_couples(orchestrator, tid: str, count: int) -> list[str]:
    couple_ids = []
    for index in range(1, count + 1):
        entrant = orchestrator.register_couple(tid, f"p{index:02d}a", f"p{index:02d}b")
        couple_ids.append(entrant.couple_id)
    return couple_ids


def play_zones(orchestrator, tid: str, order: list[str]) -> None:
    """Play every zone match; the earlier registered couple always wins."""
    rank = {couple_id: index for index, couple_id in enumerate(order)}
    for zone in orchestrator.get_zones(tid):
        for match in zone.matches:
            if rank[match.entrant_a] < rank[match.entrant_b]:
                scores = (6, 2)
            else:
                scores = (2, 6)
            orchestrator.record_zone_match_result(
                tid, zone.zone_id, match.match_id, *scores
            )


def play_bracket_match(orchestrator, tid: str, match_id: str) -> None:
    match = orchestrator.get_bracket(tid).find_match(match_id)
    orchestrator.start_bracket_match(tid, match_id, "Center")
    if match.competitor_one.seed < match.competitor_two.seed:
        orchestrator.record_bracket_match_result(tid, match_id, 6, 3)
    else:
        orchestrator.record_bracket_match_result(tid, match_id, 3, 6)


def test_create_tournament_validates_and_stores(orchestrator):
    tournament = orchestrator.create_tournament("club-1", " Spring Open ", gender="female")

    assert tournament.status == TournamentStatus.NOT_STARTED
    assert tournament.stage == TournamentStage.REGISTRATION
    assert tournament.name == "Spring Open"
    assert tournament.gender == "FEMALE"
    assert orchestrator.get_tournament(tournament.tournament_id) == tournament

    with pytest.raises(ValidationError):
        orchestrator.create_tournament("club-1", "x")
    with pytest.raises(ValidationError):
        orchestrator.create_tournament(
            "club-1", "Bad Config", config=TournamentConfig(min_entrants=0)
        )


def test_get_unknown_tournament(orchestrator):
    with pytest.raises(NotFoundError):
        orchestrator.get_tournament("missing")


def test_open_registration_only_once(orchestrator, open_tournament):
    assert open_tournament.status == TournamentStatus.PAIRING

    with pytest.raises(ConflictError):
        orchestrator.open_registration(open_tournament.tournament_id)


def test_full_zone_then_bracket_flow(orchestrator, open_tournament):
    tid = open_tournament.tournament_id
    couples = register_couples(orchestrator, tid, 6)

    zones = orchestrator.start_zone_stage(tid)

    assert [zone.entrant_ids for zone in zones] == [couples[:3], couples[3:]]
    assert orchestrator.get_tournament(tid).stage == TournamentStage.ZONES
    assert {e.zone_id for e in orchestrator.list_entrants(tid)} == {"A", "B"}
    with pytest.raises(PreconditionError):
        orchestrator.build_bracket(tid)
    with pytest.raises(NotFoundError):
        orchestrator.get_bracket(tid)

    play_zones(orchestrator, tid, couples)

    tournament = orchestrator.get_tournament(tid)
    assert tournament.status == TournamentStatus.IN_PROGRESS
    assert tournament.stage == TournamentStage.BRACKET
    standings = orchestrator.get_standings(tid, "A")
    assert [s.entrant_id for s in standings] == couples[:3]
    assert [s.points for s in standings] == [4, 2, 0]

    bracket = orchestrator.get_bracket(tid)
    assert (bracket.bracket_size, bracket.byes) == (8, 2)
    assert [seed.entrant_id for seed in bracket.seeds] == [
        couples[0],
        couples[3],
        couples[1],
        couples[4],
        couples[2],
        couples[5],
    ]
    assert bracket.find_match("R1M1").status == MatchStatus.FINISHED
    assert bracket.find_match("R1M1").competitor_one.label == "p01a / p01b"

    for match_id in ("R1M2", "R1M4", "R2M1", "R2M2", "R3M1"):
        play_bracket_match(orchestrator, tid, match_id)

    finished = orchestrator.get_tournament(tid)
    assert finished.status == TournamentStatus.FINISHED
    assert finished.stage == TournamentStage.COMPLETE
    assert finished.champion_id == couples[0]
    assert orchestrator.get_bracket(tid).champion_id == couples[0]

    with pytest.raises(ConflictError):
        orchestrator.record_bracket_match_result(tid, "R3M1", 3, 6, correction=True)

    adjustments = orchestrator.ranking_adjustments(tid, {"p01a": 100})
    deltas = {adjustment.player_id: adjustment.delta for adjustment in adjustments}
    assert set(deltas) == {f"p{i:02d}{side}" for i in range(1, 7) for side in "ab"}
    assert all(delta >= 0 for delta in deltas.values())


def test_duplicate_result_without_correction_is_rejected(orchestrator, open_tournament):
    tid = open_tournament.tournament_id
    couples = register_couples(orchestrator, tid, 4)
    orchestrator.start_zone_stage(tid)
    play_zones(orchestrator, tid, couples)

    orchestrator.start_bracket_match(tid, "R1M1", "Court 1")
    orchestrator.record_bracket_match_result(tid, "R1M1", 6, 1)

    with pytest.raises(ConflictError):
        orchestrator.record_bracket_match_result(tid, "R1M1", 6, 2)
    with pytest.raises(ValidationError):
        orchestrator.record_bracket_match_result(tid, "R1M2", 3, 3)


def test_canceled_bracket_match_blocks_next_round(orchestrator, open_tournament):
    tid = open_tournament.tournament_id
    couples = register_couples(orchestrator, tid, 4)
    orchestrator.start_zone_stage(tid)
    play_zones(orchestrator, tid, couples)
    play_bracket_match(orchestrator, tid, "R1M1")
    orchestrator.start_bracket_match(tid, "R1M2", "Court 2")
    orchestrator.change_match_court(tid, "R1M2", "Court 5")
    orchestrator.cancel_match(tid, "R1M2")

    with pytest.raises(PreconditionError):
        orchestrator.start_bracket_match(tid, "R2M1", "Center")

    orchestrator.reactivate_match(tid, "R1M2")
    play_bracket_match(orchestrator, tid, "R1M2")
    orchestrator.start_bracket_match(tid, "R2M1", "Center")

    final = orchestrator.get_bracket(tid).find_match("R2M1")
    assert final.status == MatchStatus.IN_PROGRESS


def test_round_robin_only_crowns_zone_leader(orchestrator):
    tournament = orchestrator.create_tournament(
        "club-1", "Round Robin Cup", format=TournamentFormat.ROUND_ROBIN_ONLY
    )
    tid = tournament.tournament_id
    orchestrator.open_registration(tid)
    couples = register_couples(orchestrator, tid, 5)

    zones = orchestrator.start_zone_stage(tid)
    assert len(zones) == 1
    assert len(zones[0].matches) == 10

    play_zones(orchestrator, tid, couples)

    finished = orchestrator.get_tournament(tid)
    assert finished.status == TournamentStatus.FINISHED
    assert finished.stage == TournamentStage.COMPLETE
    assert finished.champion_id == couples[0]
    with pytest.raises(ConflictError):
        orchestrator.build_bracket(tid)


def test_single_couple_is_champion(storage):
    orchestrator = TournamentOrchestrator(
        storage,
        defaults=TournamentConfig(min_entrants=1),
        id_factory=sequential_ids("solo"),
    )
    tournament = orchestrator.create_tournament("club-1", "Tiny Cup")
    tid = tournament.tournament_id
    orchestrator.open_registration(tid)
    (couple_id,) = register_couples(orchestrator, tid, 1)

    assert orchestrator.start_zone_stage(tid) == []

    finished = orchestrator.get_tournament(tid)
    assert finished.status == TournamentStatus.FINISHED
    assert finished.champion_id == couple_id
    assert orchestrator.get_bracket(tid).rounds == []


def test_start_zone_stage_preconditions(orchestrator):
    tournament = orchestrator.create_tournament("club-1", "Autumn Open")
    tid = tournament.tournament_id

    with pytest.raises(ConflictError):
        orchestrator.start_zone_stage(tid)

    orchestrator.open_registration(tid)
    register_couples(orchestrator, tid, 1)
    with pytest.raises(PreconditionError):
        orchestrator.start_zone_stage(tid)
    assert orchestrator.get_tournament(tid).stage == TournamentStage.REGISTRATION


def test_max_entrants_enforced(storage):
    orchestrator = TournamentOrchestrator(
        storage,
        defaults=TournamentConfig(min_entrants=2, max_entrants=3),
        id_factory=sequential_ids("cap"),
    )
    tid = orchestrator.create_tournament("club-1", "Capped Cup").tournament_id
    orchestrator.open_registration(tid)
    register_couples(orchestrator, tid, 4)

    with pytest.raises(PreconditionError):
        orchestrator.start_zone_stage(tid)


def test_explicit_zone_groups(orchestrator, open_tournament):
    tid = open_tournament.tournament_id
    couples = register_couples(orchestrator, tid, 4)

    with pytest.raises(ValidationError):
        orchestrator.start_zone_stage(tid, [couples[:2]])
    with pytest.raises(ValidationError):
        orchestrator.start_zone_stage(tid, [couples[:2], [couples[1], couples[2]]])
    assert orchestrator.get_tournament(tid).stage == TournamentStage.REGISTRATION

    zones = orchestrator.start_zone_stage(tid, [[couples[0], couples[3]], couples[1:3]])

    assert [zone.entrant_ids for zone in zones] == [
        [couples[0], couples[3]],
        couples[1:3],
    ]


def test_zone_result_correction_and_stage_checks(orchestrator, open_tournament):
    tid = open_tournament.tournament_id
    register_couples(orchestrator, tid, 3)

    with pytest.raises(ConflictError):
        orchestrator.record_zone_match_result(tid, "A", "A-M1", 6, 2)

    orchestrator.start_zone_stage(tid)
    orchestrator.record_zone_match_result(tid, "A", "A-M1", 6, 2)
    with pytest.raises(ConflictError):
        orchestrator.record_zone_match_result(tid, "A", "A-M1", 2, 6)
    corrected = orchestrator.record_zone_match_result(
        tid, "A", "A-M1", 2, 6, correction=True
    )
    assert (corrected.score_a, corrected.score_b) == (2, 6)
    with pytest.raises(NotFoundError):
        orchestrator.record_zone_match_result(tid, "Q", "Q-M1", 1, 0)
    with pytest.raises(NotFoundError):
        orchestrator.get_standings(tid, "Q")


def test_cancel_tournament_blocks_later_commands(orchestrator, open_tournament, table):
    tid = open_tournament.tournament_id
    register_couples(orchestrator, tid, 4)

    canceled = orchestrator.cancel_tournament(tid)

    assert canceled.status == TournamentStatus.CANCELED
    assert orchestrator.list_entrants(tid, include_withdrawn=True) == []
    assert table.keys_with_prefix(f"TOURNAMENT#{tid}", "PLAYER#") == []
    with pytest.raises(ConflictError):
        orchestrator.register_couple(tid, "p90", "p91")
    with pytest.raises(ConflictError):
        orchestrator.start_zone_stage(tid)
    with pytest.raises(ConflictError):
        orchestrator.cancel_tournament(tid)
    with pytest.raises(ConflictError):
        orchestrator.start_bracket_match(tid, "R1M1", "Center")


def test_cancel_during_bracket_stage(orchestrator, open_tournament):
    tid = open_tournament.tournament_id
    couples = register_couples(orchestrator, tid, 2)
    orchestrator.start_zone_stage(tid)
    play_zones(orchestrator, tid, couples)

    orchestrator.cancel_tournament(tid)

    with pytest.raises(ConflictError):
        orchestrator.start_bracket_match(tid, "R1M1", "Center")
    with pytest.raises(PreconditionError):
        orchestrator.ranking_adjustments(tid, {})


def test_bracket_is_built_once(orchestrator, open_tournament, storage):
    tid = open_tournament.tournament_id
    couples = register_couples(orchestrator, tid, 2)
    orchestrator.start_zone_stage(tid)
    play_zones(orchestrator, tid, couples)

    with pytest.raises(ConflictError):
        orchestrator.build_bracket(tid)

    stale = storage.get_bracket(tid)
    stale.version = 0
    with pytest.raises(ConflictError):
        storage.save_bracket(stale)


def test_from_config_uses_engine_settings(table):
    config = EngineConfig(
        "tournaments", "eu-west-1", "INFO", False, TournamentConfig(min_entrants=3)
    )

    with patch("tournament_engine.orchestrator.build_table", return_value=table) as factory:
        orchestrator = TournamentOrchestrator.from_config(config)

    factory.assert_called_once_with(config)
    tournament = orchestrator.create_tournament("club-1", "Config Cup")
    assert tournament.config.min_entrants == 3
    assert (f"TOURNAMENT#{tournament.tournament_id}", "META") in table.items


def test_cancel_after_bracket_load_rejects_the_result(
    orchestrator, open_tournament, storage, monkeypatch
):
    tid = open_tournament.tournament_id
    couples = register_couples(orchestrator, tid, 2)
    orchestrator.start_zone_stage(tid)
    play_zones(orchestrator, tid, couples)
    orchestrator.start_bracket_match(tid, "R1M1", "Center")
    rival = TournamentOrchestrator(storage)
    original = storage.get_bracket

    def load_then_cancel(tournament_id):
        state = original(tournament_id)
        monkeypatch.setattr(storage, "get_bracket", original)
        rival.cancel_tournament(tournament_id)
        return state

    monkeypatch.setattr(storage, "get_bracket", load_then_cancel)

    with pytest.raises(ConflictError):
        orchestrator.record_bracket_match_result(tid, "R1M1", 6, 1)

    assert orchestrator.get_tournament(tid).status == TournamentStatus.CANCELED
    assert storage.get_bracket(tid).find_match("R1M1").status == MatchStatus.IN_PROGRESS


def test_cancel_after_zone_load_rejects_the_result(
    orchestrator, open_tournament, storage, monkeypatch
):
    tid = open_tournament.tournament_id
    register_couples(orchestrator, tid, 3)
    orchestrator.start_zone_stage(tid)
    rival = TournamentOrchestrator(storage)
    original = storage.get_zone

    def load_then_cancel(tournament_id, zone_id):
        zone = original(tournament_id, zone_id)
        monkeypatch.setattr(storage, "get_zone", original)
        rival.cancel_tournament(tournament_id)
        return zone

    monkeypatch.setattr(storage, "get_zone", load_then_cancel)

    with pytest.raises(ConflictError):
        orchestrator.record_zone_match_result(tid, "A", "A-M1", 6, 2)

    assert len(storage.get_zone(tid, "A").pending_matches()) == 3


def test_withdrawal_racing_zone_start_is_rejected(
    orchestrator, open_tournament, storage, monkeypatch
):
    tid = open_tournament.tournament_id
    couples = register_couples(orchestrator, tid, 4)
    original = storage.get_entrant

    def load_then_start_zones(tournament_id, couple_id):
        entrant = original(tournament_id, couple_id)
        monkeypatch.setattr(storage, "get_entrant", original)
        orchestrator.start_zone_stage(tournament_id)
        return entrant

    monkeypatch.setattr(storage, "get_entrant", load_then_start_zones)

    with pytest.raises(ConflictError):
        orchestrator.withdraw_couple(tid, couples[0])

    entrant = storage.get_entrant(tid, couples[0])
    assert entrant.status == EntrantStatus.ACTIVE
    assert entrant.zone_id == "A"
    assert orchestrator.get_zones(tid)[0].entrant_ids == couples
    assert {claim.player_id for claim in storage.list_claims(tid)} >= {"p01a", "p01b"}


def test_withdrawal_before_zone_start_leaves_couple_out(orchestrator, open_tournament):
    tid = open_tournament.tournament_id
    couples = register_couples(orchestrator, tid, 4)

    orchestrator.withdraw_couple(tid, couples[0])
    zones = orchestrator.start_zone_stage(tid)

    assert zones[0].entrant_ids == couples[1:]


def test_round_robin_close_tolerates_concurrent_finish(
    orchestrator, storage, monkeypatch
):
    tid = orchestrator.create_tournament(
        "club-1", "Round Robin Cup", format=TournamentFormat.ROUND_ROBIN_ONLY
    ).tournament_id
    orchestrator.open_registration(tid)
    couples = register_couples(orchestrator, tid, 2)
    orchestrator.start_zone_stage(tid)
    rival = TournamentOrchestrator(storage)
    original = storage.list_zones

    def rival_closes_first(tournament_id):
        monkeypatch.setattr(storage, "list_zones", original)
        rival.record_zone_match_result(tournament_id, "A", "A-M1", 6, 1, correction=True)
        return original(tournament_id)

    monkeypatch.setattr(storage, "list_zones", rival_closes_first)

    match = orchestrator.record_zone_match_result(tid, "A", "A-M1", 6, 1)

    assert (match.score_a, match.score_b) == (6, 1)
    finished = orchestrator.get_tournament(tid)
    assert finished.status == TournamentStatus.FINISHED
    assert finished.champion_id == couples[0]


def test_build_bracket_adopts_bracket_left_by_failed_close(
    orchestrator, open_tournament, storage, monkeypatch
):
    tid = open_tournament.tournament_id
    couples = register_couples(orchestrator, tid, 2)
    orchestrator.start_zone_stage(tid)
    original = storage.save_tournament

    def fail_once(tournament):
        monkeypatch.setattr(storage, "save_tournament", original)
        raise ConflictError("Tournament was modified concurrently; reload and retry")

    monkeypatch.setattr(storage, "save_tournament", fail_once)

    with pytest.raises(ConflictError):
        play_zones(orchestrator, tid, couples)

    assert orchestrator.get_tournament(tid).stage == TournamentStage.ZONES
    stored = storage.get_bracket(tid)

    adopted = orchestrator.build_bracket(tid)

    assert adopted.version == stored.version == 1
    tournament = orchestrator.get_tournament(tid)
    assert tournament.stage == TournamentStage.BRACKET
    assert tournament.status == TournamentStatus.IN_PROGRESS

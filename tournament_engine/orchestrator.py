from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping, Sequence
from typing import TypeVar

from . import lifecycle
from .bracket import build_bracket as build_bracket_state
from .config import EngineConfig, build_table
from .errors import ConflictError, NotFoundError, PreconditionError, ValidationError
from .models import (
    BracketMatch,
    BracketState,
    Entrant,
    EntrantStatus,
    PlayerClaim,
    Standing,
    Tournament,
    TournamentConfig,
    TournamentFormat,
    TournamentStage,
    TournamentStatus,
    ZoneMatch,
    ZoneState,
    utc_now_iso,
)
from .ranking import RankingAdjustment, compute_ranking_adjustments
from .registration import RegistrationGuard
from .seeding import seed_entrants
from .standings import compute_standings, zone_leader
from .storage import TournamentStorage
from .validation import (
    normalize_identifier,
    validate_tournament_config,
    validate_tournament_name,
)
from .zones import build_zones, generate_zones, record_zone_result

log = logging.getLogger(__name__)

T = TypeVar("T")


def _new_id() -> str:
    return uuid.uuid4().hex


def _entrant_label(entrant: Entrant) -> str:
    return " / ".join(entrant.player_ids)


class TournamentOrchestrator:
    """Command and query surface over one tournament table.

    Every command loads the records it touches, validates, applies the
    transition and writes back with a version condition, so a stale writer
    gets ``ConflictError`` instead of overwriting a newer state.
    """

    def __init__(
        self,
        storage: TournamentStorage,
        *,
        defaults: TournamentConfig | None = None,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._storage = storage
        self._defaults = defaults or TournamentConfig()
        self._id_factory = id_factory
        self._registration = RegistrationGuard(storage, id_factory=id_factory)

    @classmethod
    def from_config(cls, config: EngineConfig) -> TournamentOrchestrator:
        storage = TournamentStorage(
            build_table(config), consistent_reads=config.consistent_reads
        )
        return cls(storage, defaults=config.defaults)

    # ----- Helpers -----
    def _load(self, tournament_id: str) -> Tournament:
        tournament = self._storage.get_tournament(tournament_id)
        if tournament is None:
            raise NotFoundError(f"Tournament {tournament_id} not found")
        return tournament

    def _load_open(self, tournament_id: str) -> Tournament:
        tournament = self._load(tournament_id)
        tournament.ensure_open()
        return tournament

    def _save(self, tournament: Tournament) -> None:
        tournament.updated_at = utc_now_iso()
        self._storage.save_tournament(tournament)

    def _require_stage(self, tournament: Tournament, stage: TournamentStage) -> None:
        if tournament.stage != stage:
            raise ConflictError(
                f"Tournament {tournament.tournament_id} is in stage {tournament.stage}, not {stage}"
            )

    def _finish(self, tournament: Tournament, champion_id: str) -> None:
        if tournament.status == TournamentStatus.PAIRING:
            tournament.transition_to(TournamentStatus.IN_PROGRESS)
        tournament.transition_to(TournamentStatus.FINISHED)
        tournament.stage = TournamentStage.COMPLETE
        tournament.champion_id = champion_id
        self._save(tournament)
        log.info(
            "Tournament %s finished; champion is %s",
            tournament.tournament_id,
            champion_id,
        )

    # ----- Tournament setup -----
    def create_tournament(
        self,
        club_id: str,
        name: str,
        *,
        format: TournamentFormat = TournamentFormat.ZONE_THEN_BRACKET,
        gender: str = "MIXED",
        config: TournamentConfig | None = None,
    ) -> Tournament:
        club_id = normalize_identifier(club_id, label="Club id")
        name = validate_tournament_name(name)
        config = validate_tournament_config(config or self._defaults)
        now = utc_now_iso()
        tournament = Tournament(
            tournament_id=self._id_factory(),
            club_id=club_id,
            name=name,
            format=TournamentFormat(format),
            gender=(gender or "MIXED").strip().upper(),
            status=TournamentStatus.NOT_STARTED,
            stage=TournamentStage.REGISTRATION,
            config=config,
            created_at=now,
            updated_at=now,
        )
        self._storage.save_tournament(tournament)
        log.info(
            "Created tournament %s (%s) for club %s",
            tournament.tournament_id,
            name,
            club_id,
        )
        return tournament

    def open_registration(self, tournament_id: str) -> Tournament:
        tournament = self._load_open(tournament_id)
        tournament.transition_to(TournamentStatus.PAIRING)
        self._save(tournament)
        log.info("Opened pairing for tournament %s", tournament_id)
        return tournament

    # ----- Registration -----
    def register_couple(
        self, tournament_id: str, player_a_id: str, player_b_id: str
    ) -> Entrant:
        return self._registration.register_couple(tournament_id, player_a_id, player_b_id)

    def register_player(self, tournament_id: str, player_id: str) -> PlayerClaim:
        return self._registration.register_player(tournament_id, player_id)

    def pair_players(
        self, tournament_id: str, player_a_id: str, player_b_id: str
    ) -> Entrant:
        return self._registration.pair_players(tournament_id, player_a_id, player_b_id)

    def withdraw_couple(self, tournament_id: str, couple_id: str) -> Entrant:
        return self._registration.withdraw_couple(tournament_id, couple_id)

    # ----- Zone stage -----
    def _check_entrant_bounds(self, tournament: Tournament, count: int) -> None:
        config = tournament.config
        if count < config.min_entrants:
            raise PreconditionError(
                f"Tournament {tournament.tournament_id} needs at least "
                f"{config.min_entrants} couples (has {count})"
            )
        if count > config.max_entrants:
            raise PreconditionError(
                f"Tournament {tournament.tournament_id} accepts at most "
                f"{config.max_entrants} couples (has {count})"
            )

    def _plan_zones(
        self,
        tournament: Tournament,
        entrants: Sequence[Entrant],
        groups: Sequence[Sequence[str]] | None,
    ) -> list[ZoneState]:
        tournament_id = tournament.tournament_id
        if groups is None:
            if tournament.format == TournamentFormat.ROUND_ROBIN_ONLY:
                return build_zones(tournament_id, [[e.entrant_id for e in entrants]])
            return generate_zones(tournament_id, entrants, tournament.config.zone_size)

        if tournament.format == TournamentFormat.ROUND_ROBIN_ONLY and len(groups) != 1:
            raise ValidationError("A round-robin tournament is played in a single zone")
        active = {entrant.entrant_id for entrant in entrants}
        seen: set[str] = set()
        for group in groups:
            for entrant_id in group:
                if entrant_id not in active:
                    raise ValidationError(f"Couple {entrant_id} is not an active entrant")
                if entrant_id in seen:
                    raise ValidationError(f"Couple {entrant_id} is assigned to two zones")
                seen.add(entrant_id)
        missing = active - seen
        if missing:
            raise ValidationError(
                f"Couples without a zone: {', '.join(sorted(missing))}"
            )
        return build_zones(tournament_id, groups)

    def start_zone_stage(
        self, tournament_id: str, zones: Sequence[Sequence[str]] | None = None
    ) -> list[ZoneState]:
        """Close registration and create the zones with their round-robin matches.

        ``zones`` optionally lists the couple ids of each zone; otherwise
        couples are split in registration order.
        """
        tournament = self._load_open(tournament_id)
        if tournament.status != TournamentStatus.PAIRING:
            raise ConflictError(
                f"Tournament {tournament_id} must be PAIRING to start zones (is {tournament.status})"
            )
        self._require_stage(tournament, TournamentStage.REGISTRATION)
        self._check_entrant_bounds(
            tournament, len(self._storage.list_entrants(tournament_id))
        )

        tournament.stage = TournamentStage.ZONES
        self._save(tournament)
        # Entrants are listed again after the stage flip so that a registration
        # racing with it is either seen here or rolled back by its own check.
        entrants = self._storage.list_entrants(tournament_id)
        try:
            self._check_entrant_bounds(tournament, len(entrants))
            if len(entrants) == 1:
                zone_states: list[ZoneState] = []
            else:
                zone_states = self._plan_zones(tournament, entrants, zones)
        except (PreconditionError, ValidationError):
            tournament.stage = TournamentStage.REGISTRATION
            self._save(tournament)
            raise

        for zone in zone_states:
            self._storage.save_zone(zone, fence=tournament)
        zone_by_entrant = {
            entrant_id: zone.zone_id
            for zone in zone_states
            for entrant_id in zone.entrant_ids
        }
        for entrant in entrants:
            entrant.zone_id = zone_by_entrant.get(entrant.entrant_id)
            self._storage.update_entrant(
                entrant, expected_status=EntrantStatus.ACTIVE, fence=tournament
            )

        log.info(
            "Started zone stage for tournament %s: %s couples in %s zones",
            tournament_id,
            len(entrants),
            len(zone_states),
        )
        if len(entrants) == 1:
            if tournament.format == TournamentFormat.ROUND_ROBIN_ONLY:
                self._finish(tournament, entrants[0].entrant_id)
            else:
                self.build_bracket(tournament_id)
        return zone_states

    def record_zone_match_result(
        self,
        tournament_id: str,
        zone_id: str,
        match_id: str,
        score_a: int,
        score_b: int,
        *,
        correction: bool = False,
    ) -> ZoneMatch:
        tournament = self._load_open(tournament_id)
        self._require_stage(tournament, TournamentStage.ZONES)
        zone = self._storage.get_zone(tournament_id, zone_id)
        if zone is None:
            raise NotFoundError(f"Zone {zone_id} not found in tournament {tournament_id}")
        match = record_zone_result(
            zone, match_id, score_a, score_b, correction=correction
        )
        self._storage.save_zone(zone, fence=tournament)

        zones = self._storage.list_zones(tournament_id)
        if all(candidate.is_complete for candidate in zones):
            self._close_zone_stage(tournament_id, zones)
        return match

    def _close_zone_stage(self, tournament_id: str, zones: Sequence[ZoneState]) -> None:
        # Several results can complete the zones at once; whoever loses the race
        # to close the stage finds it already moved on.
        tournament = self._load(tournament_id)
        if tournament.stage != TournamentStage.ZONES:
            return
        tournament.ensure_open()
        try:
            if tournament.format == TournamentFormat.ROUND_ROBIN_ONLY:
                leader = zone_leader(zones[0], tournament.config.scoring)
                if leader is not None:
                    self._finish(tournament, leader)
            else:
                self.build_bracket(tournament_id)
        except ConflictError:
            if self._load(tournament_id).stage == TournamentStage.ZONES:
                raise
            log.info(
                "Zone stage of tournament %s was closed by a concurrent request",
                tournament_id,
            )

    # ----- Bracket stage -----
    def build_bracket(self, tournament_id: str) -> BracketState:
        tournament = self._load_open(tournament_id)
        if tournament.format != TournamentFormat.ZONE_THEN_BRACKET:
            raise ConflictError(f"Tournament {tournament_id} has no elimination stage")
        self._require_stage(tournament, TournamentStage.ZONES)

        zones = self._storage.list_zones(tournament_id)
        pending = sum(len(zone.pending_matches()) for zone in zones)
        if pending:
            raise PreconditionError(
                f"Tournament {tournament_id} still has {pending} zone matches to play"
            )
        state = self._storage.get_bracket(tournament_id)
        if state is None:
            state = self._seed_bracket(tournament, zones)
        else:
            log.warning(
                "Adopting the bracket already stored for tournament %s", tournament_id
            )

        tournament.transition_to(TournamentStatus.IN_PROGRESS)
        tournament.stage = TournamentStage.BRACKET
        if state.champion_id is not None:
            self._finish(tournament, state.champion_id)
        else:
            self._save(tournament)
        return state

    def _seed_bracket(
        self, tournament: Tournament, zones: Sequence[ZoneState]
    ) -> BracketState:
        tournament_id = tournament.tournament_id
        entrants = self._storage.list_entrants(tournament_id)
        if zones:
            tables = [
                (zone.name, compute_standings(zone, tournament.config.scoring))
                for zone in zones
            ]
        else:
            tables = [
                (
                    "",
                    [
                        Standing(entrant_id=entrant.entrant_id, registration_index=index)
                        for index, entrant in enumerate(entrants)
                    ],
                )
            ]
        seeds = seed_entrants(tables)
        state = build_bracket_state(
            tournament_id,
            seeds,
            labels={entrant.entrant_id: _entrant_label(entrant) for entrant in entrants},
        )
        self._storage.save_bracket(state, fence=tournament)
        return state

    def _mutate_bracket(
        self, tournament_id: str, action: Callable[[BracketState], T]
    ) -> T:
        tournament = self._load_open(tournament_id)
        self._require_stage(tournament, TournamentStage.BRACKET)
        state = self._storage.get_bracket(tournament_id)
        if state is None:
            raise NotFoundError(f"Tournament {tournament_id} has no bracket")
        result = action(state)
        self._storage.save_bracket(state, fence=tournament)
        if state.champion_id is not None:
            self._finish(tournament, state.champion_id)
        return result

    def start_bracket_match(
        self, tournament_id: str, match_id: str, court: str
    ) -> BracketMatch:
        return self._mutate_bracket(
            tournament_id, lambda state: lifecycle.start_match(state, match_id, court)
        )

    def record_bracket_match_result(
        self,
        tournament_id: str,
        match_id: str,
        score_a: int,
        score_b: int,
        *,
        correction: bool = False,
    ) -> BracketMatch:
        return self._mutate_bracket(
            tournament_id,
            lambda state: lifecycle.record_result(
                state, match_id, score_a, score_b, correction=correction
            ),
        )

    def cancel_match(self, tournament_id: str, match_id: str) -> BracketMatch:
        return self._mutate_bracket(
            tournament_id, lambda state: lifecycle.cancel_match(state, match_id)
        )

    def reactivate_match(self, tournament_id: str, match_id: str) -> BracketMatch:
        return self._mutate_bracket(
            tournament_id, lambda state: lifecycle.reactivate_match(state, match_id)
        )

    def change_match_court(
        self, tournament_id: str, match_id: str, court: str
    ) -> BracketMatch:
        return self._mutate_bracket(
            tournament_id, lambda state: lifecycle.change_court(state, match_id, court)
        )

    def cancel_tournament(self, tournament_id: str) -> Tournament:
        tournament = self._load(tournament_id)
        tournament.transition_to(TournamentStatus.CANCELED)
        self._save(tournament)
        removed = self._storage.delete_entrants_for_tournament(tournament_id)
        log.info("Canceled tournament %s and removed %s entrants", tournament_id, removed)
        return tournament

    # ----- Queries -----
    def get_tournament(self, tournament_id: str) -> Tournament:
        return self._load(tournament_id)

    def list_entrants(
        self, tournament_id: str, *, include_withdrawn: bool = False
    ) -> list[Entrant]:
        return self._registration.list_entrants(
            tournament_id, include_withdrawn=include_withdrawn
        )

    def get_zones(self, tournament_id: str) -> list[ZoneState]:
        self._load(tournament_id)
        return self._storage.list_zones(tournament_id)

    def get_standings(self, tournament_id: str, zone_id: str) -> list[Standing]:
        tournament = self._load(tournament_id)
        zone = self._storage.get_zone(tournament_id, zone_id)
        if zone is None:
            raise NotFoundError(f"Zone {zone_id} not found in tournament {tournament_id}")
        return compute_standings(zone, tournament.config.scoring)

    def get_bracket(self, tournament_id: str) -> BracketState:
        self._load(tournament_id)
        state = self._storage.get_bracket(tournament_id)
        if state is None:
            raise NotFoundError(f"Tournament {tournament_id} has no bracket")
        return state

    def ranking_adjustments(
        self, tournament_id: str, player_scores: Mapping[str, int]
    ) -> list[RankingAdjustment]:
        tournament = self._load(tournament_id)
        return compute_ranking_adjustments(
            tournament,
            self._storage.list_entrants(tournament_id),
            self._storage.list_zones(tournament_id),
            self._storage.get_bracket(tournament_id),
            player_scores,
        )


__all__ = ["TournamentOrchestrator"]

"""Registration of players and couples into a tournament.

Every player may hold at most one active entry per tournament, either as a
solo registration waiting for a partner or as a member of a couple. The
guarantee is carried by one claim item per (tournament, player) written with
a create-only condition, so two racing requests cannot both commit even when
their initial membership reads were stale.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable

from .errors import ConflictError, NotFoundError
from .models import (
    ClaimKind,
    Couple,
    Entrant,
    EntrantStatus,
    PlayerClaim,
    Tournament,
    utc_now_iso,
)
from .storage import TournamentStorage
from .validation import normalize_identifier, validate_player_pair

log = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


class RegistrationGuard:
    def __init__(
        self,
        storage: TournamentStorage,
        *,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._storage = storage
        self._id_factory = id_factory

    # ----- Helpers -----
    def _load_open_tournament(self, tournament_id: str) -> Tournament:
        tournament = self._storage.get_tournament(tournament_id)
        if tournament is None:
            raise NotFoundError(f"Tournament {tournament_id} not found")
        if not tournament.accepting_registrations:
            raise ConflictError(
                f"Tournament {tournament_id} is not accepting registrations "
                f"(status {tournament.status}, stage {tournament.stage})"
            )
        return tournament

    def _ensure_players_free(self, tournament_id: str, player_ids: Iterable[str]) -> None:
        claimed = {claim.player_id for claim in self._storage.list_claims(tournament_id)}
        for player_id in player_ids:
            if player_id in claimed:
                raise ConflictError(
                    f"Player {player_id} is already registered in tournament {tournament_id}"
                )

    def _ensure_couple_free(self, tournament_id: str, couple: Couple) -> None:
        existing = self._storage.get_entrant(tournament_id, couple.couple_id)
        if existing is not None and existing.is_active:
            raise ConflictError(
                f"Couple {couple.couple_id} is already registered in tournament {tournament_id}"
            )

    def _release_claims(
        self, tournament_id: str, player_ids: Iterable[str], couple_id: str | None
    ) -> None:
        for player_id in player_ids:
            self._storage.release_claim(tournament_id, player_id, couple_id=couple_id)

    def _confirm_still_open(self, tournament_id: str) -> None:
        # Registration and the zone-stage start race on the tournament record;
        # a write that lands after the stage moved on must be undone.
        self._load_open_tournament(tournament_id)

    def get_or_create_couple(self, player_a_id: str, player_b_id: str) -> Couple:
        first, second = validate_player_pair(player_a_id, player_b_id)
        existing = self._storage.get_couple(first, second)
        if existing is not None:
            return existing
        couple = Couple(
            couple_id=self._id_factory(),
            player_ids=Couple.pair(first, second),
            created_at=utc_now_iso(),
        )
        stored = self._storage.create_couple(couple)
        if stored.couple_id == couple.couple_id:
            log.info("Created couple %s for players %s", couple.couple_id, couple.player_ids)
        return stored

    # ----- Commands -----
    def register_couple(
        self, tournament_id: str, player_a_id: str, player_b_id: str
    ) -> Entrant:
        tournament_id = normalize_identifier(tournament_id, label="Tournament id")
        first, second = validate_player_pair(player_a_id, player_b_id)
        self._load_open_tournament(tournament_id)
        self._ensure_players_free(tournament_id, (first, second))

        couple = self.get_or_create_couple(first, second)
        self._ensure_couple_free(tournament_id, couple)

        now = utc_now_iso()
        entrant = Entrant(
            tournament_id=tournament_id,
            couple_id=couple.couple_id,
            player_ids=couple.player_ids,
            registered_at=now,
        )
        claimed: list[str] = []
        entrant_written = False
        try:
            for player_id in couple.player_ids:
                claim = PlayerClaim(
                    tournament_id=tournament_id,
                    player_id=player_id,
                    kind=ClaimKind.COUPLE,
                    claimed_at=now,
                    couple_id=couple.couple_id,
                )
                if not self._storage.create_claim(claim):
                    raise ConflictError(
                        f"Player {player_id} is already registered in tournament {tournament_id}"
                    )
                claimed.append(player_id)
            if not self._storage.create_entrant(entrant):
                raise ConflictError(
                    f"Couple {couple.couple_id} is already registered in tournament {tournament_id}"
                )
            entrant_written = True
            self._confirm_still_open(tournament_id)
        except Exception:
            if entrant_written:
                self._storage.remove_entrant(entrant)
            self._release_claims(tournament_id, claimed, couple.couple_id)
            log.warning(
                "Rolled back registration of couple %s in tournament %s",
                couple.couple_id,
                tournament_id,
            )
            raise

        log.info(
            "Registered couple %s (%s, %s) in tournament %s",
            couple.couple_id,
            couple.player_ids[0],
            couple.player_ids[1],
            tournament_id,
        )
        return entrant

    def register_player(self, tournament_id: str, player_id: str) -> PlayerClaim:
        tournament_id = normalize_identifier(tournament_id, label="Tournament id")
        player_id = normalize_identifier(player_id, label="Player id")
        self._load_open_tournament(tournament_id)
        self._ensure_players_free(tournament_id, (player_id,))

        claim = PlayerClaim(
            tournament_id=tournament_id,
            player_id=player_id,
            kind=ClaimKind.INDIVIDUAL,
            claimed_at=utc_now_iso(),
        )
        if not self._storage.create_claim(claim):
            raise ConflictError(
                f"Player {player_id} is already registered in tournament {tournament_id}"
            )
        try:
            self._confirm_still_open(tournament_id)
        except ConflictError:
            self._storage.release_claim(tournament_id, player_id)
            raise
        log.info("Registered player %s individually in tournament %s", player_id, tournament_id)
        return claim

    def pair_players(
        self, tournament_id: str, player_a_id: str, player_b_id: str
    ) -> Entrant:
        """Turn two individual registrations into one couple entrant."""
        tournament_id = normalize_identifier(tournament_id, label="Tournament id")
        first, second = validate_player_pair(player_a_id, player_b_id)
        self._load_open_tournament(tournament_id)

        originals: dict[str, PlayerClaim] = {}
        for player_id in (first, second):
            claim = self._storage.get_claim(tournament_id, player_id)
            if claim is None:
                raise NotFoundError(
                    f"Player {player_id} is not registered in tournament {tournament_id}"
                )
            if claim.kind != ClaimKind.INDIVIDUAL:
                raise ConflictError(
                    f"Player {player_id} already belongs to a couple in tournament {tournament_id}"
                )
            originals[player_id] = claim

        couple = self.get_or_create_couple(first, second)
        self._ensure_couple_free(tournament_id, couple)

        now = utc_now_iso()
        entrant = Entrant(
            tournament_id=tournament_id,
            couple_id=couple.couple_id,
            player_ids=couple.player_ids,
            registered_at=now,
        )
        converted: list[str] = []
        entrant_written = False
        try:
            for player_id in couple.player_ids:
                paired = PlayerClaim(
                    tournament_id=tournament_id,
                    player_id=player_id,
                    kind=ClaimKind.COUPLE,
                    claimed_at=originals[player_id].claimed_at,
                    couple_id=couple.couple_id,
                )
                if not self._storage.convert_claim(
                    paired, expected_kind=ClaimKind.INDIVIDUAL
                ):
                    raise ConflictError(
                        f"Player {player_id} was paired or withdrawn concurrently"
                    )
                converted.append(player_id)
            if not self._storage.create_entrant(entrant):
                raise ConflictError(
                    f"Couple {couple.couple_id} is already registered in tournament {tournament_id}"
                )
            entrant_written = True
            self._confirm_still_open(tournament_id)
        except Exception:
            if entrant_written:
                self._storage.remove_entrant(entrant)
            for player_id in converted:
                self._storage.convert_claim(
                    originals[player_id], expected_kind=ClaimKind.COUPLE
                )
            log.warning(
                "Rolled back pairing of players %s and %s in tournament %s",
                first,
                second,
                tournament_id,
            )
            raise

        log.info(
            "Paired players %s and %s as couple %s in tournament %s",
            first,
            second,
            couple.couple_id,
            tournament_id,
        )
        return entrant

    def withdraw_couple(self, tournament_id: str, couple_id: str) -> Entrant:
        tournament_id = normalize_identifier(tournament_id, label="Tournament id")
        tournament = self._load_open_tournament(tournament_id)
        entrant = self._storage.get_entrant(tournament_id, couple_id)
        if entrant is None:
            raise NotFoundError(
                f"Couple {couple_id} is not registered in tournament {tournament_id}"
            )
        if not entrant.is_active:
            raise ConflictError(f"Couple {couple_id} has already withdrawn")

        entrant.status = EntrantStatus.WITHDRAWN
        # Fenced on the tournament record so a withdrawal cannot land after the
        # zone stage has taken its list of entrants.
        self._storage.update_entrant(
            entrant, expected_status=EntrantStatus.ACTIVE, fence=tournament
        )
        self._release_claims(tournament_id, entrant.player_ids, couple_id)
        log.info("Couple %s withdrew from tournament %s", couple_id, tournament_id)
        return entrant

    # ----- Queries -----
    def list_entrants(
        self, tournament_id: str, *, include_withdrawn: bool = False
    ) -> list[Entrant]:
        return self._storage.list_entrants(
            tournament_id, include_withdrawn=include_withdrawn
        )

    def list_individual_players(self, tournament_id: str) -> list[PlayerClaim]:
        return [
            claim
            for claim in self._storage.list_claims(tournament_id)
            if claim.kind == ClaimKind.INDIVIDUAL
        ]


__all__ = ["RegistrationGuard"]

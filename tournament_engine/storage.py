from __future__ import annotations

import logging

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from .errors import ConflictError
from .models import (
    BracketState,
    ClaimKind,
    Couple,
    Entrant,
    EntrantStatus,
    PlayerClaim,
    Tournament,
    ZoneState,
)

log = logging.getLogger(__name__)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
TRANSACTION_CANCELED = "TransactionCanceledException"


def _is_conditional_failure(exc: ClientError) -> bool:
    code = exc.response.get("Error", {}).get("Code")
    return code in (CONDITIONAL_CHECK_FAILED, TRANSACTION_CANCELED)


def _version_condition(expected: int):
    if expected <= 0:
        return Attr("pk").not_exists()
    return Attr("version").eq(expected)


class TournamentStorage:
    def __init__(self, table, *, consistent_reads: bool = True) -> None:
        self._table = table
        self._consistent_reads = consistent_reads

    def ensure_table(self) -> None:
        if self._table is None:
            raise RuntimeError("Tournament table is not configured")

    def _get(self, key: dict[str, str]) -> dict[str, object] | None:
        self.ensure_table()
        resp = self._table.get_item(Key=key, ConsistentRead=self._consistent_reads)
        return resp.get("Item") or None

    def _query_prefix(self, pk: str, sk_prefix: str) -> list[dict[str, object]]:
        self.ensure_table()
        kwargs: dict[str, object] = {
            "KeyConditionExpression": Key("pk").eq(pk) & Key("sk").begins_with(sk_prefix),
            "Select": "ALL_ATTRIBUTES",
            "ConsistentRead": self._consistent_reads,
        }
        items: list[dict[str, object]] = []
        while True:
            resp = self._table.query(**kwargs)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key
        return items

    def _put(self, item: dict[str, object], condition, *, fence: Tournament | None) -> None:
        """Write ``item`` under ``condition``.

        With ``fence`` the write is bundled in a transaction with a check that
        the tournament record still has the version the caller validated, so a
        concurrent cancel or stage change makes the whole write fail.
        """
        if fence is None:
            self._table.put_item(Item=item, ConditionExpression=condition)
            return
        table_name = self._table.name
        self._table.meta.client.transact_write_items(
            TransactItems=[
                {
                    "ConditionCheck": {
                        "TableName": table_name,
                        "Key": Tournament.key(fence.tournament_id),
                        "ConditionExpression": Attr("version").eq(fence.version),
                    }
                },
                {
                    "Put": {
                        "TableName": table_name,
                        "Item": item,
                        "ConditionExpression": condition,
                    }
                },
            ]
        )

    def _put_versioned(
        self,
        item: dict[str, object],
        expected: int,
        label: str,
        *,
        fence: Tournament | None = None,
    ) -> None:
        self.ensure_table()
        try:
            self._put(item, _version_condition(expected), fence=fence)
        except ClientError as exc:
            if _is_conditional_failure(exc):
                raise ConflictError(
                    f"{label} was modified concurrently; reload and retry"
                ) from exc
            raise

    # ----- Tournaments -----
    def get_tournament(self, tournament_id: str) -> Tournament | None:
        item = self._get(Tournament.key(tournament_id))
        if not item:
            return None
        return Tournament.from_item(item)

    def save_tournament(self, tournament: Tournament) -> None:
        expected = tournament.version
        tournament.version = expected + 1
        try:
            self._put_versioned(
                tournament.to_item(), expected, f"Tournament {tournament.tournament_id}"
            )
        except ConflictError:
            tournament.version = expected
            raise

    # ----- Couples -----
    def get_couple(self, player_a_id: str, player_b_id: str) -> Couple | None:
        item = self._get(Couple.key(player_a_id, player_b_id))
        if not item:
            return None
        return Couple.from_item(item)

    def create_couple(self, couple: Couple) -> Couple:
        """Insert ``couple`` unless the pair exists; return the stored couple."""
        self.ensure_table()
        try:
            self._table.put_item(
                Item=couple.to_item(), ConditionExpression=Attr("pk").not_exists()
            )
        except ClientError as exc:
            if not _is_conditional_failure(exc):
                raise
            existing = self.get_couple(*couple.player_ids)
            if existing is None:  # pragma: no cover - deleted between calls
                raise ConflictError("Couple creation raced with a delete") from exc
            return existing
        return couple

    # ----- Player claims -----
    def get_claim(self, tournament_id: str, player_id: str) -> PlayerClaim | None:
        item = self._get(PlayerClaim.key(tournament_id, player_id))
        if not item:
            return None
        return PlayerClaim.from_item(item)

    def list_claims(self, tournament_id: str) -> list[PlayerClaim]:
        items = self._query_prefix(
            PlayerClaim.PK_TEMPLATE % tournament_id, PlayerClaim.SK_PREFIX
        )
        claims = [PlayerClaim.from_item(item) for item in items]
        claims.sort(key=lambda claim: (claim.claimed_at, claim.player_id))
        return claims

    def create_claim(self, claim: PlayerClaim) -> bool:
        self.ensure_table()
        try:
            self._table.put_item(
                Item=claim.to_item(), ConditionExpression=Attr("pk").not_exists()
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return False
            raise
        return True

    def convert_claim(self, claim: PlayerClaim, *, expected_kind: ClaimKind) -> bool:
        """Overwrite ``claim`` only while the stored claim still has ``expected_kind``."""
        self.ensure_table()
        try:
            self._table.put_item(
                Item=claim.to_item(),
                ConditionExpression=Attr("pk").exists()
                & Attr("kind").eq(str(expected_kind)),
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return False
            raise
        return True

    def release_claim(
        self, tournament_id: str, player_id: str, *, couple_id: str | None = None
    ) -> bool:
        """Delete a claim; with ``couple_id`` only if it still belongs to it."""
        self.ensure_table()
        condition = Attr("pk").exists()
        if couple_id is not None:
            condition = condition & Attr("couple_id").eq(couple_id)
        try:
            self._table.delete_item(
                Key=PlayerClaim.key(tournament_id, player_id),
                ConditionExpression=condition,
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return False
            raise
        return True

    # ----- Entrants -----
    def get_entrant(self, tournament_id: str, couple_id: str) -> Entrant | None:
        item = self._get(Entrant.key(tournament_id, couple_id))
        if not item:
            return None
        return Entrant.from_item(item)

    def create_entrant(self, entrant: Entrant) -> bool:
        """Insert ``entrant`` if the couple has no row or only a withdrawn one."""
        self.ensure_table()
        try:
            self._table.put_item(
                Item=entrant.to_item(),
                ConditionExpression=Attr("pk").not_exists()
                | Attr("status").eq(str(EntrantStatus.WITHDRAWN)),
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return False
            raise
        return True

    def update_entrant(
        self,
        entrant: Entrant,
        *,
        expected_status: EntrantStatus,
        fence: Tournament | None = None,
    ) -> None:
        self.ensure_table()
        try:
            self._put(
                entrant.to_item(),
                Attr("status").eq(str(expected_status)),
                fence=fence,
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                raise ConflictError(
                    f"Entrant {entrant.couple_id} is no longer {expected_status} "
                    f"or tournament {entrant.tournament_id} changed"
                ) from exc
            raise

    def remove_entrant(self, entrant: Entrant) -> bool:
        """Delete ``entrant`` only if the stored row is the one this caller wrote."""
        self.ensure_table()
        try:
            self._table.delete_item(
                Key=Entrant.key(entrant.tournament_id, entrant.couple_id),
                ConditionExpression=Attr("registered_at").eq(entrant.registered_at),
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return False
            raise
        return True

    def list_entrants(
        self, tournament_id: str, *, include_withdrawn: bool = False
    ) -> list[Entrant]:
        items = self._query_prefix(
            Entrant.PK_TEMPLATE % tournament_id, Entrant.SK_PREFIX
        )
        entrants = [Entrant.from_item(item) for item in items]
        if not include_withdrawn:
            entrants = [entrant for entrant in entrants if entrant.is_active]
        entrants.sort(key=lambda entrant: entrant.registration_order)
        return entrants

    def delete_entrants_for_tournament(self, tournament_id: str) -> int:
        entrants = self.list_entrants(tournament_id, include_withdrawn=True)
        for entrant in entrants:
            self._table.delete_item(Key=Entrant.key(tournament_id, entrant.couple_id))
        claims = self.list_claims(tournament_id)
        for claim in claims:
            self._table.delete_item(Key=PlayerClaim.key(tournament_id, claim.player_id))
        log.info(
            "Removed %s entrants and %s player claims from tournament %s",
            len(entrants),
            len(claims),
            tournament_id,
        )
        return len(entrants)

    # ----- Zones -----
    def get_zone(self, tournament_id: str, zone_id: str) -> ZoneState | None:
        item = self._get(ZoneState.key(tournament_id, zone_id))
        if not item:
            return None
        return ZoneState.from_item(item)

    def list_zones(self, tournament_id: str) -> list[ZoneState]:
        items = self._query_prefix(
            ZoneState.PK_TEMPLATE % tournament_id, ZoneState.SK_PREFIX
        )
        zones = [ZoneState.from_item(item) for item in items]
        zones.sort(key=lambda zone: (zone.name, zone.zone_id))
        return zones

    def save_zone(self, zone: ZoneState, *, fence: Tournament | None = None) -> None:
        expected = zone.version
        zone.version = expected + 1
        try:
            self._put_versioned(
                zone.to_item(), expected, f"Zone {zone.name}", fence=fence
            )
        except ConflictError:
            zone.version = expected
            raise

    # ----- Brackets -----
    def get_bracket(self, tournament_id: str) -> BracketState | None:
        item = self._get(BracketState.key(tournament_id))
        if not item:
            return None
        return BracketState.from_item(item)

    def save_bracket(
        self, bracket: BracketState, *, fence: Tournament | None = None
    ) -> None:
        expected = bracket.version
        bracket.version = expected + 1
        try:
            self._put_versioned(
                bracket.to_item(),
                expected,
                f"Bracket for {bracket.tournament_id}",
                fence=fence,
            )
        except ConflictError:
            bracket.version = expected
            raise


__all__ = ["TournamentStorage"]

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import ClassVar

from .errors import ConflictError

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
BYE_LABEL = "BYE"


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format (ms precision)."""
    return datetime.now(UTC).strftime(ISO_FORMAT)


class TournamentFormat(StrEnum):
    ZONE_THEN_BRACKET = "ZONE_THEN_BRACKET"
    ROUND_ROBIN_ONLY = "ROUND_ROBIN_ONLY"


class TournamentStatus(StrEnum):
    NOT_STARTED = "NOT_STARTED"
    PAIRING = "PAIRING"
    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"
    CANCELED = "CANCELED"


class TournamentStage(StrEnum):
    REGISTRATION = "REGISTRATION"
    ZONES = "ZONES"
    BRACKET = "BRACKET"
    COMPLETE = "COMPLETE"


TOURNAMENT_TRANSITIONS: dict[TournamentStatus, frozenset[TournamentStatus]] = {
    TournamentStatus.NOT_STARTED: frozenset(
        {TournamentStatus.PAIRING, TournamentStatus.CANCELED}
    ),
    TournamentStatus.PAIRING: frozenset(
        {TournamentStatus.IN_PROGRESS, TournamentStatus.CANCELED}
    ),
    TournamentStatus.IN_PROGRESS: frozenset(
        {TournamentStatus.FINISHED, TournamentStatus.CANCELED}
    ),
    TournamentStatus.FINISHED: frozenset(),
    TournamentStatus.CANCELED: frozenset(),
}


class MatchStatus(StrEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"
    CANCELED = "CANCELED"


class MatchEvent(StrEnum):
    START = "START"
    FINISH = "FINISH"
    CORRECT = "CORRECT"
    ADVANCE_BYE = "ADVANCE_BYE"
    CANCEL = "CANCEL"
    REACTIVATE = "REACTIVATE"


MATCH_TRANSITIONS: dict[tuple[MatchStatus, MatchEvent], MatchStatus] = {
    (MatchStatus.PENDING, MatchEvent.START): MatchStatus.IN_PROGRESS,
    (MatchStatus.PENDING, MatchEvent.ADVANCE_BYE): MatchStatus.FINISHED,
    (MatchStatus.IN_PROGRESS, MatchEvent.FINISH): MatchStatus.FINISHED,
    (MatchStatus.FINISHED, MatchEvent.CORRECT): MatchStatus.FINISHED,
    (MatchStatus.PENDING, MatchEvent.CANCEL): MatchStatus.CANCELED,
    (MatchStatus.IN_PROGRESS, MatchEvent.CANCEL): MatchStatus.CANCELED,
    (MatchStatus.CANCELED, MatchEvent.REACTIVATE): MatchStatus.PENDING,
    (MatchStatus.FINISHED, MatchEvent.REACTIVATE): MatchStatus.IN_PROGRESS,
}


class EntrantStatus(StrEnum):
    ACTIVE = "ACTIVE"
    WITHDRAWN = "WITHDRAWN"


class ClaimKind(StrEnum):
    INDIVIDUAL = "INDIVIDUAL"
    COUPLE = "COUPLE"


def _optional_str(value: object) -> str | None:
    return str(value) if value is not None else None


def _optional_int(value: object) -> int | None:
    return int(value) if value is not None else None  # type: ignore[call-overload]


@dataclass(frozen=True, slots=True)
class ScoringRule:
    win: int = 2
    tie: int = 1
    loss: int = 0

    def points(self, games_for: int, games_against: int) -> int:
        if games_for > games_against:
            return self.win
        if games_for < games_against:
            return self.loss
        return self.tie

    def to_dict(self) -> dict[str, object]:
        return {"win": self.win, "tie": self.tie, "loss": self.loss}

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> ScoringRule:
        return cls(
            win=int(data.get("win", 2)),  # type: ignore[call-overload]
            tie=int(data.get("tie", 1)),  # type: ignore[call-overload]
            loss=int(data.get("loss", 0)),  # type: ignore[call-overload]
        )


@dataclass(slots=True)
class TournamentConfig:
    scoring: ScoringRule = field(default_factory=ScoringRule)
    min_entrants: int = 2
    max_entrants: int = 32
    zone_size: int = 4

    def to_dict(self) -> dict[str, object]:
        return {
            "scoring": self.scoring.to_dict(),
            "min_entrants": self.min_entrants,
            "max_entrants": self.max_entrants,
            "zone_size": self.zone_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> TournamentConfig:
        scoring_data = data.get("scoring")
        return cls(
            scoring=(
                ScoringRule.from_dict(scoring_data)  # type: ignore[arg-type]
                if isinstance(scoring_data, dict)
                else ScoringRule()
            ),
            min_entrants=int(data.get("min_entrants", 2)),  # type: ignore[call-overload]
            max_entrants=int(data.get("max_entrants", 32)),  # type: ignore[call-overload]
            zone_size=int(data.get("zone_size", 4)),  # type: ignore[call-overload]
        )


@dataclass(slots=True)
class Tournament:
    tournament_id: str
    club_id: str
    name: str
    format: TournamentFormat
    gender: str
    status: TournamentStatus
    stage: TournamentStage
    config: TournamentConfig
    created_at: str
    updated_at: str
    champion_id: str | None = None
    version: int = 0

    PK_TEMPLATE: ClassVar[str] = "TOURNAMENT#%s"
    SK_VALUE: ClassVar[str] = "META"

    @classmethod
    def key(cls, tournament_id: str) -> dict[str, str]:
        return {"pk": cls.PK_TEMPLATE % tournament_id, "sk": cls.SK_VALUE}

    def to_item(self) -> dict[str, object]:
        item = self.key(self.tournament_id)
        item.update(
            {
                "tournament_id": self.tournament_id,
                "club_id": self.club_id,
                "name": self.name,
                "format": str(self.format),
                "gender": self.gender,
                "status": str(self.status),
                "stage": str(self.stage),
                "config": self.config.to_dict(),
                "created_at": self.created_at,
                "updated_at": self.updated_at,
                "version": self.version,
            }
        )
        if self.champion_id is not None:
            item["champion_id"] = self.champion_id
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Tournament:
        tournament_id = str(
            item.get("tournament_id") or str(item["pk"]).split("#", 1)[1]
        )
        config_data = item.get("config")
        return cls(
            tournament_id=tournament_id,
            club_id=str(item.get("club_id", "")),
            name=str(item.get("name", "")),
            format=TournamentFormat(str(item.get("format", "ZONE_THEN_BRACKET"))),
            gender=str(item.get("gender", "")),
            status=TournamentStatus(str(item.get("status", "NOT_STARTED"))),
            stage=TournamentStage(str(item.get("stage", "REGISTRATION"))),
            config=(
                TournamentConfig.from_dict(config_data)  # type: ignore[arg-type]
                if isinstance(config_data, dict)
                else TournamentConfig()
            ),
            created_at=str(item.get("created_at", "")),
            updated_at=str(item.get("updated_at", "")),
            champion_id=_optional_str(item.get("champion_id")),
            version=int(item.get("version", 0)),  # type: ignore[call-overload]
        )

    @property
    def is_closed(self) -> bool:
        return self.status in (TournamentStatus.FINISHED, TournamentStatus.CANCELED)

    @property
    def accepting_registrations(self) -> bool:
        return (
            self.status in (TournamentStatus.NOT_STARTED, TournamentStatus.PAIRING)
            and self.stage == TournamentStage.REGISTRATION
        )

    def ensure_open(self) -> None:
        if self.is_closed:
            raise ConflictError(
                f"Tournament {self.tournament_id} is {self.status} and can no longer change"
            )

    def transition_to(self, status: TournamentStatus) -> None:
        allowed = TOURNAMENT_TRANSITIONS[self.status]
        if status not in allowed:
            raise ConflictError(
                f"Tournament {self.tournament_id} cannot move from {self.status} to {status}"
            )
        self.status = status
        self.updated_at = utc_now_iso()


@dataclass(slots=True)
class Couple:
    couple_id: str
    player_ids: tuple[str, str]
    created_at: str

    PK_TEMPLATE: ClassVar[str] = "COUPLE#%s#%s"
    SK_VALUE: ClassVar[str] = "COUPLE"

    @staticmethod
    def pair(player_a_id: str, player_b_id: str) -> tuple[str, str]:
        low, high = sorted((player_a_id, player_b_id))
        return low, high

    @classmethod
    def key(cls, player_a_id: str, player_b_id: str) -> dict[str, str]:
        return {
            "pk": cls.PK_TEMPLATE % cls.pair(player_a_id, player_b_id),
            "sk": cls.SK_VALUE,
        }

    def to_item(self) -> dict[str, object]:
        item = self.key(*self.player_ids)
        item.update(
            {
                "couple_id": self.couple_id,
                "player_ids": list(self.player_ids),
                "created_at": self.created_at,
            }
        )
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Couple:
        raw_players = [str(value) for value in item.get("player_ids", [])]  # type: ignore[attr-defined]
        if len(raw_players) != 2:
            parts = str(item["pk"]).split("#")
            raw_players = parts[1:3]
        return cls(
            couple_id=str(item.get("couple_id", "")),
            player_ids=cls.pair(raw_players[0], raw_players[1]),
            created_at=str(item.get("created_at", "")),
        )


@dataclass(slots=True)
class PlayerClaim:
    tournament_id: str
    player_id: str
    kind: ClaimKind
    claimed_at: str
    couple_id: str | None = None

    PK_TEMPLATE: ClassVar[str] = "TOURNAMENT#%s"
    SK_TEMPLATE: ClassVar[str] = "PLAYER#%s"
    SK_PREFIX: ClassVar[str] = "PLAYER#"

    @classmethod
    def key(cls, tournament_id: str, player_id: str) -> dict[str, str]:
        return {
            "pk": cls.PK_TEMPLATE % tournament_id,
            "sk": cls.SK_TEMPLATE % player_id,
        }

    def to_item(self) -> dict[str, object]:
        item = self.key(self.tournament_id, self.player_id)
        item.update(
            {
                "tournament_id": self.tournament_id,
                "player_id": self.player_id,
                "kind": str(self.kind),
                "claimed_at": self.claimed_at,
            }
        )
        if self.couple_id is not None:
            item["couple_id"] = self.couple_id
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> PlayerClaim:
        sk_value = str(item.get("sk", ""))
        return cls(
            tournament_id=str(
                item.get("tournament_id") or str(item["pk"]).split("#", 1)[1]
            ),
            player_id=str(item.get("player_id") or sk_value.split("#", 1)[1]),
            kind=ClaimKind(str(item.get("kind", "COUPLE"))),
            claimed_at=str(item.get("claimed_at", "")),
            couple_id=_optional_str(item.get("couple_id")),
        )


@dataclass(slots=True)
class Entrant:
    tournament_id: str
    couple_id: str
    player_ids: tuple[str, str]
    registered_at: str
    status: EntrantStatus = EntrantStatus.ACTIVE
    zone_id: str | None = None

    PK_TEMPLATE: ClassVar[str] = "TOURNAMENT#%s"
    SK_TEMPLATE: ClassVar[str] = "ENTRANT#%s"
    SK_PREFIX: ClassVar[str] = "ENTRANT#"

    @classmethod
    def key(cls, tournament_id: str, couple_id: str) -> dict[str, str]:
        return {
            "pk": cls.PK_TEMPLATE % tournament_id,
            "sk": cls.SK_TEMPLATE % couple_id,
        }

    @property
    def entrant_id(self) -> str:
        return self.couple_id

    @property
    def is_active(self) -> bool:
        return self.status == EntrantStatus.ACTIVE

    @property
    def registration_order(self) -> tuple[str, str]:
        return (self.registered_at, self.couple_id)

    def to_item(self) -> dict[str, object]:
        item = self.key(self.tournament_id, self.couple_id)
        item.update(
            {
                "tournament_id": self.tournament_id,
                "couple_id": self.couple_id,
                "player_ids": list(self.player_ids),
                "registered_at": self.registered_at,
                "status": str(self.status),
            }
        )
        if self.zone_id is not None:
            item["zone_id"] = self.zone_id
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Entrant:
        sk_value = str(item.get("sk", ""))
        players = [str(value) for value in item.get("player_ids", [])]  # type: ignore[attr-defined]
        return cls(
            tournament_id=str(
                item.get("tournament_id") or str(item["pk"]).split("#", 1)[1]
            ),
            couple_id=str(item.get("couple_id") or sk_value.split("#", 1)[1]),
            player_ids=(players[0], players[1]),
            registered_at=str(item.get("registered_at", "")),
            status=EntrantStatus(str(item.get("status", "ACTIVE"))),
            zone_id=_optional_str(item.get("zone_id")),
        )


@dataclass(slots=True)
class ZoneMatch:
    match_id: str
    entrant_a: str
    entrant_b: str
    status: MatchStatus = MatchStatus.PENDING
    score_a: int | None = None
    score_b: int | None = None
    updated_at: str | None = None

    @property
    def is_finished(self) -> bool:
        return self.status == MatchStatus.FINISHED

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "match_id": self.match_id,
            "entrant_a": self.entrant_a,
            "entrant_b": self.entrant_b,
            "status": str(self.status),
        }
        if self.score_a is not None:
            data["score_a"] = self.score_a
        if self.score_b is not None:
            data["score_b"] = self.score_b
        if self.updated_at is not None:
            data["updated_at"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> ZoneMatch:
        return cls(
            match_id=str(data.get("match_id", "")),
            entrant_a=str(data.get("entrant_a", "")),
            entrant_b=str(data.get("entrant_b", "")),
            status=MatchStatus(str(data.get("status", "PENDING"))),
            score_a=_optional_int(data.get("score_a")),
            score_b=_optional_int(data.get("score_b")),
            updated_at=_optional_str(data.get("updated_at")),
        )


@dataclass(slots=True)
class ZoneState:
    tournament_id: str
    zone_id: str
    name: str
    entrant_ids: list[str]
    matches: list[ZoneMatch]
    created_at: str
    version: int = 0

    PK_TEMPLATE: ClassVar[str] = "TOURNAMENT#%s"
    SK_TEMPLATE: ClassVar[str] = "ZONE#%s"
    SK_PREFIX: ClassVar[str] = "ZONE#"

    @classmethod
    def key(cls, tournament_id: str, zone_id: str) -> dict[str, str]:
        return {
            "pk": cls.PK_TEMPLATE % tournament_id,
            "sk": cls.SK_TEMPLATE % zone_id,
        }

    def to_item(self) -> dict[str, object]:
        item = self.key(self.tournament_id, self.zone_id)
        item.update(
            {
                "tournament_id": self.tournament_id,
                "zone_id": self.zone_id,
                "name": self.name,
                "entrant_ids": list(self.entrant_ids),
                "matches": [match.to_dict() for match in self.matches],
                "created_at": self.created_at,
                "version": self.version,
            }
        )
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> ZoneState:
        sk_value = str(item.get("sk", ""))
        matches_data: Iterable[dict[str, object]] = item.get("matches", [])  # type: ignore[assignment]
        return cls(
            tournament_id=str(
                item.get("tournament_id") or str(item["pk"]).split("#", 1)[1]
            ),
            zone_id=str(item.get("zone_id") or sk_value.split("#", 1)[1]),
            name=str(item.get("name", "")),
            entrant_ids=[str(value) for value in item.get("entrant_ids", [])],  # type: ignore[attr-defined]
            matches=[ZoneMatch.from_dict(data) for data in matches_data],
            created_at=str(item.get("created_at", "")),
            version=int(item.get("version", 0)),  # type: ignore[call-overload]
        )

    def find_match(self, match_id: str) -> ZoneMatch | None:
        for match in self.matches:
            if match.match_id == match_id:
                return match
        return None

    @property
    def is_complete(self) -> bool:
        return all(match.is_finished for match in self.matches)

    def pending_matches(self) -> list[ZoneMatch]:
        return [match for match in self.matches if not match.is_finished]


@dataclass(slots=True)
class Standing:
    entrant_id: str
    registration_index: int
    played: int = 0
    wins: int = 0
    losses: int = 0
    ties: int = 0
    games_for: int = 0
    games_against: int = 0
    points: int = 0

    @property
    def differential(self) -> int:
        return self.games_for - self.games_against

    def strength(self) -> tuple[int, int, int]:
        """Ranking value shared by zone standings and cross-zone seeding."""
        return (self.points, self.differential, self.games_for)


@dataclass(slots=True)
class Seed:
    seed: int
    entrant_id: str
    zone_name: str
    zone_position: int
    has_bye: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "seed": self.seed,
            "entrant_id": self.entrant_id,
            "zone_name": self.zone_name,
            "zone_position": self.zone_position,
            "has_bye": self.has_bye,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Seed:
        return cls(
            seed=int(data.get("seed", 0)),  # type: ignore[call-overload]
            entrant_id=str(data.get("entrant_id", "")),
            zone_name=str(data.get("zone_name", "")),
            zone_position=int(data.get("zone_position", 0)),  # type: ignore[call-overload]
            has_bye=bool(data.get("has_bye", False)),
        )


@dataclass(slots=True)
class BracketSlot:
    entrant_id: str | None
    seed: int | None
    label: str
    is_bye: bool = False

    @classmethod
    def bye(cls) -> BracketSlot:
        return cls(entrant_id=None, seed=None, label=BYE_LABEL, is_bye=True)

    @classmethod
    def placeholder(cls, label: str) -> BracketSlot:
        return cls(entrant_id=None, seed=None, label=label)

    @property
    def has_entrant(self) -> bool:
        return self.entrant_id is not None

    @property
    def is_resolved(self) -> bool:
        return self.has_entrant or self.is_bye

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"label": self.label}
        if self.entrant_id is not None:
            data["entrant_id"] = self.entrant_id
        if self.seed is not None:
            data["seed"] = self.seed
        if self.is_bye:
            data["is_bye"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> BracketSlot:
        return cls(
            entrant_id=_optional_str(data.get("entrant_id")),
            seed=_optional_int(data.get("seed")),
            label=str(data.get("label", "")),
            is_bye=bool(data.get("is_bye", False)),
        )

    def display(self) -> str:
        if self.entrant_id is None:
            return self.label
        if self.seed is not None:
            return f"#{self.seed} {self.label}"
        return self.label

    def adopt_from(self, other: BracketSlot) -> None:
        self.entrant_id = other.entrant_id
        self.seed = other.seed
        self.label = other.label
        self.is_bye = other.is_bye

    def reset(self, label: str) -> None:
        self.entrant_id = None
        self.seed = None
        self.label = label
        self.is_bye = False


@dataclass(slots=True)
class BracketMatch:
    match_id: str
    round_index: int
    slot: int
    round_name: str
    competitor_one: BracketSlot
    competitor_two: BracketSlot
    status: MatchStatus = MatchStatus.PENDING
    court: str | None = None
    score_one: int | None = None
    score_two: int | None = None
    winner_index: int | None = None
    updated_at: str | None = None

    def apply(self, event: MatchEvent) -> MatchStatus:
        """Move the match through its transition table; the only status mutator."""
        target = MATCH_TRANSITIONS.get((self.status, event))
        if target is None:
            raise ConflictError(
                f"Match {self.match_id} cannot {event.lower()} while {self.status}"
            )
        self.status = target
        self.updated_at = utc_now_iso()
        return target

    def competitors(self) -> tuple[BracketSlot, BracketSlot]:
        return (self.competitor_one, self.competitor_two)

    def winner_slot(self) -> BracketSlot | None:
        if self.winner_index == 0:
            return self.competitor_one
        if self.winner_index == 1:
            return self.competitor_two
        return None

    def loser_slot(self) -> BracketSlot | None:
        if self.winner_index == 0:
            return self.competitor_two
        if self.winner_index == 1:
            return self.competitor_one
        return None

    @property
    def is_playable(self) -> bool:
        return self.competitor_one.has_entrant and self.competitor_two.has_entrant

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "match_id": self.match_id,
            "round_index": self.round_index,
            "slot": self.slot,
            "round_name": self.round_name,
            "competitor_one": self.competitor_one.to_dict(),
            "competitor_two": self.competitor_two.to_dict(),
            "status": str(self.status),
        }
        if self.court is not None:
            data["court"] = self.court
        if self.score_one is not None:
            data["score_one"] = self.score_one
        if self.score_two is not None:
            data["score_two"] = self.score_two
        if self.winner_index is not None:
            data["winner_index"] = self.winner_index
        if self.updated_at is not None:
            data["updated_at"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> BracketMatch:
        return cls(
            match_id=str(data.get("match_id", "")),
            round_index=int(data.get("round_index", 0)),  # type: ignore[call-overload]
            slot=int(data.get("slot", 0)),  # type: ignore[call-overload]
            round_name=str(data.get("round_name", "")),
            competitor_one=BracketSlot.from_dict(
                data.get("competitor_one", {})  # type: ignore[arg-type]
            ),
            competitor_two=BracketSlot.from_dict(
                data.get("competitor_two", {})  # type: ignore[arg-type]
            ),
            status=MatchStatus(str(data.get("status", "PENDING"))),
            court=_optional_str(data.get("court")),
            score_one=_optional_int(data.get("score_one")),
            score_two=_optional_int(data.get("score_two")),
            winner_index=_optional_int(data.get("winner_index")),
            updated_at=_optional_str(data.get("updated_at")),
        )


@dataclass(slots=True)
class BracketRound:
    name: str
    matches: list[BracketMatch]

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "matches": [match.to_dict() for match in self.matches],
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> BracketRound:
        matches_data: Iterable[dict[str, object]] = data.get("matches", [])  # type: ignore[assignment]
        return cls(
            name=str(data.get("name", "")),
            matches=[BracketMatch.from_dict(item) for item in matches_data],
        )


@dataclass(slots=True)
class BracketState:
    tournament_id: str
    bracket_size: int
    byes: int
    seeds: list[Seed]
    rounds: list[BracketRound]
    created_at: str
    champion_id: str | None = None
    version: int = 0

    PK_TEMPLATE: ClassVar[str] = "TOURNAMENT#%s"
    SK_VALUE: ClassVar[str] = "BRACKET"

    @classmethod
    def key(cls, tournament_id: str) -> dict[str, str]:
        return {"pk": cls.PK_TEMPLATE % tournament_id, "sk": cls.SK_VALUE}

    def to_item(self) -> dict[str, object]:
        item = self.key(self.tournament_id)
        item.update(
            {
                "tournament_id": self.tournament_id,
                "bracket_size": self.bracket_size,
                "byes": self.byes,
                "seeds": [seed.to_dict() for seed in self.seeds],
                "rounds": [round_.to_dict() for round_ in self.rounds],
                "created_at": self.created_at,
                "version": self.version,
            }
        )
        if self.champion_id is not None:
            item["champion_id"] = self.champion_id
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> BracketState:
        seeds_data: Iterable[dict[str, object]] = item.get("seeds", [])  # type: ignore[assignment]
        rounds_data: Iterable[dict[str, object]] = item.get("rounds", [])  # type: ignore[assignment]
        return cls(
            tournament_id=str(
                item.get("tournament_id") or str(item["pk"]).split("#", 1)[1]
            ),
            bracket_size=int(item.get("bracket_size", 0)),  # type: ignore[call-overload]
            byes=int(item.get("byes", 0)),  # type: ignore[call-overload]
            seeds=[Seed.from_dict(data) for data in seeds_data],
            rounds=[BracketRound.from_dict(data) for data in rounds_data],
            created_at=str(item.get("created_at", "")),
            champion_id=_optional_str(item.get("champion_id")),
            version=int(item.get("version", 0)),  # type: ignore[call-overload]
        )

    def clone(self) -> BracketState:
        return BracketState.from_item(self.to_item())

    def find_match(self, match_id: str) -> BracketMatch | None:
        for round_ in self.rounds:
            for match in round_.matches:
                if match.match_id == match_id:
                    return match
        return None

    def match_at(self, round_index: int, slot: int) -> BracketMatch | None:
        if round_index < 0 or round_index >= len(self.rounds):
            return None
        matches = self.rounds[round_index].matches
        if slot < 0 or slot >= len(matches):
            return None
        return matches[slot]

    def next_match(self, match: BracketMatch) -> tuple[BracketMatch, int] | None:
        """Return the match fed by ``match`` and the side index it feeds."""
        target = self.match_at(match.round_index + 1, match.slot // 2)
        if target is None:
            return None
        return target, match.slot % 2

    def feeder_matches(self, match: BracketMatch) -> tuple[BracketMatch, BracketMatch] | None:
        if match.round_index == 0:
            return None
        first = self.match_at(match.round_index - 1, match.slot * 2)
        second = self.match_at(match.round_index - 1, match.slot * 2 + 1)
        if first is None or second is None:
            return None
        return first, second

    def final_match(self) -> BracketMatch | None:
        if not self.rounds or not self.rounds[-1].matches:
            return None
        return self.rounds[-1].matches[-1]

    def all_matches(self) -> Iterable[BracketMatch]:
        for round_ in self.rounds:
            yield from round_.matches

    def seed_for(self, entrant_id: str) -> Seed | None:
        for seed in self.seeds:
            if seed.entrant_id == entrant_id:
                return seed
        return None

    @property
    def is_complete(self) -> bool:
        return self.champion_id is not None


__all__ = [
    "ISO_FORMAT",
    "BYE_LABEL",
    "TournamentFormat",
    "TournamentStatus",
    "TournamentStage",
    "TOURNAMENT_TRANSITIONS",
    "MatchStatus",
    "MatchEvent",
    "MATCH_TRANSITIONS",
    "EntrantStatus",
    "ClaimKind",
    "ScoringRule",
    "TournamentConfig",
    "Tournament",
    "Couple",
    "PlayerClaim",
    "Entrant",
    "ZoneMatch",
    "ZoneState",
    "Standing",
    "Seed",
    "BracketSlot",
    "BracketMatch",
    "BracketRound",
    "BracketState",
    "utc_now_iso",
]

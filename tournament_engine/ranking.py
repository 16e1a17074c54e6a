from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from .errors import PreconditionError
from .models import (
    BracketState,
    Entrant,
    MatchStatus,
    Tournament,
    TournamentStatus,
    ZoneState,
)

log = logging.getLogger(__name__)

POINTS_FOR_WINNING_MATCH = 3
POINTS_FOR_LOSING_MATCH = 1
SCORE_PERCENTAGE_TO_TRANSFER = 0.01


@dataclass(frozen=True, slots=True)
class RankingAdjustment:
    player_id: str
    delta: int


class _Ledger:
    def __init__(self, player_scores: Mapping[str, int]) -> None:
        self.scores = {player_id: int(score) for player_id, score in player_scores.items()}
        self.deltas: dict[str, int] = {}
        self.order: list[str] = []

    def add(self, player_id: str, amount: int) -> None:
        if player_id not in self.deltas:
            self.deltas[player_id] = 0
            self.order.append(player_id)
        self.deltas[player_id] += amount
        self.scores[player_id] = self.scores.get(player_id, 0) + amount

    def settle(self, winners: Sequence[str], losers: Sequence[str]) -> int:
        transfers: dict[str, int] = {}
        for player_id in losers:
            score = self.scores.get(player_id, 0)
            if score > 0:
                transfers[player_id] = min(
                    math.floor(score * SCORE_PERCENTAGE_TO_TRANSFER), score
                )
        total = sum(transfers.values())
        for player_id in losers:
            self.add(player_id, POINTS_FOR_LOSING_MATCH - transfers.get(player_id, 0))
        share = total // len(winners) if winners else 0
        for player_id in winners:
            self.add(player_id, POINTS_FOR_WINNING_MATCH + share)
        return total

    def tie(self, players: Iterable[str]) -> None:
        for player_id in players:
            self.add(player_id, POINTS_FOR_LOSING_MATCH)


def compute_ranking_adjustments(
    tournament: Tournament,
    entrants: Sequence[Entrant],
    zones: Sequence[ZoneState],
    bracket: BracketState | None,
    player_scores: Mapping[str, int],
) -> list[RankingAdjustment]:
    """Work out the ranking delta of every player who played in ``tournament``.

    Matches are replayed in order (zone matches first, then bracket rounds)
    against a working copy of ``player_scores`` so each transfer is based on
    the score the loser had at that point.
    """
    if tournament.status != TournamentStatus.FINISHED:
        raise PreconditionError(
            f"Ranking points are awarded only once tournament {tournament.tournament_id} is finished"
        )
    players = {entrant.entrant_id: entrant.player_ids for entrant in entrants}
    ledger = _Ledger(player_scores)
    transferred = 0

    for zone in zones:
        for match in zone.matches:
            if match.status != MatchStatus.FINISHED:
                continue
            if match.score_a is None or match.score_b is None:
                continue
            home = players.get(match.entrant_a, ())
            away = players.get(match.entrant_b, ())
            if match.score_a == match.score_b:
                ledger.tie([*home, *away])
            elif match.score_a > match.score_b:
                transferred += ledger.settle(home, away)
            else:
                transferred += ledger.settle(away, home)

    if bracket is not None:
        for match in bracket.all_matches():
            if match.status != MatchStatus.FINISHED or not match.is_playable:
                continue
            winner = match.winner_slot()
            loser = match.loser_slot()
            if winner is None or loser is None:
                continue
            transferred += ledger.settle(
                players.get(winner.entrant_id or "", ()),
                players.get(loser.entrant_id or "", ()),
            )

    log.info(
        "Computed ranking adjustments for %s players in tournament %s (%s points transferred)",
        len(ledger.order),
        tournament.tournament_id,
        transferred,
    )
    return [
        RankingAdjustment(player_id=player_id, delta=ledger.deltas[player_id])
        for player_id in ledger.order
    ]


__all__ = [
    "POINTS_FOR_WINNING_MATCH",
    "POINTS_FOR_LOSING_MATCH",
    "SCORE_PERCENTAGE_TO_TRANSFER",
    "RankingAdjustment",
    "compute_ranking_adjustments",
]

"""Status lifecycle of elimination matches.

Every status change goes through ``BracketMatch.apply`` so the transition
table in ``models`` is the single source of truth for what may happen next.
"""

from __future__ import annotations

import logging

from .bracket import settle_match, withdraw_winner
from .errors import ConflictError, NotFoundError, PreconditionError
from .models import BracketMatch, BracketState, MatchEvent, MatchStatus
from .validation import validate_bracket_scores, validate_court

log = logging.getLogger(__name__)


def _require_match(state: BracketState, match_id: str) -> BracketMatch:
    match = state.find_match(match_id)
    if match is None:
        raise NotFoundError(f"Match {match_id} not found")
    return match


def _raise_unresolved(state: BracketState, match: BracketMatch) -> None:
    feeders = state.feeder_matches(match) or ()
    canceled = [
        feeder.match_id for feeder in feeders if feeder.status == MatchStatus.CANCELED
    ]
    if canceled:
        raise PreconditionError(
            f"Match {match.match_id} depends on canceled match {', '.join(canceled)}; "
            "reactivate and resolve it first"
        )
    raise PreconditionError(
        f"Match {match.match_id} is still waiting for both competitors"
    )


def _ensure_next_pending(state: BracketState, match: BracketMatch, action: str) -> None:
    target = state.next_match(match)
    if target is None:
        return
    next_match, _ = target
    if next_match.status != MatchStatus.PENDING:
        raise ConflictError(
            f"Cannot {action} {match.match_id}: {next_match.match_id} is already {next_match.status}"
        )


def start_match(state: BracketState, match_id: str, court: str) -> BracketMatch:
    match = _require_match(state, match_id)
    if match.status != MatchStatus.PENDING:
        raise ConflictError(f"Match {match_id} cannot start while {match.status}")
    if not match.is_playable:
        _raise_unresolved(state, match)
    match.court = validate_court(court)
    match.apply(MatchEvent.START)
    log.info("Started match %s on court %s", match_id, match.court)
    return match


def record_result(
    state: BracketState,
    match_id: str,
    score_one: int,
    score_two: int,
    *,
    correction: bool = False,
) -> BracketMatch:
    """Record the score of ``match_id`` and push the winner forward.

    A finished match only accepts a correction. Keeping the same winner just
    rewrites the slot it already feeds; changing it is refused once the next
    match has started.
    """
    first, second = validate_bracket_scores(score_one, score_two)
    match = _require_match(state, match_id)

    if match.status == MatchStatus.FINISHED:
        if not correction:
            raise ConflictError(
                f"Match {match_id} is already finished; submit a correction to change it"
            )
        if not match.is_playable:
            raise ConflictError(f"Match {match_id} was a bye and has no score to correct")
        new_winner = 0 if first > second else 1
        if new_winner != match.winner_index:
            _ensure_next_pending(state, match, "change the winner of")
        settle_match(state, match, first, second, event=MatchEvent.CORRECT)
        log.info("Corrected result of %s to %s-%s", match_id, first, second)
        return match

    if match.status != MatchStatus.IN_PROGRESS:
        raise ConflictError(
            f"Match {match_id} is {match.status}; start it before recording a result"
        )
    settle_match(state, match, first, second)
    log.info("Recorded result %s-%s for %s", first, second, match_id)
    return match


def cancel_match(state: BracketState, match_id: str) -> BracketMatch:
    match = _require_match(state, match_id)
    match.apply(MatchEvent.CANCEL)
    log.info("Canceled match %s", match_id)
    return match


def reactivate_match(state: BracketState, match_id: str) -> BracketMatch:
    match = _require_match(state, match_id)
    if match.status == MatchStatus.FINISHED:
        if not match.is_playable:
            raise ConflictError(f"Match {match_id} was a bye and cannot be reactivated")
        _ensure_next_pending(state, match, "reactivate")
        match.apply(MatchEvent.REACTIVATE)
        withdraw_winner(state, match)
        match.score_one = None
        match.score_two = None
        match.winner_index = None
    else:
        match.apply(MatchEvent.REACTIVATE)
    log.warning("Reactivated match %s; it is now %s", match_id, match.status)
    return match


def change_court(state: BracketState, match_id: str, court: str) -> BracketMatch:
    match = _require_match(state, match_id)
    if match.status != MatchStatus.IN_PROGRESS:
        raise ConflictError(
            f"Court can only change while a match is in progress (match {match_id} is {match.status})"
        )
    previous = match.court
    match.court = validate_court(court)
    log.info("Moved match %s from court %s to %s", match_id, previous, match.court)
    return match


__all__ = [
    "start_match",
    "record_result",
    "cancel_match",
    "reactivate_match",
    "change_court",
]

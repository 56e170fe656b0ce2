"""
Statistics derived from the match history.

The players' live scores are authoritative. The timeline is rebuilt from
the per-event records and its final point is replaced by the live scores,
so it never disagrees with the scoreboard even if an older record was
written with less precision.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from scorekeeper.logic.enums import BonusPenaltyKind, EventKind, TimelineLabel
from scorekeeper.logic.matchup import round1
from scorekeeper.logic.types import PlayerStats, TimelinePoint

if TYPE_CHECKING:
    from scorekeeper.logic.state import BonusPenaltyRecord, EventRecord, MatchState

_HAND_ENDING = frozenset({EventKind.SELF_DRAW, EventKind.DISCARD_WIN, EventKind.STALEMATE})


def _bonus_penalty_change(record: BonusPenaltyRecord) -> Decimal:
    return record.score if record.kind == BonusPenaltyKind.BONUS else -record.score


def player_stats(state: MatchState) -> list[PlayerStats]:
    """Return wins, self-draws, deal-ins and bonus/penalty net per player, in player order."""
    stats = {p.id: PlayerStats(player_id=p.id, name=p.name, icon=p.icon) for p in state.players}

    for record in state.history:
        if record.type == EventKind.SELF_DRAW:
            stats[record.winner_id].wins += 1
            stats[record.winner_id].self_draws += 1
        elif record.type == EventKind.DISCARD_WIN:
            stats[record.loser_id].deal_ins += 1
            for winner_id in record.winner_ids:
                stats[winner_id].wins += 1
        elif record.type == EventKind.BONUS_PENALTY:
            change = _bonus_penalty_change(record)
            for player_id, entry in stats.items():
                delta = change if player_id == record.player_id else -change / 3
                entry.bonus_penalty_net = round1(entry.bonus_penalty_net + delta)

    return list(stats.values())


def _apply_record(scores: dict[int, Decimal], record: EventRecord) -> None:
    if record.type == EventKind.DISCARD_WIN:
        for detail in record.winner_details:
            scores[detail.winner_id] += detail.final_score
        scores[record.loser_id] -= record.total_score_change
    elif record.type == EventKind.SELF_DRAW:
        scores[record.winner_id] += record.total_score_change
        for loser in record.loser_details:
            scores[loser.loser_id] -= loser.score
    elif record.type == EventKind.BONUS_PENALTY:
        change = _bonus_penalty_change(record)
        for player_id in scores:
            scores[player_id] += change if player_id == record.player_id else -change / 3


def score_timeline(state: MatchState) -> list[TimelinePoint]:
    """
    Return cumulative scores at the start, after each completed hand, and now.

    A trailing "current" point is added only when bonus/penalty events follow
    the last completed hand.
    """
    scores = {p.id: Decimal(0) for p in state.players}
    points = [TimelinePoint(label=TimelineLabel.START, scores=dict(scores))]
    hands = 0
    pending = False

    for record in state.history:
        _apply_record(scores, record)
        if record.type in _HAND_ENDING:
            hands += 1
            points.append(TimelinePoint(label=TimelineLabel.HAND, hand=hands, scores=dict(scores)))
            pending = False
        elif record.type == EventKind.BONUS_PENALTY:
            pending = True

    if pending:
        points.append(TimelinePoint(label=TimelineLabel.CURRENT, scores=dict(scores)))

    points[-1].scores = {p.id: p.score for p in state.players}
    return points


def group_history(state: MatchState) -> list[tuple[EventRecord, ...]]:
    """Group consecutive records that share a timestamp (one operation and its surrenders)."""
    groups: list[list[EventRecord]] = []
    for record in state.history:
        if groups and groups[-1][0].timestamp == record.timestamp:
            groups[-1].append(record)
        else:
            groups.append([record])
    return [tuple(g) for g in groups]

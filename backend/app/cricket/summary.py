from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from app.cricket.history import ActionKind, HistoryEntry
from app.cricket.ledger import Ledger, Player
from app.cricket.targets import MatchRules, MatchVariant, Target


@dataclass(frozen=True)
class MatchSummary:
    """
    Everything the archiver gets when a match is won.

    Derived statistics are meant to be recomputed from `history` alone.
    """

    match_id: str
    variant: MatchVariant
    rules: MatchRules
    players: tuple[Player, ...]
    ko_numbers: dict[str, Target]
    final_ledger: Ledger
    history: tuple[HistoryEntry, ...]
    winner_id: str
    total_turns: int
    finished_at: datetime


class MatchArchiver(Protocol):
    def archive(self, summary: MatchSummary) -> None: ...


@dataclass(frozen=True)
class PlayerTally:
    player_id: str
    turns: int
    darts_thrown: int
    marks: int
    points: int
    misses: int
    skips_issued: int
    times_skipped: int
    ko_points_dealt: int
    ko_points_healed: int
    eliminations: int
    pin_pushes: int

    @property
    def marks_per_round(self) -> float:
        if self.turns == 0:
            return 0.0
        return self.marks / self.turns


def _accumulate(player_id: str, seat: int, history: list[HistoryEntry]) -> PlayerTally:
    darts = [e for e in history if e.player_index == seat and e.action is not ActionKind.TURN_ADVANCE]

    return PlayerTally(
        player_id=player_id,
        turns=sum(1 for e in darts if e.dart_index == 0),
        darts_thrown=len(darts),
        marks=sum(e.marks_added for e in darts if e.action is ActionKind.SCORE),
        points=sum(e.points_added for e in darts if e.action is ActionKind.SCORE),
        misses=sum(1 for e in darts if e.action is ActionKind.MISS),
        skips_issued=sum(1 for e in darts if e.action is ActionKind.SKIP),
        times_skipped=sum(1 for e in history if e.skipped_player_id == player_id),
        ko_points_dealt=sum(e.ko_points_added for e in darts if e.action is ActionKind.KO),
        ko_points_healed=sum(e.ko_points_removed for e in darts if e.action is ActionKind.KO),
        eliminations=sum(1 for e in darts if e.eliminated_id is not None),
        pin_pushes=sum(1 for e in darts if e.action is ActionKind.PIN),
    )


def tally(summary: MatchSummary) -> tuple[PlayerTally, ...]:
    """
    Per-player counts for one match, rebuilt purely from its history log.
    """
    history = list(summary.history)
    return tuple(_accumulate(p.player_id, seat, history) for seat, p in enumerate(summary.players))

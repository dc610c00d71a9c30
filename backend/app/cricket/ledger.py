from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence

from app.cricket.targets import CLOSED_MARKS, KO_LIMIT, TARGETS, MatchVariant, Target


@dataclass(frozen=True)
class Player:
    """
    A roster entry as handed to us by the roster collaborator.
    """

    player_id: str
    display_name: str

    def __post_init__(self) -> None:
        if not self.player_id:
            raise ValueError("player_id must not be empty")


def _zero_marks() -> tuple[int, ...]:
    return tuple(0 for _ in TARGETS)


@dataclass(frozen=True)
class LedgerEntry:
    """
    Scoring record for one participant (a player, or a team in tag-team).

    Marks are stored in TARGETS order and never exceed 3.
    """

    participant_id: str
    display_name: str
    marks: tuple[int, ...] = ()
    points: int = 0
    ko_points: int = 0
    is_eliminated: bool = False

    def __post_init__(self) -> None:
        if not self.marks:
            object.__setattr__(self, "marks", _zero_marks())
        if len(self.marks) != len(TARGETS):
            raise ValueError("marks must hold one value per target")
        if any(m < 0 or m > CLOSED_MARKS for m in self.marks):
            raise ValueError("stored marks must be between 0 and 3")

    def mark(self, target: Target) -> int:
        return self.marks[TARGETS.index(target)]

    def is_closed(self, target: Target) -> bool:
        return self.mark(target) >= CLOSED_MARKS

    @property
    def ko_display(self) -> int:
        return min(self.ko_points, KO_LIMIT)

    @property
    def total_marks(self) -> int:
        return sum(self.marks)

    def with_mark(self, target: Target, value: int) -> LedgerEntry:
        idx = TARGETS.index(target)
        marks = (*self.marks[:idx], value, *self.marks[idx + 1 :])
        return replace(self, marks=marks)

    def as_dict(self) -> dict[str, int]:
        return {t.value: m for t, m in zip(TARGETS, self.marks)}


Ledger = tuple[LedgerEntry, ...]


class ParticipantMapping:
    """
    Maps seat (player index) to ledger entry.

    Every variant runs through the same engine; tag-team is simply a mapping
    where seats 0/2 alias team-0 and seats 1/3 alias team-1.
    """

    def __init__(self, variant: MatchVariant, players: Sequence[Player]) -> None:
        players = tuple(players)
        if len(players) != variant.player_count:
            raise ValueError(
                f"{variant.value} requires exactly {variant.player_count} players, got {len(players)}"
            )
        ids = [p.player_id for p in players]
        if len(set(ids)) != len(ids):
            raise ValueError("player ids must be unique")
        self.variant = variant
        self.players: tuple[Player, ...] = players

    @property
    def seat_count(self) -> int:
        return len(self.players)

    def ledger_index(self, seat: int) -> int:
        if self.variant is MatchVariant.TAG_TEAM:
            return seat % 2
        return seat

    def seat_of(self, player_id: str) -> int | None:
        for i, p in enumerate(self.players):
            if p.player_id == player_id:
                return i
        return None

    def player(self, seat: int) -> Player:
        return self.players[seat]

    def initial_ledger(self) -> Ledger:
        if self.variant is MatchVariant.TAG_TEAM:
            p = self.players
            return (
                LedgerEntry("team-0", f"{p[0].display_name} & {p[2].display_name}"),
                LedgerEntry("team-1", f"{p[1].display_name} & {p[3].display_name}"),
            )
        return tuple(LedgerEntry(p.player_id, p.display_name) for p in self.players)


def entry_index(ledger: Ledger, participant_id: str) -> int | None:
    for i, e in enumerate(ledger):
        if e.participant_id == participant_id:
            return i
    return None


def replace_entry(ledger: Ledger, index: int, updated: LedgerEntry) -> Ledger:
    return (*ledger[:index], updated, *ledger[index + 1 :])

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from app.cricket.ledger import Ledger
from app.cricket.targets import Target


class SlotKind(str, Enum):
    SCORE = "score"
    MISS = "miss"
    SKIP = "skip"
    KO = "ko"
    KO_HEAL = "ko_heal"
    PIN = "pin"


@dataclass(frozen=True)
class DartSlot:
    """
    What one of the (up to) three darts of a turn was used for.
    """

    kind: SlotKind
    target: Target | None = None
    multiplier: int = 1
    skipped_id: str | None = None
    ko_target_id: str | None = None
    pin_value: int | None = None  # |pin counter| after the push

    @property
    def is_scoring(self) -> bool:
        # KO hits count towards the 3-darts/3-marks bonus; heals and PIN pushes do not.
        return self.kind in (SlotKind.SCORE, SlotKind.KO)


@dataclass(frozen=True)
class TurnState:
    current_index: int = 0
    slots: tuple[DartSlot, ...] = ()
    selected_multiplier: int = 1
    skipped: frozenset[str] = frozenset()  # crossed out: passed over on the next rotation
    served_skip: frozenset[str] = frozenset()  # greyed: skip served, waiting for their turn
    last_skipped_id: str | None = None
    pin_counter: int = 0
    winner_id: str | None = None
    turn_number: int = 1

    @property
    def dart_index(self) -> int:
        return len(self.slots)


@dataclass(frozen=True)
class MatchSnapshot:
    """
    Everything undo needs to put back. Both halves are immutable, so a
    snapshot can never be corrupted through live state.
    """

    ledger: Ledger
    turn: TurnState


class ActionKind(str, Enum):
    SCORE = "score"
    MISS = "miss"
    SKIP = "skip"
    KO = "ko"
    PIN = "pin"
    TURN_ADVANCE = "turn_advance"


@dataclass(frozen=True)
class HistoryEntry:
    action: ActionKind
    player_index: int
    dart_index: int
    before: MatchSnapshot
    # score
    target: Target | None = None
    multiplier: int | None = None
    marks_added: int = 0
    points_added: int = 0
    # skip
    skipped_player_id: str | None = None
    skipped_player_name: str | None = None
    # ko
    ko_target_id: str | None = None
    ko_points_added: int = 0
    ko_points_removed: int = 0
    eliminated_id: str | None = None
    # pin
    pin_before: int | None = None
    pin_after: int | None = None
    winner_set: str | None = None
    # turn_advance
    previous_index: int | None = None
    next_index: int | None = None
    skips_served: tuple[str, ...] = ()
    served_skip_cleared: str | None = None


@dataclass
class HistoryLog:
    """
    Append-only action log; the only thing that knows how to undo.
    """

    _entries: list[HistoryEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def append(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)

    def undo(self) -> tuple[MatchSnapshot, tuple[HistoryEntry, ...]] | None:
        """
        Pop the last user action and return the snapshot to restore, plus the
        entries that were removed (newest first).

        A turn_advance is never what the user meant to undo: it is popped
        together with the dart that triggered it, and state goes back to
        before that dart.
        """
        if not self._entries:
            return None
        top = self._entries.pop()
        if top.action is ActionKind.TURN_ADVANCE and self._entries:
            dart = self._entries.pop()
            return dart.before, (top, dart)
        return top.before, (top,)

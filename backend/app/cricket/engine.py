from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Mapping, Sequence
from uuid import uuid4

from app.cricket.actions import (
    KO,
    Action,
    ActionOutcome,
    ActionRejected,
    Miss,
    Pin,
    Rejection,
    Score,
    Skip,
    Undo,
)
from app.cricket.history import (
    ActionKind,
    DartSlot,
    HistoryEntry,
    HistoryLog,
    MatchSnapshot,
    SlotKind,
    TurnState,
)
from app.cricket.ledger import Ledger, LedgerEntry, ParticipantMapping, Player, entry_index, replace_entry
from app.cricket.phases import (
    board_complete,
    close_out_applies,
    close_out_winner,
    ko_phase_active,
    pin_phase_active,
    pin_sides,
)
from app.cricket.rules import accepts_throw, score_marks, validate_multiplier
from app.cricket.summary import MatchArchiver, MatchSummary
from app.cricket.targets import DARTS_PER_TURN, KO_LIMIT, PIN_LIMIT, MatchRules, MatchVariant, Target

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchView:
    """
    Read-only projection of a match for rendering.
    """

    match_id: str
    variant: MatchVariant
    rules: MatchRules
    players: tuple[Player, ...]
    ko_numbers: dict[str, Target]
    ledger: Ledger
    turn: TurnState
    current_player_id: str
    current_participant_id: str
    ko_phase: bool
    pin_phase: bool
    history_length: int

    @property
    def dart_index(self) -> int:
        return self.turn.dart_index

    @property
    def winner_id(self) -> str | None:
        return self.turn.winner_id

    @property
    def can_undo(self) -> bool:
        return self.history_length > 0

    def entry(self, participant_id: str) -> LedgerEntry:
        idx = entry_index(self.ledger, participant_id)
        if idx is None:
            raise KeyError(participant_id)
        return self.ledger[idx]


class CricketMatch:
    """
    Cricket match engine for singles, tag-team, triple-threat and fatal-4-way.

    This module intentionally contains no web/framework imports.

    Every mutating action goes through apply(); each one records a history
    entry holding the complete pre-action state before anything changes, so
    undo() is an exact restore.

    Rules implemented:
    - Marks per target are capped at 3; under a points rule the excess scores
      face value while an opponent still has the target open.
    - Three darts per turn; three scoring darts earn a fresh turn (bonus turn).
    - A dart can be spent to skip an opponent's next turn, but not the same
      opponent twice in a row.
    - 3-/4-way: once someone closes out, KO numbers can be attacked; 3 KO
      points eliminate.
    - Final two (or any head-to-head match): PIN counter to +/-3 decides it.
    """

    def __init__(
        self,
        *,
        variant: MatchVariant,
        players: Sequence[Player],
        rules: MatchRules | None = None,
        ko_numbers: Mapping[str, Target] | None = None,
        archiver: MatchArchiver | None = None,
        auto_advance: bool = True,
        match_id: str | None = None,
    ) -> None:
        self._mapping = ParticipantMapping(variant, players)
        self._rules = rules or MatchRules()
        self._ko_numbers = self._validate_ko_numbers(ko_numbers or {})
        self._archiver = archiver
        self._auto_advance = auto_advance
        self.match_id = match_id or str(uuid4())

        self._ledger: Ledger = self._mapping.initial_ledger()
        self._turn = TurnState()
        self._history = HistoryLog()
        self._summary: MatchSummary | None = None

        logger.info(
            "Match %s started: %s, %s",
            self.match_id,
            variant.value,
            ", ".join(p.display_name for p in self._mapping.players),
        )

    @classmethod
    def initialize(
        cls,
        variant: MatchVariant,
        players: Sequence[Player],
        rules: MatchRules | None = None,
        **kwargs,
    ) -> CricketMatch:
        return cls(variant=variant, players=players, rules=rules, **kwargs)

    def _validate_ko_numbers(self, ko_numbers: Mapping[str, Target]) -> dict[str, Target]:
        # Uniqueness of the assignment is the roster's job, not ours.
        out: dict[str, Target] = {}
        for player_id, target in ko_numbers.items():
            if self._mapping.seat_of(player_id) is None:
                raise ValueError(f"KO number given for unknown player {player_id!r}")
            out[player_id] = Target(target)
        return out

    # --- Read side ---
    @property
    def variant(self) -> MatchVariant:
        return self._mapping.variant

    @property
    def rules(self) -> MatchRules:
        return self._rules

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        return self._history.entries

    @property
    def summary(self) -> MatchSummary | None:
        return self._summary

    def snapshot(self) -> MatchSnapshot:
        return MatchSnapshot(ledger=self._ledger, turn=self._turn)

    def view(self) -> MatchView:
        seat = self._turn.current_index
        return MatchView(
            match_id=self.match_id,
            variant=self.variant,
            rules=self._rules,
            players=self._mapping.players,
            ko_numbers=dict(self._ko_numbers),
            ledger=self._ledger,
            turn=self._turn,
            current_player_id=self._mapping.player(seat).player_id,
            current_participant_id=self._ledger[self._mapping.ledger_index(seat)].participant_id,
            ko_phase=ko_phase_active(self._ledger, self.variant, self._rules),
            pin_phase=pin_phase_active(self._ledger, self.variant, self._rules),
            history_length=len(self._history),
        )

    # --- Public actions ---
    def apply(self, action: Action) -> ActionOutcome:
        handlers = {
            Score: self._score,
            Miss: self._miss,
            Skip: self._skip,
            KO: self._ko,
            Pin: self._pin,
            Undo: self._undo,
        }
        handler = handlers.get(type(action))
        if handler is None:
            raise TypeError(f"unknown action {action!r}")
        try:
            handler(action)
        except ActionRejected as e:
            logger.debug("Match %s rejected %r: %s", self.match_id, action, e.detail)
            return ActionOutcome(view=self.view(), rejection=e.reason, detail=e.detail)
        return ActionOutcome(view=self.view())

    def throw_at(self, target: Target, multiplier: int | None = None) -> ActionOutcome:
        return self.apply(Score(target=target, multiplier=multiplier))

    def miss(self) -> ActionOutcome:
        return self.apply(Miss())

    def skip(self, target_id: str) -> ActionOutcome:
        return self.apply(Skip(target_id=target_id))

    def ko(self, target_id: str, multiplier: int | None = None) -> ActionOutcome:
        return self.apply(KO(target_id=target_id, multiplier=multiplier))

    def pin(self) -> ActionOutcome:
        return self.apply(Pin())

    def undo(self) -> ActionOutcome:
        return self.apply(Undo())

    def select_multiplier(self, multiplier: int) -> MatchView:
        validate_multiplier(multiplier)
        self._turn = replace(self._turn, selected_multiplier=multiplier)
        return self.view()

    def settle_turn(self) -> MatchView:
        """
        Finish a turn whose three darts are all used: bonus turn or rotation.

        Only needed with auto_advance=False, where the caller wants a pause
        after the third dart before the board moves on.
        """
        if self._turn.dart_index >= DARTS_PER_TURN and self._turn.winner_id is None:
            self._settle()
        return self.view()

    # --- Helpers ---
    @property
    def _seat(self) -> int:
        return self._turn.current_index

    @property
    def _current(self) -> int:
        return self._mapping.ledger_index(self._seat)

    def _player_id(self, seat: int) -> str:
        return self._mapping.player(seat).player_id

    def _require_turn_open(self) -> None:
        if self._turn.winner_id is not None:
            raise ActionRejected(Rejection.MATCH_OVER, "match is already over")
        if self._turn.dart_index >= DARTS_PER_TURN:
            raise ActionRejected(Rejection.TURN_EXHAUSTED, "all three darts of this turn are used")
        player_id = self._player_id(self._seat)
        if player_id in self._turn.skipped or self._ledger[self._current].is_eliminated:
            raise ActionRejected(
                Rejection.PARTICIPANT_INELIGIBLE, f"{player_id} is skipped or eliminated"
            )

    def _entry(self, action: ActionKind, **deltas) -> HistoryEntry:
        return HistoryEntry(
            action=action,
            player_index=self._seat,
            dart_index=self._turn.dart_index,
            before=self.snapshot(),
            **deltas,
        )

    def _record(self, entry: HistoryEntry, slot: DartSlot, **turn_changes) -> None:
        self._history.append(entry)
        self._turn = replace(
            self._turn,
            slots=(*self._turn.slots, slot),
            selected_multiplier=1,
            **turn_changes,
        )
        logger.debug(
            "Match %s: %s dart %d -> %s",
            self.match_id,
            self._player_id(entry.player_index),
            entry.dart_index + 1,
            slot.kind.value,
        )
        self._after_dart()

    def _after_dart(self) -> None:
        if self._turn.winner_id is None and close_out_applies(self._ledger, self.variant, self._rules):
            # A KO can finish the match for someone other than the thrower.
            for index in (self._current, *range(len(self._ledger))):
                if close_out_winner(self._ledger, index, self._rules):
                    self._turn = replace(self._turn, winner_id=self._ledger[index].participant_id)
                    break

        if self._turn.winner_id is not None:
            self._declare_winner()
            return

        if self._auto_advance and self._turn.dart_index >= DARTS_PER_TURN:
            self._settle()

    def _ko_owner(self, target: Target) -> int | None:
        """
        Ledger index of the non-eliminated opponent whose KO number is target.
        """
        for seat, player in enumerate(self._mapping.players):
            idx = self._mapping.ledger_index(seat)
            if idx == self._current or self._ledger[idx].is_eliminated:
                continue
            if self._ko_numbers.get(player.player_id) is target:
                return idx
        return None

    def _own_ko_number(self) -> Target | None:
        return self._ko_numbers.get(self._player_id(self._seat))

    # --- Handlers ---
    def _score(self, action: Score) -> None:
        self._require_turn_open()
        target = Target(action.target)
        multiplier = validate_multiplier(action.multiplier or self._turn.selected_multiplier)

        if ko_phase_active(self._ledger, self.variant, self._rules):
            owner = self._ko_owner(target)
            if owner is not None and board_complete(self._ledger[self._current]):
                self._apply_ko_hit(owner, multiplier, target)
                return
            if target is self._own_ko_number() and self._ledger[self._current].ko_points > 0:
                self._apply_ko_heal(multiplier, target)
                return

        if not accepts_throw(self._ledger, self._current, target, self._rules):
            raise ActionRejected(Rejection.TARGET_CLOSED, f"{target.value} is already closed")

        result = score_marks(self._ledger, self._current, target, multiplier, self._rules)
        entry = self._entry(
            ActionKind.SCORE,
            target=target,
            multiplier=multiplier,
            marks_added=result.marks_added,
            points_added=result.points_added,
        )
        self._ledger = replace_entry(self._ledger, self._current, result.entry)
        self._record(entry, DartSlot(SlotKind.SCORE, target=target, multiplier=multiplier))

    def _miss(self, action: Miss) -> None:
        self._require_turn_open()
        self._record(self._entry(ActionKind.MISS), DartSlot(SlotKind.MISS))

    def _skip(self, action: Skip) -> None:
        self._require_turn_open()
        seat = self._mapping.seat_of(action.target_id)
        if seat is None:
            raise ActionRejected(Rejection.UNKNOWN_PARTICIPANT, f"no player {action.target_id!r}")
        if self._mapping.ledger_index(seat) == self._current:
            raise ActionRejected(Rejection.PARTICIPANT_INELIGIBLE, "cannot skip yourself or a teammate")
        if action.target_id == self._turn.last_skipped_id:
            raise ActionRejected(
                Rejection.PARTICIPANT_INELIGIBLE, f"{action.target_id} was the last player skipped"
            )
        if action.target_id in self._turn.served_skip:
            raise ActionRejected(
                Rejection.PARTICIPANT_INELIGIBLE, f"{action.target_id} has not thrown since the last skip"
            )
        if self._ledger[self._mapping.ledger_index(seat)].is_eliminated:
            raise ActionRejected(Rejection.PARTICIPANT_INELIGIBLE, f"{action.target_id} is eliminated")

        player = self._mapping.player(seat)
        entry = self._entry(
            ActionKind.SKIP,
            skipped_player_id=player.player_id,
            skipped_player_name=player.display_name,
        )
        self._record(
            entry,
            DartSlot(SlotKind.SKIP, skipped_id=player.player_id),
            skipped=self._turn.skipped | {player.player_id},
            last_skipped_id=player.player_id,
        )

    def _ko(self, action: KO) -> None:
        self._require_turn_open()
        if not ko_phase_active(self._ledger, self.variant, self._rules):
            raise ActionRejected(Rejection.PHASE_INACTIVE, "KO phase is not active")
        victim = entry_index(self._ledger, action.target_id)
        if victim is None:
            raise ActionRejected(Rejection.UNKNOWN_PARTICIPANT, f"no participant {action.target_id!r}")
        multiplier = validate_multiplier(action.multiplier or self._turn.selected_multiplier)

        if victim == self._current:
            if self._ledger[victim].ko_points == 0:
                raise ActionRejected(Rejection.PARTICIPANT_INELIGIBLE, "no KO points to remove")
            self._apply_ko_heal(multiplier, None)
            return

        if not board_complete(self._ledger[self._current]):
            raise ActionRejected(Rejection.PARTICIPANT_INELIGIBLE, "board must be complete to KO")
        if self._ledger[victim].is_eliminated:
            raise ActionRejected(Rejection.PARTICIPANT_INELIGIBLE, f"{action.target_id} is eliminated")
        self._apply_ko_hit(victim, multiplier, None)

    def _apply_ko_hit(self, victim: int, multiplier: int, target: Target | None) -> None:
        before = self._ledger[victim]
        ko_points = before.ko_points + multiplier
        eliminated = ko_points >= KO_LIMIT
        entry = self._entry(
            ActionKind.KO,
            target=target,
            multiplier=multiplier,
            ko_target_id=before.participant_id,
            ko_points_added=multiplier,
            eliminated_id=before.participant_id if eliminated else None,
        )
        self._ledger = replace_entry(
            self._ledger, victim, replace(before, ko_points=ko_points, is_eliminated=eliminated)
        )
        if eliminated:
            logger.info("Match %s: %s eliminated", self.match_id, before.display_name)
        self._record(
            entry,
            DartSlot(SlotKind.KO, target=target, multiplier=multiplier, ko_target_id=before.participant_id),
        )

    def _apply_ko_heal(self, multiplier: int, target: Target | None) -> None:
        own = self._ledger[self._current]
        removed = min(own.ko_points, multiplier)
        entry = self._entry(
            ActionKind.KO,
            target=target,
            multiplier=multiplier,
            ko_target_id=own.participant_id,
            ko_points_removed=removed,
        )
        self._ledger = replace_entry(self._ledger, self._current, replace(own, ko_points=own.ko_points - removed))
        self._record(
            entry,
            DartSlot(SlotKind.KO_HEAL, target=target, multiplier=multiplier, ko_target_id=own.participant_id),
        )

    def _pin(self, action: Pin) -> None:
        self._require_turn_open()
        if not pin_phase_active(self._ledger, self.variant, self._rules):
            raise ActionRejected(Rejection.PHASE_INACTIVE, "PIN phase is not active")
        sides = pin_sides(self._ledger)
        if sides is None or self._current not in sides:
            raise ActionRejected(Rejection.PARTICIPANT_INELIGIBLE, "not a PIN contender")

        direction = 1 if self._current == sides[0] else -1
        counter = self._turn.pin_counter
        if board_complete(self._ledger[self._current]):
            new_counter = counter + direction
        elif counter * direction < 0:
            # Without a complete board a side can only pull the counter back to zero.
            new_counter = counter + direction
        else:
            raise ActionRejected(Rejection.INVALID_PIN_PUSH, "board incomplete: can only push toward zero")

        winner = None
        if new_counter * direction >= PIN_LIMIT:
            winner = self._ledger[self._current].participant_id

        entry = self._entry(ActionKind.PIN, pin_before=counter, pin_after=new_counter, winner_set=winner)
        self._record(
            entry,
            DartSlot(SlotKind.PIN, pin_value=abs(new_counter)),
            pin_counter=new_counter,
            winner_id=winner,
        )

    def _undo(self, action: Undo) -> None:
        undone = self._history.undo()
        if undone is None:
            raise ActionRejected(Rejection.NOTHING_TO_UNDO, "nothing to undo")
        snapshot, popped = undone
        had_winner = self._turn.winner_id
        self._ledger = snapshot.ledger
        self._turn = snapshot.turn
        if had_winner is not None and self._turn.winner_id is None:
            # The next win replaces the archived record under the same match id.
            self._summary = None
            logger.info("Match %s: win by %s undone", self.match_id, had_winner)
        logger.debug(
            "Match %s: undo %s",
            self.match_id,
            " + ".join(e.action.value for e in popped),
        )

    # --- Turn flow ---
    def _settle(self) -> None:
        if all(slot.is_scoring for slot in self._turn.slots):
            logger.debug("Match %s: bonus turn for %s", self.match_id, self._player_id(self._seat))
            self._turn = replace(
                self._turn,
                slots=(),
                selected_multiplier=1,
                turn_number=self._turn.turn_number + 1,
            )
            return
        self._advance_turn()

    def _advance_turn(self) -> None:
        """
        Rotate to the next eligible player.

        Eliminated players are always passed. Skipped players are passed once,
        moving from `skipped` to `served_skip`. The scan is bounded: if a full
        lap finds nobody, a second lap only passes eliminated players.
        """
        turn = self._turn
        seats = self._mapping.seat_count
        skipped = set(turn.skipped)
        served = set(turn.served_skip)
        served_now: list[str] = []

        def eliminated(seat: int) -> bool:
            return self._ledger[self._mapping.ledger_index(seat)].is_eliminated

        next_seat = (turn.current_index + 1) % seats
        for _ in range(seats):
            player_id = self._player_id(next_seat)
            if eliminated(next_seat):
                next_seat = (next_seat + 1) % seats
                continue
            if player_id in skipped:
                skipped.discard(player_id)
                served.add(player_id)
                served_now.append(player_id)
                next_seat = (next_seat + 1) % seats
                continue
            break
        else:
            for _ in range(seats):
                if not eliminated(next_seat):
                    break
                next_seat = (next_seat + 1) % seats

        next_id = self._player_id(next_seat)
        cleared = next_id if next_id in served else None
        served.discard(next_id)

        self._history.append(
            self._entry(
                ActionKind.TURN_ADVANCE,
                previous_index=turn.current_index,
                next_index=next_seat,
                skips_served=tuple(served_now),
                served_skip_cleared=cleared,
            )
        )
        self._turn = replace(
            turn,
            current_index=next_seat,
            slots=(),
            selected_multiplier=1,
            skipped=frozenset(skipped),
            served_skip=frozenset(served),
            last_skipped_id=None,
            turn_number=turn.turn_number + 1,
        )
        logger.debug("Match %s: turn passes to %s", self.match_id, next_id)

    def _declare_winner(self) -> None:
        winner_id = self._turn.winner_id
        if winner_id is None:
            return
        if self._summary is not None:
            return
        entry = self._ledger[entry_index(self._ledger, winner_id)]
        logger.info("Match %s won by %s", self.match_id, entry.display_name)
        self._summary = MatchSummary(
            match_id=self.match_id,
            variant=self.variant,
            rules=self._rules,
            players=self._mapping.players,
            ko_numbers=dict(self._ko_numbers),
            final_ledger=self._ledger,
            history=self._history.entries,
            winner_id=winner_id,
            total_turns=self._turn.turn_number,
            finished_at=datetime.now(timezone.utc),
        )
        if self._archiver is not None:
            self._archiver.archive(self._summary)

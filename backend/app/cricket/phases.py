from __future__ import annotations

from app.cricket.ledger import Ledger, LedgerEntry
from app.cricket.targets import CLOSED_MARKS, MatchRules, MatchVariant


def board_complete(entry: LedgerEntry) -> bool:
    return all(m >= CLOSED_MARKS for m in entry.marks)


def remaining_count(ledger: Ledger) -> int:
    return sum(1 for e in ledger if not e.is_eliminated)


def _any_remaining_complete(ledger: Ledger) -> bool:
    return any(board_complete(e) for e in ledger if not e.is_eliminated)


def ko_phase_active(ledger: Ledger, variant: MatchVariant, rules: MatchRules) -> bool:
    """
    KO phase: 3-/4-way only, more than two left, and someone has closed out.
    """
    if not variant.is_multi_way or not rules.ko_enabled:
        return False
    return remaining_count(ledger) > 2 and _any_remaining_complete(ledger)


def pin_phase_active(ledger: Ledger, variant: MatchVariant, rules: MatchRules) -> bool:
    """
    PIN phase: head-to-head matches go straight to PIN once either side closes
    out; 3-/4-way matches only once KO has cut the field down to two.
    """
    if not rules.pin_enabled:
        return False
    if not variant.is_multi_way:
        return any(board_complete(e) for e in ledger)
    return remaining_count(ledger) == 2 and _any_remaining_complete(ledger)


def pin_sides(ledger: Ledger) -> tuple[int, int] | None:
    """
    Ledger indexes of the (positive, negative) PIN contenders, in seat order.
    """
    left = [i for i, e in enumerate(ledger) if not e.is_eliminated]
    if len(left) != 2:
        return None
    return left[0], left[1]


def close_out_applies(ledger: Ledger, variant: MatchVariant, rules: MatchRules) -> bool:
    """
    True when the match is settled by closing out rather than by PIN.

    That is the case when PIN is switched off (once KO, if any, has cut the
    field to two), or in a 3-/4-way match without KO, which never reaches PIN.
    """
    if variant.is_multi_way and not rules.ko_enabled:
        return True
    if rules.pin_enabled:
        return False
    return not variant.is_multi_way or remaining_count(ledger) == 2


def close_out_winner(ledger: Ledger, index: int, rules: MatchRules) -> bool:
    """
    Standard cricket finish: board complete and not behind anyone on points.
    """
    entry = ledger[index]
    if entry.is_eliminated or not board_complete(entry):
        return False
    if not rules.points_rule.awards_points:
        return True
    return all(
        entry.points >= e.points for i, e in enumerate(ledger) if i != index and not e.is_eliminated
    )

from __future__ import annotations

from dataclasses import dataclass, replace

from app.cricket.ledger import Ledger, LedgerEntry
from app.cricket.targets import CLOSED_MARKS, MatchRules, Target


@dataclass(frozen=True)
class MarkResult:
    """
    Outcome of one dart on a target for one participant.
    """

    entry: LedgerEntry
    marks_added: int
    excess_marks: int
    points_added: int


def validate_multiplier(multiplier: int) -> int:
    if multiplier not in (1, 2, 3):
        raise ValueError("multiplier must be 1, 2, or 3")
    return multiplier


def opponents_open(ledger: Ledger, index: int, target: Target) -> bool:
    """
    True if at least one other participant has not closed target.

    Eliminated participants still count: their open targets keep scoring.
    """
    return any(not e.is_closed(target) for i, e in enumerate(ledger) if i != index)


def accepts_throw(ledger: Ledger, index: int, target: Target, rules: MatchRules) -> bool:
    """
    Whether a throw at target is still meaningful for participant `index`.

    An open target always is. A closed one only while it can still score
    points against someone.
    """
    if not ledger[index].is_closed(target):
        return True
    return rules.points_rule.awards_points and opponents_open(ledger, index, target)


def score_marks(
    ledger: Ledger, index: int, target: Target, multiplier: int, rules: MatchRules
) -> MarkResult:
    """
    Apply `multiplier` marks on target for participant `index`.

    Stored marks are capped at 3. Under a points rule, marks beyond the cap
    are worth the target's face value each, but only while an opponent still
    has the target open; otherwise they are wasted.
    """
    validate_multiplier(multiplier)
    entry = ledger[index]
    current = entry.mark(target)
    uncapped = current + multiplier
    stored = min(uncapped, CLOSED_MARKS)
    marks_added = stored - current

    excess = max(0, uncapped - CLOSED_MARKS)
    points = 0
    if excess and rules.points_rule.awards_points and opponents_open(ledger, index, target):
        points = excess * target.face_value

    updated = entry.with_mark(target, stored)
    if points:
        updated = replace(updated, points=updated.points + points)
    return MarkResult(entry=updated, marks_added=marks_added, excess_marks=excess, points_added=points)

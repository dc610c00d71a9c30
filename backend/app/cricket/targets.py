from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Target(str, Enum):
    """
    The nine cricket targets, in display order.

    - T20..T15: the numbered beds
    - BULL: bullseye (single or double bull)
    - TRIPLE / DOUBLE: aggregate slots for any triple / any double ring hit
    """

    T20 = "20"
    T19 = "19"
    T18 = "18"
    T17 = "17"
    T16 = "16"
    T15 = "15"
    BULL = "B"
    TRIPLE = "T"
    DOUBLE = "D"

    @property
    def face_value(self) -> int:
        if self is Target.BULL:
            return 25
        if self in (Target.TRIPLE, Target.DOUBLE):
            return 20
        return int(self.value)


TARGETS: tuple[Target, ...] = tuple(Target)

CLOSED_MARKS = 3
DARTS_PER_TURN = 3
KO_LIMIT = 3
PIN_LIMIT = 3


class MatchVariant(str, Enum):
    SINGLES = "singles"
    TAG_TEAM = "tag-team"
    TRIPLE_THREAT = "triple-threat"
    FATAL_4_WAY = "fatal-4-way"

    @property
    def player_count(self) -> int:
        return {
            MatchVariant.SINGLES: 2,
            MatchVariant.TAG_TEAM: 4,
            MatchVariant.TRIPLE_THREAT: 3,
            MatchVariant.FATAL_4_WAY: 4,
        }[self]

    @property
    def is_multi_way(self) -> bool:
        # Only 3-way and 4-way matches have a KO phase.
        return self in (MatchVariant.TRIPLE_THREAT, MatchVariant.FATAL_4_WAY)


class PointsRule(str, Enum):
    NO_POINT = "no-point"
    POINT = "point"
    SWAMP = "swamp"

    @property
    def awards_points(self) -> bool:
        return self is not PointsRule.NO_POINT


@dataclass(frozen=True)
class MatchRules:
    points_rule: PointsRule = PointsRule.SWAMP
    ko_enabled: bool = True
    pin_enabled: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.points_rule, PointsRule):
            raise ValueError("points_rule must be a PointsRule")

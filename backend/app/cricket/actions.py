from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Union

from app.cricket.targets import Target

if TYPE_CHECKING:
    from app.cricket.engine import MatchView


@dataclass(frozen=True)
class Score:
    target: Target
    multiplier: int | None = None  # None: use the currently selected multiplier


@dataclass(frozen=True)
class Miss:
    pass


@dataclass(frozen=True)
class Skip:
    target_id: str


@dataclass(frozen=True)
class KO:
    target_id: str
    multiplier: int | None = None


@dataclass(frozen=True)
class Pin:
    pass


@dataclass(frozen=True)
class Undo:
    pass


Action = Union[Score, Miss, Skip, KO, Pin, Undo]


class Rejection(str, Enum):
    TURN_EXHAUSTED = "TurnExhausted"
    PARTICIPANT_INELIGIBLE = "ParticipantIneligible"
    TARGET_CLOSED = "TargetClosed"
    INVALID_PIN_PUSH = "InvalidPinPush"
    NOTHING_TO_UNDO = "NothingToUndo"
    PHASE_INACTIVE = "PhaseInactive"
    MATCH_OVER = "MatchOver"
    UNKNOWN_PARTICIPANT = "UnknownParticipant"


class ActionRejected(Exception):
    """
    Raised by an action handler when a precondition fails.

    Never escapes CricketMatch.apply(); it is turned into an ActionOutcome.
    """

    def __init__(self, reason: Rejection, detail: str = "") -> None:
        super().__init__(detail or reason.value)
        self.reason = reason
        self.detail = detail or reason.value


@dataclass(frozen=True)
class ActionOutcome:
    view: "MatchView"
    rejection: Rejection | None = None
    detail: str | None = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None

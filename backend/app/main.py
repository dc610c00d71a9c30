from __future__ import annotations

import logging
from datetime import datetime

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from app.cricket.actions import KO, Action, ActionOutcome, Miss, Pin, Score, Skip, Undo
from app.cricket.engine import CricketMatch, MatchView
from app.cricket.history import DartSlot
from app.cricket.ledger import LedgerEntry, Player
from app.cricket.phases import board_complete
from app.cricket.store import get_store
from app.cricket.summary import MatchSummary, PlayerTally, tally
from app.cricket.targets import MatchRules, MatchVariant, PointsRule, Target
from app.settings import get_settings

settings = get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Cricket Scorekeeper")
store = get_store()


@app.get("/", include_in_schema=False)
def root(request: Request):
    # Browsers go to Swagger UI; API clients get a JSON index.
    accept = (request.headers.get("accept") or "").lower()
    if "text/html" in accept:
        return RedirectResponse(url="/docs")
    return {
        "name": "Cricket Scorekeeper",
        "docs": "/docs",
        "health": "/health",
        "endpoints": [
            "POST /match",
            "GET /match",
            "POST /match/multiplier",
            "POST /match/score",
            "POST /match/miss",
            "POST /match/skip",
            "POST /match/ko",
            "POST /match/pin",
            "POST /match/undo",
            "POST /match/settle",
            "GET /match/summary",
            "GET /match/tally",
        ],
    }


@app.get("/health")
def health():
    return {"status": "ok"}


class PlayerDTO(BaseModel):
    player_id: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=100)


class StartMatchRequest(BaseModel):
    variant: MatchVariant
    players: list[PlayerDTO] = Field(..., min_length=2, max_length=4)
    points_rule: PointsRule | None = Field(
        default=None, description="no-point | point | swamp (defaults to server setting)"
    )
    ko_enabled: bool = True
    pin_enabled: bool = True
    ko_numbers: dict[str, Target] = Field(
        default_factory=dict, description="player_id -> KO number (3-/4-way only)"
    )


class MultiplierRequest(BaseModel):
    multiplier: int = Field(..., ge=1, le=3)


class ScoreRequest(BaseModel):
    target: Target
    multiplier: int | None = Field(
        default=None, ge=1, le=3, description="Omit to use the selected multiplier"
    )


class SkipRequest(BaseModel):
    target_id: str = Field(..., min_length=1)


class KORequest(BaseModel):
    target_id: str = Field(..., min_length=1)
    multiplier: int | None = Field(default=None, ge=1, le=3)


class RulesDTO(BaseModel):
    points_rule: PointsRule
    ko_enabled: bool
    pin_enabled: bool


class LedgerEntryDTO(BaseModel):
    participant_id: str
    display_name: str
    marks: dict[str, int]
    points: int
    ko_points: int
    is_eliminated: bool
    board_complete: bool


class DartSlotDTO(BaseModel):
    kind: str
    target: Target | None
    multiplier: int
    skipped_id: str | None
    ko_target_id: str | None
    pin_value: int | None


class MatchStateDTO(BaseModel):
    match_id: str
    variant: MatchVariant
    rules: RulesDTO
    players: list[PlayerDTO]
    ko_numbers: dict[str, Target]
    ledger: list[LedgerEntryDTO]
    current_player_id: str
    current_participant_id: str
    turn_number: int
    dart_index: int
    darts: list[DartSlotDTO]
    selected_multiplier: int
    skipped: list[str]
    served_skip: list[str]
    last_skipped_id: str | None
    pin_counter: int
    ko_phase: bool
    pin_phase: bool
    winner_id: str | None
    can_undo: bool


class SummaryDTO(BaseModel):
    match_id: str
    variant: MatchVariant
    rules: RulesDTO
    winner_id: str
    total_turns: int
    finished_at: datetime
    final_ledger: list[LedgerEntryDTO]
    history_length: int


class PlayerTallyDTO(BaseModel):
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
    marks_per_round: float


def _rules_to_dto(r: MatchRules) -> RulesDTO:
    return RulesDTO(points_rule=r.points_rule, ko_enabled=r.ko_enabled, pin_enabled=r.pin_enabled)


def _entry_to_dto(e: LedgerEntry) -> LedgerEntryDTO:
    return LedgerEntryDTO(
        participant_id=e.participant_id,
        display_name=e.display_name,
        marks=e.as_dict(),
        points=e.points,
        ko_points=e.ko_display,
        is_eliminated=e.is_eliminated,
        board_complete=board_complete(e),
    )


def _slot_to_dto(s: DartSlot) -> DartSlotDTO:
    return DartSlotDTO(
        kind=s.kind.value,
        target=s.target,
        multiplier=s.multiplier,
        skipped_id=s.skipped_id,
        ko_target_id=s.ko_target_id,
        pin_value=s.pin_value,
    )


def _view_to_dto(v: MatchView) -> MatchStateDTO:
    return MatchStateDTO(
        match_id=v.match_id,
        variant=v.variant,
        rules=_rules_to_dto(v.rules),
        players=[PlayerDTO(player_id=p.player_id, display_name=p.display_name) for p in v.players],
        ko_numbers=v.ko_numbers,
        ledger=[_entry_to_dto(e) for e in v.ledger],
        current_player_id=v.current_player_id,
        current_participant_id=v.current_participant_id,
        turn_number=v.turn.turn_number,
        dart_index=v.dart_index,
        darts=[_slot_to_dto(s) for s in v.turn.slots],
        selected_multiplier=v.turn.selected_multiplier,
        skipped=sorted(v.turn.skipped),
        served_skip=sorted(v.turn.served_skip),
        last_skipped_id=v.turn.last_skipped_id,
        pin_counter=v.turn.pin_counter,
        ko_phase=v.ko_phase,
        pin_phase=v.pin_phase,
        winner_id=v.winner_id,
        can_undo=v.can_undo,
    )


def _summary_to_dto(s: MatchSummary) -> SummaryDTO:
    return SummaryDTO(
        match_id=s.match_id,
        variant=s.variant,
        rules=_rules_to_dto(s.rules),
        winner_id=s.winner_id,
        total_turns=s.total_turns,
        finished_at=s.finished_at,
        final_ledger=[_entry_to_dto(e) for e in s.final_ledger],
        history_length=len(s.history),
    )


def _tally_to_dto(t: PlayerTally) -> PlayerTallyDTO:
    return PlayerTallyDTO(
        player_id=t.player_id,
        turns=t.turns,
        darts_thrown=t.darts_thrown,
        marks=t.marks,
        points=t.points,
        misses=t.misses,
        skips_issued=t.skips_issued,
        times_skipped=t.times_skipped,
        ko_points_dealt=t.ko_points_dealt,
        ko_points_healed=t.ko_points_healed,
        eliminations=t.eliminations,
        pin_pushes=t.pin_pushes,
        marks_per_round=t.marks_per_round,
    )


def _active_match() -> CricketMatch:
    match = store.match()
    if match is None:
        raise HTTPException(status_code=404, detail="no active match")
    return match


def _outcome_to_dto(outcome: ActionOutcome) -> MatchStateDTO:
    if not outcome.accepted:
        raise HTTPException(
            status_code=409,
            detail={"reason": outcome.rejection.value, "detail": outcome.detail},
        )
    return _view_to_dto(outcome.view)


def _apply(action: Action) -> MatchStateDTO:
    with store.lock:
        outcome = _active_match().apply(action)
    return _outcome_to_dto(outcome)


@app.post("/match", response_model=MatchStateDTO)
def start_match(req: StartMatchRequest) -> MatchStateDTO:
    try:
        rules = MatchRules(
            points_rule=req.points_rule or settings.default_points_rule,
            ko_enabled=req.ko_enabled,
            pin_enabled=req.pin_enabled,
        )
        match = store.start_match(
            variant=req.variant,
            players=[Player(p.player_id, p.display_name) for p in req.players],
            rules=rules,
            ko_numbers=req.ko_numbers,
            auto_advance=settings.auto_advance,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return _view_to_dto(match.view())


@app.get("/match", response_model=MatchStateDTO)
def get_match() -> MatchStateDTO:
    return _view_to_dto(_active_match().view())


@app.post("/match/multiplier", response_model=MatchStateDTO)
def select_multiplier(req: MultiplierRequest) -> MatchStateDTO:
    with store.lock:
        view = _active_match().select_multiplier(req.multiplier)
    return _view_to_dto(view)


@app.post("/match/score", response_model=MatchStateDTO)
def score(req: ScoreRequest) -> MatchStateDTO:
    return _apply(Score(target=req.target, multiplier=req.multiplier))


@app.post("/match/miss", response_model=MatchStateDTO)
def miss() -> MatchStateDTO:
    return _apply(Miss())


@app.post("/match/skip", response_model=MatchStateDTO)
def skip(req: SkipRequest) -> MatchStateDTO:
    return _apply(Skip(target_id=req.target_id))


@app.post("/match/ko", response_model=MatchStateDTO)
def ko(req: KORequest) -> MatchStateDTO:
    return _apply(KO(target_id=req.target_id, multiplier=req.multiplier))


@app.post("/match/pin", response_model=MatchStateDTO)
def pin() -> MatchStateDTO:
    return _apply(Pin())


@app.post("/match/undo", response_model=MatchStateDTO)
def undo() -> MatchStateDTO:
    return _apply(Undo())


@app.post("/match/settle", response_model=MatchStateDTO)
def settle_turn() -> MatchStateDTO:
    with store.lock:
        view = _active_match().settle_turn()
    return _view_to_dto(view)


@app.get("/match/summary", response_model=SummaryDTO)
def match_summary() -> SummaryDTO:
    summary = _active_match().summary
    if summary is None:
        raise HTTPException(status_code=409, detail="match is not finished")
    return _summary_to_dto(summary)


@app.get("/match/tally", response_model=list[PlayerTallyDTO])
def match_tally() -> list[PlayerTallyDTO]:
    summary = _active_match().summary
    if summary is None:
        raise HTTPException(status_code=409, detail="match is not finished")
    return [_tally_to_dto(t) for t in tally(summary)]

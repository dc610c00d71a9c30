from app.cricket.engine import CricketMatch
from app.cricket.ledger import Player
from app.cricket.summary import tally
from app.cricket.targets import TARGETS, MatchVariant, Target


def _players(*ids: str) -> list[Player]:
    return [Player(pid, pid.upper()) for pid in ids]


def test_summary_emitted_on_pin_win() -> None:
    m = CricketMatch(variant=MatchVariant.SINGLES, players=_players("a", "b"))
    assert m.summary is None

    for target in TARGETS:
        m.throw_at(target, 3)
    for _ in range(3):
        m.pin()

    s = m.summary
    assert s is not None
    assert s.winner_id == "a"
    assert s.total_turns == 4
    assert s.variant is MatchVariant.SINGLES
    assert len(s.history) == 12
    assert s.final_ledger[0].total_marks == 27


def test_tally_rebuilt_from_history() -> None:
    m = CricketMatch(variant=MatchVariant.SINGLES, players=_players("a", "b"))
    # a: open turn with a skip, b serves it
    m.throw_at(Target.T20, 2)
    m.skip("b")
    m.miss()
    # a again (b skipped), closes everything over bonus turns
    m.throw_at(Target.T20, 1)
    for target in TARGETS[1:]:
        m.throw_at(target, 3)
    for _ in range(3):
        m.pin()

    a, b = tally(m.summary)
    assert a.player_id == "a"
    assert a.turns == 5
    assert a.darts_thrown == 15
    assert a.marks == 27
    assert a.misses == 1
    assert a.skips_issued == 1
    assert a.pin_pushes == 3
    assert a.marks_per_round == 27 / 5
    assert b.darts_thrown == 0
    assert b.times_skipped == 1

import pytest

from app.cricket.actions import Rejection
from app.cricket.engine import CricketMatch
from app.cricket.history import ActionKind, SlotKind
from app.cricket.ledger import Player
from app.cricket.targets import MatchRules, MatchVariant, PointsRule, Target


def _players(*ids: str) -> list[Player]:
    return [Player(pid, pid.upper()) for pid in ids]


def _singles(**kw) -> CricketMatch:
    return CricketMatch(variant=MatchVariant.SINGLES, players=_players("a", "b"), **kw)


def _pass_turn(m: CricketMatch) -> None:
    for _ in range(3 - m.view().dart_index):
        assert m.miss().accepted


def test_three_darts_rotate_to_next_player() -> None:
    m = _singles()
    m.throw_at(Target.T20, 1)
    m.miss()
    m.miss()

    v = m.view()
    assert v.current_player_id == "b"
    assert v.dart_index == 0
    assert v.turn.turn_number == 2
    assert [e.action for e in m.history][-1] is ActionKind.TURN_ADVANCE


def test_selected_multiplier_resets_after_each_dart() -> None:
    m = _singles()
    m.select_multiplier(3)
    assert m.view().turn.selected_multiplier == 3

    m.throw_at(Target.T19)
    v = m.view()
    assert v.entry("a").mark(Target.T19) == 3
    assert v.turn.selected_multiplier == 1


def test_points_scenario_head_to_head() -> None:
    m = _singles(rules=MatchRules(points_rule=PointsRule.SWAMP))

    # Both close 20.
    m.throw_at(Target.T20, 3)
    _pass_turn(m)
    m.throw_at(Target.T20, 3)
    _pass_turn(m)

    # Everyone has 20 closed: nothing left to score there.
    out = m.throw_at(Target.T20, 3)
    assert out.rejection is Rejection.TARGET_CLOSED
    assert m.view().entry("a").points == 0
    assert m.view().dart_index == 0

    # 19 still open for b: a's second triple is worth 3 x 19.
    m.throw_at(Target.T19, 3)
    out = m.throw_at(Target.T19, 3)
    assert out.accepted
    assert out.view.entry("a").mark(Target.T19) == 3
    assert out.view.entry("a").points == 57


def test_second_triple_twenty_scores_sixty_while_opponent_open() -> None:
    m = _singles()
    m.throw_at(Target.T20, 3)
    out = m.throw_at(Target.T20, 3)

    assert out.view.entry("a").points == 60
    assert m.history[-1].marks_added == 0
    assert m.history[-1].points_added == 60


def test_closed_target_rejected_without_points_rule() -> None:
    m = _singles(rules=MatchRules(points_rule=PointsRule.NO_POINT))
    m.throw_at(Target.BULL, 3)
    out = m.throw_at(Target.BULL, 1)
    assert out.rejection is Rejection.TARGET_CLOSED
    assert out.view.dart_index == 1


def test_mark_capping_under_stacked_multipliers() -> None:
    m = _singles(rules=MatchRules(points_rule=PointsRule.NO_POINT))
    m.throw_at(Target.T16, 2)
    m.throw_at(Target.T16, 3)
    assert m.view().entry("a").mark(Target.T16) == 3
    assert m.history[-1].marks_added == 1


def test_bonus_turn_after_three_scoring_darts() -> None:
    m = _singles()
    m.throw_at(Target.T20, 1)
    m.throw_at(Target.T19, 1)
    m.throw_at(Target.T18, 1)

    v = m.view()
    assert v.current_player_id == "a"
    assert v.dart_index == 0
    assert v.turn.turn_number == 2
    # No rotation took place, so nothing was logged for it.
    assert all(e.action is ActionKind.SCORE for e in m.history)


def test_miss_breaks_bonus_turn() -> None:
    m = _singles()
    m.throw_at(Target.T20, 1)
    m.throw_at(Target.T19, 1)
    m.miss()
    assert m.view().current_player_id == "b"


def test_turn_exhausted_without_auto_advance() -> None:
    m = _singles(auto_advance=False)
    _pass_turn(m)

    out = m.miss()
    assert out.rejection is Rejection.TURN_EXHAUSTED
    assert m.view().current_player_id == "a"

    v = m.settle_turn()
    assert v.current_player_id == "b"
    assert v.dart_index == 0


def test_skip_consumes_a_dart_and_passes_player_once() -> None:
    m = CricketMatch(variant=MatchVariant.TRIPLE_THREAT, players=_players("a", "b", "c"))
    out = m.skip("b")
    assert out.accepted
    assert out.view.dart_index == 1
    assert out.view.turn.slots[0].kind is SlotKind.SKIP
    assert out.view.turn.skipped == frozenset({"b"})

    m.miss()
    m.miss()
    v = m.view()
    assert v.current_player_id == "c"
    assert v.turn.skipped == frozenset()
    assert v.turn.served_skip == frozenset({"b"})
    assert v.turn.last_skipped_id is None

    _pass_turn(m)  # c
    _pass_turn(m)  # a
    v = m.view()
    assert v.current_player_id == "b"
    assert v.turn.served_skip == frozenset()


def test_cannot_skip_same_player_consecutively() -> None:
    m = CricketMatch(variant=MatchVariant.TRIPLE_THREAT, players=_players("a", "b", "c"))
    assert m.skip("b").accepted

    out = m.skip("b")
    assert out.rejection is Rejection.PARTICIPANT_INELIGIBLE
    assert out.view.dart_index == 1

    assert m.skip("c").accepted
    # Someone else was skipped in between: b is fair game again.
    assert m.skip("b").accepted


def test_cannot_skip_self_or_unknown() -> None:
    m = _singles()
    assert m.skip("a").rejection is Rejection.PARTICIPANT_INELIGIBLE
    assert m.skip("zed").rejection is Rejection.UNKNOWN_PARTICIPANT
    assert m.view().dart_index == 0


def test_everyone_skipped_terminates_in_one_lap() -> None:
    m = CricketMatch(variant=MatchVariant.TRIPLE_THREAT, players=_players("a", "b", "c"))
    m.skip("b")
    m.skip("c")
    m.miss()

    # b and c both serve their skip on the same lap; a throws again.
    v = m.view()
    assert v.current_player_id == "a"
    assert v.turn.skipped == frozenset()
    assert v.turn.served_skip == frozenset({"b", "c"})
    assert m.history[-1].skips_served == ("b", "c")

    _pass_turn(m)
    assert m.view().current_player_id == "b"
    assert m.view().turn.served_skip == frozenset({"c"})


def test_served_player_cannot_be_skipped_until_they_throw() -> None:
    m = _singles()
    m.skip("b")
    _pass_turn(m)
    v = m.view()
    assert v.current_player_id == "a"
    assert v.turn.served_skip == frozenset({"b"})

    out = m.skip("b")
    assert out.rejection is Rejection.PARTICIPANT_INELIGIBLE
    assert out.view.dart_index == 0

    # b gets a turn before a can skip them again.
    _pass_turn(m)
    assert m.view().current_player_id == "b"
    _pass_turn(m)
    assert m.skip("b").accepted


def test_cannot_skip_a_teammate() -> None:
    m = CricketMatch(variant=MatchVariant.TAG_TEAM, players=_players("a", "b", "c", "d"))
    out = m.skip("c")
    assert out.rejection is Rejection.PARTICIPANT_INELIGIBLE
    assert out.view.dart_index == 0
    assert m.skip("d").accepted


def test_tag_team_players_share_team_ledger() -> None:
    m = CricketMatch(variant=MatchVariant.TAG_TEAM, players=_players("a", "b", "c", "d"))
    v = m.view()
    assert [e.participant_id for e in v.ledger] == ["team-0", "team-1"]
    assert v.ledger[0].display_name == "A & C"

    m.throw_at(Target.T20, 3)
    _pass_turn(m)  # a
    _pass_turn(m)  # b
    assert m.view().current_player_id == "c"
    assert m.view().current_participant_id == "team-0"

    # c inherits a's closed 20 and scores on it while team-1 is open.
    m.throw_at(Target.T20, 3)
    assert m.view().entry("team-0").points == 60
    assert m.view().entry("team-1").points == 0


@pytest.mark.parametrize(
    "variant, ids",
    [
        (MatchVariant.TAG_TEAM, ("a", "b", "c")),
        (MatchVariant.SINGLES, ("a", "b", "c")),
        (MatchVariant.FATAL_4_WAY, ("a", "b", "c")),
    ],
)
def test_wrong_player_count_rejected(variant: MatchVariant, ids: tuple[str, ...]) -> None:
    with pytest.raises(ValueError):
        CricketMatch(variant=variant, players=_players(*ids))


def test_duplicate_players_and_unknown_ko_numbers_rejected() -> None:
    with pytest.raises(ValueError):
        CricketMatch(variant=MatchVariant.SINGLES, players=_players("a", "a"))
    with pytest.raises(ValueError):
        CricketMatch(
            variant=MatchVariant.TRIPLE_THREAT,
            players=_players("a", "b", "c"),
            ko_numbers={"zed": Target.T20},
        )


def test_invalid_multiplier_raises() -> None:
    m = _singles()
    with pytest.raises(ValueError):
        m.select_multiplier(4)

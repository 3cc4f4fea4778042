"""
Tests for the calculation service - handicap rules and best-ball match play.
"""
import pytest
from backend.services import calculation_service
from backend.services.calculation_service import (
    AppliedHandicap,
    HandicapTracker,
    MatchResult,
    PlayerHandicapHistory,
)


def _holes(*front, fill=None):
    """Card with the given leading holes and ``fill`` everywhere else."""
    return list(front) + [fill] * (18 - len(front))


# Rounding & totals
def test_round_half_up():
    """Halves round up, unlike Python's round()."""
    assert calculation_service.round_half_up(2.5) == 3
    assert calculation_service.round_half_up(3.5) == 4
    assert calculation_service.round_half_up(2.49) == 2
    assert calculation_service.round_half_up(4.0) == 4
    assert calculation_service.round_half_up(0) == 0


def test_normalize_holes_treats_zero_as_missing():
    holes = calculation_service.normalize_holes([4, 0, None, 5])
    assert len(holes) == 18
    assert holes[:4] == [4, None, None, 5]
    assert holes[4:] == [None] * 14


def test_calculate_round_totals():
    holes = [4] * 9 + [5] * 9
    assert calculation_service.calculate_round_totals(holes) == (36, 45, 81)


def test_calculate_round_totals_skips_missing_holes():
    holes = _holes(4, 4, None, 3)
    assert calculation_service.calculate_round_totals(holes) == (11, 0, 11)


def test_has_hole_scores():
    assert calculation_service.has_hole_scores(_holes(4)) is True
    assert calculation_service.has_hole_scores([None] * 18) is False
    assert calculation_service.has_hole_scores([0] * 18) is False
    assert calculation_service.has_hole_scores(None) is False


# Raw handicap
def test_round_low_ignores_missing_totals():
    assert calculation_service.calculate_round_low([80, None, 72, 75]) == 72
    assert calculation_service.calculate_round_low([None, None]) is None
    assert calculation_service.calculate_round_low([]) is None


def test_raw_handicaps_for_a_round():
    """Totals 72/75/80 give raw handicaps 0/3/8."""
    low = calculation_service.calculate_round_low([72, 75, 80])
    raws = [calculation_service.calculate_raw_handicap(t, low) for t in (72, 75, 80)]
    assert raws == [0, 3, 8]


@pytest.mark.parametrize("totals", [
    [72, 75, 80],
    [60, 120, 61],
    [90, 90, 90],
    [70, 95, 96, 140],
])
def test_raw_handicap_bounds(totals):
    """Round low always gets 0 and nobody leaves the 0..25 range."""
    low = calculation_service.calculate_round_low(totals)
    raws = [calculation_service.calculate_raw_handicap(t, low) for t in totals]
    assert raws[totals.index(min(totals))] == 0
    assert all(0 <= r <= 25 for r in raws)


def test_raw_handicap_is_capped():
    assert calculation_service.calculate_raw_handicap(110, 70) == 25


# Baseline & progressive
def test_calculate_average():
    assert calculation_service.calculate_average([0, 3, 8]) == 4  # 3.67
    assert calculation_service.calculate_average([1, 2]) == 2  # 1.5 rounds up
    assert calculation_service.calculate_average([]) == 0


def test_calculate_baseline_uses_first_three_rounds():
    assert calculation_service.calculate_baseline([3, 4, 6, 20]) == 4  # 13/3 = 4.33


def test_calculate_baseline_needs_three_rounds():
    with pytest.raises(ValueError, match="at least 3"):
        calculation_service.calculate_baseline([3, 4])


def test_calculate_weighted_score():
    assert calculation_service.calculate_weighted_score(80, 8) == 72
    assert calculation_service.calculate_weighted_score(80, None) == 80
    assert calculation_service.calculate_weighted_score(None, 8) is None


def test_is_week_complete():
    assert calculation_service.is_week_complete([1, 2, 3, 4], [1, 2, 3]) is False
    assert calculation_service.is_week_complete([1, 2, 3, 4], [1, 2, 3, 4]) is True
    # A stray submission from outside the league does not count
    assert calculation_service.is_week_complete([1, 2], [1, 99]) is False
    assert calculation_service.is_week_complete([], [1]) is False


# PlayerHandicapHistory
def _history(raws):
    history = PlayerHandicapHistory(player_id=1)
    for week_number, raw in raws.items():
        history.record_raw(week_number, raw)
    return history


def test_early_weeks_are_zero_until_baseline():
    history = _history({1: 4})
    assert history.applied_for_week(1, set()) == AppliedHandicap(0)
    assert history.applied_for_week(2, {1}) == AppliedHandicap(0)
    assert history.applied_for_week(3, {1, 2}) == AppliedHandicap(0)


def test_applied_is_unknown_while_prior_week_incomplete():
    history = _history({1: 4, 2: 6})
    assert history.applied_for_week(2, set()) is None
    assert history.applied_for_week(6, {1, 2, 3, 4}) is None


def test_week_four_waits_for_baseline():
    history = _history({1: 4, 2: 6})
    assert history.applied_for_week(4, {1, 2}) is None


def test_baseline_applied_to_weeks_one_through_four():
    history = _history({1: 3, 2: 4, 3: 6})
    completed = {1, 2, 3}
    applied = [history.applied_for_week(n, completed) for n in (1, 2, 3, 4)]
    assert {a.value for a in applied} == {4}
    assert [a.is_baseline for a in applied] == [True, True, True, False]


def test_baseline_is_zero_without_three_rounds():
    history = _history({1: 3, 3: 6})
    completed = {1, 2, 3}
    applied = [history.applied_for_week(n, completed) for n in (1, 2, 3, 4)]
    # A player who missed a baseline round gets 0 and no baseline flag
    assert applied == [AppliedHandicap(0)] * 4
    assert not any(a.is_baseline for a in applied)


def test_progressive_average_of_prior_rounds():
    history = _history({1: 3, 2: 4, 3: 6, 4: 10, 5: 2})
    completed = {1, 2, 3, 4, 5}
    assert history.applied_for_week(5, completed) == AppliedHandicap(6)  # 23 / 4 = 5.75
    assert history.applied_for_week(6, completed) == AppliedHandicap(5)  # 25 / 5


def test_progressive_needs_three_rounds():
    history = _history({1: 3, 4: 10})
    assert history.applied_for_week(5, {1, 2, 3, 4}) == AppliedHandicap(0)


def test_progressive_skips_missed_weeks():
    history = _history({1: 2, 2: 4, 4: 9})
    assert history.applied_for_week(5, {1, 2, 3, 4}) == AppliedHandicap(5)  # 15 / 3


# HandicapTracker
def test_tracker_record_round():
    tracker = HandicapTracker()
    raws = tracker.record_round(1, {10: 72, 11: 75, 12: 80})
    assert raws == {10: 0, 11: 3, 12: 8}
    assert tracker.get_player(12).raw_by_week == {1: 8}


def test_tracker_record_round_without_totals():
    tracker = HandicapTracker()
    assert tracker.record_round(1, {}) == {}


def test_tracker_three_week_baseline_scenario():
    """Three weeks with similar spreads give each player the mean of their raws on weeks 1-4."""
    tracker = HandicapTracker()
    tracker.record_round(1, {1: 72, 2: 75, 3: 80})
    tracker.record_round(2, {1: 74, 2: 76, 3: 83})
    tracker.record_round(3, {1: 73, 2: 78, 3: 81})

    applied = tracker.applied_handicaps([1, 2, 3], [1, 2, 3, 4], {1, 2, 3})

    expected = {1: 0, 2: 3, 3: 8}  # (0+0+0)/3, (3+2+5)/3, (8+9+8)/3
    for player_id, value in expected.items():
        assert {applied[(player_id, n)].value for n in (1, 2, 3, 4)} == {value}


def test_tracker_is_deterministic():
    tracker = HandicapTracker()
    for week_number in range(1, 6):
        tracker.record_round(week_number, {1: 70 + week_number, 2: 80, 3: 90 - week_number})
    completed = {1, 2, 3, 4, 5}
    first = tracker.applied_handicaps([1, 2, 3], range(1, 7), completed)
    second = tracker.applied_handicaps([1, 2, 3], range(1, 7), completed)
    assert first == second


# Best-ball match play
def test_best_ball_picks_team_low():
    cards = [_holes(4, 6), _holes(5, 3)]
    assert calculation_service.best_ball(cards, 0) == 4
    assert calculation_service.best_ball(cards, 1) == 3
    assert calculation_service.best_ball(cards, 5) is None


def test_lower_best_ball_wins_the_hole():
    """Team A (4, 5) against team B (3, 3): B takes the hole."""
    team_a = [_holes(4), _holes(5)]
    team_b = [_holes(3), _holes(3)]
    assert calculation_service.calculate_match_play(team_a, team_b) == (0, 1)


def test_equal_best_ball_halves_the_hole():
    """Team X (3, 4) against team Y (3, 5): both lows are 3, no point."""
    team_x = [_holes(3), _holes(4)]
    team_y = [_holes(3), _holes(5)]
    assert calculation_service.calculate_match_play(team_x, team_y) == (0, 0)


def test_match_play_skips_holes_without_scores():
    team1 = [_holes(4, None, 3), _holes(5, None, 4)]
    team2 = [_holes(5, 2, 4), _holes(6, 3, 5)]
    assert calculation_service.calculate_match_play(team1, team2) == (2, 0)


def test_resolve_team_holes_substitutes_partner():
    card = _holes(4, 5)
    assert calculation_service.resolve_team_holes(card, None) == (
        calculation_service.normalize_holes(card),
        calculation_service.normalize_holes(card),
    )
    assert calculation_service.resolve_team_holes([None] * 18, card)[0][:2] == [4, 5]
    assert calculation_service.resolve_team_holes(None, [0] * 18) is None


def test_calculate_winner():
    assert calculation_service.calculate_winner(5, 3) == 1
    assert calculation_service.calculate_winner(3, 5) == 2
    assert calculation_service.calculate_winner(4, 4) == -1


def test_score_best_ball_match():
    team1 = ([4] * 18, [5] * 18)
    team2 = ([5] * 9 + [3] * 9, None)
    result = calculation_service.score_best_ball_match(team1, team2)
    assert result == MatchResult(team1_points=9, team2_points=9, winner=-1)


def test_score_best_ball_match_without_hole_data():
    assert calculation_service.score_best_ball_match(([4] * 18, None), (None, None)) is None

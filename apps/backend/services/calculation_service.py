"""
Handicap and match-play calculation service.
Pure scoring rules with no database access; the data layer feeds them
plain values and persists what they return.
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple
from backend.utils.constants import (
    BASELINE_APPLIED_THROUGH_WEEK,
    BASELINE_WEEKS,
    FRONT_NINE,
    HOLES_PER_ROUND,
    MAX_RAW_HANDICAP,
    MIN_ROUNDS_FOR_HANDICAP,
)


# ============================================================================
# Helper Functions (Rounding & Totals)
# ============================================================================

def round_half_up(value: float) -> int:
    """
    Standard rounding: .5 and above rounds up.

    Python's round() uses banker's rounding (round(2.5) == 2), which would
    disagree with how the league rounds handicaps.
    """
    return int(math.floor(value + 0.5))


def normalize_hole(strokes: Optional[int]) -> Optional[int]:
    """A hole with no strokes recorded is None; stored zeros mean the same thing."""
    if strokes is None or strokes <= 0:
        return None
    return int(strokes)


def normalize_holes(holes: Sequence[Optional[int]]) -> List[Optional[int]]:
    """Normalize an 18-hole card, padding short input with unrecorded holes."""
    normalized = [normalize_hole(h) for h in list(holes)[:HOLES_PER_ROUND]]
    normalized.extend([None] * (HOLES_PER_ROUND - len(normalized)))
    return normalized


def calculate_round_totals(holes: Sequence[Optional[int]]) -> Tuple[int, int, int]:
    """
    Calculate front nine, back nine and total for a card.

    Args:
        holes: 18 hole scores, None where not recorded

    Returns:
        Tuple of (front9, back9, total)
    """
    front9 = sum(h or 0 for h in holes[:FRONT_NINE])
    back9 = sum(h or 0 for h in holes[FRONT_NINE:HOLES_PER_ROUND])
    return front9, back9, front9 + back9


def has_hole_scores(holes: Optional[Sequence[Optional[int]]]) -> bool:
    """Check whether a card has any hole-by-hole data."""
    if not holes:
        return False
    return any(normalize_hole(h) is not None for h in holes)


# ============================================================================
# Raw Handicap, Baseline, Progressive Average
# ============================================================================

def calculate_round_low(totals: Iterable[Optional[int]]) -> Optional[int]:
    """Lowest submitted total for a round, or None when nobody has submitted."""
    submitted = [t for t in totals if t is not None]
    return min(submitted) if submitted else None


def calculate_raw_handicap(player_total: int, round_low: int) -> int:
    """
    Calculate raw handicap for a player in a round.

    Raw handicap = (player total - round low), rounded, clamped to 0..25.
    The round-low player always gets 0.
    """
    raw = round_half_up(player_total - round_low)
    return max(0, min(MAX_RAW_HANDICAP, raw))


def calculate_average(raw_handicaps: Sequence[int]) -> int:
    """Average of raw handicaps with standard rounding; 0 for an empty list."""
    if not raw_handicaps:
        return 0
    return round_half_up(sum(raw_handicaps) / len(raw_handicaps))


def calculate_baseline(raw_handicaps: Sequence[int]) -> int:
    """
    Calculate baseline handicap from the first three rounds' raw handicaps.

    Raises:
        ValueError: If fewer than three raw handicaps are given
    """
    if len(raw_handicaps) < BASELINE_WEEKS:
        raise ValueError(f"Need at least {BASELINE_WEEKS} rounds to calculate baseline")
    return calculate_average(list(raw_handicaps)[:BASELINE_WEEKS])


def calculate_weighted_score(total: Optional[int], applied_handicap: Optional[int]) -> Optional[int]:
    """Weighted score = total - applied handicap (0 while unknown), rounded."""
    if total is None:
        return None
    return round_half_up(total - (applied_handicap or 0))


def is_week_complete(league_player_ids: Iterable[int], submitted_player_ids: Iterable[int]) -> bool:
    """
    A week is complete when every league player has a submitted total.

    Submissions from players outside the league are ignored. A league with
    no players never has a complete week.
    """
    league_players = set(league_player_ids)
    if not league_players:
        return False
    return league_players <= set(submitted_player_ids)


# ============================================================================
# PlayerHandicapHistory Class
# ============================================================================

@dataclass(frozen=True)
class AppliedHandicap:
    """Applied handicap for one player in one week number."""

    value: int
    is_baseline: bool = False


class PlayerHandicapHistory:
    """Raw handicaps of a single player keyed by regular-season week number."""

    def __init__(self, player_id: int):
        self.player_id = player_id
        self.raw_by_week: Dict[int, int] = {}

    def record_raw(self, week_number: int, raw_handicap: int) -> None:
        self.raw_by_week[week_number] = raw_handicap

    def raw_handicaps_through(self, week_number: int) -> List[int]:
        """Raw handicaps for weeks 1..week_number that exist, in week order."""
        return [self.raw_by_week[w] for w in sorted(self.raw_by_week) if 1 <= w <= week_number]

    def baseline(self) -> Optional[int]:
        """Baseline from weeks 1-3, or None if any of those rounds is missing."""
        raws = self.raw_handicaps_through(BASELINE_WEEKS)
        if len(raws) < BASELINE_WEEKS:
            return None
        return calculate_baseline(raws)

    def progressive(self, week_number: int) -> int:
        """Average of every raw handicap before week_number; 0 with too few rounds."""
        raws = self.raw_handicaps_through(week_number - 1)
        if len(raws) < MIN_ROUNDS_FOR_HANDICAP:
            return 0
        return calculate_average(raws)

    def applied_for_week(self, week_number: int, completed_weeks: Set[int]) -> Optional[AppliedHandicap]:
        """
        Applied handicap for a week, or None when it cannot be computed yet.

        - Weeks 1-3: 0 until week 3 is complete league-wide
        - Baseline trigger (week 3 complete): baseline for weeks 1-4
        - Week 5+: progressive average of all prior rounds, only once the
          prior week is complete
        Players without three rounds get 0 wherever a value is due.
        """
        baseline_ready = BASELINE_WEEKS in completed_weeks
        prior_complete = week_number == 1 or (week_number - 1) in completed_weeks

        if week_number <= BASELINE_APPLIED_THROUGH_WEEK and baseline_ready:
            baseline = self.baseline()
            return AppliedHandicap(
                value=baseline if baseline is not None else 0,
                is_baseline=baseline is not None and week_number <= BASELINE_WEEKS,
            )

        if not prior_complete:
            return None

        if week_number <= BASELINE_WEEKS:
            return AppliedHandicap(value=0)

        if week_number == BASELINE_APPLIED_THROUGH_WEEK:
            # Prior week (3) complete implies baseline_ready, handled above
            return None

        return AppliedHandicap(value=self.progressive(week_number))


# ============================================================================
# HandicapTracker Class
# ============================================================================

class HandicapTracker:
    """Tracks raw handicap histories for every player in a league."""

    def __init__(self):
        self.players: Dict[int, PlayerHandicapHistory] = {}

    def get_player(self, player_id: int) -> PlayerHandicapHistory:
        """Get or create a player's history."""
        if player_id not in self.players:
            self.players[player_id] = PlayerHandicapHistory(player_id)
        return self.players[player_id]

    def record_round(self, week_number: int, player_totals: Dict[int, int]) -> Dict[int, int]:
        """
        Record one round's raw handicaps from player totals.

        Args:
            week_number: Regular-season week number
            player_totals: Mapping of player ID to that round's total

        Returns:
            Mapping of player ID to raw handicap
        """
        round_low = calculate_round_low(player_totals.values())
        if round_low is None:
            return {}
        raws = {}
        for player_id, total in player_totals.items():
            raw = calculate_raw_handicap(total, round_low)
            self.get_player(player_id).record_raw(week_number, raw)
            raws[player_id] = raw
        return raws

    def applied_handicaps(
        self,
        player_ids: Iterable[int],
        week_numbers: Iterable[int],
        completed_weeks: Set[int],
    ) -> Dict[Tuple[int, int], Optional[AppliedHandicap]]:
        """
        Compute applied handicaps for every (player, week number) pair.

        The result depends only on the recorded raw handicaps and the set of
        completed weeks, so recomputing from the same data always yields the
        same values.
        """
        result: Dict[Tuple[int, int], Optional[AppliedHandicap]] = {}
        for player_id in player_ids:
            history = self.get_player(player_id)
            for week_number in week_numbers:
                result[(player_id, week_number)] = history.applied_for_week(week_number, completed_weeks)
        return result


# ============================================================================
# Best-Ball Match Play
# ============================================================================

def resolve_team_holes(
    player1_holes: Optional[Sequence[Optional[int]]],
    player2_holes: Optional[Sequence[Optional[int]]],
) -> Optional[Tuple[List[Optional[int]], List[Optional[int]]]]:
    """
    Get the two cards a team plays with for best ball.

    If only one golfer has hole-by-hole data, that card fills both slots.
    Returns None when neither golfer has hole data (team cannot be scored).
    """
    player1_has_holes = has_hole_scores(player1_holes)
    player2_has_holes = has_hole_scores(player2_holes)

    if player1_has_holes and player2_has_holes:
        return normalize_holes(player1_holes), normalize_holes(player2_holes)
    if player1_has_holes:
        card = normalize_holes(player1_holes)
        return card, card
    if player2_has_holes:
        card = normalize_holes(player2_holes)
        return card, card
    return None


def best_ball(cards: Sequence[Sequence[Optional[int]]], hole_index: int) -> Optional[int]:
    """Lowest valid score a team has on a hole, or None if nobody recorded it."""
    valid = [normalize_hole(card[hole_index]) for card in cards]
    valid = [s for s in valid if s is not None]
    return min(valid) if valid else None


def calculate_match_play(
    team1_cards: Sequence[Sequence[Optional[int]]],
    team2_cards: Sequence[Sequence[Optional[int]]],
) -> Tuple[int, int]:
    """
    Calculate best-ball match play points.

    For each hole the lower team best ball wins a point; halved holes score
    nothing and do not carry over. Holes where either team has no score are
    skipped.

    Returns:
        Tuple of (team1_points, team2_points)
    """
    team1_points = 0
    team2_points = 0

    for hole_index in range(HOLES_PER_ROUND):
        team1_low = best_ball(team1_cards, hole_index)
        team2_low = best_ball(team2_cards, hole_index)

        if team1_low is None or team2_low is None:
            continue

        if team1_low < team2_low:
            team1_points += 1
        elif team2_low < team1_low:
            team2_points += 1

    return team1_points, team2_points


def calculate_winner(team1_points: int, team2_points: int) -> int:
    """
    Determine winner: 1 = team1, 2 = team2, -1 = tie.

    Args:
        team1_points: Holes won by team 1
        team2_points: Holes won by team 2

    Returns:
        Winner indicator (1, 2, or -1 for tie)
    """
    if team1_points > team2_points:
        return 1
    elif team2_points > team1_points:
        return 2
    else:
        return -1


@dataclass(frozen=True)
class MatchResult:
    """Outcome of a best-ball match."""

    team1_points: int
    team2_points: int
    winner: int  # 1, 2 or -1 for a tie


def score_best_ball_match(
    team1_player_holes: Tuple[Optional[Sequence[Optional[int]]], Optional[Sequence[Optional[int]]]],
    team2_player_holes: Tuple[Optional[Sequence[Optional[int]]], Optional[Sequence[Optional[int]]]],
) -> Optional[MatchResult]:
    """
    Score a match between two teams from their golfers' cards.

    Returns None when either team has no hole-by-hole data at all, in which
    case the match stays unscored.
    """
    team1_cards = resolve_team_holes(*team1_player_holes)
    team2_cards = resolve_team_holes(*team2_player_holes)
    if team1_cards is None or team2_cards is None:
        return None

    team1_points, team2_points = calculate_match_play(team1_cards, team2_cards)
    return MatchResult(
        team1_points=team1_points,
        team2_points=team2_points,
        winner=calculate_winner(team1_points, team2_points),
    )

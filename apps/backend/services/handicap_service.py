"""
Progressive handicap engine.

Recomputes raw handicaps, applied handicaps and weighted scores for a league
from the stored scores. Every run derives the same values from the same
scores, so the engine can be re-run any number of times (after a late score
correction, from the recalculation queue, or by hand) and converges to one
stored result.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from backend.database.models import Handicap, Player, Score, Week
from backend.services import calculation_service, data_service
from backend.services.calculation_service import AppliedHandicap, HandicapTracker
from backend.utils.constants import BASELINE_APPLIED_THROUGH_WEEK, UPDATE_CHUNK_SIZE
from backend.utils.datetime_utils import recency_key

logger = logging.getLogger(__name__)

# (week_number, is_championship)
WeekKey = Tuple[int, bool]


# ============================================================================
# League Snapshot
# ============================================================================

class LeagueSnapshot:
    """
    In-memory view of one league's weeks, scores and handicap rows.

    Duplicate week rows are grouped by (week_number, is_championship) and the
    most recently written score per player and week key is authoritative.
    """

    def __init__(
        self,
        league_id: int,
        player_ids: List[int],
        weeks: List[Week],
        scores: List[Score],
        handicaps: List[Handicap],
    ):
        self.league_id = league_id
        self.player_ids = player_ids
        self.weeks_by_id: Dict[int, Week] = {w.id: w for w in weeks}

        self.week_rows: Dict[WeekKey, List[Week]] = defaultdict(list)
        for week in sorted(weeks, key=lambda w: w.id):
            self.week_rows[self.key_for_week(week)].append(week)

        self.scores = scores
        self.authoritative: Dict[Tuple[int, WeekKey], Score] = data_service.latest_by_key(
            scores, lambda s: (s.player_id, self.key_for_week(self.weeks_by_id[s.week_id]))
        )

        self.handicaps: Dict[Tuple[int, int], Handicap] = {
            (h.player_id, h.week_id): h for h in handicaps
        }

    @staticmethod
    def key_for_week(week: Week) -> WeekKey:
        return (week.week_number, bool(week.is_championship))

    def week_numbers(self, is_championship: bool = False) -> List[int]:
        return sorted(number for number, champ in self.week_rows if champ == is_championship)

    def submitted_player_ids(self, week_key: WeekKey) -> Set[int]:
        """Players with a non-null total on any row of this week number."""
        week_ids = {w.id for w in self.week_rows.get(week_key, [])}
        return {s.player_id for s in self.scores if s.week_id in week_ids and s.total is not None}

    def is_week_complete(self, week_number: int, is_championship: bool = False) -> bool:
        week_key = (week_number, is_championship)
        if not self.week_rows.get(week_key):
            return False
        return calculation_service.is_week_complete(self.player_ids, self.submitted_player_ids(week_key))

    def completed_weeks(self, is_championship: bool = False) -> Set[int]:
        return {n for n in self.week_numbers(is_championship) if self.is_week_complete(n, is_championship)}

    def authoritative_scores(self) -> List[Score]:
        return list(self.authoritative.values())

    def round_lows(self) -> Dict[int, Optional[int]]:
        """Round low per week row, over authoritative scores recorded on that row."""
        totals_by_week: Dict[int, List[int]] = defaultdict(list)
        for score in self.authoritative.values():
            if score.total is not None:
                totals_by_week[score.week_id].append(score.total)
        return {week_id: calculation_service.calculate_round_low(totals) for week_id, totals in totals_by_week.items()}


async def load_league_snapshot(session: AsyncSession, league_id: int) -> LeagueSnapshot:
    """
    Load everything the engine needs for a league.

    Raises:
        data_service.LeagueNotFoundError: If the league does not exist
    """
    await data_service.get_league_model(session, league_id)

    result = await session.execute(
        select(Player.id).where(Player.league_id == league_id).order_by(Player.id)
    )
    player_ids = list(result.scalars().all())

    result = await session.execute(select(Week).where(Week.league_id == league_id))
    weeks = list(result.scalars().all())
    week_ids = [w.id for w in weeks]

    scores: List[Score] = []
    handicaps: List[Handicap] = []
    if week_ids:
        result = await session.execute(select(Score).where(Score.week_id.in_(week_ids)))
        scores = list(result.scalars().all())
        result = await session.execute(select(Handicap).where(Handicap.week_id.in_(week_ids)))
        handicaps = list(result.scalars().all())

    return LeagueSnapshot(league_id, player_ids, weeks, scores, handicaps)


# ============================================================================
# Completion Gate & Raw Handicap Queries
# ============================================================================

async def all_players_submitted(
    session: AsyncSession,
    league_id: int,
    week_number: int,
    is_championship: bool = False,
) -> bool:
    """
    Check whether every league player has a submitted total for a week number.

    Aggregates across every week row sharing the week number, so duplicate
    rows do not hide submissions. A league without players, or a week number
    without any row, is never complete.
    """
    result = await session.execute(select(Player.id).where(Player.league_id == league_id))
    player_ids = list(result.scalars().all())
    if not player_ids:
        return False

    result = await session.execute(
        select(Week.id).where(
            Week.league_id == league_id,
            Week.week_number == week_number,
            Week.is_championship == is_championship,
        )
    )
    week_ids = list(result.scalars().all())
    if not week_ids:
        return False

    result = await session.execute(
        select(Score.player_id)
        .where(Score.week_id.in_(week_ids), Score.total.is_not(None))
        .distinct()
    )
    submitted = result.scalars().all()
    return calculation_service.is_week_complete(player_ids, submitted)


async def get_player_raw_handicaps(session: AsyncSession, player_id: int, through_week: int) -> List[int]:
    """
    Get a player's stored raw handicaps for regular-season weeks 1..through_week.

    One value per week number; with duplicate week rows the most recently
    written handicap row wins.
    """
    result = await session.execute(
        select(Handicap, Week.week_number)
        .join(Week, Handicap.week_id == Week.id)
        .where(
            Handicap.player_id == player_id,
            Handicap.raw_handicap.is_not(None),
            Week.is_championship.is_(False),
            Week.week_number >= 1,
            Week.week_number <= through_week,
        )
    )
    rows = result.all()
    week_number_by_id = {handicap.id: week_number for handicap, week_number in rows}
    latest = data_service.latest_by_key((h for h, _ in rows), lambda h: week_number_by_id[h.id])
    return [latest[n].raw_handicap for n in sorted(latest)]


async def update_round_raw_handicaps(session: AsyncSession, week_id: int) -> Dict[int, int]:
    """
    Store raw handicaps for every player with a total on one week row.

    The round low can move with each submission, so the whole round is
    rewritten. Does not commit.

    Returns:
        Mapping of player ID to raw handicap
    """
    result = await session.execute(select(Score).where(Score.week_id == week_id))
    latest = data_service.latest_by_key(result.scalars().all(), lambda s: s.player_id)
    totals = {player_id: s.total for player_id, s in latest.items() if s.total is not None}
    round_low = calculation_service.calculate_round_low(totals.values())
    if round_low is None:
        return {}

    result = await session.execute(select(Handicap).where(Handicap.week_id == week_id))
    rows = {h.player_id: h for h in result.scalars().all()}

    raws = {}
    for player_id, total in totals.items():
        raw = calculation_service.calculate_raw_handicap(total, round_low)
        handicap = rows.get(player_id)
        if handicap is None:
            handicap = Handicap(player_id=player_id, week_id=week_id, is_baseline=False)
            session.add(handicap)
        handicap.raw_handicap = raw
        raws[player_id] = raw
    await session.flush()
    return raws


async def get_applied_handicap(session: AsyncSession, player_id: int, week_id: int) -> Optional[int]:
    """Stored applied handicap for a player on a week row, None while unknown."""
    result = await session.execute(
        select(Handicap.applied_handicap).where(Handicap.player_id == player_id, Handicap.week_id == week_id)
    )
    return result.scalar_one_or_none()


# ============================================================================
# Recompute Engine
# ============================================================================

def build_tracker(snapshot: LeagueSnapshot) -> Tuple[HandicapTracker, Dict[Tuple[int, int], int]]:
    """
    Compute raw handicaps from authoritative scores.

    Returns:
        Tuple of (tracker with regular-season history, raw handicap per
        (player_id, week_id) for every authoritative score with a total)
    """
    tracker = HandicapTracker()
    round_lows = snapshot.round_lows()
    raw_by_row: Dict[Tuple[int, int], int] = {}

    for (player_id, (week_number, is_championship)), score in snapshot.authoritative.items():
        round_low = round_lows.get(score.week_id)
        if score.total is None or round_low is None:
            continue
        raw = calculation_service.calculate_raw_handicap(score.total, round_low)
        raw_by_row[(player_id, score.week_id)] = raw
        if not is_championship:
            tracker.get_player(player_id).record_raw(week_number, raw)

    return tracker, raw_by_row


def first_affected_week(from_week: int) -> int:
    """Any change in weeks 1-4 can move the baseline, so those recompute together."""
    if from_week <= BASELINE_APPLIED_THROUGH_WEEK:
        return 1
    return from_week


def _handicap_row(session: AsyncSession, snapshot: LeagueSnapshot, player_id: int, week_id: int) -> Handicap:
    """Get or create the handicap row for (player, week row)."""
    handicap = snapshot.handicaps.get((player_id, week_id))
    if handicap is None:
        handicap = Handicap(player_id=player_id, week_id=week_id, is_baseline=False)
        session.add(handicap)
        snapshot.handicaps[(player_id, week_id)] = handicap
    return handicap


def _assign(record, **values) -> bool:
    """Set attributes that differ; report whether anything changed."""
    changed = False
    for name, value in values.items():
        if getattr(record, name) != value:
            setattr(record, name, value)
            changed = True
    return changed


async def _flush_every(session: AsyncSession, modified: int) -> None:
    if modified and modified % UPDATE_CHUNK_SIZE == 0:
        await session.flush()


async def recalculate_league_handicaps(
    session: AsyncSession,
    league_id: int,
    from_week: int = 1,
    commit: bool = True,
) -> Dict:
    """
    Recompute raw handicaps, applied handicaps and weighted scores for a league.

    Week numbers before the first affected week are left untouched; a change
    anywhere in weeks 1-4 recomputes from week 1 because the baseline spans
    those weeks. Applied handicaps for weeks whose prior week is not complete
    are cleared back to "not yet computed".

    Args:
        session: Database session
        league_id: League ID
        from_week: Earliest week number whose scores changed
        commit: Commit the transaction when done

    Returns:
        Dict with counts of handicap rows and scores updated
    """
    snapshot = await load_league_snapshot(session, league_id)
    start_week = first_affected_week(from_week)
    tracker, raw_by_row = build_tracker(snapshot)
    completed = snapshot.completed_weeks(is_championship=False)

    handicaps_updated = 0
    applied_by_key: Dict[Tuple[int, WeekKey], Optional[AppliedHandicap]] = {}

    for week_key, rows in sorted(snapshot.week_rows.items()):
        week_number, is_championship = week_key
        if week_number < start_week:
            continue
        for player_id in snapshot.player_ids:
            # Championship rounds take the same handicap as the regular week number
            applied = tracker.get_player(player_id).applied_for_week(week_number, completed)
            applied_by_key[(player_id, week_key)] = applied

            for week in rows:
                raw = raw_by_row.get((player_id, week.id))
                existing = snapshot.handicaps.get((player_id, week.id))
                if applied is None and raw is None and existing is None:
                    continue

                handicap = _handicap_row(session, snapshot, player_id, week.id)
                changed = _assign(
                    handicap,
                    raw_handicap=raw,
                    applied_handicap=applied.value if applied else None,
                    handicap=applied.value if applied else None,
                    is_baseline=applied.is_baseline if applied else False,
                )
                if changed:
                    handicaps_updated += 1
                    await _flush_every(session, handicaps_updated)

    scores_updated = 0
    for (player_id, week_key), score in snapshot.authoritative.items():
        if week_key[0] < start_week:
            continue
        applied = applied_by_key.get((player_id, week_key))
        weighted = calculation_service.calculate_weighted_score(score.total, applied.value if applied else None)
        if _assign(score, weighted_score=weighted):
            scores_updated += 1
            await _flush_every(session, scores_updated)

    if commit:
        await session.commit()
    else:
        await session.flush()

    logger.info(
        "Recalculated handicaps for league %s from week %s: %s handicap rows, %s scores updated",
        league_id, start_week, handicaps_updated, scores_updated,
    )
    return {
        "league_id": league_id,
        "from_week": start_week,
        "completed_weeks": sorted(completed),
        "handicaps_updated": handicaps_updated,
        "scores_updated": scores_updated,
    }


async def recalculate_all_handicaps(session: AsyncSession, league_id: int) -> Dict:
    """Full league recompute: raw, baseline, progressive and weighted scores."""
    return await recalculate_league_handicaps(session, league_id, from_week=1)


# ============================================================================
# Weighted Score Updater
# ============================================================================

def _effective_handicap(handicaps: Iterable[Handicap]) -> Optional[int]:
    """Applied value of the most recently written row, falling back to a manual handicap."""
    rows = sorted(handicaps, key=recency_key, reverse=True)
    for row in rows:
        if row.applied_handicap is not None:
            return row.applied_handicap
    for row in rows:
        if row.handicap is not None:
            return row.handicap
    return None


async def ensure_all_weighted_scores(session: AsyncSession, league_id: int) -> Dict:
    """
    Refresh weighted scores from the stored handicaps without recomputing them.

    Uses the applied handicap of the week number (or a manual handicap where
    no applied value exists, 0 when neither is known).
    """
    snapshot = await load_league_snapshot(session, league_id)

    handicaps_by_key: Dict[Tuple[int, WeekKey], List[Handicap]] = defaultdict(list)
    for (player_id, week_id), handicap in snapshot.handicaps.items():
        week = snapshot.weeks_by_id[week_id]
        handicaps_by_key[(player_id, snapshot.key_for_week(week))].append(handicap)

    scores = snapshot.authoritative_scores()
    updated = 0
    for chunk in data_service._chunks(scores, UPDATE_CHUNK_SIZE):
        for score in chunk:
            week_key = snapshot.key_for_week(snapshot.weeks_by_id[score.week_id])
            h = _effective_handicap(handicaps_by_key.get((score.player_id, week_key), []))
            if _assign(score, weighted_score=calculation_service.calculate_weighted_score(score.total, h)):
                updated += 1
        await session.flush()

    await session.commit()
    logger.info("Refreshed weighted scores for league %s: %s updated", league_id, updated)
    return {"league_id": league_id, "scores_checked": len(scores), "scores_updated": updated}


async def set_manual_handicap(
    session: AsyncSession,
    player_id: int,
    week_id: int,
    handicap_value: int,
) -> Dict:
    """
    Override the handicap for a player in a week.

    Every row of that week number gets the value and the player's weighted
    score for the week number is refreshed with it. The next engine run
    restores computed values.

    Raises:
        data_service.PlayerNotFoundError: If the player does not exist
        data_service.WeekNotFoundError: If the week does not exist
        ValueError: If the player and week belong to different leagues
    """
    if handicap_value < 0:
        raise ValueError("Handicap cannot be negative")

    player = await data_service.get_player_model(session, player_id)
    week = await data_service.get_week_model(session, week_id)
    if player.league_id != week.league_id:
        raise ValueError("Player and week belong to different leagues")

    snapshot = await load_league_snapshot(session, week.league_id)
    week_key = snapshot.key_for_week(week)

    for row in snapshot.week_rows[week_key]:
        handicap = _handicap_row(session, snapshot, player_id, row.id)
        handicap.handicap = handicap_value
        handicap.applied_handicap = handicap_value

    score = snapshot.authoritative.get((player_id, week_key))
    if score is not None:
        score.weighted_score = calculation_service.calculate_weighted_score(score.total, handicap_value)

    await session.commit()
    logger.info(
        "Manual handicap %s set for player %s in week %s", handicap_value, player_id, week.week_number
    )
    return {
        "player_id": player_id,
        "week_id": week_id,
        "week_number": week.week_number,
        "handicap": handicap_value,
        "weighted_score": score.weighted_score if score is not None else None,
    }


async def list_handicaps(
    session: AsyncSession,
    league_id: Optional[int] = None,
    player_id: Optional[int] = None,
    week_id: Optional[int] = None,
) -> List[Dict]:
    """List handicap rows, optionally filtered, ordered by week number."""
    query = select(Handicap, Week).join(Week, Handicap.week_id == Week.id)
    if league_id is not None:
        query = query.where(Week.league_id == league_id)
    if player_id is not None:
        query = query.where(Handicap.player_id == player_id)
    if week_id is not None:
        query = query.where(Handicap.week_id == week_id)
    query = query.order_by(Week.week_number, Handicap.player_id, Handicap.id)

    result = await session.execute(query)
    return [
        {
            "id": handicap.id,
            "player_id": handicap.player_id,
            "week_id": handicap.week_id,
            "week_number": week.week_number,
            "is_championship": week.is_championship,
            "raw_handicap": handicap.raw_handicap,
            "applied_handicap": handicap.applied_handicap,
            "handicap": handicap.handicap,
            "is_baseline": handicap.is_baseline,
        }
        for handicap, week in result.all()
    ]

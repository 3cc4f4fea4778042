"""
Best-ball match recalculation.

Loads each team's hole-by-hole cards for a week and stores the match-play
result. Matches that cannot be scored yet (a bye, or a team with no hole
data) are left as they are.
"""

import logging
from typing import Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from backend.database.models import Match, Score, Team, Week
from backend.services import calculation_service, data_service
from backend.services.calculation_service import MatchResult

logger = logging.getLogger(__name__)


async def load_week_cards(session: AsyncSession, week: Week) -> Dict[int, List[Optional[int]]]:
    """
    Hole cards per player for a week number.

    Scores on every row sharing the week number count; the most recently
    written score per player is used.
    """
    rows = await data_service.find_week_rows(session, week.league_id, week.week_number, week.is_championship)
    week_ids = [w.id for w in rows] or [week.id]
    result = await session.execute(select(Score).where(Score.week_id.in_(week_ids)))
    latest = data_service.latest_by_key(result.scalars().all(), lambda s: s.player_id)
    return {player_id: score.holes for player_id, score in latest.items()}


def score_match(match: Match, teams: Dict[int, Team], cards: Dict[int, List[Optional[int]]]) -> Optional[MatchResult]:
    """Best-ball result for a match, or None for a bye or missing hole data."""
    if match.team2_id is None:
        return None
    team1 = teams.get(match.team1_id)
    team2 = teams.get(match.team2_id)
    if team1 is None or team2 is None:
        return None
    return calculation_service.score_best_ball_match(
        (cards.get(team1.player1_id), cards.get(team1.player2_id)),
        (cards.get(team2.player1_id), cards.get(team2.player2_id)),
    )


def apply_result(match: Match, result: MatchResult) -> None:
    match.team1_points = result.team1_points
    match.team2_points = result.team2_points
    if result.winner == 1:
        match.winner_id = match.team1_id
    elif result.winner == 2:
        match.winner_id = match.team2_id
    else:
        match.winner_id = None
    match.is_manual = False


async def _load_teams(session: AsyncSession, matches: List[Match]) -> Dict[int, Team]:
    team_ids = {m.team1_id for m in matches} | {m.team2_id for m in matches if m.team2_id}
    if not team_ids:
        return {}
    result = await session.execute(select(Team).where(Team.id.in_(team_ids)))
    return {t.id: t for t in result.scalars().all()}


async def calculate_matches_for_week(session: AsyncSession, week_id: int, commit: bool = True) -> Dict:
    """
    Recalculate every match scheduled on a week row.

    Manually entered results are kept.

    Raises:
        data_service.WeekNotFoundError: If the week does not exist

    Returns:
        Dict with counts of matches scored and skipped
    """
    week = await data_service.get_week_model(session, week_id)
    result = await session.execute(select(Match).where(Match.week_id == week_id).order_by(Match.id))
    matches = list(result.scalars().all())

    scored = 0
    skipped = 0
    if matches:
        teams = await _load_teams(session, matches)
        cards = await load_week_cards(session, week)
        for match in matches:
            if match.is_manual:
                skipped += 1
                continue
            match_result = score_match(match, teams, cards)
            if match_result is None:
                skipped += 1
                continue
            apply_result(match, match_result)
            scored += 1

    if commit:
        await session.commit()
    else:
        await session.flush()

    logger.info("Week %s (id %s): %s match(es) scored, %s skipped", week.week_number, week_id, scored, skipped)
    return {"week_id": week_id, "week_number": week.week_number, "matches_scored": scored, "matches_skipped": skipped}


async def recalculate_match(session: AsyncSession, match_id: int) -> Optional[Dict]:
    """
    Recalculate a single match, replacing a manual result.

    Raises:
        data_service.MatchNotFoundError: If the match does not exist

    Returns:
        The updated match, or None when it cannot be scored yet
    """
    match = await data_service.get_match_model(session, match_id)
    week = await data_service.get_week_model(session, match.week_id)
    teams = await _load_teams(session, [match])
    cards = await load_week_cards(session, week)

    match_result = score_match(match, teams, cards)
    if match_result is None:
        logger.info("Match %s cannot be scored yet", match_id)
        return None

    apply_result(match, match_result)
    await session.commit()
    await session.refresh(match)
    return data_service.match_to_dict(match)


async def calculate_all_matches(session: AsyncSession, league_id: int) -> Dict:
    """Recalculate every match in a league, week by week."""
    await data_service.get_league_model(session, league_id)
    result = await session.execute(
        select(Week.id).where(Week.league_id == league_id).order_by(Week.week_number, Week.id)
    )
    week_ids = list(result.scalars().all())

    scored = 0
    skipped = 0
    for week_id in week_ids:
        counts = await calculate_matches_for_week(session, week_id, commit=False)
        scored += counts["matches_scored"]
        skipped += counts["matches_skipped"]
    await session.commit()

    return {"league_id": league_id, "weeks": len(week_ids), "matches_scored": scored, "matches_skipped": skipped}

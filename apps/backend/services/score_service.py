"""
Score submission and the recompute cascade it triggers.

A submission stores the card and the round's raw handicaps right away, then
hands the rest of the cascade (completion gate, handicap engine, weighted
scores, match results) to the recalculation queue.
"""

import logging
from typing import Dict, List, Optional
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from backend.database.models import Score, Week
from backend.services import calculation_service, data_service, handicap_service, match_service
from backend.services.recalc_queue import get_recalc_queue
from backend.utils.constants import HOLES_PER_ROUND

logger = logging.getLogger(__name__)


def build_card(holes: List[Optional[int]]) -> Dict:
    """
    Normalize an 18-hole card and derive its totals.

    Raises:
        ValueError: Wrong number of holes, a negative stroke count, or no
            hole recorded at all
    """
    if len(holes) != HOLES_PER_ROUND:
        raise ValueError(f"A scorecard needs exactly {HOLES_PER_ROUND} holes")
    if any(h is not None and h < 0 for h in holes):
        raise ValueError("Hole scores cannot be negative")

    normalized = calculation_service.normalize_holes(holes)
    if not calculation_service.has_hole_scores(normalized):
        raise ValueError("Scorecard has no holes recorded")

    front9, back9, total = calculation_service.calculate_round_totals(normalized)
    return {"holes": normalized, "front9": front9, "back9": back9, "total": total}


async def _refresh_round(session: AsyncSession, score: Score) -> None:
    """Raw handicaps for the round and a provisional weighted score for this card."""
    await handicap_service.update_round_raw_handicaps(session, score.week_id)
    applied = await handicap_service.get_applied_handicap(session, score.player_id, score.week_id)
    score.weighted_score = calculation_service.calculate_weighted_score(score.total, applied)


async def enqueue_recalculation(session: AsyncSession, week: Week) -> Optional[int]:
    """
    Queue the recompute cascade for a week.

    Championship rounds queue a full league recompute. Failures are logged
    and never fail the submission.
    """
    try:
        queue = get_recalc_queue()
        if week.is_championship:
            return await queue.enqueue_calculation(session, "league", week.league_id)
        return await queue.enqueue_calculation(session, "week", week.league_id, week.week_number)
    except Exception:
        logger.warning(
            "Failed to enqueue recalculation for league %s week %s", week.league_id, week.week_number,
            exc_info=True,
        )
        return None


async def enqueue_league_recalculation(session: AsyncSession, league_id: int) -> Optional[int]:
    """Queue a full league recompute; failures are logged and return None."""
    try:
        return await get_recalc_queue().enqueue_calculation(session, "league", league_id)
    except Exception:
        logger.warning("Failed to enqueue recalculation for league %s", league_id, exc_info=True)
        return None


async def submit_score(
    session: AsyncSession,
    player_id: int,
    week_id: int,
    holes: List[Optional[int]],
    scorecard_image: Optional[str] = None,
    enqueue: bool = True,
) -> Dict:
    """
    Submit a player's card for a week.

    The most recent existing score for the player and week number is
    updated (older duplicates are deleted); otherwise a new score is created.

    Raises:
        data_service.PlayerNotFoundError: If the player does not exist
        data_service.WeekNotFoundError: If the week does not exist
        ValueError: Invalid card, or player and week in different leagues

    Returns:
        Dict with the stored score and the queued job ID (if any)
    """
    player = await data_service.get_player_model(session, player_id)
    week = await data_service.get_week_model(session, week_id)
    if player.league_id != week.league_id:
        raise ValueError("Player and week belong to different leagues")

    card = build_card(holes)

    rows = await data_service.find_week_rows(session, week.league_id, week.week_number, week.is_championship)
    result = await session.execute(
        select(Score).where(Score.player_id == player_id, Score.week_id.in_([w.id for w in rows]))
    )
    existing = list(result.scalars().all())

    score = None
    if existing:
        score = data_service.latest_by_key(existing, lambda s: s.player_id)[player_id]
        stale_ids = [s.id for s in existing if s.id != score.id]
        if stale_ids:
            await session.execute(delete(Score).where(Score.id.in_(stale_ids)))
            logger.info("Removed %s duplicate score(s) for player %s week %s", len(stale_ids), player_id, week.week_number)
        score.week_id = week_id
    else:
        score = Score(player_id=player_id, week_id=week_id)
        session.add(score)

    score.set_holes(card["holes"])
    score.front9 = card["front9"]
    score.back9 = card["back9"]
    score.total = card["total"]
    if scorecard_image is not None:
        score.scorecard_image = scorecard_image
    await session.flush()

    await _refresh_round(session, score)
    await session.commit()
    await session.refresh(score)
    logger.info("Score %s stored for player %s week %s: total %s", score.id, player_id, week.week_number, score.total)

    job_id = await enqueue_recalculation(session, week) if enqueue else None
    return {"score": data_service.score_to_dict(score, week), "job_id": job_id, "created": not existing}


async def update_score(
    session: AsyncSession,
    score_id: int,
    holes: Optional[Dict[int, Optional[int]]] = None,
    total: Optional[int] = None,
    scorecard_image: Optional[str] = None,
    enqueue: bool = True,
) -> Dict:
    """
    Edit a stored score.

    Hole edits are partial ({hole number: strokes}) and recompute front9,
    back9 and total. A bare total may only be set on a card without holes.

    Raises:
        data_service.ScoreNotFoundError: If the score does not exist
        ValueError: Invalid hole number or stroke count, or a total that
            contradicts the card
    """
    score = await data_service.get_score_model(session, score_id)
    week = await data_service.get_week_model(session, score.week_id)
    old_total = score.total
    old_holes = list(score.holes)

    if holes:
        card = list(score.holes)
        for hole_number, strokes in holes.items():
            if not 1 <= hole_number <= HOLES_PER_ROUND:
                raise ValueError(f"Hole number must be between 1 and {HOLES_PER_ROUND}")
            card[hole_number - 1] = strokes
        built = build_card(card)
        score.set_holes(built["holes"])
        score.front9 = built["front9"]
        score.back9 = built["back9"]
        score.total = built["total"]

    if total is not None:
        if total < 0:
            raise ValueError("Total cannot be negative")
        if calculation_service.has_hole_scores(score.holes):
            if total != score.total:
                raise ValueError("Total must match the hole scores")
        else:
            score.total = total
            score.front9 = None
            score.back9 = None

    if scorecard_image is not None:
        score.scorecard_image = scorecard_image

    totals_changed = score.total != old_total
    # Same total with different holes still changes best-ball results
    holes_changed = list(score.holes) != old_holes
    if totals_changed:
        await session.flush()
        await _refresh_round(session, score)
    await session.commit()
    await session.refresh(score)

    job_id = None
    if (totals_changed or holes_changed) and enqueue:
        job_id = await enqueue_recalculation(session, week)
    return {"score": data_service.score_to_dict(score, week), "job_id": job_id}


async def process_week(session: AsyncSession, league_id: int, week_number: int) -> Dict:
    """
    Run the recompute cascade for a regular-season week number.

    Raw handicaps, completion gate, handicap engine from this week forward,
    weighted scores, then the matches on every row of the week number.
    """
    complete = await handicap_service.all_players_submitted(session, league_id, week_number)
    handicaps = await handicap_service.recalculate_league_handicaps(
        session, league_id, from_week=week_number, commit=False
    )

    rows = await data_service.find_week_rows(session, league_id, week_number)
    matches_scored = 0
    for week in rows:
        counts = await match_service.calculate_matches_for_week(session, week.id, commit=False)
        matches_scored += counts["matches_scored"]
    await session.commit()

    logger.info(
        "Processed league %s week %s (complete=%s): %s match(es) scored",
        league_id, week_number, complete, matches_scored,
    )
    return {
        "league_id": league_id,
        "week_number": week_number,
        "week_complete": complete,
        "handicaps": handicaps,
        "matches_scored": matches_scored,
    }


async def process_league(session: AsyncSession, league_id: int) -> Dict:
    """Full league cascade: every handicap, weighted score and match."""
    handicaps = await handicap_service.recalculate_league_handicaps(session, league_id, from_week=1, commit=False)
    matches = await match_service.calculate_all_matches(session, league_id)
    return {"league_id": league_id, "handicaps": handicaps, "matches": matches}

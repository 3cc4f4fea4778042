"""
Data service layer for database operations.
Handles CRUD operations for leagues, players, weeks, teams, matches and
scores, plus the maintenance operations that reconcile duplicate rows.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Tuple, TypeVar
from sqlalchemy import select, delete, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from backend.database.models import League, Player, Week, Score, Handicap, Team, Match, Course
from backend.utils.constants import MAX_WEEK_NUMBER
from backend.utils.datetime_utils import recency_key

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_TEAMS_PER_PLAYER = 2


#
# Errors
#

class NotFoundError(ValueError):
    """A requested record does not exist."""


class LeagueNotFoundError(NotFoundError):
    pass


class PlayerNotFoundError(NotFoundError):
    pass


class WeekNotFoundError(NotFoundError):
    pass


class ScoreNotFoundError(NotFoundError):
    pass


class TeamNotFoundError(NotFoundError):
    pass


class MatchNotFoundError(NotFoundError):
    pass


class CourseNotFoundError(NotFoundError):
    pass


class DuplicateTeamError(ValueError):
    """The same two players already form a team in the league."""


#
# Helper functions
#

def _chunks(lst, n):
    """Yield successive n-sized chunks from lst."""
    for i in range(0, len(lst), n):
        yield lst[i:i + n]


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


def latest_by_key(records: Iterable[T], key_fn: Callable[[T], Hashable]) -> Dict[Hashable, T]:
    """
    Group records by key and keep the most recently written one per key.

    "Most recent" is greatest (updated_at, created_at, id).
    """
    latest: Dict[Hashable, T] = {}
    for record in records:
        key = key_fn(record)
        current = latest.get(key)
        if current is None or recency_key(record) > recency_key(current):
            latest[key] = record
    return latest


def league_to_dict(league: League) -> Dict:
    return {
        "id": league.id,
        "name": league.name,
        "created_at": _isoformat(league.created_at),
        "updated_at": _isoformat(league.updated_at),
    }


def player_to_dict(player: Player) -> Dict:
    return {
        "id": player.id,
        "league_id": player.league_id,
        "first_name": player.first_name,
        "last_name": player.last_name,
        "full_name": player.full_name,
        "phone": player.phone,
        "email": player.email,
        "winnings_eligible": player.winnings_eligible,
        "created_at": _isoformat(player.created_at),
        "updated_at": _isoformat(player.updated_at),
    }


def week_to_dict(week: Week) -> Dict:
    return {
        "id": week.id,
        "league_id": week.league_id,
        "week_number": week.week_number,
        "is_championship": week.is_championship,
        "created_at": _isoformat(week.created_at),
    }


def score_to_dict(score: Score, week: Optional[Week] = None) -> Dict:
    data = {
        "id": score.id,
        "player_id": score.player_id,
        "week_id": score.week_id,
        "holes": score.holes,
        "front9": score.front9,
        "back9": score.back9,
        "total": score.total,
        "weighted_score": score.weighted_score,
        "scorecard_image": score.scorecard_image,
        "created_at": _isoformat(score.created_at),
        "updated_at": _isoformat(score.updated_at),
    }
    if week is not None:
        data["week_number"] = week.week_number
        data["is_championship"] = week.is_championship
    return data


def course_to_dict(course: Course) -> Dict:
    return {
        "id": course.id,
        "league_id": course.league_id,
        "week": course.week,
        "name": course.name,
        "created_at": _isoformat(course.created_at),
        "updated_at": _isoformat(course.updated_at),
    }


def team_to_dict(team: Team) -> Dict:
    return {
        "id": team.id,
        "league_id": team.league_id,
        "team_number": team.team_number,
        "player1_id": team.player1_id,
        "player2_id": team.player2_id,
    }


def match_to_dict(match: Match) -> Dict:
    return {
        "id": match.id,
        "week_id": match.week_id,
        "team1_id": match.team1_id,
        "team2_id": match.team2_id,
        "team1_points": match.team1_points,
        "team2_points": match.team2_points,
        "winner_id": match.winner_id,
        "is_manual": match.is_manual,
        "updated_at": _isoformat(match.updated_at),
    }


#
# Record lookups that raise when missing
#

async def get_league_model(session: AsyncSession, league_id: int) -> League:
    league = await session.get(League, league_id)
    if league is None:
        raise LeagueNotFoundError(f"League {league_id} not found")
    return league


async def get_player_model(session: AsyncSession, player_id: int) -> Player:
    player = await session.get(Player, player_id)
    if player is None:
        raise PlayerNotFoundError(f"Player {player_id} not found")
    return player


async def get_week_model(session: AsyncSession, week_id: int) -> Week:
    week = await session.get(Week, week_id)
    if week is None:
        raise WeekNotFoundError(f"Week {week_id} not found")
    return week


async def get_score_model(session: AsyncSession, score_id: int) -> Score:
    score = await session.get(Score, score_id)
    if score is None:
        raise ScoreNotFoundError(f"Score {score_id} not found")
    return score


async def get_team_model(session: AsyncSession, team_id: int) -> Team:
    team = await session.get(Team, team_id)
    if team is None:
        raise TeamNotFoundError(f"Team {team_id} not found")
    return team


async def get_course_model(session: AsyncSession, course_id: int) -> Course:
    course = await session.get(Course, course_id)
    if course is None:
        raise CourseNotFoundError(f"Course {course_id} not found")
    return course


async def get_match_model(session: AsyncSession, match_id: int) -> Match:
    match = await session.get(Match, match_id)
    if match is None:
        raise MatchNotFoundError(f"Match {match_id} not found")
    return match


#
# Leagues
#

async def create_league(session: AsyncSession, name: str) -> Dict:
    """Create a new league. League names are unique."""
    name = (name or "").strip()
    if not name:
        raise ValueError("League name cannot be empty")

    result = await session.execute(select(League).where(League.name == name))
    if result.scalar_one_or_none():
        raise ValueError(f"League '{name}' already exists")

    league = League(name=name)
    session.add(league)
    await session.commit()
    await session.refresh(league)
    return league_to_dict(league)


async def get_or_create_league(session: AsyncSession, name: str) -> Tuple[Dict, bool]:
    """Get a league by name, creating it if needed. Returns (league, created)."""
    result = await session.execute(select(League).where(League.name == name))
    league = result.scalar_one_or_none()
    if league:
        return league_to_dict(league), False
    return await create_league(session, name), True


async def list_leagues(session: AsyncSession) -> List[Dict]:
    result = await session.execute(select(League).order_by(League.name))
    return [league_to_dict(league) for league in result.scalars().all()]


async def get_league(session: AsyncSession, league_id: int) -> Optional[Dict]:
    league = await session.get(League, league_id)
    return league_to_dict(league) if league else None


#
# Players
#

async def create_player(
    session: AsyncSession,
    league_id: int,
    first_name: str,
    last_name: Optional[str] = None,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    winnings_eligible: bool = True,
) -> Dict:
    """Create a player in a league."""
    await get_league_model(session, league_id)
    first_name = (first_name or "").strip()
    if not first_name:
        raise ValueError("First name cannot be empty")

    player = Player(
        league_id=league_id,
        first_name=first_name,
        last_name=last_name.strip() if last_name else None,
        phone=phone,
        email=email,
        winnings_eligible=winnings_eligible,
    )
    session.add(player)
    await session.commit()
    await session.refresh(player)
    logger.info("Created player %s (%s) in league %s", player.id, player.full_name, league_id)
    return player_to_dict(player)


async def list_players(session: AsyncSession, league_id: Optional[int] = None) -> List[Dict]:
    query = select(Player)
    if league_id is not None:
        query = query.where(Player.league_id == league_id)
    result = await session.execute(query.order_by(Player.first_name, Player.last_name, Player.id))
    return [player_to_dict(p) for p in result.scalars().all()]


async def get_player(session: AsyncSession, player_id: int) -> Optional[Dict]:
    player = await session.get(Player, player_id)
    return player_to_dict(player) if player else None


async def update_player(session: AsyncSession, player_id: int, fields: Dict[str, Any]) -> Dict:
    """
    Update player contact details.

    Moving a player to another league is not supported; their scores and
    handicaps belong to the league's weeks.
    """
    player = await get_player_model(session, player_id)
    allowed = {"first_name", "last_name", "phone", "email", "winnings_eligible"}
    for name, value in fields.items():
        if name not in allowed:
            raise ValueError(f"Cannot update field '{name}'")
        if name == "first_name" and not (value or "").strip():
            raise ValueError("First name cannot be empty")
        setattr(player, name, value)
    await session.commit()
    await session.refresh(player)
    return player_to_dict(player)


async def delete_player(session: AsyncSession, player_id: int) -> bool:
    """
    Delete a player along with their scores, handicaps and teams.

    Returns:
        True if the player existed
    """
    player = await session.get(Player, player_id)
    if not player:
        return False

    team_ids = (
        await session.execute(
            select(Team.id).where(or_(Team.player1_id == player_id, Team.player2_id == player_id))
        )
    ).scalars().all()
    if team_ids:
        await session.execute(
            delete(Match).where(or_(Match.team1_id.in_(team_ids), Match.team2_id.in_(team_ids)))
        )
        await session.execute(delete(Team).where(Team.id.in_(team_ids)))
    await session.execute(delete(Score).where(Score.player_id == player_id))
    await session.execute(delete(Handicap).where(Handicap.player_id == player_id))
    await session.execute(delete(Player).where(Player.id == player_id))
    await session.commit()
    logger.info("Deleted player %s and %s team(s)", player_id, len(team_ids))
    return True


#
# Weeks
#

async def find_week_rows(
    session: AsyncSession,
    league_id: int,
    week_number: int,
    is_championship: bool = False,
) -> List[Week]:
    """Every week row (duplicates included) for a week number, lowest id first."""
    result = await session.execute(
        select(Week)
        .where(
            Week.league_id == league_id,
            Week.week_number == week_number,
            Week.is_championship == is_championship,
        )
        .order_by(Week.id)
    )
    return list(result.scalars().all())


async def get_or_create_week(
    session: AsyncSession,
    league_id: int,
    week_number: int,
    is_championship: bool = False,
) -> Tuple[Dict, bool]:
    """
    Get the week row for a week number, creating it when there is none.

    With duplicate rows the lowest id is returned. Returns (week, created).
    """
    await get_league_model(session, league_id)
    if week_number < 1:
        raise ValueError("Week number must be at least 1")

    rows = await find_week_rows(session, league_id, week_number, is_championship)
    if rows:
        return week_to_dict(rows[0]), False

    week = Week(league_id=league_id, week_number=week_number, is_championship=is_championship)
    session.add(week)
    await session.commit()
    await session.refresh(week)
    return week_to_dict(week), True


async def list_weeks(session: AsyncSession, league_id: Optional[int] = None) -> List[Dict]:
    query = select(Week)
    if league_id is not None:
        query = query.where(Week.league_id == league_id)
    result = await session.execute(query.order_by(Week.is_championship, Week.week_number, Week.id))
    return [week_to_dict(w) for w in result.scalars().all()]


#
# Courses
#

def _course_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValueError("Course name cannot be empty")
    return name


async def list_courses(session: AsyncSession, league_id: int) -> List[Dict]:
    """Courses of a league in week order."""
    result = await session.execute(
        select(Course).where(Course.league_id == league_id).order_by(Course.week)
    )
    return [course_to_dict(c) for c in result.scalars().all()]


async def create_course(session: AsyncSession, league_id: int, week: int, name: str) -> Dict:
    """
    Set the course a league plays in a week. One course per league and week.

    Raises:
        LeagueNotFoundError: If the league does not exist
        ValueError: Empty name, week out of range, or the week already has a course
    """
    await get_league_model(session, league_id)
    name = _course_name(name)
    if not 1 <= week <= MAX_WEEK_NUMBER:
        raise ValueError(f"Week must be between 1 and {MAX_WEEK_NUMBER}")

    existing = await session.execute(
        select(Course).where(Course.league_id == league_id, Course.week == week)
    )
    if existing.scalar_one_or_none():
        raise ValueError(f"League {league_id} already has a course for week {week}")

    course = Course(league_id=league_id, week=week, name=name)
    session.add(course)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ValueError(f"League {league_id} already has a course for week {week}")
    await session.refresh(course)
    logger.info("Set week %s course for league %s to %s", week, league_id, name)
    return course_to_dict(course)


async def update_course(session: AsyncSession, course_id: int, name: str) -> Dict:
    """Rename a course."""
    course = await get_course_model(session, course_id)
    course.name = _course_name(name)
    await session.commit()
    await session.refresh(course)
    return course_to_dict(course)


async def delete_course(session: AsyncSession, course_id: int) -> bool:
    course = await session.get(Course, course_id)
    if not course:
        return False
    await session.execute(delete(Course).where(Course.id == course_id))
    await session.commit()
    return True


#
# Teams
#

async def create_team(session: AsyncSession, league_id: int, player1_id: int, player2_id: int) -> Dict:
    """
    Create a two-player team with the next team number in the league.

    Raises:
        LeagueNotFoundError, PlayerNotFoundError: Missing records
        ValueError: Same player twice, player from another league, or a
            player already on two teams
        DuplicateTeamError: The pairing already exists
    """
    await get_league_model(session, league_id)
    if player1_id == player2_id:
        raise ValueError("A team needs two different players")

    for player_id in (player1_id, player2_id):
        player = await get_player_model(session, player_id)
        if player.league_id != league_id:
            raise ValueError(f"Player {player_id} is not in league {league_id}")

    result = await session.execute(
        select(Team).where(
            Team.league_id == league_id,
            or_(
                (Team.player1_id == player1_id) & (Team.player2_id == player2_id),
                (Team.player1_id == player2_id) & (Team.player2_id == player1_id),
            ),
        )
    )
    if result.scalars().first():
        raise DuplicateTeamError("These players are already a team")

    for player_id in (player1_id, player2_id):
        count = (
            await session.execute(
                select(func.count(Team.id)).where(
                    or_(Team.player1_id == player_id, Team.player2_id == player_id)
                )
            )
        ).scalar_one()
        if count >= MAX_TEAMS_PER_PLAYER:
            raise ValueError(f"Player {player_id} is already on {MAX_TEAMS_PER_PLAYER} teams")

    max_number = (
        await session.execute(select(func.max(Team.team_number)).where(Team.league_id == league_id))
    ).scalar_one_or_none()

    team = Team(
        league_id=league_id,
        team_number=(max_number or 0) + 1,
        player1_id=player1_id,
        player2_id=player2_id,
    )
    session.add(team)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise DuplicateTeamError("Team number already taken, retry") from e
    await session.refresh(team)
    return team_to_dict(team)


async def list_teams(session: AsyncSession, league_id: Optional[int] = None) -> List[Dict]:
    query = select(Team)
    if league_id is not None:
        query = query.where(Team.league_id == league_id)
    result = await session.execute(query.order_by(Team.league_id, Team.team_number))
    return [team_to_dict(t) for t in result.scalars().all()]


async def delete_team(session: AsyncSession, team_id: int) -> bool:
    """Delete a team and its matches. Returns False if the team does not exist."""
    team = await session.get(Team, team_id)
    if not team:
        return False
    await session.execute(
        delete(Match).where(or_(Match.team1_id == team_id, Match.team2_id == team_id))
    )
    await session.execute(delete(Team).where(Team.id == team_id))
    await session.commit()
    return True


#
# Matches
#

async def create_match(
    session: AsyncSession,
    week_id: int,
    team1_id: int,
    team2_id: Optional[int] = None,
    team1_points: Optional[int] = None,
    team2_points: Optional[int] = None,
) -> Dict:
    """
    Schedule a match for a week; team2 None is a bye.

    Passing points records a manual result that automatic recalculation
    leaves alone.
    """
    week = await get_week_model(session, week_id)
    team1 = await get_team_model(session, team1_id)
    if team1.league_id != week.league_id:
        raise ValueError("Team 1 is not in the week's league")

    team2 = None
    if team2_id is not None:
        if team2_id == team1_id:
            raise ValueError("A team cannot play itself")
        team2 = await get_team_model(session, team2_id)
        if team2.league_id != week.league_id:
            raise ValueError("Team 2 is not in the week's league")

    match = Match(week_id=week_id, team1_id=team1_id, team2_id=team2_id)
    if team1_points is not None or team2_points is not None:
        if team2 is None:
            raise ValueError("A bye has no result")
        points1, points2 = team1_points or 0, team2_points or 0
        if points1 + points2 > 18:
            raise ValueError("Match points cannot exceed 18 holes")
        match.team1_points = points1
        match.team2_points = points2
        match.winner_id = team1_id if points1 > points2 else team2_id if points2 > points1 else None
        match.is_manual = True

    session.add(match)
    await session.commit()
    await session.refresh(match)
    return match_to_dict(match)


async def list_matches(
    session: AsyncSession,
    league_id: Optional[int] = None,
    week_id: Optional[int] = None,
) -> List[Dict]:
    query = select(Match, Week).join(Week, Match.week_id == Week.id)
    if league_id is not None:
        query = query.where(Week.league_id == league_id)
    if week_id is not None:
        query = query.where(Match.week_id == week_id)
    result = await session.execute(query.order_by(Week.week_number, Match.id))

    matches = []
    for match, week in result.all():
        data = match_to_dict(match)
        data["week_number"] = week.week_number
        data["is_championship"] = week.is_championship
        matches.append(data)
    return matches


async def get_match(session: AsyncSession, match_id: int) -> Optional[Dict]:
    """Get a match with both teams' players."""
    match = await session.get(Match, match_id)
    if not match:
        return None
    data = match_to_dict(match)
    for slot, team_id in (("team1", match.team1_id), ("team2", match.team2_id)):
        team = await session.get(Team, team_id) if team_id else None
        data[slot] = team_to_dict(team) if team else None
    return data


#
# Scores
#

async def list_scores(
    session: AsyncSession,
    league_id: Optional[int] = None,
    week_id: Optional[int] = None,
    player_id: Optional[int] = None,
) -> List[Dict]:
    query = select(Score, Week).join(Week, Score.week_id == Week.id)
    if league_id is not None:
        query = query.where(Week.league_id == league_id)
    if week_id is not None:
        query = query.where(Score.week_id == week_id)
    if player_id is not None:
        query = query.where(Score.player_id == player_id)
    result = await session.execute(query.order_by(Week.week_number, Score.player_id, Score.id))
    return [score_to_dict(score, week) for score, week in result.all()]


async def get_score(session: AsyncSession, score_id: int) -> Optional[Dict]:
    score = await session.get(Score, score_id)
    if not score:
        return None
    week = await session.get(Week, score.week_id)
    return score_to_dict(score, week)


#
# Maintenance
#

async def merge_duplicate_weeks(session: AsyncSession, league_id: int) -> Dict:
    """
    Fold duplicate week rows into the lowest-id row of each week number.

    Scores move to the kept row; where the player already has a score there,
    the most recently written of the two survives. Handicap rows move unless
    the kept row already has one for the player. Matches always move.

    Returns:
        Dict with counts of weeks merged and rows moved/deleted
    """
    await get_league_model(session, league_id)
    result = await session.execute(select(Week).where(Week.league_id == league_id).order_by(Week.id))
    groups: Dict[Tuple[int, bool], List[Week]] = defaultdict(list)
    for week in result.scalars().all():
        groups[(week.week_number, bool(week.is_championship))].append(week)

    counts = defaultdict(int)
    for (week_number, is_championship), rows in sorted(groups.items()):
        if len(rows) < 2:
            continue
        keep, duplicates = rows[0], rows[1:]
        duplicate_ids = [w.id for w in duplicates]
        all_ids = [keep.id] + duplicate_ids

        scores = (await session.execute(select(Score).where(Score.week_id.in_(all_ids)))).scalars().all()
        survivors = latest_by_key(scores, lambda s: s.player_id)
        for score in scores:
            if survivors[score.player_id] is not score:
                await session.delete(score)
                counts["scores_deleted"] += 1
        await session.flush()
        for score in survivors.values():
            if score.week_id != keep.id:
                score.week_id = keep.id
                counts["scores_moved"] += 1

        handicaps = (
            await session.execute(select(Handicap).where(Handicap.week_id.in_(all_ids)))
        ).scalars().all()
        kept_players = {h.player_id for h in handicaps if h.week_id == keep.id}
        moved_players = set()
        for handicap in handicaps:
            if handicap.week_id == keep.id:
                continue
            if handicap.player_id in kept_players or handicap.player_id in moved_players:
                await session.delete(handicap)
                counts["handicaps_deleted"] += 1
            else:
                moved_players.add(handicap.player_id)
        await session.flush()
        for handicap in handicaps:
            if handicap.week_id != keep.id and handicap.player_id in moved_players:
                handicap.week_id = keep.id
                counts["handicaps_moved"] += 1

        matches = (await session.execute(select(Match).where(Match.week_id.in_(duplicate_ids)))).scalars().all()
        for match in matches:
            match.week_id = keep.id
            counts["matches_moved"] += 1
        await session.flush()

        await session.execute(delete(Week).where(Week.id.in_(duplicate_ids)))
        counts["weeks_deleted"] += len(duplicate_ids)
        logger.info(
            "Merged %s duplicate row(s) of week %s%s into week id %s for league %s",
            len(duplicate_ids), week_number, " (championship)" if is_championship else "", keep.id, league_id,
        )

    await session.commit()
    return {
        "league_id": league_id,
        "weeks_deleted": counts["weeks_deleted"],
        "scores_moved": counts["scores_moved"],
        "scores_deleted": counts["scores_deleted"],
        "handicaps_moved": counts["handicaps_moved"],
        "handicaps_deleted": counts["handicaps_deleted"],
        "matches_moved": counts["matches_moved"],
    }


async def cleanup_duplicate_scores(session: AsyncSession, league_id: int) -> Dict:
    """
    Delete every score that is not the most recent for its player and week number.

    Returns:
        Dict with the number of scores deleted
    """
    await get_league_model(session, league_id)
    result = await session.execute(
        select(Score, Week).join(Week, Score.week_id == Week.id).where(Week.league_id == league_id)
    )
    rows = result.all()
    week_key = {score.id: (week.week_number, bool(week.is_championship)) for score, week in rows}
    scores = [score for score, _ in rows]

    survivors = latest_by_key(scores, lambda s: (s.player_id, week_key[s.id]))
    survivor_ids = {s.id for s in survivors.values()}
    stale_ids = [s.id for s in scores if s.id not in survivor_ids]

    for chunk in _chunks(stale_ids, 500):
        await session.execute(delete(Score).where(Score.id.in_(chunk)))
    await session.commit()

    if stale_ids:
        logger.info("Deleted %s duplicate score(s) in league %s", len(stale_ids), league_id)
    return {"league_id": league_id, "scores_deleted": len(stale_ids)}


#
# Recalculation queue wiring
#

def register_recalc_queue_callbacks() -> None:
    """
    Register recalculation callbacks with the recalculation queue.

    This function should be called during application startup, before the
    queue worker is started. It breaks the circular dependency between the
    queue and the services that import it.
    """
    from backend.services.score_service import process_league, process_week
    from backend.services.recalc_queue import get_recalc_queue

    queue = get_recalc_queue()
    queue.register_calculation_callbacks(
        league_calc_callback=process_league,
        week_calc_callback=process_week,
    )

"""
Tests for data_service CRUD operations and maintenance jobs.
Covers leagues, players, weeks, teams, matches and duplicate cleanup.
"""
import pytest
from datetime import datetime, timedelta
import pytz
from sqlalchemy import select
from backend.database.models import Handicap, Match, Score, Team, Week
from backend.services import data_service

# db_session fixture is provided by conftest.py

STAMP = datetime(2024, 6, 1, 18, 0, tzinfo=pytz.UTC)


def _score(player_id, week_id, total, minutes):
    """Score written ``minutes`` after STAMP."""
    return Score(
        player_id=player_id,
        week_id=week_id,
        total=total,
        created_at=STAMP,
        updated_at=STAMP + timedelta(minutes=minutes),
    )


# ============================================================================
# Leagues & players
# ============================================================================

@pytest.mark.asyncio
async def test_create_league(db_session):
    league = await data_service.create_league(db_session, "  Louisville ")
    assert league["name"] == "Louisville"
    assert await data_service.get_league(db_session, league["id"]) == league

    with pytest.raises(ValueError, match="already exists"):
        await data_service.create_league(db_session, "Louisville")
    with pytest.raises(ValueError, match="empty"):
        await data_service.create_league(db_session, "   ")


@pytest.mark.asyncio
async def test_get_or_create_league(db_session):
    league, created = await data_service.get_or_create_league(db_session, "Clarksville")
    again, created_again = await data_service.get_or_create_league(db_session, "Clarksville")

    assert created is True
    assert created_again is False
    assert again["id"] == league["id"]
    assert [lg["name"] for lg in await data_service.list_leagues(db_session)] == ["Clarksville"]


@pytest.mark.asyncio
async def test_create_and_update_player(db_session, league_factory):
    league_id, _ = await league_factory(player_count=0)
    player = await data_service.create_player(db_session, league_id, "Ann", last_name="Lee", email="ann@example.com")

    assert player["full_name"] == "Ann Lee"
    assert player["winnings_eligible"] is True

    updated = await data_service.update_player(db_session, player["id"], {"winnings_eligible": False})
    assert updated["winnings_eligible"] is False

    with pytest.raises(ValueError, match="Cannot update field"):
        await data_service.update_player(db_session, player["id"], {"league_id": 5})
    with pytest.raises(ValueError, match="First name"):
        await data_service.update_player(db_session, player["id"], {"first_name": ""})
    with pytest.raises(data_service.LeagueNotFoundError):
        await data_service.create_player(db_session, 999, "Ghost")


@pytest.mark.asyncio
async def test_list_players_by_league(db_session, league_factory):
    league_id, players = await league_factory(player_count=3)
    await league_factory(name="Other", player_count=2)

    listed = await data_service.list_players(db_session, league_id)
    assert [p["id"] for p in listed] == players
    assert len(await data_service.list_players(db_session)) == 5


@pytest.mark.asyncio
async def test_delete_player_removes_related_rows(db_session, league_factory):
    league_id, players = await league_factory(player_count=4)
    week, _ = await data_service.get_or_create_week(db_session, league_id, 1)
    team1 = await data_service.create_team(db_session, league_id, players[0], players[1])
    team2 = await data_service.create_team(db_session, league_id, players[2], players[3])
    await data_service.create_match(db_session, week["id"], team1["id"], team2["id"])
    db_session.add(Score(player_id=players[0], week_id=week["id"], total=80))
    db_session.add(Handicap(player_id=players[0], week_id=week["id"], raw_handicap=3))
    await db_session.commit()

    assert await data_service.delete_player(db_session, players[0]) is True

    assert await data_service.get_player(db_session, players[0]) is None
    assert [t["id"] for t in await data_service.list_teams(db_session, league_id)] == [team2["id"]]
    assert await data_service.list_matches(db_session, league_id=league_id) == []
    assert await data_service.list_scores(db_session, player_id=players[0]) == []
    assert await data_service.delete_player(db_session, players[0]) is False


# ============================================================================
# Weeks
# ============================================================================

@pytest.mark.asyncio
async def test_get_or_create_week(db_session, league_factory):
    league_id, _ = await league_factory(player_count=1)

    week, created = await data_service.get_or_create_week(db_session, league_id, 1)
    again, created_again = await data_service.get_or_create_week(db_session, league_id, 1)
    champ, champ_created = await data_service.get_or_create_week(db_session, league_id, 1, is_championship=True)

    assert created is True and created_again is False
    assert again["id"] == week["id"]
    assert champ_created is True and champ["id"] != week["id"]

    with pytest.raises(ValueError, match="at least 1"):
        await data_service.get_or_create_week(db_session, league_id, 0)


@pytest.mark.asyncio
async def test_get_or_create_week_returns_lowest_duplicate(db_session, league_factory):
    league_id, _ = await league_factory(player_count=1)
    rows = [Week(league_id=league_id, week_number=2) for _ in range(2)]
    db_session.add_all(rows)
    await db_session.commit()

    week, created = await data_service.get_or_create_week(db_session, league_id, 2)

    assert created is False
    assert week["id"] == min(w.id for w in rows)
    assert len(await data_service.find_week_rows(db_session, league_id, 2)) == 2


# ============================================================================
# Courses
# ============================================================================

@pytest.mark.asyncio
async def test_course_crud(db_session, league_factory):
    league_id, _ = await league_factory(player_count=0)
    other_league_id, _ = await league_factory(name="Other", player_count=0)

    championship = await data_service.create_course(db_session, league_id, 12, "Pine Valley Golf Club")
    week4 = await data_service.create_course(db_session, league_id, 4, "  Quintero Golf Club ")
    await data_service.create_course(db_session, other_league_id, 4, "Wolf Creek")

    assert week4["name"] == "Quintero Golf Club"
    listed = await data_service.list_courses(db_session, league_id)
    assert [c["id"] for c in listed] == [week4["id"], championship["id"]]

    renamed = await data_service.update_course(db_session, week4["id"], "Dale Hallow")
    assert (renamed["week"], renamed["name"]) == (4, "Dale Hallow")

    assert await data_service.delete_course(db_session, week4["id"]) is True
    assert await data_service.delete_course(db_session, week4["id"]) is False
    assert [c["week"] for c in await data_service.list_courses(db_session, league_id)] == [12]


@pytest.mark.asyncio
async def test_course_validation(db_session, league_factory):
    league_id, _ = await league_factory(player_count=0)
    course = await data_service.create_course(db_session, league_id, 1, "Coldwater Golf Links")

    with pytest.raises(ValueError, match="already has a course"):
        await data_service.create_course(db_session, league_id, 1, "Mammoth Dunes")
    with pytest.raises(ValueError, match="between 1 and 12"):
        await data_service.create_course(db_session, league_id, 13, "Mammoth Dunes")
    with pytest.raises(ValueError, match="empty"):
        await data_service.create_course(db_session, league_id, 2, "  ")
    with pytest.raises(ValueError, match="empty"):
        await data_service.update_course(db_session, course["id"], "")
    with pytest.raises(data_service.LeagueNotFoundError):
        await data_service.create_course(db_session, 999, 2, "Mammoth Dunes")
    with pytest.raises(data_service.CourseNotFoundError):
        await data_service.update_course(db_session, 999, "Mammoth Dunes")


# ============================================================================
# Teams & matches
# ============================================================================

@pytest.mark.asyncio
async def test_create_team_numbers_sequentially(db_session, league_factory):
    league_id, players = await league_factory(player_count=4)

    first = await data_service.create_team(db_session, league_id, players[0], players[1])
    second = await data_service.create_team(db_session, league_id, players[2], players[3])

    assert (first["team_number"], second["team_number"]) == (1, 2)


@pytest.mark.asyncio
async def test_create_team_validation(db_session, league_factory):
    league_id, players = await league_factory(player_count=4)
    _, other_players = await league_factory(name="Other", player_count=1)

    with pytest.raises(ValueError, match="two different players"):
        await data_service.create_team(db_session, league_id, players[0], players[0])
    with pytest.raises(ValueError, match="not in league"):
        await data_service.create_team(db_session, league_id, players[0], other_players[0])

    await data_service.create_team(db_session, league_id, players[0], players[1])
    with pytest.raises(data_service.DuplicateTeamError):
        await data_service.create_team(db_session, league_id, players[1], players[0])

    await data_service.create_team(db_session, league_id, players[0], players[2])
    with pytest.raises(ValueError, match="already on 2 teams"):
        await data_service.create_team(db_session, league_id, players[0], players[3])


@pytest.mark.asyncio
async def test_delete_team_removes_matches(db_session, league_factory):
    league_id, players = await league_factory(player_count=4)
    week, _ = await data_service.get_or_create_week(db_session, league_id, 1)
    team1 = await data_service.create_team(db_session, league_id, players[0], players[1])
    team2 = await data_service.create_team(db_session, league_id, players[2], players[3])
    await data_service.create_match(db_session, week["id"], team1["id"], team2["id"])

    assert await data_service.delete_team(db_session, team2["id"]) is True
    assert await data_service.list_matches(db_session, week_id=week["id"]) == []
    assert await data_service.delete_team(db_session, team2["id"]) is False


@pytest.mark.asyncio
async def test_create_match_validation(db_session, league_factory):
    league_id, players = await league_factory(player_count=4)
    week, _ = await data_service.get_or_create_week(db_session, league_id, 1)
    team1 = await data_service.create_team(db_session, league_id, players[0], players[1])
    team2 = await data_service.create_team(db_session, league_id, players[2], players[3])

    with pytest.raises(ValueError, match="cannot play itself"):
        await data_service.create_match(db_session, week["id"], team1["id"], team1["id"])
    with pytest.raises(ValueError, match="bye has no result"):
        await data_service.create_match(db_session, week["id"], team1["id"], None, team1_points=5)
    with pytest.raises(ValueError, match="exceed 18"):
        await data_service.create_match(db_session, week["id"], team1["id"], team2["id"], 10, 9)
    with pytest.raises(data_service.TeamNotFoundError):
        await data_service.create_match(db_session, week["id"], 999)

    bye = await data_service.create_match(db_session, week["id"], team1["id"])
    assert bye["team2_id"] is None
    assert bye["is_manual"] is False


@pytest.mark.asyncio
async def test_get_match_includes_teams(db_session, league_factory):
    league_id, players = await league_factory(player_count=4)
    week, _ = await data_service.get_or_create_week(db_session, league_id, 1)
    team1 = await data_service.create_team(db_session, league_id, players[0], players[1])
    team2 = await data_service.create_team(db_session, league_id, players[2], players[3])
    match = await data_service.create_match(db_session, week["id"], team1["id"], team2["id"])

    stored = await data_service.get_match(db_session, match["id"])

    assert stored["team1"]["player1_id"] == players[0]
    assert stored["team2"]["player2_id"] == players[3]
    assert await data_service.get_match(db_session, 999) is None


# ============================================================================
# Maintenance
# ============================================================================

@pytest.mark.asyncio
async def test_merge_duplicate_weeks(db_session, league_factory):
    league_id, players = await league_factory(player_count=2)
    keep = Week(league_id=league_id, week_number=1)
    duplicate = Week(league_id=league_id, week_number=1)
    db_session.add_all([keep, duplicate])
    await db_session.flush()
    team = Team(league_id=league_id, team_number=1, player1_id=players[0], player2_id=players[1])
    db_session.add(team)
    await db_session.flush()

    db_session.add_all([
        _score(players[0], keep.id, 90, minutes=0),
        _score(players[0], duplicate.id, 85, minutes=5),
        _score(players[1], duplicate.id, 80, minutes=5),
        Handicap(player_id=players[0], week_id=keep.id, raw_handicap=10),
        Handicap(player_id=players[0], week_id=duplicate.id, raw_handicap=5),
        Handicap(player_id=players[1], week_id=duplicate.id, raw_handicap=0),
        Match(week_id=duplicate.id, team1_id=team.id),
    ])
    await db_session.commit()
    keep_id = keep.id

    result = await data_service.merge_duplicate_weeks(db_session, league_id)

    assert result == {
        "league_id": league_id,
        "weeks_deleted": 1,
        "scores_moved": 2,
        "scores_deleted": 1,
        "handicaps_moved": 1,
        "handicaps_deleted": 1,
        "matches_moved": 1,
    }
    assert [w.id for w in await data_service.find_week_rows(db_session, league_id, 1)] == [keep_id]
    totals = {
        s.player_id: s.total
        for s in (await db_session.execute(select(Score).where(Score.week_id == keep_id))).scalars().all()
    }
    assert totals == {players[0]: 85, players[1]: 80}
    matches = await data_service.list_matches(db_session, week_id=keep_id)
    assert len(matches) == 1


@pytest.mark.asyncio
async def test_merge_without_duplicates_is_noop(db_session, league_factory):
    league_id, _ = await league_factory(player_count=1)
    await data_service.get_or_create_week(db_session, league_id, 1)

    result = await data_service.merge_duplicate_weeks(db_session, league_id)

    assert result["weeks_deleted"] == 0
    assert len(await data_service.list_weeks(db_session, league_id)) == 1


@pytest.mark.asyncio
async def test_cleanup_duplicate_scores_keeps_most_recent(db_session, league_factory):
    league_id, players = await league_factory(player_count=2)
    first = Week(league_id=league_id, week_number=1)
    second = Week(league_id=league_id, week_number=1)
    champ = Week(league_id=league_id, week_number=1, is_championship=True)
    db_session.add_all([first, second, champ])
    await db_session.flush()

    latest = _score(players[0], second.id, 84, minutes=10)
    db_session.add_all([
        _score(players[0], first.id, 90, minutes=0),
        _score(players[0], first.id, 88, minutes=5),
        latest,
        _score(players[0], champ.id, 79, minutes=0),
        _score(players[1], first.id, 80, minutes=0),
    ])
    await db_session.commit()

    result = await data_service.cleanup_duplicate_scores(db_session, league_id)

    assert result == {"league_id": league_id, "scores_deleted": 2}
    remaining = await data_service.list_scores(db_session, player_id=players[0])
    assert sorted(s["total"] for s in remaining) == [79, 84]

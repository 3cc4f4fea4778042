"""
Tests for the progressive handicap engine and weighted score updates.

Season used throughout (players P1, P2, P3):

    week  totals        raw handicaps
    1     72, 75, 80    0, 3, 8
    2     74, 76, 83    0, 2, 9
    3     73, 78, 81    0, 5, 8    -> baselines 0, 3, 8
    4     75, 77, 84    0, 2, 9
    5     70, 80, 79    0, 10, 9   -> applied 0, 3, 9 (mean of weeks 1-4)
"""
import pytest
from sqlalchemy import select
from backend.database.models import Handicap, Score, Week
from backend.services import data_service, handicap_service, score_service

SEASON = {
    1: (72, 75, 80),
    2: (74, 76, 83),
    3: (73, 78, 81),
    4: (75, 77, 84),
    5: (70, 80, 79),
}


async def _play_week(session, league_id, player_ids, week_number, totals, make_card, is_championship=False):
    """Get or create the week and submit a card per total (None skips the player)."""
    week, _ = await data_service.get_or_create_week(session, league_id, week_number, is_championship)
    for player_id, total in zip(player_ids, totals):
        if total is None:
            continue
        await score_service.submit_score(session, player_id, week["id"], make_card(total), enqueue=False)
    return week["id"]


async def _play_season(session, league_id, player_ids, make_card, through_week=5):
    week_ids = {}
    for week_number in range(1, through_week + 1):
        week_ids[week_number] = await _play_week(
            session, league_id, player_ids, week_number, SEASON[week_number], make_card
        )
    return week_ids


async def _applied(session, player_id, week_id):
    return await handicap_service.get_applied_handicap(session, player_id, week_id)


async def _weighted(session, player_id, week_id):
    result = await session.execute(
        select(Score.weighted_score).where(Score.player_id == player_id, Score.week_id == week_id)
    )
    return result.scalar_one()


# ============================================================================
# Raw handicaps & completion gate
# ============================================================================

@pytest.mark.asyncio
async def test_submission_stores_round_raw_handicaps(db_session, league_factory, make_card):
    league_id, players = await league_factory(player_count=3)
    week_id = await _play_week(db_session, league_id, players, 1, (72, 75, 80), make_card)

    rows = await handicap_service.list_handicaps(db_session, week_id=week_id)
    raws = {row["player_id"]: row["raw_handicap"] for row in rows}
    assert raws == {players[0]: 0, players[1]: 3, players[2]: 8}


@pytest.mark.asyncio
async def test_round_low_moves_with_late_submission(db_session, league_factory, make_card):
    """A new round low rewrites everyone's raw handicap for that round."""
    league_id, players = await league_factory(player_count=3)
    week_id = await _play_week(db_session, league_id, players, 1, (75, 80, None), make_card)
    await _play_week(db_session, league_id, players, 1, (None, None, 72), make_card)

    rows = await handicap_service.list_handicaps(db_session, week_id=week_id)
    raws = {row["player_id"]: row["raw_handicap"] for row in rows}
    assert raws == {players[0]: 3, players[1]: 8, players[2]: 0}


@pytest.mark.asyncio
async def test_week_completes_when_last_player_submits(db_session, league_factory, make_card):
    league_id, players = await league_factory(player_count=4)
    week_id = await _play_week(db_session, league_id, players, 2, (72, 75, 80, None), make_card)

    assert await handicap_service.all_players_submitted(db_session, league_id, 2) is False

    await score_service.submit_score(db_session, players[3], week_id, make_card(77), enqueue=False)
    assert await handicap_service.all_players_submitted(db_session, league_id, 2) is True


@pytest.mark.asyncio
async def test_week_without_rows_or_players_is_not_complete(db_session, league_factory):
    league_id, _ = await league_factory(player_count=2)
    assert await handicap_service.all_players_submitted(db_session, league_id, 1) is False

    empty_league, _ = await league_factory(name="Empty", player_count=0)
    await data_service.get_or_create_week(db_session, empty_league, 1)
    assert await handicap_service.all_players_submitted(db_session, empty_league, 1) is False


@pytest.mark.asyncio
async def test_completion_counts_duplicate_week_rows(db_session, league_factory, make_card):
    league_id, players = await league_factory(player_count=3)
    first = Week(league_id=league_id, week_number=1)
    second = Week(league_id=league_id, week_number=1)
    db_session.add_all([first, second])
    await db_session.commit()

    await score_service.submit_score(db_session, players[0], first.id, make_card(72), enqueue=False)
    await score_service.submit_score(db_session, players[1], first.id, make_card(75), enqueue=False)
    await score_service.submit_score(db_session, players[2], second.id, make_card(80), enqueue=False)

    assert await handicap_service.all_players_submitted(db_session, league_id, 1) is True

    await handicap_service.recalculate_league_handicaps(db_session, league_id)
    for week_id in (first.id, second.id):
        rows = await handicap_service.list_handicaps(db_session, week_id=week_id)
        assert {row["player_id"]: row["applied_handicap"] for row in rows} == {p: 0 for p in players}


@pytest.mark.asyncio
async def test_get_player_raw_handicaps(db_session, league_factory, make_card):
    league_id, players = await league_factory(player_count=3)
    await _play_season(db_session, league_id, players, make_card, through_week=4)

    assert await handicap_service.get_player_raw_handicaps(db_session, players[2], 3) == [8, 9, 8]
    assert await handicap_service.get_player_raw_handicaps(db_session, players[1], 4) == [3, 2, 5, 2]


# ============================================================================
# Baseline & progressive handicaps
# ============================================================================

@pytest.mark.asyncio
async def test_early_weeks_apply_zero_before_baseline(db_session, league_factory, make_card):
    league_id, players = await league_factory(player_count=3)
    week_ids = await _play_season(db_session, league_id, players, make_card, through_week=2)

    await handicap_service.recalculate_league_handicaps(db_session, league_id)

    for week_id in week_ids.values():
        for player_id in players:
            assert await _applied(db_session, player_id, week_id) == 0


@pytest.mark.asyncio
async def test_baseline_applied_identically_to_weeks_one_through_four(db_session, league_factory, make_card):
    league_id, players = await league_factory(player_count=3)
    week_ids = await _play_season(db_session, league_id, players, make_card, through_week=3)
    week4, _ = await data_service.get_or_create_week(db_session, league_id, 4)
    week_ids[4] = week4["id"]

    result = await handicap_service.recalculate_league_handicaps(db_session, league_id)
    assert result["completed_weeks"] == [1, 2, 3]

    baselines = dict(zip(players, (0, 3, 8)))
    for player_id, baseline in baselines.items():
        applied = [await _applied(db_session, player_id, week_ids[n]) for n in (1, 2, 3, 4)]
        assert applied == [baseline] * 4

    rows = await handicap_service.list_handicaps(db_session, league_id=league_id, player_id=players[1])
    assert [row["is_baseline"] for row in rows] == [True, True, True, False]


@pytest.mark.asyncio
async def test_progressive_handicaps_after_week_four(db_session, league_factory, make_card):
    league_id, players = await league_factory(player_count=3)
    week_ids = await _play_season(db_session, league_id, players, make_card, through_week=5)
    week6, _ = await data_service.get_or_create_week(db_session, league_id, 6)

    await handicap_service.recalculate_league_handicaps(db_session, league_id)

    # Week 5: mean of weeks 1-4. Week 6: mean of weeks 1-5.
    assert [await _applied(db_session, p, week_ids[5]) for p in players] == [0, 3, 9]
    assert [await _applied(db_session, p, week6["id"]) for p in players] == [0, 4, 9]


@pytest.mark.asyncio
async def test_applied_handicap_unknown_until_prior_week_complete(db_session, league_factory, make_card):
    league_id, players = await league_factory(player_count=3)
    await _play_season(db_session, league_id, players, make_card, through_week=3)
    await _play_week(db_session, league_id, players, 4, (75, 77, None), make_card)
    week5, _ = await data_service.get_or_create_week(db_session, league_id, 5)

    # A value written too early is cleared on recompute
    db_session.add(Handicap(player_id=players[0], week_id=week5["id"], applied_handicap=7, handicap=7))
    await db_session.commit()

    await handicap_service.recalculate_league_handicaps(db_session, league_id)

    assert await _applied(db_session, players[0], week5["id"]) is None
    assert await _applied(db_session, players[1], week5["id"]) is None


@pytest.mark.asyncio
async def test_championship_uses_regular_week_handicap(db_session, league_factory, make_card):
    league_id, players = await league_factory(player_count=3)
    week_ids = await _play_season(db_session, league_id, players, make_card, through_week=5)
    champ_id = await _play_week(db_session, league_id, players, 5, (71, 74, 90), make_card, is_championship=True)

    result = await handicap_service.recalculate_league_handicaps(db_session, league_id)

    # Championship rounds never complete a regular week
    assert result["completed_weeks"] == [1, 2, 3, 4, 5]
    for player_id in players:
        assert await _applied(db_session, player_id, champ_id) == await _applied(
            db_session, player_id, week_ids[5]
        )
    assert await _weighted(db_session, players[2], champ_id) == 90 - 9


# ============================================================================
# Weighted scores & idempotence
# ============================================================================

@pytest.mark.asyncio
async def test_weighted_score_is_total_minus_applied(db_session, league_factory, make_card):
    league_id, players = await league_factory(player_count=3)
    await _play_season(db_session, league_id, players, make_card, through_week=5)

    await handicap_service.recalculate_league_handicaps(db_session, league_id)

    result = await db_session.execute(select(Score))
    for score in result.scalars().all():
        applied = await _applied(db_session, score.player_id, score.week_id)
        assert applied is not None
        assert score.weighted_score == score.total - applied


@pytest.mark.asyncio
async def test_recalculation_is_idempotent(db_session, league_factory, make_card):
    league_id, players = await league_factory(player_count=3)
    await _play_season(db_session, league_id, players, make_card, through_week=5)

    first = await handicap_service.recalculate_league_handicaps(db_session, league_id)
    before = await handicap_service.list_handicaps(db_session, league_id=league_id)

    second = await handicap_service.recalculate_league_handicaps(db_session, league_id)
    after = await handicap_service.list_handicaps(db_session, league_id=league_id)

    assert first["handicaps_updated"] > 0
    assert second["handicaps_updated"] == 0
    assert second["scores_updated"] == 0
    assert before == after


@pytest.mark.asyncio
async def test_late_correction_converges(db_session, league_factory, make_card):
    """Editing a week-2 card and recomputing from week 2 moves the baseline."""
    league_id, players = await league_factory(player_count=3)
    week_ids = await _play_season(db_session, league_id, players, make_card, through_week=4)
    await handicap_service.recalculate_league_handicaps(db_session, league_id)

    result = await db_session.execute(
        select(Score.id).where(Score.player_id == players[1], Score.week_id == week_ids[2])
    )
    score_id = result.scalar_one()
    # 76 -> 80: raw handicap for week 2 goes from 2 to 6
    updated = await score_service.update_score(db_session, score_id, holes={1: 9}, enqueue=False)
    assert updated["score"]["total"] == 80

    summary = await handicap_service.recalculate_league_handicaps(db_session, league_id, from_week=2)
    assert summary["from_week"] == 1

    # (3 + 6 + 5) / 3 = 4.67
    assert [await _applied(db_session, players[1], week_ids[n]) for n in (1, 2, 3, 4)] == [5] * 4
    assert await _weighted(db_session, players[1], week_ids[2]) == 75

    again = await handicap_service.recalculate_all_handicaps(db_session, league_id)
    assert again["handicaps_updated"] == 0


@pytest.mark.asyncio
async def test_recalculate_missing_league(db_session):
    with pytest.raises(data_service.LeagueNotFoundError):
        await handicap_service.recalculate_league_handicaps(db_session, 999)


@pytest.mark.asyncio
async def test_ensure_all_weighted_scores_repairs_scores(db_session, league_factory, make_card):
    league_id, players = await league_factory(player_count=3)
    week_ids = await _play_season(db_session, league_id, players, make_card, through_week=4)
    await handicap_service.recalculate_league_handicaps(db_session, league_id)

    result = await db_session.execute(
        select(Score).where(Score.player_id == players[2], Score.week_id == week_ids[4])
    )
    score = result.scalar_one()
    score.weighted_score = 0
    await db_session.commit()

    summary = await handicap_service.ensure_all_weighted_scores(db_session, league_id)

    assert summary["scores_updated"] == 1
    assert summary["scores_checked"] == 12
    assert await _weighted(db_session, players[2], week_ids[4]) == 84 - 8


# ============================================================================
# Manual overrides & listing
# ============================================================================

@pytest.mark.asyncio
async def test_set_manual_handicap(db_session, league_factory, make_card):
    league_id, players = await league_factory(player_count=3)
    week_ids = await _play_season(db_session, league_id, players, make_card, through_week=4)
    await handicap_service.recalculate_league_handicaps(db_session, league_id)

    result = await handicap_service.set_manual_handicap(db_session, players[2], week_ids[4], 2)

    assert result["handicap"] == 2
    assert result["weighted_score"] == 82
    assert await _applied(db_session, players[2], week_ids[4]) == 2

    # A full recompute restores the computed baseline
    await handicap_service.recalculate_all_handicaps(db_session, league_id)
    assert await _applied(db_session, players[2], week_ids[4]) == 8
    assert await _weighted(db_session, players[2], week_ids[4]) == 76


@pytest.mark.asyncio
async def test_set_manual_handicap_validation(db_session, league_factory):
    league_id, players = await league_factory(player_count=2)
    other_league, other_players = await league_factory(name="Other", player_count=1)
    week, _ = await data_service.get_or_create_week(db_session, league_id, 1)

    with pytest.raises(ValueError, match="negative"):
        await handicap_service.set_manual_handicap(db_session, players[0], week["id"], -1)
    with pytest.raises(ValueError, match="different leagues"):
        await handicap_service.set_manual_handicap(db_session, other_players[0], week["id"], 3)
    with pytest.raises(data_service.PlayerNotFoundError):
        await handicap_service.set_manual_handicap(db_session, 999, week["id"], 3)
    with pytest.raises(data_service.WeekNotFoundError):
        await handicap_service.set_manual_handicap(db_session, players[0], 999, 3)


@pytest.mark.asyncio
async def test_list_handicaps_filters(db_session, league_factory, make_card):
    league_id, players = await league_factory(player_count=3)
    week_ids = await _play_season(db_session, league_id, players, make_card, through_week=2)

    rows = await handicap_service.list_handicaps(db_session, league_id=league_id, player_id=players[0])
    assert [row["week_number"] for row in rows] == [1, 2]

    rows = await handicap_service.list_handicaps(db_session, week_id=week_ids[2])
    assert sorted(row["player_id"] for row in rows) == sorted(players)

"""
League leaderboard assembly.
"""

from collections import defaultdict
from typing import Dict, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from backend.database.models import Match, Player, Team, Week
from backend.services.handicap_service import load_league_snapshot
from backend.utils.constants import CHAMPIONSHIP_DISPLAY_WEEK


def display_week(week_number: int, is_championship: bool) -> int:
    """Championship rounds are shown as the final week."""
    return CHAMPIONSHIP_DISPLAY_WEEK if is_championship else week_number


def _is_scored(match: Match) -> bool:
    # An unscored match still has 0-0 and no winner
    return match.team2_id is not None and (
        match.winner_id is not None or (match.team1_points or 0) + (match.team2_points or 0) > 0
    )


def build_team_standings(teams: List[Team], matches: List[Match], names: Dict[int, str]) -> List[Dict]:
    """Wins, losses and ties per team from scored matches; most wins first, then fewest losses."""
    records = {
        t.id: {
            "team_id": t.id,
            "team_number": t.team_number,
            "players": [names.get(t.player1_id), names.get(t.player2_id)],
            "wins": 0,
            "losses": 0,
            "ties": 0,
            "points": 0,
        }
        for t in teams
    }

    for match in matches:
        if not _is_scored(match):
            continue
        team1 = records.get(match.team1_id)
        team2 = records.get(match.team2_id)
        if team1 is None or team2 is None:
            continue
        team1["points"] += match.team1_points or 0
        team2["points"] += match.team2_points or 0
        if match.winner_id == match.team1_id:
            team1["wins"] += 1
            team2["losses"] += 1
        elif match.winner_id == match.team2_id:
            team2["wins"] += 1
            team1["losses"] += 1
        else:
            team1["ties"] += 1
            team2["ties"] += 1

    return sorted(records.values(), key=lambda r: (-r["wins"], r["losses"], r["team_number"]))


async def get_leaderboard(session: AsyncSession, league_id: int) -> Dict:
    """
    Build the leaderboard for a league.

    Per player: gross and weighted score for each week (the authoritative
    score per week number), season gross total, and a weighted total that
    only counts complete weeks. Also the winners of each complete week
    (lowest weighted score, ties share the win) and team standings.

    Raises:
        LeagueNotFoundError: If the league does not exist
    """
    snapshot = await load_league_snapshot(session, league_id)

    result = await session.execute(select(Player).where(Player.league_id == league_id))
    players = {p.id: p for p in result.scalars().all()}
    names = {pid: p.full_name for pid, p in players.items()}

    complete = {
        key: snapshot.is_week_complete(*key) for key in snapshot.week_rows
    }

    rows: Dict[int, Dict] = {
        pid: {
            "player_id": pid,
            "name": names[pid],
            "winnings_eligible": p.winnings_eligible,
            "weeks": {},
            "rounds_played": 0,
            "gross_total": 0,
            "weighted_total": 0,
        }
        for pid, p in players.items()
    }

    by_week: Dict[tuple, List] = defaultdict(list)
    for (player_id, week_key), score in snapshot.authoritative.items():
        row = rows.get(player_id)
        if row is None or score.total is None:
            continue
        week_number, is_championship = week_key
        row["weeks"][display_week(week_number, is_championship)] = {
            "score_id": score.id,
            "gross": score.total,
            "weighted": score.weighted_score,
        }
        row["rounds_played"] += 1
        row["gross_total"] += score.total
        if complete.get(week_key) and score.weighted_score is not None:
            row["weighted_total"] += score.weighted_score
            by_week[week_key].append((score.weighted_score, player_id))

    week_winners = []
    for week_key in sorted(by_week):
        entries = by_week[week_key]
        low = min(w for w, _ in entries)
        week_number, is_championship = week_key
        week_winners.append({
            "week_number": display_week(week_number, is_championship),
            "is_championship": is_championship,
            "weighted_score": low,
            "winners": [
                {"player_id": pid, "name": names[pid]}
                for w, pid in sorted(entries, key=lambda e: names[e[1]]) if w == low
            ],
        })

    standings = sorted(
        rows.values(),
        key=lambda r: (r["rounds_played"] == 0, r["weighted_total"], r["name"]),
    )

    result = await session.execute(select(Team).where(Team.league_id == league_id))
    teams = list(result.scalars().all())
    result = await session.execute(
        select(Match).join(Week, Match.week_id == Week.id).where(Week.league_id == league_id)
    )
    matches = list(result.scalars().all())

    return {
        "league_id": league_id,
        "completed_weeks": [
            display_week(number, champ) for (number, champ), done in sorted(complete.items()) if done
        ],
        "players": standings,
        "week_winners": week_winners,
        "team_standings": build_team_standings(teams, matches, names),
    }

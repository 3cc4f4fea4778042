#!/usr/bin/env python3
"""
Recalculate handicaps, weighted scores and match results for every league.

This script:
1. Fetches all leagues from the database (or the one given with --league-id)
2. Optionally merges duplicate week rows and deletes duplicate scores first
3. Runs the full league recompute (raw, baseline, progressive, weighted, matches)
4. Prints progress and a summary
"""

import argparse
import asyncio
import os
import sys

# Add apps to path (so backend.* imports work)
# This mirrors the Docker setup where PYTHONPATH=/app and backend is at /app/backend
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
apps_path = os.path.join(project_root, "apps")
sys.path.insert(0, apps_path)

from backend.database.db import AsyncSessionLocal  # noqa: E402
from backend.services import data_service, score_service  # noqa: E402


async def recalculate_leagues(league_id=None, cleanup=False):
    """Recalculate all (or one) leagues."""
    async with AsyncSessionLocal() as session:
        if league_id is not None:
            league = await data_service.get_league(session, league_id)
            leagues = [league] if league else []
        else:
            leagues = await data_service.list_leagues(session)

        if not leagues:
            print("No leagues found in the database.")
            return

        print(f"Found {len(leagues)} league(s)\n")

        successful = 0
        failed = []

        for idx, league in enumerate(leagues, 1):
            print(f"[{idx}/{len(leagues)}] {league['name']} (ID: {league['id']})")
            try:
                if cleanup:
                    merged = await data_service.merge_duplicate_weeks(session, league["id"])
                    cleaned = await data_service.cleanup_duplicate_scores(session, league["id"])
                    print(
                        f"   Merged {merged['weeks_deleted']} duplicate week(s), "
                        f"deleted {cleaned['scores_deleted']} duplicate score(s)"
                    )

                result = await score_service.process_league(session, league["id"])
                handicaps = result["handicaps"]
                matches = result["matches"]
                print(
                    f"   Completed weeks: {handicaps['completed_weeks'] or 'none'}; "
                    f"{handicaps['handicaps_updated']} handicap row(s), "
                    f"{handicaps['scores_updated']} score(s) updated; "
                    f"{matches['matches_scored']} match(es) scored"
                )
                successful += 1
            except Exception as e:
                await session.rollback()
                print(f"   Error: {str(e)}")
                failed.append((league, str(e)))
            print()

        print("=" * 60)
        print(f"Total leagues: {len(leagues)}")
        print(f"Successful: {successful}")
        print(f"Failed: {len(failed)}")
        for league, error in failed:
            print(f"  - {league['name']} (ID: {league['id']}): {error}")


async def main():
    parser = argparse.ArgumentParser(description="Recalculate handicaps and match results")
    parser.add_argument("--league-id", type=int, help="Only recalculate this league", default=None)
    parser.add_argument(
        "--cleanup",
        action="store_true",
        help="Merge duplicate weeks and delete duplicate scores before recalculating",
    )
    args = parser.parse_args()

    await recalculate_leagues(league_id=args.league_id, cleanup=args.cleanup)


if __name__ == "__main__":
    asyncio.run(main())

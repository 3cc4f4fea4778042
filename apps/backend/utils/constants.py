"""
Constants used across the handicap and match-play calculations.
"""

# Round structure
HOLES_PER_ROUND = 18
FRONT_NINE = 9

# Handicap rules
MAX_RAW_HANDICAP = 25  # Cap on strokes behind the round low for a single round
BASELINE_WEEKS = 3  # Weeks averaged into the baseline handicap
BASELINE_APPLIED_THROUGH_WEEK = 4  # Baseline is applied to weeks 1 through this week
MIN_ROUNDS_FOR_HANDICAP = 3

# Season structure
REGULAR_SEASON_WEEKS = 10
CHAMPIONSHIP_DISPLAY_WEEK = 12  # Championship rows are shown as week 12 on the leaderboard
MAX_WEEK_NUMBER = 12

# Store writes are flushed in chunks of this size
UPDATE_CHUNK_SIZE = 50

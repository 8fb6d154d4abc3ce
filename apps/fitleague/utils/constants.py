"""
Constants used across the scoring and validation system.
"""

# Scoring
POINTS_PER_APPROVED_ENTRY = 1  # every approved effort entry (workout or rest) is worth one point
PENDING_WINDOW_DAYS = 2  # today + yesterday are reported separately from settled totals
INDIVIDUAL_LEADERBOARD_LIMIT = 50  # default cap on individual rows returned by the API

# RR (effort score) calculation
REST_DAY_RR = 1.0
MIN_WORKOUT_RR = 1.0
MAX_RR = 2.0
BASE_DURATION_MINUTES = 45
MIN_STEPS = 10000
MAX_STEPS = 20000
RUN_DISTANCE_KM = 4  # distance worth 1.0 RR for run/cardio
CYCLING_DISTANCE_KM = 10  # distance worth 1.0 RR for cycling
GOLF_HOLES = 9  # holes worth 1.0 RR

# Rest-day backfill
AUTO_REST_DAY_NOTE = "Auto-assigned rest day (missed deadline)"

"""
Configuration constants for the Math Streak drill.

Timing, input limits and storage keys live here, together with the
environment variables that select where the two persisted values go.
"""

import os

# ============================================================================
# Timing (seconds)
# ============================================================================

# Feedback stays visible for the reveal delay, then the problems swap
REVEAL_DELAY = 1.2

# Slide-in settle time after the swap (cosmetic only)
TRANSITION_DELAY = 0.3

# Total time from submit until the next problem has settled
AUTO_ADVANCE_DELAY = REVEAL_DELAY + TRANSITION_DELAY

# ============================================================================
# Input and generation limits
# ============================================================================

# Maximum digits for a typed answer
MAX_ANSWER_LENGTH = 3

# Upper bound on any rejection-sampling loop in the generator
MAX_GENERATION_ATTEMPTS = 100

# ============================================================================
# Persistence
# ============================================================================

HIGH_SCORE_KEY = "math-streak-high-score"
SETTINGS_KEY = "math-streak-settings"

STORAGE_MEMORY = "memory"
STORAGE_FILE = "file"
STORAGE_DYNAMODB = "dynamodb"

# Storage backend (memory, file or dynamodb)
STORAGE_BACKEND = os.environ.get("MATH_STREAK_STORAGE", STORAGE_MEMORY)

# JSON file used by the file backend
STORAGE_PATH = os.environ.get(
    "MATH_STREAK_STORAGE_PATH",
    os.path.join(os.path.expanduser("~"), ".math_streak.json"),
)

# DynamoDB table name for persistence (configurable via environment variable)
DYNAMODB_TABLE_NAME = os.environ.get("DYNAMODB_TABLE_NAME", "MathStreakUserData")

# Partition key value for the local player
PLAYER_ID = os.environ.get("MATH_STREAK_PLAYER_ID", "local-player")

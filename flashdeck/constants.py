"""
SM-2 algorithm constants.

This module contains static SM-2 (SuperMemo 2) scheduling parameters and
card content limits. No runtime configuration or path defaults - pure
constants only.
"""

# Ease factor assigned to every newly created card.
DEFAULT_EASE_FACTOR: float = 2.5

# Lower bound for the ease factor, enforced after every update.
MINIMUM_EASE_FACTOR: float = 1.3

# Ratings at or above this value count as a successful recall.
PASS_THRESHOLD: int = 3

MIN_QUALITY: int = 0
MAX_QUALITY: int = 5

# Fixed intervals (days) for the first and second consecutive successes.
FIRST_INTERVAL_DAYS: int = 1
SECOND_INTERVAL_DAYS: int = 6

# Interval after a lapse under the reset policy.
LAPSE_INTERVAL_DAYS: int = 1

# Multiplier applied to the previous interval under the decay lapse policy.
LAPSE_DECAY_FACTOR: float = 0.8

MS_PER_DAY: int = 24 * 60 * 60 * 1000

# Content limits for card text.
MAX_QUESTION_LENGTH: int = 500
MAX_ANSWER_LENGTH: int = 1000

# A card counts as mastered once it clears both thresholds.
MASTERY_MIN_REPETITIONS: int = 2
MASTERY_MIN_EASE_FACTOR: float = 2.0

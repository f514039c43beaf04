"""flashdeck - A lightweight SM-2 spaced repetition flashcard library."""

from .models import Card, Collection, Review, StudyStats, Quality, SchedulingState
from .constants import DEFAULT_EASE_FACTOR, MINIMUM_EASE_FACTOR
from .scheduler import (
    LapsePolicy,
    SM2_Scheduler,
    SM2SchedulerConfig,
    SchedulerOutput,
    compute_next_review,
)
from .db import FlashcardDatabase

__all__ = [
    "Card",
    "Collection",
    "Review",
    "StudyStats",
    "Quality",
    "SchedulingState",
    "DEFAULT_EASE_FACTOR",
    "MINIMUM_EASE_FACTOR",
    "LapsePolicy",
    "SM2_Scheduler",
    "SM2SchedulerConfig",
    "SchedulerOutput",
    "compute_next_review",
    "FlashcardDatabase",
]

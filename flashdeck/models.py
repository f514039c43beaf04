"""
Pydantic models for collections, cards, review events and study statistics.

All timestamps are integer milliseconds since the Unix epoch (UTC).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from .constants import (
    DEFAULT_EASE_FACTOR,
    MASTERY_MIN_EASE_FACTOR,
    MASTERY_MIN_REPETITIONS,
    MAX_ANSWER_LENGTH,
    MAX_QUESTION_LENGTH,
    MINIMUM_EASE_FACTOR,
    MS_PER_DAY,
    PASS_THRESHOLD,
)
from .timeutils import now_ms


class Quality(IntEnum):
    """
    The user's self-assessed recall quality, on the SM-2 0-5 scale.

    Values below PASS_THRESHOLD (3) are lapses.
    """

    Blackout = 0
    Incorrect = 1
    IncorrectEasyRecall = 2
    CorrectDifficult = 3
    CorrectHesitant = 4
    Perfect = 5

    @property
    def is_pass(self) -> bool:
        return self >= PASS_THRESHOLD


@dataclass(frozen=True)
class SchedulingState:
    """The scheduling triple the SM-2 scheduler reads."""

    interval: int = 0
    ease_factor: float = DEFAULT_EASE_FACTOR
    repetitions: int = 0


class Card(BaseModel):
    """
    A question/answer flashcard and its current scheduling state.

    A new card starts with interval 0, ease 2.5 and no repetitions, and is
    due immediately. After that, only scheduler output changes the
    scheduling fields.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    uuid: UUID = Field(
        default_factory=uuid.uuid4,
        description="Unique UUIDv4 for the card. Auto-generated.",
    )
    collection_id: UUID = Field(
        ..., description="Owning collection (links to Collection.id)."
    )
    question: str = Field(..., max_length=MAX_QUESTION_LENGTH)
    answer: str = Field(..., max_length=MAX_ANSWER_LENGTH)
    added_at: int = Field(
        ..., ge=0, description="When the card was added (ms epoch)."
    )
    interval: int = Field(
        default=0, ge=0, description="Days until the next review."
    )
    ease_factor: float = Field(
        default=DEFAULT_EASE_FACTOR,
        ge=MINIMUM_EASE_FACTOR,
        description="SM-2 difficulty multiplier.",
    )
    repetitions: int = Field(
        default=0,
        ge=0,
        description="Consecutive successful reviews since the last lapse.",
    )
    last_reviewed: int = Field(
        ..., ge=0, description="When the scheduling state was last set."
    )
    next_review: int = Field(
        ..., ge=0, description="Due timestamp (ms epoch)."
    )
    revision: int = Field(
        default=0,
        ge=0,
        description="Bumped on every scheduling write (compare-and-set).",
    )

    @model_validator(mode="before")
    @classmethod
    def fill_default_timestamps(cls, data: Any) -> Any:
        """A fresh card is stamped 'now' and due at last_reviewed + interval."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("added_at") is None:
            data["added_at"] = now_ms()
        if data.get("last_reviewed") is None:
            data["last_reviewed"] = data["added_at"]
        if data.get("next_review") is None:
            last = data["last_reviewed"]
            interval = data.get("interval", 0)
            if isinstance(last, int) and isinstance(interval, int):
                data["next_review"] = last + max(interval, 0) * MS_PER_DAY
        return data

    @field_validator("question", "answer")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @property
    def scheduling_state(self) -> SchedulingState:
        return SchedulingState(
            interval=self.interval,
            ease_factor=self.ease_factor,
            repetitions=self.repetitions,
        )

    @property
    def is_mastered(self) -> bool:
        return (
            self.repetitions >= MASTERY_MIN_REPETITIONS
            and self.ease_factor >= MASTERY_MIN_EASE_FACTOR
        )

    def is_due(self, at_ms: int) -> bool:
        return self.next_review <= at_ms


class Collection(BaseModel):
    """A named group of cards studied together."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    id: UUID = Field(default_factory=uuid.uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    topic: str = Field(default="")
    date_added: int = Field(default_factory=now_ms, ge=0)
    times_played: int = Field(default=0, ge=0)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Collection name must not be blank")
        return value


class Review(BaseModel):
    """
    Represents a single rating event for a card, with the scheduling state
    before and after the scheduler ran.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    review_id: Optional[int] = Field(
        default=None,
        description="Auto-incrementing PK from reviews table (None if new).",
    )
    card_uuid: UUID
    collection_id: UUID
    ts: int = Field(..., ge=0, description="When the rating was given.")
    quality: int = Field(..., ge=0, le=5)
    interval_before: int = Field(..., ge=0)
    interval_after: int = Field(..., ge=1)
    ease_before: float
    ease_after: float = Field(..., ge=MINIMUM_EASE_FACTOR)
    repetitions_after: int = Field(..., ge=0)
    next_review: int = Field(..., ge=0)
    is_lapse: bool


class StudyStats(BaseModel):
    """Running totals across all study sessions."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    cards_studied: int = Field(default=0, ge=0)
    correct_answers: int = Field(default=0, ge=0)
    streak: int = Field(default=0, ge=0)
    last_study_date: Optional[int] = Field(default=None, ge=0)

    @property
    def accuracy_percentage(self) -> int:
        if self.cards_studied == 0:
            return 0
        return round(self.correct_answers / self.cards_studied * 100)

    def record(self, correct: bool, at_ms: int) -> "StudyStats":
        """Return the totals after one more rated card."""
        return StudyStats(
            cards_studied=self.cards_studied + 1,
            correct_answers=self.correct_answers + (1 if correct else 0),
            streak=self.streak + 1 if correct else 0,
            last_study_date=at_ms,
        )

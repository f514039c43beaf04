# flashdeck/scheduler.py

"""
Defines the BaseScheduler abstract class and the SM2_Scheduler, the
SuperMemo-2 scheduler that turns a quality rating into the next interval,
ease factor and due timestamp for a card.
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from .constants import (
    FIRST_INTERVAL_DAYS,
    LAPSE_DECAY_FACTOR,
    LAPSE_INTERVAL_DAYS,
    MAX_QUALITY,
    MIN_QUALITY,
    MINIMUM_EASE_FACTOR,
    MS_PER_DAY,
    PASS_THRESHOLD,
    SECOND_INTERVAL_DAYS,
)
from .models import SchedulingState

logger = logging.getLogger(__name__)


class LapsePolicy(str, Enum):
    """How a failed review (quality < 3) rewinds a card's schedule."""

    # Start over: repetitions = 0, interval = 1 day.
    RESET = "reset"
    # Shrink the interval to 80% (min 1 day) and drop one repetition.
    DECAY = "decay"


@dataclass
class SchedulerOutput:
    interval: int
    ease_factor: float
    repetitions: int
    last_reviewed: int
    next_review: int
    is_lapse: bool

    @property
    def state(self) -> SchedulingState:
        return SchedulingState(
            interval=self.interval,
            ease_factor=self.ease_factor,
            repetitions=self.repetitions,
        )


class BaseScheduler(ABC):
    """
    Abstract base class for all schedulers in flashdeck.
    """

    @abstractmethod
    def compute_next_state(
        self, state: Any, quality: int, now_ms: int
    ) -> SchedulerOutput:
        """
        Computes the next scheduling state of a card from its current state
        and a new quality rating.

        Args:
            state: A SchedulingState, or any object exposing `interval`,
                `ease_factor` and `repetitions` (e.g. a Card).
            quality: The rating for the current review (0-5).
            now_ms: The review timestamp in milliseconds since the epoch.

        Returns:
            A SchedulerOutput object containing the new state.

        Raises:
            ValueError: If the quality or the input state is invalid.
        """
        pass


class SM2SchedulerConfig(BaseModel):
    """Configuration for the SM-2 Scheduler."""

    lapse_policy: LapsePolicy = LapsePolicy.RESET


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class SM2_Scheduler(BaseScheduler):
    """
    SM-2 implementation for flashdeck.

    The computation is pure: it reads only its arguments, so a single
    instance can be shared across threads and batch reschedules.
    """

    def __init__(self, config: Optional[SM2SchedulerConfig] = None):
        if config is None:
            config = SM2SchedulerConfig()
        self.config = config

    @property
    def lapse_policy(self) -> LapsePolicy:
        return self.config.lapse_policy

    @staticmethod
    def adjust_ease_factor(ease_factor: float, quality: int) -> float:
        """
        Apply the SM-2 ease adjustment, floored at 1.3.

        quality=5 adds 0.1, quality=4 leaves the ease unchanged and lower
        ratings subtract a penalty that grows quadratically.
        """
        distance = MAX_QUALITY - quality
        adjusted = ease_factor + (0.1 - distance * (0.08 + distance * 0.02))
        return max(MINIMUM_EASE_FACTOR, adjusted)

    def _validate_inputs(
        self,
        quality: Any,
        interval: Any,
        ease_factor: Any,
        repetitions: Any,
        now_ms: Any,
    ) -> None:
        if not _is_int(quality) or not (
            MIN_QUALITY <= quality <= MAX_QUALITY
        ):
            raise ValueError(
                f"Invalid quality: {quality!r}. Must be an integer "
                f"{MIN_QUALITY}-{MAX_QUALITY}."
            )
        if not _is_int(interval):
            raise ValueError(
                f"Invalid interval: {interval!r}. Must be an integer "
                "number of days."
            )
        if (
            not isinstance(ease_factor, (int, float))
            or isinstance(ease_factor, bool)
            or not math.isfinite(ease_factor)
            or ease_factor < MINIMUM_EASE_FACTOR
        ):
            raise ValueError(
                f"Invalid ease factor: {ease_factor!r}. Must be a finite "
                f"number >= {MINIMUM_EASE_FACTOR}."
            )
        if not _is_int(repetitions) or repetitions < 0:
            raise ValueError(
                f"Invalid repetitions: {repetitions!r}. Must be a "
                "non-negative integer."
            )
        if not _is_int(now_ms):
            raise ValueError(
                f"Invalid timestamp: {now_ms!r}. Must be integer milliseconds."
            )

    def _lapse(self, interval: int, repetitions: int) -> tuple[int, int]:
        if self.lapse_policy is LapsePolicy.DECAY:
            return (
                max(LAPSE_INTERVAL_DAYS, math.floor(interval * LAPSE_DECAY_FACTOR)),
                max(0, repetitions - 1),
            )
        return LAPSE_INTERVAL_DAYS, 0

    def compute_next_state(
        self, state: Any, quality: int, now_ms: int
    ) -> SchedulerOutput:
        ease_factor = state.ease_factor
        repetitions = state.repetitions
        self._validate_inputs(
            quality, state.interval, ease_factor, repetitions, now_ms
        )

        # A negative interval is read as a never-reviewed card.
        interval = max(state.interval, 0)
        new_ease_factor = self.adjust_ease_factor(ease_factor, quality)

        is_lapse = quality < PASS_THRESHOLD
        if is_lapse:
            next_interval, next_repetitions = self._lapse(interval, repetitions)
        else:
            if repetitions == 0:
                next_interval = FIRST_INTERVAL_DAYS
            elif repetitions == 1:
                next_interval = SECOND_INTERVAL_DAYS
            else:
                next_interval = max(
                    1, _round_half_up(interval * new_ease_factor)
                )
            next_repetitions = repetitions + 1

        logger.debug(
            f"quality={quality} interval {interval}->{next_interval} "
            f"ease {ease_factor:.2f}->{new_ease_factor:.2f} "
            f"repetitions {repetitions}->{next_repetitions}"
        )

        return SchedulerOutput(
            interval=next_interval,
            ease_factor=new_ease_factor,
            repetitions=next_repetitions,
            last_reviewed=now_ms,
            next_review=now_ms + next_interval * MS_PER_DAY,
            is_lapse=is_lapse,
        )


def compute_next_review(
    quality: int,
    state: Any,
    now_ms: int,
    lapse_policy: LapsePolicy = LapsePolicy.RESET,
) -> SchedulerOutput:
    """
    Compute the next scheduling state for one rating event.

    Functional entry point over SM2_Scheduler; see
    SM2_Scheduler.compute_next_state for the rules.
    """
    scheduler = SM2_Scheduler(SM2SchedulerConfig(lapse_policy=lapse_policy))
    return scheduler.compute_next_state(state, quality, now_ms)

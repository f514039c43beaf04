"""
Shared review processing logic for flashdeck.

The ReviewProcessor is the one path from a rating to persisted state:
1. Timestamp handling
2. Scheduler computation (pure)
3. Review object creation
4. Compare-and-set persistence, retried on concurrent modification
"""

import logging
from typing import Optional
from uuid import UUID

from .db.database import FlashcardDatabase
from .exceptions import CardOperationError, ConcurrentUpdateError
from .models import Card, Review
from .scheduler import BaseScheduler, SchedulerOutput
from .timeutils import now_ms

# Initialize logger
logger = logging.getLogger(__name__)


class ReviewProcessor:
    """
    Applies quality ratings to cards through a scheduler and a card store.

    If another writer updates the card between our read and our write, the
    store rejects the write; the processor then re-reads the card and
    reschedules from its newer state, so both ratings take effect in order.
    """

    def __init__(
        self,
        db_manager: FlashcardDatabase,
        scheduler: BaseScheduler,
        max_attempts: int = 3,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.db_manager = db_manager
        self.scheduler = scheduler
        self.max_attempts = max_attempts

    def process_review(
        self,
        card: Card,
        quality: int,
        reviewed_at_ms: Optional[int] = None,
    ) -> Card:
        """
        Rate a card and persist the rescheduled state.

        On a concurrent-update retry the review time is raised to the newer
        card's `last_reviewed` if that is later, so `last_reviewed` never
        moves backwards.

        Args:
            card: The card as last read by the caller.
            quality: Recall quality, 0-5.
            reviewed_at_ms: Review timestamp (defaults to now).

        Returns:
            The updated Card.

        Raises:
            ValueError: If the quality or the card's state is invalid.
            ConcurrentUpdateError: If the card kept changing for
                `max_attempts` attempts.
            CardOperationError: If the card vanished or the write failed.
        """
        ts = reviewed_at_ms if reviewed_at_ms is not None else now_ms()

        logger.debug(
            f"Processing review for card {card.uuid} with quality {quality}"
        )

        current = card
        attempt = 0
        while True:
            attempt += 1
            output: SchedulerOutput = self.scheduler.compute_next_state(
                current, quality, ts
            )
            review = Review(
                card_uuid=current.uuid,
                collection_id=current.collection_id,
                ts=ts,
                quality=quality,
                interval_before=current.interval,
                interval_after=output.interval,
                ease_before=current.ease_factor,
                ease_after=output.ease_factor,
                repetitions_after=output.repetitions,
                next_review=output.next_review,
                is_lapse=output.is_lapse,
            )
            try:
                updated_card = self.db_manager.apply_review(
                    review=review,
                    output=output,
                    expected_revision=current.revision,
                )
            except ConcurrentUpdateError:
                if attempt == self.max_attempts:
                    logger.error(
                        f"Giving up on card {card.uuid} after {attempt} "
                        "conflicting attempts"
                    )
                    raise
                logger.warning(
                    f"Card {card.uuid} changed concurrently; retrying "
                    f"({attempt}/{self.max_attempts})"
                )
                refreshed = self.db_manager.get_card_by_uuid(card.uuid)
                if refreshed is None:
                    raise CardOperationError(
                        f"Card {card.uuid} was deleted during review."
                    )
                current = refreshed
                # Never schedule from a point before the winning write.
                ts = max(ts, current.last_reviewed)
                continue

            logger.debug(
                f"Review processed for card {card.uuid}: interval "
                f"{updated_card.interval}d, ease {updated_card.ease_factor:.2f}"
            )
            return updated_card

    def process_review_by_uuid(
        self,
        card_uuid: UUID,
        quality: int,
        reviewed_at_ms: Optional[int] = None,
    ) -> Card:
        """
        Fetch a card by UUID, then process_review() it.

        Raises:
            ValueError: If the card is not found.
        """
        card = self.db_manager.get_card_by_uuid(card_uuid)
        if not card:
            raise ValueError(f"Card {card_uuid} not found in database")

        return self.process_review(
            card=card, quality=quality, reviewed_at_ms=reviewed_at_ms
        )

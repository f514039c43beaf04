"""
This module defines the ReviewSessionManager class, which is responsible for
running a study session over one collection: it fetches the due cards,
serves them in shuffled order and records each rating through the
ReviewProcessor.
"""

import logging
import random
from typing import Callable, Dict, List, Optional, Set
from uuid import UUID

from .constants import PASS_THRESHOLD
from .db.database import FlashcardDatabase
from .models import Card, Collection
from .review_processor import ReviewProcessor
from .scheduler import BaseScheduler
from .timeutils import now_ms

# Initialize logger
logger = logging.getLogger(__name__)


class ReviewSessionManager:
    """
    Manages a review session for one collection.

    The random source and the clock are injectable so sessions can be
    replayed deterministically in tests.
    """

    def __init__(
        self,
        db_manager: FlashcardDatabase,
        scheduler: BaseScheduler,
        collection_name: str,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Parameters:
            db_manager: Card store used to load and persist cards.
            scheduler: Scheduler used to compute the next review.
            collection_name: Name of the collection to study.
            rng: Random source for shuffling due cards.
            clock: Callable returning the current time in ms epoch.
        """
        self.db = db_manager
        self.scheduler = scheduler
        self.collection_name = collection_name
        self.rng = rng or random.Random()
        self.clock = clock or now_ms
        self.review_queue: List[Card] = []
        self.current_session_card_uuids: Set[UUID] = set()
        self.correct_count = 0
        self._collection: Optional[Collection] = None

        self.review_processor = ReviewProcessor(db_manager, scheduler)

    @property
    def collection(self) -> Collection:
        """
        The collection under review.

        Raises:
            CollectionNotFoundError: If the collection does not exist.
        """
        if self._collection is None:
            self._collection = self.db.require_collection(self.collection_name)
        return self._collection

    def initialize_session(self, limit: Optional[int] = 20) -> None:
        """
        Fetch the cards due now (at most `limit`) and shuffle them into
        the session queue.
        """
        logger.info(
            f"Initializing review session for collection '{self.collection_name}'"
        )
        due_cards = self.db.get_due_cards(
            self.collection.id, now_ms=self.clock(), limit=limit
        )
        self.rng.shuffle(due_cards)
        self.review_queue = due_cards
        self.current_session_card_uuids = {
            card.uuid for card in self.review_queue
        }
        self.correct_count = 0
        logger.info(
            f"Initialized session with {len(self.review_queue)} cards."
        )

    def get_next_card(self) -> Optional[Card]:
        """
        Retrieves the next card to be reviewed, or None if the queue is
        empty.
        """
        if not self.review_queue:
            logger.info("Review queue is empty. Session may be complete.")
            return None
        return self.review_queue[0]

    def _get_card_from_queue(self, card_uuid: UUID) -> Optional[Card]:
        for card in self.review_queue:
            if card.uuid == card_uuid:
                return card
        return None

    def _remove_card_from_queue(self, card_uuid: UUID) -> None:
        self.review_queue = [
            card for card in self.review_queue if card.uuid != card_uuid
        ]

    def skip_card(self, card_uuid: UUID) -> None:
        """Drop a card from this session without rating it; it stays due."""
        self._remove_card_from_queue(card_uuid)

    def submit_review(
        self,
        card_uuid: UUID,
        quality: int,
        reviewed_at_ms: Optional[int] = None,
    ) -> Card:
        """
        Rate a card from the current session and reschedule it.

        Returns:
            Card: The updated card.

        Raises:
            ValueError: If the card is not part of the current session or
                the quality is invalid.
        """
        card = self._get_card_from_queue(card_uuid)
        if not card:
            raise ValueError(
                f"Card {card_uuid} not found in the current review session."
            )

        ts = reviewed_at_ms if reviewed_at_ms is not None else self.clock()
        try:
            updated_card = self.review_processor.process_review(
                card=card, quality=quality, reviewed_at_ms=ts
            )
        except Exception as e:
            logger.error(f"Failed to submit review for card {card_uuid}: {e}")
            raise

        if quality >= PASS_THRESHOLD:
            self.correct_count += 1
        self._remove_card_from_queue(card_uuid)
        return updated_card

    def get_session_stats(self) -> Dict[str, int]:
        """
        Returns:
            dict with "total_cards", "reviewed_cards", "remaining_cards"
            and "correct_cards" for this session.
        """
        total_cards = len(self.current_session_card_uuids)
        remaining = len(self.review_queue)
        return {
            "total_cards": total_cards,
            "reviewed_cards": total_cards - remaining,
            "remaining_cards": remaining,
            "correct_cards": self.correct_count,
        }

    def get_due_card_count(self) -> int:
        """Number of cards in the collection that are due right now."""
        return self.db.get_due_card_count(self.collection.id, self.clock())

import random
from pathlib import Path
from typing import Optional

from flashdeck.cli.review_ui import start_review_flow
from flashdeck.config import settings
from flashdeck.db.database import FlashcardDatabase
from flashdeck.review_manager import ReviewSessionManager
from flashdeck.scheduler import SM2_Scheduler, SM2SchedulerConfig


def review_logic(
    collection_name: str,
    db_path: Path,
    limit: int,
    seed: Optional[int] = None,
):
    """
    Set up and start a review session for the named collection.

    Parameters:
        collection_name: Collection to review.
        db_path: Path to the flashcard database file.
        limit: Maximum number of due cards in the session.
        seed: Optional seed for a reproducible card order.
    """
    with FlashcardDatabase(db_path=db_path) as db_manager:
        # Fail fast with CollectionNotFoundError before any prompt.
        db_manager.require_collection(collection_name)
        scheduler = SM2_Scheduler(
            SM2SchedulerConfig(lapse_policy=settings.lapse_policy)
        )
        manager = ReviewSessionManager(
            db_manager=db_manager,
            scheduler=scheduler,
            collection_name=collection_name,
            rng=random.Random(seed),
        )
        start_review_flow(manager, limit=limit)

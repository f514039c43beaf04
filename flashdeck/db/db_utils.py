"""
Utility functions for data marshalling between Pydantic models and database
rows. The only renamed column is `interval_days` <-> `Card.interval`
(INTERVAL is a SQL keyword).
"""

from typing import Any, Dict, List, Sequence, Tuple

from pydantic import ValidationError

from ..exceptions import MarshallingError
from ..models import Card, Collection, Review, StudyStats


def card_to_db_params_list(cards: Sequence[Card]) -> List[Tuple]:
    """
    Convert cards into insert tuples, in column order:
    (uuid, collection_id, question, answer, added_at, interval_days,
    ease_factor, repetitions, last_reviewed, next_review, revision).
    """
    return [
        (
            card.uuid,
            card.collection_id,
            card.question,
            card.answer,
            card.added_at,
            card.interval,
            card.ease_factor,
            card.repetitions,
            card.last_reviewed,
            card.next_review,
            card.revision,
        )
        for card in cards
    ]


def db_row_to_card(row_dict: Dict[str, Any]) -> Card:
    """
    Create a Card model from a database row dictionary.

    Raises:
        MarshallingError: If the row cannot be validated into a Card.
    """
    data = row_dict.copy()
    data["interval"] = data.pop("interval_days", 0)
    try:
        return Card(**data)
    except ValidationError as e:
        raise MarshallingError(
            f"Failed to parse card from DB row: {row_dict}. Error: {e}",
            original_exception=e,
        ) from e


def collection_to_db_params_tuple(collection: Collection) -> Tuple:
    return (
        collection.id,
        collection.name,
        collection.topic,
        collection.date_added,
        collection.times_played,
    )


def db_row_to_collection(row_dict: Dict[str, Any]) -> Collection:
    try:
        return Collection(**row_dict)
    except ValidationError as e:
        raise MarshallingError(
            f"Failed to parse collection from DB row: {row_dict}. Error: {e}",
            original_exception=e,
        ) from e


def review_to_db_params_tuple(review: Review) -> Tuple:
    """
    Convert a Review into an insert tuple:
    (card_uuid, collection_id, ts, quality, interval_before, interval_after,
    ease_before, ease_after, repetitions_after, next_review, is_lapse).
    """
    return (
        review.card_uuid,
        review.collection_id,
        review.ts,
        review.quality,
        review.interval_before,
        review.interval_after,
        review.ease_before,
        review.ease_after,
        review.repetitions_after,
        review.next_review,
        review.is_lapse,
    )


def db_row_to_review(row_dict: Dict[str, Any]) -> Review:
    try:
        return Review(**row_dict)
    except ValidationError as e:
        raise MarshallingError(
            f"Failed to parse review from DB row: {row_dict}. Error: {e}",
            original_exception=e,
        ) from e


def db_row_to_study_stats(row_dict: Dict[str, Any]) -> StudyStats:
    data = row_dict.copy()
    data.pop("id", None)
    try:
        return StudyStats(**data)
    except ValidationError as e:
        raise MarshallingError(
            f"Failed to parse study stats from DB row: {row_dict}. Error: {e}",
            original_exception=e,
        ) from e


def study_stats_to_db_params_tuple(stats: StudyStats) -> Tuple:
    """(cards_studied, correct_answers, streak, last_study_date)"""
    return (
        stats.cards_studied,
        stats.correct_answers,
        stats.streak,
        stats.last_study_date,
    )

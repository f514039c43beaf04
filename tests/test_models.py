import uuid

import pytest
from pydantic import ValidationError

from flashdeck.constants import MS_PER_DAY
from flashdeck.models import (
    Card,
    Collection,
    Quality,
    Review,
    SchedulingState,
    StudyStats,
)

NOW_MS = 1_700_000_000_000
COLLECTION_ID = uuid.uuid4()


def make_card(**overrides) -> Card:
    data = {
        "collection_id": COLLECTION_ID,
        "question": "What is the capital of France?",
        "answer": "Paris",
        "added_at": NOW_MS,
    }
    data.update(overrides)
    return Card(**data)


class TestCard:
    def test_new_card_defaults(self):
        card = make_card()

        assert isinstance(card.uuid, uuid.UUID)
        assert card.interval == 0
        assert card.ease_factor == 2.5
        assert card.repetitions == 0
        assert card.revision == 0
        assert card.last_reviewed == NOW_MS
        assert card.next_review == NOW_MS
        assert card.is_due(NOW_MS)

    def test_added_at_defaults_to_now(self):
        card = Card(collection_id=COLLECTION_ID, question="q", answer="a")
        assert card.added_at > 0
        assert card.next_review == card.added_at

    def test_next_review_derived_from_interval(self):
        card = make_card(interval=3, last_reviewed=NOW_MS)
        assert card.next_review == NOW_MS + 3 * MS_PER_DAY
        assert not card.is_due(NOW_MS)
        assert card.is_due(NOW_MS + 3 * MS_PER_DAY)

    def test_explicit_next_review_is_kept(self):
        card = make_card(interval=3, next_review=NOW_MS + 5)
        assert card.next_review == NOW_MS + 5

    @pytest.mark.parametrize("field", ["question", "answer"])
    def test_blank_text_rejected(self, field):
        with pytest.raises(ValidationError):
            make_card(**{field: "   "})

    def test_length_limits(self):
        make_card(question="q" * 500, answer="a" * 1000)
        with pytest.raises(ValidationError):
            make_card(question="q" * 501)
        with pytest.raises(ValidationError):
            make_card(answer="a" * 1001)

    @pytest.mark.parametrize(
        "field, value",
        [("interval", -1), ("ease_factor", 1.29), ("repetitions", -1), ("revision", -1)],
    )
    def test_scheduling_bounds(self, field, value):
        with pytest.raises(ValidationError):
            make_card(**{field: value})

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            make_card(tags=["geo"])

    def test_assignment_is_validated(self):
        card = make_card()
        with pytest.raises(ValidationError):
            card.ease_factor = 1.0

    def test_scheduling_state(self):
        card = make_card(interval=6, ease_factor=2.2, repetitions=2)
        assert card.scheduling_state == SchedulingState(6, 2.2, 2)

    def test_is_mastered(self):
        assert not make_card().is_mastered
        assert make_card(repetitions=2, ease_factor=2.0).is_mastered
        assert not make_card(repetitions=5, ease_factor=1.9).is_mastered


class TestCollection:
    def test_defaults(self):
        collection = Collection(name="  Biology  ")
        assert collection.name == "Biology"
        assert collection.topic == ""
        assert collection.times_played == 0
        assert collection.date_added > 0

    @pytest.mark.parametrize("name", ["", "   ", "x" * 201])
    def test_invalid_names(self, name):
        with pytest.raises(ValidationError):
            Collection(name=name)


class TestReview:
    def _review(self, **overrides) -> Review:
        data = dict(
            card_uuid=uuid.uuid4(),
            collection_id=COLLECTION_ID,
            ts=NOW_MS,
            quality=4,
            interval_before=0,
            interval_after=1,
            ease_before=2.5,
            ease_after=2.5,
            repetitions_after=1,
            next_review=NOW_MS + MS_PER_DAY,
            is_lapse=False,
        )
        data.update(overrides)
        return Review(**data)

    def test_valid_review(self):
        review = self._review()
        assert review.review_id is None

    @pytest.mark.parametrize("quality", [-1, 6])
    def test_quality_range(self, quality):
        with pytest.raises(ValidationError):
            self._review(quality=quality)

    def test_interval_after_must_be_positive(self):
        with pytest.raises(ValidationError):
            self._review(interval_after=0)

    def test_ease_after_floor(self):
        with pytest.raises(ValidationError):
            self._review(ease_after=1.2)


class TestStudyStats:
    def test_empty_accuracy_is_zero(self):
        assert StudyStats().accuracy_percentage == 0

    def test_record_tracks_streak_and_accuracy(self):
        stats = StudyStats()
        stats = stats.record(True, NOW_MS)
        stats = stats.record(True, NOW_MS + 1)
        stats = stats.record(False, NOW_MS + 2)

        assert stats.cards_studied == 3
        assert stats.correct_answers == 2
        assert stats.streak == 0
        assert stats.last_study_date == NOW_MS + 2
        assert stats.accuracy_percentage == 67

        stats = stats.record(True, NOW_MS + 3)
        assert stats.streak == 1


def test_quality_pass_threshold():
    assert [q.is_pass for q in Quality] == [False, False, False, True, True, True]
    assert Quality.Perfect == 5

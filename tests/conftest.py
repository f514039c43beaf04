import logging
from pathlib import Path
from typing import Generator, List

import pytest

from flashdeck.db import FlashcardDatabase
from flashdeck.models import Card, Collection

# A fixed "now": 2023-11-14T22:13:20Z
NOW_MS = 1_700_000_000_000


# --- Database Fixtures ---
@pytest.fixture
def db_path_memory() -> str:
    return ":memory:"


@pytest.fixture
def db_path_file(tmp_path: Path) -> Path:
    """Path to a (not yet created) DuckDB file inside the test's tmp dir."""
    return tmp_path / "test_flash.db"


@pytest.fixture(params=["memory", "file"])
def db_manager(
    request, db_path_memory: str, db_path_file: Path
) -> Generator[FlashcardDatabase, None, None]:
    """
    A FlashcardDatabase, in-memory or file-backed depending on the param.
    The connection is closed and the file removed on teardown.
    """
    if request.param == "memory":
        db_man = FlashcardDatabase(db_path_memory)
    else:
        db_man = FlashcardDatabase(db_path_file)
    try:
        yield db_man
    finally:
        db_man.close_connection()
        if request.param == "file" and db_path_file.exists():
            try:
                db_path_file.unlink()
            except OSError as e:
                logging.warning(f"Could not delete test DB file {db_path_file}: {e}")


@pytest.fixture
def initialized_db_manager(db_manager: FlashcardDatabase) -> FlashcardDatabase:
    db_manager.initialize_schema()
    return db_manager


@pytest.fixture
def in_memory_db() -> Generator[FlashcardDatabase, None, None]:
    db = FlashcardDatabase(":memory:")
    db.initialize_schema()
    try:
        yield db
    finally:
        db.close_connection()


# --- Model Fixtures ---
@pytest.fixture
def sample_collection() -> Collection:
    return Collection(name="Spanish", topic="Vocabulary", date_added=NOW_MS)


@pytest.fixture
def sample_cards(sample_collection: Collection) -> List[Card]:
    """Three new cards added one second apart, all due at their added_at."""
    return [
        Card(
            collection_id=sample_collection.id,
            question=question,
            answer=answer,
            added_at=NOW_MS + i * 1000,
        )
        for i, (question, answer) in enumerate(
            [("hola", "hello"), ("gato", "cat"), ("perro", "dog")]
        )
    ]


@pytest.fixture
def populated_db(
    in_memory_db: FlashcardDatabase,
    sample_collection: Collection,
    sample_cards: List[Card],
) -> FlashcardDatabase:
    in_memory_db.create_collection(sample_collection)
    in_memory_db.add_cards(sample_cards)
    return in_memory_db

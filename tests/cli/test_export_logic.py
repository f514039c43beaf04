import csv
from unittest.mock import MagicMock

import pytest

from flashdeck.cli._export_logic import export_to_csv, export_to_markdown
from flashdeck.db.database import FlashcardDatabase
from flashdeck.models import Card, Collection

NOW_MS = 1_700_000_000_000


@pytest.fixture
def mock_db():
    return MagicMock(spec=FlashcardDatabase)


@pytest.fixture
def collections():
    return [
        Collection(name="Geography", topic="Capitals", date_added=NOW_MS),
        Collection(name="Math/Basics", date_added=NOW_MS),
    ]


@pytest.fixture
def cards_by_collection(collections):
    geo, math = collections
    return {
        geo.id: [
            Card(collection_id=geo.id, question="Capital of Peru?", answer="Lima", added_at=NOW_MS),
            Card(collection_id=geo.id, question="Capital of Chad?", answer="N'Djamena, \"city\"", added_at=NOW_MS),
        ],
        math.id: [
            Card(collection_id=math.id, question="2+2", answer="4", added_at=NOW_MS),
        ],
    }


def test_export_to_csv(tmp_path, mock_db, collections, cards_by_collection):
    geo = collections[0]
    mock_db.get_cards_for_collection.return_value = cards_by_collection[geo.id]
    output = tmp_path / "out" / "geo.csv"

    count = export_to_csv(mock_db, geo, output)

    assert count == 2
    with open(output, encoding="utf-8", newline="") as f:
        rows = list(csv.reader(f))
    assert rows == [
        ["Capital of Peru?", "Lima"],
        ["Capital of Chad?", "N'Djamena, \"city\""],
    ]


def test_export_to_csv_unwritable(tmp_path, mock_db, collections):
    mock_db.get_cards_for_collection.return_value = []
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    with pytest.raises(IOError, match="Failed to write CSV export"):
        export_to_csv(mock_db, collections[0], blocker / "geo.csv")


def test_export_to_markdown(tmp_path, mock_db, collections, cards_by_collection):
    mock_db.get_all_collections.return_value = collections
    mock_db.get_cards_for_collection.side_effect = lambda cid: cards_by_collection[cid]

    count = export_to_markdown(mock_db, tmp_path)

    assert count == 2
    geo_text = (tmp_path / "Geography.md").read_text(encoding="utf-8")
    assert geo_text.startswith("# Collection: Geography\n\n_Topic: Capitals_\n\n")
    # Cards are sorted by question.
    assert geo_text.index("Capital of Chad?") < geo_text.index("Capital of Peru?")
    assert "**A:** Lima" in geo_text
    # Unsafe characters are dropped from the file name.
    math_text = (tmp_path / "MathBasics.md").read_text(encoding="utf-8")
    assert "_Topic:" not in math_text
    assert math_text.count("---") == 1


def test_export_to_markdown_empty_db(tmp_path, mock_db):
    mock_db.get_all_collections.return_value = []

    assert export_to_markdown(mock_db, tmp_path / "md") == 0
    assert (tmp_path / "md").is_dir()


def test_export_to_markdown_bad_output_dir(tmp_path, mock_db):
    blocker = tmp_path / "blocker"
    blocker.write_text("file")

    with pytest.raises(IOError, match="Failed to create output directory"):
        export_to_markdown(mock_db, blocker)

# Standard library imports
import re
from pathlib import Path
from unittest.mock import patch

# Third-party imports
import pytest
from typer.testing import CliRunner

# Local application imports
from flashdeck.cli import main as cli_main, review_ui
from flashdeck.cli.main import app, main
from flashdeck.db.database import FlashcardDatabase
from flashdeck.exceptions import DatabaseError


runner = CliRunner()


def strip_ansi(text: str) -> str:
    ansi_escape = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")
    return ansi_escape.sub("", text)


def normalize_output(text: str) -> str:
    """Strip ANSI codes and collapse all whitespace into single spaces."""
    return re.sub(r"\s+", " ", strip_ansi(text)).strip()


def table_text(text: str) -> str:
    """normalize_output() with rich table borders (unicode or ASCII) removed."""
    return normalize_output(re.sub(r"[─-╿|+]", " ", strip_ansi(text)))


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Keep rich from wrapping or truncating table cells."""
    monkeypatch.setattr(cli_main.console, "width", 200)
    monkeypatch.setattr(review_ui.console, "width", 200)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "cli.db"


def invoke(db_path: Path, *args: str, input: str = None):
    return runner.invoke(app, [*args, "--db", str(db_path)], input=input)


@pytest.fixture
def seeded_db(db_path: Path) -> Path:
    assert invoke(db_path, "collection", "create", "Spanish", "--topic", "Words").exit_code == 0
    for question, answer in [("hola", "hello"), ("gato", "cat")]:
        result = invoke(db_path, "add", "Spanish", "-q", question, "-a", answer)
        assert result.exit_code == 0, result.output
    return db_path


# --- collection ---


def test_collection_create_and_list(db_path):
    result = invoke(db_path, "collection", "create", "Spanish", "--topic", "Words")
    assert result.exit_code == 0
    assert "Created collection Spanish" in normalize_output(result.stdout)

    result = invoke(db_path, "collection", "list")
    assert result.exit_code == 0
    output = normalize_output(result.stdout)
    assert "Spanish" in output
    assert "Words" in output


def test_collection_list_empty(db_path):
    result = invoke(db_path, "collection", "list")
    assert result.exit_code == 0
    assert "No collections yet" in result.stdout


def test_collection_create_duplicate(seeded_db):
    result = invoke(seeded_db, "collection", "create", "Spanish")
    assert result.exit_code == 1
    assert "already exists" in normalize_output(result.stdout)


def test_collection_create_blank_name(db_path):
    result = invoke(db_path, "collection", "create", "   ")
    assert result.exit_code == 1
    assert "Invalid collection" in result.stdout


def test_collection_delete(seeded_db):
    result = invoke(seeded_db, "collection", "delete", "Spanish", "--yes")
    assert result.exit_code == 0
    with FlashcardDatabase(seeded_db) as db:
        assert db.get_all_collections() == []


def test_collection_delete_cancelled(seeded_db):
    result = invoke(seeded_db, "collection", "delete", "Spanish", input="n\n")
    assert result.exit_code == 0
    assert "Delete cancelled" in result.stdout
    with FlashcardDatabase(seeded_db) as db:
        assert db.get_collection_by_name("Spanish") is not None


def test_collection_delete_missing(db_path):
    result = invoke(db_path, "collection", "delete", "Nope", "--yes")
    assert result.exit_code == 1
    assert "not found" in result.stdout


# --- cards ---


def test_add_and_list_cards(seeded_db):
    result = invoke(seeded_db, "cards", "Spanish")
    assert result.exit_code == 0
    output = table_text(result.stdout)
    assert "hola" in output
    assert "gato" in output
    assert "2.50" in output


def test_add_to_missing_collection(db_path):
    result = invoke(db_path, "add", "Nope", "-q", "q", "-a", "a")
    assert result.exit_code == 1
    assert "Collection 'Nope' not found" in normalize_output(result.stdout)


def test_add_blank_question(seeded_db):
    result = invoke(seeded_db, "add", "Spanish", "-q", "  ", "-a", "a")
    assert result.exit_code == 1
    assert "Invalid card" in normalize_output(result.stdout)


def test_delete_card(db_path):
    invoke(db_path, "collection", "create", "Spanish")
    result = invoke(db_path, "add", "Spanish", "-q", "hola", "-a", "hello")
    card_uuid = normalize_output(result.stdout).split()[-1]

    result = invoke(db_path, "delete-card", card_uuid)
    assert result.exit_code == 0

    result = invoke(db_path, "delete-card", card_uuid)
    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_cards_empty_collection(db_path):
    invoke(db_path, "collection", "create", "Empty")
    result = invoke(db_path, "cards", "Empty")
    assert result.exit_code == 0
    assert "No cards" in result.stdout


# --- review ---


def test_review_session(seeded_db):
    # Two cards: Enter to reveal, then a rating, for each.
    result = invoke(seeded_db, "review", "Spanish", "--seed", "1", input="\n5\n\n1\n")

    assert result.exit_code == 0, result.output
    output = normalize_output(result.stdout)
    assert "Card 1 of 2" in output
    assert "Correct." in output
    assert "Lapse." in output
    assert "1/2 correct" in output

    with FlashcardDatabase(seeded_db) as db:
        stats = db.get_study_stats()
        assert stats.cards_studied == 2
        assert stats.correct_answers == 1


def test_review_reprompts_invalid_rating(seeded_db):
    result = invoke(
        seeded_db, "review", "Spanish", "--limit", "1", input="\nfoo\n9\n4\n"
    )
    assert result.exit_code == 0, result.output
    output = normalize_output(result.stdout)
    assert "Please enter a number." in output
    assert "between 0 and 5" in output
    assert "1/1 correct" in output


def test_review_nothing_due(seeded_db):
    invoke(seeded_db, "review", "Spanish", input="\n5\n\n5\n")
    result = invoke(seeded_db, "review", "Spanish")
    assert result.exit_code == 0
    assert "No cards are due" in result.stdout


def test_review_missing_collection(db_path):
    result = invoke(db_path, "review", "Nope")
    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_review_database_error(db_path):
    with patch(
        "flashdeck.cli.main.review_logic", side_effect=DatabaseError("boom")
    ):
        result = invoke(db_path, "review", "Spanish")
    assert result.exit_code == 1
    assert "A database error occurred: boom" in result.stdout


# --- reset / replay ---


def test_reset_and_replay(seeded_db):
    invoke(seeded_db, "review", "Spanish", input="\n5\n\n5\n")

    result = invoke(seeded_db, "reset", "Spanish", "--yes")
    assert result.exit_code == 0
    assert "Reset 2 card(s)" in normalize_output(result.stdout)

    result = invoke(seeded_db, "replay", "Spanish")
    assert result.exit_code == 0
    assert "played 1 time(s)" in normalize_output(result.stdout)

    with FlashcardDatabase(seeded_db) as db:
        collection = db.require_collection("Spanish")
        assert collection.times_played == 1
        for card in db.get_cards_for_collection(collection.id):
            assert card.repetitions == 0
            assert card.interval == 0


def test_reset_cancelled(seeded_db):
    result = invoke(seeded_db, "reset", "Spanish", input="n\n")
    assert result.exit_code == 0
    assert "Reset cancelled" in result.stdout


# --- stats ---


def test_stats(seeded_db):
    invoke(seeded_db, "review", "Spanish", "--limit", "1", input="\n5\n")

    result = invoke(seeded_db, "stats")

    assert result.exit_code == 0
    output = table_text(result.stdout)
    assert "Total Cards 2" in output
    assert "Total Reviews 1" in output
    assert "Accuracy 100%" in output
    assert "Spanish" in output


def test_stats_empty(db_path):
    result = invoke(db_path, "stats")
    assert result.exit_code == 0
    assert "No collections found" in result.stdout


def test_stats_reset(seeded_db):
    invoke(seeded_db, "review", "Spanish", "--limit", "1", input="\n5\n")

    result = invoke(seeded_db, "stats", "--reset", "--yes")

    assert result.exit_code == 0, result.output
    assert "Study statistics reset." in result.stdout
    with FlashcardDatabase(seeded_db) as db:
        assert db.get_study_stats().cards_studied == 0
        # Review history is untouched.
        collection = db.require_collection("Spanish")
        cards = db.get_cards_for_collection(collection.id)
        assert sum(len(db.get_reviews_for_card(c.uuid)) for c in cards) == 1


def test_stats_reset_cancelled(seeded_db):
    invoke(seeded_db, "review", "Spanish", "--limit", "1", input="\n5\n")

    result = invoke(seeded_db, "stats", "--reset", input="n\n")

    assert result.exit_code == 0
    assert "Reset cancelled" in result.stdout
    with FlashcardDatabase(seeded_db) as db:
        assert db.get_study_stats().cards_studied == 1


def test_verbose_flag(db_path):
    result = runner.invoke(app, ["--verbose", "stats", "--db", str(db_path)])
    assert result.exit_code == 0


def test_db_from_environment(db_path):
    result = runner.invoke(
        app, ["collection", "create", "Env"], env={"FLASHDECK_DB": str(db_path)}
    )
    assert result.exit_code == 0
    with FlashcardDatabase(db_path) as db:
        assert db.get_collection_by_name("Env") is not None


# --- export ---


def test_export_csv(seeded_db, tmp_path):
    output = tmp_path / "spanish.csv"
    result = invoke(seeded_db, "export", "csv", "Spanish", "--output", str(output))

    assert result.exit_code == 0
    assert "Exported 2 card(s)" in normalize_output(result.stdout)
    assert sorted(output.read_text(encoding="utf-8").splitlines()) == ["gato,cat", "hola,hello"]


def test_export_md(seeded_db, tmp_path):
    out_dir = tmp_path / "md"
    result = invoke(seeded_db, "export", "md", "--output-dir", str(out_dir))

    assert result.exit_code == 0
    assert "Wrote 1 file(s)" in normalize_output(result.stdout)
    text = (out_dir / "Spanish.md").read_text(encoding="utf-8")
    assert "**Q:** gato" in text


def test_export_csv_missing_collection(db_path, tmp_path):
    result = invoke(db_path, "export", "csv", "Nope", "--output", str(tmp_path / "x.csv"))
    assert result.exit_code == 1
    assert "An error occurred during export" in normalize_output(result.stdout)


# --- entry point ---


def test_main_reports_unexpected_errors(capsys):
    with patch("flashdeck.cli.main.app", side_effect=RuntimeError("kaboom")):
        with pytest.raises(SystemExit) as exc_info:
            main()
    assert exc_info.value.code == 1
    assert "UNEXPECTED ERROR: kaboom" in capsys.readouterr().out

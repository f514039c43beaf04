"""
Contains the business logic for exporting flashcards to CSV and Markdown.
This logic is called by the CLI commands in main.py.
"""

import csv
import logging
from pathlib import Path

from flashdeck.db.database import FlashcardDatabase
from flashdeck.models import Collection

logger = logging.getLogger(__name__)


def _safe_filename(name: str) -> str:
    safe = "".join(c for c in name if c.isalnum() or c in (" ", "_", "-")).rstrip()
    return safe or "unnamed_collection"


def export_to_csv(
    db: FlashcardDatabase, collection: Collection, output_file: Path
) -> int:
    """
    Write one `question,answer` row per card of `collection`.

    Returns:
        int: Number of cards written.

    Raises:
        IOError: If the file cannot be written.
    """
    cards = db.get_cards_for_collection(collection.id)
    try:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with open(output_file, "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f)
            for card in cards:
                writer.writerow([card.question, card.answer])
    except OSError as e:
        logger.error(f"Could not write to file {output_file}: {e}")
        raise IOError(f"Failed to write CSV export: {e}") from e

    logger.info(f"Exported {len(cards)} cards from '{collection.name}' to {output_file}")
    return len(cards)


def export_to_markdown(db: FlashcardDatabase, output_dir: Path) -> int:
    """
    Export every collection to `<output_dir>/<collection name>.md`.

    A file that fails to write is logged and skipped; the rest of the export
    continues.

    Returns:
        int: Number of files written.

    Raises:
        IOError: If the output directory cannot be created.
    """
    logger.info(f"Starting Markdown export to directory: {output_dir}")

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Could not create output directory {output_dir}: {e}")
        raise IOError(f"Failed to create output directory: {e}") from e

    collections = db.get_all_collections()
    if not collections:
        logger.warning("No collections found in the database to export.")
        return 0

    exported_files = 0
    for collection in collections:
        cards = db.get_cards_for_collection(collection.id)
        file_path = output_dir / f"{_safe_filename(collection.name)}.md"
        try:
            with open(file_path, "w", encoding="utf-8") as f:
                f.write(f"# Collection: {collection.name}\n\n")
                if collection.topic:
                    f.write(f"_Topic: {collection.topic}_\n\n")
                for card in sorted(cards, key=lambda c: c.question):
                    f.write(f"**Q:** {card.question}\n\n")
                    f.write(f"**A:** {card.answer}\n\n")
                    f.write("---\n\n")
            exported_files += 1
        except OSError as e:
            logger.error(f"Could not write to file {file_path}: {e}")

    logger.info(
        f"Markdown export complete. Exported {len(collections)} collection(s) to {exported_files} file(s)."
    )
    return exported_files

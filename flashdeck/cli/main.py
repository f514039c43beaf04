"""
CLI entry point for flashdeck.
"""

# Standard library imports
import logging
from pathlib import Path
from typing import Optional
from uuid import UUID

# Third-party imports
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

# Local application imports
from flashdeck.config import settings
from flashdeck.db.database import FlashcardDatabase
from flashdeck.exceptions import CollectionNotFoundError, DatabaseError
from flashdeck.models import Card, Collection
from flashdeck.timeutils import ms_to_datetime, now_ms
from flashdeck.cli._export_logic import export_to_csv, export_to_markdown
from flashdeck.cli._review_logic import review_logic


console = Console()

app = typer.Typer(
    name="flashdeck",
    help="flashdeck: SM-2 spaced repetition flashcards.",
    add_completion=False,
    rich_markup_mode="markdown",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_db_path(db: Optional[Path]) -> Path:
    """Use --db / FLASHDECK_DB when given, else the configured db_path."""
    return db if db is not None else settings.db_path


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else settings.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def _format_ms(ms: int) -> str:
    return ms_to_datetime(ms).strftime("%Y-%m-%d %H:%M")


def _fail(message: str, exc: Optional[BaseException] = None):
    console.print(f"[bold red]{message}[/bold red]")
    raise typer.Exit(code=1) from exc


# Common typer options reused across commands
_db_option = typer.Option(  # noqa: B008
    None,
    "--db",
    help="Path to the DuckDB database file. "
    "Falls back to FLASHDECK_DB, then to the configured db_path.",
    envvar="FLASHDECK_DB",
)

_yes_option = typer.Option(  # noqa: B008
    False, "--yes", "-y", help="Bypass confirmation prompt."
)


@app.callback()
def _main_callback(
    verbose: bool = typer.Option(  # noqa: B008
        False, "--verbose", "-v", help="Enable debug logging."
    ),
):
    _configure_logging(verbose)


# ---------------------------------------------------------------------------
# Collection subcommand group
# ---------------------------------------------------------------------------

collection_app = typer.Typer(
    name="collection",
    help="Create, list and delete collections.",
)
app.add_typer(collection_app)


@collection_app.command("create")
def collection_create(
    name: str = typer.Argument(..., help="Name of the new collection."),  # noqa: B008
    topic: str = typer.Option("", "--topic", help="Optional topic."),  # noqa: B008
    db: Optional[Path] = _db_option,
):
    """Create an empty collection."""
    db_path = _resolve_db_path(db)
    try:
        collection = Collection(name=name, topic=topic)
    except ValidationError as e:
        _fail(f"Invalid collection: {e.errors()[0]['msg']}", e)
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            db_inst.create_collection(collection)
    except DatabaseError as e:
        _fail(f"Error: {e}", e)
    console.print(f"[green]Created collection[/green] [bold]{collection.name}[/bold].")


@collection_app.command("list")
def collection_list(db: Optional[Path] = _db_option):
    """List all collections."""
    db_path = _resolve_db_path(db)
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            collections = db_inst.get_all_collections()
    except DatabaseError as e:
        _fail(f"A database error occurred: {e}", e)

    if not collections:
        console.print("[yellow]No collections yet.[/yellow]")
        return

    table = Table(title="Collections")
    table.add_column("Name", style="cyan")
    table.add_column("Topic")
    table.add_column("Added", style="dim")
    table.add_column("Times Played", style="magenta")
    for collection in collections:
        table.add_row(
            collection.name,
            collection.topic,
            _format_ms(collection.date_added),
            str(collection.times_played),
        )
    console.print(table)


@collection_app.command("delete")
def collection_delete(
    name: str = typer.Argument(..., help="Collection to delete."),  # noqa: B008
    yes: bool = _yes_option,
    db: Optional[Path] = _db_option,
):
    """Delete a collection with all of its cards."""
    db_path = _resolve_db_path(db)
    if not yes and not typer.confirm(
        f"Delete collection '{name}' and all of its cards?"
    ):
        console.print("Delete cancelled.")
        raise typer.Exit()
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            collection = db_inst.require_collection(name)
            db_inst.delete_collection(collection.id)
    except DatabaseError as e:
        _fail(f"Error: {e}", e)
    console.print(f"[green]Deleted collection[/green] [bold]{name}[/bold].")


# ---------------------------------------------------------------------------
# Card commands
# ---------------------------------------------------------------------------


@app.command()
def add(
    collection_name: str = typer.Argument(..., help="Target collection."),  # noqa: B008
    question: str = typer.Option(..., "--question", "-q"),  # noqa: B008
    answer: str = typer.Option(..., "--answer", "-a"),  # noqa: B008
    db: Optional[Path] = _db_option,
):
    """Add a card to a collection. The card is due immediately."""
    db_path = _resolve_db_path(db)
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            collection = db_inst.require_collection(collection_name)
            try:
                card = Card(
                    collection_id=collection.id, question=question, answer=answer
                )
            except ValidationError as e:
                errors = "; ".join(
                    f"{err['loc'][0]}: {err['msg']}" for err in e.errors()
                )
                _fail(f"Invalid card: {errors}", e)
            db_inst.add_cards([card])
    except DatabaseError as e:
        _fail(f"Error: {e}", e)
    console.print(f"[green]Added card[/green] {card.uuid}")


@app.command()
def cards(
    collection_name: str = typer.Argument(..., help="Collection to list."),  # noqa: B008
    db: Optional[Path] = _db_option,
):
    """List the cards of a collection with their scheduling state."""
    db_path = _resolve_db_path(db)
    now = now_ms()
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            collection = db_inst.require_collection(collection_name)
            collection_cards = db_inst.get_cards_for_collection(collection.id)
    except DatabaseError as e:
        _fail(f"Error: {e}", e)

    if not collection_cards:
        console.print("[yellow]No cards in this collection yet.[/yellow]")
        return

    table = Table(title=f"Cards in {collection.name}")
    table.add_column("UUID", style="dim")
    table.add_column("Question", style="cyan")
    table.add_column("Interval", justify="right")
    table.add_column("Ease", justify="right")
    table.add_column("Reps", justify="right")
    table.add_column("Next Review")
    table.add_column("Due", style="yellow")
    for card in collection_cards:
        table.add_row(
            str(card.uuid),
            card.question,
            f"{card.interval}d",
            f"{card.ease_factor:.2f}",
            str(card.repetitions),
            _format_ms(card.next_review),
            "yes" if card.is_due(now) else "",
        )
    console.print(table)


@app.command("delete-card")
def delete_card(
    card_uuid: UUID = typer.Argument(..., help="UUID of the card to delete."),  # noqa: B008
    db: Optional[Path] = _db_option,
):
    """Delete a single card and its review history."""
    db_path = _resolve_db_path(db)
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            deleted = db_inst.delete_card(card_uuid)
    except DatabaseError as e:
        _fail(f"Error: {e}", e)
    if not deleted:
        _fail(f"Card {card_uuid} not found.")
    console.print(f"[green]Deleted card[/green] {card_uuid}")


# ---------------------------------------------------------------------------
# Review commands
# ---------------------------------------------------------------------------


@app.command()
def review(
    collection_name: str = typer.Argument(  # noqa: B008
        ..., help="The name of the collection to review."
    ),
    limit: Optional[int] = typer.Option(  # noqa: B008
        None, "--limit", "-l", help="Maximum number of cards to review."
    ),
    seed: Optional[int] = typer.Option(  # noqa: B008
        None, "--seed", help="Seed for a reproducible card order."
    ),
    db: Optional[Path] = _db_option,
):
    """Starts a review session over the due cards of a collection."""
    db_path = _resolve_db_path(db)
    console.print(
        f"Starting review for collection: [bold cyan]{collection_name}[/bold cyan]"
    )
    try:
        review_logic(
            collection_name=collection_name,
            db_path=db_path,
            limit=limit if limit is not None else settings.session_limit,
            seed=seed,
        )
    except CollectionNotFoundError as e:
        _fail(f"Error: {e}", e)
    except DatabaseError as e:
        _fail(f"A database error occurred: {e}", e)


@app.command()
def reset(
    collection_name: str = typer.Argument(..., help="Collection to reset."),  # noqa: B008
    yes: bool = _yes_option,
    db: Optional[Path] = _db_option,
):
    """Reset every card of a collection to its initial scheduling state."""
    db_path = _resolve_db_path(db)
    if not yes and not typer.confirm(
        f"Reset all study progress in '{collection_name}'?"
    ):
        console.print("Reset cancelled.")
        raise typer.Exit()
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            collection = db_inst.require_collection(collection_name)
            count = db_inst.reset_collection_progress(collection.id, now_ms())
    except DatabaseError as e:
        _fail(f"Error: {e}", e)
    console.print(f"[green]Reset {count} card(s)[/green] in {collection_name}.")


@app.command()
def replay(
    collection_name: str = typer.Argument(..., help="Collection to replay."),  # noqa: B008
    db: Optional[Path] = _db_option,
):
    """Start a collection over from scratch and count another play."""
    db_path = _resolve_db_path(db)
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            collection = db_inst.require_collection(collection_name)
            collection = db_inst.replay_collection(collection.id, now_ms())
    except DatabaseError as e:
        _fail(f"Error: {e}", e)
    console.print(
        f"[green]{collection.name} is ready to replay[/green] "
        f"(played {collection.times_played} time(s))."
    )


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


def _display_overall_stats(cons: Console, stats_data: dict):
    study = stats_data["study"]
    overall_table = Table(title="Overall Stats", show_header=False)
    overall_table.add_column("Metric", style="cyan")
    overall_table.add_column("Value", style="magenta")
    overall_table.add_row("Total Cards", str(stats_data["total_cards"]))
    overall_table.add_row("Total Reviews", str(stats_data["total_reviews"]))
    overall_table.add_row("Cards Studied", str(study.cards_studied))
    overall_table.add_row("Accuracy", f"{study.accuracy_percentage}%")
    overall_table.add_row("Current Streak", f"{study.streak} cards")
    cons.print(overall_table)


def _display_collection_stats(cons: Console, stats_data: dict):
    table = Table(title="Collections")
    table.add_column("Name", style="cyan")
    table.add_column("Cards", style="magenta")
    table.add_column("Due", style="yellow")
    table.add_column("Mastered", style="green")
    table.add_column("Times Played")
    for row in stats_data["collections"]:
        table.add_row(
            row["name"],
            str(row["card_count"]),
            str(row["due_count"]),
            str(row["mastered_count"]),
            str(row["times_played"]),
        )
    cons.print(table)


@app.command()
def stats(
    reset: bool = typer.Option(  # noqa: B008
        False, "--reset", help="Clear the running study statistics."
    ),
    yes: bool = _yes_option,
    db: Optional[Path] = _db_option,
):
    """Display study statistics, or clear them with --reset."""
    db_path = _resolve_db_path(db)
    if reset:
        if not yes and not typer.confirm("Reset all study statistics?"):
            console.print("Reset cancelled.")
            raise typer.Exit()
        try:
            with FlashcardDatabase(db_path=db_path) as db_inst:
                db_inst.reset_study_stats()
        except DatabaseError as e:
            _fail(f"A database error occurred: {e}", e)
        console.print("[green]Study statistics reset.[/green]")
        return

    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            stats_data = db_inst.get_database_stats(now_ms())
    except DatabaseError as e:
        _fail(f"A database error occurred: {e}", e)

    _display_overall_stats(console, stats_data)
    if not stats_data["collections"]:
        console.print("[yellow]No collections found in the database.[/yellow]")
        return
    _display_collection_stats(console, stats_data)


# ---------------------------------------------------------------------------
# Export subcommand group
# ---------------------------------------------------------------------------

export_app = typer.Typer(
    name="export",
    help="Export flashcards to different formats.",
)
app.add_typer(export_app)


@export_app.command("csv")
def export_csv(
    collection_name: str = typer.Argument(..., help="Collection to export."),  # noqa: B008
    output: Path = typer.Option(  # noqa: B008
        ..., "--output", "-o", help="CSV file to write.", dir_okay=False
    ),
    db: Optional[Path] = _db_option,
):
    """Export a collection as question,answer CSV rows."""
    db_path = _resolve_db_path(db)
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            collection = db_inst.require_collection(collection_name)
            count = export_to_csv(db_inst, collection, output)
    except (DatabaseError, IOError) as e:
        _fail(f"An error occurred during export: {e}", e)
    console.print(f"Exported {count} card(s) to [cyan]{output}[/cyan].")


@export_app.command("md")
def export_md(
    output_dir: Path = typer.Option(  # noqa: B008
        ...,
        "--output-dir",
        help="Directory to save exported Markdown files.",
        file_okay=False,
        dir_okay=True,
    ),
    db: Optional[Path] = _db_option,
):
    """Export every collection into one Markdown file each."""
    db_path = _resolve_db_path(db)
    console.print(f"Exporting flashcards to [cyan]{output_dir}[/cyan]...")
    try:
        with FlashcardDatabase(db_path=db_path) as db_inst:
            count = export_to_markdown(db=db_inst, output_dir=output_dir)
    except (DatabaseError, IOError) as e:
        _fail(f"An error occurred during export: {e}", e)
    console.print(f"Wrote {count} file(s).")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """
    Run the CLI application, turning any unexpected exception into exit
    status 1.
    """
    try:
        app()
    except Exception as e:
        console.print(f"[bold red]UNEXPECTED ERROR: {e}[/bold red]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()

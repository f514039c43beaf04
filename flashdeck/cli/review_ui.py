"""
Command-line interface for reviewing flashcards.
"""

import logging

from rich.console import Console
from rich.panel import Panel

from flashdeck.constants import MAX_QUALITY, MIN_QUALITY, PASS_THRESHOLD
from flashdeck.models import Card
from flashdeck.review_manager import ReviewSessionManager
from flashdeck.timeutils import ms_to_datetime

logger = logging.getLogger(__name__)
console = Console()

_RATING_PROMPT = (
    "[bold]Rating (0:Blackout 1:Wrong 2:Almost 3:Hard 4:Good 5:Perfect): [/bold]"
)


def _get_user_rating() -> int:
    """Prompt until the user enters an integer between 0 and 5."""
    while True:
        rating_str = console.input(_RATING_PROMPT)
        try:
            rating = int(rating_str)
        except ValueError:
            console.print("[bold red]Invalid input. Please enter a number.[/bold red]")
            continue
        if MIN_QUALITY <= rating <= MAX_QUALITY:
            return rating
        console.print(
            f"[bold red]Invalid rating. Please enter a number between "
            f"{MIN_QUALITY} and {MAX_QUALITY}.[/bold red]"
        )


def _display_card(card: Card) -> None:
    """Show the question, wait for Enter, then reveal the answer."""
    console.print(Panel(card.question, title="Question", border_style="green"))
    console.input("[italic]Press Enter to see the answer...[/italic]")
    console.print(Panel(card.answer, title="Answer", border_style="blue"))


def start_review_flow(
    manager: ReviewSessionManager, limit: int = 20
) -> None:
    """
    Runs an interactive review session until no due cards are left.
    """
    console.print("[bold cyan]Starting review session...[/bold cyan]")
    manager.initialize_session(limit=limit)

    due_cards_count = len(manager.review_queue)
    if due_cards_count == 0:
        console.print("[bold yellow]No cards are due for review.[/bold yellow]")
        console.print("[bold cyan]Review session finished.[/bold cyan]")
        return

    reviewed_count = 0
    while (card := manager.get_next_card()) is not None:
        reviewed_count += 1
        console.rule(f"[bold]Card {reviewed_count} of {due_cards_count}[/bold]")

        _display_card(card)
        rating = _get_user_rating()

        try:
            updated_card = manager.submit_review(card_uuid=card.uuid, quality=rating)
        except Exception as e:
            logger.error(f"Failed to submit review for {card.uuid}: {e}")
            console.print(
                "[bold red]Error saving card progress. Card will be reviewed again later.[/bold red]"
            )
            manager.skip_card(card.uuid)
            continue

        due_date_str = ms_to_datetime(updated_card.next_review).strftime("%Y-%m-%d")
        verdict = "[green]Correct.[/green]" if rating >= PASS_THRESHOLD else "[yellow]Lapse.[/yellow]"
        console.print(
            f"{verdict} Next review in [bold]{updated_card.interval} day(s)[/bold] on {due_date_str}."
        )
        console.print("")

    stats = manager.get_session_stats()
    console.print(
        f"[bold cyan]Review session finished. "
        f"{stats['correct_cards']}/{stats['reviewed_cards']} correct. Well done![/bold cyan]"
    )

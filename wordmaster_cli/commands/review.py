"""Review Commands - queue, submission and interactive sessions"""

import time
import uuid
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt

from ..client.base import WordMasterError
from ..client.endpoints import WordMasterClient
from ..utils.config_manager import config
from ..utils.formatting import (
    create_review_queue_table,
    create_state_panel,
    create_summary_panel,
    display_word,
    print_error,
    print_info,
    print_success,
)

console = Console()
app = typer.Typer(name="review", help="Review queue and submission commands")

QUALITIES = ("again", "hard", "good", "easy")


def _resolve_collection(collection: Optional[str]) -> str:
    collection = collection or config.get("review.collection")
    if not collection:
        print_error("No collection given. Use --collection or set review.collection")
        raise typer.Exit(1)
    return collection


@app.command("queue")
def show_queue(
    collection: Optional[str] = typer.Option(None, "--collection", "-c", help="Collection id"),
    limit: int = typer.Option(20, "--limit", "-l", help="Number of items to show"),
    mix_new: float = typer.Option(0.2, "--mix-new", "-m", help="Proportion of new items (0.0-1.0)"),
):
    """📋 Show due and new words"""
    collection_id = _resolve_collection(collection)

    try:
        with WordMasterClient() as client:
            queue_data = client.get_review_queue(collection_id, limit=limit, mix_new=mix_new)
    except WordMasterError as e:
        print_error(f"Failed to get review queue: {e}")
        raise typer.Exit(1)

    if not queue_data.get("due") and not queue_data.get("new"):
        console.print(Panel(
            "🎉 [green]No words to review right now![/green]",
            title="Empty Queue",
            border_style="green",
        ))
        return

    console.print(create_review_queue_table(queue_data))
    console.print(
        f"\n📊 Queue Summary: [yellow]{len(queue_data.get('due', []))}[/yellow] due, "
        f"[cyan]{len(queue_data.get('new', []))}[/cyan] new"
    )


@app.command("submit")
def submit_review(
    item_id: int = typer.Argument(..., help="Item ID to review"),
    quality: str = typer.Option(..., "--quality", "-q", help="again, hard, good or easy"),
):
    """✅ Submit a review for a word"""
    quality = quality.lower()
    if quality not in QUALITIES:
        print_error(f"Quality must be one of: {', '.join(QUALITIES)}")
        raise typer.Exit(1)

    try:
        with WordMasterClient() as client:
            result = client.submit_review(item_id=item_id, quality=quality)
    except WordMasterError as e:
        print_error(f"Failed to submit review: {e}")
        raise typer.Exit(1)

    print_success(
        f"Review submitted! Next review: {result.get('next_review_date', 'unknown')} "
        f"(in {result.get('interval_days', '?')} days)"
    )


@app.command("show")
def show_state(item_id: int = typer.Argument(..., help="Item ID")):
    """🔎 Show the schedule of a word"""
    try:
        with WordMasterClient() as client:
            state = client.get_review_state(item_id)
            preview = client.preview_intervals(item_id)
    except WordMasterError as e:
        print_error(f"Failed to load state: {e}")
        raise typer.Exit(1)

    console.print(create_state_panel(state))
    intervals = preview.get("intervals", {})
    console.print(
        "Next interval by answer: "
        + ", ".join(f"[cyan]{q}[/cyan]={intervals.get(q)}d" for q in QUALITIES)
    )


@app.command("session")
def interactive_session(
    collection: Optional[str] = typer.Option(None, "--collection", "-c", help="Collection id"),
    limit: int = typer.Option(10, "--limit", "-l", help="Number of words to study"),
    mix_new: float = typer.Option(0.2, "--mix-new", "-m", help="Proportion of new words"),
):
    """🎯 Start an interactive study session"""
    collection_id = _resolve_collection(collection)

    try:
        with WordMasterClient() as client:
            queue_data = client.get_review_queue(collection_id, limit=limit, mix_new=mix_new)
            run_session(client, queue_data)
    except WordMasterError as e:
        print_error(f"Session failed: {e}")
        raise typer.Exit(1)


def run_session(client: WordMasterClient, queue_data: dict):
    """Present each word, ask whether it was known and time the answer"""
    items = queue_data.get("due", []) + queue_data.get("new", [])
    if not items:
        console.print("No words to study!")
        return

    session_id = str(uuid.uuid4())
    print_info(f"Studying {len(items)} words. Answer 'q' to stop early.")

    for index, item in enumerate(items, start=1):
        console.rule(f"[bold blue]Word {index}/{len(items)}[/bold blue]")
        display_word(item)

        started = time.monotonic()
        answer = Prompt.ask("Do you know it?", choices=["y", "n", "q"], default="y")
        if answer == "q":
            break
        duration_s = int(time.monotonic() - started)
        display_word(item, reveal=True)

        try:
            result = client.submit_review(
                item_id=item["id"],
                known=answer == "y",
                duration_s=duration_s,
                session_id=session_id,
            )
        except WordMasterError as e:
            print_error(f"Failed to submit: {e}")
            if not Confirm.ask("Continue with next word?"):
                break
            continue

        console.print(
            f"[green]{result.get('quality', '').title()}[/green] → next review "
            f"{result.get('next_review_date')}"
        )

    summary = client.get_study_summary(session_id=session_id)
    console.print(create_summary_panel(summary, title="Session Summary"))


@app.command("summary")
def show_summary(
    collection: Optional[str] = typer.Option(None, "--collection", "-c", help="Collection id"),
    day: Optional[str] = typer.Option(None, "--day", "-d", help="Study day (YYYY-MM-DD), defaults to today"),
):
    """📈 Show what was studied in a collection on one day"""
    collection_id = _resolve_collection(collection)

    try:
        with WordMasterClient() as client:
            summary = client.get_study_summary(collection_id=collection_id, day=day)
    except WordMasterError as e:
        print_error(f"Failed to load summary: {e}")
        raise typer.Exit(1)

    console.print(create_summary_panel(summary, title=f"{collection_id} on {summary.get('day')}"))

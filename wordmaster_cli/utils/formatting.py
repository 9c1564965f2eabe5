"""Rich formatting helpers for CLI output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

MASTERY_STYLES = {
    "not_learned": "dim",
    "learning": "yellow",
    "mastered": "green",
}


def print_success(message: str):
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    console.print(f"[red]✗ {message}[/red]")


def print_info(message: str):
    console.print(f"[blue]ℹ {message}[/blue]")


def _translation_preview(payload: dict[str, Any]) -> str:
    translations = payload.get("translations") or payload.get("trans") or []
    if isinstance(translations, str):
        text = translations
    else:
        parts = []
        for entry in translations:
            if isinstance(entry, dict):
                parts.append(" ".join(str(v) for v in entry.values() if v))
            else:
                parts.append(str(entry))
        text = "; ".join(parts)
    return text[:50] + "..." if len(text) > 50 else text or "—"


def create_review_queue_table(queue_data: dict[str, Any]) -> Table:
    """Create formatted table for review queue"""
    table = Table(title="Review Queue", box=box.ROUNDED)

    table.add_column("Status", justify="center", style="bold")
    table.add_column("ID", justify="right", style="cyan", no_wrap=True)
    table.add_column("Word", justify="left", style="magenta")
    table.add_column("Due", justify="center", style="yellow")
    table.add_column("Meaning", justify="left", style="white")

    for item in queue_data.get("due", []):
        table.add_row(
            "📅 Due",
            str(item.get("id", "")),
            item.get("word", ""),
            item.get("next_review_date") or "today",
            _translation_preview(item.get("payload", {})),
        )

    for item in queue_data.get("new", []):
        table.add_row(
            "🆕 New",
            str(item.get("id", "")),
            item.get("word", ""),
            "—",
            _translation_preview(item.get("payload", {})),
        )

    return table


def create_state_panel(state: dict[str, Any]) -> Panel:
    """Panel describing one item's schedule"""
    mastery = state.get("mastery_level", "not_learned")
    style = MASTERY_STYLES.get(mastery, "white")
    content = (
        f"• Mastery: [{style}]{mastery.replace('_', ' ')}[/{style}]\n"
        f"• Next review: [yellow]{state.get('next_review_date')}[/yellow]\n"
        f"• Interval: [cyan]{state.get('interval')} days[/cyan]\n"
        f"• Repetitions: [cyan]{state.get('repetition_count')}[/cyan]\n"
        f"• Easiness: [cyan]{state.get('easiness_factor', 0):.2f}[/cyan]"
    )
    return Panel(content, title=f"Item {state.get('item_id')}", border_style="blue")


def display_word(item: dict[str, Any], reveal: bool = False):
    """Show the word, and its meaning once revealed"""
    payload = item.get("payload", {})
    phonetic = payload.get("phonetic") or payload.get("phonetic_us") or ""
    console.print(
        Panel(
            f"[bold]{item.get('word', '')}[/bold]  [dim]{phonetic}[/dim]",
            title="📚 Word",
            border_style="blue",
        )
    )
    if reveal:
        console.print(
            Panel(_translation_preview(payload), title="📖 Meaning", border_style="green")
        )


def create_summary_panel(summary: dict[str, Any], title: str = "Study Summary") -> Panel:
    """Panel with the totals of recorded study events"""
    total = summary.get("total_items", 0)
    if not total:
        return Panel("[yellow]Nothing studied yet.[/yellow]", title=title, border_style="yellow")

    content = (
        f"🎉 [green]Session Complete![/green]\n\n"
        f"Words studied: [cyan]{total}[/cyan] "
        f"([magenta]{summary.get('learned_items', 0)}[/magenta] new)\n"
        f"Known: [green]{summary.get('known_items', 0)}[/green]  "
        f"Unknown: [red]{summary.get('unknown_items', 0)}[/red]\n"
        f"Time spent: [cyan]{summary.get('total_duration_s', 0)}s[/cyan]"
    )
    return Panel(content, title=title, border_style="green")

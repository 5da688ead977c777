from __future__ import annotations

from typing import Iterable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stmt2subs.models import Candidate

_NAME_MAX = 40


def render_banner(console: Console) -> None:
    console.print(Panel.fit("stmt2subs: statement → subscriptions", style="bold cyan"))


def _truncate(text: str, max_len: int = _NAME_MAX) -> str:
    """Truncate text with ellipsis if it exceeds *max_len*."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 1] + "…"


def candidate_label(index: int, candidate: Candidate) -> str:
    return f"{index + 1:>3}. {_truncate(candidate.name)}  {candidate.amount:,.2f} / {candidate.interval}"


def render_candidates(console: Console, candidates: Iterable[Candidate]) -> None:
    table = Table(title="Detected Subscriptions", show_lines=True)
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Amount", justify="right")
    table.add_column("Source")
    table.add_column("Tracked")
    table.add_column("Cancel via")

    for index, candidate in enumerate(candidates, start=1):
        cancel = candidate.cancel.label if candidate.cancel else "-"
        table.add_row(
            str(index),
            _truncate(candidate.name),
            f"{candidate.amount:,.2f}",
            candidate.source.upper(),
            "yes" if candidate.subscription_id else "no",
            cancel,
        )
    console.print(table)


def render_import_summary(
    console: Console,
    created: int,
    skipped: int,
    existing: int,
    failures: list[str],
) -> None:
    style = "green" if created else "yellow"
    lines = [
        f"Created: {created}",
        f"Skipped: {skipped} ({existing} already tracked)",
    ]
    console.print(Panel.fit("\n".join(lines), title="Import Summary", style=style))
    if failures:
        shown = failures[:5]
        text = "\n".join(shown)
        if len(failures) > 5:
            text = f"{text}\n... (+{len(failures) - 5} more)"
        console.print(Panel.fit(text, title="Create failures", style="yellow"))


def render_review_summary(console: Console, summary: dict[str, int], update_failures: int) -> None:
    text = (
        f"Created: {summary['created']}\n"
        f"Skipped: {summary['skipped']}\n"
        f"Canceled: {summary['canceled']}"
    )
    if update_failures:
        text += f"\n[yellow]Could not mark {update_failures} inactive[/yellow]"
    console.print(Panel.fit(text, title="Review Finished"))

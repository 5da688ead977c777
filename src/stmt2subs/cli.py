from __future__ import annotations

import logging
import webbrowser
from dataclasses import replace
from pathlib import Path

import typer
from InquirerPy import inquirer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from stmt2subs.config import DEFAULT_STATE_DIR, load_env, preflight
from stmt2subs.handlers.loader import statement_kind
from stmt2subs.handlers.store import HttpSubscriptionStore, InMemorySubscriptionStore
from stmt2subs.helpers.errors import (
    AlreadyImportedError,
    Stage,
    StageError,
    UnreadableDocumentError,
    format_stage_error,
)
from stmt2subs.helpers.fs import (
    ensure_state_dir,
    file_fingerprint,
    load_fingerprints,
    load_local_settings,
    store_fingerprint,
)
from stmt2subs.helpers.ui import (
    candidate_label,
    render_banner,
    render_candidates,
    render_import_summary,
    render_review_summary,
)
from stmt2subs.pipeline import ImportPipeline
from stmt2subs.rules import ExtractionRules
from stmt2subs.workflow.decisions import DecisionWorkflow, WorkflowEvent

app = typer.Typer(add_completion=False)
console = Console()
logger = logging.getLogger("stmt2subs")


class UserAbort(Exception):
    pass


def _prompt_select(message: str, choices: list[tuple[str, str]], default: str) -> str:
    options = [
        {"name": label, "value": value}
        for label, value in choices
        if value != "__quit__"
    ]
    options.append({"name": "Quit (q)", "value": "__quit__"})
    result = inquirer.select(message=message, choices=options, default=default).execute()
    if result == "__quit__":
        raise UserAbort()
    return result


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _log_event(event: WorkflowEvent) -> None:
    if event.kind == "decision" and event.candidate is not None:
        logger.debug("%s: %s", event.decision.value, event.candidate.name)
    else:
        logger.debug("%s → %s", event.kind, event.state.value)


def _build_rules(base_dir: Path, default_category_id: str | None) -> ExtractionRules:
    paths = ensure_state_dir(base_dir)
    rules = ExtractionRules.from_settings(load_local_settings(paths["settings"]))
    if default_category_id:
        rules = replace(rules, default_category_id=default_category_id)
    return rules


def _open_link(url: str) -> None:
    console.print(f"[dim]Opening {url}[/dim]")
    webbrowser.open(url, new=2)


def _review(workflow: DecisionWorkflow) -> None:
    total = len(workflow.candidates)
    while workflow.current is not None:
        candidate = workflow.current
        cancel_hint = f" (cancel via {candidate.cancel.label})" if candidate.cancel else ""
        action = _prompt_select(
            f"[{workflow.cursor + 1}/{total}] {candidate_label(workflow.cursor, candidate)}{cancel_hint}",
            choices=[
                ("Keep", "keep"),
                ("Cancel", "cancel"),
                ("Cancel all", "cancel_all"),
            ],
            default="keep",
        )
        workflow.decide(action)


@app.command()
def main(
    statement: Path = typer.Argument(..., help="Bank or card statement (.pdf or .csv)."),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Use an in-memory store instead of the subscription API.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Import even if this file was imported before.",
    ),
    cancel_all: bool = typer.Option(
        False,
        "--cancel-all",
        help="Without prompts, cancel every detected subscription.",
    ),
    subscriptions_only: bool = typer.Option(
        False,
        "--subscriptions-only",
        help="Drop charges that do not look like a known subscription.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    dev_non_interactive: bool = typer.Option(
        False,
        "--dev-non-interactive",
        help="(dev) Skip prompts; keep everything unless --cancel-all.",
        hidden=True,
    ),
    base_dir: Path = typer.Option(
        DEFAULT_STATE_DIR,
        "--base-dir",
        help="(dev) Override the settings/state directory.",
        hidden=True,
    ),
) -> None:
    load_env()
    _configure_logging(verbose)
    render_banner(console)

    try:
        settings = preflight(dry_run)
        statement_kind(statement)
        if not statement.is_file():
            raise UnreadableDocumentError(
                stage=Stage.LOAD,
                message=f"{statement} not found.",
            )

        paths = ensure_state_dir(base_dir)
        rules = _build_rules(base_dir, settings.default_category_id)
        if subscriptions_only:
            rules = replace(rules, likely_subscriptions_only=True)
        fingerprint = file_fingerprint(statement)
        if not force and fingerprint in load_fingerprints(paths["fingerprints"]):
            raise AlreadyImportedError(
                stage=Stage.PREFLIGHT,
                message=f"{statement.name} was already imported.",
                hint="Pass --force to import it again.",
            )

        if dry_run:
            store = InMemorySubscriptionStore()
            console.print("[dim]Dry run: nothing is sent to the subscription API.[/dim]")
        else:
            store = HttpSubscriptionStore(
                settings.api_url, settings.api_token, timeout=settings.timeout
            )

        pipeline = ImportPipeline(store, rules)
        workflow = DecisionWorkflow(pipeline, open_link=_open_link, on_event=_log_event)
        try:
            result = workflow.start(statement)
        except KeyboardInterrupt:
            workflow.abort()
            console.print(
                f"Aborted. Created so far: {workflow.created_count}, "
                f"skipped: {workflow.skipped_count}."
            )
            raise typer.Exit(code=130)

        if not dry_run:
            store_fingerprint(paths["fingerprints"], fingerprint)

        render_import_summary(
            console,
            created=result.created_count,
            skipped=result.skipped_count,
            existing=result.existing_count,
            failures=result.failures,
        )
        render_candidates(console, workflow.candidates)

        if dev_non_interactive or cancel_all:
            if cancel_all:
                workflow.cancel_all()
            else:
                while workflow.current is not None:
                    workflow.keep()
        else:
            try:
                _review(workflow)
            except UserAbort:
                console.print("Review stopped. Remaining subscriptions were kept.")

        render_review_summary(console, workflow.summary(), workflow.update_failures)
    except StageError as exc:
        console.print(f"[red]{escape(str(exc.stage.value))}[/red] {escape(format_stage_error(exc))}")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()

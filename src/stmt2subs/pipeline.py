"""Statement import: parse, dedupe, create, re-fetch and bind.

``ImportPipeline.parse`` is pure extraction and raises a ``StageError`` on
anything that ends the attempt. ``ImportPipeline.persist`` talks to the
store and never raises for a single failed create.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from stmt2subs.extraction.dedupe import dedupe_candidates
from stmt2subs.extraction.pdf import extract_from_fragments
from stmt2subs.extraction.stages import SubscriptionFilter
from stmt2subs.extraction.tabular import extract_csv_candidates
from stmt2subs.handlers.cancel_links import CancelLinkRegistry
from stmt2subs.handlers.loader import load_csv_text, load_pdf_fragments, statement_kind
from stmt2subs.handlers.store import SubscriptionStore
from stmt2subs.helpers.errors import (
    AbortedError,
    NoCandidatesError,
    Stage,
    StageError,
    StoreError,
    UnreadableDocumentError,
)
from stmt2subs.matching.matcher import bind_subscriptions, split_existing
from stmt2subs.models import Candidate, ExistingSubscription, ImportResult
from stmt2subs.rules import ExtractionRules
from stmt2subs.workflow.runner import AbortSignal, SequentialRunner

logger = logging.getLogger(__name__)


class ImportPipeline:
    def __init__(
        self,
        store: SubscriptionStore,
        rules: ExtractionRules | None = None,
        cancel_links: CancelLinkRegistry | None = None,
        pdf_loader: Callable = load_pdf_fragments,
        csv_loader: Callable[[Path], str] = load_csv_text,
    ) -> None:
        self.store = store
        self.rules = rules or ExtractionRules()
        self.cancel_links = cancel_links or CancelLinkRegistry()
        self.pdf_loader = pdf_loader
        self.csv_loader = csv_loader

    def parse(self, path: Path) -> list[Candidate]:
        kind = statement_kind(path)
        if kind == "pdf":
            candidates = extract_from_fragments(self.pdf_loader(path), self.rules)
        else:
            candidates = extract_csv_candidates(self.csv_loader(path), self.rules)
        candidates = dedupe_candidates(candidates, self.rules)
        if not candidates:
            raise NoCandidatesError(
                stage=Stage.EXTRACT,
                message=f"No subscriptions found in {path.name}.",
                hint="Check that the statement lists card or direct-debit charges.",
            )
        if self.rules.likely_subscriptions_only:
            found = len(candidates)
            subscriptions = SubscriptionFilter(self.rules, self.cancel_links.is_known)
            candidates = subscriptions.apply(candidates)
            if not candidates:
                raise NoCandidatesError(
                    stage=Stage.EXTRACT,
                    message=f"Found {found} transactions but none matched known subscriptions.",
                    hint="Turn off likely_subscriptions_only to review every charge.",
                )
        logger.info("Extracted %d candidate(s) from %s", len(candidates), path.name)
        return candidates

    def _fetch_existing(self, signal: AbortSignal) -> list[ExistingSubscription]:
        try:
            return self.store.list_subscriptions(signal)
        except StoreError as exc:
            raise StageError(
                stage=Stage.CREATE,
                message="Could not fetch current subscriptions.",
                hint=str(exc),
            ) from exc

    def persist(
        self,
        candidates: list[Candidate],
        signal: AbortSignal | None = None,
        result: ImportResult | None = None,
    ) -> ImportResult:
        """Create new candidates one by one and bind every candidate to a record.

        Counts accumulate on *result* as each call completes, so a caller
        holding it keeps exact numbers even if the run is interrupted.
        """
        signal = signal or AbortSignal()
        if result is None:
            result = ImportResult(candidates=candidates)
        result.candidates = candidates

        to_create, existing = split_existing(
            candidates, self._fetch_existing(signal), self.rules
        )
        result.skipped_count = result.existing_count = len(existing)

        created: list[Candidate] = []
        runner = SequentialRunner(signal)
        category = self.rules.default_category_id
        for outcome in runner.run(
            to_create,
            lambda candidate: self.store.create_subscription(candidate.to_body(category), signal),
        ):
            if outcome.ok:
                result.created_count += 1
                created.append(outcome.item)
            else:
                result.skipped_count += 1
                result.failures.append(f"{outcome.item.name}: {outcome.error}")

        if signal.aborted:
            logger.info("Import aborted after %d create(s)", result.created_count)
            return result

        try:
            refreshed = self.store.list_subscriptions(signal)
        except (StoreError, AbortedError) as exc:
            logger.warning("Re-fetch after create failed: %s", exc)
            refreshed = []
        bind_subscriptions(candidates, refreshed, created, self.rules)
        for candidate in candidates:
            candidate.cancel = self.cancel_links.resolve(candidate.name)
        return result

    def run(self, path: Path, signal: AbortSignal | None = None) -> ImportResult:
        try:
            candidates = self.parse(path)
        except StageError:
            raise
        except Exception as exc:
            raise UnreadableDocumentError(
                stage=Stage.EXTRACT,
                message=f"Could not process {path.name}.",
                hint=str(exc),
            ) from exc
        return self.persist(candidates, signal)

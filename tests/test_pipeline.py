"""Tests for the import pipeline against an in-memory store."""
from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from stmt2subs.extraction.lines import StatementFragment
from stmt2subs.handlers.store import InMemorySubscriptionStore
from stmt2subs.helpers.errors import (
    NoCandidatesError,
    Stage,
    StageError,
    StoreError,
    UnreadableDocumentError,
    UnsupportedInputError,
)
from stmt2subs.pipeline import ImportPipeline
from stmt2subs.rules import DEFAULT_CATEGORY_ID, ExtractionRules
from stmt2subs.workflow.runner import AbortSignal


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _fragments(*lines: str) -> list[StatementFragment]:
    return [
        StatementFragment(text=line, y=float(index * 20), is_line_end=True)
        for index, line in enumerate(lines)
    ]


def _pdf_pipeline(store: Any, *lines: str) -> ImportPipeline:
    return ImportPipeline(store, pdf_loader=lambda path: _fragments(*lines))


class FailingCreateStore(InMemorySubscriptionStore):
    def __init__(self, fail_names: set[str], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.fail_names = fail_names

    def create_subscription(self, body, signal=None):
        if body["name"] in self.fail_names:
            self.calls.append(("create-failed", body))
            raise StoreError(f"rejected {body['name']}")
        return super().create_subscription(body, signal)


class AbortAfterFirstCreateStore(InMemorySubscriptionStore):
    def __init__(self, signal: AbortSignal) -> None:
        super().__init__()
        self.signal = signal

    def create_subscription(self, body, signal=None):
        subscription_id = super().create_subscription(body, signal)
        self.signal.abort()
        return subscription_id


# ---------------------------------------------------------------------------
# Parse
# ---------------------------------------------------------------------------

def test_parse_pdf_statement(tmp_path: Path) -> None:
    pipeline = _pdf_pipeline(
        InMemorySubscriptionStore(), "NETFLIX.COM   12,99 EUR", "SALDO   842,10 EUR"
    )

    candidates = pipeline.parse(tmp_path / "statement.pdf")

    assert [(c.name, c.amount, c.source) for c in candidates] == [("NETFLIX COM", 12.99, "pdf")]


def test_parse_csv_statement(tmp_path: Path) -> None:
    path = tmp_path / "export.csv"
    path.write_text("Date,Description,Amount\n2026-01-04,Spotify Premium,-10.99\n", encoding="utf-8")

    candidates = ImportPipeline(InMemorySubscriptionStore()).parse(path)

    assert [(c.name, c.amount, c.source) for c in candidates] == [("Spotify Premium", 10.99, "csv")]


def test_parse_rejects_unsupported_extension(tmp_path: Path) -> None:
    with pytest.raises(UnsupportedInputError) as exc_info:
        ImportPipeline(InMemorySubscriptionStore()).parse(tmp_path / "statement.xlsx")
    assert exc_info.value.stage is Stage.LOAD


def test_parse_without_candidates(tmp_path: Path) -> None:
    pipeline = _pdf_pipeline(InMemorySubscriptionStore(), "SALDO 842,10 EUR")

    with pytest.raises(NoCandidatesError) as exc_info:
        pipeline.parse(tmp_path / "statement.pdf")
    assert exc_info.value.stage is Stage.EXTRACT


EVERYDAY_LINES = (
    "LIDL DIENSTL 23,17 EUR",
    "NETFLIX.COM 12,99 EUR",
    "Shell Station 61,20 EUR",
    "Canva 11,99 EUR",
)


def test_likely_subscription_filter_drops_everyday_merchants(tmp_path: Path) -> None:
    store = InMemorySubscriptionStore()
    rules = ExtractionRules(likely_subscriptions_only=True)
    filtered = ImportPipeline(store, rules, pdf_loader=lambda path: _fragments(*EVERYDAY_LINES))

    candidates = filtered.parse(tmp_path / "statement.pdf")

    assert [c.name for c in candidates] == ["NETFLIX COM", "Canva"]
    unfiltered = _pdf_pipeline(store, *EVERYDAY_LINES).parse(tmp_path / "statement.pdf")
    assert [c.name for c in unfiltered] == ["LIDL DIENSTL", "NETFLIX COM", "Shell Station", "Canva"]


def test_likely_subscription_filter_rejecting_everything(tmp_path: Path) -> None:
    rules = ExtractionRules(likely_subscriptions_only=True)
    pipeline = ImportPipeline(
        InMemorySubscriptionStore(),
        rules,
        pdf_loader=lambda path: _fragments("LIDL DIENSTL 23,17 EUR", "Shell Station 61,20 EUR"),
    )

    with pytest.raises(NoCandidatesError) as exc_info:
        pipeline.parse(tmp_path / "statement.pdf")
    assert exc_info.value.stage is Stage.EXTRACT
    assert "Found 2 transactions but none matched known subscriptions" in str(exc_info.value)


def test_run_wraps_loader_crash(tmp_path: Path) -> None:
    def broken_loader(path: Path) -> list[StatementFragment]:
        raise ValueError("bad xref table")

    pipeline = ImportPipeline(InMemorySubscriptionStore(), pdf_loader=broken_loader)

    with pytest.raises(UnreadableDocumentError) as exc_info:
        pipeline.run(tmp_path / "statement.pdf")
    assert "bad xref table" in str(exc_info.value)


# ---------------------------------------------------------------------------
# Persist
# ---------------------------------------------------------------------------

def test_creates_new_candidates_and_binds(tmp_path: Path) -> None:
    store = InMemorySubscriptionStore()
    pipeline = _pdf_pipeline(store, "NETFLIX.COM 12,99 EUR", "Spotify AB 10,99 EUR")

    result = pipeline.run(tmp_path / "statement.pdf")

    assert result.summary() == {"created": 2, "skipped": 0}
    assert [call for call, _ in store.calls] == ["list", "create", "create", "list"]
    assert store.calls[1][1] == {
        "name": "NETFLIX COM",
        "price": 12.99,
        "category": DEFAULT_CATEGORY_ID,
        "interval": "month",
    }
    assert [c.subscription_id for c in result.candidates] == ["sub-1", "sub-2"]
    assert result.candidates[0].cancel.label == "Netflix"
    assert result.candidates[1].cancel.label == "Spotify"


def test_existing_subscription_is_skipped_but_bound(tmp_path: Path) -> None:
    store = InMemorySubscriptionStore([{"id": "abc123", "name": "Netflix", "price": 15.49}])
    pipeline = _pdf_pipeline(store, "NETFLIX.COM   12,99 EUR")

    result = pipeline.run(tmp_path / "statement.pdf")

    assert result.created_count == 0
    assert result.skipped_count == 1
    assert result.existing_count == 1
    assert not [call for call in store.calls if call[0] == "create"]
    assert result.candidates[0].subscription_id == "abc123"


def test_failed_create_counts_as_skipped(tmp_path: Path) -> None:
    store = FailingCreateStore({"Spotify AB"})
    pipeline = _pdf_pipeline(
        store, "NETFLIX.COM 12,99 EUR", "Spotify AB 10,99 EUR", "Dropbox 11,99 EUR"
    )

    result = pipeline.run(tmp_path / "statement.pdf")

    assert result.created_count == 2
    assert result.skipped_count == 1
    assert result.failures == ["Spotify AB: rejected Spotify AB"]
    assert [call for call, _ in store.calls] == [
        "list",
        "create",
        "create-failed",
        "create",
        "list",
    ]
    assert [c.subscription_id for c in result.candidates] == ["sub-1", None, "sub-2"]


def test_same_statement_twice_is_deterministic(tmp_path: Path) -> None:
    lines = ("NETFLIX.COM 12,99 EUR", "Spotify AB 10,99 EUR", "Adobe 24,59 EUR")
    first = _pdf_pipeline(InMemorySubscriptionStore(), *lines).run(tmp_path / "a.pdf")
    second = _pdf_pipeline(InMemorySubscriptionStore(), *lines).run(tmp_path / "a.pdf")

    assert [(c.name, c.amount) for c in first.candidates] == [
        (c.name, c.amount) for c in second.candidates
    ]
    assert [c.subscription_id for c in first.candidates] == ["sub-1", "sub-2", "sub-3"]
    assert [c.subscription_id for c in second.candidates] == [
        c.subscription_id for c in first.candidates
    ]
    assert first.summary() == second.summary()


def test_second_import_skips_everything(tmp_path: Path) -> None:
    store = InMemorySubscriptionStore()
    pipeline = _pdf_pipeline(store, "NETFLIX.COM 12,99 EUR", "Spotify AB 10,99 EUR")

    pipeline.run(tmp_path / "statement.pdf")
    again = pipeline.run(tmp_path / "statement.pdf")

    assert again.summary() == {"created": 0, "skipped": 2}
    assert len(store.records) == 2


def test_list_failure_is_a_stage_error(tmp_path: Path) -> None:
    class DownStore(InMemorySubscriptionStore):
        def list_subscriptions(self, signal=None):
            raise StoreError("503 Service Unavailable")

    pipeline = _pdf_pipeline(DownStore(), "NETFLIX.COM 12,99 EUR")

    with pytest.raises(StageError) as exc_info:
        pipeline.run(tmp_path / "statement.pdf")
    assert exc_info.value.stage is Stage.CREATE


def test_abort_keeps_committed_counts(tmp_path: Path) -> None:
    signal = AbortSignal()
    store = AbortAfterFirstCreateStore(signal)
    pipeline = _pdf_pipeline(store, "NETFLIX.COM 12,99 EUR", "Spotify AB 10,99 EUR")

    result = pipeline.run(tmp_path / "statement.pdf", signal)

    assert result.created_count == 1
    assert result.skipped_count == 0
    assert [call for call, _ in store.calls] == ["list", "create"]

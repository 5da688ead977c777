"""Tests for extraction/pdf."""
from __future__ import annotations

import re

import pytest

from stmt2subs.extraction.lines import StatementFragment
from stmt2subs.extraction.pdf import extract_from_fragments, extract_pdf_candidates
from stmt2subs.rules import ExtractionRules, ForcedMerchant


def test_netflix_line_with_balance_line() -> None:
    candidates = extract_pdf_candidates(["NETFLIX.COM   12,99 EUR", "SALDO   842,10 EUR"])

    assert len(candidates) == 1
    candidate = candidates[0]
    assert candidate.name == "NETFLIX COM"
    assert candidate.amount == 12.99
    assert candidate.interval == "month"
    assert candidate.source == "pdf"
    assert candidate.raw_line == "NETFLIX.COM   12,99 EUR"


def test_forced_merchant_replaces_holding_company_text() -> None:
    candidates = extract_pdf_candidates(["RSG GROUP BERLIN 24,90"])

    assert [(c.name, c.amount) for c in candidates] == [("John Reed", 24.90)]


def test_forced_merchant_takes_amount_from_following_line() -> None:
    candidates = extract_pdf_candidates(["RSG GROUP GMBH", "24,90 EUR"])

    assert [(c.name, c.amount) for c in candidates] == [("John Reed", 24.90)]


def test_forced_merchant_without_amount_is_dropped() -> None:
    assert extract_pdf_candidates(["RSG GROUP GMBH", "Mitgliedschaft"]) == []


@pytest.mark.parametrize(
    "line",
    [
        "SALDO 842,10 EUR",
        "Kontostand 1.204,55 EUR",
        "IBAN DE44 5001 0517 5407 3249 31 12,00 EUR",
        "Kartennummer 4711 12,00 EUR",
        "Buchungstag 04.01.2026 12,00 EUR",
        "Valuta RSG GROUP 24,90",
    ],
)
def test_suppressed_lines_never_emit(line: str) -> None:
    assert extract_pdf_candidates([line]) == []


def test_name_taken_from_previous_line() -> None:
    candidates = extract_pdf_candidates(["Spotify AB", "10,99 EUR"])

    assert [(c.name, c.amount) for c in candidates] == [("Spotify AB", 10.99)]


def test_name_taken_from_next_line_when_previous_unusable() -> None:
    candidates = extract_pdf_candidates(["10,99 EUR", "Spotify AB"])

    assert [(c.name, c.amount) for c in candidates] == [("Spotify AB", 10.99)]


def test_lines_without_amount_are_ignored() -> None:
    assert extract_pdf_candidates(["Netflix", "Spotify"]) == []


def test_duplicates_collapse_in_document_order() -> None:
    candidates = extract_pdf_candidates(
        [
            "NETFLIX.COM 12,99 EUR",
            "Spotify 10,99 EUR",
            "Netflix 12,99 EUR",
        ]
    )

    assert [c.name for c in candidates] == ["NETFLIX COM", "Spotify"]


def test_custom_forced_merchant_rules() -> None:
    rules = ExtractionRules(
        forced_merchants=(ForcedMerchant(re.compile(r"pp \*apple", re.IGNORECASE), "Apple"),)
    )
    candidates = extract_pdf_candidates(["PP *APPLE COM BILL 2,99 EUR"], rules)

    assert [(c.name, c.amount) for c in candidates] == [("Apple", 2.99)]


def test_extract_from_fragments_reconstructs_first() -> None:
    fragments = [
        StatementFragment("NETFLIX.COM", 100.0),
        StatementFragment("12,99", 100.0),
        StatementFragment("EUR", 100.0, is_line_end=True),
        StatementFragment("SALDO", 130.0),
        StatementFragment("842,10", 130.0),
        StatementFragment("EUR", 130.0, is_line_end=True),
    ]

    candidates = extract_from_fragments(fragments)

    assert [(c.name, c.amount) for c in candidates] == [("NETFLIX COM", 12.99)]

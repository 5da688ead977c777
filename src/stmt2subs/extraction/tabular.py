"""Recurring-charge candidates from delimited statement exports."""
from __future__ import annotations

import csv
import logging
from typing import Sequence

from stmt2subs.extraction.dedupe import dedupe_candidates
from stmt2subs.extraction.stages import LineStages
from stmt2subs.models import Candidate
from stmt2subs.normalizers.amount import parse_amount
from stmt2subs.rules import ExtractionRules

logger = logging.getLogger(__name__)


def detect_delimiter(header: str) -> str:
    """Comma unless the header holds strictly more semicolons.

    A heuristic: semicolon exports from comma-decimal locales with few
    header columns can still tie and fall back to comma.
    """
    return ";" if header.count(";") > header.count(",") else ","


def find_column(headers: Sequence[str], keywords: Sequence[str]) -> int | None:
    for index, header in enumerate(headers):
        if any(keyword in header for keyword in keywords):
            return index
    return None


def extract_csv_candidates(text: str, rules: ExtractionRules | None = None) -> list[Candidate]:
    rules = rules or ExtractionRules()
    lines = [line.strip() for line in text.lstrip("\ufeff").splitlines()]
    lines = [line for line in lines if line]
    if not lines:
        return []

    delimiter = detect_delimiter(lines[0])
    rows = list(csv.reader(lines, delimiter=delimiter))
    headers = [cell.strip().lower() for cell in rows[0]]
    name_index = find_column(headers, rules.description_keywords)
    amount_index = find_column(headers, rules.amount_keywords)
    if name_index is None or amount_index is None:
        logger.info("CSV header %r has no name/amount column", lines[0])
        return []

    stages = LineStages(rules)
    raw: list[Candidate] = []
    for row_number, row in enumerate(rows[1:], start=2):
        if max(name_index, amount_index) >= len(row):
            logger.debug("Row %d too short: %r", row_number, row)
            continue
        name = stages.usable_name(row[name_index].strip())
        amount = parse_amount(row[amount_index])
        if not name or not amount:
            continue
        raw.append(
            Candidate(
                name=name,
                amount=amount,
                source="csv",
                raw_line=delimiter.join(row),
            )
        )

    candidates = dedupe_candidates(raw, rules)
    logger.debug("CSV extraction: %d raw, %d after dedup", len(raw), len(candidates))
    return candidates

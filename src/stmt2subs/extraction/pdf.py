"""Recurring-charge candidates from reconstructed PDF lines."""
from __future__ import annotations

import logging
from typing import Iterable, Sequence

from stmt2subs.extraction.dedupe import dedupe_candidates
from stmt2subs.extraction.lines import StatementFragment, reconstruct_lines
from stmt2subs.extraction.stages import LineStages
from stmt2subs.models import Candidate
from stmt2subs.normalizers.amount import normalize_amount
from stmt2subs.rules import ExtractionRules

logger = logging.getLogger(__name__)


def _line_at(lines: Sequence[str], index: int) -> str | None:
    if 0 <= index < len(lines):
        return lines[index]
    return None


def _forced_amount(lines: Sequence[str], index: int, offsets: Iterable[int]) -> float | None:
    for offset in offsets:
        amount = normalize_amount(_line_at(lines, index + offset))
        if amount is not None:
            return amount
    return None


def _candidate_for_line(
    lines: Sequence[str], index: int, stages: LineStages
) -> Candidate | None:
    line = lines[index]
    rule = stages.classifier.classify(line)
    if rule is not None:
        logger.debug("Suppressed line %r (%s)", line, rule.name)
        return None

    forced = stages.resolver.resolve(line)
    if forced:
        amount = _forced_amount(lines, index, stages.rules.forced_amount_offsets)
        if amount is None:
            logger.debug("Forced merchant %r without amount near %r", forced, line)
            return None
        return Candidate(name=forced, amount=amount, source="pdf", raw_line=line)

    amount = normalize_amount(line)
    if amount is None:
        return None

    name = stages.usable_name(line)
    if name is None:
        # Merchant and amount often land on adjacent visual rows.
        for offset in (-1, 1):
            name = stages.usable_name(_line_at(lines, index + offset))
            if name is not None:
                logger.debug("Took name %r from neighbour of %r", name, line)
                break
    if name is None:
        return None

    name = stages.resolver.resolve(name) or name
    return Candidate(name=name, amount=amount, source="pdf", raw_line=line)


def extract_pdf_candidates(
    lines: Iterable[str], rules: ExtractionRules | None = None
) -> list[Candidate]:
    stages = LineStages(rules)
    ordered = [line for line in (l.strip() for l in lines) if line]
    raw = [
        candidate
        for candidate in (
            _candidate_for_line(ordered, index, stages) for index in range(len(ordered))
        )
        if candidate is not None
    ]
    candidates = dedupe_candidates(raw, stages.rules)
    logger.debug("PDF extraction: %d raw, %d after dedup", len(raw), len(candidates))
    return candidates


def extract_from_fragments(
    fragments: Iterable[StatementFragment], rules: ExtractionRules | None = None
) -> list[Candidate]:
    rules = rules or ExtractionRules()
    lines = list(reconstruct_lines(fragments, rules.proximity_threshold))
    return extract_pdf_candidates(lines, rules)

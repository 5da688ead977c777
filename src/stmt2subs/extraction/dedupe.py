from __future__ import annotations

import logging
from typing import Iterable

from stmt2subs.models import Candidate
from stmt2subs.rules import ExtractionRules

logger = logging.getLogger(__name__)


def dedupe_candidates(
    candidates: Iterable[Candidate], rules: ExtractionRules | None = None
) -> list[Candidate]:
    """Keep the first candidate per merchant key, in document order."""
    seen: set[str] = set()
    kept: list[Candidate] = []
    for candidate in candidates:
        key = candidate.key(rules)
        if not key or key in seen:
            logger.debug("Dropping duplicate candidate %r", candidate.name)
            continue
        seen.add(key)
        kept.append(candidate)
    return kept

"""Line-level rule stages: suppression, name cleaning, forced merchants.

Each stage is a small named object so it can be exercised on its own and
reported by name; the extractors compose them through ``LineStages``.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable

from stmt2subs.models import Candidate
from stmt2subs.normalizers.amount import FULL_DATE, ISO_DATE, MONEY_TOKEN
from stmt2subs.rules import ExtractionRules, ForcedMerchant, SuppressionRule

logger = logging.getLogger(__name__)

_LETTER = re.compile(r"[^\W\d_]", re.UNICODE)


@dataclass(frozen=True)
class RemovalRule:
    name: str
    pattern: re.Pattern[str]
    replacement: str = " "

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


# Order matters: dates go before the monetary rule, which would otherwise
# consume the "dd.mm" head of a date.
DEFAULT_CLEANING_RULES: tuple[RemovalRule, ...] = (
    RemovalRule(
        "month-date-prefix",
        re.compile(
            r"^\s*(jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?\s+\d{1,2}\b",
            re.IGNORECASE,
        ),
    ),
    RemovalRule("iso-date", ISO_DATE),
    RemovalRule("numeric-date", FULL_DATE),
    RemovalRule("iban", re.compile(r"\b[A-Z]{2}\d{2}(?: ?[A-Z0-9]){11,30}\b")),
    RemovalRule("masked-card", re.compile(r"(?:•+|\*{2,}|[xX]{4,})\s*\d{2,4}")),
    RemovalRule(
        "currency",
        re.compile(r"(?<![A-Za-z])(?:EUR|USD|GBP|CHF)(?![A-Za-z])|[€$£]", re.IGNORECASE),
    ),
    RemovalRule("money", MONEY_TOKEN),
    RemovalRule("reference-number", re.compile(r"\b\d{5,}\b")),
    RemovalRule("separators", re.compile(r"[^\w\s&+']|_")),
    RemovalRule("trailing-digits", re.compile(r"\b\d{2,4}\s*$"), ""),
    RemovalRule("whitespace", re.compile(r"\s+")),
)


class LineClassifier:
    """Decides whether a statement line may ever become a candidate."""

    def __init__(self, rules: tuple[SuppressionRule, ...]) -> None:
        self.rules = rules

    def classify(self, line: str | None) -> SuppressionRule | None:
        """Return the first suppression rule the line matches, if any."""
        if not line:
            return None
        for rule in self.rules:
            if rule.matches(line):
                return rule
        return None

    def is_suppressed(self, line: str | None) -> bool:
        return self.classify(line) is not None


class MerchantNameCleaner:
    def __init__(self, rules: tuple[RemovalRule, ...] = DEFAULT_CLEANING_RULES) -> None:
        self.rules = rules

    def clean(self, line: str | None) -> str:
        if not line:
            return ""
        cleaned = line
        for rule in self.rules:
            cleaned = rule.apply(cleaned)
        return cleaned.strip()


class ForcedMerchantResolver:
    def __init__(self, aliases: tuple[ForcedMerchant, ...]) -> None:
        self.aliases = aliases

    def resolve(self, text: str | None) -> str | None:
        if not text:
            return None
        for alias in self.aliases:
            if alias.pattern.search(text):
                return alias.name
        return None


class LineStages:
    """The classifier, cleaner and resolver built from one rule set."""

    def __init__(self, rules: ExtractionRules | None = None) -> None:
        self.rules = rules or ExtractionRules()
        self.classifier = LineClassifier(self.rules.suppression_rules)
        self.cleaner = MerchantNameCleaner()
        self.resolver = ForcedMerchantResolver(self.rules.forced_merchants)

    def is_usable_name(self, name: str | None) -> bool:
        if not name or not _LETTER.search(name):
            return False
        if self.classifier.is_suppressed(name):
            return False
        stripped = name.strip()
        if not self.rules.min_name_length <= len(stripped) <= self.rules.max_name_length:
            return False
        return len(stripped.split()) <= self.rules.max_name_words

    def usable_name(self, line: str | None) -> str | None:
        """Clean a line and return the name only if it is usable."""
        name = self.cleaner.clean(line)
        if self.is_usable_name(name):
            return name
        logger.debug("Unusable name %r from line %r", name, line)
        return None


class SubscriptionFilter:
    """Keeps candidates whose name looks like a recurring service.

    Exclusions win over everything; a name is then likely when a known
    cancel provider or one of the subscription patterns matches it.
    """

    def __init__(
        self,
        rules: ExtractionRules | None = None,
        known: Callable[[str], bool] | None = None,
    ) -> None:
        self.rules = rules or ExtractionRules()
        self.known = known

    def is_likely(self, name: str | None) -> bool:
        if not name or not name.strip():
            return False
        if any(pattern.search(name) for pattern in self.rules.exclusion_patterns):
            return False
        if self.known is not None and self.known(name):
            return True
        return any(pattern.search(name) for pattern in self.rules.subscription_patterns)

    def apply(self, candidates: Iterable[Candidate]) -> list[Candidate]:
        kept = []
        for candidate in candidates:
            if self.is_likely(candidate.name):
                kept.append(candidate)
            else:
                logger.debug("Not a likely subscription: %r", candidate.name)
        return kept

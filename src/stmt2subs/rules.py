"""Extraction rule sets.

Everything locale- or bank-specific that the extractors consult lives in a
single frozen ``ExtractionRules`` value, built from defaults and optionally
extended from ``local_settings.json``.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any

from stmt2subs.normalizers.names import DEFAULT_DOMAIN_SUFFIXES

DEFAULT_CATEGORY_ID = "65085704f18207c1481e6642"


@dataclass(frozen=True)
class SuppressionRule:
    name: str
    category: str  # balance | account | posting | movement
    pattern: re.Pattern[str]

    def matches(self, line: str) -> bool:
        return bool(self.pattern.search(line))


@dataclass(frozen=True)
class ForcedMerchant:
    pattern: re.Pattern[str]
    name: str


def _rule(name: str, category: str, expression: str) -> SuppressionRule:
    return SuppressionRule(name, category, re.compile(expression, re.IGNORECASE))


DEFAULT_SUPPRESSION_RULES: tuple[SuppressionRule, ...] = (
    # balance / ledger wording
    _rule(
        "balance-de",
        "balance",
        r"\b(saldo|kontostand|guthaben|gesamtbetrag|gesamt|summe|endabrechnung|übertrag|uebertrag)\b",
    ),
    _rule(
        "balance-en",
        "balance",
        r"\b(balance|total|carried\s+forward|brought\s+forward|statement\s+total)\b",
    ),
    # account-number wording
    _rule(
        "account-id",
        "account",
        r"\b(iban|bic|swift|blz|bankleitzahl|kontonr|kontonummer|konto-nr)\b",
    ),
    _rule(
        "account-number-en",
        "account",
        r"\b(account\s*(no|nr|number)|acct\s*no|sort\s*code|routing\s*number)\b",
    ),
    _rule(
        "card-number",
        "account",
        r"\b(kartennr|kartennummer|card\s*(no|nr|number))\b",
    ),
    # posting metadata
    _rule(
        "posting-date",
        "posting",
        r"\b(buchungstag|buchungsdatum|wertstellung|valuta|value\s+date|booking\s+date"
        r"|posting\s+date|transaction\s+date|erstellt\s+am)\b",
    ),
    _rule(
        "statement-header",
        "posting",
        r"\b(kontoauszug|kontoumsätze|kontoumsatz|auszug|statement\s+(period|date|of\s+account)"
        r"|page\s+\d+\s+of\s+\d+|seite\s+\d+\s+von\s+\d+)\b",
    ),
    _rule(
        "section-header",
        "posting",
        r"\b(ausgehende|eingehende|einkommende)\s+transaktionen\b",
    ),
    # one-off money movements
    _rule(
        "cash",
        "movement",
        r"\b(bargeld|geldautomat|atm|cash\s+withdrawal|withdrawal|deposit|cashback)\b",
    ),
    _rule(
        "transfer",
        "movement",
        r"\b(überweisung|ueberweisung|dauerauftrag|transfer|wire|refund|reversal|chargeback|erstattung)\b",
    ),
    _rule(
        "bank-charges",
        "movement",
        r"\b(zinsen|zins|interest|gebühr|gebuehr|entgelt|fee|fees)\b",
    ),
)

DEFAULT_FORCED_MERCHANTS: tuple[ForcedMerchant, ...] = (
    ForcedMerchant(re.compile(r"rsg group|john reed", re.IGNORECASE), "John Reed"),
)

DEFAULT_DESCRIPTION_KEYWORDS = (
    "description",
    "merchant",
    "name",
    "details",
    "payee",
    "empfänger",
    "verwendungszweck",
)
DEFAULT_AMOUNT_KEYWORDS = ("amount", "value", "debit", "betrag")


def _patterns(*expressions: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(expression, re.IGNORECASE) for expression in expressions)


# Merchants that never bill a subscription; checked before anything else.
DEFAULT_EXCLUSION_PATTERNS = _patterns(
    # fees and money movement
    r"transaction fee|intl\.? ?(transaction )?fee",
    r"wire (payment|transfer)|transfer (to|from)",
    r"\batm\b|withdrawal|deposit",
    # groceries and drugstores
    r"\b(lidl|rewe|edeka|aldi|netto|penny|kaufland|rossmann)\b|\bdm[- ]drogerie",
    r"\b(walmart|target|costco|kroger|safeway|publix|cvs|walgreens)\b|\bwhole foods\b|\btrader joe",
    # fuel
    r"\b(shell|bp|chevron|exxon|aral|jet|total)\b",
    # restaurants
    r"\b(mcdonald|burger king|starbucks|chipotle|domino|pizza hut)|\b(subway|kfc)\b",
    # government, tax and legal
    r"zollzahlstelle|finanzamt|\b(tax|irs)\b",
    r"rechtsanw[aä]lt|\b(attorney|lawyer)\b",
)

# Recurring services without a cancel page of their own.
DEFAULT_SUBSCRIPTION_PATTERNS = _patterns(
    # developer tools and hosting
    r"cursor|vercel|netlify|heroku|railway|render\b|supabase|planetscale|mongodb",
    r"twilio|sendgrid|mailchimp|postmark|sentry|posthog|datadog|cloudflare|digitalocean",
    r"\baws\b|amazon web services|azure|linode|vultr|fastly",
    # security and privacy
    r"1password|lastpass|bitwarden|dashlane|nordvpn|expressvpn|surfshark|proton",
    # productivity
    r"grammarly|canva|loom|miro|asana|monday[. ]com|clickup|todoist|evernote|obsidian|setapp",
    r"zapier|ifttt|webflow|squarespace|\bwix\b|shopify|hubspot|zendesk|intercom",
    # ai services
    r"midjourney|perplexity|elevenlabs|deepl|openrouter|replicate|huggingface|cohere",
    # learning and news
    r"duolingo|babbel|skillshare|masterclass|coursera|udemy|codecademy|brilliant",
    r"nytimes|new york times|economist|bloomberg|spiegel|\bzeit\b|patreon|substack",
)


@dataclass(frozen=True)
class ExtractionRules:
    suppression_rules: tuple[SuppressionRule, ...] = DEFAULT_SUPPRESSION_RULES
    forced_merchants: tuple[ForcedMerchant, ...] = DEFAULT_FORCED_MERCHANTS
    description_keywords: tuple[str, ...] = DEFAULT_DESCRIPTION_KEYWORDS
    amount_keywords: tuple[str, ...] = DEFAULT_AMOUNT_KEYWORDS
    domain_suffixes: tuple[str, ...] = DEFAULT_DOMAIN_SUFFIXES
    default_category_id: str = DEFAULT_CATEGORY_ID
    proximity_threshold: float = 6.0
    # Offsets searched for an amount when a forced merchant fires, in priority order.
    forced_amount_offsets: tuple[int, ...] = (0, 1, 2, -1)
    min_name_length: int = 3
    max_name_length: int = 60
    max_name_words: int = 6
    match_epsilon: float = 0.01
    # Off: every extracted candidate is offered.
    likely_subscriptions_only: bool = False
    exclusion_patterns: tuple[re.Pattern[str], ...] = DEFAULT_EXCLUSION_PATTERNS
    subscription_patterns: tuple[re.Pattern[str], ...] = DEFAULT_SUBSCRIPTION_PATTERNS

    @classmethod
    def from_settings(cls, settings: dict[str, Any] | None) -> "ExtractionRules":
        """Build rules from the ``rules`` section of local settings.

        List-valued keys extend the defaults; scalar keys replace them.
        """
        rules = cls()
        section = (settings or {}).get("rules") or {}
        if not isinstance(section, dict):
            return rules

        changes: dict[str, Any] = {}
        for key in ("default_category_id",):
            if section.get(key):
                changes[key] = str(section[key])
        for key in ("proximity_threshold", "match_epsilon"):
            if section.get(key) is not None:
                changes[key] = float(section[key])
        for key in ("min_name_length", "max_name_length", "max_name_words"):
            if section.get(key) is not None:
                changes[key] = int(section[key])
        for key in ("description_keywords", "amount_keywords", "domain_suffixes"):
            values = section.get(key)
            if values:
                current = getattr(rules, key)
                added = tuple(str(v).lower() for v in values if str(v).lower() not in current)
                changes[key] = current + added

        forced = section.get("forced_merchants") or []
        if forced:
            changes["forced_merchants"] = rules.forced_merchants + tuple(
                ForcedMerchant(re.compile(item["pattern"], re.IGNORECASE), item["name"])
                for item in forced
                if item.get("pattern") and item.get("name")
            )
        suppress = section.get("suppress") or []
        if suppress:
            changes["suppression_rules"] = rules.suppression_rules + tuple(
                _rule(f"custom-{i}", "custom", expression)
                for i, expression in enumerate(suppress, start=1)
            )
        if section.get("likely_subscriptions_only") is not None:
            changes["likely_subscriptions_only"] = bool(section["likely_subscriptions_only"])
        for key, setting in (
            ("exclusion_patterns", "exclude"),
            ("subscription_patterns", "subscriptions"),
        ):
            expressions = section.get(setting) or []
            if expressions:
                changes[key] = getattr(rules, key) + _patterns(*expressions)

        return replace(rules, **changes)

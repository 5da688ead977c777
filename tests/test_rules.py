from __future__ import annotations

from stmt2subs.extraction.pdf import extract_pdf_candidates
from stmt2subs.extraction.stages import SubscriptionFilter
from stmt2subs.rules import DEFAULT_CATEGORY_ID, ExtractionRules


def test_defaults_without_settings() -> None:
    rules = ExtractionRules.from_settings(None)

    assert rules == ExtractionRules()
    assert rules.default_category_id == DEFAULT_CATEGORY_ID


def test_scalars_replace_and_lists_extend() -> None:
    rules = ExtractionRules.from_settings(
        {
            "rules": {
                "default_category_id": "abc",
                "proximity_threshold": 3,
                "max_name_words": 4,
                "amount_keywords": ["Umsatz", "amount"],
                "domain_suffixes": ["fr"],
            }
        }
    )

    assert rules.default_category_id == "abc"
    assert rules.proximity_threshold == 3.0
    assert rules.max_name_words == 4
    assert rules.amount_keywords[-1] == "umsatz"
    assert rules.amount_keywords.count("amount") == 1
    assert "fr" in rules.domain_suffixes and "com" in rules.domain_suffixes


def test_custom_suppression_and_forced_merchants() -> None:
    rules = ExtractionRules.from_settings(
        {
            "rules": {
                "suppress": [r"\bklarna\b"],
                "forced_merchants": [
                    {"pattern": "fitx", "name": "FitX"},
                    {"pattern": "", "name": "ignored"},
                ],
            }
        }
    )

    assert rules.suppression_rules[-1].name == "custom-1"
    assert extract_pdf_candidates(["KLARNA Zalando 49,99 EUR"], rules) == []
    candidates = extract_pdf_candidates(["FITX DEUTSCHLAND 24,99"], rules)
    assert [(c.name, c.amount) for c in candidates] == [("FitX", 24.99)]
    assert [f.name for f in rules.forced_merchants] == ["John Reed", "FitX"]


def test_malformed_section_is_ignored() -> None:
    assert ExtractionRules.from_settings({"rules": ["not", "a", "dict"]}) == ExtractionRules()


def test_subscription_filter_settings() -> None:
    rules = ExtractionRules.from_settings(
        {
            "rules": {
                "likely_subscriptions_only": True,
                "exclude": [r"\bklarna\b"],
                "subscriptions": ["fitx"],
            }
        }
    )

    assert rules.likely_subscriptions_only is True
    assert len(rules.exclusion_patterns) == len(ExtractionRules().exclusion_patterns) + 1
    subscriptions = SubscriptionFilter(rules)
    assert subscriptions.is_likely("FITX Studio")
    assert not subscriptions.is_likely("Klarna Canva")
    assert ExtractionRules().likely_subscriptions_only is False

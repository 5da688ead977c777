"""Reconcile candidates with subscriptions already on file.

Phase 1 (``split_existing``) runs before any create call and keeps tracked
merchants from being submitted again. Phase 2 (``bind_subscriptions``) runs
on the re-fetched list and attaches record ids to every candidate.
"""
from __future__ import annotations

import logging
from typing import Iterable, Sequence

from stmt2subs.models import Candidate, ExistingSubscription
from stmt2subs.normalizers.names import merchant_key, normalize_name
from stmt2subs.rules import ExtractionRules

logger = logging.getLogger(__name__)


def _same_merchant(
    candidate: Candidate, record_name: str, rules: ExtractionRules | None
) -> bool:
    # Records created by an earlier import store the cleaned name, which
    # has lost its domain dot; compare those on the normalized form.
    if normalize_name(candidate.name) == normalize_name(record_name):
        return bool(record_name.strip())
    key = candidate.key(rules)
    return bool(key) and key == merchant_key(record_name, rules)


def split_existing(
    candidates: Iterable[Candidate],
    existing: Iterable[ExistingSubscription],
    rules: ExtractionRules | None = None,
) -> tuple[list[Candidate], list[Candidate]]:
    """Return ``(to_create, skipped)``, both in document order."""
    names = [sub.name for sub in existing if sub.name.strip()]
    to_create: list[Candidate] = []
    skipped: list[Candidate] = []
    for candidate in candidates:
        if any(_same_merchant(candidate, name, rules) for name in names):
            logger.debug("Already tracked: %r", candidate.name)
            skipped.append(candidate)
        else:
            to_create.append(candidate)
    return to_create, skipped


def find_match(
    candidate: Candidate,
    records: Sequence[ExistingSubscription],
    rules: ExtractionRules | None = None,
    *,
    check_price: bool,
) -> ExistingSubscription | None:
    epsilon = (rules or ExtractionRules()).match_epsilon
    for record in records:
        if not _same_merchant(candidate, record.name, rules):
            continue
        if check_price and abs(record.price - candidate.amount) >= epsilon:
            continue
        return record
    return None



def bind_subscriptions(
    candidates: Iterable[Candidate],
    records: Sequence[ExistingSubscription],
    created: Iterable[Candidate],
    rules: ExtractionRules | None = None,
) -> int:
    """Attach record ids in place; return how many candidates were bound.

    Freshly created candidates must also match on price so two records that
    share a name key stay apart. Pre-existing ones match on name alone.
    """
    created_ids = {id(candidate) for candidate in created}
    bound = 0
    for candidate in candidates:
        match = find_match(
            candidate, records, rules, check_price=id(candidate) in created_ids
        )
        candidate.subscription_id = match.id if match else None
        if match:
            bound += 1
        else:
            logger.debug("No stored record for %r", candidate.name)
    return bound

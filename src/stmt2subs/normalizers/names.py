from __future__ import annotations

import re
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from stmt2subs.rules import ExtractionRules

_NON_ALNUM_RUN = re.compile(r"[\W_]+", re.UNICODE)

DEFAULT_DOMAIN_SUFFIXES = ("com", "de", "net", "org", "io", "co", "uk", "eu", "app", "tv")


def normalize_name(value: str | None) -> str:
    """Lower-case, collapse each run of non-alphanumerics to a space, trim."""
    if not value:
        return ""
    return _NON_ALNUM_RUN.sub(" ", value.lower()).strip()


def merchant_key(
    value: str | None,
    rules: ExtractionRules | None = None,
    suffixes: Iterable[str] | None = None,
    source: str | None = None,
) -> str:
    """Dedup/match key: normalized name without a dot-attached web domain.

    A trailing suffix token is dropped only while *source* (defaults to
    *value*) writes it glued to the previous token by a dot. ``NETFLIX.COM``
    and ``Netflix`` both key to ``netflix``; ``YouTube TV`` keeps its
    ``tv``. A name made only of suffix tokens keeps its normalized form.
    """
    normalized = normalize_name(value)
    if suffixes is None:
        suffixes = rules.domain_suffixes if rules is not None else DEFAULT_DOMAIN_SUFFIXES
    drop = set(suffixes)
    text = (source if source is not None else value or "").lower()
    tokens = normalized.split()
    while len(tokens) > 1 and tokens[-1] in drop and _dotted(text, tokens[-2], tokens[-1]):
        tokens.pop()
    return " ".join(tokens)


def _dotted(text: str, head: str, suffix: str) -> bool:
    # "amazon.co.uk" glues "co" to "uk" and "amazon" to "co".
    pattern = rf"(?<!\w){re.escape(head)}(?:\.\w+)*\.{re.escape(suffix)}(?!\w)"
    return re.search(pattern, text) is not None

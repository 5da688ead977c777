from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable
from urllib.parse import quote_plus

from stmt2subs.models import CancelLink

SEARCH_URL = "https://www.google.com/search?q={query}"


@dataclass(frozen=True)
class CancelProvider:
    name: str
    pattern: re.Pattern[str]
    url: str


def _provider(name: str, expression: str, url: str) -> CancelProvider:
    return CancelProvider(name, re.compile(expression, re.IGNORECASE), url)


DEFAULT_PROVIDERS: tuple[CancelProvider, ...] = (
    _provider("Netflix", r"netflix", "https://www.netflix.com/cancelplan"),
    _provider("Spotify", r"spotify", "https://www.spotify.com/account/subscription/"),
    _provider("Disney Plus", r"disney\+|disney plus|disneyplus", "https://www.disneyplus.com/account"),
    _provider("Max", r"\bhbo\b|\bmax\b", "https://www.max.com/account"),
    _provider(
        "Amazon Prime",
        r"amazon prime|prime video|amazon\.de|amazon\.com",
        "https://www.amazon.com/primecentral",
    ),
    _provider("Paramount Plus", r"paramount", "https://www.paramountplus.com/account/"),
    _provider("Crunchyroll", r"crunchyroll", "https://www.crunchyroll.com/account/subscription"),
    _provider("DAZN", r"\bdazn\b", "https://www.dazn.com/account"),
    _provider("Apple", r"apple|itunes|icloud", "https://apps.apple.com/account/subscriptions"),
    _provider(
        "Google",
        r"google|youtube|yt premium",
        "https://play.google.com/store/account/subscriptions",
    ),
    _provider(
        "Microsoft",
        r"microsoft|office 365|xbox|game pass",
        "https://account.microsoft.com/services",
    ),
    _provider("Adobe", r"adobe", "https://account.adobe.com/plans"),
    _provider("Dropbox", r"dropbox", "https://www.dropbox.com/account/billing"),
    _provider("Notion", r"notion", "https://www.notion.so/my-account"),
    _provider("GitHub", r"github", "https://github.com/settings/billing"),
    _provider("ChatGPT", r"chatgpt|openai", "https://chat.openai.com/settings/subscription"),
    _provider("John Reed", r"john reed|rsg group", "https://www.johnreed.fitness/mitgliedschaft"),
    _provider("McFit", r"mcfit|mc fit", "https://www.mcfit.com/mitgliedschaft"),
    _provider("Audible", r"audible", "https://www.audible.com/account/overview"),
    _provider("LinkedIn", r"linkedin", "https://www.linkedin.com/mypreferences/d/subscription"),
)


class CancelLinkRegistry:
    """Maps a merchant name to the page where it can be cancelled."""

    def __init__(self, providers: Iterable[CancelProvider] = DEFAULT_PROVIDERS) -> None:
        self.providers = tuple(providers)

    def resolve(self, name: str) -> CancelLink:
        for provider in self.providers:
            if provider.pattern.search(name):
                return CancelLink(url=provider.url, label=provider.name, kind="direct")
        query = quote_plus(f"cancel {name} subscription")
        return CancelLink(url=SEARCH_URL.format(query=query), label="Search", kind="search")

    def is_known(self, name: str) -> bool:
        return any(provider.pattern.search(name) for provider in self.providers)

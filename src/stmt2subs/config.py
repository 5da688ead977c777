from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from stmt2subs.helpers.errors import Stage, StageError

DEFAULT_STATE_DIR = Path.home() / ".stmt2subs"
DEFAULT_TIMEOUT = 15.0


@dataclass
class StoreSettings:
    api_url: str | None
    api_token: str | None
    default_category_id: str | None
    timeout: float = DEFAULT_TIMEOUT


def load_env() -> None:
    load_dotenv(override=False)


def _timeout_from_env() -> float:
    raw = os.getenv("STMT2SUBS_TIMEOUT")
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        return float(raw)
    except ValueError:
        raise StageError(
            stage=Stage.PREFLIGHT,
            message="Invalid STMT2SUBS_TIMEOUT.",
            hint=f"Expected seconds, got {raw!r}",
        ) from None


def preflight(dry_run: bool) -> StoreSettings:
    settings = StoreSettings(
        api_url=os.getenv("STMT2SUBS_API_URL"),
        api_token=os.getenv("STMT2SUBS_API_TOKEN"),
        default_category_id=os.getenv("STMT2SUBS_DEFAULT_CATEGORY_ID"),
        timeout=_timeout_from_env(),
    )
    if dry_run:
        return settings
    missing = []
    if not settings.api_url:
        missing.append("STMT2SUBS_API_URL")
    if not settings.api_token:
        missing.append("STMT2SUBS_API_TOKEN")
    if missing:
        raise StageError(
            stage=Stage.PREFLIGHT,
            message="Missing subscription store configuration.",
            hint=f"Set env vars: {', '.join(missing)} (or use --dry-run)",
        )
    return settings

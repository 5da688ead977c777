from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

MAX_FINGERPRINTS = 5


def ensure_state_dir(base_dir: Path) -> dict[str, Path]:
    base_dir.mkdir(parents=True, exist_ok=True)
    return {
        "base": base_dir,
        "settings": base_dir / "local_settings.json",
        "fingerprints": base_dir / "fingerprints.json",
    }


def load_local_settings(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def file_fingerprint(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def load_fingerprints(path: Path) -> list[str]:
    if not path.exists():
        return []
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (json.JSONDecodeError, OSError):
        return []
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, str)]


def store_fingerprint(path: Path, fingerprint: str) -> list[str]:
    """Remember *fingerprint* as most recent, keeping the last few only."""
    existing = load_fingerprints(path)
    if fingerprint in existing:
        return existing
    updated = [fingerprint, *existing][:MAX_FINGERPRINTS]
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        json.dump(updated, handle, indent=2)
    tmp_path.replace(path)
    return updated

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Stage(str, Enum):
    PREFLIGHT = "PREFLIGHT"
    LOAD = "LOAD"
    EXTRACT = "EXTRACT"
    CREATE = "CREATE"


@dataclass
class StageError(Exception):
    stage: Stage
    message: str
    hint: str | None = None

    def __str__(self) -> str:
        if self.hint:
            return f"[{self.stage.value}] {self.message} ({self.hint})"
        return f"[{self.stage.value}] {self.message}"


class UnsupportedInputError(StageError):
    """File extension is not one of the accepted statement formats."""


class UnreadableDocumentError(StageError):
    """The loader could not turn the file into fragments or text."""


class NoCandidatesError(StageError):
    """Extraction finished cleanly but nothing survived dedup."""


class AlreadyImportedError(StageError):
    """The same file content was imported before."""


class StoreError(Exception):
    """A subscription store call failed. Always recovered by the caller."""


class AbortedError(Exception):
    """The surrounding flow was aborted before or during a store call."""


def format_stage_error(err: StageError) -> str:
    if err.hint:
        return f"{err.message} — {err.hint}"
    return err.message

from __future__ import annotations

from pathlib import Path
from typing import Iterator

from stmt2subs.extraction.lines import StatementFragment
from stmt2subs.helpers.errors import Stage, UnreadableDocumentError, UnsupportedInputError

SUPPORTED_EXTENSIONS = (".pdf", ".csv")


def statement_kind(path: Path) -> str:
    """Return ``pdf`` or ``csv``; any other extension is rejected up front."""
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise UnsupportedInputError(
            stage=Stage.LOAD,
            message=f"Unsupported file type: {path.name}",
            hint="Upload a .pdf or .csv statement.",
        )
    return suffix[1:]


def load_pdf_fragments(path: Path) -> list[StatementFragment]:
    """Word boxes of every page, in reading order.

    The last word of each page carries an end-of-line flag so lines never
    span a page break.
    """
    try:
        import pdfplumber
    except Exception as exc:  # pragma: no cover - dependency issues
        raise UnreadableDocumentError(
            stage=Stage.LOAD,
            message="pdfplumber library unavailable.",
            hint="Install the pdfplumber package.",
        ) from exc

    try:
        return list(_iter_pdf_fragments(pdfplumber, path))
    except UnreadableDocumentError:
        raise
    except Exception as exc:
        raise UnreadableDocumentError(
            stage=Stage.LOAD,
            message=f"Could not read {path.name}.",
            hint=str(exc),
        ) from exc


def _iter_pdf_fragments(pdfplumber, path: Path) -> Iterator[StatementFragment]:
    with pdfplumber.open(str(path)) as pdf:
        for page in pdf.pages:
            words = page.extract_words(keep_blank_chars=False) or []
            for index, word in enumerate(words):
                text = word.get("text", "")
                top = word.get("top")
                yield StatementFragment(
                    text=text,
                    y=float(top) if top is not None else None,
                    is_line_end=index == len(words) - 1,
                )


def load_csv_text(path: Path) -> str:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise UnreadableDocumentError(
            stage=Stage.LOAD,
            message=f"Could not read {path.name}.",
            hint=str(exc),
        ) from exc
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise UnreadableDocumentError(
        stage=Stage.LOAD,
        message=f"{path.name} is not a text file.",
        hint="Export the statement as UTF-8 CSV.",
    )

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

DEFAULT_PROXIMITY_THRESHOLD = 6.0


@dataclass(frozen=True)
class StatementFragment:
    """One positioned text run as produced by the PDF loader."""

    text: str
    y: float | None = None
    is_line_end: bool = False


def reconstruct_lines(
    fragments: Iterable[StatementFragment],
    threshold: float = DEFAULT_PROXIMITY_THRESHOLD,
) -> Iterator[str]:
    """Fold an ordered fragment stream into logical lines.

    Fragments join the open line while each stays within *threshold* of the
    previous fragment's vertical position. A larger jump, or an end-of-line
    flag on the previous fragment, closes the line. Single pass; the loader
    already delivers fragments top-to-bottom, left-to-right.
    """
    buffer: list[str] = []
    last_y: float | None = None

    def flush() -> str | None:
        line = " ".join(buffer).strip()
        buffer.clear()
        return line or None

    for fragment in fragments:
        if (
            buffer
            and last_y is not None
            and fragment.y is not None
            and abs(fragment.y - last_y) > threshold
        ):
            line = flush()
            if line:
                yield line

        buffer.append(fragment.text or "")

        if fragment.is_line_end:
            line = flush()
            if line:
                yield line

        if fragment.y is not None:
            last_y = fragment.y

    line = flush()
    if line:
        yield line

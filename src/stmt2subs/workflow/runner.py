"""Sequential execution of store calls.

Create and cancel calls run strictly one after another in document order so
counts and the later re-fetch binding are deterministic. A failed task is
recorded and the batch moves on; an abort stops further tasks.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Iterator, TypeVar

from stmt2subs.helpers.errors import AbortedError, StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class AbortSignal:
    """Shared abort flag; callbacks fire once, when the flow is aborted."""

    def __init__(self) -> None:
        self._aborted = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def aborted(self) -> bool:
        return self._aborted

    def add_callback(self, callback: Callable[[], None]) -> None:
        if self._aborted:
            callback()
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def abort(self) -> None:
        if self._aborted:
            return
        self._aborted = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def raise_if_aborted(self) -> None:
        if self._aborted:
            raise AbortedError("flow aborted")


@dataclass
class TaskOutcome(Generic[T, R]):
    item: T
    ok: bool
    result: R | None = None
    error: str | None = None


class SequentialRunner:
    def __init__(self, signal: AbortSignal | None = None) -> None:
        self.signal = signal or AbortSignal()

    def run(
        self, items: Iterable[T], task: Callable[[T], R]
    ) -> Iterator[TaskOutcome[T, R]]:
        """Run *task* on each item in order, awaiting each before the next.

        Stops without yielding further outcomes once the signal is aborted,
        including when a task itself is interrupted by the abort.
        """
        for item in items:
            if self.signal.aborted:
                logger.info("Runner aborted; remaining tasks not started")
                return
            try:
                result = task(item)
            except AbortedError:
                logger.info("Task interrupted by abort")
                return
            except StoreError as exc:
                if self.signal.aborted:
                    return
                logger.warning("Task failed: %s", exc)
                yield TaskOutcome(item=item, ok=False, error=str(exc))
                continue
            yield TaskOutcome(item=item, ok=True, result=result)

"""Keep/cancel review of imported candidates.

States::

    idle -> parsing -> creating -> ready -> reviewing -> done
      ^        |
      +--------+  (any extraction error)

Every transition and decision is published as a ``WorkflowEvent`` to the
listener given at construction and kept in ``history``.
"""
from __future__ import annotations

import logging
import webbrowser
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from stmt2subs.handlers.loader import statement_kind
from stmt2subs.handlers.store import SubscriptionStore
from stmt2subs.helpers.errors import AbortedError, Stage, StageError, StoreError
from stmt2subs.models import Candidate, ImportResult
from stmt2subs.pipeline import ImportPipeline
from stmt2subs.workflow.runner import AbortSignal, SequentialRunner

logger = logging.getLogger(__name__)


class WorkflowState(str, Enum):
    IDLE = "idle"
    PARSING = "parsing"
    CREATING = "creating"
    READY = "ready"
    REVIEWING = "reviewing"
    DONE = "done"


class Decision(str, Enum):
    KEEP = "keep"
    CANCEL = "cancel"
    CANCEL_ALL = "cancel_all"


@dataclass(frozen=True)
class WorkflowEvent:
    kind: str  # state | decision | error | summary
    state: WorkflowState
    cursor: int = 0
    candidate: Candidate | None = None
    decision: Decision | None = None
    detail: dict[str, Any] = field(default_factory=dict)


class InvalidTransition(Exception):
    pass


_INACTIVE = {"active": False}


class DecisionWorkflow:
    def __init__(
        self,
        pipeline: ImportPipeline,
        store: SubscriptionStore | None = None,
        open_link: Callable[[str], Any] = webbrowser.open,
        on_event: Callable[[WorkflowEvent], None] | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.store = store or pipeline.store
        self.open_link = open_link
        self.on_event = on_event
        self.signal = AbortSignal()
        self.state = WorkflowState.IDLE
        self.candidates: list[Candidate] = []
        self.cursor = 0
        self.created_count = 0
        self.skipped_count = 0
        self.canceled_count = 0
        self.update_failures = 0
        self.error: StageError | None = None
        self.history: list[WorkflowEvent] = []

    # ------------------------------------------------------------------
    # Event channel
    # ------------------------------------------------------------------

    def _emit(self, kind: str, **kwargs: Any) -> None:
        event = WorkflowEvent(kind=kind, state=self.state, cursor=self.cursor, **kwargs)
        self.history.append(event)
        if self.on_event is not None:
            self.on_event(event)

    def _enter(self, state: WorkflowState) -> None:
        self.state = state
        self._emit("state")

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    @property
    def current(self) -> Candidate | None:
        if self.state not in (WorkflowState.READY, WorkflowState.REVIEWING):
            return None
        if self.cursor < len(self.candidates):
            return self.candidates[self.cursor]
        return None

    def snapshot(self) -> dict[str, Any]:
        return {"candidates": list(self.candidates), "cursor": self.cursor}

    def summary(self) -> dict[str, int]:
        return {
            "created": self.created_count,
            "skipped": self.skipped_count,
            "canceled": self.canceled_count,
        }

    def _reset(self) -> None:
        self.candidates = []
        self.cursor = 0
        self.created_count = 0
        self.skipped_count = 0
        self.canceled_count = 0
        self.update_failures = 0

    def start(self, path: Path) -> ImportResult:
        """Run parse and create; on success the workflow is ``ready``.

        Extraction errors return the workflow to ``idle`` with nothing
        retained and are re-raised for the caller to report.
        """
        if self.state not in (WorkflowState.IDLE, WorkflowState.DONE):
            raise InvalidTransition(f"cannot start an import while {self.state.value}")
        self._reset()
        self.error = None
        if self.signal.aborted:
            self.signal = AbortSignal()

        try:
            statement_kind(path)
        except StageError as exc:
            self._fail(exc)
            raise

        self._enter(WorkflowState.PARSING)
        try:
            candidates = self.pipeline.parse(path)
        except StageError as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            error = StageError(
                stage=Stage.EXTRACT, message=f"Could not process {path.name}.", hint=str(exc)
            )
            self._fail(error)
            raise error from exc

        self._enter(WorkflowState.CREATING)
        result = ImportResult(candidates=candidates)
        try:
            self.pipeline.persist(candidates, self.signal, result=result)
        except StageError as exc:
            self._fail(exc)
            raise
        except AbortedError:
            self._enter(WorkflowState.IDLE)
            raise
        finally:
            self.created_count = result.created_count
            self.skipped_count = result.skipped_count

        if self.signal.aborted:
            # Counts already committed stay; nothing is left to review.
            self._enter(WorkflowState.IDLE)
            return result

        self.candidates = result.candidates
        self.cursor = 0
        self._enter(WorkflowState.READY)
        self._emit("summary", detail=result.summary())
        return result

    def _fail(self, error: StageError) -> None:
        self.error = error
        self._reset()
        self.state = WorkflowState.IDLE
        self._emit("error", detail={"message": str(error)})

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def _require_current(self) -> Candidate:
        candidate = self.current
        if candidate is None:
            raise InvalidTransition(f"no candidate to decide while {self.state.value}")
        return candidate

    def _mark_inactive(self, candidate: Candidate) -> bool:
        try:
            self.store.update_subscription(candidate.subscription_id, dict(_INACTIVE), self.signal)
        except (StoreError, AbortedError) as exc:
            # The cancellation page is already open; the update is best-effort.
            logger.warning("Could not mark %r inactive: %s", candidate.name, exc)
            self.update_failures += 1
            return False
        return True

    def _advance(self) -> None:
        self.cursor += 1
        if self.cursor >= len(self.candidates):
            self._enter(WorkflowState.DONE)
        elif self.state is WorkflowState.READY:
            self._enter(WorkflowState.REVIEWING)

    def keep(self) -> None:
        candidate = self._require_current()
        self._emit("decision", candidate=candidate, decision=Decision.KEEP)
        self._advance()

    def cancel(self) -> None:
        candidate = self._require_current()
        if candidate.cancel is not None and candidate.cancel.url:
            self.open_link(candidate.cancel.url)
        updated = False
        if candidate.subscription_id:
            updated = self._mark_inactive(candidate)
        self.canceled_count += 1
        self._emit(
            "decision",
            candidate=candidate,
            decision=Decision.CANCEL,
            detail={"updated": updated},
        )
        self._advance()

    def cancel_all(self) -> None:
        """Mark every bound candidate inactive, in order, then finish."""
        if self.state not in (WorkflowState.READY, WorkflowState.REVIEWING):
            raise InvalidTransition(f"cannot cancel all while {self.state.value}")
        bound = [candidate for candidate in self.candidates if candidate.subscription_id]
        runner = SequentialRunner(self.signal)
        outcomes = runner.run(
            bound,
            lambda candidate: self.store.update_subscription(
                candidate.subscription_id, dict(_INACTIVE), self.signal
            ),
        )
        processed = failed = 0
        for outcome in outcomes:
            processed += 1
            if not outcome.ok:
                failed += 1
        self.canceled_count += processed
        self.update_failures += failed
        self._emit(
            "decision",
            decision=Decision.CANCEL_ALL,
            detail={"processed": processed, "failed": failed},
        )
        self.cursor = len(self.candidates)
        self._enter(WorkflowState.DONE)

    def decide(self, decision: Decision | str) -> None:
        decision = Decision(decision)
        if decision is Decision.KEEP:
            self.keep()
        elif decision is Decision.CANCEL:
            self.cancel()
        else:
            self.cancel_all()

    def abort(self) -> None:
        """Abort in-flight store calls; committed counts are kept."""
        self.signal.abort()
        if self.state in (WorkflowState.PARSING, WorkflowState.CREATING):
            self._enter(WorkflowState.IDLE)

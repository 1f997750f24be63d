"""StageSequencer — the per-run stage state machine.

Each stage moves Pending -> Active -> Completed exactly once per run.
At most one stage is Active, and a stage is activated only after its
ordinal predecessor has completed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from .clock import TickSource
from .errors import InvalidTransition
from .logging_config import NullCallbacks, WorkflowCallbacks
from .models import CategorizedDocument, RunState, StageRuntimeState, StageStatus
from .outputs import StageOutputProvider
from .progress import ProgressSimulator

logger = logging.getLogger(__name__)


class StageSequencer:
    """Owns which stage of a ``RunState`` is active and which are completed."""

    def __init__(
        self,
        run: RunState,
        clock: TickSource,
        compute_output: StageOutputProvider,
        *,
        inputs: Sequence[CategorizedDocument] = (),
        callbacks: WorkflowCallbacks | None = None,
        auto_advance: bool = True,
        tick_percent: float = 2.0,
        current_generation: Callable[[], int] | None = None,
        on_stage_completed: Callable[[StageRuntimeState], None] | None = None,
        on_run_complete: Callable[[], None] | None = None,
    ) -> None:
        self.run = run
        self.compute_output = compute_output
        self.inputs = list(inputs)
        self.callbacks = callbacks or NullCallbacks()
        self.auto_advance = auto_advance
        self._current_generation = current_generation
        self._on_stage_completed = on_stage_completed
        self._on_run_complete = on_run_complete

        self.progress = ProgressSimulator(
            clock,
            tick_percent=tick_percent,
            current_generation=current_generation,
            on_tick=self._on_progress_tick,
            on_complete=self.on_stage_progress_complete,
        )

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    @property
    def active_stage(self) -> StageRuntimeState | None:
        if self.run.active_index is None:
            return None
        return self.run.stages[self.run.active_index]

    def completed_count(self) -> int:
        return sum(1 for s in self.run.stages if s.status == StageStatus.COMPLETED)

    def aggregate_progress(self) -> float:
        """Overall run percentage: ``completed / total * 100``.

        Exactly 100.0 once processing is complete; an empty catalog counts
        as complete after its first ``advance()``.
        """
        total = len(self.run.stages)
        if total == 0:
            return 100.0 if self.run.processing_complete else 0.0
        completed = self.completed_count()
        if completed == total:
            return 100.0
        return completed / total * 100.0

    # -----------------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------------

    def advance(self) -> StageRuntimeState | None:
        """Activate the next pending stage.

        Returns the activated stage, or ``None`` for an empty catalog (which
        completes the run immediately).  Raises ``InvalidTransition`` without
        touching state when a stage is active or every stage is done.
        """
        if self.run.processing_complete:
            raise InvalidTransition(
                "All stages are already completed",
                phase=self.run.phase.value,
            )
        active = self.active_stage
        if active is not None:
            raise InvalidTransition(
                f"Stage {active.stage_id!r} is still active",
                stage_id=active.stage_id,
                phase=self.run.phase.value,
            )

        if not self.run.stages:
            logger.info("Empty catalog: run %s completes with zero stages", self.run.run_id)
            self._finish()
            return None

        index = next(i for i, s in enumerate(self.run.stages) if s.status == StageStatus.PENDING)
        if index > 0 and self.run.stages[index - 1].status != StageStatus.COMPLETED:
            raise InvalidTransition(
                f"Stage {self.run.stages[index].stage_id!r} cannot start before its predecessor completes",
                stage_id=self.run.stages[index].stage_id,
            )

        stage = self.run.stages[index]
        stage.status = StageStatus.ACTIVE
        self.run.active_index = index
        logger.info(
            "Stage %d/%d activated: %s",
            index + 1, len(self.run.stages), stage.definition.title,
        )
        self.callbacks.on_stage_activated(stage)
        self.progress.start(stage, self.run.generation)
        return stage

    def on_stage_progress_complete(self, stage: StageRuntimeState) -> None:
        """Complete the active stage once its progress reaches 100 %."""
        active = self.active_stage
        if active is None or active.stage_id != stage.stage_id:
            raise InvalidTransition(
                f"Stage {stage.stage_id!r} is not the active stage",
                stage_id=stage.stage_id,
            )

        output = self.compute_output(stage.stage_id, self.inputs)
        if stage.definition.requires_review and not output.requires_review:
            output = output.model_copy(update={"requires_review": True})

        stage.output = output
        stage.completion_percent = 100.0
        stage.current_subtask_index = len(stage.definition.subtasks) - 1
        stage.status = StageStatus.COMPLETED
        self.run.active_index = None
        self._on_progress_tick(stage)

        logger.info(
            "Stage completed: %s (confidence %s%s), run at %.0f%%",
            stage.stage_id,
            output.confidence.value,
            ", review required" if output.requires_review else "",
            self.aggregate_progress(),
        )
        if self._on_stage_completed is not None:
            self._on_stage_completed(stage)
        self.callbacks.on_stage_completed(stage, output)
        if not self._is_current():
            logger.debug("Run %s was discarded during completion of %s", self.run.run_id, stage.stage_id)
            return

        if self.completed_count() == len(self.run.stages):
            self._finish()
        elif self.auto_advance:
            self.advance()

    def cancel(self) -> None:
        """Stop any in-flight progress (run discarded)."""
        self.progress.cancel()

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _is_current(self) -> bool:
        return self._current_generation is None or self.run.generation == self._current_generation()

    def _on_progress_tick(self, stage: StageRuntimeState) -> None:
        self.callbacks.on_stage_progress(stage, stage.completion_percent)

    def _finish(self) -> None:
        self.run.processing_complete = True
        if self._on_run_complete is not None:
            self._on_run_complete()
        logger.info("Run %s processing complete (%d stages)", self.run.run_id, len(self.run.stages))
        self.callbacks.on_run_processing_complete(self.aggregate_progress())

"""Progress simulation for the single active stage."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable

from .clock import TickHandle, TickSource
from .models import StageDefinition, StageRuntimeState, StageStatus

logger = logging.getLogger(__name__)


def current_subtask(stage: StageDefinition, percentage: float) -> int:
    """Map a completion percentage to a sub-task index.

    ``floor(percentage / 100 * n)`` clamped to ``[0, n - 1]``: the first
    label shows at 0 %, the last only once the final bucket is reached.
    """
    n = len(stage.subtasks)
    index = math.floor(percentage / 100.0 * n)
    return max(0, min(index, n - 1))


class ProgressSimulator:
    """Turns scheduled ticks into completion percentage for one stage at a time.

    Every scheduled tick is tagged with the run generation it was created
    for.  Ticks whose tag no longer matches ``current_generation()`` are
    dropped, so a discarded run can never move a fresh one.
    """

    def __init__(
        self,
        clock: TickSource,
        *,
        tick_percent: float = 2.0,
        current_generation: Callable[[], int] | None = None,
        on_tick: Callable[[StageRuntimeState], None] | None = None,
        on_complete: Callable[[StageRuntimeState], None] | None = None,
    ) -> None:
        self.clock = clock
        self.tick_percent = tick_percent
        self._current_generation = current_generation
        self._on_tick = on_tick
        self._on_complete = on_complete

        self._stage: StageRuntimeState | None = None
        self._handle: TickHandle | None = None
        self._generation: int | None = None

    @property
    def active_stage(self) -> StageRuntimeState | None:
        return self._stage

    @property
    def running(self) -> bool:
        return self._stage is not None

    def start(self, stage: StageRuntimeState, generation: int = 0) -> None:
        """Reset *stage* to 0 % and begin scheduling ticks for it."""
        if self._stage is not None:
            raise RuntimeError(
                f"Progress already running for {self._stage.stage_id!r}; "
                f"cannot start {stage.stage_id!r}"
            )
        stage.completion_percent = 0.0
        stage.current_subtask_index = 0
        self._stage = stage
        self._generation = generation

        # e.g. 2 % per tick over 3000 ms -> one tick every 60 ms
        interval = stage.definition.duration_ms * self.tick_percent / 100.0
        self._handle = self.clock.schedule(interval, lambda: self._scheduled_tick(generation))
        logger.debug(
            "Progress started for %s (interval %.1f ms, generation %d)",
            stage.stage_id, interval, generation,
        )

    def _scheduled_tick(self, generation: int) -> None:
        stale = generation != self._generation or (
            self._current_generation is not None and generation != self._current_generation()
        )
        if stale:
            logger.debug("Dropping stale tick from generation %d", generation)
            if self._generation == generation and self._handle is not None:
                self._handle.cancel()
            return
        self.tick()

    def tick(self) -> None:
        """Advance the active stage by one bounded increment."""
        stage = self._stage
        if stage is None:
            return

        previous = (stage.completion_percent, stage.current_subtask_index)
        stage.completion_percent = min(100.0, stage.completion_percent + self.tick_percent)
        stage.current_subtask_index = current_subtask(stage.definition, stage.completion_percent)

        if stage.completion_percent < 100.0 or self._on_complete is None:
            if self._on_tick is not None:
                self._on_tick(stage)
            if stage.completion_percent >= 100.0:
                self._stop()
            return

        self._hand_off(stage, previous)

    def _hand_off(self, stage: StageRuntimeState, previous: tuple[float, int]) -> None:
        """Run the completion handler for a stage that just reached 100 %.

        The stage is released first so the handler may start the next one.
        If the handler fails before marking the stage completed, the last
        committed percentage and the timer are restored and the next tick
        retries the completion.
        """
        handle, generation = self._handle, self._generation
        self._stage = None
        self._handle = None
        self._generation = None
        try:
            self._on_complete(stage)
        except Exception:
            if stage.status != StageStatus.COMPLETED and self._stage is None:
                stage.completion_percent, stage.current_subtask_index = previous
                self._stage, self._handle, self._generation = stage, handle, generation
                logger.warning("Completion of %s failed; will retry on next tick", stage.stage_id)
            elif handle is not None:
                handle.cancel()
            raise
        if handle is not None:
            handle.cancel()

    def cancel(self) -> None:
        """Stop ticking without completing the stage."""
        if self._stage is not None:
            logger.debug("Progress cancelled for %s at %.0f%%", self._stage.stage_id, self._stage.completion_percent)
        self._stop()

    def _stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._stage = None
        self._generation = None

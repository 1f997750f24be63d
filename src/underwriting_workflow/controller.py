"""RunController — lifecycle façade over StageSequencer and ReviewGate.

Phases: Setup -> Running -> AwaitingReview -> Submitted.  ``reset()``
returns to Setup from any phase and discards the run; ticks still
scheduled for the discarded run are dropped by generation tag.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from .catalog import StageCatalog
from .clock import ManualClock
from .config import build_catalog, build_clock, missing_fields
from .errors import ConfigurationIncomplete, InvalidTransition, WorkflowError
from .intake import DocumentIntake
from .logging_config import NullCallbacks, WorkflowCallbacks
from .models import (
    CategorizedDocument,
    IncomeType,
    ProductType,
    ReviewRecord,
    RunPhase,
    RunSnapshot,
    RunState,
    StageRuntimeState,
    StageSnapshot,
    SubmissionReceipt,
    WorkflowConfig,
)
from .outputs import CannedOutputProvider, StageOutputProvider
from .review import ReviewGate, needs_review
from .sequencer import StageSequencer

logger = logging.getLogger(__name__)


class RunController:
    """Owns at most one ``RunState`` and routes every command to it.

    Usage::

        controller = RunController(WorkflowConfig())
        controller.configure(product_type="purchase", income_types=["w2-employment"])
        controller.start()
        controller.run_until_processing_complete()
        controller.set_approval("mortgage-calc", True, "DTI verified")
        receipt = controller.submit()
    """

    def __init__(
        self,
        config: WorkflowConfig | None = None,
        *,
        catalog: StageCatalog | None = None,
        clock: ManualClock | None = None,
        output_provider: StageOutputProvider | None = None,
        callbacks: WorkflowCallbacks | None = None,
    ) -> None:
        self.config = config or WorkflowConfig()
        self.catalog = catalog if catalog is not None else build_catalog(self.config)
        self.clock = clock if clock is not None else build_clock(self.config)
        self.output_provider = output_provider or CannedOutputProvider()
        self.callbacks = callbacks or NullCallbacks()
        self.intake = DocumentIntake(self.config.documents)

        self.run: RunState | None = None
        self.sequencer: StageSequencer | None = None
        self.gate: ReviewGate | None = None
        self._generation = 0

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    @property
    def phase(self) -> RunPhase:
        return self.run.phase if self.run is not None else RunPhase.SETUP

    @property
    def generation(self) -> int:
        return self._generation

    def aggregate_progress(self) -> float:
        return self.sequencer.aggregate_progress() if self.sequencer is not None else 0.0

    def is_ready_for_submission(self) -> bool:
        return self.gate is not None and self.gate.is_ready_for_submission()

    def snapshot(self) -> RunSnapshot:
        """Detached copy of the current run for rendering."""
        if self.run is None:
            return RunSnapshot(document_counts=self.intake.counts_by_category())

        stages = [
            StageSnapshot(
                stage_id=s.stage_id,
                title=s.definition.title,
                status=s.status,
                completion_percent=s.completion_percent,
                current_subtask_index=s.current_subtask_index,
                current_subtask=s.current_subtask,
                requires_review=needs_review(s),
                output=s.output.model_copy(deep=True) if s.output else None,
            )
            for s in self.run.stages
        ]
        return RunSnapshot(
            run_id=self.run.run_id,
            phase=self.run.phase,
            stages=stages,
            reviews={sid: r.model_copy() for sid, r in self.run.reviews.items()},
            aggregate_progress=self.aggregate_progress(),
            processing_complete=self.run.processing_complete,
            ready_for_submission=self.is_ready_for_submission(),
            reviewed_count=self.gate.reviewed_count() if self.gate else 0,
            overall_comment=self.run.overall_comment,
            document_counts=dict(self.run.document_counts),
        )

    # -----------------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------------

    def configure(
        self,
        product_type: ProductType | str | None = None,
        income_types: Iterable[IncomeType | str] | None = None,
        documents: Iterable[CategorizedDocument | dict] | None = None,
    ) -> WorkflowConfig:
        """Update setup fields. Only allowed before a run starts."""
        with self._command("configure"):
            if self.phase != RunPhase.SETUP:
                raise InvalidTransition(
                    "Configuration can only change during setup",
                    phase=self.phase.value,
                )
            data = self.config.model_dump()
            if product_type is not None:
                data["product_type"] = product_type
            if income_types is not None:
                data["income_types"] = list(income_types)
            if documents is not None:
                data["documents"] = [
                    d.model_dump() if isinstance(d, CategorizedDocument) else d for d in documents
                ]
            self.config = WorkflowConfig.model_validate(data)
            if documents is not None:
                self.intake = DocumentIntake(self.config.documents)
            return self.config

    def start(self) -> RunState:
        """Create a fresh run and activate its first stage."""
        with self._command("start"):
            if self.phase != RunPhase.SETUP:
                raise InvalidTransition(
                    "A run is already in progress; reset first",
                    phase=self.phase.value,
                )
            missing = missing_fields(self.config, self.catalog)
            if missing:
                raise ConfigurationIncomplete(
                    f"Missing configuration: {', '.join(missing)}",
                    missing=missing,
                    phase=self.phase.value,
                )

            self._generation += 1
            run = RunState(
                run_id=uuid.uuid4().hex[:12],
                generation=self._generation,
                phase=RunPhase.RUNNING,
                stages=[StageRuntimeState(definition=d) for d in self.catalog],
                product_type=self.config.product_type,
                income_types=list(self.config.income_types),
                document_counts=self.intake.counts_by_category(),
            )
            self.run = run
            self.gate = ReviewGate(run, callbacks=self.callbacks)
            self.sequencer = StageSequencer(
                run,
                self.clock,
                self.output_provider,
                inputs=self.intake.documents,
                callbacks=self.callbacks,
                auto_advance=self.config.auto_advance,
                tick_percent=self.config.tick_percent,
                current_generation=lambda: self._generation,
                on_stage_completed=self.gate.register_completed_stage,
                on_run_complete=lambda: self._on_processing_complete(run),
            )
            logger.info(
                "Run %s started: %d stage(s), product %s, %d document(s)",
                run.run_id,
                len(run.stages),
                run.product_type.value if run.product_type else "?",
                len(self.intake),
            )
            self.sequencer.advance()
            return run

    def advance(self) -> StageRuntimeState | None:
        """Manually activate the next stage (when ``auto_advance`` is off)."""
        with self._command("advance"):
            if self.sequencer is None or self.phase != RunPhase.RUNNING:
                raise InvalidTransition("No run is processing", phase=self.phase.value)
            return self.sequencer.advance()

    def run_until_processing_complete(self, max_ticks: int = 100_000) -> RunSnapshot:
        """Drive the clock (and manual advances) until every stage completes."""
        with self._command("run"):
            if self.run is None or self.sequencer is None:
                raise InvalidTransition("No run has been started", phase=self.phase.value)
            rounds = 0
            while not self.run.processing_complete and rounds < max_ticks:
                if self.sequencer.active_stage is None:
                    self.sequencer.advance()
                    continue
                fired = self.clock.run_until_idle(max_ticks - rounds)
                if fired == 0:
                    logger.warning("Active stage %s has no scheduled ticks", self.sequencer.active_stage.stage_id)
                    break
                rounds += fired
            return self.snapshot()

    def set_approval(self, stage_id: str, approved: bool, comment: str | None = None) -> ReviewRecord:
        with self._command("set_approval"):
            if self.gate is None:
                raise InvalidTransition("No run has been started", stage_id=stage_id, phase=self.phase.value)
            return self.gate.set_approval(stage_id, approved, comment)

    def set_overall_comment(self, comment: str) -> None:
        with self._command("set_overall_comment"):
            if self.run is None or self.run.phase == RunPhase.SUBMITTED:
                raise InvalidTransition("No open run to comment on", phase=self.phase.value)
            self.run.overall_comment = comment

    def submit(self) -> SubmissionReceipt:
        with self._command("submit"):
            if self.gate is None:
                raise InvalidTransition("No run has been started", phase=self.phase.value)
            return self.gate.submit()

    def reset(self) -> None:
        """Discard the current run (if any) and return to Setup."""
        if self.sequencer is not None:
            self.sequencer.cancel()
        if self.run is not None:
            logger.info("Run %s discarded in phase %s", self.run.run_id, self.run.phase.value)
            # Invalidate any tick still scheduled for the discarded run
            self._generation += 1
        self.run = None
        self.sequencer = None
        self.gate = None

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _on_processing_complete(self, run: RunState) -> None:
        run.phase = RunPhase.AWAITING_REVIEW

    @contextmanager
    def _command(self, name: str) -> Iterator[None]:
        try:
            yield
        except WorkflowError as exc:
            if exc.recoverable:
                logger.warning("%s rejected: %s", name, exc)
                self.callbacks.on_warning(str(exc))
            else:
                logger.error("%s failed: %s", name, exc)
                self.callbacks.on_error(str(exc))
            raise

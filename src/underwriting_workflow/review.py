"""ReviewGate — checker sign-off before final submission.

A completed stage either needs no review (auto-approved, no record) or
gets a ``ReviewRecord`` that must be approved before the run can be
submitted.  Un-approving a previously approved record re-opens it and
marks it ``overridden`` for audit; that flag survives re-approval.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from .errors import AlreadySubmitted, InvalidTransition, ReviewIncomplete, UnknownStage
from .logging_config import NullCallbacks, WorkflowCallbacks
from .models import ReviewRecord, RunPhase, RunState, StageRuntimeState, StageStatus, SubmissionReceipt

logger = logging.getLogger(__name__)


def needs_review(stage: StageRuntimeState) -> bool:
    """True when either the definition or the stage output asks for sign-off."""
    if stage.definition.requires_review:
        return True
    return stage.output is not None and stage.output.requires_review


class ReviewGate:
    """Human-in-the-loop policy for one run."""

    def __init__(self, run: RunState, callbacks: WorkflowCallbacks | None = None) -> None:
        self.run = run
        self.callbacks = callbacks or NullCallbacks()

    # -----------------------------------------------------------------------
    # Registration
    # -----------------------------------------------------------------------

    def register_completed_stage(self, stage: StageRuntimeState) -> ReviewRecord | None:
        """Create a pending record for *stage* if it needs review."""
        if stage.status != StageStatus.COMPLETED:
            raise InvalidTransition(
                f"Stage {stage.stage_id!r} is not completed",
                stage_id=stage.stage_id,
            )
        if not needs_review(stage):
            logger.debug("Stage %s auto-approved", stage.stage_id)
            return None

        existing = self.run.reviews.get(stage.stage_id)
        if existing is not None:
            logger.warning("Stage %s registered twice; keeping existing review record", stage.stage_id)
            return existing

        record = ReviewRecord(stage_id=stage.stage_id)
        self.run.reviews[stage.stage_id] = record
        logger.info("Review required for stage %s", stage.stage_id)
        self.callbacks.on_review_state_changed(record)
        return record

    # -----------------------------------------------------------------------
    # Reviewer actions
    # -----------------------------------------------------------------------

    def set_approval(self, stage_id: str, approved: bool, comment: str | None = None) -> ReviewRecord:
        if self.run.phase == RunPhase.SUBMITTED:
            raise InvalidTransition(
                "Run already submitted; review decisions are final",
                stage_id=stage_id,
                phase=self.run.phase.value,
            )
        record = self.run.reviews.get(stage_id)
        if record is None:
            raise UnknownStage(
                f"No review record for stage {stage_id!r}",
                stage_id=stage_id,
                details={"reviewable": sorted(self.run.reviews)},
            )

        if record.approved and not approved:
            record.overridden = True
            logger.info("Approval of %s overridden", stage_id)
        record.approved = approved
        if comment is not None:
            record.comment = comment

        self.callbacks.on_review_state_changed(record)
        return record

    def set_comment(self, stage_id: str, comment: str) -> ReviewRecord:
        record = self.run.reviews.get(stage_id)
        if record is None:
            raise UnknownStage(f"No review record for stage {stage_id!r}", stage_id=stage_id)
        return self.set_approval(stage_id, record.approved, comment)

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def pending_reviews(self) -> list[str]:
        return [sid for sid, r in self.run.reviews.items() if not r.approved]

    def is_ready_for_submission(self) -> bool:
        """Every existing review record is approved.

        Stages that have not completed yet have no record and do not block.
        """
        return all(r.approved for r in self.run.reviews.values())

    def reviewed_count(self) -> int:
        """Completed stages that are either auto-approved or checker-approved."""
        count = 0
        for stage in self.run.stages:
            if stage.status != StageStatus.COMPLETED:
                continue
            record = self.run.reviews.get(stage.stage_id)
            if record is None or record.approved:
                count += 1
        return count

    # -----------------------------------------------------------------------
    # Submission
    # -----------------------------------------------------------------------

    def submit(self) -> SubmissionReceipt:
        """Finalize the run.

        Raises ``AlreadySubmitted`` on repeat calls (state untouched),
        ``InvalidTransition`` before processing completes and
        ``ReviewIncomplete`` while any record is unapproved.
        """
        if self.run.phase == RunPhase.SUBMITTED:
            raise AlreadySubmitted(
                f"Run {self.run.run_id} was already submitted",
                phase=self.run.phase.value,
            )
        if not self.run.processing_complete:
            raise InvalidTransition(
                "Cannot submit before every stage has completed",
                phase=self.run.phase.value,
            )
        pending = self.pending_reviews()
        if pending:
            raise ReviewIncomplete(
                f"Review required for: {', '.join(pending)}",
                pending=pending,
                phase=self.run.phase.value,
            )

        self.run.phase = RunPhase.SUBMITTED
        receipt = SubmissionReceipt(
            run_id=self.run.run_id,
            submitted_at=datetime.now(timezone.utc),
            product_type=self.run.product_type,
            stages_completed=sum(1 for s in self.run.stages if s.status == StageStatus.COMPLETED),
            approvals={sid: r.model_copy() for sid, r in self.run.reviews.items()},
            overall_comment=self.run.overall_comment,
        )
        logger.info("Run %s submitted", self.run.run_id)
        self.callbacks.on_run_submitted(receipt)
        return receipt

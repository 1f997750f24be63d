"""Pydantic models for the underwriting workflow engine."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class StageStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


class Confidence(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class RunPhase(str, Enum):
    SETUP = "setup"
    RUNNING = "running"
    AWAITING_REVIEW = "awaiting_review"
    SUBMITTED = "submitted"


class ProductType(str, Enum):
    PURCHASE = "purchase"
    REFINANCE = "refinance"


class IncomeType(str, Enum):
    ANNUITIZED = "annuitized"
    W2_EMPLOYMENT = "w2-employment"


class DocumentCategory(str, Enum):
    PFS = "pfs"
    CREDIT = "credit"
    ASSET = "asset"


class Pacing(str, Enum):
    MANUAL = "manual"
    REALTIME = "realtime"


class ReviewAction(str, Enum):
    APPROVE = "approve"
    OVERRIDE = "override"
    SKIP = "skip"


class ReviewDecision(BaseModel):
    """A checker's decision on one gated stage: approve, override (un-approve), or skip."""
    action: ReviewAction = ReviewAction.APPROVE
    comment: str = ""


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class StageDefinition(BaseModel):
    """Static definition of one stage, fixed once the catalog is built."""
    model_config = ConfigDict(frozen=True)

    stage_id: str = Field(..., description="Unique stage key, e.g. 'mortgage-calc'")
    ordinal: int = Field(default=0, description="Position in the catalog (assigned by StageCatalog)")
    title: str = Field(..., description="Human title")
    description: str = Field(default="", description="One-line description")
    subtasks: list[str] = Field(..., description="Ordered sub-task labels")
    duration_ms: int = Field(default=2000, description="Nominal duration, advisory pacing only")
    requires_review: bool = Field(default=False, description="Output needs checker sign-off")

    @field_validator("stage_id")
    @classmethod
    def _non_empty_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("stage_id must not be empty")
        return v

    @field_validator("subtasks")
    @classmethod
    def _at_least_one_subtask(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("a stage needs at least one sub-task")
        return v

    @field_validator("duration_ms")
    @classmethod
    def _positive_duration(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("duration_ms must be positive")
        return v


# ---------------------------------------------------------------------------
# Stage outputs and inputs
# ---------------------------------------------------------------------------

class StageOutput(BaseModel):
    """What the stage-output provider returns for a finished stage."""
    confidence: Confidence = Field(default=Confidence.HIGH)
    requires_review: bool = Field(default=False)
    payload: dict[str, Any] = Field(default_factory=dict, description="Opaque stage result")
    reasoning: str = Field(default="", description="Why the stage reached this result")
    key_findings: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list, description="Documents the result was drawn from")


class CategorizedDocument(BaseModel):
    """A finalized input reference from document intake."""
    name: str = Field(...)
    category: DocumentCategory = Field(...)


# ---------------------------------------------------------------------------
# Run state
# ---------------------------------------------------------------------------

class StageRuntimeState(BaseModel):
    """Per-run mutable state of one stage."""
    definition: StageDefinition
    status: StageStatus = StageStatus.PENDING
    completion_percent: float = Field(default=0.0, ge=0.0, le=100.0)
    current_subtask_index: int = Field(default=0, ge=0)
    output: StageOutput | None = Field(default=None, description="Set on transition to completed")

    @property
    def stage_id(self) -> str:
        return self.definition.stage_id

    @property
    def current_subtask(self) -> str:
        return self.definition.subtasks[self.current_subtask_index]


class ReviewRecord(BaseModel):
    """Checker sign-off for a completed stage that requires review."""
    stage_id: str
    approved: bool = False
    comment: str = ""
    overridden: bool = Field(default=False, description="Set once an approval was reversed; never cleared")


class RunState(BaseModel):
    """Everything one workflow execution owns."""
    run_id: str
    generation: int = Field(default=0, description="Tags scheduled ticks; stale ticks are dropped")
    phase: RunPhase = RunPhase.SETUP
    stages: list[StageRuntimeState] = Field(default_factory=list)
    active_index: int | None = Field(default=None)
    reviews: dict[str, ReviewRecord] = Field(default_factory=dict)
    processing_complete: bool = False
    overall_comment: str = ""
    product_type: ProductType | None = None
    income_types: list[IncomeType] = Field(default_factory=list)
    document_counts: dict[str, int] = Field(default_factory=dict)

    def stage(self, stage_id: str) -> StageRuntimeState | None:
        for s in self.stages:
            if s.stage_id == stage_id:
                return s
        return None


# ---------------------------------------------------------------------------
# Query surface
# ---------------------------------------------------------------------------

class StageSnapshot(BaseModel):
    stage_id: str
    title: str
    status: StageStatus
    completion_percent: float
    current_subtask_index: int
    current_subtask: str
    requires_review: bool
    output: StageOutput | None = None


class RunSnapshot(BaseModel):
    """Read-only view of a run for the presentation layer."""
    run_id: str | None = None
    phase: RunPhase = RunPhase.SETUP
    stages: list[StageSnapshot] = Field(default_factory=list)
    reviews: dict[str, ReviewRecord] = Field(default_factory=dict)
    aggregate_progress: float = 0.0
    processing_complete: bool = False
    ready_for_submission: bool = False
    reviewed_count: int = 0
    overall_comment: str = ""
    document_counts: dict[str, int] = Field(default_factory=dict)


class SubmissionReceipt(BaseModel):
    """Returned once by a successful submission."""
    run_id: str
    submitted_at: datetime
    product_type: ProductType | None = None
    stages_completed: int = 0
    approvals: dict[str, ReviewRecord] = Field(default_factory=dict)
    overall_comment: str = ""


# ---------------------------------------------------------------------------
# Workflow configuration (loaded from YAML / Hydra)
# ---------------------------------------------------------------------------

class WorkflowConfig(BaseModel):
    """Full workflow configuration."""
    product_type: ProductType | None = Field(default=None, description="'purchase' or 'refinance'")
    income_types: list[IncomeType] = Field(default_factory=list, description="At least one is needed to start")
    documents: list[CategorizedDocument] = Field(default_factory=list)

    # Catalog
    stages: list[StageDefinition] | None = Field(
        default=None,
        description="Stage catalog override; None means the default underwriting catalog",
    )
    require_stages: bool = Field(default=False, description="Reject an empty catalog at start")

    # Sequencing and pacing
    auto_advance: bool = Field(default=True, description="Start the next stage as soon as one completes")
    tick_percent: float = Field(default=2.0, gt=0.0, le=100.0, description="Progress added per tick")
    pacing: Pacing = Field(default=Pacing.MANUAL, description="'manual' (test clock) or 'realtime'")
    time_scale: float = Field(default=1.0, gt=0.0, description="Multiplier on real-time tick intervals")

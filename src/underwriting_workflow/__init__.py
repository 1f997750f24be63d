"""Stage-sequencing and checker-review engine for loan underwriting runs."""

from .catalog import StageCatalog
from .controller import RunController
from .errors import (
    AlreadySubmitted,
    ConfigurationIncomplete,
    InvalidTransition,
    ReviewIncomplete,
    UnknownStage,
    WorkflowError,
)
from .models import RunPhase, StageDefinition, StageStatus, WorkflowConfig

__all__ = [
    "AlreadySubmitted",
    "ConfigurationIncomplete",
    "InvalidTransition",
    "ReviewIncomplete",
    "RunController",
    "RunPhase",
    "StageCatalog",
    "StageDefinition",
    "StageStatus",
    "UnknownStage",
    "WorkflowConfig",
    "WorkflowError",
]

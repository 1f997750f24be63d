"""
Exception hierarchy for the workflow engine.

Every command error inherits from WorkflowError so callers can catch
broadly or narrowly.  Each exception carries structured context
(stage id, run phase, details) for logging.  A raised command error
never leaves a partial mutation behind.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base exception for all workflow command errors."""

    recoverable: bool = True

    def __init__(
        self,
        message: str,
        *,
        stage_id: str | None = None,
        phase: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.stage_id = stage_id
        self.phase = phase
        self.details = details or {}
        super().__init__(message)


class ConfigurationIncomplete(WorkflowError):
    """Product type, income category or catalog missing at start."""

    def __init__(self, message: str, *, missing: list[str] | None = None, **kwargs) -> None:
        self.missing = missing or []
        super().__init__(message, **kwargs)


class InvalidTransition(WorkflowError):
    """A command was issued out of sequence."""
    pass


class UnknownStage(WorkflowError):
    """Review action on a stage that has no review record."""

    recoverable = False


class ReviewIncomplete(WorkflowError):
    """Submit attempted before every gated stage was approved."""

    def __init__(self, message: str, *, pending: list[str] | None = None, **kwargs) -> None:
        self.pending = pending or []
        super().__init__(message, **kwargs)


class AlreadySubmitted(WorkflowError):
    """Submit called on a run that was already submitted."""
    pass

"""Rich console setup and workflow event callbacks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

if TYPE_CHECKING:
    from .catalog import StageCatalog
    from .models import ReviewDecision, ReviewRecord, RunSnapshot, StageOutput, StageRuntimeState, SubmissionReceipt

console = Console()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logger with Rich handler."""
    level = logging.DEBUG if verbose else (logging.ERROR if quiet else logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Workflow callbacks protocol
# ---------------------------------------------------------------------------


class WorkflowCallbacks(Protocol):
    """Events emitted to the presentation layer."""

    def on_stage_activated(self, stage: StageRuntimeState) -> None: ...
    def on_stage_progress(self, stage: StageRuntimeState, percent: float) -> None: ...
    def on_stage_completed(self, stage: StageRuntimeState, output: StageOutput) -> None: ...
    def on_run_processing_complete(self, aggregate_progress: float) -> None: ...
    def on_review_state_changed(self, record: ReviewRecord) -> None: ...
    def on_run_submitted(self, receipt: SubmissionReceipt) -> None: ...
    def on_warning(self, message: str) -> None: ...
    def on_error(self, message: str) -> None: ...


class NullCallbacks:
    """Callbacks that ignore every event."""

    def on_stage_activated(self, stage: StageRuntimeState) -> None:
        pass

    def on_stage_progress(self, stage: StageRuntimeState, percent: float) -> None:
        pass

    def on_stage_completed(self, stage: StageRuntimeState, output: StageOutput) -> None:
        pass

    def on_run_processing_complete(self, aggregate_progress: float) -> None:
        pass

    def on_review_state_changed(self, record: ReviewRecord) -> None:
        pass

    def on_run_submitted(self, receipt: SubmissionReceipt) -> None:
        pass

    def on_warning(self, message: str) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass


class RichCallbacks:
    """Rich-based implementation of WorkflowCallbacks."""

    def __init__(self, *, interactive: bool = False) -> None:
        self.interactive = interactive
        self._last_subtask: dict[str, int] = {}

    def on_stage_activated(self, stage: StageRuntimeState) -> None:
        console.rule(f"[bold blue]{stage.definition.title}[/]: {stage.definition.description}")
        self._last_subtask[stage.stage_id] = -1

    def on_stage_progress(self, stage: StageRuntimeState, percent: float) -> None:
        # Only print when the visible sub-task label changes
        if self._last_subtask.get(stage.stage_id) == stage.current_subtask_index:
            return
        self._last_subtask[stage.stage_id] = stage.current_subtask_index
        console.print(f"  [dim]{percent:5.0f}%[/] {stage.current_subtask}")

    def on_stage_completed(self, stage: StageRuntimeState, output: StageOutput) -> None:
        flag = "  [yellow]review required[/]" if output.requires_review else ""
        console.print(f"  Stage {stage.stage_id}: [green]OK[/] ({output.confidence.value} confidence){flag}")

    def on_run_processing_complete(self, aggregate_progress: float) -> None:
        console.print(f"\n[bold]Processing complete[/] ({aggregate_progress:.0f}%)")

    def on_review_state_changed(self, record: ReviewRecord) -> None:
        status = "[green]approved[/]" if record.approved else "[yellow]pending[/]"
        override = " [red](overridden)[/]" if record.overridden else ""
        console.print(f"  Review {record.stage_id}: {status}{override}")

    def on_run_submitted(self, receipt: SubmissionReceipt) -> None:
        console.print(f"[bold green]Run {receipt.run_id} submitted for final processing.[/]")

    def on_warning(self, message: str) -> None:
        console.print(f"  [yellow]WARNING:[/] {message}")

    def on_error(self, message: str) -> None:
        console.print(f"  [red]ERROR:[/] {message}")

    def on_review_request(self, stage: StageRuntimeState, record: ReviewRecord) -> ReviewDecision:
        """Ask the checker to approve, override or skip one gated stage."""
        from .models import ReviewAction, ReviewDecision

        if not self.interactive:
            return ReviewDecision(action=ReviewAction.APPROVE)

        output = stage.output
        table = Table(title=f"Checker Review — {stage.definition.title}", show_lines=True)
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        if output is not None:
            for key, value in output.payload.items():
                table.add_row(key, str(value))
            table.add_row("confidence", output.confidence.value)
            if output.reasoning:
                table.add_row("reasoning", output.reasoning)
        console.print()
        console.print(table)
        if record.comment:
            console.print(f"  Current comment: {record.comment}")

        while True:
            choice = console.input("[bold]\\[a]pprove / \\[o]verride / \\[s]kip:[/] ").strip().lower()
            if choice in ("a", "approve"):
                action = ReviewAction.APPROVE
            elif choice in ("o", "override"):
                action = ReviewAction.OVERRIDE
            elif choice in ("s", "skip"):
                return ReviewDecision(action=ReviewAction.SKIP)
            else:
                console.print("[yellow]Please enter 'a', 'o', or 's'.[/]")
                continue
            comment = console.input("Comment (optional): ").strip()
            return ReviewDecision(action=action, comment=comment)


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def render_catalog(catalog: StageCatalog) -> Table:
    table = Table(title="Underwriting Stages", show_lines=True)
    table.add_column("#", style="dim", width=4)
    table.add_column("Stage ID", style="cyan")
    table.add_column("Title")
    table.add_column("Sub-tasks", justify="right")
    table.add_column("Duration (ms)", justify="right")
    table.add_column("Review")
    for stage in catalog:
        table.add_row(
            str(stage.ordinal + 1),
            stage.stage_id,
            stage.title,
            str(len(stage.subtasks)),
            str(stage.duration_ms),
            "required" if stage.requires_review else "auto",
        )
    return table


def render_snapshot(snapshot: RunSnapshot) -> Table:
    table = Table(title=f"Run {snapshot.run_id or '—'} ({snapshot.phase.value})", show_lines=True)
    table.add_column("Stage ID", style="cyan")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Confidence")
    table.add_column("Review")
    for stage in snapshot.stages:
        record = snapshot.reviews.get(stage.stage_id)
        if record is None:
            review = "auto" if stage.status.value == "completed" else "—"
        else:
            review = "approved" if record.approved else "pending"
            if record.overridden:
                review += " (overridden)"
        table.add_row(
            stage.stage_id,
            stage.status.value,
            f"{stage.completion_percent:.0f}%",
            stage.output.confidence.value if stage.output else "—",
            review,
        )
    return table

"""CLI entry point using Hydra.

Usage examples:
  underwrite product_type=purchase 'income_types=[w2-employment]' auto_approve=true
  underwrite product_type=refinance 'income_types=[annuitized]' time_scale=0.2
  underwrite mode=catalog
  underwrite --config-dir my_configs/ --config-name loan mode=validate
"""

from __future__ import annotations

import sys
from typing import Any

import hydra
from omegaconf import DictConfig, OmegaConf

from ._hydra_conf import CLI_ONLY_KEYS, register_configs
from .config import build_catalog, missing_fields
from .controller import RunController
from .errors import ConfigurationIncomplete, InvalidTransition, ReviewIncomplete
from .logging_config import RichCallbacks, console, render_catalog, render_snapshot, setup_logging
from .models import ReviewAction, WorkflowConfig

register_configs()

# ---------------------------------------------------------------------------
# Hydra DictConfig → Pydantic WorkflowConfig bridge
# ---------------------------------------------------------------------------


def _to_workflow_config(cfg: DictConfig) -> WorkflowConfig:
    """Convert a Hydra *DictConfig* to a Pydantic ``WorkflowConfig``.

    CLI-only keys (``mode``, ``verbose``, etc.) are stripped before validation.
    """
    container: dict[str, Any] = OmegaConf.to_container(cfg, resolve=True)  # type: ignore[assignment]
    for key in CLI_ONLY_KEYS:
        container.pop(key, None)
    return WorkflowConfig.model_validate(container)


# ---------------------------------------------------------------------------
# Mode handlers
# ---------------------------------------------------------------------------


def _review_pending(controller: RunController, callbacks: RichCallbacks) -> None:
    """Walk every unapproved record through the checker prompt once."""
    if controller.run is None or controller.gate is None:
        raise InvalidTransition("No run has been started", phase=controller.phase.value)
    for stage_id in controller.gate.pending_reviews():
        stage = controller.run.stage(stage_id)
        record = controller.run.reviews[stage_id]
        decision = callbacks.on_review_request(stage, record)
        if decision.action == ReviewAction.SKIP:
            continue
        approved = decision.action == ReviewAction.APPROVE
        controller.set_approval(stage_id, approved, decision.comment or None)


def _run_mode(cfg: DictConfig) -> None:
    config = _to_workflow_config(cfg)
    callbacks = RichCallbacks(interactive=not cfg.auto_approve)
    controller = RunController(config, callbacks=callbacks)

    console.print("[bold]Starting underwriting run...[/]")
    try:
        controller.start()
    except ConfigurationIncomplete as exc:
        console.print(f"[red]{exc}[/]")
        sys.exit(1)

    controller.run_until_processing_complete()
    _review_pending(controller, callbacks)
    if cfg.get("overall_comment"):
        controller.set_overall_comment(cfg.overall_comment)

    snapshot = controller.snapshot()
    console.print(render_snapshot(snapshot))
    console.print(f"  Steps reviewed: {snapshot.reviewed_count}/{len(snapshot.stages)}")

    try:
        receipt = controller.submit()
    except ReviewIncomplete as exc:
        console.print("\n[bold red]Submission blocked.[/]")
        for stage_id in exc.pending:
            console.print(f"  [red]Awaiting approval: {stage_id}[/]")
        sys.exit(1)

    console.print(f"  Submitted at: {receipt.submitted_at.isoformat()}")


def _catalog_mode(cfg: DictConfig) -> None:
    config = _to_workflow_config(cfg)
    catalog = build_catalog(config)
    if len(catalog) == 0:
        console.print("[yellow]Catalog is empty.[/]")
        return
    console.print(render_catalog(catalog))


def _validate_mode(cfg: DictConfig) -> None:
    config = _to_workflow_config(cfg)
    try:
        catalog = build_catalog(config)
    except ValueError as exc:
        console.print(f"[bold red]Invalid catalog:[/] {exc}")
        sys.exit(1)

    missing = missing_fields(config, catalog)
    console.print(f"  Product type: {config.product_type.value if config.product_type else 'MISSING'}")
    console.print(f"  Income types: {', '.join(t.value for t in config.income_types) or 'MISSING'}")
    console.print(f"  Stages: {len(catalog)}")
    console.print(f"  Documents: {len(config.documents)}")

    if missing:
        console.print(f"[bold red]Configuration incomplete:[/] {', '.join(missing)}")
        sys.exit(1)
    console.print("[bold green]Configuration OK[/]")


_MODE_DISPATCH: dict[str, Any] = {
    "run": _run_mode,
    "catalog": _catalog_mode,
    "validate": _validate_mode,
}


# ---------------------------------------------------------------------------
# Hydra entry point
# ---------------------------------------------------------------------------


@hydra.main(config_path="conf", config_name="config", version_base=None)
def hydra_entry(cfg: DictConfig) -> None:
    """Hydra-managed CLI entry point."""
    setup_logging(verbose=cfg.get("verbose", False), quiet=cfg.get("quiet", False))

    mode = cfg.get("mode", "run")
    handler = _MODE_DISPATCH.get(mode)
    if handler is None:
        console.print(f"[red]Unknown mode: {mode!r}. Choose from: {', '.join(_MODE_DISPATCH)}[/]")
        sys.exit(1)

    handler(cfg)


def main() -> None:
    """Package entry point (``[project.scripts]`` target)."""
    hydra_entry()  # pylint: disable=no-value-for-parameter

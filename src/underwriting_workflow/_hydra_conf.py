"""Hydra structured config dataclasses.

These mirror the Pydantic ``WorkflowConfig`` for Hydra schema validation.
At runtime the Hydra DictConfig is converted to ``WorkflowConfig`` via
``cli._to_workflow_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from hydra.core.config_store import ConfigStore


@dataclass
class UnderwriteConf:
    # --- Dispatch + CLI-only fields ---
    mode: str = "run"
    auto_approve: bool = False
    overall_comment: str = ""
    verbose: bool = False
    quiet: bool = False

    # --- WorkflowConfig fields (1:1 mapping) ---
    product_type: Optional[str] = None
    income_types: list[str] = field(default_factory=list)
    documents: list[Any] = field(default_factory=list)

    stages: Optional[list[Any]] = None
    require_stages: bool = False

    auto_advance: bool = True
    tick_percent: float = 2.0
    pacing: str = "realtime"
    time_scale: float = 1.0


# Keys present in UnderwriteConf that are NOT part of WorkflowConfig.
CLI_ONLY_KEYS = frozenset({
    "mode", "auto_approve", "overall_comment", "verbose", "quiet",
})


def register_configs() -> None:
    """Register the structured config schema with Hydra's ConfigStore."""
    cs = ConfigStore.instance()
    cs.store(name="underwrite_schema", node=UnderwriteConf)

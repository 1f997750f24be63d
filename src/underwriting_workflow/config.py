"""Configuration loader and runtime builders.

Reads workflow settings from a YAML config file with ``${ENV_VAR}``
interpolation, and turns a ``WorkflowConfig`` into the catalog and tick
source a run needs.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .catalog import StageCatalog
from .clock import ManualClock, SleepingClock
from .models import Pacing, WorkflowConfig

load_dotenv()

# ---------------------------------------------------------------------------
# YAML loading with ${ENV_VAR} interpolation
# ---------------------------------------------------------------------------

_ENV_RE = re.compile(r"\$\{([^}]+)\}")


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${ENV_VAR}`` references in strings."""
    if isinstance(value, str):
        def _replace(m: re.Match) -> str:
            return os.environ.get(m.group(1), "")
        return _ENV_RE.sub(_replace, value)
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(v) for v in value]
    return value


def _drop_empty_product_type(raw: dict[str, Any]) -> dict[str, Any]:
    """An unset ``${UW_PRODUCT_TYPE}`` resolves to ``""``; treat it as missing."""
    if raw.get("product_type") == "":
        raw = {**raw, "product_type": None}
    return raw


def load_config(config_path: str | Path) -> WorkflowConfig:
    """Load a ``WorkflowConfig`` from a YAML file.

    Environment variables referenced as ``${VAR_NAME}`` are resolved.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    resolved = _drop_empty_product_type(_resolve_env_vars(raw))
    return WorkflowConfig.model_validate(resolved)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def missing_fields(config: WorkflowConfig, catalog: StageCatalog | None = None) -> list[str]:
    """Names of required settings that are still unset."""
    missing: list[str] = []
    if config.product_type is None:
        missing.append("product_type")
    if not config.income_types:
        missing.append("income_types")
    if config.require_stages and catalog is not None and len(catalog) == 0:
        missing.append("stages")
    return missing


def build_catalog(config: WorkflowConfig) -> StageCatalog:
    """Catalog declared in *config*, or the default underwriting catalog."""
    if config.stages is None:
        return StageCatalog.default()
    return StageCatalog(config.stages)


def build_clock(config: WorkflowConfig) -> ManualClock:
    if config.pacing == Pacing.REALTIME:
        return SleepingClock(time_scale=config.time_scale)
    return ManualClock()

"""Shared test fixtures."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from underwriting_workflow.catalog import StageCatalog
from underwriting_workflow.clock import ManualClock
from underwriting_workflow.controller import RunController
from underwriting_workflow.models import WorkflowConfig


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def callbacks() -> MagicMock:
    return MagicMock()


@pytest.fixture
def two_stage_catalog() -> StageCatalog:
    """S1 needs no review, S2 does."""
    return StageCatalog([
        {"stage_id": "S1", "title": "Stage one", "subtasks": ["a", "b"], "duration_ms": 1000},
        {
            "stage_id": "S2",
            "title": "Stage two",
            "subtasks": ["c", "d", "e", "f"],
            "duration_ms": 1000,
            "requires_review": True,
        },
    ])


@pytest.fixture
def config() -> WorkflowConfig:
    return WorkflowConfig(product_type="purchase", income_types=["w2-employment"])


@pytest.fixture
def controller(config, two_stage_catalog, clock, callbacks) -> RunController:
    return RunController(config, catalog=two_stage_catalog, clock=clock, callbacks=callbacks)


@pytest.fixture
def sample_config_yaml() -> str:
    return """\
product_type: ${UW_TEST_PRODUCT}
income_types:
  - annuitized
documents:
  - name: pfs_2024.pdf
    category: pfs
  - name: credit_report.pdf
    category: credit
auto_advance: false
tick_percent: 5
stages:
  - stage_id: intake-check
    title: Intake Check
    subtasks: [Reading documents]
    duration_ms: 500
  - stage_id: dti
    title: DTI
    subtasks: [Computing DTI, Validating DTI]
    duration_ms: 800
    requires_review: true
"""

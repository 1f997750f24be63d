"""Tests for catalog.py — stage catalog construction."""

from __future__ import annotations

import pytest

from underwriting_workflow.catalog import StageCatalog
from underwriting_workflow.models import StageDefinition


class TestDefaultCatalog:
    def test_order_and_ids(self):
        catalog = StageCatalog.default()
        assert [s.stage_id for s in catalog] == [
            "pfs-analysis",
            "credit-analysis",
            "mortgage-calc",
            "policy-check",
        ]

    def test_only_mortgage_calc_requires_review(self):
        catalog = StageCatalog.default()
        assert [s.stage_id for s in catalog if s.requires_review] == ["mortgage-calc"]

    def test_every_stage_has_four_subtasks(self):
        assert all(len(s.subtasks) == 4 for s in StageCatalog.default())

    def test_durations(self):
        assert [s.duration_ms for s in StageCatalog.default()] == [3000, 2500, 2000, 1500]


class TestCustomCatalog:
    def test_ordinals_follow_position(self):
        catalog = StageCatalog([
            StageDefinition(stage_id="b", title="B", subtasks=["x"], ordinal=7),
            {"stage_id": "a", "title": "A", "subtasks": ["y"]},
        ])
        assert [(s.stage_id, s.ordinal) for s in catalog] == [("b", 0), ("a", 1)]

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError, match="Duplicate stage id"):
            StageCatalog([
                {"stage_id": "a", "title": "A", "subtasks": ["x"]},
                {"stage_id": "a", "title": "A again", "subtasks": ["y"]},
            ])

    def test_lookup(self, two_stage_catalog):
        assert two_stage_catalog.get("S2").requires_review is True
        assert two_stage_catalog.get("nope") is None
        assert "S1" in two_stage_catalog
        assert len(two_stage_catalog) == 2

    def test_empty_catalog(self):
        catalog = StageCatalog([])
        assert len(catalog) == 0
        assert catalog.stages() == ()

    def test_stages_is_immutable_sequence(self, two_stage_catalog):
        assert isinstance(two_stage_catalog.stages(), tuple)

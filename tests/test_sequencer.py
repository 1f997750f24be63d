"""Tests for sequencer.py — stage ordering, completion and aggregate progress."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from underwriting_workflow.catalog import StageCatalog
from underwriting_workflow.errors import InvalidTransition
from underwriting_workflow.models import Confidence, RunPhase, RunState, StageOutput, StageRuntimeState, StageStatus
from underwriting_workflow.outputs import CannedOutputProvider
from underwriting_workflow.sequencer import StageSequencer


def _make(catalog: StageCatalog, clock, callbacks=None, **kwargs) -> tuple[RunState, StageSequencer]:
    run = RunState(
        run_id="r1",
        phase=RunPhase.RUNNING,
        stages=[StageRuntimeState(definition=d) for d in catalog],
    )
    sequencer = StageSequencer(run, clock, CannedOutputProvider(), callbacks=callbacks, **kwargs)
    return run, sequencer


def _statuses(run: RunState) -> list[StageStatus]:
    return [s.status for s in run.stages]


class TestAdvance:
    def test_first_advance_activates_stage_zero(self, two_stage_catalog, clock, callbacks):
        run, seq = _make(two_stage_catalog, clock, callbacks)
        stage = seq.advance()
        assert stage is run.stages[0]
        assert _statuses(run) == [StageStatus.ACTIVE, StageStatus.PENDING]
        assert run.active_index == 0
        callbacks.on_stage_activated.assert_called_once_with(stage)
        assert seq.aggregate_progress() == 0.0

    def test_advance_while_active_is_rejected_without_mutation(self, two_stage_catalog, clock):
        run, seq = _make(two_stage_catalog, clock)
        seq.advance()
        clock.tick()
        before = run.model_dump()
        for _ in range(3):
            with pytest.raises(InvalidTransition):
                seq.advance()
            assert run.model_dump() == before
        assert clock.pending == 1

    def test_manual_advance_between_stages(self, two_stage_catalog, clock):
        run, seq = _make(two_stage_catalog, clock, auto_advance=False)
        seq.advance()
        clock.run_until_idle()
        assert _statuses(run) == [StageStatus.COMPLETED, StageStatus.PENDING]
        assert seq.active_stage is None
        assert seq.aggregate_progress() == 50.0
        assert not run.processing_complete

        seq.advance()
        assert _statuses(run) == [StageStatus.COMPLETED, StageStatus.ACTIVE]

    def test_advance_after_all_completed_is_rejected(self, two_stage_catalog, clock):
        run, seq = _make(two_stage_catalog, clock)
        seq.advance()
        clock.run_until_idle()
        with pytest.raises(InvalidTransition):
            seq.advance()
        assert _statuses(run) == [StageStatus.COMPLETED, StageStatus.COMPLETED]


class TestFullRun:
    def test_auto_advance_completes_every_stage(self, two_stage_catalog, clock, callbacks):
        run, seq = _make(two_stage_catalog, clock, callbacks)
        seq.advance()
        rounds = clock.run_until_idle()
        assert rounds == 100
        assert _statuses(run) == [StageStatus.COMPLETED, StageStatus.COMPLETED]
        assert run.processing_complete
        assert seq.aggregate_progress() == 100.0
        callbacks.on_run_processing_complete.assert_called_once_with(100.0)
        assert callbacks.on_stage_completed.call_count == 2

    def test_ordering_invariants_hold_on_every_tick(self, clock):
        catalog = StageCatalog([
            {"stage_id": f"s{i}", "title": f"S{i}", "subtasks": ["x", "y"], "duration_ms": 100 * (i + 1)}
            for i in range(4)
        ])
        run, seq = _make(catalog, clock, tick_percent=9.0)
        seq.advance()
        previous_progress = 0.0
        while not run.processing_complete:
            clock.tick()
            active = [i for i, s in enumerate(run.stages) if s.status == StageStatus.ACTIVE]
            assert len(active) <= 1
            for i in active:
                assert all(s.status == StageStatus.COMPLETED for s in run.stages[:i])
                assert all(s.status == StageStatus.PENDING for s in run.stages[i + 1:])
            progress = seq.aggregate_progress()
            assert progress >= previous_progress
            assert (progress == 100.0) == run.processing_complete
            previous_progress = progress

    def test_completed_stage_is_exactly_one_hundred(self, two_stage_catalog, clock):
        run, seq = _make(two_stage_catalog, clock)
        seq.advance()
        clock.run_until_idle()
        for stage in run.stages:
            assert stage.completion_percent == 100.0
            assert stage.current_subtask_index == len(stage.definition.subtasks) - 1

    def test_hooks_called(self, two_stage_catalog, clock):
        on_stage_completed = MagicMock()
        on_run_complete = MagicMock()
        run, seq = _make(
            two_stage_catalog,
            clock,
            on_stage_completed=on_stage_completed,
            on_run_complete=on_run_complete,
        )
        seq.advance()
        clock.run_until_idle()
        assert [c.args[0].stage_id for c in on_stage_completed.call_args_list] == ["S1", "S2"]
        on_run_complete.assert_called_once_with()


class TestOutputs:
    def test_output_attached_on_completion(self, two_stage_catalog, clock):
        run, seq = _make(two_stage_catalog, clock)
        seq.advance()
        clock.run_until_idle()
        assert all(s.output is not None for s in run.stages)

    def test_definition_review_flag_wins(self, two_stage_catalog, clock):
        run, seq = _make(two_stage_catalog, clock)
        seq.advance()
        clock.run_until_idle()
        # The fallback output does not ask for review, S2's definition does
        assert run.stage("S1").output.requires_review is False
        assert run.stage("S2").output.requires_review is True

    def test_provider_receives_inputs(self, two_stage_catalog, clock):
        provider = MagicMock(return_value=StageOutput(confidence=Confidence.LOW))
        run = RunState(
            run_id="r1",
            phase=RunPhase.RUNNING,
            stages=[StageRuntimeState(definition=d) for d in two_stage_catalog],
        )
        seq = StageSequencer(run, clock, provider, inputs=[])
        seq.advance()
        clock.run_until_idle()
        assert [c.args[0] for c in provider.call_args_list] == ["S1", "S2"]
        assert run.stage("S1").output.confidence == Confidence.LOW

    def test_progress_complete_for_inactive_stage_rejected(self, two_stage_catalog, clock):
        run, seq = _make(two_stage_catalog, clock)
        seq.advance()
        with pytest.raises(InvalidTransition):
            seq.on_stage_progress_complete(run.stages[1])


class TestEmptyCatalog:
    def test_advance_completes_immediately(self, clock, callbacks):
        run, seq = _make(StageCatalog([]), clock, callbacks)
        assert seq.aggregate_progress() == 0.0
        assert seq.advance() is None
        assert run.processing_complete
        assert seq.aggregate_progress() == 100.0
        callbacks.on_run_processing_complete.assert_called_once_with(100.0)

    def test_second_advance_rejected(self, clock):
        run, seq = _make(StageCatalog([]), clock)
        seq.advance()
        with pytest.raises(InvalidTransition):
            seq.advance()

# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the training loop.

The loop is driven by a quadratic stub model and a fake clock that the
stub evaluator advances by a fixed amount per batch, so every time-based
decision is exact.

We verify:
  - a zero time budget runs every epoch to DONE
  - a positive budget stops within one batch of being crossed
  - checkpoints are rescheduled from the time they finish
  - non-finite batches are skipped without touching the parameters
  - an empty corpus and zero epochs are handled
  - a real model learns on the tiny treebank
"""

import logging
import math
from pathlib import Path
from typing import Any

import pytest
import torch

from sentitree.config.schema import ModelConfig, TrainConfig
from sentitree.model.cost import TreeCostAndGradient
from sentitree.model.recursive import RecursiveSentimentModel
from sentitree.trees.gold import LabeledTree
from sentitree.training.engine.core import (
    LoopState,
    TrainingState,
    execute_one_batch,
    run_training,
)
from sentitree.training.optimizer.core import adagrad_update, create_accumulator


def _train_config(**overrides: Any) -> TrainConfig:
    values: dict[str, Any] = {
        "config_version": "1.0.0",
        "batch_size": 2,
        "epochs": 3,
        "learning_rate": 0.1,
        "max_train_time_seconds": 0,
        "debug_output_seconds": 0,
    }
    values.update(overrides)
    return TrainConfig.model_validate(values)


class TestRunToCompletion:
    def test_zero_budget_runs_every_epoch(
        self, labeled_trees: list[LabeledTree], make_model: Any, make_cost: Any, fake_clock: Any
    ) -> None:
        model = make_model()
        cost = make_cost(fake_clock, seconds_per_batch=1000.0)

        result = run_training(model, cost, labeled_trees, _train_config(), clock=fake_clock)

        assert result.status == LoopState.DONE
        assert result.epochs_completed == 3
        assert result.batches_applied == 9
        assert result.batches_skipped == 0
        assert cost.batch_sizes == [2, 2, 1] * 3

    def test_empty_trailing_batch_is_not_evaluated(
        self, labeled_trees: list[LabeledTree], make_model: Any, make_cost: Any
    ) -> None:
        cost = make_cost()
        result = run_training(make_model(), cost, labeled_trees, _train_config(batch_size=5))

        assert cost.batch_sizes == [5, 5, 5]
        assert result.batches_applied == 3

    def test_parameters_move_downhill(
        self, labeled_trees: list[LabeledTree], make_model: Any, make_cost: Any
    ) -> None:
        model = make_model()
        start = model.flatten()

        result = run_training(model, make_cost(), labeled_trees, _train_config())

        assert float(model.flatten().norm()) < float(start.norm())
        assert math.isfinite(result.final_cost)
        assert model.unflatten_calls == result.batches_applied

    def test_same_seed_same_result(
        self, labeled_trees: list[LabeledTree], make_model: Any, make_cost: Any
    ) -> None:
        first, second = make_model(), make_model()
        run_training(first, make_cost(), labeled_trees, _train_config(), seed=11)
        run_training(second, make_cost(), labeled_trees, _train_config(), seed=11)
        assert torch.equal(first.flatten(), second.flatten())

    def test_empty_corpus(self, make_model: Any, make_cost: Any) -> None:
        cost = make_cost()
        result = run_training(make_model(), cost, [], _train_config())

        assert result.status == LoopState.DONE
        assert result.epochs_completed == 3
        assert result.batches_applied == 0
        assert cost.calls == 0
        assert math.isnan(result.final_cost)

    def test_zero_epochs(
        self, labeled_trees: list[LabeledTree], make_model: Any, make_cost: Any
    ) -> None:
        cost = make_cost()
        result = run_training(make_model(), cost, labeled_trees, _train_config(epochs=0))

        assert result.status == LoopState.DONE
        assert result.epochs_completed == 0
        assert cost.calls == 0

    def test_runs_do_not_share_state(
        self, labeled_trees: list[LabeledTree], make_model: Any, make_cost: Any, tmp_path: Path
    ) -> None:
        clock = [0.0]

        def ticking() -> float:
            clock[0] += 1.0
            return clock[0]

        config = _train_config(debug_output_seconds=1, epochs=1)
        path = str(tmp_path / "model.ser.gz")
        first = run_training(make_model(), make_cost(), labeled_trees, config, path, clock=ticking)
        second = run_training(make_model(), make_cost(), labeled_trees, config, path, clock=ticking)

        assert first.checkpoints
        assert first.checkpoints == second.checkpoints
        assert first.checkpoints[0].endswith("model-0000.ser.gz")


class TestTimeBudget:
    def test_stops_after_the_batch_that_crosses_the_budget(
        self, labeled_trees: list[LabeledTree], make_model: Any, make_cost: Any, fake_clock: Any
    ) -> None:
        cost = make_cost(fake_clock, seconds_per_batch=2.0)
        config = _train_config(epochs=10, max_train_time_seconds=5)

        result = run_training(make_model(), cost, labeled_trees, config, clock=fake_clock)

        assert result.status == LoopState.TIME_EXCEEDED
        assert result.batches_applied == 3
        assert result.epochs_completed == 0
        assert cost.calls == 3

    def test_exits_both_loops_mid_epoch(
        self, labeled_trees: list[LabeledTree], make_model: Any, make_cost: Any, fake_clock: Any
    ) -> None:
        cost = make_cost(fake_clock, seconds_per_batch=2.0)
        config = _train_config(epochs=10, max_train_time_seconds=7)

        result = run_training(make_model(), cost, labeled_trees, config, clock=fake_clock)

        assert result.status == LoopState.TIME_EXCEEDED
        assert result.epochs_completed == 1
        assert result.batches_applied == 4

    def test_budget_equal_to_elapsed_is_not_exceeded(
        self, labeled_trees: list[LabeledTree], make_model: Any, make_cost: Any, fake_clock: Any
    ) -> None:
        cost = make_cost(fake_clock, seconds_per_batch=1.0)
        config = _train_config(epochs=1, max_train_time_seconds=3)

        result = run_training(make_model(), cost, labeled_trees, config, clock=fake_clock)

        assert result.status == LoopState.DONE
        assert result.batches_applied == 3


class TestCheckpoints:
    def test_rescheduled_from_completion_time(
        self,
        labeled_trees: list[LabeledTree],
        make_model: Any,
        make_cost: Any,
        fake_clock: Any,
        tmp_path: Path,
    ) -> None:
        model = make_model()
        cost = make_cost(fake_clock, seconds_per_batch=2.0)
        config = _train_config(batch_size=1, epochs=1, debug_output_seconds=3)

        result = run_training(
            model, cost, labeled_trees, config, str(tmp_path / "model.ser.gz"), clock=fake_clock
        )

        # due at 3 -> written at 4, next due 7 -> written at 8, next due 11
        assert [Path(p).name for p in result.checkpoints] == [
            "model-0000.ser.gz",
            "model-0001.ser.gz",
        ]
        assert (tmp_path / "model-0001.ser.gz").is_file()

    def test_slow_batches_get_one_checkpoint_each(
        self,
        labeled_trees: list[LabeledTree],
        make_model: Any,
        make_cost: Any,
        fake_clock: Any,
        tmp_path: Path,
    ) -> None:
        cost = make_cost(fake_clock, seconds_per_batch=10.0)
        config = _train_config(batch_size=1, epochs=1, debug_output_seconds=3)

        result = run_training(
            make_model(), cost, labeled_trees, config, str(tmp_path / "model.gz"), clock=fake_clock
        )

        assert len(result.checkpoints) == 5
        assert Path(result.checkpoints[-1]).name == "model-0004.ser.gz"

    def test_no_model_path_writes_nothing(
        self,
        labeled_trees: list[LabeledTree],
        make_model: Any,
        make_cost: Any,
        fake_clock: Any,
        tmp_path: Path,
    ) -> None:
        model = make_model()
        cost = make_cost(fake_clock, seconds_per_batch=2.0)
        config = _train_config(batch_size=1, epochs=1, debug_output_seconds=3)

        result = run_training(model, cost, labeled_trees, config, clock=fake_clock)

        assert result.checkpoints == ()
        assert model.serialized == []
        assert list(tmp_path.iterdir()) == []

    def test_write_failure_does_not_stop_training(
        self,
        labeled_trees: list[LabeledTree],
        make_model: Any,
        make_cost: Any,
        fake_clock: Any,
        tmp_path: Path,
        record_logs: Any,
    ) -> None:
        model = make_model(fail_serialize=True)
        cost = make_cost(fake_clock, seconds_per_batch=2.0)
        config = _train_config(batch_size=1, epochs=2, debug_output_seconds=3)

        result = run_training(
            model, cost, labeled_trees, config, str(tmp_path / "model.ser.gz"), clock=fake_clock
        )

        assert result.status == LoopState.DONE
        assert result.epochs_completed == 2
        assert result.checkpoints == ()
        assert record_logs.messages(logging.WARNING).count(
            "Checkpoint write failed, continuing training"
        ) >= 2


class TestNonFiniteBatches:
    def test_nan_cost_skips_the_batch(
        self, labeled_trees: list[LabeledTree], make_model: Any, make_cost: Any, record_logs: Any
    ) -> None:
        cost = make_cost(nan_on=[2])
        config = _train_config(batch_size=1, epochs=1)

        result = run_training(make_model(), cost, labeled_trees, config)

        assert result.status == LoopState.DONE
        assert result.batches_applied == 4
        assert result.batches_skipped == 1
        assert "Batch skipped" in record_logs.messages(logging.WARNING)

    def test_skipped_batch_leaves_state_untouched(self, make_model: Any, make_cost: Any) -> None:
        model = make_model()
        state = TrainingState.initial(model, _train_config())
        params_before = state.parameters.clone()
        accum_before = state.sum_grad_square.clone()

        cost, grad_norm, applied = execute_one_batch(
            state, model, make_cost(inf_grad_on=[1]), [None], 0.1
        )

        assert not applied
        assert math.isnan(grad_norm)
        assert math.isfinite(cost)
        assert torch.equal(state.parameters, params_before)
        assert torch.equal(state.sum_grad_square, accum_before)
        assert model.unflatten_calls == 0


class TestExecuteOneBatch:
    def test_applies_adagrad_and_writes_back(self, make_model: Any, make_cost: Any) -> None:
        model = make_model()
        state = TrainingState.initial(model, _train_config())
        theta = state.parameters.clone()

        cost, grad_norm, applied = execute_one_batch(state, model, make_cost(), [None], 0.1)

        expected = adagrad_update(theta, theta.clone(), create_accumulator(theta.numel()), 0.1)
        assert applied
        assert cost == pytest.approx(0.5 * float(theta.dot(theta)))
        assert grad_norm == pytest.approx(float(theta.norm()))
        assert torch.allclose(state.parameters, expected)
        assert torch.equal(model.flatten(), state.parameters)

    def test_accumulator_is_monotone(self, make_model: Any, make_cost: Any) -> None:
        model = make_model()
        state = TrainingState.initial(model, _train_config())
        evaluator = make_cost()

        for _ in range(10):
            before = state.sum_grad_square.clone()
            execute_one_batch(state, model, evaluator, [None], 0.1)
            assert bool(torch.all(state.sum_grad_square >= before))

    def test_initial_state(self, make_model: Any) -> None:
        model = make_model(size=6)
        state = TrainingState.initial(model, _train_config(debug_output_seconds=1200))

        assert state.status == LoopState.RUNNING
        assert state.checkpoint_index == 0
        assert state.next_checkpoint_at == 1200.0
        assert torch.equal(state.sum_grad_square, torch.ones(6, dtype=torch.float64))


class TestRealModel:
    def test_loss_goes_down_and_dev_is_scored(
        self, labeled_trees: list[LabeledTree], record_logs: Any
    ) -> None:
        model_config = ModelConfig(config_version="1.0.0", num_hid=3)
        model = RecursiveSentimentModel.from_trees(model_config, labeled_trees, seed=1)
        evaluator = TreeCostAndGradient(model)
        before = evaluator.value_at(model.flatten(), labeled_trees)

        ticks = [0.0]

        def clock() -> float:
            ticks[0] += 1.0
            return ticks[0]

        config = _train_config(batch_size=5, epochs=15, debug_output_seconds=50)
        result = run_training(
            model, evaluator, labeled_trees, config, dev_trees=labeled_trees, clock=clock
        )

        assert result.status == LoopState.DONE
        assert evaluator.value_at(model.flatten(), labeled_trees) < before
        assert "Dev set accuracy" in record_logs.messages(logging.INFO)

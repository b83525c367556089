"""Tests for the batch driver."""

from __future__ import annotations

import functools
import math

import pytest

from decision_sim.core.instance import DecisionProcessInstance
from decision_sim.domains import create_navigation_chain_domain, create_sysadmin_domain
from decision_sim.model import FactoredDecisionModel
from decision_sim.policies import FixedSequencePolicy, create_random_boolean_policy
from decision_sim.runtime import BatchConfig, run_batch

_RING = {
    "CONNECTED(c1,c2)": True,
    "CONNECTED(c2,c3)": True,
    "CONNECTED(c3,c1)": True,
}


def _sysadmin(*, partially_observed: bool = False, **instance_fields) -> FactoredDecisionModel:
    fields = {
        "name": "sysadmin_inst",
        "domain": "sysadmin",
        "horizon": 5,
        "discount": 0.9,
        "partially_observed": partially_observed,
        "max_nondef_actions": 1,
    }
    fields.update(instance_fields)
    instance = DecisionProcessInstance(**fields)
    return FactoredDecisionModel(
        create_sysadmin_domain(partially_observed=partially_observed),
        instance,
        objects={"computer": ["c1", "c2", "c3"]},
        constants=_RING,
    )


def _rows(path) -> list[list[str]]:
    return [line.split("\t") for line in path.read_text(encoding="utf-8").splitlines()]


def test_same_seed_reproduces_trajectories(tmp_path) -> None:
    """Identical seeds should give identical rows and returns."""

    model = _sysadmin()
    policy_factory = functools.partial(create_random_boolean_policy, model=model)
    summaries = []
    for name in ("first.tsv", "second.tsv"):
        summaries.append(
            run_batch(
                model=model,
                instance=model.instance,
                policy_factory=policy_factory,
                config=BatchConfig(trial_count=4, base_seed=2024, output_path=tmp_path / name),
            )
        )

    assert summaries[0].returns == summaries[1].returns
    assert (tmp_path / "first.tsv").read_text() == (tmp_path / "second.tsv").read_text()
    assert summaries[0].entropy == summaries[1].entropy == 2024


def test_partially_observed_batch_flushes_after_each_trial(tmp_path) -> None:
    """Two partially observed trials with K=1 should write one row per trial."""

    model = _sysadmin(partially_observed=True)
    path = tmp_path / "data_output.tsv"
    rows_seen_by_policy: list[int] = []

    def policy_factory(*, instance_name: str, seed: int):
        rows_seen_by_policy.append(len(path.read_text().splitlines()) if path.exists() else 0)
        return FixedSequencePolicy(instance_name, [{}], fallback="repeat_last")

    summary = run_batch(
        model=model,
        instance=model.instance,
        policy_factory=policy_factory,
        config=BatchConfig(trial_count=2, base_seed=1, output_path=path, flush_interval=1),
    )

    rows = _rows(path)
    assert [row[0] for row in rows] == ["1", "2"]
    assert rows_seen_by_policy == [0, 1]
    assert summary.flush_count == 3


def test_partially_observed_rows_hide_state_columns(tmp_path) -> None:
    """Rows of a partially observed run should contain only visible columns."""

    model = _sysadmin(partially_observed=True, horizon=2)
    path = tmp_path / "out.tsv"
    run_batch(
        model=model,
        instance=model.instance,
        policy_factory=lambda **kwargs: FixedSequencePolicy("sysadmin_inst", [{}], fallback="repeat_last"),
        config=BatchConfig(trial_count=1, base_seed=3, output_path=path),
    )

    (row,) = _rows(path)
    # per step: reboot x3, running_obs x3, reward
    assert len(row) == 1 + 2 * (3 + 3 + 1)


def test_illegal_action_trial_is_not_logged(tmp_path) -> None:
    """A failed trial should be reported and leave no row behind."""

    model = _sysadmin()
    path = tmp_path / "out.tsv"
    created = []

    def policy_factory(*, instance_name: str, seed: int):
        created.append(seed)
        if len(created) == 2:
            return FixedSequencePolicy(instance_name, [{"reboot(c1)": True, "reboot(c2)": True}])
        return FixedSequencePolicy(instance_name, [{}], fallback="repeat_last")

    summary = run_batch(
        model=model,
        instance=model.instance,
        policy_factory=policy_factory,
        config=BatchConfig(trial_count=3, base_seed=5, output_path=path),
    )

    assert [row[0] for row in _rows(path)] == ["1", "3"]
    assert [outcome.status for outcome in summary.outcomes] == ["completed", "failed", "completed"]
    failed = summary.failed[0]
    assert failed.error_type == "IllegalActionError"
    assert "[trial 2, epoch 0]" in failed.error
    assert not summary.aborted


def test_stop_on_error_flushes_completed_trials(tmp_path) -> None:
    """Aborting should still persist trials that completed before the failure."""

    model = _sysadmin()
    path = tmp_path / "out.tsv"
    created = []

    def policy_factory(*, instance_name: str, seed: int):
        created.append(seed)
        if len(created) == 2:
            return FixedSequencePolicy(instance_name, [{"running(c1)": False}])
        return FixedSequencePolicy(instance_name, [{}], fallback="repeat_last")

    summary = run_batch(
        model=model,
        instance=model.instance,
        policy_factory=policy_factory,
        config=BatchConfig(trial_count=5, base_seed=5, output_path=path, stop_on_error=True),
    )

    assert summary.aborted
    assert len(summary.outcomes) == 2
    assert [row[0] for row in _rows(path)] == ["1"]
    assert len(created) == 2


def test_exhausted_policy_fails_only_its_trial(tmp_path) -> None:
    """A policy that runs out of actions should fail its trial, not the batch."""

    model = _sysadmin()
    path = tmp_path / "out.tsv"
    created = []

    def policy_factory(*, instance_name: str, seed: int):
        created.append(seed)
        if len(created) == 2:
            return FixedSequencePolicy(instance_name, [{}])
        return FixedSequencePolicy(instance_name, [{}], fallback="repeat_last")

    summary = run_batch(
        model=model,
        instance=model.instance,
        policy_factory=policy_factory,
        config=BatchConfig(trial_count=3, base_seed=5, output_path=path),
    )

    assert not summary.aborted
    assert [outcome.status for outcome in summary.outcomes] == ["completed", "failed", "completed"]
    failed = summary.failed[0]
    assert failed.error_type == "PolicyError"
    assert failed.error == "[trial 2, epoch 1] epoch 1 exceeds fixed sequence length 1"
    assert [row[0] for row in _rows(path)] == ["1", "3"]


def test_policy_exception_is_reported_as_trial_failure(tmp_path) -> None:
    """Arbitrary policy exceptions should be wrapped with trial and epoch context."""

    model = _sysadmin()

    class BrokenPolicy:
        def select_actions(self, observation):
            return observation["missing"]

    summary = run_batch(
        model=model,
        instance=model.instance,
        policy_factory=lambda **kwargs: BrokenPolicy(),
        config=BatchConfig(trial_count=2, base_seed=5, output_path=tmp_path / "out.tsv"),
    )

    assert len(summary.failed) == 2
    assert summary.failed[0].error_type == "PolicyError"
    assert summary.failed[0].error.startswith("[trial 1, epoch 0] BrokenPolicy raised KeyError")


def test_unexpected_error_still_flushes_log(tmp_path) -> None:
    """Exceptions outside the trial taxonomy propagate after the log is flushed."""

    model = _sysadmin()
    path = tmp_path / "out.tsv"
    closed = []

    class FailingVisualizer:
        def on_episode_end(self) -> None:
            closed.append(True)
            if len(closed) == 2:
                raise RuntimeError("display went away")

    with pytest.raises(RuntimeError, match="display went away"):
        run_batch(
            model=model,
            instance=model.instance,
            policy_factory=lambda **kwargs: FixedSequencePolicy("sysadmin_inst", [{}], fallback="repeat_last"),
            visualizer_factory=FailingVisualizer,
            config=BatchConfig(trial_count=3, base_seed=5, output_path=path),
        )

    assert [row[0] for row in _rows(path)] == ["1"]


def test_outcome_callback_runs_as_each_trial_ends(tmp_path) -> None:
    """The callback should see each outcome before the next trial starts."""

    model = _sysadmin(horizon=1)
    events = []

    def policy_factory(*, instance_name: str, seed: int):
        events.append("start")
        return FixedSequencePolicy(instance_name, [{}])

    summary = run_batch(
        model=model,
        instance=model.instance,
        policy_factory=policy_factory,
        config=BatchConfig(trial_count=3, base_seed=1, output_path=tmp_path / "out.tsv"),
        on_outcome=lambda outcome: events.append(outcome.trial_index),
    )

    assert events == ["start", 1, "start", 2, "start", 3]
    assert len(summary.completed) == 3


def test_fresh_policy_and_visualizer_per_trial(tmp_path) -> None:
    """Every trial should get its own policy and visualizer with its own seed."""

    model = _sysadmin(horizon=1)
    policies = []
    visualizers = []

    class Visualizer:
        def __init__(self) -> None:
            self.closed = 0
            visualizers.append(self)

        def on_episode_end(self) -> None:
            self.closed += 1

    def policy_factory(*, instance_name: str, seed: int):
        policy = FixedSequencePolicy(instance_name, [{}])
        policies.append((policy, seed))
        return policy

    run_batch(
        model=model,
        instance=model.instance,
        policy_factory=policy_factory,
        visualizer_factory=Visualizer,
        config=BatchConfig(trial_count=3, base_seed=11, output_path=tmp_path / "out.tsv"),
    )

    assert len({id(policy) for policy, _ in policies}) == 3
    assert len({seed for _, seed in policies}) == 3
    assert [visualizer.closed for visualizer in visualizers] == [1, 1, 1]


def test_summary_statistics(tmp_path) -> None:
    """Mean return and standard error should describe completed trials."""

    instance = DecisionProcessInstance(
        name="chain_inst",
        domain="navigation_chain",
        horizon=10,
        discount=1.0,
        terminate_when="at_goal",
    )
    model = FactoredDecisionModel(
        create_navigation_chain_domain(),
        instance,
        constants={"GOAL": 3, "SLIP_PROB": 0.5},
    )

    summary = run_batch(
        model=model,
        instance=instance,
        policy_factory=lambda *, instance_name, seed: FixedSequencePolicy(
            instance_name, [{"move": 1}], fallback="repeat_last"
        ),
        config=BatchConfig(trial_count=6, base_seed=8, output_path=tmp_path / "out.tsv"),
    )

    returns = summary.returns
    assert len(returns) == 6
    assert all(-10.0 <= value <= -3.0 for value in returns)
    assert summary.mean_return == pytest.approx(sum(returns) / 6)
    assert summary.std_error >= 0.0


def test_empty_batch_has_nan_statistics(tmp_path) -> None:
    """Zero trials should still create the log and report nan statistics."""

    model = _sysadmin()
    path = tmp_path / "out.tsv"
    summary = run_batch(
        model=model,
        instance=model.instance,
        policy_factory=lambda **kwargs: FixedSequencePolicy("x", [{}]),
        config=BatchConfig(trial_count=0, base_seed=0, output_path=path),
    )

    assert path.exists()
    assert summary.outcomes == ()
    assert math.isnan(summary.mean_return)
    assert math.isnan(summary.std_error)

"""Tests for the reference factored decision model."""

from __future__ import annotations

import numpy as np
import pytest

from decision_sim.core import ConfigurationError, IllegalActionError, InvariantViolationError
from decision_sim.core.contracts import DecisionModel
from decision_sim.core.instance import DecisionProcessInstance
from decision_sim.core.variables import FluentDef, VariableCategory
from decision_sim.domains import create_navigation_chain_domain, create_sysadmin_domain
from decision_sim.model import FactoredDecisionModel, FactoredDomain, FluentView

_COMPUTERS = {"computer": ["c1", "c2", "c3"]}
_RING = {
    "CONNECTED(c1,c2)": True,
    "CONNECTED(c2,c3)": True,
    "CONNECTED(c3,c1)": True,
}


def _sysadmin(
    *,
    partially_observed: bool = False,
    reboot_requires_down: bool = False,
    constants=None,
    **instance_fields,
) -> FactoredDecisionModel:
    fields = {
        "name": "sysadmin_inst",
        "domain": "sysadmin",
        "horizon": 5,
        "discount": 0.9,
        "partially_observed": partially_observed,
        "max_nondef_actions": 1,
    }
    fields.update(instance_fields)
    return FactoredDecisionModel(
        create_sysadmin_domain(
            partially_observed=partially_observed,
            reboot_requires_down=reboot_requires_down,
        ),
        DecisionProcessInstance(**fields),
        objects=_COMPUTERS,
        constants={**_RING, **(constants or {})},
    )


def test_model_satisfies_protocol() -> None:
    """The factored model should satisfy the runtime protocol."""

    assert isinstance(_sysadmin(), DecisionModel)


def test_reset_applies_defaults_constants_and_init_state() -> None:
    """Initial state should combine defaults, constants and instance overrides."""

    model = _sysadmin(init_state={"running(c2)": False})
    state = model.reset()

    assert state.value("running", "c1") is True
    assert state.value("running", "c2") is False
    assert state.value("CONNECTED", "c1", "c2") is True
    assert state.value("CONNECTED", "c2", "c1") is False
    assert state.value("n_running") is None
    assert state.epoch == 0


def test_reward_uses_pre_transition_state_and_actions() -> None:
    """Reward should count running computers minus the reboot penalty."""

    model = _sysadmin()
    state = model.reset()

    sampled = model.sample_next_state(state, {"reboot(c1)": True}, np.random.default_rng(0))

    assert model.evaluate_reward(sampled) == pytest.approx(3.0 - 0.75)
    assert sampled.next_values["running"][("c1",)] is True
    assert sampled.value("n_running") == 3


def test_sampling_does_not_mutate_previous_state() -> None:
    """States are values: sampling and advancing must leave inputs untouched."""

    model = _sysadmin(init_state={"running(c1)": False})
    state = model.reset()
    sampled = model.sample_next_state(state, {"reboot(c1)": True}, np.random.default_rng(0))
    advanced = model.advance(sampled)

    assert state.value("running", "c1") is False
    assert state.value("reboot", "c1") is False
    assert sampled.value("running", "c1") is False
    assert advanced.value("running", "c1") is True
    assert advanced.value("reboot", "c1") is False
    assert advanced.epoch == 1


def test_sampling_is_deterministic_given_generator_seed() -> None:
    """Same state, actions and generator seed should give the same next state."""

    model = _sysadmin(partially_observed=True, init_state={"running(c3)": False})
    state = model.reset()

    first = model.sample_next_state(state, {}, np.random.default_rng(42))
    second = model.sample_next_state(state, {}, np.random.default_rng(42))

    assert first.next_values == second.next_values
    assert first.values["running_obs"] == second.values["running_obs"]


def test_advance_retains_observations_unless_cleared() -> None:
    """Observation history should survive advance unless explicitly cleared."""

    model = _sysadmin(partially_observed=True)
    sampled = model.sample_next_state(model.reset(), {}, np.random.default_rng(1))

    kept = model.advance(sampled)
    cleared = model.advance(sampled, clear_observations=True)

    assert kept.values["running_obs"] == sampled.values["running_obs"]
    assert all(value is None for value in cleared.values["running_obs"].values())
    assert all(value is None for value in kept.values["n_running"].values())


def test_advance_requires_sampled_state() -> None:
    """Advancing a committed state is a programming error."""

    model = _sysadmin()

    with pytest.raises(ValueError, match="advance requires"):
        model.advance(model.reset())


def test_observe_masks_hidden_state_when_partially_observed() -> None:
    """Policies should see observation fluents only in partially observed runs."""

    hidden = _sysadmin(partially_observed=True)
    visible = _sysadmin()

    assert set(hidden.observe(hidden.reset())) == {"running_obs(c1)", "running_obs(c2)", "running_obs(c3)"}
    assert visible.observe(visible.reset()) == {
        "running(c1)": True,
        "running(c2)": True,
        "running(c3)": True,
    }


def test_columns_follow_category_order_and_skip_constants() -> None:
    """Columns should list state, action, then derived values; never constants."""

    model = _sysadmin()
    sampled = model.sample_next_state(model.reset(), {"reboot(c2)": True}, np.random.default_rng(0))

    names = [name for name, _ in model.enumerate_observable_columns(sampled)]

    assert names == [
        "running(c1)",
        "running(c2)",
        "running(c3)",
        "reboot(c1)",
        "reboot(c2)",
        "reboot(c3)",
        "n_running",
    ]


def test_columns_hide_state_when_partially_observed() -> None:
    """Hidden state and its exact summaries should never be emitted in partially observed runs."""

    model = _sysadmin(partially_observed=True)
    sampled = model.sample_next_state(model.reset(), {}, np.random.default_rng(0))

    names = [name for name, _ in model.enumerate_observable_columns(sampled)]

    assert not any(name.startswith("running(") for name in names)
    assert "n_running" not in names
    assert sampled.value("n_running") is not None
    assert names[-3:] == ["running_obs(c1)", "running_obs(c2)", "running_obs(c3)"]


def test_partially_observed_chain_logs_only_actions_and_observations() -> None:
    """The goal flag of a hidden position should not be logged."""

    instance = DecisionProcessInstance(
        name="chain_pomdp",
        domain="navigation_chain",
        horizon=3,
        partially_observed=True,
    )
    model = FactoredDecisionModel(create_navigation_chain_domain(partially_observed=True), instance)

    sampled = model.sample_next_state(model.reset(), {"move": 1}, np.random.default_rng(0))

    assert [name for name, _ in model.enumerate_observable_columns(sampled)] == ["move", "position_obs"]


def test_observation_channel_is_placed_next_to_observed_fluent() -> None:
    """A channel observing a logged fluent should follow it directly."""

    domain = FactoredDomain(
        name="queue",
        fluents=(
            FluentDef("length", VariableCategory.STATE, "int", 0),
            FluentDef("serve", VariableCategory.ACTION, "bool", False),
            FluentDef("load", VariableCategory.DERIVED, "real", 0.0),
            FluentDef("scratch", VariableCategory.INTERMEDIATE, "int", 0),
            FluentDef("load_obs", VariableCategory.OBSERVATION, "real", 0.0, observes="load"),
            FluentDef("alarm", VariableCategory.OBSERVATION, "bool", False),
        ),
        cpfs={
            "length": lambda view, args, rng: view("length") + 1 - int(view("serve")),
            "load": lambda view, args, rng: view("length") / 10.0,
            "scratch": lambda view, args, rng: 7,
            "load_obs": lambda view, args, rng: view("load"),
            "alarm": lambda view, args, rng: view.next("length") > 5,
        },
        reward=lambda view: -float(view("length")),
    )
    instance = DecisionProcessInstance(name="queue_inst", domain="queue", horizon=3)
    model = FactoredDecisionModel(domain, instance, constants={})

    sampled = model.sample_next_state(model.reset(), {}, np.random.default_rng(0))
    columns = model.enumerate_observable_columns(sampled)

    assert columns == [
        ("length", 1),
        ("serve", False),
        ("load", 0.0),
        ("load_obs", 0.0),
        ("alarm", False),
    ]


def test_too_many_non_default_actions_are_illegal() -> None:
    """The non-default action budget should be enforced."""

    model = _sysadmin()

    with pytest.raises(IllegalActionError, match="at most 1 non-default actions, got 2"):
        model.check_action_legality(model.reset(), {"reboot(c1)": True, "reboot(c2)": True})


@pytest.mark.parametrize(
    ("actions", "message"),
    [
        ({"reboot(c9)": True}, "does not ground action fluent"),
        ({"running(c1)": True}, "is not a valid action fluent"),
        ({"shutdown(c1)": True}, "is not a valid action fluent"),
        ({"reboot(c1)": 1}, "expects a bool value"),
        ({"reboot(c1": True}, "malformed ground fluent name"),
    ],
)
def test_malformed_action_sets_are_illegal(actions, message: str) -> None:
    """Unknown, non-action, or mistyped assignments should be rejected."""

    model = _sysadmin()

    with pytest.raises(IllegalActionError, match=message):
        model.check_action_legality(model.reset(), actions)


def test_default_valued_actions_do_not_use_budget() -> None:
    """Explicit default values should not count toward the budget."""

    model = _sysadmin()

    model.check_action_legality(
        model.reset(),
        {"reboot(c1)": True, "reboot(c2)": False, "reboot(c3)": np.bool_(False)},
    )


def test_precondition_failure_is_illegal() -> None:
    """Named preconditions should be reported when violated."""

    model = _sysadmin(reboot_requires_down=True, init_state={"running(c2)": False})
    state = model.reset()

    model.check_action_legality(state, {"reboot(c2)": True})
    with pytest.raises(IllegalActionError, match="reboot_requires_down"):
        model.check_action_legality(state, {"reboot(c1)": True})


def test_invariant_violation_is_reported_by_name() -> None:
    """Invariant failures should name the violated invariant."""

    model = _sysadmin(constants={"REBOOT_PROB": 1.5})

    with pytest.raises(InvariantViolationError, match="reboot_prob_in_unit_interval"):
        model.check_invariants(model.reset())


def test_termination_uses_instance_predicate() -> None:
    """Termination should evaluate the predicate selected by the instance."""

    down = {f"running({name})": False for name in _COMPUTERS["computer"]}
    with_predicate = _sysadmin(terminate_when="all_down", init_state=down)
    without_predicate = _sysadmin(init_state=down)

    assert with_predicate.check_termination(with_predicate.reset())
    assert not without_predicate.check_termination(without_predicate.reset())


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"constants": {"running(c1)": False}}, "must reference a constant fluent"),
        ({"constants": {"REBOOT_PROB": "high"}}, "expects a real value"),
        ({"constants": {"CONNECTED(c1,c9)": True}}, "does not match any grounding"),
        ({"init_state": {"REBOOT_PROB": 0.2}}, "must reference a state fluent"),
        ({"init_state": {"missing(c1)": True}}, "no fluent 'missing'"),
        ({"terminate_when": "never"}, "termination 'never' not found"),
    ],
)
def test_invalid_configuration_is_rejected(kwargs, message: str) -> None:
    """Bad constants, initial state, or termination names are configuration errors."""

    with pytest.raises(ConfigurationError, match=message):
        _sysadmin(**kwargs)


def test_unknown_object_type_is_rejected() -> None:
    """Objects of undeclared types should be rejected."""

    instance = DecisionProcessInstance(name="inst", domain="sysadmin")

    with pytest.raises(ConfigurationError, match="object type 'router'"):
        FactoredDecisionModel(create_sysadmin_domain(), instance, objects={"router": ["r1"]})


def test_domain_requires_cpf_for_every_dynamic_fluent() -> None:
    """Domains missing CPFs should fail at declaration time."""

    with pytest.raises(ValueError, match="missing CPFs"):
        FactoredDomain(
            name="broken",
            fluents=(FluentDef("x", VariableCategory.STATE, "int", 0),),
            cpfs={},
            reward=lambda view: 0.0,
        )


def test_fluent_view_lists_groundings_in_object_order() -> None:
    """Views should expose every grounding of a fluent in declaration order."""

    model = _sysadmin()
    view = FluentView(model.reset().values, {}, model.objects)

    assert view.groundings("reboot") == (("c1",), ("c2",), ("c3",))
    assert view.groundings("REBOOT_PROB") == ((),)
    assert len(view.groundings("CONNECTED")) == 9
    with pytest.raises(KeyError, match="unknown fluent 'missing'"):
        view.groundings("missing")

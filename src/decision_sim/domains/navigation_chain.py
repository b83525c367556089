"""One-dimensional navigation chain.

The agent moves along cells ``0..GOAL`` and pays one unit per epoch until it
reaches the goal. Moves may slip and leave the position unchanged.
"""

from __future__ import annotations

import numpy as np

from decision_sim.core.variables import FluentDef, VariableCategory
from decision_sim.model.domain import Cpf, FactoredDomain, FluentView
from decision_sim.plugins import ComponentManifest

DOMAIN_NAME = "navigation_chain"


def _at_goal(view: FluentView, args: tuple[str, ...], rng: np.random.Generator) -> bool:
    del args, rng
    return view("position") == view("GOAL")


def _next_position(view: FluentView, args: tuple[str, ...], rng: np.random.Generator) -> int:
    del args
    # One draw per epoch regardless of outcome keeps streams aligned across policies.
    slipped = bool(rng.random() < view("SLIP_PROB"))
    if slipped:
        return view("position")
    return int(min(max(view("position") + view("move"), 0), view("GOAL")))


def _position_obs(view: FluentView, args: tuple[str, ...], rng: np.random.Generator) -> int:
    del args
    position = view.next("position")
    if rng.random() < view("OBSERVATION_NOISE"):
        return int(min(max(position + int(rng.choice((-1, 1))), 0), view("GOAL")))
    return position


def _reward(view: FluentView) -> float:
    return 0.0 if view("at_goal") else -1.0


def create_navigation_chain_domain(*, partially_observed: bool = False) -> FactoredDomain:
    """Factory used by plugin discovery.

    Parameters
    ----------
    partially_observed : bool, optional
        Declare the noisy ``position_obs`` observation channel and keep
        ``at_goal`` out of the trajectory log.

    Returns
    -------
    FactoredDomain
        Navigation chain domain declaration.
    """

    fluents = [
        FluentDef("GOAL", VariableCategory.CONSTANT, "int", 4),
        FluentDef("SLIP_PROB", VariableCategory.CONSTANT, "real", 0.0),
        FluentDef("OBSERVATION_NOISE", VariableCategory.CONSTANT, "real", 0.0),
        FluentDef("position", VariableCategory.STATE, "int", 0),
        FluentDef("move", VariableCategory.ACTION, "int", 0),
        FluentDef(
            "at_goal",
            VariableCategory.INTERMEDIATE if partially_observed else VariableCategory.DERIVED,
            "bool",
            False,
        ),
    ]
    cpfs: dict[str, Cpf] = {"at_goal": _at_goal, "position": _next_position}
    if partially_observed:
        fluents.append(
            FluentDef("position_obs", VariableCategory.OBSERVATION, "int", 0, observes="position")
        )
        cpfs["position_obs"] = _position_obs

    return FactoredDomain(
        name=DOMAIN_NAME,
        fluents=tuple(fluents),
        cpfs=cpfs,
        reward=_reward,
        invariants={"position_in_bounds": lambda view: 0 <= view("position") <= view("GOAL")},
        preconditions={"unit_move": lambda view: view("move") in (-1, 0, 1)},
        terminations={"at_goal": lambda view: view("position") == view("GOAL")},
    )


PLUGIN_MANIFESTS = [
    ComponentManifest(
        kind="domain",
        component_id="navigation_chain",
        factory=create_navigation_chain_domain,
        description="Slippery one-dimensional chain with a goal cell",
    )
]

"""SysAdmin network domain.

Computers in a network fail with a probability that grows with the number of
failed neighbours; the administrator may reboot computers at a cost. The
partially observed variant hides ``running`` and emits a noisy
``running_obs`` channel instead. The exact ``n_running`` count is then
kept internal so it never reaches the trajectory log.
"""

from __future__ import annotations

from collections.abc import Mapping

import numpy as np

from decision_sim.core.variables import FluentDef, VariableCategory
from decision_sim.model.domain import Cpf, FactoredDomain, FluentView, Predicate
from decision_sim.plugins import ComponentManifest

DOMAIN_NAME = "sysadmin"


def _n_running(view: FluentView, args: tuple[str, ...], rng: np.random.Generator) -> int:
    del args, rng
    return view.count("running")


def _next_running(view: FluentView, args: tuple[str, ...], rng: np.random.Generator) -> bool:
    (computer,) = args
    if view("reboot", computer):
        return True
    if not view("running", computer):
        return bool(rng.random() < view("REBOOT_PROB"))

    neighbours = [other for other in view.objects("computer") if view("CONNECTED", other, computer)]
    running_neighbours = sum(1 for other in neighbours if view("running", other))
    p_stay_up = 0.45 + 0.5 * (1 + running_neighbours) / (1 + len(neighbours))
    return bool(rng.random() < p_stay_up)


def _running_obs(view: FluentView, args: tuple[str, ...], rng: np.random.Generator) -> bool:
    (computer,) = args
    flipped = bool(rng.random() < view("OBSERVATION_NOISE"))
    return bool(view.next("running", computer)) != flipped


def _reward(view: FluentView) -> float:
    return float(view.count("running")) - view("REBOOT_PENALTY") * view.count("reboot")


def _reboot_requires_down(view: FluentView) -> bool:
    return all(
        not view("reboot", computer) or not view("running", computer)
        for (computer,) in view.groundings("reboot")
    )


def create_sysadmin_domain(
    *,
    partially_observed: bool = False,
    reboot_requires_down: bool = False,
) -> FactoredDomain:
    """Factory used by plugin discovery.

    Parameters
    ----------
    partially_observed : bool, optional
        Declare the noisy ``running_obs`` observation channel.
    reboot_requires_down : bool, optional
        Add a precondition forbidding reboots of running computers.

    Returns
    -------
    FactoredDomain
        SysAdmin domain declaration.
    """

    fluents = [
        FluentDef("CONNECTED", VariableCategory.CONSTANT, "bool", False, ("computer", "computer")),
        FluentDef("REBOOT_PROB", VariableCategory.CONSTANT, "real", 0.1),
        FluentDef("REBOOT_PENALTY", VariableCategory.CONSTANT, "real", 0.75),
        FluentDef("OBSERVATION_NOISE", VariableCategory.CONSTANT, "real", 0.1),
        FluentDef("running", VariableCategory.STATE, "bool", True, ("computer",)),
        FluentDef("reboot", VariableCategory.ACTION, "bool", False, ("computer",)),
        FluentDef(
            "n_running",
            VariableCategory.INTERMEDIATE if partially_observed else VariableCategory.DERIVED,
            "int",
            0,
        ),
    ]
    cpfs: dict[str, Cpf] = {"n_running": _n_running, "running": _next_running}
    if partially_observed:
        fluents.append(
            FluentDef(
                "running_obs",
                VariableCategory.OBSERVATION,
                "bool",
                False,
                ("computer",),
                observes="running",
            )
        )
        cpfs["running_obs"] = _running_obs

    preconditions: Mapping[str, Predicate] = {}
    if reboot_requires_down:
        preconditions = {"reboot_requires_down": _reboot_requires_down}

    return FactoredDomain(
        name=DOMAIN_NAME,
        fluents=tuple(fluents),
        cpfs=cpfs,
        reward=_reward,
        invariants={
            "reboot_prob_in_unit_interval": lambda view: 0.0 <= view("REBOOT_PROB") <= 1.0,
            "observation_noise_in_unit_interval": lambda view: 0.0 <= view("OBSERVATION_NOISE") <= 1.0,
        },
        preconditions=preconditions,
        terminations={"all_down": lambda view: view.count("running") == 0},
        types=("computer",),
    )


PLUGIN_MANIFESTS = [
    ComponentManifest(
        kind="domain",
        component_id="sysadmin",
        factory=create_sysadmin_domain,
        description="SysAdmin network with optional noisy running observations",
    )
]

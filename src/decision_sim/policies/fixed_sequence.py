"""Fixed-sequence policy implementation."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from decision_sim.core.contracts import Observation
from decision_sim.core.errors import PolicyError
from decision_sim.plugins import ComponentManifest


class FixedSequencePolicy:
    """Policy that replays a fixed list of action sets by epoch.

    Parameters
    ----------
    instance_name : str
        Instance the policy acts on.
    sequence : Sequence[Mapping[str, Any]]
        Action set per epoch.
    fallback : {"error", "repeat_last"}, optional
        Behavior when the episode outlasts ``sequence``.

    Raises
    ------
    ValueError
        If sequence is empty or fallback is unsupported.
    """

    def __init__(
        self,
        instance_name: str,
        sequence: Sequence[Mapping[str, Any]],
        *,
        fallback: str = "error",
    ) -> None:
        if len(sequence) == 0:
            raise ValueError("sequence must include at least one action set")
        if fallback not in {"error", "repeat_last"}:
            raise ValueError("fallback must be 'error' or 'repeat_last'")

        self.instance_name = instance_name
        self._sequence = tuple(dict(actions) for actions in sequence)
        self._fallback = fallback
        self._epoch = 0
        self.observations: list[Observation | None] = []

    def select_actions(self, observation: Observation | None) -> dict[str, Any]:
        """Return the action set scheduled for the current epoch.

        Raises
        ------
        PolicyError
            If the sequence is exhausted and fallback is ``"error"``.
        """

        self.observations.append(observation)
        epoch = self._epoch
        self._epoch += 1
        if epoch < len(self._sequence):
            return dict(self._sequence[epoch])
        if self._fallback == "repeat_last":
            return dict(self._sequence[-1])
        raise PolicyError(f"epoch {epoch} exceeds fixed sequence length {len(self._sequence)}")


def create_fixed_sequence_policy(
    *,
    instance_name: str,
    sequence: Sequence[Mapping[str, Any]],
    fallback: str = "error",
    seed: int | None = None,
    model: Any = None,
) -> FixedSequencePolicy:
    """Factory used by plugin discovery."""

    del seed, model
    return FixedSequencePolicy(instance_name, sequence, fallback=fallback)


PLUGIN_MANIFESTS = [
    ComponentManifest(
        kind="policy",
        component_id="fixed_sequence",
        factory=create_fixed_sequence_policy,
        description="Replay a configured action set per epoch",
    )
]

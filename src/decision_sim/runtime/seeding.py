"""Per-trial random sources.

One :class:`numpy.random.SeedSequence` entropy value is fixed per batch. Each
trial derives two independent child streams from it: one for the decision
model and one seed for the policy, so policy exploration never perturbs
domain outcomes.
"""

from __future__ import annotations

import numpy as np

_MODEL_STREAM = 0
_POLICY_STREAM = 1


class SeedController:
    """Derive reproducible random sources per trial.

    Parameters
    ----------
    base_seed : int | None, optional
        Batch seed. ``None`` draws fresh OS entropy once, for exploratory
        runs; the drawn value is kept in :attr:`entropy` so the run can be
        replayed.

    Raises
    ------
    ValueError
        If ``base_seed`` is negative.
    """

    def __init__(self, base_seed: int | None = None) -> None:
        if base_seed is not None and int(base_seed) < 0:
            raise ValueError("base_seed must be >= 0")
        root = np.random.SeedSequence(None if base_seed is None else int(base_seed))
        self._entropy = int(root.entropy)

    @property
    def entropy(self) -> int:
        """Entropy all per-trial streams are derived from."""

        return self._entropy

    def seed_for(self, trial_index: int) -> np.random.Generator:
        """Return the model random source for one trial.

        Parameters
        ----------
        trial_index : int
            One-based trial index within the batch.

        Returns
        -------
        numpy.random.Generator
            Generator the decision model consumes during that trial.
        """

        return np.random.default_rng(self._sequence(trial_index, _MODEL_STREAM))

    def policy_seed_for(self, trial_index: int) -> int:
        """Return an integer seed for the trial's policy."""

        state = self._sequence(trial_index, _POLICY_STREAM).generate_state(1, dtype=np.uint32)
        return int(state[0])

    def _sequence(self, trial_index: int, stream: int) -> np.random.SeedSequence:
        if int(trial_index) < 0:
            raise ValueError("trial_index must be >= 0")
        return np.random.SeedSequence(self._entropy, spawn_key=(int(trial_index), stream))


__all__ = ["SeedController"]

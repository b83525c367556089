"""Error taxonomy for simulation runs.

Configuration errors are fatal at startup. Trial errors abort one trial and
carry the trial/epoch context needed to diagnose them; the batch driver
decides whether later trials still run.
"""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for every error raised by :mod:`decision_sim`."""


class ConfigurationError(SimulationError, ValueError):
    """Invalid description, instance, or plugin configuration."""


class TrialError(SimulationError):
    """Failure that ends one trial.

    Parameters
    ----------
    message : str
        Human-readable failure description.
    trial_index : int | None, optional
        One-based trial index within the batch.
    epoch : int | None, optional
        Zero-based decision epoch within the trial.
    """

    def __init__(
        self,
        message: str,
        *,
        trial_index: int | None = None,
        epoch: int | None = None,
    ) -> None:
        self.message = message
        self.trial_index = trial_index
        self.epoch = epoch
        super().__init__(self._format())

    def _format(self) -> str:
        location = []
        if self.trial_index is not None:
            location.append(f"trial {self.trial_index}")
        if self.epoch is not None:
            location.append(f"epoch {self.epoch}")
        if not location:
            return self.message
        return f"[{', '.join(location)}] {self.message}"

    def with_context(self, *, trial_index: int, epoch: int) -> TrialError:
        """Return a copy of this error annotated with trial/epoch context."""

        return type(self)(self.message, trial_index=trial_index, epoch=epoch)


class InvariantViolationError(TrialError):
    """The decision model reached a state its own invariants forbid."""


class IllegalActionError(TrialError):
    """The policy chose an action set that violates a legality constraint."""


class PolicyError(TrialError):
    """The policy failed to produce an action set."""


__all__ = [
    "ConfigurationError",
    "IllegalActionError",
    "InvariantViolationError",
    "PolicyError",
    "SimulationError",
    "TrialError",
]

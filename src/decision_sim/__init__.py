"""Top-level package for ``decision_sim``.

The package runs a pluggable policy against a decision process instance over
repeated trials:

1. a :class:`~decision_sim.core.contracts.DecisionModel` owns state,
   dynamics, reward, and constraints,
2. a :class:`~decision_sim.core.contracts.Policy` chooses an action set per
   epoch,
3. :func:`~decision_sim.runtime.trial.run_trial` drives one episode,
4. :func:`~decision_sim.runtime.batch.run_batch` repeats it with per-trial
   seeding and writes the trajectory log.

Notes
-----
The factored model in :mod:`decision_sim.model` is a reference
implementation; any object satisfying the protocol can be simulated.
"""

from .core.contracts import DecisionModel, Policy, Visualizer
from .core.errors import ConfigurationError, IllegalActionError, InvariantViolationError, PolicyError
from .core.instance import DecisionProcessInstance
from .description import load_simulation
from .runtime import BatchConfig, BatchSummary, SeedController, Trial, TrajectoryLogger, run_batch, run_trial

__all__ = [
    "BatchConfig",
    "BatchSummary",
    "ConfigurationError",
    "DecisionModel",
    "DecisionProcessInstance",
    "IllegalActionError",
    "InvariantViolationError",
    "Policy",
    "PolicyError",
    "SeedController",
    "Trial",
    "TrajectoryLogger",
    "Visualizer",
    "load_simulation",
    "run_batch",
    "run_trial",
]

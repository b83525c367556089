"""Command line entry point for batch simulation.

Usage::

    decision-sim DESCRIPTION POLICY INSTANCE [VISUALIZER] [TRIALS]

The trajectory file is the primary output. Each trial's accumulated
discounted return, or its failure, is printed as soon as the trial ends, and a
summary line follows the batch.
"""

from __future__ import annotations

import argparse
import functools
import json
import logging
from typing import Any, Sequence

from decision_sim.core.errors import ConfigurationError
from decision_sim.description import load_simulation
from decision_sim.plugins import build_default_registry
from decision_sim.runtime import DEFAULT_FLUSH_INTERVAL, DEFAULT_OUTPUT_PATH, BatchConfig, TrialOutcome, run_batch

logger = logging.getLogger(__name__)

_RESERVED_POLICY_PARAMS = frozenset({"instance_name", "seed", "model"})


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser of :func:`run_simulation_cli`."""

    parser = argparse.ArgumentParser(
        prog="decision-sim",
        description="Simulate a policy on a decision process instance over repeated trials.",
    )
    parser.add_argument("description", help="Path to a JSON or YAML domain description file.")
    parser.add_argument("policy", help="Registered policy identifier (e.g. noop, random_boolean).")
    parser.add_argument("instance", help="Instance name inside the description file.")
    parser.add_argument("visualizer", nargs="?", default="null", help="Registered visualizer identifier.")
    parser.add_argument("trials", nargs="?", type=int, default=1, help="Number of trials (default 1).")
    parser.add_argument("--seed", type=int, default=None, help="Base seed; omit for a fresh random run.")
    parser.add_argument("--output", default=DEFAULT_OUTPUT_PATH, help="Trajectory TSV path.")
    parser.add_argument(
        "--flush-interval",
        type=int,
        default=DEFAULT_FLUSH_INTERVAL,
        help="Trials between trajectory log flushes.",
    )
    parser.add_argument("--resume", action="store_true", help="Append to an existing trajectory file.")
    parser.add_argument("--stop-on-error", action="store_true", help="Stop at the first failed trial.")
    parser.add_argument(
        "--policy-params",
        default="{}",
        help="JSON object of extra keyword arguments for the policy factory.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging verbosity.",
    )
    return parser


def run_simulation_cli(argv: Sequence[str] | None = None) -> int:
    """Run a simulation batch from command line arguments.

    Parameters
    ----------
    argv : Sequence[str] | None, optional
        CLI argument list. When ``None``, process arguments are used.

    Returns
    -------
    int
        ``0`` if every trial completed, ``1`` if any trial failed, ``2`` on
        configuration errors.
    """

    args = build_parser().parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    registry = build_default_registry()
    try:
        policy_params = _parse_policy_params(args.policy_params)
        simulation = load_simulation(args.description, args.instance, registry=registry)
        registry.check_arguments(
            "policy",
            args.policy,
            instance_name=simulation.instance.name,
            seed=0,
            model=simulation.model,
            **policy_params,
        )
        registry.get("visualizer", args.visualizer)
        config = BatchConfig(
            trial_count=args.trials,
            base_seed=args.seed,
            output_path=args.output,
            flush_interval=args.flush_interval,
            resume=args.resume,
            stop_on_error=args.stop_on_error,
        )
    except (ConfigurationError, ValueError) as exc:
        print(f"ERROR: {exc}")
        return 2

    policy_factory = functools.partial(
        registry.create,
        "policy",
        args.policy,
        model=simulation.model,
        **policy_params,
    )
    visualizer_factory = functools.partial(registry.create, "visualizer", args.visualizer)

    summary = run_batch(
        model=simulation.model,
        instance=simulation.instance,
        policy_factory=policy_factory,
        visualizer_factory=visualizer_factory,
        config=config,
        on_outcome=_print_outcome,
    )

    print(
        f"Simulation complete: instance={summary.instance_name}, "
        f"completed={len(summary.completed)}, failed={len(summary.failed)}, "
        f"mean_return={summary.mean_return}, std_error={summary.std_error}, "
        f"seed_entropy={summary.entropy}"
    )
    print(f"Trajectory TSV: {args.output}")
    return 1 if summary.failed else 0


def _print_outcome(outcome: TrialOutcome) -> None:
    if outcome.status == "completed":
        print(f"trial {outcome.trial_index}\treturn {outcome.accumulated_return}", flush=True)
    else:
        print(f"trial {outcome.trial_index}\tFAILED {outcome.error_type}: {outcome.error}", flush=True)


def _parse_policy_params(raw: str) -> dict[str, Any]:
    try:
        params = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"--policy-params is not valid JSON: {exc}") from exc
    if not isinstance(params, dict):
        raise ConfigurationError("--policy-params must be a JSON object")
    reserved = sorted(set(params) & _RESERVED_POLICY_PARAMS)
    if reserved:
        raise ConfigurationError(f"--policy-params must not set {reserved}; they are supplied per trial")
    return params


def main() -> None:
    """Execute simulation CLI and exit with returned code."""

    raise SystemExit(run_simulation_cli())


if __name__ == "__main__":
    main()


__all__ = ["build_parser", "main", "run_simulation_cli"]

"""Core contracts, fluent declarations, instances, and errors."""

from .config import (
    SUPPORTED_CONFIG_SUFFIXES,
    load_config_mapping,
    validate_allowed_keys,
    validate_required_keys,
)
from .contracts import ActionSet, DecisionModel, Observation, Policy, Visualizer
from .errors import (
    ConfigurationError,
    IllegalActionError,
    InvariantViolationError,
    PolicyError,
    SimulationError,
    TrialError,
)
from .instance import DecisionProcessInstance
from .variables import FluentDef, VariableCategory, ground_name, parse_ground_name

__all__ = [
    "ActionSet",
    "ConfigurationError",
    "DecisionModel",
    "DecisionProcessInstance",
    "FluentDef",
    "IllegalActionError",
    "InvariantViolationError",
    "Observation",
    "Policy",
    "PolicyError",
    "SUPPORTED_CONFIG_SUFFIXES",
    "SimulationError",
    "TrialError",
    "VariableCategory",
    "Visualizer",
    "ground_name",
    "load_config_mapping",
    "parse_ground_name",
    "validate_allowed_keys",
    "validate_required_keys",
]

"""Reference factored decision model with Python-callable dynamics."""

from .domain import Cpf, FactoredDomain, FluentView, Predicate, RewardFn
from .factored import FactoredDecisionModel
from .state import FactoredState

__all__ = [
    "Cpf",
    "FactoredDecisionModel",
    "FactoredDomain",
    "FactoredState",
    "FluentView",
    "Predicate",
    "RewardFn",
]

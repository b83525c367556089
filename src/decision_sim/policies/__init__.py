"""Built-in policies."""

from .baseline import NoopPolicy, RandomBooleanPolicy, create_noop_policy, create_random_boolean_policy
from .fixed_sequence import FixedSequencePolicy, create_fixed_sequence_policy

__all__ = [
    "FixedSequencePolicy",
    "NoopPolicy",
    "RandomBooleanPolicy",
    "create_fixed_sequence_policy",
    "create_noop_policy",
    "create_random_boolean_policy",
]

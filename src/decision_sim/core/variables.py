"""Fluent declarations and ground-name helpers.

Every fluent carries an explicit :class:`VariableCategory` set once when the
domain is declared. Logging and observation masking read that tag directly
instead of inferring roles from variable names.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

_GROUND_NAME_PATTERN = re.compile(r"^\s*([A-Za-z_][\w\-]*)\s*(?:\((.*)\))?\s*$")

VALUE_TYPES: tuple[str, ...] = ("bool", "int", "real", "str")


class VariableCategory(str, Enum):
    """Role of a fluent in the decision process.

    Attributes
    ----------
    STATE
        Hidden or fully observed state, carried across epochs.
    ACTION
        Chosen by the policy each epoch.
    OBSERVATION
        Emitted by the model after each transition in partially observed
        processes.
    DERIVED
        Intermediate value that is externally relevant and gets logged.
    INTERMEDIATE
        Internal helper value, never logged.
    CONSTANT
        Non-fluent value fixed for the whole run.
    """

    STATE = "state"
    ACTION = "action"
    OBSERVATION = "observation"
    DERIVED = "derived"
    INTERMEDIATE = "intermediate"
    CONSTANT = "constant"


@dataclass(frozen=True, slots=True)
class FluentDef:
    """Declaration of one (possibly parameterised) fluent.

    Parameters
    ----------
    name : str
        Fluent name, unique within a domain.
    category : VariableCategory
        Role tag of the fluent.
    value_type : {"bool", "int", "real", "str"}, optional
        Scalar value type of every grounding.
    default : Any, optional
        Default value. For action fluents, a grounding equal to its default
        does not count toward the non-default action budget.
    params : tuple[str, ...], optional
        Object-type names the fluent is parameterised by.
    observes : str | None, optional
        For observation fluents, the fluent whose value this channel reports.

    Raises
    ------
    ValueError
        If the value type is unknown or ``observes`` is set on a
        non-observation fluent.
    """

    name: str
    category: VariableCategory
    value_type: str = "bool"
    default: Any = False
    params: tuple[str, ...] = ()
    observes: str | None = None

    def __post_init__(self) -> None:
        if not _GROUND_NAME_PATTERN.match(self.name) or "(" in self.name:
            raise ValueError(f"invalid fluent name {self.name!r}")
        if self.value_type not in VALUE_TYPES:
            raise ValueError(
                f"fluent {self.name!r} has unknown value_type {self.value_type!r}; "
                f"expected one of {VALUE_TYPES}"
            )
        if self.observes is not None and self.category is not VariableCategory.OBSERVATION:
            raise ValueError(f"only observation fluents may set observes (got {self.name!r})")
        object.__setattr__(self, "category", VariableCategory(self.category))
        object.__setattr__(self, "params", tuple(self.params))

    def accepts(self, value: Any) -> bool:
        """Return whether ``value`` fits this fluent's value type."""

        if self.value_type == "bool":
            return isinstance(value, bool)
        if self.value_type == "int":
            return isinstance(value, int) and not isinstance(value, bool)
        if self.value_type == "real":
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        return isinstance(value, str)


def ground_name(name: str, args: tuple[str, ...] = ()) -> str:
    """Render a ground fluent name such as ``reboot(c1)``."""

    if not args:
        return name
    return f"{name}({','.join(args)})"


def parse_ground_name(text: str) -> tuple[str, tuple[str, ...]]:
    """Split a ground fluent name into name and argument objects.

    Parameters
    ----------
    text : str
        Ground name such as ``"connected(c1, c2)"`` or ``"position"``.

    Returns
    -------
    tuple[str, tuple[str, ...]]
        Fluent name and argument objects.

    Raises
    ------
    ValueError
        If ``text`` is not a well-formed ground name.
    """

    match = _GROUND_NAME_PATTERN.match(str(text))
    if match is None:
        raise ValueError(f"malformed ground fluent name {text!r}")
    name, raw_args = match.group(1), match.group(2)
    if raw_args is None or not raw_args.strip():
        return name, ()
    args = tuple(part.strip() for part in raw_args.split(","))
    if any(not part for part in args):
        raise ValueError(f"malformed ground fluent name {text!r}")
    return name, args


__all__ = [
    "FluentDef",
    "VALUE_TYPES",
    "VariableCategory",
    "ground_name",
    "parse_ground_name",
]

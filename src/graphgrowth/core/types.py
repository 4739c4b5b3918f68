"""Core data types and structures for the growth pipeline."""

import math
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Dict, List, Any, Union
from enum import Enum

from graphgrowth.core.exceptions import ConfigurationError


class CountType(Enum):
    """Kinds of graph items that can be counted."""
    NODE = "node"
    EDGE = "edge"
    BP = "bp"
    ALL = "all"

    @classmethod
    def parse(cls, value: Union[str, "CountType"]) -> "CountType":
        """Parse a count type name, raising ConfigurationError on unknown names."""
        if isinstance(value, CountType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(c.value for c in cls)
            raise ConfigurationError(f"Unknown count type '{value}' (choose from {choices})")

    def expand(self) -> List["CountType"]:
        """Resolve ALL into the concrete count types."""
        if self is CountType.ALL:
            return [CountType.NODE, CountType.EDGE, CountType.BP]
        return [self]


@dataclass
class Group:
    """A sample: one or more paths sharing a label.

    ``id`` is the stable bit position used in coverage sets, ``ordinal`` the
    position in the currently active order.
    """
    id: int
    label: str
    ordinal: int
    paths: List[str] = field(default_factory=list)


def _to_fraction(value: Union[int, float, str, Fraction]) -> Fraction:
    if isinstance(value, Fraction):
        return value
    if isinstance(value, float):
        # go through the decimal representation so 0.1 stays 1/10
        value = repr(value)
    try:
        return Fraction(str(value).strip())
    except (ValueError, ZeroDivisionError):
        raise ConfigurationError(f"Invalid quorum value: {value!r}")


@dataclass(frozen=True)
class ThresholdSpec:
    """Coverage threshold ``l`` combined with quorum threshold ``q``.

    At sample size k an item counts as present when at least
    ``max(l, ceil(q * k))`` of the considered groups cover it.
    """
    coverage: int = 1
    quorum: Fraction = Fraction(0)

    def __post_init__(self) -> None:
        coverage = self.coverage
        if isinstance(coverage, bool) or not isinstance(coverage, int):
            if isinstance(coverage, float) and coverage.is_integer():
                coverage = int(coverage)
            else:
                raise ConfigurationError(
                    f"Coverage threshold must be a non-negative integer, got {self.coverage!r}"
                )
        if coverage < 0:
            raise ConfigurationError(
                f"Coverage threshold must be a non-negative integer, got {coverage}"
            )
        quorum = _to_fraction(self.quorum)
        if quorum < 0 or quorum > 1:
            raise ConfigurationError(f"Quorum must lie in [0, 1], got {self.quorum}")
        object.__setattr__(self, "coverage", coverage)
        object.__setattr__(self, "quorum", quorum)

    def min_coverage(self, k: int) -> int:
        """Minimum number of covering groups required at sample size k."""
        return max(self.coverage, math.ceil(self.quorum * k))

    @property
    def quorum_label(self) -> str:
        """Quorum as a short decimal string."""
        if self.quorum.denominator == 1:
            return str(self.quorum.numerator)
        return f"{float(self.quorum):g}"

    def __str__(self) -> str:
        return f"coverage>={self.coverage},quorum>={self.quorum_label}"


@dataclass
class OrderBinding:
    """Result of binding an external group order to the loaded groups."""
    group_ids: List[int]
    unknown_labels: List[str] = field(default_factory=list)
    unordered_labels: List[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        """True when the order and the loaded groups match exactly."""
        return not self.unknown_labels and not self.unordered_labels


@dataclass
class ValidationResult:
    """Result of validation operation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

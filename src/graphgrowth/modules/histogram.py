"""Coverage histogram: summed item weight per coverage count."""

from dataclasses import dataclass

import numpy as np

from graphgrowth.core.types import CountType


@dataclass
class Histogram:
    """
    Coverage histogram of one count type.

    ``coverage[c]`` holds the summed weight of items covered by exactly c
    groups, for c in 0..n. ``uncovered_weight`` is the weight of items
    covered by no group that was left out of bucket 0.
    """
    count_type: CountType
    coverage: np.ndarray
    uncovered_weight: int = 0

    def __post_init__(self) -> None:
        self.coverage = np.asarray(self.coverage, dtype=np.int64)
        if self.coverage.ndim != 1 or len(self.coverage) == 0:
            raise ValueError("Histogram needs at least the coverage-0 bucket")

    @property
    def n_groups(self) -> int:
        return len(self.coverage) - 1

    @property
    def total_weight(self) -> int:
        """Summed weight of all buckets."""
        return int(self.coverage.sum())

    @property
    def universe_weight(self) -> int:
        """Summed weight of the whole item universe, uncovered items included."""
        return self.total_weight + int(self.uncovered_weight)

    def weight_at_least(self, m: int) -> int:
        """Weight of items covered by at least m groups."""
        return int(self.coverage[max(m, 0):].sum())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Histogram):
            return NotImplemented
        return (self.count_type is other.count_type
                and np.array_equal(self.coverage, other.coverage))

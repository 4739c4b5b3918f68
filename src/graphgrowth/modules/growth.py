"""Pangenome growth curves from coverage histograms and group orders."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from graphgrowth.core.types import CountType, ThresholdSpec
from graphgrowth.core.exceptions import ConfigurationError, NumericalError
from graphgrowth.modules.coverage import CoverageSets, resolve_threads
from graphgrowth.modules.histogram import Histogram

logger = logging.getLogger(__name__)

# slack allowed for rounding before a probability counts as out of range
PROBABILITY_TOLERANCE = 1e-9


@dataclass
class GrowthCurve:
    """Present weight for sample sizes 1..n under one threshold spec."""
    spec: ThresholdSpec
    count_type: CountType
    values: np.ndarray
    mode: str = "averaged"

    def __len__(self) -> int:
        return len(self.values)


def hypergeometric_tails(n: int, spec: ThresholdSpec) -> Iterator[Tuple[int, np.ndarray]]:
    """
    Upper hypergeometric tails for every coverage count, k = 1..n.

    For coverage c and sample size k, yields ``P(X >= m(k))`` with
    ``X ~ Hypergeometric(population n, successes c, draws k)``, for all
    c in 0..n at once.

    The tail is carried from k to k + 1 together with the log pmf at
    ``m(k) - 1``: one more draw raises the tail by
    ``p_k(m - 1) * (c - m + 1) / (n - k)``, and a threshold step
    ``m -> m + 1`` lowers it by ``p_{k+1}(m)``. ``m(k)`` grows by at most one
    per step because q <= 1. The pmf moves by ratios only, in log space, so
    no binomial coefficient is ever formed.

    Args:
        n: Number of groups
        spec: Threshold spec

    Yields:
        (k, tail) with tail indexed by coverage count
    """
    c = np.arange(n + 1, dtype=np.float64)
    failures = n - c

    m = spec.min_coverage(0)
    tail = np.full(n + 1, 1.0 if m == 0 else 0.0)
    # log p_k(m - 1); p_0 is concentrated on 0
    log_pmf = np.zeros(n + 1) if m == 1 else np.full(n + 1, -np.inf)
    # log P_k(X = k) and log P_k(X = 0)
    log_all = np.zeros(n + 1)
    log_none = np.zeros(n + 1)

    with np.errstate(divide="ignore"):
        for k in range(n):
            draws = k + 1
            j = m - 1
            m_next = spec.min_coverage(draws)
            if m_next - m not in (0, 1):
                raise NumericalError(
                    f"Threshold jumped from {m} to {m_next} at sample size {draws}",
                    sample_size=draws, stage="growth"
                )

            log_left = np.log(n - k)
            log_all_next = log_all + np.log(np.maximum(c - k, 0)) - log_left
            log_none_next = log_none + np.log(np.maximum(failures - k, 0)) - log_left

            if j < 0:
                if m_next == 1:
                    log_pmf = log_none_next.copy()
                    tail = -np.expm1(log_none_next)
            elif j > k:
                # threshold still above the number of draws
                if m_next == m and j == draws:
                    log_pmf = log_all_next.copy()
                else:
                    log_pmf = np.full(n + 1, -np.inf)
            else:
                tail = tail + np.exp(log_pmf) * np.maximum(c - j, 0) / (n - k)
                if m_next == m:
                    log_pmf = (log_pmf + np.log(draws)
                               + np.log(np.maximum(failures - (k - j), 0))
                               - np.log(draws - j) - log_left)
                else:
                    log_pmf = (log_pmf + np.log(np.maximum(c - j, 0)) + np.log(draws)
                               - np.log(j + 1) - log_left)
                    tail = tail - np.exp(log_pmf)

            m = m_next
            log_all, log_none = log_all_next, log_none_next

            # absorbing states are exact
            lowest = np.maximum(draws - failures, 0)
            tail[m > np.minimum(c, draws)] = 0.0
            tail[lowest >= m] = 1.0

            if np.isnan(tail).any() or tail.min() < -PROBABILITY_TOLERANCE \
                    or tail.max() > 1.0 + PROBABILITY_TOLERANCE:
                raise NumericalError(
                    f"Tail probability left [0, 1] at sample size {draws} for {spec}",
                    sample_size=draws, stage="growth"
                )
            tail = np.clip(tail, 0.0, 1.0)
            yield draws, tail


def averaged_growth(hist: Histogram, spec: ThresholdSpec) -> np.ndarray:
    """
    Expected present weight over all group orders, for k = 1..n.

    Args:
        hist: Coverage histogram with buckets 0..n
        spec: Threshold spec

    Returns:
        Array of length n, entry k - 1 holding the value at sample size k
    """
    n = hist.n_groups
    growth = np.zeros(n, dtype=np.float64)
    weights = hist.coverage.astype(np.float64)
    for k, tail in hypergeometric_tails(n, spec):
        growth[k - 1] = weights @ tail
    return growth


def calc_all_growths(
    hist: Histogram,
    specs: Sequence[ThresholdSpec],
    threads: Optional[int] = None
) -> List[GrowthCurve]:
    """
    Averaged growth curve for each threshold spec.

    Args:
        hist: Coverage histogram
        specs: Threshold specs
        threads: Parallelism hint (0 or None: all CPUs)

    Returns:
        Growth curves in the order of specs
    """
    if not specs:
        raise ConfigurationError("At least one threshold spec is required")
    logger.info(
        f"Calculating {len(specs)} averaged {hist.count_type.value} growth curves "
        f"for {hist.n_groups} groups"
    )
    max_workers = min(resolve_threads(threads), len(specs))
    if max_workers <= 1:
        values = [averaged_growth(hist, spec) for spec in specs]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            values = list(executor.map(lambda spec: averaged_growth(hist, spec), specs))
    return [GrowthCurve(spec, hist.count_type, v, mode="averaged")
            for spec, v in zip(specs, values)]


def ordered_growth(
    coverage: CoverageSets,
    order: Sequence[int],
    specs: Sequence[ThresholdSpec],
    include_uncovered: bool = False
) -> List[GrowthCurve]:
    """
    Exact growth when groups are added in a fixed order.

    Groups not in order contribute nothing, not even to deciding which items
    are uncovered; n is the length of the order.

    Args:
        coverage: Coverage sets of all groups
        order: Group ids, first added first
        specs: Threshold specs
        include_uncovered: Let items covered by no ordered group count when m(k) = 0

    Returns:
        Growth curves in the order of specs
    """
    if not specs:
        raise ConfigurationError("At least one threshold spec is required")
    order = list(order)
    if len(set(order)) != len(order):
        raise ConfigurationError("Group order contains duplicates")
    if any(g < 0 or g >= coverage.n_groups for g in order):
        raise ConfigurationError("Group order refers to unknown group ids")

    n = len(order)
    logger.info(
        f"Calculating {len(specs)} ordered {coverage.count_type.value} growth curves "
        f"over {n} groups"
    )

    weights = coverage.weights.astype(np.float64)
    if not include_uncovered:
        # items covered by the ordered groups
        covered = np.zeros(coverage.n_items, dtype=bool)
        for group_id in order:
            covered |= coverage.group_mask(group_id)
        weights = np.where(covered, weights, 0.0)

    values = np.zeros((len(specs), n), dtype=np.float64)
    cumulative = np.zeros(coverage.n_items, dtype=np.int64)
    for k, group_id in enumerate(order, start=1):
        cumulative += coverage.group_mask(group_id)
        by_count = np.bincount(cumulative, weights=weights, minlength=k + 1)
        # at_least[m]: weight of items covered at least m times so far
        at_least = np.cumsum(by_count[::-1])[::-1]
        for s, spec in enumerate(specs):
            m = spec.min_coverage(k)
            values[s, k - 1] = at_least[m] if m <= k else 0.0

    return [GrowthCurve(spec, coverage.count_type, values[s], mode="ordered")
            for s, spec in enumerate(specs)]

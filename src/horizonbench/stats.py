"""Statistical functions for benchmark sampling decisions.

Provides bootstrap confidence intervals for a single benchmark's mean
runtime and for the absolute and relative difference between two
benchmarks' means, in pure Python.

Every function is pure: inputs are copied, nothing is cached between
calls, and the only randomness comes from a ``random.Random`` seeded by
the caller (``seed=None`` draws from system entropy).

Percentiles are always taken with linear interpolation between adjacent
order statistics at rank ``(n - 1) * p`` (numpy's ``"linear"`` method),
so a handful of resamples narrows the interval instead of erroring.

References:
    Bootstrap CI: Efron, B. & Tibshirani, R. J. (1993). "An
        Introduction to the Bootstrap."
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Sequence

DEFAULT_CONFIDENCE = 0.95
DEFAULT_RESAMPLES = 10000


class InsufficientSamples(ValueError):
    """Raised when a statistic needs more samples than were given."""

    def __init__(self, size: int, needed: int = 2) -> None:
        super().__init__(
            f"Need at least {needed} samples to compute a confidence interval (got {size})."
        )
        self.size = size
        self.needed = needed


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfidenceInterval:
    """A closed interval ``[low, high]`` with ``low <= high``."""

    low: float
    high: float

    @property
    def width(self) -> float:
        return self.high - self.low

    @property
    def midpoint(self) -> float:
        return (self.low + self.high) / 2

    def contains(self, value: float) -> bool:
        """True if *value* lies inside the interval (bounds included)."""
        return self.low <= value <= self.high

    def to_dict(self, scale: float = 1.0) -> dict[str, float]:
        return {"low": self.low * scale, "high": self.high * scale}


@dataclass(frozen=True)
class Difference:
    """Difference between two benchmarks' means.

    ``absolute`` is in milliseconds (A - B); ``relative`` is a fraction of
    B's mean ((A - B) / B).  Negative values mean A is faster.
    """

    absolute: ConfidenceInterval
    relative: ConfidenceInterval


@dataclass(frozen=True)
class SummaryStats:
    """Summary statistics for one benchmark's samples."""

    size: int
    mean: float
    mean_ci: ConfidenceInterval
    variance: float
    stdev: float
    relative_stdev: float  # coefficient of variation (stdev / mean)


# ---------------------------------------------------------------------------
# Descriptive statistics
# ---------------------------------------------------------------------------


def mean(samples: Sequence[float]) -> float:
    """Arithmetic mean of *samples*."""
    if not samples:
        raise InsufficientSamples(0, needed=1)
    return math.fsum(samples) / len(samples)


def variance(samples: Sequence[float]) -> float:
    """Sample variance with Bessel's correction (n - 1)."""
    n = len(samples)
    if n < 2:
        raise InsufficientSamples(n)
    m = mean(samples)
    return math.fsum((x - m) ** 2 for x in samples) / (n - 1)


def _percentile(sorted_values: list[float], p: float) -> float:
    """Compute the p-th percentile using linear interpolation.

    Equivalent to numpy.percentile with method='linear'.
    Assumes sorted_values is already sorted in ascending order.
    """
    n = len(sorted_values)
    if n == 0:
        return float("nan")
    if n == 1:
        return sorted_values[0]

    k = (n - 1) * p
    f = math.floor(k)
    c = math.ceil(k)
    if f == c:
        return sorted_values[int(k)]
    d = k - f
    lo = sorted_values[int(f)]
    hi = sorted_values[int(c)]
    if lo == hi:
        # Avoids inf * 0 when both neighbours are infinite.
        return lo
    return lo * (1 - d) + hi * d


def _interval(values: list[float], confidence: float) -> ConfidenceInterval:
    """Percentile interval of a bootstrap distribution."""
    values.sort()
    alpha = 1 - confidence
    low = _percentile(values, alpha / 2)
    high = _percentile(values, 1 - alpha / 2)
    # Guard against float rounding in the interpolation.
    return ConfidenceInterval(low=min(low, high), high=max(low, high))


def _check_params(confidence: float, n_resamples: int) -> None:
    if not 0 < confidence < 1:
        raise ValueError(f"Confidence must be between 0 and 1 (got {confidence}).")
    if n_resamples < 1:
        raise ValueError(f"Need at least 1 bootstrap resample (got {n_resamples}).")


# ---------------------------------------------------------------------------
# Bootstrap confidence intervals
# ---------------------------------------------------------------------------


def confidence_interval(
    samples: Sequence[float],
    *,
    confidence: float = DEFAULT_CONFIDENCE,
    n_resamples: int = DEFAULT_RESAMPLES,
    seed: int | None = None,
) -> ConfidenceInterval:
    """Bootstrap confidence interval for the population mean.

    Draws *n_resamples* same-size resamples with replacement, takes each
    one's mean, and returns the percentile interval at *confidence*.

    Args:
        samples: Measured durations (at least 2).
        confidence: Confidence level (default 0.95 for a 95% CI).
        n_resamples: Number of bootstrap resamples.
        seed: Random seed for reproducibility.

    Raises:
        InsufficientSamples: If fewer than 2 samples are given.
    """
    _check_params(confidence, n_resamples)
    values = list(samples)
    n = len(values)
    if n < 2:
        raise InsufficientSamples(n)

    if min(values) == max(values):
        return ConfidenceInterval(low=values[0], high=values[0])

    rng = random.Random(seed)
    means = [math.fsum(rng.choices(values, k=n)) / n for _ in range(n_resamples)]
    return _interval(means, confidence)


def _relative(diff: float, base: float) -> float:
    if base != 0:
        return diff / base
    if diff == 0:
        return 0.0
    return math.copysign(float("inf"), diff)


def difference(
    sample_a: Sequence[float],
    sample_b: Sequence[float],
    *,
    confidence: float = DEFAULT_CONFIDENCE,
    n_resamples: int = DEFAULT_RESAMPLES,
    seed: int | None = None,
) -> Difference:
    """Bootstrap confidence intervals for ``mean(A) - mean(B)``.

    Each iteration resamples both sets independently and records the
    absolute difference of the resampled means and the same difference
    relative to the resampled mean of B.  The relative interval is
    therefore not ``absolute / mean(B)``: B's own uncertainty widens it.

    A resampled B mean of exactly zero yields a relative difference of 0
    when A's is also 0, otherwise a signed infinity.

    Raises:
        InsufficientSamples: If either side has fewer than 2 samples.
    """
    _check_params(confidence, n_resamples)
    list_a = list(sample_a)
    list_b = list(sample_b)
    for values in (list_a, list_b):
        if len(values) < 2:
            raise InsufficientSamples(len(values))

    na, nb = len(list_a), len(list_b)
    rng = random.Random(seed)

    absolute: list[float] = []
    relative: list[float] = []
    for _ in range(n_resamples):
        mean_a = math.fsum(rng.choices(list_a, k=na)) / na
        mean_b = math.fsum(rng.choices(list_b, k=nb)) / nb
        diff = mean_a - mean_b
        absolute.append(diff)
        relative.append(_relative(diff, mean_b))

    return Difference(
        absolute=_interval(absolute, confidence),
        relative=_interval(relative, confidence),
    )


def summary_stats(
    samples: Sequence[float],
    *,
    confidence: float = DEFAULT_CONFIDENCE,
    n_resamples: int = DEFAULT_RESAMPLES,
    seed: int | None = None,
) -> SummaryStats:
    """Size, mean (with CI), variance, and spread of one sample set."""
    values = list(samples)
    m = mean(values)
    var = variance(values)
    stdev = math.sqrt(var)
    if m != 0:
        rsd = stdev / m
    else:
        rsd = float("inf") if stdev > 0 else 0.0
    return SummaryStats(
        size=len(values),
        mean=m,
        mean_ci=confidence_interval(
            values, confidence=confidence, n_resamples=n_resamples, seed=seed
        ),
        variance=var,
        stdev=stdev,
        relative_stdev=rsd,
    )


def pairwise_differences(
    sample_sets: Sequence[Sequence[float]],
    *,
    confidence: float = DEFAULT_CONFIDENCE,
    n_resamples: int = DEFAULT_RESAMPLES,
    seed: int | None = None,
) -> dict[tuple[int, int], Difference]:
    """Compute the full N×N difference map between sample sets.

    Cell ``(i, j)`` holds ``difference(sets[i], sets[j])``; the diagonal
    is omitted.  Both orientations are computed since the relative
    difference is not antisymmetric.  With a *seed*, each cell gets its
    own deterministic sub-seed.
    """
    rng = random.Random(seed) if seed is not None else None
    result: dict[tuple[int, int], Difference] = {}
    for i, a in enumerate(sample_sets):
        for j, b in enumerate(sample_sets):
            if i == j:
                continue
            cell_seed = rng.getrandbits(64) if rng is not None else None
            result[(i, j)] = difference(
                a,
                b,
                confidence=confidence,
                n_resamples=n_resamples,
                seed=cell_seed,
            )
    return result

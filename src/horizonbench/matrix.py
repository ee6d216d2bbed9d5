"""Comparison matrix assembly.

Turns per-spec statistics and the pairwise difference map into the
final N×N table consumed by reporting.  Assembly only: every number in
the matrix was computed by :mod:`horizonbench.stats` beforehand.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from horizonbench.horizons import Horizon, Resolution, resolve_difference
from horizonbench.specs import BenchmarkSpec
from horizonbench.stats import (
    DEFAULT_CONFIDENCE,
    DEFAULT_RESAMPLES,
    ConfidenceInterval,
    Difference,
    summary_stats,
)


# ---------------------------------------------------------------------------
# Per-spec statistics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResultStats:
    """Statistics for one spec, recomputed from its full sample history."""

    spec: BenchmarkSpec
    samples: tuple[float, ...]
    mean: float
    mean_ci: ConfidenceInterval
    stdev: float = 0.0
    relative_stdev: float = 0.0

    @property
    def size(self) -> int:
        return len(self.samples)


def compute_result_stats(
    specs: Sequence[BenchmarkSpec],
    sample_sets: Sequence[Sequence[float]],
    *,
    confidence: float = DEFAULT_CONFIDENCE,
    n_resamples: int = DEFAULT_RESAMPLES,
    seed: int | None = None,
) -> tuple[ResultStats, ...]:
    """Build a fresh :class:`ResultStats` for every spec."""
    results: list[ResultStats] = []
    for index, (spec, samples) in enumerate(zip(specs, sample_sets)):
        summary = summary_stats(
            samples,
            confidence=confidence,
            n_resamples=n_resamples,
            seed=None if seed is None else seed + index,
        )
        results.append(
            ResultStats(
                spec=spec,
                samples=tuple(samples),
                mean=summary.mean,
                mean_ci=summary.mean_ci,
                stdev=summary.stdev,
                relative_stdev=summary.relative_stdev,
            )
        )
    return tuple(results)


# ---------------------------------------------------------------------------
# Matrix
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MatrixRow:
    """One spec's stats plus its difference against every spec by index.

    ``differences[j]`` compares this row's spec (A) against spec ``j``
    (B); the self-comparison cell is ``None``.
    """

    index: int
    stats: ResultStats
    differences: tuple[Difference | None, ...]
    resolutions: tuple[Resolution | None, ...]

    @property
    def spec(self) -> BenchmarkSpec:
        return self.stats.spec


@dataclass(frozen=True)
class ComparisonMatrix:
    """The square table of all specs against all specs."""

    rows: tuple[MatrixRow, ...]

    def __len__(self) -> int:
        return len(self.rows)

    def cell(self, row: int, column: int) -> Difference | None:
        return self.rows[row].differences[column]

    def resolution(self, row: int, column: int) -> Resolution | None:
        return self.rows[row].resolutions[column]

    @property
    def all_resolved(self) -> bool:
        """True if every compared cell is resolved."""
        return all(
            r is None or r.resolved for row in self.rows for r in row.resolutions
        )

    def unresolved_pairs(self) -> list[tuple[int, int]]:
        """Unordered pairs ``(i, j)``, ``i < j``, with either cell unresolved."""
        pairs: list[tuple[int, int]] = []
        n = len(self.rows)
        for i in range(n):
            for j in range(i + 1, n):
                forward = self.rows[i].resolutions[j]
                backward = self.rows[j].resolutions[i]
                if any(r is not None and not r.resolved for r in (forward, backward)):
                    pairs.append((i, j))
        return pairs

    def fastest(self) -> ResultStats:
        """The spec with the lowest mean duration."""
        return min((row.stats for row in self.rows), key=lambda s: s.mean)

    def slowest(self) -> ResultStats:
        """The spec with the highest mean duration."""
        return max((row.stats for row in self.rows), key=lambda s: s.mean)


def resolve_all(
    differences: Mapping[tuple[int, int], Difference],
    horizons: Sequence[Horizon],
) -> dict[tuple[int, int], Resolution]:
    """Resolve every cell of a difference map against *horizons*."""
    return {key: resolve_difference(diff, horizons) for key, diff in differences.items()}


def build_matrix(
    stats: Sequence[ResultStats],
    differences: Mapping[tuple[int, int], Difference],
    resolutions: Mapping[tuple[int, int], Resolution] | None = None,
) -> ComparisonMatrix:
    """Assemble the comparison matrix.

    Args:
        stats: One ResultStats per spec, in spec order.
        differences: Map of ``(row, column)`` to Difference.  Pairs not
            present (and the diagonal) become ``None`` cells.
        resolutions: Map of ``(row, column)`` to Resolution, as made by
            :func:`resolve_all`.  Missing cells stay ``None``.
    """
    verdict_map = resolutions or {}
    n = len(stats)
    rows: list[MatrixRow] = []
    for i, row_stats in enumerate(stats):
        cells: list[Difference | None] = []
        verdicts: list[Resolution | None] = []
        for j in range(n):
            diff = None if i == j else differences.get((i, j))
            cells.append(diff)
            verdicts.append(None if diff is None else verdict_map.get((i, j)))
        rows.append(
            MatrixRow(
                index=i,
                stats=row_stats,
                differences=tuple(cells),
                resolutions=tuple(verdicts),
            )
        )
    return ComparisonMatrix(rows=tuple(rows))

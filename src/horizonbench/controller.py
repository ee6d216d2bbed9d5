"""Auto-sampling controller.

Drives the round loop:

1. Optional warm-up rounds (samples discarded)
2. One sample per active spec per round, strictly serial
3. After each full round, fresh statistics and the N×N difference
   matrix from the complete sample history
4. Stop once the minimum sample size is met and every pairwise
   comparison clears every horizon, or once the timeout has elapsed

States::

    IDLE -> SAMPLING -> RESOLVED
                     -> TIMED_OUT

Both terminal states are successful completions; ``TIMED_OUT`` just
means some comparisons are still "unsure".  The timeout is only checked
between rounds, so a slow sample can overrun it by one sample's length.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from horizonbench.horizons import Horizon, parse_horizons
from horizonbench.matrix import (
    ComparisonMatrix,
    ResultStats,
    build_matrix,
    compute_result_stats,
    resolve_all,
)
from horizonbench.samples import SampleFailure, SampleStore
from horizonbench.specs import BenchmarkSpec
from horizonbench.stats import DEFAULT_CONFIDENCE, DEFAULT_RESAMPLES, pairwise_differences

log = logging.getLogger("horizonbench")

MIN_SAMPLE_SIZE = 2
DEFAULT_SAMPLE_SIZE = 50
DEFAULT_TIMEOUT_MINUTES = 3.0

# Performs one navigation/measurement cycle and returns milliseconds.
SampleFn = Callable[[BenchmarkSpec], float]


class SamplingState(enum.Enum):
    IDLE = "idle"
    SAMPLING = "sampling"
    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"


# ---------------------------------------------------------------------------
# Progress callback
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoundProgress:
    """Snapshot passed to the progress callback after every round."""

    round: int  # 1-based, warm-up rounds excluded
    stats: tuple[ResultStats, ...]  # empty until every spec has 2 samples
    elapsed_s: float = 0.0
    unresolved_pairs: int = 0
    timeout_s: float = 0.0  # 0 when unbounded


# Type alias for the progress callback.
ProgressCallback = Any  # Callable[[RoundProgress], None] | None


@dataclass(frozen=True)
class SamplingOutcome:
    """Final result of a sampling run."""

    state: SamplingState
    rounds: int
    elapsed_s: float
    matrix: ComparisonMatrix
    sample_counts: tuple[int, ...] = field(default_factory=tuple)

    @property
    def hit_timeout(self) -> bool:
        return self.state is SamplingState.TIMED_OUT


@dataclass(frozen=True)
class _Evaluation:
    stats: tuple[ResultStats, ...]
    matrix: ComparisonMatrix
    complete: bool  # False while differences are skipped


# ---------------------------------------------------------------------------
# SamplingController
# ---------------------------------------------------------------------------


class SamplingController:
    """Samples specs round by round until the comparisons are resolved.

    Usage::

        controller = SamplingController(specs, sampler, sample_size=20)
        outcome = controller.run()
    """

    def __init__(
        self,
        specs: Sequence[BenchmarkSpec],
        sample_fn: SampleFn,
        *,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        horizons: Sequence[Horizon] | str | None = None,
        timeout: float = DEFAULT_TIMEOUT_MINUTES,
        warmup: int = 0,
        confidence: float = DEFAULT_CONFIDENCE,
        n_resamples: int = DEFAULT_RESAMPLES,
        seed: int | None = None,
        skip_resolved: bool = False,
        store: SampleStore | None = None,
        progress_callback: ProgressCallback = None,
    ) -> None:
        if not specs:
            raise ValueError("At least one benchmark spec is required.")
        if sample_size < MIN_SAMPLE_SIZE:
            raise ValueError(
                f"Sample size must be at least {MIN_SAMPLE_SIZE} (got {sample_size})."
            )
        if timeout < 0:
            raise ValueError(f"Timeout cannot be negative (got {timeout}).")
        if warmup < 0:
            raise ValueError(f"Warmup rounds cannot be negative (got {warmup}).")

        self.specs: tuple[BenchmarkSpec, ...] = tuple(specs)
        self.sample_fn = sample_fn
        self.sample_size = sample_size
        if horizons is None:
            horizons = "0%"
        self.horizons: list[Horizon] = (
            parse_horizons(horizons) if isinstance(horizons, str) else list(horizons)
        )
        self.timeout = timeout
        self.warmup = warmup
        self.confidence = confidence
        self.n_resamples = n_resamples
        self.seed = seed
        self.skip_resolved = skip_resolved
        self.progress: Any = progress_callback or self._default_progress

        if store is None:
            store = SampleStore(self.specs)
        elif store.specs != self.specs:
            raise ValueError("Sample store was built for a different list of specs.")
        self.store = store
        self.state = SamplingState.IDLE
        self.rounds = 0

    @property
    def timeout_s(self) -> float:
        return self.timeout * 60

    def run(self) -> SamplingOutcome:
        """Execute the sampling loop.

        Returns:
            SamplingOutcome with the terminal state and final matrix.

        Raises:
            SampleFailure: If any single sample fails.  Nothing is
                retried; the partial sample set is not reported.
            RuntimeError: If the controller has already run.
        """
        if self.state is not SamplingState.IDLE:
            raise RuntimeError(f"Controller already ran (state: {self.state.value}).")
        self.state = SamplingState.SAMPLING
        start = time.monotonic()

        log.info(
            "Sampling %d benchmark(s): minimum %d samples, horizons %s, %s",
            len(self.specs),
            self.sample_size,
            ", ".join(str(h) for h in self.horizons) or "none",
            f"timeout {self.timeout:g} min" if self.timeout else "no auto-sampling",
        )

        for warm in range(self.warmup):
            log.debug("Warm-up round %d/%d", warm + 1, self.warmup)
            for index in range(len(self.specs)):
                self._take_sample(index, round_no=0)

        evaluation = self._evaluate()
        while True:
            terminal = self._terminal_state(evaluation, time.monotonic() - start)
            if terminal is not None:
                self.state = terminal
                break

            active = self._active_specs(evaluation)
            self.rounds += 1
            for index in active:
                self.store.append(index, self._take_sample(index, round_no=self.rounds))

            evaluation = self._evaluate()
            self.progress(
                RoundProgress(
                    round=self.rounds,
                    stats=evaluation.stats if evaluation else (),
                    elapsed_s=time.monotonic() - start,
                    unresolved_pairs=(
                        len(evaluation.matrix.unresolved_pairs())
                        if evaluation and evaluation.complete
                        else 0
                    ),
                    timeout_s=self.timeout_s,
                )
            )

        elapsed = time.monotonic() - start
        if evaluation is None or not evaluation.complete:
            # Timed out before the minimum sample size: fill in the differences.
            evaluation = self._evaluate(force_complete=True)
        if evaluation is None:
            raise RuntimeError("Sampling stopped before every benchmark had 2 samples.")
        if self.state is SamplingState.TIMED_OUT:
            log.warning(
                "Stopped after %d round(s) with %d unresolved comparison(s)",
                self.rounds,
                len(evaluation.matrix.unresolved_pairs()),
            )
        else:
            log.info("All comparisons resolved after %d round(s)", self.rounds)

        return SamplingOutcome(
            state=self.state,
            rounds=self.rounds,
            elapsed_s=elapsed,
            matrix=evaluation.matrix,
            sample_counts=self.store.counts(),
        )

    def _take_sample(self, index: int, *, round_no: int) -> float:
        """Run one sample; any failure aborts the whole run."""
        spec = self.specs[index]
        try:
            millis = float(self.sample_fn(spec))
        except SampleFailure as exc:
            exc.spec = exc.spec or spec
            exc.round_no = round_no
            log.error("Sample failed for %s in round %d: %s", spec.label, round_no, exc)
            raise
        except Exception as exc:
            log.error("Sample failed for %s in round %d: %s", spec.label, round_no, exc)
            raise SampleFailure(
                f"Sample failed for '{spec.label}' in round {round_no}: {exc}",
                spec=spec,
                round_no=round_no,
            ) from exc
        log.debug("Round %d: %s took %.3fms", round_no, spec.label, millis)
        return millis

    def _minimum_met(self) -> bool:
        return self.store.min_count() >= self.sample_size

    def _evaluate(self, *, force_complete: bool = False) -> _Evaluation | None:
        """Recompute statistics from the current samples.

        Returns None until every spec has enough samples for a
        confidence interval.  Pairwise differences are only computed
        once the minimum sample size is met (or when forced), since
        they cannot end the run before that.
        """
        if self.store.min_count() < MIN_SAMPLE_SIZE:
            return None
        snapshot = self.store.snapshot()
        stats = compute_result_stats(
            self.specs,
            snapshot,
            confidence=self.confidence,
            n_resamples=self.n_resamples,
            seed=self.seed,
        )
        if not (force_complete or self._minimum_met()):
            return _Evaluation(stats=stats, matrix=build_matrix(stats, {}), complete=False)

        differences = pairwise_differences(
            snapshot,
            confidence=self.confidence,
            n_resamples=self.n_resamples,
            seed=self.seed,
        )
        resolutions = resolve_all(differences, self.horizons)
        return _Evaluation(
            stats=stats,
            matrix=build_matrix(stats, differences, resolutions),
            complete=True,
        )

    def _terminal_state(
        self,
        evaluation: _Evaluation | None,
        elapsed_s: float,
    ) -> SamplingState | None:
        """Decide whether to stop before the next round."""
        if evaluation is None:
            return None
        if self._minimum_met():
            if evaluation.matrix.all_resolved:
                return SamplingState.RESOLVED
            if self.timeout == 0:
                return SamplingState.TIMED_OUT
        if self.timeout > 0 and elapsed_s >= self.timeout_s:
            return SamplingState.TIMED_OUT
        return None

    def _active_specs(self, evaluation: _Evaluation | None) -> list[int]:
        """Indices of the specs to sample in the next round."""
        counts = self.store.counts()
        below = [i for i, c in enumerate(counts) if c < self.sample_size]
        if below:
            return below
        if not self.skip_resolved or evaluation is None:
            return list(range(len(self.specs)))
        involved = {i for pair in evaluation.matrix.unresolved_pairs() for i in pair}
        return sorted(involved) or list(range(len(self.specs)))

    @staticmethod
    def _default_progress(progress: RoundProgress) -> None:
        """Default progress callback: log one line per round."""
        line = f"Round {progress.round}"
        if progress.timeout_s:
            remaining = max(0, round(progress.timeout_s - progress.elapsed_s))
            line += f" (timeout in {remaining // 60}m{remaining % 60}s)"
        if progress.stats:
            widest = max(progress.stats, key=lambda s: s.mean_ci.width)
            line += (
                f": {progress.unresolved_pairs} unresolved pair(s), "
                f"widest CI {widest.mean_ci.width:.3f}ms ({widest.spec.label})"
            )
        log.info(line)

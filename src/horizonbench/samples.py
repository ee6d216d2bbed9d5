"""Sample storage and recorded-sample playback.

:class:`SampleStore` is the only mutable structure in a sampling run.
The controller appends one duration per spec per round; everyone else
sees immutable tuples from :meth:`SampleStore.snapshot`.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, Mapping, Sequence

from horizonbench.specs import BenchmarkSpec

log = logging.getLogger("horizonbench")


class SampleFailure(RuntimeError):
    """A single sample could not be taken (browser crash, navigation timeout, ...)."""

    def __init__(self, message: str, *, spec: BenchmarkSpec | None = None, round_no: int = 0) -> None:
        super().__init__(message)
        self.spec = spec
        self.round_no = round_no


# ---------------------------------------------------------------------------
# SampleStore
# ---------------------------------------------------------------------------


class SampleStore:
    """Append-only per-spec sample histories, in round order.

    Usage::

        store = SampleStore(specs)
        store.append(0, 12.5)
        a, b = store.snapshot()
    """

    def __init__(
        self,
        specs: Sequence[BenchmarkSpec],
        initial: Mapping[int, Iterable[float]] | None = None,
    ) -> None:
        self.specs: tuple[BenchmarkSpec, ...] = tuple(specs)
        self._samples: list[list[float]] = [[] for _ in self.specs]
        for index, values in (initial or {}).items():
            for millis in values:
                self.append(index, millis)

    def __len__(self) -> int:
        return len(self.specs)

    def append(self, index: int, millis: float) -> None:
        """Record one duration for the spec at *index*."""
        if not 0 <= index < len(self.specs):
            raise IndexError(f"No spec at index {index} (have {len(self.specs)}).")
        self._samples[index].append(float(millis))

    def count(self, index: int) -> int:
        return len(self._samples[index])

    def counts(self) -> tuple[int, ...]:
        return tuple(len(s) for s in self._samples)

    def min_count(self) -> int:
        """Smallest sample count across specs (0 with no specs)."""
        return min(self.counts(), default=0)

    def snapshot(self) -> tuple[tuple[float, ...], ...]:
        """Immutable copy of every spec's samples, in spec order."""
        return tuple(tuple(s) for s in self._samples)


# ---------------------------------------------------------------------------
# Recorded samples as a run-one-sample capability
# ---------------------------------------------------------------------------


class ReplaySampler:
    """Serve previously recorded samples in order, one per call.

    Stands in for a live browser when re-running the sampling decision
    over saved results.  Running out of recordings for a spec is a
    sample failure, like a browser that stopped answering.
    """

    def __init__(self, specs: Sequence[BenchmarkSpec], recorded: Sequence[Sequence[float]]) -> None:
        if len(specs) != len(recorded):
            raise ValueError(
                f"Got {len(recorded)} recorded sample sets for {len(specs)} benchmarks."
            )
        self._queues: dict[BenchmarkSpec, deque[float]] = {}
        for spec, values in zip(specs, recorded):
            if spec in self._queues:
                raise ValueError(f"Duplicate benchmark spec '{spec.label}'.")
            self._queues[spec] = deque(values)

    def remaining(self, spec: BenchmarkSpec) -> int:
        return len(self._queues[spec])

    def __call__(self, spec: BenchmarkSpec) -> float:
        queue = self._queues.get(spec)
        if queue is None:
            raise SampleFailure(f"No recorded samples for '{spec.label}'.", spec=spec)
        if not queue:
            raise SampleFailure(f"Recorded samples for '{spec.label}' are exhausted.", spec=spec)
        millis = queue.popleft()
        log.debug("Replayed %.3fms for %s", millis, spec.label)
        return millis

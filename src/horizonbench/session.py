"""Correlating asynchronous benchmark results with the runs that asked for them.

In callback mode the page reports its timing to the result server, not
to whoever opened it.  :class:`PendingRuns` is the request/response table
in between: each run gets an id and a ``Future``; the server side
completes the future by id when the page reports back.
"""

from __future__ import annotations

import threading
import uuid
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable

from horizonbench.logging import get_logger
from horizonbench.samples import SampleFailure
from horizonbench.specs import BenchmarkSpec

log = get_logger("session")

DEFAULT_RESULT_TIMEOUT = 10.0  # seconds


class PendingRuns:
    """Thread-safe table of run id -> pending completion handle."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: dict[str, tuple[BenchmarkSpec, Future[float]]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def __contains__(self, run_id: object) -> bool:
        with self._lock:
            return run_id in self._pending

    def open(self, spec: BenchmarkSpec) -> tuple[str, Future[float]]:
        """Register a new run for *spec* and return its id and future."""
        run_id = uuid.uuid4().hex
        future: Future[float] = Future()
        with self._lock:
            self._pending[run_id] = (spec, future)
        log.debug("Opened run %s for %s", run_id, spec.label)
        return run_id, future

    def _pop(self, run_id: str) -> tuple[BenchmarkSpec, Future[float]] | None:
        with self._lock:
            return self._pending.pop(run_id, None)

    def complete(self, run_id: str, millis: float) -> bool:
        """Deliver a result.  Returns False for unknown or finished runs."""
        entry = self._pop(run_id)
        if entry is None:
            log.warning("Result for unknown run id %s ignored", run_id)
            return False
        spec, future = entry
        log.debug("Run %s for %s completed: %.3fms", run_id, spec.label, millis)
        future.set_result(float(millis))
        return True

    def fail(self, run_id: str, exc: BaseException) -> bool:
        """Fail a pending run.  Returns False for unknown or finished runs."""
        entry = self._pop(run_id)
        if entry is None:
            return False
        entry[1].set_exception(exc)
        return True

    def discard(self, run_id: str) -> None:
        """Forget a run whose result is no longer wanted."""
        entry = self._pop(run_id)
        if entry is not None:
            entry[1].cancel()

    def cancel_all(self) -> int:
        """Cancel every pending run.  Returns how many were cancelled."""
        with self._lock:
            entries = list(self._pending.values())
            self._pending.clear()
        for _, future in entries:
            future.cancel()
        return len(entries)


# Opens the page for one run; the run id lets the page's report be matched.
Navigate = Callable[[BenchmarkSpec, str], None]


class CallbackSampler:
    """Run-one-sample capability for pages that report their own timing.

    Opens a run, asks *navigate* to load the page, and waits for the
    result server to complete the run.
    """

    def __init__(
        self,
        navigate: Navigate,
        pending: PendingRuns | None = None,
        *,
        result_timeout: float = DEFAULT_RESULT_TIMEOUT,
    ) -> None:
        self.navigate = navigate
        self.pending = pending if pending is not None else PendingRuns()
        self.result_timeout = result_timeout

    def __call__(self, spec: BenchmarkSpec) -> float:
        run_id, future = self.pending.open(spec)
        try:
            self.navigate(spec, run_id)
            return future.result(timeout=self.result_timeout)
        except FutureTimeoutError as exc:
            raise SampleFailure(
                f"No result from '{spec.label}' within {self.result_timeout:g}s.",
                spec=spec,
            ) from exc
        finally:
            self.pending.discard(run_id)

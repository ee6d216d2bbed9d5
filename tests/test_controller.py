"""Tests for horizonbench.controller: the auto-sampling loop."""

from __future__ import annotations

import itertools
import unittest
from unittest.mock import patch

from sampling_test_helpers import CountingSampler, FakeClock, make_spec, uniform_samples

from horizonbench.controller import RoundProgress, SamplingController, SamplingState
from horizonbench.horizons import FASTER
from horizonbench.samples import SampleFailure, SampleStore


def cycling(values_by_name: dict[str, list[float]]):
    """Capability serving each spec's values in a repeating cycle."""
    cycles = {name: itertools.cycle(values) for name, values in values_by_name.items()}
    calls: list[str] = []

    def sample(spec):
        calls.append(spec.name)
        return next(cycles[spec.name])

    sample.calls = calls  # type: ignore[attr-defined]
    return sample


def never_called(spec):
    raise AssertionError(f"unexpected sample for {spec.name}")


class TestValidation(unittest.TestCase):
    def test_needs_specs(self) -> None:
        with self.assertRaises(ValueError):
            SamplingController([], never_called)

    def test_sample_size_floor(self) -> None:
        with self.assertRaises(ValueError):
            SamplingController([make_spec("a")], never_called, sample_size=1)

    def test_negative_timeout(self) -> None:
        with self.assertRaises(ValueError):
            SamplingController([make_spec("a")], never_called, timeout=-1)

    def test_negative_warmup(self) -> None:
        with self.assertRaises(ValueError):
            SamplingController([make_spec("a")], never_called, warmup=-1)

    def test_bad_horizon(self) -> None:
        with self.assertRaises(ValueError):
            SamplingController([make_spec("a")], never_called, horizons="5")

    def test_store_for_other_specs(self) -> None:
        store = SampleStore([make_spec("x")])
        with self.assertRaises(ValueError):
            SamplingController([make_spec("a")], never_called, store=store)

    def test_default_horizon(self) -> None:
        controller = SamplingController([make_spec("a")], never_called)
        self.assertEqual([str(h) for h in controller.horizons], ["0%"])
        self.assertIs(controller.state, SamplingState.IDLE)


class TestResolving(unittest.TestCase):
    def test_preseeded_store_resolves_without_sampling(self) -> None:
        a, b = make_spec("a"), make_spec("b")
        store = SampleStore(
            [a, b],
            {
                0: uniform_samples(0.9, 1.1, 20, seed=1),
                1: uniform_samples(1.9, 2.1, 20, seed=2),
            },
        )
        controller = SamplingController(
            [a, b], never_called, sample_size=20, n_resamples=2000, seed=0, store=store
        )
        outcome = controller.run()

        self.assertIs(outcome.state, SamplingState.RESOLVED)
        self.assertEqual(outcome.rounds, 0)
        self.assertEqual(outcome.matrix.resolution(0, 1).direction, FASTER)
        self.assertAlmostEqual(outcome.matrix.rows[0].stats.mean, 1.0, delta=0.1)
        self.assertAlmostEqual(outcome.matrix.rows[1].stats.mean, 2.0, delta=0.1)
        self.assertFalse(outcome.hit_timeout)

    def test_samples_until_minimum(self) -> None:
        sampler = CountingSampler(
            {
                "a": uniform_samples(0.9, 1.1, 5, seed=1),
                "b": uniform_samples(1.9, 2.1, 5, seed=2),
            }
        )
        progress: list[RoundProgress] = []
        controller = SamplingController(
            [make_spec("a"), make_spec("b")],
            sampler,
            sample_size=5,
            n_resamples=500,
            seed=0,
            progress_callback=progress.append,
        )
        outcome = controller.run()

        self.assertIs(outcome.state, SamplingState.RESOLVED)
        self.assertEqual(outcome.rounds, 5)
        self.assertEqual(outcome.sample_counts, (5, 5))
        # Serial round-robin: a, b, a, b, ...
        self.assertEqual(sampler.calls, ["a", "b"] * 5)
        self.assertEqual([p.round for p in progress], [1, 2, 3, 4, 5])
        self.assertEqual(progress[0].stats, ())
        self.assertEqual(len(progress[1].stats), 2)

    def test_single_spec(self) -> None:
        sampler = cycling({"only": [1.0, 2.0]})
        controller = SamplingController([make_spec("only")], sampler, sample_size=3)
        outcome = controller.run()
        self.assertIs(outcome.state, SamplingState.RESOLVED)
        self.assertEqual(outcome.rounds, 3)
        self.assertEqual(len(outcome.matrix), 1)
        self.assertIsNone(outcome.matrix.cell(0, 0))

    def test_warmup_samples_discarded(self) -> None:
        sampler = CountingSampler({"a": [100.0, 100.0, 1.0, 1.0], "b": [100.0, 100.0, 2.0, 2.0]})
        controller = SamplingController(
            [make_spec("a"), make_spec("b")],
            sampler,
            sample_size=2,
            warmup=2,
            n_resamples=100,
        )
        outcome = controller.run()
        self.assertEqual(len(sampler.calls), 8)
        self.assertEqual(outcome.sample_counts, (2, 2))
        self.assertEqual(outcome.matrix.rows[0].stats.mean, 1.0)
        self.assertEqual(outcome.matrix.rows[1].stats.mean, 2.0)
        self.assertIs(outcome.state, SamplingState.RESOLVED)

    def test_runs_once(self) -> None:
        controller = SamplingController(
            [make_spec("a")], cycling({"a": [1.0, 2.0]}), sample_size=2
        )
        controller.run()
        with self.assertRaises(RuntimeError):
            controller.run()


class TestTimeout(unittest.TestCase):
    def test_timeout_zero_stops_at_minimum(self) -> None:
        sampler = cycling({"a": [1.0, 2.0], "b": [1.0, 2.0]})
        controller = SamplingController(
            [make_spec("a"), make_spec("b")],
            sampler,
            sample_size=4,
            timeout=0,
            n_resamples=500,
            seed=0,
        )
        outcome = controller.run()
        self.assertIs(outcome.state, SamplingState.TIMED_OUT)
        self.assertTrue(outcome.hit_timeout)
        self.assertEqual(outcome.rounds, 4)
        self.assertEqual(outcome.matrix.unresolved_pairs(), [(0, 1)])
        self.assertEqual(outcome.matrix.resolution(0, 1).label, "unsure")

    def test_timeout_after_minimum(self) -> None:
        sampler = cycling({"a": [1.0, 2.0], "b": [1.0, 2.0]})
        controller = SamplingController(
            [make_spec("a"), make_spec("b")],
            sampler,
            sample_size=2,
            timeout=0.1,  # 6 seconds of fake clock
            n_resamples=200,
            seed=0,
        )
        with patch("horizonbench.controller.time.monotonic", side_effect=FakeClock(1.0)):
            outcome = controller.run()
        self.assertIs(outcome.state, SamplingState.TIMED_OUT)
        self.assertGreater(outcome.rounds, 2)
        self.assertEqual(outcome.sample_counts, (outcome.rounds, outcome.rounds))

    def test_timeout_bounds_minimum_phase(self) -> None:
        sampler = cycling({"a": [1.0, 2.0], "b": [3.0, 4.0]})
        controller = SamplingController(
            [make_spec("a"), make_spec("b")],
            sampler,
            sample_size=50,
            timeout=0.01,  # 0.6 seconds of fake clock
            n_resamples=200,
        )
        with patch("horizonbench.controller.time.monotonic", side_effect=FakeClock(1.0)):
            outcome = controller.run()
        # Statistics need 2 samples per spec before the timeout can stop the run.
        self.assertIs(outcome.state, SamplingState.TIMED_OUT)
        self.assertEqual(outcome.rounds, 2)
        self.assertEqual(outcome.sample_counts, (2, 2))
        self.assertIsNotNone(outcome.matrix.cell(0, 1))

    def test_skip_resolved(self) -> None:
        sampler = cycling({"a": [1.0], "b": [2.0, 3.0], "c": [2.0, 3.0]})
        controller = SamplingController(
            [make_spec("a"), make_spec("b"), make_spec("c")],
            sampler,
            sample_size=3,
            timeout=0.2,
            n_resamples=300,
            seed=0,
            skip_resolved=True,
        )
        with patch("horizonbench.controller.time.monotonic", side_effect=FakeClock(1.0)):
            outcome = controller.run()
        self.assertIs(outcome.state, SamplingState.TIMED_OUT)
        self.assertEqual(sampler.calls.count("a"), 3)
        self.assertGreater(sampler.calls.count("b"), 3)
        self.assertEqual(sampler.calls.count("b"), sampler.calls.count("c"))
        self.assertEqual(outcome.matrix.unresolved_pairs(), [(1, 2)])


class TestFailures(unittest.TestCase):
    def test_exception_wrapped(self) -> None:
        a, b = make_spec("a"), make_spec("b")

        def sampler(spec):
            if spec.name == "b":
                raise ValueError("navigation timed out")
            return 1.0

        controller = SamplingController([a, b], sampler, sample_size=2)
        with self.assertRaises(SampleFailure) as ctx:
            controller.run()
        self.assertEqual(ctx.exception.spec, b)
        self.assertEqual(ctx.exception.round_no, 1)
        self.assertIsInstance(ctx.exception.__cause__, ValueError)

    def test_sample_failure_gets_round(self) -> None:
        calls = []

        def sampler(spec):
            calls.append(spec)
            if len(calls) == 3:
                raise SampleFailure("browser crashed")
            return 1.0

        controller = SamplingController([make_spec("a")], sampler, sample_size=5)
        with self.assertRaises(SampleFailure) as ctx:
            controller.run()
        self.assertEqual(ctx.exception.round_no, 3)
        self.assertEqual(ctx.exception.spec, make_spec("a"))

    def test_default_progress_logs(self) -> None:
        controller = SamplingController(
            [make_spec("a"), make_spec("b")],
            cycling({"a": [1.0, 1.1], "b": [2.0, 2.1]}),
            sample_size=2,
            n_resamples=100,
        )
        with self.assertLogs("horizonbench", level="INFO") as logs:
            controller.run()
        self.assertTrue(any("Round 2" in line for line in logs.output))


if __name__ == "__main__":
    unittest.main()

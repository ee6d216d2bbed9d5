"""Tests for horizonbench.stats: bootstrap intervals and pairwise differences."""

from __future__ import annotations

import math
import unittest

from sampling_test_helpers import uniform_samples

from horizonbench.stats import (
    ConfidenceInterval,
    InsufficientSamples,
    _percentile,
    confidence_interval,
    difference,
    mean,
    pairwise_differences,
    summary_stats,
    variance,
)


# ---------------------------------------------------------------------------
# Descriptive statistics
# ---------------------------------------------------------------------------


class TestDescriptive(unittest.TestCase):
    def test_mean(self) -> None:
        self.assertAlmostEqual(mean([1.0, 2.0, 3.0, 4.0]), 2.5)

    def test_mean_empty_raises(self) -> None:
        with self.assertRaises(InsufficientSamples):
            mean([])

    def test_variance_uses_bessel_correction(self) -> None:
        # Squared deviations from 5 sum to 32; 32 / 7.
        values = [2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]
        self.assertAlmostEqual(variance(values), 32 / 7)

    def test_variance_single_value_raises(self) -> None:
        with self.assertRaises(InsufficientSamples) as ctx:
            variance([1.0])
        self.assertEqual(ctx.exception.size, 1)

    def test_insufficient_samples_is_value_error(self) -> None:
        self.assertTrue(issubclass(InsufficientSamples, ValueError))


class TestPercentile(unittest.TestCase):
    """_percentile() interpolates linearly at rank (n - 1) * p."""

    def test_median_of_odd(self) -> None:
        self.assertAlmostEqual(_percentile([1.0, 2.0, 3.0], 0.5), 2.0)

    def test_interpolates(self) -> None:
        # Rank 0.25 * 3 = 0.75 between 10 and 20.
        self.assertAlmostEqual(_percentile([10.0, 20.0, 30.0, 40.0], 0.25), 17.5)

    def test_extremes(self) -> None:
        values = [1.0, 5.0, 9.0]
        self.assertEqual(_percentile(values, 0.0), 1.0)
        self.assertEqual(_percentile(values, 1.0), 9.0)

    def test_single_value(self) -> None:
        self.assertEqual(_percentile([7.0], 0.3), 7.0)

    def test_empty_is_nan(self) -> None:
        self.assertTrue(math.isnan(_percentile([], 0.5)))

    def test_infinite_neighbours(self) -> None:
        inf = float("inf")
        self.assertEqual(_percentile([1.0, inf, inf], 0.75), inf)


# ---------------------------------------------------------------------------
# Confidence intervals
# ---------------------------------------------------------------------------


class TestConfidenceInterval(unittest.TestCase):
    def test_low_not_above_high(self) -> None:
        for seed in range(5):
            values = uniform_samples(0.0, 10.0, 15, seed=seed)
            ci = confidence_interval(values, n_resamples=500, seed=seed)
            self.assertLessEqual(ci.low, ci.high)

    def test_contains_sample_mean(self) -> None:
        values = uniform_samples(0.9, 1.1, 50, seed=3)
        ci = confidence_interval(values, n_resamples=2000, seed=1)
        self.assertTrue(ci.contains(mean(values)))
        self.assertGreater(ci.low, 0.9)
        self.assertLess(ci.high, 1.1)

    def test_identical_values_zero_width(self) -> None:
        ci = confidence_interval([5.0, 5.0, 5.0], n_resamples=100)
        self.assertEqual(ci, ConfidenceInterval(low=5.0, high=5.0))
        self.assertEqual(ci.width, 0.0)

    def test_fewer_than_two_samples_raises(self) -> None:
        with self.assertRaises(InsufficientSamples):
            confidence_interval([1.0])
        with self.assertRaises(InsufficientSamples):
            confidence_interval([])

    def test_seed_is_reproducible(self) -> None:
        values = uniform_samples(1.0, 2.0, 20)
        a = confidence_interval(values, n_resamples=300, seed=42)
        b = confidence_interval(values, n_resamples=300, seed=42)
        self.assertEqual(a, b)

    def test_single_resample_zero_width(self) -> None:
        ci = confidence_interval([1.0, 2.0, 3.0], n_resamples=1, seed=0)
        self.assertEqual(ci.low, ci.high)

    def test_more_samples_narrow_interval(self) -> None:
        few = confidence_interval(uniform_samples(0, 10, 10, seed=1), n_resamples=1000, seed=1)
        many = confidence_interval(uniform_samples(0, 10, 400, seed=1), n_resamples=1000, seed=1)
        self.assertLess(many.width, few.width)

    def test_invalid_confidence(self) -> None:
        with self.assertRaises(ValueError):
            confidence_interval([1.0, 2.0], confidence=1.0)
        with self.assertRaises(ValueError):
            confidence_interval([1.0, 2.0], confidence=0.0)

    def test_invalid_resamples(self) -> None:
        with self.assertRaises(ValueError):
            confidence_interval([1.0, 2.0], n_resamples=0)

    def test_to_dict_scale(self) -> None:
        ci = ConfidenceInterval(low=-0.5, high=0.25)
        self.assertEqual(ci.to_dict(scale=100.0), {"low": -50.0, "high": 25.0})
        self.assertAlmostEqual(ci.midpoint, -0.125)


# ---------------------------------------------------------------------------
# Differences
# ---------------------------------------------------------------------------


class TestDifference(unittest.TestCase):
    def test_clearly_faster(self) -> None:
        a = uniform_samples(0.9, 1.1, 20, seed=1)
        b = uniform_samples(1.9, 2.1, 20, seed=2)
        diff = difference(a, b, n_resamples=1000, seed=0)
        self.assertLess(diff.absolute.high, 0)
        self.assertGreater(diff.absolute.low, -1.2)
        self.assertLess(diff.absolute.high, -0.8)
        # Roughly -50%.
        self.assertGreater(diff.relative.low, -0.6)
        self.assertLess(diff.relative.high, -0.4)

    def test_identical_sets_straddle_zero(self) -> None:
        for sample_seed in range(5):
            values = uniform_samples(0.9, 1.1, 30, seed=sample_seed)
            for seed in range(4):
                with self.subTest(sample_seed=sample_seed, seed=seed):
                    diff = difference(values, list(values), n_resamples=1000, seed=seed)
                    self.assertLessEqual(diff.absolute.low, 0)
                    self.assertGreaterEqual(diff.absolute.high, 0)
                    self.assertLessEqual(diff.relative.low, 0)
                    self.assertGreaterEqual(diff.relative.high, 0)

    def test_constant_equal_sets(self) -> None:
        diff = difference([1.0, 1.0], [1.0, 1.0], n_resamples=50)
        self.assertEqual(diff.absolute, ConfidenceInterval(0.0, 0.0))
        self.assertEqual(diff.relative, ConfidenceInterval(0.0, 0.0))

    def test_zero_baseline(self) -> None:
        diff = difference([1.0, 1.0], [0.0, 0.0], n_resamples=20)
        self.assertEqual(diff.relative.low, float("inf"))
        diff = difference([0.0, 0.0], [0.0, 0.0], n_resamples=20)
        self.assertEqual(diff.relative, ConfidenceInterval(0.0, 0.0))

    def test_insufficient(self) -> None:
        with self.assertRaises(InsufficientSamples):
            difference([1.0], [1.0, 2.0])

    def test_seed_is_reproducible(self) -> None:
        a = uniform_samples(1, 2, 10, seed=1)
        b = uniform_samples(1, 2, 10, seed=2)
        self.assertEqual(
            difference(a, b, n_resamples=200, seed=9),
            difference(a, b, n_resamples=200, seed=9),
        )


class TestSummaryStats(unittest.TestCase):
    def test_fields(self) -> None:
        summary = summary_stats([1.0, 2.0, 3.0], n_resamples=200, seed=0)
        self.assertEqual(summary.size, 3)
        self.assertAlmostEqual(summary.mean, 2.0)
        self.assertAlmostEqual(summary.variance, 1.0)
        self.assertAlmostEqual(summary.stdev, 1.0)
        self.assertAlmostEqual(summary.relative_stdev, 0.5)
        self.assertLessEqual(summary.mean_ci.low, summary.mean_ci.high)

    def test_zero_mean(self) -> None:
        self.assertEqual(summary_stats([0.0, 0.0], n_resamples=10).relative_stdev, 0.0)
        self.assertEqual(
            summary_stats([-1.0, 1.0], n_resamples=10).relative_stdev, float("inf")
        )


class TestPairwiseDifferences(unittest.TestCase):
    def test_full_matrix_without_diagonal(self) -> None:
        sets = [uniform_samples(1, 2, 5, seed=s) for s in range(3)]
        result = pairwise_differences(sets, n_resamples=50, seed=1)
        self.assertEqual(
            set(result),
            {(0, 1), (0, 2), (1, 0), (1, 2), (2, 0), (2, 1)},
        )

    def test_orientation(self) -> None:
        fast = uniform_samples(0.9, 1.1, 20, seed=1)
        slow = uniform_samples(1.9, 2.1, 20, seed=2)
        result = pairwise_differences([fast, slow], n_resamples=500, seed=3)
        self.assertLess(result[(0, 1)].absolute.high, 0)
        self.assertGreater(result[(1, 0)].absolute.low, 0)

    def test_seed_is_reproducible(self) -> None:
        sets = [uniform_samples(1, 2, 6, seed=s) for s in range(2)]
        self.assertEqual(
            pairwise_differences(sets, n_resamples=100, seed=4),
            pairwise_differences(sets, n_resamples=100, seed=4),
        )

    def test_single_set_is_empty(self) -> None:
        self.assertEqual(pairwise_differences([[1.0, 2.0]], n_resamples=10), {})


if __name__ == "__main__":
    unittest.main()

"""horizonbench: decide how many benchmark samples are enough.

Runs browser-hosted micro-benchmarks round by round, estimates bootstrap
confidence intervals for their mean runtimes, and stops once every
pairwise comparison clears the configured horizons.
"""

__version__ = "0.1.0"

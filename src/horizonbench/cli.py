"""Command-line interface for horizonbench.

Subcommands:
    horizonbench run       Sample live pages through WebDriver
    horizonbench replay    Re-run the sampling decision over recorded samples
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

import click

from horizonbench import __version__
from horizonbench.controller import (
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_TIMEOUT_MINUTES,
    MIN_SAMPLE_SIZE,
    SamplingController,
    SamplingOutcome,
)
from horizonbench.logging import setup_logging
from horizonbench.matrix import ComparisonMatrix
from horizonbench.samples import ReplaySampler, SampleFailure, SampleStore
from horizonbench.stats import DEFAULT_RESAMPLES

log = logging.getLogger("horizonbench")


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """horizonbench: compare page-load benchmarks until the difference is clear."""


# ---------------------------------------------------------------------------
# Shared options and output
# ---------------------------------------------------------------------------


def _sampling_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Statistics and logging options common to ``run`` and ``replay``."""
    options = [
        click.option(
            "--sample-size",
            type=int,
            default=None,
            help=(
                f"Minimum samples per benchmark (default: {DEFAULT_SAMPLE_SIZE}; "
                f"replay: the shortest recording; min: {MIN_SAMPLE_SIZE})."
            ),
        ),
        click.option(
            "--timeout",
            type=float,
            default=None,
            help=(
                f"Minutes to keep sampling unresolved comparisons "
                f"(default: {DEFAULT_TIMEOUT_MINUTES:g}; 0 = stop at the minimum)."
            ),
        ),
        click.option(
            "--horizon",
            "horizons",
            type=str,
            default=None,
            help="Comma-separated horizons, e.g. '0ms,10%' (default: 0%).",
        ),
        click.option("--seed", type=int, default=None, help="Seed for bootstrap resampling."),
        click.option(
            "--resamples",
            "n_resamples",
            type=int,
            default=None,
            help=f"Bootstrap resamples per interval (default: {DEFAULT_RESAMPLES}).",
        ),
        click.option(
            "--json-file",
            type=click.Path(path_type=Path),
            default=None,
            help="Write the final results to this JSON file.",
        ),
        click.option("-v", "--verbose", is_flag=True, help="Show detailed output."),
        click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors."),
        click.option(
            "--log-file",
            type=click.Path(path_type=Path),
            default=None,
            help="Also write a DEBUG log to this file.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def format_pair_lines(matrix: ComparisonMatrix) -> list[str]:
    """One line per ordered pair: ``A vs B: faster -52.1% .. -47.9% (...)``."""
    lines: list[str] = []
    for row in matrix.rows:
        for j, diff in enumerate(row.differences):
            if diff is None:
                continue
            verdict = row.resolutions[j]
            label = verdict.label if verdict else "unsure"
            other = matrix.rows[j].spec.label
            pct = diff.relative.to_dict(scale=100.0)
            lines.append(
                f"{row.spec.label} vs {other}: {label} "
                f"{pct['low']:+.1f}% .. {pct['high']:+.1f}% "
                f"({diff.absolute.low:+.2f}ms .. {diff.absolute.high:+.2f}ms)"
            )
    return lines


def _report(outcome: SamplingOutcome, json_file: Path | None) -> None:
    click.echo()
    for line in format_pair_lines(outcome.matrix):
        click.echo(line)
    click.echo()
    click.echo(f"State: {outcome.state.value} after {outcome.rounds} round(s)")
    if outcome.hit_timeout:
        click.echo(
            "Some comparisons are still unsure. Consider a longer --timeout "
            "or a different --horizon."
        )
    if json_file is not None:
        from horizonbench.results import save_json

        save_json(json_file, outcome)
        click.echo(f"Results saved to: {json_file}")


def _run_controller(controller: SamplingController) -> SamplingOutcome:
    try:
        return controller.run()
    except (ValueError, SampleFailure) as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        click.echo("\nSampling interrupted.", err=True)
        raise SystemExit(130)  # noqa: B904


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@main.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="YAML file listing the benchmarks to compare.",
)
@click.option("--warmup", type=int, default=None, help="Throw-away rounds (default: 1).")
@click.option("--webdriver-url", type=str, default=None, help="WebDriver endpoint URL.")
@click.option(
    "--server-url",
    type=str,
    default=None,
    help="Base URL that local benchmark paths are served from.",
)
@_sampling_options
def run(
    config_path: Path,
    warmup: int | None,
    webdriver_url: str | None,
    server_url: str | None,
    sample_size: int | None,
    timeout: float | None,
    horizons: str | None,
    seed: int | None,
    n_resamples: int | None,
    json_file: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Sample benchmarks in a browser until every comparison is resolved.

    \b
    Examples:
        horizonbench run --config bench.yaml --horizon 0%,10%
        horizonbench run --config bench.yaml --timeout 0 --json-file out.json
    """
    from horizonbench.config import config_from_dict, load_config, validate_config
    from horizonbench.webdriver import WebDriverSampler

    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)

    cli_overrides: dict[str, Any] = {
        "sample_size": sample_size,
        "timeout": timeout,
        "horizons": horizons,
        "warmup": warmup,
        "seed": seed,
        "n_resamples": n_resamples,
        "webdriver_url": webdriver_url,
        "server_url": server_url,
        "json_file": json_file,
    }
    try:
        config = config_from_dict(load_config(config_path), cli_overrides=cli_overrides)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    problems = validate_config(config)
    for problem in problems:
        if problem.severity == "warning":
            log.warning("%s: %s", problem.field, problem.message)
    errors = [p for p in problems if p.severity == "error"]
    if errors:
        for problem in errors:
            click.echo(f"Error: {problem.field}: {problem.message}", err=True)
        raise SystemExit(1)

    with WebDriverSampler(
        config.webdriver_url,
        server_url=config.server_url,
        attempts=config.attempts,
    ) as sampler:
        controller = SamplingController(
            config.benchmarks,
            sampler,
            sample_size=config.sample_size,
            horizons=config.horizon_string,
            timeout=config.timeout,
            warmup=config.warmup,
            confidence=config.confidence,
            n_resamples=config.n_resamples,
            seed=config.seed,
            skip_resolved=config.skip_resolved,
        )
        outcome = _run_controller(controller)

    _report(outcome, config.json_file)


# ---------------------------------------------------------------------------
# replay
# ---------------------------------------------------------------------------


@main.command()
@click.argument("samples_file", type=click.Path(exists=True, path_type=Path))
@_sampling_options
def replay(
    samples_file: Path,
    sample_size: int | None,
    timeout: float | None,
    horizons: str | None,
    seed: int | None,
    n_resamples: int | None,
    json_file: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Replay recorded samples through the sampling decision.

    The first --sample-size samples of each benchmark are taken as the
    initial batch; later ones are served round by round, as if a browser
    were producing them.  Without --sample-size the initial batch is as
    long as the shortest recording.
    """
    from horizonbench.results import load_recorded_samples

    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)

    try:
        specs, recorded = load_recorded_samples(samples_file)
        if sample_size is not None:
            size = sample_size
        else:
            size = max(MIN_SAMPLE_SIZE, min((len(v) for v in recorded), default=0))
        store = SampleStore(specs, {i: values[:size] for i, values in enumerate(recorded)})
        sampler = ReplaySampler(specs, [values[size:] for values in recorded])
        controller = SamplingController(
            specs,
            sampler,
            sample_size=size,
            horizons=horizons,
            timeout=timeout if timeout is not None else DEFAULT_TIMEOUT_MINUTES,
            n_resamples=n_resamples if n_resamples is not None else DEFAULT_RESAMPLES,
            seed=seed,
            store=store,
        )
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    outcome = _run_controller(controller)
    _report(outcome, json_file)

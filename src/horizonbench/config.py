"""Sampling configuration and YAML config loading.

Handles:
- Loading a run configuration from a YAML file.
- Merging CLI options with config-file values.
- Validating the final configuration before any browser is opened.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from horizonbench.controller import DEFAULT_SAMPLE_SIZE, DEFAULT_TIMEOUT_MINUTES, MIN_SAMPLE_SIZE
from horizonbench.horizons import parse_horizons
from horizonbench.specs import BenchmarkSpec, LocalUrl, spec_from_dict
from horizonbench.stats import DEFAULT_CONFIDENCE, DEFAULT_RESAMPLES
from horizonbench.webdriver import DEFAULT_WEBDRIVER_URL

log = logging.getLogger("horizonbench")

# Pair counts grow quadratically; past this the matrix gets slow to resolve.
MANY_BENCHMARKS = 10


# ---------------------------------------------------------------------------
# SamplerConfig
# ---------------------------------------------------------------------------


@dataclass
class SamplerConfig:
    """Resolved configuration for a sampling run."""

    # Stopping rule
    sample_size: int = DEFAULT_SAMPLE_SIZE  # Minimum samples per benchmark
    timeout: float = DEFAULT_TIMEOUT_MINUTES  # Minutes; 0 disables auto-sampling
    horizons: tuple[str, ...] = ("0%",)
    warmup: int = 1  # Throw-away rounds before measuring

    # Statistics
    confidence: float = DEFAULT_CONFIDENCE
    n_resamples: int = DEFAULT_RESAMPLES
    seed: int | None = None
    skip_resolved: bool = False

    # Browser driving
    webdriver_url: str = DEFAULT_WEBDRIVER_URL
    server_url: str | None = None
    attempts: int = 1

    # Output
    json_file: Path | None = None

    benchmarks: list[BenchmarkSpec] = field(default_factory=list)

    @property
    def horizon_string(self) -> str:
        return ",".join(self.horizons)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def validate_config(config: SamplerConfig) -> list[ValidationError]:
    """Validate a sampling configuration.

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []

    if not config.benchmarks:
        errors.append(
            ValidationError(
                field="benchmarks",
                message="No benchmarks defined. List at least one under 'benchmarks'.",
            )
        )
    elif len(config.benchmarks) > MANY_BENCHMARKS:
        errors.append(
            ValidationError(
                field="benchmarks",
                message=(
                    f"{len(config.benchmarks)} benchmarks means "
                    f"{len(config.benchmarks) * (len(config.benchmarks) - 1) // 2} "
                    f"pairwise comparisons; resolving all of them may take a while."
                ),
                severity="warning",
            )
        )

    local_names: list[str] = []
    for spec in config.benchmarks:
        if spec.measurement.mode == "callback":
            errors.append(
                ValidationError(
                    field=f"benchmarks.{spec.name}.measurement",
                    message=(
                        f"Benchmark '{spec.label}' uses callback measurement, which "
                        f"needs a result server. Use 'measurement: expression' or "
                        f"'measurement: performance'."
                    ),
                )
            )
        if isinstance(spec.url, LocalUrl):
            local_names.append(spec.name)

    if local_names and not config.server_url:
        errors.append(
            ValidationError(
                field="server_url",
                message=(
                    f"Local benchmark(s) {', '.join(local_names)} need a server_url "
                    f"to be opened from."
                ),
            )
        )

    if config.sample_size < MIN_SAMPLE_SIZE:
        errors.append(
            ValidationError(
                field="sample_size",
                message=(
                    f"Need at least {MIN_SAMPLE_SIZE} samples for a confidence "
                    f"interval (got {config.sample_size})."
                ),
            )
        )

    if config.timeout < 0:
        errors.append(
            ValidationError(
                field="timeout",
                message=f"Timeout cannot be negative (got {config.timeout}).",
            )
        )

    if config.warmup < 0:
        errors.append(
            ValidationError(
                field="warmup",
                message=f"Warmup rounds cannot be negative (got {config.warmup}).",
            )
        )

    if not 0 < config.confidence < 1:
        errors.append(
            ValidationError(
                field="confidence",
                message=f"Confidence must be between 0 and 1 (got {config.confidence}).",
            )
        )

    if config.n_resamples < 1:
        errors.append(
            ValidationError(
                field="n_resamples",
                message=f"Need at least 1 bootstrap resample (got {config.n_resamples}).",
            )
        )

    if config.attempts < 1:
        errors.append(
            ValidationError(
                field="attempts",
                message=f"Attempts must be at least 1 (got {config.attempts}).",
            )
        )

    try:
        parse_horizons(config.horizons)
    except ValueError as exc:
        errors.append(ValidationError(field="horizons", message=str(exc)))

    return errors


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


def load_config(config_path: Path) -> dict[str, Any]:
    """Load a sampling configuration from a YAML file.

    Config format::

        sample_size: 50
        timeout: 3
        horizons: ["0%", "10%"]
        webdriver_url: http://localhost:9515
        server_url: http://localhost:8080

        benchmarks:
          - name: before
            url: /before/index.html
            browser: chrome-headless
            measurement: expression
          - name: after
            url: /after/index.html
            browser: chrome-headless
            measurement: expression

    Returns:
        The parsed YAML as a dict.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    data = yaml.safe_load(config_path.read_text())

    if not isinstance(data, dict):
        raise ValueError(f"Config must be a YAML mapping, got {type(data).__name__}")
    if not isinstance(data.get("benchmarks", []), list):
        raise ValueError("Config 'benchmarks' must be a list of benchmark definitions")

    return data


def _pick(cli: dict[str, Any], data: dict[str, Any], key: str, default: Any) -> Any:
    """CLI value if given, else config-file value, else *default*."""
    if cli.get(key) is not None:
        return cli[key]
    if data.get(key) is not None:
        return data[key]
    return default


def config_from_dict(
    data: dict[str, Any],
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> SamplerConfig:
    """Build a SamplerConfig from parsed config data.

    Args:
        data: Parsed YAML config dict.
        cli_overrides: Dict of CLI option values that override config
            values.  Keys match SamplerConfig field names; ``None``
            means "not given".

    Returns:
        SamplerConfig with benchmarks and settings populated.
    """
    cli = cli_overrides or {}

    horizons = _pick(cli, data, "horizons", ("0%",))
    if isinstance(horizons, str):
        horizons = [h.strip() for h in horizons.split(",") if h.strip()]

    json_file = _pick(cli, data, "json_file", None)

    config = SamplerConfig(
        sample_size=int(_pick(cli, data, "sample_size", DEFAULT_SAMPLE_SIZE)),
        timeout=float(_pick(cli, data, "timeout", DEFAULT_TIMEOUT_MINUTES)),
        horizons=tuple(str(h) for h in horizons),
        warmup=int(_pick(cli, data, "warmup", 1)),
        confidence=float(_pick(cli, data, "confidence", DEFAULT_CONFIDENCE)),
        n_resamples=int(_pick(cli, data, "n_resamples", DEFAULT_RESAMPLES)),
        seed=_pick(cli, data, "seed", None),
        skip_resolved=bool(_pick(cli, data, "skip_resolved", False)),
        webdriver_url=_pick(cli, data, "webdriver_url", DEFAULT_WEBDRIVER_URL),
        server_url=_pick(cli, data, "server_url", None),
        attempts=int(_pick(cli, data, "attempts", 1)),
        json_file=Path(json_file) if json_file else None,
    )

    for i, bench_data in enumerate(data.get("benchmarks") or []):
        if isinstance(bench_data, str):
            bench_data = {"name": bench_data, "url": bench_data}
        if not isinstance(bench_data, dict):
            raise ValueError(
                f"Benchmark #{i + 1} must be a mapping, got {type(bench_data).__name__}"
            )
        config.benchmarks.append(spec_from_dict(bench_data))

    return config

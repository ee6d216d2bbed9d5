"""Result file output and recorded-sample loading.

File layout (``--json-file``)::

    {
      "state": "resolved",
      "rounds": 12,
      "benchmarks": [
        {
          "name": "...",
          "spec": {...},
          "samples": [1.02, 0.98, ...],
          "mean": {"low": 0.97, "high": 1.03},
          "differences": [
            null,
            {"absolute": {"low": -1.05, "high": -0.95},
             "percentChange": {"low": -52.1, "high": -47.9},
             "resolved": true, "direction": "faster"}
          ]
        }
      ]
    }

The same file, or a hand-written YAML/JSON mapping with just ``name``
and ``samples`` per benchmark, can be loaded back for replay.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from horizonbench.controller import SamplingOutcome
from horizonbench.matrix import ComparisonMatrix
from horizonbench.specs import BenchmarkSpec, spec_from_dict

log = logging.getLogger("horizonbench")


def matrix_to_json(matrix: ComparisonMatrix) -> dict[str, Any]:
    """Convert the comparison matrix to a JSON-compatible dict."""
    benchmarks: list[dict[str, Any]] = []
    for row in matrix.rows:
        differences: list[dict[str, Any] | None] = []
        for diff, verdict in zip(row.differences, row.resolutions):
            if diff is None:
                differences.append(None)
                continue
            differences.append(
                {
                    "absolute": diff.absolute.to_dict(),
                    "percentChange": diff.relative.to_dict(scale=100.0),
                    "resolved": bool(verdict and verdict.resolved),
                    "direction": verdict.direction if verdict else None,
                }
            )
        benchmarks.append(
            {
                "name": row.spec.label,
                "spec": row.spec.to_dict(),
                "samples": list(row.stats.samples),
                "mean": row.stats.mean_ci.to_dict(),
                "differences": differences,
            }
        )
    return {"benchmarks": benchmarks}


def outcome_to_json(outcome: SamplingOutcome) -> dict[str, Any]:
    data: dict[str, Any] = {
        "state": outcome.state.value,
        "rounds": outcome.rounds,
        "elapsed_s": round(outcome.elapsed_s, 3),
    }
    data.update(matrix_to_json(outcome.matrix))
    return data


def save_json(path: Path, outcome: SamplingOutcome) -> None:
    """Write the outcome of a sampling run to *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(outcome_to_json(outcome), indent=2) + "\n")
    log.info("Wrote %s", path)


def load_recorded_samples(path: Path) -> tuple[list[BenchmarkSpec], list[list[float]]]:
    """Load recorded samples for replay.

    Accepts a file written by :func:`save_json` or a YAML/JSON mapping::

        benchmarks:
          - name: before
            samples: [1.02, 0.98, 1.05]
          - name: after
            url: /after/index.html
            samples: [0.51, 0.49, 0.50]

    Returns:
        ``(specs, samples)`` in file order.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file does not have the shape above.
    """
    if not path.exists():
        raise FileNotFoundError(f"Samples file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)

    if not isinstance(data, dict) or not isinstance(data.get("benchmarks"), list):
        raise ValueError(f"{path}: expected a mapping with a 'benchmarks' list.")

    specs: list[BenchmarkSpec] = []
    samples: list[list[float]] = []
    for i, entry in enumerate(data["benchmarks"]):
        if not isinstance(entry, dict):
            raise ValueError(f"{path}: benchmark #{i + 1} must be a mapping.")
        values = entry.get("samples")
        if not isinstance(values, list):
            raise ValueError(f"{path}: benchmark #{i + 1} has no 'samples' list.")
        spec_data = entry.get("spec") or entry
        specs.append(spec_from_dict(spec_data))
        samples.append([float(v) for v in values])

    log.debug("Loaded %d recorded benchmark(s) from %s", len(specs), path)
    return specs, samples

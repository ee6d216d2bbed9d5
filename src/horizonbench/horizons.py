"""Horizon parsing and resolution.

A horizon is a threshold of practical significance: an absolute number
of milliseconds (``2ms``) or a percentage of the baseline mean (``5%``).
A pairwise difference is *resolved* once its confidence interval lies
clearly on one side of every configured horizon.

Given the horizons 0 and 1, intervals resolve like this::

       <--->                   resolved (faster)
           <--->               unresolved
               <--->           unresolved against 1
                   <--->       unresolved
                       <--->   resolved (slower)
           <----------->       unresolved

     |-------|-------|-------| ms slowdown
    -1       0       1       2

Unsigned horizons are symmetric: ``5%`` resolves only above +5% or
below -5%.  Signed horizons (``+5%``, ``-5%``) check the single
threshold given.  Bounds are exclusive: an interval touching a horizon
is still unresolved.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from horizonbench.stats import ConfidenceInterval, Difference

_HORIZON_RE = re.compile(r"^[-+]?(\d*\.)?\d+(ms|%)$")

FASTER = "faster"
SLOWER = "slower"


@dataclass(frozen=True)
class Horizon:
    """One horizon threshold.

    ``value`` is in milliseconds for absolute horizons and a fraction
    (0.05 for 5%) for relative ones.
    """

    value: float
    kind: str  # "absolute" or "relative"
    signed: bool = False

    @property
    def is_relative(self) -> bool:
        return self.kind == "relative"

    def __str__(self) -> str:
        if self.is_relative:
            number = f"{self.value * 100:g}"
            unit = "%"
        else:
            number = f"{self.value:g}"
            unit = "ms"
        if self.signed and self.value > 0:
            number = "+" + number
        return number + unit


@dataclass(frozen=True)
class Resolution:
    """Whether a difference is resolved, and which way."""

    resolved: bool
    direction: str | None = None  # FASTER or SLOWER when resolved

    @property
    def label(self) -> str:
        """``faster``, ``slower``, or ``unsure``."""
        return self.direction if self.resolved and self.direction else "unsure"


UNRESOLVED = Resolution(resolved=False)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_horizons(tokens: str | Iterable[str]) -> list[Horizon]:
    """Parse horizon tokens such as ``"0ms,+5%,-5%"``.

    Accepts a comma-delimited string or an iterable of tokens (each of
    which may itself contain commas).  An explicit ``+``/``-`` makes the
    horizon signed; zero is always a single unsigned horizon.

    Returns:
        Deduplicated horizons, absolute ones first, each group sorted by
        value.

    Raises:
        ValueError: If a token is not ``<number>ms`` or ``<number>%``.
    """
    if isinstance(tokens, str):
        tokens = [tokens]

    seen: set[Horizon] = set()
    for chunk in tokens:
        for raw in chunk.split(","):
            token = raw.strip()
            if not token:
                continue
            if not _HORIZON_RE.match(token):
                raise ValueError(
                    f"Invalid horizon '{token}'. Expected e.g. '0ms', '+1ms', '5%' or '-5%'."
                )
            if token.endswith("%"):
                value = float(token[:-1]) / 100
                kind = "relative"
            else:
                value = float(token[:-2])
                kind = "absolute"
            signed = token[0] in "+-" and value != 0
            seen.add(Horizon(value=abs(value) if not signed else value, kind=kind, signed=signed))

    return sorted(seen, key=lambda h: (h.is_relative, h.value, h.signed))


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def resolve_horizon(interval: ConfidenceInterval, horizon: Horizon) -> Resolution:
    """Resolve one interval against one horizon.

    The interval must be in the horizon's units (milliseconds for
    absolute horizons, a fraction for relative ones).
    """
    if horizon.signed:
        upper = lower = horizon.value
    else:
        upper = abs(horizon.value)
        lower = -upper
    if interval.low > upper:
        return Resolution(resolved=True, direction=SLOWER)
    if interval.high < lower:
        return Resolution(resolved=True, direction=FASTER)
    return UNRESOLVED


def _tightness(horizon: Horizon) -> tuple[bool, float]:
    return (horizon.is_relative, abs(horizon.value))


def resolve_difference(difference: Difference, horizons: Sequence[Horizon]) -> Resolution:
    """Resolve a difference against every horizon at once.

    The difference is resolved only when it clears all horizons; the
    reported direction is the verdict against the tightest horizon
    (absolute before relative, then smallest magnitude).  With no
    horizons at all, the sign of the absolute midpoint decides.
    """
    if not horizons:
        direction = SLOWER if difference.absolute.midpoint > 0 else FASTER
        return Resolution(resolved=True, direction=direction)

    governing: Resolution | None = None
    for horizon in sorted(horizons, key=_tightness):
        interval = difference.relative if horizon.is_relative else difference.absolute
        verdict = resolve_horizon(interval, horizon)
        if not verdict.resolved:
            return UNRESOLVED
        if governing is None:
            governing = verdict
    return governing or UNRESOLVED


def all_resolved(
    differences: dict[tuple[int, int], Difference],
    horizons: Sequence[Horizon],
) -> bool:
    """True if every difference in the map is resolved."""
    return all(resolve_difference(d, horizons).resolved for d in differences.values())

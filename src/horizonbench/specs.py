"""Benchmark specification data model.

A :class:`BenchmarkSpec` is the identity of one thing being measured:
where it lives, which browser runs it, and how a duration is extracted
from the page.  Specs arrive fully resolved; this module only models
them and converts them to and from plain dicts for result files.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

DEFAULT_WINDOW_WIDTH = 1024
DEFAULT_WINDOW_HEIGHT = 768
DEFAULT_EXPRESSION = "window.tachometerResult"
DEFAULT_ENTRY_NAME = "first-contentful-paint"

MEASUREMENT_MODES = ("callback", "performance", "expression")


# ---------------------------------------------------------------------------
# URL descriptors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RemoteUrl:
    """A fully qualified URL served by someone else."""

    url: str

    kind = "remote"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "url": self.url}


@dataclass(frozen=True)
class LocalUrl:
    """A path served by the local benchmark server."""

    url_path: str
    query_string: str = ""
    version: str = ""  # Label of the package version under test, if any.

    kind = "local"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"kind": self.kind, "url_path": self.url_path}
        if self.query_string:
            d["query_string"] = self.query_string
        if self.version:
            d["version"] = self.version
        return d


UrlDescriptor = Union[RemoteUrl, LocalUrl]


# ---------------------------------------------------------------------------
# Browser and measurement descriptors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WindowSize:
    width: int = DEFAULT_WINDOW_WIDTH
    height: int = DEFAULT_WINDOW_HEIGHT


@dataclass(frozen=True)
class BrowserConfig:
    """Which browser runs a benchmark, and how it is configured."""

    name: str = "chrome"
    headless: bool = False
    window_size: WindowSize = field(default_factory=WindowSize)

    @property
    def signature(self) -> str:
        """Key identifying browsers that can share one driver session."""
        suffix = "-headless" if self.headless else ""
        return f"{self.name}{suffix}@{self.window_size.width}x{self.window_size.height}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "headless": self.headless,
            "window_size": {
                "width": self.window_size.width,
                "height": self.window_size.height,
            },
        }


@dataclass(frozen=True)
class Measurement:
    """How one duration is extracted from a page.

    Modes:
        callback: the page reports start/stop timings back to the server.
        performance: a named performance-timeline entry (e.g. FCP).
        expression: a polled global expression evaluating to milliseconds.
    """

    mode: str = "callback"
    entry_name: str = DEFAULT_ENTRY_NAME
    expression: str = DEFAULT_EXPRESSION

    def __post_init__(self) -> None:
        if self.mode not in MEASUREMENT_MODES:
            raise ValueError(
                f"Unknown measurement mode '{self.mode}'. "
                f"Valid modes: {', '.join(MEASUREMENT_MODES)}"
            )

    @property
    def label(self) -> str:
        """Short human-readable name of the measurement."""
        if self.mode == "performance":
            return self.entry_name
        if self.mode == "expression":
            return self.expression
        return "callback"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"mode": self.mode}
        if self.mode == "performance":
            d["entry_name"] = self.entry_name
        elif self.mode == "expression":
            d["expression"] = self.expression
        return d


def default_measurement(url: UrlDescriptor) -> Measurement:
    """Remote pages can't call back to us, so they default to FCP."""
    if isinstance(url, RemoteUrl):
        return Measurement(mode="performance")
    return Measurement(mode="callback")


# ---------------------------------------------------------------------------
# BenchmarkSpec
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BenchmarkSpec:
    """One fully-configured benchmark target (one row of the matrix)."""

    name: str
    url: UrlDescriptor
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    measurement: Measurement = field(default_factory=Measurement)
    variant: str = ""

    @property
    def label(self) -> str:
        """Name plus the bits that distinguish otherwise same-named specs."""
        parts = [self.name]
        if self.variant:
            parts.append(f"[{self.variant}]")
        if isinstance(self.url, LocalUrl):
            if self.url.query_string:
                parts[0] += self.url.query_string
            if self.url.version:
                parts.append(f"<{self.url.version}>")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        d: dict[str, Any] = {
            "name": self.name,
            "url": self.url.to_dict(),
            "browser": self.browser.to_dict(),
            "measurement": self.measurement.to_dict(),
        }
        if self.variant:
            d["variant"] = self.variant
        return d


def _mapping(value: Any, what: str) -> dict[str, Any]:
    """*value* as a dict; an empty YAML key (``None``) counts as ``{}``."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{what} must be a mapping, got {type(value).__name__}")
    return value


def spec_from_dict(data: dict[str, Any]) -> BenchmarkSpec:
    """Rebuild an already-resolved spec from its dict form.

    The URL may be given as a plain string: ``http(s)://`` strings become
    remote URLs, anything else a local path with an optional query string.

    Raises:
        ValueError: If a field has the wrong shape.
    """
    data = _mapping(data, "Benchmark spec")
    if not data.get("name"):
        raise ValueError("Benchmark spec is missing a 'name'.")
    name = str(data["name"])

    url = _url_from_data(data.get("url") or name, name)

    browser_data = data.get("browser")
    if isinstance(browser_data, str):
        browser = _browser_from_string(browser_data)
    else:
        browser_data = _mapping(browser_data, f"Benchmark '{name}' browser")
        size = _mapping(browser_data.get("window_size"), f"Benchmark '{name}' window_size")
        browser = BrowserConfig(
            name=browser_data.get("name") or "chrome",
            headless=bool(browser_data.get("headless", False)),
            window_size=WindowSize(
                width=int(size.get("width") or DEFAULT_WINDOW_WIDTH),
                height=int(size.get("height") or DEFAULT_WINDOW_HEIGHT),
            ),
        )

    measurement_data = data.get("measurement")
    if isinstance(measurement_data, str):
        measurement = Measurement(mode=measurement_data)
    else:
        measurement_data = _mapping(measurement_data, f"Benchmark '{name}' measurement")
        measurement = Measurement(
            mode=measurement_data.get("mode") or default_measurement(url).mode,
            entry_name=measurement_data.get("entry_name") or DEFAULT_ENTRY_NAME,
            expression=measurement_data.get("expression") or DEFAULT_EXPRESSION,
        )

    return BenchmarkSpec(
        name=name,
        url=url,
        browser=browser,
        measurement=measurement,
        variant=data.get("variant") or "",
    )


def _url_from_data(raw: Any, name: str) -> UrlDescriptor:
    if isinstance(raw, dict):
        if raw.get("kind") == "remote" and raw.get("url"):
            return RemoteUrl(url=raw["url"])
        if not raw.get("url_path"):
            raise ValueError(f"Benchmark '{name}' url needs a 'url_path' or a remote 'url'.")
        return LocalUrl(
            url_path=raw["url_path"],
            query_string=raw.get("query_string") or "",
            version=raw.get("version") or "",
        )
    text = str(raw)
    if text.startswith(("http://", "https://")):
        return RemoteUrl(url=text)
    path, sep, query = text.partition("?")
    return LocalUrl(url_path=path, query_string=f"?{query}" if sep else "")


def _browser_from_string(text: str) -> BrowserConfig:
    """Parse the short ``chrome-headless`` style browser form."""
    name = text.strip()
    headless = name.endswith("-headless")
    if headless:
        name = name[: -len("-headless")]
    return BrowserConfig(name=name, headless=headless)


def spec_url(spec: BenchmarkSpec, server_url: str | None = None) -> str:
    """Return the URL a browser should open for *spec*.

    Local specs are resolved against *server_url*, the base URL of the
    (external) benchmark server.
    """
    if isinstance(spec.url, RemoteUrl):
        return spec.url.url
    if not server_url:
        raise ValueError(
            f"Benchmark '{spec.name}' is a local path; a server URL is required to open it."
        )
    path = spec.url.url_path
    if not path.startswith("/"):
        path = "/" + path
    return server_url.rstrip("/") + path + spec.url.query_string

"""Run-one-sample capability backed by a W3C WebDriver endpoint.

Talks plain HTTP to an already running driver (chromedriver,
geckodriver, a Selenium grid, ...).  Launching the driver or the
browser is somebody else's job.

Each sample runs in a fresh tab: at least in Chrome, tabs share cached
V8 state within a process, which would skew later samples.  The
initial blank tab stays open so the browser survives between samples.
"""

from __future__ import annotations

import time
from typing import Any
from urllib.parse import urlencode

import requests

from horizonbench.logging import get_logger
from horizonbench.samples import SampleFailure
from horizonbench.session import CallbackSampler, PendingRuns
from horizonbench.specs import BenchmarkSpec, BrowserConfig, Measurement, spec_url

log = get_logger("webdriver")

DEFAULT_WEBDRIVER_URL = "http://localhost:4444"
DEFAULT_POLL_TIMEOUT = 10.0  # seconds
_POLL_INTERVALS = {"performance": 0.1, "expression": 0.05}


class WebDriverError(RuntimeError):
    """The WebDriver endpoint failed or returned an error payload."""


# ---------------------------------------------------------------------------
# Minimal WebDriver client
# ---------------------------------------------------------------------------


def browser_capabilities(browser: BrowserConfig) -> dict[str, Any]:
    """W3C capabilities for *browser*, including headless and window size."""
    width = browser.window_size.width
    height = browser.window_size.height
    caps: dict[str, Any] = {"browserName": browser.name}
    if browser.name == "chrome":
        args = [f"--window-size={width},{height}"]
        if browser.headless:
            args.append("--headless")
        caps["goog:chromeOptions"] = {"args": args}
    elif browser.name == "firefox":
        args = [f"--width={width}", f"--height={height}"]
        if browser.headless:
            args.append("-headless")
        caps["moz:firefoxOptions"] = {"args": args}
    return caps


class WebDriverClient:
    """One WebDriver session, spoken to over HTTP with ``requests``."""

    def __init__(self, base_url: str, *, http_timeout: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.http_timeout = http_timeout
        self.session_id: str | None = None

    def _call(self, method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = requests.request(method, url, json=payload, timeout=self.http_timeout)
        except requests.RequestException as exc:
            raise WebDriverError(f"{method} {url} failed: {exc}") from exc
        try:
            data = resp.json()
        except ValueError as exc:
            raise WebDriverError(
                f"{method} {url} returned non-JSON response (HTTP {resp.status_code})"
            ) from exc
        value = data.get("value") if isinstance(data, dict) else None
        if resp.status_code != 200 or (isinstance(value, dict) and "error" in value):
            detail = value.get("message", "") if isinstance(value, dict) else ""
            error = value.get("error", "unknown error") if isinstance(value, dict) else ""
            raise WebDriverError(
                f"{method} {url}: HTTP {resp.status_code} {error} {detail}".rstrip()
            )
        return value

    def _session_path(self, suffix: str = "") -> str:
        if self.session_id is None:
            raise WebDriverError("No WebDriver session; call start() first.")
        return f"/session/{self.session_id}{suffix}"

    def start(self, browser: BrowserConfig) -> None:
        caps = browser_capabilities(browser)
        value = self._call("POST", "/session", {"capabilities": {"alwaysMatch": caps}})
        self.session_id = value["sessionId"]
        log.debug("Started %s session %s", browser.signature, self.session_id)
        if browser.name not in ("chrome", "firefox"):
            self._call(
                "POST",
                self._session_path("/window/rect"),
                {"width": browser.window_size.width, "height": browser.window_size.height},
            )

    def quit(self) -> None:
        if self.session_id is None:
            return
        try:
            self._call("DELETE", self._session_path())
        finally:
            self.session_id = None

    def current_window(self) -> str:
        return self._call("GET", self._session_path("/window"))

    def new_tab(self) -> str:
        value = self._call("POST", self._session_path("/window/new"), {"type": "tab"})
        return value["handle"]

    def switch_to(self, handle: str) -> None:
        self._call("POST", self._session_path("/window"), {"handle": handle})

    def close_window(self) -> None:
        self._call("DELETE", self._session_path("/window"))

    def navigate(self, url: str) -> None:
        self._call("POST", self._session_path("/url"), {"url": url})

    def execute(self, script: str, *args: Any) -> Any:
        return self._call(
            "POST",
            self._session_path("/execute/sync"),
            {"script": script, "args": list(args)},
        )


# ---------------------------------------------------------------------------
# Sampler
# ---------------------------------------------------------------------------


def _read_measurement(client: WebDriverClient, measurement: Measurement) -> float | None:
    """One poll of the page.  None means "not there yet"."""
    if measurement.mode == "performance":
        entries = client.execute(
            "return window.performance.getEntriesByName(arguments[0]);",
            measurement.entry_name,
        )
        if entries:
            return float(entries[0]["startTime"])
        return None

    result = client.execute(f"return ({measurement.expression});")
    if result is None:
        return None
    if isinstance(result, bool) or not isinstance(result, (int, float)):
        raise SampleFailure(
            f"'{measurement.expression}' was type {type(result).__name__}, expected number."
        )
    if result < 0:
        raise SampleFailure(f"'{measurement.expression}' was negative: {result}")
    return float(result)


class WebDriverSampler:
    """Take one sample per call by loading the spec's page in a new tab.

    Usage::

        with WebDriverSampler("http://localhost:9515") as sampler:
            millis = sampler(spec)
    """

    def __init__(
        self,
        webdriver_url: str = DEFAULT_WEBDRIVER_URL,
        *,
        server_url: str | None = None,
        pending: PendingRuns | None = None,
        attempts: int = 1,
        poll_timeout: float = DEFAULT_POLL_TIMEOUT,
        http_timeout: float = 30.0,
    ) -> None:
        if attempts < 1:
            raise ValueError(f"Attempts must be at least 1 (got {attempts}).")
        self.webdriver_url = webdriver_url
        self.server_url = server_url
        self.pending = pending
        self.attempts = attempts
        self.poll_timeout = poll_timeout
        self.http_timeout = http_timeout
        # Browser signature -> (client, handle of the initial blank tab).
        self._sessions: dict[str, tuple[WebDriverClient, str]] = {}

    def __enter__(self) -> WebDriverSampler:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """End every browser session this sampler started."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for client, _ in sessions:
            try:
                client.quit()
            except WebDriverError as exc:
                log.warning("Failed to end WebDriver session: %s", exc)

    def _session(self, browser: BrowserConfig) -> tuple[WebDriverClient, str]:
        sig = browser.signature
        if sig not in self._sessions:
            log.info("Launching %s via %s", sig, self.webdriver_url)
            client = WebDriverClient(self.webdriver_url, http_timeout=self.http_timeout)
            client.start(browser)
            self._sessions[sig] = (client, client.current_window())
        return self._sessions[sig]

    def __call__(self, spec: BenchmarkSpec) -> float:
        url = spec_url(spec, self.server_url)
        for attempt in range(1, self.attempts + 1):
            try:
                millis = self._sample_once(spec, url)
            except WebDriverError as exc:
                raise SampleFailure(f"WebDriver error for '{spec.label}': {exc}", spec=spec) from exc
            if millis is not None:
                return millis
            if attempt < self.attempts:
                log.warning(
                    "Failed %d/%d times to get a measurement in %s from %s. Retrying.",
                    attempt,
                    self.attempts,
                    spec.browser.name,
                    url,
                )
        raise SampleFailure(
            f"Failed {self.attempts}/{self.attempts} times to get a measurement "
            f"in {spec.browser.name} from {url}.",
            spec=spec,
        )

    def _sample_once(self, spec: BenchmarkSpec, url: str) -> float | None:
        client, initial_tab = self._session(spec.browser)

        if spec.measurement.mode == "callback":
            if self.pending is None:
                raise SampleFailure(
                    f"'{spec.label}' uses callback measurement, which needs a result server.",
                    spec=spec,
                )

            def navigate(_spec: BenchmarkSpec, run_id: str) -> None:
                sep = "&" if "?" in url else "?"
                client.navigate(url + sep + urlencode({"runId": run_id}))

            # Only a tab we actually switched to may be closed afterwards.
            client.switch_to(client.new_tab())
            try:
                return CallbackSampler(
                    navigate, self.pending, result_timeout=self.poll_timeout
                )(spec)
            except SampleFailure:
                return None
            finally:
                self._close_tab(client, initial_tab)

        client.switch_to(client.new_tab())
        try:
            client.navigate(url)
            return self._poll(client, spec.measurement)
        finally:
            self._close_tab(client, initial_tab)

    @staticmethod
    def _close_tab(client: WebDriverClient, initial_tab: str) -> None:
        client.close_window()
        client.switch_to(initial_tab)

    def _poll(self, client: WebDriverClient, measurement: Measurement) -> float | None:
        interval = _POLL_INTERVALS[measurement.mode]
        waited = 0.0
        while waited <= self.poll_timeout:
            time.sleep(interval)
            waited += interval
            millis = _read_measurement(client, measurement)
            if millis is not None:
                return millis
        return None

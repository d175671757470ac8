"""Change detection for the live preview and the local platform build.

This module provides:
- ChangeWatcher: polls the live preview and calls back when its content
  changed (entity-tag or last-modified freshness markers)
- PlatformWatcher: watches local runtime build output with watchdog and
  calls back, debounced, when it is rebuilt
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from email.utils import formatdate
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)

DEFAULT_WATCH_INTERVAL = 5.0

INDEX_PATH = "/rn-bundle/index.html"
BUNDLE_PATH = "/rn-bundle/index.bundle"
BUNDLE_PARAMS = {
    "minify": "true",
    "platform": "web",
    "dev": "true",
    "hot": "false",
    "transform.engine": "hermes",
    "transform.routerRoot": "app",
    "unstable_transformProfile": "hermes-stable",
}
PREVIEW_TITLE = "<title>WaveMaker Preview</title>"


class WatchStrategy(Enum):
    """How the freshness of the preview is tracked."""

    ETAG = "etag"  # single-page bundle host
    LAST_MODIFIED = "last-modified"  # static page host


def detect_strategy(preview_url: str, client: httpx.Client) -> WatchStrategy:
    """Sniff the preview's index page to pick a watch strategy.

    A page that loads ``index.bundle`` for ``platform=web`` is served by a
    bundle host and is tracked by entity tag; anything else by modification
    time.
    """
    try:
        response = client.get(preview_url + INDEX_PATH)
        body = response.text
    except httpx.HTTPError as e:
        logger.warning("Could not inspect preview (%s), assuming a static page host", e)
        return WatchStrategy.LAST_MODIFIED

    if "index.bundle" in body and "platform=web" in body:
        return WatchStrategy.ETAG
    return WatchStrategy.LAST_MODIFIED


class ChangeWatcher:
    """Polls the live preview and triggers a callback when it changes.

    One probe per iteration, then a fixed sleep, forever (or until stop()
    or ``max_iterations``). The callback runs to completion before the next
    probe, so at most one pull is ever in flight. Errors in the probe or the
    callback are logged and the loop continues.

    Usage:
        watcher = ChangeWatcher(preview_url, on_change=pull_and_rebuild)
        watcher.run()  # blocks
    """

    def __init__(
        self,
        preview_url: str,
        on_change: Callable[[], object],
        interval: float = DEFAULT_WATCH_INTERVAL,
        last_marker: str | None = None,
        strategy: WatchStrategy | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            preview_url: Live preview URL.
            on_change: Called when the preview changed.
            interval: Seconds to sleep after every iteration.
            last_marker: Freshness marker known from a previous session.
            strategy: Force a strategy instead of sniffing the preview.
            http_client: Client used for probes (one is created if None).
        """
        self._preview_url = preview_url.rstrip("/")
        self._on_change = on_change
        self._interval = interval
        self._marker = last_marker or ""
        self._strategy = strategy
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=30.0)
        self._stop_event = threading.Event()

    @property
    def marker(self) -> str:
        """Freshness marker observed on the last change."""
        return self._marker

    @property
    def strategy(self) -> WatchStrategy | None:
        """Strategy in use, None until the first run() sniffs it."""
        return self._strategy

    def close(self) -> None:
        """Close the HTTP client if this watcher created it."""
        if self._owns_client:
            self._client.close()

    def stop(self) -> None:
        """Ask run() to return after the current iteration.

        Called before run(), it makes the next run() return without probing.
        """
        self._stop_event.set()

    def run(self, max_iterations: int | None = None) -> None:
        """Watch until stopped.

        Args:
            max_iterations: Stop after this many iterations (for tests).
        """
        try:
            if self._strategy is None and not self._stop_event.is_set():
                self._strategy = detect_strategy(self._preview_url, self._client)
                logger.info("Watching %s (%s)", self._preview_url, self._strategy.value)

            iterations = 0
            while not self._stop_event.is_set():
                self.check_once()
                self._stop_event.wait(self._interval)
                iterations += 1
                if max_iterations is not None and iterations >= max_iterations:
                    break
        finally:
            # A stop() issued before run() applies to that run only
            self._stop_event.clear()

    def check_once(self) -> bool:
        """Run one iteration: probe, and call on_change if it changed.

        Returns:
            True if a change was detected (even if on_change then failed).
        """
        try:
            changed = self._probe()
        except Exception as e:
            logger.warning("Preview probe failed: %s", e)
            logger.debug("Full traceback:", exc_info=True)
            return False

        if not changed:
            return False

        logger.info("Preview changed, synchronizing")
        try:
            self._on_change()
        except Exception as e:
            logger.warning("Change handler failed: %s", e)
            logger.debug("Full traceback:", exc_info=True)
        return True

    def _probe(self) -> bool:
        if self._strategy is None:
            self._strategy = detect_strategy(self._preview_url, self._client)
        if self._strategy == WatchStrategy.ETAG:
            return self._probe_etag()
        return self._probe_last_modified()

    def _probe_etag(self) -> bool:
        response = self._client.get(
            self._preview_url + BUNDLE_PATH,
            params=BUNDLE_PARAMS,
            headers={"if-none-match": self._marker},
        )
        etag = response.headers.get("etag", "")
        if response.status_code != 200:
            if etag:
                self._marker = etag
            return False
        if etag and etag == self._marker:
            return False
        self._marker = etag
        return True

    def _probe_last_modified(self) -> bool:
        since = self._marker or formatdate(usegmt=True)
        response = self._client.get(
            self._preview_url + INDEX_PATH,
            headers={"if-modified-since": since},
        )
        if response.status_code != 200 or PREVIEW_TITLE not in response.text:
            return False
        modified = response.headers.get("last-modified", "")
        if modified and modified == self._marker:
            return False
        if modified:
            self._marker = modified
        return True


# === Local platform build ===

PLATFORM_PACKAGES = (
    "wavemaker-rn-runtime",
    "wavemaker-rn-codegen",
    "wavemaker-ui-variables",
)
PLATFORM_BUILD_MARKER = Path("dist") / "new-build"


class _PlatformChangeHandler(FileSystemEventHandler):
    """Debounces build output events into a single callback."""

    def __init__(
        self,
        targets: list[Path],
        callback: Callable[[], object],
        delay_s: float,
    ) -> None:
        super().__init__()
        self._targets = targets
        self._callback = callback
        self._delay_s = delay_s
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    def _is_relevant(self, path: Path) -> bool:
        return any(path == target or target in path.parents for target in self._targets)

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in ("opened", "closed", "closed_no_write"):
            return
        src_path = event.src_path
        if isinstance(src_path, bytes):
            src_path = src_path.decode("utf-8", errors="replace")
        if not self._is_relevant(Path(src_path)):
            return

        with self._lock:
            if self._timer:
                self._timer.cancel()
            self._timer = threading.Timer(self._delay_s, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        logger.info("Platform changed. Building again.")
        try:
            self._callback()
        except Exception as e:
            logger.warning("Platform rebuild failed: %s", e)
            logger.debug("Full traceback:", exc_info=True)

    def stop(self) -> None:
        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None


class PlatformWatcher:
    """Watches the local frontend codebase for new runtime builds."""

    def __init__(
        self,
        codebase: Path,
        on_change: Callable[[], object],
        delay_s: float = DEFAULT_WATCH_INTERVAL,
    ) -> None:
        """Initialize the platform watcher.

        Args:
            codebase: Root of the local frontend codebase checkout.
            on_change: Called once per burst of build output changes.
            delay_s: Quiet period before on_change is called.
        """
        self._codebase = Path(codebase).resolve()
        self._targets = [
            self._codebase / package / PLATFORM_BUILD_MARKER for package in PLATFORM_PACKAGES
        ]
        self._handler = _PlatformChangeHandler(self._targets, on_change, delay_s)
        self._observer: BaseObserver = Observer()
        self._running = False

    @property
    def targets(self) -> list[Path]:
        """Build outputs that trigger a rebuild."""
        return list(self._targets)

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    def start(self) -> None:
        """Start watching the build output directories that exist."""
        if self._running:
            return

        scheduled = 0
        for target in self._targets:
            watch_dir = target.parent
            if watch_dir.is_dir():
                self._observer.schedule(self._handler, str(watch_dir), recursive=True)
                scheduled += 1
        if not scheduled:
            logger.warning("No platform build output found under %s", self._codebase)
            return

        self._observer.start()
        self._running = True
        logger.info("Watching platform builds under %s", self._codebase)

    def stop(self) -> None:
        """Stop watching."""
        if not self._running:
            return

        self._handler.stop()
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._running = False

    def __enter__(self) -> PlatformWatcher:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()

"""Polling watcher for a single side-car file."""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

LOGGER = logging.getLogger("mcode.watch")

DEFAULT_POLL_INTERVAL = 0.5


@dataclass(frozen=True)
class FileSnapshot:
    exists: bool
    mtime_ns: Optional[int] = None
    size: Optional[int] = None
    digest: Optional[str] = None


def snapshot(path: Path) -> FileSnapshot:
    try:
        stat = path.stat()
        data = path.read_bytes()
    except OSError:
        return FileSnapshot(False)
    # same-size rewrites inside the mtime granularity only show up in the content
    return FileSnapshot(True, stat.st_mtime_ns, stat.st_size, hashlib.sha1(data).hexdigest())


class SidecarWatcher:
    """
    Watch one path and report removal, creation and content changes.

    ``on_changed`` fires when the file appears or its mtime, size or content
    digest moves; ``on_removed`` fires when a previously present file
    disappears. Every
    observed change triggers a callback; there is no debounce. Writes that land
    between two polls are seen as one change and the callback reads the latest
    content.
    """

    def __init__(
        self,
        path: Path,
        *,
        on_changed: Callable[[Path], None],
        on_removed: Callable[[Path], None],
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.path = Path(path)
        self.interval = interval if interval and interval > 0 else DEFAULT_POLL_INTERVAL
        self._on_changed = on_changed
        self._on_removed = on_removed
        self._last = snapshot(self.path)
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
        LOGGER.debug("watching %s (interval %.2fs)", self.path, self.interval)
        self._schedule()

    def stop(self) -> None:
        with self._lock:
            self._running = False
            timer = self._timer
            self._timer = None
        if timer is not None:
            timer.cancel()
        LOGGER.debug("stopped watching %s", self.path)

    def poll(self) -> Optional[str]:
        """Compare the file against the last snapshot; returns the event name fired, if any."""
        current = snapshot(self.path)
        with self._lock:
            previous = self._last
            self._last = current
        if previous == current:
            return None
        if previous.exists and not current.exists:
            LOGGER.info("side-car removed: %s", self.path)
            self._on_removed(self.path)
            return "removed"
        if current.exists:
            event = "created" if not previous.exists else "changed"
            LOGGER.info("side-car %s: %s", event, self.path)
            self._on_changed(self.path)
            return event
        return None

    def _schedule(self) -> None:
        with self._lock:
            if not self._running:
                return
            timer = threading.Timer(self.interval, self._run_poll)
            timer.daemon = True
            self._timer = timer
        timer.start()

    def _run_poll(self) -> None:
        try:
            self.poll()
        except Exception:
            LOGGER.exception("side-car poll failed for %s", self.path)
        self._schedule()

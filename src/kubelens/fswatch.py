"""Change signal for the managed kubeconfig directory.

A presentation layer uses this to refresh its cluster list when files
appear, change or disappear. Signals are debounced on the leading edge:
the first event fires immediately and events inside the following window
are dropped.

Requires: ``pip install watchdog``
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

_SIGNAL_EVENTS = frozenset({"created", "modified", "deleted", "moved"})


class DebouncedChangeHandler(FileSystemEventHandler):
    """Calls *on_change* at most once per debounce window."""

    def __init__(
        self,
        on_change: Callable[[], None],
        debounce_ms: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self._on_change = on_change
        self._window = debounce_ms / 1000.0
        self._clock = clock
        self._last: float | None = None
        self._lock = threading.Lock()

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _SIGNAL_EVENTS:
            return
        now = self._clock()
        with self._lock:
            if self._last is not None and now - self._last < self._window:
                return
            self._last = now
        logger.debug("Kubeconfig directory changed: %s %s", event.event_type, event.src_path)
        try:
            self._on_change()
        except Exception as exc:
            # Keep the observer thread alive for later changes.
            logger.warning("Change callback failed: %s", exc)


class KubeconfigDirWatcher:
    """Watches one directory (non-recursive) with a watchdog ``Observer``.

    Usage::

        with KubeconfigDirWatcher(config.kubeconfigs_dir, refresh):
            ...
    """

    def __init__(
        self,
        path: str | Path,
        on_change: Callable[[], None],
        debounce_ms: int = 500,
    ) -> None:
        self._path = Path(path)
        self._handler = DebouncedChangeHandler(on_change, debounce_ms=debounce_ms)
        self._observer: Observer | None = None

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        self._path.mkdir(parents=True, exist_ok=True)
        observer = Observer()
        observer.schedule(self._handler, str(self._path), recursive=False)
        observer.start()
        self._observer = observer
        logger.info("Watching %s for kubeconfig changes", self._path)

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None

    def __enter__(self) -> KubeconfigDirWatcher:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

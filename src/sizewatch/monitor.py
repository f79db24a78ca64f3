"""Watch session: initial scan, live notifications and the final size report."""
from __future__ import annotations

import logging
import os
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from .config import WatchConfig
from .dispatch import EventDispatcher, SizeWatchHandler, matches_filter
from .events import event_classes, schedule_classes
from .reporting import format_maximum_sizes
from .tracker import SizeTracker, current_size

logger = logging.getLogger(__name__)

SizeMap = Dict[Path, int]

_CLOSED = object()

SUPERVISE_INTERVAL = 0.5


class SessionState(str, Enum):
    """Lifecycle states of a watch session, in order."""

    CONFIGURING = "configuring"
    SCANNING = "scanning"
    WATCHING = "watching"
    REPORTING = "reporting"
    DONE = "done"


class SessionStateError(RuntimeError):
    """Raised when a session operation is called in the wrong state."""


class WatchLostError(OSError):
    """The notification source stopped delivering events for the watched folder."""


@dataclass
class SessionStats:
    """Counters emitted by the session for observability."""

    events_received: int = 0
    lines_emitted: int = 0
    errors_reported: int = 0


class WatchSession:
    """Watches one folder and tracks the maximum size seen per file.

    Usage::

        session = WatchSession(config)
        initial = session.scan()
        session.start()
        ...                      # consume session.lines() elsewhere
        session.stop()
        maximums, report = session.report()
    """

    def __init__(self, config: WatchConfig, *, tracker: Optional[SizeTracker] = None):
        self._config = config
        self._tracker = tracker if tracker is not None else SizeTracker()
        self._dispatcher = EventDispatcher(config, self._tracker)
        self._handler = SizeWatchHandler(self._dispatcher, self._emit)
        self._lines: "queue.Queue[object]" = queue.Queue()
        self._observer: Optional[BaseObserver] = None
        self._supervisor: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._watch_lost = False
        self._previous_excepthook: Optional[Callable[[Any], Any]] = None
        self._state = SessionState.CONFIGURING
        self._state_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._lines_emitted = 0

    @property
    def config(self) -> WatchConfig:
        return self._config

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def tracker(self) -> SizeTracker:
        return self._tracker

    @property
    def observer(self) -> Optional[BaseObserver]:
        return self._observer

    @property
    def stats(self) -> SessionStats:
        with self._stats_lock:
            lines_emitted = self._lines_emitted
        return SessionStats(
            events_received=self._handler.events_received,
            lines_emitted=lines_emitted,
            errors_reported=self._handler.errors_reported,
        )

    def __enter__(self) -> "WatchSession":
        return self

    def __exit__(self, *exc_info) -> None:
        if self._state is SessionState.WATCHING:
            self.stop()

    def scan(self) -> SizeMap:
        """Return the current size of every matching file. Not merged into the tracker."""

        self._transition(SessionState.CONFIGURING, SessionState.SCANNING)
        sizes = scan_sizes(
            self._config.folder,
            self._config.filter,
            recursive=self._config.include_subdirectories,
        )
        logger.info("Initial scan of %s found %s files", self._config.folder, len(sizes))
        return sizes

    def start(self) -> None:
        """Subscribe the enabled event classes and begin delivering notifications."""

        self._transition(SessionState.SCANNING, SessionState.WATCHING)
        if not event_classes(self._config):
            logger.warning("No event classes enabled; %s will not be watched", self._config.folder)
            return

        classes = schedule_classes(self._config)
        observer = Observer()
        try:
            observer.schedule(
                self._handler,
                str(self._config.folder),
                recursive=self._config.include_subdirectories,
                event_filter=classes,
            )
            observer.start()
        except OSError as exc:
            logger.error("Unable to watch %s: %s", self._config.folder, exc)
            self._handler.report_error(exc)
            return

        self._observer = observer
        self._install_excepthook()
        self._supervisor = threading.Thread(
            target=self._supervise, name="sizewatch-supervisor", daemon=True
        )
        self._supervisor.start()
        logger.info(
            "Watching %s for %s",
            self._config.folder,
            ", ".join(cls.__name__ for cls in classes),
        )

    def stop(self) -> None:
        """Stop delivering notifications and close the line stream.

        Callbacks already running are allowed to finish before this returns.
        """

        self._transition(SessionState.WATCHING, SessionState.REPORTING)
        self._stop_event.set()
        supervisor, self._supervisor = self._supervisor, None
        if supervisor is not None:
            supervisor.join()
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join()
        self._restore_excepthook()
        self._lines.put(_CLOSED)
        stats = self.stats
        logger.info(
            "Watch stopped after %s events, %s lines, %s errors",
            stats.events_received,
            stats.lines_emitted,
            stats.errors_reported,
        )

    def wait(self, stop_event: threading.Event, timeout: Optional[float] = None) -> bool:
        """Block until ``stop_event`` is set, then stop the session."""

        if not stop_event.wait(timeout):
            return False
        self.stop()
        return True

    def lines(self) -> Iterator[str]:
        """Yield log lines as notifications are handled, until the session stops."""

        while True:
            item = self._lines.get()
            if item is _CLOSED:
                return
            yield str(item)

    def report(self) -> Tuple[SizeMap, List[str]]:
        """Return the maximum sizes observed and the lines describing them."""

        self._transition(SessionState.REPORTING, SessionState.DONE)
        sizes = self._tracker.snapshot()
        return sizes, format_maximum_sizes(sizes)

    def check_watch(self) -> Optional[WatchLostError]:
        """Return why the watch is no longer live, or ``None`` while it is healthy."""

        folder = self._config.folder
        if not folder.is_dir():
            return WatchLostError(f"Watched folder no longer exists: {folder}")
        if not os.access(folder, os.R_OK | os.X_OK):
            return WatchLostError(f"Access to watched folder was lost: {folder}")
        observer = self._observer
        if observer is not None and any(not emitter.is_alive() for emitter in observer.emitters):
            return WatchLostError(f"Notification source for {folder} stopped")
        return None

    def _supervise(self) -> None:
        while not self._stop_event.wait(SUPERVISE_INTERVAL):
            if self._watch_lost:
                return
            error = self.check_watch()
            if error is not None:
                self._report_watch_lost(error)
                return

    def _report_watch_lost(self, error: BaseException) -> None:
        with self._stats_lock:
            if self._watch_lost:
                return
            self._watch_lost = True
        logger.error("%s", error)
        self._handler.report_error(error)

    def _install_excepthook(self) -> None:
        self._previous_excepthook = threading.excepthook
        threading.excepthook = self._on_thread_exception

    def _restore_excepthook(self) -> None:
        if self._previous_excepthook is None:
            return
        if threading.excepthook == self._on_thread_exception:
            threading.excepthook = self._previous_excepthook
        self._previous_excepthook = None

    def _on_thread_exception(self, args: Any) -> None:
        observer = self._observer
        if observer is not None and args.thread in observer.emitters:
            error = WatchLostError(f"Notification source for {self._config.folder} failed")
            error.__cause__ = args.exc_value
            self._report_watch_lost(error)
            return
        if self._previous_excepthook is not None:
            self._previous_excepthook(args)

    def _emit(self, lines: List[str]) -> None:
        for line in lines:
            self._lines.put(line)
        with self._stats_lock:
            self._lines_emitted += len(lines)

    def _transition(self, expected: SessionState, target: SessionState) -> None:
        with self._state_lock:
            if self._state is not expected:
                raise SessionStateError(
                    f"Cannot move to {target.value} while {self._state.value}; expected {expected.value}"
                )
            self._state = target
        logger.debug("Session state %s -> %s", expected.value, target.value)


def scan_sizes(root: Path, pattern: str, *, recursive: bool) -> SizeMap:
    """Map every regular file under ``root`` whose name matches ``pattern`` to its size."""

    results: SizeMap = {}
    for path in _iter_paths(root, recursive=recursive):
        if not matches_filter(path, pattern):
            continue
        size = current_size(path)
        if size is None:
            continue
        results[path] = size
    return results


def _iter_paths(root: Path, *, recursive: bool) -> Iterable[Path]:
    if recursive:
        yield from sorted(root.rglob("*"))
    else:
        yield from sorted(root.glob("*"))

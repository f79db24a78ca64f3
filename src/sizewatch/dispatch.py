"""Routing of classified notifications to the size tracker and the event log."""
from __future__ import annotations

import logging
import threading
from fnmatch import fnmatch
from pathlib import Path
from typing import Callable, List

from watchdog.events import FileSystemEvent, FileSystemEventHandler

from .config import WatchConfig
from .events import ErrorEvent, EventType, FileEvent, Notification, classify
from .reporting import (
    format_created,
    format_deleted,
    format_error,
    format_observation,
    format_renamed,
)
from .tracker import SizeTracker

logger = logging.getLogger(__name__)

LineSink = Callable[[List[str]], None]

_MATCH_ALL = ("*", "*.*")


class EventDispatcher:
    """Applies the watch configuration to classified events and renders log lines."""

    def __init__(self, config: WatchConfig, tracker: SizeTracker):
        self._config = config
        self._tracker = tracker

    @property
    def tracker(self) -> SizeTracker:
        return self._tracker

    def dispatch(self, event: Notification) -> List[str]:
        if isinstance(event, ErrorEvent):
            return format_error(event.error)

        if not self._is_enabled(event.event_type):
            logger.debug("Ignoring %s event for %s; class disabled", event.event_type.value, event.path)
            return []
        if not self._matches(event):
            return []

        if event.event_type is EventType.CHANGED:
            observation = self._tracker.observe_file(event.path)
            if observation is None:
                return []
            return [format_observation(observation)]
        if event.event_type is EventType.CREATED:
            return [format_created(event.path)]
        if event.event_type is EventType.DELETED:
            return [format_deleted(event.path)]
        if event.event_type is EventType.RENAMED:
            if event.previous_path is None:
                raise ValueError(f"Rename of {event.path} has no previous path")
            return format_renamed(event.previous_path, event.path)

        raise ValueError(f"Unhandled event type {event.event_type}")

    def _is_enabled(self, event_type: EventType) -> bool:
        if event_type is EventType.CHANGED:
            return self._config.watch_changed
        if event_type is EventType.CREATED:
            return self._config.watch_created
        if event_type is EventType.DELETED:
            return self._config.watch_deleted
        if event_type is EventType.RENAMED:
            return self._config.watch_renamed
        return True

    def _matches(self, event: FileEvent) -> bool:
        if matches_filter(event.path, self._config.filter):
            return True
        return event.previous_path is not None and matches_filter(event.previous_path, self._config.filter)


class SizeWatchHandler(FileSystemEventHandler):
    """watchdog handler that forwards notifications to an :class:`EventDispatcher`.

    Runs on the observer thread. Failures while handling one notification
    are reported as error lines and never reach watchdog. Handling and
    emitting happen under one lock so lines leave in classification order.
    """

    def __init__(self, dispatcher: EventDispatcher, sink: LineSink):
        super().__init__()
        self._dispatcher = dispatcher
        self._sink = sink
        self._lock = threading.RLock()
        self.events_received = 0
        self.errors_reported = 0

    def on_any_event(self, event: FileSystemEvent) -> None:
        with self._lock:
            self.events_received += 1
            try:
                file_event = classify(event)
                if file_event is None:
                    logger.debug("Dropping %s event for %s", event.event_type, event.src_path)
                    return
                lines = self._dispatcher.dispatch(file_event)
            except Exception as exc:
                logger.debug("Failed to handle %s", event, exc_info=True)
                self.report_error(exc)
                return
            if lines:
                self._sink(lines)

    def report_error(self, error: BaseException) -> None:
        with self._lock:
            self.errors_reported += 1
            self._sink(self._dispatcher.dispatch(ErrorEvent(error)))


def matches_filter(path: Path, pattern: str) -> bool:
    """Return True when the file name of ``path`` matches the glob ``pattern``."""

    if pattern in _MATCH_ALL:
        return True
    return fnmatch(path.name, pattern)

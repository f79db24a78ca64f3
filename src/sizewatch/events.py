"""Event models shared across watcher components."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Type, Union

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
)

from .config import WatchConfig


class EventType(str, Enum):
    """Classes of notifications reported by the watcher."""

    CHANGED = "changed"
    CREATED = "created"
    DELETED = "deleted"
    RENAMED = "renamed"
    ERROR = "error"


@dataclass(frozen=True)
class FileEvent:
    """A single path notification after classification."""

    event_type: EventType
    path: Path
    previous_path: Optional[Path] = None

    @classmethod
    def renamed(cls, previous_path: Path, path: Path) -> "FileEvent":
        return cls(EventType.RENAMED, path=path, previous_path=previous_path)


@dataclass(frozen=True)
class ErrorEvent:
    """A failure reported by the notification source or while handling a notification."""

    error: BaseException

    @property
    def event_type(self) -> EventType:
        return EventType.ERROR


Notification = Union[FileEvent, ErrorEvent]


def classify(event: FileSystemEvent) -> Optional[FileEvent]:
    """Map a raw watchdog event onto one of the watcher's event classes.

    Only ``FileModifiedEvent`` counts as a content change. Directory
    modifications and open/close notifications return ``None``.
    """

    if isinstance(event, FileModifiedEvent):
        return FileEvent(EventType.CHANGED, path=_as_path(event.src_path))
    if isinstance(event, (FileCreatedEvent, DirCreatedEvent)):
        return FileEvent(EventType.CREATED, path=_as_path(event.src_path))
    if isinstance(event, (FileDeletedEvent, DirDeletedEvent)):
        return FileEvent(EventType.DELETED, path=_as_path(event.src_path))
    if isinstance(event, (FileMovedEvent, DirMovedEvent)):
        return FileEvent.renamed(_as_path(event.src_path), _as_path(event.dest_path))
    return None


def event_classes(config: WatchConfig) -> List[Type[FileSystemEvent]]:
    """Return the watchdog event classes reported for ``config``."""

    classes: List[Type[FileSystemEvent]] = []
    if config.watch_changed:
        classes.append(FileModifiedEvent)
    if config.watch_created:
        classes.extend((FileCreatedEvent, DirCreatedEvent))
    if config.watch_deleted:
        classes.extend((FileDeletedEvent, DirDeletedEvent))
    if config.watch_renamed:
        classes.extend((FileMovedEvent, DirMovedEvent))
    return classes


def schedule_classes(config: WatchConfig) -> List[Type[FileSystemEvent]]:
    """Return the classes the observer must deliver for ``config``.

    Recursive watches also need directory creations and moves so watchdog
    adds watches for subdirectories that appear during the run. Those extra
    events are dropped by the dispatcher unless their class is enabled.
    """

    classes = event_classes(config)
    if classes and config.include_subdirectories:
        for extra in (DirCreatedEvent, DirMovedEvent):
            if extra not in classes:
                classes.append(extra)
    return classes


def _as_path(raw: Union[str, bytes]) -> Path:
    if isinstance(raw, bytes):
        raw = raw.decode(errors="surrogateescape")
    return Path(raw)

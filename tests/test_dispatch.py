"""Tests for event classification, gating and the watchdog handler."""
from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional

import pytest
from watchdog.events import (
    DirCreatedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from sizewatch.config import WatchConfig
from sizewatch.dispatch import EventDispatcher, SizeWatchHandler, matches_filter
from sizewatch.events import ErrorEvent, EventType, FileEvent, classify, event_classes, schedule_classes
from sizewatch.tracker import SizeObservation, SizeTracker

ConfigFactory = Callable[..., WatchConfig]


class TestClassify:
    def test_content_modification_is_a_change(self, tmp_path: Path) -> None:
        event = classify(FileModifiedEvent(str(tmp_path / "a.bin")))

        assert event == FileEvent(EventType.CHANGED, path=tmp_path / "a.bin")

    def test_directory_modification_is_dropped(self, tmp_path: Path) -> None:
        assert classify(DirModifiedEvent(str(tmp_path))) is None

    def test_close_notification_is_dropped(self, tmp_path: Path) -> None:
        assert classify(FileClosedEvent(str(tmp_path / "a.bin"))) is None

    def test_move_keeps_both_paths(self, tmp_path: Path) -> None:
        event = classify(FileMovedEvent(str(tmp_path / "old.txt"), str(tmp_path / "new.txt")))

        assert event is not None
        assert event.event_type is EventType.RENAMED
        assert event.previous_path == tmp_path / "old.txt"
        assert event.path == tmp_path / "new.txt"

    def test_directory_creation(self, tmp_path: Path) -> None:
        event = classify(DirCreatedEvent(str(tmp_path / "sub")))

        assert event == FileEvent(EventType.CREATED, path=tmp_path / "sub")


class TestEventClasses:
    def test_default_subscribes_only_modifications(self, make_config: ConfigFactory) -> None:
        assert event_classes(make_config()) == [FileModifiedEvent]

    def test_disabled_classes_are_not_subscribed(self, make_config: ConfigFactory) -> None:
        classes = event_classes(make_config(watch_changed=False, watch_deleted=True))

        assert FileModifiedEvent not in classes
        assert FileCreatedEvent not in classes
        assert FileDeletedEvent in classes

    def test_nothing_enabled(self, make_config: ConfigFactory) -> None:
        assert event_classes(make_config(watch_changed=False)) == []


class TestScheduleClasses:
    def test_recursive_watch_follows_new_directories(self, make_config: ConfigFactory) -> None:
        classes = schedule_classes(make_config(include_subdirectories=True))

        assert classes == [FileModifiedEvent, DirCreatedEvent, DirMovedEvent]

    def test_flat_watch_schedules_only_reported_classes(self, make_config: ConfigFactory) -> None:
        assert schedule_classes(make_config()) == [FileModifiedEvent]

    def test_extra_classes_are_not_duplicated(self, make_config: ConfigFactory) -> None:
        classes = schedule_classes(make_config(include_subdirectories=True, watch_created=True))

        assert classes.count(DirCreatedEvent) == 1
        assert DirMovedEvent in classes

    def test_nothing_enabled_schedules_nothing(self, make_config: ConfigFactory) -> None:
        assert schedule_classes(make_config(watch_changed=False, include_subdirectories=True)) == []

    def test_directory_events_for_watch_upkeep_are_not_reported(
        self, make_config: ConfigFactory, watch_folder: Path
    ) -> None:
        received: List[List[str]] = []
        config = make_config(include_subdirectories=True)
        handler = SizeWatchHandler(EventDispatcher(config, SizeTracker()), received.append)

        handler.dispatch(DirCreatedEvent(str(watch_folder / "sub")))
        handler.dispatch(DirMovedEvent(str(watch_folder / "sub"), str(watch_folder / "renamed")))

        assert received == []
        assert handler.events_received == 2


class TestDispatcher:
    def test_change_records_new_size_then_growth(self, make_config: ConfigFactory, watch_folder: Path) -> None:
        target = watch_folder / "download.part"
        target.write_bytes(b"x" * 1500)
        dispatcher = EventDispatcher(make_config(), SizeTracker())
        event = FileEvent(EventType.CHANGED, path=target)

        first = dispatcher.dispatch(event)
        repeat = dispatcher.dispatch(event)
        target.write_bytes(b"x" * 4096)
        grown = dispatcher.dispatch(event)
        target.write_bytes(b"x")
        shrunk = dispatcher.dispatch(event)

        assert len(first) == 1 and f"New size of {target}: 1500 B, 1 kB, 0 MB, 0 GB" in first[0]
        assert repeat == []
        assert len(grown) == 1 and f"Changed: {target}; Size: 4096 B, 4 kB, 0 MB, 0 GB" in grown[0]
        assert shrunk == []
        assert dispatcher.tracker.snapshot() == {target: 4096}

    def test_vanished_file_is_silent(self, make_config: ConfigFactory, watch_folder: Path) -> None:
        dispatcher = EventDispatcher(make_config(), SizeTracker())

        lines = dispatcher.dispatch(FileEvent(EventType.CHANGED, path=watch_folder / "gone.tmp"))

        assert lines == []
        assert len(dispatcher.tracker) == 0

    def test_disabled_change_never_reaches_tracker(self, make_config: ConfigFactory, watch_folder: Path) -> None:
        target = watch_folder / "a.bin"
        target.write_bytes(b"abc")
        dispatcher = EventDispatcher(make_config(watch_changed=False), SizeTracker())

        assert dispatcher.dispatch(FileEvent(EventType.CHANGED, path=target)) == []
        assert len(dispatcher.tracker) == 0

    def test_created_and_deleted(self, make_config: ConfigFactory, watch_folder: Path) -> None:
        path = watch_folder / "a.txt"
        enabled = EventDispatcher(make_config(watch_created=True, watch_deleted=True), SizeTracker())
        disabled = EventDispatcher(make_config(), SizeTracker())

        assert enabled.dispatch(FileEvent(EventType.CREATED, path=path)) == [f"Created: {path}"]
        assert enabled.dispatch(FileEvent(EventType.DELETED, path=path)) == [f"Deleted: {path}"]
        assert disabled.dispatch(FileEvent(EventType.CREATED, path=path)) == []
        assert disabled.dispatch(FileEvent(EventType.DELETED, path=path)) == []

    def test_rename_logs_both_paths_without_touching_tracker(
        self, make_config: ConfigFactory, watch_folder: Path
    ) -> None:
        old, new = watch_folder / "old.txt", watch_folder / "new.txt"
        new.write_text("content")
        dispatcher = EventDispatcher(make_config(watch_renamed=True), SizeTracker())

        lines = dispatcher.dispatch(FileEvent(EventType.RENAMED, path=new, previous_path=old))

        assert lines == ["Renamed:", f"    Old: {old}", f"    New: {new}"]
        assert len(dispatcher.tracker) == 0

    def test_filter_excludes_other_names(self, make_config: ConfigFactory, watch_folder: Path) -> None:
        target = watch_folder / "notes.txt"
        target.write_text("hello")
        dispatcher = EventDispatcher(make_config(filter="*.log", watch_created=True), SizeTracker())

        assert dispatcher.dispatch(FileEvent(EventType.CHANGED, path=target)) == []
        assert dispatcher.dispatch(FileEvent(EventType.CREATED, path=target)) == []

    def test_rename_matches_on_either_name(self, make_config: ConfigFactory, watch_folder: Path) -> None:
        dispatcher = EventDispatcher(make_config(filter="*.part", watch_renamed=True), SizeTracker())
        event = FileEvent(
            EventType.RENAMED,
            path=watch_folder / "movie.mkv",
            previous_path=watch_folder / "movie.mkv.part",
        )

        assert len(dispatcher.dispatch(event)) == 3

    def test_errors_are_always_reported(self, make_config: ConfigFactory) -> None:
        dispatcher = EventDispatcher(make_config(watch_changed=False), SizeTracker())

        lines = dispatcher.dispatch(ErrorEvent(OSError("queue overflow")))

        assert lines[0] == "Message: queue overflow"

    def test_rename_without_previous_path_is_rejected(self, make_config: ConfigFactory, watch_folder: Path) -> None:
        dispatcher = EventDispatcher(make_config(watch_renamed=True), SizeTracker())

        with pytest.raises(ValueError):
            dispatcher.dispatch(FileEvent(EventType.RENAMED, path=watch_folder / "new.txt"))


class TestMatchesFilter:
    def test_match_all_patterns_include_names_without_extension(self) -> None:
        assert matches_filter(Path("/x/Makefile"), "*.*")
        assert matches_filter(Path("/x/Makefile"), "*")

    def test_glob_on_file_name(self) -> None:
        assert matches_filter(Path("/x/build/out.log"), "*.log")
        assert not matches_filter(Path("/x/build/out.log"), "build*")


class _ExplodingTracker(SizeTracker):
    def observe_file(self, path: Path) -> Optional[SizeObservation]:
        raise ValueError("stat exploded")


class TestHandler:
    def test_forwards_lines_to_sink(self, make_config: ConfigFactory, watch_folder: Path) -> None:
        target = watch_folder / "a.bin"
        target.write_bytes(b"x" * 10)
        received: List[List[str]] = []
        handler = SizeWatchHandler(EventDispatcher(make_config(), SizeTracker()), received.append)

        handler.dispatch(FileModifiedEvent(str(target)))
        handler.dispatch(FileClosedEvent(str(target)))

        assert len(received) == 1
        assert "New size of" in received[0][0]
        assert handler.events_received == 2
        assert handler.errors_reported == 0

    def test_handler_failure_is_reported_not_raised(self, make_config: ConfigFactory, watch_folder: Path) -> None:
        target = watch_folder / "a.bin"
        target.write_bytes(b"x")
        received: List[List[str]] = []
        handler = SizeWatchHandler(EventDispatcher(make_config(), _ExplodingTracker()), received.append)

        handler.dispatch(FileModifiedEvent(str(target)))

        assert handler.errors_reported == 1
        assert received[0][0] == "Message: stat exploded"
        assert received[0][1] == "Stacktrace:"

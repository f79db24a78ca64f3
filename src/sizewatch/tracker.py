"""Running maximum of file sizes observed through change notifications."""
from __future__ import annotations

import logging
import os
import stat
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SizeObservation:
    """A size the tracker accepted as a new maximum for ``path``."""

    path: Path
    size: int
    previous_size: Optional[int] = None
    observed_at: datetime = field(default_factory=datetime.now)

    @property
    def is_new(self) -> bool:
        return self.previous_size is None


class SizeTracker:
    """Maps each path to the largest size seen for it during one run.

    A path is recorded on its first observation. Later observations only
    replace the stored value when strictly larger, so values never decrease.
    """

    def __init__(self) -> None:
        self._sizes: Dict[Path, int] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sizes)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._sizes

    def observe(self, path: Path, size: int) -> Optional[SizeObservation]:
        """Record ``size`` for ``path`` and return an observation if it is a new maximum."""

        with self._lock:
            previous = self._sizes.get(path)
            if previous is not None and size <= previous:
                return None
            self._sizes[path] = size
        return SizeObservation(path=path, size=size, previous_size=previous)

    def observe_file(self, path: Path) -> Optional[SizeObservation]:
        """Observe the current on-disk size of ``path``.

        Vanished or unreadable files are skipped, and so are files whose last
        inode change touched metadata only (``chmod``, ``utime``).
        """

        st = _stat_regular(path)
        if st is None:
            logger.debug("Skipping %s; file is gone or unreadable", path)
            return None
        if _metadata_changed_last(st):
            logger.debug("Skipping %s; only its attributes changed", path)
            return None
        return self.observe(path, st.st_size)

    def snapshot(self) -> Dict[Path, int]:
        with self._lock:
            return dict(self._sizes)


def current_size(path: Path) -> Optional[int]:
    """Return the size of the regular file at ``path`` or ``None`` if it cannot be read."""

    st = _stat_regular(path)
    return None if st is None else st.st_size


def _stat_regular(path: Path) -> Optional[os.stat_result]:
    try:
        st = os.stat(path)
    except OSError:
        return None
    if not stat.S_ISREG(st.st_mode):
        return None
    return st


def _metadata_changed_last(st: os.stat_result) -> bool:
    # inotify reports IN_ATTRIB as a modification. A content write stamps mtime
    # and ctime with the same instant; a later metadata-only change moves ctime alone.
    if not sys.platform.startswith("linux"):
        return False
    return st.st_ctime_ns != st.st_mtime_ns

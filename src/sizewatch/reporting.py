"""Text formatting for the watcher's console output."""
from __future__ import annotations

import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

from .tracker import SizeObservation

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"

INITIAL_SIZES_HEADER = "# Initial File Sizes"
MAXIMUM_SIZES_HEADER = "# Maximum File Sizes"
NO_FILES = "No files."
NO_CHANGES = "No changes."


@dataclass(frozen=True)
class SizeBreakdown:
    """A byte count expressed in B, kB, MB and GB.

    Each unit is the previous one divided by 1024 with floor division, so
    1500 bytes is 1 kB, 0 MB and 0 GB.
    """

    b: int
    kb: int
    mb: int
    gb: int

    @classmethod
    def from_bytes(cls, size: int) -> "SizeBreakdown":
        kb = size // 1024
        mb = kb // 1024
        gb = mb // 1024
        return cls(b=size, kb=kb, mb=mb, gb=gb)

    def __str__(self) -> str:
        return f"{self.b} B, {self.kb} kB, {self.mb} MB, {self.gb} GB"


def format_observation(observation: SizeObservation) -> str:
    timestamp = observation.observed_at.strftime(TIMESTAMP_FORMAT)
    breakdown = SizeBreakdown.from_bytes(observation.size)
    if observation.is_new:
        return f"{timestamp} New size of {observation.path}: {breakdown}"
    return f"{timestamp} Changed: {observation.path}; Size: {breakdown}"


def format_created(path: Path) -> str:
    return f"Created: {path}"


def format_deleted(path: Path) -> str:
    return f"Deleted: {path}"


def format_renamed(old_path: Path, new_path: Path) -> List[str]:
    return ["Renamed:", f"    Old: {old_path}", f"    New: {new_path}"]


def format_error(error: BaseException) -> List[str]:
    """Describe ``error`` and each underlying cause, outermost first."""

    lines: List[str] = []
    current: Optional[BaseException] = error
    seen = set()
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        lines.append(f"Message: {current}")
        lines.append("Stacktrace:")
        lines.append("".join(traceback.format_tb(current.__traceback__)).rstrip("\n"))
        lines.append("")
        current = _underlying_cause(current)
    return lines


def format_size_table(sizes: Mapping[Path, int]) -> List[str]:
    if not sizes:
        return [NO_FILES]
    return [f"{path}: {SizeBreakdown.from_bytes(size)}" for path, size in sizes.items()]


def format_initial_sizes(sizes: Mapping[Path, int]) -> List[str]:
    return [INITIAL_SIZES_HEADER, *format_size_table(sizes)]


def format_maximum_sizes(sizes: Mapping[Path, int]) -> List[str]:
    if not sizes:
        return [NO_CHANGES]
    return [MAXIMUM_SIZES_HEADER, *format_size_table(sizes)]


def _underlying_cause(error: BaseException) -> Optional[BaseException]:
    if error.__cause__ is not None:
        return error.__cause__
    if error.__suppress_context__:
        return None
    return error.__context__

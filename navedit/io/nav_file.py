"""Line-oriented navigation text files and the edit-state sidecar.

Each record is one line::

    YYYY MM DD HH MM SS.UUUUUU epoch lon lat heading speed draft roll pitch heave

Lines are written with CRLF endings. Blank lines and lines starting with
``#`` are skipped on read; fields after latitude are optional and read as 0.
"""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import IO, Protocol

from navedit.model.fix import NavRecord

logger = logging.getLogger(__name__)

SIDECAR_SUFFIX = ".nve"
_MIN_FIELDS = 9
_OPTIONAL_FIELDS = 6


class BackingStoreError(OSError):
    """Raised when a record source or sink cannot be opened, read or written."""


class NavFormatError(ValueError):
    """Raised when a navigation text line cannot be parsed."""


class RecordSource(Protocol):
    def read_next(self) -> NavRecord | None: ...

    def close(self) -> None: ...


class RecordSink(Protocol):
    def write(self, record: NavRecord) -> None: ...

    def close(self) -> None: ...


def parse_nav_line(line: str) -> NavRecord:
    fields = line.split()
    if len(fields) < _MIN_FIELDS:
        raise NavFormatError(
            f"expected at least {_MIN_FIELDS} fields, found {len(fields)}: {line.strip()!r}"
        )
    try:
        year, month, day, hour, minute = (int(value) for value in fields[:5])
        second_text, _, usec_text = fields[5].partition(".")
        second = int(second_text)
        usec = int(usec_text.ljust(6, "0")[:6]) if usec_text else 0
        numbers = [float(value) for value in fields[6:]]
    except ValueError as exc:
        raise NavFormatError(f"invalid navigation line {line.strip()!r}: {exc}") from exc

    numbers.extend([0.0] * (3 + _OPTIONAL_FIELDS - len(numbers)))
    time_d, lon, lat, heading, speed, draft, roll, pitch, heave = numbers[:9]
    return NavRecord(
        time_i=(year, month, day, hour, minute, second, usec),
        time_d=time_d,
        lon=lon,
        lat=lat,
        heading=heading,
        speed=speed,
        draft=draft,
        roll=roll,
        pitch=pitch,
        heave=heave,
    )


def format_nav_line(record: NavRecord) -> str:
    year, month, day, hour, minute, second, usec = record.time_i
    return (
        f"{year:04d} {month:02d} {day:02d} {hour:02d} {minute:02d} {second:02d}.{usec:06d} "
        f"{record.time_d:16.6f} {record.lon:.10f} {record.lat:.10f} "
        f"{record.heading:.3f} {record.speed:.3f} {record.draft:.4f} "
        f"{record.roll:.3f} {record.pitch:.3f} {record.heave:.4f}\r\n"
    )


class NavTextSource:
    """Reads :class:`NavRecord` values one line at a time."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._line_number = 0
        try:
            self._handle: IO[str] | None = self.path.open("r", encoding="ascii")
        except OSError as exc:
            raise BackingStoreError(f"Unable to open input file {self.path}: {exc}") from exc

    def read_next(self) -> NavRecord | None:
        if self._handle is None:
            return None
        while True:
            try:
                line = self._handle.readline()
            except (OSError, UnicodeDecodeError) as exc:
                raise BackingStoreError(f"Unable to read {self.path}: {exc}") from exc
            if not line:
                return None
            self._line_number += 1
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            try:
                return parse_nav_line(stripped)
            except NavFormatError as exc:
                raise BackingStoreError(
                    f"{self.path}:{self._line_number}: {exc}"
                ) from exc

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None


class NavTextSink:
    """Writes :class:`NavRecord` values as CRLF-terminated text lines."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.records_written = 0
        try:
            self._handle: IO[str] | None = self.path.open(
                "w", encoding="ascii", newline=""
            )
        except OSError as exc:
            raise BackingStoreError(f"Unable to open output file {self.path}: {exc}") from exc

    def write(self, record: NavRecord) -> None:
        if self._handle is None:
            raise BackingStoreError(f"Output file {self.path} is closed")
        try:
            self._handle.write(format_nav_line(record))
        except OSError as exc:
            raise BackingStoreError(f"Unable to write {self.path}: {exc}") from exc
        self.records_written += 1

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None


def sidecar_path(path: Path | str) -> Path:
    path = Path(path)
    return path.with_name(path.name + SIDECAR_SUFFIX)


def has_previous_edits(path: Path | str) -> bool:
    """Return True when an edit-state sidecar exists for ``path``."""

    return sidecar_path(path).is_file()


def open_nav_files(
    path: Path | str, use_previous: bool = False, output: bool = True
) -> tuple[NavTextSource, NavTextSink | None]:
    """Open the record source and optional sidecar sink for ``path``.

    When resuming previous edits with output enabled the sidecar is copied to
    a temporary file first so a fresh sidecar can be written while reading.
    """

    path = Path(path)
    sidecar = sidecar_path(path)
    if use_previous and output:
        source_path = sidecar.with_name(sidecar.name + ".tmp")
        try:
            shutil.copyfile(sidecar, source_path)
        except OSError as exc:
            raise BackingStoreError(
                f"Unable to copy previous edits {sidecar} to {source_path}: {exc}"
            ) from exc
        logger.info("Resuming previous edits from %s", source_path)
    elif use_previous:
        source_path = sidecar
        logger.info("Browsing previous edits in %s", source_path)
    else:
        source_path = path

    source = NavTextSource(source_path)
    sink: NavTextSink | None = None
    if output:
        try:
            sink = NavTextSink(sidecar)
        except BackingStoreError:
            source.close()
            raise
        logger.info("Navigation edits will be written to %s", sidecar)
    return source, sink

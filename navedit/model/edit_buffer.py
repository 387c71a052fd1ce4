"""Bounded in-memory window of navigation fixes backed by a record source."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Iterator

from navedit.io.nav_file import RecordSink, RecordSource
from navedit.model.fix import Fix

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50000
PROGRESS_INTERVAL = 250

MessageCallback = Callable[[str | None], None]


class EditBuffer:
    """Ordered fixes with load/flush transitions and record numbering.

    The global record number of the fix at index ``i`` is always
    ``i + flushed_total``; flushing shifts the retained tail to the front and
    renumbers it so the relation keeps holding across load/flush cycles.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._fixes: list[Fix] = []
        self.current = 0
        self.loaded_total = 0
        self.flushed_total = 0
        self.file_start_time: float | None = None
        self.timestamp_problem = False

    def __len__(self) -> int:
        return len(self._fixes)

    def __iter__(self) -> Iterator[Fix]:
        return iter(self._fixes)

    def __getitem__(self, index: int) -> Fix:
        return self._fixes[index]

    @property
    def fixes(self) -> list[Fix]:
        return self._fixes

    @property
    def is_empty(self) -> bool:
        return not self._fixes

    @property
    def is_full(self) -> bool:
        return len(self._fixes) >= self.capacity

    def record_number(self, index: int) -> int:
        return index + self.flushed_total

    @property
    def current_record(self) -> int:
        return self.record_number(self.current)

    def reset(self) -> None:
        self._fixes.clear()
        self.current = 0
        self.loaded_total = 0
        self.flushed_total = 0
        self.file_start_time = None
        self.timestamp_problem = False

    def load(
        self,
        source: RecordSource,
        offset: tuple[float, float] = (0.0, 0.0),
        message: MessageCallback | None = None,
    ) -> int:
        """Append fixes from ``source`` until full or exhausted.

        Returns the number of fixes loaded; 0 means the source is exhausted.
        ``BackingStoreError`` from the source propagates unchanged.
        """

        fixes = self._fixes
        first_new = len(fixes)
        nload = 0
        if message is not None:
            message(f"{nload} records loaded so far...")
        while len(fixes) < self.capacity:
            record = source.read_next()
            if record is None:
                break
            if self.file_start_time is None:
                self.file_start_time = record.time_d
            tint = record.time_d - fixes[-1].time_d if fixes else 0.0
            fixes.append(
                Fix.from_record(
                    record,
                    index=len(fixes),
                    file_start_time=self.file_start_time,
                    offset=offset,
                    tint=tint,
                )
            )
            nload += 1
            if message is not None and nload % PROGRESS_INTERVAL == 0:
                message(f"{nload} records loaded so far...")

        if first_new == 0 and len(fixes) > 1:
            first = fixes[0]
            first.tint = fixes[1].tint
            first.original = replace(first.original, tint=fixes[1].original.tint)

        self.loaded_total += nload
        self.timestamp_problem = any(
            later.time_d <= earlier.time_d for earlier, later in zip(fixes, fixes[1:])
        )
        self.current = 0
        logger.info(
            "%d records loaded, %d records now in buffer, current global record %d",
            nload,
            len(fixes),
            self.current_record,
        )
        if self.timestamp_problem:
            logger.warning("Duplicate or reverse order time stamps detected")
        if message is not None:
            message(None)
        return nload

    def flush(self, hold: int = 0, sink: RecordSink | None = None) -> int:
        """Write all but the last ``hold`` fixes to ``sink`` and drop them.

        Without a sink the fixes are discarded. Returns the number removed.
        """

        fixes = self._fixes
        ndump = max(0, len(fixes) - max(0, hold))
        if sink is not None:
            for fix in fixes[:ndump]:
                sink.write(fix.to_record())
        del fixes[:ndump]
        for fix in fixes:
            fix.id -= ndump
        self.flushed_total += ndump
        self.current = min(max(self.current - ndump, 0), max(len(fixes) - 1, 0))
        logger.info(
            "%d records %s, %d records remain in buffer",
            ndump,
            "written" if sink is not None else "discarded",
            len(fixes),
        )
        return ndump

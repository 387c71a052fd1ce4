import pytest

from navedit.io.nav_file import BackingStoreError
from navedit.model.edit_buffer import EditBuffer
from navedit.model.fix import NavRecord
from navedit.timeutils import calendar_from_epoch

_T0 = 1_300_000_000.0


class _ListSource:
    def __init__(self, records, fail_at: int | None = None) -> None:
        self._records = list(records)
        self._fail_at = fail_at
        self.read = 0

    def read_next(self):
        if self._fail_at is not None and self.read == self._fail_at:
            raise BackingStoreError("disk went away")
        if self.read >= len(self._records):
            return None
        record = self._records[self.read]
        self.read += 1
        return record

    def close(self) -> None:
        pass


class _ListSink:
    def __init__(self) -> None:
        self.records: list[NavRecord] = []

    def write(self, record: NavRecord) -> None:
        self.records.append(record)

    def close(self) -> None:
        pass


def _make_records(times: list[float]) -> list[NavRecord]:
    return [
        NavRecord(
            time_i=calendar_from_epoch(_T0 + t),
            time_d=_T0 + t,
            lon=10.0 + 0.001 * i,
            lat=50.0,
            heading=90.0,
            speed=5.0,
            draft=3.0,
        )
        for i, t in enumerate(times)
    ]


def test_load_stops_at_capacity_and_sets_initial_state():
    buffer = EditBuffer(capacity=3)
    loaded = buffer.load(_ListSource(_make_records([0, 2, 4, 6, 8])), offset=(0.5, -0.25))

    assert loaded == 3
    assert buffer.is_full
    assert [fix.id for fix in buffer] == [0, 1, 2]
    assert [fix.file_time for fix in buffer] == [0.0, 2.0, 4.0]
    assert buffer[1].lon == pytest.approx(10.501)
    assert buffer[1].original.lon == pytest.approx(10.001)
    assert (buffer[1].lon_model, buffer[1].lat_model) == (buffer[1].lon, buffer[1].lat)
    assert not any(fix.flagged or fix.selected for fix in buffer)


def test_first_fix_takes_interval_of_second():
    buffer = EditBuffer()
    buffer.load(_ListSource(_make_records([0, 3, 4])))
    assert [fix.tint for fix in buffer] == [3.0, 3.0, 1.0]
    assert buffer[0].original.tint == 3.0


def test_load_reports_progress_and_idle():
    messages = []
    buffer = EditBuffer()
    buffer.load(_ListSource(_make_records(list(range(300)))), message=messages.append)

    assert messages == [
        "0 records loaded so far...",
        "250 records loaded so far...",
        None,
    ]


def test_exhausted_source_loads_nothing():
    buffer = EditBuffer()
    source = _ListSource(_make_records([0, 1]))
    buffer.load(source)
    assert buffer.load(source) == 0
    assert len(buffer) == 2


def test_flush_keeps_tail_and_record_numbers():
    buffer = EditBuffer(capacity=4)
    source = _ListSource(_make_records([0, 1, 2, 3, 4, 5, 6]))
    sink = _ListSink()
    buffer.load(source)
    buffer.current = 3

    assert buffer.flush(hold=1, sink=sink) == 3
    assert [r.time_d - _T0 for r in sink.records] == [0.0, 1.0, 2.0]
    assert len(buffer) == 1
    assert buffer[0].id == 0
    assert buffer.record_number(0) == 3
    assert buffer.current == 0

    buffer.load(source)
    assert [buffer.record_number(i) for i in range(len(buffer))] == [3, 4, 5, 6]
    assert [fix.file_time for fix in buffer] == [3.0, 4.0, 5.0, 6.0]
    assert buffer.loaded_total == 7


def test_flush_without_sink_discards():
    buffer = EditBuffer()
    buffer.load(_ListSource(_make_records([0, 1, 2])))
    assert buffer.flush() == 3
    assert buffer.is_empty
    assert buffer.flushed_total == 3


def test_flush_hold_larger_than_buffer_keeps_everything():
    buffer = EditBuffer()
    buffer.load(_ListSource(_make_records([0, 1])))
    assert buffer.flush(hold=10, sink=_ListSink()) == 0
    assert len(buffer) == 2


def test_timestamp_problem_detected_for_repeats():
    buffer = EditBuffer()
    buffer.load(_ListSource(_make_records([0, 1, 1, 2])))
    assert buffer.timestamp_problem

    clean = EditBuffer()
    clean.load(_ListSource(_make_records([0, 1, 2])))
    assert not clean.timestamp_problem


def test_source_failure_propagates():
    buffer = EditBuffer()
    with pytest.raises(BackingStoreError):
        buffer.load(_ListSource(_make_records([0, 1, 2]), fail_at=1))


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        EditBuffer(capacity=0)

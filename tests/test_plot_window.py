import pytest

from navedit.model.edit_buffer import EditBuffer
from navedit.model.fix import Channel, NavRecord
from navedit.model.plot_window import PickMode, PlotWindow
from navedit.timeutils import calendar_from_epoch

_T0 = 1_300_000_000.0


class _ListSource:
    def __init__(self, records) -> None:
        self._records = iter(records)

    def read_next(self):
        return next(self._records, None)

    def close(self) -> None:
        pass


def _make_buffer(count: int = 20, spacing: float = 10.0) -> EditBuffer:
    records = [
        NavRecord(
            time_i=calendar_from_epoch(_T0 + i * spacing),
            time_d=_T0 + i * spacing,
            lon=10.0 + 0.001 * i,
            lat=50.0,
            heading=90.0,
            speed=5.0 + (i % 3),
            draft=3.0,
        )
        for i in range(count)
    ]
    buffer = EditBuffer()
    buffer.load(_ListSource(records))
    return buffer


def _make_window(buffer: EditBuffer, show_size: float = 50.0) -> PlotWindow:
    window = PlotWindow(show_size=show_size, step_size=40.0)
    window.update(buffer)
    return window


def test_update_counts_fixes_inside_window():
    buffer = _make_buffer()
    window = _make_window(buffer)

    assert (window.start_time, window.end_time) == (0.0, 50.0)
    assert window.count == 6
    assert [frame.channel for frame in window.frames] == [
        Channel.TINT,
        Channel.LON,
        Channel.LAT,
        Channel.SPEED,
        Channel.HEADING,
        Channel.DRAFT,
    ]
    assert all(Channel.LON in fix.screen for fix in window.visible_fixes(buffer))
    assert not buffer[10].screen


def test_extents_are_stable_across_updates():
    buffer = _make_buffer()
    window = _make_window(buffer)
    first = dict(window.extents)
    window.update(buffer)
    assert window.extents == first


def test_position_plots_share_span():
    buffer = _make_buffer()
    window = _make_window(buffer)
    lon_low, lon_high = window.extents[Channel.LON]
    lat_low, lat_high = window.extents[Channel.LAT]

    assert lon_high - lon_low == pytest.approx(lat_high - lat_low)
    assert lat_low < 50.0 < lat_high


def test_minimum_spans_and_speed_floor():
    buffer = _make_buffer(count=2)
    window = _make_window(buffer)
    draft_low, draft_high = window.extents[Channel.DRAFT]

    assert draft_high - draft_low == pytest.approx(0.1)
    assert window.extents[Channel.SPEED][0] == 0.0
    assert window.extents[Channel.SPEED][1] >= 10.0


def test_show_all_displays_whole_buffer():
    buffer = _make_buffer()
    window = _make_window(buffer)
    buffer.current = 5

    assert window.show_all(buffer)
    assert buffer.current == 0
    assert window.count == len(buffer)


def test_step_forward_back_and_ends():
    buffer = _make_buffer()
    window = _make_window(buffer)

    assert window.step(buffer, 40.0)
    assert buffer.current == 4
    assert window.step(buffer, -40.0)
    assert buffer.current == 0
    assert window.go_end(buffer)
    assert buffer.current == 14
    assert window.count == 6
    assert not window.go_end(buffer)
    assert window.go_start(buffer)
    assert buffer.current == 0


def test_step_on_empty_buffer_fails():
    assert not PlotWindow().step(EditBuffer(), 10.0)


def test_moving_window_clears_selection_outside_it():
    buffer = _make_buffer()
    window = _make_window(buffer)
    buffer[1].selected.add(Channel.LON)

    window.step(buffer, 40.0)
    assert not buffer[1].selected


def test_pick_toggles_nearest_fix():
    buffer = _make_buffer()
    window = _make_window(buffer)
    x, y = buffer[2].screen[Channel.LON]

    assert window.hit_test(buffer, x + 1, y, PickMode.PICK) == [buffer[2]]
    assert buffer[2].is_selected(Channel.LON)
    window.hit_test(buffer, x, y, PickMode.PICK)
    assert not buffer[2].is_selected(Channel.LON)


def test_select_and_deselect_use_radius():
    buffer = _make_buffer()
    window = _make_window(buffer)
    x, y = buffer[3].screen[Channel.SPEED]

    affected = window.hit_test(buffer, x, y, PickMode.SELECT)
    assert buffer[3] in affected
    assert all(
        abs(fix.screen[Channel.SPEED][0] - x) <= window.select_radius for fix in affected
    )
    window.hit_test(buffer, x, y, PickMode.DESELECT)
    assert not buffer[3].is_selected(Channel.SPEED)


def test_interaction_clears_other_channels():
    buffer = _make_buffer()
    window = _make_window(buffer)
    buffer[0].selected.add(Channel.TINT)
    x, y = buffer[1].screen[Channel.LAT]

    window.hit_test(buffer, x, y, PickMode.PICK)
    assert buffer[0].selected == set()
    assert buffer[1].selected == {Channel.LAT}


def test_select_all_and_deselect_all_modes():
    buffer = _make_buffer()
    window = _make_window(buffer)
    x, y = buffer[0].screen[Channel.DRAFT]

    affected = window.hit_test(buffer, x, y, PickMode.SELECT_ALL)
    assert len(affected) == window.count
    assert all(fix.is_selected(Channel.DRAFT) for fix in window.visible_fixes(buffer))

    window.hit_test(buffer, 0, 0, PickMode.DESELECT_ALL)
    assert not any(fix.selected for fix in buffer)


def test_click_outside_plots_does_nothing():
    buffer = _make_buffer()
    window = _make_window(buffer)
    assert window.hit_test(buffer, -5, -5, PickMode.PICK) == []


def test_deselect_all_reports_whether_anything_cleared():
    buffer = _make_buffer()
    window = _make_window(buffer)
    assert not window.deselect_all(buffer, Channel.LON)
    buffer[0].selected.add(Channel.LON)
    assert window.deselect_all(buffer, Channel.LON)


def test_interval_zoom():
    buffer = _make_buffer()
    window = _make_window(buffer)
    window.show_all(buffer)
    frame = window.frames[0]
    left = frame.ixmin + (frame.ixmax - frame.ixmin) // 2
    right = frame.ixmax - 10

    assert not window.set_interval(buffer, 0, 2)
    assert window.set_interval(buffer, right, 0)
    assert window.set_interval(buffer, left, 1)
    assert window.set_interval(buffer, 0, 2)

    t_left, t_right = frame.time_at(left), frame.time_at(right)
    assert window.show_size == pytest.approx(t_right - t_left)
    assert buffer[buffer.current].file_time >= t_left
    assert buffer[buffer.current - 1].file_time < t_left
    assert window.set_interval(buffer, 0, 3)
    assert not window.set_interval(buffer, 0, 2)


def test_resize_changes_frame_geometry():
    buffer = _make_buffer()
    window = _make_window(buffer)
    window.resize(1000, 400)
    window.update(buffer)
    assert window.frames[0].ixmax == 1000 - 50
    assert window.frames[1].iymax == 400 + 400 // 6


def test_gesture_clears_selection_in_hidden_plots():
    buffer = _make_buffer()
    window = _make_window(buffer)
    x, y = buffer[1].screen[Channel.LON]
    window.hit_test(buffer, x, y, PickMode.PICK)
    assert buffer[1].selected == {Channel.LON}

    window.set_channel_enabled(Channel.LON, False)
    window.update(buffer)
    x, y = buffer[1].screen[Channel.LAT]
    window.hit_test(buffer, x, y, PickMode.PICK)
    assert buffer[1].selected == {Channel.LAT}


def test_select_channel_clears_other_channels():
    buffer = _make_buffer()
    window = _make_window(buffer)
    buffer[0].selected.add(Channel.SPEED)
    buffer[12].selected.add(Channel.SPEED)

    window.select_channel(buffer, Channel.HEADING)
    assert all(fix.selected == {Channel.HEADING} for fix in window.visible_fixes(buffer))
    assert buffer[12].selected == set()


def test_zero_plot_size_is_clamped():
    window = PlotWindow(width=0, height=-3)
    assert (window.width, window.height) == (1, 1)

import pytest

from navedit.model import edit_operations as ops
from navedit.model.edit_operations import NavChange
from navedit.model.fix import Channel, Fix, NavRecord
from navedit.timeutils import calendar_from_epoch

_T0 = 1_300_000_000.0


def _make_fixes(times, lons=None, speeds=None) -> list[Fix]:
    lons = lons or [10.0 + 0.001 * i for i in range(len(times))]
    speeds = speeds or [5.0] * len(times)
    fixes = []
    for index, (t, lon, speed) in enumerate(zip(times, lons, speeds)):
        record = NavRecord(
            time_i=calendar_from_epoch(_T0 + t),
            time_d=_T0 + t,
            lon=lon,
            lat=50.0,
            heading=90.0,
            speed=speed,
            draft=3.0,
        )
        tint = t - times[index - 1] if index else 0.0
        fixes.append(Fix.from_record(record, index, _T0, tint=tint))
    return fixes


def _select(fixes, indices, *channels):
    for index in indices:
        fixes[index].selected.update(channels)


def test_interpolate_between_unselected_neighbours_by_time():
    fixes = _make_fixes([0, 1, 3, 4], lons=[10.0, 99.0, 99.0, 10.4])
    _select(fixes, [1, 2], Channel.LON)

    assert ops.interpolate(fixes) == {NavChange.POSITION}
    assert [fix.lon for fix in fixes] == pytest.approx([10.0, 10.1, 10.3, 10.4])
    assert not any(fix.flagged for fix in fixes)


def test_interpolate_holds_single_neighbour_value():
    fixes = _make_fixes([0, 1, 2], speeds=[4.0, 7.0, 9.0])
    _select(fixes, [1, 2], Channel.SPEED)

    assert ops.interpolate(fixes) == {NavChange.MOTION}
    assert [fix.speed for fix in fixes] == [4.0, 4.0, 4.0]


def test_interpolate_with_everything_selected_changes_nothing():
    fixes = _make_fixes([0, 1, 2])
    _select(fixes, [0, 1, 2], Channel.LON)
    assert ops.interpolate(fixes) == set()


def test_interpolate_times_by_index_and_refreshes_intervals():
    fixes = _make_fixes([0, 1, 1, 1, 4])
    _select(fixes, [1, 2, 3], Channel.TINT)

    assert ops.interpolate(fixes, _T0) == {NavChange.TIME}
    assert [fix.file_time for fix in fixes] == pytest.approx([0, 1, 2, 3, 4])
    assert [fix.tint for fix in fixes[1:]] == pytest.approx([1, 1, 1, 1])
    assert fixes[2].time_i == calendar_from_epoch(_T0 + 2)


def test_interpolate_trailing_times_keep_anchor_interval():
    fixes = _make_fixes([0, 2, 2, 2])
    _select(fixes, [2, 3], Channel.TINT)

    ops.interpolate(fixes, _T0)
    assert [fix.file_time for fix in fixes] == pytest.approx([0, 2, 4, 6])


def test_interpolate_is_idempotent():
    fixes = _make_fixes([0, 1, 2, 3, 5], lons=[10.0, 11.0, 9.0, 12.0, 10.5])
    _select(fixes, [1, 2, 3], Channel.LON)

    ops.interpolate(fixes)
    first = [fix.lon for fix in fixes]
    ops.interpolate(fixes)
    assert [fix.lon for fix in fixes] == pytest.approx(first)


def test_revert_restores_originals_of_selected_channels_only():
    fixes = _make_fixes([0, 1, 2])
    fixes[1].lon = 20.0
    fixes[1].speed = 1.0
    _select(fixes, [1], Channel.LON)

    assert ops.revert(fixes) == {NavChange.POSITION}
    assert fixes[1].lon == fixes[1].original.lon
    assert fixes[1].speed == 1.0


def test_revert_undoes_interpolated_time():
    fixes = _make_fixes([0, 1, 1, 3])
    _select(fixes, [2], Channel.TINT)
    ops.interpolate(fixes, _T0)
    assert fixes[2].file_time == pytest.approx(2.0)

    assert ops.revert(fixes, _T0) == {NavChange.TIME}
    assert fixes[2].file_time == pytest.approx(1.0)
    assert fixes[2].tint == pytest.approx(0.0)
    assert fixes[3].tint == pytest.approx(2.0)


def test_flag_and_unflag_need_position_selection():
    fixes = _make_fixes([0, 1, 2])
    _select(fixes, [0], Channel.SPEED)
    assert ops.flag_positions(fixes) == set()

    _select(fixes, [1], Channel.LAT)
    assert ops.flag_positions(fixes) == {NavChange.FLAG}
    assert [fix.flagged for fix in fixes] == [False, True, False]
    assert ops.unflag_positions(fixes) == {NavChange.FLAG}
    assert not fixes[1].flagged


def test_apply_offset_moves_every_fix():
    fixes = _make_fixes([0, 1])
    assert ops.apply_offset(fixes, 0.0, 0.0) == set()
    assert ops.apply_offset(fixes, 0.5, -1.0) == {NavChange.POSITION}
    assert [fix.lon for fix in fixes] == pytest.approx([10.5, 10.501])
    assert [fix.lat for fix in fixes] == pytest.approx([49.0, 49.0])


def test_fix_time_spreads_repeated_times():
    fixes = _make_fixes([0, 4, 4, 4, 8, 7])

    assert ops.fix_time(fixes, _T0) == {NavChange.TIME}
    assert [fix.file_time for fix in fixes] == pytest.approx([0, 4, 5.333333, 6.666667, 8, 7])
    assert fixes[4].tint == pytest.approx(8 - 6.666667, abs=1e-5)


def test_fix_time_leaves_increasing_times_alone():
    assert ops.fix_time(_make_fixes([0, 1, 2])) == set()


def test_interpolate_repeats_fills_runs_of_equal_values():
    fixes = _make_fixes([0, 1, 2, 3, 4], lons=[10.0, 10.1, 10.1, 10.1, 10.4])
    _select(fixes, range(5), Channel.LON)

    assert ops.interpolate_repeats(fixes) == {NavChange.POSITION}
    assert [fix.lon for fix in fixes] == pytest.approx([10.0, 10.1, 10.2, 10.3, 10.4])


def test_interpolate_repeats_time_channel_by_index():
    fixes = _make_fixes([0, 2, 2, 2, 5])
    _select(fixes, range(5), Channel.TINT)

    assert ops.interpolate_repeats(fixes, _T0) == {NavChange.TIME}
    assert [fix.file_time for fix in fixes] == pytest.approx([0, 2, 3, 4, 5])


def test_use_made_good_values():
    fixes = _make_fixes([0, 1])
    fixes[0].speed_made_good = 12.0
    fixes[1].course_made_good = 45.0
    _select(fixes, [0], Channel.SPEED)
    _select(fixes, [1], Channel.HEADING)

    assert ops.use_speed_made_good(fixes) == {NavChange.MOTION}
    assert ops.use_course_made_good(fixes) == {NavChange.MOTION}
    assert fixes[0].speed == 12.0
    assert fixes[1].heading == 45.0


def test_use_model_position_copies_selected_positions():
    fixes = _make_fixes([0, 1])
    fixes[1].lon_model, fixes[1].lat_model = 11.0, 51.0
    assert ops.use_model_position(fixes) == set()

    _select(fixes, [1], Channel.LON)
    assert ops.use_model_position(fixes) == {NavChange.POSITION}
    assert (fixes[1].lon, fixes[1].lat) == (11.0, 51.0)

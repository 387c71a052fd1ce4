"""Edits applied to the selected channels of resident fixes.

Every function mutates the given fixes in place and returns the set of
:class:`NavChange` kinds it touched; an empty set means nothing was done.
Select flags are only ever set inside the visible window, so scanning the
whole buffer for selected fixes acts on the visible window alone.
"""
from __future__ import annotations

from enum import Enum, auto
from typing import Sequence

from navedit.model.fix import Channel, Fix
from navedit.timeutils import calendar_from_epoch

_VALUE_CHANNELS = (
    Channel.LON,
    Channel.LAT,
    Channel.SPEED,
    Channel.HEADING,
    Channel.DRAFT,
)


class NavChange(Enum):
    TIME = auto()
    POSITION = auto()
    MOTION = auto()
    DEPTH = auto()
    FLAG = auto()


_CHANNEL_CHANGE = {
    Channel.TINT: NavChange.TIME,
    Channel.LON: NavChange.POSITION,
    Channel.LAT: NavChange.POSITION,
    Channel.SPEED: NavChange.MOTION,
    Channel.HEADING: NavChange.MOTION,
    Channel.DRAFT: NavChange.DEPTH,
}


def _set_time(fix: Fix, time_d: float, file_start_time: float) -> None:
    fix.time_d = time_d
    fix.file_time = time_d - file_start_time
    fix.time_i = calendar_from_epoch(time_d)


def _refresh_interval(fixes: Sequence[Fix], index: int) -> None:
    if index > 0:
        fixes[index].tint = fixes[index].time_d - fixes[index - 1].time_d
    elif len(fixes) > 1:
        fixes[0].tint = fixes[1].time_d - fixes[0].time_d
    else:
        fixes[0].tint = 0.0


def _unselected_neighbours(
    fixes: Sequence[Fix], index: int, channel: Channel
) -> tuple[int | None, int | None]:
    before = next(
        (i for i in range(index - 1, -1, -1) if channel not in fixes[i].selected), None
    )
    after = next(
        (i for i in range(index + 1, len(fixes)) if channel not in fixes[i].selected),
        None,
    )
    return before, after


def _interpolate_by_time(
    fixes: Sequence[Fix], index: int, before: int, after: int, channel: Channel
) -> float:
    start, end = fixes[before], fixes[after]
    dtime = end.time_d - start.time_d
    if dtime > 0.0:
        fraction = (fixes[index].time_d - start.time_d) / dtime
    else:
        fraction = 0.5
    return start.value(channel) + (end.value(channel) - start.value(channel)) * fraction


def _anchor_interval(fixes: Sequence[Fix], anchor: int, forward: bool) -> float:
    if forward:
        return fixes[anchor].time_d - fixes[anchor - 1].time_d if anchor > 0 else 0.0
    if anchor + 1 < len(fixes):
        return fixes[anchor + 1].time_d - fixes[anchor].time_d
    return 0.0


def _interpolate_times(fixes: Sequence[Fix], file_start_time: float) -> bool:
    updates: list[tuple[Fix, float]] = []
    for index, fix in enumerate(fixes):
        if Channel.TINT not in fix.selected:
            continue
        before, after = _unselected_neighbours(fixes, index, Channel.TINT)
        if before is not None and after is not None:
            start, end = fixes[before].time_d, fixes[after].time_d
            time_d = start + (end - start) * (index - before) / (after - before)
        elif before is not None:
            time_d = fixes[before].time_d + _anchor_interval(fixes, before, True) * (index - before)
        elif after is not None:
            time_d = fixes[after].time_d - _anchor_interval(fixes, after, False) * (after - index)
        else:
            continue
        updates.append((fix, time_d))

    for fix, time_d in updates:
        _set_time(fix, time_d, file_start_time)
    if updates:
        for index, fix in enumerate(fixes):
            if Channel.TINT in fix.selected or (
                index > 0 and Channel.TINT in fixes[index - 1].selected
            ):
                _refresh_interval(fixes, index)
    return bool(updates)


def interpolate(fixes: Sequence[Fix], file_start_time: float = 0.0) -> set[NavChange]:
    """Replace selected values by interpolation between unselected neighbours.

    Values are interpolated linearly in time (timestamps by index). With a
    single neighbour the neighbour's value is held; with none the value stays.
    """

    changes: set[NavChange] = set()
    if _interpolate_times(fixes, file_start_time):
        changes.add(NavChange.TIME)

    for channel in _VALUE_CHANNELS:
        updates: list[tuple[Fix, float]] = []
        for index, fix in enumerate(fixes):
            if channel not in fix.selected:
                continue
            before, after = _unselected_neighbours(fixes, index, channel)
            if before is not None and after is not None:
                value = _interpolate_by_time(fixes, index, before, after, channel)
            elif before is not None:
                value = fixes[before].value(channel)
            elif after is not None:
                value = fixes[after].value(channel)
            else:
                continue
            updates.append((fix, value))
        for fix, value in updates:
            fix.set_value(channel, value)
        if updates:
            changes.add(_CHANNEL_CHANGE[channel])
    return changes


def _time_value(fix: Fix, channel: Channel) -> float:
    return fix.time_d if channel is Channel.TINT else fix.value(channel)


def interpolate_repeats(fixes: Sequence[Fix], file_start_time: float = 0.0) -> set[NavChange]:
    """Re-interpolate runs of selected values that repeat the preceding value."""

    changes: set[NavChange] = set()
    count = len(fixes)
    for channel in (Channel.TINT, *_VALUE_CHANNELS):
        changed = False
        for index in range(1, count - 1):
            fix = fixes[index]
            repeated = _time_value(fix, channel)
            if channel not in fix.selected or repeated != _time_value(fixes[index - 1], channel):
                continue
            before = index - 1
            after = next(
                (j for j in range(index + 1, count) if _time_value(fixes[j], channel) != repeated),
                None,
            )
            if after is None:
                continue
            for j in range(index, after):
                target = fixes[j]
                if channel not in target.selected:
                    continue
                if channel is Channel.TINT:
                    start, end = fixes[before].time_d, fixes[after].time_d
                    _set_time(
                        target,
                        start + (end - start) * (j - before) / (after - before),
                        file_start_time,
                    )
                else:
                    target.set_value(
                        channel, _interpolate_by_time(fixes, j, before, after, channel)
                    )
                changed = True
        if changed:
            if channel is Channel.TINT:
                for index in range(count):
                    _refresh_interval(fixes, index)
            changes.add(_CHANNEL_CHANGE[channel])
    return changes


def revert(fixes: Sequence[Fix], file_start_time: float = 0.0) -> set[NavChange]:
    """Copy original values back over every selected channel."""

    changes: set[NavChange] = set()
    for index, fix in enumerate(fixes):
        for channel in fix.selected:
            if channel is Channel.TINT:
                _set_time(fix, fix.original.time_d, file_start_time)
                _refresh_interval(fixes, index)
                if index + 1 < len(fixes):
                    _refresh_interval(fixes, index + 1)
            elif channel in _CHANNEL_CHANGE:
                fix.set_value(channel, fix.original_value(channel))
            else:
                continue
            changes.add(_CHANNEL_CHANGE[channel])
    return changes


def _set_position_flags(fixes: Sequence[Fix], flagged: bool) -> set[NavChange]:
    acted = False
    for fix in fixes:
        if fix.position_selected():
            fix.flagged = flagged
            acted = True
    return {NavChange.FLAG} if acted else set()


def flag_positions(fixes: Sequence[Fix]) -> set[NavChange]:
    return _set_position_flags(fixes, True)


def unflag_positions(fixes: Sequence[Fix]) -> set[NavChange]:
    return _set_position_flags(fixes, False)


def apply_offset(fixes: Sequence[Fix], delta_lon: float, delta_lat: float) -> set[NavChange]:
    """Shift every fix's working position, selected or not."""

    if not fixes or (delta_lon == 0.0 and delta_lat == 0.0):
        return set()
    for fix in fixes:
        fix.lon += delta_lon
        fix.lat += delta_lat
    return {NavChange.POSITION}


def fix_time(fixes: Sequence[Fix], file_start_time: float = 0.0) -> set[NavChange]:
    """Re-time fixes whose timestamps fail to increase.

    Each fix later than the last accepted anchor becomes the next anchor, and
    the fixes between two anchors are spaced evenly by index. Trailing fixes
    with no later anchor are left as they are.
    """

    changed = False
    start = 0
    for index in range(1, len(fixes)):
        if fixes[index].time_d <= fixes[start].time_d:
            continue
        if index - start > 1:
            start_time = fixes[start].time_d
            span = fixes[index].time_d - start_time
            for j in range(start + 1, index):
                _set_time(
                    fixes[j], start_time + (j - start) * span / (index - start), file_start_time
                )
            for j in range(start + 1, index + 1):
                _refresh_interval(fixes, j)
            changed = True
        start = index
    return {NavChange.TIME} if changed else set()


def use_model_position(fixes: Sequence[Fix]) -> set[NavChange]:
    """Copy the model position over the working position where lon or lat is selected."""

    acted = False
    for fix in fixes:
        if fix.position_selected():
            fix.lon = fix.lon_model
            fix.lat = fix.lat_model
            acted = True
    return {NavChange.POSITION} if acted else set()


def use_speed_made_good(fixes: Sequence[Fix]) -> set[NavChange]:
    acted = False
    for fix in fixes:
        if Channel.SPEED in fix.selected:
            fix.speed = fix.speed_made_good
            acted = True
    return {NavChange.MOTION} if acted else set()


def use_course_made_good(fixes: Sequence[Fix]) -> set[NavChange]:
    acted = False
    for fix in fixes:
        if Channel.HEADING in fix.selected:
            fix.heading = fix.course_made_good
            acted = True
    return {NavChange.MOTION} if acted else set()

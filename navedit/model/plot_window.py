"""Visible time window, per-channel plot frames and hit-testing."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterable, Sequence

from navedit.model.edit_buffer import EditBuffer
from navedit.model.fix import EDITABLE_CHANNELS, Channel, Fix

logger = logging.getLogger(__name__)

CHANNEL_ORDER: tuple[Channel, ...] = (
    *EDITABLE_CHANNELS,
    Channel.ROLL,
    Channel.PITCH,
    Channel.HEAVE,
)

_TIME_PAD = 0.51
_VALUE_PAD = 0.55
_ATTITUDE_PAD = 1.1
_MIN_SPAN = {
    Channel.TINT: 0.01,
    Channel.LON: 0.001,
    Channel.LAT: 0.001,
    Channel.HEADING: 10.0,
    Channel.DRAFT: 0.1,
    Channel.ROLL: 2.0,
    Channel.PITCH: 2.0,
    Channel.HEAVE: 0.02,
}
_MIN_SPEED_MAX = 10.0
_ATTITUDE = frozenset({Channel.ROLL, Channel.PITCH, Channel.HEAVE})


class PickMode(Enum):
    PICK = auto()
    SELECT = auto()
    DESELECT = auto()
    SELECT_ALL = auto()
    DESELECT_ALL = auto()


@dataclass(frozen=True)
class PlotFrame:
    """Screen rectangle of one channel plot and its value mapping.

    Screen y grows downwards, so ``iymin`` is the bottom edge in pixels.
    """

    channel: Channel
    ixmin: int
    ixmax: int
    iymin: int
    iymax: int
    xmin: float
    xmax: float
    ymin: float
    ymax: float

    @property
    def xscale(self) -> float:
        return (self.ixmax - self.ixmin) / (self.xmax - self.xmin)

    @property
    def yscale(self) -> float:
        return (self.iymax - self.iymin) / (self.ymax - self.ymin)

    def contains(self, x: int, y: int) -> bool:
        return self.ixmin <= x <= self.ixmax and self.iymax <= y <= self.iymin

    def project(self, file_time: float, value: float) -> tuple[int, int]:
        ix = self.ixmin + self.xscale * (file_time - self.xmin)
        iy = self.iymin + self.yscale * (value - self.ymin)
        return int(ix), int(iy)

    def time_at(self, x: int) -> float:
        x = min(max(x, self.ixmin), self.ixmax)
        return self.xmin + (x - self.ixmin) / self.xscale


def _padded(low: float, high: float, pad: float) -> tuple[float, float]:
    center = 0.5 * (low + high)
    half = pad * (high - low)
    return center - half, center + half


def _widened(low: float, high: float, span: float) -> tuple[float, float]:
    if high - low >= span:
        return low, high
    center = 0.5 * (low + high)
    return center - 0.5 * span, center + 0.5 * span


class PlotWindow:
    """Maps the visible part of an :class:`EditBuffer` onto stacked plots.

    The buffer's cursor is the first visible fix; ``count`` fixes from the
    cursor fall inside ``[start_time, start_time + show_size]``. A
    ``show_size`` of zero shows the whole buffer.
    """

    def __init__(
        self,
        show_size: float = 1000.0,
        step_size: float = 750.0,
        show_max: float = 2000.0,
        step_max: float = 2000.0,
        width: int = 767,
        height: int = 300,
        select_radius: int = 10,
        channels: Iterable[Channel] = EDITABLE_CHANNELS,
    ) -> None:
        self.show_size = show_size
        self.step_size = step_size
        self.show_max = show_max
        self.step_max = step_max
        self.width = max(1, int(width))
        self.height = max(1, int(height))
        self.select_radius = select_radius
        self.show_original = True
        self.show_made_good = True
        self.show_model = False
        self.start_time = 0.0
        self.end_time = 0.0
        self.count = 0
        self._channels = set(channels)
        self.extents: dict[Channel, tuple[float, float]] = {}
        self.frames: list[PlotFrame] = []
        self._interval: list[tuple[int, float] | None] = [None, None]

    @property
    def channels(self) -> list[Channel]:
        return [channel for channel in CHANNEL_ORDER if channel in self._channels]

    def set_channel_enabled(self, channel: Channel, enabled: bool) -> bool:
        if enabled == (channel in self._channels):
            return False
        if enabled:
            self._channels.add(channel)
        else:
            self._channels.discard(channel)
        return True

    def resize(self, width: int, height: int) -> None:
        self.width = max(1, int(width))
        self.height = max(1, int(height))

    def visible_range(self, buffer: EditBuffer) -> range:
        return range(buffer.current, buffer.current + self.count)

    def visible_fixes(self, buffer: EditBuffer) -> list[Fix]:
        return buffer.fixes[buffer.current : buffer.current + self.count]

    def reset(self) -> None:
        self.start_time = self.end_time = 0.0
        self.count = 0
        self.extents = {}
        self.frames = []
        self._interval = [None, None]

    # ------------------------------------------------------------------
    # Window update
    # ------------------------------------------------------------------
    def update(self, buffer: EditBuffer, model_active: bool = False) -> None:
        """Recompute the visible range, extents, frames and screen coordinates."""

        fixes = buffer.fixes
        total = len(fixes)
        self.count = 0
        if total == 0:
            self.extents = {}
            self.frames = []
            return
        if self.show_size > 0:
            self.start_time = fixes[buffer.current].file_time
            self.end_time = self.start_time + self.show_size
            self.count = sum(
                1 for fix in fixes[buffer.current :] if fix.file_time <= self.end_time
            )
        else:
            self.start_time = fixes[0].file_time
            self.end_time = fixes[-1].file_time
            self.show_size = self.end_time - self.start_time + 1
            self.show_max = max(self.show_max, self.show_size)
            self.count = total

        visible = self.visible_range(buffer)
        for index, fix in enumerate(fixes):
            if index not in visible:
                fix.selected.clear()
                fix.screen.clear()

        self.extents = self._compute_extents(self.visible_fixes(buffer), model_active)
        self.frames = self._layout_frames()
        self._project(self.visible_fixes(buffer))
        logger.debug(
            "Window [%.3f, %.3f] shows %d fixes from index %d",
            self.start_time,
            self.end_time,
            self.count,
            buffer.current,
        )

    def _compute_extents(
        self, visible: Sequence[Fix], model_active: bool
    ) -> dict[Channel, tuple[float, float]]:
        samples: dict[Channel, list[float]] = {channel: [] for channel in CHANNEL_ORDER}
        for fix in visible:
            for channel in CHANNEL_ORDER:
                samples[channel].append(fix.value(channel))
            if self.show_original:
                for channel in EDITABLE_CHANNELS:
                    samples[channel].append(fix.original_value(channel))
            if model_active and self.show_model:
                samples[Channel.LON].append(fix.lon_model)
                samples[Channel.LAT].append(fix.lat_model)
            if self.show_made_good:
                samples[Channel.SPEED].append(fix.speed_made_good)
                samples[Channel.HEADING].append(fix.course_made_good)

        extents: dict[Channel, tuple[float, float]] = {}
        for channel, values in samples.items():
            low, high = min(values), max(values)
            if channel is Channel.SPEED:
                low = min(low, 0.0)
                if low < 0.0:
                    low, high = _padded(low, high, _VALUE_PAD)
                else:
                    high *= 1.05
            elif channel in _ATTITUDE:
                high = _ATTITUDE_PAD * max(abs(low), abs(high))
                low = -high
            else:
                low, high = _padded(low, high, _VALUE_PAD)
            extents[channel] = (low, high)

        enabled = self._channels
        if Channel.LON in enabled and Channel.LAT in enabled:
            lon_low, lon_high = extents[Channel.LON]
            lat_low, lat_high = extents[Channel.LAT]
            lon_span, lat_span = lon_high - lon_low, lat_high - lat_low
            if lon_span > lat_span:
                center = 0.5 * (lat_low + lat_high)
                extents[Channel.LAT] = (center - 0.5 * lon_span, center + 0.5 * lon_span)
            else:
                center = 0.5 * (lon_low + lon_high)
                extents[Channel.LON] = (center - 0.5 * lat_span, center + 0.5 * lat_span)

        for channel, span in _MIN_SPAN.items():
            extents[channel] = _widened(*extents[channel], span)
        speed_low, speed_high = extents[Channel.SPEED]
        extents[Channel.SPEED] = (speed_low, max(speed_high, _MIN_SPEED_MAX))
        return extents

    def time_extent(self) -> tuple[float, float]:
        return _padded(self.start_time, self.end_time, _TIME_PAD)

    def _layout_frames(self) -> list[PlotFrame]:
        margin_x = self.width // 10
        margin_y = self.height // 6
        xmin, xmax = self.time_extent()
        if xmax <= xmin:
            xmin, xmax = xmin - 0.5, xmax + 0.5
        frames: list[PlotFrame] = []
        for number, channel in enumerate(self.channels):
            ymin, ymax = self.extents[channel]
            frames.append(
                PlotFrame(
                    channel=channel,
                    ixmin=int(1.25 * margin_x),
                    ixmax=self.width - margin_x // 2,
                    iymin=self.height - margin_y + number * self.height,
                    iymax=number * self.height + margin_y,
                    xmin=xmin,
                    xmax=xmax,
                    ymin=ymin,
                    ymax=ymax,
                )
            )
        return frames

    def _project(self, visible: Sequence[Fix]) -> None:
        for fix in visible:
            fix.screen.clear()
            for frame in self.frames:
                fix.screen[frame.channel] = frame.project(
                    fix.file_time, fix.value(frame.channel)
                )

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def _first_at_or_after(self, buffer: EditBuffer, file_time: float) -> int:
        for index, fix in enumerate(buffer.fixes):
            if fix.file_time >= file_time:
                return index
        return len(buffer) - 1

    def show_all(self, buffer: EditBuffer, model_active: bool = False) -> bool:
        if buffer.is_empty:
            return False
        self.show_size = 0
        buffer.current = 0
        self.update(buffer, model_active)
        return True

    def step(self, buffer: EditBuffer, step: float, model_active: bool = False) -> bool:
        """Scroll the window by ``step`` seconds; False when it did not move."""

        if buffer.is_empty:
            buffer.current = 0
            return False
        fixes = buffer.fixes
        if step >= 0 and self.end_time < fixes[-1].file_time:
            self.start_time += step
            self.end_time = self.start_time + self.show_size
        elif step < 0 and self.start_time > fixes[0].file_time:
            self.start_time += step
            self.end_time = self.start_time + self.show_size

        old = buffer.current
        new = self._first_at_or_after(buffer, self.start_time)
        if step < 0 and new > 0 and new == old:
            new -= 1
        if step > 0 and new < len(fixes) - 1 and new == old:
            new += 1
        buffer.current = new
        self.update(buffer, model_active)
        return new != old

    def go_start(self, buffer: EditBuffer, model_active: bool = False) -> bool:
        if buffer.is_empty:
            return False
        old = buffer.current
        buffer.current = 0
        self.update(buffer, model_active)
        return old != 0

    def go_end(self, buffer: EditBuffer, model_active: bool = False) -> bool:
        if buffer.is_empty:
            return False
        old = buffer.current
        show = self.show_size if self.show_size > 0 else 0.0
        buffer.current = self._first_at_or_after(
            buffer, buffer.fixes[-1].file_time - show
        )
        self.update(buffer, model_active)
        return buffer.current != old

    def set_interval(
        self, buffer: EditBuffer, x: int, which: int, model_active: bool = False
    ) -> bool:
        """Two-bound zoom: ``which`` 0/1 sets a bound, 2 applies them, 3 clears."""

        if buffer.is_empty or self.count == 0 or not self.frames:
            return False
        frame = self.frames[0]
        if which in (0, 1):
            bound = min(max(x, frame.ixmin), frame.ixmax)
            self._interval[which] = (bound, frame.time_at(bound))
            return True
        if which == 3:
            self._interval = [None, None]
            return True
        first, second = self._interval
        if which != 2 or first is None or second is None or first[0] == second[0]:
            return False
        if first[0] > second[0]:
            first, second = second, first
            self._interval = [first, second]
        self.show_size = second[1] - first[1]
        self.step_size = self.show_size / 4
        if self.step_size > self.step_max:
            self.step_max = 2 * self.step_size
        buffer.current = self._first_at_or_after(buffer, first[1])
        self.update(buffer, model_active)
        return True

    # ------------------------------------------------------------------
    # Hit testing
    # ------------------------------------------------------------------
    def frame_at(self, x: int, y: int) -> PlotFrame | None:
        for frame in self.frames:
            if frame.contains(x, y):
                return frame
        return None

    def deselect_all(self, buffer: EditBuffer, channel: Channel) -> bool:
        """Clear ``channel`` selections buffer-wide; False when none were set."""

        cleared = 0
        for fix in buffer:
            if channel in fix.selected:
                fix.selected.discard(channel)
                cleared += 1
        return cleared > 0

    def clear_other_channels(self, buffer: EditBuffer, channel: Channel) -> None:
        for other in EDITABLE_CHANNELS:
            if other is not channel:
                self.deselect_all(buffer, other)

    def select_channel(self, buffer: EditBuffer, channel: Channel) -> list[Fix]:
        """Select ``channel`` on every visible fix; other channels are cleared."""

        self.clear_other_channels(buffer, channel)
        visible = self.visible_fixes(buffer)
        for fix in visible:
            fix.selected.add(channel)
        return visible

    def hit_test(self, buffer: EditBuffer, x: int, y: int, mode: PickMode) -> list[Fix]:
        """Apply ``mode`` at screen point ``(x, y)`` and return the affected fixes.

        Any interaction with one plot first clears selections in every other
        channel, shown or hidden.
        """

        visible = self.visible_fixes(buffer)
        if not visible:
            return []
        if mode is PickMode.DESELECT_ALL:
            for fix in visible:
                fix.selected.clear()
            return visible

        frame = self.frame_at(x, y)
        if frame is None or frame.channel not in EDITABLE_CHANNELS:
            return []
        channel = frame.channel
        self.clear_other_channels(buffer, channel)

        candidates = [fix for fix in visible if channel in fix.screen]
        affected: list[Fix] = []
        if mode is PickMode.PICK:
            nearest = min(
                candidates,
                key=lambda fix: math.hypot(
                    x - fix.screen[channel][0], y - fix.screen[channel][1]
                ),
                default=None,
            )
            if nearest is not None:
                if channel in nearest.selected:
                    nearest.selected.discard(channel)
                else:
                    nearest.selected.add(channel)
                affected.append(nearest)
        elif mode is PickMode.SELECT_ALL:
            affected = self.select_channel(buffer, channel)
        else:
            for fix in candidates:
                ix, iy = fix.screen[channel]
                if int(math.hypot(x - ix, y - iy)) > self.select_radius:
                    continue
                if mode is PickMode.SELECT:
                    fix.selected.add(channel)
                else:
                    fix.selected.discard(channel)
                affected.append(fix)
        logger.debug(
            "%s at (%d, %d) in %s plot affected %d fixes",
            mode.name,
            x,
            y,
            channel.value,
            len(affected),
        )
        return affected

"""Derived navigation quantities and model-proposed positions."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from navedit.geo import coordinate_scale
from navedit.model.fix import Fix
from navedit.solver.chebyshev import SolverSettings, SparseRows, solve

logger = logging.getLogger(__name__)

MessageCallback = Callable[[str | None], None]


class ModelMode(Enum):
    OFF = "off"
    MEAN = "mean"
    DEAD_RECKONING = "dr"
    INVERSION = "invert"


@dataclass
class ModelParameters:
    """Operator-controlled navigation model settings.

    Drift rates are in degrees per hour, the mean window and the dead
    reckoning gap ceiling in seconds.
    """

    mode: ModelMode = ModelMode.OFF
    mean_time_window: float = 10.0
    drift_lon: float = 0.0
    drift_lat: float = 0.0
    weight_speed: float = 100.0
    weight_acceleration: float = 100.0
    dr_gap_ceiling: float = 300.0
    solver: SolverSettings = field(default_factory=SolverSettings)

    def __post_init__(self) -> None:
        if self.weight_speed < 0.0 or self.weight_acceleration < 0.0:
            raise ValueError("constraint weights must be non-negative")
        if self.mean_time_window <= 0.0:
            raise ValueError(
                f"mean_time_window must be positive, got {self.mean_time_window}"
            )


def _made_good(
    earlier: Fix, later: Fix, heading: float
) -> tuple[float, float]:
    deg_lon, deg_lat = coordinate_scale(earlier.lat)
    dtime = later.time_d - earlier.time_d
    dx = (later.lon - earlier.lon) / deg_lon
    dy = (later.lat - earlier.lat) / deg_lat
    dist = math.hypot(dx, dy)
    speed = 3.6 * dist / dtime if dtime > 0.0 else 0.0
    course = math.degrees(math.atan2(dx / dist, dy / dist)) if dist > 0.0 else heading
    if course < 0.0:
        course += 360.0
    return speed, course


def update_made_good(fixes: Sequence[Fix]) -> None:
    """Recompute speed and course made good (km/h, degrees) for every fix.

    Fix 0 uses the pair (0, 1); every later fix uses (i - 1, i).
    """

    if len(fixes) == 1:
        fixes[0].speed_made_good = 0.0
        fixes[0].course_made_good = fixes[0].heading
        return
    for index, fix in enumerate(fixes):
        if index == 0:
            earlier, later = fix, fixes[1]
        else:
            earlier, later = fixes[index - 1], fix
        fix.speed_made_good, fix.course_made_good = _made_good(earlier, later, fix.heading)


def dead_reckon(fixes: Sequence[Fix], params: ModelParameters) -> None:
    """Integrate heading and speed forward from the first fix.

    A gap of ``dr_gap_ceiling`` seconds or more restarts the integration at
    the fix's working position.
    """

    for index, fix in enumerate(fixes):
        if index == 0:
            fix.lon_model, fix.lat_model = fix.lon, fix.lat
            continue
        previous = fixes[index - 1]
        dtime = fix.time_d - previous.time_d
        if dtime >= params.dr_gap_ceiling:
            fix.lon_model, fix.lat_model = fix.lon, fix.lat
            continue
        deg_lon, deg_lat = coordinate_scale(fix.lat)
        heading = math.radians(fix.heading)
        dx = math.sin(heading) * fix.speed * dtime / 3.6
        dy = math.cos(heading) * fix.speed * dtime / 3.6
        fix.lon_model = previous.lon_model + dx * deg_lon + dtime * params.drift_lon / 3600.0
        fix.lat_model = previous.lat_model + dy * deg_lat + dtime * params.drift_lat / 3600.0


def gaussian_mean(fixes: Sequence[Fix], window: float) -> None:
    """Smooth positions with a centred Gaussian kernel over ``window`` seconds.

    Only unflagged fixes contribute. A fix without contributing samples on
    both sides is interpolated between its nearest unflagged neighbours.
    """

    count = len(fixes)
    coefficient = -4.0 / (window * window)
    smoothed = [False] * count
    jstart = 0
    for index, fix in enumerate(fixes):
        weight = sum_lon = sum_lat = 0.0
        npos = nneg = 0
        first_used: int | None = None
        for j in range(jstart, count):
            other = fixes[j]
            dtime = other.time_d - fix.time_d
            if dtime > window:
                break
            if other.flagged or abs(dtime) > window:
                continue
            w = math.exp(coefficient * dtime * dtime)
            weight += w
            sum_lon += w * other.lon
            sum_lat += w * other.lat
            if dtime < 0.0:
                nneg += 1
            else:
                npos += 1
            if first_used is None:
                first_used = j
        if first_used is not None:
            jstart = first_used
        if npos > 0 and nneg > 0:
            fix.lon_model = sum_lon / weight
            fix.lat_model = sum_lat / weight
            smoothed[index] = True

    usable = [index for index, fix in enumerate(fixes) if not fix.flagged]
    cursor = 0
    for index, fix in enumerate(fixes):
        while cursor < len(usable) and usable[cursor] < index:
            cursor += 1
        if smoothed[index]:
            continue
        before = usable[cursor - 1] if cursor > 0 else None
        after_pos = cursor
        if after_pos < len(usable) and usable[after_pos] == index:
            after_pos += 1
        after = usable[after_pos] if after_pos < len(usable) else None
        if before is not None and after is not None:
            start, end = fixes[before], fixes[after]
            dtime = end.time_d - start.time_d
            fraction = (fix.time_d - start.time_d) / dtime if dtime > 0.0 else 0.0
            fix.lon_model = start.lon + fraction * (end.lon - start.lon)
            fix.lat_model = start.lat + fraction * (end.lat - start.lat)
        elif before is not None:
            fix.lon_model, fix.lat_model = fixes[before].lon, fixes[before].lat
        elif after is not None:
            fix.lon_model, fix.lat_model = fixes[after].lon, fixes[after].lat
        else:
            fix.lon_model, fix.lat_model = fix.lon, fix.lat


def build_smoothing_rows(
    window: Sequence[Fix], anchors: Sequence[float | None], params: ModelParameters
) -> SparseRows:
    """Assemble anchor, speed and acceleration rows for one axis.

    ``anchors`` holds the scaled anchor value per fix, or None for flagged
    fixes, which get no anchor row.
    """

    count = len(window)
    rows = SparseRows(count)
    speed_weight = params.weight_speed
    accel_weight = params.weight_acceleration
    for ii, fix in enumerate(window):
        anchor = anchors[ii]
        if anchor is not None:
            rows.add_row([ii], [1.0], anchor)
        if speed_weight > 0.0 and ii > 0 and fix.time_d > window[ii - 1].time_d:
            dtime = fix.time_d - window[ii - 1].time_d
            rows.add_row([ii - 1, ii], [-speed_weight / dtime, speed_weight / dtime])
        if (
            accel_weight > 0.0
            and 0 < ii < count - 1
            and window[ii - 1].time_d < fix.time_d < window[ii + 1].time_d
        ):
            dtime = window[ii + 1].time_d - window[ii - 1].time_d
            scale = accel_weight / (dtime * dtime)
            rows.add_row([ii - 1, ii, ii + 1], [scale, -2.0 * scale, scale])
    return rows


def invert_positions(
    fixes: Sequence[Fix],
    start: int,
    count: int,
    params: ModelParameters,
    message: MessageCallback | None = None,
) -> bool:
    """Solve for smooth positions over ``fixes[start:start + count]``.

    Each axis is solved independently as a perturbation, in meters, from the
    mean of the unflagged original values. Returns False when the window has
    no unflagged fix, in which case the proposals are left unchanged.
    """

    window = list(fixes[start : start + count])
    anchored = [ii for ii, fix in enumerate(window) if not fix.flagged]
    if not anchored:
        logger.warning(
            "Inversion skipped: no unflagged fixes among %d in the window", len(window)
        )
        return False

    lon_avg = sum(window[ii].original.lon for ii in anchored) / len(anchored)
    lat_avg = sum(window[ii].original.lat for ii in anchored) / len(anchored)
    deg_lon, deg_lat = coordinate_scale(lat_avg)
    first, last = anchored[0], anchored[-1]

    for axis, field_name, average, scale in (
        ("longitude", "lon", lon_avg, deg_lon),
        ("latitude", "lat", lat_avg, deg_lat),
    ):
        if message is not None:
            message(f"Setting up inversion of {len(window)} {axis} points")
        anchors = [
            None if fix.flagged else (getattr(fix.original, field_name) - average) / scale
            for fix in window
        ]
        rows = build_smoothing_rows(window, anchors, params)
        if message is not None:
            message(f"Inverting {rows.ncols}X{rows.nrows} for smooth {axis}...")
        solution = solve(rows, params.solver)
        proposals = [average + scale * value for value in solution]
        for ii in range(first):
            proposals[ii] = proposals[first]
        for ii in range(last + 1, len(window)):
            proposals[ii] = proposals[last]
        for fix, proposal in zip(window, proposals):
            setattr(fix, f"{field_name}_model", proposal)

    if message is not None:
        message(None)
    return True


def compute_model(
    fixes: Sequence[Fix],
    params: ModelParameters,
    window: tuple[int, int] | None = None,
    message: MessageCallback | None = None,
) -> None:
    """Recompute the model-proposed position of every fix for ``params.mode``.

    ``window`` is ``(start, count)`` of the visible fixes; the inversion runs
    over that range only and fixes outside it propose their working position.
    With the model off every fix proposes its working position.
    """

    if not fixes:
        return
    mode = params.mode
    if mode is ModelMode.MEAN:
        gaussian_mean(fixes, params.mean_time_window)
    elif mode is ModelMode.DEAD_RECKONING:
        dead_reckon(fixes, params)
    elif mode is ModelMode.INVERSION:
        start, count = window if window is not None else (0, len(fixes))
        for index, fix in enumerate(fixes):
            if not start <= index < start + count:
                fix.lon_model, fix.lat_model = fix.lon, fix.lat
        invert_positions(fixes, start, count, params, message)
    else:
        for fix in fixes:
            fix.lon_model, fix.lat_model = fix.lon, fix.lat
    logger.debug("Model recomputed in %s mode for %d fixes", mode.value, len(fixes))

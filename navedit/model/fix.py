"""Navigation fix records held by the edit buffer."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from navedit.timeutils import CalendarTime


class Channel(Enum):
    TINT = "tint"
    LON = "lon"
    LAT = "lat"
    SPEED = "speed"
    HEADING = "heading"
    DRAFT = "draft"
    ROLL = "roll"
    PITCH = "pitch"
    HEAVE = "heave"


EDITABLE_CHANNELS: tuple[Channel, ...] = (
    Channel.TINT,
    Channel.LON,
    Channel.LAT,
    Channel.SPEED,
    Channel.HEADING,
    Channel.DRAFT,
)
POSITION_CHANNELS = frozenset({Channel.LON, Channel.LAT})


@dataclass(frozen=True)
class NavRecord:
    """One navigation sample as read from or written to a record store."""

    time_i: CalendarTime
    time_d: float
    lon: float
    lat: float
    heading: float
    speed: float
    draft: float
    roll: float = 0.0
    pitch: float = 0.0
    heave: float = 0.0


@dataclass(frozen=True)
class OriginalValues:
    time_d: float
    tint: float
    lon: float
    lat: float
    speed: float
    heading: float
    draft: float
    roll: float
    pitch: float
    heave: float


@dataclass
class Fix:
    """A resident navigation fix.

    ``id`` is the buffer index; the global record number is ``id`` plus the
    number of fixes already flushed from the buffer. Working values are the
    plain attributes, ``original`` is frozen at load, and ``lon_model`` /
    ``lat_model`` hold the position proposed by the active navigation model.
    """

    id: int
    time_i: CalendarTime
    time_d: float
    file_time: float
    tint: float
    lon: float
    lat: float
    heading: float
    speed: float
    draft: float
    roll: float
    pitch: float
    heave: float
    original: OriginalValues
    lon_model: float = 0.0
    lat_model: float = 0.0
    speed_made_good: float = 0.0
    course_made_good: float = 0.0
    flagged: bool = False
    selected: set[Channel] = field(default_factory=set)
    screen: dict[Channel, tuple[int, int]] = field(default_factory=dict)

    @classmethod
    def from_record(
        cls,
        record: NavRecord,
        index: int,
        file_start_time: float,
        offset: tuple[float, float] = (0.0, 0.0),
        tint: float = 0.0,
    ) -> "Fix":
        original = OriginalValues(
            time_d=record.time_d,
            tint=tint,
            lon=record.lon,
            lat=record.lat,
            speed=record.speed,
            heading=record.heading,
            draft=record.draft,
            roll=record.roll,
            pitch=record.pitch,
            heave=record.heave,
        )
        lon = record.lon + offset[0]
        lat = record.lat + offset[1]
        return cls(
            id=index,
            time_i=record.time_i,
            time_d=record.time_d,
            file_time=record.time_d - file_start_time,
            tint=tint,
            lon=lon,
            lat=lat,
            heading=record.heading,
            speed=record.speed,
            draft=record.draft,
            roll=record.roll,
            pitch=record.pitch,
            heave=record.heave,
            original=original,
            lon_model=lon,
            lat_model=lat,
        )

    def value(self, channel: Channel) -> float:
        return getattr(self, channel.value)

    def set_value(self, channel: Channel, value: float) -> None:
        setattr(self, channel.value, value)

    def original_value(self, channel: Channel) -> float:
        return getattr(self.original, channel.value)

    def is_selected(self, channel: Channel) -> bool:
        return channel in self.selected

    def position_selected(self) -> bool:
        return not self.selected.isdisjoint(POSITION_CHANNELS)

    def to_record(self) -> NavRecord:
        return NavRecord(
            time_i=self.time_i,
            time_d=self.time_d,
            lon=self.lon,
            lat=self.lat,
            heading=self.heading,
            speed=self.speed,
            draft=self.draft,
            roll=self.roll,
            pitch=self.pitch,
            heave=self.heave,
        )

import pytest

from navedit.geo import coordinate_scale
from navedit.timeutils import calendar_from_epoch, epoch_from_calendar, format_calendar


def test_calendar_from_epoch_splits_microseconds():
    assert calendar_from_epoch(1_000_000_000.25) == (2001, 9, 9, 1, 46, 40, 250000)


def test_calendar_rounding_carries_into_seconds():
    assert calendar_from_epoch(59.9999999) == (1970, 1, 1, 0, 1, 0, 0)


def test_epoch_from_calendar_inverts_calendar_from_epoch():
    stamp = 1_262_304_000.123456
    assert epoch_from_calendar(calendar_from_epoch(stamp)) == pytest.approx(stamp, abs=1e-6)


def test_format_calendar():
    assert format_calendar((2010, 1, 2, 3, 4, 5, 60)) == "2010/01/02 03:04:05.000060"


def test_coordinate_scale_at_equator():
    deg_lon, deg_lat = coordinate_scale(0.0)
    assert 1.0 / deg_lon == pytest.approx(111412.84 - 93.5 + 0.118)
    assert 1.0 / deg_lat == pytest.approx(110574.27, abs=0.1)


def test_coordinate_scale_longitude_shrinks_towards_pole():
    equator_lon, _ = coordinate_scale(0.0)
    north_lon, north_lat = coordinate_scale(60.0)
    assert north_lon > equator_lon
    assert 1.0 / north_lon == pytest.approx(55800, rel=0.01)
    assert 1.0 / north_lat == pytest.approx(111412, rel=0.001)

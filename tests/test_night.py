from datetime import datetime

import pytz

from logbook_metrics.night import estimate_night, get_airport_data, is_night_time, parse_clock
from logbook_metrics.rows import normalize_row


def test_get_airport_data_by_icao_and_iata():
    name, tz, lat, lon = get_airport_data("KJFK")
    assert tz == "America/New_York"
    assert 40 < lat < 41
    assert get_airport_data("jfk")[1] == "America/New_York"


def test_get_airport_data_fallback_and_unknown():
    assert get_airport_data("KIX")[1] == "Asia/Tokyo"
    assert get_airport_data("NOWHERE") is None
    assert get_airport_data("") is None


def test_parse_clock():
    assert parse_clock("2024-01-15", "03:00") == datetime(2024, 1, 15, 3, 0, tzinfo=pytz.utc)
    assert parse_clock("2024-01-15", "1745") == datetime(2024, 1, 15, 17, 45, tzinfo=pytz.utc)
    assert parse_clock("2024-01-15", "late") is None
    assert parse_clock("not a date", "03:00") is None


def test_is_night_time_at_jfk():
    assert is_night_time(datetime(2024, 1, 15, 3, 0, tzinfo=pytz.utc), "KJFK")
    assert not is_night_time(datetime(2024, 1, 15, 17, 0, tzinfo=pytz.utc), "KJFK")


def test_estimate_night():
    assert estimate_night("2024-01-15", "KJFK", "KBOS", "0300", "0400") is True
    assert estimate_night("2024-01-15", "KJFK", "KBOS", "1700", "1800") is False
    assert estimate_night("2024-01-15", "KJFK", "KBOS", None, None) is None


def test_night_estimation_only_when_enabled():
    raw = {
        "Pilot Name": "Jane Doe",
        "Date": "2024-01-15",
        "Total Time": "1.0",
        "From": "KJFK",
        "To": "KBOS",
        "OFF": "0300",
        "ON": "0400",
    }
    _, flight, _ = normalize_row(raw)
    assert flight.night is False

    _, flight, _ = normalize_row(raw, estimate_night=True)
    assert flight.night is True

    # An explicit night bucket wins over the estimate
    _, flight, _ = normalize_row(dict(raw, **{"Night Time": "0"}), estimate_night=True)
    assert flight.night is False

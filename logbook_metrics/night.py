"""
Night estimation from takeoff/landing times and airport sun times.

Only used when a row carries no night bucket at all and estimation is switched
on. A flight counts as a night flight when it took off or landed between
civil twilight (30 minutes after sunset) and sunrise at the airport involved.
"""
import logging
from datetime import datetime, timedelta
from functools import lru_cache

import airportsdata
import pytz
from astral import LocationInfo
from astral.sun import sun

from .parsers import is_iso_date

logger = logging.getLogger(__name__)

# Airports missing from airportsdata: (Name, Timezone, Latitude, Longitude)
FALLBACK_AIRPORTS = {
    "CAN": ("Guangzhou", "Asia/Shanghai", 23.3924, 113.2988),
    "BKK": ("Bangkok", "Asia/Bangkok", 13.6900, 100.7501),
    "PEN": ("Penang", "Asia/Kuala_Lumpur", 5.2976, 100.2760),
    "TPE": ("Taipei", "Asia/Taipei", 25.0777, 121.2330),
    "KIX": ("Osaka", "Asia/Tokyo", 34.4347, 135.2440),
}

CIVIL_TWILIGHT = timedelta(minutes=30)


@lru_cache(maxsize=1)
def _airport_tables():
    # Logbooks mostly use ICAO codes; airline exports use IATA
    return airportsdata.load('ICAO'), airportsdata.load('IATA')


@lru_cache(maxsize=512)
def get_airport_data(code):
    """(name, timezone, lat, lon) for an ICAO or IATA code, or None."""
    if not code:
        return None
    code = code.strip().upper()
    icao, iata = _airport_tables()
    airport = icao.get(code) or iata.get(code)
    if airport and airport.get('tz') and 'lat' in airport and 'lon' in airport:
        return (
            airport.get('name', code),
            airport['tz'],
            float(airport['lat']),
            float(airport['lon']),
        )
    if code in FALLBACK_AIRPORTS:
        return FALLBACK_AIRPORTS[code]
    logger.warning("Unknown airport %s; cannot estimate night time there", code)
    return None


def parse_clock(date_iso, time_str):
    """
    Combine an ISO date and an HH:MM (or HHMM) clock time into a UTC datetime.
    Returns None when either part is unusable.
    """
    if not is_iso_date(date_iso) or not time_str:
        return None
    text = str(time_str).strip().replace('Z', '')
    if ':' in text:
        hours, _, minutes = text.partition(':')
    elif text.isdigit() and len(text) in (3, 4):
        hours, minutes = text[:-2], text[-2:]
    else:
        return None
    try:
        dt = datetime.strptime(f"{date_iso} {int(hours):02d}:{int(minutes):02d}", "%Y-%m-%d %H:%M")
    except ValueError:
        return None
    return dt.replace(tzinfo=pytz.utc)


@lru_cache(maxsize=1024)
def get_sunrise_sunset(airport_code, day):
    """
    Sunrise and sunset at an airport on a local calendar day, as UTC datetimes.
    Returns (None, None) when the airport is unknown or the sun never rises or
    sets that day (polar regions).
    """
    airport_data = get_airport_data(airport_code)
    if not airport_data:
        return None, None

    name, tzname, lat, lon = airport_data
    location = LocationInfo(name=name, region="", timezone=tzname, latitude=lat, longitude=lon)
    try:
        s = sun(location.observer, date=day, tzinfo=pytz.timezone(tzname))
    except ValueError as e:
        logger.warning("Sun position unavailable at %s on %s: %s", airport_code, day, e)
        return None, None
    return s['sunrise'].astimezone(pytz.utc), s['sunset'].astimezone(pytz.utc)


def is_night_time(time_dt, airport_code):
    """True when time_dt falls between civil twilight and sunrise at the airport."""
    airport_data = get_airport_data(airport_code)
    if not airport_data:
        return False

    local_day = time_dt.astimezone(pytz.timezone(airport_data[1])).date()
    sunrise, sunset = get_sunrise_sunset(airport_code, local_day)
    if not sunrise or not sunset:
        return False
    return time_dt >= sunset + CIVIL_TWILIGHT or time_dt <= sunrise


def estimate_night(date_iso, origin, destination, off_time, on_time):
    """
    Night flag for a flight from its takeoff and landing clock times (UTC).

    Returns None when there is not enough data to decide.
    """
    takeoff = parse_clock(date_iso, off_time)
    landing = parse_clock(date_iso, on_time)
    if takeoff and landing and landing < takeoff:
        # Landed after midnight UTC
        landing += timedelta(days=1)

    checks = [(takeoff, origin), (landing, destination)]
    checks = [(when, airport) for when, airport in checks if when and airport]
    if not checks:
        return None
    return any(is_night_time(when, airport) for when, airport in checks)

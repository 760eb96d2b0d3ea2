"""
Fleet-level metrics built from finalized pilot records.

The per-flight breakdowns (aircraft, month, rolling windows) run over a polars
frame of every pilot's flights. The frame is rebuilt for each document and
never outlives the call.
"""
import logging
from datetime import date, datetime, timezone
from numbers import Number

import polars as pl

from .parsers import is_iso_date, round2

logger = logging.getLogger(__name__)

ROLLING_WINDOWS = {
    'last7Days': 7,
    'last30Days': 30,
    'last90Days': 90,
}

UNKNOWN_AIRCRAFT = "Unknown"

FLIGHT_FRAME_SCHEMA = {
    'date': pl.Utf8,
    'aircraft': pl.Utf8,
    'hours': pl.Float64,
    'pic': pl.Float64,
    'sic': pl.Float64,
    'dual': pl.Float64,
    'night': pl.Float64,
    'ifr': pl.Float64,
    'approaches': pl.Int64,
    'day_landings': pl.Int64,
    'night_landings': pl.Int64,
    'days_ago': pl.Int64,
}


def utc_now():
    return datetime.now(timezone.utc)


def isoformat_utc(moment):
    """ISO-8601 timestamp in UTC with a trailing Z."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def _utc_day(moment):
    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        return moment.date()
    return moment


def days_between(today, iso_date):
    """Whole calendar days from iso_date to today, or None for a bad date."""
    if not is_iso_date(iso_date):
        return None
    return (today - date.fromisoformat(iso_date)).days


def is_valid_summary(summary):
    """A summary is trusted only when both totals are real numbers."""
    if not isinstance(summary, dict):
        return False
    for key in ('totalFlights', 'totalHours'):
        value = summary.get(key)
        if isinstance(value, bool) or not isinstance(value, Number):
            return False
    return True


def compute_summary(pilots):
    total_flights = 0
    total_hours = 0.0
    for pilot in pilots:
        total_flights += pilot.get('totalFlights') or 0
        total_hours = round2(total_hours + (pilot.get('totalHours') or 0.0))
    return {'totalFlights': total_flights, 'totalHours': total_hours}


def _hours(flight, key):
    value = flight.get(key)
    if isinstance(value, bool) or not isinstance(value, Number):
        return 0.0
    return float(value)


def _landings(flight, key):
    value = flight.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


def flight_frame(pilots, today):
    """One row per flight across all pilots, with the values the breakdowns need."""
    columns = {name: [] for name in FLIGHT_FRAME_SCHEMA}
    for pilot in pilots:
        for flight in pilot.get('flights') or []:
            flight_date = flight.get('date') or ''
            columns['date'].append(flight_date)
            columns['aircraft'].append(flight.get('aircraft') or None)
            columns['hours'].append(_hours(flight, 'hours'))
            columns['pic'].append(_hours(flight, 'picTime'))
            columns['sic'].append(_hours(flight, 'sicTime'))
            columns['dual'].append(_hours(flight, 'dualReceived'))
            columns['night'].append(_hours(flight, 'nightTime'))
            columns['ifr'].append(_hours(flight, 'ifrTime'))
            columns['approaches'].append(_landings(flight, 'approachCount'))
            columns['day_landings'].append(_landings(flight, 'landingsDay'))
            columns['night_landings'].append(_landings(flight, 'landingsNight'))
            columns['days_ago'].append(days_between(today, flight_date))
    return pl.DataFrame(columns, schema=FLIGHT_FRAME_SCHEMA)


def _column_total(frame, column):
    if frame.is_empty():
        return 0.0
    return round2(frame[column].sum() or 0.0)


def compute_totals(frame):
    return {
        'flights': frame.height,
        'totalHours': _column_total(frame, 'hours'),
        'picHours': _column_total(frame, 'pic'),
        'sicHours': _column_total(frame, 'sic'),
        'dualHours': _column_total(frame, 'dual'),
        'nightHours': _column_total(frame, 'night'),
        'ifrHours': _column_total(frame, 'ifr'),
        'approaches': int(frame['approaches'].sum() or 0),
        'dayLandings': int(frame['day_landings'].sum() or 0),
        'nightLandings': int(frame['night_landings'].sum() or 0),
    }


def compute_rolling_totals(frame):
    """Hours flown within each trailing window; a window of N days includes day N."""
    totals = {}
    for key, days in ROLLING_WINDOWS.items():
        window = frame.filter(pl.col('days_ago').is_between(0, days))
        totals[key] = _column_total(window, 'hours')
    return totals


def compute_by_aircraft(frame):
    if frame.is_empty():
        return {}
    grouped = (
        frame.with_columns(pl.col('aircraft').fill_null(UNKNOWN_AIRCRAFT))
        .group_by('aircraft')
        .agg(
            pl.len().alias('flights'),
            pl.col('hours').sum().alias('hours'),
            pl.col('pic').sum().alias('picHours'),
            pl.col('night').sum().alias('nightHours'),
        )
        .sort('aircraft')
    )
    breakdown = {}
    for row in grouped.iter_rows(named=True):
        breakdown[row['aircraft']] = {
            'flights': row['flights'],
            'hours': round2(row['hours']),
            'picHours': round2(row['picHours']),
            'nightHours': round2(row['nightHours']),
        }
    return breakdown


def compute_by_month(frame):
    dated = frame.filter(pl.col('days_ago').is_not_null())
    if dated.is_empty():
        return []
    grouped = (
        dated.with_columns(pl.col('date').str.slice(0, 7).alias('month'))
        .group_by('month')
        .agg(
            pl.len().alias('flights'),
            pl.col('hours').sum().alias('hours'),
        )
        .sort('month')
    )
    return [
        {'month': row['month'], 'flights': row['flights'], 'hours': round2(row['hours'])}
        for row in grouped.iter_rows(named=True)
    ]


def compute_recency(frame, today):
    dated = frame.filter(pl.col('days_ago').is_not_null())
    if dated.is_empty():
        return {'latestFlightDate': None, 'daysSinceLastFlight': None, 'stale': True}
    latest = dated['date'].max()
    days = days_between(today, latest)
    return {
        'latestFlightDate': latest,
        'daysSinceLastFlight': days,
        'stale': days is None or days >= 1,
    }


def build_metrics(pilots, now=None, summary=None, issues=(), source_url=None,
                  total_rows=None, skipped=0, invalid=None):
    """
    Assemble the metrics document for a list of finalized pilot records.

    Args:
        pilots: PilotRecord dicts, already sorted.
        now: Reference time for timestamps, recency and rolling windows.
            Defaults to the current UTC time.
        summary: An upstream summary. Used as-is when both totals are numbers,
            otherwise the summary is recomputed from the pilots.
        issues: Row issues collected while parsing.
        source_url: Where the rows came from, if anywhere.
        total_rows, skipped, invalid: Row counts for the source block.

    Returns:
        The metrics document as a plain dict (not yet validated).
    """
    now = now or utc_now()
    today = _utc_day(now)
    issues = list(issues)
    pilots = list(pilots)

    if is_valid_summary(summary):
        summary = dict(summary)
    else:
        if summary is not None:
            logger.warning("Ignoring malformed summary %r; recomputing from pilots", summary)
        summary = compute_summary(pilots)

    frame = flight_frame(pilots, today)
    valid = frame.height
    if invalid is None:
        invalid = len(issues)
    if total_rows is None:
        total_rows = valid + invalid + skipped

    timestamp = isoformat_utc(now if isinstance(now, datetime) else datetime.combine(now, datetime.min.time()))
    return {
        'generatedAt': timestamp,
        'updatedAt': timestamp,
        'source': {
            'url': source_url,
            'rows': {
                'total': total_rows,
                'valid': valid,
                'invalid': invalid,
                'skipped': skipped,
            },
        },
        'summary': summary,
        'totals': compute_totals(frame),
        'recency': compute_recency(frame, today),
        'rollingTotals': compute_rolling_totals(frame),
        'byAircraft': compute_by_aircraft(frame),
        'byMonth': compute_by_month(frame),
        'issues': issues,
        'pilots': pilots,
    }

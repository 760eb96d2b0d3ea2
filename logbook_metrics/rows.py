"""
Row normalization: raw CSV rows -> canonical flight records.

Each raw row is canonicalized (see headers.py), checked against the strict row
schema and turned into a PilotIdentity plus a CanonicalFlight. Fields the CSV
does not carry (role, flight rules, night, route) are derived from the time
buckets that are present.
"""
import io
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import polars as pl

from .headers import (
    BOM,
    CATEGORY_LABELS,
    canonicalize_row,
)
from .night import estimate_night as estimate_night_flag
from .parsers import (
    parse_duration,
    parse_flag,
    parse_int,
    parse_text,
    round2,
    to_iso_date,
)
from .schema import row_errors

logger = logging.getLogger(__name__)

ROUTE_SEPARATOR = " -> "

# Output key -> CanonicalFlight attribute for the optional time buckets
BUCKET_FIELDS = {
    'simulatorTime': 'simulator_time',
    'crossCountryTime': 'cross_country_time',
    'soloTime': 'solo_time',
    'picTime': 'pic_time',
    'sicTime': 'sic_time',
    'dayTime': 'day_time',
    'nightTime': 'night_time',
    'ifrTime': 'ifr_time',
    'dualReceived': 'dual_received',
    'instructorTime': 'instructor_time',
}


@dataclass
class PilotIdentity:
    name: str
    license_number: Optional[str] = None
    nationality: Optional[str] = None
    date_of_birth: Optional[str] = None
    license_type: Optional[str] = None
    issuing_authority: Optional[str] = None
    license_issue_date: Optional[str] = None
    license_expiry_date: Optional[str] = None
    pilot_id: Optional[str] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("pilot name must not be empty")
        self.name = self.name.strip()


@dataclass
class CanonicalFlight:
    date: str = ""
    hours: float = 0.0
    aircraft: Optional[str] = None
    aircraft_reg: Optional[str] = None
    route: Optional[str] = None
    role: str = ""
    rules: str = ""
    night: bool = False
    flight_number: Optional[str] = None
    approach_type: Optional[str] = None
    approach_count: Optional[int] = None
    simulator_type: Optional[str] = None
    simulator_time: Optional[float] = None
    cross_country_time: Optional[float] = None
    solo_time: Optional[float] = None
    pic_time: Optional[float] = None
    sic_time: Optional[float] = None
    day_time: Optional[float] = None
    night_time: Optional[float] = None
    ifr_time: Optional[float] = None
    dual_received: Optional[float] = None
    instructor_time: Optional[float] = None
    landings_day: Optional[int] = None
    landings_night: Optional[int] = None
    remarks: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    extras: Dict[str, str] = field(default_factory=dict)

    @property
    def day_hours(self):
        if self.day_time is not None:
            return self.day_time
        return round2(max(self.hours - (self.night_time or 0.0), 0.0))

    @property
    def night_hours(self):
        return self.night_time or 0.0

    @property
    def pic_hours(self):
        return self.pic_time or 0.0

    @property
    def sic_hours(self):
        return self.sic_time or 0.0

    @property
    def ifr_hours(self):
        return self.ifr_time or 0.0

    def to_dict(self):
        """JSON shape of the flight; optional fields appear only when set."""
        data = {
            'date': self.date,
            'hours': self.hours,
            'role': self.role,
            'rules': self.rules,
            'night': self.night,
        }
        for key, value in (
            ('aircraft', self.aircraft),
            ('aircraftReg', self.aircraft_reg),
            ('route', self.route),
            ('flightNumber', self.flight_number),
            ('approachType', self.approach_type),
            ('simulatorType', self.simulator_type),
            ('remarks', self.remarks),
        ):
            if value:
                data[key] = value
        for key, value in (
            ('approachCount', self.approach_count),
            ('landingsDay', self.landings_day),
            ('landingsNight', self.landings_night),
        ):
            if value is not None:
                data[key] = value
        for key, attr in BUCKET_FIELDS.items():
            value = getattr(self, attr)
            if value is not None and value > 0:
                data[key] = value
        if self.categories:
            data['categories'] = list(self.categories)
        return data


@dataclass
class ParseResult:
    entries: list = field(default_factory=list)
    issues: list = field(default_factory=list)
    total_rows: int = 0
    invalid: int = 0
    skipped: int = 0

    @property
    def valid(self):
        return len(self.entries)


def read_csv_rows(text):
    """
    Parse CSV text (header row first) into a list of string-keyed rows.

    Every column is read as text; missing cells become "". Fully empty rows
    are dropped.
    """
    if isinstance(text, bytes):
        text = text.decode('utf-8-sig')
    text = text.lstrip(BOM)
    if not text.strip():
        return []

    df = pl.read_csv(
        io.BytesIO(text.encode('utf-8')),
        infer_schema_length=0,
        truncate_ragged_lines=True,
        raise_if_empty=False,
    )

    rows = []
    for row in df.iter_rows(named=True):
        cleaned = {key: ('' if value is None else str(value).strip()) for key, value in row.items()}
        if any(cleaned.values()):
            rows.append(cleaned)
    return rows


def _bucket(fields, key):
    """Parsed time bucket, None when the column is absent or blank."""
    value = fields.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    hours = parse_duration(value)
    if hours < 0:
        logger.warning("Negative %s value %r clamped to 0", key, value)
        return 0.0
    return hours


def _count(fields, key):
    value = parse_int(fields.get(key))
    if value is not None and value < 0:
        logger.warning("Negative %s value %r clamped to 0", key, fields.get(key))
        return 0
    return value


def _upper_if(value, allowed):
    if value and value.upper() in allowed:
        return value.upper()
    return value


def derive_role(explicit, pic_time, sic_time):
    if explicit:
        return _upper_if(explicit, {'PIC', 'SIC'})
    if pic_time and pic_time > 0:
        return 'PIC'
    if sic_time and sic_time > 0:
        return 'SIC'
    return ''


def derive_rules(explicit, ifr_time, hours):
    if explicit:
        return _upper_if(explicit, {'IFR', 'VFR'})
    if ifr_time and ifr_time > 0:
        return 'IFR'
    if hours > 0:
        return 'VFR'
    return ''


def derive_route(route, origin, destination):
    explicit = parse_text(route)
    if explicit:
        return explicit
    endpoints = [p for p in (parse_text(origin), parse_text(destination)) if p]
    return ROUTE_SEPARATOR.join(endpoints) or None


def collect_categories(fields):
    labels = [label for key, label in CATEGORY_LABELS.items() if parse_flag(fields.get(key))]
    given = fields.get('categories')
    if isinstance(given, str):
        given = given.replace(';', ',').split(',')
    for label in given or []:
        label = parse_text(label)
        if label and label not in labels:
            labels.append(label)
    return labels


def build_identity(fields):
    """PilotIdentity for a canonical row, or None when the row names no pilot."""
    name = parse_text(fields.get('pilotName'))
    if not name:
        return None

    def dated(key):
        value = parse_text(fields.get(key))
        return to_iso_date(value) if value else None

    return PilotIdentity(
        name=name,
        license_number=parse_text(fields.get('licenseNumber')),
        nationality=parse_text(fields.get('nationality')),
        date_of_birth=dated('dateOfBirth'),
        license_type=parse_text(fields.get('licenseType')),
        issuing_authority=parse_text(fields.get('issuingAuthority')),
        license_issue_date=dated('licenseIssueDate'),
        license_expiry_date=dated('licenseExpiryDate'),
    )


def build_flight(fields, extras=None, estimate_night=False):
    """CanonicalFlight for a canonical row, with derived role, rules, night and route."""
    hours = _bucket(fields, 'hours') or 0.0
    buckets = {attr: _bucket(fields, key) for key, attr in BUCKET_FIELDS.items()}
    date = to_iso_date(fields.get('date'))
    origin = parse_text(fields.get('routeFrom'))
    destination = parse_text(fields.get('routeTo'))

    explicit_night = fields.get('night')
    if isinstance(explicit_night, bool):
        night = explicit_night
    elif parse_text(explicit_night):
        night = parse_flag(explicit_night)
    elif buckets['night_time'] is not None:
        night = buckets['night_time'] > 0
    else:
        night = False
        if estimate_night:
            estimated = estimate_night_flag(
                date, origin, destination, fields.get('offTime'), fields.get('onTime')
            )
            night = bool(estimated)

    return CanonicalFlight(
        date=date,
        hours=hours,
        aircraft=parse_text(fields.get('aircraft')),
        aircraft_reg=parse_text(fields.get('aircraftReg')),
        route=derive_route(fields.get('route'), origin, destination),
        role=derive_role(parse_text(fields.get('role')), buckets['pic_time'], buckets['sic_time']),
        rules=derive_rules(parse_text(fields.get('rules')), buckets['ifr_time'], hours),
        night=night,
        flight_number=parse_text(fields.get('flightNumber')),
        approach_type=parse_text(fields.get('approachType')),
        approach_count=_count(fields, 'approachCount'),
        simulator_type=parse_text(fields.get('simulatorType')),
        landings_day=_count(fields, 'landingsDay'),
        landings_night=_count(fields, 'landingsNight'),
        remarks=parse_text(fields.get('remarks')),
        categories=collect_categories(fields),
        extras=dict(extras or {}),
        **buckets,
    )


def check_row(fields):
    """Strict row check; returns "<field>: <message>" strings, empty when clean."""
    return row_errors(fields)


def normalize_row(raw, estimate_night=False):
    """
    Normalize one raw row.

    Returns (identity, flight, fields); identity is None when the row has no
    pilot name, fields is the canonicalized row.
    """
    fields, extras = canonicalize_row(raw)
    identity = build_identity(fields)
    flight = build_flight(fields, extras, estimate_night=estimate_night)
    return identity, flight, fields


def parse_flights(rows, strict=True, estimate_night=False, report_unnamed=False):
    """
    Normalize every row, collecting per-row problems instead of raising.

    Row numbers in issues are 1-based and count the header line, so the first
    data row is row 2. Rows without a pilot name are skipped; they are listed
    as issues only when report_unnamed is set.
    """
    result = ParseResult(total_rows=len(rows))

    for index, raw in enumerate(rows):
        row_number = index + 2
        fields, extras = canonicalize_row(raw)

        identity = build_identity(fields)
        if identity is None:
            result.skipped += 1
            if report_unnamed:
                result.issues.append({
                    'rowNumber': row_number,
                    'errors': ['pilotName: Pilot name is required'],
                })
            continue

        if strict:
            errors = check_row(fields)
            if errors:
                result.invalid += 1
                result.issues.append({'rowNumber': row_number, 'errors': errors})
                continue

        flight = build_flight(fields, extras, estimate_night=estimate_night)
        result.entries.append((identity, flight))

    logger.info(
        "Parsed %d rows: %d valid, %d invalid, %d without a pilot name",
        result.total_rows, result.valid, result.invalid, result.skipped,
    )
    return result

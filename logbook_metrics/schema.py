"""
Schemas for flight rows and for the metrics document.

FlightRowCheck is the strict per-row check run during ingestion; its failures
are collected as data-quality issues. MetricsDocument is the contract the web
UI and the store depend on; a document that fails it is never written or served.
"""
from typing import Annotated, Dict, List, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .errors import MetricsValidationError
from .parsers import duration_or_none, is_iso_date, parse_int, to_iso_date


def _duration(value):
    hours = duration_or_none(value)
    if hours is None:
        raise ValueError('Expected numeric value')
    return hours


def _count(value):
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    parsed = parse_int(value)
    if parsed is None:
        raise ValueError('Expected a whole number')
    return parsed


def _non_negative(value):
    if value < 0:
        raise ValueError('Expected a non-negative number')
    return value


def _flight_date(value):
    iso = to_iso_date(value)
    if not iso:
        raise ValueError('Flight date is required')
    if not is_iso_date(iso):
        raise ValueError('Expected a valid date string')
    return iso


Duration = Annotated[float, BeforeValidator(_duration), AfterValidator(_non_negative)]
Count = Annotated[int, BeforeValidator(_count), AfterValidator(_non_negative)]
FlightDate = Annotated[str, BeforeValidator(_flight_date)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Row check
# ---------------------------------------------------------------------------

class FlightRowCheck(CamelModel):
    """Strict shape of one canonicalized CSV row."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')

    date: FlightDate
    hours: Duration = 0.0
    day_time: Duration = 0.0
    night_time: Duration = 0.0
    ifr_time: Duration = 0.0
    pic_time: Duration = 0.0
    sic_time: Duration = 0.0
    simulator_time: Duration = 0.0
    cross_country_time: Duration = 0.0
    solo_time: Duration = 0.0
    dual_received: Duration = 0.0
    instructor_time: Duration = 0.0
    approach_count: Count = 0
    landings_day: Count = 0
    landings_night: Count = 0

    @model_validator(mode='after')
    def _total_covers_roles(self):
        # Rounded inputs: allow half a hundredth of slack
        if self.hours + 0.005 < self.pic_time + self.sic_time:
            raise ValueError('Total time cannot be less than PIC + SIC time')
        return self


def error_messages(exc):
    """Flatten a pydantic ValidationError into "<field>: <message>" strings."""
    messages = []
    for err in exc.errors():
        field = '.'.join(str(part) for part in err.get('loc', ()))
        message = err.get('msg', '')
        if err.get('type') == 'value_error' and 'error' in err.get('ctx', {}):
            message = str(err['ctx']['error'])
        entry = f"{field}: {message}" if field else message
        if entry not in messages:
            messages.append(entry)
    return messages


def row_errors(fields):
    """Validation errors for one canonical row; empty when the row is clean."""
    try:
        FlightRowCheck.model_validate(fields)
    except ValidationError as exc:
        return error_messages(exc)
    return []


# ---------------------------------------------------------------------------
# Metrics document
# ---------------------------------------------------------------------------

NonNegative = Annotated[float, Field(ge=0)]
NonNegativeInt = Annotated[int, Field(ge=0)]


class FlightView(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='allow')

    date: str = ''
    aircraft: Optional[str] = None
    aircraft_reg: Optional[str] = None
    route: Optional[str] = None
    hours: NonNegative = 0.0
    role: Optional[str] = None
    rules: Optional[str] = None
    night: Optional[bool] = None
    flight_number: Optional[str] = None
    approach_type: Optional[str] = None
    approach_count: Optional[NonNegativeInt] = None
    simulator_type: Optional[str] = None
    simulator_time: Optional[NonNegative] = None
    cross_country_time: Optional[NonNegative] = None
    solo_time: Optional[NonNegative] = None
    pic_time: Optional[NonNegative] = None
    sic_time: Optional[NonNegative] = None
    day_time: Optional[NonNegative] = None
    night_time: Optional[NonNegative] = None
    ifr_time: Optional[NonNegative] = None
    dual_received: Optional[NonNegative] = None
    instructor_time: Optional[NonNegative] = None
    landings_day: Optional[NonNegativeInt] = None
    landings_night: Optional[NonNegativeInt] = None
    remarks: Optional[str] = None
    categories: Optional[List[str]] = None


class PilotRecord(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='allow')

    id: str = Field(min_length=1)
    name: str
    license_number: Optional[str] = None
    nationality: Optional[str] = None
    date_of_birth: Optional[str] = None
    license_type: Optional[str] = None
    issuing_authority: Optional[str] = None
    license_issue_date: Optional[str] = None
    license_expiry_date: Optional[str] = None
    total_flights: Optional[NonNegativeInt] = None
    total_hours: Optional[NonNegative] = None
    day_hours: Optional[NonNegative] = None
    night_hours: Optional[NonNegative] = None
    pic_hours: Optional[NonNegative] = None
    sic_hours: Optional[NonNegative] = None
    ifr_hours: Optional[NonNegative] = None
    aircraft_types: Optional[List[str]] = None
    categories: Optional[List[str]] = None
    last_flight_date: Optional[str] = None
    flights: List[FlightView] = Field(default_factory=list)


class Summary(CamelModel):
    total_flights: NonNegativeInt
    total_hours: NonNegative


class Issue(CamelModel):
    row_number: int = Field(gt=0)
    errors: List[str] = Field(min_length=1)


class RowCounts(CamelModel):
    total: NonNegativeInt
    valid: NonNegativeInt
    invalid: NonNegativeInt
    skipped: NonNegativeInt = 0


class SourceInfo(CamelModel):
    url: Optional[str] = None
    rows: RowCounts


class Totals(CamelModel):
    flights: NonNegativeInt
    total_hours: NonNegative
    pic_hours: NonNegative
    sic_hours: NonNegative
    dual_hours: NonNegative
    night_hours: NonNegative
    ifr_hours: NonNegative
    approaches: NonNegativeInt
    day_landings: NonNegativeInt
    night_landings: NonNegativeInt


class Recency(CamelModel):
    latest_flight_date: Optional[str] = None
    days_since_last_flight: Optional[int] = None
    stale: bool


class RollingTotals(CamelModel):
    last_7_days: NonNegative = Field(alias='last7Days')
    last_30_days: NonNegative = Field(alias='last30Days')
    last_90_days: NonNegative = Field(alias='last90Days')


class AircraftBreakdown(CamelModel):
    flights: NonNegativeInt
    hours: NonNegative
    pic_hours: NonNegative
    night_hours: NonNegative


class MonthBreakdown(CamelModel):
    month: str = Field(pattern=r'^\d{4}-\d{2}$')
    flights: NonNegativeInt
    hours: NonNegative


class MetricsDocument(CamelModel):
    """The published metrics document."""

    generated_at: Optional[str] = None
    updated_at: Optional[str] = None
    summary: Summary
    pilots: List[PilotRecord]
    issues: List[Issue] = Field(default_factory=list)
    source: Optional[SourceInfo] = None
    totals: Optional[Totals] = None
    recency: Optional[Recency] = None
    rolling_totals: Optional[RollingTotals] = None
    by_aircraft: Optional[Dict[str, AircraftBreakdown]] = None
    by_month: Optional[List[MonthBreakdown]] = None


class MetricsInput(CamelModel):
    """
    Looser shape accepted for re-validation: a previously built document or a
    bare pilots view, where the summary may be missing.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='allow')

    generated_at: Optional[str] = None
    summary: Optional[Summary] = None
    pilots: List[PilotRecord] = Field(default_factory=list)


def _validate(model, data, label):
    try:
        model.model_validate(data)
    except ValidationError as exc:
        messages = error_messages(exc)
        raise MetricsValidationError(
            f"Invalid {label}: {'; '.join(messages[:5])}", errors=messages
        ) from exc
    return data


def validate_document(data):
    """
    Validate a finished metrics document and return it unchanged.

    Raises MetricsValidationError with the pydantic error chained as the cause.
    """
    return _validate(MetricsDocument, data, 'metrics document')


def validate_input(data):
    return _validate(MetricsInput, data, 'metrics input')

"""
Per-pilot aggregation.

PilotAggregator keeps one PilotAccumulator per pilot id in an arena (a list
plus an id -> index map) that lives for a single ingestion run. Rows are folded
in source order; finalize() freezes the accumulators into PilotRecord dicts
sorted by display name.
"""
import hashlib
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from .parsers import is_iso_date, round2, slugify, strip_accents

logger = logging.getLogger(__name__)

IDENTITY_FIELDS = (
    ('license_number', 'licenseNumber'),
    ('nationality', 'nationality'),
    ('date_of_birth', 'dateOfBirth'),
    ('license_type', 'licenseType'),
    ('issuing_authority', 'issuingAuthority'),
    ('license_issue_date', 'licenseIssueDate'),
    ('license_expiry_date', 'licenseExpiryDate'),
)

CATEGORY_SUMS = (
    ('dayHours', 'day_hours'),
    ('nightHours', 'night_hours'),
    ('picHours', 'pic_hours'),
    ('sicHours', 'sic_hours'),
    ('ifrHours', 'ifr_hours'),
)


def pilot_sort_key(name):
    """
    Collation key for pilot names: accent- and case-insensitive first, then
    lowercase before uppercase so the order is total and deterministic.
    """
    return strip_accents(name).casefold(), name.swapcase()


def pilot_key(name):
    """Pilot id for a display name; names with no ASCII letters get a hash-based id."""
    slug = slugify(name)
    if slug:
        return slug
    digest = hashlib.sha1(name.encode('utf-8')).hexdigest()[:10]
    return f"pilot_{digest}"


@dataclass
class PilotAccumulator:
    id: str
    name: str
    identity: dict = field(default_factory=dict)
    flights: list = field(default_factory=list)
    aircraft_types: Set[str] = field(default_factory=set)
    categories: Set[str] = field(default_factory=set)
    last_flight_date: Optional[str] = None
    total_flights: int = 0
    total_hours: float = 0.0

    def add(self, identity, flight):
        self.total_flights += 1
        self.total_hours = round2(self.total_hours + flight.hours)

        if is_iso_date(flight.date) and (
            self.last_flight_date is None or flight.date > self.last_flight_date
        ):
            self.last_flight_date = flight.date

        if flight.aircraft:
            self.aircraft_types.add(flight.aircraft)
        self.categories.update(flight.categories)
        self.flights.append(flight)
        self.merge_identity(identity)

    def merge_identity(self, identity):
        # Last non-empty value wins
        for attr, key in IDENTITY_FIELDS:
            value = getattr(identity, attr)
            if value:
                self.identity[key] = value

    def finalize(self):
        """Frozen PilotRecord dict with the derived category sums."""
        record = {'id': self.id, 'name': self.name}
        for _, key in IDENTITY_FIELDS:
            if self.identity.get(key):
                record[key] = self.identity[key]

        record['totalFlights'] = self.total_flights
        record['totalHours'] = self.total_hours
        for key, attr in CATEGORY_SUMS:
            total = 0.0
            for flight in self.flights:
                total = round2(total + getattr(flight, attr))
            record[key] = total

        record['aircraftTypes'] = sorted(self.aircraft_types)
        record['categories'] = sorted(self.categories)
        if self.last_flight_date:
            record['lastFlightDate'] = self.last_flight_date
        record['flights'] = [flight.to_dict() for flight in self.flights]
        return record


class PilotAggregator:
    """Folds (identity, flight) pairs into per-pilot accumulators."""

    def __init__(self):
        self._index = {}
        self._pilots: List[PilotAccumulator] = []
        self._reported = set()

    def __len__(self):
        return len(self._pilots)

    def _slot(self, identity):
        pilot_id = identity.pilot_id or pilot_key(identity.name)
        position = self._index.get(pilot_id)
        if position is None:
            position = len(self._pilots)
            self._index[pilot_id] = position
            self._pilots.append(PilotAccumulator(id=pilot_id, name=identity.name))
        else:
            self._warn_collision(self._pilots[position], identity)
        return self._pilots[position]

    def add(self, identity, flight):
        self._slot(identity).add(identity, flight)

    def register(self, identity):
        """Make sure a pilot exists even if it never gets a flight."""
        pilot = self._slot(identity)
        pilot.merge_identity(identity)
        return pilot

    def _warn_collision(self, pilot, identity):
        marker = (pilot.id, identity.name, identity.license_number)
        if marker in self._reported:
            return
        self._reported.add(marker)
        known_license = pilot.identity.get('licenseNumber')
        if identity.name != pilot.name:
            logger.warning(
                "Pilot names %r and %r share id %r; merging their flights",
                pilot.name, identity.name, pilot.id,
            )
        elif known_license and identity.license_number and identity.license_number != known_license:
            logger.warning(
                "Pilot %r (id %r) has conflicting license numbers %r and %r; merging their flights",
                pilot.name, pilot.id, known_license, identity.license_number,
            )

    def finalize(self):
        records = [pilot.finalize() for pilot in self._pilots]
        records.sort(key=lambda record: pilot_sort_key(record['name']))
        return records


def aggregate_pilots(entries):
    """Fold (identity, flight) pairs into the sorted PilotRecord list."""
    aggregator = PilotAggregator()
    for identity, flight in entries:
        aggregator.add(identity, flight)
    return aggregator.finalize()

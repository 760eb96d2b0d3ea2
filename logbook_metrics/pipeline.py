"""
Ingestion pipeline.

  build_metrics_document() - CSV text -> validated metrics document (no I/O)
  rebuild_document()       - re-derive a document from an existing one
  run_ingestion()          - fetch, build and store in one go
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import IngestionError
from .metrics import build_metrics
from .pilots import PilotAggregator, aggregate_pilots
from .rows import PilotIdentity, build_flight, parse_flights, read_csv_rows
from .schema import validate_document, validate_input
from .sources import fetch_csv

logger = logging.getLogger(__name__)

NO_VALID_ROWS = "No valid flight data found in the data source"


@dataclass
class IngestionResult:
    document: dict
    path: Optional[Path] = None

    @property
    def rows(self):
        return self.document['source']['rows']

    @property
    def summary(self):
        return self.document['summary']

    @property
    def issues(self):
        return self.document['issues']


def build_metrics_document(csv_text, source_url=None, now=None, strict=True,
                           estimate_night=False, report_unnamed=False):
    """
    Turn CSV text into a validated metrics document.

    Raises IngestionError when no row survives normalization and
    MetricsValidationError when the finished document fails its schema.
    """
    rows = read_csv_rows(csv_text)
    result = parse_flights(
        rows,
        strict=strict,
        estimate_night=estimate_night,
        report_unnamed=report_unnamed,
    )
    if result.valid == 0:
        raise IngestionError(NO_VALID_ROWS)

    pilots = aggregate_pilots(result.entries)
    document = build_metrics(
        pilots,
        now=now,
        issues=result.issues,
        source_url=source_url,
        total_rows=result.total_rows,
        skipped=result.skipped,
        invalid=result.invalid,
    )
    return validate_document(document)


def _identity_from_record(record):
    return PilotIdentity(
        name=record.get('name') or '',
        license_number=record.get('licenseNumber'),
        nationality=record.get('nationality'),
        date_of_birth=record.get('dateOfBirth'),
        license_type=record.get('licenseType'),
        issuing_authority=record.get('issuingAuthority'),
        license_issue_date=record.get('licenseIssueDate'),
        license_expiry_date=record.get('licenseExpiryDate'),
        pilot_id=record.get('id'),
    )


def rebuild_document(existing, now=None):
    """
    Re-derive a metrics document from a previously built one (or a bare
    pilots view).

    Pilots are rebuilt from their canonical flights and keep their ids. A valid
    summary in the input is trusted and carried over unchanged.
    """
    validate_input(existing)

    aggregator = PilotAggregator()
    for record in existing.get('pilots') or []:
        try:
            identity = _identity_from_record(record)
        except ValueError:
            logger.warning("Dropping pilot %r without a name", record.get('id'))
            continue
        aggregator.register(identity)
        for flight in record.get('flights') or []:
            aggregator.add(identity, build_flight(flight))

    pilots = aggregator.finalize()
    source = existing.get('source') or {}
    counts = source.get('rows') or {}

    document = build_metrics(
        pilots,
        now=now,
        summary=existing.get('summary'),
        issues=existing.get('issues') or [],
        source_url=source.get('url'),
        total_rows=counts.get('total'),
        skipped=counts.get('skipped', 0),
        invalid=counts.get('invalid'),
    )
    return validate_document(document)


def run_ingestion(source_url, store=None, key='metrics.json', fetch=fetch_csv,
                  now=None, dry_run=False, strict=True, estimate_night=False,
                  report_unnamed=False):
    """
    Fetch the CSV at source_url, build the document and write it to store.

    Nothing is written on dry_run, when store is None, or when any step fails;
    the previously stored document stays in place.
    """
    csv_text = fetch(source_url)
    document = build_metrics_document(
        csv_text,
        source_url=source_url,
        now=now,
        strict=strict,
        estimate_night=estimate_night,
        report_unnamed=report_unnamed,
    )

    path = None
    if store is not None and not dry_run:
        path = store.write(key, document)

    rows = document['source']['rows']
    logger.info(
        "Ingested %s: %d pilots, %d valid rows, %d issues",
        source_url, len(document['pilots']), rows['valid'], len(document['issues']),
    )
    return IngestionResult(document=document, path=path)

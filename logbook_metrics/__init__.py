"""Normalize pilot logbook CSV exports into a validated metrics document."""
from .errors import IngestionError, MetricsValidationError
from .metrics import build_metrics
from .pilots import PilotAggregator, aggregate_pilots
from .pipeline import IngestionResult, build_metrics_document, rebuild_document, run_ingestion
from .rows import normalize_row, parse_flights, read_csv_rows
from .schema import validate_document
from .store import MetricsStore

__version__ = "0.1.0"

__all__ = [
    'IngestionError',
    'IngestionResult',
    'MetricsStore',
    'MetricsValidationError',
    'PilotAggregator',
    'aggregate_pilots',
    'build_metrics',
    'build_metrics_document',
    'normalize_row',
    'parse_flights',
    'read_csv_rows',
    'rebuild_document',
    'run_ingestion',
    'validate_document',
]

import argparse
import json
import logging
import os
import sys
from functools import partial

from logbook_metrics.config import load_settings
from logbook_metrics.errors import IngestionError, MetricsValidationError
from logbook_metrics.pipeline import rebuild_document, run_ingestion
from logbook_metrics.schema import validate_document
from logbook_metrics.sources import fetch_csv
from logbook_metrics.store import MetricsStore


def parse_args(argv=None, settings=None):
    """Parse command line arguments."""
    settings = settings or load_settings()
    parser = argparse.ArgumentParser(
        description='Build the pilot metrics document from a logbook CSV export.',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        '--csv',
        type=str,
        help='Local CSV file with one flight per row'
    )
    source.add_argument(
        '--url',
        type=str,
        default=settings.data_source_url,
        help='URL of the CSV export (defaults to DATA_SOURCE_URL)'
    )
    source.add_argument(
        '--revalidate',
        type=str,
        metavar='PATH',
        help='Existing metrics JSON to validate and rebuild instead of ingesting a CSV'
    )

    parser.add_argument(
        '--output',
        type=str,
        help='Write the document to this JSON file instead of the metrics store'
    )
    parser.add_argument(
        '--store-dir',
        type=str,
        default=settings.metrics_dir,
        help='Directory of the metrics store'
    )
    parser.add_argument(
        '--key',
        type=str,
        default=settings.metrics_key,
        help='Document name inside the metrics store'
    )
    parser.add_argument(
        '--lenient',
        action='store_true',
        default=not settings.strict_validation,
        help='Skip the strict per-row check; negative times are clamped to 0'
    )
    parser.add_argument(
        '--estimate-night',
        action='store_true',
        default=settings.estimate_night,
        help='Estimate the night flag from takeoff/landing times when a row has no night column'
    )
    parser.add_argument(
        '--report-unnamed',
        action='store_true',
        help='List rows without a pilot name as issues'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Build and validate the document without writing it'
    )
    parser.add_argument(
        '--timeout',
        type=int,
        default=settings.request_timeout,
        help='HTTP timeout in seconds when fetching --url'
    )

    return parser.parse_args(argv)


def write_output(path, document):
    validate_document(document)
    with open(path, 'w', encoding='utf-8') as fh:
        json.dump(document, fh, indent=2, ensure_ascii=False)
        fh.write('\n')


def revalidate(args):
    with open(args.revalidate, encoding='utf-8-sig') as fh:
        existing = json.load(fh)
    document = rebuild_document(existing)
    print(f"Validated {args.revalidate}: {len(document['pilots'])} pilots, "
          f"{document['summary']['totalFlights']} flights")
    return document


def main(argv=None):
    """
    Ingest a logbook CSV and publish the metrics document.

    The CSV comes from --csv, --url or DATA_SOURCE_URL. The document goes to
    --output when given, otherwise into the metrics store under --key.
    Returns the process exit code.
    """
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    args = parse_args(argv)

    store = MetricsStore(args.store_dir)
    target = args.output or os.path.join(args.store_dir, args.key)

    try:
        if args.revalidate:
            document = revalidate(args)
        else:
            source = args.csv or args.url
            if not source:
                print("Error: no data source. Use --csv, --url or set DATA_SOURCE_URL.")
                return 2

            print(f"Processing flights from {source}...")
            result = run_ingestion(
                source,
                store=None,
                fetch=partial(fetch_csv, timeout=args.timeout),
                strict=not args.lenient,
                estimate_night=args.estimate_night,
                report_unnamed=args.report_unnamed,
            )
            document = result.document
            rows = result.rows
            print(f"Done! Processed {rows['total']} rows: {rows['valid']} valid, "
                  f"{rows['invalid']} invalid, {rows['skipped']} skipped, "
                  f"{len(document['pilots'])} pilots.")
            for issue in result.issues[:10]:
                print(f"  Row {issue['rowNumber']}: {'; '.join(issue['errors'])}")
            if len(result.issues) > 10:
                print(f"  ... and {len(result.issues) - 10} more issues")

        if args.dry_run:
            print("Dry run: nothing written.")
        elif args.output:
            write_output(args.output, document)
            print(f"Output written to {target}")
        else:
            store.write(args.key, document)
            print(f"Output written to {target}")

    except (IngestionError, MetricsValidationError) as e:
        print(f"Error: {e}")
        return 1
    except (OSError, ValueError) as e:
        print(f"Error processing flight data: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

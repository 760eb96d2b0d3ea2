from flask import Flask, request, jsonify
import argparse
import logging
from functools import partial

from logbook_metrics.config import ALLOWED_EXTENSIONS, load_settings
from logbook_metrics.errors import IngestionError, MetricsValidationError
from logbook_metrics.pipeline import build_metrics_document, run_ingestion
from logbook_metrics.sources import decode_csv, fetch_csv
from logbook_metrics.store import MetricsStore

logger = logging.getLogger(__name__)

LOAD_ERROR = "Unable to load metrics data."

# Pilot summary view: everything except the flight list
SUMMARY_EXCLUDES = {'flights'}


def allowed_file(filename):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def create_app(settings=None, fetch=None):
    """
    Build the Flask app.

    Args:
        settings: A config.Settings; read from the environment when omitted.
        fetch: Callable returning CSV text for a source URL. Defaults to
            sources.fetch_csv with the configured request timeout.
    """
    settings = settings or load_settings()

    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = settings.max_content_length  # Limit uploads
    app.config['DATA_SOURCE_URL'] = settings.data_source_url
    app.config['METRICS_KEY'] = settings.metrics_key
    app.config['STRICT_VALIDATION'] = settings.strict_validation
    app.config['ESTIMATE_NIGHT'] = settings.estimate_night
    app.config['CACHE_CONTROL'] = settings.cache_control

    store = MetricsStore(settings.metrics_dir)
    fetch = fetch or partial(fetch_csv, timeout=settings.request_timeout)

    def ingest_source():
        return run_ingestion(
            app.config['DATA_SOURCE_URL'],
            store=store,
            key=app.config['METRICS_KEY'],
            fetch=fetch,
            strict=app.config['STRICT_VALIDATION'],
            estimate_night=app.config['ESTIMATE_NIGHT'],
        ).document

    def load_document():
        """Last stored document; ingests first when nothing is stored yet."""
        document = store.read(app.config['METRICS_KEY'])
        if document is None:
            if not app.config['DATA_SOURCE_URL']:
                raise IngestionError("No metrics document stored and no data source configured")
            logger.info("No stored metrics document; ingesting from source")
            document = ingest_source()
        return document

    @app.route('/api/metrics', methods=['GET'])
    def metrics():
        try:
            document = load_document()
        except Exception:
            logger.exception("Failed to load metrics document")
            return jsonify({'error': LOAD_ERROR}), 500

        response = jsonify(document)
        response.headers['Cache-Control'] = app.config['CACHE_CONTROL']
        return response

    @app.route('/api/pilots', methods=['GET'])
    def pilots():
        try:
            document = load_document()
        except Exception:
            logger.exception("Failed to load metrics document")
            return jsonify({'error': LOAD_ERROR}), 500

        summaries = [
            {key: value for key, value in pilot.items() if key not in SUMMARY_EXCLUDES}
            for pilot in document['pilots']
        ]
        response = jsonify({'pilots': summaries, 'summary': document['summary']})
        response.headers['Cache-Control'] = app.config['CACHE_CONTROL']
        return response

    @app.route('/api/pilots/<pilot_id>', methods=['GET'])
    def pilot_detail(pilot_id):
        try:
            document = load_document()
        except Exception:
            logger.exception("Failed to load metrics document")
            return jsonify({'error': LOAD_ERROR}), 500

        for pilot in document['pilots']:
            if pilot['id'] == pilot_id:
                response = jsonify(pilot)
                response.headers['Cache-Control'] = app.config['CACHE_CONTROL']
                return response
        return jsonify({'error': f"Pilot '{pilot_id}' not found"}), 404

    @app.route('/api/ingest', methods=['GET', 'POST'])
    def ingest():
        key = app.config['METRICS_KEY']
        flights_file = request.files.get('flights_file') if request.method == 'POST' else None

        if flights_file is not None and flights_file.filename:
            if not allowed_file(flights_file.filename):
                return jsonify({'success': False, 'error': 'Invalid file type. Please upload CSV files.'}), 400
        elif not app.config['DATA_SOURCE_URL']:
            return jsonify({'success': False, 'error': 'No data source configured'}), 400
        else:
            flights_file = None

        try:
            if flights_file is not None:
                document = build_metrics_document(
                    decode_csv(flights_file.read()),
                    strict=app.config['STRICT_VALIDATION'],
                    estimate_night=app.config['ESTIMATE_NIGHT'],
                )
                store.write(key, document)
            else:
                document = ingest_source()
        except (IngestionError, MetricsValidationError) as e:
            logger.error("Ingestion failed: %s", e)
            return jsonify({'success': False, 'error': str(e)}), 500
        except Exception as e:
            logger.exception("Ingestion failed")
            return jsonify({'success': False, 'error': f"Error processing flights: {str(e)}"}), 500

        return jsonify({
            'success': True,
            'summary': document['summary'],
            'issues': document['issues'],
            'key': key,
        })

    return app


app = create_app()


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    # Parse command line arguments
    parser = argparse.ArgumentParser(description='Run the logbook metrics web application')
    parser.add_argument('--port', type=int, default=5000, help='Port to run the web server on')
    parser.add_argument('--host', type=str, default='127.0.0.1', help='Host to run the web server on')
    parser.add_argument('--debug', action='store_true', help='Enable Flask debug mode')
    args = parser.parse_args()

    # Run the app
    app.run(debug=args.debug, host=args.host, port=args.port)

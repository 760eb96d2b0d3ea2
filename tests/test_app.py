import io

import pytest

from app import allowed_file, create_app
from logbook_metrics.config import Settings
from logbook_metrics.errors import IngestionError
from logbook_metrics.store import MetricsStore

SOURCE_URL = "https://example.test/logbook.csv"


@pytest.fixture
def make_client(tmp_path, logbook_csv):
    def make(source_url=SOURCE_URL, fetch=None):
        settings = Settings(data_source_url=source_url, metrics_dir=str(tmp_path))
        app = create_app(settings, fetch=fetch or (lambda url: logbook_csv))
        app.config['TESTING'] = True
        return app.test_client()
    return make


def test_allowed_file():
    assert allowed_file("flights.csv")
    assert allowed_file("FLIGHTS.CSV")
    assert not allowed_file("flights.xlsx")
    assert not allowed_file("flights")


def test_metrics_ingests_when_nothing_is_stored(make_client, tmp_path):
    client = make_client()
    response = client.get('/api/metrics')

    assert response.status_code == 200
    assert response.headers['Cache-Control'] == "s-maxage=150, stale-while-revalidate=300"
    body = response.get_json()
    assert body['summary'] == {'totalFlights': 3, 'totalHours': 4.5}
    assert (tmp_path / "metrics.json").exists()


def test_metrics_serves_stored_document_without_fetching(make_client, tmp_path, logbook_csv):
    make_client().get('/api/ingest')

    def fail(url):
        raise AssertionError("should not fetch")

    response = make_client(fetch=fail).get('/api/metrics')
    assert response.status_code == 200
    assert response.get_json()['pilots'][0]['name'] == "Jane Doe"


def test_metrics_error_response(make_client):
    def unreachable(url):
        raise IngestionError("Failed to fetch data source: 503 Service Unavailable")

    response = make_client(fetch=unreachable).get('/api/metrics')
    assert response.status_code == 500
    assert response.get_json() == {'error': "Unable to load metrics data."}

    response = make_client(source_url=None).get('/api/metrics')
    assert response.status_code == 500
    assert response.get_json() == {'error': "Unable to load metrics data."}


def test_pilot_endpoints(make_client):
    client = make_client()

    response = client.get('/api/pilots')
    assert response.status_code == 200
    pilots = response.get_json()['pilots']
    assert [p['id'] for p in pilots] == ['jane_doe', 'john_smith']
    assert all('flights' not in p for p in pilots)

    response = client.get('/api/pilots/john_smith')
    assert response.status_code == 200
    assert response.get_json()['flights'][0]['rules'] == 'IFR'

    assert client.get('/api/pilots/nobody').status_code == 404


def test_ingest_from_configured_source(make_client):
    response = make_client().post('/api/ingest')

    assert response.status_code == 200
    body = response.get_json()
    assert body['success'] is True
    assert body['key'] == 'metrics.json'
    assert body['summary'] == {'totalFlights': 3, 'totalHours': 4.5}
    assert [issue['rowNumber'] for issue in body['issues']] == [6]


def test_ingest_uploaded_file(make_client, tmp_path, logbook_csv):
    client = make_client(source_url=None)
    response = client.post(
        '/api/ingest',
        data={'flights_file': (io.BytesIO(logbook_csv.encode('utf-8')), 'flights.csv')},
        content_type='multipart/form-data',
    )

    assert response.status_code == 200
    assert response.get_json()['success'] is True
    assert MetricsStore(tmp_path).read('metrics.json')['summary']['totalFlights'] == 3


def test_ingest_rejects_other_file_types(make_client):
    response = make_client().post(
        '/api/ingest',
        data={'flights_file': (io.BytesIO(b"not csv"), 'flights.xlsx')},
        content_type='multipart/form-data',
    )
    assert response.status_code == 400
    assert response.get_json()['success'] is False


def test_ingest_without_source(make_client):
    response = make_client(source_url=None).get('/api/ingest')
    assert response.status_code == 400
    assert response.get_json() == {'success': False, 'error': 'No data source configured'}


def test_failed_ingest_keeps_last_good_document(make_client, tmp_path):
    make_client().post('/api/ingest')
    before = MetricsStore(tmp_path).read('metrics.json')

    response = make_client(fetch=lambda url: "Pilot Name,Date,Total Time\nJane,2024-01-01,-1\n").post('/api/ingest')

    assert response.status_code == 500
    body = response.get_json()
    assert body['success'] is False
    assert "No valid flight data" in body['error']
    assert MetricsStore(tmp_path).read('metrics.json') == before

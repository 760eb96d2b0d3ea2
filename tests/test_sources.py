import pytest
import requests

from logbook_metrics.errors import IngestionError
from logbook_metrics.sources import fetch_csv, is_remote

URL = "https://example.test/logbook.csv"


class StubSession:
    def __init__(self, status=200, content=b"", reason="OK", error=None):
        self.status = status
        self.content = content
        self.reason = reason
        self.error = error
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        if self.error:
            raise self.error
        resp = requests.Response()
        resp.status_code = self.status
        resp.reason = self.reason
        resp.url = url
        resp._content = self.content
        return resp


def test_fetch_over_http_strips_bom():
    session = StubSession(content=b"\xef\xbb\xbfPilot Name,Date\nJane,2024-04-01\n")

    text = fetch_csv(URL, session=session, timeout=5)

    assert text == "Pilot Name,Date\nJane,2024-04-01\n"
    assert session.calls == [(URL, 5)]


def test_http_error_status_raises_ingestion_error():
    session = StubSession(status=404, reason="Not Found")

    with pytest.raises(IngestionError, match="Failed to fetch data source: 404 Not Found"):
        fetch_csv(URL, session=session)


def test_connection_error_raises_ingestion_error():
    session = StubSession(error=requests.ConnectionError("connection refused"))

    with pytest.raises(IngestionError, match="Failed to fetch data source"):
        fetch_csv(URL, session=session)


def test_fetch_local_file(tmp_path):
    path = tmp_path / "flights.csv"
    path.write_bytes(b"\xef\xbb\xbfPilot Name\nJane\n")

    assert fetch_csv(str(path)) == "Pilot Name\nJane\n"


def test_missing_local_file(tmp_path):
    with pytest.raises(IngestionError, match="Failed to read data source"):
        fetch_csv(str(tmp_path / "missing.csv"))


def test_no_source():
    with pytest.raises(IngestionError):
        fetch_csv("")


def test_is_remote():
    assert is_remote(URL)
    assert not is_remote("/tmp/flights.csv")
    assert not is_remote("file:///tmp/flights.csv")

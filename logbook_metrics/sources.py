"""
CSV source fetcher.

Reads the logbook export from an http(s) URL or from a local file path and
returns its text with any byte-order mark removed.
"""
import logging
from pathlib import Path
from urllib.parse import urlparse

import requests

from .errors import IngestionError
from .headers import BOM

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


def is_remote(source):
    return urlparse(str(source)).scheme in ('http', 'https')


def decode_csv(payload):
    """Text of a CSV payload; bytes are decoded as UTF-8 and a leading BOM is dropped."""
    if isinstance(payload, bytes):
        payload = payload.decode('utf-8-sig', errors='replace')
    return payload.lstrip(BOM)


def fetch_csv(source, session=None, timeout=DEFAULT_TIMEOUT):
    """
    Fetch CSV text from a URL or a local path.

    Raises IngestionError when the source cannot be read or the server answers
    with an error status.
    """
    if not source:
        raise IngestionError("No data source configured")

    if not is_remote(source):
        path = Path(str(source).removeprefix('file://'))
        try:
            return decode_csv(path.read_bytes())
        except OSError as e:
            raise IngestionError(f"Failed to read data source: {e}") from e

    http = session or requests
    logger.info("Fetching %s", source)
    try:
        resp = http.get(source, timeout=timeout)
        resp.raise_for_status()
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else ''
        reason = e.response.reason if e.response is not None else ''
        raise IngestionError(f"Failed to fetch data source: {status} {reason}".rstrip()) from e
    except requests.RequestException as e:
        raise IngestionError(f"Failed to fetch data source: {e}") from e

    return decode_csv(resp.content)

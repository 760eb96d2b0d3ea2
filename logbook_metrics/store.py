"""
Local JSON document store.

Documents are validated before every write and after every read. Writes go
through a temp file in the same directory followed by os.replace, so readers
see either the previous document or the new one.
"""
import json
import logging
import os
import tempfile
from pathlib import Path

from .headers import BOM
from .schema import validate_document

logger = logging.getLogger(__name__)


class MetricsStore:
    def __init__(self, directory):
        self.directory = Path(directory)

    def path(self, key):
        name = Path(key).name
        if not name or name != key:
            raise ValueError(f"Invalid document key: {key!r}")
        return self.directory / name

    def exists(self, key):
        return self.path(key).is_file()

    def write(self, key, document):
        """Validate and persist a document. Returns the path written."""
        validate_document(document)
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.path(key)

        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                json.dump(document, fh, indent=2, ensure_ascii=False)
                fh.write('\n')
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.info("Wrote metrics document to %s", target)
        return target

    def read(self, key):
        """
        Load and validate a stored document.

        Returns None when nothing is stored under key. A stored document that
        no longer validates raises MetricsValidationError.
        """
        target = self.path(key)
        try:
            text = target.read_text(encoding='utf-8')
        except FileNotFoundError:
            return None
        document = json.loads(text.lstrip(BOM))
        return validate_document(document)

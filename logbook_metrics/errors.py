class IngestionError(ValueError):
    """A whole ingestion run failed: unreachable source or no usable rows."""


class MetricsValidationError(ValueError):
    """A metrics document does not match the published schema."""

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = list(errors or [])

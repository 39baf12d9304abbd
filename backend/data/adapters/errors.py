"""Errors raised by market data adapters."""


class DataSourceError(Exception):
    """Raised when an external data source fails."""

    def __init__(self, source: str, message: str | None = None):
        self.source = source
        detail = f"Data source '{source}' error"
        if message:
            detail = f"{detail}: {message}"
        super().__init__(detail)

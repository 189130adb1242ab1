"""Exceptions raised by the third-party integration clients."""

from typing import List, Optional


class ConfigurationError(ValueError):
    """Required settings are missing; ``missing`` lists the variable names."""

    def __init__(self, service: str, missing: List[str]):
        self.service = service
        self.missing = list(missing)
        super().__init__(
            f"{service} is not configured. Missing environment variables: "
            f"{', '.join(self.missing)}"
        )


class IntegrationAPIError(Exception):
    """Non-2xx response or transport failure from an upstream API."""

    service = "upstream"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ZohoAPIError(IntegrationAPIError):
    service = "zoho"


class AirtableAPIError(IntegrationAPIError):
    service = "airtable"


class RecordParseError(ValueError):
    """An upstream payload did not have the expected shape."""

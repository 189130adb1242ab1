"""
Airtable client - reads the external content catalog.

Airtable pages through records with an opaque ``offset`` token; the client
follows it until the last page and parses each record into an
ExternalRecord.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import quote

import requests
from django.conf import settings

from storefront.integrations.exceptions import (
    AirtableAPIError,
    ConfigurationError,
    RecordParseError,
)
from storefront.integrations.types import ExternalRecord

logger = logging.getLogger(__name__)


class AirtableClient:
    """
    Wrapper for the Airtable REST API (v0).

    Usage:
        client = AirtableClient()
        for record in client.iter_records(filter_by_formula="NOT({Images}='')"):
            ...
    """

    MAX_PAGE_SIZE = 100

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_id: Optional[str] = None,
        table_id: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        """
        Raises:
            ConfigurationError: If the token or base id is not configured
        """
        self.api_key = api_key or getattr(settings, "AIRTABLE_API_KEY", "")
        self.base_id = base_id or getattr(settings, "AIRTABLE_BASE_ID", "")
        self.table_id = table_id or getattr(settings, "AIRTABLE_TABLE_ID", "SigDistro")
        self.base_url = getattr(settings, "AIRTABLE_API_URL", "https://api.airtable.com/v0").rstrip("/")
        self.timeout = timeout or getattr(settings, "INTEGRATION_REQUEST_TIMEOUT", 30)

        missing = []
        if not self.api_key:
            missing.append("AIRTABLE_API_KEY")
        if not self.base_id:
            missing.append("AIRTABLE_BASE_ID")
        if missing:
            raise ConfigurationError("Airtable", missing)

        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        })

    @property
    def table_url(self) -> str:
        return f"{self.base_url}/{self.base_id}/{quote(self.table_id)}"

    def _make_request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.get(self.table_url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Airtable request failed: {e}")
            raise AirtableAPIError(f"Airtable request failed: {e}") from e

        if response.status_code != 200:
            message = response.text[:200]
            try:
                error = response.json().get("error")
                if isinstance(error, dict):
                    message = error.get("message") or error.get("type") or message
                elif error:
                    message = str(error)
            except ValueError:
                pass
            raise AirtableAPIError(
                f"Airtable API error {response.status_code}: {message}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise AirtableAPIError(f"Airtable returned invalid JSON: {e}") from e

    def iter_record_payloads(
        self,
        filter_by_formula: Optional[str] = None,
        page_size: int = MAX_PAGE_SIZE,
        max_records: Optional[int] = None,
    ) -> Iterator[Dict[str, Any]]:
        """Yield raw record payloads across all pages."""
        params: Dict[str, Any] = {"pageSize": min(page_size, self.MAX_PAGE_SIZE)}
        if filter_by_formula:
            params["filterByFormula"] = filter_by_formula
        if max_records:
            params["maxRecords"] = max_records

        page = 0
        while True:
            data = self._make_request(params)
            page += 1
            records = data.get("records", [])
            if not isinstance(records, list):
                raise AirtableAPIError("Airtable response has no records list")
            logger.debug(f"Airtable page {page}: {len(records)} records")
            yield from records

            offset = data.get("offset")
            if not offset:
                break
            params["offset"] = offset

    def iter_records(
        self,
        filter_by_formula: Optional[str] = None,
        page_size: int = MAX_PAGE_SIZE,
        max_records: Optional[int] = None,
        errors: Optional[List[str]] = None,
    ) -> Iterator[ExternalRecord]:
        """
        Yield parsed records across all pages.

        Records that fail to parse are skipped; their error is appended to
        ``errors`` when a list is given.
        """
        for payload in self.iter_record_payloads(filter_by_formula, page_size, max_records):
            try:
                yield ExternalRecord.from_airtable(payload)
            except RecordParseError as e:
                logger.warning(f"Skipping malformed Airtable record: {e}")
                if errors is not None:
                    errors.append(str(e))

    def list_records(self, **kwargs) -> List[ExternalRecord]:
        return list(self.iter_records(**kwargs))

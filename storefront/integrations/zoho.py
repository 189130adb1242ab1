"""
Zoho Inventory client.

Authenticates with the OAuth2 refresh-token flow against the Zoho accounts
endpoint, caches the access token until shortly before it expires, and
retries a request once with a fresh token after a 401.
"""

import logging
import time
from typing import Any, Dict, Iterator, List, Optional

import requests
from django.conf import settings

from storefront.integrations.exceptions import (
    ConfigurationError,
    RecordParseError,
    ZohoAPIError,
)
from storefront.integrations.types import ZohoCategory, ZohoItem

logger = logging.getLogger(__name__)


# Refresh this many seconds before the token actually expires
TOKEN_EXPIRY_BUFFER_SECONDS = 60

# Safety stop for runaway pagination
MAX_PAGES = 100


class ZohoInventoryClient:
    """
    Wrapper for the Zoho Inventory REST API (v1).

    Usage:
        client = ZohoInventoryClient()
        for item in client.iter_items():
            ...
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        refresh_token: Optional[str] = None,
        organization_id: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        """
        Raises:
            ConfigurationError: If any OAuth credential or the organization id is missing
        """
        self.client_id = client_id or getattr(settings, "ZOHO_CLIENT_ID", "")
        self.client_secret = client_secret or getattr(settings, "ZOHO_CLIENT_SECRET", "")
        self.refresh_token = refresh_token or getattr(settings, "ZOHO_REFRESH_TOKEN", "")
        self.organization_id = organization_id or getattr(settings, "ZOHO_ORGANIZATION_ID", "")
        self.accounts_url = getattr(
            settings, "ZOHO_ACCOUNTS_URL", "https://accounts.zoho.com"
        ).rstrip("/")
        self.api_base_url = getattr(
            settings, "ZOHO_API_BASE_URL", "https://www.zohoapis.com/inventory/v1"
        ).rstrip("/")
        self.timeout = timeout or getattr(settings, "INTEGRATION_REQUEST_TIMEOUT", 30)

        missing = [
            name
            for name, value in (
                ("ZOHO_CLIENT_ID", self.client_id),
                ("ZOHO_CLIENT_SECRET", self.client_secret),
                ("ZOHO_REFRESH_TOKEN", self.refresh_token),
                ("ZOHO_ORGANIZATION_ID", self.organization_id),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError("Zoho Inventory", missing)

        self.session = requests.Session()
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    def _refresh_access_token(self) -> str:
        try:
            response = self.session.post(
                f"{self.accounts_url}/oauth/v2/token",
                data={
                    "refresh_token": self.refresh_token,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "refresh_token",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ZohoAPIError(f"Zoho token refresh failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200 or "access_token" not in data:
            detail = data.get("error") or response.text[:200]
            raise ZohoAPIError(
                f"Zoho token refresh failed ({response.status_code}): {detail}",
                status_code=response.status_code,
            )

        self._access_token = data["access_token"]
        expires_in = int(data.get("expires_in", 3600))
        self._token_expires_at = time.monotonic() + expires_in - TOKEN_EXPIRY_BUFFER_SECONDS
        logger.info("Refreshed Zoho access token")
        return self._access_token

    def get_access_token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token
        return self._refresh_access_token()

    def _make_request(
        self, path: str, params: Optional[Dict[str, Any]] = None, retry_on_401: bool = True
    ) -> Dict[str, Any]:
        query = {"organization_id": self.organization_id, **(params or {})}
        headers = {"Authorization": f"Zoho-oauthtoken {self.get_access_token()}"}

        try:
            response = self.session.get(
                f"{self.api_base_url}{path}",
                params=query,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Zoho request to {path} failed: {e}")
            raise ZohoAPIError(f"Zoho request failed: {e}") from e

        if response.status_code == 401 and retry_on_401:
            logger.info("Zoho returned 401, refreshing token and retrying once")
            self._access_token = None
            return self._make_request(path, params, retry_on_401=False)

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200:
            message = data.get("message") or response.text[:200]
            raise ZohoAPIError(
                f"Zoho API error {response.status_code}: {message}",
                status_code=response.status_code,
            )
        # Zoho signals application errors with a non-zero code in a 200 body
        if data.get("code", 0) != 0:
            raise ZohoAPIError(f"Zoho API error {data.get('code')}: {data.get('message', '')}")
        return data

    def iter_items(
        self,
        per_page: int = 200,
        start_page: int = 1,
        max_pages: int = MAX_PAGES,
        errors: Optional[List[str]] = None,
    ) -> Iterator[ZohoItem]:
        """
        Yield every inventory item, following ``page_context.has_more_page``.

        Malformed items are skipped; their error is appended to ``errors``
        when a list is given.
        """
        page = start_page
        pages_read = 0
        while pages_read < max_pages:
            data = self._make_request("/items", {"page": page, "per_page": per_page})
            pages_read += 1
            for payload in data.get("items", []):
                try:
                    yield ZohoItem.from_api(payload)
                except RecordParseError as e:
                    logger.warning(f"Skipping malformed Zoho item on page {page}: {e}")
                    if errors is not None:
                        errors.append(str(e))

            if not data.get("page_context", {}).get("has_more_page"):
                break
            page += 1
        else:
            logger.warning(f"Stopped Zoho item pagination after {max_pages} pages")

    def get_item(self, item_id: str) -> ZohoItem:
        data = self._make_request(f"/items/{item_id}")
        try:
            return ZohoItem.from_api(data.get("item"))
        except RecordParseError as e:
            raise ZohoAPIError(f"Invalid item payload for {item_id}: {e}") from e

    def list_categories(self) -> List[ZohoCategory]:
        data = self._make_request("/settings/categories")
        categories = []
        for payload in data.get("categories", []):
            try:
                categories.append(ZohoCategory.from_api(payload))
            except RecordParseError as e:
                logger.warning(f"Skipping malformed Zoho category: {e}")
        return categories

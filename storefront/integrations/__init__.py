"""
Clients for the third-party systems the storefront syncs with.

- AirtableClient: external content catalog (images, descriptions)
- ZohoInventoryClient: authoritative item, price and stock data
"""

from storefront.integrations.exceptions import (
    AirtableAPIError,
    ConfigurationError,
    IntegrationAPIError,
    RecordParseError,
    ZohoAPIError,
)
from storefront.integrations.types import ExternalRecord, ZohoCategory, ZohoItem

__all__ = [
    "AirtableAPIError",
    "ConfigurationError",
    "ExternalRecord",
    "IntegrationAPIError",
    "RecordParseError",
    "ZohoAPIError",
    "ZohoCategory",
    "ZohoItem",
]

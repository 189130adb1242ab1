"""
Typed records parsed from third-party JSON payloads.

Payloads are validated once, on the way in. Everything past the client
layer works with these dataclasses and never touches raw response dicts.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple

from storefront.integrations.exceptions import RecordParseError


def _first_text(fields: Dict[str, Any], *names: str) -> str:
    """First non-empty string value among ``names``."""
    for name in names:
        value = fields.get(name)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _parse_images(value: Any) -> Tuple[str, ...]:
    """Airtable images are a URL string, a list of URLs or attachment objects."""
    if not value:
        return ()
    if isinstance(value, str):
        return tuple(url.strip() for url in value.split(",") if url.strip())
    if isinstance(value, list):
        urls = []
        for item in value:
            if isinstance(item, str) and item.strip():
                urls.append(item.strip())
            elif isinstance(item, dict) and isinstance(item.get("url"), str):
                urls.append(item["url"])
        return tuple(urls)
    raise RecordParseError(f"Unsupported image field type: {type(value).__name__}")


def _parse_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise RecordParseError(f"Invalid decimal value: {value!r}") from e


def _parse_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError) as e:
        raise RecordParseError(f"Invalid integer value: {value!r}") from e


@dataclass(frozen=True)
class ExternalRecord:
    """Product row from the external (Airtable) content catalog."""

    record_id: str
    name: str
    sku: str = ""
    brand: str = ""
    category: str = ""
    description: str = ""
    short_description: str = ""
    image_urls: Tuple[str, ...] = ()
    price: Optional[Decimal] = None

    @property
    def image_url(self) -> str:
        return self.image_urls[0] if self.image_urls else ""

    @property
    def is_usable(self) -> bool:
        return bool(self.name or self.sku)

    @classmethod
    def from_airtable(cls, payload: Any) -> "ExternalRecord":
        """
        Parse an Airtable record ``{"id": ..., "fields": {...}}``.

        Field names vary between bases, so the common aliases are accepted.

        Raises:
            RecordParseError: If the payload is not a record object.
        """
        if not isinstance(payload, dict):
            raise RecordParseError("Airtable record must be an object")
        record_id = payload.get("id")
        if not isinstance(record_id, str) or not record_id:
            raise RecordParseError("Airtable record is missing its id")
        fields = payload.get("fields", {})
        if not isinstance(fields, dict):
            raise RecordParseError(f"Airtable record {record_id} has no fields object")

        image_value = None
        for key in ("Images", "Image", "Image URL", "Photo"):
            if fields.get(key):
                image_value = fields[key]
                break

        return cls(
            record_id=record_id,
            name=_first_text(fields, "Name", "Product Name", "Title", "name"),
            sku=_first_text(fields, "SKU", "sku", "Product Code", "Code"),
            brand=_first_text(fields, "Brand", "Manufacturer"),
            category=_first_text(fields, "Category", "Categories", "Type"),
            description=_first_text(fields, "Description", "Details", "description"),
            short_description=_first_text(fields, "Short Description", "short_description"),
            image_urls=_parse_images(image_value),
            price=_parse_decimal(
                fields.get("Regular price") or fields.get("Price") or fields.get("MSRP")
            ),
        )


@dataclass(frozen=True)
class ZohoItem:
    """Inventory item from the Zoho Inventory items endpoint."""

    item_id: str
    name: str
    sku: str
    description: str = ""
    rate: Decimal = Decimal("0")
    stock_on_hand: int = 0
    status: str = "active"
    category_id: str = ""
    category_name: str = ""
    brand: str = ""
    manufacturer: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @classmethod
    def from_api(cls, payload: Any) -> "ZohoItem":
        """
        Parse a Zoho item object.

        Raises:
            RecordParseError: If the payload is not an object or lacks an id.
        """
        if not isinstance(payload, dict):
            raise RecordParseError("Zoho item must be an object")
        item_id = payload.get("item_id")
        if item_id in (None, ""):
            raise RecordParseError("Zoho item is missing item_id")

        return cls(
            item_id=str(item_id),
            name=_first_text(payload, "name", "item_name"),
            sku=_first_text(payload, "sku"),
            description=_first_text(payload, "description"),
            rate=_parse_decimal(payload.get("rate")) or Decimal("0"),
            stock_on_hand=_parse_int(
                payload.get("stock_on_hand", payload.get("available_stock"))
            ),
            status=_first_text(payload, "status") or "active",
            category_id=_first_text(payload, "category_id"),
            category_name=_first_text(payload, "category_name"),
            brand=_first_text(payload, "brand"),
            manufacturer=_first_text(payload, "manufacturer"),
        )


@dataclass(frozen=True)
class ZohoCategory:
    category_id: str
    name: str
    parent_category_id: str = ""

    @classmethod
    def from_api(cls, payload: Any) -> "ZohoCategory":
        if not isinstance(payload, dict):
            raise RecordParseError("Zoho category must be an object")
        category_id = payload.get("category_id")
        name = _first_text(payload, "name", "category_name")
        if category_id in (None, "") or not name:
            raise RecordParseError("Zoho category needs category_id and name")
        parent = payload.get("parent_category_id")
        # Zoho uses "-1" for top-level categories
        if parent in (None, "", "-1", -1):
            parent = ""
        return cls(category_id=str(category_id), name=name, parent_category_id=str(parent))

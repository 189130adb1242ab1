"""
Content sync: copies images and descriptions from external records onto products.

Used in two ways:

- apply(): writes the output of a ProductMatcher run
- sync_records(): looks each Airtable record up by SKU, then by name,
  and writes the same fields

run_airtable_sync() and run_product_matching() fetch the records, run
one of the above and record the run as a SyncRun.

Only empty product fields are filled unless ``force`` is set, so running
the sync twice against a fully populated product writes nothing.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from django.conf import settings
from django.db import DatabaseError
from rapidfuzz import fuzz

from storefront.integrations.airtable import AirtableClient
from storefront.integrations.exceptions import IntegrationAPIError
from storefront.integrations.types import ExternalRecord
from storefront.models import Product, SyncRun, SyncSource
from storefront.services.product_matcher import MatchReport, ProductMatch, ProductMatcher

logger = logging.getLogger(__name__)


# Minimum rapidfuzz token_set_ratio for a name-only match
NAME_MATCH_MIN_RATIO = 90

_SKIP_WORDS = {"the", "a", "an"}


@dataclass
class ContentSyncResult:
    dry_run: bool
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    changes: List[Dict] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "dry_run": self.dry_run,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": list(self.errors),
            "changes": list(self.changes),
        }


def content_updates(product: Product, record: ExternalRecord, force: bool = False) -> Dict:
    """
    Field values to copy from ``record`` onto ``product``.

    A field is only included when the record has a value and the product
    field is empty, or when ``force`` is set and the values differ.
    """
    candidates = {
        "image_url": record.image_url,
        "image_urls": list(record.image_urls),
        "description": record.description,
        "short_description": record.short_description[:500],
    }
    updates = {}
    for field_name, new_value in candidates.items():
        if not new_value:
            continue
        current = getattr(product, field_name)
        if current and not force:
            continue
        if current == new_value:
            continue
        updates[field_name] = new_value
    return updates


class ContentSyncService:
    """Writes external content onto internal products."""

    def __init__(self, force: bool = False, dry_run: bool = True):
        self.force = force
        self.dry_run = dry_run

    def _write(self, product: Product, record: ExternalRecord, result: ContentSyncResult, matched_by: str):
        updates = content_updates(product, record, force=self.force)
        if not updates:
            result.unchanged += 1
            return

        result.changes.append({
            "product_id": str(product.id),
            "sku": product.sku,
            "record_id": record.record_id,
            "matched_by": matched_by,
            "updated_fields": sorted(updates),
        })
        if self.dry_run:
            result.updated += 1
            return

        for field_name, value in updates.items():
            setattr(product, field_name, value)
        product.external_record_id = record.record_id
        try:
            product.save(update_fields=list(updates) + ["external_record_id"])
            result.updated += 1
        except DatabaseError as e:
            result.failed += 1
            result.errors.append(f"{product.sku}: {e}")
            logger.error(f"Failed to update content for {product.sku}: {e}")

    def apply(self, matches: Iterable[ProductMatch]) -> ContentSyncResult:
        """Write content for each matched pair."""
        result = ContentSyncResult(dry_run=self.dry_run)
        for match in matches:
            self._write(match.product, match.record, result, matched_by=",".join(match.signals))

        logger.info(
            f"Content sync {'(dry run) ' if self.dry_run else ''}finished: "
            f"{result.updated} updated, {result.unchanged} unchanged, {result.failed} failed"
        )
        return result

    def sync_records(self, records: Iterable[ExternalRecord]) -> ContentSyncResult:
        """Look up each record's product by SKU, then name, and write its content."""
        result = ContentSyncResult(dry_run=self.dry_run)
        for record in records:
            if not record.is_usable:
                result.skipped += 1
                continue
            product, matched_by = self.find_product(record)
            if product is None:
                result.skipped += 1
                continue
            self._write(product, record, result, matched_by=matched_by)

        logger.info(
            f"Record sync {'(dry run) ' if self.dry_run else ''}finished: "
            f"{result.updated} updated, {result.unchanged} unchanged, "
            f"{result.skipped} skipped, {result.failed} failed"
        )
        return result

    def find_product(self, record: ExternalRecord) -> Tuple[Optional[Product], str]:
        """
        Find the internal product for an external record.

        Returns:
            Tuple of (product or None, "sku" | "name" | "none")
        """
        if record.sku:
            product = Product.objects.filter(sku__iexact=record.sku).first()
            if product is not None:
                return product, "sku"

        if record.name:
            product = self._match_by_name(record.name)
            if product is not None:
                return product, "name"

        return None, "none"

    def _match_by_name(self, name: str) -> Optional[Product]:
        first_word = _first_significant_word(name)
        if not first_word or len(first_word) < 3:
            return None

        best, best_ratio = None, 0.0
        for candidate in Product.objects.filter(name__icontains=first_word)[:25]:
            ratio = fuzz.token_set_ratio(name.lower(), candidate.name.lower())
            if ratio > best_ratio:
                best, best_ratio = candidate, ratio

        if best is not None and best_ratio >= NAME_MATCH_MIN_RATIO:
            logger.debug(f"Name match '{name}' -> '{best.name}' ({best_ratio:.0f})")
            return best
        return None


def _first_significant_word(name: str) -> Optional[str]:
    for word in name.lower().split():
        clean_word = "".join(c for c in word if c.isalnum())
        if clean_word and clean_word not in _SKIP_WORDS:
            return clean_word
    return None


def _load_records(client, limit: Optional[int], errors: List[str]) -> List[ExternalRecord]:
    records = []
    for record in client.iter_records(max_records=limit, errors=errors):
        records.append(record)
        if limit and len(records) >= limit:
            break
    return records


def run_airtable_sync(
    dry_run: bool = True,
    limit: Optional[int] = None,
    force: bool = False,
    client=None,
) -> ContentSyncResult:
    """
    Pull Airtable records and write their content onto matching products.

    Raises:
        ConfigurationError: If Airtable credentials are missing
        IntegrationAPIError: If Airtable fails
    """
    client = client or AirtableClient()
    run = SyncRun.objects.create(source=SyncSource.AIRTABLE, phase="content", dry_run=dry_run)
    parse_errors: List[str] = []
    try:
        records = _load_records(client, limit, parse_errors)
    except IntegrationAPIError as e:
        run.finish({}, [str(e)], failed=True)
        raise

    result = ContentSyncService(force=force, dry_run=dry_run).sync_records(records)
    result.errors.extend(parse_errors)
    run.finish(
        {k: v for k, v in result.to_dict().items() if k not in ("changes", "errors")},
        result.errors,
    )
    return result


def run_product_matching(
    dry_run: bool = True,
    threshold: Optional[float] = None,
    limit: Optional[int] = None,
    force: bool = False,
    client=None,
) -> Tuple[MatchReport, ContentSyncResult]:
    """
    Match active products against Airtable records and apply the content.

    Raises:
        ConfigurationError: If Airtable credentials are missing
        IntegrationAPIError: If Airtable fails
        ValueError: If ``threshold`` is outside 0..1
    """
    if threshold is None:
        threshold = getattr(settings, "MATCHER_DEFAULT_THRESHOLD", 0.5)
    matcher = ProductMatcher(threshold=threshold)
    client = client or AirtableClient()

    run = SyncRun.objects.create(source=SyncSource.MATCHER, phase="match", dry_run=dry_run)
    parse_errors: List[str] = []
    try:
        records = _load_records(client, None, parse_errors)
    except IntegrationAPIError as e:
        run.finish({}, [str(e)], failed=True)
        raise

    products = Product.objects.filter(is_active=True).order_by("created_at")
    if not force:
        products = products.filter(image_url="")
    if limit:
        products = products[:limit]

    report = matcher.match(list(products), records)
    report.errors.extend(parse_errors)
    result = ContentSyncService(force=force, dry_run=dry_run).apply(report.matches)

    stats = {k: v for k, v in report.to_dict().items() if k != "matches"}
    stats.pop("errors")
    stats["updated"] = result.updated
    stats["unchanged"] = result.unchanged
    run.finish(stats, report.errors + result.errors)
    return report, result

"""
Zoho Inventory sync.

Phases:
- items: create/update products from Zoho items (matched by SKU)
- categories: upsert categories from Zoho item categories
- brands: create brands from item brand/manufacturer names and link products
- inventory: refresh stock levels of existing products

An upstream API error aborts the phase and is raised to the caller; a
failure on a single item is logged, counted and the loop continues.
Dry runs execute the whole phase inside a transaction that is rolled back,
so the stats show exactly what a real run would write.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from django.db import DatabaseError, transaction
from django.utils.text import slugify

from storefront.integrations.exceptions import IntegrationAPIError
from storefront.integrations.types import ZohoItem
from storefront.integrations.zoho import ZohoInventoryClient
from storefront.models import Brand, Category, Product, SyncRun, SyncSource
from storefront.monitoring import log_error_with_context

logger = logging.getLogger(__name__)


PHASES = ("items", "categories", "brands", "inventory")


@dataclass
class SyncStats:
    success: int = 0
    failed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def record_error(self, message: str) -> None:
        self.failed += 1
        self.errors.append(message)

    def to_dict(self) -> Dict:
        return {
            "success": self.success,
            "failed": self.failed,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


class _DryRunRollback(Exception):
    pass


class ZohoSyncService:
    """Copies Zoho Inventory data into the storefront catalog."""

    def __init__(self, client: Optional[ZohoInventoryClient] = None, dry_run: bool = False):
        self.client = client or ZohoInventoryClient()
        self.dry_run = dry_run

    def run_phase(self, phase: str, **kwargs) -> SyncStats:
        """
        Run one sync phase and record it as a SyncRun.

        Raises:
            ValueError: For an unknown phase
            IntegrationAPIError: When Zoho fails mid-phase
        """
        handlers: Dict[str, Callable[..., SyncStats]] = {
            "items": self.sync_items,
            "categories": self.sync_categories,
            "brands": self.sync_brands,
            "inventory": self.sync_inventory,
        }
        if phase not in handlers:
            raise ValueError(f"Unknown Zoho sync phase '{phase}'. Expected one of {', '.join(PHASES)}")

        run = SyncRun.objects.create(source=SyncSource.ZOHO, phase=phase, dry_run=self.dry_run)
        logger.info(f"Starting Zoho {phase} sync{' (dry run)' if self.dry_run else ''}")
        try:
            stats = self._in_transaction(lambda: handlers[phase](**kwargs))
        except IntegrationAPIError as e:
            run.finish({}, [str(e)], failed=True)
            raise

        run.finish(stats.to_dict(), stats.errors)
        logger.info(
            f"Zoho {phase} sync completed: {stats.success} success "
            f"({stats.created} created, {stats.updated} updated), "
            f"{stats.skipped} skipped, {stats.failed} failed"
        )
        return stats

    def _in_transaction(self, body: Callable[[], SyncStats]) -> SyncStats:
        if not self.dry_run:
            return body()
        result = {}
        try:
            with transaction.atomic():
                result["stats"] = body()
                raise _DryRunRollback()
        except _DryRunRollback:
            pass
        return result["stats"]

    def _record_failure(self, stats: SyncStats, phase: str, record_id: str, error: Exception):
        stats.record_error(f"{record_id}: {error}")
        log_error_with_context(error, source=SyncSource.ZOHO, phase=phase, record_id=record_id)

    def sync_items(
        self,
        limit: Optional[int] = None,
        start_from_id: Optional[str] = None,
        full_sync: bool = True,
    ) -> SyncStats:
        """
        Create or update products from Zoho items.

        Args:
            limit: Stop after this many items
            start_from_id: Skip items up to and including this Zoho item id
                (resume a run)
            full_sync: Update every field of existing products; when False
                only price, stock and status are refreshed
        """
        stats = SyncStats()
        parse_errors: List[str] = []
        started = start_from_id is None
        processed = 0

        for item in self.client.iter_items(errors=parse_errors):
            if not started:
                # Resume strictly after the item the previous run stopped on
                started = item.item_id == str(start_from_id)
                continue
            if limit is not None and processed >= limit:
                break
            processed += 1

            if not item.sku:
                stats.skipped += 1
                continue

            try:
                with transaction.atomic():
                    created = self._upsert_product(item, full_sync)
            except DatabaseError as e:
                self._record_failure(stats, "items", item.sku, e)
                continue

            stats.success += 1
            if created:
                stats.created += 1
            else:
                stats.updated += 1

        for message in parse_errors:
            stats.record_error(message)
        return stats

    def _upsert_product(self, item: ZohoItem, full_sync: bool) -> bool:
        product = Product.objects.filter(sku=item.sku).first()
        created = product is None
        if created:
            product = Product(sku=item.sku)

        product.price = item.rate
        product.stock_quantity = item.stock_on_hand
        product.is_active = item.is_active
        product.zoho_item_id = item.item_id

        if created or full_sync:
            product.name = item.name or item.sku
            if item.description:
                product.description = item.description
            if item.manufacturer:
                product.manufacturer = item.manufacturer
            category = self._category_for(item)
            if category is not None:
                product.category = category
            brand_name = item.brand or item.manufacturer
            if brand_name:
                product.brand = self._get_or_create_brand(brand_name)

        product.save()
        return created

    def _category_for(self, item: ZohoItem) -> Optional[Category]:
        if item.category_id:
            category = Category.objects.filter(zoho_category_id=item.category_id).first()
            if category is not None:
                return category
        if item.category_name:
            category, _ = Category.objects.get_or_create(
                slug=slugify(item.category_name),
                defaults={"name": item.category_name, "zoho_category_id": item.category_id},
            )
            return category
        return None

    def _get_or_create_brand(self, name: str) -> Brand:
        brand, created = Brand.objects.get_or_create(
            slug=slugify(name),
            defaults={"name": name},
        )
        if created:
            logger.info(f"Created brand {name}")
        return brand

    def sync_categories(self) -> SyncStats:
        """Upsert categories, then link parents once every category exists."""
        stats = SyncStats()
        categories = self.client.list_categories()
        by_zoho_id: Dict[str, Category] = {}

        for zoho_category in categories:
            try:
                with transaction.atomic():
                    category = Category.objects.filter(
                        zoho_category_id=zoho_category.category_id
                    ).first()
                    if category is None:
                        category = Category.objects.filter(
                            slug=slugify(zoho_category.name)
                        ).first()
                    created = category is None
                    if created:
                        category = Category(name=zoho_category.name)
                    category.name = zoho_category.name
                    category.zoho_category_id = zoho_category.category_id
                    category.save()
            except DatabaseError as e:
                self._record_failure(stats, "categories", zoho_category.category_id, e)
                continue

            by_zoho_id[zoho_category.category_id] = category
            stats.success += 1
            if created:
                stats.created += 1
            else:
                stats.updated += 1

        for zoho_category in categories:
            parent = by_zoho_id.get(zoho_category.parent_category_id)
            child = by_zoho_id.get(zoho_category.category_id)
            if parent is not None and child is not None and child.parent_id != parent.id:
                child.parent = parent
                child.save(update_fields=["parent"])

        return stats

    def sync_brands(self, limit: Optional[int] = None) -> SyncStats:
        """Create brands named by Zoho items and link their products."""
        stats = SyncStats()
        brand_skus: Dict[str, List[str]] = {}
        for index, item in enumerate(self.client.iter_items()):
            if limit is not None and index >= limit:
                break
            name = (item.brand or item.manufacturer).strip()
            if name:
                brand_skus.setdefault(name, []).append(item.sku)

        for name in sorted(brand_skus):
            try:
                with transaction.atomic():
                    brand, created = Brand.objects.get_or_create(
                        slug=slugify(name), defaults={"name": name}
                    )
                    Product.objects.filter(
                        sku__in=[sku for sku in brand_skus[name] if sku],
                        brand__isnull=True,
                    ).update(brand=brand)
            except DatabaseError as e:
                self._record_failure(stats, "brands", name, e)
                continue
            stats.success += 1
            if created:
                stats.created += 1
            else:
                stats.skipped += 1
        return stats

    def sync_inventory(self, limit: Optional[int] = None) -> SyncStats:
        """Refresh stock of products that already exist."""
        stats = SyncStats()
        for index, item in enumerate(self.client.iter_items()):
            if limit is not None and index >= limit:
                break
            product = None
            if item.sku:
                product = Product.objects.filter(sku=item.sku).first()
            if product is None:
                product = Product.objects.filter(zoho_item_id=item.item_id).first()
            if product is None:
                stats.skipped += 1
                continue
            if product.stock_quantity == item.stock_on_hand:
                stats.skipped += 1
                continue
            try:
                product.stock_quantity = item.stock_on_hand
                product.save(update_fields=["stock_quantity"])
            except DatabaseError as e:
                self._record_failure(stats, "inventory", item.sku or item.item_id, e)
                continue
            stats.success += 1
            stats.updated += 1
        return stats

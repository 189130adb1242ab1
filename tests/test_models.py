"""
Tests for the storefront models.

- Slug generation for brands, categories and products
- Product stock and sale helpers
- SyncRun completion bookkeeping
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from storefront.models import Brand, Category, SyncRun


@pytest.mark.django_db
class TestSlugs:
    def test_brand_slug_from_name(self):
        assert Brand.objects.create(name="Raw Rolling Papers").slug == "raw-rolling-papers"

    def test_duplicate_names_get_suffix(self):
        Category.objects.create(name="Glass")
        second = Category.objects.create(name="Glass")
        third = Category.objects.create(name="Glass")

        assert second.slug == "glass-2"
        assert third.slug == "glass-3"

    def test_explicit_slug_kept(self):
        assert Brand.objects.create(name="ROOR", slug="roor-germany").slug == "roor-germany"

    def test_product_slug_includes_sku(self, make_product):
        product = make_product(name="ROOR 18mm Beaker", sku="RR-18")

        assert product.slug == "roor-18mm-beaker-rr-18"


@pytest.mark.django_db
class TestProductHelpers:
    def test_in_stock(self, make_product):
        assert make_product(stock_quantity=3).in_stock is True
        assert make_product(stock_quantity=0).in_stock is False

    def test_is_sale(self, make_product):
        assert make_product(price=Decimal("20.00"), compare_at_price=Decimal("25.00")).is_sale is True
        assert make_product(price=Decimal("20.00"), compare_at_price=Decimal("15.00")).is_sale is False
        assert make_product(price=Decimal("20.00")).is_sale is False

    def test_save_with_update_fields_stamps_updated_at(self, make_product):
        product = make_product()
        stale = timezone.now() - timedelta(days=1)
        type(product).objects.filter(pk=product.pk).update(updated_at=stale)
        product.refresh_from_db()

        product.stock_quantity = 1
        product.save(update_fields=["stock_quantity"])

        product.refresh_from_db()
        assert product.updated_at > stale


@pytest.mark.django_db
class TestSyncRun:
    def test_finish_completed(self):
        run = SyncRun.objects.create(source="zoho", phase="items")

        run.finish({"created": 2}, [])

        run.refresh_from_db()
        assert run.status == "completed"
        assert run.stats == {"created": 2}
        assert run.finished_at is not None

    def test_finish_failed_caps_errors(self):
        run = SyncRun.objects.create(source="airtable", phase="content")

        run.finish({}, [f"error {i}" for i in range(150)], failed=True)

        run.refresh_from_db()
        assert run.status == "failed"
        assert len(run.errors) == 100

"""
Tests for copying external content onto products.
"""

from types import SimpleNamespace

import pytest

from storefront.integrations.exceptions import AirtableAPIError
from storefront.integrations.types import ExternalRecord
from storefront.models import SyncRun
from storefront.services.content_sync import (
    ContentSyncService,
    content_updates,
    run_airtable_sync,
    run_product_matching,
)


IMAGE = "https://cdn.example.com/roor-beaker.jpg"


def record(record_id="rec1", name="ROOR 18mm Beaker Bong", sku="", **kwargs):
    return ExternalRecord(record_id=record_id, name=name, sku=sku, **kwargs)


class FakeAirtable:
    """Stands in for AirtableClient.iter_records()."""

    def __init__(self, records, parse_errors=(), error=None):
        self.records = records
        self.parse_errors = list(parse_errors)
        self.error = error

    def iter_records(self, max_records=None, errors=None):
        if self.error:
            raise self.error
        if errors is not None:
            errors.extend(self.parse_errors)
        yield from self.records


class TestContentUpdates:
    def test_fills_empty_fields_only(self):
        product = SimpleNamespace(
            image_url="", image_urls=[], description="Existing copy", short_description=""
        )
        rec = record(image_urls=(IMAGE,), description="New copy", short_description="Short")

        updates = content_updates(product, rec)

        assert updates == {
            "image_url": IMAGE,
            "image_urls": [IMAGE],
            "short_description": "Short",
        }

    def test_force_overwrites_differing_fields(self):
        product = SimpleNamespace(
            image_url=IMAGE, image_urls=[IMAGE], description="Old copy", short_description=""
        )
        rec = record(image_urls=(IMAGE,), description="New copy")

        assert content_updates(product, rec, force=True) == {"description": "New copy"}

    def test_empty_record_changes_nothing(self):
        product = SimpleNamespace(image_url="", image_urls=[], description="", short_description="")

        assert content_updates(product, record()) == {}


@pytest.mark.django_db
class TestFindProduct:
    def test_by_sku_case_insensitive(self, make_product):
        product = make_product(sku="RR-18-BKR")

        found, matched_by = ContentSyncService().find_product(record(name="", sku="rr-18-bkr"))

        assert found == product
        assert matched_by == "sku"

    def test_by_name(self, make_product):
        product = make_product(name="ROOR 18mm Beaker Bong")

        found, matched_by = ContentSyncService().find_product(record(name="ROOR Beaker Bong 18mm"))

        assert found == product
        assert matched_by == "name"

    def test_weak_name_match_rejected(self, make_product):
        make_product(name="ROOR Straight Tube")

        found, matched_by = ContentSyncService().find_product(record(name="ROOR Beaker Bong 18mm"))

        assert found is None
        assert matched_by == "none"


@pytest.mark.django_db
class TestSyncRecords:
    def test_writes_content(self, make_product):
        product = make_product(sku="RR-18")
        rec = record(sku="RR-18", image_urls=(IMAGE,), description="Thick glass")

        result = ContentSyncService(dry_run=False).sync_records([rec])

        product.refresh_from_db()
        assert result.updated == 1
        assert product.image_url == IMAGE
        assert product.description == "Thick glass"
        assert product.external_record_id == "rec1"
        assert result.changes[0]["updated_fields"] == ["description", "image_url", "image_urls"]

    def test_second_run_is_a_noop(self, make_product):
        make_product(sku="RR-18")
        rec = record(sku="RR-18", image_urls=(IMAGE,), description="Thick glass")
        service = ContentSyncService(dry_run=False)

        service.sync_records([rec])
        result = service.sync_records([rec])

        assert result.updated == 0
        assert result.unchanged == 1

    def test_dry_run_writes_nothing(self, make_product):
        product = make_product(sku="RR-18")

        result = ContentSyncService(dry_run=True).sync_records(
            [record(sku="RR-18", image_urls=(IMAGE,))]
        )

        product.refresh_from_db()
        assert result.updated == 1
        assert product.image_url == ""

    def test_unmatched_and_unusable_records_skipped(self, db):
        result = ContentSyncService(dry_run=False).sync_records([
            record(name="", sku=""),
            record(name="Nothing Like This", sku="NOPE-1"),
        ])

        assert result.skipped == 2


@pytest.mark.django_db
class TestRunAirtableSync:
    def test_records_sync_run(self, make_product):
        make_product(sku="RR-18")
        client = FakeAirtable(
            [record(sku="RR-18", image_urls=(IMAGE,))],
            parse_errors=["recBAD: Airtable record has no fields object"],
        )

        result = run_airtable_sync(dry_run=False, client=client)

        run = SyncRun.objects.get(source="airtable")
        assert run.status == "completed"
        assert run.stats["updated"] == 1
        assert run.errors == ["recBAD: Airtable record has no fields object"]
        assert result.errors == run.errors

    def test_limit(self, make_product):
        make_product(sku="A-1")
        make_product(sku="A-2")
        client = FakeAirtable([
            record("rec1", sku="A-1", image_urls=(IMAGE,)),
            record("rec2", sku="A-2", image_urls=(IMAGE,)),
        ])

        result = run_airtable_sync(dry_run=True, limit=1, client=client)

        assert result.updated == 1

    def test_api_failure_marks_run_failed(self, db):
        client = FakeAirtable([], error=AirtableAPIError("Airtable returned 500", status_code=500))

        with pytest.raises(AirtableAPIError):
            run_airtable_sync(client=client)

        assert SyncRun.objects.get().status == "failed"


@pytest.mark.django_db
class TestRunProductMatching:
    def test_matches_products_without_images(self, make_product):
        product = make_product(name="ROOR 18mm Beaker Bong")
        make_product(name="GRAV Straight Tube", image_url="https://cdn.example.com/grav.jpg")
        client = FakeAirtable([
            record("rec-roor", name="RooR Beaker 18mm Water Pipe", image_urls=(IMAGE,)),
        ])

        report, result = run_product_matching(dry_run=False, client=client)

        product.refresh_from_db()
        assert report.products_evaluated == 1
        assert len(report.matches) == 1
        assert result.updated == 1
        assert product.image_url == IMAGE
        run = SyncRun.objects.get(source="matcher")
        assert run.stats["matched"] == 1
        assert run.stats["updated"] == 1

    def test_invalid_threshold(self, db):
        with pytest.raises(ValueError):
            run_product_matching(threshold=2.0, client=FakeAirtable([]))

        assert SyncRun.objects.count() == 0

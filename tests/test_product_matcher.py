"""
Tests for the product/content matcher.

The matcher works on plain objects, so products here are SimpleNamespaces
rather than database rows.
"""

import uuid
from types import SimpleNamespace

import pytest

from storefront.integrations.types import ExternalRecord
from storefront.services.product_matcher import (
    ProductMatcher,
    extract_identifiers,
    normalize_sku,
    score_identifiers,
    score_skus,
)


def product(name, sku=""):
    return SimpleNamespace(id=uuid.uuid4(), name=name, sku=sku)


def record(record_id, name, sku="", images=()):
    return ExternalRecord(record_id=record_id, name=name, sku=sku, image_urls=tuple(images))


class TestIdentifierExtraction:
    """Tests for brand, model, size and keyword extraction."""

    def test_brand_model_and_size(self):
        ids = extract_identifiers("ROOR 18mm Beaker Bong")

        assert ids.brand == "ROOR"
        assert ids.model == "18MM"
        assert ids.size == "18MM"
        assert ids.keywords == ("ROOR", "18MM", "BEAKER", "BONG")

    def test_stop_words_and_short_words_dropped(self):
        ids = extract_identifiers("The RAW Glass Water Pipe by XL")

        assert ids.brand == "RAW"
        assert "THE" not in ids.keywords
        assert "GLASS" not in ids.keywords
        assert "PIPE" not in ids.keywords
        assert "XL" not in ids.keywords

    def test_multi_word_brand(self):
        assert extract_identifiers("Storz & Bickel Volcano Hybrid").brand == "STORZ"
        assert extract_identifiers("Glass City Pipes Recycler").brand == "GLASS CITY"

    def test_explicit_model_reference(self):
        ids = extract_identifiers("Puffco Peak Model: PK-200")

        assert ids.model == "PK-200"

    def test_inch_size(self):
        assert extract_identifiers('GRAV 12" Straight Tube').size == "12IN"
        assert extract_identifiers("Empire Glassworks 8 inch Rig").size == "8IN"

    def test_empty_name(self):
        ids = extract_identifiers("")

        assert ids.brand is None
        assert ids.model is None
        assert ids.keywords == ()


class TestScoring:
    """Tests for SKU and token scoring."""

    def test_normalize_sku(self):
        assert normalize_sku(" rr-18/bkr ") == "RR18BKR"
        assert normalize_sku(None) == ""

    def test_exact_sku_scores_one(self):
        result = score_skus(normalize_sku("RR-18-BKR"), normalize_sku("rr18bkr"))

        assert result.score == 1.0
        assert result.is_exact_sku

    def test_partial_sku(self):
        result = score_skus("GRV100", "GRV100BLU")

        assert result.score == 0.8
        assert result.signals == ["partial_sku"]

    def test_short_skus_do_not_partially_match(self):
        assert score_skus("R1", "GR10") is None

    def test_missing_sku_defers_to_names(self):
        assert score_skus("", "GRV100") is None

    def test_roor_beaker_scenario(self):
        """Brand, model, size and keyword overlap add up past the threshold."""
        a = extract_identifiers("ROOR 18mm Beaker Bong")
        b = extract_identifiers("RooR Beaker 18mm Water Pipe")

        result = score_identifiers(a, b)

        # 0.4 brand + 0.3 model + 0.15 size + 3/4 * 0.15 keywords
        assert result.score == pytest.approx(0.9625)
        assert "brand_exact" in result.signals
        assert "model_exact" in result.signals
        assert "size_match" in result.signals

    def test_different_brands_score_low(self):
        result = score_identifiers(
            extract_identifiers("Puffco Peak Pro"),
            extract_identifiers("RAW Classic Papers"),
        )

        assert result.score < 0.5


class TestProductMatcher:
    """Tests for ProductMatcher.match()."""

    def test_roor_pair_is_matched(self):
        p = product("ROOR 18mm Beaker Bong")
        r = record("rec1", "RooR Beaker 18mm Water Pipe")

        report = ProductMatcher(threshold=0.5).match([p], [r])

        assert len(report.matches) == 1
        match = report.matches[0]
        assert match.product is p
        assert match.record is r
        assert match.score == pytest.approx(0.9625)
        assert report.match_rate == 1.0

    def test_exact_sku_match(self):
        p = product("Completely different name", sku="RR-18-BKR")
        r = record("rec1", "Something else", sku="rr18bkr")

        report = ProductMatcher().match([p], [r])

        assert report.matches[0].score == 1.0
        assert report.matches[0].signals == ["exact_sku"]

    def test_each_record_used_once(self):
        first = product("ROOR 18mm Beaker Bong")
        second = product("ROOR 18mm Beaker Bong")
        r = record("rec1", "RooR Beaker 18mm Water Pipe")

        report = ProductMatcher().match([first, second], [r])

        assert len(report.matches) == 1
        assert report.candidates_found == 2

    def test_each_product_used_once(self):
        p = product("ROOR 18mm Beaker Bong")
        records = [
            record("rec1", "RooR Beaker 18mm Water Pipe"),
            record("rec2", "ROOR Beaker 18mm"),
        ]

        report = ProductMatcher().match([p], records)

        assert len(report.matches) == 1

    def test_best_pairs_win(self):
        roor = product("ROOR 18mm Beaker Bong", sku="RR-18")
        grav = product("GRAV 12 inch Straight Tube")
        records = [
            record("rec-grav", 'GRAV Straight Tube 12"'),
            record("rec-roor", "RooR Beaker 18mm Water Pipe", sku="RR18"),
        ]

        report = ProductMatcher().match([roor, grav], records)
        pairs = {m.product.name: m.record.record_id for m in report.matches}

        assert pairs == {
            "ROOR 18mm Beaker Bong": "rec-roor",
            "GRAV 12 inch Straight Tube": "rec-grav",
        }
        assert report.matches[0].score >= report.matches[1].score

    def test_pairs_below_threshold_dropped(self):
        p = product("Puffco Peak Pro")
        r = record("rec1", "RAW Classic Papers")

        report = ProductMatcher(threshold=0.5).match([p], [r])

        assert report.matches == []
        assert report.match_rate == 0.0

    def test_items_without_name_or_sku_skipped(self):
        report = ProductMatcher().match([product("", sku="")], [record("rec1", "", sku="")])

        assert report.skipped == 2
        assert report.matches == []

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            ProductMatcher(threshold=1.5)

    def test_report_to_dict(self):
        p = product("ROOR 18mm Beaker Bong", sku="RR-18")
        r = record("rec1", "RooR Beaker", sku="RR18", images=["https://cdn.example.com/roor.jpg"])

        data = ProductMatcher().match([p], [r]).to_dict()

        assert data["matched"] == 1
        assert data["matches"][0]["record_id"] == "rec1"
        assert data["matches"][0]["image_url"] == "https://cdn.example.com/roor.jpg"
        assert data["matches"][0]["product_sku"] == "RR-18"

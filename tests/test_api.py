"""
Tests for the REST API endpoints.

Storefront endpoints are anonymous; admin and compliance endpoints are
checked both as a staff user and anonymously.
"""

import uuid
from decimal import Decimal

import pytest

from storefront.models import (
    CartItem,
    ComplianceAuditLog,
    ComplianceRule,
    Order,
    Product,
    ProductCompliance,
)
from storefront.services.background_classifier import (
    configure_classification_service,
    get_classification_service,
)


CUSTOMER = {"firstName": "Dana", "lastName": "Reyes", "email": "Dana@Example.com", "age": 30}
ADDRESS = {"address1": "1 Main St", "city": "Miami", "state": "FL", "zipcode": "33101"}


@pytest.fixture
def classifier_service():
    """Fresh process-wide classifier, rebuilt from settings afterwards."""
    service = configure_classification_service()
    yield service
    configure_classification_service()


@pytest.mark.django_db
class TestCartAPI:
    URL = "/api/v1/cart/"

    def test_owner_required(self, api_client):
        response = api_client.get(self.URL)

        assert response.status_code == 400
        assert response.data["error"] == "User ID or Session ID required"

    def test_cart_flow(self, api_client, make_product):
        product = make_product(price=Decimal("40.00"))

        response = api_client.post(
            self.URL, {"sessionId": "s1", "productId": str(product.id), "quantity": 2}, format="json"
        )
        assert response.status_code == 201
        assert response.data["totals"]["total"] == Decimal("86.40")
        item_id = response.data["item"]["id"]

        response = api_client.put(
            self.URL, {"sessionId": "s1", "cartItemId": item_id, "quantity": 1}, format="json"
        )
        assert response.status_code == 200
        assert response.data["totals"]["subtotal"] == Decimal("40.00")
        assert response.data["totals"]["shipping_amount"] == Decimal("9.99")

        response = api_client.get(self.URL, {"sessionId": "s1"})
        assert len(response.data["items"]) == 1

        response = api_client.delete(f"{self.URL}?sessionId=s1")
        assert response.data["removed"] == 1
        assert CartItem.objects.count() == 0

    def test_update_to_zero_removes(self, api_client, make_product):
        product = make_product()
        item_id = api_client.post(
            self.URL, {"session_id": "s1", "product_id": str(product.id)}, format="json"
        ).data["item"]["id"]

        response = api_client.put(
            self.URL, {"sessionId": "s1", "cartItemId": item_id, "quantity": 0}, format="json"
        )

        assert response.data["removed"] is True
        assert response.data["items"] == []

    def test_unknown_product(self, api_client, db):
        response = api_client.post(
            self.URL, {"sessionId": "s1", "productId": str(uuid.uuid4())}, format="json"
        )

        assert response.status_code == 404

    def test_missing_product_id(self, api_client, db):
        response = api_client.post(self.URL, {"sessionId": "s1"}, format="json")

        assert response.status_code == 400
        assert response.data["error"] == "productId is required"

    def test_insufficient_stock(self, api_client, make_product):
        product = make_product(stock_quantity=1)

        response = api_client.post(
            self.URL, {"sessionId": "s1", "productId": str(product.id), "quantity": 3}, format="json"
        )

        assert response.status_code == 400
        assert response.data["error"] == "Insufficient stock"


@pytest.mark.django_db
class TestOrdersAPI:
    URL = "/api/v1/orders/"

    def _fill_cart(self, api_client, product, quantity=1):
        api_client.post(
            "/api/v1/cart/",
            {"sessionId": "s1", "productId": str(product.id), "quantity": quantity},
            format="json",
        )

    def test_checkout_and_lookup(self, api_client, make_product):
        product = make_product(price=Decimal("40.00"), stock_quantity=5)
        self._fill_cart(api_client, product, 2)

        response = api_client.post(
            self.URL,
            {"sessionId": "s1", "customerInfo": CUSTOMER, "shippingAddress": ADDRESS},
            format="json",
        )

        assert response.status_code == 201
        assert response.data["total"] == Decimal("86.40")
        assert response.data["order_number"].startswith("VIP-")

        lookup = api_client.get(
            self.URL, {"orderId": response.data["order_id"], "email": "dana@example.com"}
        )
        assert lookup.status_code == 200
        assert lookup.data["order"]["items"][0]["quantity"] == 2
        assert lookup.data["order"]["customer"]["first_name"] == "Dana"

    def test_lookup_with_wrong_email(self, api_client, make_product):
        self._fill_cart(api_client, make_product())
        order_id = api_client.post(
            self.URL,
            {"sessionId": "s1", "customerInfo": CUSTOMER, "shippingAddress": ADDRESS},
            format="json",
        ).data["order_id"]

        response = api_client.get(self.URL, {"orderId": order_id, "email": "someone@else.com"})

        assert response.status_code == 404

    def test_lookup_requires_id_and_email(self, api_client, db):
        assert api_client.get(self.URL, {"email": "a@b.com"}).status_code == 400

    def test_empty_cart(self, api_client, db):
        response = api_client.post(
            self.URL,
            {"sessionId": "s1", "customerInfo": CUSTOMER, "shippingAddress": ADDRESS},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error"] == "No items in cart"

    def test_compliance_failure_lists_violations(self, api_client, make_product):
        self._fill_cart(api_client, make_product(name="ZYN Pouches", nicotine_product=True))

        response = api_client.post(
            self.URL,
            {
                "sessionId": "s1",
                "customerInfo": dict(CUSTOMER, age=19),
                "shippingAddress": ADDRESS,
            },
            format="json",
        )

        assert response.status_code == 400
        assert response.data["details"] == ["Customer must be 21+ to purchase ZYN Pouches"]
        assert Order.objects.count() == 0

    def test_signed_in_user_sees_own_orders(self, admin_client, make_product):
        admin_client.post(
            "/api/v1/cart/", {"productId": str(make_product().id)}, format="json"
        )
        admin_client.post(
            self.URL, {"customerInfo": CUSTOMER, "shippingAddress": ADDRESS}, format="json"
        )

        response = admin_client.get(self.URL)

        assert len(response.data["orders"]) == 1


@pytest.mark.django_db
class TestOrderComplianceAPI:
    URL = "/api/v1/orders/compliance/"

    def test_restricted_state(self, api_client, make_product, compliance_rules):
        product = make_product(name="THCA Flower")
        ProductCompliance.objects.create(product=product, compliance_rule=compliance_rules["THCA"])

        response = api_client.post(
            self.URL,
            {"productIds": [str(product.id)], "shippingAddress": {"state": "TX"}, "customerAge": 30},
            format="json",
        )

        assert response.status_code == 200
        assert response.data["is_compliant"] is False

    def test_validation(self, api_client, db):
        response = api_client.post(self.URL, {"productIds": []}, format="json")

        assert response.status_code == 400

    def test_unknown_product(self, api_client, db):
        response = api_client.post(
            self.URL,
            {"productIds": [str(uuid.uuid4())], "shippingAddress": {"state": "FL"}},
            format="json",
        )

        assert response.status_code == 404


@pytest.mark.django_db
class TestSearchAPI:
    def test_suggestions(self, api_client, make_product):
        make_product(name="Bong Cleaner")

        response = api_client.get("/api/v1/search/suggestions/", {"q": "bong"})

        assert response.status_code == 200
        assert response.data["query"] == "bong"
        assert response.data["suggestions"][0]["title"] == "Bong Cleaner"

    def test_short_query(self, api_client, db):
        response = api_client.get("/api/v1/search/suggestions/", {"q": "b"})

        assert response.data["suggestions"] == []


@pytest.mark.django_db
class TestVIPProductsAPI:
    URL = "/api/v1/vip/products/"

    def test_list_with_filters(self, api_client, make_product, category):
        make_product(name="Featured Beaker", featured=True, category=category, price=Decimal("150.00"))
        make_product(name="Cheap Bowl", category=category, price=Decimal("12.00"))
        make_product(name="Inactive", is_active=False)

        response = api_client.get(self.URL, {"category": category.slug, "minPrice": "100"})

        assert response.status_code == 200
        assert [p["name"] for p in response.data["products"]] == ["Featured Beaker"]
        assert response.data["pagination"]["total"] == 1
        assert response.data["pagination"]["has_more"] is False
        assert response.data["products"][0]["is_new"] is True

    def test_pagination(self, api_client, make_product):
        for _ in range(3):
            make_product()

        response = api_client.get(self.URL, {"limit": 2})

        assert len(response.data["products"]) == 2
        assert response.data["pagination"] == {"total": 3, "limit": 2, "offset": 0, "has_more": True}

    def test_anonymous_cannot_create(self, api_client, category):
        response = api_client.post(
            self.URL,
            {"name": "X", "sku": "X-1", "price": "1.00", "categoryId": str(category.id)},
            format="json",
        )

        assert response.status_code == 403

    def test_staff_creates_product(self, admin_client, category, brand):
        response = admin_client.post(
            self.URL,
            {
                "name": "ROOR Classic",
                "sku": "RR-CL",
                "price": "199.99",
                "categoryId": str(category.id),
                "brandId": str(brand.id),
                "vipExclusive": True,
            },
            format="json",
        )

        assert response.status_code == 201
        product = Product.objects.get(sku="RR-CL")
        assert product.vip_exclusive is True
        assert product.brand == brand
        assert product.price == Decimal("199.99")

    def test_create_requires_fields(self, admin_client, db):
        response = admin_client.post(self.URL, {"name": "X"}, format="json")

        assert response.status_code == 400
        assert response.data["error"] == "Name, SKU, price, and category are required"

    def test_duplicate_sku(self, admin_client, make_product, category):
        make_product(sku="DUP-1")

        response = admin_client.post(
            self.URL,
            {"name": "X", "sku": "DUP-1", "price": "1.00", "categoryId": str(category.id)},
            format="json",
        )

        assert response.status_code == 400

    @pytest.mark.parametrize("price", ["NaN", "Infinity", "-inf", "sNaN", "1e12"])
    def test_rejects_unusable_price(self, admin_client, category, price):
        """Prices the price columns cannot hold come back as JSON 400s."""
        response = admin_client.post(
            self.URL,
            {"name": "X", "sku": "X-NAN", "price": price, "categoryId": str(category.id)},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["success"] is False
        assert response.data["error"].startswith("price")
        assert not Product.objects.filter(sku="X-NAN").exists()

    @pytest.mark.parametrize("field,value", [
        ("shortDescription", 12345),
        ("shortDescription", ["not", "text"]),
        ("description", {"html": "<p>"}),
        ("tags", "glass"),
        ("attributes", ["color", "blue"]),
    ])
    def test_rejects_mistyped_fields(self, admin_client, category, field, value):
        response = admin_client.post(
            self.URL,
            {"name": "X", "sku": "X-TYPE", "price": "10.00", "categoryId": str(category.id), field: value},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error"].startswith(field)
        assert not Product.objects.filter(sku="X-TYPE").exists()

    def test_rejects_overlong_sku(self, admin_client, category):
        response = admin_client.post(
            self.URL,
            {"name": "X", "sku": "S" * 101, "price": "10.00", "categoryId": str(category.id)},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error"] == "sku must be at most 100 characters"


@pytest.mark.django_db
class TestAdminAPI:
    @pytest.mark.parametrize("method,url", [
        ("post", "/api/v1/admin/sync/zoho/items/"),
        ("post", "/api/v1/admin/sync/airtable/"),
        ("post", "/api/v1/admin/matching/run/"),
        ("get", "/api/v1/admin/classification/stats/"),
        ("post", "/api/v1/admin/classification/config/"),
        ("get", "/api/v1/compliance/rules/"),
        ("post", "/api/v1/compliance/audit/all/"),
    ])
    def test_anonymous_forbidden(self, api_client, method, url):
        response = getattr(api_client, method)(url)

        assert response.status_code == 403

    def test_zoho_missing_configuration(self, admin_client):
        response = admin_client.post("/api/v1/admin/sync/zoho/items/", {}, format="json")

        assert response.status_code == 400
        assert response.data["missing"] == [
            "ZOHO_CLIENT_ID", "ZOHO_CLIENT_SECRET", "ZOHO_REFRESH_TOKEN", "ZOHO_ORGANIZATION_ID",
        ]

    def test_zoho_unknown_phase(self, admin_client):
        response = admin_client.post("/api/v1/admin/sync/zoho/orders/", {}, format="json")

        assert response.status_code == 400

    def test_airtable_missing_configuration(self, admin_client):
        response = admin_client.post("/api/v1/admin/sync/airtable/", {}, format="json")

        assert response.status_code == 400
        assert response.data["missing"] == ["AIRTABLE_API_KEY", "AIRTABLE_BASE_ID"]

    def test_matching_missing_configuration(self, admin_client):
        response = admin_client.post("/api/v1/admin/matching/run/", {}, format="json")

        assert response.status_code == 400
        assert "AIRTABLE_API_KEY" in response.data["missing"]


@pytest.mark.django_db
class TestClassificationAPI:
    def test_stats(self, admin_client, make_product, classifier_service):
        make_product()

        response = admin_client.get("/api/v1/admin/classification/stats/")

        assert response.status_code == 200
        assert response.data["stats"]["total_products"] == 1
        assert response.data["stats"]["queue_length"] == 0

    def test_update_config(self, admin_client, classifier_service):
        response = admin_client.post(
            "/api/v1/admin/classification/config/",
            {"batchSize": 10, "autoHideTobacco": False},
            format="json",
        )

        assert response.status_code == 200
        assert response.data["config"]["batch_size"] == 10
        assert get_classification_service().config.auto_hide_tobacco is False

    def test_config_reaches_separately_built_service(self, admin_client, classifier_service):
        admin_client.post(
            "/api/v1/admin/classification/config/", {"enabled": False}, format="json"
        )

        worker = configure_classification_service()

        assert worker.refresh_config().enabled is False
        stats = admin_client.get("/api/v1/admin/classification/stats/").data["stats"]
        assert stats["config"]["enabled"] is False

    def test_disabled_config_blocks_dispatch(self, admin_client, make_product, classifier_service):
        product = make_product(name="ZYN Cool Mint Nicotine Pouches")
        admin_client.post(
            "/api/v1/admin/classification/config/", {"enabled": False}, format="json"
        )
        configure_classification_service()

        response = admin_client.post(f"/api/v1/admin/classification/classify/{product.id}/")

        assert response.status_code == 400
        product.refresh_from_db()
        assert product.visible_on_main_site is True

    @pytest.mark.parametrize("body", [
        {"maxRetries": 3},
        {"autoHideNicotine": "yes"},
        {"batchSize": 0},
        {"delaySeconds": "soon"},
    ])
    def test_invalid_config(self, admin_client, classifier_service, body):
        response = admin_client.post("/api/v1/admin/classification/config/", body, format="json")

        assert response.status_code == 400

    def test_classify_product_runs_pipeline(self, admin_client, make_product, classifier_service):
        product = make_product(name="ZYN Cool Mint Nicotine Pouches")

        response = admin_client.post(f"/api/v1/admin/classification/classify/{product.id}/")

        assert response.status_code == 200
        product.refresh_from_db()
        assert product.classification_status == "hidden"
        assert product.visible_on_main_site is False

    def test_classify_unknown_product(self, admin_client, classifier_service):
        response = admin_client.post(f"/api/v1/admin/classification/classify/{uuid.uuid4()}/")

        assert response.status_code == 404

    def test_classify_all(self, admin_client, make_product, classifier_service):
        make_product(name="ZYN Cool Mint Nicotine Pouches")
        make_product(name="Velo Citrus Pouches")

        response = admin_client.post("/api/v1/admin/classification/classify-all/", {}, format="json")

        assert response.status_code == 200
        assert response.data["queued"] == 2
        assert Product.objects.filter(classification_status="hidden").count() == 2


@pytest.mark.django_db
class TestComplianceAPI:
    def test_initialize_and_list_rules(self, admin_client):
        response = admin_client.post("/api/v1/compliance/rules/initialize/")
        assert response.data["created"] == 4

        response = admin_client.get("/api/v1/compliance/rules/")
        assert [r["category"] for r in response.data["rules"]] == sorted(
            ["THCA", "Kratom", "7-Hydroxy", "Nicotine"]
        )
        assert response.data["keyword_rules"]["total_rules"] == 7
        assert ComplianceRule.objects.count() == 4

    def test_assign_and_check_state(self, admin_client, make_product):
        product = make_product(name="Kratom Capsules")

        response = admin_client.post(
            f"/api/v1/compliance/products/{product.id}/assign/", {"category": "Kratom"}, format="json"
        )
        assert response.status_code == 200
        assert response.data["assigned_by"] == "backoffice"

        response = admin_client.get(f"/api/v1/compliance/products/{product.id}/state/wi/")
        assert response.data["state"] == "WI"
        assert response.data["allowed"] is False

    def test_assign_unknown_category(self, admin_client, make_product):
        product = make_product()

        response = admin_client.post(
            f"/api/v1/compliance/products/{product.id}/assign/", {"category": "Caffeine"}, format="json"
        )

        assert response.status_code == 400

    def test_audit_product_logs_violations(self, admin_client, make_product, compliance_rules):
        product = make_product(name="Kratom Capsules")
        ProductCompliance.objects.create(product=product, compliance_rule=compliance_rules["Kratom"])

        response = admin_client.post(f"/api/v1/compliance/products/{product.id}/audit/")

        assert response.status_code == 200
        assert response.data["logged"] == len(response.data["violations"]) == 3
        logs = admin_client.get("/api/v1/compliance/audit/logs/", {"productId": str(product.id)})
        assert len(logs.data["logs"]) == 3
        assert ComplianceAuditLog.objects.filter(detected_by="backoffice").count() == 3

    def test_summary_unknown_product(self, admin_client):
        response = admin_client.get(f"/api/v1/compliance/products/{uuid.uuid4()}/summary/")

        assert response.status_code == 404

    def test_audit_all(self, admin_client, make_product, compliance_rules):
        product = make_product(name="Nicotine Pouches")
        ProductCompliance.objects.create(product=product, compliance_rule=compliance_rules["Nicotine"])

        response = admin_client.post("/api/v1/compliance/audit/all/")

        assert response.data["results"]["critical_violations"] == 1

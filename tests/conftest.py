"""
Pytest configuration and fixtures for the storefront test suite.
"""

from decimal import Decimal

import pytest


@pytest.fixture(scope="session")
def django_db_setup(django_db_blocker):
    """Configure the test database and run migrations."""
    from django.core.management import call_command

    with django_db_blocker.unblock():
        call_command("migrate", "--run-syncdb", verbosity=0)


@pytest.fixture(autouse=True)
def clear_cache():
    """Classifier overrides and queue state live in the cache; start every test clean."""
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Create a test API client."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def staff_user(db):
    """Create a staff user for admin endpoints."""
    from django.contrib.auth import get_user_model

    return get_user_model().objects.create_user(
        username="backoffice",
        email="backoffice@vipsmoke.test",
        password="not-a-real-password",
        is_staff=True,
    )


@pytest.fixture
def admin_client(staff_user):
    """API client authenticated as a staff user."""
    from rest_framework.test import APIClient

    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


@pytest.fixture
def category(db):
    from storefront.models import Category

    return Category.objects.create(name="Water Pipes")


@pytest.fixture
def brand(db):
    from storefront.models import Brand

    return Brand.objects.create(name="ROOR")


@pytest.fixture
def make_product(db):
    """Factory for Product rows with sensible storefront defaults."""
    from storefront.models import Product

    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "name": f"Test Product {counter['n']}",
            "sku": f"TEST-{counter['n']:04d}",
            "price": Decimal("20.00"),
            "stock_quantity": 10,
        }
        fields.update(overrides)
        return Product.objects.create(**fields)

    return _make


@pytest.fixture
def compliance_rules(db):
    """Seed the default compliance rules."""
    from storefront.models import ComplianceRule
    from storefront.services.compliance_service import ComplianceService

    ComplianceService().initialize_default_rules()
    return {rule.category: rule for rule in ComplianceRule.objects.all()}

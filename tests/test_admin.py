"""
Tests for the Django admin actions.
"""

from unittest.mock import patch

import pytest
from django.contrib.admin.sites import AdminSite
from django.contrib.auth import get_user_model
from django.contrib.messages.storage.fallback import FallbackStorage
from django.contrib.sessions.middleware import SessionMiddleware
from django.test import RequestFactory

from storefront.admin import ComplianceAuditLogAdmin, IntegrationErrorAdmin, ProductAdmin
from storefront.models import ComplianceAuditLog, IntegrationError, Product


@pytest.fixture
def admin_request(db):
    """Create an admin request with user and messages support attached."""
    request = RequestFactory().get("/admin/")
    request.user = get_user_model().objects.create_superuser(
        username="admin",
        email="admin@vipsmoke.test",
        password="testpass123",
    )

    middleware = SessionMiddleware(lambda x: None)
    middleware.process_request(request)
    request.session.save()
    setattr(request, "_messages", FallbackStorage(request))

    return request


@pytest.mark.django_db
class TestProductAdmin:
    def test_queue_classification_dispatches_task(self, admin_request, make_product):
        first = make_product()
        second = make_product()
        model_admin = ProductAdmin(Product, AdminSite())

        with patch("storefront.tasks.classify_products.delay") as delay:
            model_admin.queue_classification(admin_request, Product.objects.all())

        queued = delay.call_args.args[0]
        assert sorted(queued) == sorted([str(first.id), str(second.id)])

    def test_restore_to_main_site(self, admin_request, make_product):
        product = make_product(visible_on_main_site=False, hidden_reason="Nicotine product")
        model_admin = ProductAdmin(Product, AdminSite())

        model_admin.restore_to_main_site(admin_request, Product.objects.all())

        product.refresh_from_db()
        assert product.visible_on_main_site is True
        assert product.hidden_reason == ""


@pytest.mark.django_db
class TestComplianceAuditLogAdmin:
    def test_mark_resolved_records_user(self, admin_request, make_product):
        log = ComplianceAuditLog.objects.create(
            product=make_product(), violation_type="Missing lab testing", severity="high"
        )
        model_admin = ComplianceAuditLogAdmin(ComplianceAuditLog, AdminSite())

        model_admin.mark_resolved(admin_request, ComplianceAuditLog.objects.all())

        log.refresh_from_db()
        assert log.resolved is True
        assert log.resolved_by == "admin"
        assert log.resolved_at is not None

    def test_add_disabled(self, admin_request):
        model_admin = ComplianceAuditLogAdmin(ComplianceAuditLog, AdminSite())

        assert model_admin.has_add_permission(admin_request) is False


@pytest.mark.django_db
class TestIntegrationErrorAdmin:
    def test_mark_resolved_and_unresolved(self, admin_request):
        error = IntegrationError.objects.create(source="zoho", message="Token refresh failed")
        model_admin = IntegrationErrorAdmin(IntegrationError, AdminSite())

        model_admin.mark_resolved(admin_request, IntegrationError.objects.all())
        error.refresh_from_db()
        assert error.resolved is True

        model_admin.mark_unresolved(admin_request, IntegrationError.objects.all())
        error.refresh_from_db()
        assert error.resolved is False

    def test_message_truncated(self):
        model_admin = IntegrationErrorAdmin(IntegrationError, AdminSite())

        assert model_admin.message_truncated(IntegrationError(message="x" * 100)) == "x" * 80 + "..."

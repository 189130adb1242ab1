"""
Tests for the database-backed compliance service and order compliance checks.
"""

from datetime import date

import pytest

from storefront.models import (
    ComplianceAuditLog,
    ComplianceRule,
    ProductCompliance,
    ViolationSeverity,
)
from storefront.services.compliance_service import (
    ADULT_SIGNATURE_ACTION,
    PACT_ACT_ACTION,
    PROP_65_WARNING,
    ComplianceService,
    validate_order_compliance,
    verify_age,
)


@pytest.fixture
def service():
    return ComplianceService()


class TestVerifyAge:
    def test_birthday_already_passed(self):
        assert verify_age(date(2000, 1, 15), today=date(2021, 6, 1)) == 21

    def test_birthday_not_yet_reached(self):
        assert verify_age(date(2000, 12, 31), today=date(2021, 6, 1)) == 20

    def test_on_birthday(self):
        assert verify_age(date(2000, 6, 1), today=date(2021, 6, 1)) == 21


@pytest.mark.django_db
class TestRuleSeeding:
    def test_initialize_default_rules(self, service):
        assert service.initialize_default_rules() == 4
        assert set(ComplianceRule.objects.values_list("category", flat=True)) == {
            "THCA", "Kratom", "7-Hydroxy", "Nicotine",
        }

    def test_initialize_is_idempotent(self, service):
        service.initialize_default_rules()
        rule = ComplianceRule.objects.get(category="Kratom")
        rule.age_requirement = 19
        rule.save()

        assert service.initialize_default_rules() == 0
        assert ComplianceRule.objects.get(category="Kratom").age_requirement == 19


@pytest.mark.django_db
class TestAssignCompliance:
    def test_assign_creates_link(self, service, make_product):
        product = make_product(name="THCA Flower")

        link = service.assign_compliance_to_product(product.id, "thca", assigned_by="admin")

        assert link.compliance_rule.category == "THCA"
        assert link.assigned_by == "admin"

    def test_assign_twice_keeps_one_link(self, service, make_product):
        product = make_product()

        service.assign_compliance_to_product(product.id, "Kratom")
        service.assign_compliance_to_product(product.id, "Kratom", assigned_by="ai_classifier")

        assert ProductCompliance.objects.filter(product=product).count() == 1

    def test_unknown_category(self, service, make_product):
        product = make_product()

        with pytest.raises(ValueError):
            service.assign_compliance_to_product(product.id, "Caffeine")


@pytest.mark.django_db
class TestStateCompliance:
    def test_restricted_state(self, service, make_product):
        product = make_product(name="THCA Pre-Roll")
        service.assign_compliance_to_product(product.id, "THCA")

        result = service.check_state_compliance(product.id, "tx")

        assert result.allowed is False
        assert result.violations == ["Product contains THCA which is restricted in TX"]
        assert "This product has not been evaluated by the FDA" in result.warnings

    def test_allowed_state(self, service, make_product):
        product = make_product(name="THCA Pre-Roll")
        service.assign_compliance_to_product(product.id, "THCA")

        result = service.check_state_compliance(product.id, "CA")

        assert result.allowed is True
        assert result.violations == []

    def test_nicotine_flag_applies_pact_act_states(self, service, make_product):
        product = make_product(name="Menthol Pouches", nicotine_product=True)

        result = service.check_state_compliance(product.id, "NY")

        assert result.allowed is False
        assert "NY" in result.violations[0]

    def test_unregulated_product_ships_anywhere(self, service, make_product):
        product = make_product(name="Silicone Ashtray")

        assert service.check_state_compliance(product.id, "UT").allowed is True


@pytest.mark.django_db
class TestAudit:
    def test_missing_documents(self, service, make_product):
        product = make_product(name="THCA Flower")
        service.assign_compliance_to_product(product.id, "THCA")

        violations = service.audit_product(product.id)
        severities = sorted(v.severity for v in violations)

        assert len(violations) == 3
        assert severities == sorted([
            ViolationSeverity.HIGH, ViolationSeverity.MEDIUM, ViolationSeverity.MEDIUM,
        ])

    def test_documented_product_is_clean(self, service, make_product):
        product = make_product(
            name="THCA Flower",
            lab_test_url="https://labs.example.com/coa/123.pdf",
            batch_number="B-2024-001",
            expiration_date=date(2030, 1, 1),
        )
        service.assign_compliance_to_product(product.id, "THCA")

        assert service.audit_product(product.id) == []

    def test_visible_nicotine_product_is_critical(self, service, make_product):
        product = make_product(name="Nicotine Pouches", visible_on_main_site=True)
        service.assign_compliance_to_product(product.id, "Nicotine")

        violations = service.audit_product(product.id)

        assert [v.severity for v in violations] == [ViolationSeverity.CRITICAL]

    def test_log_violations(self, service, make_product):
        product = make_product(name="Kratom Capsules")
        service.assign_compliance_to_product(product.id, "Kratom")

        logged = service.log_violations(service.audit_product(product.id), detected_by="test")

        assert logged == 3
        assert ComplianceAuditLog.objects.filter(product=product, detected_by="test").count() == 3

    def test_audit_all_products(self, service, make_product):
        regulated = make_product(name="Nicotine Pouches")
        service.assign_compliance_to_product(regulated.id, "Nicotine")
        make_product(name="Glass Bowl")

        results = service.audit_all_products(log=True)

        assert results == {
            "total_products": 1,
            "violations_found": 1,
            "critical_violations": 1,
        }
        assert ComplianceAuditLog.objects.filter(detected_by="audit").count() == 1

    def test_audit_all_without_logging(self, service, make_product):
        product = make_product(name="Nicotine Pouches")
        service.assign_compliance_to_product(product.id, "Nicotine")

        service.audit_all_products(log=False)

        assert ComplianceAuditLog.objects.count() == 0

    def test_summary(self, service, make_product):
        product = make_product(name="Kratom Capsules")
        service.assign_compliance_to_product(product.id, "Kratom")

        summary = service.get_product_compliance_summary(product.id)

        assert summary["compliant"] is False
        assert summary["active_rules"][0]["category"] == "Kratom"
        assert "AL" in summary["restricted_states"]
        assert summary["restricted_states"] == sorted(summary["restricted_states"])


@pytest.mark.django_db
class TestOrderCompliance:
    def test_underage_nicotine_purchase(self, make_product):
        product = make_product(name="ZYN Pouches", nicotine_product=True)

        result = validate_order_compliance(18, {"state": "FL"}, [product])

        assert result.is_compliant is False
        assert "Customer must be 21+ to purchase ZYN Pouches" in result.violations
        assert ADULT_SIGNATURE_ACTION in result.required_actions
        assert PACT_ACT_ACTION in result.required_actions

    def test_adult_unregulated_order(self, make_product):
        product = make_product(name="Glass Bowl")

        result = validate_order_compliance(30, {"state": "TX"}, [product])

        assert result.is_compliant is True
        assert result.violations == []
        assert result.required_actions == []

    def test_unknown_age_only_fails_age_restricted_products(self, make_product):
        plain = make_product(name="Glass Bowl")
        restricted = make_product(name="Butane Torch", age_restriction=18)

        assert validate_order_compliance(None, {"state": "TX"}, [plain]).is_compliant is True
        result = validate_order_compliance(None, {"state": "TX"}, [restricted])
        assert result.violations == ["Customer must be 18+ to purchase Butane Torch"]

    def test_restricted_shipping_state(self, service, make_product):
        product = make_product(name="THCA Flower")
        service.assign_compliance_to_product(product.id, "THCA")

        result = validate_order_compliance(25, {"state": "ID"}, [product])

        assert result.is_compliant is False
        assert result.violations == [
            "Cannot ship THCA Flower to ID: Shipping to ID is not allowed for this product"
        ]

    def test_international_shipping_refused(self, service, make_product):
        product = make_product(name="Kratom Capsules")
        service.assign_compliance_to_product(product.id, "Kratom")

        result = validate_order_compliance(25, {"state": "ON", "country": "CA"}, [product])

        assert result.is_compliant is False
        assert "International shipping not allowed" in result.violations[0]

    def test_california_prop_65_warning(self, service, make_product):
        product = make_product(name="Kratom Capsules")
        service.assign_compliance_to_product(product.id, "Kratom")

        result = validate_order_compliance(25, {"state": "CA"}, [product])

        assert result.is_compliant is True
        assert result.warnings == [PROP_65_WARNING]

"""
Compliance service.

Reads the compliance rules assigned to products and the products' own
document fields (lab test URL, batch number, expiration date) to answer:

- can this product ship to this state?
- which compliance violations does this product have?
- does this order pass age and shipping checks?

Detected violations are appended to the compliance audit log and never
dropped silently.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from django.db import transaction
from django.db.models import Count

from storefront.models import (
    ComplianceAuditLog,
    ComplianceCategory,
    ComplianceRule,
    Product,
    ProductCompliance,
    ViolationSeverity,
)
from storefront.services.rule_table import (
    DEFAULT_COMPLIANCE_RULES,
    PACT_ACT_RESTRICTED_STATES,
    get_compliance_profile,
)

logger = logging.getLogger(__name__)


ADULT_SIGNATURE_ACTION = "Adult signature required on delivery"
PACT_ACT_ACTION = "PACT Act compliance documentation required"
PROP_65_WARNING = "California Proposition 65 warning may be required"
INTERNATIONAL_SHIPPING_MESSAGE = "International shipping not allowed for restricted products"


@dataclass
class StateComplianceResult:
    allowed: bool
    violations: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "allowed": self.allowed,
            "violations": list(self.violations),
            "warnings": list(self.warnings),
        }


@dataclass
class ComplianceViolation:
    product_id: str
    violation_type: str
    severity: str
    category: str = ""
    notes: str = ""

    def to_dict(self) -> Dict:
        return {
            "product_id": self.product_id,
            "violation_type": self.violation_type,
            "severity": self.severity,
            "category": self.category,
            "notes": self.notes,
        }


@dataclass
class OrderComplianceResult:
    is_compliant: bool
    violations: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    required_actions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "is_compliant": self.is_compliant,
            "violations": list(self.violations),
            "warnings": list(self.warnings),
            "required_actions": list(self.required_actions),
        }


def _dedupe(values: Iterable[str]) -> List[str]:
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def verify_age(date_of_birth: date, today: Optional[date] = None) -> int:
    """Age in whole years on ``today``."""
    today = today or date.today()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def active_rules_for(product: Product) -> List[ComplianceRule]:
    return [
        link.compliance_rule
        for link in product.compliance_links.select_related("compliance_rule")
        if link.compliance_rule.is_active
    ]


class ComplianceService:
    """Database-backed compliance checks and audits."""

    def initialize_default_rules(self) -> int:
        """
        Seed the default compliance rules.

        Existing rules are left untouched.

        Returns:
            Number of rules created
        """
        created_count = 0
        for profile in DEFAULT_COMPLIANCE_RULES:
            _, created = ComplianceRule.objects.get_or_create(
                category=profile.category,
                defaults=profile.as_model_fields(),
            )
            if created:
                created_count += 1
                logger.info(f"Created compliance rule: {profile.category}")
        return created_count

    def check_state_compliance(self, product_id, state: str) -> StateComplianceResult:
        """
        Check whether a product may ship to ``state``.

        Raises:
            Product.DoesNotExist: If the product does not exist
        """
        product = Product.objects.get(pk=product_id)
        state = (state or "").upper()
        violations: List[str] = []
        warnings: List[str] = []

        for rule in active_rules_for(product):
            if state in rule.restricted_states:
                violations.append(
                    f"Product contains {rule.category} which is restricted in {state}"
                )
            warnings.extend(rule.warning_labels)

        if (product.nicotine_product or product.tobacco_product) and state in PACT_ACT_RESTRICTED_STATES:
            violations.append(
                f"Product contains {ComplianceCategory.NICOTINE} which is restricted in {state}"
            )

        return StateComplianceResult(
            allowed=not violations,
            violations=_dedupe(violations),
            warnings=_dedupe(warnings),
        )

    def audit_product(self, product_id) -> List[ComplianceViolation]:
        """
        Check a product's documents and visibility against its rules.

        Raises:
            Product.DoesNotExist: If the product does not exist
        """
        product = Product.objects.get(pk=product_id)
        pid = str(product.id)
        violations: List[ComplianceViolation] = []

        for rule in active_rules_for(product):
            if rule.lab_testing_required and not product.lab_test_url:
                violations.append(ComplianceViolation(
                    product_id=pid,
                    violation_type=f"Missing required lab test results for {rule.category} product",
                    severity=ViolationSeverity.HIGH,
                    category=rule.category,
                    notes="COA / lab test URL is empty",
                ))
            if rule.batch_tracking_required and not product.batch_number:
                violations.append(ComplianceViolation(
                    product_id=pid,
                    violation_type=f"Missing required batch number for {rule.category} product",
                    severity=ViolationSeverity.MEDIUM,
                    category=rule.category,
                ))
            if rule.batch_tracking_required and not product.expiration_date:
                violations.append(ComplianceViolation(
                    product_id=pid,
                    violation_type=f"Missing expiration date for {rule.category} product",
                    severity=ViolationSeverity.MEDIUM,
                    category=rule.category,
                ))
            if rule.category == ComplianceCategory.NICOTINE and product.visible_on_main_site:
                violations.append(ComplianceViolation(
                    product_id=pid,
                    violation_type="Nicotine product visible on main site",
                    severity=ViolationSeverity.CRITICAL,
                    category=rule.category,
                    notes="Nicotine products are restricted to the tobacco site",
                ))

        return violations

    def log_violations(
        self, violations: Iterable[ComplianceViolation], detected_by: str = "system"
    ) -> int:
        """Append violations to the compliance audit log."""
        rows = [
            ComplianceAuditLog(
                product_id=v.product_id,
                violation_type=v.violation_type,
                severity=v.severity,
                notes=v.notes,
                detected_by=detected_by,
            )
            for v in violations
        ]
        if rows:
            ComplianceAuditLog.objects.bulk_create(rows)
            logger.warning(f"Logged {len(rows)} compliance violations (detected by {detected_by})")
        return len(rows)

    def get_product_compliance_summary(self, product_id) -> Dict:
        """Rules, violations, restricted states and warnings for one product."""
        product = Product.objects.get(pk=product_id)
        rules = active_rules_for(product)
        violations = self.audit_product(product.id)

        restricted_states: List[str] = []
        warnings: List[str] = []
        for rule in rules:
            restricted_states.extend(rule.restricted_states)
            warnings.extend(rule.warning_labels)

        return {
            "product_id": str(product.id),
            "compliant": not violations,
            "active_rules": [
                {
                    "category": rule.category,
                    "substance_type": rule.substance_type,
                    "age_requirement": rule.age_requirement,
                }
                for rule in rules
            ],
            "violations": [v.to_dict() for v in violations],
            "restricted_states": sorted(set(restricted_states)),
            "required_warnings": _dedupe(warnings),
        }

    def assign_compliance_to_product(
        self, product_id, category: str, assigned_by: str = "admin"
    ) -> ProductCompliance:
        """
        Link a product to the rule for ``category``, creating the rule if needed.

        Raises:
            ValueError: If ``category`` is not a known compliance category
            Product.DoesNotExist: If the product does not exist
        """
        profile = get_compliance_profile(category)
        if profile is None:
            raise ValueError(f"Unknown compliance category: {category}")

        product = Product.objects.get(pk=product_id)
        with transaction.atomic():
            rule, _ = ComplianceRule.objects.get_or_create(
                category=profile.category,
                defaults=profile.as_model_fields(),
            )
            link, created = ProductCompliance.objects.get_or_create(
                product=product,
                compliance_rule=rule,
                defaults={"assigned_by": assigned_by},
            )
        if created:
            logger.info(f"Assigned {rule.category} compliance to {product.sku} ({assigned_by})")
        return link

    def audit_all_products(self, log: bool = True) -> Dict:
        """Audit every product with at least one compliance rule."""
        product_ids = (
            Product.objects.filter(compliance_links__isnull=False)
            .values_list("id", flat=True)
            .distinct()
        )
        total = 0
        found: List[ComplianceViolation] = []
        for product_id in product_ids:
            total += 1
            found.extend(self.audit_product(product_id))

        if log:
            self.log_violations(found, detected_by="audit")

        critical = sum(1 for v in found if v.severity == ViolationSeverity.CRITICAL)
        logger.info(f"Audited {total} products: {len(found)} violations, {critical} critical")
        return {
            "total_products": total,
            "violations_found": len(found),
            "critical_violations": critical,
        }

    def compliance_stats(self) -> Dict:
        unresolved = (
            ComplianceAuditLog.objects.filter(resolved=False)
            .values("severity")
            .annotate(count=Count("id"))
        )
        return {
            "total_rules": ComplianceRule.objects.count(),
            "active_rules": ComplianceRule.objects.filter(is_active=True).count(),
            "products_with_compliance": (
                ProductCompliance.objects.values("product").distinct().count()
            ),
            "unresolved_violations": {row["severity"]: row["count"] for row in unresolved},
        }


def _minimum_age(product: Product, rules: List[ComplianceRule]) -> int:
    ages = [rule.age_requirement for rule in rules]
    if product.age_restriction:
        ages.append(product.age_restriction)
    if product.nicotine_product or product.tobacco_product:
        ages.append(21)
    return max(ages) if ages else 0


def validate_order_compliance(
    customer_age: Optional[int],
    shipping_address: Dict,
    products: Iterable[Product],
) -> OrderComplianceResult:
    """
    Age and shipping checks for every product in an order.

    ``shipping_address`` needs ``state`` and may carry ``country``
    (defaults to US). An unknown ``customer_age`` fails every product that
    has a minimum age.
    """
    state = str(shipping_address.get("state", "")).upper()
    country = str(shipping_address.get("country") or "US").upper()
    violations: List[str] = []
    warnings: List[str] = []
    required_actions: List[str] = []

    for product in products:
        rules = active_rules_for(product)
        nicotine = product.nicotine_product or product.tobacco_product or any(
            rule.category == ComplianceCategory.NICOTINE for rule in rules
        )
        regulated = bool(rules) or nicotine

        minimum_age = _minimum_age(product, rules)
        if minimum_age and (customer_age is None or customer_age < minimum_age):
            violations.append(f"Customer must be {minimum_age}+ to purchase {product.name}")

        if not regulated:
            continue

        if country not in ("US", "USA"):
            violations.append(
                f"Cannot ship {product.name} to {state or country}: {INTERNATIONAL_SHIPPING_MESSAGE}"
            )
        else:
            restricted = set()
            for rule in rules:
                restricted.update(rule.restricted_states)
            if nicotine:
                restricted.update(PACT_ACT_RESTRICTED_STATES)
            if state in restricted:
                violations.append(
                    f"Cannot ship {product.name} to {state}: "
                    f"Shipping to {state} is not allowed for this product"
                )

        if minimum_age or any(
            rule.shipping_restrictions.get("adult_signature_required") for rule in rules
        ):
            required_actions.append(ADULT_SIGNATURE_ACTION)
        if nicotine:
            required_actions.append(PACT_ACT_ACTION)
        if state == "CA":
            warnings.append(PROP_65_WARNING)

    return OrderComplianceResult(
        is_compliant=not violations,
        violations=violations,
        warnings=_dedupe(warnings),
        required_actions=_dedupe(required_actions),
    )


_compliance_service: Optional[ComplianceService] = None


def get_compliance_service() -> ComplianceService:
    global _compliance_service
    if _compliance_service is None:
        _compliance_service = ComplianceService()
    return _compliance_service

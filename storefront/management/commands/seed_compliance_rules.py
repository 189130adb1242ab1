"""
Management command to create the default compliance rules
(THCA, Kratom, 7-Hydroxy, Nicotine). Existing rules are left unchanged.

Usage:
    python manage.py seed_compliance_rules
"""

from django.core.management.base import BaseCommand

from storefront.models import ComplianceRule
from storefront.services.compliance_service import get_compliance_service


class Command(BaseCommand):
    """Seed the default compliance rules."""

    help = 'Create the default compliance rules'

    def handle(self, *args, **options):
        created = get_compliance_service().initialize_default_rules()
        total = ComplianceRule.objects.count()
        self.stdout.write(self.style.SUCCESS(
            f'Created {created} compliance rules ({total} total)'
        ))

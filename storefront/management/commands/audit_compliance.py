"""
Management command to audit every product that has compliance rules.

Usage:
    python manage.py audit_compliance            # report only
    python manage.py audit_compliance --apply    # also write the audit log
"""

from django.core.management.base import BaseCommand

from storefront.services.compliance_service import get_compliance_service


class Command(BaseCommand):
    """Audit regulated products for missing documents and visibility violations."""

    help = 'Audit regulated products (violations are logged only with --apply)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--apply',
            action='store_true',
            help='Write violations to the compliance audit log',
        )

    def handle(self, *args, **options):
        results = get_compliance_service().audit_all_products(log=options['apply'])

        self.stdout.write(
            f'Audited {results["total_products"]} products: '
            f'{results["violations_found"]} violations, '
            f'{results["critical_violations"]} critical'
        )
        if results['critical_violations']:
            self.stdout.write(self.style.ERROR('Critical violations need attention'))
        if options['apply']:
            self.stdout.write(self.style.SUCCESS('Violations written to the audit log'))
        else:
            self.stdout.write(self.style.WARNING('Dry run - audit log not written'))

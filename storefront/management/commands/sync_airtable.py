"""
Management command to copy images and descriptions from Airtable records
onto products matched by SKU or name.

Usage:
    python manage.py sync_airtable                 # dry run
    python manage.py sync_airtable --apply --limit=100
"""

from django.core.management.base import BaseCommand, CommandError

from storefront.integrations.exceptions import ConfigurationError, IntegrationAPIError
from storefront.services.content_sync import run_airtable_sync


class Command(BaseCommand):
    """Sync product content from Airtable."""

    help = 'Sync product content from Airtable (dry run unless --apply)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--apply',
            action='store_true',
            help='Write content to products',
        )
        parser.add_argument(
            '--limit',
            type=int,
            default=None,
            help='Maximum number of Airtable records to read',
        )
        parser.add_argument(
            '--force',
            action='store_true',
            help='Overwrite fields that already have a value',
        )

    def handle(self, *args, **options):
        dry_run = not options['apply']
        if dry_run:
            self.stdout.write(self.style.WARNING('Dry run - no products will be updated'))

        try:
            result = run_airtable_sync(
                dry_run=dry_run, limit=options['limit'], force=options['force']
            )
        except ConfigurationError as e:
            raise CommandError(str(e))
        except IntegrationAPIError as e:
            raise CommandError(f'Airtable request failed: {e}')

        for change in result.changes:
            self.stdout.write(
                f'  {change["sku"]} <- {change["record_id"]} '
                f'[{change["matched_by"]}] {", ".join(change["updated_fields"])}'
            )
        verb = 'Would update' if dry_run else 'Updated'
        self.stdout.write(self.style.SUCCESS(
            f'{verb} {result.updated} products, {result.unchanged} unchanged, '
            f'{result.skipped} skipped, {result.failed} failed'
        ))
        for error in result.errors:
            self.stdout.write(self.style.ERROR(f'  {error}'))

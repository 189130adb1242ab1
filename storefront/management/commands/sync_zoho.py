"""
Management command to sync the catalog from Zoho Inventory.

Usage:
    python manage.py sync_zoho --phase=items                  # dry run
    python manage.py sync_zoho --phase=items --apply --full-sync
    python manage.py sync_zoho --phase=items --apply --start-from-id=4600000000123
    python manage.py sync_zoho --phase=inventory --apply --limit=500
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from storefront.integrations.exceptions import ConfigurationError, IntegrationAPIError
from storefront.services.zoho_sync import PHASES, ZohoSyncService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Run a Zoho Inventory sync phase."""

    help = 'Sync items, categories, brands or inventory from Zoho (dry run unless --apply)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--phase',
            choices=PHASES,
            default='items',
            help='Sync phase to run (default: items)',
        )
        parser.add_argument(
            '--limit',
            type=int,
            default=None,
            help='Maximum number of Zoho items to process',
        )
        parser.add_argument(
            '--start-from-id',
            type=str,
            default=None,
            help='Resume the items phase after this Zoho item id',
        )
        parser.add_argument(
            '--full-sync',
            action='store_true',
            help='Update every field of existing products, not just price and stock',
        )
        parser.add_argument(
            '--apply',
            action='store_true',
            help='Write changes (otherwise the run is rolled back)',
        )

    def handle(self, *args, **options):
        phase = options['phase']
        dry_run = not options['apply']
        if dry_run:
            self.stdout.write(self.style.WARNING('Dry run - changes will be rolled back'))

        kwargs = {}
        if phase in ('items', 'brands', 'inventory'):
            kwargs['limit'] = options['limit']
        if phase == 'items':
            kwargs['start_from_id'] = options['start_from_id']
            kwargs['full_sync'] = options['full_sync']

        try:
            stats = ZohoSyncService(dry_run=dry_run).run_phase(phase, **kwargs)
        except ConfigurationError as e:
            raise CommandError(str(e))
        except IntegrationAPIError as e:
            raise CommandError(f'Zoho {phase} sync failed: {e}')

        self.stdout.write(self.style.SUCCESS(
            f'Zoho {phase}: {stats.success} succeeded ({stats.created} created, '
            f'{stats.updated} updated), {stats.skipped} skipped, {stats.failed} failed'
        ))
        for error in stats.errors[:20]:
            self.stdout.write(self.style.ERROR(f'  {error}'))
        if len(stats.errors) > 20:
            self.stdout.write(f'  ... and {len(stats.errors) - 20} more errors')

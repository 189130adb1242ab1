"""
Management command to match catalog products against Airtable records and
copy images/descriptions onto the matched products.

Usage:
    python manage.py match_products                       # dry run
    python manage.py match_products --apply
    python manage.py match_products --threshold=0.7 --limit=200 --output=report.json
    python manage.py match_products --apply --force       # overwrite filled fields
"""

import json
import logging

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from storefront.integrations.exceptions import ConfigurationError, IntegrationAPIError
from storefront.services.content_sync import run_product_matching

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Match products to Airtable records and sync their content."""

    help = 'Match products against Airtable records (dry run unless --apply)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--apply',
            action='store_true',
            help='Write matched content to products',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report matches without writing (the default; overrides --apply)',
        )
        parser.add_argument(
            '--limit',
            type=int,
            default=None,
            help='Maximum number of products to evaluate',
        )
        parser.add_argument(
            '--threshold',
            type=float,
            default=None,
            help=f'Minimum match score 0..1 (default: {getattr(settings, "MATCHER_DEFAULT_THRESHOLD", 0.5)})',
        )
        parser.add_argument(
            '--force',
            action='store_true',
            help='Include products that already have images and overwrite filled fields',
        )
        parser.add_argument(
            '--output',
            type=str,
            default=None,
            help='Write the match report as JSON to this path',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run'] or not options['apply']
        if dry_run:
            self.stdout.write(self.style.WARNING('Dry run - no products will be updated'))

        try:
            report, result = run_product_matching(
                dry_run=dry_run,
                threshold=options['threshold'],
                limit=options['limit'],
                force=options['force'],
            )
        except ConfigurationError as e:
            raise CommandError(str(e))
        except IntegrationAPIError as e:
            raise CommandError(f'Airtable request failed: {e}')
        except ValueError as e:
            raise CommandError(str(e))

        for match in report.matches:
            self.stdout.write(
                f'  {match.score:.2f}  {match.product.sku} -> {match.record.record_id} '
                f'({", ".join(match.signals)})'
            )

        self.stdout.write(
            f'Evaluated {report.products_evaluated} products against '
            f'{report.records_evaluated} records: {len(report.matches)} matched '
            f'({report.match_rate:.1%}), {report.skipped} skipped'
        )
        verb = 'Would update' if dry_run else 'Updated'
        self.stdout.write(self.style.SUCCESS(
            f'{verb} {result.updated} products, {result.unchanged} unchanged, {result.failed} failed'
        ))
        for error in report.errors + result.errors:
            self.stdout.write(self.style.ERROR(f'  {error}'))

        if options['output']:
            payload = {'report': report.to_dict(), 'content': result.to_dict()}
            with open(options['output'], 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, default=str)
            self.stdout.write(f'Report written to {options["output"]}')

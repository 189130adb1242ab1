"""
Management command to run products through the classification pipeline.

Without --apply only the keyword rules are evaluated and nothing is
written; with --apply products go through rules + LLM and are hidden or
left visible.

Usage:
    python manage.py classify_products --limit=50
    python manage.py classify_products --apply --limit=50
    python manage.py classify_products --apply --product-id=<uuid> --product-id=<uuid>
"""

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from storefront.models import ClassificationStatus, Product
from storefront.services.background_classifier import get_classification_service


class Command(BaseCommand):
    """Classify products for compliance visibility."""

    help = 'Classify unclassified products (rule preview unless --apply)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--limit',
            type=int,
            default=50,
            help='Maximum number of products to classify (default: 50)',
        )
        parser.add_argument(
            '--product-id',
            action='append',
            dest='product_ids',
            default=[],
            help='Classify this product (repeatable); ignores --limit',
        )
        parser.add_argument(
            '--apply',
            action='store_true',
            help='Run the full pipeline and persist the results',
        )

    def handle(self, *args, **options):
        service = get_classification_service()

        if options['product_ids']:
            try:
                products = list(Product.objects.filter(id__in=options['product_ids']))
            except ValidationError:
                raise CommandError('--product-id must be a product UUID')
            missing = set(options['product_ids']) - {str(p.id) for p in products}
            if missing:
                raise CommandError(f'Products not found: {", ".join(sorted(missing))}')
        else:
            products = list(
                Product.objects.filter(
                    is_active=True,
                    classification_status__in=[
                        ClassificationStatus.UNCLASSIFIED,
                        ClassificationStatus.FAILED,
                    ],
                ).order_by('created_at')[:options['limit']]
            )

        if not products:
            self.stdout.write(self.style.SUCCESS('No products to classify'))
            return

        if not options['apply']:
            self.stdout.write(self.style.WARNING('Dry run - keyword rules only, nothing is written'))
            flagged = 0
            for product in products:
                analysis = service.rule_engine.analyze(product.name, product.description)
                if analysis.triggered:
                    flagged += 1
                    action = 'HIDE' if analysis.should_hide else analysis.highest_priority_action.upper()
                    self.stdout.write(
                        f'  {action:<22} {product.sku}  {product.name} '
                        f'[{", ".join(analysis.triggered_rules)}] ({analysis.confidence:.2f})'
                    )
            self.stdout.write(self.style.SUCCESS(
                f'{flagged} of {len(products)} products matched a keyword rule'
            ))
            return

        if not service.refresh_config().enabled:
            raise CommandError('Background classification is disabled (CLASSIFIER_ENABLED)')

        outcomes = service.process([p.id for p in products])
        by_state = {}
        for outcome in outcomes:
            by_state[outcome.state] = by_state.get(outcome.state, 0) + 1
            line = f'  {str(outcome.state):<10} {outcome.product_id}'
            if outcome.reason:
                line += f'  {outcome.reason}'
            if outcome.error:
                line += f'  ({outcome.error})'
            self.stdout.write(line)

        summary = ', '.join(f'{count} {state}' for state, count in sorted(by_state.items()))
        self.stdout.write(self.style.SUCCESS(f'Classified {len(outcomes)} products: {summary}'))

"""
Django signals for the storefront application.

Active Signals:
- Product created -> background classification task
  (when settings.CLASSIFIER_CLASSIFY_ON_CREATE is on)
"""

import logging

from django.conf import settings
from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from storefront.models import Product

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Product)
def queue_new_product_for_classification(sender, instance, created, **kwargs):
    """Classify new products once the creating transaction commits."""
    if not created or kwargs.get("raw"):
        return
    if not getattr(settings, "CLASSIFIER_CLASSIFY_ON_CREATE", False):
        return

    from storefront.tasks import classify_products

    product_id = str(instance.pk)
    transaction.on_commit(lambda: classify_products.delay([product_id]))
    logger.debug(f"Scheduled classification for new product {instance.sku}")

"""
Celery tasks for the storefront back-office.

- sync_zoho_phase: one Zoho Inventory sync phase (hourly inventory, nightly items)
- sync_airtable_content: Airtable content sync
- classify_products: classify specific products through the background pipeline
- classify_unclassified_products: sweep for never-classified or failed products
- audit_all_products: nightly compliance audit
"""

import logging
from typing import Any, Dict, List, Optional

from asgiref.sync import async_to_sync
from celery import shared_task

from storefront.integrations.exceptions import ConfigurationError, IntegrationAPIError
from storefront.services.background_classifier import get_classification_service
from storefront.services.compliance_service import get_compliance_service
from storefront.services.content_sync import run_airtable_sync
from storefront.services.zoho_sync import ZohoSyncService

logger = logging.getLogger(__name__)


@shared_task(name="storefront.tasks.sync_zoho_phase")
def sync_zoho_phase(
    phase: str,
    limit: Optional[int] = None,
    start_from_id: Optional[str] = None,
    full_sync: bool = True,
) -> Dict[str, Any]:
    """
    Run one Zoho sync phase.

    Failures come back in the summary; the task is never retried and
    the next scheduled run picks up where the data stands.
    """
    kwargs: Dict[str, Any] = {}
    if phase in ("items", "brands", "inventory"):
        kwargs["limit"] = limit
    if phase == "items":
        kwargs["start_from_id"] = start_from_id
        kwargs["full_sync"] = full_sync

    try:
        stats = ZohoSyncService().run_phase(phase, **kwargs)
    except ConfigurationError as e:
        logger.error(f"Zoho sync skipped: {e}")
        return {"success": False, "phase": phase, "error": str(e), "missing": e.missing}
    except IntegrationAPIError as e:
        logger.error(f"Zoho {phase} sync failed: {e}")
        return {"success": False, "phase": phase, "error": str(e)}

    return {"success": True, "phase": phase, "stats": stats.to_dict()}


@shared_task(name="storefront.tasks.sync_airtable_content")
def sync_airtable_content(limit: Optional[int] = None, force: bool = False) -> Dict[str, Any]:
    try:
        result = run_airtable_sync(dry_run=False, limit=limit, force=force)
    except ConfigurationError as e:
        logger.error(f"Airtable sync skipped: {e}")
        return {"success": False, "error": str(e), "missing": e.missing}
    except IntegrationAPIError as e:
        logger.error(f"Airtable sync failed: {e}")
        return {"success": False, "error": str(e)}

    summary = result.to_dict()
    summary.pop("changes")
    return {"success": True, **summary}


def _summarize(outcomes) -> Dict[str, Any]:
    return {
        "processed": len(outcomes),
        "hidden": sum(1 for o in outcomes if o.hidden),
        "failed": sum(1 for o in outcomes if o.state == "failed"),
        "outcomes": [o.to_dict() for o in outcomes],
    }


@shared_task(name="storefront.tasks.classify_products")
def classify_products(product_ids: List[str]) -> Dict[str, Any]:
    """Queue the given products and drain the classification queue."""
    service = get_classification_service()
    outcomes = service.process(product_ids)
    logger.info(f"Classified {len(outcomes)} of {len(product_ids)} requested products")
    return _summarize(outcomes)


@shared_task(name="storefront.tasks.classify_unclassified_products")
def classify_unclassified_products(limit: Optional[int] = None) -> Dict[str, Any]:
    """Queue products that were never classified (or failed) and drain the queue."""
    service = get_classification_service()
    queued = service.classify_all_products(limit=limit)
    outcomes = async_to_sync(service.drain)() if queued else []
    return {"queued": queued, **_summarize(outcomes)}


@shared_task(name="storefront.tasks.audit_all_products")
def audit_all_products() -> Dict[str, Any]:
    """Audit every regulated product and log the violations."""
    return get_compliance_service().audit_all_products(log=True)

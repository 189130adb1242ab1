"""
Celery configuration for the storefront back-office.

Runs catalog syncs, product classification and compliance audits on
separate queues.
"""

import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("vipsmoke")

# namespace='CELERY' means all celery-related configuration keys
# should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()

app.conf.task_queues = {
    "sync": {
        "exchange": "sync",
        "routing_key": "sync",
    },
    # The classification queue lives in worker memory, run it with concurrency=1
    "classification": {
        "exchange": "classification",
        "routing_key": "classification",
    },
    "default": {
        "exchange": "default",
        "routing_key": "default",
    },
}

app.conf.task_default_queue = "default"
app.conf.task_default_exchange = "default"
app.conf.task_default_routing_key = "default"

app.conf.task_routes = {
    "storefront.tasks.sync_zoho_phase": {"queue": "sync"},
    "storefront.tasks.sync_airtable_content": {"queue": "sync"},
    "storefront.tasks.classify_products": {"queue": "classification"},
    "storefront.tasks.classify_unclassified_products": {"queue": "classification"},
    "storefront.tasks.audit_all_products": {"queue": "default"},
}

app.conf.beat_schedule = {
    "sync-zoho-inventory-hourly": {
        "task": "storefront.tasks.sync_zoho_phase",
        "schedule": crontab(minute=15),
        "kwargs": {"phase": "inventory"},
    },
    "sync-zoho-items-nightly": {
        "task": "storefront.tasks.sync_zoho_phase",
        "schedule": crontab(hour=3, minute=0),
        "kwargs": {"phase": "items", "full_sync": True},
    },
    "classify-unclassified-every-30-minutes": {
        "task": "storefront.tasks.classify_unclassified_products",
        "schedule": crontab(minute="*/30"),
        "kwargs": {"limit": 100},
    },
    "audit-compliance-nightly": {
        "task": "storefront.tasks.audit_all_products",
        "schedule": crontab(hour=4, minute=30),
    },
}

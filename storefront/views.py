"""
Storefront health check endpoint for monitoring and load balancer checks.
"""

import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.utils import timezone

from storefront.models import IntegrationError, SyncRun, SyncRunStatus

logger = logging.getLogger(__name__)


def get_redis_connection():
    """
    Get the Redis client behind the Django cache.

    Returns:
        Redis client, or None when the cache is not django-redis.
    """
    from django.core.cache import cache

    if hasattr(cache, "client") and hasattr(cache.client, "get_client"):
        return cache.client.get_client()
    return None


def health_check(request):
    """
    Health check endpoint.

    Endpoint: GET /api/health/
    No authentication required (for load balancer checks).

    Response fields:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "error"
        - redis: "connected", "not_configured" or "error"
        - last_sync: ISO timestamp of the last completed sync run
        - unresolved_integration_errors: count of open IntegrationError rows

    Returns:
        HTTP 200 for healthy, HTTP 503 for unhealthy
    """
    status = "healthy"
    http_status = 200

    database_status = "connected"
    try:
        connection.ensure_connection()
    except DatabaseError as e:
        logger.error(f"Health check database error: {e}")
        database_status = "error"
        status = "unhealthy"
        http_status = 503

    redis_status = "not_configured"
    try:
        redis_client = get_redis_connection()
        if redis_client is not None:
            redis_status = "connected" if redis_client.ping() else "error"
    except Exception as e:
        logger.warning(f"Health check redis error: {e}")
        redis_status = "error"

    last_sync = None
    unresolved_errors = None
    if database_status == "connected":
        try:
            latest = (
                SyncRun.objects.filter(status=SyncRunStatus.COMPLETED)
                .order_by("-finished_at")
                .first()
            )
            if latest is not None and latest.finished_at:
                last_sync = latest.finished_at.isoformat()
            unresolved_errors = IntegrationError.objects.filter(resolved=False).count()
        except DatabaseError as e:
            logger.warning(f"Health check could not read sync state: {e}")

    return JsonResponse(
        {
            "status": status,
            "database": database_status,
            "redis": redis_status,
            "last_sync": last_sync,
            "unresolved_integration_errors": unresolved_errors,
            "timestamp": timezone.now().isoformat(),
        },
        status=http_status,
    )

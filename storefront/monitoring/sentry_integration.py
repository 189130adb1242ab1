"""
Sentry error tracking for integration and classification failures.

Sentry itself is initialised in settings/base.py when SENTRY_DSN is set;
with no DSN the SDK calls below are no-ops.

Usage:
    from storefront.monitoring import capture_integration_error

    try:
        client.list_categories()
    except ZohoAPIError as e:
        capture_integration_error(e, source="zoho", phase="categories")
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk

logger = logging.getLogger(__name__)

# Keys whose values never leave the process
SENSITIVE_FIELDS = {
    "authorization",
    "api_key",
    "apikey",
    "access_token",
    "refresh_token",
    "client_secret",
    "password",
    "secret",
    "token",
}


def _filter_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Replace values of sensitive keys, recursing into nested dicts."""
    if not isinstance(data, dict):
        return data

    filtered = {}
    for key, value in data.items():
        key_lower = str(key).lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_FIELDS):
            filtered[key] = "[Filtered]"
        elif isinstance(value, dict):
            filtered[key] = _filter_sensitive_data(value)
        else:
            filtered[key] = value
    return filtered


def add_integration_breadcrumb(
    source: str,
    message: str,
    level: str = "info",
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """Add a Sentry breadcrumb tracing a sync or classification step."""
    data = {"source": source}
    if extra_data:
        data.update(_filter_sensitive_data(extra_data))

    try:
        sentry_sdk.add_breadcrumb(
            category="integration",
            message=message,
            level=level,
            data=data,
        )
    except Exception as e:
        logger.warning(f"Failed to add Sentry breadcrumb: {e}")


def capture_integration_error(
    error: Exception,
    source: str,
    phase: str = "",
    record_id: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> None:
    """Capture an exception to Sentry tagged with the integration context."""
    add_integration_breadcrumb(
        source=source,
        message=f"Error: {type(error).__name__}",
        level="error",
        extra_data={"phase": phase, "record_id": record_id, **(extra_context or {})},
    )

    try:
        with sentry_sdk.new_scope() as scope:
            scope.set_tag("integration.source", source)
            if phase:
                scope.set_tag("integration.phase", phase)
            if record_id:
                scope.set_extra("record_id", record_id)
            if extra_context:
                scope.set_extra("integration_context", _filter_sensitive_data(extra_context))
            sentry_sdk.capture_exception(error)
    except Exception as e:
        logger.warning(f"Failed to capture exception to Sentry: {e}")

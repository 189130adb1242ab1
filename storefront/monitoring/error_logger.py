"""
Persistent error logging for per-record integration failures.

Every failed Zoho item, Airtable record or classification attempt gets an
IntegrationError row, in addition to the log line and the Sentry event.
"""

import logging
import traceback
from typing import Any, Dict, Optional

from django.db import DatabaseError
from django.utils import timezone

logger = logging.getLogger(__name__)


def create_integration_error_record(
    source: str,
    message: str,
    phase: str = "",
    record_id: str = "",
    stack_trace: str = "",
):
    """
    Create an IntegrationError record.

    Returns:
        IntegrationError instance, or None when the row could not be written
    """
    from storefront.models import IntegrationError

    try:
        error_record = IntegrationError.objects.create(
            source=source,
            phase=phase,
            record_id=str(record_id or "")[:200],
            message=message,
            stack_trace=stack_trace,
            timestamp=timezone.now(),
        )
        logger.debug(f"Created IntegrationError {error_record.id} for {source}/{phase} {record_id}")
        return error_record
    except DatabaseError as e:
        logger.error(f"Failed to create IntegrationError record: {e}")
        return None


def log_error_with_context(
    error: Exception,
    source: str,
    phase: str = "",
    record_id: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None,
):
    """
    Log a per-record failure to the database and Sentry.

    Returns:
        IntegrationError instance if the database record was created
    """
    from .sentry_integration import capture_integration_error

    stack_trace = "".join(
        traceback.format_exception(type(error), error, error.__traceback__)
    )
    logger.error(f"{source}/{phase} failed for {record_id or 'batch'}: {error}")

    error_record = create_integration_error_record(
        source=source,
        message=str(error),
        phase=phase,
        record_id=record_id or "",
        stack_trace=stack_trace,
    )
    capture_integration_error(
        error,
        source=source,
        phase=phase,
        record_id=record_id,
        extra_context=extra_context,
    )
    return error_record

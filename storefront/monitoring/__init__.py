"""
Monitoring for sync jobs, classification and compliance.

- Sentry capture with integration context and sensitive-field filtering
- Persistent IntegrationError records for per-record failures
"""

from .sentry_integration import add_integration_breadcrumb, capture_integration_error
from .error_logger import create_integration_error_record, log_error_with_context

__all__ = [
    "add_integration_breadcrumb",
    "capture_integration_error",
    "create_integration_error_record",
    "log_error_with_context",
]

"""
API throttle classes.

Rates come from REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] under each
class's scope.
"""

from rest_framework.throttling import AnonRateThrottle, UserRateThrottle


class StorefrontAnonThrottle(AnonRateThrottle):
    """Anonymous shoppers: cart, search and catalog endpoints."""

    scope = "storefront_anon"


class StorefrontUserThrottle(UserRateThrottle):
    """Signed-in shoppers: cart, search and catalog endpoints."""

    scope = "storefront_user"


class CheckoutThrottle(AnonRateThrottle):
    """
    Order placement, keyed by user or client IP.

    Applied to: POST /api/v1/orders/
    """

    scope = "checkout"

    def allow_request(self, request, view):
        if request.method != "POST":
            return True
        return super().allow_request(request, view)

    def get_cache_key(self, request, view):
        if request.user and request.user.is_authenticated:
            ident = request.user.pk
        else:
            ident = self.get_ident(request)
        return self.cache_format % {"scope": self.scope, "ident": ident}


class AdminSyncThrottle(UserRateThrottle):
    """
    Staff-triggered sync and matching runs.

    Applied to: /api/v1/admin/sync/..., /api/v1/admin/matching/run/
    """

    scope = "admin_sync"

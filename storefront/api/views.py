"""
REST API views.

Storefront endpoints (cart, orders, search, VIP catalog) accept anonymous
requests; a cart belongs to the signed-in user or to the ``sessionId``
the client sends. Admin, sync and compliance endpoints require staff.

Request bodies accept camelCase keys (``startFromId``) as well as their
snake_case form (``start_from_id``). Every error is a JSON body with an
``error`` key and an explicit status:

- 400: validation errors and missing integration configuration
  (the response lists the missing environment variables)
- 404: unknown product, order or cart line
- 500: upstream (Zoho, Airtable) failures
"""

import logging
import uuid
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from django.db import DatabaseError, IntegrityError
from django.db.models import Q
from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.response import Response

from storefront.api.permissions import IsAdminOrReadOnly
from storefront.api.throttling import (
    AdminSyncThrottle,
    CheckoutThrottle,
    StorefrontAnonThrottle,
    StorefrontUserThrottle,
)
from storefront.integrations.exceptions import ConfigurationError, IntegrationAPIError
from storefront.models import (
    Brand,
    Category,
    ClassificationStatus,
    ComplianceAuditLog,
    ComplianceRule,
    Order,
    Product,
)
from storefront.services.background_classifier import get_classification_service
from storefront.services.cart import (
    CartError,
    CartOwner,
    add_item,
    clear_cart,
    get_cart,
    serialize_cart_item,
    update_item,
)
from storefront.services.checkout import (
    CheckoutError,
    CheckoutRequest,
    place_order,
    serialize_order,
)
from storefront.services.compliance_rules import ComplianceRuleEngine
from storefront.services.compliance_service import (
    get_compliance_service,
    validate_order_compliance,
    verify_age,
)
from storefront.services.content_sync import run_airtable_sync, run_product_matching
from storefront.services.search import DEFAULT_LIMIT, suggest
from storefront.services.zoho_sync import PHASES, ZohoSyncService

logger = logging.getLogger(__name__)

STOREFRONT_THROTTLES = [StorefrontAnonThrottle, StorefrontUserThrottle]

VIP_DEFAULT_LIMIT = 50
VIP_MAX_LIMIT = 200
NEW_PRODUCT_DAYS = 30
# Product.price and friends are DecimalField(max_digits=10, decimal_places=2).
MAX_AMOUNT = Decimal("99999999.99")
AUDIT_LOG_DEFAULT_LIMIT = 100
AUDIT_LOG_MAX_LIMIT = 500

# Classifier config keys accepted by the API, with their value types
CLASSIFIER_CONFIG_FIELDS = {
    "enabled": bool,
    "batch_size": int,
    "delay_seconds": float,
    "rule_confidence_cutoff": float,
    "auto_hide_nicotine": bool,
    "auto_hide_tobacco": bool,
}
CLASSIFIER_CONFIG_ALIASES = {
    "batchSize": "batch_size",
    "delaySeconds": "delay_seconds",
    "delayBetweenClassifications": "delay_seconds",
    "ruleConfidenceCutoff": "rule_confidence_cutoff",
    "autoHideNicotine": "auto_hide_nicotine",
    "autoHideTobacco": "auto_hide_tobacco",
}


# ============================================================
# Request helpers
# ============================================================

def _request_params(request) -> Dict[str, Any]:
    """Query string merged with the request body (body wins)."""
    params = request.query_params.dict()
    data = request.data
    if hasattr(data, "dict"):
        data = data.dict()
    if isinstance(data, dict):
        params.update(data)
    return params


def _param(params: Dict, *names: str, default=None):
    for name in names:
        value = params.get(name)
        if value not in (None, ""):
            return value
    return default


def _int_param(params: Dict, *names: str, default: Optional[int] = None, minimum: int = 0):
    value = _param(params, *names)
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"{names[0]} must be an integer")
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{names[0]} must be an integer")
    if value < minimum:
        raise ValueError(f"{names[0]} must be at least {minimum}")
    return value


def _bool_param(params: Dict, *names: str, default: bool = False) -> bool:
    value = _param(params, *names)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _decimal_param(params: Dict, *names: str) -> Optional[Decimal]:
    value = _param(params, *names)
    if value is None:
        return None
    if isinstance(value, (bool, list, dict)):
        raise ValueError(f"{names[0]} must be a number")
    try:
        value = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"{names[0]} must be a number")
    if not value.is_finite():
        raise ValueError(f"{names[0]} must be a number")
    if abs(value) > MAX_AMOUNT:
        raise ValueError(f"{names[0]} is too large")
    return value


def _text_param(params: Dict, *names: str, default: str = "", max_length: Optional[int] = None) -> str:
    value = _param(params, *names, default=default)
    if not isinstance(value, str):
        raise ValueError(f"{names[0]} must be a string")
    if max_length is not None and len(value) > max_length:
        raise ValueError(f"{names[0]} must be at most {max_length} characters")
    return value


def _list_param(params: Dict, *names: str) -> list:
    value = _param(params, *names, default=[])
    if not isinstance(value, list):
        raise ValueError(f"{names[0]} must be a list")
    return value


def _dict_param(params: Dict, *names: str) -> dict:
    value = _param(params, *names, default={})
    if not isinstance(value, dict):
        raise ValueError(f"{names[0]} must be an object")
    return value


def _is_uuid(value) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def _error(message: str, status_code: int = status.HTTP_400_BAD_REQUEST, **extra) -> Response:
    return Response({"success": False, "error": message, **extra}, status=status_code)


def _configuration_error(error: ConfigurationError) -> Response:
    return _error(str(error), missing=error.missing)


def _cart_owner(request, params: Dict) -> CartOwner:
    user = request.user if request.user.is_authenticated else None
    return CartOwner(user=user, session_id=str(_param(params, "sessionId", "session_id", default="")))


# ============================================================
# Storefront: cart and orders
# ============================================================

@extend_schema(
    tags=["Storefront"],
    summary="Read or modify the shopping cart",
    description="""
    GET returns the cart lines and totals. POST adds `{productId, quantity}`;
    PUT sets `{cartItemId, quantity}` (0 removes the line); DELETE empties
    the cart. Anonymous callers must send `sessionId`.
    """,
)
@api_view(["GET", "POST", "PUT", "DELETE"])
@permission_classes([AllowAny])
@throttle_classes(STOREFRONT_THROTTLES)
def cart(request):
    params = _request_params(request)
    try:
        owner = _cart_owner(request, params)

        if request.method == "GET":
            return Response({"success": True, **get_cart(owner)})

        if request.method == "POST":
            product_id = _param(params, "productId", "product_id")
            if not product_id or not _is_uuid(product_id):
                return _error("productId is required")
            quantity = _int_param(params, "quantity", default=1, minimum=1)
            item = add_item(owner, product_id, quantity)
            return Response(
                {"success": True, "item": serialize_cart_item(item), **get_cart(owner)},
                status=status.HTTP_201_CREATED,
            )

        if request.method == "PUT":
            item_id = _param(params, "cartItemId", "cart_item_id", "itemId")
            if not item_id or not _is_uuid(item_id):
                return _error("cartItemId is required")
            quantity = _param(params, "quantity")
            if quantity is None:
                return _error("quantity is required")
            try:
                quantity = int(quantity)
            except (TypeError, ValueError):
                return _error("quantity must be an integer")
            item = update_item(owner, item_id, quantity)
            return Response({
                "success": True,
                "removed": item is None,
                **get_cart(owner),
            })

        removed = clear_cart(owner)
        return Response({"success": True, "removed": removed})

    except CartError as e:
        return _error(str(e), e.status_code)
    except ValueError as e:
        return _error(str(e))
    except DatabaseError as e:
        logger.error(f"Cart {request.method} failed: {e}")
        return _error("Failed to update cart", status.HTTP_500_INTERNAL_SERVER_ERROR)


@extend_schema(
    tags=["Storefront"],
    summary="Look up orders or place an order",
    description="""
    GET: signed-in users get their orders; anonymous callers pass
    `orderId` and `email`. POST: checkout of the caller's cart with
    `customerInfo`, `shippingAddress` and optional `billingAddress`.
    `customerInfo.dateOfBirth` (or `age`) feeds the age checks.
    """,
)
@api_view(["GET", "POST"])
@permission_classes([AllowAny])
@throttle_classes(STOREFRONT_THROTTLES + [CheckoutThrottle])
def orders(request):
    if request.method == "POST":
        return _place_order(request)

    params = _request_params(request)
    if request.user.is_authenticated:
        queryset = (
            Order.objects.filter(user=request.user)
            .prefetch_related("items")
            .order_by("-created_at")
        )
        return Response({"success": True, "orders": [serialize_order(o) for o in queryset]})

    order_id = _param(params, "orderId", "order_id")
    email = _param(params, "email")
    if not order_id or not email:
        return _error("orderId and email are required")
    if not _is_uuid(order_id):
        return _error("Order not found", status.HTTP_404_NOT_FOUND)

    order = (
        Order.objects.filter(pk=order_id, customer_email__iexact=str(email).strip())
        .prefetch_related("items")
        .first()
    )
    if order is None:
        return _error("Order not found", status.HTTP_404_NOT_FOUND)
    return Response({"success": True, "order": serialize_order(order)})


def _place_order(request):
    params = _request_params(request)
    try:
        checkout = CheckoutRequest(
            owner=_cart_owner(request, params),
            customer_info=_param(params, "customerInfo", "customer_info", default={}),
            shipping_address=_param(params, "shippingAddress", "shipping_address", default={}),
            billing_address=_param(params, "billingAddress", "billing_address"),
            customer_notes=str(_param(params, "customerNotes", "notes", default="")),
        )
        order = place_order(checkout)
    except (CartError, CheckoutError) as e:
        extra = {"details": e.details} if getattr(e, "details", None) else {}
        return _error(str(e), e.status_code, **extra)
    except DatabaseError as e:
        logger.error(f"Checkout failed: {e}")
        return _error("Failed to create order", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return Response(
        {
            "success": True,
            "order_id": str(order.id),
            "order_number": order.order_number,
            "total": order.total_amount,
            "message": "Order created successfully",
        },
        status=status.HTTP_201_CREATED,
    )


@extend_schema(
    tags=["Storefront"],
    summary="Check an order against compliance rules",
    description="""
    Runs the age and shipping checks checkout runs, without placing the
    order. Body: `productIds`, `shippingAddress` and `customerAge` or
    `dateOfBirth` (YYYY-MM-DD).
    """,
)
@api_view(["POST"])
@permission_classes([AllowAny])
@throttle_classes(STOREFRONT_THROTTLES)
def order_compliance(request):
    params = _request_params(request)
    product_ids = _param(params, "productIds", "product_ids", default=[])
    shipping_address = _param(params, "shippingAddress", "shipping_address", default={})

    if not isinstance(product_ids, list) or not product_ids:
        return _error("productIds must be a non-empty list")
    if any(not _is_uuid(pid) for pid in product_ids):
        return _error("productIds contains an invalid id")
    if not isinstance(shipping_address, dict) or not shipping_address.get("state"):
        return _error("shippingAddress.state is required")

    try:
        dob = _param(params, "dateOfBirth", "date_of_birth")
        if dob:
            customer_age = verify_age(date.fromisoformat(str(dob)))
        else:
            customer_age = _int_param(params, "customerAge", "customer_age")
    except ValueError as e:
        return _error(str(e))

    products = list(Product.objects.filter(id__in=product_ids))
    if len(products) != len(set(str(pid) for pid in product_ids)):
        return _error("Product not found", status.HTTP_404_NOT_FOUND)

    result = validate_order_compliance(customer_age, shipping_address, products)
    return Response({"success": True, **result.to_dict()})


# ============================================================
# Storefront: search and catalog
# ============================================================

@extend_schema(
    tags=["Storefront"],
    summary="Search suggestions",
    parameters=[
        OpenApiParameter("q", str, description="Query, at least 2 characters"),
        OpenApiParameter("limit", int, description=f"Max suggestions (default {DEFAULT_LIMIT})"),
    ],
)
@api_view(["GET"])
@permission_classes([AllowAny])
@throttle_classes(STOREFRONT_THROTTLES)
def search_suggestions(request):
    try:
        limit = _int_param(request.query_params, "limit", default=DEFAULT_LIMIT, minimum=1)
    except ValueError as e:
        return _error(str(e))
    return Response(suggest(request.query_params.get("q"), limit))


def _serialize_catalog_product(product: Product, new_since) -> Dict:
    return {
        "id": str(product.id),
        "name": product.name,
        "description": product.description,
        "short_description": product.short_description,
        "sku": product.sku,
        "price": product.price,
        "vip_price": product.vip_price,
        "compare_at_price": product.compare_at_price,
        "brand_id": str(product.brand_id) if product.brand_id else None,
        "brand": product.brand.name if product.brand else None,
        "category_id": str(product.category_id) if product.category_id else None,
        "category": product.category.name if product.category else None,
        "stock_quantity": product.stock_quantity,
        "materials": product.materials or [],
        "image_url": product.image_url,
        "image_urls": product.image_urls or [],
        "attributes": product.attributes or {},
        "specs": product.specs or {},
        "tags": product.tags or [],
        "nicotine_product": product.nicotine_product,
        "tobacco_product": product.tobacco_product,
        "is_active": product.is_active,
        "featured": product.featured,
        "vip_exclusive": product.vip_exclusive,
        "requires_membership": product.requires_membership,
        "age_restriction": product.age_restriction,
        "warning_labels": product.warning_labels or [],
        "in_stock": product.in_stock,
        "is_new": product.created_at > new_since,
        "is_sale": product.is_sale,
        "created_at": product.created_at,
    }


def _filter_by_ref(queryset, field: str, value: str):
    """Filter a FK by id when ``value`` is a UUID, else by slug."""
    if _is_uuid(value):
        return queryset.filter(**{f"{field}_id": value})
    return queryset.filter(**{f"{field}__slug": value})


@extend_schema(
    tags=["Storefront"],
    summary="VIP catalog listing / create product",
    parameters=[
        OpenApiParameter("limit", int, description=f"Page size (default {VIP_DEFAULT_LIMIT})"),
        OpenApiParameter("offset", int),
        OpenApiParameter("category", str, description="Category id or slug"),
        OpenApiParameter("brand", str, description="Brand id or slug"),
        OpenApiParameter("search", str),
        OpenApiParameter("featured", bool),
        OpenApiParameter("minPrice", float),
        OpenApiParameter("maxPrice", float),
        OpenApiParameter("inStock", bool),
    ],
    description="GET lists active products with filters; POST (staff only) creates a product.",
)
@api_view(["GET", "POST"])
@permission_classes([IsAdminOrReadOnly])
@throttle_classes(STOREFRONT_THROTTLES)
def vip_products(request):
    if request.method == "POST":
        return _create_vip_product(request)

    params = request.query_params
    try:
        limit = min(_int_param(params, "limit", default=VIP_DEFAULT_LIMIT, minimum=1), VIP_MAX_LIMIT)
        offset = _int_param(params, "offset", default=0)
        min_price = _decimal_param(params, "minPrice", "min_price")
        max_price = _decimal_param(params, "maxPrice", "max_price")
    except ValueError as e:
        return _error(str(e))

    queryset = Product.objects.filter(is_active=True).select_related("brand", "category")

    category = _param(params, "category")
    if category:
        queryset = _filter_by_ref(queryset, "category", category)
    brand = _param(params, "brand")
    if brand:
        queryset = _filter_by_ref(queryset, "brand", brand)
    search = _param(params, "search")
    if search:
        queryset = queryset.filter(
            Q(name__icontains=search) | Q(description__icontains=search) | Q(sku__icontains=search)
        )
    if _bool_param(params, "featured"):
        queryset = queryset.filter(featured=True)
    if min_price is not None:
        queryset = queryset.filter(price__gte=min_price)
    if max_price is not None:
        queryset = queryset.filter(price__lte=max_price)
    if _bool_param(params, "inStock", "in_stock"):
        queryset = queryset.filter(stock_quantity__gt=0)

    total = queryset.count()
    page = queryset.order_by("-featured", "-created_at")[offset:offset + limit]
    new_since = timezone.now() - timedelta(days=NEW_PRODUCT_DAYS)

    return Response({
        "success": True,
        "products": [_serialize_catalog_product(p, new_since) for p in page],
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + limit < total,
        },
        "filters": {
            "category": category,
            "brand": brand,
            "search": search,
            "featured": params.get("featured"),
            "min_price": params.get("minPrice") or params.get("min_price"),
            "max_price": params.get("maxPrice") or params.get("max_price"),
            "in_stock": params.get("inStock") or params.get("in_stock"),
        },
    })


def _create_vip_product(request):
    params = _request_params(request)
    name = _param(params, "name")
    sku = _param(params, "sku")
    category_id = _param(params, "categoryId", "category_id")
    if not name or not sku or _param(params, "price") is None or not category_id:
        return _error("Name, SKU, price, and category are required")

    try:
        name = _text_param(params, "name", max_length=500)
        sku = _text_param(params, "sku", max_length=100)
        price = _decimal_param(params, "price")
        vip_price = _decimal_param(params, "vipPrice", "vip_price")
        compare_at_price = _decimal_param(params, "compareAtPrice", "compare_at_price")
        stock_quantity = _int_param(params, "stockQuantity", "stock_quantity", default=0)
        age_restriction = _int_param(params, "ageRestriction", "age_restriction", default=21)
        fields = {
            "description": _text_param(params, "description"),
            "short_description": _text_param(params, "shortDescription", "short_description")[:500],
            "image_url": _text_param(params, "imageUrl", "image_url", max_length=1000),
            "materials": _list_param(params, "materials"),
            "image_urls": _list_param(params, "imageUrls", "image_urls"),
            "tags": _list_param(params, "tags"),
            "warning_labels": _list_param(params, "warningLabels", "warning_labels"),
            "attributes": _dict_param(params, "attributes"),
            "specs": _dict_param(params, "specs"),
        }
    except ValueError as e:
        return _error(str(e))
    if price < 0:
        return _error("price cannot be negative")

    category = Category.objects.filter(pk=category_id).first() if _is_uuid(category_id) else None
    if category is None:
        return _error("Category not found")
    brand_id = _param(params, "brandId", "brand_id")
    brand = Brand.objects.filter(pk=brand_id).first() if brand_id and _is_uuid(brand_id) else None
    if brand_id and brand is None:
        return _error("Brand not found")

    if Product.objects.filter(sku=sku).exists():
        return _error("A product with this SKU already exists")

    try:
        product = Product.objects.create(
            name=name,
            sku=sku,
            price=price,
            vip_price=vip_price,
            compare_at_price=compare_at_price,
            brand=brand,
            category=category,
            stock_quantity=stock_quantity,
            age_restriction=age_restriction,
            **fields,
            is_active=_bool_param(params, "isActive", "is_active", default=True),
            featured=_bool_param(params, "featured"),
            vip_exclusive=_bool_param(params, "vipExclusive", "vip_exclusive"),
            requires_membership=_bool_param(params, "requiresMembership", "requires_membership"),
        )
    except IntegrityError as e:
        logger.error(f"Failed to create product {sku}: {e}")
        return _error("Failed to create product", status.HTTP_500_INTERNAL_SERVER_ERROR)

    logger.info(f"Created VIP product {product.sku}")
    new_since = timezone.now() - timedelta(days=NEW_PRODUCT_DAYS)
    return Response(
        {"success": True, "product": _serialize_catalog_product(product, new_since)},
        status=status.HTTP_201_CREATED,
    )


# ============================================================
# Admin: sync and matching
# ============================================================

@extend_schema(
    tags=["Admin"],
    summary="Run a Zoho Inventory sync phase",
    description=f"""
    Phases: {', '.join(PHASES)}. Body: `limit`, `startFromId` and
    `fullSync` (items only), `dryRun`. Missing Zoho credentials return 400
    with the missing variable names.
    """,
)
@api_view(["POST"])
@permission_classes([IsAdminUser])
@throttle_classes([AdminSyncThrottle])
def sync_zoho(request, phase):
    if phase not in PHASES:
        return _error(f"Unknown phase '{phase}'. Expected one of: {', '.join(PHASES)}")

    params = _request_params(request)
    try:
        kwargs: Dict[str, Any] = {}
        if phase in ("items", "brands", "inventory"):
            kwargs["limit"] = _int_param(params, "limit", minimum=1)
        if phase == "items":
            kwargs["start_from_id"] = _param(params, "startFromId", "start_from_id")
            kwargs["full_sync"] = _bool_param(params, "fullSync", "full_sync", default=True)
        dry_run = _bool_param(params, "dryRun", "dry_run")

        stats = ZohoSyncService(dry_run=dry_run).run_phase(phase, **kwargs)
    except ConfigurationError as e:
        return _configuration_error(e)
    except IntegrationAPIError as e:
        logger.error(f"Zoho {phase} sync failed: {e}")
        return _error(str(e), status.HTTP_500_INTERNAL_SERVER_ERROR, phase=phase)
    except ValueError as e:
        return _error(str(e))

    return Response({
        "success": True,
        "phase": phase,
        "dry_run": dry_run,
        "stats": stats.to_dict(),
        "errors": stats.errors,
    })


@extend_schema(
    tags=["Admin"],
    summary="Sync content from Airtable",
    description="Body: `limit`, `force` (overwrite filled fields), `dryRun`.",
)
@api_view(["POST"])
@permission_classes([IsAdminUser])
@throttle_classes([AdminSyncThrottle])
def sync_airtable(request):
    params = _request_params(request)
    try:
        dry_run = _bool_param(params, "dryRun", "dry_run")
        result = run_airtable_sync(
            dry_run=dry_run,
            limit=_int_param(params, "limit", minimum=1),
            force=_bool_param(params, "force"),
        )
    except ConfigurationError as e:
        return _configuration_error(e)
    except IntegrationAPIError as e:
        logger.error(f"Airtable sync failed: {e}")
        return _error(str(e), status.HTTP_500_INTERNAL_SERVER_ERROR)
    except ValueError as e:
        return _error(str(e))

    return Response({"success": True, "results": result.to_dict(), "errors": result.errors})


@extend_schema(
    tags=["Admin"],
    summary="Run the product matcher",
    description="""
    Matches active products against Airtable records. Dry run unless
    `apply` is true. Body: `threshold` (0..1), `limit`, `force`.
    """,
)
@api_view(["POST"])
@permission_classes([IsAdminUser])
@throttle_classes([AdminSyncThrottle])
def run_matching(request):
    params = _request_params(request)
    try:
        threshold = _param(params, "threshold")
        apply_changes = _bool_param(params, "apply")
        report, result = run_product_matching(
            dry_run=not apply_changes,
            threshold=float(threshold) if threshold is not None else None,
            limit=_int_param(params, "limit", minimum=1),
            force=_bool_param(params, "force"),
        )
    except ConfigurationError as e:
        return _configuration_error(e)
    except IntegrationAPIError as e:
        logger.error(f"Product matching failed: {e}")
        return _error(str(e), status.HTTP_500_INTERNAL_SERVER_ERROR)
    except (TypeError, ValueError) as e:
        return _error(str(e))

    return Response({
        "success": True,
        "dry_run": not apply_changes,
        "report": report.to_dict(),
        "content": result.to_dict(),
        "errors": report.errors + result.errors,
    })


# ============================================================
# Admin: background classification
# ============================================================

@extend_schema(tags=["Admin"], summary="Classifier queue and visibility stats")
@api_view(["GET"])
@permission_classes([IsAdminUser])
def classification_stats(request):
    return Response({"success": True, "stats": get_classification_service().stats()})


@extend_schema(
    tags=["Admin"],
    summary="Queue every unclassified product",
    description="Dispatches a classification task for active products that were never classified or failed.",
)
@api_view(["POST"])
@permission_classes([IsAdminUser])
def classify_all(request):
    from storefront.tasks import classify_unclassified_products

    params = _request_params(request)
    try:
        limit = _int_param(params, "limit", minimum=1)
    except ValueError as e:
        return _error(str(e))

    service = get_classification_service()
    if not service.refresh_config().enabled:
        return _error("Background classification is disabled")

    pending = Product.objects.filter(
        is_active=True,
        classification_status__in=[ClassificationStatus.UNCLASSIFIED, ClassificationStatus.FAILED],
    ).count()
    queued = min(pending, limit) if limit else pending
    classify_unclassified_products.delay(limit=limit)
    return Response({
        "success": True,
        "queued": queued,
        "message": f"Queued {queued} products for classification",
    })


@extend_schema(tags=["Admin"], summary="Queue one product for classification")
@api_view(["POST"])
@permission_classes([IsAdminUser])
def classify_product(request, product_id):
    from storefront.tasks import classify_products

    if not Product.objects.filter(pk=product_id).exists():
        return _error("Product not found", status.HTTP_404_NOT_FOUND)
    if not get_classification_service().refresh_config().enabled:
        return _error("Background classification is disabled")

    classify_products.delay([str(product_id)])
    return Response({
        "success": True,
        "product_id": str(product_id),
        "message": "Product queued for classification",
    })


def _classifier_changes(params: Dict) -> Dict:
    changes = {}
    for key, value in params.items():
        name = CLASSIFIER_CONFIG_ALIASES.get(key, key)
        expected = CLASSIFIER_CONFIG_FIELDS.get(name)
        if expected is None:
            raise ValueError(f"Unknown classifier setting: {key}")
        if expected is bool:
            if not isinstance(value, bool):
                raise ValueError(f"{key} must be true or false")
            changes[name] = value
            continue
        if isinstance(value, bool):
            raise ValueError(f"{key} must be a number")
        try:
            changes[name] = expected(value)
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be a number")
    return changes


@extend_schema(
    tags=["Admin"],
    summary="Update classifier configuration",
    description=f"Accepted keys: {', '.join(CLASSIFIER_CONFIG_FIELDS)} (or their camelCase form).",
)
@api_view(["POST"])
@permission_classes([IsAdminUser])
def classification_config(request):
    data = request.data if isinstance(request.data, dict) else {}
    try:
        config = get_classification_service().update_config(_classifier_changes(data))
    except ValueError as e:
        return _error(str(e))
    return Response({"success": True, "config": config.to_dict()})


# ============================================================
# Compliance
# ============================================================

def _serialize_rule(rule: ComplianceRule) -> Dict:
    return {
        "id": str(rule.id),
        "category": rule.category,
        "substance_type": rule.substance_type,
        "restricted_states": rule.restricted_states,
        "age_requirement": rule.age_requirement,
        "lab_testing_required": rule.lab_testing_required,
        "batch_tracking_required": rule.batch_tracking_required,
        "warning_labels": rule.warning_labels,
        "shipping_restrictions": rule.shipping_restrictions,
        "is_active": rule.is_active,
        "product_count": rule.product_links.count(),
    }


@extend_schema(tags=["Compliance"], summary="List compliance rules and keyword rule stats")
@api_view(["GET"])
@permission_classes([IsAdminUser])
def compliance_rules(request):
    rules = ComplianceRule.objects.order_by("category")
    return Response({
        "success": True,
        "rules": [_serialize_rule(rule) for rule in rules],
        "keyword_rules": ComplianceRuleEngine().rule_stats(),
        "stats": get_compliance_service().compliance_stats(),
    })


@extend_schema(tags=["Compliance"], summary="Create the default compliance rules")
@api_view(["POST"])
@permission_classes([IsAdminUser])
def initialize_compliance_rules(request):
    created = get_compliance_service().initialize_default_rules()
    return Response({
        "success": True,
        "created": created,
        "message": f"Created {created} compliance rules",
    })


@extend_schema(tags=["Compliance"], summary="Can a product ship to a state?")
@api_view(["GET"])
@permission_classes([IsAdminUser])
def product_state_compliance(request, product_id, state):
    try:
        result = get_compliance_service().check_state_compliance(product_id, state)
    except Product.DoesNotExist:
        return _error("Product not found", status.HTTP_404_NOT_FOUND)
    return Response({
        "success": True,
        "product_id": str(product_id),
        "state": state.upper(),
        **result.to_dict(),
    })


@extend_schema(tags=["Compliance"], summary="Product compliance summary")
@api_view(["GET"])
@permission_classes([IsAdminUser])
def product_compliance_summary(request, product_id):
    try:
        summary = get_compliance_service().get_product_compliance_summary(product_id)
    except Product.DoesNotExist:
        return _error("Product not found", status.HTTP_404_NOT_FOUND)
    return Response({"success": True, "summary": summary})


@extend_schema(
    tags=["Compliance"],
    summary="Audit one product",
    description="Violations are written to the compliance audit log unless `log` is false.",
)
@api_view(["POST"])
@permission_classes([IsAdminUser])
def audit_product(request, product_id):
    service = get_compliance_service()
    try:
        violations = service.audit_product(product_id)
    except Product.DoesNotExist:
        return _error("Product not found", status.HTTP_404_NOT_FOUND)

    logged = 0
    if _bool_param(_request_params(request), "log", default=True):
        logged = service.log_violations(violations, detected_by=request.user.get_username() or "admin")
    return Response({
        "success": True,
        "product_id": str(product_id),
        "violations": [v.to_dict() for v in violations],
        "logged": logged,
    })


@extend_schema(tags=["Compliance"], summary="Assign a compliance category to a product")
@api_view(["POST"])
@permission_classes([IsAdminUser])
def assign_compliance(request, product_id):
    category = _param(_request_params(request), "category")
    if not category:
        return _error("category is required")
    try:
        link = get_compliance_service().assign_compliance_to_product(
            product_id, category, assigned_by=request.user.get_username() or "admin"
        )
    except Product.DoesNotExist:
        return _error("Product not found", status.HTTP_404_NOT_FOUND)
    except ValueError as e:
        return _error(str(e))
    return Response({
        "success": True,
        "product_id": str(product_id),
        "category": link.compliance_rule.category,
        "assigned_by": link.assigned_by,
    })


@extend_schema(tags=["Compliance"], summary="Audit every product with compliance rules")
@api_view(["POST"])
@permission_classes([IsAdminUser])
def audit_all(request):
    results = get_compliance_service().audit_all_products(log=True)
    return Response({"success": True, "results": results})


@extend_schema(
    tags=["Compliance"],
    summary="Compliance audit log",
    parameters=[
        OpenApiParameter("severity", str),
        OpenApiParameter("resolved", bool),
        OpenApiParameter("productId", str),
        OpenApiParameter("limit", int, description=f"Default {AUDIT_LOG_DEFAULT_LIMIT}"),
    ],
)
@api_view(["GET"])
@permission_classes([IsAdminUser])
def audit_logs(request):
    params = request.query_params
    try:
        limit = min(
            _int_param(params, "limit", default=AUDIT_LOG_DEFAULT_LIMIT, minimum=1),
            AUDIT_LOG_MAX_LIMIT,
        )
    except ValueError as e:
        return _error(str(e))

    queryset = ComplianceAuditLog.objects.select_related("product").order_by("-created_at")
    severity = params.get("severity")
    if severity:
        queryset = queryset.filter(severity=severity)
    if params.get("resolved") not in (None, ""):
        queryset = queryset.filter(resolved=_bool_param(params, "resolved"))
    product_id = _param(params, "productId", "product_id")
    if product_id:
        if not _is_uuid(product_id):
            return _error("productId is not a valid id")
        queryset = queryset.filter(product_id=product_id)

    return Response({
        "success": True,
        "logs": [
            {
                "id": str(entry.id),
                "product_id": str(entry.product_id),
                "product_name": entry.product.name,
                "violation_type": entry.violation_type,
                "severity": entry.severity,
                "notes": entry.notes,
                "detected_by": entry.detected_by,
                "resolved": entry.resolved,
                "created_at": entry.created_at,
            }
            for entry in queryset[:limit]
        ],
    })

"""
Checkout: turns a cart into an order.

Order, order items, stock decrements, cart clearing and the first status
history row are written in one transaction; any failure rolls all of
them back.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from storefront.models import (
    CartItem,
    FulfillmentStatus,
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
    PaymentStatus,
    Product,
)
from storefront.services.cart import CartOwner, calculate_totals, cart_items, money
from storefront.services.compliance_service import validate_order_compliance, verify_age

logger = logging.getLogger(__name__)


REQUIRED_CUSTOMER_FIELDS = ("firstName", "lastName", "email")
REQUIRED_ADDRESS_FIELDS = ("address1", "city", "state", "zipcode")


class CheckoutError(Exception):
    def __init__(self, message: str, status_code: int = 400, details: Optional[List[str]] = None):
        self.status_code = status_code
        self.details = details or []
        super().__init__(message)


@dataclass
class CheckoutRequest:
    owner: CartOwner
    customer_info: Dict
    shipping_address: Dict
    billing_address: Optional[Dict] = None
    customer_notes: str = ""

    def validate(self) -> None:
        """
        Raises:
            CheckoutError: When customer or address fields are missing
        """
        if not isinstance(self.customer_info, dict) or any(
            not self.customer_info.get(f) for f in REQUIRED_CUSTOMER_FIELDS
        ):
            raise CheckoutError("Customer information is required")
        if not isinstance(self.shipping_address, dict) or any(
            not self.shipping_address.get(f) for f in REQUIRED_ADDRESS_FIELDS
        ):
            raise CheckoutError("Complete shipping address is required")

    def customer_age(self) -> Optional[int]:
        """Age from ``dateOfBirth`` (YYYY-MM-DD) or an explicit ``age``."""
        dob = self.customer_info.get("dateOfBirth")
        if dob:
            try:
                return verify_age(date.fromisoformat(str(dob)))
            except ValueError:
                raise CheckoutError("dateOfBirth must be a YYYY-MM-DD date")
        age = self.customer_info.get("age")
        if age in (None, ""):
            return None
        try:
            return int(age)
        except (TypeError, ValueError):
            raise CheckoutError("age must be a number")


def generate_order_number() -> str:
    return f"VIP-{timezone.now():%Y%m%d}-{secrets.token_hex(3).upper()}"


def locked_cart_items(owner: CartOwner):
    """
    Cart rows and their products, locked until the checkout transaction ends.

    Only the cart and product rows are locked. The brand join is nullable and
    Postgres refuses FOR UPDATE on the nullable side of an outer join.
    """
    return cart_items(owner).select_for_update(of=("self", "product"))


def place_order(request: CheckoutRequest) -> Order:
    """
    Create an order from the owner's cart.

    Raises:
        CheckoutError: Validation, availability, stock or compliance failures
    """
    request.validate()
    customer_age = request.customer_age()

    with transaction.atomic():
        items: List[CartItem] = list(locked_cart_items(request.owner))
        if not items:
            raise CheckoutError("No items in cart")

        for item in items:
            product = item.product
            if not product.is_active:
                raise CheckoutError(f"Product {product.name} is no longer available")
            if product.stock_quantity < item.quantity:
                raise CheckoutError(f"Insufficient stock for {product.name}")

        compliance = validate_order_compliance(
            customer_age,
            request.shipping_address,
            [item.product for item in items],
        )
        if not compliance.is_compliant:
            raise CheckoutError(
                "Order does not meet compliance requirements",
                details=compliance.violations,
            )

        totals = calculate_totals((item.price_at_time, item.quantity) for item in items)
        info = request.customer_info
        order = Order.objects.create(
            order_number=generate_order_number(),
            user=request.owner.user,
            session_id=request.owner.session_id,
            customer_email=info["email"],
            customer_first_name=info["firstName"],
            customer_last_name=info["lastName"],
            customer_phone=info.get("phone") or "",
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            fulfillment_status=FulfillmentStatus.UNFULFILLED,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            shipping_amount=totals.shipping_amount,
            total_amount=totals.total,
            shipping_address=request.shipping_address,
            billing_address=request.billing_address or request.shipping_address,
            customer_notes=request.customer_notes or "",
            admin_notes="; ".join(compliance.required_actions),
        )

        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product=item.product,
                product_name=item.product.name,
                product_sku=item.product.sku,
                product_image_url=item.product.image_url,
                unit_price=item.price_at_time,
                quantity=item.quantity,
                total_price=money(item.price_at_time * item.quantity),
            )
            for item in items
        ])

        for item in items:
            Product.objects.filter(pk=item.product_id).update(
                stock_quantity=F("stock_quantity") - item.quantity,
                updated_at=timezone.now(),
            )

        CartItem.objects.filter(pk__in=[item.pk for item in items]).delete()

        OrderStatusHistory.objects.create(
            order=order,
            from_status="",
            to_status=OrderStatus.PENDING,
            notes="Order created",
        )

    logger.info(f"Created order {order.order_number} ({len(items)} items, total {order.total_amount})")
    return order


def serialize_order(order: Order) -> Dict:
    return {
        "id": str(order.id),
        "order_number": order.order_number,
        "status": order.status,
        "payment_status": order.payment_status,
        "fulfillment_status": order.fulfillment_status,
        "subtotal": order.subtotal,
        "tax_amount": order.tax_amount,
        "shipping_amount": order.shipping_amount,
        "total": order.total_amount,
        "customer": {
            "email": order.customer_email,
            "first_name": order.customer_first_name,
            "last_name": order.customer_last_name,
            "phone": order.customer_phone,
        },
        "shipping_address": order.shipping_address,
        "billing_address": order.billing_address,
        "created_at": order.created_at,
        "items": [
            {
                "id": str(item.id),
                "product_id": str(item.product_id) if item.product_id else None,
                "name": item.product_name,
                "sku": item.product_sku,
                "image_url": item.product_image_url,
                "unit_price": item.unit_price,
                "quantity": item.quantity,
                "total_price": item.total_price,
            }
            for item in order.items.all()
        ],
    }

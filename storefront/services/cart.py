"""
Shopping cart and price calculation.

Amounts are Decimals rounded half-up to cents. Tax is charged on the
subtotal; shipping is free when the subtotal reaches the threshold and a
flat rate otherwise, so ``subtotal + tax + shipping == total`` always holds.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, Optional, Tuple

from django.conf import settings

from storefront.models import CartItem, Product

logger = logging.getLogger(__name__)


CENTS = Decimal("0.01")


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def tax_rate() -> Decimal:
    return Decimal(str(getattr(settings, "STOREFRONT_TAX_RATE", "0.08")))


def free_shipping_threshold() -> Decimal:
    return money(getattr(settings, "STOREFRONT_FREE_SHIPPING_THRESHOLD", "75.00"))


def flat_shipping() -> Decimal:
    return money(getattr(settings, "STOREFRONT_FLAT_SHIPPING", "9.99"))


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    total: Decimal
    item_count: int

    def to_dict(self) -> Dict:
        return {
            "subtotal": self.subtotal,
            "tax_amount": self.tax_amount,
            "shipping_amount": self.shipping_amount,
            "total": self.total,
            "item_count": self.item_count,
            "free_shipping": self.shipping_amount == 0,
        }


def calculate_totals(lines: Iterable[Tuple[Decimal, int]]) -> CartTotals:
    """Totals for ``(unit_price, quantity)`` lines."""
    subtotal = Decimal("0")
    item_count = 0
    for unit_price, quantity in lines:
        subtotal += Decimal(str(unit_price)) * quantity
        item_count += quantity
    subtotal = money(subtotal)
    tax = money(subtotal * tax_rate())
    shipping = Decimal("0.00") if subtotal >= free_shipping_threshold() else flat_shipping()
    return CartTotals(
        subtotal=subtotal,
        tax_amount=tax,
        shipping_amount=shipping,
        total=subtotal + tax + shipping,
        item_count=item_count,
    )


class CartError(Exception):
    """Cart operation refused; ``status_code`` is the HTTP status to answer with."""

    def __init__(self, message: str, status_code: int = 400):
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class CartOwner:
    """A cart belongs to a signed-in user or, failing that, a browser session."""

    user: Optional[object] = None
    session_id: str = ""

    def __post_init__(self):
        if self.user is None and not self.session_id:
            raise CartError("User ID or Session ID required")

    def filter_kwargs(self) -> Dict:
        if self.user is not None:
            return {"user": self.user}
        return {"user__isnull": True, "session_id": self.session_id}


def cart_items(owner: CartOwner):
    return (
        CartItem.objects.filter(**owner.filter_kwargs())
        .select_related("product", "product__brand")
        .order_by("created_at")
    )


def serialize_cart_item(item: CartItem) -> Dict:
    product = item.product
    return {
        "id": str(item.id),
        "product_id": str(product.id),
        "quantity": item.quantity,
        "price_at_time": item.price_at_time,
        "line_total": money(item.price_at_time * item.quantity),
        "product": {
            "name": product.name,
            "sku": product.sku,
            "price": product.price,
            "image_url": product.image_url,
            "brand": product.brand.name if product.brand else None,
            "stock_quantity": product.stock_quantity,
            "is_active": product.is_active,
        },
    }


def get_cart(owner: CartOwner) -> Dict:
    items = list(cart_items(owner))
    totals = calculate_totals((item.price_at_time, item.quantity) for item in items)
    return {
        "items": [serialize_cart_item(item) for item in items],
        "totals": totals.to_dict(),
    }


def add_item(owner: CartOwner, product_id, quantity: int = 1) -> CartItem:
    """
    Add a product, or increase the quantity of an existing line.

    The line's price is refreshed to the product's current price.

    Raises:
        CartError: Unknown product (404), inactive product or not enough stock (400)
    """
    if quantity < 1:
        raise CartError("Quantity must be at least 1")

    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise CartError("Product not found", status_code=404)
    if not product.is_active:
        raise CartError("Product is not available")

    item = CartItem.objects.filter(product=product, **owner.filter_kwargs()).first()
    new_quantity = quantity + (item.quantity if item else 0)
    if product.stock_quantity < new_quantity:
        raise CartError("Insufficient stock")

    if item is None:
        item = CartItem(
            product=product,
            user=owner.user,
            session_id="" if owner.user is not None else owner.session_id,
        )
    item.quantity = new_quantity
    item.price_at_time = product.price
    item.save()
    logger.debug(f"Cart line {item.id}: {product.sku} x{new_quantity}")
    return item


def update_item(owner: CartOwner, cart_item_id, quantity: int) -> Optional[CartItem]:
    """
    Set a line's quantity; zero removes the line.

    Returns:
        The updated line, or None when it was removed

    Raises:
        CartError: Negative quantity (400), unknown line (404), not enough stock (400)
    """
    if quantity < 0:
        raise CartError("Quantity cannot be negative")

    item = cart_items(owner).filter(pk=cart_item_id).first()
    if item is None:
        raise CartError("Cart item not found", status_code=404)

    if quantity == 0:
        item.delete()
        return None

    if item.product.stock_quantity < quantity:
        raise CartError("Insufficient stock")
    item.quantity = quantity
    item.save(update_fields=["quantity"])
    return item


def clear_cart(owner: CartOwner) -> int:
    deleted, _ = CartItem.objects.filter(**owner.filter_kwargs()).delete()
    return deleted

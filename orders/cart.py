"""
Order aggregate operations.

Every function mutates the Order instance in memory and leaves persisting it
to the caller (``orders.services``). Totals are only ever produced by
``recompute_totals``.
"""
from dataclasses import replace

from django.utils import timezone

from core.exceptions import DomainError, EmptyOrderError, NotFoundError, ValidationFailed, VendorMismatchError
from inventory import pricing
from .models import LineItem, OrderStatus, mobile_validator, pincode_validator

DELIVERY_FIELDS = ('delivery_address', 'delivery_pincode', 'delivery_expected_date', 'receiver_phone')

_FIELD_VALIDATORS = {
    'delivery_pincode': pincode_validator,
    'receiver_phone': mobile_validator,
}


def recompute_totals(order, now=None):
    """
    Derive total_qty, subtotal, promo_discount and total_amount from the
    line items. Safe to call any number of times.

    A promo whose item is no longer in the order is detached. Once the order
    is placed its promo has been redeemed, so only the order value rules
    apply; the promo's later status no longer matters.
    """
    now = now or timezone.now()
    lines = order.line_items

    order.total_qty = sum(line.qty for line in lines)
    order.subtotal = sum((line.total_cost for line in lines), pricing.ZERO)

    if order.promo_id is not None and order.promo.item_id not in {line.item_code for line in lines}:
        order.promo = None

    if order.promo_id is None:
        order.promo_discount = pricing.ZERO
    elif order.placed_at is not None:
        order.promo_discount = pricing.quantize_money(pricing.compute_redeemed_discount(order.promo, order.subtotal))
    else:
        discount = pricing.compute_promo_discount(order.promo, order.subtotal, now)
        order.promo_discount = pricing.quantize_money(discount)

    order.total_amount = max(pricing.ZERO, order.subtotal - order.promo_discount)
    return order


def add_item(order, item_code, qty, unit_price, vendor_id=None, now=None):
    """
    Add ``qty`` of ``item_code``. An existing line keeps its original unit
    price snapshot and only grows in quantity.

    ``vendor_id`` is the owner of the item; it must match the order's vendor.
    """
    if qty < 1:
        raise ValidationFailed('Quantity must be at least 1')
    if vendor_id is not None and order.vendor_id is not None and vendor_id != order.vendor_id:
        raise VendorMismatchError()
    _ensure_pending(order, 'Items can only be added to pending orders')

    lines = list(order.line_items)
    for index, line in enumerate(lines):
        if line.item_code == item_code:
            new_qty = line.qty + qty
            lines[index] = replace(
                line,
                qty=new_qty,
                total_cost=pricing.compute_item_total(line.unit_price, new_qty),
            )
            break
    else:
        unit_price = pricing.to_decimal(unit_price)
        lines.append(LineItem(
            item_code=item_code,
            qty=qty,
            unit_price=unit_price,
            total_cost=pricing.compute_item_total(unit_price, qty),
        ))

    order.set_line_items(lines)
    return recompute_totals(order, now)


def remove_item(order, item_code, now=None):
    """
    Drop the line for ``item_code``. Removing the last line deactivates the
    order; a deactivated order is never reactivated.
    """
    _ensure_pending(order, 'Items can only be removed from pending orders')

    lines = [line for line in order.line_items if line.item_code != item_code]
    if len(lines) == len(order.items):
        raise NotFoundError(f"Item {item_code} is not in this order")

    order.set_line_items(lines)
    if not lines:
        order.is_active = False
    return recompute_totals(order, now)


def update_delivery_info(order, fields):
    """Partial update of the delivery fields; only while the order is pending."""
    _ensure_pending(order, 'Delivery information can only be changed while the order is pending')

    for name in DELIVERY_FIELDS:
        value = fields.get(name)
        if value in (None, ''):
            continue
        validator = _FIELD_VALIDATORS.get(name)
        if validator is not None:
            validator(value)
        setattr(order, name, value)
    return order


def place(order, delivery_info, now=None):
    """Submit a cart to its vendor."""
    if not order.line_items:
        raise EmptyOrderError()
    if not order.is_cart:
        raise DomainError('Order has already been placed')

    update_delivery_info(order, delivery_info)
    now = now or timezone.now()
    recompute_totals(order, now)
    # A promo that lapsed while in the cart is not redeemed.
    if order.promo_id is not None and order.promo_discount <= pricing.ZERO:
        order.promo = None
    order.placed_at = now
    return order


def apply_promo(order, promo, now=None):
    """Attach a promo that targets an item in the order and yields a discount."""
    _ensure_pending(order, 'Promos can only be applied to pending orders')
    if not order.is_cart:
        raise DomainError('Promos can only be applied before the order is placed')
    now = now or timezone.now()

    if promo.item_id not in {line.item_code for line in order.line_items}:
        raise DomainError('Promo does not apply to any item in this order')
    if pricing.compute_promo_discount(promo, order.subtotal, now) <= pricing.ZERO:
        raise DomainError(f"Promo {promo.promo_id} is not applicable to this order")

    order.promo = promo
    return recompute_totals(order, now)


def _ensure_pending(order, message):
    if not order.is_active or order.status != OrderStatus.PENDING:
        raise DomainError(message)

"""
Pricing Engine - pure functions over stored rate data.

Nothing here touches the database; callers pass model instances (or any
object with the same attributes) and get Decimals back. Amounts are never
rounded except by ``quantize_money``, which callers apply only when a value
is persisted onto an order.
"""
from collections import namedtuple
from decimal import Decimal, ROUND_HALF_UP

from core.exceptions import NotFoundError

ZERO = Decimal('0')
CENT = Decimal('0.01')
HUNDRED = Decimal('100')

ShippingBand = namedtuple('ShippingBand', ['label', 'upper_bound'])

# Inclusive upper bounds; the last band is unbounded above.
SHIPPING_BANDS = (
    ShippingBand('0-50K', Decimal('50000')),
    ShippingBand('50K-100K', Decimal('100000')),
    ShippingBand('100K-150K', Decimal('150000')),
    ShippingBand('150K-200K', Decimal('200000')),
    ShippingBand('Above 200K', None),
)


class PromoStatus:
    INACTIVE = 'inactive'
    UPCOMING = 'upcoming'
    EXPIRED = 'expired'
    EXHAUSTED = 'exhausted'
    ACTIVE = 'active'


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_item_total(unit_price, qty) -> Decimal:
    return to_decimal(unit_price) * qty


def compute_tax_inclusive_price(unit_price, tax_percent) -> Decimal:
    unit_price = to_decimal(unit_price)
    return unit_price + unit_price * to_decimal(tax_percent) / HUNDRED


def band_index(order_value) -> int:
    """Index into SHIPPING_BANDS for an order value."""
    order_value = to_decimal(order_value)
    for index, band in enumerate(SHIPPING_BANDS):
        if band.upper_bound is None or order_value <= band.upper_bound:
            return index
    return len(SHIPPING_BANDS) - 1


def lookup_shipping_fee(table, order_value) -> Decimal:
    """
    Flat shipping fee for ``order_value`` from a ShippingPriceTable.

    Raises:
        NotFoundError: no table, or the table is inactive
    """
    if table is None or not table.is_active:
        raise NotFoundError('Shipping price not found for this item')
    return to_decimal(table.fees[band_index(order_value)])


def promo_status(promo, now) -> str:
    if not promo.is_active:
        return PromoStatus.INACTIVE
    if now < promo.start_date:
        return PromoStatus.UPCOMING
    if now > promo.end_date:
        return PromoStatus.EXPIRED
    if promo.usage_limit and promo.used_count >= promo.usage_limit:
        return PromoStatus.EXHAUSTED
    return PromoStatus.ACTIVE


def compute_promo_discount(promo, order_value, now) -> Decimal:
    """
    Discount a promo grants on ``order_value`` at time ``now``.

    Zero when the promo is not active or the order is below the promo's
    minimum. Never exceeds ``max_discount_amount`` (when set) or the order
    value itself.
    """
    if promo_status(promo, now) != PromoStatus.ACTIVE:
        return ZERO
    return compute_redeemed_discount(promo, order_value)


def compute_redeemed_discount(promo, order_value) -> Decimal:
    """
    Discount of a promo already redeemed on an order: the value rules and
    caps of ``compute_promo_discount`` without the status check.
    """
    order_value = to_decimal(order_value)
    if order_value < to_decimal(promo.min_order_value or ZERO):
        return ZERO

    if promo.discount_type == 'percentage':
        discount = order_value * to_decimal(promo.discount) / HUNDRED
    else:
        discount = to_decimal(promo.discount_amount or ZERO)

    if promo.max_discount_amount is not None and discount > to_decimal(promo.max_discount_amount):
        discount = to_decimal(promo.max_discount_amount)

    return max(ZERO, min(discount, order_value))

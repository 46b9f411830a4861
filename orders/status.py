"""
Order Status Machine - which actor may move an order from which status to which.

Pure rules only; ``orders.services.transition`` applies them under a row lock
and appends the history entry.
"""
from core.exceptions import InvalidTransitionError, ValidationFailed
from .models import DeliveryStatus, OrderStatus, OrderStatusEvent

Actor = OrderStatusEvent.Actor

HAPPY_PATH = (
    OrderStatus.PENDING,
    OrderStatus.VENDOR_ACCEPTED,
    OrderStatus.PAYMENT_DONE,
    OrderStatus.ORDER_CONFIRMED,
    OrderStatus.TRUCK_LOADING,
    OrderStatus.IN_TRANSIT,
    OrderStatus.SHIPPED,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

# Statuses a vendor may move an order into once it is confirmed.
SHIPPING_STATUSES = HAPPY_PATH[HAPPY_PATH.index(OrderStatus.TRUCK_LOADING):]

# Statuses from which a vendor may update shipping progress.
VENDOR_UPDATABLE = HAPPY_PATH[HAPPY_PATH.index(OrderStatus.ORDER_CONFIRMED):-1]

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

CUSTOMER_CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.VENDOR_ACCEPTED})

# Order counted as revenue once confirmed.
REVENUE_STATUSES = HAPPY_PATH[HAPPY_PATH.index(OrderStatus.ORDER_CONFIRMED):]

# Delivery statuses that drag the order status along with them.
DELIVERY_TO_ORDER_STATUS = {
    DeliveryStatus.IN_TRANSIT: OrderStatus.IN_TRANSIT,
    DeliveryStatus.OUT_FOR_DELIVERY: OrderStatus.OUT_FOR_DELIVERY,
    DeliveryStatus.DELIVERED: OrderStatus.DELIVERED,
}

_SYSTEM_EDGES = {
    OrderStatus.VENDOR_ACCEPTED: (OrderStatus.PAYMENT_DONE,),
    OrderStatus.PAYMENT_DONE: (OrderStatus.ORDER_CONFIRMED,),
}

_DEFAULT_REMARKS = {
    OrderStatus.VENDOR_ACCEPTED: 'Order accepted by vendor',
    OrderStatus.PAYMENT_DONE: 'Payment received',
    OrderStatus.ORDER_CONFIRMED: 'Order confirmed, ready for dispatch',
    OrderStatus.DELIVERED: 'Order delivered successfully',
}


def is_later(target, current) -> bool:
    """True when both statuses are on the happy path and target comes after current."""
    if target not in HAPPY_PATH or current not in HAPPY_PATH:
        return False
    return HAPPY_PATH.index(target) > HAPPY_PATH.index(current)


def allowed_next(actor, current) -> tuple:
    """Statuses ``actor`` may move an order in ``current`` status to, in path order."""
    if current in TERMINAL_STATUSES:
        return ()

    if actor == Actor.CUSTOMER:
        return (OrderStatus.CANCELLED,) if current in CUSTOMER_CANCELLABLE else ()

    if actor == Actor.VENDOR:
        if current == OrderStatus.PENDING:
            return (OrderStatus.VENDOR_ACCEPTED, OrderStatus.CANCELLED)
        if current in VENDOR_UPDATABLE:
            return tuple(s for s in SHIPPING_STATUSES if is_later(s, current))
        return ()

    if actor == Actor.OPERATIONS:
        return _SYSTEM_EDGES.get(current, ()) + (OrderStatus.CANCELLED,)

    if actor == Actor.SYSTEM:
        return _SYSTEM_EDGES.get(current, ())

    return ()


def check_transition(actor, current, target, force=False) -> None:
    """
    Raise unless ``actor`` may move an order from ``current`` to ``target``.

    ``force`` is the operations override: it skips the edge table but still
    never leaves ``delivered`` and never re-applies the current status.

    Raises:
        ValidationFailed: unknown target status
        InvalidTransitionError: transition not permitted
    """
    if target not in OrderStatus.values:
        raise ValidationFailed(f"Invalid order status. Must be one of: {', '.join(OrderStatus.values)}")

    if current == target:
        raise InvalidTransitionError(
            current, target, allowed_next(actor, current), reason=f"Order is already {current}."
        )

    if force:
        if actor != Actor.OPERATIONS:
            raise InvalidTransitionError(
                current, target, allowed_next(actor, current),
                reason='Only operations staff can override order status.'
            )
        if current == OrderStatus.DELIVERED:
            raise InvalidTransitionError(current, target, (), reason='Delivered orders cannot change status.')
        return

    allowed = allowed_next(actor, current)
    if target not in allowed:
        raise InvalidTransitionError(current, target, allowed)


def default_remark(actor, current, target) -> str:
    if target == OrderStatus.CANCELLED:
        return f"Order cancelled by {actor}"
    if target in _DEFAULT_REMARKS:
        return _DEFAULT_REMARKS[target]
    return f"Order status updated from {current} to {target} by {actor}"

"""
Order Service Layer - persistence and orchestration around the order aggregate.

Every status change goes through ``transition``:
1. Lock the order row with select_for_update()
2. Validate the move against orders.status
3. Write the new status onto the order
4. Append an OrderStatusEvent
Steps 3 and 4 share one transaction, so neither exists without the other.

Delivery and payment records are updated after the order as separate writes.
A failure there is reported as SecondaryWriteError, never swallowed.
"""
import logging
import uuid
from datetime import timedelta
from decimal import Decimal

from celery import current_app
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from core.exceptions import (
    DomainError,
    NotFoundError,
    OwnershipError,
    SecondaryWriteError,
    ValidationFailed,
)
from inventory.models import InventoryItem, Price, Promo
from . import cart, status
from .models import (
    DeliveryStatus,
    Order,
    OrderDelivery,
    OrderPayment,
    OrderStatus,
    OrderStatusEvent,
    PaymentStatus,
    mobile_validator,
)

logger = logging.getLogger(__name__)

Actor = OrderStatusEvent.Actor


# =============================================================================
# Lookups
# =============================================================================

def _active_orders(for_update=False):
    queryset = Order.objects.filter(is_active=True)
    if for_update:
        queryset = queryset.select_for_update()
    return queryset


def get_order(lead_id, for_update=False) -> Order:
    order = _active_orders(for_update).filter(lead_id=lead_id).first()
    if order is None:
        raise NotFoundError('Order not found')
    return order


def get_customer_order(customer, lead_id, for_update=False) -> Order:
    order = get_order(lead_id, for_update)
    if order.customer_id != customer.pk:
        raise OwnershipError('This order belongs to another customer')
    return order


def get_vendor_order(vendor, lead_id, for_update=False) -> Order:
    order = get_order(lead_id, for_update)
    if order.vendor_id != vendor.pk:
        raise OwnershipError('This order belongs to another vendor')
    return order


# =============================================================================
# Status transitions
# =============================================================================

def record_event(order, new_status, *, actor, user=None, remarks='') -> OrderStatusEvent:
    return OrderStatusEvent.objects.create(
        order=order,
        lead_id=order.lead_id,
        invc_num=order.invc_num,
        vendor_id=order.vendor_id,
        status=new_status,
        actor=user,
        actor_type=actor,
        remarks=remarks,
    )


def transition(order, target, *, actor, user=None, remarks='', force=False) -> Order:
    """
    Move an order to ``target`` and append the matching history entry.

    Args:
        order: Order instance (re-read under lock)
        target: OrderStatus value
        actor: OrderStatusEvent.Actor
        user: acting user, None for system transitions
        remarks: history remark, synthesized when empty
        force: operations override of the edge table

    Returns:
        The locked, updated Order instance

    Raises:
        DomainError: order deactivated
        InvalidTransitionError: transition not permitted
    """
    with transaction.atomic():
        locked = Order.objects.select_for_update().get(pk=order.pk)
        if not locked.is_active:
            raise DomainError('Order is no longer active')

        previous = locked.status
        status.check_transition(actor, previous, target, force=force)

        locked.status = target
        locked.save(update_fields=['status', 'updated_at'])
        record_event(
            locked,
            target,
            actor=actor,
            user=user,
            remarks=remarks or status.default_remark(actor, previous, target),
        )

    logger.info(
        f"Order {locked.lead_id}: {previous} -> {target} by {actor}"
        f"{' (override)' if force else ''}"
    )
    return locked


# =============================================================================
# Delivery
# =============================================================================

def get_or_create_delivery(order) -> OrderDelivery:
    delivery, created = OrderDelivery.objects.get_or_create(
        order=order,
        defaults={
            'lead_id': order.lead_id,
            'invc_num': order.invc_num,
            'user_id': order.customer_id,
            'address': order.delivery_address,
            'pincode': order.delivery_pincode,
            'delivery_expected_date': order.delivery_expected_date,
        }
    )
    if created:
        logger.info(f"Created delivery record for order {order.lead_id}")
    return delivery


def _apply_delivery_changes(delivery, data):
    if data.get('tracking_number') and data.get('courier_service'):
        delivery.add_tracking_info(data['tracking_number'], data['courier_service'], data.get('tracking_url'))

    changed = []
    for name in ('delivery_expected_date', 'delivery_instructions', 'contact_person', 'contact_phone'):
        if data.get(name):
            setattr(delivery, name, data[name])
            changed.append(name)
    if changed:
        delivery.save(update_fields=changed + ['updated_at'])

    if data.get('delivery_status'):
        delivery.update_delivery_status(data['delivery_status'], data.get('delivery_notes'))
    return delivery


def update_delivery(order, data, *, actor, user):
    """
    Apply tracking/status changes to the delivery record and move the order
    along with it.

    A delivery status of in_transit, out_for_delivery or delivered advances
    the order to the same status when that status is later than the current
    one. The order move is validated before anything is written.

    Returns:
        (order, delivery)

    Raises:
        InvalidTransitionError: the order cannot follow the delivery status
        SecondaryWriteError: order moved but the delivery write failed
    """
    target = status.DELIVERY_TO_ORDER_STATUS.get(data.get('delivery_status'))
    advance = target is not None and status.is_later(target, order.status)
    force = actor == Actor.OPERATIONS
    if advance:
        order = transition(order, target, actor=actor, user=user, remarks=data.get('remarks', ''), force=force)

    try:
        with transaction.atomic():
            delivery = get_or_create_delivery(order)
            _apply_delivery_changes(delivery, data)
    except DatabaseError as e:
        if not advance:
            raise
        logger.error(f"Delivery update for order {order.lead_id} failed after status moved to {target}: {e}")
        raise SecondaryWriteError(
            f"Order {order.lead_id} moved to {target} but the delivery record could not be updated"
        )

    logger.info(f"Delivery for order {order.lead_id} now {delivery.delivery_status}")
    return order, delivery


def _mark_delivery_delivered(order, received_by=''):
    """Follow an order that reached delivered; the order write has already committed."""
    try:
        with transaction.atomic():
            delivery = get_or_create_delivery(order)
            if received_by:
                delivery.received_by = received_by
            delivery.update_delivery_status(DeliveryStatus.DELIVERED)
    except DatabaseError as e:
        logger.error(f"Delivery record for order {order.lead_id} not marked delivered: {e}")
        raise SecondaryWriteError(
            f"Order {order.lead_id} is delivered but the delivery record could not be updated"
        )
    return delivery


# =============================================================================
# Customer operations
# =============================================================================

def _default_phone(user):
    try:
        mobile_validator(user.phone)
    except DjangoValidationError:
        return None
    return user.phone


def add_to_cart(customer, item_code, qty, delivery_info=None):
    """
    Add an item to the customer's open cart with the item's vendor, creating
    the cart when there is none. The unit price is snapshotted now.

    Returns:
        (order, created)

    Raises:
        NotFoundError: unknown item or no price
        ValidationFailed: item inactive
    """
    item = InventoryItem.objects.filter(pk=item_code).first()
    if item is None:
        raise NotFoundError('Inventory item not found')
    if not item.is_active:
        raise ValidationFailed('Item is not available')
    price = Price.objects.filter(item=item, is_active=True).first()
    if price is None:
        raise NotFoundError('Pricing not found for this item')

    with transaction.atomic():
        order = _active_orders(for_update=True).filter(
            customer=customer,
            vendor_id=item.vendor_id,
            status=OrderStatus.PENDING,
            placed_at__isnull=True,
        ).order_by('-created_at').first()

        created = order is None
        if created:
            phone = _default_phone(customer)
            order = Order(customer=customer, vendor_id=item.vendor_id)
            if phone:
                order.customer_phone = order.receiver_phone = phone

        cart.update_delivery_info(order, delivery_info or {})
        cart.add_item(order, item.pk, qty, price.unit_price, vendor_id=item.vendor_id)
        order.save()

        if created:
            record_event(
                order,
                OrderStatus.PENDING,
                actor=Actor.CUSTOMER,
                user=customer,
                remarks='Order created and added to cart',
            )

    logger.info(
        f"Cart {order.lead_id}: +{qty} of item #{item.pk} @ {price.unit_price}, "
        f"total {order.total_amount}"
    )
    return order, created


def update_order(customer, lead_id, delivery_info) -> Order:
    with transaction.atomic():
        order = get_customer_order(customer, lead_id, for_update=True)
        cart.update_delivery_info(order, delivery_info)
        order.save()
    return order


def remove_item(customer, lead_id, item_code) -> Order:
    with transaction.atomic():
        order = get_customer_order(customer, lead_id, for_update=True)
        cart.remove_item(order, item_code)
        order.save()

    if not order.is_active:
        logger.info(f"Order {order.lead_id} deactivated: last item removed")
    return order


def apply_promo(customer, lead_id, promo_id) -> Order:
    promo = Promo.objects.filter(promo_id=promo_id).first()
    if promo is None:
        raise NotFoundError('Promo not found')

    with transaction.atomic():
        order = get_customer_order(customer, lead_id, for_update=True)
        cart.apply_promo(order, promo)
        order.save()

    logger.info(f"Promo {promo.promo_id} applied to order {order.lead_id}: -{order.promo_discount}")
    return order


def place_order(customer, lead_id, delivery_info) -> Order:
    """
    Submit the cart to its vendor and open its delivery record.

    Raises:
        EmptyOrderError: no line items
        DomainError: already placed or no longer pending
    """
    with transaction.atomic():
        order = get_customer_order(customer, lead_id, for_update=True)
        cart.place(order, delivery_info)
        order.save()
        if order.promo_id is not None and order.promo_discount > 0:
            order.promo.use()
        record_event(
            order,
            OrderStatus.PENDING,
            actor=Actor.CUSTOMER,
            user=customer,
            remarks='Order placed and sent to vendor',
        )
        get_or_create_delivery(order)

    logger.info(f"Order {order.lead_id} placed: {order.total_qty} units, total {order.total_amount}")
    return order


def cancel_order(order, *, actor, user, reason='') -> Order:
    order = transition(order, OrderStatus.CANCELLED, actor=actor, user=user, remarks=reason)
    try:
        payment = OrderPayment.objects.filter(
            invc_num=order.invc_num,
            payment_status=PaymentStatus.PROCESSING,
        ).first()
        if payment is not None:
            cancel_scheduled_payment(payment, reason='Order cancelled')
    except DatabaseError as e:
        logger.error(f"Payment for cancelled order {order.lead_id} not stopped: {e}")
        raise SecondaryWriteError(
            f"Order {order.lead_id} is cancelled but its pending payment could not be stopped"
        )
    return order


def customer_cancel(customer, lead_id, reason='') -> Order:
    order = get_customer_order(customer, lead_id)
    return cancel_order(order, actor=Actor.CUSTOMER, user=customer, reason=reason or 'Order cancelled by customer')


# =============================================================================
# Payments
# =============================================================================

def _schedule_completion(payment_id, task_id):
    from .tasks import complete_payment

    try:
        complete_payment.apply_async(
            args=[payment_id],
            countdown=settings.PAYMENT_COMPLETION_DELAY,
            task_id=task_id,
        )
    except Exception:
        logger.exception(f"Failed to schedule completion of payment #{payment_id}")
        OrderPayment.objects.filter(pk=payment_id, payment_status=PaymentStatus.PROCESSING).update(
            payment_status=PaymentStatus.FAILED,
            failure_reason='Payment completion could not be scheduled',
            updated_at=timezone.now(),
        )
        return
    logger.info(f"Scheduled completion of payment #{payment_id} as task {task_id}")


def initiate_payment(customer, lead_id, payment_type='', payment_mode=OrderPayment.PaymentMode.UPI) -> OrderPayment:
    """
    Start a simulated payment; completion runs later as a Celery task.

    The response reports ``processing``; callers poll ``get_payment_status``.

    Raises:
        DomainError: order not accepted by vendor, or payment already running/completed
    """
    with transaction.atomic():
        order = get_customer_order(customer, lead_id, for_update=True)
        if order.status != OrderStatus.VENDOR_ACCEPTED:
            raise DomainError(
                f"Payment cannot be processed for an order in {order.status} status. "
                f"The vendor must accept the order first."
            )

        payment = OrderPayment.objects.select_for_update().filter(invc_num=order.invc_num).first()
        if payment is not None and payment.payment_status != PaymentStatus.FAILED:
            raise DomainError(f"Payment is already {payment.payment_status} for this order")

        task_id = str(uuid.uuid4())
        fields = {
            'lead_id': order.lead_id,
            'customer': customer,
            'transaction_id': f"TXN-{uuid.uuid4().hex[:20].upper()}",
            'payment_type': payment_type,
            'payment_mode': payment_mode,
            'order_amount': order.total_amount,
            'paid_amount': Decimal('0.00'),
            'payment_status': PaymentStatus.PROCESSING,
            'completion_task_id': task_id,
            'scheduled_for': timezone.now() + timedelta(seconds=settings.PAYMENT_COMPLETION_DELAY),
            'completed_at': None,
            'failure_reason': '',
        }
        if payment is None:
            payment = OrderPayment.objects.create(invc_num=order.invc_num, **fields)
        else:
            for name, value in fields.items():
                setattr(payment, name, value)
            payment.save()

        payment_id = payment.pk
        transaction.on_commit(lambda: _schedule_completion(payment_id, task_id))

    logger.info(f"Payment {payment.transaction_id} initiated for order {order.lead_id}: {payment.order_amount}")
    return payment


def complete_scheduled_payment(payment_id) -> dict:
    """
    Body of the scheduled completion task.

    Tolerates a payment that is gone or no longer processing and an order that
    was deleted, deactivated or moved on in the meantime. On success the order
    takes two explicit steps: payment_done, then order_confirmed.
    """
    with transaction.atomic():
        payment = OrderPayment.objects.select_for_update().filter(pk=payment_id).first()
        if payment is None:
            logger.warning(f"Payment #{payment_id} not found, nothing to complete")
            return {'status': 'missing', 'payment_id': payment_id}
        if payment.payment_status != PaymentStatus.PROCESSING:
            logger.info(f"Payment {payment.transaction_id} is {payment.payment_status}, skipping")
            return {'status': 'skipped', 'payment_status': payment.payment_status}

        order = _active_orders(for_update=True).filter(lead_id=payment.lead_id).first()
        if order is None:
            payment.mark_failed('Order no longer exists')
            logger.warning(f"Payment {payment.transaction_id} failed: order {payment.lead_id} is gone")
            return {'status': 'failed', 'reason': payment.failure_reason}
        if order.status != OrderStatus.VENDOR_ACCEPTED:
            payment.mark_failed(f"Order moved to {order.status} before payment completed")
            logger.warning(f"Payment {payment.transaction_id} failed: order {order.lead_id} is {order.status}")
            return {'status': 'failed', 'reason': payment.failure_reason}

        payment.mark_completed()
        order = transition(
            order,
            OrderStatus.PAYMENT_DONE,
            actor=Actor.SYSTEM,
            remarks='Payment processed successfully',
        )

    logger.info(f"Payment {payment.transaction_id} completed for order {order.lead_id}")

    try:
        order = transition(
            order,
            OrderStatus.ORDER_CONFIRMED,
            actor=Actor.SYSTEM,
            remarks='Order confirmed after successful payment',
        )
    except DomainError as e:
        logger.warning(f"Order {order.lead_id} paid but not confirmed: {e}")
        return {'status': 'completed', 'order_status': order.status, 'confirmed': False}

    return {'status': 'completed', 'order_status': order.status, 'confirmed': True}


def cancel_scheduled_payment(payment, reason='Payment cancelled') -> OrderPayment:
    """Fail a processing payment and revoke its completion task."""
    if payment.payment_status != PaymentStatus.PROCESSING:
        raise DomainError(f"Payment is already {payment.payment_status}")

    payment.mark_failed(reason)
    if payment.completion_task_id:
        try:
            current_app.control.revoke(payment.completion_task_id)
        except Exception as e:
            # The task re-checks the payment status and skips failed payments.
            logger.error(f"Could not revoke task {payment.completion_task_id}: {e}")
    logger.info(f"Payment {payment.transaction_id} cancelled: {reason}")
    return payment


def get_payment(order) -> OrderPayment:
    payment = OrderPayment.objects.filter(invc_num=order.invc_num).first()
    if payment is None:
        raise NotFoundError('Payment information not found')
    return payment


def get_payment_status(customer, lead_id) -> OrderPayment:
    return get_payment(get_customer_order(customer, lead_id))


def mark_payment_done(admin, lead_id, paid_amount, payment_method=OrderPayment.PaymentMode.BANK_TRANSFER,
                      transaction_id='', remarks='') -> Order:
    """
    Record a manual payment and move the order to payment_done.

    Raises:
        ValidationFailed: paid amount not positive
        InvalidTransitionError: order not vendor_accepted
    """
    if paid_amount is None or paid_amount <= 0:
        raise ValidationFailed('Valid paid amount is required')

    with transaction.atomic():
        order = get_order(lead_id, for_update=True)
        status.check_transition(Actor.OPERATIONS, order.status, OrderStatus.PAYMENT_DONE)

        payment = OrderPayment.objects.select_for_update().filter(invc_num=order.invc_num).first()
        if payment is not None and payment.payment_status == PaymentStatus.PROCESSING:
            cancel_scheduled_payment(payment, reason='Superseded by manual payment')
        if payment is None:
            payment = OrderPayment(invc_num=order.invc_num, lead_id=order.lead_id, customer_id=order.customer_id)

        payment.transaction_id = transaction_id or f"TXN-{uuid.uuid4().hex[:20].upper()}"
        payment.payment_mode = payment_method
        payment.payment_type = 'manual'
        payment.order_amount = order.total_amount
        payment.completion_task_id = ''
        payment.mark_completed(paid_amount=paid_amount)

        order = transition(
            order,
            OrderStatus.PAYMENT_DONE,
            actor=Actor.OPERATIONS,
            user=admin,
            remarks=remarks or (
                f"Payment of ₹{paid_amount} received via {payment_method}"
                f"{f' (Transaction ID: {transaction_id})' if transaction_id else ''}"
            ),
        )
    return order


def confirm_order(admin, lead_id, remarks='') -> Order:
    order = get_order(lead_id)
    return transition(
        order,
        OrderStatus.ORDER_CONFIRMED,
        actor=Actor.OPERATIONS,
        user=admin,
        remarks=remarks or 'Order confirmed by admin, ready for dispatch',
    )


# =============================================================================
# Vendor operations
# =============================================================================

def accept_order(vendor, lead_id, remarks='') -> Order:
    order = get_vendor_order(vendor, lead_id)
    if order.placed_at is None:
        raise DomainError('Order has not been placed by the customer yet')
    return transition(order, OrderStatus.VENDOR_ACCEPTED, actor=Actor.VENDOR, user=vendor, remarks=remarks)


def reject_order(vendor, lead_id, reason='') -> Order:
    order = get_vendor_order(vendor, lead_id)
    return cancel_order(order, actor=Actor.VENDOR, user=vendor, reason=reason or 'Order rejected by vendor')


def vendor_update_status(vendor, lead_id, target, remarks='') -> Order:
    """
    Advance shipping progress. From order_confirmed onward only strictly
    later shipping statuses are accepted.
    """
    order = get_vendor_order(vendor, lead_id)
    order = transition(order, target, actor=Actor.VENDOR, user=vendor, remarks=remarks)
    if target == OrderStatus.DELIVERED:
        _mark_delivery_delivered(order)
    return order


def vendor_update_delivery(vendor, lead_id, data):
    order = get_vendor_order(vendor, lead_id)
    return update_delivery(order, data, actor=Actor.VENDOR, user=vendor)


# =============================================================================
# Operations (admin / manager)
# =============================================================================

def admin_cancel(admin, lead_id, reason='') -> Order:
    order = get_order(lead_id)
    return cancel_order(order, actor=Actor.OPERATIONS, user=admin, reason=reason or 'Order cancelled by admin')


def admin_set_status(admin, lead_id, target, remarks='') -> Order:
    """Override: set any status except leaving delivered."""
    order = get_order(lead_id)
    order = transition(order, target, actor=Actor.OPERATIONS, user=admin, remarks=remarks, force=True)
    if target == OrderStatus.DELIVERED:
        _mark_delivery_delivered(order)
    return order


def admin_update_delivery(admin, lead_id, data):
    order = get_order(lead_id)
    return update_delivery(order, data, actor=Actor.OPERATIONS, user=admin)


def mark_delivered(admin, lead_id, received_by='', remarks=''):
    order = get_order(lead_id)
    order = transition(
        order,
        OrderStatus.DELIVERED,
        actor=Actor.OPERATIONS,
        user=admin,
        force=True,
        remarks=remarks or (
            f"Order delivered successfully{f', received by {received_by}' if received_by else ''}"
        ),
    )
    delivery = _mark_delivery_delivered(order, received_by)
    return order, delivery


def status_history(lead_id):
    return OrderStatusEvent.objects.filter(lead_id=lead_id).select_related('actor').order_by('created_at', 'id')


# =============================================================================
# Statistics
# =============================================================================

def order_stats(queryset) -> dict:
    queryset = queryset.filter(is_active=True)
    breakdown = (
        queryset.values('status')
        .annotate(count=Count('id'), total_amount=Sum('total_amount'))
        .order_by('status')
    )
    revenue = queryset.filter(status__in=status.REVENUE_STATUSES).aggregate(total=Sum('total_amount'))['total']
    return {
        'total_orders': queryset.count(),
        'total_revenue': revenue or Decimal('0'),
        'status_breakdown': list(breakdown),
    }


def admin_order_stats() -> dict:
    queryset = Order.objects.filter(is_active=True)
    stats = order_stats(queryset)
    stats['top_vendors'] = list(
        queryset.values('vendor_id', 'vendor__name', 'vendor__email')
        .annotate(
            total_orders=Count('id'),
            total_revenue=Sum('total_amount'),
            completed_orders=Count('id', filter=Q(status=OrderStatus.DELIVERED)),
        )
        .order_by('-total_revenue')[:10]
    )
    stats['top_customers'] = list(
        queryset.values('customer_id', 'customer__name', 'customer__email')
        .annotate(total_orders=Count('id'), total_spent=Sum('total_amount'))
        .order_by('-total_spent')[:10]
    )
    return stats


def payment_stats() -> dict:
    queryset = OrderPayment.objects.filter(is_active=True)
    completed = queryset.filter(payment_status=PaymentStatus.COMPLETED)
    return {
        'total_payments': queryset.count(),
        'successful_payments': completed.count(),
        'total_revenue': completed.aggregate(total=Sum('paid_amount'))['total'] or Decimal('0'),
        'payment_status_breakdown': list(
            queryset.values('payment_status')
            .annotate(count=Count('id'), total_amount=Sum('order_amount'))
            .order_by('payment_status')
        ),
    }


def delivery_stats() -> dict:
    queryset = OrderDelivery.objects.filter(is_active=True)
    in_progress = (
        DeliveryStatus.PENDING,
        DeliveryStatus.PICKED_UP,
        DeliveryStatus.IN_TRANSIT,
        DeliveryStatus.OUT_FOR_DELIVERY,
    )
    return {
        'total_deliveries': queryset.count(),
        'completed_deliveries': queryset.filter(delivery_status=DeliveryStatus.DELIVERED).count(),
        'pending_deliveries': queryset.filter(delivery_status__in=in_progress).count(),
        'delivery_status_breakdown': list(
            queryset.values('delivery_status').annotate(count=Count('id')).order_by('delivery_status')
        ),
    }

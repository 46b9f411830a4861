"""
Tests for the order lifecycle.

Test Cases:
1. Cart aggregate: merge by item, price snapshot, totals, deactivation
2. Status machine: edges per actor, regressions, terminal statuses, override
3. Services: cart to delivery, promo re-derivation, ownership
4. Payments: scheduled completion, missing/moved orders, cancellation
5. Delivery lockstep and partial update reporting
6. Append-only status history
7. HTTP surface: permissions, error mapping, read-only totals
"""
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from accounts.models import User
from accounts.roles import Role
from core.exceptions import (
    DomainError,
    EmptyOrderError,
    InvalidTransitionError,
    NotFoundError,
    OwnershipError,
    SecondaryWriteError,
    ValidationFailed,
    VendorMismatchError,
)
from inventory.models import Category, InventoryItem, Price, Promo
from orders import cart, services, status
from orders.models import (
    DeliveryStatus,
    Order,
    OrderPayment,
    OrderStatus,
    OrderStatusEvent,
    PaymentStatus,
)
from orders.tasks import complete_payment

Actor = OrderStatusEvent.Actor


def make_user(role, suffix):
    return User.objects.create_user(
        email=f"{role}{suffix}@example.com",
        password='password123',
        name=f"{role.title()} {suffix}",
        phone=f"98765{suffix.zfill(5)}",
        role=role,
    )


def priced_item(vendor, unit_price, description='OPC 53 cement bag', sub_category='OPC 53 Grade'):
    item = InventoryItem.objects.create(
        description=description,
        category=Category.CEMENT,
        sub_category=sub_category,
        units='bag',
        vendor=vendor,
        created_by=vendor,
    )
    Price.objects.create(
        item=item,
        unit_price=Decimal(unit_price),
        tax=Decimal('18'),
        vendor=vendor,
        created_by=vendor,
    )
    return item


DELIVERY_INFO = {
    'delivery_address': '12 MG Road, Bengaluru',
    'delivery_pincode': '560001',
    'delivery_expected_date': timezone.now() + timedelta(days=5),
    'receiver_phone': '9123456789',
}


class CartAggregateTestCase(SimpleTestCase):
    """Aggregate rules on unsaved orders; no database needed."""

    def setUp(self):
        self.order = Order(customer_id=1, vendor_id=10)

    def assertTotalsConsistent(self, order):
        lines = order.line_items
        self.assertEqual(order.total_qty, sum(line.qty for line in lines))
        self.assertEqual(order.subtotal, sum((line.total_cost for line in lines), Decimal('0')))
        self.assertEqual(order.total_amount, max(Decimal('0'), order.subtotal - order.promo_discount))
        for line in lines:
            self.assertEqual(line.total_cost, line.unit_price * line.qty)

    def test_adding_same_item_merges_quantity(self):
        cart.add_item(self.order, 7, 3, Decimal('100'))
        cart.add_item(self.order, 7, 2, Decimal('100'))

        self.assertEqual(len(self.order.line_items), 1)
        self.assertEqual(self.order.total_qty, 5)
        self.assertEqual(self.order.total_amount, Decimal('500'))

    def test_merge_keeps_original_price_snapshot(self):
        cart.add_item(self.order, 7, 3, Decimal('100'))
        cart.add_item(self.order, 7, 2, Decimal('150'))

        line = self.order.line_items[0]
        self.assertEqual(line.unit_price, Decimal('100'))
        self.assertEqual(line.total_cost, Decimal('500'))

    def test_totals_hold_after_every_change(self):
        cart.add_item(self.order, 1, 4, Decimal('99.99'))
        self.assertTotalsConsistent(self.order)
        cart.add_item(self.order, 2, 1, Decimal('1250.50'))
        self.assertTotalsConsistent(self.order)
        cart.add_item(self.order, 1, 6, Decimal('80'))
        self.assertTotalsConsistent(self.order)
        cart.remove_item(self.order, 2)
        self.assertTotalsConsistent(self.order)
        self.assertEqual(self.order.total_amount, Decimal('999.90'))

    def test_recompute_is_idempotent(self):
        cart.add_item(self.order, 1, 2, Decimal('10.10'))
        before = (self.order.total_qty, self.order.subtotal, self.order.total_amount)
        cart.recompute_totals(self.order)
        cart.recompute_totals(self.order)
        self.assertEqual(before, (self.order.total_qty, self.order.subtotal, self.order.total_amount))

    def test_removing_last_item_deactivates(self):
        cart.add_item(self.order, 7, 1, Decimal('100'))
        cart.remove_item(self.order, 7)

        self.assertFalse(self.order.is_active)
        self.assertEqual(self.order.total_amount, Decimal('0'))
        with self.assertRaises(DomainError):
            cart.add_item(self.order, 7, 1, Decimal('100'))

    def test_removing_absent_item(self):
        cart.add_item(self.order, 7, 1, Decimal('100'))
        with self.assertRaises(NotFoundError):
            cart.remove_item(self.order, 8)

    def test_quantity_must_be_positive(self):
        with self.assertRaises(ValidationFailed):
            cart.add_item(self.order, 7, 0, Decimal('100'))

    def test_items_from_another_vendor_rejected(self):
        with self.assertRaises(VendorMismatchError):
            cart.add_item(self.order, 7, 1, Decimal('100'), vendor_id=11)

    def test_placing_empty_order(self):
        with self.assertRaises(EmptyOrderError):
            cart.place(self.order, DELIVERY_INFO)

    def test_items_frozen_after_pending(self):
        cart.add_item(self.order, 7, 1, Decimal('100'))
        self.order.status = OrderStatus.VENDOR_ACCEPTED
        with self.assertRaises(DomainError):
            cart.add_item(self.order, 7, 1, Decimal('100'))
        with self.assertRaises(DomainError):
            cart.remove_item(self.order, 7)

    def test_delivery_info_validated(self):
        with self.assertRaises(DjangoValidationError):
            cart.update_delivery_info(self.order, {'delivery_pincode': '012345'})
        with self.assertRaises(DjangoValidationError):
            cart.update_delivery_info(self.order, {'receiver_phone': '5123456789'})

        cart.update_delivery_info(self.order, {'delivery_pincode': '560001', 'delivery_address': ''})
        self.assertEqual(self.order.delivery_pincode, '560001')
        self.assertEqual(self.order.delivery_address, 'Address to be updated')


class StatusMachineTestCase(SimpleTestCase):

    def test_vendor_regression_rejected_with_allowed_statuses(self):
        with self.assertRaises(InvalidTransitionError) as context:
            status.check_transition(Actor.VENDOR, OrderStatus.IN_TRANSIT, OrderStatus.VENDOR_ACCEPTED)

        error = context.exception
        self.assertEqual(error.current, OrderStatus.IN_TRANSIT)
        self.assertEqual(
            error.allowed,
            (OrderStatus.SHIPPED, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED)
        )
        self.assertIn('in_transit', str(error))

    def test_vendor_cannot_ship_before_confirmation(self):
        for current in (OrderStatus.VENDOR_ACCEPTED, OrderStatus.PAYMENT_DONE):
            with self.assertRaises(InvalidTransitionError):
                status.check_transition(Actor.VENDOR, current, OrderStatus.TRUCK_LOADING)

    def test_vendor_may_skip_forward(self):
        status.check_transition(Actor.VENDOR, OrderStatus.ORDER_CONFIRMED, OrderStatus.SHIPPED)
        status.check_transition(Actor.VENDOR, OrderStatus.TRUCK_LOADING, OrderStatus.DELIVERED)

    def test_delivered_is_terminal_for_everyone(self):
        for actor in Actor.values:
            self.assertEqual(status.allowed_next(actor, OrderStatus.DELIVERED), ())
        with self.assertRaises(InvalidTransitionError):
            status.check_transition(Actor.OPERATIONS, OrderStatus.DELIVERED, OrderStatus.CANCELLED)
        with self.assertRaises(InvalidTransitionError):
            status.check_transition(Actor.OPERATIONS, OrderStatus.DELIVERED, OrderStatus.IN_TRANSIT, force=True)

    def test_customer_cancels_only_early(self):
        status.check_transition(Actor.CUSTOMER, OrderStatus.PENDING, OrderStatus.CANCELLED)
        status.check_transition(Actor.CUSTOMER, OrderStatus.VENDOR_ACCEPTED, OrderStatus.CANCELLED)
        with self.assertRaises(InvalidTransitionError):
            status.check_transition(Actor.CUSTOMER, OrderStatus.ORDER_CONFIRMED, OrderStatus.CANCELLED)

    def test_operations_cancel_anything_but_terminal(self):
        for current in status.HAPPY_PATH[:-1]:
            self.assertIn(OrderStatus.CANCELLED, status.allowed_next(Actor.OPERATIONS, current))
        self.assertEqual(status.allowed_next(Actor.OPERATIONS, OrderStatus.CANCELLED), ())

    def test_system_edges(self):
        self.assertEqual(
            status.allowed_next(Actor.SYSTEM, OrderStatus.VENDOR_ACCEPTED), (OrderStatus.PAYMENT_DONE,)
        )
        self.assertEqual(
            status.allowed_next(Actor.SYSTEM, OrderStatus.PAYMENT_DONE), (OrderStatus.ORDER_CONFIRMED,)
        )
        self.assertEqual(status.allowed_next(Actor.SYSTEM, OrderStatus.PENDING), ())

    def test_override_only_for_operations(self):
        status.check_transition(Actor.OPERATIONS, OrderStatus.PENDING, OrderStatus.IN_TRANSIT, force=True)
        with self.assertRaises(InvalidTransitionError):
            status.check_transition(Actor.VENDOR, OrderStatus.PENDING, OrderStatus.IN_TRANSIT, force=True)

    def test_same_status_and_unknown_status(self):
        with self.assertRaises(InvalidTransitionError):
            status.check_transition(Actor.OPERATIONS, OrderStatus.SHIPPED, OrderStatus.SHIPPED, force=True)
        with self.assertRaises(ValidationFailed):
            status.check_transition(Actor.OPERATIONS, OrderStatus.PENDING, 'teleported')


class OrderFixtureMixin:

    def setUp(self):
        self.vendor = make_user(Role.VENDOR, '1')
        self.other_vendor = make_user(Role.VENDOR, '2')
        self.customer = make_user(Role.CUSTOMER, '3')
        self.other_customer = make_user(Role.CUSTOMER, '4')
        self.admin = make_user(Role.ADMIN, '5')
        self.cement = priced_item(self.vendor, '100.00')
        self.ppc = priced_item(self.vendor, '250.00', description='PPC cement bag', sub_category='PPC')
        self.foreign = priced_item(self.other_vendor, '50.00', description='White cement', sub_category='White Cement')

    def cart_order(self, qty=3):
        order, _ = services.add_to_cart(self.customer, self.cement.pk, qty)
        return order

    def placed_order(self):
        order = self.cart_order()
        return services.place_order(self.customer, order.lead_id, DELIVERY_INFO)

    def accepted_order(self):
        order = self.placed_order()
        return services.accept_order(self.vendor, order.lead_id)

    def confirmed_order(self):
        order = self.accepted_order()
        services.mark_payment_done(self.admin, order.lead_id, order.total_amount)
        return services.confirm_order(self.admin, order.lead_id)

    def initiate(self, order):
        with patch('orders.tasks.complete_payment.apply_async') as mock_apply:
            with self.captureOnCommitCallbacks(execute=True):
                payment = services.initiate_payment(self.customer, order.lead_id, 'full')
        mock_apply.assert_called_once_with(
            args=[payment.pk],
            countdown=settings.PAYMENT_COMPLETION_DELAY,
            task_id=payment.completion_task_id,
        )
        return payment

    def history(self, order):
        return list(services.status_history(order.lead_id).values_list('status', flat=True))


class CartServiceTestCase(OrderFixtureMixin, TestCase):

    def test_add_to_cart_opens_then_grows_one_order(self):
        order, created = services.add_to_cart(self.customer, self.cement.pk, 3)
        again, created_again = services.add_to_cart(self.customer, self.cement.pk, 2)

        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(order.pk, again.pk)
        again.refresh_from_db()
        self.assertEqual(again.total_qty, 5)
        self.assertEqual(again.total_amount, Decimal('500.00'))
        self.assertEqual(again.customer_phone, self.customer.phone)
        self.assertEqual(self.history(again), [OrderStatus.PENDING])

    def test_other_vendor_item_opens_new_order(self):
        first, _ = services.add_to_cart(self.customer, self.cement.pk, 1)
        second, created = services.add_to_cart(self.customer, self.foreign.pk, 1)

        self.assertTrue(created)
        self.assertNotEqual(first.pk, second.pk)
        self.assertEqual(second.vendor, self.other_vendor)

    def test_later_price_change_does_not_touch_existing_line(self):
        order = self.cart_order(qty=1)
        Price.objects.filter(item=self.cement).update(unit_price=Decimal('999.00'))

        order, _ = services.add_to_cart(self.customer, self.cement.pk, 1)

        self.assertEqual(order.line_items[0].unit_price, Decimal('100.00'))
        self.assertEqual(order.total_amount, Decimal('200.00'))

    def test_unpriced_or_inactive_item(self):
        bare = InventoryItem.objects.create(
            description='No price', category=Category.CEMENT, sub_category='PPC',
            units='bag', vendor=self.vendor, created_by=self.vendor
        )
        with self.assertRaises(NotFoundError):
            services.add_to_cart(self.customer, bare.pk, 1)

        InventoryItem.objects.filter(pk=self.cement.pk).update(is_active=False)
        with self.assertRaises(ValidationFailed):
            services.add_to_cart(self.customer, self.cement.pk, 1)

    def test_removing_last_item_deactivates_for_good(self):
        order = self.cart_order()
        order = services.remove_item(self.customer, order.lead_id, self.cement.pk)

        self.assertFalse(order.is_active)
        with self.assertRaises(NotFoundError):
            services.get_order(order.lead_id)

        fresh, created = services.add_to_cart(self.customer, self.cement.pk, 1)
        self.assertTrue(created)
        self.assertNotEqual(fresh.pk, order.pk)

    def test_other_customer_cannot_touch_order(self):
        order = self.cart_order()
        with self.assertRaises(OwnershipError):
            services.get_customer_order(self.other_customer, order.lead_id)
        with self.assertRaises(OwnershipError):
            services.accept_order(self.other_vendor, order.lead_id)

    def test_place_opens_delivery_and_logs_event(self):
        order = self.placed_order()

        self.assertIsNotNone(order.placed_at)
        self.assertEqual(order.delivery_pincode, '560001')
        self.assertEqual(order.delivery.pincode, '560001')
        self.assertEqual(order.delivery.delivery_status, DeliveryStatus.PENDING)
        self.assertEqual(self.history(order), [OrderStatus.PENDING, OrderStatus.PENDING])

        with self.assertRaises(DomainError):
            services.place_order(self.customer, order.lead_id, DELIVERY_INFO)

    def test_vendor_cannot_accept_unplaced_cart(self):
        order = self.cart_order()
        with self.assertRaises(DomainError):
            services.accept_order(self.vendor, order.lead_id)

    def test_promo_discount_rederived_and_detached(self):
        now = timezone.now()
        promo = Promo.objects.create(
            name='Bulk cement', item=self.cement, discount=Decimal('10'),
            max_discount_amount=Decimal('40'), usage_limit=10,
            start_date=now - timedelta(days=1), end_date=now + timedelta(days=1),
            created_by=self.vendor
        )
        order = self.cart_order(qty=10)
        services.add_to_cart(self.customer, self.ppc.pk, 1)

        order = services.apply_promo(self.customer, order.lead_id, promo.promo_id)
        self.assertEqual(order.promo_discount, Decimal('40.00'))
        self.assertEqual(order.total_amount, Decimal('1210.00'))

        order = services.remove_item(self.customer, order.lead_id, self.cement.pk)
        self.assertIsNone(order.promo)
        self.assertEqual(order.promo_discount, Decimal('0'))
        self.assertEqual(order.total_amount, Decimal('250.00'))

    def test_promo_counted_on_placement(self):
        now = timezone.now()
        promo = Promo.objects.create(
            name='Flat', item=self.cement, discount_type=Promo.DiscountType.FIXED,
            discount_amount=Decimal('25'), usage_limit=1,
            start_date=now - timedelta(days=1), end_date=now + timedelta(days=1),
            created_by=self.vendor
        )
        order = self.cart_order()
        services.apply_promo(self.customer, order.lead_id, promo.promo_id)
        order = services.place_order(self.customer, order.lead_id, DELIVERY_INFO)

        promo.refresh_from_db()
        self.assertEqual(promo.used_count, 1)
        self.assertEqual(order.total_amount, Decimal('275.00'))

    def test_promo_for_item_not_in_order(self):
        now = timezone.now()
        promo = Promo.objects.create(
            name='PPC only', item=self.ppc, discount=Decimal('5'),
            start_date=now - timedelta(days=1), end_date=now + timedelta(days=1),
            created_by=self.vendor
        )
        order = self.cart_order()
        with self.assertRaises(DomainError):
            services.apply_promo(self.customer, order.lead_id, promo.promo_id)

    def flat_promo(self, amount='25', usage_limit=1):
        now = timezone.now()
        return Promo.objects.create(
            name='Flat', item=self.cement, discount_type=Promo.DiscountType.FIXED,
            discount_amount=Decimal(amount), usage_limit=usage_limit,
            start_date=now - timedelta(days=1), end_date=now + timedelta(days=1),
            created_by=self.vendor
        )

    def test_promo_cannot_be_applied_after_placement(self):
        promo = self.flat_promo()
        order = self.placed_order()

        with self.assertRaises(DomainError):
            services.apply_promo(self.customer, order.lead_id, promo.promo_id)

        order.refresh_from_db()
        promo.refresh_from_db()
        self.assertIsNone(order.promo)
        self.assertEqual(order.promo_discount, Decimal('0.00'))
        self.assertEqual(promo.used_count, 0)

    def test_redeemed_discount_kept_when_item_removed_after_placement(self):
        promo = self.flat_promo()
        order = self.cart_order()
        services.add_to_cart(self.customer, self.ppc.pk, 1)
        services.apply_promo(self.customer, order.lead_id, promo.promo_id)
        services.place_order(self.customer, order.lead_id, DELIVERY_INFO)
        promo.refresh_from_db()
        self.assertEqual(promo.status, 'exhausted')

        order = services.remove_item(self.customer, order.lead_id, self.ppc.pk)

        self.assertEqual(order.promo, promo)
        self.assertEqual(order.promo_discount, Decimal('25.00'))
        self.assertEqual(order.total_amount, Decimal('275.00'))

    def test_redeemed_discount_kept_after_promo_expires(self):
        promo = self.flat_promo(usage_limit=None)
        order = self.cart_order()
        services.add_to_cart(self.customer, self.ppc.pk, 1)
        services.apply_promo(self.customer, order.lead_id, promo.promo_id)
        services.place_order(self.customer, order.lead_id, DELIVERY_INFO)
        Promo.objects.filter(pk=promo.pk).update(end_date=timezone.now() - timedelta(minutes=1))

        order = services.remove_item(self.customer, order.lead_id, self.ppc.pk)

        self.assertEqual(order.promo_discount, Decimal('25.00'))
        self.assertEqual(order.total_amount, Decimal('275.00'))

    def test_lapsed_promo_not_redeemed_at_placement(self):
        promo = self.flat_promo(usage_limit=2)
        order = self.cart_order()
        services.apply_promo(self.customer, order.lead_id, promo.promo_id)
        Promo.objects.filter(pk=promo.pk).update(used_count=2)

        order = services.place_order(self.customer, order.lead_id, DELIVERY_INFO)

        self.assertIsNone(order.promo)
        self.assertEqual(order.promo_discount, Decimal('0'))
        self.assertEqual(order.total_amount, Decimal('300.00'))
        promo.refresh_from_db()
        self.assertEqual(promo.used_count, 2)


class StatusFlowTestCase(OrderFixtureMixin, TestCase):

    def test_vendor_regression_rejected(self):
        order = self.confirmed_order()
        services.vendor_update_status(self.vendor, order.lead_id, OrderStatus.IN_TRANSIT)

        with self.assertRaises(InvalidTransitionError) as context:
            services.vendor_update_status(self.vendor, order.lead_id, OrderStatus.VENDOR_ACCEPTED)

        self.assertEqual(context.exception.current, OrderStatus.IN_TRANSIT)
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.IN_TRANSIT)

    def test_customer_cannot_cancel_confirmed_order(self):
        order = self.confirmed_order()
        with self.assertRaises(InvalidTransitionError):
            services.customer_cancel(self.customer, order.lead_id)

    def test_vendor_reject_records_reason(self):
        order = self.placed_order()
        order = services.reject_order(self.vendor, order.lead_id, 'Out of stock')

        self.assertEqual(order.status, OrderStatus.CANCELLED)
        event = order.current_status_event()
        self.assertEqual(event.actor_type, Actor.VENDOR)
        self.assertEqual(event.remarks, 'Out of stock')

    def test_delivered_is_terminal(self):
        order = self.confirmed_order()
        order, delivery = services.mark_delivered(self.admin, order.lead_id, received_by='Site engineer')

        self.assertEqual(order.status, OrderStatus.DELIVERED)
        self.assertEqual(delivery.delivery_status, DeliveryStatus.DELIVERED)
        self.assertIsNotNone(delivery.delivery_actual_date)
        self.assertEqual(delivery.received_by, 'Site engineer')

        with self.assertRaises(InvalidTransitionError):
            services.admin_cancel(self.admin, order.lead_id)
        with self.assertRaises(InvalidTransitionError):
            services.admin_set_status(self.admin, order.lead_id, OrderStatus.IN_TRANSIT)

    def test_admin_override_to_delivered_closes_delivery(self):
        order = self.placed_order()
        order = services.admin_set_status(self.admin, order.lead_id, OrderStatus.DELIVERED, 'Handed over offline')

        self.assertEqual(order.status, OrderStatus.DELIVERED)
        self.assertEqual(order.delivery.delivery_status, DeliveryStatus.DELIVERED)

    def test_history_follows_happy_path(self):
        order = self.confirmed_order()
        for target in (OrderStatus.TRUCK_LOADING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            order = services.vendor_update_status(self.vendor, order.lead_id, target)

        self.assertEqual(self.history(order), [
            OrderStatus.PENDING, OrderStatus.PENDING, OrderStatus.VENDOR_ACCEPTED,
            OrderStatus.PAYMENT_DONE, OrderStatus.ORDER_CONFIRMED, OrderStatus.TRUCK_LOADING,
            OrderStatus.SHIPPED, OrderStatus.DELIVERED,
        ])
        self.assertEqual(order.current_status_event().status, order.status)
        self.assertEqual(order.delivery.delivery_status, DeliveryStatus.DELIVERED)

    def test_status_events_are_append_only(self):
        order = self.placed_order()
        event = order.current_status_event()

        event.remarks = 'rewritten'
        with self.assertRaises(DomainError):
            event.save()
        with self.assertRaises(DomainError):
            event.delete()
        self.assertEqual(OrderStatusEvent.objects.get(pk=event.pk).remarks, 'Order placed and sent to vendor')

    def test_stats_count_revenue_from_confirmation(self):
        self.accepted_order()
        confirmed = self.confirmed_order()

        stats = services.order_stats(Order.objects.filter(vendor=self.vendor))

        self.assertEqual(stats['total_orders'], 2)
        self.assertEqual(stats['total_revenue'], confirmed.total_amount)


class PaymentTestCase(OrderFixtureMixin, TestCase):

    def test_payment_requires_vendor_acceptance(self):
        order = self.placed_order()
        with self.assertRaises(DomainError):
            services.initiate_payment(self.customer, order.lead_id)

    def test_scheduled_completion_confirms_order(self):
        order = self.accepted_order()
        payment = self.initiate(order)
        self.assertEqual(payment.payment_status, PaymentStatus.PROCESSING)

        result = complete_payment(payment.pk)

        self.assertEqual(result['status'], 'completed')
        self.assertTrue(result['confirmed'])
        payment.refresh_from_db()
        order.refresh_from_db()
        self.assertEqual(payment.payment_status, PaymentStatus.COMPLETED)
        self.assertEqual(payment.paid_amount, order.total_amount)
        self.assertEqual(order.status, OrderStatus.ORDER_CONFIRMED)
        self.assertEqual(self.history(order)[-2:], [OrderStatus.PAYMENT_DONE, OrderStatus.ORDER_CONFIRMED])

    def test_second_payment_while_processing_rejected(self):
        order = self.accepted_order()
        self.initiate(order)
        with self.assertRaises(DomainError):
            services.initiate_payment(self.customer, order.lead_id)

    def test_completion_tolerates_missing_order(self):
        payment = OrderPayment.objects.create(
            invc_num='INV-0-gone', lead_id='no-such-order', transaction_id='TXN-GONE',
            order_amount=Decimal('100.00'),
        )

        result = complete_payment(payment.pk)

        self.assertEqual(result['status'], 'failed')
        payment.refresh_from_db()
        self.assertEqual(payment.payment_status, PaymentStatus.FAILED)
        self.assertEqual(payment.failure_reason, 'Order no longer exists')

    def test_completion_tolerates_missing_payment(self):
        self.assertEqual(complete_payment(424242)['status'], 'missing')

    def test_completion_fails_when_order_moved_on(self):
        order = self.accepted_order()
        payment = self.initiate(order)
        Order.objects.filter(pk=order.pk).update(status=OrderStatus.CANCELLED)

        result = complete_payment(payment.pk)

        self.assertEqual(result['status'], 'failed')
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.CANCELLED)

    @patch('orders.services.current_app')
    def test_cancel_revokes_scheduled_completion(self, mock_app):
        order = self.accepted_order()
        payment = self.initiate(order)

        services.customer_cancel(self.customer, order.lead_id)

        mock_app.control.revoke.assert_called_once_with(payment.completion_task_id)
        payment.refresh_from_db()
        self.assertEqual(payment.payment_status, PaymentStatus.FAILED)
        self.assertEqual(complete_payment(payment.pk)['status'], 'skipped')

    def test_scheduling_failure_marks_payment_failed(self):
        order = self.accepted_order()
        with patch('orders.tasks.complete_payment.apply_async', side_effect=ConnectionError('broker down')):
            with self.captureOnCommitCallbacks(execute=True):
                payment = services.initiate_payment(self.customer, order.lead_id)

        payment.refresh_from_db()
        self.assertEqual(payment.payment_status, PaymentStatus.FAILED)

        retry = self.initiate(order)
        self.assertEqual(retry.pk, payment.pk)
        self.assertEqual(retry.payment_status, PaymentStatus.PROCESSING)

    @patch('orders.services.current_app')
    def test_manual_payment_supersedes_scheduled_one(self, mock_app):
        order = self.accepted_order()
        payment = self.initiate(order)

        order = services.mark_payment_done(self.admin, order.lead_id, Decimal('300.00'), transaction_id='NEFT-1')

        self.assertEqual(order.status, OrderStatus.PAYMENT_DONE)
        mock_app.control.revoke.assert_called_once_with(payment.completion_task_id)
        payment.refresh_from_db()
        self.assertEqual(payment.payment_status, PaymentStatus.COMPLETED)
        self.assertEqual(payment.transaction_id, 'NEFT-1')

    def test_manual_payment_needs_positive_amount(self):
        order = self.accepted_order()
        with self.assertRaises(ValidationFailed):
            services.mark_payment_done(self.admin, order.lead_id, Decimal('0'))


class DeliveryLockstepTestCase(OrderFixtureMixin, TestCase):

    def test_delivery_status_advances_order(self):
        order = self.confirmed_order()
        order, delivery = services.vendor_update_delivery(
            self.vendor, order.lead_id, {'delivery_status': DeliveryStatus.OUT_FOR_DELIVERY}
        )

        self.assertEqual(order.status, OrderStatus.OUT_FOR_DELIVERY)
        self.assertEqual(delivery.delivery_status, DeliveryStatus.OUT_FOR_DELIVERY)

    def test_earlier_delivery_status_leaves_order_alone(self):
        order = self.confirmed_order()
        services.vendor_update_status(self.vendor, order.lead_id, OrderStatus.SHIPPED)

        order, delivery = services.vendor_update_delivery(
            self.vendor, order.lead_id, {'delivery_status': DeliveryStatus.IN_TRANSIT}
        )

        self.assertEqual(order.status, OrderStatus.SHIPPED)
        self.assertEqual(delivery.delivery_status, DeliveryStatus.IN_TRANSIT)

    def test_tracking_info_moves_delivery_only(self):
        order = self.confirmed_order()
        order, delivery = services.vendor_update_delivery(
            self.vendor, order.lead_id, {'tracking_number': 'BD123', 'courier_service': 'BlueDart'}
        )

        self.assertEqual(delivery.delivery_status, DeliveryStatus.IN_TRANSIT)
        self.assertEqual(delivery.tracking_number, 'BD123')
        self.assertEqual(order.status, OrderStatus.ORDER_CONFIRMED)

    def test_illegal_order_move_blocks_delivery_write(self):
        order = self.accepted_order()
        with self.assertRaises(InvalidTransitionError):
            services.vendor_update_delivery(
                self.vendor, order.lead_id, {'delivery_status': DeliveryStatus.IN_TRANSIT}
            )

        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.VENDOR_ACCEPTED)
        self.assertEqual(order.delivery.delivery_status, DeliveryStatus.PENDING)

    def test_admin_delivery_update_overrides_edges(self):
        order = self.accepted_order()
        order, delivery = services.admin_update_delivery(
            self.admin, order.lead_id, {'delivery_status': DeliveryStatus.DELIVERED, 'remarks': 'Cash on delivery'}
        )

        self.assertEqual(order.status, OrderStatus.DELIVERED)
        self.assertIsNotNone(delivery.delivery_actual_date)

    def test_failed_delivery_write_reported_after_order_moved(self):
        order = self.confirmed_order()
        with patch('orders.services._apply_delivery_changes', side_effect=DatabaseError('disk full')):
            with self.assertRaises(SecondaryWriteError) as context:
                services.vendor_update_delivery(
                    self.vendor, order.lead_id, {'delivery_status': DeliveryStatus.IN_TRANSIT}
                )

        self.assertIn('in_transit', str(context.exception))
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.IN_TRANSIT)


class OrderApiTestCase(OrderFixtureMixin, APITestCase):

    def setUp(self):
        super().setUp()
        self.employee = make_user(Role.EMPLOYEE, '6')

    def place_via_api(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post('/api/order/cart/add/', {'item_code': self.cement.pk, 'qty': 3}, format='json')
        lead_id = response.data['order']['lead_id']
        self.client.post(f'/api/order/customer/orders/{lead_id}/place/', {
            'delivery_address': '12 MG Road, Bengaluru',
            'delivery_pincode': '560001',
            'delivery_expected_date': (timezone.now() + timedelta(days=5)).isoformat(),
            'receiver_phone': '9123456789',
        }, format='json')
        return lead_id

    def test_cart_add_ignores_client_totals(self):
        self.client.force_authenticate(self.customer)
        first = self.client.post('/api/order/cart/add/', {
            'item_code': self.cement.pk, 'qty': 3, 'total_amount': '1.00', 'total_qty': 99
        }, format='json')
        second = self.client.post('/api/order/cart/add/', {'item_code': self.cement.pk, 'qty': 2}, format='json')

        self.assertEqual(first.status_code, 201)
        self.assertEqual(first.data['order']['total_amount'], '300.00')
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.data['order']['total_qty'], 5)
        self.assertEqual(second.data['order']['total_amount'], '500.00')

    def test_cart_add_accepts_delivery_details(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post('/api/order/cart/add/', {
            'item_code': self.cement.pk, 'qty': 1, 'delivery_pincode': '560001', 'receiver_phone': '9123456789'
        }, format='json')
        bad = self.client.post('/api/order/cart/add/', {
            'item_code': self.cement.pk, 'qty': 1, 'delivery_pincode': '12345'
        }, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['order']['delivery_pincode'], '560001')
        self.assertEqual(response.data['order']['receiver_phone'], '9123456789')
        self.assertEqual(bad.status_code, 400)

    def test_cart_add_validates_qty(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post('/api/order/cart/add/', {'item_code': self.cement.pk, 'qty': 0}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'Validation Error')

    def test_roles_are_enforced(self):
        self.client.force_authenticate(self.customer)
        self.assertEqual(self.client.get('/api/order/vendor/orders/').status_code, 403)
        self.assertEqual(self.client.get('/api/order/admin/orders/').status_code, 403)

        self.client.force_authenticate(self.vendor)
        response = self.client.post('/api/order/cart/add/', {'item_code': self.cement.pk, 'qty': 1}, format='json')
        self.assertEqual(response.status_code, 403)

    def test_unauthenticated_request(self):
        self.assertEqual(self.client.get('/api/order/customer/orders/').status_code, 401)

    def test_unknown_order_is_404(self):
        self.client.force_authenticate(self.customer)
        response = self.client.get('/api/order/customer/orders/nope/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error'], 'Not Found')

    def test_vendor_accepts_placed_order(self):
        lead_id = self.place_via_api()

        self.client.force_authenticate(self.other_vendor)
        self.assertEqual(self.client.post(f'/api/order/vendor/orders/{lead_id}/accept/').status_code, 403)

        self.client.force_authenticate(self.vendor)
        pending = self.client.get('/api/order/vendor/orders/pending/')
        self.assertEqual(pending.data['pagination']['total_items'], 1)

        response = self.client.post(f'/api/order/vendor/orders/{lead_id}/accept/', {'remarks': 'Stock ready'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['order']['status'], OrderStatus.VENDOR_ACCEPTED)

    def test_illegal_transition_reports_allowed_statuses(self):
        lead_id = self.place_via_api()
        services.accept_order(self.vendor, lead_id)

        self.client.force_authenticate(self.vendor)
        response = self.client.put(f'/api/order/vendor/orders/{lead_id}/status/',
                                   {'status': OrderStatus.TRUCK_LOADING}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['current_status'], OrderStatus.VENDOR_ACCEPTED)
        self.assertEqual(response.data['allowed_statuses'], [])

    def test_vendor_list_hides_unplaced_carts(self):
        self.client.force_authenticate(self.customer)
        self.client.post('/api/order/cart/add/', {'item_code': self.cement.pk, 'qty': 1}, format='json')

        self.client.force_authenticate(self.vendor)
        response = self.client.get('/api/order/vendor/orders/')
        self.assertEqual(response.data['pagination']['total_items'], 0)

    def test_payment_initiation_reports_processing(self):
        lead_id = self.place_via_api()
        services.accept_order(self.vendor, lead_id)

        with patch('orders.tasks.complete_payment.apply_async') as mock_apply:
            with self.captureOnCommitCallbacks(execute=True):
                response = self.client.post(f'/api/order/customer/orders/{lead_id}/payment/',
                                            {'payment_mode': 'upi'}, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['payment']['payment_status'], PaymentStatus.PROCESSING)
        mock_apply.assert_called_once()

        status_response = self.client.get(f'/api/order/customer/orders/{lead_id}/payment/')
        self.assertEqual(status_response.data['payment']['payment_status'], PaymentStatus.PROCESSING)

    def test_employee_reads_but_cannot_administer(self):
        lead_id = self.place_via_api()

        self.client.force_authenticate(self.employee)
        self.assertEqual(self.client.get('/api/order/admin/orders/').status_code, 200)
        history = self.client.get(f'/api/order/admin/orders/{lead_id}/history/')
        self.assertEqual([row['status'] for row in history.data['history']], ['pending', 'pending'])
        self.assertEqual(self.client.post(f'/api/order/admin/orders/{lead_id}/cancel/').status_code, 403)

    def test_admin_cancel_and_stats(self):
        lead_id = self.place_via_api()

        self.client.force_authenticate(self.admin)
        response = self.client.post(f'/api/order/admin/orders/{lead_id}/cancel/', {'reason': 'Duplicate'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['order']['status'], OrderStatus.CANCELLED)

        stats = self.client.get('/api/order/admin/orders/stats/')
        self.assertEqual(stats.data['stats']['total_orders'], 1)

    def test_date_range_requires_dates(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/order/admin/orders/date-range/')
        self.assertEqual(response.status_code, 400)

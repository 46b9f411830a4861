"""
Order Models - the order aggregate and the records keyed by its identifiers.

Order Status Flow:
    pending -> vendor_accepted -> payment_done -> order_confirmed -> truck_loading
    -> in_transit -> shipped -> out_for_delivery -> delivered
    cancelled is reachable from every status except delivered.

Models:
    - Order: cart/order aggregate; line items are owned value records
    - OrderStatusEvent: append-only status history
    - OrderDelivery: one per order, courier and tracking state
    - OrderPayment: one per invoice, payment lifecycle
"""
import secrets
import string
import time
import uuid
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator, RegexValidator
from django.db import models
from django.utils import timezone

from core.exceptions import DomainError
from inventory.models import Promo

DEFAULT_DELIVERY_ADDRESS = 'Address to be updated'
DEFAULT_PINCODE = '000000'
DEFAULT_PHONE = '0000000000'
EXPECTED_DELIVERY_DAYS = 7

pincode_validator = RegexValidator(
    r'^[1-9][0-9]{5}$|^000000$',
    'Pincode must be a valid 6 digit Indian pincode'
)
mobile_validator = RegexValidator(
    r'^[6-9]\d{9}$|^0000000000$',
    'Phone must be a valid 10 digit Indian mobile number'
)

_INVOICE_ALPHABET = string.ascii_lowercase + string.digits


def generate_lead_id() -> str:
    return uuid.uuid4().hex


def generate_invoice_number() -> str:
    suffix = ''.join(secrets.choice(_INVOICE_ALPHABET) for _ in range(9))
    return f"INV-{int(time.time() * 1000)}-{suffix}"


def default_expected_delivery():
    return timezone.now() + timedelta(days=EXPECTED_DELIVERY_DAYS)


class OrderStatus(models.TextChoices):
    """Happy path in declaration order, then the cancellation branch."""
    PENDING = 'pending', 'Pending'
    VENDOR_ACCEPTED = 'vendor_accepted', 'Vendor Accepted'
    PAYMENT_DONE = 'payment_done', 'Payment Done'
    ORDER_CONFIRMED = 'order_confirmed', 'Order Confirmed'
    TRUCK_LOADING = 'truck_loading', 'Truck Loading'
    IN_TRANSIT = 'in_transit', 'In Transit'
    SHIPPED = 'shipped', 'Shipped'
    OUT_FOR_DELIVERY = 'out_for_delivery', 'Out For Delivery'
    DELIVERED = 'delivered', 'Delivered'
    CANCELLED = 'cancelled', 'Cancelled'


class DeliveryStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PICKED_UP = 'picked_up', 'Picked Up'
    IN_TRANSIT = 'in_transit', 'In Transit'
    OUT_FOR_DELIVERY = 'out_for_delivery', 'Out For Delivery'
    DELIVERED = 'delivered', 'Delivered'
    FAILED = 'failed', 'Failed'
    RETURNED = 'returned', 'Returned'


class PaymentStatus(models.TextChoices):
    PROCESSING = 'processing', 'Processing'
    COMPLETED = 'completed', 'Completed'
    FAILED = 'failed', 'Failed'


@dataclass(frozen=True)
class LineItem:
    """
    One line of an order. ``unit_price`` is the price snapshot taken when the
    item was first added; ``total_cost`` is always qty * unit_price.
    """
    item_code: int
    qty: int
    unit_price: Decimal
    total_cost: Decimal

    @classmethod
    def from_record(cls, record):
        return cls(
            item_code=int(record['item_code']),
            qty=int(record['qty']),
            unit_price=Decimal(str(record['unit_price'])),
            total_cost=Decimal(str(record['total_cost'])),
        )

    def as_record(self) -> dict:
        return {
            'item_code': self.item_code,
            'qty': self.qty,
            'unit_price': str(self.unit_price),
            'total_cost': str(self.total_cost),
        }


class Order(models.Model):
    """
    Order aggregate, from cart to delivery.

    Totals are derived from ``items`` by ``orders.cart.recompute_totals`` and
    are never written from request data. An order with no items is
    deactivated and stays inactive.
    """
    lead_id = models.CharField(
        max_length=32,
        unique=True,
        default=generate_lead_id,
        editable=False,
        help_text="Stable external order identifier"
    )
    invc_num = models.CharField(
        max_length=40,
        unique=True,
        default=generate_invoice_number,
        editable=False,
        help_text="Invoice number, generated once at creation"
    )
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='customer_orders'
    )
    vendor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='vendor_orders',
        help_text="Every line item belongs to this vendor"
    )
    items = models.JSONField(
        default=list,
        encoder=DjangoJSONEncoder,
        help_text="Ordered line item records"
    )
    total_qty = models.PositiveIntegerField(default=0)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))]
    )
    delivery_address = models.TextField(default=DEFAULT_DELIVERY_ADDRESS)
    delivery_pincode = models.CharField(
        max_length=6,
        default=DEFAULT_PINCODE,
        validators=[pincode_validator]
    )
    delivery_expected_date = models.DateTimeField(default=default_expected_delivery)
    customer_phone = models.CharField(max_length=10, default=DEFAULT_PHONE, validators=[mobile_validator])
    receiver_phone = models.CharField(max_length=10, default=DEFAULT_PHONE, validators=[mobile_validator])
    promo = models.ForeignKey(
        Promo,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders'
    )
    promo_discount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True,
        help_text="Cached copy of the latest status event"
    )
    placed_at = models.DateTimeField(null=True, blank=True, help_text="Null while the order is still a cart")
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Order'
        verbose_name_plural = 'Orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['customer', 'status']),
            models.Index(fields=['vendor', 'status']),
            models.Index(fields=['status', 'created_at']),
        ]

    def __str__(self):
        return f"Order {self.lead_id} ({self.status})"

    @property
    def line_items(self) -> tuple:
        return tuple(LineItem.from_record(record) for record in self.items)

    def set_line_items(self, lines) -> None:
        self.items = [line.as_record() for line in lines]

    @property
    def is_cart(self) -> bool:
        return self.status == OrderStatus.PENDING and self.placed_at is None

    @property
    def formatted_lead_id(self) -> str:
        return f"ORDER-{self.lead_id}"

    def current_status_event(self):
        return self.status_events.order_by('-created_at', '-id').first()


class OrderStatusEvent(models.Model):
    """
    Immutable status history entry.

    Rows are only ever inserted; ``save`` on an existing row and ``delete``
    both raise.
    """

    class Actor(models.TextChoices):
        CUSTOMER = 'customer', 'Customer'
        VENDOR = 'vendor', 'Vendor'
        OPERATIONS = 'operations', 'Operations'
        SYSTEM = 'system', 'System'

    order = models.ForeignKey(
        Order,
        on_delete=models.PROTECT,
        related_name='status_events'
    )
    lead_id = models.CharField(max_length=32, db_index=True)
    invc_num = models.CharField(max_length=40)
    vendor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='+')
    status = models.CharField(max_length=20, choices=OrderStatus.choices)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='+',
        help_text="Null for system transitions"
    )
    actor_type = models.CharField(max_length=20, choices=Actor.choices)
    remarks = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        verbose_name = 'Order Status Event'
        verbose_name_plural = 'Order Status Events'
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['order', 'created_at']),
        ]

    def __str__(self):
        return f"{self.lead_id}: {self.status} by {self.actor_type}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise DomainError('Status history entries cannot be modified')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise DomainError('Status history entries cannot be deleted')


class OrderDelivery(models.Model):
    """
    Courier and tracking state of an order, created on the first
    delivery-related write.
    """
    order = models.OneToOneField(
        Order,
        on_delete=models.CASCADE,
        related_name='delivery'
    )
    lead_id = models.CharField(max_length=32, unique=True)
    invc_num = models.CharField(max_length=40, db_index=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='+',
        help_text="Customer receiving the delivery"
    )
    address = models.TextField()
    pincode = models.CharField(max_length=6, validators=[pincode_validator])
    delivery_expected_date = models.DateTimeField(null=True, blank=True)
    delivery_actual_date = models.DateTimeField(null=True, blank=True)
    tracking_number = models.CharField(max_length=100, blank=True, default='')
    courier_service = models.CharField(max_length=100, blank=True, default='')
    tracking_url = models.URLField(blank=True, default='')
    delivery_status = models.CharField(
        max_length=20,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.PENDING,
        db_index=True
    )
    delivery_notes = models.TextField(blank=True, default='')
    delivery_instructions = models.TextField(blank=True, default='')
    contact_person = models.CharField(max_length=150, blank=True, default='')
    contact_phone = models.CharField(max_length=15, blank=True, default='')
    received_by = models.CharField(max_length=150, blank=True, default='')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Order Delivery'
        verbose_name_plural = 'Order Deliveries'
        ordering = ['-created_at']

    def __str__(self):
        return f"Delivery {self.lead_id} ({self.delivery_status})"

    def add_tracking_info(self, tracking_number, courier_service, tracking_url=''):
        self.tracking_number = tracking_number
        self.courier_service = courier_service
        self.tracking_url = tracking_url or ''
        self.delivery_status = DeliveryStatus.IN_TRANSIT
        self.save()

    def update_delivery_status(self, delivery_status, notes=None):
        self.delivery_status = delivery_status
        if notes:
            self.delivery_notes = notes
        if delivery_status == DeliveryStatus.DELIVERED:
            self.delivery_actual_date = timezone.now()
        self.save()


class OrderPayment(models.Model):
    """
    Payment lifecycle of one invoice: processing -> completed | failed.

    Keyed by the order's identifiers rather than a foreign key so the
    scheduled completion can run after the order is gone.
    """

    class PaymentMode(models.TextChoices):
        UPI = 'upi', 'UPI'
        CARD = 'card', 'Card'
        NET_BANKING = 'net_banking', 'Net Banking'
        BANK_TRANSFER = 'bank_transfer', 'Bank Transfer'
        CASH = 'cash', 'Cash'

    invc_num = models.CharField(max_length=40, unique=True)
    lead_id = models.CharField(max_length=32, db_index=True)
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='+'
    )
    transaction_id = models.CharField(max_length=64, unique=True)
    payment_type = models.CharField(max_length=30, blank=True, default='')
    payment_mode = models.CharField(max_length=20, choices=PaymentMode.choices, default=PaymentMode.UPI)
    order_amount = models.DecimalField(max_digits=14, decimal_places=2)
    paid_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PROCESSING,
        db_index=True
    )
    completion_task_id = models.CharField(
        max_length=64,
        blank=True,
        default='',
        help_text="Celery task scheduled to complete this payment"
    )
    scheduled_for = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.CharField(max_length=255, blank=True, default='')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Order Payment'
        verbose_name_plural = 'Order Payments'
        ordering = ['-created_at']

    def __str__(self):
        return f"Payment {self.transaction_id} for {self.invc_num} ({self.payment_status})"

    def mark_completed(self, paid_amount=None):
        self.payment_status = PaymentStatus.COMPLETED
        self.paid_amount = self.order_amount if paid_amount is None else paid_amount
        self.completed_at = timezone.now()
        self.failure_reason = ''
        self.save()

    def mark_failed(self, reason):
        self.payment_status = PaymentStatus.FAILED
        self.failure_reason = reason[:255]
        self.save()

    def summary(self) -> dict:
        return {
            'transaction_id': self.transaction_id,
            'invc_num': self.invc_num,
            'lead_id': self.lead_id,
            'payment_type': self.payment_type,
            'payment_mode': self.payment_mode,
            'order_amount': str(self.order_amount),
            'paid_amount': str(self.paid_amount),
            'payment_status': self.payment_status,
            'scheduled_for': self.scheduled_for.isoformat() if self.scheduled_for else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'failure_reason': self.failure_reason or None,
        }

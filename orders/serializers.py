"""
Serializers for order models.

Totals, status and identifiers are always read-only: they are derived by the
order services, never taken from a request.
"""
from rest_framework import serializers

from accounts.serializers import UserMinimalSerializer
from .models import (
    DeliveryStatus,
    Order,
    OrderDelivery,
    OrderPayment,
    OrderStatus,
    OrderStatusEvent,
)

PINCODE_REGEX = r'^[1-9][0-9]{5}$'
MOBILE_REGEX = r'^[6-9]\d{9}$'


class LineItemSerializer(serializers.Serializer):
    item_code = serializers.IntegerField()
    qty = serializers.IntegerField()
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    total_cost = serializers.DecimalField(max_digits=14, decimal_places=2)


class OrderSerializer(serializers.ModelSerializer):
    """Full order representation with line items and parties."""
    items = serializers.SerializerMethodField()
    customer = UserMinimalSerializer(read_only=True)
    vendor = UserMinimalSerializer(read_only=True)
    promo_id = serializers.CharField(source='promo.promo_id', read_only=True, default=None)

    class Meta:
        model = Order
        fields = [
            'lead_id', 'formatted_lead_id', 'invc_num', 'customer', 'vendor',
            'items', 'total_qty', 'subtotal', 'promo_id', 'promo_discount', 'total_amount',
            'delivery_address', 'delivery_pincode', 'delivery_expected_date',
            'customer_phone', 'receiver_phone',
            'status', 'placed_at', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_items(self, obj):
        return LineItemSerializer(obj.line_items, many=True).data


class OrderListSerializer(serializers.ModelSerializer):
    """Compact serializer for order lists."""
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    vendor_name = serializers.CharField(source='vendor.name', read_only=True)
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'lead_id', 'invc_num', 'customer_name', 'vendor_name', 'status',
            'total_qty', 'total_amount', 'item_count', 'placed_at', 'created_at'
        ]

    def get_item_count(self, obj):
        return len(obj.items)


class OrderStatusEventSerializer(serializers.ModelSerializer):
    actor = UserMinimalSerializer(read_only=True)

    class Meta:
        model = OrderStatusEvent
        fields = ['id', 'lead_id', 'invc_num', 'vendor', 'status', 'actor', 'actor_type', 'remarks', 'created_at']


class OrderDeliverySerializer(serializers.ModelSerializer):

    class Meta:
        model = OrderDelivery
        fields = [
            'lead_id', 'invc_num', 'address', 'pincode',
            'delivery_expected_date', 'delivery_actual_date',
            'tracking_number', 'courier_service', 'tracking_url', 'delivery_status',
            'delivery_notes', 'delivery_instructions', 'contact_person', 'contact_phone',
            'received_by', 'updated_at'
        ]


class OrderPaymentSerializer(serializers.ModelSerializer):

    class Meta:
        model = OrderPayment
        fields = [
            'transaction_id', 'invc_num', 'lead_id', 'payment_type', 'payment_mode',
            'order_amount', 'paid_amount', 'payment_status', 'completion_task_id',
            'scheduled_for', 'completed_at', 'failure_reason', 'created_at'
        ]


# =============================================================================
# Request serializers
# =============================================================================

class DeliveryInfoSerializer(serializers.Serializer):
    delivery_address = serializers.CharField(required=False)
    delivery_pincode = serializers.RegexField(PINCODE_REGEX, required=False)
    delivery_expected_date = serializers.DateTimeField(required=False)
    receiver_phone = serializers.RegexField(MOBILE_REGEX, required=False)


class AddToCartSerializer(DeliveryInfoSerializer):
    """
    Request format:
    {
        "item_code": 12,
        "qty": 3,
        "delivery_address": "optional",
        ...
    }
    """
    item_code = serializers.IntegerField(min_value=1)
    qty = serializers.IntegerField(min_value=1)


class PlaceOrderSerializer(DeliveryInfoSerializer):
    delivery_address = serializers.CharField()
    delivery_pincode = serializers.RegexField(PINCODE_REGEX)
    delivery_expected_date = serializers.DateTimeField()
    receiver_phone = serializers.RegexField(MOBILE_REGEX)


class RemoveItemSerializer(serializers.Serializer):
    item_code = serializers.IntegerField(min_value=1)


class ApplyPromoSerializer(serializers.Serializer):
    promo_id = serializers.CharField(max_length=40)


class InitiatePaymentSerializer(serializers.Serializer):
    payment_type = serializers.CharField(max_length=30, required=False, default='full')
    payment_mode = serializers.ChoiceField(choices=OrderPayment.PaymentMode.choices)


class RemarksSerializer(serializers.Serializer):
    remarks = serializers.CharField(required=False, allow_blank=True, default='')


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class StatusUpdateSerializer(RemarksSerializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)


class DeliveryUpdateSerializer(serializers.Serializer):
    tracking_number = serializers.CharField(required=False, max_length=100)
    courier_service = serializers.CharField(required=False, max_length=100)
    tracking_url = serializers.URLField(required=False)
    delivery_status = serializers.ChoiceField(choices=DeliveryStatus.choices, required=False)
    delivery_notes = serializers.CharField(required=False)
    delivery_expected_date = serializers.DateTimeField(required=False)
    delivery_instructions = serializers.CharField(required=False)
    contact_person = serializers.CharField(required=False, max_length=150)
    contact_phone = serializers.CharField(required=False, max_length=15)
    remarks = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if bool(attrs.get('tracking_number')) != bool(attrs.get('courier_service')):
            raise serializers.ValidationError('Tracking number and courier service must be given together')
        if not attrs:
            raise serializers.ValidationError('No delivery changes supplied')
        return attrs


class ManualPaymentSerializer(RemarksSerializer):
    paid_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    payment_method = serializers.ChoiceField(
        choices=OrderPayment.PaymentMode.choices,
        default=OrderPayment.PaymentMode.BANK_TRANSFER
    )
    transaction_id = serializers.CharField(required=False, allow_blank=True, default='', max_length=64)


class MarkDeliveredSerializer(RemarksSerializer):
    received_by = serializers.CharField(required=False, allow_blank=True, default='', max_length=150)


class DateRangeSerializer(serializers.Serializer):
    start_date = serializers.DateTimeField()
    end_date = serializers.DateTimeField()

    def validate(self, attrs):
        if attrs['end_date'] < attrs['start_date']:
            raise serializers.ValidationError('End date must not be before start date')
        return attrs

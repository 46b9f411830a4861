"""
Serializers for inventory models.
Provides data validation and JSON conversion for API endpoints.
"""
from decimal import Decimal

from rest_framework import serializers

from accounts.models import User
from accounts.roles import Role
from accounts.serializers import UserMinimalSerializer
from .models import Category, InventoryItem, Price, Promo, ShippingPriceTable, SUB_CATEGORIES


class InventoryItemSerializer(serializers.ModelSerializer):
    """Serializer for InventoryItem with nested vendor."""
    vendor = UserMinimalSerializer(read_only=True)
    vendor_id = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(role=Role.VENDOR, is_active=True),
        source='vendor',
        write_only=True,
        required=False
    )
    unit_price = serializers.SerializerMethodField()

    class Meta:
        model = InventoryItem
        fields = [
            'id', 'description', 'category', 'sub_category', 'grade', 'units',
            'details', 'specification', 'delivery_information', 'hsn_code',
            'vendor', 'vendor_id', 'unit_price', 'is_active',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'is_active', 'created_at', 'updated_at']

    def get_unit_price(self, obj):
        price = getattr(obj, 'price', None)
        return str(price.unit_price) if price is not None else None

    def validate(self, attrs):
        category = attrs.get('category', getattr(self.instance, 'category', None))
        sub_category = attrs.get('sub_category', getattr(self.instance, 'sub_category', None))
        allowed = SUB_CATEGORIES.get(str(category), ())
        if sub_category not in allowed:
            raise serializers.ValidationError({
                'sub_category': f"Sub category must be one of: {', '.join(allowed)}"
            })
        if self.instance is not None:
            # ownership never changes after creation
            attrs.pop('vendor', None)
        return attrs


class InventoryItemMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested item representation."""

    class Meta:
        model = InventoryItem
        fields = ['id', 'description', 'category', 'sub_category', 'units']


class PriceSerializer(serializers.ModelSerializer):
    """Create/update a Price; ``total_price`` is always server-computed."""
    item = InventoryItemMinimalSerializer(read_only=True)
    item_code = serializers.PrimaryKeyRelatedField(
        queryset=InventoryItem.objects.all(),
        source='item',
        write_only=True
    )
    price_with_tax = serializers.DecimalField(
        source='total_price',
        max_digits=14,
        decimal_places=2,
        read_only=True
    )

    class Meta:
        model = Price
        fields = [
            'id', 'item', 'item_code', 'unit_price', 'margin', 'margin_percentage',
            'cgst', 'sgst', 'igst', 'tax', 'total_price', 'price_with_tax',
            'vendor', 'is_active', 'updated_at'
        ]
        read_only_fields = ['id', 'total_price', 'vendor', 'is_active', 'updated_at']
        validators = []

    def validate_unit_price(self, value):
        if value < 0:
            raise serializers.ValidationError('Unit price cannot be negative')
        return value


class ShippingPriceTableSerializer(serializers.ModelSerializer):
    item = InventoryItemMinimalSerializer(read_only=True)
    item_code = serializers.PrimaryKeyRelatedField(
        queryset=InventoryItem.objects.all(),
        source='item',
        write_only=True
    )
    shipping_tiers = serializers.SerializerMethodField()

    class Meta:
        model = ShippingPriceTable
        fields = [
            'id', 'item', 'item_code',
            'price_0_to_50k', 'price_50k_to_100k', 'price_100k_to_150k',
            'price_150k_to_200k', 'price_above_200k',
            'shipping_tiers', 'vendor', 'is_active', 'updated_at'
        ]
        read_only_fields = ['id', 'vendor', 'is_active', 'updated_at']
        validators = []
        extra_kwargs = {
            name: {'min_value': Decimal('0')} for name in ShippingPriceTable.FEE_FIELDS
        }

    def get_shipping_tiers(self, obj):
        return {label: str(fee) for label, fee in obj.tiers.items()}


class ShippingQuoteSerializer(serializers.Serializer):
    item_code = serializers.IntegerField(min_value=1)
    order_value = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'))


class PromoSerializer(serializers.ModelSerializer):
    item = InventoryItemMinimalSerializer(read_only=True)
    item_code = serializers.PrimaryKeyRelatedField(
        queryset=InventoryItem.objects.all(),
        source='item',
        write_only=True
    )
    status = serializers.CharField(read_only=True)
    formatted_discount = serializers.CharField(read_only=True)

    class Meta:
        model = Promo
        fields = [
            'id', 'promo_id', 'name', 'item', 'item_code',
            'discount', 'discount_amount', 'discount_type',
            'start_date', 'end_date', 'min_order_value', 'max_discount_amount',
            'usage_limit', 'used_count', 'is_active', 'status', 'formatted_discount',
            'created_at'
        ]
        read_only_fields = ['id', 'promo_id', 'used_count', 'is_active', 'created_at']

    def validate(self, attrs):
        start, end = attrs.get('start_date'), attrs.get('end_date')
        if start and end and end <= start:
            raise serializers.ValidationError({'end_date': 'End date must be after start date'})
        discount_type = attrs.get('discount_type', Promo.DiscountType.PERCENTAGE)
        if discount_type == Promo.DiscountType.FIXED and attrs.get('discount_amount') is None:
            raise serializers.ValidationError({'discount_amount': 'Fixed promos require a discount amount'})
        if discount_type == Promo.DiscountType.PERCENTAGE and attrs.get('discount') is None:
            raise serializers.ValidationError({'discount': 'Percentage promos require a discount'})
        return attrs


class PromoQuoteSerializer(serializers.Serializer):
    promo_id = serializers.CharField(max_length=40)
    order_value = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'))


class CategorySerializer(serializers.Serializer):
    name = serializers.CharField()
    sub_categories = serializers.ListField(child=serializers.CharField())


def category_payload():
    return [
        {'name': category.value, 'sub_categories': list(SUB_CATEGORIES[category.value])}
        for category in Category
    ]

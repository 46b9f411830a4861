"""
Django Admin configuration for inventory models.
"""
from django.contrib import admin
from .models import InventoryItem, Price, Promo, ShippingPriceTable


class PriceInline(admin.StackedInline):
    model = Price
    fk_name = 'item'
    extra = 0
    readonly_fields = ['total_price']
    raw_id_fields = ['vendor', 'created_by']


class ShippingInline(admin.StackedInline):
    model = ShippingPriceTable
    fk_name = 'item'
    extra = 0
    raw_id_fields = ['vendor', 'created_by']


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = ['id', 'description', 'category', 'sub_category', 'vendor', 'is_active', 'created_at']
    list_filter = ['category', 'is_active', 'created_at']
    search_fields = ['description', 'sub_category', 'vendor__name', 'vendor__email']
    ordering = ['-created_at']
    raw_id_fields = ['vendor', 'created_by']
    inlines = [PriceInline, ShippingInline]


@admin.register(Price)
class PriceAdmin(admin.ModelAdmin):
    list_display = ['id', 'item', 'unit_price', 'tax', 'total_price', 'vendor', 'is_active']
    list_filter = ['is_active']
    search_fields = ['item__description']
    readonly_fields = ['total_price']
    raw_id_fields = ['item', 'vendor', 'created_by']


@admin.register(Promo)
class PromoAdmin(admin.ModelAdmin):
    list_display = ['promo_id', 'name', 'item', 'formatted_discount', 'current_status', 'used_count', 'end_date']
    list_filter = ['discount_type', 'is_active']
    search_fields = ['promo_id', 'name', 'item__description']
    readonly_fields = ['promo_id', 'used_count']
    raw_id_fields = ['item', 'created_by']

    def current_status(self, obj):
        return obj.status
    current_status.short_description = 'Status'

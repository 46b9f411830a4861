"""
Django Admin configuration for order models.

Status, totals and history are read-only here: they only change through the
order services.
"""
from django.contrib import admin
from .models import Order, OrderDelivery, OrderPayment, OrderStatusEvent


class OrderStatusEventInline(admin.TabularInline):
    model = OrderStatusEvent
    extra = 0
    readonly_fields = ['status', 'actor', 'actor_type', 'remarks', 'created_at']
    fields = readonly_fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class OrderDeliveryInline(admin.StackedInline):
    model = OrderDelivery
    extra = 0
    readonly_fields = ['lead_id', 'invc_num', 'delivery_status', 'delivery_actual_date']
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['lead_id', 'invc_num', 'customer', 'vendor', 'status', 'total_amount', 'item_count', 'created_at']
    list_filter = ['status', 'is_active', 'created_at']
    search_fields = ['lead_id', 'invc_num', 'customer__email', 'vendor__email']
    ordering = ['-created_at']
    raw_id_fields = ['customer', 'vendor', 'promo']
    readonly_fields = [
        'lead_id', 'invc_num', 'items', 'status', 'total_qty', 'subtotal',
        'promo_discount', 'total_amount', 'placed_at', 'created_at', 'updated_at'
    ]
    inlines = [OrderDeliveryInline, OrderStatusEventInline]

    def item_count(self, obj):
        return len(obj.items)
    item_count.short_description = 'Items'


@admin.register(OrderPayment)
class OrderPaymentAdmin(admin.ModelAdmin):
    list_display = ['transaction_id', 'invc_num', 'payment_mode', 'order_amount', 'paid_amount', 'payment_status', 'created_at']
    list_filter = ['payment_status', 'payment_mode', 'created_at']
    search_fields = ['transaction_id', 'invc_num', 'lead_id']
    ordering = ['-created_at']
    readonly_fields = ['transaction_id', 'completion_task_id', 'scheduled_for', 'completed_at', 'created_at', 'updated_at']


@admin.register(OrderStatusEvent)
class OrderStatusEventAdmin(admin.ModelAdmin):
    list_display = ['lead_id', 'status', 'actor_type', 'actor', 'created_at']
    list_filter = ['status', 'actor_type', 'created_at']
    search_fields = ['lead_id', 'invc_num']
    ordering = ['-created_at']

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

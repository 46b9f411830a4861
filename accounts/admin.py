"""
Django Admin configuration for account models.
"""
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import OTP, User


@admin.register(User)
class MarketplaceUserAdmin(UserAdmin):
    list_display = ['id', 'name', 'email', 'phone', 'role', 'is_active', 'date_joined']
    list_filter = ['role', 'is_active', 'is_phone_verified']
    search_fields = ['name', 'email', 'phone', 'company_name']
    ordering = ['name']
    fieldsets = UserAdmin.fieldsets + (
        ('Marketplace', {
            'fields': ('name', 'phone', 'role', 'address', 'company_name',
                       'is_phone_verified', 'is_email_verified')
        }),
    )


@admin.register(OTP)
class OTPAdmin(admin.ModelAdmin):
    list_display = ['id', 'phone', 'purpose', 'message_id', 'is_used', 'expires_at', 'created_at']
    list_filter = ['purpose', 'is_used']
    search_fields = ['phone', 'message_id']
    readonly_fields = ['code_hash', 'message_id', 'created_at']

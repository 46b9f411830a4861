"""
Inventory Models - vendor catalog and the rate data orders are priced from.

Models:
    - InventoryItem: vendor-owned catalog entry (soft-deleted via is_active)
    - Price: unit price and tax, one per item
    - ShippingPriceTable: five order-value bands with a flat fee each, one per item
    - Promo: discount attached to an item, status derived at read time
"""
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F
from django.utils import timezone

from accounts.roles import Role
from . import pricing


class Category(models.TextChoices):
    CEMENT = 'Cement', 'Cement'
    IRON = 'Iron', 'Iron'
    CONCRETE_MIXER = 'Concrete Mixer', 'Concrete Mixer'


SUB_CATEGORIES = {
    Category.CEMENT.value: ('OPC 43 Grade', 'OPC 53 Grade', 'PPC', 'PSC', 'White Cement'),
    Category.IRON.value: ('TMT Bars', 'MS Angles', 'MS Channels', 'MS Plates', 'Binding Wire'),
    Category.CONCRETE_MIXER.value: ('Half Bag Mixer', 'One Bag Mixer', 'Transit Mixer', 'Self Loading Mixer'),
}


class InventoryItem(models.Model):
    """
    Catalog entry sold by a single vendor.
    """
    description = models.CharField(
        max_length=300,
        db_index=True,
        help_text="Item description shown to buyers"
    )
    category = models.CharField(
        max_length=30,
        choices=Category.choices,
        db_index=True
    )
    sub_category = models.CharField(max_length=60)
    grade = models.CharField(max_length=60, blank=True, default='')
    units = models.CharField(max_length=30, help_text="Unit of measure, e.g. bag, tonne")
    details = models.TextField(blank=True, default='')
    specification = models.TextField(blank=True, default='')
    delivery_information = models.TextField(blank=True, default='')
    hsn_code = models.CharField(max_length=20, blank=True, default='')
    vendor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='inventory_items',
        limit_choices_to={'role': Role.VENDOR}
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='+'
    )
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Inventory Item'
        verbose_name_plural = 'Inventory Items'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['vendor', 'is_active']),
            models.Index(fields=['category', 'sub_category']),
        ]

    def __str__(self):
        return f"{self.description} [{self.category} / {self.sub_category}]"

    def clean(self):
        allowed = SUB_CATEGORIES.get(str(self.category), ())
        if self.sub_category not in allowed:
            raise ValidationError({
                'sub_category': f"Sub category must be one of: {', '.join(allowed)}"
            })

    def can_access(self, user) -> bool:
        """Staff see everything, vendors their own items, everyone else active items."""
        if user.is_marketplace_staff:
            return True
        if user.is_vendor:
            return self.vendor_id == user.pk
        return self.is_active

    def can_manage(self, user) -> bool:
        return user.is_marketplace_staff or (user.is_vendor and self.vendor_id == user.pk)


class Price(models.Model):
    """
    Unit price and tax for an item.

    ``total_price`` is always unit_price plus tax percent of unit_price and is
    recomputed on every save.
    """
    item = models.OneToOneField(
        InventoryItem,
        on_delete=models.CASCADE,
        related_name='price'
    )
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))]
    )
    margin = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    margin_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))]
    )
    cgst = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'))
    sgst = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'))
    igst = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'))
    tax = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('0'),
        help_text="Flat tax percentage applied to the unit price"
    )
    total_price = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    vendor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='+')
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='+')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Price'
        verbose_name_plural = 'Prices'
        ordering = ['unit_price']
        indexes = [
            models.Index(fields=['vendor', 'is_active']),
        ]

    def __str__(self):
        return f"{self.item.description}: {self.unit_price} (+{self.tax}% tax)"

    def save(self, *args, **kwargs):
        self.total_price = pricing.compute_tax_inclusive_price(Decimal(self.unit_price), Decimal(self.tax))
        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | {'total_price'}
        super().save(*args, **kwargs)


class ShippingPriceTable(models.Model):
    """
    Flat shipping fee per order-value band.
    """
    item = models.OneToOneField(
        InventoryItem,
        on_delete=models.CASCADE,
        related_name='shipping_table'
    )
    price_0_to_50k = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    price_50k_to_100k = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    price_100k_to_150k = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    price_150k_to_200k = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    price_above_200k = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    vendor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='+')
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='+')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    FEE_FIELDS = (
        'price_0_to_50k',
        'price_50k_to_100k',
        'price_100k_to_150k',
        'price_150k_to_200k',
        'price_above_200k',
    )

    class Meta:
        verbose_name = 'Shipping Price Table'
        verbose_name_plural = 'Shipping Price Tables'
        indexes = [
            models.Index(fields=['vendor', 'is_active']),
        ]

    def __str__(self):
        return f"Shipping for {self.item.description}"

    @property
    def fees(self) -> tuple:
        """Band fees in band order."""
        return tuple(getattr(self, name) for name in self.FEE_FIELDS)

    @property
    def tiers(self) -> dict:
        return {band.label: fee for band, fee in zip(pricing.SHIPPING_BANDS, self.fees)}


def generate_promo_id() -> str:
    return f"PROMO-{uuid.uuid4().hex[:12].upper()}"


class Promo(models.Model):
    """
    Discount for one item, valid inside [start_date, end_date].

    Status (inactive, upcoming, expired, exhausted, active) is derived from
    the clock and usage, never stored.
    """

    class DiscountType(models.TextChoices):
        PERCENTAGE = 'percentage', 'Percentage'
        FIXED = 'fixed', 'Fixed'

    promo_id = models.CharField(max_length=40, unique=True, editable=False, default=generate_promo_id)
    name = models.CharField(max_length=200)
    item = models.ForeignKey(
        InventoryItem,
        on_delete=models.CASCADE,
        related_name='promos'
    )
    discount = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))],
        help_text="Percentage discount (percentage promos)"
    )
    discount_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0'))],
        help_text="Flat discount (fixed promos)"
    )
    discount_type = models.CharField(
        max_length=20,
        choices=DiscountType.choices,
        default=DiscountType.PERCENTAGE
    )
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    min_order_value = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    max_discount_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    usage_limit = models.PositiveIntegerField(null=True, blank=True, help_text="0 or empty means unlimited")
    used_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True, db_index=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Promo'
        verbose_name_plural = 'Promos'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['item', 'is_active']),
            models.Index(fields=['start_date', 'end_date']),
        ]

    def __str__(self):
        return f"{self.name} ({self.formatted_discount})"

    def clean(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValidationError({'end_date': 'End date must be after start date'})
        if self.discount_type == self.DiscountType.FIXED and self.discount_amount is None:
            raise ValidationError({'discount_amount': 'Fixed promos require a discount amount'})

    @property
    def status(self) -> str:
        return pricing.promo_status(self, timezone.now())

    @property
    def is_valid(self) -> bool:
        return self.status == pricing.PromoStatus.ACTIVE

    @property
    def formatted_discount(self) -> str:
        if self.discount_type == self.DiscountType.PERCENTAGE:
            return f"{self.discount}% OFF"
        return f"₹{self.discount_amount} OFF"

    def use(self) -> None:
        """Count one redemption; unlimited promos are not counted."""
        if self.usage_limit:
            Promo.objects.filter(pk=self.pk).update(used_count=F('used_count') + 1)
            self.refresh_from_db(fields=['used_count'])

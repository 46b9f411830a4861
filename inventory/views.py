"""
Inventory API Views.

Implements:
- CRUD for InventoryItem (soft delete), scoped by role
- Price and ShippingPriceTable upserts, one per item
- Shipping fee and promo discount quotes
- Promo creation and active promo listing
- Category/sub-category lookup, inventory stats, vendor directory
"""
import logging

from django.db.models import Count, F, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.models import User
from accounts.permissions import require
from accounts.roles import Permission
from accounts.serializers import UserSerializer
from core.exceptions import NotFoundError, OwnershipError, ValidationFailed
from . import pricing
from .models import Category, InventoryItem, Price, Promo, ShippingPriceTable, SUB_CATEGORIES
from .serializers import (
    InventoryItemSerializer,
    PriceSerializer,
    PromoQuoteSerializer,
    PromoSerializer,
    ShippingPriceTableSerializer,
    ShippingQuoteSerializer,
    category_payload,
)

logger = logging.getLogger(__name__)


def get_accessible_item(user, pk):
    item = get_object_or_404(InventoryItem.objects.select_related('vendor'), pk=pk)
    if not item.can_access(user):
        raise OwnershipError('Access denied')
    return item


def ensure_can_manage(user, item):
    if not item.can_manage(user):
        raise OwnershipError('You can only manage your own inventory')


# =============================================================================
# Inventory Item Views
# =============================================================================

class InventoryListCreateView(generics.ListCreateAPIView):
    """
    GET: List inventory items
    POST: Create an item (vendors always own what they create)

    Query Parameters:
        - category, sub_category: exact filters
        - vendor_id: staff only, vendors are always scoped to themselves
        - search: matches description, category and sub-category
        - is_active: 'true' or 'false'
    """
    serializer_class = InventoryItemSerializer

    def get_permissions(self):
        if self.request.method == 'POST':
            return [require(Permission.MANAGE_INVENTORY)()]
        return [require(Permission.VIEW_CATALOG)()]

    def get_queryset(self):
        user = self.request.user
        params = self.request.query_params
        queryset = InventoryItem.objects.select_related('vendor', 'price')

        if user.is_vendor:
            queryset = queryset.filter(vendor=user)
        elif params.get('vendor_id'):
            queryset = queryset.filter(vendor_id=params['vendor_id'])

        is_active = params.get('is_active')
        if not (user.is_vendor or user.is_marketplace_staff):
            queryset = queryset.filter(is_active=True)
        elif is_active in ('true', 'false'):
            queryset = queryset.filter(is_active=is_active == 'true')

        if params.get('category'):
            queryset = queryset.filter(category=params['category'])
        if params.get('sub_category'):
            queryset = queryset.filter(sub_category=params['sub_category'])

        search = params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(description__icontains=search) |
                Q(category__icontains=search) |
                Q(sub_category__icontains=search)
            )
        return queryset

    def perform_create(self, serializer):
        user = self.request.user
        if user.is_vendor:
            vendor = user
        else:
            vendor = serializer.validated_data.get('vendor')
            if vendor is None:
                raise ValidationFailed('vendor_id is required when staff create inventory')
        item = serializer.save(vendor=vendor, created_by=user)
        logger.info(f"Inventory item #{item.pk} created for vendor #{vendor.pk} by user #{user.pk}")


class InventoryDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve an item
    PUT/PATCH: Update an item
    DELETE: Soft delete (is_active=False)
    """
    serializer_class = InventoryItemSerializer

    def get_permissions(self):
        if self.request.method in ('PUT', 'PATCH', 'DELETE'):
            return [require(Permission.MANAGE_INVENTORY)()]
        return [require(Permission.VIEW_CATALOG)()]

    def get_object(self):
        item = get_accessible_item(self.request.user, self.kwargs['pk'])
        if self.request.method != 'GET':
            ensure_can_manage(self.request.user, item)
        return item

    def destroy(self, request, *args, **kwargs):
        item = self.get_object()
        item.is_active = False
        item.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Inventory item #{item.pk} deactivated by user #{request.user.pk}")
        return Response({'message': 'Inventory item deleted successfully'})


class ItemPriceView(APIView):
    """GET: Price of a single item."""
    permission_classes = [require(Permission.VIEW_CATALOG)]

    def get(self, request, pk):
        item = get_accessible_item(request.user, pk)
        price = Price.objects.filter(item=item).first()
        if price is None:
            raise NotFoundError('Price not found for this item')
        return Response(PriceSerializer(price).data)


class ItemShippingView(APIView):
    """GET: Shipping table of a single item."""
    permission_classes = [require(Permission.VIEW_CATALOG)]

    def get(self, request, pk):
        item = get_accessible_item(request.user, pk)
        table = ShippingPriceTable.objects.filter(item=item).first()
        if table is None:
            raise NotFoundError('Shipping price not found for this item')
        return Response(ShippingPriceTableSerializer(table).data)


class ItemPromoListView(generics.ListAPIView):
    """GET: All promos attached to one item."""
    serializer_class = PromoSerializer
    permission_classes = [require(Permission.VIEW_CATALOG)]

    def get_queryset(self):
        item = get_accessible_item(self.request.user, self.kwargs['pk'])
        return Promo.objects.filter(item=item).select_related('item')


# =============================================================================
# Price / Shipping Views
# =============================================================================

class PriceListUpsertView(generics.ListCreateAPIView):
    """
    GET: List prices
    POST: Create or replace the price of an item

    Query Parameters:
        - vendor_id, min_price, max_price
    """
    serializer_class = PriceSerializer

    def get_permissions(self):
        if self.request.method == 'POST':
            return [require(Permission.MANAGE_PRICING)()]
        return [require(Permission.VIEW_CATALOG)()]

    def get_queryset(self):
        user = self.request.user
        params = self.request.query_params
        queryset = Price.objects.select_related('item').filter(is_active=True)

        if user.is_vendor:
            queryset = queryset.filter(vendor=user)
        elif params.get('vendor_id'):
            queryset = queryset.filter(vendor_id=params['vendor_id'])

        if params.get('min_price'):
            queryset = queryset.filter(unit_price__gte=pricing.to_decimal(params['min_price']))
        if params.get('max_price'):
            queryset = queryset.filter(unit_price__lte=pricing.to_decimal(params['max_price']))
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        item = data.pop('item')
        ensure_can_manage(request.user, item)

        price, created = Price.objects.update_or_create(
            item=item,
            defaults={**data, 'vendor': item.vendor, 'created_by': request.user},
        )
        logger.info(f"Price for item #{item.pk} {'created' if created else 'updated'}: {price.total_price}")
        return Response(
            {'message': 'Inventory price created/updated successfully', 'price': PriceSerializer(price).data},
            status=status.HTTP_201_CREATED
        )


class ShippingUpsertView(APIView):
    """POST: Create or replace the shipping table of an item."""
    permission_classes = [require(Permission.MANAGE_PRICING)]

    def post(self, request):
        serializer = ShippingPriceTableSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        item = data.pop('item')
        ensure_can_manage(request.user, item)

        table, created = ShippingPriceTable.objects.update_or_create(
            item=item,
            defaults={**data, 'vendor': item.vendor, 'created_by': request.user, 'is_active': True},
        )
        logger.info(f"Shipping table for item #{item.pk} {'created' if created else 'updated'}")
        return Response(
            {'message': 'Shipping price created/updated successfully',
             'shipping': ShippingPriceTableSerializer(table).data},
            status=status.HTTP_201_CREATED
        )


class ShippingQuoteView(APIView):
    """
    GET: Shipping fee for an order value.

    Query Parameters:
        - item_code: inventory item id
        - order_value: order value in base currency
    """
    permission_classes = [require(Permission.VIEW_CATALOG)]

    def get(self, request):
        serializer = ShippingQuoteSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        item_code = serializer.validated_data['item_code']
        order_value = serializer.validated_data['order_value']

        table = ShippingPriceTable.objects.filter(item_id=item_code, is_active=True).first()
        fee = pricing.lookup_shipping_fee(table, order_value)
        return Response({
            'item_code': item_code,
            'order_value': str(order_value),
            'shipping_cost': str(fee),
            'shipping_tiers': {label: str(value) for label, value in table.tiers.items()},
        })


# =============================================================================
# Promo Views
# =============================================================================

class PromoListCreateView(generics.ListCreateAPIView):
    """
    GET: Promos active right now (optionally for one item_code)
    POST: Create a promo for an item the caller manages
    """
    serializer_class = PromoSerializer

    def get_permissions(self):
        if self.request.method == 'POST':
            return [require(Permission.MANAGE_PROMOS)()]
        return [require(Permission.VIEW_CATALOG)()]

    def get_queryset(self):
        now = timezone.now()
        queryset = Promo.objects.select_related('item').filter(
            is_active=True,
            start_date__lte=now,
            end_date__gte=now,
        ).filter(
            Q(usage_limit__isnull=True) | Q(usage_limit=0) | Q(used_count__lt=F('usage_limit'))
        )
        item_code = self.request.query_params.get('item_code')
        if item_code:
            queryset = queryset.filter(item_id=item_code)
        return queryset

    def perform_create(self, serializer):
        ensure_can_manage(self.request.user, serializer.validated_data['item'])
        promo = serializer.save(created_by=self.request.user)
        logger.info(f"Promo {promo.promo_id} created for item #{promo.item_id}")


class PromoQuoteView(APIView):
    """POST: Discount a promo would grant on an order value."""
    permission_classes = [require(Permission.VIEW_CATALOG)]

    def post(self, request):
        serializer = PromoQuoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order_value = serializer.validated_data['order_value']

        promo = Promo.objects.filter(promo_id=serializer.validated_data['promo_id']).first()
        if promo is None:
            raise NotFoundError('Promo not found')

        discount = pricing.compute_promo_discount(promo, order_value, timezone.now())
        return Response({
            'promo_id': promo.promo_id,
            'promo_name': promo.name,
            'order_value': str(order_value),
            'discount_amount': str(discount),
            'final_amount': str(order_value - discount),
            'is_valid': promo.is_valid,
        })


# =============================================================================
# Lookup / Stats Views
# =============================================================================

class CategoryListView(APIView):
    """GET: All categories with their sub-categories."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({'categories': category_payload()})


class SubCategoryListView(APIView):
    """GET: Sub-categories of one category."""
    permission_classes = [IsAuthenticated]

    def get(self, request, category):
        if category not in Category.values:
            raise ValidationFailed(f"Invalid category. Valid categories: {', '.join(Category.values)}")
        return Response({'category': category, 'sub_categories': list(SUB_CATEGORIES[category])})


class InventoryStatsView(APIView):
    """GET: Item, price, shipping and promo counts with a category breakdown."""
    permission_classes = [require(Permission.VIEW_INVENTORY_STATS)]

    def get(self, request):
        scope = {'is_active': True}
        if request.user.is_vendor:
            scope['vendor'] = request.user

        now = timezone.now()
        items = InventoryItem.objects.filter(**scope)
        breakdown = items.values('category').annotate(count=Count('id')).order_by('-count')

        return Response({
            'stats': {
                'total_items': items.count(),
                'total_prices': Price.objects.filter(**scope).count(),
                'total_ship_prices': ShippingPriceTable.objects.filter(**scope).count(),
                'active_promos': Promo.objects.filter(
                    is_active=True, start_date__lte=now, end_date__gte=now
                ).count(),
                'category_breakdown': list(breakdown),
            }
        })


class VendorListView(generics.ListAPIView):
    """
    GET: Active vendors (staff use this to pick an owner for new items).

    Query Parameters:
        - search: matches name, email and company name
    """
    serializer_class = UserSerializer
    permission_classes = [require(Permission.LIST_VENDORS)]

    def get_queryset(self):
        queryset = User.objects.vendors().order_by('name')
        search = self.request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(email__icontains=search) |
                Q(company_name__icontains=search)
            )
        return queryset

"""
Order API Views.

Implements:
- Customer: cart add, order list/detail/update/cancel, item removal, promo,
  placement, payment initiation and status
- Vendor: order list, pending queue, stats, accept/reject, delivery and
  shipping status updates
- Admin: order list/stats/date range, cancel, status override, history,
  manual payment, confirmation, delivery management, payment and delivery stats

Views only validate input and shape output; every state change is made by
orders.services.
"""
import logging

from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import require
from accounts.roles import Permission
from . import services
from .models import Order, OrderPayment, OrderStatus, PaymentStatus
from .serializers import (
    AddToCartSerializer,
    ApplyPromoSerializer,
    DateRangeSerializer,
    DeliveryInfoSerializer,
    DeliveryUpdateSerializer,
    InitiatePaymentSerializer,
    ManualPaymentSerializer,
    MarkDeliveredSerializer,
    OrderDeliverySerializer,
    OrderListSerializer,
    OrderPaymentSerializer,
    OrderSerializer,
    OrderStatusEventSerializer,
    PlaceOrderSerializer,
    ReasonSerializer,
    RemarksSerializer,
    RemoveItemSerializer,
    StatusUpdateSerializer,
)

logger = logging.getLogger(__name__)

CUSTOMER = require(Permission.PLACE_ORDERS)
VENDOR = require(Permission.FULFIL_ORDERS)
ADMIN_READ = require(Permission.VIEW_ALL_ORDERS)
ADMIN_WRITE = require(Permission.ADMINISTER_ORDERS)


def validated(serializer_class, data):
    serializer = serializer_class(data=data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


def order_response(order, message=None, status_code=status.HTTP_200_OK, **extra):
    body = {'order': OrderSerializer(order).data}
    if message:
        body = {'message': message, **body}
    body.update(extra)
    return Response(body, status=status_code)


def filter_orders(queryset, params):
    """Shared list filters: status, payment status, lead id search."""
    status_filter = params.get('status')
    if status_filter in OrderStatus.values:
        queryset = queryset.filter(status=status_filter)

    search = params.get('search')
    if search:
        queryset = queryset.filter(lead_id__icontains=search)

    payment_status = params.get('payment_status')
    if payment_status in PaymentStatus.values:
        invoices = OrderPayment.objects.filter(payment_status=payment_status).values('invc_num')
        queryset = queryset.filter(invc_num__in=invoices)

    return queryset.order_by('-created_at')


# =============================================================================
# Customer Views
# =============================================================================

class AddToCartView(APIView):
    """
    POST: Add an item to the open cart with the item's vendor.

    Request Body:
    {
        "item_code": 12,
        "qty": 3
    }

    Returns 201 when a new cart was opened, 200 when an existing one grew.
    """
    permission_classes = [CUSTOMER]

    def post(self, request):
        data = validated(AddToCartSerializer, request.data)
        order, created = services.add_to_cart(request.user, data['item_code'], data['qty'], data)
        return order_response(
            order,
            'Item added to cart successfully',
            status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class CustomerOrderListView(generics.ListAPIView):
    """
    GET: List the customer's orders.

    Query Parameters:
        - status: order status
        - payment_status: processing, completed, failed
        - search: part of a lead id
    """
    permission_classes = [CUSTOMER]
    serializer_class = OrderListSerializer

    def get_queryset(self):
        queryset = Order.objects.filter(customer=self.request.user, is_active=True).select_related('customer', 'vendor')
        return filter_orders(queryset, self.request.query_params)


class CustomerOrderDetailView(APIView):
    """
    GET: Order detail
    PUT: Update delivery information while pending
    DELETE: Cancel the order (pending or vendor_accepted only)
    """
    permission_classes = [CUSTOMER]

    def get(self, request, lead_id):
        return order_response(services.get_customer_order(request.user, lead_id))

    def put(self, request, lead_id):
        data = validated(DeliveryInfoSerializer, request.data)
        order = services.update_order(request.user, lead_id, data)
        return order_response(order, 'Order updated successfully')

    def delete(self, request, lead_id):
        data = validated(ReasonSerializer, request.data)
        order = services.customer_cancel(request.user, lead_id, data['reason'])
        return order_response(order, 'Order cancelled successfully')


class RemoveItemView(APIView):
    """DELETE: Remove one item from a pending order. Body: {"item_code": 12}"""
    permission_classes = [CUSTOMER]

    def delete(self, request, lead_id):
        data = validated(RemoveItemSerializer, request.data)
        order = services.remove_item(request.user, lead_id, data['item_code'])
        if not order.is_active:
            return order_response(order, 'Last item removed, order deactivated')
        return order_response(order, 'Item removed from order')


class ApplyPromoView(APIView):
    permission_classes = [CUSTOMER]

    def post(self, request, lead_id):
        data = validated(ApplyPromoSerializer, request.data)
        order = services.apply_promo(request.user, lead_id, data['promo_id'])
        return order_response(order, 'Promo applied successfully')


class PlaceOrderView(APIView):
    """
    POST: Submit the cart to the vendor.

    Request Body:
    {
        "delivery_address": "...",
        "delivery_pincode": "560001",
        "delivery_expected_date": "2025-01-10T10:00:00Z",
        "receiver_phone": "9876543210"
    }
    """
    permission_classes = [CUSTOMER]

    def post(self, request, lead_id):
        data = validated(PlaceOrderSerializer, request.data)
        order = services.place_order(request.user, lead_id, data)
        return order_response(order, 'Order placed successfully')


class CustomerPaymentView(APIView):
    """
    POST: Start payment for a vendor-accepted order. Completes asynchronously.
    GET: Current payment status.
    """
    permission_classes = [CUSTOMER]

    def post(self, request, lead_id):
        data = validated(InitiatePaymentSerializer, request.data)
        payment = services.initiate_payment(
            request.user, lead_id, data['payment_type'], data['payment_mode']
        )
        return Response({
            'message': 'Payment initiated successfully',
            'payment': payment.summary(),
        }, status=status.HTTP_201_CREATED)

    def get(self, request, lead_id):
        payment = services.get_payment_status(request.user, lead_id)
        return Response({'payment': payment.summary()})


# =============================================================================
# Vendor Views
# =============================================================================

class VendorOrderListView(generics.ListAPIView):
    """
    GET: Orders placed with the vendor. Carts that were never placed are hidden.

    Query Parameters:
        - status, payment_status, search
    """
    permission_classes = [VENDOR]
    serializer_class = OrderListSerializer

    def get_queryset(self):
        queryset = Order.objects.filter(
            vendor=self.request.user, is_active=True, placed_at__isnull=False
        ).select_related('customer', 'vendor')
        return filter_orders(queryset, self.request.query_params)


class VendorPendingOrderListView(generics.ListAPIView):
    """GET: Placed orders awaiting the vendor's decision, oldest first."""
    permission_classes = [VENDOR]
    serializer_class = OrderListSerializer

    def get_queryset(self):
        return Order.objects.filter(
            vendor=self.request.user,
            is_active=True,
            status=OrderStatus.PENDING,
            placed_at__isnull=False,
        ).select_related('customer', 'vendor').order_by('placed_at')


class VendorOrderStatsView(APIView):
    permission_classes = [VENDOR]

    def get(self, request):
        queryset = Order.objects.filter(vendor=request.user, placed_at__isnull=False)
        return Response({'stats': services.order_stats(queryset)})


class VendorOrderDetailView(APIView):
    permission_classes = [VENDOR]

    def get(self, request, lead_id):
        return order_response(services.get_vendor_order(request.user, lead_id))


class VendorAcceptOrderView(APIView):
    permission_classes = [VENDOR]

    def post(self, request, lead_id):
        data = validated(RemarksSerializer, request.data)
        order = services.accept_order(request.user, lead_id, data['remarks'])
        return order_response(order, 'Order accepted successfully')


class VendorRejectOrderView(APIView):
    permission_classes = [VENDOR]

    def post(self, request, lead_id):
        data = validated(ReasonSerializer, request.data)
        order = services.reject_order(request.user, lead_id, data['reason'])
        return order_response(order, 'Order rejected successfully')


class VendorDeliveryView(APIView):
    """
    PUT: Update tracking and delivery status.

    A delivery status of in_transit, out_for_delivery or delivered moves the
    order to the same status when that is a step forward.
    """
    permission_classes = [VENDOR]

    def put(self, request, lead_id):
        data = validated(DeliveryUpdateSerializer, request.data)
        order, delivery = services.vendor_update_delivery(request.user, lead_id, data)
        return order_response(
            order, 'Delivery information updated', delivery=OrderDeliverySerializer(delivery).data
        )


class VendorOrderStatusView(APIView):
    """PUT: Advance shipping status. Body: {"status": "truck_loading", "remarks": ""}"""
    permission_classes = [VENDOR]

    def put(self, request, lead_id):
        data = validated(StatusUpdateSerializer, request.data)
        order = services.vendor_update_status(request.user, lead_id, data['status'], data['remarks'])
        return order_response(order, f"Order status updated to {order.status}")


# =============================================================================
# Admin Views
# =============================================================================

class AdminOrderListView(generics.ListAPIView):
    """
    GET: All orders.

    Query Parameters:
        - status, payment_status, search
        - vendor_id, customer_id
    """
    permission_classes = [ADMIN_READ]
    serializer_class = OrderListSerializer

    def get_queryset(self):
        params = self.request.query_params
        queryset = Order.objects.filter(is_active=True).select_related('customer', 'vendor')
        if params.get('vendor_id'):
            queryset = queryset.filter(vendor_id=params['vendor_id'])
        if params.get('customer_id'):
            queryset = queryset.filter(customer_id=params['customer_id'])
        return filter_orders(queryset, params)


class AdminOrderStatsView(APIView):
    permission_classes = [ADMIN_READ]

    def get(self, request):
        return Response({'stats': services.admin_order_stats()})


class AdminOrderDateRangeView(generics.ListAPIView):
    """GET: Orders created within [start_date, end_date]."""
    permission_classes = [ADMIN_READ]
    serializer_class = OrderListSerializer

    def get_queryset(self):
        data = validated(DateRangeSerializer, self.request.query_params)
        return Order.objects.filter(
            is_active=True,
            created_at__gte=data['start_date'],
            created_at__lte=data['end_date'],
        ).select_related('customer', 'vendor').order_by('-created_at')


class AdminOrderDetailView(APIView):
    permission_classes = [ADMIN_READ]

    def get(self, request, lead_id):
        order = services.get_order(lead_id)
        event = order.current_status_event()
        return order_response(
            order,
            current_status_event=OrderStatusEventSerializer(event).data if event else None,
        )


class AdminCancelOrderView(APIView):
    permission_classes = [ADMIN_WRITE]

    def post(self, request, lead_id):
        data = validated(ReasonSerializer, request.data)
        order = services.admin_cancel(request.user, lead_id, data['reason'])
        return order_response(order, 'Order cancelled successfully')


class AdminOrderStatusView(APIView):
    """PUT: Override order status. Never leaves delivered."""
    permission_classes = [ADMIN_WRITE]

    def put(self, request, lead_id):
        data = validated(StatusUpdateSerializer, request.data)
        logger.warning(f"Status override requested on order {lead_id} by user #{request.user.pk}: {data['status']}")
        order = services.admin_set_status(request.user, lead_id, data['status'], data['remarks'])
        return order_response(order, f"Order status updated to {order.status}")


class AdminOrderHistoryView(APIView):
    permission_classes = [ADMIN_READ]

    def get(self, request, lead_id):
        events = services.status_history(lead_id)
        if not events.exists():
            services.get_order(lead_id)
        return Response({
            'lead_id': lead_id,
            'history': OrderStatusEventSerializer(events, many=True).data,
        })


class AdminOrderPaymentView(APIView):
    """
    GET: Payment details for the order
    POST: Record a manual payment; the order moves to payment_done
    """

    def get_permissions(self):
        if self.request.method == 'POST':
            return [ADMIN_WRITE()]
        return [ADMIN_READ()]

    def get(self, request, lead_id):
        payment = services.get_payment(services.get_order(lead_id))
        return Response({'payment': OrderPaymentSerializer(payment).data})

    def post(self, request, lead_id):
        data = validated(ManualPaymentSerializer, request.data)
        order = services.mark_payment_done(
            request.user,
            lead_id,
            data['paid_amount'],
            payment_method=data['payment_method'],
            transaction_id=data['transaction_id'],
            remarks=data['remarks'],
        )
        return order_response(order, 'Payment marked as done')


class AdminConfirmOrderView(APIView):
    permission_classes = [ADMIN_WRITE]

    def post(self, request, lead_id):
        data = validated(RemarksSerializer, request.data)
        order = services.confirm_order(request.user, lead_id, data['remarks'])
        return order_response(order, 'Order confirmed successfully')


class AdminDeliveryView(APIView):
    """
    GET: Delivery record (created on first access for placed orders)
    PUT: Update tracking and delivery status
    """

    def get_permissions(self):
        if self.request.method == 'PUT':
            return [ADMIN_WRITE()]
        return [ADMIN_READ()]

    def get(self, request, lead_id):
        delivery = services.get_or_create_delivery(services.get_order(lead_id))
        return Response({'delivery': OrderDeliverySerializer(delivery).data})

    def put(self, request, lead_id):
        data = validated(DeliveryUpdateSerializer, request.data)
        order, delivery = services.admin_update_delivery(request.user, lead_id, data)
        return order_response(
            order, 'Delivery information updated', delivery=OrderDeliverySerializer(delivery).data
        )


class AdminMarkDeliveredView(APIView):
    permission_classes = [ADMIN_WRITE]

    def post(self, request, lead_id):
        data = validated(MarkDeliveredSerializer, request.data)
        order, delivery = services.mark_delivered(request.user, lead_id, data['received_by'], data['remarks'])
        return order_response(
            order, 'Order marked as delivered', delivery=OrderDeliverySerializer(delivery).data
        )


class AdminPaymentListView(generics.ListAPIView):
    """
    GET: All payments.

    Query Parameters:
        - payment_status: processing, completed, failed
        - payment_mode
    """
    permission_classes = [ADMIN_READ]
    serializer_class = OrderPaymentSerializer

    def get_queryset(self):
        params = self.request.query_params
        queryset = OrderPayment.objects.filter(is_active=True)
        if params.get('payment_status') in PaymentStatus.values:
            queryset = queryset.filter(payment_status=params['payment_status'])
        if params.get('payment_mode') in OrderPayment.PaymentMode.values:
            queryset = queryset.filter(payment_mode=params['payment_mode'])
        return queryset.order_by('-created_at')


class AdminPaymentStatsView(APIView):
    permission_classes = [ADMIN_READ]

    def get(self, request):
        return Response({'stats': services.payment_stats()})


class AdminDeliveryStatsView(APIView):
    permission_classes = [ADMIN_READ]

    def get(self, request):
        return Response({'stats': services.delivery_stats()})

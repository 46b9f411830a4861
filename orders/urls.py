"""
URL routing for order API endpoints.
"""
from django.urls import path
from . import views

app_name = 'orders'

urlpatterns = [
    # Customer
    path('cart/add/', views.AddToCartView.as_view(), name='cart-add'),
    path('customer/orders/', views.CustomerOrderListView.as_view(), name='customer-order-list'),
    path('customer/orders/<str:lead_id>/', views.CustomerOrderDetailView.as_view(), name='customer-order-detail'),
    path('customer/orders/<str:lead_id>/items/', views.RemoveItemView.as_view(), name='customer-order-items'),
    path('customer/orders/<str:lead_id>/promo/', views.ApplyPromoView.as_view(), name='customer-order-promo'),
    path('customer/orders/<str:lead_id>/place/', views.PlaceOrderView.as_view(), name='customer-order-place'),
    path('customer/orders/<str:lead_id>/payment/', views.CustomerPaymentView.as_view(), name='customer-order-payment'),

    # Vendor
    path('vendor/orders/', views.VendorOrderListView.as_view(), name='vendor-order-list'),
    path('vendor/orders/pending/', views.VendorPendingOrderListView.as_view(), name='vendor-order-pending'),
    path('vendor/orders/stats/', views.VendorOrderStatsView.as_view(), name='vendor-order-stats'),
    path('vendor/orders/<str:lead_id>/', views.VendorOrderDetailView.as_view(), name='vendor-order-detail'),
    path('vendor/orders/<str:lead_id>/accept/', views.VendorAcceptOrderView.as_view(), name='vendor-order-accept'),
    path('vendor/orders/<str:lead_id>/reject/', views.VendorRejectOrderView.as_view(), name='vendor-order-reject'),
    path('vendor/orders/<str:lead_id>/delivery/', views.VendorDeliveryView.as_view(), name='vendor-order-delivery'),
    path('vendor/orders/<str:lead_id>/status/', views.VendorOrderStatusView.as_view(), name='vendor-order-status'),

    # Admin
    path('admin/orders/', views.AdminOrderListView.as_view(), name='admin-order-list'),
    path('admin/orders/stats/', views.AdminOrderStatsView.as_view(), name='admin-order-stats'),
    path('admin/orders/date-range/', views.AdminOrderDateRangeView.as_view(), name='admin-order-date-range'),
    path('admin/orders/<str:lead_id>/', views.AdminOrderDetailView.as_view(), name='admin-order-detail'),
    path('admin/orders/<str:lead_id>/cancel/', views.AdminCancelOrderView.as_view(), name='admin-order-cancel'),
    path('admin/orders/<str:lead_id>/status/', views.AdminOrderStatusView.as_view(), name='admin-order-status'),
    path('admin/orders/<str:lead_id>/history/', views.AdminOrderHistoryView.as_view(), name='admin-order-history'),
    path('admin/orders/<str:lead_id>/payment/', views.AdminOrderPaymentView.as_view(), name='admin-order-payment'),
    path('admin/orders/<str:lead_id>/confirm/', views.AdminConfirmOrderView.as_view(), name='admin-order-confirm'),
    path('admin/orders/<str:lead_id>/delivery/', views.AdminDeliveryView.as_view(), name='admin-order-delivery'),
    path('admin/orders/<str:lead_id>/delivered/', views.AdminMarkDeliveredView.as_view(), name='admin-order-delivered'),
    path('admin/payments/', views.AdminPaymentListView.as_view(), name='admin-payment-list'),
    path('admin/payments/stats/', views.AdminPaymentStatsView.as_view(), name='admin-payment-stats'),
    path('admin/deliveries/stats/', views.AdminDeliveryStatsView.as_view(), name='admin-delivery-stats'),
]

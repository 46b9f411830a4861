"""
URL routing for inventory API endpoints.
"""
from django.urls import path
from . import views

app_name = 'inventory'

urlpatterns = [
    # Items
    path('', views.InventoryListCreateView.as_view(), name='item-list'),
    path('<int:pk>/', views.InventoryDetailView.as_view(), name='item-detail'),
    path('<int:pk>/price/', views.ItemPriceView.as_view(), name='item-price'),
    path('<int:pk>/shipping/', views.ItemShippingView.as_view(), name='item-shipping'),
    path('<int:pk>/promo/', views.ItemPromoListView.as_view(), name='item-promos'),

    # Pricing
    path('price/', views.PriceListUpsertView.as_view(), name='price-list'),
    path('shipping/', views.ShippingUpsertView.as_view(), name='shipping-upsert'),
    path('shipping/calculate/', views.ShippingQuoteView.as_view(), name='shipping-calculate'),

    # Promos
    path('promo/', views.PromoListCreateView.as_view(), name='promo-list'),
    path('promo/calculate/', views.PromoQuoteView.as_view(), name='promo-calculate'),

    # Lookups
    path('categories/', views.CategoryListView.as_view(), name='category-list'),
    path('categories/<str:category>/subcategories/', views.SubCategoryListView.as_view(), name='subcategory-list'),
    path('stats/', views.InventoryStatsView.as_view(), name='stats'),
    path('vendors/', views.VendorListView.as_view(), name='vendor-list'),
]

"""
Tests for the pricing engine and the inventory API.

Test Cases:
1. Item totals and tax inclusive prices
2. Shipping band lookup, boundaries inclusive
3. Promo status and discount caps
4. Price recomputes total_price on save
5. Inventory visibility and ownership by role
6. Price/shipping upserts and quote endpoints
"""
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from accounts.models import User
from accounts.roles import Role
from core.exceptions import NotFoundError
from inventory import pricing
from inventory.models import Category, InventoryItem, Price, Promo, ShippingPriceTable


def make_user(role, suffix):
    return User.objects.create_user(
        email=f"{role}{suffix}@example.com",
        password='password123',
        name=f"{role.title()} {suffix}",
        phone=f"9{suffix.zfill(9)}",
        role=role,
    )


def make_item(vendor, description='OPC 53 cement bag', **extra):
    return InventoryItem.objects.create(
        description=description,
        category=extra.pop('category', Category.CEMENT),
        sub_category=extra.pop('sub_category', 'OPC 53 Grade'),
        units='bag',
        vendor=vendor,
        created_by=vendor,
        **extra
    )


def shipping_table(fees=('100', '80', '60', '40', '20'), is_active=True):
    return SimpleNamespace(fees=tuple(Decimal(f) for f in fees), is_active=is_active)


def promo(now, **overrides):
    fields = {
        'is_active': True,
        'start_date': now - timedelta(days=1),
        'end_date': now + timedelta(days=1),
        'usage_limit': None,
        'used_count': 0,
        'min_order_value': Decimal('0'),
        'discount_type': 'percentage',
        'discount': Decimal('10'),
        'discount_amount': None,
        'max_discount_amount': None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


class ItemPricingTestCase(SimpleTestCase):

    def test_item_total_is_qty_times_unit_price(self):
        self.assertEqual(pricing.compute_item_total(Decimal('100'), 3), Decimal('300'))
        self.assertEqual(pricing.compute_item_total('99.99', 7), Decimal('699.93'))

    def test_tax_inclusive_price(self):
        self.assertEqual(pricing.compute_tax_inclusive_price(Decimal('100'), Decimal('18')), Decimal('118'))
        self.assertEqual(pricing.compute_tax_inclusive_price(Decimal('250'), Decimal('0')), Decimal('250'))

    def test_quantize_money_rounds_half_up(self):
        self.assertEqual(pricing.quantize_money(Decimal('10.005')), Decimal('10.01'))
        self.assertEqual(pricing.quantize_money(Decimal('10.004')), Decimal('10.00'))


class ShippingLookupTestCase(SimpleTestCase):

    def test_band_boundaries_are_inclusive(self):
        table = shipping_table()
        self.assertEqual(pricing.lookup_shipping_fee(table, Decimal('0')), Decimal('100'))
        self.assertEqual(pricing.lookup_shipping_fee(table, Decimal('50000')), Decimal('100'))
        self.assertEqual(pricing.lookup_shipping_fee(table, Decimal('50001')), Decimal('80'))
        self.assertEqual(pricing.lookup_shipping_fee(table, Decimal('100000')), Decimal('80'))
        self.assertEqual(pricing.lookup_shipping_fee(table, Decimal('150000.01')), Decimal('40'))
        self.assertEqual(pricing.lookup_shipping_fee(table, Decimal('200001')), Decimal('20'))

    def test_band_index_is_monotonic(self):
        values = [Decimal(v) for v in ('0', '1', '49999.99', '50000', '75000', '100000', '100000.01',
                                       '150000', '199999', '200000', '200000.01', '9999999')]
        indexes = [pricing.band_index(v) for v in values]
        self.assertEqual(indexes, sorted(indexes))
        self.assertEqual(indexes[-1], len(pricing.SHIPPING_BANDS) - 1)

    def test_missing_or_inactive_table(self):
        with self.assertRaises(NotFoundError):
            pricing.lookup_shipping_fee(None, Decimal('100'))
        with self.assertRaises(NotFoundError):
            pricing.lookup_shipping_fee(shipping_table(is_active=False), Decimal('100'))


class PromoPricingTestCase(SimpleTestCase):

    def setUp(self):
        self.now = timezone.now()

    def test_percentage_discount_capped(self):
        p = promo(self.now, max_discount_amount=Decimal('40'))
        self.assertEqual(pricing.compute_promo_discount(p, Decimal('1000'), self.now), Decimal('40'))
        self.assertEqual(pricing.compute_promo_discount(p, Decimal('300'), self.now), Decimal('30'))

    def test_fixed_discount_never_exceeds_order_value(self):
        p = promo(self.now, discount_type='fixed', discount_amount=Decimal('500'))
        self.assertEqual(pricing.compute_promo_discount(p, Decimal('200'), self.now), Decimal('200'))
        self.assertEqual(pricing.compute_promo_discount(p, Decimal('800'), self.now), Decimal('500'))

    def test_discount_bounds_hold_across_values(self):
        p = promo(self.now, discount=Decimal('35'), max_discount_amount=Decimal('120'))
        for value in ('0', '1', '99.99', '342.86', '1000', '25000'):
            discount = pricing.compute_promo_discount(p, Decimal(value), self.now)
            self.assertGreaterEqual(discount, Decimal('0'))
            self.assertLessEqual(discount, Decimal(value))
            self.assertLessEqual(discount, Decimal('120'))

    def test_below_minimum_order_value(self):
        p = promo(self.now, min_order_value=Decimal('5000'))
        self.assertEqual(pricing.compute_promo_discount(p, Decimal('4999.99'), self.now), Decimal('0'))
        self.assertEqual(pricing.compute_promo_discount(p, Decimal('5000'), self.now), Decimal('500'))

    def test_redeemed_discount_ignores_status_but_keeps_caps(self):
        exhausted = promo(self.now, usage_limit=1, used_count=1, max_discount_amount=Decimal('40'))
        self.assertEqual(pricing.compute_promo_discount(exhausted, Decimal('1000'), self.now), Decimal('0'))
        self.assertEqual(pricing.compute_redeemed_discount(exhausted, Decimal('1000')), Decimal('40'))

        expired = promo(self.now, end_date=self.now - timedelta(hours=1), min_order_value=Decimal('500'))
        self.assertEqual(pricing.compute_redeemed_discount(expired, Decimal('600')), Decimal('60'))
        self.assertEqual(pricing.compute_redeemed_discount(expired, Decimal('499')), Decimal('0'))

    def test_status_order_of_checks(self):
        now = self.now
        self.assertEqual(pricing.promo_status(promo(now, is_active=False), now), pricing.PromoStatus.INACTIVE)
        self.assertEqual(
            pricing.promo_status(promo(now, start_date=now + timedelta(hours=1)), now),
            pricing.PromoStatus.UPCOMING
        )
        self.assertEqual(
            pricing.promo_status(promo(now, end_date=now - timedelta(seconds=1)), now),
            pricing.PromoStatus.EXPIRED
        )
        self.assertEqual(
            pricing.promo_status(promo(now, usage_limit=5, used_count=5), now),
            pricing.PromoStatus.EXHAUSTED
        )
        self.assertEqual(pricing.promo_status(promo(now, usage_limit=0, used_count=99), now), pricing.PromoStatus.ACTIVE)

    def test_window_is_inclusive(self):
        now = self.now
        self.assertEqual(pricing.promo_status(promo(now, start_date=now), now), pricing.PromoStatus.ACTIVE)
        self.assertEqual(pricing.promo_status(promo(now, end_date=now), now), pricing.PromoStatus.ACTIVE)

    def test_inactive_promo_grants_nothing(self):
        p = promo(self.now, end_date=self.now - timedelta(days=1))
        self.assertEqual(pricing.compute_promo_discount(p, Decimal('1000'), self.now), Decimal('0'))


class InventoryModelTestCase(TestCase):

    def setUp(self):
        self.vendor = make_user(Role.VENDOR, '1')
        self.item = make_item(self.vendor)

    def test_price_total_recomputed_on_save(self):
        price = Price.objects.create(
            item=self.item, unit_price=Decimal('100'), tax=Decimal('18'),
            vendor=self.vendor, created_by=self.vendor
        )
        self.assertEqual(price.total_price, Decimal('118'))

        price.unit_price = Decimal('200')
        price.save(update_fields=['unit_price'])
        price.refresh_from_db()
        self.assertEqual(price.total_price, Decimal('236.00'))

    def test_promo_id_generated_and_usage_counted(self):
        now = timezone.now()
        p = Promo.objects.create(
            name='Monsoon', item=self.item, discount=Decimal('10'),
            start_date=now - timedelta(days=1), end_date=now + timedelta(days=1),
            usage_limit=2, created_by=self.vendor
        )
        self.assertTrue(p.promo_id.startswith('PROMO-'))
        self.assertEqual(Promo.objects.get(promo_id=p.promo_id), p)

        p.use()
        p.use()
        self.assertEqual(p.used_count, 2)
        self.assertEqual(p.status, pricing.PromoStatus.EXHAUSTED)

    def test_promo_ids_assigned_before_insert(self):
        now = timezone.now()
        window = {'start_date': now, 'end_date': now + timedelta(days=1)}
        first = Promo(name='A', item=self.item, created_by=self.vendor, **window)
        second = Promo(name='B', item=self.item, created_by=self.vendor, **window)

        self.assertTrue(first.promo_id)
        self.assertNotEqual(first.promo_id, second.promo_id)

        first.save()
        second.save()
        self.assertEqual(Promo.objects.filter(promo_id__in=[first.promo_id, second.promo_id]).count(), 2)

    def test_shipping_tiers_are_labelled_in_band_order(self):
        table = ShippingPriceTable.objects.create(
            item=self.item, price_0_to_50k=Decimal('100'), price_50k_to_100k=Decimal('80'),
            vendor=self.vendor, created_by=self.vendor
        )
        self.assertEqual(list(table.tiers), [band.label for band in pricing.SHIPPING_BANDS])
        self.assertEqual(table.tiers['0-50K'], Decimal('100'))


class InventoryApiTestCase(APITestCase):

    def setUp(self):
        self.vendor = make_user(Role.VENDOR, '1')
        self.other_vendor = make_user(Role.VENDOR, '2')
        self.customer = make_user(Role.CUSTOMER, '3')
        self.admin = make_user(Role.ADMIN, '4')
        self.item = make_item(self.vendor)
        self.hidden = make_item(self.vendor, description='Old stock', is_active=False)
        self.foreign = make_item(self.other_vendor, description='TMT 12mm', category=Category.IRON,
                                 sub_category='TMT Bars')

    def test_customer_sees_only_active_items(self):
        self.client.force_authenticate(self.customer)
        response = self.client.get('/api/inventory/')

        self.assertEqual(response.status_code, 200)
        ids = {row['id'] for row in response.data['results']}
        self.assertEqual(ids, {self.item.pk, self.foreign.pk})
        self.assertEqual(response.data['pagination']['total_items'], 2)

    def test_vendor_sees_only_own_items(self):
        self.client.force_authenticate(self.vendor)
        response = self.client.get('/api/inventory/')

        ids = {row['id'] for row in response.data['results']}
        self.assertEqual(ids, {self.item.pk, self.hidden.pk})

    def test_vendor_cannot_read_other_vendor_item(self):
        self.client.force_authenticate(self.vendor)
        response = self.client.get(f'/api/inventory/{self.foreign.pk}/')
        self.assertEqual(response.status_code, 403)

    def test_vendor_creates_item_owned_by_itself(self):
        self.client.force_authenticate(self.vendor)
        response = self.client.post('/api/inventory/', {
            'description': 'PPC cement',
            'category': 'Cement',
            'sub_category': 'PPC',
            'units': 'bag',
            'vendor_id': self.other_vendor.pk,
        }, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(InventoryItem.objects.get(pk=response.data['id']).vendor, self.vendor)

    def test_sub_category_must_match_category(self):
        self.client.force_authenticate(self.vendor)
        response = self.client.post('/api/inventory/', {
            'description': 'Wrong',
            'category': 'Cement',
            'sub_category': 'TMT Bars',
            'units': 'bag',
        }, format='json')
        self.assertEqual(response.status_code, 400)

    def test_staff_must_name_a_vendor(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/inventory/', {
            'description': 'PPC cement',
            'category': 'Cement',
            'sub_category': 'PPC',
            'units': 'bag',
        }, format='json')
        self.assertEqual(response.status_code, 400)

    def test_customer_cannot_create_items(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post('/api/inventory/', {}, format='json')
        self.assertEqual(response.status_code, 403)

    def test_delete_is_soft(self):
        self.client.force_authenticate(self.vendor)
        response = self.client.delete(f'/api/inventory/{self.item.pk}/')

        self.assertEqual(response.status_code, 200)
        self.item.refresh_from_db()
        self.assertFalse(self.item.is_active)

    def test_price_upsert_computes_tax(self):
        self.client.force_authenticate(self.vendor)
        payload = {'item_code': self.item.pk, 'unit_price': '100.00', 'tax': '18'}

        first = self.client.post('/api/inventory/price/', payload, format='json')
        second = self.client.post('/api/inventory/price/', {**payload, 'unit_price': '200.00'}, format='json')

        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.status_code, 201)
        self.assertEqual(Price.objects.filter(item=self.item).count(), 1)
        self.assertEqual(Price.objects.get(item=self.item).total_price, Decimal('236.00'))

    def test_vendor_cannot_price_foreign_item(self):
        self.client.force_authenticate(self.vendor)
        response = self.client.post('/api/inventory/price/', {
            'item_code': self.foreign.pk, 'unit_price': '10', 'tax': '0'
        }, format='json')
        self.assertEqual(response.status_code, 403)

    def test_shipping_quote(self):
        ShippingPriceTable.objects.create(
            item=self.item,
            price_0_to_50k=Decimal('100'), price_50k_to_100k=Decimal('80'),
            price_100k_to_150k=Decimal('60'), price_150k_to_200k=Decimal('40'),
            price_above_200k=Decimal('20'),
            vendor=self.vendor, created_by=self.vendor
        )
        self.client.force_authenticate(self.customer)

        at_boundary = self.client.get('/api/inventory/shipping/calculate/',
                                      {'item_code': self.item.pk, 'order_value': '50000'})
        above = self.client.get('/api/inventory/shipping/calculate/',
                                {'item_code': self.item.pk, 'order_value': '50001'})

        self.assertEqual(Decimal(at_boundary.data['shipping_cost']), Decimal('100'))
        self.assertEqual(Decimal(above.data['shipping_cost']), Decimal('80'))

    def test_shipping_quote_without_table(self):
        self.client.force_authenticate(self.customer)
        response = self.client.get('/api/inventory/shipping/calculate/',
                                   {'item_code': self.item.pk, 'order_value': '100'})
        self.assertEqual(response.status_code, 404)

    def test_promo_quote(self):
        now = timezone.now()
        p = Promo.objects.create(
            name='Bulk', item=self.item, discount=Decimal('10'), max_discount_amount=Decimal('40'),
            start_date=now - timedelta(days=1), end_date=now + timedelta(days=1), created_by=self.vendor
        )
        self.client.force_authenticate(self.customer)

        response = self.client.post('/api/inventory/promo/calculate/',
                                    {'promo_id': p.promo_id, 'order_value': '1000'}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(Decimal(response.data['discount_amount']), Decimal('40'))
        self.assertEqual(Decimal(response.data['final_amount']), Decimal('960'))
        self.assertTrue(response.data['is_valid'])

    def test_promo_end_must_follow_start(self):
        now = timezone.now()
        self.client.force_authenticate(self.vendor)
        response = self.client.post('/api/inventory/promo/', {
            'name': 'Backwards',
            'item_code': self.item.pk,
            'discount': '5',
            'start_date': now.isoformat(),
            'end_date': (now - timedelta(days=1)).isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, 400)

    def test_subcategories_of_unknown_category(self):
        self.client.force_authenticate(self.customer)
        ok = self.client.get('/api/inventory/categories/Iron/subcategories/')
        bad = self.client.get('/api/inventory/categories/Wood/subcategories/')

        self.assertIn('TMT Bars', ok.data['sub_categories'])
        self.assertEqual(bad.status_code, 400)

    def test_stats_require_permission(self):
        self.client.force_authenticate(self.customer)
        self.assertEqual(self.client.get('/api/inventory/stats/').status_code, 403)

        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/inventory/stats/')
        self.assertEqual(response.data['stats']['total_items'], 2)

"""
Management command to seed the database with sample marketplace data.

Generates:
- vendor and customer accounts (password: "password123")
- inventory items across every category/sub-category
- a Price and ShippingPriceTable per item
- promos on a share of the items

Usage:
    python manage.py seed_data
    python manage.py seed_data --clear  # Clear existing data first
"""
import random
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from accounts.models import User
from accounts.roles import Role
from inventory.models import InventoryItem, Price, Promo, ShippingPriceTable, SUB_CATEGORIES

SEED_PASSWORD = 'password123'

UNITS = {
    'Cement': 'bag',
    'Iron': 'tonne',
    'Concrete Mixer': 'unit',
}

BASE_PRICES = {
    'Cement': (320, 480),
    'Iron': (52000, 68000),
    'Concrete Mixer': (45000, 350000),
}

BRANDS = [
    'UltraTech', 'ACC', 'Ambuja', 'Shree', 'Dalmia', 'JSW', 'Tata Tiscon',
    'SAIL', 'Kamdhenu', 'Vizag', 'Greaves', 'Escorts', 'Ajax', 'Schwing'
]

CITIES = ['Mumbai', 'Pune', 'Bengaluru', 'Hyderabad', 'Chennai', 'Ahmedabad', 'Jaipur', 'Lucknow']


class Command(BaseCommand):
    help = 'Seed the database with sample vendors, customers, inventory, prices and promos'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding',
        )
        parser.add_argument(
            '--vendors',
            type=int,
            default=5,
            help='Number of vendors to create (default: 5)',
        )
        parser.add_argument(
            '--customers',
            type=int,
            default=10,
            help='Number of customers to create (default: 10)',
        )
        parser.add_argument(
            '--items',
            type=int,
            default=8,
            help='Items per vendor (default: 8)',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear_data()

        self.stdout.write('Starting database seeding...')

        with transaction.atomic():
            vendors = self._create_users(Role.VENDOR, options['vendors'], phone_prefix='98')
            self._create_users(Role.CUSTOMER, options['customers'], phone_prefix='97')
            items = self._create_items(vendors, options['items'])
            self._create_prices(items)
            self._create_promos(items)

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))

    def _clear_data(self):
        """Clear marketplace data, keeping staff accounts."""
        from orders.models import Order, OrderDelivery, OrderPayment, OrderStatusEvent

        OrderStatusEvent.objects.all().delete()
        OrderDelivery.objects.all().delete()
        OrderPayment.objects.all().delete()
        Order.objects.all().delete()
        Promo.objects.all().delete()
        InventoryItem.objects.all().delete()
        User.objects.filter(role__in=[Role.VENDOR, Role.CUSTOMER]).delete()

        self.stdout.write(self.style.WARNING('All existing data cleared.'))

    def _create_users(self, role, count, phone_prefix):
        users = []
        for i in range(count):
            email = f"{role}{i + 1}@example.com"
            user = User.objects.filter(email=email).first()
            if user is None:
                city = random.choice(CITIES)
                user = User.objects.create_user(
                    email=email,
                    password=SEED_PASSWORD,
                    name=f"{role.label} {i + 1}",
                    phone=f"{phone_prefix}{random.randint(10 ** 7, 10 ** 8 - 1)}",
                    role=role,
                    address=f"{random.randint(1, 300)} Industrial Area, {city}",
                    company_name=f"{random.choice(BRANDS)} Traders {city}" if role == Role.VENDOR else '',
                )
            users.append(user)

        self.stdout.write(self.style.SUCCESS(f'Created {len(users)} {role.label.lower()} accounts'))
        return users

    def _create_items(self, vendors, per_vendor):
        items = []
        for vendor in vendors:
            for _ in range(per_vendor):
                category = random.choice(list(SUB_CATEGORIES))
                sub_category = random.choice(SUB_CATEGORIES[category])
                items.append(InventoryItem.objects.create(
                    description=f"{random.choice(BRANDS)} {sub_category}",
                    category=category,
                    sub_category=sub_category,
                    grade=sub_category if category == 'Cement' else '',
                    units=UNITS[category],
                    hsn_code=str(random.randint(2500, 8500)),
                    delivery_information='Delivered within 3-7 working days',
                    vendor=vendor,
                    created_by=vendor,
                ))

        self.stdout.write(self.style.SUCCESS(f'Created {len(items)} inventory items'))
        return items

    def _create_prices(self, items):
        for item in items:
            low, high = BASE_PRICES[item.category]
            unit_price = Decimal(random.randint(low, high))
            Price.objects.create(
                item=item,
                unit_price=unit_price,
                cgst=Decimal('9'),
                sgst=Decimal('9'),
                tax=Decimal('18'),
                margin_percentage=Decimal(random.randint(5, 15)),
                vendor=item.vendor,
                created_by=item.vendor,
            )
            base_fee = Decimal(random.choice([500, 750, 1000]))
            ShippingPriceTable.objects.create(
                item=item,
                price_0_to_50k=base_fee,
                price_50k_to_100k=base_fee * Decimal('0.8'),
                price_100k_to_150k=base_fee * Decimal('0.6'),
                price_150k_to_200k=base_fee * Decimal('0.4'),
                price_above_200k=Decimal('0'),
                vendor=item.vendor,
                created_by=item.vendor,
            )

        self.stdout.write(self.style.SUCCESS(f'Created prices and shipping tables for {len(items)} items'))

    def _create_promos(self, items):
        now = timezone.now()
        promos = 0
        for item in random.sample(items, k=len(items) // 3):
            Promo.objects.create(
                name=f"{item.sub_category} season offer",
                item=item,
                discount=Decimal(random.choice([5, 10, 15])),
                discount_type=Promo.DiscountType.PERCENTAGE,
                start_date=now - timedelta(days=1),
                end_date=now + timedelta(days=30),
                min_order_value=Decimal('1000'),
                max_discount_amount=Decimal(random.choice([500, 2000, 5000])),
                usage_limit=random.choice([None, 50, 100]),
                created_by=item.vendor,
            )
            promos += 1

        self.stdout.write(self.style.SUCCESS(f'Created {promos} promos'))

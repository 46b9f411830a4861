from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import inventory.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='InventoryItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('description', models.CharField(db_index=True, help_text='Item description shown to buyers', max_length=300)),
                ('category', models.CharField(choices=[('Cement', 'Cement'), ('Iron', 'Iron'), ('Concrete Mixer', 'Concrete Mixer')], db_index=True, max_length=30)),
                ('sub_category', models.CharField(max_length=60)),
                ('grade', models.CharField(blank=True, default='', max_length=60)),
                ('units', models.CharField(help_text='Unit of measure, e.g. bag, tonne', max_length=30)),
                ('details', models.TextField(blank=True, default='')),
                ('specification', models.TextField(blank=True, default='')),
                ('delivery_information', models.TextField(blank=True, default='')),
                ('hsn_code', models.CharField(blank=True, default='', max_length=20)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('vendor', models.ForeignKey(limit_choices_to={'role': 'vendor'}, on_delete=django.db.models.deletion.PROTECT, related_name='inventory_items', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Inventory Item',
                'verbose_name_plural': 'Inventory Items',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['vendor', 'is_active'], name='inventory_i_vendor__9d349d_idx'),
                    models.Index(fields=['category', 'sub_category'], name='inventory_i_categor_0a12ee_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Price',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('unit_price', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('margin', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('margin_percentage', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=5, validators=[django.core.validators.MinValueValidator(Decimal('0')), django.core.validators.MaxValueValidator(Decimal('100'))])),
                ('cgst', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=5)),
                ('sgst', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=5)),
                ('igst', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=5)),
                ('tax', models.DecimalField(decimal_places=2, default=Decimal('0'), help_text='Flat tax percentage applied to the unit price', max_digits=5)),
                ('total_price', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('item', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='price', to='inventory.inventoryitem')),
                ('vendor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Price',
                'verbose_name_plural': 'Prices',
                'ordering': ['unit_price'],
                'indexes': [models.Index(fields=['vendor', 'is_active'], name='inventory_p_vendor__9b59a5_idx')],
            },
        ),
        migrations.CreateModel(
            name='ShippingPriceTable',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('price_0_to_50k', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('price_50k_to_100k', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('price_100k_to_150k', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('price_150k_to_200k', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('price_above_200k', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('item', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='shipping_table', to='inventory.inventoryitem')),
                ('vendor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Shipping Price Table',
                'verbose_name_plural': 'Shipping Price Tables',
                'indexes': [models.Index(fields=['vendor', 'is_active'], name='inventory_s_vendor__1ec2f6_idx')],
            },
        ),
        migrations.CreateModel(
            name='Promo',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('promo_id', models.CharField(default=inventory.models.generate_promo_id, editable=False, max_length=40, unique=True)),
                ('name', models.CharField(max_length=200)),
                ('discount', models.DecimalField(decimal_places=2, default=Decimal('0'), help_text='Percentage discount (percentage promos)', max_digits=5, validators=[django.core.validators.MinValueValidator(Decimal('0')), django.core.validators.MaxValueValidator(Decimal('100'))])),
                ('discount_amount', models.DecimalField(blank=True, decimal_places=2, help_text='Flat discount (fixed promos)', max_digits=12, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('discount_type', models.CharField(choices=[('percentage', 'Percentage'), ('fixed', 'Fixed')], default='percentage', max_length=20)),
                ('start_date', models.DateTimeField()),
                ('end_date', models.DateTimeField()),
                ('min_order_value', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('max_discount_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('usage_limit', models.PositiveIntegerField(blank=True, help_text='0 or empty means unlimited', null=True)),
                ('used_count', models.PositiveIntegerField(default=0)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='promos', to='inventory.inventoryitem')),
            ],
            options={
                'verbose_name': 'Promo',
                'verbose_name_plural': 'Promos',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['item', 'is_active'], name='inventory_p_item_id_0e2a0b_idx'),
                    models.Index(fields=['start_date', 'end_date'], name='inventory_p_start_d_c44cb6_idx'),
                ],
            },
        ),
    ]

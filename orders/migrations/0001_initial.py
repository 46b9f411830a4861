from decimal import Decimal

import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
import orders.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('inventory', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('lead_id', models.CharField(default=orders.models.generate_lead_id, editable=False, help_text='Stable external order identifier', max_length=32, unique=True)),
                ('invc_num', models.CharField(default=orders.models.generate_invoice_number, editable=False, help_text='Invoice number, generated once at creation', max_length=40, unique=True)),
                ('items', models.JSONField(default=list, encoder=django.core.serializers.json.DjangoJSONEncoder, help_text='Ordered line item records')),
                ('total_qty', models.PositiveIntegerField(default=0)),
                ('subtotal', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('total_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('delivery_address', models.TextField(default='Address to be updated')),
                ('delivery_pincode', models.CharField(default='000000', max_length=6, validators=[orders.models.pincode_validator])),
                ('delivery_expected_date', models.DateTimeField(default=orders.models.default_expected_delivery)),
                ('customer_phone', models.CharField(default='0000000000', max_length=10, validators=[orders.models.mobile_validator])),
                ('receiver_phone', models.CharField(default='0000000000', max_length=10, validators=[orders.models.mobile_validator])),
                ('promo_discount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('vendor_accepted', 'Vendor Accepted'), ('payment_done', 'Payment Done'), ('order_confirmed', 'Order Confirmed'), ('truck_loading', 'Truck Loading'), ('in_transit', 'In Transit'), ('shipped', 'Shipped'), ('out_for_delivery', 'Out For Delivery'), ('delivered', 'Delivered'), ('cancelled', 'Cancelled')], db_index=True, default='pending', help_text='Cached copy of the latest status event', max_length=20)),
                ('placed_at', models.DateTimeField(blank=True, help_text='Null while the order is still a cart', null=True)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='customer_orders', to=settings.AUTH_USER_MODEL)),
                ('promo', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='orders', to='inventory.promo')),
                ('vendor', models.ForeignKey(help_text='Every line item belongs to this vendor', on_delete=django.db.models.deletion.PROTECT, related_name='vendor_orders', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Order',
                'verbose_name_plural': 'Orders',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['customer', 'status'], name='orders_orde_custome_c9b64a_idx'),
                    models.Index(fields=['vendor', 'status'], name='orders_orde_vendor__d2c878_idx'),
                    models.Index(fields=['status', 'created_at'], name='orders_orde_status_25e057_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OrderStatusEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('lead_id', models.CharField(db_index=True, max_length=32)),
                ('invc_num', models.CharField(max_length=40)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('vendor_accepted', 'Vendor Accepted'), ('payment_done', 'Payment Done'), ('order_confirmed', 'Order Confirmed'), ('truck_loading', 'Truck Loading'), ('in_transit', 'In Transit'), ('shipped', 'Shipped'), ('out_for_delivery', 'Out For Delivery'), ('delivered', 'Delivered'), ('cancelled', 'Cancelled')], max_length=20)),
                ('actor_type', models.CharField(choices=[('customer', 'Customer'), ('vendor', 'Vendor'), ('operations', 'Operations'), ('system', 'System')], max_length=20)),
                ('remarks', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('actor', models.ForeignKey(blank=True, help_text='Null for system transitions', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='status_events', to='orders.order')),
                ('vendor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Order Status Event',
                'verbose_name_plural': 'Order Status Events',
                'ordering': ['created_at', 'id'],
                'indexes': [models.Index(fields=['order', 'created_at'], name='orders_orde_order_i_1e3f4d_idx')],
            },
        ),
        migrations.CreateModel(
            name='OrderDelivery',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('lead_id', models.CharField(max_length=32, unique=True)),
                ('invc_num', models.CharField(db_index=True, max_length=40)),
                ('address', models.TextField()),
                ('pincode', models.CharField(max_length=6, validators=[orders.models.pincode_validator])),
                ('delivery_expected_date', models.DateTimeField(blank=True, null=True)),
                ('delivery_actual_date', models.DateTimeField(blank=True, null=True)),
                ('tracking_number', models.CharField(blank=True, default='', max_length=100)),
                ('courier_service', models.CharField(blank=True, default='', max_length=100)),
                ('tracking_url', models.URLField(blank=True, default='')),
                ('delivery_status', models.CharField(choices=[('pending', 'Pending'), ('picked_up', 'Picked Up'), ('in_transit', 'In Transit'), ('out_for_delivery', 'Out For Delivery'), ('delivered', 'Delivered'), ('failed', 'Failed'), ('returned', 'Returned')], db_index=True, default='pending', max_length=20)),
                ('delivery_notes', models.TextField(blank=True, default='')),
                ('delivery_instructions', models.TextField(blank=True, default='')),
                ('contact_person', models.CharField(blank=True, default='', max_length=150)),
                ('contact_phone', models.CharField(blank=True, default='', max_length=15)),
                ('received_by', models.CharField(blank=True, default='', max_length=150)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('order', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='delivery', to='orders.order')),
                ('user', models.ForeignKey(help_text='Customer receiving the delivery', on_delete=django.db.models.deletion.PROTECT, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Order Delivery',
                'verbose_name_plural': 'Order Deliveries',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='OrderPayment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('invc_num', models.CharField(max_length=40, unique=True)),
                ('lead_id', models.CharField(db_index=True, max_length=32)),
                ('transaction_id', models.CharField(max_length=64, unique=True)),
                ('payment_type', models.CharField(blank=True, default='', max_length=30)),
                ('payment_mode', models.CharField(choices=[('upi', 'UPI'), ('card', 'Card'), ('net_banking', 'Net Banking'), ('bank_transfer', 'Bank Transfer'), ('cash', 'Cash')], default='upi', max_length=20)),
                ('order_amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('paid_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('payment_status', models.CharField(choices=[('processing', 'Processing'), ('completed', 'Completed'), ('failed', 'Failed')], db_index=True, default='processing', max_length=20)),
                ('completion_task_id', models.CharField(blank=True, default='', help_text='Celery task scheduled to complete this payment', max_length=64)),
                ('scheduled_for', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('failure_reason', models.CharField(blank=True, default='', max_length=255)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('customer', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Order Payment',
                'verbose_name_plural': 'Order Payments',
                'ordering': ['-created_at'],
            },
        ),
    ]

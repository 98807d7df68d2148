# Generated manually for the event catalogue

import django.core.validators
import django.db.models.deletion
import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Event',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('deleted_at', models.DateTimeField(blank=True, null=True, verbose_name='Deleted at')),
                ('name', models.CharField(max_length=255, verbose_name='name')),
                ('description', models.TextField(blank=True, verbose_name='description')),
                ('status', models.CharField(
                    choices=[
                        ('draft', 'Draft'),
                        ('published', 'Published'),
                        ('waitlist', 'Waitlist'),
                        ('cancelled', 'Cancelled'),
                        ('completed', 'Completed'),
                    ],
                    default='draft',
                    max_length=20,
                    verbose_name='status'
                )),
                ('verification_required', models.BooleanField(default=False, verbose_name='verification required')),
                ('location', models.CharField(blank=True, max_length=255, verbose_name='location')),
                ('start_date', models.DateTimeField(blank=True, null=True, verbose_name='start date')),
                ('registration_opens_at', models.DateTimeField(blank=True, null=True, verbose_name='registration opens at')),
                ('registration_closes_at', models.DateTimeField(blank=True, null=True, verbose_name='registration closes at')),
            ],
            options={
                'verbose_name': 'event',
                'verbose_name_plural': 'events',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Ticket',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('deleted_at', models.DateTimeField(blank=True, null=True, verbose_name='Deleted at')),
                ('name', models.CharField(max_length=255, verbose_name='name')),
                ('price', models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(0)], verbose_name='price')),
                ('quantity', models.PositiveIntegerField(blank=True, help_text='null = unlimited', null=True, verbose_name='quantity')),
                ('sold_count', models.PositiveIntegerField(default=0, verbose_name='sold count')),
                ('max_per_booking', models.PositiveIntegerField(blank=True, null=True, verbose_name='max per booking')),
                ('discount_price', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True, validators=[django.core.validators.MinValueValidator(0)], verbose_name='discount price')),
                ('discount_starts_at', models.DateTimeField(blank=True, null=True, verbose_name='discount starts at')),
                ('discount_ends_at', models.DateTimeField(blank=True, null=True, verbose_name='discount ends at')),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive'), ('sold_out', 'Sold out')], default='active', max_length=20, verbose_name='status')),
                ('display_order', models.PositiveIntegerField(default=0, verbose_name='display order')),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tickets', to='events.event', verbose_name='event')),
            ],
            options={
                'verbose_name': 'ticket',
                'verbose_name_plural': 'tickets',
                'ordering': ['display_order', 'price'],
            },
        ),
        migrations.CreateModel(
            name='Coupon',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('deleted_at', models.DateTimeField(blank=True, null=True, verbose_name='Deleted at')),
                ('code', models.CharField(max_length=50, verbose_name='code')),
                ('discount_type', models.CharField(choices=[('percentage', 'Percentage'), ('flat', 'Flat Amount')], default='percentage', max_length=20, verbose_name='discount type')),
                ('discount_value', models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(0)], verbose_name='discount value')),
                ('usage_limit', models.PositiveIntegerField(blank=True, null=True, verbose_name='usage limit')),
                ('used_count', models.PositiveIntegerField(default=0, verbose_name='used count')),
                ('valid_from', models.DateTimeField(blank=True, null=True, verbose_name='valid from')),
                ('valid_until', models.DateTimeField(blank=True, null=True, verbose_name='valid until')),
                ('is_active', models.BooleanField(default=True, verbose_name='is active')),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='coupons', to='events.event', verbose_name='event')),
            ],
            options={
                'verbose_name': 'coupon',
                'verbose_name_plural': 'coupons',
            },
        ),
        migrations.AddConstraint(
            model_name='coupon',
            constraint=models.UniqueConstraint(fields=('event', 'code'), name='events_coupon_unique_code_per_event'),
        ),
        migrations.CreateModel(
            name='BundleOffer',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('deleted_at', models.DateTimeField(blank=True, null=True, verbose_name='Deleted at')),
                ('name', models.CharField(blank=True, max_length=255, verbose_name='name')),
                ('buy_quantity', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)], verbose_name='buy quantity')),
                ('get_quantity', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)], verbose_name='get quantity')),
                ('offer_type', models.CharField(choices=[('same_tier', 'Same tier'), ('cross_tier', 'Cross tier')], default='same_tier', max_length=20, verbose_name='offer type')),
                ('applicable_ticket_ids', models.JSONField(blank=True, help_text='null = applies to every ticket of the event', null=True, verbose_name='applicable tickets')),
                ('is_active', models.BooleanField(default=True, verbose_name='is active')),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bundle_offers', to='events.event', verbose_name='event')),
            ],
            options={
                'verbose_name': 'bundle offer',
                'verbose_name_plural': 'bundle offers',
            },
        ),
        migrations.AddConstraint(
            model_name='bundleoffer',
            constraint=models.CheckConstraint(condition=models.Q(('buy_quantity__gte', 1), ('get_quantity__gte', 1)), name='events_bundleoffer_positive_quantities'),
        ),
        migrations.CreateModel(
            name='EventFormField',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('field_name', models.CharField(max_length=100, verbose_name='field name')),
                ('label', models.CharField(max_length=255, verbose_name='label')),
                ('field_type', models.CharField(choices=[('text', 'Text'), ('dropdown', 'Dropdown'), ('select', 'Select'), ('checkbox', 'Checkbox'), ('radio', 'Radio'), ('image', 'Image')], default='text', max_length=20, verbose_name='field type')),
                ('options', models.JSONField(blank=True, default=list, help_text='List of strings or {value, label, triggers} objects', verbose_name='options')),
                ('is_required', models.BooleanField(default=False, verbose_name='is required')),
                ('is_hidden', models.BooleanField(default=False, verbose_name='is hidden')),
                ('display_order', models.PositiveIntegerField(default=0, verbose_name='display order')),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='form_fields', to='events.event', verbose_name='event')),
            ],
            options={
                'verbose_name': 'event form field',
                'verbose_name_plural': 'event form fields',
                'ordering': ['display_order', 'created_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='eventformfield',
            constraint=models.UniqueConstraint(fields=('event', 'field_name'), name='events_formfield_unique_name_per_event'),
        ),
    ]

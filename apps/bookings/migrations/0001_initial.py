# Generated manually for registrations

import django.db.models.deletion
import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('events', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Registration',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('deleted_at', models.DateTimeField(blank=True, null=True, verbose_name='Deleted at')),
                ('user_id', models.UUIDField(db_index=True, verbose_name='user id')),
                ('name', models.CharField(max_length=100, unique=True, verbose_name='name')),
                ('first_name', models.CharField(max_length=150, verbose_name='first name')),
                ('email', models.EmailField(max_length=254, verbose_name='email')),
                ('phone', models.CharField(max_length=10, verbose_name='phone')),
                ('tickets_bought', models.JSONField(blank=True, default=dict, verbose_name='tickets bought')),
                ('total_amount', models.DecimalField(decimal_places=2, default=0, max_digits=10, verbose_name='total amount')),
                ('bundle_discount', models.DecimalField(decimal_places=2, default=0, max_digits=10, verbose_name='bundle discount')),
                ('coupon_discount', models.DecimalField(decimal_places=2, default=0, max_digits=10, verbose_name='coupon discount')),
                ('final_amount', models.DecimalField(decimal_places=2, default=0, max_digits=10, verbose_name='final amount')),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid'), ('failed', 'Failed')], db_index=True, default='pending', max_length=20, verbose_name='payment status')),
                ('is_waitlisted', models.BooleanField(default=False, verbose_name='is waitlisted')),
                ('is_verified', models.BooleanField(blank=True, null=True, verbose_name='is verified')),
                ('transaction_id', models.UUIDField(blank=True, db_index=True, null=True, verbose_name='transaction id')),
                ('form_response', models.JSONField(blank=True, default=dict, verbose_name='form response')),
                ('ticket_url', models.URLField(blank=True, max_length=500, null=True, verbose_name='ticket url')),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='registrations', to='events.event', verbose_name='event')),
                ('coupon', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='registrations', to='events.coupon', verbose_name='coupon')),
                ('bundle', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='registrations', to='events.bundleoffer', verbose_name='bundle offer')),
            ],
            options={
                'verbose_name': 'registration',
                'verbose_name_plural': 'registrations',
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddIndex(
            model_name='registration',
            index=models.Index(fields=['user_id', 'event'], name='bookings_re_user_id_6c1f0e_idx'),
        ),
        migrations.AddIndex(
            model_name='registration',
            index=models.Index(fields=['payment_status', 'transaction_id'], name='bookings_re_payment_3b7d2a_idx'),
        ),
    ]

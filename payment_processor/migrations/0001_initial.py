# Generated manually for Easebuzz payments

import django.db.models.deletion
import django.utils.timezone
import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('bookings', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('user_id', models.UUIDField(db_index=True)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=10)),
                ('currency', models.CharField(default='INR', max_length=3)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid'), ('failed', 'Failed')], default='pending', max_length=20)),
                ('payment_mode', models.CharField(blank=True, choices=[('upi', 'UPI'), ('netbanking', 'Net Banking'), ('debit_card', 'Debit Card'), ('credit_card', 'Credit Card'), ('wallet', 'Wallet'), ('emi', 'EMI'), ('other', 'Other')], max_length=20)),
                ('gateway_txn_id', models.CharField(help_text='txnid sent to Easebuzz', max_length=64, unique=True)),
                ('gateway_payment_id', models.CharField(blank=True, help_text='Easebuzz easepayid', max_length=255)),
                ('gateway_status', models.CharField(blank=True, max_length=50)),
                ('gateway_message', models.TextField(blank=True)),
                ('failure_category', models.CharField(blank=True, max_length=50)),
                ('access_key', models.CharField(blank=True, help_text='Easebuzz payment token', max_length=255)),
                ('initiated_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('registration', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='bookings.registration')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddIndex(
            model_name='payment',
            index=models.Index(fields=['status', 'created_at'], name='payment_pro_status_8d1c2e_idx'),
        ),
        migrations.AddIndex(
            model_name='payment',
            index=models.Index(fields=['registration', 'status'], name='payment_pro_registr_4a7b9f_idx'),
        ),
        migrations.CreateModel(
            name='PaymentLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('payment_id', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('registration_id', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('action', models.CharField(choices=[('initiate', 'Initiate Payment'), ('callback', 'Callback Received'), ('retrieve', 'Transaction Retrieve'), ('transaction', 'Transaction Status Sync')], max_length=20)),
                ('gateway_url', models.CharField(blank=True, max_length=500)),
                ('request_payload', models.JSONField(blank=True, default=dict)),
                ('response_payload', models.JSONField(blank=True, default=dict)),
                ('http_status', models.IntegerField(blank=True, null=True)),
                ('gateway_status', models.CharField(blank=True, max_length=50)),
                ('error_message', models.TextField(blank=True)),
                ('duration_ms', models.IntegerField(blank=True, help_text='Request duration in milliseconds', null=True)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddIndex(
            model_name='paymentlog',
            index=models.Index(fields=['action', 'created_at'], name='payment_pro_action_2f6e1d_idx'),
        ),
    ]

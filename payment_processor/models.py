"""
🚀 PAYMENT PROCESSOR MODELS
Easebuzz payment attempts and their append-only gateway audit trail.
"""

from django.db import models
from django.utils import timezone

from core.models import BaseModel


PAYMENT_MODE_CHOICES = [
    ('upi', 'UPI'),
    ('netbanking', 'Net Banking'),
    ('debit_card', 'Debit Card'),
    ('credit_card', 'Credit Card'),
    ('wallet', 'Wallet'),
    ('emi', 'EMI'),
    ('other', 'Other'),
]


class Payment(BaseModel):
    """
    🚀 One row per attempted transaction.

    The primary key is the transaction id sent to Easebuzz as ``txnid``.
    """
    STATUS_PENDING = 'pending'
    STATUS_PAID = 'paid'
    STATUS_FAILED = 'failed'

    PAYMENT_STATUS = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PAID, 'Paid'),
        (STATUS_FAILED, 'Failed'),
    ]

    TERMINAL_STATUSES = (STATUS_PAID, STATUS_FAILED)

    registration = models.ForeignKey(
        'bookings.Registration',
        on_delete=models.PROTECT,
        related_name='payments'
    )
    user_id = models.UUIDField(db_index=True)

    # Financial data
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default='INR')

    # Status and tracking
    status = models.CharField(max_length=20, choices=PAYMENT_STATUS, default=STATUS_PENDING)
    payment_mode = models.CharField(max_length=20, choices=PAYMENT_MODE_CHOICES, blank=True)
    gateway_txn_id = models.CharField(max_length=64, unique=True, help_text="txnid sent to Easebuzz")
    gateway_payment_id = models.CharField(max_length=255, blank=True, help_text="Easebuzz easepayid")
    gateway_status = models.CharField(max_length=50, blank=True)
    gateway_message = models.TextField(blank=True)
    failure_category = models.CharField(max_length=50, blank=True)
    access_key = models.CharField(max_length=255, blank=True, help_text="Easebuzz payment token")

    # Timestamps
    initiated_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='payment_pro_status_8d1c2e_idx'),
            models.Index(fields=['registration', 'status'], name='payment_pro_registr_4a7b9f_idx'),
        ]

    def __str__(self):
        return f"Payment {self.id} - {self.status} - INR {self.amount}"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES


class PaymentLogQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise TypeError("PaymentLog rows are append-only")


class PaymentLog(BaseModel):
    """
    🚀 Append-only audit trail of every gateway interaction.

    ``payment_id`` is a plain string: callbacks for unknown transactions are
    logged too.
    """
    ACTION_CHOICES = [
        ('initiate', 'Initiate Payment'),
        ('callback', 'Callback Received'),
        ('retrieve', 'Transaction Retrieve'),
        ('transaction', 'Transaction Status Sync'),
    ]

    payment_id = models.CharField(max_length=64, blank=True, null=True, db_index=True)
    registration_id = models.CharField(max_length=64, blank=True, null=True, db_index=True)
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    gateway_url = models.CharField(max_length=500, blank=True)

    # Request/Response data for debugging
    request_payload = models.JSONField(default=dict, blank=True)
    response_payload = models.JSONField(default=dict, blank=True)

    http_status = models.IntegerField(null=True, blank=True)
    gateway_status = models.CharField(max_length=50, blank=True)
    error_message = models.TextField(blank=True)
    duration_ms = models.IntegerField(null=True, blank=True, help_text="Request duration in milliseconds")

    objects = PaymentLogQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['action', 'created_at'], name='payment_pro_action_2f6e1d_idx'),
        ]

    def __str__(self):
        return f"{self.action} - {self.payment_id or 'unresolved'} - {self.http_status}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise TypeError("PaymentLog rows are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise TypeError("PaymentLog rows are append-only")

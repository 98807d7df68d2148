"""
Registration (booking) model.

A registration is created ``pending`` (or waitlisted) by the booking service and
moves to ``paid`` or ``failed`` only through payment reconciliation.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel, SoftDeleteModel


class Registration(BaseModel, SoftDeleteModel):
    """A user's booking for an event."""

    PAYMENT_PENDING = 'pending'
    PAYMENT_PAID = 'paid'
    PAYMENT_FAILED = 'failed'

    PAYMENT_STATUS_CHOICES = (
        (PAYMENT_PENDING, _('Pending')),
        (PAYMENT_PAID, _('Paid')),
        (PAYMENT_FAILED, _('Failed')),
    )

    event = models.ForeignKey(
        'events.Event',
        on_delete=models.PROTECT,
        related_name='registrations',
        verbose_name=_("event")
    )
    # Identity lives in the external auth system
    user_id = models.UUIDField(_("user id"), db_index=True)
    coupon = models.ForeignKey(
        'events.Coupon',
        on_delete=models.SET_NULL,
        related_name='registrations',
        null=True,
        blank=True,
        verbose_name=_("coupon")
    )
    bundle = models.ForeignKey(
        'events.BundleOffer',
        on_delete=models.SET_NULL,
        related_name='registrations',
        null=True,
        blank=True,
        verbose_name=_("bundle offer")
    )

    name = models.CharField(_("name"), max_length=100, unique=True)
    first_name = models.CharField(_("first name"), max_length=150)
    email = models.EmailField(_("email"))
    phone = models.CharField(_("phone"), max_length=10)

    tickets_bought = models.JSONField(_("tickets bought"), default=dict, blank=True)
    total_amount = models.DecimalField(_("total amount"), max_digits=10, decimal_places=2, default=0)
    bundle_discount = models.DecimalField(_("bundle discount"), max_digits=10, decimal_places=2, default=0)
    coupon_discount = models.DecimalField(_("coupon discount"), max_digits=10, decimal_places=2, default=0)
    final_amount = models.DecimalField(_("final amount"), max_digits=10, decimal_places=2, default=0)

    payment_status = models.CharField(
        _("payment status"),
        max_length=20,
        choices=PAYMENT_STATUS_CHOICES,
        default=PAYMENT_PENDING,
        db_index=True
    )
    is_waitlisted = models.BooleanField(_("is waitlisted"), default=False)
    is_verified = models.BooleanField(_("is verified"), null=True, blank=True)
    # Active payment attempt (payment_processor.Payment.id)
    transaction_id = models.UUIDField(_("transaction id"), null=True, blank=True, db_index=True)
    form_response = models.JSONField(_("form response"), default=dict, blank=True)
    ticket_url = models.URLField(_("ticket url"), max_length=500, null=True, blank=True)

    class Meta:
        verbose_name = _("registration")
        verbose_name_plural = _("registrations")
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user_id', 'event'], name='bookings_re_user_id_6c1f0e_idx'),
            models.Index(fields=['payment_status', 'transaction_id'], name='bookings_re_payment_3b7d2a_idx'),
        ]

    def __str__(self):
        return self.name

    @property
    def is_paid(self):
        return self.payment_status == self.PAYMENT_PAID

    @property
    def ticket_count(self):
        return sum(int(quantity) for quantity in (self.tickets_bought or {}).values())

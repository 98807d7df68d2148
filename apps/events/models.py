"""
Event catalogue models: events, ticket tiers, coupons, bundle offers and the
custom registration form fields attached to an event.

These rows are maintained by the admin layer; the booking engine only reads them,
except for the settlement-time counters (``Ticket.sold_count`` and
``Coupon.used_count``) which are incremented with ``F()`` expressions.
"""

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel, SoftDeleteModel


class Event(BaseModel, SoftDeleteModel):
    """Ticketed event. Its status decides the booking mode."""

    STATUS_DRAFT = 'draft'
    STATUS_PUBLISHED = 'published'
    STATUS_WAITLIST = 'waitlist'
    STATUS_CANCELLED = 'cancelled'
    STATUS_COMPLETED = 'completed'

    STATUS_CHOICES = (
        (STATUS_DRAFT, _('Draft')),
        (STATUS_PUBLISHED, _('Published')),
        (STATUS_WAITLIST, _('Waitlist')),
        (STATUS_CANCELLED, _('Cancelled')),
        (STATUS_COMPLETED, _('Completed')),
    )

    name = models.CharField(_("name"), max_length=255)
    description = models.TextField(_("description"), blank=True)
    status = models.CharField(_("status"), max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    verification_required = models.BooleanField(_("verification required"), default=False)
    location = models.CharField(_("location"), max_length=255, blank=True)
    start_date = models.DateTimeField(_("start date"), null=True, blank=True)
    registration_opens_at = models.DateTimeField(_("registration opens at"), null=True, blank=True)
    registration_closes_at = models.DateTimeField(_("registration closes at"), null=True, blank=True)

    class Meta:
        verbose_name = _("event")
        verbose_name_plural = _("events")
        ordering = ['-created_at']

    def __str__(self):
        return self.name


class Ticket(BaseModel, SoftDeleteModel):
    """Priced ticket tier of an event."""

    STATUS_CHOICES = (
        ('active', _('Active')),
        ('inactive', _('Inactive')),
        ('sold_out', _('Sold out')),
    )

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='tickets', verbose_name=_("event"))
    name = models.CharField(_("name"), max_length=255)
    price = models.DecimalField(_("price"), max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    quantity = models.PositiveIntegerField(_("quantity"), null=True, blank=True, help_text=_("null = unlimited"))
    sold_count = models.PositiveIntegerField(_("sold count"), default=0)
    max_per_booking = models.PositiveIntegerField(_("max per booking"), null=True, blank=True)
    discount_price = models.DecimalField(
        _("discount price"),
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(0)],
        null=True,
        blank=True
    )
    discount_starts_at = models.DateTimeField(_("discount starts at"), null=True, blank=True)
    discount_ends_at = models.DateTimeField(_("discount ends at"), null=True, blank=True)
    status = models.CharField(_("status"), max_length=20, choices=STATUS_CHOICES, default='active')
    display_order = models.PositiveIntegerField(_("display order"), default=0)

    class Meta:
        verbose_name = _("ticket")
        verbose_name_plural = _("tickets")
        ordering = ['display_order', 'price']

    def __str__(self):
        return f"{self.name} - {self.event.name}"

    @property
    def remaining(self):
        """Units left to sell, None when the ticket is unlimited."""
        if self.quantity is None:
            return None
        return max(0, self.quantity - self.sold_count)

    @property
    def is_available(self):
        return self.status == 'active' and not self.is_deleted


class Coupon(BaseModel, SoftDeleteModel):
    """Discount code scoped to one event."""

    TYPE_PERCENTAGE = 'percentage'
    TYPE_FLAT = 'flat'

    TYPE_CHOICES = (
        (TYPE_PERCENTAGE, _('Percentage')),
        (TYPE_FLAT, _('Flat Amount')),
    )

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='coupons', verbose_name=_("event"))
    code = models.CharField(_("code"), max_length=50)
    discount_type = models.CharField(_("discount type"), max_length=20, choices=TYPE_CHOICES, default=TYPE_PERCENTAGE)
    discount_value = models.DecimalField(
        _("discount value"),
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(0)]
    )
    usage_limit = models.PositiveIntegerField(_("usage limit"), null=True, blank=True)
    used_count = models.PositiveIntegerField(_("used count"), default=0)
    valid_from = models.DateTimeField(_("valid from"), null=True, blank=True)
    valid_until = models.DateTimeField(_("valid until"), null=True, blank=True)
    is_active = models.BooleanField(_("is active"), default=True)

    class Meta:
        verbose_name = _("coupon")
        verbose_name_plural = _("coupons")
        constraints = [
            models.UniqueConstraint(fields=['event', 'code'], name='events_coupon_unique_code_per_event'),
        ]

    def __str__(self):
        return self.code

    def save(self, *args, **kwargs):
        # Codes are matched case-insensitively; store them upper-cased.
        self.code = (self.code or '').strip().upper()
        super().save(*args, **kwargs)

    @property
    def is_exhausted(self):
        return self.usage_limit is not None and self.used_count >= self.usage_limit

    def increment_usage(self):
        """Atomically bump ``used_count`` unless the usage limit is already reached.

        Returns True when a row was updated.
        """
        updated = Coupon.objects.filter(pk=self.pk).filter(
            Q(usage_limit__isnull=True) | Q(used_count__lt=F('usage_limit'))
        ).update(used_count=F('used_count') + 1, updated_at=timezone.now())
        if updated:
            self.refresh_from_db(fields=['used_count'])
        return bool(updated)


class BundleOffer(BaseModel, SoftDeleteModel):
    """'Buy X get Y free' rule scoped to one event."""

    OFFER_TYPE_CHOICES = (
        ('same_tier', _('Same tier')),
        ('cross_tier', _('Cross tier')),
    )

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='bundle_offers', verbose_name=_("event"))
    name = models.CharField(_("name"), max_length=255, blank=True)
    buy_quantity = models.PositiveIntegerField(_("buy quantity"), validators=[MinValueValidator(1)])
    get_quantity = models.PositiveIntegerField(_("get quantity"), validators=[MinValueValidator(1)])
    offer_type = models.CharField(_("offer type"), max_length=20, choices=OFFER_TYPE_CHOICES, default='same_tier')
    applicable_ticket_ids = models.JSONField(
        _("applicable tickets"),
        null=True,
        blank=True,
        help_text=_("null = applies to every ticket of the event")
    )
    is_active = models.BooleanField(_("is active"), default=True)

    class Meta:
        verbose_name = _("bundle offer")
        verbose_name_plural = _("bundle offers")
        constraints = [
            models.CheckConstraint(
                condition=Q(buy_quantity__gte=1) & Q(get_quantity__gte=1),
                name='%(app_label)s_%(class)s_positive_quantities'
            ),
        ]

    def __str__(self):
        return self.display_name

    @property
    def display_name(self):
        return self.name or f"Bundle: Buy {self.buy_quantity} Get {self.get_quantity}"


class EventFormField(BaseModel):
    """Custom question asked during registration."""

    FIELD_TYPE_CHOICES = (
        ('text', _('Text')),
        ('dropdown', _('Dropdown')),
        ('select', _('Select')),
        ('checkbox', _('Checkbox')),
        ('radio', _('Radio')),
        ('image', _('Image')),
    )

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='form_fields', verbose_name=_("event"))
    field_name = models.CharField(_("field name"), max_length=100)
    label = models.CharField(_("label"), max_length=255)
    field_type = models.CharField(_("field type"), max_length=20, choices=FIELD_TYPE_CHOICES, default='text')
    options = models.JSONField(
        _("options"),
        default=list,
        blank=True,
        help_text=_("List of strings or {value, label, triggers} objects")
    )
    is_required = models.BooleanField(_("is required"), default=False)
    is_hidden = models.BooleanField(_("is hidden"), default=False)
    display_order = models.PositiveIntegerField(_("display order"), default=0)

    class Meta:
        verbose_name = _("event form field")
        verbose_name_plural = _("event form fields")
        ordering = ['display_order', 'created_at']
        constraints = [
            models.UniqueConstraint(fields=['event', 'field_name'], name='events_formfield_unique_name_per_event'),
        ]

    def __str__(self):
        return f"{self.label} ({self.field_type})"

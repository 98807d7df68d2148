"""
Read-side services over the event catalogue: coupon resolution and the pricing
quote used by the booking flow.
"""

import logging
from typing import Dict, Optional

from django.utils import timezone

from core.exceptions import CouponInvalid, NotFoundError, TicketUnavailable, ValidationError
from core.utils import is_valid_uuid
from .models import BundleOffer, Coupon, Event, Ticket
from .pricing import BundleRule, PriceBreakdown, effective_unit_price, is_within_window, price_basket

logger = logging.getLogger(__name__)


class CouponService:
    """Looks up coupons and checks they can be applied right now."""

    @staticmethod
    def check_applicable(coupon: Coupon, now=None) -> Coupon:
        now = now or timezone.now()
        if not coupon.is_active or coupon.is_deleted:
            raise CouponInvalid("This coupon is no longer active")
        if coupon.valid_from and now < coupon.valid_from:
            raise CouponInvalid("This coupon is not yet valid")
        if coupon.valid_until and now > coupon.valid_until:
            raise CouponInvalid("This coupon has expired")
        if coupon.is_exhausted:
            raise CouponInvalid("This coupon has reached its usage limit")
        return coupon

    def validate_code(self, event_id, code: str, now=None) -> Coupon:
        """Resolve a user-typed code (case-insensitive) for an event."""
        if not is_valid_uuid(str(event_id)):
            raise ValidationError("eventId must be a valid UUID")
        normalized = (code or '').strip()
        if not normalized:
            raise ValidationError("code is required")

        coupon = Coupon.objects.filter(event_id=event_id, code__iexact=normalized).first()
        if coupon is None:
            logger.info(f"🎟️ [COUPON] Unknown code '{normalized}' for event {event_id}")
            raise CouponInvalid("Invalid coupon code")
        return self.check_applicable(coupon, now)

    def resolve(self, event_id, coupon_id, now=None) -> Optional[Coupon]:
        """Resolve the coupon referenced by a booking request, if any."""
        if not coupon_id:
            return None
        coupon = Coupon.objects.filter(pk=coupon_id, event_id=event_id).first()
        if coupon is None:
            raise CouponInvalid("Invalid coupon code")
        return self.check_applicable(coupon, now)


class PricingService:
    """Prices a ticket selection against the live catalogue of an event."""

    def __init__(self, coupon_service: Optional[CouponService] = None):
        self.coupon_service = coupon_service or CouponService()

    @staticmethod
    def load_tickets(event: Event, selection: Dict[str, int]) -> Dict[str, Ticket]:
        tickets = {
            str(ticket.id): ticket
            for ticket in Ticket.objects.filter(event=event, id__in=list(selection.keys()))
        }
        missing = [ticket_id for ticket_id in selection if ticket_id not in tickets]
        if missing:
            raise NotFoundError(f"Ticket {missing[0]} does not belong to this event")
        return tickets

    @staticmethod
    def check_availability(tickets: Dict[str, Ticket], selection: Dict[str, int]):
        """Read check of status, per-booking limit and remaining capacity."""
        for ticket_id, quantity in selection.items():
            ticket = tickets[ticket_id]
            if not ticket.is_available:
                raise TicketUnavailable(f"Ticket {ticket.name} is not available")
            if ticket.max_per_booking and quantity > ticket.max_per_booking:
                raise TicketUnavailable(
                    f"You can book at most {ticket.max_per_booking} of {ticket.name}"
                )
            if ticket.remaining is not None and quantity > ticket.remaining:
                raise TicketUnavailable(f"Only {ticket.remaining} left for {ticket.name}")

    @staticmethod
    def bundle_rules_for(event: Event, bundle_id=None):
        offers = BundleOffer.objects.alive().filter(event=event, is_active=True)
        if bundle_id:
            offers = offers.filter(pk=bundle_id)
            if not offers.exists():
                raise NotFoundError("Bundle offer not found for this event")
        return [BundleRule.from_offer(offer) for offer in offers.order_by('created_at')]

    def quote(self, event: Event, selection: Dict[str, int], coupon_id=None, bundle_id=None,
              now=None, enforce_availability=True) -> PriceBreakdown:
        now = now or timezone.now()
        if not selection:
            return price_basket({}, {}, coupon=self.coupon_service.resolve(event.id, coupon_id, now))

        tickets = self.load_tickets(event, selection)
        if enforce_availability:
            self.check_availability(tickets, selection)
        unit_prices = {ticket_id: effective_unit_price(ticket, now) for ticket_id, ticket in tickets.items()}
        coupon = self.coupon_service.resolve(event.id, coupon_id, now)
        return price_basket(selection, unit_prices, self.bundle_rules_for(event, bundle_id), coupon)


def registration_window_open(event: Event, now=None) -> bool:
    return is_within_window(event.registration_opens_at, event.registration_closes_at, now)

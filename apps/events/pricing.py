"""
Pricing for a booking basket.

Pure functions over ticket, coupon and bundle data: amount normalization,
validity windows, the bundle discount allocator and the coupon overlay. Nothing
here touches the database; callers pass model instances or plain values in.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence

from django.utils import timezone

from core.exceptions import ValidationError

TWO_PLACES = Decimal('0.01')
ZERO = Decimal('0.00')


def to_amount(value) -> Decimal:
    """Normalize a number to a 2-decimal ``Decimal`` using round-half-up."""
    if value is None or value == '':
        return ZERO
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def is_within_window(starts_at=None, ends_at=None, now=None) -> bool:
    """True when ``now`` falls inside the optional [starts_at, ends_at] window."""
    now = now or timezone.now()
    if starts_at and now < starts_at:
        return False
    if ends_at and now > ends_at:
        return False
    return True


def effective_unit_price(ticket, now=None) -> Decimal:
    """Ticket price, or its discount price while the discount window is open."""
    if ticket.discount_price is not None and (ticket.discount_starts_at or ticket.discount_ends_at):
        if is_within_window(ticket.discount_starts_at, ticket.discount_ends_at, now):
            return to_amount(ticket.discount_price)
    return to_amount(ticket.price)


@dataclass(frozen=True)
class PoolUnit:
    """One purchased ticket unit."""
    ticket_id: str
    unit_price: Decimal


@dataclass(frozen=True)
class BundleRule:
    """The parts of a BundleOffer the allocator needs."""
    offer_id: str
    name: str
    buy_quantity: int
    get_quantity: int
    applicable_ticket_ids: Optional[frozenset] = None

    @property
    def group_size(self) -> int:
        return self.buy_quantity + self.get_quantity

    @property
    def free_fraction(self) -> Decimal:
        return Decimal(self.get_quantity) / Decimal(self.group_size)

    @classmethod
    def from_offer(cls, offer) -> 'BundleRule':
        restricted = None
        if offer.applicable_ticket_ids:
            restricted = frozenset(str(ticket_id) for ticket_id in offer.applicable_ticket_ids)
        return cls(
            offer_id=str(offer.id),
            name=offer.display_name,
            buy_quantity=offer.buy_quantity,
            get_quantity=offer.get_quantity,
            applicable_ticket_ids=restricted,
        )

    def applies_to(self, ticket_id: str) -> bool:
        return self.applicable_ticket_ids is None or ticket_id in self.applicable_ticket_ids


@dataclass(frozen=True)
class AppliedOffer:
    offer_id: str
    name: str
    free_tickets: int
    savings: Decimal

    def to_dict(self):
        return {
            'offerId': self.offer_id,
            'name': self.name,
            'freeTickets': self.free_tickets,
            'savings': str(self.savings),
        }


@dataclass
class BundleAllocation:
    total_discount: Decimal = ZERO
    discount_per_ticket: Dict[str, Decimal] = field(default_factory=dict)
    applied_offers: List[AppliedOffer] = field(default_factory=list)
    free_units: List[PoolUnit] = field(default_factory=list)


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    bundle_discount: Decimal
    coupon_discount: Decimal
    final_amount: Decimal
    applied_offers: Sequence[AppliedOffer] = ()
    discount_per_ticket: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def discount_amount(self) -> Decimal:
        return self.bundle_discount + self.coupon_discount

    def to_dict(self):
        return {
            'subtotal': str(self.subtotal),
            'bundleDiscount': str(self.bundle_discount),
            'couponDiscount': str(self.coupon_discount),
            'discountAmount': str(self.discount_amount),
            'finalAmount': str(self.final_amount),
            'appliedOffers': [offer.to_dict() for offer in self.applied_offers],
            'discountPerTicket': {ticket_id: str(amount) for ticket_id, amount in self.discount_per_ticket.items()},
        }


def build_pool(selection: Dict[str, int], unit_prices: Dict[str, Decimal]) -> List[PoolUnit]:
    """Expand ``{ticket_id: qty}`` into one PoolUnit per purchased unit."""
    pool = []
    for ticket_id, quantity in selection.items():
        if ticket_id not in unit_prices:
            continue
        for _ in range(quantity):
            pool.append(PoolUnit(ticket_id=ticket_id, unit_price=unit_prices[ticket_id]))
    return pool


def allocate_bundle_discounts(pool: Iterable[PoolUnit], rules: Iterable[BundleRule]) -> BundleAllocation:
    """
    Greedy bundle allocation.

    Offers giving away the largest share of their group are applied first. Each
    offer takes the cheapest eligible units left in the pool as its free units and
    consumes ``num_sets * group_size`` units so a lower-ranked offer cannot reuse
    them. An offer whose free units are worth nothing consumes nothing.
    """
    allocation = BundleAllocation()
    remaining = list(pool)
    ranked = sorted(rules, key=lambda rule: rule.free_fraction, reverse=True)

    for rule in ranked:
        eligible = [unit for unit in remaining if rule.applies_to(unit.ticket_id)]
        if len(eligible) < rule.group_size:
            continue

        num_sets = len(eligible) // rule.group_size
        free_count = num_sets * rule.get_quantity
        eligible.sort(key=lambda unit: unit.unit_price)

        free_units = eligible[:free_count]
        consumed = eligible[:num_sets * rule.group_size]
        savings = sum((unit.unit_price for unit in free_units), ZERO)
        if savings <= 0:
            continue

        allocation.total_discount += savings
        allocation.applied_offers.append(
            AppliedOffer(offer_id=rule.offer_id, name=rule.name, free_tickets=free_count, savings=savings)
        )
        allocation.free_units.extend(free_units)
        for unit in free_units:
            allocation.discount_per_ticket[unit.ticket_id] = (
                allocation.discount_per_ticket.get(unit.ticket_id, ZERO) + unit.unit_price
            )
        for unit in consumed:
            # identity, not equality: two units of one tier compare equal
            for index, candidate in enumerate(remaining):
                if candidate is unit:
                    del remaining[index]
                    break

    return allocation


def coupon_discount_for(coupon, amount_after_bundle: Decimal) -> Decimal:
    """Discount a coupon grants on the bundle-adjusted subtotal, never above it."""
    if coupon is None or amount_after_bundle <= 0:
        return ZERO
    value = Decimal(str(coupon.discount_value))
    if coupon.discount_type == 'percentage':
        discount = amount_after_bundle * value / Decimal(100)
    else:
        discount = value
    return to_amount(min(discount, amount_after_bundle))


def price_basket(selection: Dict[str, int], unit_prices: Dict[str, Decimal],
                 bundle_rules: Iterable[BundleRule] = (), coupon=None) -> PriceBreakdown:
    """Subtotal, bundle discount, coupon overlay and final amount for a basket."""
    pool = build_pool(selection, unit_prices)
    subtotal = to_amount(sum((unit.unit_price for unit in pool), ZERO))
    allocation = allocate_bundle_discounts(pool, bundle_rules)
    bundle_discount = to_amount(min(allocation.total_discount, subtotal))
    coupon_discount = coupon_discount_for(coupon, subtotal - bundle_discount)
    final_amount = to_amount(max(ZERO, subtotal - bundle_discount - coupon_discount))
    return PriceBreakdown(
        subtotal=subtotal,
        bundle_discount=bundle_discount,
        coupon_discount=coupon_discount,
        final_amount=final_amount,
        applied_offers=tuple(allocation.applied_offers),
        discount_per_ticket=allocation.discount_per_ticket,
    )

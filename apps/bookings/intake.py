"""
Booking intake validation.

Turns a raw booking request body into a normalized ``BookingIntent``. Checks run
in a fixed order and stop at the first violation: attendee identity, ticket
selection, then the event's custom form fields (with conditional visibility).
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from core.exceptions import RequiredFieldMissing, ValidationError
from core.utils import is_valid_uuid

EMAIL_RE = re.compile(r'[^\s@]+@[^\s@]+\.[^\s@]+')
PHONE_RE = re.compile(r'[0-9]{10}')


class FieldType(str, Enum):
    TEXT = 'text'
    DROPDOWN = 'dropdown'
    SELECT = 'select'
    CHECKBOX = 'checkbox'
    RADIO = 'radio'
    IMAGE = 'image'

    @property
    def can_trigger(self) -> bool:
        return self in (FieldType.DROPDOWN, FieldType.SELECT)


@dataclass(frozen=True)
class FieldOption:
    value: str
    label: str
    triggers: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, raw, field_name: str) -> 'FieldOption':
        if isinstance(raw, (str, int, float)) and not isinstance(raw, bool):
            return cls(value=str(raw), label=str(raw))
        if not isinstance(raw, Mapping) or 'value' not in raw:
            raise ValidationError(f"Invalid option definition for field {field_name}")
        triggers = raw.get('triggers') or []
        if isinstance(triggers, str):
            triggers = [triggers]
        if not isinstance(triggers, (list, tuple)) or not all(isinstance(t, str) for t in triggers):
            raise ValidationError(f"Invalid option triggers for field {field_name}")
        value = str(raw['value'])
        return cls(value=value, label=str(raw.get('label') or value), triggers=tuple(triggers))


@dataclass(frozen=True)
class FormFieldSpec:
    """A registration form question, parsed from its stored definition."""
    name: str
    label: str
    field_type: FieldType
    required: bool = False
    hidden: bool = False
    options: Tuple[FieldOption, ...] = ()

    @classmethod
    def from_model(cls, form_field) -> 'FormFieldSpec':
        try:
            field_type = FieldType(form_field.field_type)
        except ValueError:
            raise ValidationError(f"Unsupported field type '{form_field.field_type}' for {form_field.field_name}")
        raw_options = form_field.options or []
        if not isinstance(raw_options, list):
            raise ValidationError(f"Invalid options for field {form_field.field_name}")
        return cls(
            name=form_field.field_name,
            label=form_field.label or form_field.field_name,
            field_type=field_type,
            required=bool(form_field.is_required),
            hidden=bool(form_field.is_hidden),
            options=tuple(FieldOption.parse(option, form_field.field_name) for option in raw_options),
        )

    def triggered_by(self, answer) -> Tuple[str, ...]:
        """Field names revealed by the option currently selected."""
        if not self.field_type.can_trigger or is_blank(answer):
            return ()
        selected = str(answer)
        for option in self.options:
            if option.value == selected:
                return option.triggers
        return ()


@dataclass(frozen=True)
class AttendeeInfo:
    first_name: str
    email: str
    phone: str


@dataclass(frozen=True)
class BookingIntent:
    """Normalized booking request, ready for pricing and persistence."""
    event_id: str
    user_id: str
    attendee: AttendeeInfo
    tickets: Dict[str, int]
    coupon_id: Optional[str] = None
    bundle_id: Optional[str] = None
    registration_id: Optional[str] = None
    form_response: Dict[str, Any] = field(default_factory=dict)
    client_amount: Optional[str] = None
    event_name: str = ''


def is_blank(value) -> bool:
    """Empty string, whitespace, None and empty collections are blank; 0 and False are answers."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def visible_field_names(specs: Iterable[FormFieldSpec], answers: Mapping[str, Any]) -> FrozenSet[str]:
    specs = list(specs)
    visible = {spec.name for spec in specs if not spec.hidden}
    for spec in specs:
        visible.update(spec.triggered_by(answers.get(spec.name)))
    return frozenset(visible)


def _required_string(payload: Mapping, *keys) -> str:
    value = _first(payload, *keys)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{keys[0]} is required")
    return value.strip()


def _optional_uuid(payload: Mapping, *keys) -> Optional[str]:
    value = _first(payload, *keys)
    if value in (None, ''):
        return None
    value = str(value).strip()
    if not is_valid_uuid(value.lower()):
        raise ValidationError(f"{keys[0]} must be a valid UUID")
    return value.lower()


def _first(payload: Mapping, *keys):
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def parse_uuid(value, name: str) -> str:
    if value in (None, ''):
        raise ValidationError(f"{name} is required")
    value = str(value).strip().lower()
    if not is_valid_uuid(value):
        raise ValidationError(f"{name} must be a valid UUID")
    return value


class BookingIntakeValidator:
    """Validates a booking request against the event's form definition."""

    def validate_attendee(self, payload: Mapping) -> AttendeeInfo:
        first_name = _required_string(payload, 'firstName', 'first_name', 'name')
        email = _required_string(payload, 'email')
        if not EMAIL_RE.fullmatch(email):
            raise ValidationError("email must be valid")

        phone = _first(payload, 'phone')
        if phone is None or (isinstance(phone, str) and not phone.strip()):
            raise ValidationError("phone is required")
        phone = str(phone)
        if not PHONE_RE.fullmatch(phone):
            raise ValidationError("phone must be exactly 10 digits")
        return AttendeeInfo(first_name=first_name, email=email.lower(), phone=phone)

    def normalize_tickets(self, raw, allow_empty: bool) -> Dict[str, int]:
        if raw is None and allow_empty:
            return {}
        if not isinstance(raw, Mapping):
            raise ValidationError("tickets_bought must be an object map of ticketId -> quantity")

        normalized = {}
        for ticket_id, quantity in raw.items():
            if not is_valid_uuid(str(ticket_id).lower()):
                raise ValidationError(f"Invalid ticket id in tickets_bought: {ticket_id}")
            parsed = self._parse_quantity(quantity)
            if parsed is None or parsed < 0:
                raise ValidationError(f"Invalid quantity for ticket {ticket_id}")
            if parsed > 0:
                normalized[str(ticket_id).lower()] = parsed

        if not normalized and not allow_empty:
            raise ValidationError("tickets_bought cannot be empty")
        return normalized

    @staticmethod
    def _parse_quantity(quantity) -> Optional[int]:
        if isinstance(quantity, bool):
            return None
        if isinstance(quantity, int):
            return quantity
        if isinstance(quantity, float) and quantity.is_integer():
            return int(quantity)
        if isinstance(quantity, str) and quantity.strip().isdigit():
            return int(quantity.strip())
        return None

    def validate_form(self, specs: List[FormFieldSpec], answers) -> Dict[str, Any]:
        if answers is None:
            answers = {}
        if not isinstance(answers, Mapping):
            raise ValidationError("form_response must be a JSON object")

        visible = visible_field_names(specs, answers)
        for spec in specs:
            if spec.name in visible and spec.required and is_blank(answers.get(spec.name)):
                raise RequiredFieldMissing(spec.label)
        return dict(answers)

    def validate(self, payload: Mapping, *, event_id: str, user_id: str, waitlist_mode: bool,
                 form_fields: Iterable = ()) -> BookingIntent:
        coupon_id = _optional_uuid(payload, 'couponId', 'coupon_id')
        bundle_id = _optional_uuid(payload, 'bundleId', 'bundle_id')
        registration_id = _optional_uuid(payload, 'registrationId', 'registration_id')

        attendee = self.validate_attendee(payload)
        tickets = self.normalize_tickets(
            _first(payload, 'ticketsBought', 'tickets_bought'),
            allow_empty=waitlist_mode,
        )
        specs = [
            spec if isinstance(spec, FormFieldSpec) else FormFieldSpec.from_model(spec)
            for spec in form_fields
        ]
        form_response = self.validate_form(specs, _first(payload, 'formResponse', 'form_response'))

        client_amount = _first(payload, 'amount')
        return BookingIntent(
            event_id=event_id,
            user_id=user_id,
            attendee=attendee,
            tickets=tickets,
            coupon_id=coupon_id,
            bundle_id=bundle_id,
            registration_id=registration_id,
            form_response=form_response,
            client_amount=None if client_amount is None else str(client_amount),
            event_name=str(_first(payload, 'eventName', 'event_name') or '').strip(),
        )

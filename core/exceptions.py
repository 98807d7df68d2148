"""
Domain error taxonomy shared by bookings, pricing and payments.

Every error carries a machine-readable ``code``, a message that is safe to show
to the end user and the HTTP status the API layer answers with.
"""

from rest_framework import status


class DomainError(Exception):
    """Base class for expected business errors."""

    code = 'domain_error'
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = 'Request could not be processed'

    def __init__(self, message=None, *, details=None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        payload = {'ok': False, 'error': self.message, 'code': self.code}
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(DomainError):
    code = 'validation_error'
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid request'


class NotFoundError(DomainError):
    code = 'not_found'
    http_status = status.HTTP_404_NOT_FOUND
    default_message = 'Resource not found'


class StateConflictError(DomainError):
    code = 'state_conflict'
    http_status = status.HTTP_409_CONFLICT
    default_message = 'Resource is not in a valid state for this operation'


class GatewayError(DomainError):
    """The payment gateway rejected the request or could not be reached."""

    code = 'gateway_error'
    http_status = status.HTTP_502_BAD_GATEWAY
    default_message = 'Unable to initiate payment'

    def __init__(self, message=None, *, category=None, gateway_response=None, details=None):
        super().__init__(message, details=details)
        self.category = category
        self.gateway_response = gateway_response


class PersistenceError(DomainError):
    code = 'persistence_error'
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'Unable to save changes at this time'


class RequiredFieldMissing(ValidationError):
    code = 'required_field_missing'

    def __init__(self, label):
        self.label = label
        super().__init__(f"{label} is required", details={'field': label})


class CouponInvalid(StateConflictError):
    code = 'coupon_invalid'
    default_message = 'Invalid coupon code'


class ConversionNotAllowed(StateConflictError):
    code = 'conversion_not_allowed'
    default_message = 'Existing registration is not eligible for waitlist conversion'


class EventNotBookable(StateConflictError):
    code = 'event_not_bookable'
    default_message = 'Event is not accepting bookings'


class TicketUnavailable(StateConflictError):
    code = 'ticket_unavailable'
    default_message = 'Selected ticket is not available'


class ConfigurationError(DomainError):
    """A required setting is missing; nothing was sent anywhere."""

    code = 'configuration_error'
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'Service is not configured'

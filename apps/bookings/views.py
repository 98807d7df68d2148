"""
🎫 Booking endpoints: create (payment or waitlist), list, detail and cancel.
"""

import logging

from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.error_handlers import ApiErrorHandler
from core.exceptions import ValidationError
from core.utils import is_valid_uuid
from .serializers import BookingListQuerySerializer, RegistrationSerializer
from .services import BookingService

logger = logging.getLogger(__name__)


def resolve_user_id(request, fallback=None):
    """Caller identity: the authenticated user's UUID, else the ``userId`` supplied."""
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated and is_valid_uuid(str(user.pk)):
        return str(user.pk)
    if fallback:
        return str(fallback)
    raise ValidationError("userId is required")


class BookingListCreateView(APIView):
    """
    POST: create a booking for an event.
    GET: list the caller's bookings.
    """

    permission_classes = [permissions.AllowAny]

    def post(self, request):
        data = request.data
        if not hasattr(data, 'get'):
            return ApiErrorHandler.handle_exception(ValidationError("Invalid request body"))

        try:
            user_id = resolve_user_id(request, data.get('userId') or data.get('user_id'))
            result = BookingService().create_booking(data, user_id=user_id)
        except Exception as e:
            return ApiErrorHandler.handle_exception(
                e,
                context={'event_id': str(data.get('eventId') or '')},
                user_message='Unable to initiate booking at this time',
            )

        return Response({
            'ok': True,
            'bookingMode': result.booking_mode,
            'converted': result.converted,
            'booking': RegistrationSerializer(result.registration).data,
            'pricing': result.pricing.to_dict(),
        }, status=status.HTTP_201_CREATED)

    def get(self, request):
        query = BookingListQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return ApiErrorHandler.handle_serializer_errors(query.errors)

        params = query.validated_data
        try:
            user_id = resolve_user_id(request, params.get('userId'))
            listing = BookingService().list_for_user(
                user_id,
                page=params.get('page'),
                limit=params.get('limit'),
                event_id=params.get('eventId'),
            )
        except Exception as e:
            return ApiErrorHandler.handle_exception(e, user_message='Unable to load bookings')

        return Response({
            'ok': True,
            'bookings': RegistrationSerializer(listing['items'], many=True).data,
            'page': listing['page'],
            'limit': listing['limit'],
            'total': listing['total'],
            'hasMore': listing['has_more'],
        }, status=status.HTTP_200_OK)


class BookingDetailView(APIView):
    """GET a single booking, DELETE to cancel it while unpaid."""

    permission_classes = [permissions.AllowAny]

    def get(self, request, booking_id):
        try:
            user_id = resolve_user_id(request, request.query_params.get('userId'))
            registration = BookingService().get_for_user(user_id, str(booking_id))
        except Exception as e:
            return ApiErrorHandler.handle_exception(e, context={'booking_id': str(booking_id)})

        return Response({'ok': True, 'booking': RegistrationSerializer(registration).data})

    def delete(self, request, booking_id):
        try:
            fallback = request.query_params.get('userId')
            if not fallback and hasattr(request.data, 'get'):
                fallback = request.data.get('userId')
            user_id = resolve_user_id(request, fallback)
            registration = BookingService().cancel(user_id, str(booking_id))
        except Exception as e:
            return ApiErrorHandler.handle_exception(
                e, context={'booking_id': str(booking_id)}, user_message='Unable to cancel booking'
            )

        return Response({
            'ok': True,
            'message': 'Booking cancelled',
            'booking': RegistrationSerializer(registration).data,
        }, status=status.HTTP_200_OK)

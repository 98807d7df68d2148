"""
Public event catalogue endpoints.
"""

import logging

from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.error_handlers import ApiErrorHandler
from .serializers import CouponSerializer, CouponValidateSerializer
from .services import CouponService

logger = logging.getLogger(__name__)


class CouponValidateView(APIView):
    """Check a coupon code before checkout and return its discount terms."""

    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = CouponValidateSerializer(data=request.data)
        if not serializer.is_valid():
            return ApiErrorHandler.handle_serializer_errors(serializer.errors)

        try:
            coupon = CouponService().validate_code(
                serializer.validated_data['eventId'],
                serializer.validated_data['code'],
            )
        except Exception as e:
            return ApiErrorHandler.handle_exception(
                e, context={'event_id': str(serializer.validated_data['eventId'])},
                user_message='Unable to validate coupon'
            )

        return Response({
            'ok': True,
            'coupon': CouponSerializer(coupon).data,
        }, status=status.HTTP_200_OK)

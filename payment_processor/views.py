"""
🚀 PAYMENT VIEWS
Easebuzz initiate, callback and transaction sync endpoints.
"""

import json
import logging
from urllib.parse import urlencode

from django.conf import settings
from django.http import HttpResponseRedirect, QueryDict
from rest_framework import permissions, status
from rest_framework.exceptions import ParseError, UnsupportedMediaType
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.bookings.intake import parse_uuid
from apps.bookings.views import resolve_user_id
from core.error_handlers import ApiErrorHandler
from core.exceptions import GatewayError, NotFoundError
from .gateway import FLOW_FAILURE, FLOW_PENDING, FLOW_SUCCESS
from .models import Payment
from .serializers import InitiatePaymentSerializer, PaymentSerializer, TransactionSyncSerializer
from .services import CallbackService, PaymentInitiationService, TransactionSyncService

logger = logging.getLogger(__name__)


class HttpResponseSeeOther(HttpResponseRedirect):
    status_code = 303


def request_origin(request) -> str:
    return request.build_absolute_uri('/').rstrip('/')


def parse_raw_body(raw: bytes):
    """
    Decode a callback body sent with a content type none of the parsers accept.

    JSON objects and form-encoded bodies become dicts; anything else is returned
    as text so it still lands in the audit log.
    """
    text = raw.decode('utf-8', errors='replace').strip()
    if not text:
        return None
    if text.startswith('{'):
        try:
            data = json.loads(text)
        except ValueError:
            return text
        return data if isinstance(data, dict) else text
    if '=' in text:
        return QueryDict(text).dict()
    return text


class EasebuzzInitiateView(APIView):
    """
    🚀 POST {registrationId}: create a payment attempt and return the Easebuzz pay URL.
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = InitiatePaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return ApiErrorHandler.handle_serializer_errors(serializer.errors)

        registration_id = str(serializer.validated_data['registrationId'])
        try:
            result = PaymentInitiationService().initiate(registration_id, request_origin(request))
        except GatewayError as e:
            logger.warning(f"❌ [PAYMENT] Initiate failed for {registration_id}: {e.message}")
            return Response({
                'ok': False,
                'transactionId': e.details.get('transactionId'),
                'error': e.message,
                'code': e.code,
                'category': e.category,
                'gateway': e.gateway_response,
            }, status=e.http_status)
        except Exception as e:
            return ApiErrorHandler.handle_exception(
                e, context={'registration_id': registration_id}, user_message='Unable to initiate payment'
            )

        return Response(result, status=status.HTTP_200_OK)


class EasebuzzCallbackView(APIView):
    """
    🔔 Easebuzz success/failure callback.

    Browsers posting back from the gateway are redirected (303) to the frontend
    booking page; API clients asking for JSON get the result body.
    """
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    FRONTEND_FLOWS = (FLOW_SUCCESS, FLOW_FAILURE, FLOW_PENDING)

    def post(self, request):
        try:
            payload = request.data
        except ParseError:
            logger.warning("⚠️ [CALLBACK] Malformed callback body")
            payload = None
        except UnsupportedMediaType:
            logger.info(f"📥 [CALLBACK] Reading raw body sent as {request.content_type or 'unknown type'}")
            payload = parse_raw_body(request.body)

        result = CallbackService().handle(payload, query=request.query_params, endpoint=request.path)

        if self.wants_json(request):
            return Response(result.to_dict(), status=result.http_status)
        return HttpResponseSeeOther(self.frontend_url(result))

    @staticmethod
    def wants_json(request) -> bool:
        if request.query_params.get('format') == 'json':
            return True
        accept = request.META.get('HTTP_ACCEPT', '')
        return 'application/json' in accept and 'text/html' not in accept

    def frontend_url(self, result) -> str:
        flow = result.flow if result.ok and result.flow in self.FRONTEND_FLOWS else FLOW_FAILURE
        query = {}
        if result.registration_id:
            query['registrationId'] = result.registration_id
        if result.transaction_id:
            query['transactionId'] = result.transaction_id
        if not result.ok:
            query['reason'] = result.message or 'callback_rejected'
        base = settings.FRONTEND_URL.rstrip('/')
        return f"{base}/booking/{flow}?{urlencode(query)}" if query else f"{base}/booking/{flow}"


class EasebuzzTransactionView(APIView):
    """
    🔄 POST {registrationId} or {registrationIds: [...]}: re-check transactions at the gateway.
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = TransactionSyncSerializer(data=request.data)
        if not serializer.is_valid():
            return ApiErrorHandler.handle_serializer_errors(serializer.errors)

        data = serializer.validated_data
        try:
            service = TransactionSyncService()
            if data.get('registrationIds'):
                results = service.sync_many(str(registration_id) for registration_id in data['registrationIds'])
                return Response({'ok': True, 'results': results}, status=status.HTTP_200_OK)
            result = service.sync_registration(str(data['registrationId']))
        except Exception as e:
            return ApiErrorHandler.handle_exception(
                e, context={'registration_id': str(data.get('registrationId') or '')},
                user_message='Unable to sync transaction',
            )

        return Response(result, status=status.HTTP_200_OK)


class PaymentStatusView(APIView):
    """GET one payment attempt of the caller."""
    permission_classes = [permissions.AllowAny]

    def get(self, request, payment_id):
        try:
            user_id = resolve_user_id(request, request.query_params.get('userId'))
            payment = Payment.objects.filter(pk=payment_id, user_id=parse_uuid(user_id, 'userId')).first()
            if payment is None:
                raise NotFoundError("Payment not found")
        except Exception as e:
            return ApiErrorHandler.handle_exception(e, context={'payment_id': str(payment_id)})

        return Response({'ok': True, 'payment': PaymentSerializer(payment).data}, status=status.HTTP_200_OK)

"""
🚀 Centralized error handling for the bookings and payments API.

Every endpoint answers failures with the same JSON shape:
``{"ok": false, "error": <user-safe message>, "code": <machine code>, "field_errors": {...}}``.
"""

import logging
from typing import Any, Dict, List, Optional

from django.db import DatabaseError, IntegrityError
from rest_framework import status
from rest_framework.response import Response

from .exceptions import DomainError

logger = logging.getLogger(__name__)


class ApiErrorHandler:
    """Maps exceptions raised by services to DRF responses."""

    @staticmethod
    def error_body(message: str, code: str, field_errors: Optional[Dict[str, List[str]]] = None,
                   **extra) -> Dict[str, Any]:
        body = {
            'ok': False,
            'error': message,
            'code': code,
            'field_errors': field_errors or {},
        }
        body.update(extra)
        return body

    @staticmethod
    def handle_domain_error(error: DomainError, context: Optional[Dict[str, Any]] = None) -> Response:
        """Expected business failure: log at warning and surface the message."""
        error_context = context or {}
        logger.warning(
            f"🔴 [API_ERROR] {error.__class__.__name__}: {error.message}",
            extra={'error_type': error.code, **error_context}
        )
        return Response(
            ApiErrorHandler.error_body(error.message, error.code, **({'details': error.details} if error.details else {})),
            status=error.http_status
        )

    @staticmethod
    def handle_serializer_errors(serializer_errors: Dict[str, Any],
                                 context: Optional[Dict[str, Any]] = None) -> Response:
        field_errors = ApiErrorHandler.format_field_errors(serializer_errors)
        first_field = next(iter(field_errors), None)
        message = 'Invalid request'
        if first_field:
            message = field_errors[first_field][0]
            if first_field != 'non_field_errors' and first_field not in message:
                message = f"{first_field}: {message}"
        logger.warning(f"🔴 [API_ERROR] Validation failed: {field_errors}", extra=context or {})
        return Response(
            ApiErrorHandler.error_body(message, 'validation_error', field_errors),
            status=status.HTTP_400_BAD_REQUEST
        )

    @staticmethod
    def handle_database_error(error: Exception, context: Optional[Dict[str, Any]] = None) -> Response:
        logger.error(f"🔴 [API_ERROR] Database error: {error}", exc_info=True, extra=context or {})
        return Response(
            ApiErrorHandler.error_body('Unable to save changes at this time', 'persistence_error'),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    @staticmethod
    def handle_generic_error(error: Exception, context: Optional[Dict[str, Any]] = None,
                             user_message: Optional[str] = None) -> Response:
        logger.error(
            f"🔴 [API_ERROR] Unexpected error: {error}",
            exc_info=True,
            extra={'error_class': error.__class__.__name__, **(context or {})}
        )
        return Response(
            ApiErrorHandler.error_body(user_message or 'Unexpected error, please try again', 'internal_error'),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    @staticmethod
    def handle_exception(error: Exception, context: Optional[Dict[str, Any]] = None,
                         user_message: Optional[str] = None) -> Response:
        """Route an exception to the matching handler."""
        if isinstance(error, DomainError):
            return ApiErrorHandler.handle_domain_error(error, context)
        if isinstance(error, (IntegrityError, DatabaseError)):
            return ApiErrorHandler.handle_database_error(error, context)
        return ApiErrorHandler.handle_generic_error(error, context, user_message)

    @staticmethod
    def format_field_errors(serializer_errors: Dict[str, Any]) -> Dict[str, List[str]]:
        formatted = {}
        for field, messages in serializer_errors.items():
            if isinstance(messages, list):
                formatted[field] = [str(msg) for msg in messages]
            elif isinstance(messages, dict):
                formatted[field] = [f"{k}: {v}" for k, v in messages.items()]
            else:
                formatted[field] = [str(messages)]
        return formatted

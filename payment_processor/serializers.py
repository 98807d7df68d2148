"""
🚀 PAYMENT SERIALIZERS
Request parsing for the Easebuzz endpoints.
"""

from rest_framework import serializers

from .models import Payment


class InitiatePaymentSerializer(serializers.Serializer):
    registrationId = serializers.UUIDField()


class TransactionSyncSerializer(serializers.Serializer):
    """Either one ``registrationId`` or a list of ``registrationIds``."""
    registrationId = serializers.UUIDField(required=False)
    registrationIds = serializers.ListField(
        child=serializers.UUIDField(), required=False, allow_empty=False, max_length=100
    )

    def validate(self, attrs):
        if not attrs.get('registrationId') and not attrs.get('registrationIds'):
            raise serializers.ValidationError("registrationId or registrationIds is required")
        return attrs


class PaymentSerializer(serializers.ModelSerializer):
    """Payment attempt as returned to clients."""

    registrationId = serializers.UUIDField(source='registration_id', read_only=True)
    paymentMode = serializers.CharField(source='payment_mode', read_only=True)
    gatewayMessage = serializers.CharField(source='gateway_message', read_only=True)
    failureCategory = serializers.CharField(source='failure_category', read_only=True)
    completedAt = serializers.DateTimeField(source='completed_at', read_only=True, allow_null=True)

    class Meta:
        model = Payment
        fields = [
            'id', 'registrationId', 'amount', 'currency', 'status', 'paymentMode',
            'gatewayMessage', 'failureCategory', 'completedAt',
        ]
        read_only_fields = fields

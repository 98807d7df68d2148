"""Serializers for booking responses."""

from rest_framework import serializers

from .models import Registration


class RegistrationSerializer(serializers.ModelSerializer):
    """Booking view returned to the attendee."""

    eventId = serializers.UUIDField(source='event_id', read_only=True)
    eventName = serializers.CharField(source='event.name', read_only=True)
    userId = serializers.UUIDField(source='user_id', read_only=True)
    couponId = serializers.UUIDField(source='coupon_id', read_only=True, allow_null=True)
    bundleId = serializers.UUIDField(source='bundle_id', read_only=True, allow_null=True)
    firstName = serializers.CharField(source='first_name', read_only=True)
    ticketsBought = serializers.JSONField(source='tickets_bought', read_only=True)
    totalAmount = serializers.DecimalField(source='total_amount', max_digits=10, decimal_places=2, read_only=True)
    bundleDiscount = serializers.DecimalField(source='bundle_discount', max_digits=10, decimal_places=2, read_only=True)
    couponDiscount = serializers.DecimalField(source='coupon_discount', max_digits=10, decimal_places=2, read_only=True)
    finalAmount = serializers.DecimalField(source='final_amount', max_digits=10, decimal_places=2, read_only=True)
    paymentStatus = serializers.CharField(source='payment_status', read_only=True)
    isWaitlisted = serializers.BooleanField(source='is_waitlisted', read_only=True)
    isVerified = serializers.BooleanField(source='is_verified', read_only=True, allow_null=True)
    transactionId = serializers.UUIDField(source='transaction_id', read_only=True, allow_null=True)
    formResponse = serializers.JSONField(source='form_response', read_only=True)
    ticketUrl = serializers.CharField(source='ticket_url', read_only=True, allow_null=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Registration
        fields = [
            'id', 'name', 'eventId', 'eventName', 'userId', 'couponId', 'bundleId',
            'firstName', 'email', 'phone', 'ticketsBought', 'totalAmount', 'bundleDiscount',
            'couponDiscount', 'finalAmount', 'paymentStatus', 'isWaitlisted', 'isVerified',
            'transactionId', 'formResponse', 'ticketUrl', 'createdAt',
        ]
        read_only_fields = fields


class BookingListQuerySerializer(serializers.Serializer):
    userId = serializers.UUIDField(required=False)
    eventId = serializers.UUIDField(required=False)
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1)

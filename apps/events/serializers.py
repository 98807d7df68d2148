"""Serializers for the event catalogue endpoints."""

from rest_framework import serializers

from .models import Coupon


class CouponValidateSerializer(serializers.Serializer):
    eventId = serializers.UUIDField()
    code = serializers.CharField(max_length=50, trim_whitespace=True)


class CouponSerializer(serializers.ModelSerializer):
    class Meta:
        model = Coupon
        fields = ['id', 'code', 'discount_type', 'discount_value', 'valid_from', 'valid_until']

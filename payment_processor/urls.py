"""
🚀 PAYMENT URLs
"""

from django.urls import path

from .views import (
    EasebuzzCallbackView,
    EasebuzzInitiateView,
    EasebuzzTransactionView,
    PaymentStatusView,
)

app_name = 'payment_processor'

urlpatterns = [
    path('easebuzz/initiate/', EasebuzzInitiateView.as_view(), name='easebuzz-initiate'),
    path('easebuzz/callback/', EasebuzzCallbackView.as_view(), name='easebuzz-callback'),
    path('easebuzz/callback/success/', EasebuzzCallbackView.as_view(), name='easebuzz-callback-success'),
    path('easebuzz/callback/failure/', EasebuzzCallbackView.as_view(), name='easebuzz-callback-failure'),
    path('easebuzz/transaction/', EasebuzzTransactionView.as_view(), name='easebuzz-transaction'),
    path('<uuid:payment_id>/', PaymentStatusView.as_view(), name='payment-status'),
]

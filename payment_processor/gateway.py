"""
🚀 EASEBUZZ GATEWAY CLIENT

Request hashing, the initiate-link call, the transaction retrieve call and the
parsing of every gateway payload into typed results. Nothing in this module
touches the database.
"""

import hashlib
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple, Union
from urllib.parse import urlencode

import requests
from django.conf import settings

from core.exceptions import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)

FLOW_SUCCESS = 'success'
FLOW_FAILURE = 'failure'
FLOW_PENDING = 'pending'
FLOW_UNKNOWN = 'unknown'

SUCCESS_STATUSES = {'success'}
FAILURE_STATUSES = {'failure', 'failed', 'usercancelled', 'usercancel', 'dropped', 'bounced', 'cancelled'}
PENDING_STATUSES = {'pending', 'initiated', 'in_process', 'inprocess', 'processing'}

PAYMENT_MODE_ALIASES = {
    'upi': 'upi',
    'nb': 'netbanking',
    'netbanking': 'netbanking',
    'net banking': 'netbanking',
    'net_banking': 'netbanking',
    'dc': 'debit_card',
    'debit card': 'debit_card',
    'debit_card': 'debit_card',
    'debitcard': 'debit_card',
    'cc': 'credit_card',
    'credit card': 'credit_card',
    'credit_card': 'credit_card',
    'creditcard': 'credit_card',
    'mw': 'wallet',
    'wallet': 'wallet',
    'ola money': 'wallet',
    'emi': 'emi',
}

CALLBACK_FIELDS = (
    'txnid', 'status', 'amount', 'productinfo', 'firstname', 'email', 'phone',
    'easepayid', 'mode', 'card_type', 'error', 'error_Message', 'bank_ref_num', 'hash', 'key',
    'udf1', 'udf2', 'udf3', 'udf4', 'udf5', 'udf6', 'udf7', 'udf8', 'udf9', 'udf10',
)


@dataclass(frozen=True)
class EasebuzzConfig:
    """Gateway settings, frozen once per service instance."""
    key: str
    salt: str
    base_url: str = 'https://testpay.easebuzz.in'
    initiate_path: str = '/payment/initiateLink'
    pay_path: str = '/pay'
    retrieve_url: str = 'https://testdashboard.easebuzz.in/transaction/v2.1/retrieve'
    request_hash_sequence: str = 'key|txnid|amount|productinfo|firstname|email|udf1|udf2|udf3|udf4|udf5|udf6|udf7|udf8|udf9|udf10'
    response_hash_sequence: str = 'status|udf10|udf9|udf8|udf7|udf6|udf5|udf4|udf3|udf2|udf1|email|firstname|productinfo|amount|txnid|key'
    verify_callback_hash: bool = True
    timeout_seconds: int = 30
    callback_base_url: str = ''
    frontend_url: str = 'http://localhost:3001'
    pending_retries: int = 5
    pending_retry_delay: float = 1.0

    @classmethod
    def from_settings(cls) -> 'EasebuzzConfig':
        return cls(
            key=settings.EASEBUZZ_KEY,
            salt=settings.EASEBUZZ_SALT,
            base_url=settings.EASEBUZZ_BASE_URL.rstrip('/'),
            initiate_path=settings.EASEBUZZ_INITIATE_PATH,
            pay_path=settings.EASEBUZZ_PAY_PATH,
            retrieve_url=settings.EASEBUZZ_RETRIEVE_URL,
            request_hash_sequence=settings.EASEBUZZ_REQUEST_HASH_SEQUENCE,
            response_hash_sequence=settings.EASEBUZZ_RESPONSE_HASH_SEQUENCE,
            verify_callback_hash=settings.EASEBUZZ_VERIFY_CALLBACK_HASH,
            timeout_seconds=settings.EASEBUZZ_TIMEOUT_SECONDS,
            callback_base_url=(settings.PAYMENT_CALLBACK_BASE_URL or '').rstrip('/'),
            frontend_url=settings.FRONTEND_URL.rstrip('/'),
            pending_retries=settings.EASEBUZZ_PENDING_RETRIES,
            pending_retry_delay=settings.EASEBUZZ_PENDING_RETRY_DELAY,
        )

    @property
    def initiate_url(self) -> str:
        return f"{self.base_url}{self.initiate_path}"

    def payment_url(self, access_key: str) -> str:
        return f"{self.base_url}{self.pay_path}/{access_key}"


# ---------------------------------------------------------------- hashing

def _normalize(value) -> str:
    if value is None:
        return ''
    return str(value).strip()


def sha512(value: str) -> str:
    return hashlib.sha512(value.encode('utf-8')).hexdigest()


def build_hash_string(params: Mapping[str, Any], sequence: str, prefix: Optional[str] = None) -> str:
    base = '|'.join(_normalize(params.get(name)) for name in sequence.split('|'))
    return f"{prefix}|{base}" if prefix else base


def request_hash(config: EasebuzzConfig, params: Mapping[str, Any]) -> str:
    return sha512(f"{build_hash_string(params, config.request_hash_sequence)}|{config.salt}")


def response_hash(config: EasebuzzConfig, params: Mapping[str, Any]) -> str:
    return sha512(build_hash_string({**params, 'key': config.key}, config.response_hash_sequence, config.salt))


@dataclass(frozen=True)
class HashVerification:
    valid: bool
    skipped: bool = False
    reason: str = ''

    def to_dict(self):
        return {'valid': self.valid, 'skipped': self.skipped, 'reason': self.reason}


def verify_response_hash(config: EasebuzzConfig, params: Mapping[str, Any]) -> HashVerification:
    if not config.verify_callback_hash:
        return HashVerification(valid=True, skipped=True, reason='verification disabled')
    provided = _normalize(params.get('hash')).lower()
    if not provided:
        return HashVerification(valid=False, reason='missing hash')
    if provided != response_hash(config, params):
        return HashVerification(valid=False, reason='hash mismatch')
    return HashVerification(valid=True)


# ---------------------------------------------------------------- callbacks

def resolve_flow(status: Optional[str]) -> str:
    normalized = _normalize(status).lower()
    if normalized in SUCCESS_STATUSES:
        return FLOW_SUCCESS
    if normalized in FAILURE_STATUSES:
        return FLOW_FAILURE
    if normalized in PENDING_STATUSES:
        return FLOW_PENDING
    return FLOW_UNKNOWN


def normalize_payment_mode(mode: Optional[str], card_type: Optional[str] = None) -> str:
    """Map Easebuzz mode codes to upi|netbanking|debit_card|credit_card|wallet|emi|other."""
    for candidate in (mode, card_type):
        normalized = _normalize(candidate).lower()
        if normalized in PAYMENT_MODE_ALIASES:
            return PAYMENT_MODE_ALIASES[normalized]
    if _normalize(mode) or _normalize(card_type):
        return 'other'
    return ''


@dataclass(frozen=True)
class CallbackData:
    """Gateway transaction payload, parsed once."""
    txnid: str = ''
    status: str = ''
    amount: str = ''
    easepayid: str = ''
    mode: str = ''
    card_type: str = ''
    error: str = ''
    error_message: str = ''
    registration_id: str = ''
    event_id: str = ''
    user_id: str = ''
    payment_reference: str = ''
    fields: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> 'CallbackData':
        payload = payload or {}
        fields = {name: _normalize(payload.get(name)) for name in CALLBACK_FIELDS if payload.get(name) is not None}
        return cls(
            txnid=fields.get('txnid', ''),
            status=fields.get('status', ''),
            amount=fields.get('amount', ''),
            easepayid=fields.get('easepayid', ''),
            mode=fields.get('mode', ''),
            card_type=fields.get('card_type', ''),
            error=fields.get('error', ''),
            error_message=fields.get('error_Message', ''),
            registration_id=fields.get('udf1', ''),
            event_id=fields.get('udf2', ''),
            user_id=fields.get('udf3', ''),
            payment_reference=fields.get('udf4', ''),
            fields=fields,
        )

    @property
    def flow(self) -> str:
        return resolve_flow(self.status)

    @property
    def gateway_message(self) -> str:
        return self.error_message or self.error

    @property
    def payment_mode(self) -> str:
        return normalize_payment_mode(self.mode, self.card_type)

    @property
    def is_empty(self) -> bool:
        return not self.fields

    def to_dict(self) -> Dict[str, str]:
        return {name: value for name, value in self.fields.items() if name != 'hash'}


# ---------------------------------------------------------------- initiate

FAILURE_HTTP_5XX = 'http_5xx'
FAILURE_HTTP_4XX = 'http_4xx'
FAILURE_REJECTED = 'gateway_rejected'
FAILURE_HASH = 'hash_mismatch'
FAILURE_KEY = 'invalid_key'
FAILURE_AMOUNT = 'invalid_amount'
FAILURE_DUPLICATE_TXN = 'duplicate_txnid'
FAILURE_MISSING_TOKEN = 'missing_token'
FAILURE_NETWORK = 'network_error'

MESSAGE_PATTERNS = (
    ('hash', FAILURE_HASH),
    ('duplicate', FAILURE_DUPLICATE_TXN),
    ('txnid', FAILURE_DUPLICATE_TXN),
    ('key', FAILURE_KEY),
    ('merchant', FAILURE_KEY),
    ('amount', FAILURE_AMOUNT),
)


@dataclass(frozen=True)
class InitiateSuccess:
    access_key: str
    payment_url: str
    raw: Any = None
    http_status: int = 200
    ok: bool = True


@dataclass(frozen=True)
class InitiateFailure:
    category: str
    message: str
    raw: Any = None
    http_status: int = 0
    ok: bool = False


InitiateResult = Union[InitiateSuccess, InitiateFailure]


def _gateway_message(data: Any) -> str:
    if isinstance(data, Mapping):
        for key in ('error_desc', 'message', 'msg', 'error', 'data'):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return ''
    if isinstance(data, str):
        return data.strip()[:500]
    return ''


def _status_flag(data: Any) -> Optional[int]:
    if not isinstance(data, Mapping) or 'status' not in data:
        return None
    try:
        return int(data['status'])
    except (TypeError, ValueError):
        return None


def classify_message(message: str) -> Optional[str]:
    lowered = (message or '').lower()
    for pattern, category in MESSAGE_PATTERNS:
        if pattern in lowered:
            return category
    return None


def parse_initiate_response(config: EasebuzzConfig, response: Mapping[str, Any]) -> InitiateResult:
    """Turn the raw initiate response into a success or a classified failure."""
    status_code = response.get('status_code') or 0
    data = response.get('data')
    message = _gateway_message(data) or response.get('error') or ''

    if not response.get('success'):
        if status_code == 0:
            return InitiateFailure(FAILURE_NETWORK, message or 'Unable to reach payment gateway', data, 0)
        category = FAILURE_HTTP_5XX if status_code >= 500 else FAILURE_HTTP_4XX
        return InitiateFailure(category, message or f"Payment gateway returned HTTP {status_code}", data, status_code)

    flag = _status_flag(data)
    if flag != 1:
        category = classify_message(message) or FAILURE_REJECTED
        return InitiateFailure(category, message or 'Payment gateway rejected the request', data, status_code)

    access_key = data.get('data') if isinstance(data, Mapping) else None
    if not isinstance(access_key, str) or not access_key.strip():
        return InitiateFailure(FAILURE_MISSING_TOKEN, 'Payment gateway did not return a payment token', data, status_code)

    access_key = access_key.strip()
    return InitiateSuccess(access_key=access_key, payment_url=config.payment_url(access_key), raw=data,
                           http_status=status_code)


def format_amount(amount) -> str:
    value = Decimal(str(amount))
    if not value.is_finite() or value <= 0:
        raise ValidationError("amount must be a positive number")
    return f"{value:.2f}"


def build_callback_urls(config: EasebuzzConfig, request_origin: str, payment_reference: str,
                        registration_id: str = '', event_id: str = '') -> Tuple[str, str]:
    base_url = config.callback_base_url or (request_origin or '').rstrip('/')
    query = {'paymentRef': payment_reference}
    if registration_id:
        query['registrationId'] = registration_id
    if event_id:
        query['eventId'] = event_id
    encoded = urlencode(query)
    return (
        f"{base_url}/api/v1/payments/easebuzz/callback/success/?{encoded}",
        f"{base_url}/api/v1/payments/easebuzz/callback/failure/?{encoded}",
    )


def build_initiate_payload(config: EasebuzzConfig, *, txnid: str, amount, productinfo: str,
                           firstname: str, email: str, phone: str, surl: str, furl: str,
                           registration_id: str = '', event_id: str = '', user_id: str = '') -> Dict[str, str]:
    payload = {
        'key': config.key,
        'txnid': txnid,
        'amount': format_amount(amount),
        'productinfo': productinfo,
        'firstname': firstname,
        'email': email,
        'phone': phone or '',
        'surl': surl,
        'furl': furl,
        'udf1': registration_id,
        'udf2': event_id,
        'udf3': user_id,
        'udf4': txnid,
        'udf5': '',
    }
    payload['hash'] = request_hash(config, payload)
    return payload


# ---------------------------------------------------------------- client

class EasebuzzClient:
    """HTTP client for the Easebuzz initiate and retrieve APIs. No automatic retries."""

    def __init__(self, config: Optional[EasebuzzConfig] = None):
        self.config = config or EasebuzzConfig.from_settings()
        if not self.config.key or not self.config.salt:
            raise ConfigurationError("Easebuzz configuration missing: key or salt")

    def _make_request(self, url: str, data: Mapping[str, str]) -> Dict[str, Any]:
        start_time = time.time()
        try:
            logger.info(f"🌐 EASEBUZZ: POST {url} (txnid={data.get('txnid')})")
            response = requests.post(
                url,
                data=dict(data),
                headers={
                    'Content-Type': 'application/x-www-form-urlencoded',
                    'Accept': 'application/json',
                },
                timeout=self.config.timeout_seconds,
            )
            duration_ms = int((time.time() - start_time) * 1000)
            try:
                payload = response.json()
            except ValueError:
                payload = response.text

            logger.info(f"🌐 EASEBUZZ: HTTP {response.status_code} in {duration_ms}ms")
            return {
                'success': 200 <= response.status_code < 300,
                'data': payload,
                'duration_ms': duration_ms,
                'status_code': response.status_code,
            }
        except requests.exceptions.Timeout:
            error = f"Timeout after {self.config.timeout_seconds}s"
            logger.warning(f"⏰ EASEBUZZ: {error}")
        except requests.exceptions.RequestException as e:
            error = f"Connection error: {e}"
            logger.warning(f"🔌 EASEBUZZ: {error}")

        return {
            'success': False,
            'data': None,
            'error': error,
            'duration_ms': int((time.time() - start_time) * 1000),
            'status_code': 0,
        }

    def initiate(self, payload: Mapping[str, str]) -> Tuple[InitiateResult, Dict[str, Any]]:
        """POST the initiate-link form. Returns the parsed result and the raw response dict."""
        response = self._make_request(self.config.initiate_url, payload)
        return parse_initiate_response(self.config, response), response

    def retrieve(self, txnid: str) -> Dict[str, Any]:
        """Fetch the gateway's view of a transaction."""
        request_payload = {
            'key': self.config.key,
            'txnid': txnid,
            'hash': sha512(f"{self.config.key}|{txnid}|{self.config.salt}"),
        }
        response = self._make_request(self.config.retrieve_url, request_payload)
        response['endpoint'] = self.config.retrieve_url
        response['request_payload'] = {'key': self.config.key, 'txnid': txnid}
        response['transaction'] = extract_transaction(response.get('data'), txnid)
        return response


def extract_transaction(data: Any, txnid: str = '') -> Dict[str, Any]:
    """Pick the transaction record out of a retrieve response."""
    if not isinstance(data, Mapping):
        return {}
    message = data.get('msg', data.get('data'))
    if isinstance(message, Mapping):
        return dict(message)
    if isinstance(message, list):
        records = [record for record in message if isinstance(record, Mapping)]
        for record in records:
            if txnid and _normalize(record.get('txnid')) == txnid:
                return dict(record)
        return dict(records[0]) if records else {}
    if 'txnid' in data and 'status' in data:
        return dict(data)
    return {}

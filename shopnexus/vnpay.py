"""VNPAY payment links and IPN signature verification."""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping
from urllib.parse import quote_plus

log = logging.getLogger(__name__)

PAYMENT_URL = "https://sandbox.vnpayment.vn/paymentv2/vpcpay.html"
SECURE_HASH_KEY = "vnp_SecureHash"
ORDER_LIFETIME = timedelta(minutes=30)


class PaymentVerificationError(ValueError):
    """Raised when IPN data is unsigned or its signature does not match."""


def format_time(t: datetime) -> str:
    """Format as yyyyMMddHHmmss."""
    return t.strftime("%Y%m%d%H%M%S")


def sign(message: str, key: bytes | str) -> str:
    """Hex HMAC-SHA512 of message under key."""
    if isinstance(key, str):
        key = key.encode("utf-8")
    return hmac.new(key, message.encode("utf-8"), hashlib.sha512).hexdigest()


def build_sorted_query(input_data: Mapping[str, Any]) -> str:
    """Query string with keys sorted and spaces encoded as '+', as VNPAY hashes it."""
    parts = []
    for key in sorted(input_data):
        value = input_data[key]
        if not isinstance(value, str):
            raise TypeError(f"value of {key!r} must be a string, got {type(value).__name__}")
        parts.append(f"{quote_plus(key)}={quote_plus(value)}")
    return "&".join(parts).replace(" ", "+")


@dataclass
class CreateOrderParams:
    payment_id: int
    amount: int
    info: str
    return_url: str


class VNPayClient:
    """Builds signed payment URLs and checks signed payment notifications."""

    def __init__(self, tmn_code: str, hash_secret: str) -> None:
        self.tmn_code = tmn_code
        self.hash_secret = hash_secret

    def create_order(self, params: CreateOrderParams, now: datetime | None = None) -> str:
        """Return the signed payment URL for an order."""
        now = datetime.now() if now is None else now
        query = {
            "vnp_Version": "2.1.0",
            "vnp_Command": "pay",
            "vnp_TmnCode": self.tmn_code,
            "vnp_Amount": str(params.amount * 100),
            "vnp_CreateDate": format_time(now),
            "vnp_CurrCode": "VND",
            "vnp_IpAddr": "192.168.1.1",
            "vnp_Locale": "vn",
            "vnp_OrderInfo": params.info,
            "vnp_OrderType": "billpayment",
            "vnp_ReturnUrl": params.return_url,
            "vnp_ExpireDate": format_time(now + ORDER_LIFETIME),
            "vnp_TxnRef": str(params.payment_id),
        }
        encoded = build_sorted_query(query)
        secure_hash = sign(encoded, self.hash_secret)
        return f"{PAYMENT_URL}?{encoded}&{SECURE_HASH_KEY}={secure_hash}"

    def verify_payment(self, ipn: Mapping[str, Any]) -> None:
        """Raise PaymentVerificationError unless the IPN carries a matching signature."""
        expected = ipn.get(SECURE_HASH_KEY)
        if not isinstance(expected, str):
            raise PaymentVerificationError("missing or invalid vnp_SecureHash in IPN data")

        fields = {key: value for key, value in ipn.items() if key != SECURE_HASH_KEY}
        hash_data = build_sorted_query(fields)
        log.debug("Hash data: %s", hash_data)
        actual = sign(hash_data, self.hash_secret)

        if not hmac.compare_digest(actual, expected):
            log.debug("Hash mismatch: %s %s", expected, actual)
            raise PaymentVerificationError(f"hash mismatch: expected {expected}, got {actual}")
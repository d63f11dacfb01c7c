import os
import hmac
import hashlib
import logging
import requests

from rewear.errors import PaymentGatewayError

RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")
RAZORPAY_API_URL = os.getenv("RAZORPAY_API_URL", "https://api.razorpay.com/v1")

if not RAZORPAY_KEY_ID or not RAZORPAY_KEY_SECRET:
    raise RuntimeError(
        "Razorpay environment variables are not set. "
        "Please configure RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET."
    )

CURRENCY = "INR"

logger = logging.getLogger(__name__)


def create_order(amount_paise: int, receipt: str, notes: dict | None = None) -> dict:
    """
    Create a Razorpay order via the Orders API.

    Returns the gateway order ({"id", "amount", "currency", ...}).
    Raises PaymentGatewayError on any transport or API failure.
    """
    data = {
        "amount": amount_paise,
        "currency": CURRENCY,
        "receipt": receipt,
        "notes": notes or {},
    }

    try:
        response = requests.post(
            f"{RAZORPAY_API_URL}/orders",
            auth=(RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET),
            json=data,
            timeout=10,
        )
    except requests.RequestException as e:
        logger.error("Razorpay order request failed | receipt=%s | error=%s", receipt, str(e))
        raise PaymentGatewayError("Failed to create payment order")

    if response.status_code != 200:
        logger.error(
            "Razorpay order rejected | receipt=%s | status=%s | response=%s",
            receipt,
            response.status_code,
            response.text,
        )
        raise PaymentGatewayError("Failed to create payment order")

    return response.json()


def payment_signature(order_id: str, payment_id: str) -> str:
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(
        RAZORPAY_KEY_SECRET.encode("utf-8"),
        message,
        hashlib.sha256,
    ).hexdigest()


def verify_payment_signature(order_id: str, payment_id: str, signature: str) -> bool:
    expected = payment_signature(order_id, payment_id)
    return hmac.compare_digest(expected, signature or "")

import hashlib
import hmac
import logging
from typing import Optional

from .errors import AuthenticationError

SIGNATURE_HEADER = "x-paymentpoint-signature"

logger = logging.getLogger(__name__)


def compute_signature(secret: str, raw_body: bytes) -> str:
    """Hex HMAC-SHA256 of the request body exactly as received."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, raw_body: bytes, signature: Optional[str]) -> None:
    """
    Check a PaymentPoint signature header against the body.

    Args:
        secret: shared webhook secret, validated non-empty at startup
        raw_body: request body bytes
        signature: value of the ``x-paymentpoint-signature`` header

    Raises:
        AuthenticationError: header missing or not matching
    """
    if not signature or not signature.strip():
        logger.warning("Rejected webhook without %s header", SIGNATURE_HEADER)
        raise AuthenticationError("Missing signature")

    expected = compute_signature(secret, raw_body)
    supplied = signature.strip().lower()
    if not hmac.compare_digest(expected.encode("ascii"), supplied.encode("utf-8")):
        logger.warning("Rejected webhook with invalid signature")
        raise AuthenticationError("Invalid signature")

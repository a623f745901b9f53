"""
PaymentPoint Deposit Pipeline

This module provides:
- HMAC-SHA256 webhook signature verification
- Classification of creditable payment notifications
- Account resolution by receiving account number or payer email
- Idempotent, fee-adjusted wallet crediting with an audit record
- One-time referral bonuses and loyalty point accrual
"""

from .config import Settings
from .errors import (
    DepositServiceError,
    ConfigurationError,
    ValidationError,
    AuthenticationError,
    NotFoundError,
    InternalError,
    DuplicateWebhookError,
)
from .models import WebhookEvent, WebhookAck, AckStatus
from .service import DepositService
from .storage import InMemoryStorage

__all__ = [
    "Settings",
    "DepositServiceError",
    "ConfigurationError",
    "ValidationError",
    "AuthenticationError",
    "NotFoundError",
    "InternalError",
    "DuplicateWebhookError",
    "WebhookEvent",
    "WebhookAck",
    "AckStatus",
    "DepositService",
    "InMemoryStorage",
]

import json
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from deposits.api import create_app
from deposits.config import Settings
from deposits.resolver import register_account
from deposits.service import DepositService
from deposits.signature import SIGNATURE_HEADER, compute_signature
from deposits.storage import USERS, InMemoryStorage

SECRET = "test-webhook-secret"
ACCOUNT_NUMBER = "1234567890"
CUSTOMER_EMAIL = "a@b.com"


def make_payload(transaction_id="PP-0001", amount=1000, account_number=ACCOUNT_NUMBER,
                 email=CUSTOMER_EMAIL, notification_status="payment_successful",
                 transaction_status="success"):
    return {
        "notification_status": notification_status,
        "transaction_status": transaction_status,
        "transaction_id": transaction_id,
        "amount_paid": amount,
        "receiver": {"account_number": account_number},
        "customer": {"email": email, "name": "A"},
    }


def sign(payload, secret=SECRET):
    body = json.dumps(payload).encode("utf-8")
    return body, compute_signature(secret, body)


def add_user(storage, user_id, email=None, referral_code=None, referred_by=None,
             referral_paid=False, loyalty_points=0, balance=Decimal("0")):
    doc = {
        "walletBalanceNGN": balance,
        "email": email,
        "referralCode": referral_code,
        "referredBy": referred_by,
        "referralEarningsAvailable": Decimal("0"),
        "referralEarningsTotal": Decimal("0"),
        "referralEarningsPaid": referral_paid,
        "loyaltyPoints": loyalty_points,
        "totalLoyaltyPoints": loyalty_points,
        "isAdmin": False,
        "isBlocked": False,
    }
    storage.create(USERS, user_id, {k: v for k, v in doc.items() if v is not None})


@pytest.fixture
def settings():
    return Settings(paymentpoint_secret_key=SECRET)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def service(settings, storage):
    return DepositService(settings, storage)


@pytest.fixture
def account_user(storage):
    """A user holding the receiving account ``ACCOUNT_NUMBER``."""
    add_user(storage, "user-1", email=CUSTOMER_EMAIL)
    register_account(storage, "user-1", ACCOUNT_NUMBER, account_name="A", bank_name="PalmPay")
    return "user-1"


@pytest.fixture
def client(settings, storage):
    return TestClient(create_app(settings, storage=storage))


@pytest.fixture
def post_webhook(client):
    def _post(payload, signature=None, raw_body=None):
        body, expected = sign(payload) if raw_body is None else (raw_body, None)
        headers = {"Content-Type": "application/json"}
        sig = signature if signature is not None else expected
        if sig is not None:
            headers[SIGNATURE_HEADER] = sig
        return client.post("/webhooks/paymentpoint", content=body, headers=headers)
    return _post

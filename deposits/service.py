import json
import logging
from typing import Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .config import Settings
from .errors import DepositServiceError, DuplicateWebhookError, InternalError, NotFoundError, ValidationError
from .ledger import LedgerPoster, format_amount
from .loyalty import LoyaltyProgram
from .models import (
    AckStatus,
    PostingResult,
    ReconcileResponse,
    RedemptionResponse,
    ReferralSummary,
    TransactionHistoryResponse,
    TransactionRecord,
    UserRecord,
    WalletResponse,
    WebhookAck,
    WebhookEvent,
)
from .notifications import DepositNotification
from .reconcile import reconcile
from .referrals import ReferralSettlement
from .resolver import AccountResolver
from .signature import verify_signature
from .storage import PROCESSED_WEBHOOKS, TRANSACTIONS, USERS, InMemoryStorage

logger = logging.getLogger(__name__)


class WebhookOutcome(BaseModel):
    ack: WebhookAck
    notification: Optional[DepositNotification] = None


class DepositService:
    def __init__(self, settings: Settings, storage: Optional[InMemoryStorage] = None):
        self.settings = settings
        self.storage = storage or InMemoryStorage()
        self.resolver = AccountResolver(self.storage)
        self.poster = LedgerPoster(self.storage, settings)
        self.referrals = ReferralSettlement(self.storage, settings)
        self.loyalty = LoyaltyProgram(self.storage, settings)

    def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> WebhookOutcome:
        """
        Run one PaymentPoint delivery through the pipeline.

        Signature, payload, account resolution and the ledger posting are
        fatal: they raise and the provider retries. Referral and loyalty run
        after the money is credited and only ever log their failures.
        """
        verify_signature(self.settings.paymentpoint_secret_key, raw_body, signature)
        event = self.parse_event(raw_body)

        if not event.is_creditable():
            logger.info(
                "Ignoring webhook %s: notification_status=%s transaction_status=%s",
                event.transaction_id, event.notification_status, event.transaction_status,
            )
            return WebhookOutcome(ack=WebhookAck(
                status=AckStatus.IGNORED,
                message="Payment not successful, nothing credited",
                transaction_id=event.transaction_id,
            ))

        missing = event.missing_credit_fields()
        if missing:
            raise ValidationError(f"Missing or invalid fields: {', '.join(missing)}")

        logger.info(
            "Processing successful payment %s: %s from %s",
            event.transaction_id, format_amount(event.amount_paid, self.settings.currency),
            event.customer.email,
        )

        processed = self.storage.get(PROCESSED_WEBHOOKS, event.transaction_id)
        if processed is not None:
            return self._duplicate(event.transaction_id, processed["userId"])

        try:
            user_id = self.resolver.resolve(event.receiver.account_number, event.customer.email)
            posting = self.poster.post_deposit(user_id, event)
        except DuplicateWebhookError as e:
            return self._duplicate(e.transaction_id, e.user_id)
        except DepositServiceError:
            raise
        except Exception as e:
            logger.exception("Crediting %s failed", event.transaction_id)
            raise InternalError("Webhook processing failed") from e

        bonus_paid = self._settle_referral(posting)
        points = self._accrue_loyalty(posting)

        return WebhookOutcome(
            ack=WebhookAck(
                status=AckStatus.CREDITED,
                message="Deposit credited",
                transaction_id=posting.transaction_id,
                user_id=posting.user_id,
                amount_credited=posting.net_amount,
                fee_amount=posting.fee_amount,
                referral_bonus_paid=bonus_paid,
                loyalty_points_awarded=points,
            ),
            notification=self._build_notification(posting, event),
        )

    def parse_event(self, raw_body: bytes) -> WebhookEvent:
        try:
            payload = json.loads(raw_body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise ValidationError("Invalid JSON")
        if not isinstance(payload, dict):
            raise ValidationError("Webhook body must be a JSON object")
        try:
            return WebhookEvent.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError(f"Malformed webhook payload: {e.error_count()} error(s)") from e

    def _duplicate(self, transaction_id: str, user_id: str) -> WebhookOutcome:
        logger.warning("Duplicate delivery of %s ignored", transaction_id)
        return WebhookOutcome(ack=WebhookAck(
            status=AckStatus.DUPLICATE,
            message="Transaction already processed",
            transaction_id=transaction_id,
            user_id=user_id,
        ))

    def _settle_referral(self, posting: PostingResult) -> bool:
        try:
            return self.referrals.settle(posting.user_id, posting.gross_amount) is not None
        except Exception:
            logger.exception("Referral processing error for %s", posting.transaction_id)
            return False

    def _accrue_loyalty(self, posting: PostingResult) -> int:
        try:
            return self.loyalty.accrue_deposit(posting.user_id, posting.net_amount)
        except Exception:
            logger.exception("Loyalty points error for %s", posting.transaction_id)
            return 0

    def _build_notification(self, posting: PostingResult, event: WebhookEvent) -> DepositNotification:
        user = self.storage.get(USERS, posting.user_id) or {}
        return DepositNotification(
            user_id=posting.user_id,
            email=user.get("email") or event.customer.email,
            name=user.get("name") or event.customer.name,
            transaction_id=posting.transaction_id,
            gross_amount=posting.gross_amount,
            fee_amount=posting.fee_amount,
            net_amount=posting.net_amount,
            currency=self.settings.currency,
        )

    def get_wallet(self, user_id: str) -> WalletResponse:
        user = self.storage.get(USERS, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        record = UserRecord.model_validate(user)
        return WalletResponse(
            user_id=user_id,
            currency=self.settings.currency,
            wallet_balance=record.wallet_balance_ngn,
            loyalty_points=record.loyalty_points,
            total_loyalty_points=record.total_loyalty_points,
            referral_earnings_available=record.referral_earnings_available,
        )

    def get_transactions(self, user_id: str, limit: int = 50, offset: int = 0) -> TransactionHistoryResponse:
        records = [
            TransactionRecord.model_validate(doc)
            for _, doc in self.storage.query(TRANSACTIONS, lambda doc: doc.get("userId") == user_id)
        ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return TransactionHistoryResponse(
            user_id=user_id,
            transactions=records[offset:offset + limit],
            total_count=len(records),
        )

    def get_referrals(self, user_id: str) -> ReferralSummary:
        return self.referrals.summary(user_id)

    def redeem_points(self, user_id: str, points: int) -> RedemptionResponse:
        return self.loyalty.redeem(user_id, points)

    def reconcile(self) -> ReconcileResponse:
        return reconcile(self.storage, self.poster)

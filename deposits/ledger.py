import logging
from decimal import Decimal, InvalidOperation

from .config import Settings
from .errors import DuplicateWebhookError
from .models import PostingResult, ProcessedWebhook, TransactionRecord, TransactionType, UserRecord, WebhookEvent
from .storage import PROCESSED_WEBHOOKS, TRANSACTIONS, USERS, Increment, InMemoryStorage, utcnow

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
CENTS = Decimal("0.01")

PROVIDER_LABELS = {"paymentpoint": "PaymentPoint"}
CURRENCY_SYMBOLS = {"NGN": "₦"}


def split_fee(gross: Decimal, fee_percentage: Decimal) -> tuple[Decimal, Decimal]:
    """Return ``(fee, net)`` at full precision; rounding is for display only."""
    fee = gross * fee_percentage / HUNDRED
    return fee, gross - fee


def format_amount(amount: Decimal, currency: str = "NGN") -> str:
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    try:
        return f"{symbol}{amount.quantize(CENTS):,}"
    except InvalidOperation:
        # beyond the context precision; log lines must never fail
        return f"{symbol}{amount}"


def new_user_defaults() -> dict:
    """Fields for a user document first created by a deposit.

    The payer is not necessarily the account owner, so no identity is copied
    from the payload; it stays in the transaction record's webhook data.
    """
    return UserRecord(created_at=utcnow()).to_document()


class LedgerPoster:
    def __init__(self, storage: InMemoryStorage, settings: Settings):
        self.storage = storage
        self.settings = settings

    def post_deposit(self, user_id: str, event: WebhookEvent) -> PostingResult:
        """
        Credit ``user_id`` with the fee-adjusted deposit and record it.

        The transaction-id claim, the wallet increment and the transaction
        record are written in one store transaction: either all land or none.

        Raises:
            DuplicateWebhookError: the provider transaction id was already credited
        """
        gross = event.amount_paid
        fee, net = split_fee(gross, self.settings.fee_percentage)
        currency = self.settings.currency
        now = utcnow()

        with self.storage.transaction():
            processed = self.storage.get(PROCESSED_WEBHOOKS, event.transaction_id)
            if processed is not None:
                raise DuplicateWebhookError(event.transaction_id, processed["userId"])

            marker = ProcessedWebhook(
                user_id=user_id,
                net_amount=net,
                gross_amount=gross,
                fee_amount=fee,
                webhook_data=event.model_dump(mode="json", exclude_unset=True),
                created_at=now,
            )
            self.storage.create(PROCESSED_WEBHOOKS, event.transaction_id, marker.to_document())

            self.storage.upsert(
                USERS,
                user_id,
                {"walletBalanceNGN": Increment(net), "lastUpdated": now},
                defaults=new_user_defaults(),
            )

            record = self.build_record(user_id, event, gross, fee, net, now)
            record_id = self.storage.add(TRANSACTIONS, record.to_document())
            self.storage.update(PROCESSED_WEBHOOKS, event.transaction_id, {"transactionRecordId": record_id})

        logger.info(
            "Deposit %s credited: user=%s gross=%s fee=%s (%s%%) net=%s",
            event.transaction_id, user_id, format_amount(gross, currency),
            format_amount(fee, currency), self.settings.fee_percentage,
            format_amount(net, currency),
        )

        return PostingResult(
            user_id=user_id,
            transaction_id=event.transaction_id,
            transaction_record_id=record_id,
            gross_amount=gross,
            fee_amount=fee,
            fee_percentage=self.settings.fee_percentage,
            net_amount=net,
        )

    def build_record(self, user_id: str, event: WebhookEvent, gross: Decimal, fee: Decimal,
                     net: Decimal, created_at, status: str = "completed") -> TransactionRecord:
        provider = self.settings.provider
        label = PROVIDER_LABELS.get(provider, provider)
        return TransactionRecord(
            user_id=user_id,
            type=TransactionType.DEPOSIT,
            method=provider,
            amount=net,
            currency=self.settings.currency,
            amount_ngn=net,
            original_amount=gross,
            fee_amount=fee,
            fee_percentage=self.settings.fee_percentage,
            provider=provider,
            status=status,
            description=f"{label} bank transfer - {format_amount(gross, self.settings.currency)}",
            transaction_id=event.transaction_id,
            webhook_data=event.model_dump(mode="json", exclude_unset=True),
            created_at=created_at,
        )

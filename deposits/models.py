from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel

# Largest single transfer accepted; keeps every amount inside the decimal context.
MAX_AMOUNT_PAID = Decimal("1000000000000")


class NotificationStatus(str, Enum):
    PAYMENT_SUCCESSFUL = "payment_successful"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class TransactionType(str, Enum):
    DEPOSIT = "deposit"
    PURCHASE = "purchase"
    REFUND = "refund"


class LoyaltyAction(str, Enum):
    DEPOSIT = "deposit"
    PURCHASE = "purchase"
    RENTAL = "rental"


class AckStatus(str, Enum):
    CREDITED = "credited"
    IGNORED = "ignored"
    DUPLICATE = "duplicate"


class WebhookReceiver(BaseModel):
    account_number: Optional[str] = None
    account_name: Optional[str] = None
    bank: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class WebhookCustomer(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class WebhookEvent(BaseModel):
    """PaymentPoint notification body.

    Only the two status fields are required to classify a delivery; the rest
    is checked by ``missing_credit_fields`` once the event is creditable.
    """

    notification_status: str
    transaction_status: str
    transaction_id: Optional[str] = None
    amount_paid: Optional[Decimal] = None
    settlement_amount: Optional[Decimal] = None
    receiver: WebhookReceiver = Field(default_factory=WebhookReceiver)
    customer: WebhookCustomer = Field(default_factory=WebhookCustomer)
    description: Optional[str] = None
    timestamp: Optional[str] = None

    model_config = ConfigDict(extra="allow", json_schema_extra={
        "example": {
            "notification_status": "payment_successful",
            "transaction_status": "success",
            "transaction_id": "PP-20240101-0001",
            "amount_paid": 1000,
            "receiver": {"account_number": "1234567890"},
            "customer": {"email": "a@b.com", "name": "A"}
        }
    })

    def is_creditable(self) -> bool:
        return (
            self.notification_status == NotificationStatus.PAYMENT_SUCCESSFUL.value
            and self.transaction_status == PaymentStatus.SUCCESS.value
        )

    def missing_credit_fields(self) -> list[str]:
        missing = []
        if not self.transaction_id:
            missing.append("transaction_id")
        if self.amount_paid is None or not 0 < self.amount_paid < MAX_AMOUNT_PAID:
            missing.append("amount_paid")
        if not self.receiver.account_number and not self.customer.email:
            missing.append("receiver.account_number or customer.email")
        return missing


class StoreModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class UserRecord(StoreModel):
    wallet_balance_ngn: Decimal = Field(default=Decimal("0"), alias="walletBalanceNGN")
    email: Optional[str] = None
    name: Optional[str] = None
    referral_code: Optional[str] = None
    referred_by: Optional[str] = None
    referral_earnings_available: Decimal = Decimal("0")
    referral_earnings_total: Decimal = Decimal("0")
    referral_earnings_paid: bool = False
    loyalty_points: int = 0
    total_loyalty_points: int = 0
    is_admin: bool = False
    is_blocked: bool = False
    created_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None


class AccountRecord(StoreModel):
    account_number: str
    account_name: Optional[str] = None
    bank_name: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None


class TransactionRecord(StoreModel):
    user_id: str
    type: TransactionType
    method: str
    amount: Decimal
    currency: str
    amount_ngn: Decimal = Field(alias="amountNGN")
    original_amount: Decimal
    fee_amount: Decimal
    fee_percentage: Decimal
    provider: str
    status: str
    description: str
    transaction_id: str
    webhook_data: dict = Field(default_factory=dict)
    created_at: datetime

    model_config = ConfigDict(use_enum_values=True)


class ReferralEarning(StoreModel):
    referrer_id: str
    referred_user_id: str
    amount: Decimal
    deposit_amount: Decimal
    status: str = "earned"
    created_at: datetime


class LoyaltyTransaction(StoreModel):
    user_id: str
    action: LoyaltyAction
    points: int
    amount: Decimal
    created_at: datetime

    model_config = ConfigDict(use_enum_values=True)


class LoyaltyRedemption(StoreModel):
    user_id: str
    points: int
    cash_value: Decimal
    created_at: datetime


class ProcessedWebhook(StoreModel):
    user_id: str
    net_amount: Decimal
    gross_amount: Decimal
    fee_amount: Decimal
    transaction_record_id: Optional[str] = None
    webhook_data: dict = Field(default_factory=dict)
    created_at: datetime


class PostingResult(BaseModel):
    user_id: str
    transaction_id: str
    transaction_record_id: str
    gross_amount: Decimal
    fee_amount: Decimal
    fee_percentage: Decimal
    net_amount: Decimal


class WebhookAck(BaseModel):
    status: AckStatus
    message: str
    transaction_id: Optional[str] = None
    user_id: Optional[str] = None
    amount_credited: Optional[Decimal] = None
    fee_amount: Optional[Decimal] = None
    referral_bonus_paid: bool = False
    loyalty_points_awarded: int = 0


class WalletResponse(BaseModel):
    user_id: str
    currency: str
    wallet_balance: Decimal
    loyalty_points: int
    total_loyalty_points: int
    referral_earnings_available: Decimal


class TransactionHistoryResponse(BaseModel):
    user_id: str
    transactions: list[TransactionRecord]
    total_count: int


class ReferredUser(BaseModel):
    user_id: str
    email: str = "Unknown"
    name: Optional[str] = None
    status: str
    earned_amount: Decimal = Decimal("0")


class ReferralSummary(BaseModel):
    user_id: str
    referral_code: str
    referral_count: int
    qualified_count: int
    pending_count: int
    referral_earnings: Decimal
    pending_earnings: Decimal
    total_earned: Decimal
    referrals: list[ReferredUser]


class RedeemPointsRequest(BaseModel):
    points: int = Field(..., gt=0, description="Loyalty points to convert into wallet credit")


class RedemptionResponse(BaseModel):
    user_id: str
    points_redeemed: int
    cash_value: Decimal
    remaining_points: int


class ReconcileResponse(BaseModel):
    checked: int
    repaired: list[str]

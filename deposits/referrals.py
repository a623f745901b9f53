import logging
from decimal import Decimal
from typing import Optional

from .config import Settings
from .errors import NotFoundError
from .models import ReferralEarning, ReferralSummary, ReferredUser
from .storage import REFERRAL_EARNINGS, USERS, Increment, InMemoryStorage, utcnow

logger = logging.getLogger(__name__)


def _not_paid(flag) -> bool:
    return not flag


class ReferralSettlement:
    """One-time bonus to the referrer when a referred user's deposit qualifies.

    The paid flag on the referred user is claimed with a compare-and-set inside
    the same store transaction as the referrer credit, so a bonus is paid at
    most once per referred user no matter how many deposits race.
    """

    def __init__(self, storage: InMemoryStorage, settings: Settings):
        self.storage = storage
        self.settings = settings

    def is_eligible_amount(self, gross: Decimal) -> bool:
        return gross >= self.settings.referral_threshold

    def settle(self, user_id: str, gross: Decimal) -> Optional[ReferralEarning]:
        if not self.is_eligible_amount(gross):
            return None

        bonus = self.settings.referral_bonus
        with self.storage.transaction():
            user = self.storage.get(USERS, user_id)
            if user is None:
                return None

            referred_by = user.get("referredBy")
            if not referred_by or user.get("referralEarningsPaid"):
                return None

            match = self.storage.find_one(USERS, "referralCode", referred_by)
            if match is None:
                logger.warning("Referral code %s of user %s has no owner", referred_by, user_id)
                return None
            referrer_id = match[0]
            if referrer_id == user_id:
                logger.warning("Ignoring self-referral for user %s", user_id)
                return None

            claimed = self.storage.update_if(
                USERS, user_id, "referralEarningsPaid", _not_paid, {"referralEarningsPaid": True},
            )
            if not claimed:
                return None

            self.storage.update(USERS, referrer_id, {
                "referralEarningsAvailable": Increment(bonus),
                "referralEarningsTotal": Increment(bonus),
            })
            earning = ReferralEarning(
                referrer_id=referrer_id,
                referred_user_id=user_id,
                amount=bonus,
                deposit_amount=gross,
                created_at=utcnow(),
            )
            self.storage.add(REFERRAL_EARNINGS, earning.to_document())

        logger.info("Referral bonus awarded: %s to %s for user %s", bonus, referrer_id, user_id)
        return earning

    def summary(self, user_id: str) -> ReferralSummary:
        user = self.storage.get(USERS, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        referral_code = user.get("referralCode")
        if not referral_code:
            raise NotFoundError("User has no referral code")

        bonus = self.settings.referral_bonus
        referrals = [
            ReferredUser(
                user_id=doc_id,
                email=doc.get("email") or "Unknown",
                name=doc.get("name"),
                status="qualified" if doc.get("referralEarningsPaid") else "pending",
                earned_amount=bonus if doc.get("referralEarningsPaid") else Decimal("0"),
            )
            for doc_id, doc in self.storage.query(USERS, lambda doc: doc.get("referredBy") == referral_code)
        ]
        qualified = [r for r in referrals if r.status == "qualified"]
        pending_count = len(referrals) - len(qualified)

        return ReferralSummary(
            user_id=user_id,
            referral_code=referral_code,
            referral_count=len(referrals),
            qualified_count=len(qualified),
            pending_count=pending_count,
            pending_earnings=bonus * pending_count,
            referral_earnings=user.get("referralEarningsAvailable") or Decimal("0"),
            total_earned=user.get("referralEarningsTotal") or Decimal("0"),
            referrals=referrals,
        )

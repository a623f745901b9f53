import logging
from decimal import Decimal, ROUND_FLOOR

from .config import Settings
from .errors import NotFoundError, ValidationError
from .models import LoyaltyAction, LoyaltyRedemption, LoyaltyTransaction, RedemptionResponse
from .storage import LOYALTY_REDEMPTIONS, LOYALTY_TRANSACTIONS, USERS, Increment, InMemoryStorage, utcnow

logger = logging.getLogger(__name__)

POINTS_PER_PURCHASE = 2
POINTS_PER_RENTAL = 5


class LoyaltyProgram:
    def __init__(self, storage: InMemoryStorage, settings: Settings):
        self.storage = storage
        self.settings = settings

    def points_for(self, action: LoyaltyAction, amount: Decimal) -> int:
        # deposits earn per naira; purchases and rentals earn per unit
        if action == LoyaltyAction.DEPOSIT:
            per_point = self.settings.loyalty_naira_per_point
            return int((Decimal(amount) / per_point).to_integral_value(rounding=ROUND_FLOOR))
        if action == LoyaltyAction.PURCHASE:
            return int(amount) * POINTS_PER_PURCHASE
        if action == LoyaltyAction.RENTAL:
            return int(amount) * POINTS_PER_RENTAL
        return 0

    def accrue_deposit(self, user_id: str, net: Decimal) -> int:
        return self.award(user_id, LoyaltyAction.DEPOSIT, net)

    def award(self, user_id: str, action: LoyaltyAction, amount: Decimal) -> int:
        points = self.points_for(action, amount)
        if points <= 0:
            return 0

        with self.storage.transaction():
            self.storage.update(USERS, user_id, {
                "loyaltyPoints": Increment(points),
                "totalLoyaltyPoints": Increment(points),
            })
            entry = LoyaltyTransaction(
                user_id=user_id,
                action=action,
                points=points,
                amount=amount,
                created_at=utcnow(),
            )
            self.storage.add(LOYALTY_TRANSACTIONS, entry.to_document())

        logger.info("Loyalty points awarded: %s points to %s for %s", points, user_id, action.value)
        return points

    def redeem(self, user_id: str, points: int) -> RedemptionResponse:
        """Convert loyalty points into wallet credit (100 points = ₦1 by default)."""
        if points <= 0:
            raise ValidationError("Points to redeem must be positive")

        cash_value = Decimal(points) / Decimal(self.settings.loyalty_points_per_naira)
        with self.storage.transaction():
            user = self.storage.get(USERS, user_id)
            if user is None:
                raise NotFoundError(f"User {user_id} not found")

            available = user.get("loyaltyPoints") or 0
            if points > available:
                raise ValidationError("Insufficient loyalty points")

            self.storage.update(USERS, user_id, {
                "loyaltyPoints": Increment(-points),
                "walletBalanceNGN": Increment(cash_value),
                "lastUpdated": utcnow(),
            })
            redemption = LoyaltyRedemption(
                user_id=user_id,
                points=points,
                cash_value=cash_value,
                created_at=utcnow(),
            )
            self.storage.add(LOYALTY_REDEMPTIONS, redemption.to_document())

        logger.info("User %s redeemed %s points for %s", user_id, points, cash_value)
        return RedemptionResponse(
            user_id=user_id,
            points_redeemed=points,
            cash_value=cash_value,
            remaining_points=available - points,
        )

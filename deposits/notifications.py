import logging
from decimal import Decimal
from typing import Optional, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class DepositNotification(BaseModel):
    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    transaction_id: str
    gross_amount: Decimal
    fee_amount: Decimal
    net_amount: Decimal
    currency: str = "NGN"


class Notifier(Protocol):
    def send_deposit_notification(self, notification: DepositNotification) -> None: ...


class LoggingNotifier:
    """Default notifier; mail delivery lives outside this service."""

    def send_deposit_notification(self, notification: DepositNotification) -> None:
        logger.info(
            "Deposit notification for %s <%s>: %s %s credited (transaction %s)",
            notification.user_id, notification.email or "no email",
            notification.currency, notification.net_amount, notification.transaction_id,
        )


def notify_deposit(notifier: Notifier, notification: DepositNotification) -> None:
    """Fire-and-forget: failures are logged and never reach the caller."""
    if not notification.email:
        logger.info("Skipping deposit notification for %s: no email on file", notification.user_id)
        return
    try:
        notifier.send_deposit_notification(notification)
    except Exception:
        logger.exception("Deposit notification failed for %s", notification.transaction_id)

import logging
from typing import Optional

from .errors import NotFoundError, ValidationError
from .models import AccountRecord
from .storage import ACCOUNTS, USERS, InMemoryStorage, utcnow

logger = logging.getLogger(__name__)


class AccountResolver:
    """Maps a receiving account number (or the payer's email) to a user id.

    Lookup only: an unknown account never creates a user or a wallet.
    """

    def __init__(self, storage: InMemoryStorage):
        self.storage = storage

    def resolve(self, account_number: Optional[str], email: Optional[str]) -> str:
        if account_number:
            match = self.storage.find_one(ACCOUNTS, "accountNumber", account_number)
            if match and match[1].get("isActive", True):
                return match[0]
            if match:
                logger.warning("Account %s is inactive, trying payer email", account_number)

        if email:
            match = self.storage.find_one(USERS, "email", email)
            if match:
                logger.info("Resolved deposit to user %s by payer email", match[0])
                return match[0]

        logger.error("User not found for account %s", account_number)
        raise NotFoundError(f"No user for account {account_number or '-'}")


def register_account(storage: InMemoryStorage, user_id: str, account_number: str,
                     account_name: Optional[str] = None, bank_name: Optional[str] = None) -> AccountRecord:
    """Create the single, permanent receiving account for ``user_id``."""
    with storage.transaction():
        if storage.exists(ACCOUNTS, user_id):
            raise ValidationError(f"User {user_id} already has an account")
        if storage.find_one(ACCOUNTS, "accountNumber", account_number):
            raise ValidationError(f"Account number {account_number} is already assigned")

        account = AccountRecord(
            account_number=account_number,
            account_name=account_name,
            bank_name=bank_name,
            is_active=True,
            created_at=utcnow(),
        )
        storage.create(ACCOUNTS, user_id, account.to_document())
    return account

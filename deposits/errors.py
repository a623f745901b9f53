from fastapi import status


class DepositServiceError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


class ConfigurationError(DepositServiceError):
    pass


class ValidationError(DepositServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(DepositServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(DepositServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class InternalError(DepositServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class DuplicateWebhookError(DepositServiceError):
    """Raised when a provider transaction id has already been credited."""

    status_code = status.HTTP_200_OK

    def __init__(self, transaction_id: str, user_id: str):
        super().__init__(f"Transaction {transaction_id} already processed for user {user_id}")
        self.transaction_id = transaction_id
        self.user_id = user_id

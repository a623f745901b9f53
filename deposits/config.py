import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ConfigurationError

BASE_DIR = Path(__file__).resolve().parent.parent

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    """Runtime configuration for the deposit pipeline.

    Built once at startup and handed to ``DepositService`` / ``create_app``;
    nothing in the pipeline reads the environment on its own.
    """

    model_config = ConfigDict(frozen=True)

    paymentpoint_secret_key: str
    fee_percentage: Decimal = Decimal("2")
    referral_bonus: Decimal = Decimal("100")
    referral_threshold: Decimal = Decimal("1000")
    loyalty_naira_per_point: Decimal = Decimal("10")
    loyalty_points_per_naira: int = 100
    currency: str = "NGN"
    provider: str = "paymentpoint"
    log_level: str = "INFO"

    @field_validator("paymentpoint_secret_key")
    @classmethod
    def _secret_required(cls, value: str) -> str:
        if not value or not value.strip():
            raise ConfigurationError("PAYMENTPOINT_SECRET_KEY must be set")
        return value

    @field_validator("fee_percentage")
    @classmethod
    def _fee_in_range(cls, value: Decimal) -> Decimal:
        if value < 0 or value >= 100:
            raise ConfigurationError(f"Fee percentage must be in [0, 100), got {value}")
        return value

    @field_validator("loyalty_naira_per_point", "loyalty_points_per_naira", "referral_bonus")
    @classmethod
    def _positive(cls, value):
        if value <= 0:
            raise ConfigurationError(f"Expected a positive value, got {value}")
        return value

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        load_dotenv(env_file or BASE_DIR / ".env")

        values = {
            "paymentpoint_secret_key": os.getenv("PAYMENTPOINT_SECRET_KEY", ""),
            "fee_percentage": os.getenv("DEPOSIT_FEE_PERCENTAGE"),
            "referral_bonus": os.getenv("REFERRAL_BONUS"),
            "referral_threshold": os.getenv("REFERRAL_THRESHOLD"),
            "loyalty_naira_per_point": os.getenv("LOYALTY_NAIRA_PER_POINT"),
            "loyalty_points_per_naira": os.getenv("LOYALTY_POINTS_PER_NAIRA"),
            "currency": os.getenv("DEPOSIT_CURRENCY"),
            "provider": os.getenv("PAYMENT_PROVIDER"),
            "log_level": os.getenv("LOG_LEVEL"),
        }
        settings = cls(**{key: value for key, value in values.items() if value is not None})
        logger.info(
            "Loaded settings: provider=%s fee=%s%% referral_bonus=%s threshold=%s",
            settings.provider, settings.fee_percentage,
            settings.referral_bonus, settings.referral_threshold,
        )
        return settings


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)

import logging
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, configure_logging
from .errors import DepositServiceError, NotFoundError, ValidationError
from .models import (
    ReconcileResponse, RedeemPointsRequest, RedemptionResponse, ReferralSummary,
    TransactionHistoryResponse, WalletResponse, WebhookAck,
)
from .notifications import LoggingNotifier, Notifier, notify_deposit
from .service import DepositService
from .signature import SIGNATURE_HEADER
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)


def create_app(settings: Settings, storage: Optional[InMemoryStorage] = None,
               notifier: Optional[Notifier] = None, root_path: str = "") -> FastAPI:
    app = FastAPI(
        title="PaymentPoint Deposits API",
        description="Webhook ingestion and wallet crediting for PaymentPoint bank transfers",
        version="1.0.0",
        root_path=root_path,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["Content-Type", "Authorization", SIGNATURE_HEADER],
    )

    deposit_service = DepositService(settings, storage)
    deposit_notifier = notifier or LoggingNotifier()
    app.state.deposit_service = deposit_service

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "paymentpoint-deposits"}

    @app.post("/webhooks/paymentpoint", response_model=WebhookAck, tags=["Webhooks"])
    async def paymentpoint_webhook(request: Request, background_tasks: BackgroundTasks) -> WebhookAck:
        raw_body = await request.body()
        signature = request.headers.get(SIGNATURE_HEADER)
        logger.info("PaymentPoint webhook received (%d bytes)", len(raw_body))
        try:
            outcome = await run_in_threadpool(deposit_service.handle_webhook, raw_body, signature)
        except DepositServiceError as e:
            raise HTTPException(status_code=e.status_code, detail=str(e))
        except Exception:
            logger.exception("PaymentPoint webhook error")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")

        if outcome.notification is not None:
            background_tasks.add_task(notify_deposit, deposit_notifier, outcome.notification)
        return outcome.ack

    @app.get("/users/{user_id}/wallet", response_model=WalletResponse, tags=["Users"])
    def get_wallet(user_id: str) -> WalletResponse:
        try:
            return deposit_service.get_wallet(user_id)
        except NotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    @app.get("/users/{user_id}/transactions", response_model=TransactionHistoryResponse, tags=["Users"])
    def get_transactions(user_id: str, limit: int = 50, offset: int = 0) -> TransactionHistoryResponse:
        return deposit_service.get_transactions(user_id, limit, offset)

    @app.get("/users/{user_id}/referrals", response_model=ReferralSummary, tags=["Referrals"])
    def get_referrals(user_id: str) -> ReferralSummary:
        try:
            return deposit_service.get_referrals(user_id)
        except NotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    @app.post("/users/{user_id}/loyalty/redeem", response_model=RedemptionResponse, tags=["Loyalty"])
    def redeem_points(user_id: str, request: RedeemPointsRequest) -> RedemptionResponse:
        try:
            return deposit_service.redeem_points(user_id, request.points)
        except NotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except ValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    @app.post("/admin/reconcile", response_model=ReconcileResponse, tags=["Admin"])
    def reconcile_deposits() -> ReconcileResponse:
        return deposit_service.reconcile()

    return app


if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)

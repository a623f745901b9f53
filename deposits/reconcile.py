import logging

from .ledger import LedgerPoster
from .models import ProcessedWebhook, ReconcileResponse, WebhookEvent
from .storage import PROCESSED_WEBHOOKS, TRANSACTIONS, InMemoryStorage

logger = logging.getLogger(__name__)


def find_unrecorded_credits(storage: InMemoryStorage) -> list[str]:
    """Provider transaction ids that were credited but have no transaction record."""
    missing = []
    for transaction_id, doc in storage.query(PROCESSED_WEBHOOKS):
        record_id = doc.get("transactionRecordId")
        if not record_id or not storage.exists(TRANSACTIONS, record_id):
            missing.append(transaction_id)
    return sorted(missing)


def reconcile(storage: InMemoryStorage, poster: LedgerPoster) -> ReconcileResponse:
    """Append the missing audit records; balances are left untouched."""
    repaired = []
    checked = storage.count(PROCESSED_WEBHOOKS)

    for transaction_id in find_unrecorded_credits(storage):
        with storage.transaction():
            doc = storage.get(PROCESSED_WEBHOOKS, transaction_id)
            record_id = doc.get("transactionRecordId")
            if record_id and storage.exists(TRANSACTIONS, record_id):
                continue

            marker = ProcessedWebhook.model_validate(doc)
            event = WebhookEvent.model_validate(marker.webhook_data)
            record = poster.build_record(
                marker.user_id,
                event,
                marker.gross_amount,
                marker.fee_amount,
                marker.net_amount,
                marker.created_at,
                status="reconciled",
            )
            record_id = storage.add(TRANSACTIONS, record.to_document())
            storage.update(PROCESSED_WEBHOOKS, transaction_id, {"transactionRecordId": record_id})

        logger.warning("Reconciled unrecorded deposit %s for user %s", transaction_id, marker.user_id)
        repaired.append(transaction_id)

    return ReconcileResponse(checked=checked, repaired=repaired)

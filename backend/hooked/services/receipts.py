"""
Delivery receipt reconciliation: some time after a send, ask Expo for the receipts of that send's
tickets and revoke tokens whose device is no longer registered.

Strictly best-effort cleanup: every failure here is logged and swallowed so it never affects the
send or the job bookkeeping.
"""
import logging
from datetime import timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from hooked.core.constants import RECEIPT_CHECK_DELAY_SECONDS, RECEIPT_ERROR_DEVICE_NOT_REGISTERED
from hooked.core.regions import PARTITIONS
from hooked.core.timeutil import utcnow
from hooked.db.session import session_for
from hooked.models.push_token import PushToken
from hooked.services.push import ExpoPushClient

logger = logging.getLogger(__name__)


def schedule_receipt_check(
    tickets: list[dict[str, Any]],
    tokens: list[str],
    *,
    delay_seconds: float = RECEIPT_CHECK_DELAY_SECONDS,
) -> None:
    """Queue a one-shot receipt check for one chunk. tickets[i] belongs to tokens[i]."""
    pairs = [(t.get("id"), token) for t, token in zip(tickets, tokens) if isinstance(t, dict) and t.get("id")]
    if not pairs:
        return
    from hooked.scheduler import scheduler

    scheduler.add_job(
        check_receipts,
        "date",
        run_date=utcnow() + timedelta(seconds=delay_seconds),
        args=[pairs],
        misfire_grace_time=60,
    )
    logger.debug("Scheduled receipt check for %s tickets in %ss", len(pairs), delay_seconds)


def check_receipts(pairs: list[tuple[str, str]], client: ExpoPushClient | None = None) -> int:
    """Fetch receipts for (ticket_id, token) pairs; revoke unregistered devices. Returns tokens revoked."""
    revoked = 0
    try:
        client = client or ExpoPushClient()
        receipts = client.get_receipts([ticket_id for ticket_id, _ in pairs])
        for ticket_id, token in pairs:
            receipt = receipts.get(ticket_id)
            if not isinstance(receipt, dict) or receipt.get("status") != "error":
                continue
            details = receipt.get("details") or {}
            logger.warning("Push delivery failed for token %s...: %s", token[:20], receipt.get("message"))
            if details.get("error") == RECEIPT_ERROR_DEVICE_NOT_REGISTERED:
                if revoke_invalid_token(token):
                    revoked += 1
    except Exception as e:
        logger.warning("Receipt check failed: %s", e, exc_info=True)
    return revoked


def revoke_invalid_token(token: str, reason: str = RECEIPT_ERROR_DEVICE_NOT_REGISTERED) -> str | None:
    """
    Mark the active row for token inactive. Token rows carry no partition hint, so partitions
    are scanned in order and the scan stops at the first match. Returns the partition or None.
    """
    for partition in PARTITIONS:
        db = session_for(partition)
        try:
            row = (
                db.query(PushToken)
                .filter(PushToken.token == token, PushToken.is_active.is_(True))
                .first()
            )
            if row is None:
                continue
            now = utcnow()
            row.is_active = False
            row.revoked_at = now
            row.revoked_reason = reason
            row.updated_at = now
            db.commit()
            logger.info("Revoked push token %s... in partition %s (%s)", token[:20], partition, reason)
            return partition
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Could not revoke token in partition %s: %s", partition, e)
        finally:
            db.close()
    logger.info("Token %s... not found as active in any partition", token[:20])
    return None

"""Settlement tasks.

Celery tasks for:
- Capturing a payment off the request path
- Approving withdrawals, retried while the gateway times out or fails
"""

import asyncio
import logging

from celery import shared_task

from src.core.exceptions import GatewayError, SettlementError
from src.db.engine import create_session_factory
from src.services.payment_gateway import FlutterwaveGateway
from src.services.settlement_service import SettlementService

logger = logging.getLogger(__name__)


@shared_task(name="settlement.capture_payment")
def capture_payment(order_id: int, payment_reference: str, idempotency_key: str | None = None) -> dict:
    """Settle a gateway-confirmed payment.

    Safe to deliver more than once: a repeated capture returns the existing
    transaction.
    """
    return asyncio.run(_capture_payment(order_id, payment_reference, idempotency_key))


async def _capture_payment(order_id: int, payment_reference: str, idempotency_key: str | None) -> dict:
    engine, session_factory = create_session_factory(pool_size=5)
    gateway = FlutterwaveGateway()
    try:
        service = SettlementService(gateway, session_factory)
        txn = await service.capture_payment(order_id, payment_reference, idempotency_key)
        return {"success": True, "transaction_id": txn.transaction_id}
    except SettlementError as e:
        logger.warning(f"[capture_payment] order_id={order_id} failed: {e.code} {e.message}")
        return {"success": False, "code": e.code, "message": e.public_message}
    finally:
        await gateway.close()
        await engine.dispose()


@shared_task(
    name="settlement.approve_withdrawal",
    max_retries=5,
    autoretry_for=(GatewayError,),
    retry_backoff=True,
    retry_backoff_max=3600,
)
def approve_withdrawal(transaction_id: str, admin_id: int) -> dict:
    """Pay out a pending withdrawal.

    Gateway timeouts and failures leave the withdrawal pending and are
    retried with backoff; other settlement errors are final.
    """
    return asyncio.run(_approve_withdrawal(transaction_id, admin_id))


async def _approve_withdrawal(transaction_id: str, admin_id: int) -> dict:
    engine, session_factory = create_session_factory(pool_size=5)
    gateway = FlutterwaveGateway()
    try:
        service = SettlementService(gateway, session_factory)
        txn = await service.approve_withdrawal(transaction_id, admin_id)
        return {
            "success": True,
            "transaction_id": txn.transaction_id,
            "external_transaction_id": txn.details.get("external_transaction_id"),
        }
    except GatewayError as e:
        logger.warning(f"[approve_withdrawal] {transaction_id} gateway error, will retry: {e.code}")
        raise
    except SettlementError as e:
        logger.error(f"[approve_withdrawal] {transaction_id} failed: {e.code} {e.message}")
        return {"success": False, "code": e.code, "message": e.public_message}
    finally:
        await gateway.close()
        await engine.dispose()

import logging
from datetime import datetime

from pymongo.errors import PyMongoError

from config.constants import (
    COMMISSION_REVERSAL_STATUSES,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_TRANSITIONS,
)
from utils.commission_service import distribute_commissions, reverse_commissions
from utils.errors import (
    InvalidStateError,
    LedgerError,
    NotFoundError,
    failure_result,
    storage_failure,
)
from utils.guards import to_object_id
from utils.order_timeline import record_order_event

logger = logging.getLogger(__name__)


def validate_status_transition(current_status: str, new_status: str) -> tuple[bool, str | None]:
    allowed = ORDER_STATUS_TRANSITIONS.get(current_status, [])
    if new_status not in allowed:
        return False, (
            f"Cannot transition from {current_status} to {new_status}. "
            f"Valid transitions: {', '.join(allowed)}"
        )
    return True, None


async def _run_commission_hook(db, order_id, new_status: str, actor_id=None, actor_role="system") -> dict | None:
    if new_status == ORDER_STATUS_DELIVERED:
        return await distribute_commissions(db, order_id, actor_id=actor_id, actor_role=actor_role)
    if new_status in COMMISSION_REVERSAL_STATUSES:
        return await reverse_commissions(db, order_id, actor_id=actor_id, actor_role=actor_role)
    return None


async def transition_order_status(db, order_id, new_status: str, *, actor_id=None, actor_role="system") -> dict:
    """
    Moves an order to `new_status` and runs the commission hook.

    The status change stands even if the commission step fails; the
    failure is logged and reported under "commission".
    """
    try:
        oid = to_object_id(order_id, "order id")
        order = await db.orders.find_one({"_id": oid})
        if order is None:
            raise NotFoundError("Order not found")

        previous = order.get("status")
        valid, message = validate_status_transition(previous, new_status)
        if not valid:
            raise InvalidStateError(message)

        now = datetime.utcnow()
        res = await db.orders.update_one(
            {"_id": oid, "status": previous},
            {"$set": {"status": new_status, "updated_at": now}},
        )
        if res.modified_count == 0:
            raise InvalidStateError("Order status changed concurrently, retry")

        await record_order_event(
            db,
            order_id=oid,
            event="ORDER_STATUS_CHANGED",
            actor_role=actor_role,
            actor_id=actor_id,
            metadata={"from": previous, "to": new_status},
        )
    except LedgerError as e:
        return failure_result(e)
    except PyMongoError:
        logger.exception("ORDER_TRANSITION_ERROR order=%s to=%s", order_id, new_status)
        return storage_failure("Failed to update order status")

    commission = await _run_commission_hook(db, oid, new_status, actor_id=actor_id, actor_role=actor_role)
    if commission is not None and not commission["success"]:
        logger.error(
            "ORDER_COMMISSION_HOOK_FAILED order=%s status=%s code=%s",
            order_id, new_status, commission.get("error_code"),
        )

    return {
        "success": True,
        "message": f"Order status updated to {new_status}",
        "previous_status": previous,
        "status": new_status,
        "commission": commission,
    }

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from database import get_db
from utils.guards import ensure_success, parse_object_id
from utils.order_transitions import transition_order_status
from utils.security import require_role

router = APIRouter(prefix="/orders", tags=["Orders"])


# ======================================================
# SCHEMAS
# ======================================================

class OrderStatusUpdate(BaseModel):
    status: str


# ======================================================
# STATUS TRANSITION (runs the commission hook)
# ======================================================

@router.post("/{order_id}/status")
async def update_order_status(
    order_id: str,
    data: OrderStatusUpdate,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    oid = parse_object_id(order_id, "order_id")

    return ensure_success(await transition_order_status(
        db,
        oid,
        data.status,
        actor_id=admin["_id"],
        actor_role="admin",
    ))

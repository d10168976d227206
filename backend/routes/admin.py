from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime
from typing import Optional

from database import get_db
from models.settings import CommissionSettingsUpdate
from models.withdrawal import WithdrawalCompletion, WithdrawalDecision
from utils.audit import log_admin_action
from utils.errors import ValidationError, http_status_for
from utils.serializers import serialize_wallet_transaction, serialize_withdrawal
from utils.wallet_service import list_wallet_transactions
from utils.commission_service import (
    distribute_commissions,
    get_commission_by_id,
    get_commission_report,
    get_financial_dashboard,
    reverse_commissions,
)
from utils.guards import ensure_success, parse_object_id
from utils.security import require_role
from utils.settings_service import get_settings, update_commission_settings
from utils.withdrawal_service import finalize_withdrawal, process_withdrawal


router = APIRouter(prefix="/admin", tags=["Admin"])


# =====================================================
# COMMISSION SETTINGS
# =====================================================

@router.get("/commission/settings")
async def commission_settings(
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    settings = await get_settings(db)
    return {"success": True, "settings": settings.model_dump()}


@router.put("/commission/settings")
async def update_settings(
    data: CommissionSettingsUpdate,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    result = ensure_success(await update_commission_settings(db, data))

    await log_admin_action(
        db,
        admin,
        action="COMMISSION_SETTINGS_UPDATED",
        metadata=data.model_dump(exclude_none=True),
    )
    return result


# =====================================================
# COMMISSION REPORTING
# =====================================================

@router.get("/commission/report")
async def commission_report(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    type: Optional[str] = None,
    status: Optional[str] = None,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    return ensure_success(await get_commission_report(
        db,
        start_date=start_date,
        end_date=end_date,
        commission_type=type,
        status=status,
    ))


@router.get("/commission/{commission_id}")
async def commission_detail(
    commission_id: str,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    parse_object_id(commission_id, "commission_id")
    return ensure_success(await get_commission_by_id(db, commission_id))


@router.get("/financial/dashboard")
async def financial_dashboard(
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    return ensure_success(await get_financial_dashboard(db))


# =====================================================
# MANUAL DISTRIBUTION / REVERSAL
# =====================================================

@router.post("/orders/{order_id}/commissions/distribute")
async def distribute_order_commissions(
    order_id: str,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    oid = parse_object_id(order_id, "order_id")
    result = ensure_success(await distribute_commissions(
        db, oid, actor_id=admin["_id"], actor_role="admin",
    ))

    await log_admin_action(
        db,
        admin,
        action="COMMISSIONS_DISTRIBUTED",
        metadata={"order_id": order_id, "count": len(result["commissions"])},
    )
    return result


@router.post("/orders/{order_id}/commissions/reverse")
async def reverse_order_commissions(
    order_id: str,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    oid = parse_object_id(order_id, "order_id")
    result = ensure_success(await reverse_commissions(
        db, oid, actor_id=admin["_id"], actor_role="admin",
    ))

    await log_admin_action(
        db,
        admin,
        action="COMMISSIONS_REVERSED",
        metadata={"order_id": order_id, "count": result["reversed_count"]},
    )
    return result


# =====================================================
# WALLET
# =====================================================

@router.get("/wallet/transactions")
async def wallet_transactions(
    type: Optional[str] = None,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    try:
        rows = await list_wallet_transactions(db, transaction_type=type)
    except ValidationError as e:
        raise HTTPException(http_status_for(e.error_code), e.message)

    return {
        "count": len(rows),
        "transactions": [serialize_wallet_transaction(r) for r in rows],
    }


# =====================================================
# WITHDRAWALS
# =====================================================

@router.get("/withdrawals")
async def list_withdrawal_requests(
    status: Optional[str] = None,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    query = {}
    if status and status != "All":
        query["status"] = status

    cursor = db.withdraw_requests.find(query).sort("created_at", -1).limit(100)
    rows = [serialize_withdrawal(r) async for r in cursor]

    return {"count": len(rows), "requests": rows}


@router.post("/withdrawals/process")
async def process_withdrawal_request(
    data: WithdrawalDecision,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    result = ensure_success(await process_withdrawal(db, data.request_id, data.action, data.remark))

    await log_admin_action(
        db,
        admin,
        action=f"WITHDRAWAL_{result['status'].upper()}",
        metadata={"request_id": data.request_id, "remark": data.remark},
    )
    return result


@router.post("/withdrawals/{request_id}/complete")
async def complete_withdrawal_request(
    request_id: str,
    data: WithdrawalCompletion,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    parse_object_id(request_id, "request_id")
    result = ensure_success(await finalize_withdrawal(db, request_id, data.settlement_reference))

    await log_admin_action(
        db,
        admin,
        action="WITHDRAWAL_COMPLETED",
        metadata={"request_id": request_id, "settlement_reference": data.settlement_reference},
    )
    return result

from fastapi import APIRouter, Depends

from database import get_db
from models.wallet import Subject, SubjectType
from utils.commission_service import get_commission_summary
from utils.guards import ensure_success
from utils.money import from_paise
from utils.security import require_role
from utils.serializers import serialize_wallet_transaction
from utils.wallet_service import get_wallet_balance, list_wallet_transactions

router = APIRouter(
    prefix="/delivery",
    tags=["Delivery"]
)


@router.get("/commissions")
async def delivery_partner_commissions(
    partner=Depends(require_role("delivery_partner")),
    db=Depends(get_db),
):
    return ensure_success(
        await get_commission_summary(db, partner["_id"], SubjectType.DELIVERY_BOY.value)
    )


@router.get("/wallet")
async def delivery_partner_wallet(
    partner=Depends(require_role("delivery_partner")),
    db=Depends(get_db),
):
    subject = Subject(SubjectType.DELIVERY_BOY, partner["_id"])
    rows = await list_wallet_transactions(db, subject=subject)

    return {
        "balance": from_paise(await get_wallet_balance(db, subject)),
        "count": len(rows),
        "transactions": [serialize_wallet_transaction(r) for r in rows],
    }

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
    prefix="/seller",
    tags=["Seller"]
)


# ----------------------------------------
# SELLER EARNINGS
# ----------------------------------------

@router.get("/commissions")
async def seller_commissions(
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
):
    return ensure_success(
        await get_commission_summary(db, seller["_id"], SubjectType.SELLER.value)
    )


# ----------------------------------------
# SELLER WALLET
# ----------------------------------------

@router.get("/wallet")
async def seller_wallet(
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
):
    subject = Subject(SubjectType.SELLER, seller["_id"])
    rows = await list_wallet_transactions(db, subject=subject)

    return {
        "balance": from_paise(await get_wallet_balance(db, subject)),
        "count": len(rows),
        "transactions": [serialize_wallet_transaction(r) for r in rows],
    }

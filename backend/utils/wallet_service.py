from models.wallet import Subject, SubjectType, TransactionType, WalletTransaction
from utils.errors import InsufficientFundsError, NotFoundError, ValidationError

SUBJECT_LABELS = {
    SubjectType.SELLER: "Seller",
    SubjectType.DELIVERY_BOY: "Delivery partner",
}


def _check_amount(amount_paise: int):
    if not isinstance(amount_paise, int) or amount_paise <= 0:
        raise ValidationError("Wallet amount must be a positive number of paise")


async def _record(db, tx: WalletTransaction, session=None) -> dict:
    doc = tx.to_document()
    result = await db.wallet_transactions.insert_one(doc, session=session)
    doc["_id"] = result.inserted_id
    return doc


# ==============================
# Credit / Debit (balance + ledger row, same session)
# ==============================

async def credit_wallet(
    db,
    subject: Subject,
    amount_paise: int,
    description: str,
    *,
    related_order_id=None,
    related_commission_id=None,
    related_withdrawal_id=None,
    session=None,
) -> dict:
    _check_amount(amount_paise)

    result = await db[subject.collection].update_one(
        {"_id": subject.id},
        {"$inc": {"balance_paise": amount_paise}},
        session=session,
    )
    if result.matched_count == 0:
        raise NotFoundError(f"{SUBJECT_LABELS[subject.type]} not found")

    return await _record(db, WalletTransaction(
        subject,
        TransactionType.CREDIT,
        amount_paise,
        description,
        related_order_id=related_order_id,
        related_commission_id=related_commission_id,
        related_withdrawal_id=related_withdrawal_id,
    ), session=session)


async def debit_wallet(
    db,
    subject: Subject,
    amount_paise: int,
    description: str,
    *,
    related_order_id=None,
    related_commission_id=None,
    related_withdrawal_id=None,
    session=None,
) -> dict:
    _check_amount(amount_paise)

    # balance guard and decrement in one conditional update
    result = await db[subject.collection].update_one(
        {"_id": subject.id, "balance_paise": {"$gte": amount_paise}},
        {"$inc": {"balance_paise": -amount_paise}},
        session=session,
    )
    if result.matched_count == 0:
        holder = await db[subject.collection].find_one({"_id": subject.id}, session=session)
        if holder is None:
            raise NotFoundError(f"{SUBJECT_LABELS[subject.type]} not found")
        raise InsufficientFundsError(
            "Insufficient wallet balance",
            details={
                "balance_paise": holder.get("balance_paise", 0),
                "requested_paise": amount_paise,
            },
        )

    return await _record(db, WalletTransaction(
        subject,
        TransactionType.DEBIT,
        amount_paise,
        description,
        related_order_id=related_order_id,
        related_commission_id=related_commission_id,
        related_withdrawal_id=related_withdrawal_id,
    ), session=session)


# ==============================
# Balances
# ==============================

async def get_wallet_balance(db, subject: Subject) -> int:
    holder = await db[subject.collection].find_one({"_id": subject.id})
    if holder is None:
        raise NotFoundError(f"{SUBJECT_LABELS[subject.type]} not found")
    return holder.get("balance_paise", 0)


async def list_wallet_transactions(
    db,
    *,
    subject: Subject | None = None,
    transaction_type: str | None = None,
    limit: int = 100,
) -> list:
    query = {}
    if subject is not None:
        query["subject_type"] = subject.type.value
        query["subject_id"] = subject.id
    if transaction_type:
        try:
            query["type"] = TransactionType(transaction_type).value
        except ValueError:
            raise ValidationError("Transaction type must be Credit or Debit")

    cursor = db.wallet_transactions.find(query).sort("created_at", -1).limit(limit)
    return await cursor.to_list(None)


async def get_ledger_balance(db, subject: Subject) -> int:
    """
    Balance derived from the transaction history alone.
    Must always equal the cached balance on the subject.
    """
    pipeline = [
        {"$match": {"subject_type": subject.type.value, "subject_id": subject.id}},
        {"$group": {"_id": "$type", "amount": {"$sum": "$amount_paise"}}},
    ]

    rows = await db.wallet_transactions.aggregate(pipeline).to_list(None)
    summary = {r["_id"]: r["amount"] for r in rows}

    return summary.get(TransactionType.CREDIT.value, 0) - summary.get(TransactionType.DEBIT.value, 0)

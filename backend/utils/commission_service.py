import logging
from datetime import datetime

from pymongo.errors import DuplicateKeyError, PyMongoError

from config.constants import ORDER_STATUS_DELIVERED
from models.commission import (
    CommissionBasis,
    CommissionStatus,
    OrderCommissionStatus,
)
from models.wallet import Subject, SubjectType
from utils.commission_calculator import calculate_order_commissions
from utils.errors import (
    AlreadyDistributedError,
    InvalidStateError,
    LedgerError,
    NotFoundError,
    ValidationError,
    failure_result,
    storage_failure,
)
from utils.guards import to_object_id
from utils.money import from_paise
from utils.mongo import run_in_transaction
from utils.order_timeline import record_order_event
from utils.serializers import serialize_commission
from utils.wallet_service import credit_wallet, debit_wallet

logger = logging.getLogger(__name__)

CLOSED_COMMISSION_STATES = [
    OrderCommissionStatus.DISTRIBUTED.value,
    OrderCommissionStatus.REVERSED.value,
]


def _commission_doc(order, subject: Subject, *, basis, order_amount, rate, amount_paise, credited_paise, now, items=None):
    return {
        "order_id": order["_id"],
        "order_number": order.get("order_number"),
        "type": subject.type.value,
        "subject_id": subject.id,
        "basis": basis.value,
        "order_amount": order_amount,
        "commission_rate": rate,
        "commission_amount_paise": amount_paise,
        "credited_amount_paise": credited_paise,
        "items": items or [],
        "status": CommissionStatus.PAID.value,
        "paid_at": now,
        "created_at": now,
        "updated_at": now,
    }


async def _insert(db, doc: dict, session=None) -> dict:
    result = await db.commissions.insert_one(doc, session=session)
    doc["_id"] = result.inserted_id
    return doc


# ==============================
# Distribution (one transaction)
# ==============================

async def _distribute(db, order_id, session, *, actor_id=None, actor_role="system"):
    order = await db.orders.find_one({"_id": order_id}, session=session)
    if order is None:
        raise NotFoundError("Order not found")

    if order.get("status") != ORDER_STATUS_DELIVERED:
        raise InvalidStateError("Commissions can only be distributed for delivered orders")

    existing = await db.commissions.find_one({"order_id": order_id}, session=session)
    if existing is not None or order.get("commission_status") in CLOSED_COMMISSION_STATES:
        raise AlreadyDistributedError()

    breakdown = await calculate_order_commissions(db, order, session=session)
    now = datetime.utcnow()

    # claim the order; a concurrent distribution loses here
    claim = await db.orders.update_one(
        {
            "_id": order_id,
            "status": ORDER_STATUS_DELIVERED,
            "commission_status": {"$nin": CLOSED_COMMISSION_STATES},
        },
        {"$set": {
            "commission_status": OrderCommissionStatus.DISTRIBUTED.value,
            "commissions_distributed_at": now,
        }},
        session=session,
    )
    if claim.matched_count == 0:
        raise AlreadyDistributedError()

    order_number = order.get("order_number") or str(order_id)
    created = []

    for sc in breakdown.seller_commissions:
        subject = Subject(SubjectType.SELLER, sc.seller_id)
        commission = await _insert(db, _commission_doc(
            order,
            subject,
            basis=CommissionBasis.ORDER_VALUE,
            order_amount=sc.order_amount_paise,
            rate=sc.commission_rate,
            amount_paise=sc.commission_amount_paise,
            credited_paise=sc.net_amount_paise,
            now=now,
            items=[
                {
                    "order_item_id": i.order_item_id,
                    "product_id": i.product_id,
                    "amount_paise": i.amount_paise,
                    "rate": i.rate,
                    "rate_source": i.rate_source,
                }
                for i in sc.items
            ],
        ), session=session)

        if sc.net_amount_paise > 0:
            await credit_wallet(
                db,
                subject,
                sc.net_amount_paise,
                f"Sale proceeds for order {order_number} "
                f"(Commission: ₹{from_paise(sc.commission_amount_paise):.2f})",
                related_order_id=order_id,
                related_commission_id=commission["_id"],
                session=session,
            )
        created.append(commission)

    dc = breakdown.delivery_commission
    if dc is not None:
        subject = Subject(SubjectType.DELIVERY_BOY, dc.delivery_partner_id)
        # the delivery partner's earning is the commission itself
        commission = await _insert(db, _commission_doc(
            order,
            subject,
            basis=dc.basis,
            order_amount=dc.order_amount,
            rate=dc.commission_rate,
            amount_paise=dc.commission_amount_paise,
            credited_paise=dc.commission_amount_paise,
            now=now,
        ), session=session)

        if dc.commission_amount_paise > 0:
            await credit_wallet(
                db,
                subject,
                dc.commission_amount_paise,
                f"Commission for order {order_number}",
                related_order_id=order_id,
                related_commission_id=commission["_id"],
                session=session,
            )
        created.append(commission)

    await record_order_event(
        db,
        order_id=order_id,
        event="COMMISSIONS_DISTRIBUTED",
        actor_role=actor_role,
        actor_id=actor_id,
        metadata={"commission_count": len(created)},
        session=session,
    )

    return created


async def distribute_commissions(db, order_id, *, actor_id=None, actor_role="system") -> dict:
    """
    Exactly-once commission distribution for a delivered order.
    Either every commission record and wallet credit is written or none is.
    """
    try:
        order_oid = to_object_id(order_id, "order id")

        async def unit_of_work(session):
            return await _distribute(db, order_oid, session, actor_id=actor_id, actor_role=actor_role)

        created = await run_in_transaction(db, unit_of_work)
    except LedgerError as e:
        logger.warning("COMMISSION_DISTRIBUTION_REJECTED order=%s code=%s", order_id, e.error_code)
        return failure_result(e)
    except DuplicateKeyError:
        logger.warning("COMMISSION_DISTRIBUTION_DUPLICATE order=%s", order_id)
        return failure_result(AlreadyDistributedError())
    except PyMongoError:
        logger.exception("COMMISSION_DISTRIBUTION_ERROR order=%s", order_id)
        return storage_failure("Failed to distribute commissions")

    logger.info("COMMISSIONS_DISTRIBUTED order=%s count=%s", order_id, len(created))
    return {
        "success": True,
        "message": "Commissions distributed successfully",
        "commissions": [serialize_commission(c) for c in created],
    }


# ==============================
# Reversal (cancel / return)
# ==============================

async def _reverse(db, order_id, session, *, actor_id=None, actor_role="system"):
    commissions = await db.commissions.find({"order_id": order_id}, session=session).to_list(None)
    now = datetime.utcnow()
    reversed_commissions = []

    for commission in commissions:
        if commission["status"] != CommissionStatus.PAID.value:
            continue

        res = await db.commissions.update_one(
            {"_id": commission["_id"], "status": CommissionStatus.PAID.value},
            {"$set": {
                "status": CommissionStatus.CANCELLED.value,
                "cancelled_at": now,
                "updated_at": now,
            }},
            session=session,
        )
        if res.modified_count == 0:
            continue

        credited = commission.get("credited_amount_paise", 0)
        if credited > 0:
            order_number = commission.get("order_number") or str(order_id)
            await debit_wallet(
                db,
                Subject.parse(commission["type"], commission["subject_id"]),
                credited,
                f"Commission reversal for cancelled order {order_number}",
                related_order_id=order_id,
                related_commission_id=commission["_id"],
                session=session,
            )
        reversed_commissions.append(commission)

    if reversed_commissions:
        await db.orders.update_one(
            {"_id": order_id},
            {"$set": {
                "commission_status": OrderCommissionStatus.REVERSED.value,
                "commissions_reversed_at": now,
            }},
            session=session,
        )
        await record_order_event(
            db,
            order_id=order_id,
            event="COMMISSIONS_REVERSED",
            actor_role=actor_role,
            actor_id=actor_id,
            metadata={"commission_count": len(reversed_commissions)},
            session=session,
        )

    return reversed_commissions


async def reverse_commissions(db, order_id, *, actor_id=None, actor_role="system") -> dict:
    """
    Cancels every paid commission of the order and debits back what was
    credited for it. Orders without commissions reverse as a no-op.
    """
    try:
        order_oid = to_object_id(order_id, "order id")

        async def unit_of_work(session):
            return await _reverse(db, order_oid, session, actor_id=actor_id, actor_role=actor_role)

        reversed_commissions = await run_in_transaction(db, unit_of_work)
    except LedgerError as e:
        logger.warning("COMMISSION_REVERSAL_REJECTED order=%s code=%s", order_id, e.error_code)
        return failure_result(e)
    except PyMongoError:
        logger.exception("COMMISSION_REVERSAL_ERROR order=%s", order_id)
        return storage_failure("Failed to reverse commissions")

    if not reversed_commissions:
        return {"success": True, "message": "No commissions to reverse", "reversed_count": 0}

    logger.info("COMMISSIONS_REVERSED order=%s count=%s", order_id, len(reversed_commissions))
    return {
        "success": True,
        "message": "Commissions reversed successfully",
        "reversed_count": len(reversed_commissions),
    }


# ==============================
# Reporting
# ==============================

async def get_commission_summary(db, user_id, user_type) -> dict:
    try:
        subject = Subject.parse(user_type, user_id)
        commissions = await db.commissions.find(
            {"type": subject.type.value, "subject_id": subject.id}
        ).sort("created_at", -1).to_list(None)
    except LedgerError as e:
        return failure_result(e)
    except PyMongoError:
        logger.exception("COMMISSION_SUMMARY_ERROR user=%s type=%s", user_id, user_type)
        return storage_failure("Failed to get commission summary")

    total = paid = pending = 0
    for c in commissions:
        amount = c["commission_amount_paise"]
        total += amount
        if c["status"] == CommissionStatus.PAID.value:
            paid += amount
        elif c["status"] == CommissionStatus.PENDING.value:
            pending += amount

    return {
        "success": True,
        "total": from_paise(total),
        "paid": from_paise(paid),
        "pending": from_paise(pending),
        "count": len(commissions),
        "commissions": [serialize_commission(c) for c in commissions],
    }


async def _sum_commissions(db, match: dict) -> int:
    rows = await db.commissions.aggregate([
        {"$match": match},
        {"$group": {"_id": None, "total": {"$sum": "$commission_amount_paise"}}},
    ]).to_list(1)
    return rows[0]["total"] if rows else 0


async def get_financial_dashboard(db) -> dict:
    start_of_month = datetime.utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    try:
        paid = await _sum_commissions(db, {"status": CommissionStatus.PAID.value})
        pending = await _sum_commissions(db, {"status": CommissionStatus.PENDING.value})
        this_month = await _sum_commissions(db, {
            "status": CommissionStatus.PAID.value,
            "created_at": {"$gte": start_of_month},
        })
    except PyMongoError:
        logger.exception("FINANCIAL_DASHBOARD_ERROR")
        return storage_failure("Failed to fetch financial dashboard")

    return {
        "success": True,
        "message": "Financial dashboard stats fetched",
        "total_earnings": from_paise(paid),
        "paid_earnings": from_paise(paid),
        "pending_earnings": from_paise(pending),
        "this_month_earnings": from_paise(this_month),
    }


async def get_commission_report(db, *, start_date=None, end_date=None, commission_type=None, status=None) -> dict:
    query = {}
    try:
        if commission_type:
            query["type"] = SubjectType(commission_type).value
        if status:
            query["status"] = CommissionStatus(status).value
    except ValueError:
        return failure_result(ValidationError("Invalid commission type or status filter"))

    if start_date or end_date:
        query["created_at"] = {}
        if start_date:
            query["created_at"]["$gte"] = start_date
        if end_date:
            query["created_at"]["$lte"] = end_date

    try:
        commissions = await db.commissions.find(query).sort("created_at", -1).to_list(None)
    except PyMongoError:
        logger.exception("COMMISSION_REPORT_ERROR")
        return storage_failure("Failed to get commission report")

    summary = {
        "total_commissions": 0,
        "seller_commissions": 0,
        "delivery_boy_commissions": 0,
        "paid_commissions": 0,
        "pending_commissions": 0,
    }
    for c in commissions:
        amount = c["commission_amount_paise"]
        summary["total_commissions"] += amount
        if c["type"] == SubjectType.SELLER.value:
            summary["seller_commissions"] += amount
        else:
            summary["delivery_boy_commissions"] += amount
        if c["status"] == CommissionStatus.PAID.value:
            summary["paid_commissions"] += amount
        elif c["status"] == CommissionStatus.PENDING.value:
            summary["pending_commissions"] += amount

    summary = {k: from_paise(v) for k, v in summary.items()}
    summary["count"] = len(commissions)

    return {
        "success": True,
        "summary": summary,
        "commissions": [serialize_commission(c) for c in commissions],
    }


async def get_commission_by_id(db, commission_id) -> dict:
    try:
        commission = await db.commissions.find_one({"_id": to_object_id(commission_id, "commission id")})
        if commission is None:
            raise NotFoundError("Commission not found")
    except LedgerError as e:
        return failure_result(e)
    except PyMongoError:
        logger.exception("COMMISSION_LOOKUP_ERROR commission=%s", commission_id)
        return storage_failure("Failed to get commission")

    return {"success": True, "commission": serialize_commission(commission)}

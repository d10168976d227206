from bson import ObjectId
from datetime import datetime

from models.commission import CommissionBasis
from utils.money import from_paise


def serialize_object_id(value):
    return str(value) if isinstance(value, ObjectId) else value


def _iso(value):
    return value.isoformat() if isinstance(value, datetime) else None


def serialize_commission(commission: dict) -> dict:
    basis = commission.get("basis", CommissionBasis.ORDER_VALUE.value)
    order_amount = commission.get("order_amount", 0)

    return {
        "id": str(commission["_id"]),
        "order_id": serialize_object_id(commission["order_id"]),
        "order_number": commission.get("order_number"),
        "type": commission["type"],
        "subject_id": serialize_object_id(commission["subject_id"]),

        # distance-based delivery commissions record kilometres here
        "basis": basis,
        "order_amount": order_amount if basis == CommissionBasis.DISTANCE_KM.value else from_paise(order_amount),

        "commission_rate": commission["commission_rate"],
        "commission_amount": from_paise(commission["commission_amount_paise"]),
        "credited_amount": from_paise(commission.get("credited_amount_paise", 0)),
        "status": commission["status"],

        "items": [
            {
                "order_item_id": serialize_object_id(i["order_item_id"]),
                "product_id": serialize_object_id(i.get("product_id")),
                "amount": from_paise(i["amount_paise"]),
                "rate": i["rate"],
                "rate_source": i["rate_source"],
            }
            for i in commission.get("items", [])
        ],

        "paid_at": _iso(commission.get("paid_at")),
        "cancelled_at": _iso(commission.get("cancelled_at")),
        "created_at": _iso(commission.get("created_at")),
    }


def serialize_wallet_transaction(tx: dict) -> dict:
    return {
        "id": str(tx["_id"]),
        "subject_type": tx["subject_type"],
        "subject_id": serialize_object_id(tx["subject_id"]),
        "type": tx["type"],
        "amount": from_paise(tx["amount_paise"]),
        "description": tx["description"],
        "related_order_id": serialize_object_id(tx.get("related_order_id")),
        "related_commission_id": serialize_object_id(tx.get("related_commission_id")),
        "related_withdrawal_id": serialize_object_id(tx.get("related_withdrawal_id")),
        "status": tx.get("status"),
        "created_at": _iso(tx.get("created_at")),
    }


def serialize_withdrawal(request: dict) -> dict:
    return {
        "id": str(request["_id"]),
        "subject_type": request["subject_type"],
        "subject_id": serialize_object_id(request["subject_id"]),
        "amount": from_paise(request["amount_paise"]),
        "status": request["status"],
        "payment_method": request.get("payment_method") or "Bank Transfer",
        "remarks": request.get("remarks"),
        "settlement_reference": request.get("settlement_reference"),
        "processed_at": _iso(request.get("processed_at")),
        "completed_at": _iso(request.get("completed_at")),
        "created_at": _iso(request.get("created_at")),
    }

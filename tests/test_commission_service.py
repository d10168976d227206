"""Tests for commission distribution, reversal and reporting."""

import asyncio
from datetime import datetime, timedelta

from bson import ObjectId

from models.wallet import Subject, SubjectType
from utils.commission_service import (
    distribute_commissions,
    get_commission_by_id,
    get_commission_report,
    get_commission_summary,
    get_financial_dashboard,
    reverse_commissions,
)
from utils.wallet_service import debit_wallet, get_ledger_balance, get_wallet_balance


async def _delivered_order(marketplace, seller_balance=0, partner_balance=0):
    seller_id = await marketplace.seller(balance_paise=seller_balance)
    partner_id = await marketplace.delivery_partner(balance_paise=partner_balance)
    order_id = await marketplace.order(
        [
            {"seller_id": seller_id, "total": 600},
            {"seller_id": seller_id, "total": 400},
        ],
        delivery_partner_id=partner_id,
    )
    return order_id, seller_id, partner_id


class TestDistributeCommissions:
    """Exactly-once distribution for delivered orders."""

    async def test_distribution_credits_wallets(self, db, marketplace):
        order_id, seller_id, partner_id = await _delivered_order(marketplace)

        result = await distribute_commissions(db, order_id)

        assert result["success"] is True
        assert result["message"] == "Commissions distributed successfully"
        assert len(result["commissions"]) == 2

        seller = await db.sellers.find_one({"_id": seller_id})
        partner = await db.delivery_partners.find_one({"_id": partner_id})
        assert seller["balance_paise"] == 90000
        assert partner["balance_paise"] == 5000

        order = await db.orders.find_one({"_id": order_id})
        assert order["commission_status"] == "distributed"
        assert await db.order_timeline.count_documents(
            {"order_id": order_id, "event": "COMMISSIONS_DISTRIBUTED"}
        ) == 1

    async def test_commission_records(self, db, marketplace):
        order_id, seller_id, partner_id = await _delivered_order(marketplace)

        await distribute_commissions(db, order_id)

        seller_commission = await db.commissions.find_one({"order_id": order_id, "type": "SELLER"})
        assert seller_commission["subject_id"] == seller_id
        assert seller_commission["status"] == "Paid"
        assert seller_commission["paid_at"] is not None
        assert seller_commission["order_amount"] == 100000
        assert seller_commission["commission_amount_paise"] == 10000
        assert seller_commission["credited_amount_paise"] == 90000
        assert len(seller_commission["items"]) == 2

        delivery_commission = await db.commissions.find_one({"order_id": order_id, "type": "DELIVERY_BOY"})
        assert delivery_commission["subject_id"] == partner_id
        assert delivery_commission["commission_amount_paise"] == 5000

    async def test_net_plus_commission_equals_item_totals(self, db, marketplace):
        seller_id = await marketplace.seller(commission_rate=7.5)
        order_id = await marketplace.order([
            {"seller_id": seller_id, "total": 199.99},
            {"seller_id": seller_id, "total": 0.33},
            {"seller_id": seller_id, "total": 45.01, "quantity": 3},
        ])

        await distribute_commissions(db, order_id)

        commission = await db.commissions.find_one({"order_id": order_id})
        seller = await db.sellers.find_one({"_id": seller_id})
        assert seller["balance_paise"] + commission["commission_amount_paise"] == 19999 + 33 + 4501

    async def test_credit_descriptions(self, db, marketplace):
        order_id, seller_id, partner_id = await _delivered_order(marketplace)

        await distribute_commissions(db, order_id)

        seller_tx = await db.wallet_transactions.find_one({"subject_id": seller_id})
        partner_tx = await db.wallet_transactions.find_one({"subject_id": partner_id})
        assert seller_tx["description"] == "Sale proceeds for order ORD-0001 (Commission: ₹100.00)"
        assert seller_tx["related_order_id"] == order_id
        assert partner_tx["description"] == "Commission for order ORD-0001"

    async def test_second_distribution_is_rejected(self, db, marketplace):
        order_id, seller_id, _ = await _delivered_order(marketplace)
        await distribute_commissions(db, order_id)

        result = await distribute_commissions(db, order_id)

        assert result["success"] is False
        assert result["error_code"] == "ALREADY_DISTRIBUTED"
        assert await db.commissions.count_documents({"order_id": order_id}) == 2
        assert (await db.sellers.find_one({"_id": seller_id}))["balance_paise"] == 90000

    async def test_concurrent_distribution_succeeds_once(self, db, marketplace):
        order_id, seller_id, _ = await _delivered_order(marketplace)

        results = await asyncio.gather(
            distribute_commissions(db, order_id),
            distribute_commissions(db, order_id),
        )

        assert sorted(r["success"] for r in results) == [False, True]
        assert await db.commissions.count_documents({"order_id": order_id}) == 2
        assert (await db.sellers.find_one({"_id": seller_id}))["balance_paise"] == 90000

    async def test_undelivered_order(self, db, marketplace):
        seller_id = await marketplace.seller()
        order_id = await marketplace.order([{"seller_id": seller_id, "total": 100}], status="Shipped")

        result = await distribute_commissions(db, order_id)

        assert result["error_code"] == "INVALID_STATE"
        assert await db.commissions.count_documents({}) == 0

    async def test_unknown_order(self, db):
        result = await distribute_commissions(db, ObjectId())

        assert result["error_code"] == "NOT_FOUND"
        assert result["message"] == "Order not found"

    async def test_invalid_order_id(self, db):
        result = await distribute_commissions(db, "nope")

        assert result["error_code"] == "VALIDATION_ERROR"

    async def test_failed_credit_leaves_no_partial_distribution(self, db, marketplace):
        kept_seller = await marketplace.seller()
        removed_seller = await marketplace.seller()
        partner_id = await marketplace.delivery_partner()
        order_id = await marketplace.order(
            [
                {"seller_id": kept_seller, "total": 300},
                {"seller_id": removed_seller, "total": 200},
            ],
            delivery_partner_id=partner_id,
        )
        await db.sellers.delete_one({"_id": removed_seller})

        result = await distribute_commissions(db, order_id)

        assert result["success"] is False
        assert result["error_code"] == "NOT_FOUND"
        assert await db.commissions.count_documents({}) == 0
        assert await db.wallet_transactions.count_documents({}) == 0
        assert await db.order_timeline.count_documents({}) == 0
        assert (await db.sellers.find_one({"_id": kept_seller}))["balance_paise"] == 0
        assert (await db.delivery_partners.find_one({"_id": partner_id}))["balance_paise"] == 0
        assert "commission_status" not in await db.orders.find_one({"_id": order_id})

    async def test_distribution_can_be_retried_after_failure(self, db, marketplace):
        seller_id = await marketplace.seller()
        order_id = await marketplace.order([{"seller_id": seller_id, "total": 100}])
        seller = await db.sellers.find_one({"_id": seller_id})
        await db.sellers.delete_one({"_id": seller_id})
        await distribute_commissions(db, order_id)
        await db.sellers.insert_one(seller)

        result = await distribute_commissions(db, order_id)

        assert result["success"] is True
        assert (await db.sellers.find_one({"_id": seller_id}))["balance_paise"] == 9000

    async def test_out_of_range_seller_rate_uses_default(self, db, marketplace):
        seller_id = await marketplace.seller(commission_rate=150)
        order_id = await marketplace.order([{"seller_id": seller_id, "total": 1000}])

        result = await distribute_commissions(db, order_id)

        [commission] = result["commissions"]
        assert commission["commission_rate"] == 10
        assert commission["commission_amount"] == 100.0
        assert commission["credited_amount"] == 900.0
        assert (await db.sellers.find_one({"_id": seller_id}))["balance_paise"] == 90000

    async def test_distance_commission_records_kilometres(self, db, marketplace):
        await db.app_settings.insert_one({
            "key": "global",
            "delivery_config": {"is_distance_based": True, "delivery_boy_km_rate": 10},
        })
        seller_id = await marketplace.seller()
        partner_id = await marketplace.delivery_partner()
        order_id = await marketplace.order(
            [{"seller_id": seller_id, "total": 1000}],
            delivery_partner_id=partner_id,
            delivery_distance_km=7.5,
        )

        result = await distribute_commissions(db, order_id)

        [delivery] = [c for c in result["commissions"] if c["type"] == "DELIVERY_BOY"]
        assert delivery["basis"] == "DISTANCE_KM"
        assert delivery["order_amount"] == 7.5
        assert delivery["commission_amount"] == 75.0
        assert (await db.delivery_partners.find_one({"_id": partner_id}))["balance_paise"] == 7500


class TestReverseCommissions:
    """Reversal cancels paid commissions and restores balances."""

    async def test_reversal_restores_balances(self, db, marketplace):
        order_id, seller_id, partner_id = await _delivered_order(
            marketplace, seller_balance=1234, partner_balance=50,
        )
        await distribute_commissions(db, order_id)

        result = await reverse_commissions(db, order_id)

        assert result == {
            "success": True,
            "message": "Commissions reversed successfully",
            "reversed_count": 2,
        }
        assert (await db.sellers.find_one({"_id": seller_id}))["balance_paise"] == 1234
        assert (await db.delivery_partners.find_one({"_id": partner_id}))["balance_paise"] == 50
        assert await db.commissions.count_documents({"order_id": order_id, "status": "Cancelled"}) == 2
        assert (await db.orders.find_one({"_id": order_id}))["commission_status"] == "reversed"

        debit = await db.wallet_transactions.find_one({"subject_id": seller_id, "type": "Debit"})
        assert debit["amount_paise"] == 90000
        assert debit["description"] == "Commission reversal for cancelled order ORD-0001"

    async def test_ledger_matches_balance_after_reversal(self, db, marketplace):
        order_id, seller_id, partner_id = await _delivered_order(marketplace)
        await distribute_commissions(db, order_id)
        await reverse_commissions(db, order_id)

        for subject in (
            Subject(SubjectType.SELLER, seller_id),
            Subject(SubjectType.DELIVERY_BOY, partner_id),
        ):
            assert await get_ledger_balance(db, subject) == await get_wallet_balance(db, subject)

    async def test_order_without_commissions(self, db, marketplace):
        seller_id = await marketplace.seller()
        order_id = await marketplace.order([{"seller_id": seller_id, "total": 100}], status="Cancelled")

        result = await reverse_commissions(db, order_id)

        assert result["success"] is True
        assert result["message"] == "No commissions to reverse"
        assert result["reversed_count"] == 0
        assert await db.wallet_transactions.count_documents({}) == 0

    async def test_second_reversal_is_noop(self, db, marketplace):
        order_id, seller_id, _ = await _delivered_order(marketplace)
        await distribute_commissions(db, order_id)
        await reverse_commissions(db, order_id)

        result = await reverse_commissions(db, order_id)

        assert result["reversed_count"] == 0
        assert await db.wallet_transactions.count_documents({"type": "Debit"}) == 2

    async def test_reversal_with_withdrawn_funds(self, db, marketplace):
        order_id, seller_id, _ = await _delivered_order(marketplace)
        await distribute_commissions(db, order_id)
        await debit_wallet(db, Subject(SubjectType.SELLER, seller_id), 50000, "withdrawal")

        result = await reverse_commissions(db, order_id)

        assert result["success"] is False
        assert result["error_code"] == "INSUFFICIENT_FUNDS"

        # nothing of the failed reversal survives
        assert await db.commissions.count_documents({"order_id": order_id, "status": "Paid"}) == 2
        assert (await db.sellers.find_one({"_id": seller_id}))["balance_paise"] == 40000
        assert (await db.orders.find_one({"_id": order_id}))["commission_status"] == "distributed"
        assert await db.wallet_transactions.count_documents(
            {"related_order_id": order_id, "type": "Debit"}
        ) == 0

    async def test_no_redistribution_after_reversal(self, db, marketplace):
        order_id, _, _ = await _delivered_order(marketplace)
        await distribute_commissions(db, order_id)
        await reverse_commissions(db, order_id)

        result = await distribute_commissions(db, order_id)

        assert result["error_code"] == "ALREADY_DISTRIBUTED"


class TestReporting:
    """Summaries, dashboard and the admin report."""

    async def test_seller_summary(self, db, marketplace):
        order_id, seller_id, _ = await _delivered_order(marketplace)
        await distribute_commissions(db, order_id)

        result = await get_commission_summary(db, str(seller_id), "SELLER")

        assert result["success"] is True
        assert result["total"] == 100.0
        assert result["paid"] == 100.0
        assert result["pending"] == 0
        assert result["count"] == 1
        assert result["commissions"][0]["order_number"] == "ORD-0001"

    async def test_summary_invalid_user_type(self, db):
        result = await get_commission_summary(db, str(ObjectId()), "ADMIN")

        assert result["error_code"] == "VALIDATION_ERROR"

    async def test_dashboard(self, db, marketplace):
        order_id, _, _ = await _delivered_order(marketplace)
        await distribute_commissions(db, order_id)
        await db.commissions.insert_many([
            {
                "order_id": ObjectId(), "type": "SELLER", "subject_id": ObjectId(),
                "commission_amount_paise": 2500, "status": "Pending",
                "created_at": datetime.utcnow(),
            },
            {
                "order_id": ObjectId(), "type": "SELLER", "subject_id": ObjectId(),
                "commission_amount_paise": 4000, "status": "Paid",
                "created_at": datetime.utcnow() - timedelta(days=400),
            },
        ])

        result = await get_financial_dashboard(db)

        assert result["total_earnings"] == 190.0
        assert result["paid_earnings"] == 190.0
        assert result["pending_earnings"] == 25.0
        assert result["this_month_earnings"] == 150.0

    async def test_report_filters_by_type(self, db, marketplace):
        order_id, _, _ = await _delivered_order(marketplace)
        await distribute_commissions(db, order_id)

        result = await get_commission_report(db, commission_type="DELIVERY_BOY")

        assert result["summary"]["count"] == 1
        assert result["summary"]["delivery_boy_commissions"] == 50.0
        assert result["summary"]["seller_commissions"] == 0

    async def test_report_rejects_unknown_status(self, db):
        result = await get_commission_report(db, status="Refunded")

        assert result["error_code"] == "VALIDATION_ERROR"

    async def test_commission_by_id(self, db, marketplace):
        order_id, _, _ = await _delivered_order(marketplace)
        distributed = await distribute_commissions(db, order_id)
        commission_id = distributed["commissions"][0]["id"]

        found = await get_commission_by_id(db, commission_id)
        missing = await get_commission_by_id(db, str(ObjectId()))

        assert found["commission"]["id"] == commission_id
        assert missing["error_code"] == "NOT_FOUND"

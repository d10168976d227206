"""Shared pytest fixtures for the marketplace ledger tests.

Uses an in-memory Motor-compatible database (mongomock-motor). Units of
work run with ``session=None`` and are rolled back by restoring the
collections they touch, since the mock client has no transactions.
"""

import asyncio
import os
from datetime import datetime

os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/marketplace_test")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
import pytest_asyncio
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

import utils.commission_service as commission_service
import utils.withdrawal_service as withdrawal_service
from utils.indexes import ensure_indexes


# every collection a unit of work writes to
TRANSACTIONAL_COLLECTIONS = (
    "orders",
    "commissions",
    "sellers",
    "delivery_partners",
    "wallet_transactions",
    "withdraw_requests",
    "order_timeline",
)


async def _snapshot(db) -> dict:
    return {
        name: await db[name].find({}).to_list(None)
        for name in TRANSACTIONAL_COLLECTIONS
    }


async def _restore(db, snapshot: dict):
    for name, docs in snapshot.items():
        await db[name].delete_many({})
        if docs:
            await db[name].insert_many(docs)


@pytest.fixture(autouse=True)
def rollback_transactions(monkeypatch):
    """
    Stand-in for Motor transactions: units of work run one at a time with
    ``session=None``, and every write they made is undone if they raise.
    """
    lock = asyncio.Lock()

    async def run_in_transaction(db, callback):
        async with lock:
            snapshot = await _snapshot(db)
            try:
                return await callback(None)
            except Exception:
                await _restore(db, snapshot)
                raise

    monkeypatch.setattr(commission_service, "run_in_transaction", run_in_transaction)
    monkeypatch.setattr(withdrawal_service, "run_in_transaction", run_in_transaction)


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database with production indexes."""
    client = AsyncMongoMockClient()
    database = client["marketplace_test"]
    await ensure_indexes(database)
    yield database


class Marketplace:
    """Seeds sellers, partners, catalogue and orders into the test database."""

    def __init__(self, db):
        self.db = db
        self._order_seq = 0

    async def seller(self, commission_rate=0, balance_paise=0):
        result = await self.db.sellers.insert_one({
            "store_name": "Test Store",
            "commission_rate": commission_rate,
            "balance_paise": balance_paise,
        })
        return result.inserted_id

    async def delivery_partner(self, commission_rate=0, balance_paise=0):
        result = await self.db.delivery_partners.insert_one({
            "name": "Test Rider",
            "commission_rate": commission_rate,
            "balance_paise": balance_paise,
        })
        return result.inserted_id

    async def classification(self, collection, commission_rate):
        result = await self.db[collection].insert_one({
            "name": f"{collection}-{commission_rate}",
            "commission_rate": commission_rate,
        })
        return result.inserted_id

    async def product(self, category_id=None, subcategory_id=None, sub_subcategory_id=None):
        result = await self.db.products.insert_one({
            "product_name": "Test Product",
            "category_id": category_id,
            "subcategory_id": subcategory_id,
            "sub_subcategory_id": sub_subcategory_id,
        })
        return result.inserted_id

    async def order(
        self,
        items,
        status="Delivered",
        delivery_partner_id=None,
        delivery_distance_km=None,
        subtotal=None,
    ):
        self._order_seq += 1
        order_id = ObjectId()

        await self.db.orders.insert_one({
            "_id": order_id,
            "order_number": f"ORD-{self._order_seq:04d}",
            "status": status,
            "subtotal": subtotal if subtotal is not None else sum(i["total"] for i in items),
            "delivery_partner_id": delivery_partner_id,
            "delivery_distance_km": delivery_distance_km,
        })

        for item in items:
            await self.db.order_items.insert_one({
                "order_id": order_id,
                "seller_id": item["seller_id"],
                "product_id": item.get("product_id"),
                "quantity": item.get("quantity", 1),
                "unit_price": item["total"] / item.get("quantity", 1),
                "total": item["total"],
            })

        return order_id

    async def withdrawal(self, subject_type, subject_id, amount_paise, status="Pending"):
        result = await self.db.withdraw_requests.insert_one({
            "subject_type": subject_type,
            "subject_id": subject_id,
            "amount_paise": amount_paise,
            "status": status,
            "payment_method": "Bank Transfer",
            "created_at": datetime.utcnow(),
        })
        return result.inserted_id


@pytest.fixture
def marketplace(db) -> Marketplace:
    return Marketplace(db)

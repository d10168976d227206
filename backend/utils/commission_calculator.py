import logging
from decimal import Decimal

from models.commission import (
    CommissionBasis,
    CommissionBreakdown,
    DeliveryCommission,
    ItemCommission,
    SellerCommission,
)
from models.settings import AppSettings
from utils.money import PAISE_PER_RUPEE, percent_of, round_paise, to_paise
from utils.rate_resolver import resolve_delivery_rate, resolve_seller_rate
from utils.settings_service import get_settings

logger = logging.getLogger(__name__)


def item_amount_paise(item: dict) -> int:
    if item.get("total") is not None:
        return to_paise(item["total"])
    unit_price = Decimal(str(item.get("unit_price") or 0))
    return to_paise(unit_price * int(item.get("quantity") or 0))


async def load_order_items(db, order_id, session=None) -> list:
    cursor = db.order_items.find({"order_id": order_id}, session=session).sort("_id", 1)
    return await cursor.to_list(None)


async def _seller_commissions(db, items: list, settings: AppSettings, session=None) -> list:
    by_seller: dict = {}
    products: dict = {}

    for item in items:
        seller_id = item.get("seller_id")
        if seller_id is None:
            logger.warning("ORDER_ITEM_WITHOUT_SELLER item=%s", item.get("_id"))
            continue

        product_id = item.get("product_id")
        resolved = await resolve_seller_rate(
            db,
            seller_id,
            product_id,
            settings=settings,
            products=products,
            session=session,
        )
        amount = item_amount_paise(item)

        logger.info(
            "ITEM_COMMISSION_RATE item=%s seller=%s rate=%s source=%s",
            item.get("_id"), seller_id, resolved.rate, resolved.source,
        )

        if seller_id not in by_seller:
            # rate recorded on the aggregate is the first item's rate
            by_seller[seller_id] = SellerCommission(seller_id=seller_id, commission_rate=resolved.rate)

        by_seller[seller_id].add_item(ItemCommission(
            order_item_id=item["_id"],
            product_id=product_id,
            amount_paise=amount,
            rate=resolved.rate,
            rate_source=resolved.source,
            commission=percent_of(amount, resolved.rate),
        ))

    return list(by_seller.values())


async def _delivery_commission(db, order: dict, items: list, settings: AppSettings, session=None):
    partner_id = order.get("delivery_partner_id")
    if not partner_id:
        return None

    distance_km = order.get("delivery_distance_km") or 0

    if settings.distance_pricing_active and distance_km > 0:
        km_rate = settings.delivery_config.delivery_boy_km_rate
        rupees = Decimal(str(distance_km)) * Decimal(str(km_rate))
        logger.info(
            "DELIVERY_COMMISSION_DISTANCE order=%s km=%s rate_per_km=%s",
            order.get("_id"), distance_km, km_rate,
        )
        return DeliveryCommission(
            delivery_partner_id=partner_id,
            basis=CommissionBasis.DISTANCE_KM,
            order_amount=float(distance_km),
            commission_rate=km_rate,
            rate_source="distance",
            commission_amount_paise=round_paise(rupees * PAISE_PER_RUPEE),
        )

    if order.get("subtotal") is not None:
        subtotal = to_paise(order["subtotal"])
    else:
        subtotal = sum(item_amount_paise(i) for i in items)

    resolved = await resolve_delivery_rate(db, partner_id, settings=settings, session=session)
    return DeliveryCommission(
        delivery_partner_id=partner_id,
        basis=CommissionBasis.ORDER_VALUE,
        order_amount=subtotal,
        commission_rate=resolved.rate,
        rate_source=resolved.source,
        commission_amount_paise=round_paise(percent_of(subtotal, resolved.rate)),
    )


async def calculate_order_commissions(db, order: dict, *, session=None) -> CommissionBreakdown:
    """
    Per-seller and delivery commissions for one order.
    No items and no delivery partner simply give an empty breakdown.
    """
    settings = await get_settings(db, session=session)
    items = await load_order_items(db, order["_id"], session=session)

    return CommissionBreakdown(
        seller_commissions=await _seller_commissions(db, items, settings, session=session),
        delivery_commission=await _delivery_commission(db, order, items, settings, session=session),
    )

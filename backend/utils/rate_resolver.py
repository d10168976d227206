import logging

from pymongo.errors import PyMongoError

from config.constants import MAX_COMMISSION_RATE
from models.commission import ResolvedRate
from models.settings import AppSettings
from utils.settings_service import get_settings

logger = logging.getLogger(__name__)

# most specific first: (product field, collection, source label)
CLASSIFICATION_LEVELS = [
    ("sub_subcategory_id", "categories", "sub_subcategory"),
    ("subcategory_id", "subcategories", "subcategory"),
    ("category_id", "categories", "category"),
]


def _override(doc: dict | None, holder: str) -> float:
    """
    Usable override rate of a record, or 0 when it has none.
    Only 0 < rate <= 100 counts; anything else is logged and skipped.
    """
    rate = (doc or {}).get("commission_rate") or 0
    if rate == 0:
        return 0

    if not isinstance(rate, (int, float)) or rate < 0 or rate > MAX_COMMISSION_RATE:
        logger.warning(
            "COMMISSION_RATE_FALLBACK %s=%s reason=invalid_rate rate=%s",
            holder, (doc or {}).get("_id"), rate,
        )
        return 0

    return rate


async def _load_product(db, product_id, products: dict | None, session=None) -> dict | None:
    if product_id is None:
        return None
    if products is not None and product_id in products:
        return products[product_id]

    product = await db.products.find_one({"_id": product_id}, session=session)
    if products is not None:
        products[product_id] = product
    return product


async def _classification_rate(db, product: dict | None, session=None) -> ResolvedRate | None:
    if not product:
        return None

    for field, collection, source in CLASSIFICATION_LEVELS:
        level_id = product.get(field)
        if not level_id:
            continue
        level = await db[collection].find_one({"_id": level_id}, session=session)
        rate = _override(level, source)
        if rate:
            return ResolvedRate(rate=rate, source=source)

    return None


async def resolve_seller_rate(
    db,
    seller_id,
    product_id=None,
    *,
    settings: AppSettings | None = None,
    products: dict | None = None,
    session=None,
) -> ResolvedRate:
    """
    Commission percent for one product sold by one seller.

    Priority: product classification (leaf -> root), seller override,
    global default. Lookup failures fall back to the default.
    `products` is an optional per-order cache of product documents.
    """
    settings = settings or await get_settings(db, session=session)
    default = ResolvedRate(rate=settings.default_seller_rate, source="default")

    try:
        product = await _load_product(db, product_id, products, session=session)
        resolved = await _classification_rate(db, product, session=session)
        if resolved:
            return resolved

        seller = await db.sellers.find_one({"_id": seller_id}, session=session)
    except PyMongoError:
        logger.exception("COMMISSION_RATE_FALLBACK seller=%s reason=lookup_error", seller_id)
        return default

    if seller is None:
        logger.warning("COMMISSION_RATE_FALLBACK seller=%s reason=seller_not_found", seller_id)
        return default

    rate = _override(seller, "seller")
    if rate:
        return ResolvedRate(rate=rate, source="seller")

    return default


async def resolve_delivery_rate(
    db,
    delivery_partner_id,
    *,
    settings: AppSettings | None = None,
    session=None,
) -> ResolvedRate:
    settings = settings or await get_settings(db, session=session)
    default = ResolvedRate(rate=settings.default_delivery_rate, source="default")

    try:
        partner = await db.delivery_partners.find_one({"_id": delivery_partner_id}, session=session)
    except PyMongoError:
        logger.exception("COMMISSION_RATE_FALLBACK delivery_partner=%s reason=lookup_error", delivery_partner_id)
        return default

    if partner is None:
        logger.warning("COMMISSION_RATE_FALLBACK delivery_partner=%s reason=partner_not_found", delivery_partner_id)
        return default

    rate = _override(partner, "delivery_partner")
    if rate:
        return ResolvedRate(rate=rate, source="delivery_partner")

    return default

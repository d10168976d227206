import logging
from datetime import datetime

from pymongo.errors import PyMongoError

from config.constants import MIN_COMMISSION_RATE, MAX_COMMISSION_RATE
from models.settings import AppSettings, CommissionSettingsUpdate
from utils.errors import LedgerError, ValidationError, failure_result, storage_failure

logger = logging.getLogger(__name__)

SETTINGS_KEY = "global"


async def get_settings(db, session=None) -> AppSettings:
    """
    Singleton settings document, created with defaults on first read.
    Always reads the stored document so updates are visible immediately.
    """
    doc = await db.app_settings.find_one({"key": SETTINGS_KEY}, session=session)
    if doc is None:
        defaults = AppSettings().model_dump(exclude={"updated_at"})
        await db.app_settings.update_one(
            {"key": SETTINGS_KEY},
            {"$setOnInsert": {**defaults, "created_at": datetime.utcnow()}},
            upsert=True,
            session=session,
        )
        doc = await db.app_settings.find_one({"key": SETTINGS_KEY}, session=session)

    return AppSettings.model_validate(doc)


def _check_rate(value, label: str):
    # a stored 0 means "unset" and reads back as the built-in default
    if value <= MIN_COMMISSION_RATE or value > MAX_COMMISSION_RATE:
        raise ValidationError(f"{label} commission rate must be greater than 0 and at most 100")


def _validated_changes(data: CommissionSettingsUpdate) -> dict:
    changes = {}

    if data.seller_commission_rate is not None:
        _check_rate(data.seller_commission_rate, "Seller")
        changes["seller_commission_rate"] = data.seller_commission_rate

    if data.delivery_boy_commission_rate is not None:
        _check_rate(data.delivery_boy_commission_rate, "Delivery boy")
        changes["delivery_boy_commission_rate"] = data.delivery_boy_commission_rate

    if data.minimum_withdrawal_amount is not None:
        if data.minimum_withdrawal_amount < 0:
            raise ValidationError("Minimum withdrawal amount cannot be negative")
        changes["minimum_withdrawal_amount"] = data.minimum_withdrawal_amount

    if data.is_distance_based is not None:
        changes["delivery_config.is_distance_based"] = data.is_distance_based

    if data.delivery_boy_km_rate is not None:
        if data.delivery_boy_km_rate < 0:
            raise ValidationError("Delivery boy per-km rate cannot be negative")
        changes["delivery_config.delivery_boy_km_rate"] = data.delivery_boy_km_rate

    return changes


async def update_commission_settings(db, data: CommissionSettingsUpdate) -> dict:
    try:
        changes = _validated_changes(data)

        # make sure the singleton exists before a partial $set
        await get_settings(db)
        if changes:
            changes["updated_at"] = datetime.utcnow()
            await db.app_settings.update_one({"key": SETTINGS_KEY}, {"$set": changes})

        settings = await get_settings(db)
    except LedgerError as e:
        return failure_result(e)
    except PyMongoError:
        logger.exception("SETTINGS_UPDATE_ERROR")
        return storage_failure("Failed to update commission rates")

    return {
        "success": True,
        "message": "Commission rates updated successfully",
        "settings": settings.model_dump(),
    }

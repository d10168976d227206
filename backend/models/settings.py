from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from config.constants import (
    DEFAULT_SELLER_COMMISSION_RATE,
    DEFAULT_DELIVERY_COMMISSION_RATE,
    DEFAULT_MINIMUM_WITHDRAWAL_AMOUNT,
)


class DeliveryConfig(BaseModel):
    is_distance_based: bool = False
    delivery_boy_km_rate: float = 0


class AppSettings(BaseModel):
    seller_commission_rate: float = DEFAULT_SELLER_COMMISSION_RATE
    delivery_boy_commission_rate: float = DEFAULT_DELIVERY_COMMISSION_RATE
    minimum_withdrawal_amount: float = DEFAULT_MINIMUM_WITHDRAWAL_AMOUNT
    delivery_config: DeliveryConfig = Field(default_factory=DeliveryConfig)
    updated_at: Optional[datetime] = None

    @property
    def default_seller_rate(self) -> float:
        return self.seller_commission_rate or DEFAULT_SELLER_COMMISSION_RATE

    @property
    def default_delivery_rate(self) -> float:
        return self.delivery_boy_commission_rate or DEFAULT_DELIVERY_COMMISSION_RATE

    @property
    def distance_pricing_active(self) -> bool:
        cfg = self.delivery_config
        return cfg.is_distance_based and cfg.delivery_boy_km_rate > 0


class CommissionSettingsUpdate(BaseModel):
    seller_commission_rate: Optional[float] = None
    delivery_boy_commission_rate: Optional[float] = None
    minimum_withdrawal_amount: Optional[float] = None
    is_distance_based: Optional[bool] = None
    delivery_boy_km_rate: Optional[float] = None

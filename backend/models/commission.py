from decimal import Decimal
from enum import Enum
from typing import List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel, ConfigDict

from utils.money import round_paise


class CommissionStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    CANCELLED = "Cancelled"


class CommissionBasis(str, Enum):
    ORDER_VALUE = "ORDER_VALUE"   # order_amount is paise
    DISTANCE_KM = "DISTANCE_KM"   # order_amount is kilometres


class OrderCommissionStatus(str, Enum):
    NOT_DISTRIBUTED = "not_distributed"
    DISTRIBUTED = "distributed"
    REVERSED = "reversed"


class ResolvedRate(BaseModel):
    rate: float
    source: str


class ItemCommission(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    order_item_id: ObjectId
    product_id: Optional[ObjectId] = None
    amount_paise: int
    rate: float
    rate_source: str
    commission: Decimal


class SellerCommission(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    seller_id: ObjectId
    commission_rate: float
    order_amount_paise: int = 0
    exact_commission: Decimal = Decimal(0)
    items: List[ItemCommission] = []

    def add_item(self, item: ItemCommission):
        self.items.append(item)
        self.order_amount_paise += item.amount_paise
        self.exact_commission += item.commission

    @property
    def commission_amount_paise(self) -> int:
        return round_paise(self.exact_commission)

    @property
    def net_amount_paise(self) -> int:
        return self.order_amount_paise - self.commission_amount_paise


class DeliveryCommission(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    delivery_partner_id: ObjectId
    basis: CommissionBasis
    order_amount: Union[int, float]
    commission_rate: float
    rate_source: str
    commission_amount_paise: int


class CommissionBreakdown(BaseModel):
    seller_commissions: List[SellerCommission] = []
    delivery_commission: Optional[DeliveryCommission] = None

    @property
    def is_empty(self) -> bool:
        return not self.seller_commissions and self.delivery_commission is None

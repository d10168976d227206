from enum import Enum
from typing import Optional

from pydantic import BaseModel


class WithdrawStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    COMPLETED = "Completed"


class WithdrawalAction(str, Enum):
    APPROVE = "Approve"
    REJECT = "Reject"


class WithdrawalDecision(BaseModel):
    request_id: Optional[str] = None
    action: Optional[str] = None
    remark: Optional[str] = None


class WithdrawalCompletion(BaseModel):
    settlement_reference: Optional[str] = None

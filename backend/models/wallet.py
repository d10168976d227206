from datetime import datetime
from enum import Enum
from bson import ObjectId
from bson.errors import InvalidId

from utils.errors import ValidationError


class SubjectType(str, Enum):
    SELLER = "SELLER"
    DELIVERY_BOY = "DELIVERY_BOY"


class TransactionType(str, Enum):
    CREDIT = "Credit"
    DEBIT = "Debit"


SUBJECT_COLLECTIONS = {
    SubjectType.SELLER: "sellers",
    SubjectType.DELIVERY_BOY: "delivery_partners",
}


class Subject:
    """
    Wallet owner: a seller or a delivery partner.
    """

    def __init__(self, subject_type: SubjectType, subject_id: ObjectId):
        self.type = SubjectType(subject_type)
        self.id = subject_id

    @classmethod
    def parse(cls, subject_type, subject_id) -> "Subject":
        try:
            kind = SubjectType(subject_type)
        except ValueError:
            raise ValidationError(f"Invalid user type: {subject_type}")

        if isinstance(subject_id, ObjectId):
            return cls(kind, subject_id)
        if subject_id is None:
            raise ValidationError("Invalid user id")
        try:
            return cls(kind, ObjectId(subject_id))
        except (InvalidId, TypeError):
            raise ValidationError("Invalid user id")

    @property
    def collection(self) -> str:
        return SUBJECT_COLLECTIONS[self.type]

    def __eq__(self, other):
        return isinstance(other, Subject) and (self.type, self.id) == (other.type, other.id)

    def __hash__(self):
        return hash((self.type, self.id))

    def __repr__(self):
        return f"Subject({self.type.value}, {self.id})"


class WalletTransaction:
    def __init__(
        self,
        subject: Subject,
        transaction_type: TransactionType,
        amount_paise: int,
        description: str,
        related_order_id: ObjectId | None = None,
        related_commission_id: ObjectId | None = None,
        related_withdrawal_id: ObjectId | None = None,
    ):
        self.subject = subject
        self.transaction_type = TransactionType(transaction_type)
        self.amount_paise = amount_paise
        self.description = description
        self.related_order_id = related_order_id
        self.related_commission_id = related_commission_id
        self.related_withdrawal_id = related_withdrawal_id
        self.status = "Completed"
        self.created_at = datetime.utcnow()

    def to_document(self) -> dict:
        return {
            "subject_type": self.subject.type.value,
            "subject_id": self.subject.id,
            "type": self.transaction_type.value,
            "amount_paise": self.amount_paise,
            "description": self.description,
            "related_order_id": self.related_order_id,
            "related_commission_id": self.related_commission_id,
            "related_withdrawal_id": self.related_withdrawal_id,
            "status": self.status,
            "created_at": self.created_at,
        }

from fastapi import HTTPException
from bson import ObjectId
from bson.errors import InvalidId

from utils.errors import ValidationError, http_status_for

# -------------------------------
# ObjectId Guards
# -------------------------------

def to_object_id(value, name: str = "id") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {name}")


def parse_object_id(value: str, name: str = "id") -> ObjectId:
    try:
        return to_object_id(value, name)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)


# -------------------------------
# Service Result Guard
# -------------------------------

def ensure_success(result: dict) -> dict:
    """
    Turns a failed service result into an HTTP error carrying its message.
    """
    if not result.get("success"):
        raise HTTPException(
            status_code=http_status_for(result.get("error_code")),
            detail=result.get("message"),
        )
    return result

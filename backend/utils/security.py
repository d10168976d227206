from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from bson import ObjectId
from bson.errors import InvalidId
from jose import JWTError

from utils.jwt import decode_token
from database import get_db

security = HTTPBearer()

# token role -> collection holding that account
ROLE_COLLECTIONS = {
    "admin": "users",
    "seller": "sellers",
    "delivery_partner": "delivery_partners",
}


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db=Depends(get_db),
):
    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        raise _unauthorized("Invalid or expired token")

    role = payload.get("role")
    collection = ROLE_COLLECTIONS.get(role)
    if not collection or not payload.get("sub"):
        raise _unauthorized("Invalid token payload")

    try:
        account_id = ObjectId(payload["sub"])
    except (InvalidId, TypeError):
        raise _unauthorized("Invalid token payload")

    account = await db[collection].find_one({"_id": account_id})
    if not account:
        raise _unauthorized("User not found")

    account["role"] = role
    return account


def require_role(required_role: str):
    async def checker(user=Depends(get_current_user)):
        if user.get("role") != required_role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return checker

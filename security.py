"""
Authentication and role-based access control.

Every request re-resolves its identity from the bearer token; nothing is kept
server-side between requests.
"""
import logging
import os
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, Header, HTTPException
from jose import JWTError, jwt
from passlib.context import CryptContext

import config
from database import get_db, now, to_object_id
from schemas import Role

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=int(os.getenv("BCRYPT_ROUNDS", 12)),
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_token(user: dict) -> str:
    payload = {
        "sub": str(user["_id"]),
        "role": user.get("role"),
        "exp": now() + timedelta(days=config.JWT_EXPIRE_DAYS),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALG)


def get_current_user(authorization: Optional[str] = Header(None), db=Depends(get_db)) -> Dict[str, Any]:
    token = (authorization or "").replace("Bearer ", "").strip()
    if not token:
        raise HTTPException(status_code=401, detail="No token, authorization denied")
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALG])
    except JWTError as e:
        logger.warning("Rejected token: %s", e)
        raise HTTPException(status_code=401, detail="Token is not valid")
    user_id = to_object_id(payload.get("sub"))
    user = db["user"].find_one({"_id": user_id}, {"password_hash": 0}) if user_id else None
    if not user:
        raise HTTPException(status_code=401, detail="Token is not valid")
    return user


# Role predicates
class Permission(str, Enum):
    customer = "Customer"
    farmer = "Farmer"
    approved_farmer = "Approved farmer"
    admin = "Admin"


PREDICATES: Dict[Permission, Callable[[dict], bool]] = {
    Permission.customer: lambda user: user.get("role") == Role.customer,
    Permission.farmer: lambda user: user.get("role") == Role.farmer,
    Permission.approved_farmer: lambda user: user.get("role") == Role.farmer and bool(user.get("isApproved")),
    Permission.admin: lambda user: user.get("role") == Role.admin,
}


def has_permission(user: dict, permission: Permission) -> bool:
    return PREDICATES[permission](user)


def require(permission: Permission):
    """Build a dependency that resolves the caller and denies unless ``permission`` holds."""
    def dependency(user=Depends(get_current_user)):
        if not has_permission(user, permission):
            raise HTTPException(status_code=403, detail=f"Access denied. {permission.value} role required.")
        return user

    return dependency


require_customer = require(Permission.customer)
require_approved_farmer = require(Permission.approved_farmer)
require_admin = require(Permission.admin)

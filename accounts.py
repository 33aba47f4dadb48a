"""
Registration, login, profiles and account moderation.
"""
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, now, serialize_doc, to_object_id
from schemas import Role, User
from security import (create_token, get_current_user, hash_password, require_approved_farmer, require_customer,
                      verify_password)
from stats import customer_stats, farmer_stats

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["auth"])
farmers_router = APIRouter(prefix="/farmers", tags=["farmers"])
customers_router = APIRouter(prefix="/customers", tags=["customers"])


# Request models
class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Literal["customer", "farmer"] = "customer"
    city: str = Field(..., min_length=1)
    phone: Optional[str] = None
    address: Optional[str] = None
    farmDescription: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None
    address: Optional[str] = None
    farmDescription: Optional[str] = None


def public_user(user: dict) -> dict:
    return serialize_doc(user)


def find_user(db, user_id: str, label: str = "User") -> dict:
    oid = to_object_id(user_id)
    user = db["user"].find_one({"_id": oid}, {"password_hash": 0}) if oid else None
    if not user:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return user


def register_user(db, req: RegisterRequest) -> dict:
    email = str(req.email).lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists")
    user = User(
        name=req.name,
        email=email,
        password_hash=hash_password(req.password),
        role=req.role,
        city=req.city,
        phone=req.phone,
        address=req.address,
        farmDescription=req.farmDescription,
    )
    try:
        user_id = create_document(db, "user", user)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="User already exists")
    logger.info("Registered %s %s", req.role, user_id)
    return db["user"].find_one({"_id": to_object_id(user_id)})


def authenticate(db, email: str, password: str) -> dict:
    user = db["user"].find_one({"email": email.lower()})
    if not user or not verify_password(password, user.get("password_hash", "")):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    return user


def delete_user_cascade(db, user: dict):
    """Delete a user with their products (farmers) and every order they are party to."""
    uid = user["_id"]
    products = 0
    if user.get("role") == Role.farmer:
        products = db["product"].delete_many({"farmer": uid}).deleted_count
    orders = db["order"].delete_many({"$or": [{"customer": uid}, {"farmer": uid}]}).deleted_count
    db["user"].delete_one({"_id": uid})
    logger.info("Deleted user %s with %d product(s) and %d order(s)", uid, products, orders)


def approve_farmer(db, farmer_id: str) -> dict:
    farmer = find_user(db, farmer_id, "Farmer")
    if farmer.get("role") != Role.farmer:
        raise HTTPException(status_code=400, detail="User is not a farmer")
    if farmer.get("isApproved"):
        raise HTTPException(status_code=400, detail="Farmer is already approved")
    db["user"].update_one({"_id": farmer["_id"]}, {"$set": {"isApproved": True, "updatedAt": now()}})
    farmer["isApproved"] = True
    logger.info("Approved farmer %s", farmer["_id"])
    return farmer


def reject_farmer(db, farmer_id: str):
    farmer = find_user(db, farmer_id, "Farmer")
    if farmer.get("role") != Role.farmer:
        raise HTTPException(status_code=400, detail="User is not a farmer")
    delete_user_cascade(db, farmer)


# Auth
@auth_router.post("/register", status_code=201)
def register(req: RegisterRequest, db=Depends(get_db)):
    user = register_user(db, req)
    return {"token": create_token(user), "user": public_user(user)}


@auth_router.post("/login")
def login(req: LoginRequest, db=Depends(get_db)):
    user = authenticate(db, str(req.email), req.password)
    return {"token": create_token(user), "user": public_user(user)}


@auth_router.get("/profile")
def get_profile(user=Depends(get_current_user)):
    return public_user(user)


@auth_router.put("/profile")
def update_profile(req: ProfileUpdateRequest, user=Depends(get_current_user), db=Depends(get_db)):
    updates = {k: v for k, v in req.model_dump().items() if v is not None}
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")
    updates["updatedAt"] = now()
    db["user"].update_one({"_id": user["_id"]}, {"$set": updates})
    user.update(updates)
    return public_user(user)


# Farmers
@farmers_router.get("/profile")
def farmer_profile(farmer=Depends(require_approved_farmer)):
    return public_user(farmer)


@farmers_router.get("/stats")
def get_farmer_stats(farmer=Depends(require_approved_farmer), db=Depends(get_db)):
    return farmer_stats(db, farmer["_id"])


# Customers
@customers_router.get("/profile")
def customer_profile(customer=Depends(require_customer)):
    return public_user(customer)


@customers_router.get("/stats")
def get_customer_stats(customer=Depends(require_customer), db=Depends(get_db)):
    return customer_stats(db, customer["_id"])

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from accounts import approve_farmer, delete_user_cascade, find_user, public_user, reject_farmer
from catalog import delete_product, list_products
from database import get_db, get_documents, paginate, serialize_docs
from schemas import Category, OrderStatus, PaymentStatus, Role
from security import require_admin
from stats import admin_dashboard

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/dashboard")
def dashboard(db=Depends(get_db)):
    return admin_dashboard(db)


@router.get("/users")
def list_users(role: Optional[Role] = None, isApproved: Optional[bool] = None, page: int = Query(1, ge=1),
               limit: int = Query(10, ge=1, le=100), db=Depends(get_db)):
    query: Dict[str, Any] = {}
    if role:
        query["role"] = role.value
    if isApproved is not None:
        query["isApproved"] = isApproved
    result = paginate(db, "user", query, page, limit, "createdAt")
    return {"users": result.pop("items"), **result}


@router.get("/farmers/pending")
def pending_farmers(db=Depends(get_db)):
    docs = get_documents(db, "user", {"role": Role.farmer.value, "isApproved": False}, sort=[("createdAt", -1)])
    return serialize_docs(docs)


@router.put("/farmers/{farmer_id}/approve")
def approve(farmer_id: str, db=Depends(get_db)):
    farmer = approve_farmer(db, farmer_id)
    return {"message": "Farmer approved successfully", "farmer": public_user(farmer)}


@router.put("/farmers/{farmer_id}/reject")
def reject(farmer_id: str, db=Depends(get_db)):
    reject_farmer(db, farmer_id)
    return {"message": "Farmer rejected and account deleted successfully"}


@router.get("/products")
def admin_products(category: Optional[Category] = None, city: Optional[str] = None,
                   isAvailable: Optional[bool] = None, search: Optional[str] = None,
                   page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100), db=Depends(get_db)):
    return list_products(db, city, category.value if category else None, search, page, limit,
                         is_available=isAvailable)


@router.get("/orders")
def admin_orders(status: Optional[OrderStatus] = None, paymentStatus: Optional[PaymentStatus] = None,
                 page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100), db=Depends(get_db)):
    query: Dict[str, Any] = {}
    if status:
        query["status"] = status.value
    if paymentStatus:
        query["paymentStatus"] = paymentStatus.value
    result = paginate(db, "order", query, page, limit, "orderDate",
                      populate_with=[("customer", "user", ["name", "city"]), ("farmer", "user", ["name", "city"])],
                      populate_lines=["name", "price"])
    return {"orders": result.pop("items"), **result}


@router.delete("/products/{product_id}")
def admin_delete_product(product_id: str, db=Depends(get_db)):
    delete_product(db, product_id)
    return {"message": "Product deleted successfully"}


@router.delete("/users/{user_id}")
def delete_user(user_id: str, db=Depends(get_db)):
    delete_user_cascade(db, find_user(db, user_id))
    return {"message": "User deleted successfully"}

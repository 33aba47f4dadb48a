"""
Order placement and the order status lifecycle.

Placement validates every line before touching stock, then decrements each
product with a conditional update so two orders can never both take the same
units. If any later step fails, the decrements already applied are put back
before the error propagates.
"""
import logging
from collections import OrderedDict
from datetime import timedelta
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from pymongo import ReturnDocument

from database import (create_document, get_db, get_documents, now, populate, populate_line_products, serialize_doc,
                      serialize_docs, to_object_id)
from schemas import TERMINAL_STATUSES, DeliveryAddress, Order, OrderLine, OrderStatus, PaymentStatus, Role
from security import get_current_user, require_approved_farmer, require_customer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])

EXPECTED_DELIVERY_DAYS = 3


# Request models
class OrderLineRequest(BaseModel):
    productId: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)


class PlaceOrderRequest(BaseModel):
    products: List[OrderLineRequest] = Field(..., min_length=1)
    deliveryAddress: DeliveryAddress
    deliveryInstructions: Optional[str] = None
    notes: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    notes: Optional[str] = None


# Placement
def _reject(message: str):
    raise HTTPException(status_code=400, detail=message)


def _restore_stock(db, applied: List[tuple]):
    for oid, qty, sold_out in applied:
        update: Dict[str, Any] = {"$inc": {"quantity": qty}, "$set": {"updatedAt": now()}}
        if sold_out:
            update["$set"]["isAvailable"] = True
        db["product"].update_one({"_id": oid}, update)
    if applied:
        logger.warning("Restored stock for %d product(s) after failed placement", len(applied))


def _take_stock(db, oid: ObjectId, qty: int) -> Optional[Dict[str, Any]]:
    """Decrement stock only if ``qty`` units are still there; None otherwise."""
    updated = db["product"].find_one_and_update(
        {"_id": oid, "isAvailable": True, "quantity": {"$gte": qty}},
        {"$inc": {"quantity": -qty}, "$set": {"updatedAt": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is not None and updated["quantity"] == 0:
        db["product"].update_one({"_id": oid}, {"$set": {"isAvailable": False}})
        updated["isAvailable"] = False
    return updated


def place_order(db, customer: dict, req: PlaceOrderRequest) -> str:
    """Validate, price and persist an order; returns the new order id."""
    wanted: "OrderedDict[ObjectId, int]" = OrderedDict()
    names: Dict[ObjectId, str] = {}
    lines: List[OrderLine] = []
    farmer_id = None

    for item in req.products:
        oid = to_object_id(item.productId)
        product = db["product"].find_one({"_id": oid}) if oid else None
        if not product:
            _reject(f"Product {item.productId} not found")
        if not product.get("isAvailable"):
            _reject(f"Product {product['name']} is not available")
        total_wanted = wanted.get(oid, 0) + item.quantity
        if product.get("quantity", 0) < total_wanted:
            _reject(f"Insufficient quantity for {product['name']}")
        if farmer_id is None:
            farmer_id = product["farmer"]
        elif product["farmer"] != farmer_id:
            _reject("All products must be from the same farmer")
        wanted[oid] = total_wanted
        names[oid] = product["name"]
        lines.append(OrderLine(product=oid, quantity=item.quantity, price=product["price"]))

    if not db["user"].find_one({"_id": farmer_id, "role": Role.farmer.value, "isApproved": True}):
        _reject("Farmer is not accepting orders")

    applied = []
    try:
        for oid, qty in wanted.items():
            updated = _take_stock(db, oid, qty)
            if updated is None:
                _reject(f"Insufficient quantity for {names[oid]}")
            applied.append((oid, qty, updated["quantity"] == 0))

        placed_at = now()
        order = Order(
            customer=customer["_id"],
            farmer=farmer_id,
            products=lines,
            deliveryAddress=req.deliveryAddress,
            deliveryInstructions=req.deliveryInstructions,
            notes=req.notes,
            orderDate=placed_at,
            expectedDelivery=placed_at + timedelta(days=EXPECTED_DELIVERY_DAYS),
        )
        order_id = create_document(db, "order", order)
    except Exception:
        _restore_stock(db, applied)
        raise

    logger.info("Customer %s placed order %s with farmer %s for %.2f",
                customer["_id"], order_id, farmer_id, order.totalAmount)
    return order_id


# Lifecycle
def find_order(db, order_id: str) -> Dict[str, Any]:
    oid = to_object_id(order_id)
    order = db["order"].find_one({"_id": oid}) if oid else None
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def save_order(db, doc: Dict[str, Any]) -> Dict[str, Any]:
    """Validate ``doc`` (recomputing totalAmount) and persist it in place."""
    fields = Order.model_validate(doc).model_dump()
    db["order"].update_one({"_id": doc["_id"]}, {"$set": {**fields, "updatedAt": now()}})
    doc.update(fields)
    return doc


def update_status(db, order_id: str, farmer: dict, status: OrderStatus, notes: Optional[str] = None):
    order = find_order(db, order_id)
    if order["farmer"] != farmer["_id"]:
        raise HTTPException(status_code=403, detail="Not authorized to update this order")
    previous = order.get("status")
    order["status"] = OrderStatus(status).value
    if previous in TERMINAL_STATUSES and previous != order["status"]:
        logger.warning("Order %s moved out of terminal status %s", order["_id"], previous)
    if notes:
        order["notes"] = notes
    if order["status"] == OrderStatus.delivered:
        order["actualDelivery"] = now()
    logger.info("Farmer %s set order %s to %s", farmer["_id"], order["_id"], order["status"])
    return save_order(db, order)


def complete_payment(db, order_id: str, customer: dict):
    order = find_order(db, order_id)
    if order["customer"] != customer["_id"]:
        raise HTTPException(status_code=403, detail="Not authorized to update this order")
    order["paymentStatus"] = PaymentStatus.completed.value
    logger.info("Customer %s completed payment for order %s", customer["_id"], order["_id"])
    return save_order(db, order)


def can_view(order: dict, user: dict) -> bool:
    return user["_id"] in (order["customer"], order["farmer"]) or user.get("role") == Role.admin


# Routes
@router.post("", status_code=201)
def create_order(req: PlaceOrderRequest, customer=Depends(require_customer), db=Depends(get_db)):
    order_id = place_order(db, customer, req)
    order = find_order(db, order_id)
    populate_line_products(db, [order], ["name", "price", "unit"])
    populate(db, [order], "farmer", "user", ["name", "city", "phone"])
    return {"message": "Order placed successfully", "order": serialize_doc(order)}


@router.get("/customer/my-orders")
def customer_orders(customer=Depends(require_customer), db=Depends(get_db)):
    orders = get_documents(db, "order", {"customer": customer["_id"]}, sort=[("orderDate", -1)])
    populate_line_products(db, orders, ["name", "price", "unit", "image"])
    populate(db, orders, "farmer", "user", ["name", "city", "phone"])
    return serialize_docs(orders)


@router.get("/farmer/my-orders")
def farmer_orders(farmer=Depends(require_approved_farmer), db=Depends(get_db)):
    orders = get_documents(db, "order", {"farmer": farmer["_id"]}, sort=[("orderDate", -1)])
    populate_line_products(db, orders, ["name", "price", "unit"])
    populate(db, orders, "customer", "user", ["name", "city", "phone", "address"])
    return serialize_docs(orders)


@router.get("/{order_id}")
def get_order(order_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    order = find_order(db, order_id)
    if not can_view(order, user):
        raise HTTPException(status_code=403, detail="Not authorized to view this order")
    populate_line_products(db, [order], ["name", "price", "unit", "image"])
    populate(db, [order], "farmer", "user", ["name", "city", "phone"])
    populate(db, [order], "customer", "user", ["name", "city", "phone", "address"])
    return serialize_doc(order)


@router.put("/{order_id}/status")
def put_status(order_id: str, req: StatusUpdateRequest, farmer=Depends(require_approved_farmer),
               db=Depends(get_db)):
    order = update_status(db, order_id, farmer, req.status, req.notes)
    return {"message": "Order status updated successfully", "order": serialize_doc(order)}


@router.put("/{order_id}/payment")
def put_payment(order_id: str, customer=Depends(require_customer), db=Depends(get_db)):
    order = complete_payment(db, order_id, customer)
    return {"message": "Payment completed successfully", "order": serialize_doc(order)}

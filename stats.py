"""
Read-only rollups, recomputed on every call.
"""
from typing import Any, Dict

from bson import ObjectId

from database import get_documents, populate, serialize_docs
from schemas import OrderStatus, PaymentStatus, Role

RECENT_LIMIT = 5


def _paid_total(db, query: Dict[str, Any]) -> float:
    orders = db["order"].find({**query, "paymentStatus": PaymentStatus.completed.value}, {"totalAmount": 1})
    return sum(o.get("totalAmount", 0) for o in orders)


def _count_status(db, query: Dict[str, Any], status: OrderStatus) -> int:
    return db["order"].count_documents({**query, "status": status.value})


def farmer_stats(db, farmer_id: ObjectId) -> Dict[str, Any]:
    mine = {"farmer": farmer_id}
    return {
        "totalProducts": db["product"].count_documents(mine),
        "activeProducts": db["product"].count_documents({**mine, "isAvailable": True}),
        "totalOrders": db["order"].count_documents(mine),
        "pendingOrders": _count_status(db, mine, OrderStatus.pending),
        "completedOrders": _count_status(db, mine, OrderStatus.delivered),
        "totalEarnings": _paid_total(db, mine),
    }


def customer_stats(db, customer_id: ObjectId) -> Dict[str, Any]:
    mine = {"customer": customer_id}
    return {
        "totalOrders": db["order"].count_documents(mine),
        "pendingOrders": _count_status(db, mine, OrderStatus.pending),
        "completedOrders": _count_status(db, mine, OrderStatus.delivered),
        "cancelledOrders": _count_status(db, mine, OrderStatus.cancelled),
        "totalSpent": _paid_total(db, mine),
    }


def admin_dashboard(db) -> Dict[str, Any]:
    users = db["user"]
    statistics = {
        "totalUsers": users.count_documents({}),
        "totalFarmers": users.count_documents({"role": Role.farmer.value}),
        "pendingFarmers": users.count_documents({"role": Role.farmer.value, "isApproved": False}),
        "totalCustomers": users.count_documents({"role": Role.customer.value}),
        "totalProducts": db["product"].count_documents({}),
        "totalOrders": db["order"].count_documents({}),
    }

    recent_users = list(
        users.find({}, {"name": 1, "email": 1, "role": 1, "createdAt": 1})
        .sort("createdAt", -1)
        .limit(RECENT_LIMIT)
    )
    recent_orders = get_documents(db, "order", sort=[("orderDate", -1)], limit=RECENT_LIMIT)
    populate(db, recent_orders, "customer", "user", ["name"])
    populate(db, recent_orders, "farmer", "user", ["name"])
    recent_products = get_documents(db, "product", sort=[("createdAt", -1)], limit=RECENT_LIMIT)
    populate(db, recent_products, "farmer", "user", ["name"])

    return {
        "statistics": statistics,
        "recentActivities": {
            "users": serialize_docs(recent_users),
            "orders": serialize_docs(recent_orders),
            "products": serialize_docs(recent_products),
        },
    }

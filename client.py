"""
Python client for the AgroLink API.

``Cart`` is a scratch shopping list kept on the client (a JSON file standing in
for browser local storage). The server never sees it until checkout, where every
price and stock level is re-checked; the order returned by checkout is the only
source of truth.
"""
import json
import logging
import os
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, errors: Optional[list] = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.errors = errors or []


class Cart:
    def __init__(self, path: str):
        self.path = path
        self._items: List[Dict[str, Any]] = []
        if os.path.exists(path):
            with open(path, encoding="utf-8") as fh:
                self._items = json.load(fh)

    def _save(self):
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump(self._items, fh)

    def _find(self, product_id: str) -> Optional[Dict[str, Any]]:
        for item in self._items:
            if item["product"]["id"] == product_id:
                return item
        return None

    @property
    def items(self) -> List[Dict[str, Any]]:
        return list(self._items)

    def add(self, product: Dict[str, Any], quantity: int = 1):
        """Add ``quantity`` of a product snapshot, merging with an existing line."""
        if quantity < 1:
            raise ValueError("Quantity must be at least 1")
        existing = self._find(product["id"])
        if existing:
            existing["quantity"] += quantity
        else:
            self._items.append({"product": product, "quantity": quantity})
        self._save()

    def update_quantity(self, product_id: str, quantity: int):
        if quantity <= 0:
            self.remove(product_id)
            return
        item = self._find(product_id)
        if item:
            item["quantity"] = quantity
            self._save()

    def remove(self, product_id: str):
        self._items = [i for i in self._items if i["product"]["id"] != product_id]
        self._save()

    def clear(self):
        self._items = []
        self._save()

    def total(self) -> float:
        # Estimate from snapshots; checkout reprices.
        return round(sum(i["product"].get("price", 0) * i["quantity"] for i in self._items), 2)

    def to_order_lines(self) -> List[Dict[str, Any]]:
        return [{"productId": i["product"]["id"], "quantity": i["quantity"]} for i in self._items]

    def __len__(self):
        return len(self._items)


class MarketplaceClient:
    def __init__(self, base_url: str = "http://localhost:8000/api", token: Optional[str] = None,
                 http: Optional[httpx.Client] = None):
        self.http = http or httpx.Client(base_url=base_url, timeout=10.0)
        self.token = token

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        resp = self.http.request(method, path, headers=headers, **kwargs)
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            raise ApiError(resp.status_code, body.get("detail", resp.reason_phrase), body.get("errors"))
        return resp.json()

    # Auth
    def register(self, **fields) -> Dict[str, Any]:
        data = self._request("POST", "/auth/register", json=fields)
        self.token = data["token"]
        return data["user"]

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = data["token"]
        return data["user"]

    def logout(self):
        self.token = None

    # Catalog
    def list_products(self, **filters) -> Dict[str, Any]:
        params = {k: v for k, v in filters.items() if v is not None}
        return self._request("GET", "/products", params=params)

    def get_product(self, product_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/products/{product_id}")

    # Orders
    def checkout(self, cart: Cart, delivery_address: Dict[str, str], delivery_instructions: Optional[str] = None,
                 notes: Optional[str] = None) -> Dict[str, Any]:
        if not len(cart):
            raise ValueError("Your cart is empty")
        payload = {
            "products": cart.to_order_lines(),
            "deliveryAddress": delivery_address,
            "deliveryInstructions": delivery_instructions,
            "notes": notes,
        }
        order = self._request("POST", "/orders", json=payload)["order"]
        cart.clear()
        logger.info("Placed order %s for %s", order["id"], order["totalAmount"])
        return order

    def my_orders(self, role: str = "customer") -> List[Dict[str, Any]]:
        return self._request("GET", f"/orders/{role}/my-orders")

    def get_order(self, order_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/orders/{order_id}")

    def pay(self, order_id: str) -> Dict[str, Any]:
        return self._request("PUT", f"/orders/{order_id}/payment")["order"]

    def update_status(self, order_id: str, status: str, notes: Optional[str] = None) -> Dict[str, Any]:
        body = {"status": status}
        if notes:
            body["notes"] = notes
        return self._request("PUT", f"/orders/{order_id}/status", json=body)["order"]

    def stats(self, role: str) -> Dict[str, Any]:
        return self._request("GET", f"/{role}s/stats")

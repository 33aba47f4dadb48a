"""
Database Schemas for the AgroLink marketplace

Each Pydantic model maps to a MongoDB collection (lowercased class name).
Field names are stored exactly as they are returned by the API.

Collections:
- user
- product
- order
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class Role(str, Enum):
    customer = "customer"
    farmer = "farmer"
    admin = "admin"


class Unit(str, Enum):
    kg = "kg"
    dozen = "dozen"
    piece = "piece"
    bundle = "bundle"
    quintal = "quintal"


class Category(str, Enum):
    vegetables = "vegetables"
    fruits = "fruits"
    grains = "grains"
    dairy = "dairy"
    poultry = "poultry"
    other = "other"


class OrderStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class PaymentStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


# Transitions between statuses are not enforced server-side.
TERMINAL_STATUSES = {OrderStatus.delivered.value, OrderStatus.cancelled.value}


class DocumentModel(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True, arbitrary_types_allowed=True)


class User(DocumentModel):
    """
    Users collection schema
    Collection name: "user"
    """
    name: str = Field(..., min_length=1, description="Full name")
    email: EmailStr = Field(..., description="Email address, unique")
    password_hash: str = Field(..., description="BCrypt password hash")
    role: Role = Field(Role.customer, description="customer | farmer | admin")
    isApproved: bool = Field(False, description="Admin approval flag (farmers)")
    city: str = Field(..., min_length=1)
    phone: Optional[str] = None
    address: Optional[str] = None
    farmDescription: Optional[str] = None

    @model_validator(mode="after")
    def non_farmers_are_approved(self):
        if self.role != Role.farmer.value:
            self.isApproved = True
        return self


class Product(DocumentModel):
    """
    Products collection schema
    Collection name: "product"
    """
    farmer: ObjectId = Field(..., description="Owning farmer, immutable")
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=0, description="Remaining stock")
    unit: Unit = Unit.kg
    category: Category = Category.vegetables
    image: str = Field(..., description="Stored image file name")
    city: str = Field(..., min_length=1)
    isAvailable: bool = True

    @model_validator(mode="after")
    def sold_out_is_unavailable(self):
        if self.quantity == 0:
            self.isAvailable = False
        return self


class OrderLine(DocumentModel):
    product: ObjectId
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price at order time")


class DeliveryAddress(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None

    @model_validator(mode="after")
    def not_empty(self):
        if not any([self.street, self.city, self.state, self.pincode]):
            raise ValueError("Delivery address is required")
        return self


class Order(DocumentModel):
    """
    Orders collection schema
    Collection name: "order"

    ``totalAmount`` is always recomputed from the line items.
    """
    customer: ObjectId
    farmer: ObjectId
    products: List[OrderLine] = Field(..., min_length=1)
    totalAmount: float = 0
    status: OrderStatus = OrderStatus.pending
    paymentStatus: PaymentStatus = PaymentStatus.pending
    deliveryAddress: DeliveryAddress
    deliveryInstructions: Optional[str] = None
    notes: Optional[str] = None
    orderDate: datetime
    expectedDelivery: Optional[datetime] = None
    actualDelivery: Optional[datetime] = None

    @model_validator(mode="after")
    def compute_total(self):
        self.totalAmount = order_total(self.products)
        return self


def order_total(lines) -> float:
    return sum(line.price * line.quantity for line in lines)

"""
Product catalog: public browsing plus farmer-scoped product management.
"""
import logging
import re
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import BaseModel, Field

from database import (create_document, get_db, get_documents, now, paginate, populate, serialize_doc,
                      serialize_docs, to_object_id)
from schemas import Category, Product, Unit
from security import require_approved_farmer
from uploads import save_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


# Request models
class ProductUpdateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    category: Category
    unit: Unit
    city: Optional[str] = None
    isAvailable: Optional[bool] = None


# Queries
def build_product_filter(city: Optional[str] = None, category: Optional[str] = None, search: Optional[str] = None,
                         is_available: Optional[bool] = None) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if is_available is not None:
        query["isAvailable"] = is_available
    if city:
        query["city"] = {"$regex": re.escape(city), "$options": "i"}
    if category:
        query["category"] = category
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    return query


def list_products(db, city=None, category=None, search=None, page: int = 1, limit: int = 10,
                  is_available: Optional[bool] = True) -> Dict[str, Any]:
    query = build_product_filter(city, category, search, is_available)
    result = paginate(db, "product", query, page, limit, "createdAt",
                      populate_with=[("farmer", "user", ["name", "city"])])
    return {"products": result.pop("items"), **result}


def find_product(db, product_id: str) -> Dict[str, Any]:
    oid = to_object_id(product_id)
    product = db["product"].find_one({"_id": oid}) if oid else None
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def find_owned_product(db, product_id: str, farmer: dict, action: str) -> Dict[str, Any]:
    product = find_product(db, product_id)
    if product["farmer"] != farmer["_id"]:
        raise HTTPException(status_code=403, detail=f"Not authorized to {action} this product")
    return product


def save_product(db, doc: Dict[str, Any]) -> Dict[str, Any]:
    """Validate ``doc`` against the collection schema and persist it in place."""
    fields = Product.model_validate(doc).model_dump()
    fields["updatedAt"] = now()
    db["product"].update_one({"_id": doc["_id"]}, {"$set": fields})
    doc.update(fields)
    return doc


def update_product(db, product_id: str, farmer: dict, req: ProductUpdateRequest) -> Dict[str, Any]:
    product = find_owned_product(db, product_id, farmer, "update")
    was_sold_out = product.get("quantity", 0) == 0
    updates = req.model_dump(exclude={"city", "isAvailable"}, mode="json")
    product.update(updates)
    if req.city:
        product["city"] = req.city
    if req.isAvailable is not None:
        product["isAvailable"] = req.isAvailable
    elif was_sold_out:
        # restocked
        product["isAvailable"] = True
    return save_product(db, product)


def delete_product(db, product_id: str, farmer: Optional[dict] = None):
    if farmer is None:
        product = find_product(db, product_id)
    else:
        product = find_owned_product(db, product_id, farmer, "delete")
    db["product"].delete_one({"_id": product["_id"]})
    logger.info("Deleted product %s", product["_id"])


# Routes
@router.get("")
def get_products(city: Optional[str] = None, category: Optional[Category] = None, search: Optional[str] = None,
                 page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100), db=Depends(get_db)):
    return list_products(db, city, category.value if category else None, search, page, limit)


@router.get("/farmer/my-products")
def my_products(farmer=Depends(require_approved_farmer), db=Depends(get_db)):
    docs = get_documents(db, "product", {"farmer": farmer["_id"]}, sort=[("createdAt", -1)])
    return serialize_docs(docs)


@router.get("/{product_id}")
def get_product(product_id: str, db=Depends(get_db)):
    product = find_product(db, product_id)
    populate(db, [product], "farmer", "user", ["name", "city", "phone"])
    return serialize_doc(product)


@router.post("", status_code=201)
def create_product(
    name: str = Form(..., min_length=1),
    description: str = Form(..., min_length=1),
    price: float = Form(..., ge=0),
    quantity: int = Form(..., ge=1),
    category: Category = Form(Category.vegetables),
    unit: Unit = Form(Unit.kg),
    city: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    farmer=Depends(require_approved_farmer),
    db=Depends(get_db),
):
    if image is None or not image.filename:
        raise HTTPException(status_code=400, detail="Product image is required")
    product = Product(
        farmer=farmer["_id"],
        name=name,
        description=description,
        price=price,
        quantity=quantity,
        category=category,
        unit=unit,
        city=city or farmer.get("city"),
        image=save_image(image),
    )
    product_id = create_document(db, "product", product)
    logger.info("Farmer %s listed product %s", farmer["_id"], product_id)
    return {"message": "Product created successfully", "product": serialize_doc(find_product(db, product_id))}


@router.put("/{product_id}")
def put_product(product_id: str, req: ProductUpdateRequest, farmer=Depends(require_approved_farmer),
                db=Depends(get_db)):
    product = update_product(db, product_id, farmer, req)
    return {"message": "Product updated successfully", "product": serialize_doc(product)}


@router.delete("/{product_id}")
def remove_product(product_id: str, farmer=Depends(require_approved_farmer), db=Depends(get_db)):
    delete_product(db, product_id, farmer)
    return {"message": "Product deleted successfully"}

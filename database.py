"""
MongoDB access for the AgroLink marketplace.

The client is created once at import when DATABASE_URL is set; request
handlers receive the database handle through the ``get_db`` dependency so
tests can swap it out.
"""
import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from bson import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

import config

client: Optional[MongoClient] = None
db: Optional[Database] = None

if config.DATABASE_URL:
    client = MongoClient(config.DATABASE_URL)
    db = client[config.DATABASE_NAME]


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not available")
    return db


def ensure_indexes(database: Database):
    database["user"].create_index("email", unique=True)
    database["product"].create_index([("farmer", 1), ("createdAt", -1)])
    database["order"].create_index("customer")
    database["order"].create_index("farmer")


def now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Return an ObjectId for ``value`` or None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="python")
    doc = dict(data)
    stamp = now()
    doc.setdefault("createdAt", stamp)
    doc.setdefault("updatedAt", stamp)
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(database: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  sort: Optional[List] = None, skip: int = 0, limit: int = 0) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def _serialize_value(value: Any):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [_serialize_value(v) for v in value]
    return value


def serialize_doc(doc: Optional[Dict[str, Any]]):
    if not doc:
        return doc
    out = {}
    for k, v in doc.items():
        if k == "_id":
            out["id"] = str(v)
        elif k == "password_hash":
            continue
        else:
            out[k] = _serialize_value(v)
    return out


def serialize_docs(docs: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [serialize_doc(d) for d in docs]


# Reference population
def _projection(fields: Iterable[str]) -> Dict[str, int]:
    return {f: 1 for f in fields}


def populate(database: Database, docs: List[Dict[str, Any]], field: str, collection_name: str,
             fields: Iterable[str]) -> List[Dict[str, Any]]:
    """Replace the ObjectId stored in ``field`` with the referenced document.

    Only ``fields`` of the referenced document are kept. A dangling reference
    becomes None.
    """
    ids = {d.get(field) for d in docs if isinstance(d.get(field), ObjectId)}
    if not ids:
        return docs
    found = {
        r["_id"]: r
        for r in database[collection_name].find({"_id": {"$in": list(ids)}}, _projection(fields))
    }
    for d in docs:
        ref = d.get(field)
        if isinstance(ref, ObjectId):
            d[field] = found.get(ref)
    return docs


def populate_line_products(database: Database, orders: List[Dict[str, Any]], fields: Iterable[str]):
    """Populate ``products.product`` on each order's line items."""
    lines = [line for order in orders for line in order.get("products", [])]
    populate(database, lines, "product", "product", fields)
    return orders


def paginate(database: Database, collection_name: str, query: Dict[str, Any], page: int, limit: int,
             sort_field: str, populate_with=(), populate_lines=None) -> Dict[str, Any]:
    """Return one page of ``collection_name`` newest first, plus paging totals.

    ``populate_with`` is a sequence of (field, collection, fields) references to
    resolve on each document; ``populate_lines`` lists the product fields to
    resolve on order line items.
    """
    docs = get_documents(database, collection_name, query, sort=[(sort_field, -1)],
                         skip=(page - 1) * limit, limit=limit)
    for field, ref_collection, fields in populate_with:
        populate(database, docs, field, ref_collection, fields)
    if populate_lines:
        populate_line_products(database, docs, populate_lines)
    total = database[collection_name].count_documents(query)
    return {
        "items": serialize_docs(docs),
        "totalPages": math.ceil(total / limit),
        "currentPage": page,
        "total": total,
    }

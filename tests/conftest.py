import os

os.environ.pop("DATABASE_URL", None)
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import mongomock
from bson import ObjectId
import pytest
from fastapi.testclient import TestClient

from database import create_document, ensure_indexes, get_db
from main import app
from schemas import Product, User
from security import create_token, hash_password


@pytest.fixture
def db():
    database = mongomock.MongoClient()["agrolink_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db, tmp_path, monkeypatch):
    monkeypatch.setattr("config.UPLOAD_DIR", str(tmp_path / "uploads"))
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role="customer", approved=True, city="Pune", password="secret123", **extra):
        counter["n"] += 1
        user = User(
            name=extra.pop("name", f"{role.title()} {counter['n']}"),
            email=extra.pop("email", f"{role}{counter['n']}@example.com"),
            password_hash=hash_password(password),
            role=role,
            isApproved=approved,
            city=city,
            **extra,
        )
        user_id = create_document(db, "user", user)
        doc = db["user"].find_one({"email": user.email})
        doc["token"] = create_token(doc)
        doc["id"] = user_id
        doc["headers"] = {"Authorization": f"Bearer {doc['token']}"}
        return doc

    return _make


@pytest.fixture
def make_product(db):
    def _make(farmer, **fields):
        data = {
            "name": "Fresh Tomatoes",
            "description": "Organic red tomatoes",
            "price": 40,
            "quantity": 10,
            "unit": "kg",
            "category": "vegetables",
            "image": "tomatoes.jpg",
            "city": farmer["city"],
        }
        data.update(fields)
        product_id = create_document(db, "product", Product(farmer=farmer["_id"], **data))
        return db["product"].find_one({"_id": ObjectId(product_id)})

    return _make


@pytest.fixture
def farmer(make_user):
    return make_user("farmer", name="Farmer F", phone="9999")


@pytest.fixture
def customer(make_user):
    return make_user("customer", name="Customer C", address="12 Market Road")


@pytest.fixture
def admin(make_user):
    return make_user("admin", name="Admin A")

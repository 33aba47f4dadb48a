from seed import ADMIN_EMAIL, SAMPLE_PRODUCTS, create_admin, create_sample_products
from security import verify_password


def test_create_admin_once(db):
    assert create_admin(db) is True
    assert create_admin(db) is False

    admin = db["user"].find_one({"email": ADMIN_EMAIL})
    assert admin["role"] == "admin"
    assert verify_password("admin123456", admin["password_hash"])


def test_sample_products_need_empty_catalog(db):
    assert create_sample_products(db) == len(SAMPLE_PRODUCTS)
    assert create_sample_products(db) == 0

    farmer = db["user"].find_one({"role": "farmer"})
    assert farmer["isApproved"] is True
    assert db["product"].count_documents({"farmer": farmer["_id"], "isAvailable": True}) == len(SAMPLE_PRODUCTS)

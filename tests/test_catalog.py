import os
from types import SimpleNamespace

import pytest

import config
import uploads

FORM = {
    "name": "Spinach",
    "description": "Leafy greens",
    "price": "30",
    "quantity": "12",
    "category": "vegetables",
    "unit": "bundle",
}
IMAGE = {"image": ("spinach.png", b"\x89PNG\r\n\x1a\n fake", "image/png")}


@pytest.fixture
def catalog(make_user, make_product):
    f1 = make_user("farmer", city="Pune")
    f2 = make_user("farmer", city="Nashik")
    return {
        "tomato": make_product(f1, name="Tomato", description="Red and ripe", category="vegetables"),
        "mango": make_product(f1, name="Mango", description="Sweet alphonso", category="fruits"),
        "rice": make_product(f2, name="Rice", description="Aged basmati", category="grains", city="Nashik"),
        "sold_out": make_product(f2, name="Milk", description="Whole", category="dairy", quantity=0),
    }


def names(resp):
    return sorted(p["name"] for p in resp.json()["products"])


def test_public_listing_hides_unavailable(client, catalog):
    resp = client.get("/api/products")

    assert resp.status_code == 200
    assert names(resp) == ["Mango", "Rice", "Tomato"]
    assert resp.json()["total"] == 3
    assert resp.json()["currentPage"] == 1
    assert resp.json()["totalPages"] == 1


def test_listing_filters(client, catalog):
    assert names(client.get("/api/products", params={"city": "nAsH"})) == ["Rice"]
    assert names(client.get("/api/products", params={"category": "fruits"})) == ["Mango"]
    assert names(client.get("/api/products", params={"search": "SWEET"})) == ["Mango"]
    assert names(client.get("/api/products", params={"search": "rice"})) == ["Rice"]
    assert names(client.get("/api/products", params={"search": "(.*"})) == []


def test_listing_rejects_unknown_category(client, catalog):
    assert client.get("/api/products", params={"category": "toys"}).status_code == 400


def test_pagination(client, catalog):
    first = client.get("/api/products", params={"page": 1, "limit": 2}).json()
    second = client.get("/api/products", params={"page": 2, "limit": 2}).json()

    assert first["totalPages"] == 2
    assert len(first["products"]) == 2
    assert len(second["products"]) == 1
    assert second["currentPage"] == 2


def test_listing_populates_farmer(client, catalog):
    product = client.get("/api/products", params={"search": "Rice"}).json()["products"][0]

    assert product["farmer"]["city"] == "Nashik"
    assert "email" not in product["farmer"]


def test_product_detail(client, farmer, make_product):
    product = make_product(farmer)

    resp = client.get(f"/api/products/{product['_id']}")

    assert resp.status_code == 200
    assert resp.json()["farmer"] == {"id": farmer["id"], "name": "Farmer F", "city": "Pune", "phone": "9999"}


@pytest.mark.parametrize("product_id", ["0" * 24, "not-an-id"])
def test_product_detail_not_found(client, product_id):
    resp = client.get(f"/api/products/{product_id}")

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Product not found"


def test_approved_farmer_creates_product(client, db, farmer):
    resp = client.post("/api/products", data=FORM, files=IMAGE, headers=farmer["headers"])

    assert resp.status_code == 201
    product = resp.json()["product"]
    assert product["farmer"] == farmer["id"]
    assert product["city"] == "Pune"
    assert product["isAvailable"] is True
    assert product["unit"] == "bundle"
    assert os.path.exists(os.path.join(config.UPLOAD_DIR, product["image"]))


def test_unapproved_farmer_is_forbidden(client, db, make_user):
    pending = make_user("farmer", approved=False)

    resp = client.post("/api/products", data=FORM, files=IMAGE, headers=pending["headers"])

    assert resp.status_code == 403
    assert resp.json()["detail"] == "Access denied. Approved farmer role required."
    assert db["product"].count_documents({}) == 0


def test_customer_cannot_create_product(client, customer):
    assert client.post("/api/products", data=FORM, files=IMAGE, headers=customer["headers"]).status_code == 403


def test_create_requires_image(client, farmer):
    resp = client.post("/api/products", data=FORM, headers=farmer["headers"])

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Product image is required"


def test_create_rejects_non_images(client, farmer):
    files = {"image": ("notes.txt", b"hello", "text/plain")}

    resp = client.post("/api/products", data=FORM, files=files, headers=farmer["headers"])

    assert resp.status_code == 400


@pytest.mark.parametrize("field,value", [("price", "-1"), ("quantity", "0"), ("unit", "litre"), ("category", "toys")])
def test_create_validates_fields(client, db, farmer, field, value):
    resp = client.post("/api/products", data={**FORM, field: value}, files=IMAGE, headers=farmer["headers"])

    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == field
    assert db["product"].count_documents({}) == 0


def update_body(**fields):
    body = {k: v for k, v in FORM.items()}
    body.update({"price": 35.0, "quantity": 8})
    body.update(fields)
    return body


def test_owner_updates_product(client, db, farmer, make_product):
    product = make_product(farmer)

    resp = client.put(f"/api/products/{product['_id']}", json=update_body(city="Satara"), headers=farmer["headers"])

    assert resp.status_code == 200
    stored = db["product"].find_one({"_id": product["_id"]})
    assert stored["price"] == 35.0
    assert stored["quantity"] == 8
    assert stored["city"] == "Satara"
    assert stored["farmer"] == farmer["_id"]


def test_restocking_sold_out_product_makes_it_available(client, db, farmer, make_product):
    product = make_product(farmer, quantity=0)

    client.put(f"/api/products/{product['_id']}", json=update_body(), headers=farmer["headers"])

    assert db["product"].find_one({"_id": product["_id"]})["isAvailable"] is True


def test_farmer_disabled_product_stays_disabled(client, db, farmer, make_product):
    product = make_product(farmer, isAvailable=False)

    client.put(f"/api/products/{product['_id']}", json=update_body(), headers=farmer["headers"])
    assert db["product"].find_one({"_id": product["_id"]})["isAvailable"] is False

    client.put(f"/api/products/{product['_id']}", json=update_body(isAvailable=True), headers=farmer["headers"])
    assert db["product"].find_one({"_id": product["_id"]})["isAvailable"] is True


def test_other_farmer_cannot_modify(client, db, farmer, make_user, make_product):
    product = make_product(farmer)
    intruder = make_user("farmer")
    url = f"/api/products/{product['_id']}"

    updated = client.put(url, json=update_body(), headers=intruder["headers"])
    deleted = client.delete(url, headers=intruder["headers"])

    assert updated.status_code == 403
    assert updated.json()["detail"] == "Not authorized to update this product"
    assert deleted.status_code == 403
    assert db["product"].find_one({"_id": product["_id"]})["price"] == 40


def test_owner_deletes_product(client, db, farmer, make_product):
    product = make_product(farmer)

    resp = client.delete(f"/api/products/{product['_id']}", headers=farmer["headers"])

    assert resp.status_code == 200
    assert db["product"].count_documents({}) == 0
    assert client.delete(f"/api/products/{product['_id']}", headers=farmer["headers"]).status_code == 404


def test_my_products_includes_sold_out(client, farmer, make_user, make_product):
    make_product(farmer, name="Tomato")
    make_product(farmer, name="Okra", quantity=0)
    make_product(make_user("farmer"), name="Garlic")

    resp = client.get("/api/products/farmer/my-products", headers=farmer["headers"])

    assert sorted(p["name"] for p in resp.json()) == ["Okra", "Tomato"]


def test_uploads_in_the_same_millisecond_keep_separate_images(client, farmer, monkeypatch):
    monkeypatch.setattr(uploads, "time", SimpleNamespace(time=lambda: 1700000000.0))
    first = {"image": ("a.png", b"first image", "image/png")}
    second = {"image": ("b.png", b"second image", "image/png")}

    images = [
        client.post("/api/products", data=FORM, files=files, headers=farmer["headers"]).json()["product"]["image"]
        for files in (first, second)
    ]

    assert images[0] != images[1]
    contents = []
    for name in images:
        with open(os.path.join(config.UPLOAD_DIR, name), "rb") as fh:
            contents.append(fh.read())
    assert contents == [b"first image", b"second image"]

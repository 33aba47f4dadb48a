"""
Seed the database with the admin account and sample produce.

    python seed.py admin
    python seed.py products
"""
import argparse
import logging
import sys

import database
from database import create_document
from schemas import Product, Role, User
from security import hash_password

logger = logging.getLogger(__name__)

ADMIN_EMAIL = "admin@agrolink.com"
ADMIN_PASSWORD = "admin123456"
FARMER_EMAIL = "farmer@agrolink.com"
FARMER_PASSWORD = "farmer123456"

SAMPLE_PRODUCTS = [
    {"name": "Fresh Tomatoes", "description": "Organic red tomatoes, freshly harvested. Perfect for salads and cooking.",
     "price": 40, "quantity": 50, "unit": "kg", "category": "vegetables", "image": "tomatoes.jpg"},
    {"name": "Alphonso Mangoes", "description": "Sweet, ripe mangoes picked at peak season.",
     "price": 600, "quantity": 20, "unit": "dozen", "category": "fruits", "image": "mangoes.jpg"},
    {"name": "Basmati Rice", "description": "Long grain aged basmati rice.",
     "price": 3500, "quantity": 5, "unit": "quintal", "category": "grains", "image": "rice.jpg"},
    {"name": "Fresh Cow Milk", "description": "Unpasteurised whole milk delivered the same morning.",
     "price": 55, "quantity": 30, "unit": "piece", "category": "dairy", "image": "milk.jpg"},
    {"name": "Farm Eggs", "description": "Free-range brown eggs.",
     "price": 90, "quantity": 40, "unit": "dozen", "category": "poultry", "image": "eggs.jpg"},
    {"name": "Coriander", "description": "Fragrant coriander bunches.",
     "price": 10, "quantity": 100, "unit": "bundle", "category": "vegetables", "image": "coriander.jpg"},
]


def create_admin(db) -> bool:
    if db["user"].find_one({"email": ADMIN_EMAIL}):
        logger.info("Admin user already exists")
        return False
    create_document(db, "user", User(
        name="Admin User",
        email=ADMIN_EMAIL,
        password_hash=hash_password(ADMIN_PASSWORD),
        role=Role.admin,
        city="Admin City",
        isApproved=True,
    ))
    logger.info("Admin user created: %s", ADMIN_EMAIL)
    return True


def create_sample_products(db) -> int:
    farmer = db["user"].find_one({"role": Role.farmer.value})
    if not farmer:
        create_document(db, "user", User(
            name="John Farmer",
            email=FARMER_EMAIL,
            password_hash=hash_password(FARMER_PASSWORD),
            role=Role.farmer,
            city="Mumbai",
            isApproved=True,
            farmDescription="Organic farm with fresh vegetables and fruits",
        ))
        farmer = db["user"].find_one({"email": FARMER_EMAIL})
        logger.info("Created sample farmer")

    if db["product"].count_documents({}) > 0:
        logger.info("Sample products already exist")
        return 0

    for fields in SAMPLE_PRODUCTS:
        create_document(db, "product", Product(farmer=farmer["_id"], city=farmer["city"], **fields))
    logger.info("Created %d sample products", len(SAMPLE_PRODUCTS))
    return len(SAMPLE_PRODUCTS)


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    parser = argparse.ArgumentParser(description="Seed the AgroLink database")
    parser.add_argument("what", choices=["admin", "products"])
    args = parser.parse_args(argv)
    if database.db is None:
        logger.error("DATABASE_URL is not set")
        return 1
    if args.what == "admin":
        create_admin(database.db)
    else:
        create_sample_products(database.db)
    return 0


if __name__ == "__main__":
    sys.exit(main())

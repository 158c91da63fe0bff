import io

import cloudinary.uploader
import mongomock
import pytest
import resend
from bson import ObjectId

from storefront import create_app

ADMIN_EMAIL = "admin@example.com"
TEST_CONFIG = {
    "TESTING": True,
    "JWT_SECRET_KEY": "test-secret-key-with-enough-length",
    "DEFAULT_ADMIN_EMAIL": ADMIN_EMAIL,
    "RESEND_API_KEY": "re_test_key",
    "OTP_SENDER_EMAIL": "Storefront <otp@example.com>",
    "CLOUDINARY_CLOUD_NAME": "demo",
    "CLOUDINARY_API_KEY": "key",
    "CLOUDINARY_API_SECRET": "secret",
}

DELHI = (28.6139, 77.2090)
MUMBAI = (19.0760, 72.8777)
BANGALORE = (12.9716, 77.5946)


@pytest.fixture
def db():
    return mongomock.MongoClient().storefront


@pytest.fixture
def app(db):
    return create_app(dict(TEST_CONFIG), database=db)


@pytest.fixture
def client(app):
    return app.test_client()


def register_and_login(client, email, password="secret123", name="Test User"):
    client.post(
        "/api/auth/register",
        json={
            "email": email,
            "name": name,
            "password": password,
            "confirm_password": password,
        },
    )
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.get_json()
    return {"Authorization": f"Bearer {response.get_json()['access_token']}"}


@pytest.fixture
def admin_headers(client):
    return register_and_login(client, ADMIN_EMAIL, name="Store Admin")


@pytest.fixture
def customer_headers(client):
    return register_and_login(client, "shopper@example.com", name="Shopper")


@pytest.fixture
def sent_emails(monkeypatch):
    outbox = []

    def fake_send(payload):
        outbox.append(payload)
        return {"id": f"email_{len(outbox)}"}

    monkeypatch.setattr(resend.Emails, "send", fake_send)
    return outbox


@pytest.fixture
def hosted_images(monkeypatch):
    calls = {"uploaded": [], "destroyed": []}

    def fake_upload(file, **options):
        calls["uploaded"].append(options)
        index = len(calls["uploaded"])
        return {
            "secure_url": f"https://res.cloudinary.com/demo/image/upload/v1/{options['folder']}/image-{index}.png",
            "public_id": f"{options['folder']}/image-{index}",
        }

    def fake_destroy(public_id, **options):
        calls["destroyed"].append(public_id)
        return {"result": "ok"}

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)
    monkeypatch.setattr(cloudinary.uploader, "destroy", fake_destroy)
    return calls


def image_upload(filename="photo.png"):
    return {"file": (io.BytesIO(b"\x89PNG fake image bytes"), filename)}


def seed_warehouse(db, name, coordinates, range_in_km=100.0, **extra):
    document = {
        "name": name,
        "address": f"{name} depot",
        "coordinates": {"lat": coordinates[0], "lng": coordinates[1]},
        "range_in_km": range_in_km,
        **extra,
    }
    document["_id"] = db.warehouses.insert_one(document).inserted_id
    return document


def seed_product(db, name, ledger=(), visibility="visible", **extra):
    document = {
        "name": name,
        "slug": name.lower().replace(" ", "-"),
        "description": f"{name} description",
        "price": 100.0,
        "visibility": visibility,
        "warehouses": [
            {"warehouse_id": warehouse_id, "stock": stock} for warehouse_id, stock in ledger
        ],
        **extra,
    }
    document["_id"] = db.products.insert_one(document).inserted_id
    return document


def missing_id():
    return str(ObjectId())

import os

# configuration is read at import time, so it has to exist before rewear loads
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("CLOUDINARY_CLOUD_NAME", "test-cloud")
os.environ.setdefault("CLOUDINARY_API_KEY", "test-key")
os.environ.setdefault("CLOUDINARY_API_SECRET", "test-secret")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")

import itertools

import cloudinary.uploader
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from rewear import razorpay_client
from rewear.database import Base, build_engine, get_db
from rewear.main import app
from rewear.models import (
    Item,
    ItemCategory,
    ItemCondition,
    ItemImage,
    ItemSize,
    ItemStatus,
    User,
    UserRole,
)
from rewear.security import create_token, hash_password

engine = build_engine("sqlite://")
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)

_counter = itertools.count(1)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _external_services(monkeypatch):
    uploads = []

    def fake_upload(file, **options):
        uploads.append(options)
        public_id = f"{options.get('folder')}/{options.get('public_id')}"
        return {
            "secure_url": f"https://res.cloudinary.com/test/{public_id}.jpg",
            "public_id": public_id,
        }

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)
    monkeypatch.setattr(cloudinary.uploader, "destroy", lambda public_id, **kw: {"result": "ok"})

    def fake_gateway_order(amount_paise, receipt, notes=None):
        return {
            "id": f"order_rzp_{next(_counter)}",
            "amount": amount_paise,
            "currency": "INR",
            "receipt": receipt,
        }

    monkeypatch.setattr(razorpay_client, "create_order", fake_gateway_order)
    return uploads


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make(name="Test User", points=0, role=UserRole.user, **fields):
        n = next(_counter)
        user = User(
            name=name,
            email=fields.pop("email", f"user{n}@example.com"),
            phone=fields.pop("phone", f"+91-90000{n:05d}"),
            password_hash=PASSWORD_HASH,
            role=role,
            points=points,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_item(db):
    def _make(seller, price=1000, status=ItemStatus.active, condition=ItemCondition.good, **fields):
        item = Item(
            title=fields.pop("title", "Denim jacket"),
            description=fields.pop("description", "A well kept denim jacket with plenty of life left."),
            category=fields.pop("category", ItemCategory.outerwear),
            brand=fields.pop("brand", "Levi's"),
            size=fields.pop("size", ItemSize.m),
            color=fields.pop("color", "Blue"),
            condition=condition,
            price=price,
            seller_id=seller.id,
            status=status,
            **fields,
        )
        item.images.append(ItemImage(url="https://img.test/1.jpg", public_id="items/1", is_primary=True))
        db.add(item)
        db.commit()
        db.refresh(item)
        return item
    return _make


@pytest.fixture
def admin_user(make_user):
    return make_user(name="Site Admin", role=UserRole.admin, email="admin@example.com")


@pytest.fixture
def auth():
    def _headers(user):
        return {"Authorization": f"Bearer {create_token(user.id, user.role.value)}"}
    return _headers

"""Pytest fixtures for storefront tests."""

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import CatalogStore, ensure_indexes, get_db
from errors import PaymentError
from payments import PaymentGateway, PaymentIntent, get_payment_gateway


class FakeGateway(PaymentGateway):
    """Stands in for Stripe; records every intent it hands out."""

    def __init__(self):
        super().__init__(secret_key="sk_test_fake")
        self.intents = []
        self.decline_with = None

    def create_intent(self, amount_cents, metadata=None):
        if self.decline_with:
            raise PaymentError(self.decline_with)
        n = len(self.intents) + 1
        intent = PaymentIntent(
            id=f"pi_test_{n}",
            client_secret=f"pi_test_{n}_secret_{'y' * 8}",
            status="requires_payment_method",
            amount=amount_cents,
            metadata=dict(metadata or {}),
        )
        self.intents.append(intent)
        return intent


@pytest.fixture
def db():
    database = mongomock.MongoClient()["shophub_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def api_client(db, gateway):
    """Test client wired to the in-memory database and fake gateway."""
    from main import app

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_product(db):
    """Insert a product straight into the catalog and return its id."""
    catalog = CatalogStore(db)

    def _make(name="Mug", price=9.99, stock=10, **extra):
        return catalog.create({"name": name, "price": price, "stock": stock, "reviews": [], "rating": 0, **extra})

    return _make


@pytest.fixture
def registered_user(api_client):
    response = api_client.post(
        "/register",
        json={"email": "ada@example.com", "password": "hunter2", "name": "Ada"},
    )
    assert response.status_code == 201
    return response.json()

from decimal import Decimal

import pytest

from ebookbot.database import ResilientStore
from ebookbot.delivery import DeliverySigner
from ebookbot.errors import PaymentTransient, SessionNotFound
from ebookbot.models import Product
from ebookbot.router import CommandRouter
from ebookbot.stripe_service import PaymentSession, SessionHandle


class FakeGateway:
    """In-memory stand-in for Stripe Checkout."""

    def __init__(self):
        self.sessions = {}
        self.created = []
        self.retrieved = []
        self.fail_create = False
        self.fail_retrieve = False

    def create_checkout_session(self, product_title, unit_amount, currency, success_url, cancel_url):
        if self.fail_create:
            raise PaymentTransient("Stripe Service Unavailable")
        session_id = f"cs_test_{len(self.created) + 1}"
        self.created.append({
            "id": session_id,
            "title": product_title,
            "unit_amount": unit_amount,
            "currency": currency,
            "success_url": success_url,
            "cancel_url": cancel_url,
        })
        self.sessions[session_id] = "unpaid"
        return SessionHandle(id=session_id, url=f"https://checkout.stripe.test/pay/{session_id}")

    def retrieve_session(self, session_id):
        self.retrieved.append(session_id)
        if self.fail_retrieve:
            raise PaymentTransient("timeout")
        if session_id not in self.sessions:
            raise SessionNotFound(session_id)
        return PaymentSession(id=session_id, status=self.sessions[session_id], checkout_url="")

    def pay(self, session_id):
        self.sessions[session_id] = "paid"


@pytest.fixture
def store(tmp_path):
    store = ResilientStore(f"sqlite:///{tmp_path / 'shop.db'}", timeout=5)
    store.create_schema()
    yield store
    store.dispose()


@pytest.fixture
def add_product(store):
    def add(title, price):
        def insert(db):
            product = Product(title=title, price=Decimal(price))
            db.add(product)
            db.flush()
            return product
        return store.execute(insert)
    return add


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def delivery():
    return DeliverySigner("http://localhost:8000", "delivery-test-secret")


@pytest.fixture
def router(store, gateway, delivery):
    return CommandRouter(
        store=store,
        gateway=gateway,
        delivery=delivery,
        success_url="http://localhost:8000/success?session_id={CHECKOUT_SESSION_ID}",
        cancel_url="http://localhost:8000/cancel",
    )

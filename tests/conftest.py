import os

# settings are read at import time
os.environ["ENV"] = "dev"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./.pytest-storefront.db"
os.environ["ORDER_NOTIFY_TO"] = "orders@isellcomics.test"
os.environ["CURRENCY"] = "CAD"
os.environ["CHECKOUT_SUCCESS_URL"] = "https://shop.test/checkout/success?order={order_id}"
os.environ["CHECKOUT_CANCEL_URL"] = "https://shop.test/checkout/cancel?order={order_id}"

from decimal import Decimal
import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from sqlmodel import SQLModel, select
from storefront.db.connection import make_engine, make_session_factory
from storefront.db.dependencies import get_session
from storefront.main import create_app
from storefront.payments.provider import HostedSession
from storefront.schema.full_schema import Comic

url_prefix = "/api/v1"


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.error = None

    async def send(self, to, subject, text):
        if self.error:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "text": text})

    async def aclose(self):
        pass


class FakePaymentClient:
    name = "stripe"

    def __init__(self):
        self.calls = []
        self.error = None

    async def create_session(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        n = len(self.calls)
        return HostedSession(session_id=f"cs_test_{n}", redirect_url=f"https://checkout.stripe.test/c/pay/cs_test_{n}")

    async def aclose(self):
        pass


@pytest.fixture
async def db_engine(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_session_factory(db_engine)


@pytest.fixture
def fake_mailer():
    return FakeMailer()


@pytest.fixture
def fake_payment_client():
    return FakePaymentClient()


@pytest.fixture
def app(session_factory, fake_mailer, fake_payment_client):
    app = create_app(mailer=fake_mailer, payment_client=fake_payment_client)

    async def _session_override():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    return app


@pytest.fixture
async def ac_client(app):
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac


@pytest.fixture
def seed_comics(session_factory):
    """Insert comics and return their ids, in order."""
    async def _seed(*comics):
        async with session_factory() as session:
            rows = [Comic(**c) for c in comics]
            session.add_all(rows)
            await session.commit()
            return [r.id for r in rows]
    return _seed


@pytest.fixture
def fetch_rows(session_factory):
    async def _fetch(model, *where):
        async with session_factory() as session:
            res = await session.execute(select(model).where(*where))
            return res.scalars().all()
    return _fetch


@pytest.fixture
async def catalog(seed_comics):
    """Item A at 50.00 and item B at 10.00."""
    a_id, b_id = await seed_comics(
        {"title": "Amazing Spider-Man", "issue": "300", "publisher": "Marvel", "price": Decimal("50.00"), "image": "asm300.jpg"},
        {"title": "Saga", "issue": "1", "publisher": "Image", "price": Decimal("10.00"), "image": "saga1.jpg"},
    )
    return {"A": a_id, "B": b_id}


@pytest.fixture
def add_to_cart(ac_client):
    async def _add(session_token, item_id, times=1):
        resp = None
        for _ in range(times):
            resp = await ac_client.post(f"{url_prefix}/cart/items", json={"sessionToken": session_token, "itemId": item_id})
            assert resp.status_code == 200, resp.text
        return resp
    return _add


def make_customer(**overrides):
    customer = {
        "name": "Peter Parker",
        "email": "peter@dailybugle.test",
        "address": "20 Ingram St, Toronto ON",
        "paymentMethod": "e-transfer",
        "pickup": False,
        "country": "CA",
    }
    customer.update(overrides)
    return customer


@pytest.fixture
def customer():
    return make_customer

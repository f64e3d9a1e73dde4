import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete
from sqlalchemy.exc import OperationalError
from storefront.orders import services as order_services
from storefront.schema.full_schema import Cart, CartItem, OrderItem, Orders

url_prefix = "/api/v1"


@pytest.mark.asyncio
async def test_failed_item_write_leaves_no_partial_order(ac_client, catalog, add_to_cart, customer, fetch_rows, monkeypatch):
    """Order row flushed, line items fail: the whole unit is rolled back."""
    await add_to_cart("sess-f1", catalog["A"])

    async def broken_create_order(session, order_fields, line_items):
        session.add(Orders(**order_fields))
        await session.flush()
        raise OperationalError("INSERT INTO order_items", {}, Exception("disk I/O error"))

    monkeypatch.setattr(order_services, "create_order", broken_create_order)

    resp = await ac_client.post(f"{url_prefix}/checkout/manual", json={"sessionToken": "sess-f1", "customer": customer()})
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["code"] == "PERSISTENCE_FAILURE"

    assert await fetch_rows(Orders) == []
    assert await fetch_rows(OrderItem) == []
    assert len(await fetch_rows(CartItem)) == 1


@pytest.mark.asyncio
async def test_cart_clear_failure_keeps_order(ac_client, app, catalog, add_to_cart, customer, fetch_rows, monkeypatch, fake_mailer):
    await add_to_cart("sess-f2", catalog["A"])
    await add_to_cart("sess-f2", catalog["B"])

    async def failing_clear(session, session_token):
        await session.execute(delete(CartItem))
        raise OperationalError("DELETE FROM carts", {}, Exception("database is locked"))

    monkeypatch.setattr(order_services, "clear_cart", failing_clear)

    resp = await ac_client.post(f"{url_prefix}/checkout/manual", json={"sessionToken": "sess-f2", "customer": customer()})
    assert resp.status_code == 200, resp.text

    orders = await fetch_rows(Orders)
    assert len(orders) == 1
    assert len(await fetch_rows(OrderItem, OrderItem.order_id == orders[0].id)) == 2

    # partial delete inside the savepoint was undone
    assert len(await fetch_rows(Cart)) == 1
    assert len(await fetch_rows(CartItem)) == 2

    await app.state.notification_worker.queue.join()
    assert len(fake_mailer.sent) == 2


@pytest.mark.asyncio
async def test_unhandled_error_uses_server_error_envelope(ac_client, app, catalog, add_to_cart, customer, monkeypatch):
    await add_to_cart("sess-f3", catalog["A"])

    def boom(*args, **kwargs):
        raise KeyError("unit_price")

    monkeypatch.setattr(order_services, "build_line_items", boom)

    # the server error middleware re-raises after responding; keep it inside the app
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.post(f"{url_prefix}/checkout/manual", json={"sessionToken": "sess-f3", "customer": customer()})
    assert resp.status_code == 500
    body = resp.json()
    assert body["status"] == "error"
    assert body["error"]["code"] == "SERVER_ERROR"


@pytest.mark.asyncio
async def test_malformed_body_is_unprocessable(ac_client):
    resp = await ac_client.post(f"{url_prefix}/checkout/manual", json={"sessionToken": "s", "customer": {"pickup": "maybe"}})
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "UNPROCESSABLE_ENTITY"

import pytest
from storefront.common.custom_exceptions import PaymentProviderFailure
from storefront.schema.full_schema import CartItem, Orders

url_prefix = "/api/v1"


def hosted_customer(customer, **overrides):
    c = customer(**overrides)
    c.pop("paymentMethod")
    return c


@pytest.mark.asyncio
async def test_hosted_checkout_returns_redirect_and_keeps_cart(ac_client, app, catalog, add_to_cart, customer,
                                                               fake_payment_client, fake_mailer, fetch_rows):
    await add_to_cart("sess-h1", catalog["A"], times=2)
    await add_to_cart("sess-h1", catalog["B"])

    resp = await ac_client.post(f"{url_prefix}/checkout/hosted-session",
                                json={"sessionToken": "sess-h1", "customer": hosted_customer(customer)})
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["redirectUrl"] == "https://checkout.stripe.test/c/pay/cs_test_1"

    orders = await fetch_rows(Orders)
    assert len(orders) == 1
    order = orders[0]
    assert data["orderId"] == str(order.public_id)
    assert order.status == "pending_payment"
    assert order.payment_method == "stripe"

    # cart untouched until payment is confirmed elsewhere
    rows = await fetch_rows(CartItem)
    assert sorted((r.item_id, r.quantity) for r in rows) == sorted([(catalog["A"], 2), (catalog["B"], 1)])

    # no notification on the hosted path
    await app.state.notification_worker.queue.join()
    assert fake_mailer.sent == []

    call = fake_payment_client.calls[0]
    assert call["client_reference_id"] == str(order.public_id)
    assert call["success_url"] == f"https://shop.test/checkout/success?order={order.public_id}"
    assert call["cancel_url"] == f"https://shop.test/checkout/cancel?order={order.public_id}"
    assert call["currency"] == "CAD"
    assert call["line_items"] == [
        {"name": "Amazing Spider-Man #300", "unit_amount": 5000, "quantity": 2},
        {"name": "Saga #1", "unit_amount": 1000, "quantity": 1},
    ]


@pytest.mark.asyncio
async def test_hosted_line_items_include_shipping_when_charged(ac_client, catalog, add_to_cart, customer, fake_payment_client):
    await add_to_cart("sess-h2", catalog["B"])

    resp = await ac_client.post(f"{url_prefix}/checkout/hosted-session",
                                json={"sessionToken": "sess-h2", "customer": hosted_customer(customer, country="US")})
    assert resp.status_code == 200, resp.text

    assert fake_payment_client.calls[0]["line_items"] == [
        {"name": "Saga #1", "unit_amount": 1000, "quantity": 1},
        {"name": "Shipping", "unit_amount": 3000, "quantity": 1},
    ]


@pytest.mark.asyncio
async def test_hosted_checkout_does_not_need_payment_method(ac_client, catalog, add_to_cart, customer):
    await add_to_cart("sess-h3", catalog["B"])
    body = {"sessionToken": "sess-h3", "customer": hosted_customer(customer, name="")}

    resp = await ac_client.post(f"{url_prefix}/checkout/hosted-session", json=body)
    assert resp.status_code == 400
    assert "paymentMethod" not in resp.json()["error"]["details"]["message"]
    assert "name" in resp.json()["error"]["details"]["message"]


@pytest.mark.asyncio
async def test_provider_failure_leaves_pending_payment_order(ac_client, catalog, add_to_cart, customer,
                                                             fake_payment_client, fetch_rows):
    fake_payment_client.error = PaymentProviderFailure("payment provider timed out")
    await add_to_cart("sess-h4", catalog["A"])

    resp = await ac_client.post(f"{url_prefix}/checkout/hosted-session",
                                json={"sessionToken": "sess-h4", "customer": hosted_customer(customer)})
    assert resp.status_code == 502
    assert resp.json()["error"]["code"] == "PAYMENT_PROVIDER_FAILURE"

    orders = await fetch_rows(Orders)
    assert [o.status for o in orders] == ["pending_payment"]
    assert len(await fetch_rows(CartItem)) == 1


@pytest.mark.asyncio
async def test_unexpected_provider_error_is_wrapped(ac_client, catalog, add_to_cart, customer, fake_payment_client):
    fake_payment_client.error = RuntimeError("socket exploded")
    await add_to_cart("sess-h5", catalog["A"])

    resp = await ac_client.post(f"{url_prefix}/checkout/hosted-session",
                                json={"sessionToken": "sess-h5", "customer": hosted_customer(customer)})
    assert resp.status_code == 502
    assert resp.json()["error"]["code"] == "PAYMENT_PROVIDER_FAILURE"


@pytest.mark.asyncio
async def test_hosted_empty_cart(ac_client, catalog, customer, fake_payment_client, fetch_rows):
    resp = await ac_client.post(f"{url_prefix}/checkout/hosted-session",
                                json={"sessionToken": "sess-h6", "customer": hosted_customer(customer)})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "EMPTY_CART"
    assert fake_payment_client.calls == []
    assert await fetch_rows(Orders) == []


@pytest.mark.asyncio
async def test_failed_redirect_can_be_retried_for_the_same_order(ac_client, catalog, add_to_cart, customer,
                                                                 fake_payment_client, fetch_rows):
    fake_payment_client.error = PaymentProviderFailure("payment provider timed out")
    await add_to_cart("sess-r1", catalog["A"], times=2)

    resp = await ac_client.post(f"{url_prefix}/checkout/hosted-session",
                                json={"sessionToken": "sess-r1", "customer": hosted_customer(customer)})
    assert resp.status_code == 502
    order_id = resp.json()["error"]["details"]["orderId"]

    orders = await fetch_rows(Orders)
    assert [str(o.public_id) for o in orders] == [order_id]

    # provider is back: only the redirect is requested again
    fake_payment_client.error = None
    resp = await ac_client.post(f"{url_prefix}/orders/{order_id}/hosted-session", headers={"Session-Id": "sess-r1"})
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data == {"orderId": order_id, "redirectUrl": "https://checkout.stripe.test/c/pay/cs_test_2"}

    retry_call = fake_payment_client.calls[-1]
    assert retry_call["client_reference_id"] == order_id
    assert retry_call["line_items"] == [{"name": "Amazing Spider-Man #300", "unit_amount": 5000, "quantity": 2}]

    orders = await fetch_rows(Orders)
    assert [o.status for o in orders] == ["pending_payment"]
    assert len(await fetch_rows(CartItem)) == 1


@pytest.mark.asyncio
async def test_unexpected_provider_error_also_reports_order(ac_client, catalog, add_to_cart, customer, fake_payment_client):
    fake_payment_client.error = RuntimeError("socket exploded")
    await add_to_cart("sess-r2", catalog["B"])

    resp = await ac_client.post(f"{url_prefix}/checkout/hosted-session",
                                json={"sessionToken": "sess-r2", "customer": hosted_customer(customer)})
    assert resp.status_code == 502
    assert resp.json()["error"]["details"]["orderId"]


@pytest.mark.asyncio
async def test_redirect_retry_is_scoped_to_session_and_hosted_orders(ac_client, catalog, add_to_cart, customer,
                                                                    fake_payment_client):
    fake_payment_client.error = PaymentProviderFailure("payment provider unreachable")
    await add_to_cart("sess-r3", catalog["A"])
    resp = await ac_client.post(f"{url_prefix}/checkout/hosted-session",
                                json={"sessionToken": "sess-r3", "customer": hosted_customer(customer)})
    hosted_id = resp.json()["error"]["details"]["orderId"]
    fake_payment_client.error = None

    resp = await ac_client.post(f"{url_prefix}/orders/{hosted_id}/hosted-session", headers={"Session-Id": "someone-else"})
    assert resp.status_code == 404

    resp = await ac_client.post(f"{url_prefix}/orders/{hosted_id}/hosted-session")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_REQUEST"

    await add_to_cart("sess-r4", catalog["B"])
    manual = await ac_client.post(f"{url_prefix}/checkout/manual", json={"sessionToken": "sess-r4", "customer": customer()})
    manual_id = manual.json()["data"]["orderId"]

    resp = await ac_client.post(f"{url_prefix}/orders/{manual_id}/hosted-session", headers={"Session-Id": "sess-r4"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_REQUEST"
    assert len(fake_payment_client.calls) == 1

import json
import logging
from storefront.common import logging_setup
from storefront.common.constants import request_id_ctx
from storefront.common.logging_setup import DevFormatter, JSONFormatter, mask_value, sanitize_message_text


def make_record(msg, **extra):
    record = logging.LogRecord("storefront.test", logging.INFO, __file__, 1, msg, (), None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_mask_value():
    assert mask_value("email", "peter@dailybugle.test") == "p***@dailybugle.test"
    assert mask_value("order_id", "0192f0c4-aaaa-7bbb-8ccc-000000000001") == "0192f0...0001"
    assert mask_value("session_token", "abc") == "abc..."


def test_sanitize_message_text():
    out = sanitize_message_text('calling provider with api_key=sk_live_123 and {"secret": "hush"}')
    assert "sk_live_123" not in out
    assert "hush" not in out
    assert "[REDACTED]" in out


def test_json_formatter_masks_customer_fields_outside_dev(monkeypatch):
    monkeypatch.setattr(logging_setup, "ENV", "prod")
    token = request_id_ctx.set("req-42")
    try:
        line = JSONFormatter().format(make_record("checkout.manual.created",
                                                  email="peter@dailybugle.test", session_token="sess-abcdefghijklmnop",
                                                  attempt=2))
    finally:
        request_id_ctx.reset(token)

    data = json.loads(line)
    assert data["message"] == "checkout.manual.created"
    assert data["request_id"] == "req-42"
    assert data["env"] == "prod"
    assert data["email"] == "p***@dailybugle.test"
    assert data["session_token"] == "sess-a...mnop"
    assert data["attempt"] == 2


def test_json_formatter_keeps_values_in_dev(monkeypatch):
    monkeypatch.setattr(logging_setup, "ENV", "dev")
    data = json.loads(JSONFormatter().format(make_record("cart.item.added", email="peter@dailybugle.test")))
    assert data["email"] == "peter@dailybugle.test"


def test_dev_formatter_appends_extras():
    line = DevFormatter().format(make_record("cart.clear.failed", order_id="abc"))
    assert "cart.clear.failed" in line
    assert line.endswith("order_id=abc")

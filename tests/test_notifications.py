import asyncio
import json
import logging
from decimal import Decimal
import httpx
import pytest
from storefront.background_workers.base_worker import NotificationWorker
from storefront.notifications.mailer import LogMailer, SendGridMailer
from storefront.notifications.services import OrderNotifier, format_line, order_mail_body

ORDER = {
    "order_id": "0192f0c4-aaaa-7bbb-8ccc-000000000001",
    "name": "Mary Jane",
    "email": "mj@dailybugle.test",
    "address": "20 Ingram St",
    "payment_method": "cash",
    "pickup": True,
    "subtotal": Decimal("20.00"),
    "shipping": Decimal("0.00"),
    "total": Decimal("20.00"),
    "currency": "CAD",
}
ITEMS = [
    {"title": "Saga", "issue": "1", "qty": 2, "unit_price": Decimal("10.00"), "line_total": Decimal("20.00")},
]


class RecordingMailer:
    def __init__(self, fail_for=(), delay=0):
        self.sent = []
        self.fail_for = set(fail_for)
        self.delay = delay

    async def send(self, to, subject, text):
        if self.delay:
            await asyncio.sleep(self.delay)
        if to in self.fail_for:
            raise RuntimeError(f"rejected {to}")
        self.sent.append({"to": to, "subject": subject, "text": text})


def test_mail_body_lists_items_and_totals():
    assert format_line(ITEMS[0], "CAD") == "- Saga #1 x2 @ 10.00 CAD = 20.00"

    body = order_mail_body(ORDER, ITEMS, "New order received from Mary Jane")
    assert body.startswith("New order received from Mary Jane")
    assert "Pickup: Yes" in body
    assert "Payment Method: cash" in body
    assert "Shipping: 0.00 CAD" in body
    assert body.endswith("Total: 20.00 CAD")


@pytest.mark.asyncio
async def test_sendgrid_mailer_posts_payload():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(202, headers={"X-Message-Id": "msg-1"})

    mailer = SendGridMailer("SG.key", "shop@isellcomics.test", base_url="https://sendgrid.test/v3",
                            transport=httpx.MockTransport(handler))
    message_id = await mailer.send("mj@dailybugle.test", "Hello", "Body text")
    await mailer.aclose()

    assert message_id == "msg-1"
    request = seen[0]
    assert str(request.url) == "https://sendgrid.test/v3/mail/send"
    assert request.headers["Authorization"] == "Bearer SG.key"
    payload = json.loads(request.content)
    assert payload["personalizations"] == [{"to": [{"email": "mj@dailybugle.test"}]}]
    assert payload["from"] == {"email": "shop@isellcomics.test"}
    assert payload["content"][0] == {"type": "text/plain", "value": "Body text"}


@pytest.mark.asyncio
async def test_sendgrid_mailer_raises_on_rejection():
    mailer = SendGridMailer("SG.key", "shop@isellcomics.test",
                            transport=httpx.MockTransport(lambda request: httpx.Response(401)))
    with pytest.raises(httpx.HTTPStatusError):
        await mailer.send("mj@dailybugle.test", "Hello", "Body")


@pytest.mark.asyncio
async def test_notifier_sends_admin_then_customer():
    mailer = RecordingMailer()
    notifier = OrderNotifier(mailer, admin_to="orders@isellcomics.test")

    sent = await notifier.notify_order_placed(ORDER, ITEMS)

    assert sent == 2
    assert [m["to"] for m in mailer.sent] == ["orders@isellcomics.test", "mj@dailybugle.test"]
    assert mailer.sent[0]["subject"] == f"New iSellComics order {ORDER['order_id']} - Mary Jane"


@pytest.mark.asyncio
async def test_notifier_skips_admin_when_unconfigured():
    mailer = RecordingMailer()
    sent = await OrderNotifier(mailer, admin_to=None).notify_order_placed(ORDER, ITEMS)
    assert sent == 1
    assert [m["to"] for m in mailer.sent] == ["mj@dailybugle.test"]


@pytest.mark.asyncio
async def test_one_failed_send_does_not_stop_the_other():
    mailer = RecordingMailer(fail_for={"orders@isellcomics.test"})
    sent = await OrderNotifier(mailer, admin_to="orders@isellcomics.test").notify_order_placed(ORDER, ITEMS)
    assert sent == 1
    assert [m["to"] for m in mailer.sent] == ["mj@dailybugle.test"]


@pytest.mark.asyncio
async def test_slow_mailer_is_bounded_by_timeout():
    mailer = RecordingMailer(delay=1)
    notifier = OrderNotifier(mailer, admin_to="orders@isellcomics.test", timeout=0.05)
    sent = await notifier.notify_order_placed(ORDER, ITEMS)
    assert sent == 0
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_worker_delivers_and_survives_handler_errors():
    mailer = RecordingMailer()
    worker = NotificationWorker(OrderNotifier(mailer, admin_to="orders@isellcomics.test"), workers_count=1)
    await worker()

    # malformed job: the handler raises, the loop keeps going
    assert worker.submit({"event": "order_placed", "data": {}})
    assert worker.submit({"event": "order_placed", "data": {"order": ORDER, "items": ITEMS}})
    await asyncio.wait_for(worker.queue.join(), timeout=5)

    assert len(mailer.sent) == 2
    assert worker.processed == 1

    await worker.shutdown(drain_timeout=1, wait_timeout=1)
    assert worker.worker_loops == {}


def test_submit_reports_full_queue():
    worker = NotificationWorker(OrderNotifier(RecordingMailer()), workers_count=1, max_queue_size=1)
    assert worker.submit({"event": "order_placed", "data": {}}) is True
    assert worker.submit({"event": "order_placed", "data": {}}) is False


@pytest.mark.asyncio
async def test_log_mailer_keeps_contact_details_out_of_logs(caplog):
    caplog.set_level(logging.INFO, logger="storefront.notifications")
    body = order_mail_body(ORDER, ITEMS, "Thanks for your order, Mary Jane!")

    await LogMailer().send("mj@dailybugle.test", "Your iSellComics order", body)

    record = next(r for r in caplog.records if r.getMessage() == "mail.logged")
    assert record.to == "m***@dailybugle.test"
    assert record.body_chars == len(body)
    assert not hasattr(record, "body")
    assert "20 Ingram St" not in str(record.__dict__)

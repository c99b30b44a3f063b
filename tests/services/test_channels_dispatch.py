"""
Tests for delivery channels, the delivery queues and email templates.

Covers:
- SMTP transport success and failure without raising
- In-process push subscriptions, offline users and failing subscribers
- Job isolation in both queues and LogContext propagation to workers
- The per-unit-of-work outbox: hold, release in order, discard
- Template subjects, bodies and HTML escaping
"""

import threading
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from procurement_config import SmtpConfig
from procurement_kernel.domain.dtos import DeliveryResult, EmailMessage
from procurement_kernel.logging_config import LogContext
from procurement_services.channels import (
    DisabledEmailChannel,
    InProcessPushChannel,
    SmtpEmailChannel,
)
from procurement_services.dispatch import (
    DeliveryJob,
    DeliveryOutbox,
    EmailJob,
    InlineDeliveryQueue,
    PushJob,
    ThreadPoolDeliveryQueue,
)
from procurement_services.email_templates import EmailTemplates, short_id

MESSAGE = EmailMessage(
    to="bob@example.com",
    subject="Approval Required: Request #12345678",
    html="<p>hi</p>",
    text="hi",
)


class FakeSMTP:
    """Records the calls SmtpEmailChannel makes on an smtplib.SMTP."""

    instances: list["FakeSMTP"] = []

    def __init__(self, host, port, timeout=None, fail_on=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.fail_on = fail_on
        self.calls: list[str] = []
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def _call(self, name):
        self.calls.append(name)
        if self.fail_on == name:
            raise OSError(f"{name} refused")

    def starttls(self):
        self._call("starttls")

    def login(self, username, password):
        self._call("login")

    def send_message(self, message):
        self._call("send_message")
        self.sent.append(message)


def _factory(fail_on=None):
    FakeSMTP.instances = []

    def make(host, port, timeout=None):
        return FakeSMTP(host, port, timeout=timeout, fail_on=fail_on)

    return make


class TestSmtpEmailChannel:

    def test_sends_multipart_message(self):
        config = SmtpConfig(host="mail.example", port=2525, username="u", password="p")
        channel = SmtpEmailChannel(config, smtp_factory=_factory())

        result = channel.send(MESSAGE)

        assert result == DeliveryResult(sent=True)
        smtp = FakeSMTP.instances[0]
        assert (smtp.host, smtp.port) == ("mail.example", 2525)
        assert smtp.calls == ["starttls", "login", "send_message"]
        mime = smtp.sent[0]
        assert mime["To"] == "bob@example.com"
        assert mime["From"] == "noreply@procurement.local"
        assert mime["Subject"] == MESSAGE.subject
        assert mime.is_multipart()

    def test_no_tls_no_credentials(self):
        channel = SmtpEmailChannel(SmtpConfig(use_tls=False), smtp_factory=_factory())

        channel.send(MESSAGE)

        assert FakeSMTP.instances[0].calls == ["send_message"]

    def test_failure_returns_result(self, captured_logs):
        channel = SmtpEmailChannel(
            SmtpConfig(username="u", password="p"), smtp_factory=_factory("login")
        )

        result = channel.send(MESSAGE)

        assert result.sent is False
        assert result.error == "login refused"
        failures = [r for r in captured_logs() if r["message"] == "email_send_failed"]
        assert failures[0]["to"] == "bob@example.com"

    def test_disabled_channel(self):
        result = DisabledEmailChannel().send(MESSAGE)

        assert result == DeliveryResult(sent=False, error="email disabled")


class TestInProcessPushChannel:

    def test_publish_reaches_subscribers(self):
        channel = InProcessPushChannel()
        received = []
        channel.subscribe("u1", received.append)

        channel.publish("u1", {"title": "Budget Warning"})

        assert received == [{"title": "Budget Warning"}]
        assert channel.is_connected("u1") is True

    def test_offline_user_is_noop(self):
        channel = InProcessPushChannel()

        channel.publish("nobody", {"title": "x"})

        assert channel.is_connected("nobody") is False

    def test_unsubscribe(self):
        channel = InProcessPushChannel()
        received = []
        unsubscribe = channel.subscribe("u1", received.append)

        unsubscribe()
        channel.publish("u1", {"title": "x"})

        assert received == []
        assert channel.is_connected("u1") is False

    def test_uuid_and_str_keys_match(self):
        channel = InProcessPushChannel()
        uid = uuid4()
        received = []
        channel.subscribe(uid, received.append)

        channel.publish(str(uid), {"n": 1})

        assert received == [{"n": 1}]

    def test_failing_subscriber_does_not_stop_others(self, captured_logs):
        channel = InProcessPushChannel()
        received = []

        def broken(payload):
            raise RuntimeError("socket closed")

        channel.subscribe("u1", broken)
        channel.subscribe("u1", received.append)

        channel.publish("u1", {"n": 1})

        assert received == [{"n": 1}]
        assert any(r["message"] == "push_subscriber_failed" for r in captured_logs())


class _ExplodingJob(DeliveryJob):
    kind = "exploding"

    def run(self):
        raise RuntimeError("boom")


class _RecordContextJob(DeliveryJob):
    def __init__(self, sink, done):
        self.sink = sink
        self.done = done

    def run(self):
        self.sink.append(LogContext.get_all())
        self.done.set()


class TestDeliveryQueues:

    def test_inline_isolates_failures(self, captured_logs):
        channel = InProcessPushChannel()
        received = []
        channel.subscribe("u1", received.append)
        queue = InlineDeliveryQueue()

        queue.submit(_ExplodingJob())
        queue.submit(PushJob(channel, "u1", {"n": 1}))

        assert received == [{"n": 1}]
        failures = [r for r in captured_logs() if r["message"] == "delivery_job_failed"]
        assert failures[0]["job_kind"] == "exploding"

    def test_undelivered_email_is_logged(self, captured_logs):
        InlineDeliveryQueue().submit(EmailJob(DisabledEmailChannel(), MESSAGE, user_id="u1"))

        logged = [r for r in captured_logs() if r["message"] == "email_not_delivered"]
        assert logged[0]["user_id"] == "u1"
        assert logged[0]["error"] == "email disabled"

    def test_thread_pool_drains_on_shutdown(self):
        channel = InProcessPushChannel()
        received = []
        lock = threading.Lock()

        def record(payload):
            with lock:
                received.append(payload["n"])

        channel.subscribe("u1", record)
        queue = ThreadPoolDeliveryQueue(max_workers=2)

        queue.submit(_ExplodingJob())
        for n in range(10):
            queue.submit(PushJob(channel, "u1", {"n": n}))
        queue.shutdown(wait=True)

        assert sorted(received) == list(range(10))

    def test_thread_pool_carries_log_context(self):
        queue = ThreadPoolDeliveryQueue(max_workers=1)
        sink, done = [], threading.Event()

        with LogContext.bind(trigger="approve", request_id="r-1"):
            queue.submit(_RecordContextJob(sink, done))
        done.wait(timeout=5)
        queue.shutdown()

        assert sink == [{"request_id": "r-1", "trigger": "approve"}]


    def test_thread_pool_submit_returns_nothing(self):
        queue = ThreadPoolDeliveryQueue(max_workers=1)
        channel = InProcessPushChannel()

        assert queue.submit(PushJob(channel, "u1", {"n": 1})) is None
        queue.shutdown()


class TestDeliveryOutbox:

    def test_holds_jobs_until_released(self):
        channel = InProcessPushChannel()
        received = []
        channel.subscribe("u1", received.append)
        outbox = DeliveryOutbox()

        outbox.submit(PushJob(channel, "u1", {"n": 1}))
        outbox.submit(PushJob(channel, "u1", {"n": 2}))

        assert received == []
        assert len(outbox.pending) == 2

        assert outbox.release(InlineDeliveryQueue()) == 2
        assert received == [{"n": 1}, {"n": 2}]
        assert outbox.pending == ()

    def test_release_is_one_shot(self):
        channel = InProcessPushChannel()
        received = []
        channel.subscribe("u1", received.append)
        outbox = DeliveryOutbox()
        outbox.submit(PushJob(channel, "u1", {"n": 1}))

        outbox.release(InlineDeliveryQueue())
        assert outbox.release(InlineDeliveryQueue()) == 0

        assert received == [{"n": 1}]

    def test_discard_drops_everything(self, captured_logs):
        channel = InProcessPushChannel()
        received = []
        channel.subscribe("u1", received.append)
        outbox = DeliveryOutbox()
        outbox.submit(PushJob(channel, "u1", {"n": 1}))
        outbox.submit(EmailJob(DisabledEmailChannel(), MESSAGE))

        assert outbox.discard() == 2
        outbox.release(InlineDeliveryQueue())

        assert received == []
        discarded = [r for r in captured_logs() if r["message"] == "deliveries_discarded"]
        assert discarded[0]["job_count"] == 2


class TestEmailTemplates:

    templates = EmailTemplates("https://buy.example.com/")

    def test_approval_request(self):
        rid = uuid4()

        mail = self.templates.approval_request(
            "bob@example.com", "Bob", "Alice", rid, Decimal("1200.5")
        )

        assert mail.subject == f"Approval Required: Request #{short_id(rid)}"
        assert "Alice has submitted a new purchase request" in mail.text
        assert "Amount: £1,200.50" in mail.text
        assert f'href="https://buy.example.com/requests/{rid}"' in mail.html

    def test_new_request(self):
        rid = uuid4()

        mail = self.templates.new_request("dana@example.com", "Dana", "Alice", rid, Decimal("80"))

        assert mail.subject == f"New Purchase Request: #{short_id(rid)}"
        assert "Hello Dana" in mail.text

    def test_rejection_with_and_without_reason(self):
        rid = uuid4()

        with_reason = self.templates.rejection("a@example.com", "Alice", rid, Decimal("10"), "Too much")
        without = self.templates.rejection("a@example.com", "Alice", rid, Decimal("10"))

        assert with_reason.subject == f"Request Rejected: #{short_id(rid)}"
        assert "Reason: Too much" in with_reason.text
        assert "Reason" not in without.text

    def test_supplier_email(self):
        rid = uuid4()

        mail = self.templates.supplier_purchase_request(
            "orders@acme.example",
            "Acme",
            "Alice",
            "alice@example.com",
            rid,
            Decimal("8500"),
            datetime(2024, 3, 5, tzinfo=timezone.utc),
        )

        assert mail.subject == f"New Purchase Request #{short_id(rid)} - £8,500"
        assert "Date: 05/03/2024" in mail.text
        assert "Requester: Alice (alice@example.com)" in mail.text
        assert mail.text.endswith("Reply to: alice@example.com\n")

    def test_user_values_escaped_in_html(self):
        mail = self.templates.rejection(
            "a@example.com", "<b>Alice</b>", uuid4(), Decimal("1"), "<script>x</script>"
        )

        assert "<script>" not in mail.html
        assert "&lt;script&gt;" in mail.html
        assert "&lt;b&gt;Alice&lt;/b&gt;" in mail.html
        # plain text is not escaped
        assert "<b>Alice</b>" in mail.text

    def test_currency_symbol(self):
        templates = EmailTemplates("http://localhost:3000", currency_symbol="$")

        assert templates.money(Decimal("10000")) == "$10,000"
        assert templates.manage_url("abc") == "http://localhost:3000/requests/abc"

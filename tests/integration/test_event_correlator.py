"""Integration tests for the lifecycle event log."""

from decimal import Decimal

import pytest

from ecommerce.dal.events_db import EventsDbHandler
from ecommerce.logic.event_correlator import EventCorrelator
from ecommerce.models.events import EventType, OrderEvent, OrderEventEnvelope, ProductEvent
from ecommerce.models.invoice import InvoiceRecord
from ecommerce.models.order import Billing, PaymentMethod, Shipping

from conftest import EVENTS_TABLE


class Clock:
    def __init__(self, now: float = 1700000000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _envelope(event_type: EventType, email: str = "a@b.com", order_id: str = "o1") -> OrderEventEnvelope:
    return OrderEventEnvelope.wrap(event_type, OrderEvent(
        email=email,
        order_id=order_id,
        billing=Billing(payment=PaymentMethod.CASH, total_price=Decimal("25")),
        shipping=Shipping(type="URGENT", carrier="FEDEX"),
        request_id="req-1",
        product_codes=["COD1", "COD2"],
    ))


def _product_event(event_type: EventType = EventType.PRODUCT_CREATED) -> ProductEvent:
    return ProductEvent(
        request_id="req-9",
        event_type=event_type,
        product_id="p1",
        product_code="COD1",
        product_price=Decimal("10.5"),
        email="a@b.com",
    )


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def correlator(events_table, clock):
    return EventCorrelator(EventsDbHandler(EVENTS_TABLE), ttl_minutes=120, invoice_ttl_minutes=60, clock=clock)


@pytest.mark.integration
class TestEventCorrelator:
    """Integration tests for EventCorrelator."""

    def test_order_event_entry(self, correlator, events_table):
        """Test the stored shape of an order event."""
        entry = correlator.record_order_event(_envelope(EventType.ORDER_CREATED), message_id="m1")

        item = events_table.get_item(Key={"pk": "#order_o1", "sk": entry.sk})["Item"]
        assert item["sk"] == "ORDER_CREATED#1700000000000"
        assert item["email"] == "a@b.com"
        assert item["requestId"] == "req-1"
        assert item["ttl"] == 1700000000 + 120 * 60
        assert item["info"]["productCodes"] == ["COD1", "COD2"]

    def test_query_returns_only_prefix_for_customer_in_order(self, correlator, clock):
        """Test prefix filtering, customer isolation and ascending order."""
        correlator.record_order_event(_envelope(EventType.ORDER_CREATED, order_id="o1"), "m1")
        clock.now += 1
        correlator.record_product_event(_product_event())
        clock.now += 1
        correlator.record_order_event(_envelope(EventType.ORDER_CREATED, order_id="o2"), "m2")
        clock.now += 1
        correlator.record_order_event(_envelope(EventType.ORDER_DELETED, order_id="o1"), "m3")
        correlator.record_order_event(_envelope(EventType.ORDER_CREATED, email="x@y.com", order_id="o3"), "m4")

        events = correlator.query_by_customer("a@b.com", "ORDER_")

        assert [(event.event_type, event.order_id) for event in events] == [
            ("ORDER_CREATED", "o1"),
            ("ORDER_CREATED", "o2"),
            ("ORDER_DELETED", "o1"),
        ]
        assert all(event.email == "a@b.com" for event in events)

    def test_query_by_exact_event_type(self, correlator, clock):
        correlator.record_order_event(_envelope(EventType.ORDER_CREATED), "m1")
        clock.now += 1
        correlator.record_order_event(_envelope(EventType.ORDER_DELETED), "m2")

        events = correlator.query_by_customer("a@b.com", "ORDER_DELETED")

        assert [event.event_type for event in events] == ["ORDER_DELETED"]

    def test_product_event_view(self, correlator):
        """Test that product events expose the product id and price."""
        correlator.record_product_event(_product_event())

        [event] = correlator.query_by_customer("a@b.com", "PRODUCT_")

        assert event.product_id == "p1"
        assert event.price == Decimal("10.5")
        assert event.request_id == "req-9"
        assert event.order_id is None

    def test_expired_events_left_out(self, correlator, clock):
        """Test lazy expiry of entries DynamoDB has not removed yet."""
        correlator.record_order_event(_envelope(EventType.ORDER_CREATED, order_id="old"), "m1")
        clock.now += 100 * 60
        correlator.record_order_event(_envelope(EventType.ORDER_CREATED, order_id="new"), "m2")
        clock.now += 21 * 60

        events = correlator.query_by_customer("a@b.com")

        assert [event.order_id for event in events] == ["new"]

    def test_redelivery_adds_at_most_a_duplicate(self, correlator, clock):
        """Test that recording the same notification twice keeps the history consistent."""
        envelope = _envelope(EventType.ORDER_CREATED)
        correlator.record_order_event(envelope, "m1")
        clock.now += 1
        correlator.record_order_event(envelope, "m1")

        events = correlator.query_by_customer("a@b.com")

        assert 1 <= len(events) <= 2
        assert {event.order_id for event in events} == {"o1"}

    def test_invoice_event(self, correlator, events_table):
        """Test that imported invoices are logged under the customer with the shorter ttl."""
        invoice = InvoiceRecord(
            customer_name="ACME",
            invoice_number="INV-1",
            product_id="p1",
            transaction_id="t1",
            created_at=1,
        )

        entry = correlator.record_invoice_event(invoice)

        assert entry.pk == "#invoice_INV-1"
        assert entry.ttl == 1700000000 + 60 * 60
        [event] = correlator.query_by_customer("ACME", "INVOICE_")
        assert event.event_type == "INVOICE_CREATED"
        assert event.transaction_id == "t1"
        assert event.product_id == "p1"
        assert event.request_id == "t1"

"""
Lifecycle event log.

Consumes product, order and invoice lifecycle events and appends one log entry
per delivery. Deliveries are at-least-once, so a redelivered message may leave
a duplicate entry; nothing else is affected by it.
"""

import time
from typing import Callable, List

from aws_lambda_powertools.metrics import MetricUnit

from ecommerce.dal.events_db import EventsDbHandler
from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.models.events import EventType, LifecycleEvent, OrderEventEnvelope, ProductEvent
from ecommerce.models.invoice import InvoiceRecord
from ecommerce.models.output import CustomerEventView

DEFAULT_EVENT_TYPE_PREFIX = 'ORDER_'


class EventCorrelator:
    """Writes and queries the TTL-bounded lifecycle event log."""

    def __init__(
        self,
        events_db: EventsDbHandler,
        ttl_minutes: int = 120,
        invoice_ttl_minutes: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.events_db = events_db
        self.ttl_minutes = ttl_minutes
        self.invoice_ttl_minutes = invoice_ttl_minutes
        self._clock = clock

    @tracer.capture_method
    def record_order_event(self, envelope: OrderEventEnvelope, message_id: str) -> LifecycleEvent:
        """Append an order lifecycle event, keyed by order id."""
        order_event = envelope.unwrap()
        event = self._new_event(
            pk=f'#order_{order_event.order_id}',
            event_type=envelope.event_type.value,
            email=order_event.email,
            request_id=order_event.request_id,
            ttl_minutes=self.ttl_minutes,
            info={
                'orderId': order_event.order_id,
                'productCodes': order_event.product_codes,
                'messageId': message_id,
            },
        )
        return self._store(event)

    @tracer.capture_method
    def record_product_event(self, product_event: ProductEvent) -> LifecycleEvent:
        """Append a product lifecycle event, keyed by product code."""
        event = self._new_event(
            pk=f'#product_{product_event.product_code}',
            event_type=product_event.event_type.value,
            email=product_event.email,
            request_id=product_event.request_id,
            ttl_minutes=self.ttl_minutes,
            info={
                'productId': product_event.product_id,
                'price': product_event.product_price,
            },
        )
        return self._store(event)

    @tracer.capture_method
    def record_invoice_event(
        self,
        invoice: InvoiceRecord,
        event_type: EventType = EventType.INVOICE_CREATED,
    ) -> LifecycleEvent:
        """Append an invoice lifecycle event, keyed by invoice number, attributed to the customer."""
        info = {'transactionId': invoice.transaction_id}
        if invoice.product_id:
            info['productId'] = invoice.product_id

        event = self._new_event(
            pk=f'#invoice_{invoice.invoice_number}',
            event_type=event_type.value,
            email=invoice.customer_name,
            request_id=invoice.transaction_id,
            ttl_minutes=self.invoice_ttl_minutes,
            info=info,
        )
        return self._store(event)

    @tracer.capture_method
    def query_by_customer(self, email: str, event_type_prefix: str = DEFAULT_EVENT_TYPE_PREFIX) -> List[CustomerEventView]:
        """
        Return a customer's events whose type starts with the prefix, oldest first.

        Entries past their ttl are left out even if DynamoDB has not removed
        them yet.

        Args:
            email: Customer email
            event_type_prefix: Event type prefix, e.g. ``ORDER_`` or ``ORDER_CREATED``

        Returns:
            Read models sorted by creation time
        """
        now = self._clock()
        events = [
            event for event in self.events_db.query_by_email(email, event_type_prefix)
            if not event.is_expired(now)
        ]
        events.sort(key=lambda event: event.created_at)

        logger.debug('Customer events queried', extra={
            'email': email,
            'event_type_prefix': event_type_prefix,
            'count': len(events),
        })
        return [self._to_view(event) for event in events]

    def _new_event(
        self,
        pk: str,
        event_type: str,
        email: str,
        request_id: str,
        ttl_minutes: int,
        info: dict,
    ) -> LifecycleEvent:
        now = self._clock()
        created_at = int(now * 1000)
        return LifecycleEvent(
            pk=pk,
            sk=LifecycleEvent.sort_key(event_type, created_at),
            email=email,
            created_at=created_at,
            request_id=request_id,
            event_type=event_type,
            ttl=int(now) + ttl_minutes * 60,
            info=info,
        )

    def _store(self, event: LifecycleEvent) -> LifecycleEvent:
        self.events_db.put_event(event)
        metrics.add_metric(name='LifecycleEventRecorded', unit=MetricUnit.Count, value=1)
        logger.info('Lifecycle event recorded', extra={
            'pk': event.pk,
            'event_type': event.event_type,
            'request_id': event.request_id,
        })
        return event

    @staticmethod
    def _to_view(event: LifecycleEvent) -> CustomerEventView:
        info = event.info
        return CustomerEventView(
            email=event.email,
            created_at=event.created_at,
            event_type=event.event_type,
            request_id=event.request_id,
            order_id=info.get('orderId'),
            product_codes=info.get('productCodes'),
            product_id=info.get('productId'),
            price=info.get('price'),
            transaction_id=info.get('transactionId'),
        )

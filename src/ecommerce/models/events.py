"""
Lifecycle event schemas.

Product events travel as ``{"productEvent": {...}}`` payloads of a synchronous
Lambda invocation. Order events travel through SNS inside an envelope whose
``data`` field is the JSON-encoded order event, with the event type repeated
as the ``eventType`` message attribute so subscriptions can filter on it.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ecommerce.models.order import Billing, Order, Shipping
from ecommerce.models.types import Money

EVENT_TYPE_ATTRIBUTE = 'eventType'


class EventType(str, Enum):
    """Lifecycle event types."""

    PRODUCT_CREATED = 'PRODUCT_CREATED'
    PRODUCT_UPDATED = 'PRODUCT_UPDATED'
    PRODUCT_DELETED = 'PRODUCT_DELETED'

    ORDER_CREATED = 'ORDER_CREATED'
    ORDER_DELETED = 'ORDER_DELETED'

    INVOICE_CREATED = 'INVOICE_CREATED'


class _EventModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProductEvent(_EventModel):
    """Product lifecycle notification."""

    request_id: str
    event_type: EventType
    product_id: str
    product_code: str
    product_price: Money
    email: str

    def to_payload(self) -> str:
        return json.dumps({'productEvent': self.model_dump(mode='json', by_alias=True)})

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'ProductEvent':
        return cls.model_validate(payload['productEvent'])


class OrderEvent(_EventModel):
    """Order lifecycle notification body. Carries product codes, not full products."""

    email: str
    order_id: str
    billing: Billing
    shipping: Shipping
    request_id: str
    product_codes: List[str]

    @classmethod
    def from_order(cls, order: Order, request_id: str) -> 'OrderEvent':
        return cls(
            email=order.email,
            order_id=order.id,
            billing=order.billing,
            shipping=order.shipping,
            request_id=request_id,
            product_codes=order.product_codes,
        )


class OrderEventEnvelope(_EventModel):
    """Envelope published to the order events topic."""

    event_type: EventType
    data: str

    @classmethod
    def wrap(cls, event_type: EventType, event: OrderEvent) -> 'OrderEventEnvelope':
        return cls(event_type=event_type, data=event.model_dump_json(by_alias=True))

    def unwrap(self) -> OrderEvent:
        return OrderEvent.model_validate_json(self.data)

    def to_message(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_message(cls, message: str) -> 'OrderEventEnvelope':
        return cls.model_validate_json(message)


class Notification(BaseModel):
    """A message as delivered to a subscriber of the event bus."""

    message_id: str
    topic: str
    message: str
    attributes: Dict[str, str] = {}
    # number of times this message has been handed to the subscriber
    receive_count: int = 1

    @property
    def event_type(self) -> Optional[str]:
        return self.attributes.get(EVENT_TYPE_ATTRIBUTE)


class LifecycleEvent(_EventModel):
    """
    Entry of the lifecycle event log.

    ``pk`` names the entity (``#order_<id>``, ``#product_<code>``,
    ``#invoice_<number>``), ``sk`` is ``<eventType>#<createdAt>`` so that a
    customer's events can be selected by type prefix through the email index.
    """

    pk: str
    sk: str
    email: str
    created_at: int
    request_id: str
    event_type: str
    ttl: int
    info: Dict[str, Any] = {}

    @staticmethod
    def sort_key(event_type: str, created_at: int) -> str:
        return f'{event_type}#{created_at}'

    def is_expired(self, now: float) -> bool:
        return self.ttl < now

"""
Declared consumers of the order events topic.

Every consumer retries a failed message three times before moving it to its own
dead-letter queue. The confirmation mailer reads from a queue and processes
messages in batches.

    consumer              filter                     dead-letter queue
    order-events          -                          order-events-dlq
    order-emails          -                          order-emails-dlq
    order-payments        eventType=ORDER_CREATED    order-payments-dlq
    order-confirmations   eventType=ORDER_CREATED    order-confirmations-dlq
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ecommerce.events.bus import EventBus, FilterPolicy, NotificationHandler, Subscription
from ecommerce.handlers.utils.observability import logger
from ecommerce.models.events import EVENT_TYPE_ATTRIBUTE, EventType, Notification, OrderEventEnvelope

MAX_DELIVERY_ATTEMPTS = 3

ORDER_CREATED_ONLY: FilterPolicy = {EVENT_TYPE_ATTRIBUTE: [EventType.ORDER_CREATED.value]}


@dataclass(frozen=True)
class ConsumerDeclaration:
    name: str
    dead_letter_queue: str
    filter_policy: Optional[FilterPolicy] = None
    queue: bool = False
    batch_size: int = 1
    batch_window_seconds: float = 0
    max_attempts: int = MAX_DELIVERY_ATTEMPTS


ORDER_EVENTS_CONSUMER = 'order-events'
ORDER_EMAILS_CONSUMER = 'order-emails'
ORDER_PAYMENTS_CONSUMER = 'order-payments'
ORDER_CONFIRMATIONS_CONSUMER = 'order-confirmations'

ORDER_TOPIC_CONSUMERS = (
    ConsumerDeclaration(name=ORDER_EVENTS_CONSUMER, dead_letter_queue='order-events-dlq'),
    ConsumerDeclaration(name=ORDER_EMAILS_CONSUMER, dead_letter_queue='order-emails-dlq'),
    ConsumerDeclaration(
        name=ORDER_PAYMENTS_CONSUMER,
        dead_letter_queue='order-payments-dlq',
        filter_policy=ORDER_CREATED_ONLY,
    ),
    ConsumerDeclaration(
        name=ORDER_CONFIRMATIONS_CONSUMER,
        dead_letter_queue='order-confirmations-dlq',
        filter_policy=ORDER_CREATED_ONLY,
        queue=True,
        batch_size=5,
        batch_window_seconds=10,
    ),
)


def build_subscriptions(
    handlers: Optional[Dict[str, NotificationHandler]] = None,
    endpoints: Optional[Dict[str, str]] = None,
    dead_letter_arns: Optional[Dict[str, str]] = None,
) -> List[Subscription]:
    """
    Turn the declared consumers into bus subscriptions.

    Args:
        handlers: In-process consumer callables by consumer name
        endpoints: Function or queue ARNs by consumer name, for managed buses
        dead_letter_arns: Dead-letter queue ARNs by consumer name

    Returns:
        One subscription per declared consumer
    """
    handlers = handlers or {}
    endpoints = endpoints or {}
    dead_letter_arns = dead_letter_arns or {}

    subscriptions = []
    for declaration in ORDER_TOPIC_CONSUMERS:
        extra_attributes = {'RawMessageDelivery': 'false'} if declaration.queue else {}
        subscriptions.append(Subscription(
            name=declaration.name,
            filter_policy=declaration.filter_policy,
            max_attempts=declaration.max_attempts,
            dead_letter_target=declaration.dead_letter_queue,
            batch_size=declaration.batch_size,
            batch_window_seconds=declaration.batch_window_seconds,
            handler=handlers.get(declaration.name),
            protocol='sqs' if declaration.queue else 'lambda',
            endpoint=endpoints.get(declaration.name),
            dead_letter_arn=dead_letter_arns.get(declaration.name),
            extra_attributes=extra_attributes,
        ))
    return subscriptions


def subscribe_order_consumers(bus: EventBus, topic: str, subscriptions: List[Subscription]) -> Dict[str, str]:
    """Subscribe every consumer to the order topic; returns subscription ids by consumer name."""
    subscription_ids = {}
    for subscription in subscriptions:
        subscription_ids[subscription.name] = bus.subscribe(topic, subscription)

    logger.info('Order topic consumers subscribed', extra={
        'topic': topic,
        'consumers': list(subscription_ids),
    })
    return subscription_ids


def envelope_handler(consume: Callable[[OrderEventEnvelope, str], Any]) -> NotificationHandler:
    """
    Adapt an order envelope consumer to a bus notification handler.

    Each notification of a batch is processed on its own; the ids of those that
    raised are reported back as failed so only they are retried.
    """

    def handle(notifications: List[Notification]) -> List[str]:
        failed = []
        for notification in notifications:
            try:
                consume(OrderEventEnvelope.from_message(notification.message), notification.message_id)
            except Exception:
                logger.exception('Order event processing failed', extra={
                    'message_id': notification.message_id,
                    'receive_count': notification.receive_count,
                })
                failed.append(notification.message_id)
        return failed

    return handle

"""
Event transport for the e-commerce service.

``EventBus`` is the publish/subscribe capability used by the workflows;
``SnsEventBus`` and ``LambdaEventPublisher`` are the managed implementations,
``InMemoryEventBus`` the local one. ``fanout`` declares the consumers of the
order topic.
"""

from ecommerce.events.bus import EventBus, EventPublisher, NotificationHandler, Subscription
from ecommerce.events.connections import ConnectionNotifier
from ecommerce.events.fanout import ORDER_TOPIC_CONSUMERS, build_subscriptions, envelope_handler, subscribe_order_consumers
from ecommerce.events.filter_policy import matches
from ecommerce.events.lambda_publisher import LambdaEventPublisher
from ecommerce.events.memory_bus import InMemoryEventBus
from ecommerce.events.sns_bus import SnsEventBus

__all__ = [
    'ConnectionNotifier',
    'EventBus',
    'EventPublisher',
    'InMemoryEventBus',
    'LambdaEventPublisher',
    'NotificationHandler',
    'ORDER_TOPIC_CONSUMERS',
    'SnsEventBus',
    'Subscription',
    'build_subscriptions',
    'envelope_handler',
    'matches',
    'subscribe_order_consumers',
]

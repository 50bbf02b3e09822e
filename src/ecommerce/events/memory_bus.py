"""
In-process event bus for local runs and tests.

Honours the same delivery contract as the managed SNS/SQS wiring: filter
policies per subscription, a bounded number of delivery attempts followed by
dead-lettering, batching by size or by window, and at-least-once delivery
(``redeliver`` hands an already delivered message to its consumer again).
"""

import time
import uuid
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, List, Optional

from aws_lambda_powertools.metrics import MetricUnit

from ecommerce.events.bus import Subscription
from ecommerce.events.filter_policy import matches
from ecommerce.handlers.utils.observability import logger, metrics
from ecommerce.models.events import Notification

# delivered messages kept per consumer for redelivery
DELIVERED_HISTORY = 1000


class _Consumer:

    def __init__(self, topic: str, subscription: Subscription) -> None:
        self.topic = topic
        self.subscription = subscription
        self.pending: Deque[Notification] = deque()
        self.first_pending_at: Optional[float] = None
        self.delivered: Dict[str, Notification] = {}
        self.delivered_order: Deque[str] = deque()
        self.dead_letters: List[Notification] = []

    def remember(self, notification: Notification) -> None:
        if notification.message_id not in self.delivered:
            self.delivered_order.append(notification.message_id)
        self.delivered[notification.message_id] = notification
        while len(self.delivered_order) > DELIVERED_HISTORY:
            self.delivered.pop(self.delivered_order.popleft(), None)


class InMemoryEventBus:
    """Synchronous publish/subscribe bus kept in memory."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._consumers: Dict[str, List[_Consumer]] = defaultdict(list)
        self._by_name: Dict[str, _Consumer] = {}
        self._published: Dict[str, List[Notification]] = defaultdict(list)

    def subscribe(self, topic: str, subscription: Subscription) -> str:
        if subscription.handler is None:
            raise ValueError(f'Subscription {subscription.name} has no handler')
        if subscription.name in self._by_name:
            raise ValueError(f'Consumer {subscription.name} is already subscribed')

        consumer = _Consumer(topic, subscription)
        self._consumers[topic].append(consumer)
        self._by_name[subscription.name] = consumer
        return subscription.name

    def publish(self, topic: str, message: str, attributes: Dict[str, str]) -> str:
        message_id = str(uuid.uuid4())
        notification = Notification(message_id=message_id, topic=topic, message=message, attributes=dict(attributes))
        self._published[topic].append(notification)

        # partial batches whose window elapsed go out before the new message is queued
        for consumer in self._consumers[topic]:
            self._drain(consumer)

        for consumer in self._consumers[topic]:
            if not matches(consumer.subscription.filter_policy, notification.attributes):
                logger.debug('Message filtered out', extra={
                    'consumer': consumer.subscription.name,
                    'message_id': message_id,
                })
                continue
            if not consumer.pending:
                consumer.first_pending_at = self._clock()
            consumer.pending.append(notification)
            self._drain(consumer)

        return message_id

    def flush(self, force: bool = False) -> None:
        """
        Deliver partial batches whose window has elapsed.

        Args:
            force: Deliver every pending message regardless of the window
        """
        for consumers in self._consumers.values():
            for consumer in consumers:
                self._drain(consumer, force=force)

    def redeliver(self, consumer_name: str, message_id: str) -> None:
        """
        Hand an already delivered message to its consumer once more.

        Only the last ``DELIVERED_HISTORY`` deliveries of a consumer can be redelivered.

        Raises:
            ValueError: If the consumer did not process the message, or it left the history
        """
        consumer = self._by_name[consumer_name]
        notification = consumer.delivered.get(message_id)
        if notification is None:
            raise ValueError(f'Message {message_id} was not delivered to {consumer_name}')
        self._deliver(consumer, [notification.model_copy(update={'receive_count': 1})])

    def published(self, topic: str) -> List[Notification]:
        return list(self._published[topic])

    def pending(self, consumer_name: str) -> List[Notification]:
        return list(self._by_name[consumer_name].pending)

    def dead_letters(self, consumer_name: str) -> List[Notification]:
        return list(self._by_name[consumer_name].dead_letters)

    def _window_elapsed(self, consumer: _Consumer) -> bool:
        if consumer.first_pending_at is None:
            return False
        return self._clock() - consumer.first_pending_at >= consumer.subscription.batch_window_seconds

    def _drain(self, consumer: _Consumer, force: bool = False) -> None:
        batch_size = max(consumer.subscription.batch_size, 1)
        while consumer.pending and (force or len(consumer.pending) >= batch_size or self._window_elapsed(consumer)):
            batch = [consumer.pending.popleft() for _ in range(min(batch_size, len(consumer.pending)))]
            consumer.first_pending_at = self._clock() if consumer.pending else None
            self._deliver(consumer, batch)

    def _deliver(self, consumer: _Consumer, batch: List[Notification]) -> None:
        subscription = consumer.subscription
        remaining = batch
        while remaining:
            try:
                failed_ids = set(subscription.handler(remaining) or [])
            except Exception:
                logger.exception('Consumer failed to process batch', extra={
                    'consumer': subscription.name,
                    'batch_size': len(remaining),
                })
                failed_ids = {notification.message_id for notification in remaining}

            retry: List[Notification] = []
            for notification in remaining:
                if notification.message_id not in failed_ids:
                    consumer.remember(notification)
                elif notification.receive_count >= subscription.max_attempts:
                    consumer.dead_letters.append(notification)
                    metrics.add_metric(name='MessageDeadLettered', unit=MetricUnit.Count, value=1)
                    logger.warning('Message moved to dead-letter queue', extra={
                        'consumer': subscription.name,
                        'dead_letter_target': subscription.dead_letter_target,
                        'message_id': notification.message_id,
                        'receive_count': notification.receive_count,
                    })
                else:
                    retry.append(notification.model_copy(update={'receive_count': notification.receive_count + 1}))
            remaining = retry

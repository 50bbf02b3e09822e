"""
Event bus capability shared by the production and in-memory implementations.

A publisher hands a message (a string) plus string attributes to a topic and
gets a message id back. A bus additionally lets consumers subscribe to a topic,
optionally with a filter policy on the message attributes.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, runtime_checkable

from ecommerce.models.events import Notification

# A consumer receives a batch and returns the ids of the messages it failed to
# process (partial batch failure). Raising marks the whole batch as failed.
NotificationHandler = Callable[[List[Notification]], Optional[List[str]]]

FilterPolicy = Dict[str, list]


@dataclass
class Subscription:
    """
    A consumer of a topic.

    Attributes:
        name: Consumer name, unique per topic
        filter_policy: SNS style filter on message attributes, None accepts everything
        max_attempts: Deliveries of a message before it is dead-lettered
        dead_letter_target: Name of the dead-letter queue of this consumer
        batch_size: Messages handed to the consumer per invocation
        batch_window_seconds: Longest time a partial batch waits for more messages
        handler: In-process consumer callable
        protocol: Delivery protocol for managed buses (``lambda`` or ``sqs``)
        endpoint: ARN of the consuming function or queue for managed buses
        dead_letter_arn: ARN of the dead-letter queue for managed buses
    """

    name: str
    filter_policy: Optional[FilterPolicy] = None
    max_attempts: int = 3
    dead_letter_target: Optional[str] = None
    batch_size: int = 1
    batch_window_seconds: float = 0
    handler: Optional[NotificationHandler] = None
    protocol: str = 'lambda'
    endpoint: Optional[str] = None
    dead_letter_arn: Optional[str] = None
    extra_attributes: Dict[str, str] = field(default_factory=dict)


@runtime_checkable
class EventPublisher(Protocol):
    """Protocol of anything that can publish a message to a topic."""

    def publish(self, topic: str, message: str, attributes: Dict[str, str]) -> str:
        """Publish a message and return its id."""
        ...


@runtime_checkable
class EventBus(EventPublisher, Protocol):
    """Protocol of a publish/subscribe bus."""

    def subscribe(self, topic: str, subscription: Subscription) -> str:
        """Register a consumer on a topic and return the subscription id."""
        ...

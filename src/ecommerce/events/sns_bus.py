"""Amazon SNS implementation of the event bus."""

import json
from typing import Any, Dict, Optional

import boto3
from aws_lambda_powertools.metrics import MetricUnit
from botocore.exceptions import BotoCoreError, ClientError

from ecommerce.events.bus import Subscription
from ecommerce.handlers.utils.errors import DownstreamDeliveryError, ExternalServiceError
from ecommerce.handlers.utils.observability import logger, metrics, tracer


class SnsEventBus:
    """
    Publishes to and subscribes on SNS topics.

    Message attributes are sent as ``String`` attributes so that subscription
    filter policies can match on them. Retries towards the consumers and
    dead-lettering are performed by SNS (and SQS for queue subscribers).
    """

    def __init__(self, region_name: Optional[str] = None, client: Any = None) -> None:
        if client is None:
            client = boto3.client('sns', region_name=region_name) if region_name else boto3.client('sns')
        self.sns = client

    @tracer.capture_method
    def publish(self, topic: str, message: str, attributes: Dict[str, str]) -> str:
        """
        Publish a message to an SNS topic.

        Args:
            topic: Topic ARN
            message: Message body
            attributes: String message attributes

        Returns:
            The SNS message id

        Raises:
            DownstreamDeliveryError: If SNS did not accept the message
        """
        message_attributes = {
            name: {'DataType': 'String', 'StringValue': value}
            for name, value in attributes.items()
        }
        try:
            response = self.sns.publish(TopicArn=topic, Message=message, MessageAttributes=message_attributes)
        except (ClientError, BotoCoreError) as e:
            metrics.add_metric(name='EventPublishFailed', unit=MetricUnit.Count, value=1)
            logger.error('Failed to publish to SNS', extra={'topic': topic, 'error': str(e)})
            raise DownstreamDeliveryError(message=f'SNS publish failed: {e}', topic=topic) from e

        metrics.add_metric(name='EventPublished', unit=MetricUnit.Count, value=1)
        logger.info('Message published', extra={
            'topic': topic,
            'message_id': response['MessageId'],
            'attributes': attributes,
        })
        return response['MessageId']

    @tracer.capture_method
    def subscribe(self, topic: str, subscription: Subscription) -> str:
        """
        Create an SNS subscription for a consumer.

        The filter policy becomes the subscription ``FilterPolicy`` and the
        consumer's dead-letter queue becomes its ``RedrivePolicy``.

        Returns:
            The subscription ARN
        """
        if not subscription.endpoint:
            raise ValueError(f'Subscription {subscription.name} has no endpoint')

        attributes = dict(subscription.extra_attributes)
        if subscription.filter_policy:
            attributes['FilterPolicy'] = json.dumps(subscription.filter_policy)
        if subscription.dead_letter_arn:
            attributes['RedrivePolicy'] = json.dumps({'deadLetterTargetArn': subscription.dead_letter_arn})

        try:
            response = self.sns.subscribe(
                TopicArn=topic,
                Protocol=subscription.protocol,
                Endpoint=subscription.endpoint,
                Attributes=attributes,
                ReturnSubscriptionArn=True,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error('Failed to subscribe consumer', extra={'topic': topic, 'consumer': subscription.name})
            raise ExternalServiceError(message=f'SNS subscribe failed: {e}', service_name='SNS') from e

        logger.info('Consumer subscribed', extra={
            'topic': topic,
            'consumer': subscription.name,
            'filter_policy': subscription.filter_policy,
        })
        return response['SubscriptionArn']

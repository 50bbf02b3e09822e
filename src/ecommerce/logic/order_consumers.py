"""
Downstream consumers of order lifecycle events.

- ``OrderEmailSender`` mails the customer on ORDER_CREATED and ORDER_DELETED.
- ``PaymentProcessor`` records the payment intent of a new order.
- ``ConfirmationMailer`` sends the order confirmation, fed in batches by a queue.

Each consumer receives the unwrapped envelope. Failures propagate so that the
delivery is retried and eventually dead-lettered.
"""

from typing import Any, Optional

import boto3
from aws_lambda_powertools.metrics import MetricUnit
from botocore.exceptions import BotoCoreError, ClientError

from ecommerce.handlers.utils.errors import ExternalServiceError
from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.models.events import EventType, OrderEvent, OrderEventEnvelope


class OrderMailer:
    """Sends plain text emails through Amazon SES."""

    def __init__(
        self,
        source: str,
        reply_to: Optional[str] = None,
        region_name: Optional[str] = None,
        client: Any = None,
    ) -> None:
        if client is None:
            client = boto3.client('ses', region_name=region_name) if region_name else boto3.client('ses')
        self.ses = client
        self.source = source
        self.reply_to = reply_to

    @tracer.capture_method
    def send(self, to: str, subject: str, body: str) -> str:
        """Send an email and return the SES message id."""
        params = {
            'Destination': {'ToAddresses': [to]},
            'Message': {
                'Subject': {'Charset': 'UTF-8', 'Data': subject},
                'Body': {'Text': {'Charset': 'UTF-8', 'Data': body}},
            },
            'Source': self.source,
        }
        if self.reply_to:
            params['ReplyToAddresses'] = [self.reply_to]

        try:
            response = self.ses.send_email(**params)
        except (ClientError, BotoCoreError) as e:
            logger.error('Failed to send email', extra={'subject': subject, 'error': str(e)})
            raise ExternalServiceError(message=f'SES send failed: {e}', service_name='SES') from e

        metrics.add_metric(name='EmailSent', unit=MetricUnit.Count, value=1)
        return response['MessageId']


class OrderEmailSender:
    """Mails the customer about created and cancelled orders; ignores other events."""

    def __init__(self, mailer: OrderMailer) -> None:
        self.mailer = mailer

    @tracer.capture_method
    def handle(self, envelope: OrderEventEnvelope) -> Optional[str]:
        if envelope.event_type == EventType.ORDER_CREATED:
            event = envelope.unwrap()
            subject = 'Order received'
            body = f'We received your order {event.order_id}, total {_total(event)}.'
        elif envelope.event_type == EventType.ORDER_DELETED:
            event = envelope.unwrap()
            subject = 'Order cancelled'
            body = f'Your order {event.order_id} was cancelled.'
        else:
            logger.debug('Event type has no email', extra={'event_type': envelope.event_type.value})
            return None

        message_id = self.mailer.send(event.email, subject, body)
        logger.info('Order email sent', extra={
            'order_id': event.order_id,
            'event_type': envelope.event_type.value,
        })
        return message_id


class PaymentProcessor:
    """Records the payment intent of newly created orders."""

    @tracer.capture_method
    def handle(self, envelope: OrderEventEnvelope) -> bool:
        if envelope.event_type != EventType.ORDER_CREATED:
            logger.warning('Unexpected event for payment processing', extra={'event_type': envelope.event_type.value})
            return False

        event = envelope.unwrap()
        metrics.add_metric(name='PaymentIntentRecorded', unit=MetricUnit.Count, value=1)
        logger.info('Payment intent recorded', extra={
            'order_id': event.order_id,
            'payment': event.billing.payment.value,
            'total_price': str(event.billing.total_price),
            'request_id': event.request_id,
        })
        return True


class ConfirmationMailer:
    """Sends order confirmations."""

    def __init__(self, mailer: OrderMailer) -> None:
        self.mailer = mailer

    @tracer.capture_method
    def handle(self, envelope: OrderEventEnvelope) -> str:
        event = envelope.unwrap()
        body = (
            f'Your order {event.order_id} is confirmed. '
            f'Products: {", ".join(event.product_codes)}. '
            f'Total: {_total(event)}. Shipping: {event.shipping.type} by {event.shipping.carrier}.'
        )
        return self.mailer.send(event.email, 'Order confirmed', body)


def _total(event: OrderEvent) -> str:
    return f'{event.billing.total_price:.2f}'

"""Order Emails Handler - SNS consumer mailing customers about their orders."""

import functools
from typing import Any, Dict

from aws_lambda_powertools.utilities.data_classes import SNSEvent, event_source
from aws_lambda_powertools.utilities.typing import LambdaContext

from ecommerce.handlers.models.env_vars import get_order_emails_env_vars
from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.logic.order_consumers import OrderEmailSender, OrderMailer
from ecommerce.models.events import OrderEventEnvelope


@functools.cache
def get_email_sender() -> OrderEmailSender:
    env_vars = get_order_emails_env_vars()
    mailer = OrderMailer(
        source=env_vars.ORDER_EMAIL_SOURCE,
        reply_to=env_vars.ORDER_EMAIL_REPLY_TO,
        region_name=env_vars.AWS_REGION,
    )
    return OrderEmailSender(mailer)


@tracer.capture_lambda_handler
@logger.inject_lambda_context
@metrics.log_metrics(capture_cold_start_metric=True)
@event_source(data_class=SNSEvent)
def lambda_handler(event: SNSEvent, context: LambdaContext) -> Dict[str, Any]:
    sender = get_email_sender()
    for record in event.records:
        sender.handle(OrderEventEnvelope.from_message(record.sns.message))
    return {}

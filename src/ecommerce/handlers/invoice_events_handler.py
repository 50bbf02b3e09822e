"""
Invoice Events Handler - consumer of the invoices table stream.

- INSERT of an imported invoice: append an INVOICE_CREATED lifecycle event.
- REMOVE of a transaction by DynamoDB TTL: handle it as an expired transaction.
- Deletes issued by the service itself and every other change are ignored.
"""

import functools
from typing import Any, Dict

from aws_lambda_powertools.utilities.batch import BatchProcessor, EventType as BatchEventType, process_partial_response
from aws_lambda_powertools.utilities.data_classes.dynamo_db_stream_event import DynamoDBRecord
from aws_lambda_powertools.utilities.typing import LambdaContext

from ecommerce.dal.events_db import EventsDbHandler
from ecommerce.dal.invoices_db import invoice_from_item, is_invoice_item, is_transaction_item, transaction_from_item
from ecommerce.handlers.models.env_vars import InvoiceEventsEnvVars, get_invoice_events_env_vars
from ecommerce.handlers.utils.invoices import build_invoice_workflow
from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.logic.event_correlator import EventCorrelator
from ecommerce.logic.invoice_workflow import InvoiceTransactionWorkflow

# principal of the deletes performed by DynamoDB TTL
TTL_PRINCIPAL = 'dynamodb.amazonaws.com'

processor = BatchProcessor(event_type=BatchEventType.DynamoDBStreams)


@functools.cache
def get_env_vars() -> InvoiceEventsEnvVars:
    return get_invoice_events_env_vars()


@functools.cache
def get_correlator() -> EventCorrelator:
    env_vars = get_env_vars()
    return EventCorrelator(
        events_db=EventsDbHandler(env_vars.EVENTS_TABLE_NAME),
        ttl_minutes=env_vars.EVENT_TTL_MINUTES,
        invoice_ttl_minutes=env_vars.INVOICE_EVENT_TTL_MINUTES,
    )


@functools.cache
def get_workflow() -> InvoiceTransactionWorkflow:
    return build_invoice_workflow(get_env_vars())


def is_ttl_removal(record: DynamoDBRecord) -> bool:
    user_identity = record.raw_event.get('userIdentity') or {}
    return user_identity.get('type') == 'Service' and user_identity.get('principalId') == TTL_PRINCIPAL


@tracer.capture_method
def record_handler(record: DynamoDBRecord) -> None:
    event_name = record.raw_event.get('eventName')

    if event_name == 'INSERT':
        new_image = record.dynamodb.new_image
        if is_invoice_item(new_image):
            get_correlator().record_invoice_event(invoice_from_item(new_image))
        return

    if event_name == 'REMOVE':
        old_image = record.dynamodb.old_image
        if not is_transaction_item(old_image):
            return
        if not is_ttl_removal(record):
            logger.debug('Transaction deleted by the service, ignored', extra={'transaction_id': old_image.get('sk')})
            return
        get_workflow().on_transaction_expired(transaction_from_item(old_image))


@tracer.capture_lambda_handler
@logger.inject_lambda_context
@metrics.log_metrics(capture_cold_start_metric=True)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    return process_partial_response(
        event=event,
        record_handler=record_handler,
        processor=processor,
        context=context,
    )

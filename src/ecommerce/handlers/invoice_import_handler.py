"""Invoice Import Handler - imports invoice files as they land in the bucket."""

import functools
from typing import Any, Dict
from urllib.parse import unquote_plus

from aws_lambda_powertools.utilities.data_classes import S3Event, event_source
from aws_lambda_powertools.utilities.typing import LambdaContext

from ecommerce.handlers.models.env_vars import get_invoices_env_vars
from ecommerce.handlers.utils.invoices import build_invoice_workflow
from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.logic.invoice_workflow import InvoiceTransactionWorkflow


@functools.cache
def get_workflow() -> InvoiceTransactionWorkflow:
    return build_invoice_workflow(get_invoices_env_vars())


@tracer.capture_lambda_handler
@logger.inject_lambda_context
@metrics.log_metrics(capture_cold_start_metric=True)
@event_source(data_class=S3Event)
def lambda_handler(event: S3Event, context: LambdaContext) -> Dict[str, Any]:
    workflow = get_workflow()
    imported = 0
    for record in event.records:
        key = unquote_plus(record.s3.get_object.key)
        if workflow.on_upload_received(key, bucket_name=record.s3.bucket.name) is not None:
            imported += 1
    return {'imported': imported}

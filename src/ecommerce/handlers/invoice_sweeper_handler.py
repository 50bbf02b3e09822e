"""
Invoice Sweeper Handler - scheduled removal of expired invoice transactions.

Complements DynamoDB TTL, whose removals may lag by hours: transactions past
their ttl are deleted and their clients notified of the timeout.
"""

import functools
from typing import Any, Dict

from aws_lambda_powertools.metrics import MetricUnit
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
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    removed = get_workflow().sweep_expired()
    metrics.add_metric(name='InvoiceTransactionsSwept', unit=MetricUnit.Count, value=len(removed))
    return {'removed': [transaction.transaction_id for transaction in removed]}

"""
Invoice Connection Handler - routes of the invoice WebSocket API.

    $connect       accept the connection
    $disconnect    drop the open transactions of the connection
    getImportUrl   issue an upload URL and open a transaction
"""

import functools
from typing import Any, Callable, Dict

from aws_lambda_powertools.logging import correlation_paths
from aws_lambda_powertools.utilities.typing import LambdaContext

from ecommerce.handlers.models.env_vars import get_invoices_env_vars
from ecommerce.handlers.utils.invoices import build_invoice_workflow
from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.logic.invoice_workflow import InvoiceTransactionWorkflow

CONNECT_ROUTE = '$connect'
DISCONNECT_ROUTE = '$disconnect'
GET_IMPORT_URL_ROUTE = 'getImportUrl'


@functools.cache
def get_workflow() -> InvoiceTransactionWorkflow:
    return build_invoice_workflow(get_invoices_env_vars())


def on_connect(connection_id: str, context: LambdaContext) -> None:
    logger.info('Client connected', extra={'connection_id': connection_id})


def on_disconnect(connection_id: str, context: LambdaContext) -> None:
    get_workflow().on_connection_closed(connection_id)


def on_get_import_url(connection_id: str, context: LambdaContext) -> None:
    get_workflow().get_upload_target(connection_id, request_id=context.aws_request_id)


ROUTES: Dict[str, Callable[[str, LambdaContext], None]] = {
    CONNECT_ROUTE: on_connect,
    DISCONNECT_ROUTE: on_disconnect,
    GET_IMPORT_URL_ROUTE: on_get_import_url,
}


@tracer.capture_lambda_handler
@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_REST)
@metrics.log_metrics(capture_cold_start_metric=True)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    request_context = event.get('requestContext', {})
    route_key = request_context.get('routeKey')
    connection_id = request_context.get('connectionId')

    route = ROUTES.get(route_key)
    if route is None or not connection_id:
        logger.warning('Unsupported WebSocket route', extra={'route_key': route_key})
        return {'statusCode': 400, 'body': 'Unsupported route'}

    tracer.put_annotation('route_key', route_key)
    route(connection_id, context)
    return {'statusCode': 200, 'body': 'OK'}

"""
Shared plumbing of the REST handlers.

Request bodies are parsed into pydantic models here and every service error is
turned into an HTTP response whose body is a JSON-encoded message string.
"""

import json
from http import HTTPStatus
from typing import Optional, Type, TypeVar

from aws_lambda_powertools.event_handler import APIGatewayRestResolver, CORSConfig, Response, content_types
from aws_lambda_powertools.metrics import MetricUnit
from pydantic import BaseModel, ValidationError

from ecommerce.handlers.utils.errors import (
    BaseServiceError,
    ErrorContext,
    ValidationFailedError,
    format_error_body,
    get_http_status_code,
    log_error_metrics,
)
from ecommerce.handlers.utils.observability import logger, metrics

ModelT = TypeVar('ModelT', bound=BaseModel)

cors_config = CORSConfig(
    allow_origin='*',
    max_age=600,
    allow_headers=['content-type', 'authorization', 'x-user-email'],
)


def json_response(status_code: int, body: str) -> Response:
    return Response(status_code=status_code, content_type=content_types.APPLICATION_JSON, body=body)


def get_request_id(app: APIGatewayRestResolver) -> str:
    """Id of the Lambda invocation serving the current request."""
    return app.lambda_context.aws_request_id


def parse_body(app: APIGatewayRestResolver, model: Type[ModelT], context: Optional[ErrorContext] = None) -> ModelT:
    """
    Parse and validate the JSON body of the current request.

    Raises:
        ValidationFailedError: If the body is not JSON or does not match the model
    """
    try:
        body = json.loads(app.current_event.body or '{}')
    except json.JSONDecodeError as e:
        raise ValidationFailedError(message=f'Invalid JSON in request body: {e.msg}', context=context) from e

    try:
        return model.model_validate(body)
    except ValidationError as e:
        field_errors = [
            {'field': '.'.join(str(part) for part in error['loc']), 'message': error['msg']}
            for error in e.errors()
        ]
        logger.info('Request validation failed', extra={'field_errors': field_errors})
        details = '; '.join(f"{error['field']}: {error['message']}" for error in field_errors)
        raise ValidationFailedError(
            message=f'Invalid request: {details}',
            field_errors=field_errors,
            context=context,
        ) from e


def register_error_handlers(app: APIGatewayRestResolver) -> None:
    """Map service errors and unexpected failures to HTTP responses."""

    @app.exception_handler(BaseServiceError)
    def handle_service_error(error: BaseServiceError) -> Response:
        log_error_metrics(error)
        return json_response(get_http_status_code(error), format_error_body(error))

    @app.exception_handler(Exception)
    def handle_unexpected_error(error: Exception) -> Response:
        logger.exception('Unexpected error in handler', extra={'error': str(error)})
        metrics.add_metric(name='UnexpectedError', unit=MetricUnit.Count, value=1)
        return json_response(HTTPStatus.INTERNAL_SERVER_ERROR.value, json.dumps('Internal server error'))

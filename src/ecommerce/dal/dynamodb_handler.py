"""
Generic DynamoDB access with consistent error handling and observability.

Table-specific handlers in this package build their keys and items and delegate
the calls to ``DynamoDBHandler``, which translates botocore failures into the
service error taxonomy and records per-operation metrics.
"""

import functools
import time
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

import boto3
from aws_lambda_powertools.metrics import MetricUnit
from botocore.exceptions import BotoCoreError, ClientError

from ecommerce.handlers.utils.errors import (
    BaseServiceError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    ExternalServiceError,
)
from ecommerce.handlers.utils.observability import logger, metrics, tracer

# BatchGetItem accepts at most 100 keys per call
BATCH_GET_MAX_KEYS = 100
BATCH_GET_MAX_ATTEMPTS = 5

# DynamoDB error code -> (service error code, message)
KNOWN_ERRORS = {
    'ResourceNotFoundException': ('TABLE_NOT_FOUND', 'Table {table} not found'),
    'ProvisionedThroughputExceededException': ('THROTTLING_ERROR', 'Throughput exceeded on {table}'),
    'ThrottlingException': ('THROTTLING_ERROR', 'Requests to {table} are throttled'),
    'RequestLimitExceeded': ('THROTTLING_ERROR', 'Account request limit exceeded on {table}'),
}

Page = Dict[str, Any]


class DALError(BaseServiceError):
    """A DynamoDB call failed. ``error_code`` tells the DynamoDB failure apart."""

    error_code = "DAL_ERROR"
    severity = ErrorSeverity.HIGH
    category = ErrorCategory.INFRASTRUCTURE
    default_user_message = "A database error occurred. Please try again later."

    def __init__(
        self,
        message: str,
        operation: str,
        table_name: str,
        error_code: Optional[str] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message, context=context, error_code=error_code)
        self.operation = operation
        self.table_name = table_name


class ConditionalCheckFailedError(DALError):
    """A conditional write was rejected: the item is gone or no longer in the expected state."""

    error_code = "CONDITIONAL_CHECK_FAILED"
    severity = ErrorSeverity.LOW

    def __init__(self, table_name: str, operation: str, context: Optional[ErrorContext] = None):
        super().__init__(
            f"Conditional check failed during {operation}",
            operation=operation,
            table_name=table_name,
            context=context,
        )


def serialize_item(value: Any) -> Any:
    """Prepare a python value for the boto3 resource layer (no floats, no enums)."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {key: serialize_item(item) for key, item in value.items() if item is not None}
    if isinstance(value, (list, tuple)):
        return [serialize_item(item) for item in value]
    return value


def _translate_client_error(error: ClientError, operation: str, table_name: str) -> DALError:
    code = error.response['Error']['Code']
    if code == 'ConditionalCheckFailedException':
        return ConditionalCheckFailedError(table_name=table_name, operation=operation)

    if code in KNOWN_ERRORS:
        error_code, template = KNOWN_ERRORS[code]
        return DALError(template.format(table=table_name), operation, table_name, error_code=error_code)
    message = error.response['Error'].get('Message', '')
    return DALError(f"DynamoDB error: {message}", operation, table_name, error_code=f"DYNAMODB_{code}")


def dynamodb_operation(operation: str) -> Callable:
    """Translate the botocore errors of a ``DynamoDBHandler`` method and time the call."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(self: 'DynamoDBHandler', *args, **kwargs):
            started = time.time()
            try:
                result = func(self, *args, **kwargs)
            except ClientError as e:
                error = _translate_client_error(e, operation, self.table_name)
                if isinstance(error, ConditionalCheckFailedError):
                    # expected for conditional writes, the caller decides
                    logger.info(f"{operation} condition not met", extra={"table_name": self.table_name})
                else:
                    metrics.add_metric(name=f"DynamoDB{operation}Error", unit=MetricUnit.Count, value=1)
                    logger.error(f"{operation} failed", extra={
                        "table_name": self.table_name,
                        "error_code": error.error_code,
                        "error": str(e),
                    })
                raise error from e
            except BotoCoreError as e:
                metrics.add_metric(name=f"DynamoDB{operation}Error", unit=MetricUnit.Count, value=1)
                logger.error(f"{operation} could not reach DynamoDB", extra={
                    "table_name": self.table_name,
                    "error": str(e),
                })
                raise ExternalServiceError(f"Database connection error: {e}", service_name="DynamoDB") from e

            metrics.add_metric(
                name=f"DynamoDB{operation}Duration",
                unit=MetricUnit.Milliseconds,
                value=(time.time() - started) * 1000,
            )
            tracer.put_annotation("dynamodb_operation", operation)
            return result

        return wrapper

    return decorator


def _optional(**params: Any) -> Dict[str, Any]:
    """Request parameters without the ones left unset."""
    return {name: value for name, value in params.items() if value is not None}


def _to_page(response: Dict[str, Any]) -> Page:
    page: Page = {'items': response.get('Items', [])}
    if 'LastEvaluatedKey' in response:
        page['last_evaluated_key'] = response['LastEvaluatedKey']
    return page


def _paginate(fetch_page: Callable[[Optional[Dict[str, Any]]], Page]) -> Iterator[Dict[str, Any]]:
    start_key = None
    while True:
        page = fetch_page(start_key)
        yield from page['items']
        start_key = page.get('last_evaluated_key')
        if not start_key:
            return


class DynamoDBHandler:
    """Thin DynamoDB table wrapper with error translation and metrics."""

    def __init__(self, table_name: str, region_name: Optional[str] = None, endpoint_url: Optional[str] = None):
        """
        Args:
            table_name: Name of the DynamoDB table
            region_name: AWS region, defaults to the Lambda region
            endpoint_url: Alternative endpoint, e.g. DynamoDB Local
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', **_optional(region_name=region_name, endpoint_url=endpoint_url))
        self.table = self.dynamodb.Table(table_name)

    @dynamodb_operation("GetItem")
    def get_item(self, key: Dict[str, Any], consistent_read: bool = False) -> Optional[Dict[str, Any]]:
        """Get a single item, or None when the key does not exist."""
        return self.table.get_item(Key=key, ConsistentRead=consistent_read).get('Item')

    @dynamodb_operation("PutItem")
    def put_item(self, item: Dict[str, Any], condition_expression: Optional[Any] = None) -> Dict[str, Any]:
        """
        Store an item, replacing any item with the same key.

        Returns:
            The item as stored (floats as Decimal, enums as values, no None attributes)

        Raises:
            ConditionalCheckFailedError: If ``condition_expression`` does not hold
            DALError: If the call fails
        """
        item = serialize_item(item)
        self.table.put_item(Item=item, **_optional(ConditionExpression=condition_expression))
        return item

    @dynamodb_operation("UpdateItem")
    def update_item(
        self,
        key: Dict[str, Any],
        update_expression: str,
        expression_attribute_values: Optional[Dict[str, Any]] = None,
        expression_attribute_names: Optional[Dict[str, str]] = None,
        condition_expression: Optional[Any] = None,
        return_values: str = "ALL_NEW",
    ) -> Optional[Dict[str, Any]]:
        """Apply an update expression and return the attributes selected by ``return_values``."""
        response = self.table.update_item(
            Key=key,
            UpdateExpression=update_expression,
            ReturnValues=return_values,
            **_optional(
                ExpressionAttributeValues=serialize_item(expression_attribute_values) if expression_attribute_values else None,
                ExpressionAttributeNames=expression_attribute_names or None,
                ConditionExpression=condition_expression,
            ),
        )
        return response.get('Attributes')

    @dynamodb_operation("DeleteItem")
    def delete_item(self, key: Dict[str, Any], condition_expression: Optional[Any] = None) -> Optional[Dict[str, Any]]:
        """Delete an item; returns what was stored under the key, or None if nothing was."""
        response = self.table.delete_item(
            Key=key,
            ReturnValues='ALL_OLD',
            **_optional(ConditionExpression=condition_expression),
        )
        return response.get('Attributes')

    @dynamodb_operation("Query")
    def query_items(
        self,
        key_condition: Any,
        filter_expression: Optional[Any] = None,
        index_name: Optional[str] = None,
        scan_index_forward: bool = True,
        limit: Optional[int] = None,
        exclusive_start_key: Optional[Dict[str, Any]] = None,
    ) -> Page:
        """Query one page: ``{'items': [...], 'last_evaluated_key': ...}``, the key only if more pages exist."""
        return _to_page(self.table.query(
            KeyConditionExpression=key_condition,
            ScanIndexForward=scan_index_forward,
            **_optional(
                FilterExpression=filter_expression,
                IndexName=index_name,
                Limit=limit,
                ExclusiveStartKey=exclusive_start_key,
            ),
        ))

    @dynamodb_operation("Scan")
    def scan_items(
        self,
        filter_expression: Optional[Any] = None,
        limit: Optional[int] = None,
        exclusive_start_key: Optional[Dict[str, Any]] = None,
    ) -> Page:
        return _to_page(self.table.scan(**_optional(
            FilterExpression=filter_expression,
            Limit=limit,
            ExclusiveStartKey=exclusive_start_key,
        )))

    def query_all(self, key_condition: Any, **kwargs: Any) -> Iterator[Dict[str, Any]]:
        """Iterate over every item matching the key condition, following pagination."""
        return _paginate(lambda start_key: self.query_items(key_condition, exclusive_start_key=start_key, **kwargs))

    def scan_all(self, filter_expression: Optional[Any] = None) -> Iterator[Dict[str, Any]]:
        """Iterate over the whole table. Cost grows with table size."""
        return _paginate(lambda start_key: self.scan_items(filter_expression, exclusive_start_key=start_key))

    @tracer.capture_method
    def batch_get_items(self, keys: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Get many items by key, in chunks of 100 keys, retrying unprocessed keys.

        Returns:
            Retrieved items in no particular order; missing keys are absent

        Raises:
            DALError: If a call fails or keys stay unprocessed
        """
        items: List[Dict[str, Any]] = []
        for start in range(0, len(keys), BATCH_GET_MAX_KEYS):
            items.extend(self._batch_get_chunk(keys[start:start + BATCH_GET_MAX_KEYS]))

        logger.debug("Batch get completed", extra={
            "table_name": self.table_name,
            "requested_keys": len(keys),
            "retrieved_items": len(items),
        })
        return items

    @dynamodb_operation("BatchGetItem")
    def _batch_get_chunk(self, keys: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        request_items = {self.table_name: {'Keys': keys}}

        for attempt in range(BATCH_GET_MAX_ATTEMPTS):
            response = self.dynamodb.batch_get_item(RequestItems=request_items)
            items.extend(response.get('Responses', {}).get(self.table_name, []))

            request_items = response.get('UnprocessedKeys') or {}
            if not request_items:
                return items
            time.sleep(0.05 * (2 ** attempt))

        raise DALError(
            "Unprocessed keys remained after batch get retries",
            operation="BatchGetItem",
            table_name=self.table_name,
            error_code="BATCH_GET_INCOMPLETE",
        )

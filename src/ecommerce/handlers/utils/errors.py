"""
Error taxonomy of the e-commerce service.

Every failure the service knows how to describe is a ``BaseServiceError``
subclass. A subclass declares its code, HTTP status, severity and category as
class attributes, plus the message shown to clients when none is given.

REST handlers turn errors into responses with ``get_http_status_code`` and
``format_error_body``. Event consumers log them and re-raise, so the managed
retry and dead-letter path takes over.
"""

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional

from aws_lambda_powertools.metrics import MetricUnit
from pydantic import BaseModel, Field

from ecommerce.handlers.utils.observability import logger, metrics, tracer


class ErrorSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ErrorCategory(str, Enum):
    VALIDATION = "VALIDATION"
    BUSINESS_LOGIC = "BUSINESS_LOGIC"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE"
    INFRASTRUCTURE = "INFRASTRUCTURE"
    TIMEOUT = "TIMEOUT"


class ErrorContext(BaseModel):
    """Where an error happened: request, operation and the entity involved."""

    request_id: str = Field(description="Lambda request id of the invocation")
    operation: str = Field(description="Operation that failed")
    resource_id: Optional[str] = Field(default=None, description="Product, order or transaction id")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    additional_data: Dict[str, Any] = Field(default_factory=dict)


class BaseServiceError(Exception):
    """
    Base class of the service errors.

    Args:
        message: Detailed message for logs
        context: Where the error happened
        user_message: Message returned to clients, defaults to ``default_user_message``
            or to ``message``
        error_code: Overrides the class error code
        severity: Overrides the class severity
    """

    error_code: ClassVar[str] = "SERVICE_ERROR"
    http_status: ClassVar[int] = 500
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    category: ErrorCategory = ErrorCategory.BUSINESS_LOGIC
    default_user_message: ClassVar[Optional[str]] = None

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        user_message: Optional[str] = None,
        error_code: Optional[str] = None,
        severity: Optional[ErrorSeverity] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context
        self.user_message = user_message or self.default_user_message or message
        if error_code:
            self.error_code = error_code
        if severity:
            self.severity = severity
        self.error_id = str(uuid.uuid4())

    def to_dict(self) -> Dict[str, Any]:
        """Structured form used in logs and trace metadata."""
        return {
            "error_id": self.error_id,
            "error_code": self.error_code,
            "message": self.message,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context.model_dump(mode="json") if self.context else None,
        }


class ValidationFailedError(BaseServiceError):
    """A request is malformed or misses a required parameter."""

    error_code = "VALIDATION_ERROR"
    http_status = 400
    severity = ErrorSeverity.LOW
    category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        field_errors: Optional[List[Dict[str, str]]] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message, context=context)
        self.field_errors = field_errors or []


class ResourceNotFoundError(BaseServiceError):
    """A product or order does not exist."""

    error_code = "RESOURCE_NOT_FOUND"
    http_status = 404
    severity = ErrorSeverity.LOW

    def __init__(self, resource_type: str, resource_id: str, context: Optional[ErrorContext] = None):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            context=context,
            user_message=f"{resource_type} not found",
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ProductsNotFoundError(BaseServiceError):
    """Some of the products referenced by an order do not exist."""

    error_code = "PRODUCTS_NOT_FOUND"
    http_status = 404
    severity = ErrorSeverity.LOW
    default_user_message = "Some products were not found"

    def __init__(self, missing_ids: List[str], context: Optional[ErrorContext] = None):
        super().__init__(f"Products not found: {', '.join(missing_ids)}", context=context)
        self.missing_ids = missing_ids


class ExternalServiceError(BaseServiceError):
    """A call to SES, S3, SNS or another managed service failed."""

    error_code = "EXTERNAL_SERVICE_ERROR"
    http_status = 502
    severity = ErrorSeverity.HIGH
    category = ErrorCategory.EXTERNAL_SERVICE
    default_user_message = "A required service is temporarily unavailable. Please try again later."

    def __init__(self, message: str, service_name: str, context: Optional[ErrorContext] = None):
        super().__init__(message, context=context)
        self.service_name = service_name


class DownstreamDeliveryError(ExternalServiceError):
    """A lifecycle notification was not accepted by the messaging layer."""

    error_code = "DOWNSTREAM_DELIVERY_FAILED"

    def __init__(self, message: str, topic: str, context: Optional[ErrorContext] = None):
        super().__init__(message, service_name=topic, context=context)
        self.topic = topic


class MalformedUploadError(BaseServiceError):
    """An uploaded invoice file cannot be imported; ``status`` is pushed to the client."""

    error_code = "MALFORMED_UPLOAD"
    category = ErrorCategory.VALIDATION

    def __init__(self, message: str, status: str, context: Optional[ErrorContext] = None):
        super().__init__(message, context=context, user_message=status)
        self.status = status


class TransactionTimeoutError(BaseServiceError):
    """An invoice transaction expired before its upload arrived."""

    error_code = "TRANSACTION_TIMEOUT"
    category = ErrorCategory.TIMEOUT
    default_user_message = "TIMEOUT"

    def __init__(self, transaction_id: str, context: Optional[ErrorContext] = None):
        super().__init__(f"Invoice transaction '{transaction_id}' timed out", context=context)
        self.transaction_id = transaction_id


def create_error_context(
    request_id: str,
    operation: str,
    resource_id: Optional[str] = None,
    **additional_data: Any,
) -> ErrorContext:
    return ErrorContext(
        request_id=request_id,
        operation=operation,
        resource_id=resource_id,
        additional_data=additional_data,
    )


@tracer.capture_method
def log_error_metrics(error: BaseServiceError) -> None:
    """Count the error by code and log it once with its context."""
    metrics.add_metric(name="ServiceError", unit=MetricUnit.Count, value=1)
    metrics.add_metric(name=f"{error.category.value.title().replace('_', '')}Error", unit=MetricUnit.Count, value=1)
    tracer.put_annotation("error_code", error.error_code)
    tracer.put_metadata("error", error.to_dict())

    log = logger.warning if error.http_status < 500 else logger.error
    log(error.message, extra={
        "error_id": error.error_id,
        "error_code": error.error_code,
        "severity": error.severity.value,
        "context": error.context.model_dump(mode="json") if error.context else None,
    })


def get_http_status_code(error: BaseServiceError) -> int:
    return error.http_status


def format_error_body(error: BaseServiceError) -> str:
    """Error bodies are a JSON-encoded string, e.g. ``"Order not found"``."""
    return json.dumps(error.user_message)

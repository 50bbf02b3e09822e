"""
Environment variable models for type-safe configuration.

Each Lambda function family reads its environment exactly once per cold start
through ``aws_lambda_env_modeler`` and hands the resulting model to the
components it builds.
"""

from typing import Annotated, Optional

from aws_lambda_env_modeler import get_environment_variables
from pydantic import BaseModel, Field


class CommonEnvVars(BaseModel):
    """Environment variables shared by every function."""

    AWS_REGION: Annotated[str, Field(
        default='us-east-1',
        description='AWS region for service deployment'
    )] = 'us-east-1'

    POWERTOOLS_SERVICE_NAME: Annotated[str, Field(
        default='ecommerce',
        description='Service name for AWS Powertools'
    )] = 'ecommerce'

    LOG_LEVEL: Annotated[str, Field(
        default='INFO',
        description='Log level for application logging',
        pattern=r'^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$'
    )] = 'INFO'


class ProductsEnvVars(CommonEnvVars):
    """Environment of the products API function."""

    PRODUCTS_TABLE_NAME: Annotated[str, Field(min_length=1, description='DynamoDB table holding products')]

    # Function invoked synchronously with every product lifecycle event
    PRODUCT_EVENTS_FUNCTION_NAME: Annotated[str, Field(min_length=1)]

    PRODUCT_EVENTS_EMAIL: Annotated[str, Field(
        default='products@ecommerce.example.com',
        description='Actor email recorded on product events when the request carries none'
    )] = 'products@ecommerce.example.com'


class OrdersEnvVars(CommonEnvVars):
    """Environment of the orders API function."""

    PRODUCTS_TABLE_NAME: Annotated[str, Field(min_length=1)]
    ORDERS_TABLE_NAME: Annotated[str, Field(min_length=1)]
    ORDER_EVENTS_TOPIC_ARN: Annotated[str, Field(min_length=1, description='SNS topic for order lifecycle events')]


class EventsEnvVars(CommonEnvVars):
    """Environment of the functions reading or writing the lifecycle event log."""

    EVENTS_TABLE_NAME: Annotated[str, Field(min_length=1)]

    EVENT_TTL_MINUTES: Annotated[int, Field(
        default=120,
        ge=1,
        description='Minutes an order or product event stays in the log'
    )] = 120

    INVOICE_EVENT_TTL_MINUTES: Annotated[int, Field(default=60, ge=1)] = 60


class OrderEmailsEnvVars(CommonEnvVars):
    """Environment of the functions sending order emails."""

    ORDER_EMAIL_SOURCE: Annotated[str, Field(min_length=3, description='Verified SES sender address')]

    ORDER_EMAIL_REPLY_TO: Annotated[Optional[str], Field(default=None)] = None


class InvoicesEnvVars(CommonEnvVars):
    """Environment of the invoice WebSocket and import functions."""

    INVOICES_TABLE_NAME: Annotated[str, Field(min_length=1)]
    INVOICE_BUCKET_NAME: Annotated[str, Field(min_length=3)]

    # wss://<api-id>.execute-api.<region>.amazonaws.com/<stage>
    INVOICE_WSAPI_ENDPOINT: Annotated[str, Field(min_length=1)]

    INVOICE_UPLOAD_URL_EXPIRES_SECONDS: Annotated[int, Field(default=300, ge=1, le=3600)] = 300

    INVOICE_TRANSACTION_TTL_SECONDS: Annotated[int, Field(default=120, ge=1)] = 120

    @property
    def connections_endpoint_url(self) -> str:
        """HTTPS endpoint of the API Gateway management API for the WebSocket stage."""
        endpoint = self.INVOICE_WSAPI_ENDPOINT
        for scheme in ('wss://', 'ws://'):
            if endpoint.startswith(scheme):
                endpoint = endpoint[len(scheme):]
        if not endpoint.startswith('https://'):
            endpoint = f'https://{endpoint}'
        return endpoint


class InvoiceEventsEnvVars(InvoicesEnvVars, EventsEnvVars):
    """Environment of the invoice table stream consumer and the sweeper."""


def get_products_env_vars() -> ProductsEnvVars:
    return get_environment_variables(model=ProductsEnvVars)


def get_orders_env_vars() -> OrdersEnvVars:
    return get_environment_variables(model=OrdersEnvVars)


def get_events_env_vars() -> EventsEnvVars:
    return get_environment_variables(model=EventsEnvVars)


def get_order_emails_env_vars() -> OrderEmailsEnvVars:
    return get_environment_variables(model=OrderEmailsEnvVars)


def get_invoices_env_vars() -> InvoicesEnvVars:
    return get_environment_variables(model=InvoicesEnvVars)


def get_invoice_events_env_vars() -> InvoiceEventsEnvVars:
    return get_environment_variables(model=InvoiceEventsEnvVars)

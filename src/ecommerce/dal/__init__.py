"""
Data Access Layer (DAL) for the e-commerce service.

One handler per table (or bucket), each built on the generic
``DynamoDBHandler`` so that error translation and metrics are uniform.
"""

from ecommerce.dal.dynamodb_handler import ConditionalCheckFailedError, DALError, DynamoDBHandler
from ecommerce.dal.events_db import EventsDbHandler
from ecommerce.dal.invoice_bucket import InvoiceBucket
from ecommerce.dal.invoices_db import InvoicesDbHandler
from ecommerce.dal.orders_db import OrdersDbHandler
from ecommerce.dal.products_db import ProductsDbHandler

__all__ = [
    'ConditionalCheckFailedError',
    'DALError',
    'DynamoDBHandler',
    'EventsDbHandler',
    'InvoiceBucket',
    'InvoicesDbHandler',
    'OrdersDbHandler',
    'ProductsDbHandler',
]

"""Business logic of the e-commerce service."""

from ecommerce.logic.event_correlator import EventCorrelator
from ecommerce.logic.invoice_workflow import InvoiceTransactionWorkflow
from ecommerce.logic.order_consumers import ConfirmationMailer, OrderEmailSender, OrderMailer, PaymentProcessor
from ecommerce.logic.order_workflow import OrderWorkflow
from ecommerce.logic.product_catalog import ProductCatalog

__all__ = [
    'ConfirmationMailer',
    'EventCorrelator',
    'InvoiceTransactionWorkflow',
    'OrderEmailSender',
    'OrderMailer',
    'OrderWorkflow',
    'PaymentProcessor',
    'ProductCatalog',
]

"""
Service Models Package

This package contains all Pydantic models used throughout the service,
including input validation models, output response models, and domain models.
"""

from .input import CreateOrderRequest, ProductRequest
from .output import CustomerEventView, TransactionStatusMessage, UploadTargetMessage
from .order import Billing, Order, OrderProduct, PaymentMethod, Shipping
from .product import Product
from .events import EventType, LifecycleEvent, Notification, OrderEvent, OrderEventEnvelope, ProductEvent
from .invoice import InvoiceFile, InvoiceRecord, InvoiceTransaction, InvoiceTransactionStatus

__all__ = [
    # Input models
    "CreateOrderRequest",
    "ProductRequest",

    # Output models
    "CustomerEventView",
    "TransactionStatusMessage",
    "UploadTargetMessage",

    # Domain models
    "Billing",
    "Order",
    "OrderProduct",
    "PaymentMethod",
    "Product",
    "Shipping",

    # Events
    "EventType",
    "LifecycleEvent",
    "Notification",
    "OrderEvent",
    "OrderEventEnvelope",
    "ProductEvent",

    # Invoices
    "InvoiceFile",
    "InvoiceRecord",
    "InvoiceTransaction",
    "InvoiceTransactionStatus",
]

"""
Invoice import models.

An invoice transaction is a short-lived record correlating an upload URL, the
WebSocket connection that asked for it and the upload that eventually lands in
the bucket. Its status only moves forward:

    URL_GENERATED -> INVOICE_RECEIVED -> INVOICE_PROCESSED
                                      -> INVOICE_ERROR
    URL_GENERATED -> (expired) TIMEOUT
"""

import time
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ecommerce.models.types import Money


class InvoiceTransactionStatus(str, Enum):
    URL_GENERATED = 'URL_GENERATED'
    INVOICE_RECEIVED = 'INVOICE_RECEIVED'
    INVOICE_PROCESSED = 'INVOICE_PROCESSED'
    INVOICE_ERROR = 'INVOICE_ERROR'
    TIMEOUT = 'TIMEOUT'


class InvoiceTransaction(BaseModel):
    """Invoice transaction as stored under the ``#transaction`` partition."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    transaction_id: str
    transaction_status: InvoiceTransactionStatus
    timestamp: Annotated[int, Field(description='Creation time in epoch milliseconds')]
    ttl: Annotated[int, Field(description='Expiration time in epoch seconds')]
    expires: Annotated[int, Field(description='Lifetime of the upload URL in seconds')]
    connection_id: str
    request_id: str
    endpoint: Optional[str] = None

    def is_expired(self, now: Optional[float] = None) -> bool:
        return self.ttl < (time.time() if now is None else now)


class InvoiceFile(BaseModel):
    """Content of an uploaded invoice file. Only the invoice number is mandatory."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    invoice_number: Annotated[str, Field(min_length=1)]
    customer_name: Optional[str] = None
    total_value: Optional[Money] = None
    product_id: Optional[str] = None
    quantity: Optional[int] = None


class InvoiceRecord(BaseModel):
    """Imported invoice, stored once per customer and invoice number."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    customer_name: str
    invoice_number: str
    total_value: Money = Decimal('0')
    product_id: Optional[str] = None
    quantity: Optional[int] = None
    transaction_id: str
    created_at: int

    @classmethod
    def from_file(cls, invoice: InvoiceFile, transaction_id: str) -> 'InvoiceRecord':
        return cls(
            customer_name=invoice.customer_name or 'unknown',
            invoice_number=invoice.invoice_number,
            total_value=invoice.total_value if invoice.total_value is not None else Decimal('0'),
            product_id=invoice.product_id,
            quantity=invoice.quantity,
            transaction_id=transaction_id,
            created_at=int(time.time() * 1000),
        )

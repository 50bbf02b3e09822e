"""
Output models for API responses and WebSocket pushes.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ecommerce.models.types import Money


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CustomerEventView(_CamelModel):
    """
    Flattened read model of a lifecycle event.

    Order events fill ``order_id`` and ``product_codes``; product events fill
    ``product_id`` and ``price``; invoice events fill ``transaction_id`` and
    ``product_id``. Unused fields are omitted from the response.
    """

    email: str
    created_at: int
    event_type: str
    request_id: Optional[str] = None
    order_id: Optional[str] = None
    product_codes: Optional[List[str]] = None
    product_id: Optional[str] = None
    price: Optional[Money] = None
    transaction_id: Optional[str] = None


class UploadTargetMessage(_CamelModel):
    """Pushed to the client once an upload URL was issued."""

    url: str
    expires: int
    transaction_id: str


class TransactionStatusMessage(BaseModel):
    """Pushed to the client on every invoice transaction status change."""

    key: str
    status: str

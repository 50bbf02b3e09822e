"""
DynamoDB access to the invoices table.

The table holds two kinds of items:

- invoice transactions under ``pk="#transaction"``, ``sk=<transactionId>``,
  removed by DynamoDB TTL a couple of minutes after creation;
- imported invoices under ``pk="#invoice_<customerName>"``, ``sk=<invoiceNumber>``.
"""

from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Attr, Key

from ecommerce.dal.dynamodb_handler import DynamoDBHandler
from ecommerce.handlers.utils.observability import logger, tracer
from ecommerce.models.invoice import InvoiceRecord, InvoiceTransaction, InvoiceTransactionStatus

TRANSACTION_PARTITION = '#transaction'
INVOICE_PARTITION_PREFIX = '#invoice_'


def is_transaction_item(item: Dict[str, Any]) -> bool:
    return item.get('pk') == TRANSACTION_PARTITION


def is_invoice_item(item: Dict[str, Any]) -> bool:
    return str(item.get('pk', '')).startswith(INVOICE_PARTITION_PREFIX)


def transaction_from_item(item: Dict[str, Any]) -> InvoiceTransaction:
    data = {key: value for key, value in item.items() if key not in ('pk', 'sk')}
    return InvoiceTransaction.model_validate({**data, 'transactionId': item['sk']})


def invoice_from_item(item: Dict[str, Any]) -> InvoiceRecord:
    data = {key: value for key, value in item.items() if key not in ('pk', 'sk')}
    customer_name = item['pk'][len(INVOICE_PARTITION_PREFIX):]
    return InvoiceRecord.model_validate({**data, 'customerName': customer_name, 'invoiceNumber': item['sk']})


class InvoicesDbHandler:
    """Invoices table handler."""

    def __init__(self, table_name: str, db: Optional[DynamoDBHandler] = None) -> None:
        self.table_name = table_name
        self.db = db or DynamoDBHandler(table_name)

    @tracer.capture_method
    def put_transaction(self, transaction: InvoiceTransaction) -> InvoiceTransaction:
        item = transaction.model_dump(by_alias=True, exclude={'transaction_id'})
        item['pk'] = TRANSACTION_PARTITION
        item['sk'] = transaction.transaction_id
        self.db.put_item(item)
        return transaction

    @tracer.capture_method
    def get_transaction(self, transaction_id: str) -> Optional[InvoiceTransaction]:
        item = self.db.get_item({'pk': TRANSACTION_PARTITION, 'sk': transaction_id}, consistent_read=True)
        return transaction_from_item(item) if item else None

    @tracer.capture_method
    def transition_status(
        self,
        transaction_id: str,
        status: InvoiceTransactionStatus,
        expected_status: Optional[InvoiceTransactionStatus] = None,
    ) -> InvoiceTransaction:
        """
        Set the status of a stored transaction.

        Args:
            transaction_id: Transaction to update
            status: New status
            expected_status: When given, the update only applies if the stored
                status still equals it

        Raises:
            ConditionalCheckFailedError: If the transaction is gone or its
                status differs from ``expected_status``
        """
        condition = Attr('pk').exists()
        if expected_status is not None:
            condition = condition & Attr('transactionStatus').eq(expected_status.value)

        attributes = self.db.update_item(
            key={'pk': TRANSACTION_PARTITION, 'sk': transaction_id},
            update_expression='SET transactionStatus = :status',
            expression_attribute_values={':status': status.value},
            condition_expression=condition,
        )
        logger.info('Invoice transaction status changed', extra={
            'transaction_id': transaction_id,
            'status': status.value,
        })
        return transaction_from_item(attributes)

    @tracer.capture_method
    def delete_transaction(self, transaction_id: str) -> Optional[InvoiceTransaction]:
        old_item = self.db.delete_item({'pk': TRANSACTION_PARTITION, 'sk': transaction_id})
        return transaction_from_item(old_item) if old_item else None

    @tracer.capture_method
    def list_transactions(self, connection_id: Optional[str] = None) -> List[InvoiceTransaction]:
        """Return stored transactions, optionally only those of one connection."""
        filter_expression = Attr('connectionId').eq(connection_id) if connection_id else None
        items = self.db.query_all(Key('pk').eq(TRANSACTION_PARTITION), filter_expression=filter_expression)
        return [transaction_from_item(item) for item in items]

    @tracer.capture_method
    def put_invoice(self, invoice: InvoiceRecord) -> InvoiceRecord:
        item = invoice.model_dump(by_alias=True, exclude={'customer_name', 'invoice_number'})
        item['pk'] = f'{INVOICE_PARTITION_PREFIX}{invoice.customer_name}'
        item['sk'] = invoice.invoice_number
        self.db.put_item(item)
        return invoice

    @tracer.capture_method
    def get_invoice(self, customer_name: str, invoice_number: str) -> Optional[InvoiceRecord]:
        item = self.db.get_item({'pk': f'{INVOICE_PARTITION_PREFIX}{customer_name}', 'sk': invoice_number})
        return invoice_from_item(item) if item else None

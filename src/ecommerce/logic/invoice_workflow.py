"""
Invoice import handshake over a WebSocket connection.

A client asks for an upload URL, uploads its invoice file there and is told
about every status change of the transaction on the same connection:

    URL_GENERATED -> INVOICE_RECEIVED -> INVOICE_PROCESSED
                                      -> INVOICE_ERROR
    URL_GENERATED -> TIMEOUT (transaction expired before the upload)

The connection is closed once the transaction reaches a terminal state.
Transactions are short-lived: a transaction past its ttl is treated as absent
and is eventually removed, either by DynamoDB TTL or by ``sweep_expired``.
"""

import json
import time
import uuid
from typing import Callable, List, Optional

from aws_lambda_powertools.metrics import MetricUnit
from pydantic import ValidationError

from ecommerce.dal.dynamodb_handler import ConditionalCheckFailedError
from ecommerce.dal.invoice_bucket import InvoiceBucket
from ecommerce.dal.invoices_db import InvoicesDbHandler
from ecommerce.events.connections import ConnectionNotifier
from ecommerce.handlers.utils.errors import (
    ExternalServiceError,
    MalformedUploadError,
    TransactionTimeoutError,
    create_error_context,
)
from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.models.invoice import InvoiceFile, InvoiceRecord, InvoiceTransaction, InvoiceTransactionStatus
from ecommerce.models.output import TransactionStatusMessage, UploadTargetMessage

NO_INVOICE_NUMBER_STATUS = 'ERROR: NO INVOICE NUMBER IN FILE'
INVALID_INVOICE_FILE_STATUS = 'ERROR: INVALID INVOICE FILE'

OPEN_STATUSES = (InvoiceTransactionStatus.URL_GENERATED, InvoiceTransactionStatus.INVOICE_RECEIVED)
FINAL_STATUSES = (InvoiceTransactionStatus.INVOICE_PROCESSED, InvoiceTransactionStatus.INVOICE_ERROR)


def parse_invoice_file(content: bytes) -> InvoiceFile:
    """
    Parse an uploaded invoice file.

    Raises:
        MalformedUploadError: If the content is not a JSON object, lacks the
            invoice number or has invalid fields
    """
    try:
        data = json.loads(content)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedUploadError(message=f'Invoice file is not JSON: {e}', status=INVALID_INVOICE_FILE_STATUS) from e

    if not isinstance(data, dict):
        raise MalformedUploadError(message='Invoice file is not a JSON object', status=INVALID_INVOICE_FILE_STATUS)
    if not data.get('invoiceNumber'):
        raise MalformedUploadError(message='Invoice file has no invoice number', status=NO_INVOICE_NUMBER_STATUS)

    try:
        return InvoiceFile.model_validate(data)
    except ValidationError as e:
        raise MalformedUploadError(message=f'Invalid invoice file: {e}', status=INVALID_INVOICE_FILE_STATUS) from e


class InvoiceTransactionWorkflow:
    """Drives invoice transactions from URL issuance to a terminal status."""

    def __init__(
        self,
        invoices_db: InvoicesDbHandler,
        bucket: InvoiceBucket,
        notifier: ConnectionNotifier,
        endpoint: str,
        url_expires_seconds: int = 300,
        transaction_ttl_seconds: int = 120,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the workflow.

        Args:
            invoices_db: Invoices table handler
            bucket: Bucket receiving the uploads
            notifier: Pushes status messages to the client connections
            endpoint: WebSocket endpoint recorded on each transaction
            url_expires_seconds: Lifetime of the upload URL
            transaction_ttl_seconds: Time a transaction waits for its upload
            clock: Time source in epoch seconds
        """
        self.invoices_db = invoices_db
        self.bucket = bucket
        self.notifier = notifier
        self.endpoint = endpoint
        self.url_expires_seconds = url_expires_seconds
        self.transaction_ttl_seconds = transaction_ttl_seconds
        self._clock = clock

    @tracer.capture_method
    def get_upload_target(self, connection_id: str, request_id: str) -> UploadTargetMessage:
        """Issue an upload URL, open a transaction for it and push both to the client."""
        transaction_id = str(uuid.uuid4())
        url = self.bucket.presign_upload(transaction_id, self.url_expires_seconds)

        now = self._clock()
        self.invoices_db.put_transaction(InvoiceTransaction(
            transaction_id=transaction_id,
            transaction_status=InvoiceTransactionStatus.URL_GENERATED,
            timestamp=int(now * 1000),
            ttl=int(now) + self.transaction_ttl_seconds,
            expires=self.url_expires_seconds,
            connection_id=connection_id,
            request_id=request_id,
            endpoint=self.endpoint,
        ))

        message = UploadTargetMessage(url=url, expires=self.url_expires_seconds, transaction_id=transaction_id)
        self.notifier.post(connection_id, message)

        metrics.add_metric(name='InvoiceUrlGenerated', unit=MetricUnit.Count, value=1)
        logger.info('Invoice upload target issued', extra={
            'transaction_id': transaction_id,
            'connection_id': connection_id,
        })
        return message

    @tracer.capture_method
    def on_upload_received(self, key: str, bucket_name: Optional[str] = None) -> Optional[InvoiceRecord]:
        """
        Import an uploaded invoice file.

        Args:
            key: Object key, which is the transaction id
            bucket_name: Bucket of the object, defaults to the invoice bucket

        Returns:
            The imported invoice, or None if the upload was rejected
        """
        transaction = self._get_live_transaction(key)

        if transaction is None:
            logger.info('Upload without a live transaction, importing without notifications', extra={'key': key})
        elif transaction.transaction_status != InvoiceTransactionStatus.URL_GENERATED:
            logger.info('Upload rejected, transaction already past URL_GENERATED', extra={
                'key': key,
                'status': transaction.transaction_status.value,
            })
            self._push_status(transaction, transaction.transaction_status.value)
            return None
        else:
            try:
                self.invoices_db.transition_status(
                    key,
                    InvoiceTransactionStatus.INVOICE_RECEIVED,
                    expected_status=InvoiceTransactionStatus.URL_GENERATED,
                )
            except ConditionalCheckFailedError:
                # another delivery of the same upload moved it first
                logger.info('Duplicate upload notification ignored', extra={'key': key})
                return None
            self._push_status(transaction, InvoiceTransactionStatus.INVOICE_RECEIVED.value)

        try:
            invoice = parse_invoice_file(self.bucket.read(key, bucket_name))
        except MalformedUploadError as e:
            metrics.add_metric(name='InvoiceRejected', unit=MetricUnit.Count, value=1)
            logger.warning('Invoice file rejected', extra={'key': key, 'reason': e.message})
            if transaction is not None:
                self._push_status(transaction, e.status)
                self._close_transaction(transaction, InvoiceTransactionStatus.INVOICE_ERROR)
            return None

        record = InvoiceRecord.from_file(invoice, transaction_id=key)
        self.invoices_db.put_invoice(record)
        self.bucket.delete(key, bucket_name)

        if transaction is not None:
            self._push_status(transaction, InvoiceTransactionStatus.INVOICE_PROCESSED.value)
            self._close_transaction(transaction, InvoiceTransactionStatus.INVOICE_PROCESSED)

        metrics.add_metric(name='InvoiceProcessed', unit=MetricUnit.Count, value=1)
        logger.info('Invoice imported', extra={
            'key': key,
            'invoice_number': record.invoice_number,
            'customer_name': record.customer_name,
        })
        return record

    @tracer.capture_method
    def on_transaction_expired(self, transaction: InvoiceTransaction) -> bool:
        """
        React to the removal of an expired transaction.

        Unless the transaction already reached a final status, the client is
        told about the timeout. The connection is closed in every case.

        Returns:
            True if a TIMEOUT notification was delivered
        """
        notified = False
        if transaction.transaction_status not in FINAL_STATUSES:
            error = TransactionTimeoutError(
                transaction.transaction_id,
                context=create_error_context(
                    transaction.request_id,
                    'on_transaction_expired',
                    transaction.transaction_id,
                    status=transaction.transaction_status.value,
                ),
            )
            metrics.add_metric(name='InvoiceTimeout', unit=MetricUnit.Count, value=1)
            logger.warning(error.message, extra={'error': error.to_dict()})
            notified = self._push_status(transaction, error.user_message)

        try:
            self.notifier.disconnect(transaction.connection_id)
        except ExternalServiceError:
            logger.warning('Could not close connection', extra={'connection_id': transaction.connection_id})
        return notified

    @tracer.capture_method
    def on_connection_closed(self, connection_id: str) -> int:
        """Remove the open transactions of a closed connection; returns how many were removed."""
        removed = 0
        for transaction in self.invoices_db.list_transactions(connection_id=connection_id):
            if transaction.transaction_status in OPEN_STATUSES:
                if self.invoices_db.delete_transaction(transaction.transaction_id) is not None:
                    removed += 1

        logger.info('Connection closed', extra={'connection_id': connection_id, 'removed_transactions': removed})
        return removed

    @tracer.capture_method
    def sweep_expired(self, now: Optional[float] = None) -> List[InvoiceTransaction]:
        """
        Delete transactions past their ttl and handle each as expired.

        A transaction is only handled by the caller whose delete removed it,
        so concurrent sweeps notify each timeout once.

        Returns:
            The removed transactions
        """
        now = self._clock() if now is None else now
        removed = []
        for transaction in self.invoices_db.list_transactions():
            if not transaction.is_expired(now):
                continue
            old = self.invoices_db.delete_transaction(transaction.transaction_id)
            if old is None:
                continue
            self.on_transaction_expired(old)
            removed.append(old)

        logger.info('Expired invoice transactions swept', extra={'removed': len(removed)})
        return removed

    def _get_live_transaction(self, transaction_id: str) -> Optional[InvoiceTransaction]:
        transaction = self.invoices_db.get_transaction(transaction_id)
        if transaction is not None and transaction.is_expired(self._clock()):
            logger.info('Transaction expired', extra={'transaction_id': transaction_id})
            return None
        return transaction

    def _push_status(self, transaction: InvoiceTransaction, status: str) -> bool:
        """Best-effort status push; a failed push never aborts the transaction."""
        message = TransactionStatusMessage(key=transaction.transaction_id, status=status)
        try:
            return self.notifier.post(transaction.connection_id, message)
        except ExternalServiceError:
            logger.warning('Status push failed', extra={
                'transaction_id': transaction.transaction_id,
                'status': status,
            })
            return False

    def _close_transaction(self, transaction: InvoiceTransaction, status: InvoiceTransactionStatus) -> None:
        """Record the final status, then close the connection even if the transaction is already gone."""
        try:
            self.invoices_db.transition_status(transaction.transaction_id, status)
        except ConditionalCheckFailedError:
            logger.info('Transaction removed before its final status was stored', extra={
                'transaction_id': transaction.transaction_id,
                'status': status.value,
            })
        self.notifier.disconnect(transaction.connection_id)

"""
Integration tests for the invoice import handshake.

The invoices table and bucket are mocked with moto; WebSocket pushes are
captured by a recording notifier.
"""

import json

import boto3
import pytest

from ecommerce.dal.invoice_bucket import InvoiceBucket
from ecommerce.dal.invoices_db import InvoicesDbHandler
from ecommerce.logic.invoice_workflow import (
    INVALID_INVOICE_FILE_STATUS,
    NO_INVOICE_NUMBER_STATUS,
    InvoiceTransactionWorkflow,
)
from ecommerce.models.invoice import InvoiceTransactionStatus

from conftest import INVOICE_BUCKET, INVOICE_WSAPI_ENDPOINT, INVOICES_TABLE, RecordingNotifier

CONNECTION = "conn-1"


class Clock:
    def __init__(self, now: float = 1700000000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class StaleListing(InvoicesDbHandler):
    """Returns the transactions as they were when the snapshot was taken."""

    def __init__(self, table_name, snapshot):
        super().__init__(table_name)
        self.snapshot = snapshot

    def list_transactions(self, connection_id=None):
        return list(self.snapshot)


class RemovingNotifier(RecordingNotifier):
    """Deletes the transaction right after INVOICE_RECEIVED is pushed, as a sweep running in between would."""

    def __init__(self, invoices_db):
        super().__init__()
        self.invoices_db = invoices_db

    def post(self, connection_id, payload):
        sent = super().post(connection_id, payload)
        if sent and self.posts[-1][1].get("status") == "INVOICE_RECEIVED":
            self.invoices_db.delete_transaction(self.posts[-1][1]["key"])
        return sent


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def workflow(invoices_table, invoice_bucket, notifier, clock):
    return InvoiceTransactionWorkflow(
        invoices_db=InvoicesDbHandler(INVOICES_TABLE),
        bucket=InvoiceBucket(INVOICE_BUCKET),
        notifier=notifier,
        endpoint=INVOICE_WSAPI_ENDPOINT,
        url_expires_seconds=300,
        transaction_ttl_seconds=120,
        clock=clock,
    )


def _upload(key: str, content) -> None:
    body = content if isinstance(content, bytes) else json.dumps(content).encode("utf-8")
    boto3.client("s3", region_name="us-east-1").put_object(Bucket=INVOICE_BUCKET, Key=key, Body=body)


def _object_keys():
    response = boto3.client("s3", region_name="us-east-1").list_objects_v2(Bucket=INVOICE_BUCKET)
    return [item["Key"] for item in response.get("Contents", [])]


@pytest.mark.integration
class TestUploadTarget:
    """Integration tests for issuing upload targets."""

    def test_issue_upload_target(self, workflow, notifier, clock):
        """Test that the client receives the URL, its lifetime and the transaction id."""
        message = workflow.get_upload_target(CONNECTION, request_id="req-1")

        assert message.expires == 300
        assert message.url.startswith("https://")
        assert notifier.posts == [(CONNECTION, {
            "url": message.url,
            "expires": 300,
            "transactionId": message.transaction_id,
        })]

        transaction = workflow.invoices_db.get_transaction(message.transaction_id)
        assert transaction.transaction_status == InvoiceTransactionStatus.URL_GENERATED
        assert transaction.ttl == int(clock.now) + 120
        assert transaction.connection_id == CONNECTION
        assert transaction.request_id == "req-1"
        assert transaction.endpoint == INVOICE_WSAPI_ENDPOINT

    def test_each_request_gets_its_own_transaction(self, workflow):
        first = workflow.get_upload_target(CONNECTION, "req-1")
        second = workflow.get_upload_target(CONNECTION, "req-2")

        assert first.transaction_id != second.transaction_id


@pytest.mark.integration
class TestUploadReceived:
    """Integration tests for processing uploaded invoice files."""

    def test_valid_invoice_processed(self, workflow, notifier):
        """Test the full round trip of a valid upload."""
        transaction_id = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        _upload(transaction_id, {"invoiceNumber": "INV-1", "customerName": "ACME", "totalValue": 100, "quantity": 2})

        record = workflow.on_upload_received(transaction_id)

        assert record.invoice_number == "INV-1"
        assert record.transaction_id == transaction_id
        assert notifier.statuses(CONNECTION) == ["INVOICE_RECEIVED", "INVOICE_PROCESSED"]
        assert notifier.posts[-1][1] == {"key": transaction_id, "status": "INVOICE_PROCESSED"}
        assert notifier.disconnects == [CONNECTION]
        assert workflow.invoices_db.get_invoice("ACME", "INV-1") == record
        assert workflow.invoices_db.get_transaction(transaction_id).transaction_status == InvoiceTransactionStatus.INVOICE_PROCESSED
        assert _object_keys() == []

    def test_missing_invoice_number(self, workflow, notifier, invoices_table):
        """Test the documented example: no invoice number means an error status and a closed connection."""
        transaction_id = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        _upload(transaction_id, {"customerName": "ACME"})

        assert workflow.on_upload_received(transaction_id) is None

        assert notifier.statuses(CONNECTION) == ["INVOICE_RECEIVED", NO_INVOICE_NUMBER_STATUS]
        assert notifier.disconnects == [CONNECTION]
        assert workflow.invoices_db.get_transaction(transaction_id).transaction_status == InvoiceTransactionStatus.INVOICE_ERROR
        assert not [item for item in invoices_table.scan()["Items"] if item["pk"].startswith("#invoice_")]

    def test_invalid_file(self, workflow, notifier):
        transaction_id = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        _upload(transaction_id, b"%PDF-1.4 not json")

        assert workflow.on_upload_received(transaction_id) is None

        assert notifier.statuses(CONNECTION)[-1] == INVALID_INVOICE_FILE_STATUS
        assert notifier.disconnects == [CONNECTION]

    def test_duplicate_upload_rejected(self, workflow, notifier):
        """Test that a second upload for a finished transaction only reports its status."""
        transaction_id = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        _upload(transaction_id, {"invoiceNumber": "INV-1", "customerName": "ACME"})
        workflow.on_upload_received(transaction_id)
        _upload(transaction_id, {"invoiceNumber": "INV-2", "customerName": "ACME"})

        assert workflow.on_upload_received(transaction_id) is None

        assert notifier.statuses(CONNECTION) == ["INVOICE_RECEIVED", "INVOICE_PROCESSED", "INVOICE_PROCESSED"]
        assert workflow.invoices_db.get_invoice("ACME", "INV-2") is None

    def test_concurrent_delivery_of_same_upload(self, workflow, notifier):
        """Test that a notification losing the race for URL_GENERATED does nothing."""
        transaction_id = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        _upload(transaction_id, {"invoiceNumber": "INV-1", "customerName": "ACME"})
        stale = workflow.invoices_db.get_transaction(transaction_id)
        workflow.invoices_db.transition_status(transaction_id, InvoiceTransactionStatus.INVOICE_RECEIVED)
        workflow._get_live_transaction = lambda key: stale

        assert workflow.on_upload_received(transaction_id) is None
        assert notifier.statuses(CONNECTION) == []
        assert _object_keys() == [transaction_id]

    def test_upload_without_transaction(self, workflow, notifier):
        """Test that an uncorrelated upload is imported without notifications."""
        _upload("orphan-key", {"invoiceNumber": "INV-9", "customerName": "ACME"})

        record = workflow.on_upload_received("orphan-key")

        assert record.invoice_number == "INV-9"
        assert notifier.posts == []
        assert notifier.disconnects == []

    def test_upload_after_expiry_is_uncorrelated(self, workflow, notifier, clock):
        """Test that an expired transaction still stored is treated as absent."""
        transaction_id = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        clock.now += 121
        _upload(transaction_id, {"invoiceNumber": "INV-1", "customerName": "ACME"})

        assert workflow.on_upload_received(transaction_id) is not None
        assert notifier.statuses(CONNECTION) == []

    def test_rejected_file_of_removed_transaction_still_disconnects(self, workflow):
        """Test that the connection is closed when the transaction disappears before INVOICE_ERROR is stored."""
        notifier = workflow.notifier = RemovingNotifier(workflow.invoices_db)
        transaction_id = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        _upload(transaction_id, {"customerName": "ACME"})

        assert workflow.on_upload_received(transaction_id) is None

        assert notifier.statuses(CONNECTION) == ["INVOICE_RECEIVED", NO_INVOICE_NUMBER_STATUS]
        assert notifier.disconnects == [CONNECTION]
        assert workflow.invoices_db.get_transaction(transaction_id) is None

    def test_processed_file_of_removed_transaction_still_disconnects(self, workflow):
        notifier = workflow.notifier = RemovingNotifier(workflow.invoices_db)
        transaction_id = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        _upload(transaction_id, {"invoiceNumber": "INV-1", "customerName": "ACME"})

        record = workflow.on_upload_received(transaction_id)

        assert record.invoice_number == "INV-1"
        assert notifier.statuses(CONNECTION) == ["INVOICE_RECEIVED", "INVOICE_PROCESSED"]
        assert notifier.disconnects == [CONNECTION]

    def test_failed_push_does_not_abort_import(self, workflow, notifier):
        transaction_id = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        notifier.gone.add(CONNECTION)
        _upload(transaction_id, {"invoiceNumber": "INV-1", "customerName": "ACME"})

        assert workflow.on_upload_received(transaction_id) is not None
        assert workflow.invoices_db.get_invoice("ACME", "INV-1") is not None


@pytest.mark.integration
class TestExpiry:
    """Integration tests for timeouts, sweeps and closed connections."""

    def test_timeout_example(self, workflow, notifier, clock):
        """Test the documented example: no upload within the ttl reports TIMEOUT and closes the connection."""
        transaction_id = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        clock.now += 121

        removed = workflow.sweep_expired()

        assert [transaction.transaction_id for transaction in removed] == [transaction_id]
        assert notifier.posts[-1] == (CONNECTION, {"key": transaction_id, "status": "TIMEOUT"})
        assert notifier.disconnects == [CONNECTION]
        assert workflow.invoices_db.get_transaction(transaction_id) is None

    def test_sweep_keeps_live_transactions(self, workflow, clock):
        transaction_id = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        clock.now += 60

        assert workflow.sweep_expired() == []
        assert workflow.invoices_db.get_transaction(transaction_id) is not None

    def test_timeout_notified_exactly_once(self, workflow, notifier, clock):
        """Test that overlapping sweeps notify each expired transaction once."""
        transaction_id = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        clock.now += 121
        snapshot = workflow.invoices_db.list_transactions()

        workflow.sweep_expired()
        workflow.invoices_db = StaleListing(INVOICES_TABLE, snapshot)
        second = workflow.sweep_expired()

        assert second == []
        assert notifier.statuses(CONNECTION) == ["TIMEOUT"]

    def test_processed_transaction_expiry_only_disconnects(self, workflow, notifier):
        transaction_id = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        _upload(transaction_id, {"invoiceNumber": "INV-1", "customerName": "ACME"})
        workflow.on_upload_received(transaction_id)
        processed = workflow.invoices_db.get_transaction(transaction_id)

        assert workflow.on_transaction_expired(processed) is False
        assert "TIMEOUT" not in notifier.statuses(CONNECTION)

    def test_rejected_transaction_expiry_only_disconnects(self, workflow, notifier, clock):
        """Test that a transaction that already reported its error is not reported as TIMEOUT too."""
        transaction_id = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        _upload(transaction_id, {"customerName": "ACME"})
        workflow.on_upload_received(transaction_id)
        clock.now += 121

        removed = workflow.sweep_expired()

        assert [transaction.transaction_status for transaction in removed] == [InvoiceTransactionStatus.INVOICE_ERROR]
        assert notifier.statuses(CONNECTION) == ["INVOICE_RECEIVED", NO_INVOICE_NUMBER_STATUS]
        assert notifier.disconnects == [CONNECTION, CONNECTION]

    def test_expiry_with_gone_connection(self, workflow, notifier, clock):
        transaction_id = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        transaction = workflow.invoices_db.get_transaction(transaction_id)
        notifier.gone.add(CONNECTION)

        assert workflow.on_transaction_expired(transaction) is False

    def test_connection_closed_removes_open_transactions(self, workflow, notifier):
        """Test that dropping a connection removes only its open transactions, silently."""
        mine = workflow.get_upload_target(CONNECTION, "req-1").transaction_id
        other = workflow.get_upload_target("conn-2", "req-2").transaction_id
        notifier.posts.clear()

        assert workflow.on_connection_closed(CONNECTION) == 1

        assert workflow.invoices_db.get_transaction(mine) is None
        assert workflow.invoices_db.get_transaction(other) is not None
        assert notifier.posts == []
        assert notifier.disconnects == []

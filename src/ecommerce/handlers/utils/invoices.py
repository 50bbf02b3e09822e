"""Construction of the invoice workflow shared by the invoice functions."""

from ecommerce.dal.invoice_bucket import InvoiceBucket
from ecommerce.dal.invoices_db import InvoicesDbHandler
from ecommerce.events.connections import ConnectionNotifier
from ecommerce.handlers.models.env_vars import InvoicesEnvVars
from ecommerce.logic.invoice_workflow import InvoiceTransactionWorkflow


def build_invoice_workflow(env_vars: InvoicesEnvVars) -> InvoiceTransactionWorkflow:
    return InvoiceTransactionWorkflow(
        invoices_db=InvoicesDbHandler(env_vars.INVOICES_TABLE_NAME),
        bucket=InvoiceBucket(env_vars.INVOICE_BUCKET_NAME, region_name=env_vars.AWS_REGION),
        notifier=ConnectionNotifier(env_vars.connections_endpoint_url, region_name=env_vars.AWS_REGION),
        endpoint=env_vars.INVOICE_WSAPI_ENDPOINT,
        url_expires_seconds=env_vars.INVOICE_UPLOAD_URL_EXPIRES_SECONDS,
        transaction_ttl_seconds=env_vars.INVOICE_TRANSACTION_TTL_SECONDS,
    )

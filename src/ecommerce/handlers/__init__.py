"""
AWS Lambda Handlers Module.

One module per Lambda function; each exposes ``lambda_handler`` and builds its
components once per execution environment.

REST API handlers (API Gateway proxy events):
- products_handler: product catalog CRUD
- orders_handler: order creation, listing and deletion
- order_events_fetch_handler: per-customer lifecycle event queries

Event handlers:
- product_events_handler: product events, invoked synchronously
- order_events_handler: order events from SNS into the event log
- order_emails_handler: order emails from SNS
- order_payments_handler: payment intents from SNS (ORDER_CREATED only)
- order_confirmations_handler: order confirmations from SQS, in batches

Invoice import handlers:
- invoice_connection_handler: WebSocket routes
- invoice_import_handler: S3 uploads
- invoice_events_handler: invoices table stream
- invoice_sweeper_handler: scheduled expiry sweep
"""

"""
Powertools logger, tracer and metrics shared by every e-commerce function.

All three are configured through the standard Powertools environment variables
(``POWERTOOLS_SERVICE_NAME``, ``POWERTOOLS_LOG_LEVEL``,
``POWERTOOLS_TRACE_DISABLED``), except the metrics namespace which is fixed
below.
"""

from aws_lambda_powertools.logging import Logger
from aws_lambda_powertools.metrics import Metrics
from aws_lambda_powertools.tracing import Tracer

# Namespace of the business metrics (OrderCreated, InvoiceProcessed, ...)
METRICS_NAMESPACE = 'ECommerce'

# Structured JSON logs, timestamps in UTC
logger: Logger = Logger(utc=True)

# X-Ray segments per handler and per captured method
tracer: Tracer = Tracer()

# Embedded metric format, flushed by ``log_metrics`` at the end of each invocation
metrics = Metrics(namespace=METRICS_NAMESPACE)

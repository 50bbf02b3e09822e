"""
DynamoDB access to the lifecycle event log.

Entries are immutable and removed by DynamoDB TTL. The ``emailIdx`` global
secondary index (``email`` + ``sk``) answers per-customer queries.
"""

from typing import List, Optional

from boto3.dynamodb.conditions import Key

from ecommerce.dal.dynamodb_handler import DynamoDBHandler
from ecommerce.handlers.utils.observability import tracer
from ecommerce.models.events import LifecycleEvent

EMAIL_INDEX_NAME = 'emailIdx'


class EventsDbHandler:
    """Lifecycle event log handler."""

    def __init__(self, table_name: str, db: Optional[DynamoDBHandler] = None) -> None:
        self.table_name = table_name
        self.db = db or DynamoDBHandler(table_name)

    @tracer.capture_method
    def put_event(self, event: LifecycleEvent) -> LifecycleEvent:
        self.db.put_item(event.model_dump(by_alias=True))
        return event

    @tracer.capture_method
    def query_by_email(self, email: str, sort_key_prefix: str) -> List[LifecycleEvent]:
        """
        Return every stored event of a customer whose sort key starts with the prefix.

        Items already past their ttl but not yet removed by DynamoDB are
        included; callers filter them.
        """
        key_condition = Key('email').eq(email) & Key('sk').begins_with(sort_key_prefix)
        return [
            LifecycleEvent.model_validate(item)
            for item in self.db.query_all(key_condition, index_name=EMAIL_INDEX_NAME)
        ]

"""
Pushes to live WebSocket connections through the API Gateway management API.

A client that went away is an expected condition, not an error: ``post`` and
``disconnect`` return False for it.
"""

import json
from typing import Any, Optional, Union

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

from ecommerce.handlers.utils.errors import ExternalServiceError
from ecommerce.handlers.utils.observability import logger, tracer


def _is_gone(error: ClientError) -> bool:
    return error.response.get('Error', {}).get('Code') in ('GoneException', '410')


class ConnectionNotifier:
    """Posts messages to and closes WebSocket connections."""

    def __init__(self, endpoint_url: str, region_name: Optional[str] = None, client: Any = None) -> None:
        if client is None:
            client_kwargs = {'endpoint_url': endpoint_url}
            if region_name:
                client_kwargs['region_name'] = region_name
            client = boto3.client('apigatewaymanagementapi', **client_kwargs)
        self.client = client

    @tracer.capture_method
    def post(self, connection_id: str, payload: Union[BaseModel, dict, str]) -> bool:
        """
        Send a JSON message to a connection.

        Args:
            connection_id: Target connection
            payload: Model (dumped with camelCase names), dict or plain string

        Returns:
            False if the connection no longer exists, True otherwise

        Raises:
            ExternalServiceError: On any other API Gateway failure
        """
        if isinstance(payload, BaseModel):
            data = payload.model_dump_json(by_alias=True)
        else:
            data = json.dumps(payload)

        try:
            self.client.post_to_connection(ConnectionId=connection_id, Data=data.encode('utf-8'))
        except ClientError as e:
            if _is_gone(e):
                logger.info('Connection is gone', extra={'connection_id': connection_id})
                return False
            logger.error('Failed to post to connection', extra={'connection_id': connection_id, 'error': str(e)})
            raise ExternalServiceError(message=f'Cannot post to connection: {e}', service_name='ApiGatewayManagementApi') from e
        except BotoCoreError as e:
            raise ExternalServiceError(message=f'Cannot post to connection: {e}', service_name='ApiGatewayManagementApi') from e

        logger.debug('Message posted', extra={'connection_id': connection_id})
        return True

    @tracer.capture_method
    def disconnect(self, connection_id: str) -> bool:
        """Close a connection; returns False if it was already gone."""
        try:
            self.client.delete_connection(ConnectionId=connection_id)
        except ClientError as e:
            if _is_gone(e):
                return False
            logger.error('Failed to close connection', extra={'connection_id': connection_id, 'error': str(e)})
            raise ExternalServiceError(message=f'Cannot close connection: {e}', service_name='ApiGatewayManagementApi') from e
        except BotoCoreError as e:
            raise ExternalServiceError(message=f'Cannot close connection: {e}', service_name='ApiGatewayManagementApi') from e
        return True

"""S3 bucket receiving uploaded invoice files."""

from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ecommerce.handlers.utils.errors import ExternalServiceError
from ecommerce.handlers.utils.observability import logger, tracer


class InvoiceBucket:
    """Presigned uploads, reads and deletes on the invoice bucket."""

    def __init__(self, bucket_name: str, region_name: Optional[str] = None) -> None:
        self.bucket_name = bucket_name
        self.s3 = boto3.client('s3', region_name=region_name) if region_name else boto3.client('s3')

    @tracer.capture_method
    def presign_upload(self, key: str, expires_in: int) -> str:
        """
        Create a URL the client can PUT the invoice file to.

        Args:
            key: Object key, the invoice transaction id
            expires_in: URL lifetime in seconds

        Returns:
            Presigned ``put_object`` URL
        """
        try:
            return self.s3.generate_presigned_url(
                ClientMethod='put_object',
                Params={'Bucket': self.bucket_name, 'Key': key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error('Failed to presign invoice upload', extra={'key': key, 'error': str(e)})
            raise ExternalServiceError(message=f'Cannot presign upload: {e}', service_name='S3') from e

    @tracer.capture_method
    def read(self, key: str, bucket_name: Optional[str] = None) -> bytes:
        try:
            response = self.s3.get_object(Bucket=bucket_name or self.bucket_name, Key=key)
            return response['Body'].read()
        except (ClientError, BotoCoreError) as e:
            logger.error('Failed to read invoice file', extra={'key': key, 'error': str(e)})
            raise ExternalServiceError(message=f'Cannot read invoice file: {e}', service_name='S3') from e

    @tracer.capture_method
    def delete(self, key: str, bucket_name: Optional[str] = None) -> None:
        try:
            self.s3.delete_object(Bucket=bucket_name or self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error('Failed to delete invoice file', extra={'key': key, 'error': str(e)})
            raise ExternalServiceError(message=f'Cannot delete invoice file: {e}', service_name='S3') from e

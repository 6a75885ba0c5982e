"""
S3 backed object storage.
"""

import os
import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv

from expense_processor.storage.base import ObjectStorage

load_dotenv()

logger = logging.getLogger(__name__)


class S3Storage(ObjectStorage):
    """Reads source emails and writes processed artifacts through boto3."""

    def __init__(self, client=None, region: Optional[str] = None):
        self.region = region or os.getenv('AWS_REGION')
        if client is None:
            session = boto3.Session()
            client = session.client('s3', region_name=self.region) if self.region else session.client('s3')
        self.client = client

    def get_object(self, bucket: str, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=bucket, Key=key)
            content = response['Body'].read()
            logger.info(f"Read s3://{bucket}/{key} ({len(content)} bytes)")
            return content
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code')
            logger.error(f"Failed to read s3://{bucket}/{key}: {code}")
            raise

    def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        try:
            self.client.put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                ContentLength=len(body),
            )
            logger.info(f"Wrote s3://{bucket}/{key} ({len(body)} bytes, {content_type})")
        except ClientError as e:
            logger.error(f"Failed to write s3://{bucket}/{key}: {e}")
            raise

    def health_check(self, bucket: str) -> bool:
        try:
            self.client.head_bucket(Bucket=bucket)
            return True
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 health check failed for bucket {bucket}: {e}")
            return False

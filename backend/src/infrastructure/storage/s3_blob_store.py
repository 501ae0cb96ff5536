"""S3 blob store - BlobStorePort implementation using boto3.

Works with AWS S3, MinIO and other S3-compatible services. Blobs are stored
under ``{prefix}{file_id}``.
"""

import logging
from typing import BinaryIO, Iterator, Optional

import boto3
from botocore.exceptions import ClientError, BotoCoreError, NoCredentialsError

from .blob_store_port import BlobStorePort, BlobStoreError, BlobDeleteResult, BlobInfo

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


class S3BlobStore(BlobStorePort):
    """S3-compatible blob store.

    Example:
        store = S3BlobStore(
            endpoint_url="http://localhost:9000",
            access_key="minioadmin",
            secret_key="minioadmin",
            bucket_name="fileshare-uploads",
        )
    """

    def __init__(
        self,
        endpoint_url: Optional[str],
        access_key: str,
        secret_key: str,
        bucket_name: str,
        region: str = "us-east-1",
        prefix: str = "",
    ):
        """Initialize S3 blob store.

        Args:
            endpoint_url: S3 endpoint URL (None for AWS S3, URL for MinIO)
            access_key: S3 access key ID
            secret_key: S3 secret access key
            bucket_name: S3 bucket name
            region: AWS region (default: 'us-east-1')
            prefix: Key prefix for all blobs

        Raises:
            BlobStoreError: If S3 client initialization fails
        """
        try:
            self.s3_client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region,
            )
        except NoCredentialsError as e:
            raise BlobStoreError(f"Invalid S3 credentials: {e}")
        except (BotoCoreError, ValueError) as e:
            raise BlobStoreError(f"Failed to initialize S3 client: {e}")

        self.bucket_name = bucket_name
        self.prefix = prefix

        logger.info(
            f"Initialized S3 blob store: bucket={bucket_name}, "
            f"endpoint={endpoint_url or 'AWS S3'}, region={region}"
        )

    def _key(self, blob_id: str) -> str:
        return f"{self.prefix}{blob_id}"

    @staticmethod
    def _error_code(e: ClientError) -> str:
        return e.response.get("Error", {}).get("Code", "Unknown")

    def delete_blob(self, blob_id: str) -> BlobDeleteResult:
        key = self._key(blob_id)
        try:
            # delete_object succeeds on missing keys, so HEAD first to report absence
            self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if self._error_code(e) in _NOT_FOUND_CODES:
                logger.debug(f"Blob already absent: key={key}")
                return BlobDeleteResult.NOT_FOUND
            raise BlobStoreError(f"Failed to inspect blob {key}: {self._error_code(e)}") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"Failed to inspect blob {key}: {e}") from e

        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            raise BlobStoreError(f"Failed to delete blob {key}: {self._error_code(e)}") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"Failed to delete blob {key}: {e}") from e

        logger.debug(f"Deleted blob: key={key}")
        return BlobDeleteResult.DELETED

    def read_blob(self, blob_id: str) -> BinaryIO:
        key = self._key(blob_id)
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if self._error_code(e) in _NOT_FOUND_CODES:
                raise FileNotFoundError(f"Blob not found: {key}")
            raise BlobStoreError(f"Failed to read blob {key}: {self._error_code(e)}") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"Failed to read blob {key}: {e}") from e
        return response["Body"]

    def list_blobs(self, modified_before: int) -> Iterator[BlobInfo]:
        paginator = self.s3_client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=self.prefix):
                for obj in page.get("Contents", []):
                    modified_at = int(obj["LastModified"].timestamp())
                    if modified_at >= modified_before:
                        continue
                    yield BlobInfo(
                        blob_id=obj["Key"][len(self.prefix):],
                        size_bytes=obj["Size"],
                        modified_at=modified_at,
                    )
        except ClientError as e:
            raise BlobStoreError(f"Failed to list blobs: {self._error_code(e)}") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"Failed to list blobs: {e}") from e

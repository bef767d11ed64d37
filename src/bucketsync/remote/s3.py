"""boto3-backed implementation of the object store interface."""

import asyncio
import functools
from typing import Any, BinaryIO, Callable, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from ..config.schema import StoreInstance
from ..errors import TransientStoreError
from .base import ListObjectsPage, ObjectStore, RemoteObject


# botocore failures that are worth one retry
_TRANSIENT_BOTO_ERRORS = (
    EndpointConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
    ConnectionClosedError,
)

_TRANSIENT_STATUS_CODES = {500, 502, 503, 504}


class S3ObjectStore(ObjectStore):
    """Object store for any S3-compatible endpoint."""

    def __init__(self, client: Any, endpoint: str = ""):
        """Initialize the store around an existing boto3 S3 client.

        Args:
            client: boto3 S3 client
            endpoint: Endpoint URL the client talks to
        """
        super().__init__(endpoint)
        self.client = client

    @classmethod
    def from_instance(cls, instance: StoreInstance) -> "S3ObjectStore":
        """Build a client from a persisted store instance record."""
        session = boto3.session.Session(
            aws_access_key_id=instance.access_key_id,
            aws_secret_access_key=instance.secret_access_key.get_secret_value(),
            region_name=instance.region,
        )
        client = session.client(
            "s3",
            endpoint_url=instance.endpoint_url or None,
            config=Config(retries={"max_attempts": 3, "mode": "standard"}),
        )
        return cls(client, endpoint=instance.endpoint_url)

    async def _call(self, func: Callable, *args, **kwargs):
        """Run a blocking boto3 call in the default executor."""
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
        except _TRANSIENT_BOTO_ERRORS as e:
            raise TransientStoreError(str(e)) from e
        except ClientError as e:
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if status in _TRANSIENT_STATUS_CODES:
                raise TransientStoreError(str(e)) from e
            raise

    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        continuation_token: Optional[str] = None
    ) -> ListObjectsPage:
        params = {"Bucket": bucket, "Prefix": prefix}
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        response = await self._call(self.client.list_objects_v2, **params)

        objects = [
            RemoteObject(
                key=item["Key"],
                size=item.get("Size"),
                last_modified=item.get("LastModified"),
            )
            for item in response.get("Contents", [])
            if "Key" in item
        ]

        page = ListObjectsPage(
            objects=objects,
            is_truncated=bool(response.get("IsTruncated")),
            next_continuation_token=response.get("NextContinuationToken"),
        )

        self.logger.debug(
            "Retrieved listing page",
            bucket=bucket,
            prefix=prefix,
            objects=len(objects),
            is_truncated=page.is_truncated
        )
        return page

    async def upload(
        self,
        bucket: str,
        key: str,
        source: BinaryIO,
        content_type: Optional[str] = None
    ) -> None:
        extra_args = {"ContentType": content_type} if content_type else None
        await self._call(self.client.upload_fileobj, source, bucket, key, ExtraArgs=extra_args)

    async def download(self, bucket: str, key: str, sink: BinaryIO) -> None:
        await self._call(self.client.download_fileobj, bucket, key, sink)

    async def copy_object(self, bucket: str, source_key: str, target_key: str) -> None:
        # Managed copy switches to multipart above the 5 GB single-request limit
        await self._call(
            self.client.copy,
            {"Bucket": bucket, "Key": source_key},
            bucket,
            target_key,
        )

    async def delete_object(self, bucket: str, key: str) -> None:
        await self._call(self.client.delete_object, Bucket=bucket, Key=key)

    async def list_buckets(self) -> List[str]:
        response = await self._call(self.client.list_buckets)
        return [bucket["Name"] for bucket in response.get("Buckets", []) if "Name" in bucket]


"""S3 (and S3-compatible) backend using boto3.

Credentials come from the usual boto3 chain: environment variables,
~/.aws/credentials, or an instance profile:
    AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_DEFAULT_REGION
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Any, Optional

from ..models import Krate, StorageLocation
from .base import BackendError, KrateNotFound, StorageBackend

logger = logging.getLogger("cargo_fetcher.backends.s3")

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}
_EXISTS_CODES = {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}


class S3Backend(StorageBackend):
    """Archives stored as ``<prefix><local-id>`` objects in one bucket.

    Args:
        loc: Parsed storage location (bucket, prefix, region, endpoint).
    """

    def __init__(self, loc: StorageLocation) -> None:
        if not loc.bucket:
            raise ValueError("S3 backend requires a bucket")
        self.bucket = loc.bucket
        self.prefix = loc.prefix
        self._region = loc.region or os.environ.get("AWS_DEFAULT_REGION", "us-east-1")
        self._endpoint = loc.endpoint
        self._client_obj: Optional[Any] = None
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "s3"

    def _client(self) -> Any:
        """Create (once) the boto3 S3 client.

        Returns:
            boto3 S3 client.

        Raises:
            RuntimeError: If boto3 is not installed.
        """
        with self._lock:
            if self._client_obj is None:
                try:
                    import boto3
                except ImportError:
                    raise RuntimeError(
                        "S3 backend requires boto3: pip install cargo-fetcher[s3]"
                    )
                self._client_obj = boto3.client(
                    "s3", region_name=self._region, endpoint_url=self._endpoint
                )
            return self._client_obj

    def _key(self, krate: Krate) -> str:
        return f"{self.prefix}{krate.local_id}"

    def fetch(self, krate: Krate) -> bytes:
        client = self._client()
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            response = client.get_object(Bucket=self.bucket, Key=self._key(krate))
            return response["Body"].read()
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code in _MISSING_CODES:
                raise KrateNotFound(krate, self.name) from None
            raise BackendError(f"failed to fetch {krate} from s3: {exc}") from exc
        except BotoCoreError as exc:
            raise BackendError(f"failed to fetch {krate} from s3: {exc}") from exc

    def upload(self, krate: Krate, data: bytes) -> None:
        client = self._client()
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            client.put_object(Bucket=self.bucket, Key=self._key(krate), Body=data)
        except (BotoCoreError, ClientError) as exc:
            raise BackendError(f"failed to upload {krate} to s3: {exc}") from exc
        logger.info("Uploaded %s to s3://%s/%s", krate, self.bucket, self._key(krate))

    def list(self) -> list[str]:
        client = self._client()
        from botocore.exceptions import BotoCoreError, ClientError

        names: list[str] = []
        try:
            paginator = client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=self.prefix):
                for obj in page.get("Contents", []):
                    names.append(obj["Key"][len(self.prefix):])
        except (BotoCoreError, ClientError) as exc:
            raise BackendError(f"failed to list s3://{self.bucket}/{self.prefix}: {exc}") from exc
        return sorted(names)

    def make_bucket(self) -> None:
        """Create the bucket if it doesn't exist. Used against local S3 test servers."""
        client = self._client()
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            client.create_bucket(Bucket=self.bucket)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code in _EXISTS_CODES:
                logger.debug("Bucket %s already exists", self.bucket)
                return
            raise BackendError(f"failed to create bucket {self.bucket}: {exc}") from exc
        except BotoCoreError as exc:
            raise BackendError(f"failed to create bucket {self.bucket}: {exc}") from exc
        logger.info("Created bucket %s", self.bucket)

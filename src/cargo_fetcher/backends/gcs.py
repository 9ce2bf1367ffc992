"""Google Cloud Storage backend using google-cloud-storage.

Authenticates with a service account JSON file when one is given,
otherwise with application default credentials.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Optional

from ..models import Krate, StorageLocation
from .base import BackendError, KrateNotFound, StorageBackend

logger = logging.getLogger("cargo_fetcher.backends.gcs")


class GCSBackend(StorageBackend):
    """Archives stored as ``<prefix><local-id>`` objects in one bucket.

    Args:
        loc: Parsed storage location (bucket, prefix).
        credentials: Service account JSON file. Falls back to
            application default credentials.
    """

    def __init__(self, loc: StorageLocation, credentials: Optional[Path] = None) -> None:
        if not loc.bucket:
            raise ValueError("GCS backend requires a bucket")
        self.bucket_name = loc.bucket
        self.prefix = loc.prefix
        self._credentials = credentials
        self._bucket_obj: Optional[Any] = None
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "gcs"

    def _bucket(self) -> Any:
        """Create (once) the bucket handle.

        Raises:
            RuntimeError: If google-cloud-storage is not installed.
        """
        with self._lock:
            if self._bucket_obj is None:
                try:
                    from google.cloud import storage
                except ImportError:
                    raise RuntimeError(
                        "GCS backend requires google-cloud-storage: "
                        "pip install cargo-fetcher[gcs]"
                    )
                if self._credentials:
                    client = storage.Client.from_service_account_json(
                        str(self._credentials)
                    )
                else:
                    client = storage.Client()
                self._bucket_obj = client.bucket(self.bucket_name)
            return self._bucket_obj

    def _object_name(self, krate: Krate) -> str:
        return f"{self.prefix}{krate.local_id}"

    def fetch(self, krate: Krate) -> bytes:
        bucket = self._bucket()
        from google.api_core.exceptions import GoogleAPIError, NotFound

        try:
            return bucket.blob(self._object_name(krate)).download_as_bytes()
        except NotFound:
            raise KrateNotFound(krate, self.name) from None
        except GoogleAPIError as exc:
            raise BackendError(f"failed to fetch {krate} from gcs: {exc}") from exc

    def upload(self, krate: Krate, data: bytes) -> None:
        bucket = self._bucket()
        from google.api_core.exceptions import GoogleAPIError

        try:
            bucket.blob(self._object_name(krate)).upload_from_string(
                data, content_type="application/x-tar"
            )
        except GoogleAPIError as exc:
            raise BackendError(f"failed to upload {krate} to gcs: {exc}") from exc
        logger.info(
            "Uploaded %s to gs://%s/%s", krate, self.bucket_name, self._object_name(krate)
        )

    def list(self) -> list[str]:
        bucket = self._bucket()
        from google.api_core.exceptions import GoogleAPIError

        try:
            names = [
                blob.name[len(self.prefix):]
                for blob in bucket.list_blobs(prefix=self.prefix or None)
            ]
        except GoogleAPIError as exc:
            raise BackendError(
                f"failed to list gs://{self.bucket_name}/{self.prefix}: {exc}"
            ) from exc
        return sorted(names)

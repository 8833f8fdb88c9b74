"""S3-compatible object storage for account assets."""

from __future__ import annotations

import logging
import uuid
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import Settings
from .domain.contracts import AssetStoreError

logger = logging.getLogger(__name__)


def _join_path(*segments: str) -> str:
    cleaned = [segment.strip("/") for segment in segments if segment and segment.strip("/")]
    return "/".join(cleaned)


def build_s3_client(settings: Settings) -> Any:
    """Create the S3 client described by the asset settings."""
    session = boto3.session.Session()
    return session.client(
        "s3",
        region_name=settings.asset_region,
        endpoint_url=settings.asset_endpoint_url,
        aws_access_key_id=settings.asset_access_key,
        aws_secret_access_key=settings.asset_secret_key,
    )


class S3AssetStore:
    """Uploads binary objects with public-read ACLs and returns their public URL."""

    def __init__(self, client: Any, *, bucket: str, public_url: str, base_path: str = "") -> None:
        self._client = client
        self._bucket = bucket
        self._public_url = public_url.rstrip("/")
        self._base_path = base_path

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3AssetStore":
        return cls(
            build_s3_client(settings),
            bucket=settings.asset_bucket,
            public_url=settings.asset_public_url,
            base_path=settings.asset_base_path,
        )

    def upload_stream(self, data: bytes, folder: str, content_type: str | None = None) -> str:
        """Store ``data`` under ``folder`` with a random key and return its URL.

        Raises
        ------
        AssetStoreError
            Wrapping any client or transport error reported by botocore.
        """
        key = _join_path(self._base_path, folder, uuid.uuid4().hex)
        extra_args = {"ACL": "public-read"}
        if content_type:
            extra_args["ContentType"] = content_type

        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                **extra_args,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning("asset upload to %s/%s failed: %s", self._bucket, key, exc)
            raise AssetStoreError(str(exc)) from exc
        return f"{self._public_url}/{key}"

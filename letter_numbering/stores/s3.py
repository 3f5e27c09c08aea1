"""
stores/s3.py
------------
Blob store over AWS S3.

Folders are key prefixes, so ensure_folder has nothing to create. boto3 is
synchronous; each call runs in a worker thread to keep the event loop free.

Credentials come from the standard AWS chain (env vars, profile, role).
"""

import asyncio
from typing import List

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from letter_numbering.core.errors import StoreError
from letter_numbering.stores.base import BlobMeta


def _clean(path: str) -> str:
    return "/".join(segment for segment in (path or "").split("/") if segment)


class S3BlobStore:

    def __init__(self, bucket: str, region: str, presign_expiry_seconds: int = 3600, client=None) -> None:
        self.s3_client = client or boto3.client("s3", region_name=region)
        self.bucket_name = bucket
        self.presign_expiry_seconds = presign_expiry_seconds

    def _presign(self, key: str) -> str:
        return self.s3_client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket_name, "Key": key},
            ExpiresIn=self.presign_expiry_seconds,
        )

    async def ensure_folder(self, path: str) -> None:
        return None

    async def put(self, path: str, content: bytes, content_type: str) -> BlobMeta:
        key = _clean(path)
        try:
            await asyncio.to_thread(
                self.s3_client.put_object,
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType=content_type or "application/octet-stream",
            )
            url = await asyncio.to_thread(self._presign, key)
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to upload {key}: {e}") from e
        return BlobMeta(id=key, name=key.rsplit("/", 1)[-1], path=key, size=len(content), url=url)

    async def list(self, folder_path: str) -> List[BlobMeta]:
        prefix = _clean(folder_path)
        prefix = f"{prefix}/" if prefix else ""
        try:
            paginator = self.s3_client.get_paginator("list_objects_v2")
            pages = await asyncio.to_thread(
                lambda: list(paginator.paginate(Bucket=self.bucket_name, Prefix=prefix, Delimiter="/"))
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to list {prefix or '/'}: {e}") from e
        return [
            BlobMeta(
                id=obj["Key"],
                name=obj["Key"][len(prefix):],
                path=obj["Key"],
                size=obj.get("Size"),
                last_modified=obj.get("LastModified"),
            )
            for page in pages
            for obj in page.get("Contents", [])
            if obj["Key"] != prefix
        ]

    async def get_view_url(self, path: str) -> str:
        key = _clean(path)
        try:
            await asyncio.to_thread(self.s3_client.head_object, Bucket=self.bucket_name, Key=key)
            return await asyncio.to_thread(self._presign, key)
        except ClientError as e:
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            raise StoreError(f"Failed to get view URL for {key}: {e}", status_code=status) from e

    async def delete(self, path: str) -> None:
        key = _clean(path)
        if not key:
            return
        try:
            # S3 deletes are idempotent: a missing key is not an error
            await asyncio.to_thread(self.s3_client.delete_object, Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to delete {key}: {e}") from e

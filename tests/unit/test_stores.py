"""
Tests for the in-memory record and blob stores and the S3 blob store

S3 is mocked with a MagicMock client; no AWS calls are made.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from letter_numbering.core.errors import CollectionNotFound, StoreError
from letter_numbering.stores.base import ColumnSpec
from letter_numbering.stores.memory import MemoryBlobStore, MemoryRecordStore
from letter_numbering.stores.s3 import S3BlobStore

pytestmark = pytest.mark.unit


def s3_store(client):
    return S3BlobStore(bucket="letters", region="eu-central-1", presign_expiry_seconds=600, client=client)


class TestMemoryRecordStore:
    @pytest.mark.asyncio
    async def test_unprovisioned_collection_is_missing(self):
        store = MemoryRecordStore()
        with pytest.raises(CollectionNotFound):
            await store.list("LetterNumbers")
        await store.provision("LetterNumbers", [ColumnSpec(name="Year", kind="number")])
        assert await store.list("LetterNumbers") == []

    @pytest.mark.asyncio
    async def test_filter_order_and_partial_update(self):
        store = MemoryRecordStore(auto_provision=True)
        first = await store.create("LetterNumbers", {"Year": 2024, "LetterDate": "2024-01-01"})
        await store.create("LetterNumbers", {"Year": 2024, "LetterDate": "2024-03-01"})
        await store.create("LetterNumbers", {"Year": 2023})

        listed = await store.list("LetterNumbers", filter={"Year": 2024}, order_by="LetterDate desc")
        assert [r.fields["LetterDate"] for r in listed] == ["2024-03-01", "2024-01-01"]

        updated = await store.update("LetterNumbers", first.id, {"Subject": "x"})
        assert updated.fields == {"Year": 2024, "LetterDate": "2024-01-01", "Subject": "x"}

    @pytest.mark.asyncio
    async def test_missing_record(self):
        store = MemoryRecordStore(auto_provision=True)
        with pytest.raises(StoreError) as info:
            await store.delete("LetterNumbers", "42")
        assert info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_ensure_columns_extends_known_columns(self):
        store = MemoryRecordStore()
        await store.provision("LetterCompanies", [ColumnSpec(name="Abbreviation")])
        await store.ensure_columns("LetterCompanies", [ColumnSpec(name="Abbreviation"), ColumnSpec(name="Color")])
        assert store.columns("LetterCompanies") == ["Abbreviation", "Color"]


class TestMemoryBlobStore:
    @pytest.mark.asyncio
    async def test_put_requires_the_folder(self):
        blobs = MemoryBlobStore()
        with pytest.raises(StoreError):
            await blobs.put("EASE/a.pdf", b"a", "application/pdf")
        await blobs.ensure_folder("/EASE/")
        meta = await blobs.put("EASE/a.pdf", b"a", "application/pdf")
        assert (meta.name, meta.path, meta.size) == ("a.pdf", "EASE/a.pdf", 1)

    @pytest.mark.asyncio
    async def test_list_is_one_level_deep(self):
        blobs = MemoryBlobStore()
        await blobs.ensure_folder("EASE/Archive")
        await blobs.put("EASE/a.pdf", b"a", "application/pdf")
        await blobs.put("EASE/Archive/b.pdf", b"b", "application/pdf")
        assert [m.name for m in await blobs.list("EASE")] == ["a.pdf"]

    @pytest.mark.asyncio
    async def test_view_url_of_missing_file(self):
        with pytest.raises(StoreError):
            await MemoryBlobStore().get_view_url("EASE/a.pdf")


class TestS3BlobStore:
    @pytest.mark.asyncio
    async def test_put_uploads_and_presigns(self):
        client = MagicMock()
        client.generate_presigned_url.return_value = "https://s3.example.com/presigned"

        meta = await s3_store(client).put("/EASE//EASE-0001-24.pdf", b"pdf", "application/pdf")

        client.put_object.assert_called_once_with(
            Bucket="letters", Key="EASE/EASE-0001-24.pdf", Body=b"pdf", ContentType="application/pdf"
        )
        client.generate_presigned_url.assert_called_once_with(
            "get_object", Params={"Bucket": "letters", "Key": "EASE/EASE-0001-24.pdf"}, ExpiresIn=600
        )
        assert (meta.name, meta.path, meta.url) == ("EASE-0001-24.pdf", "EASE/EASE-0001-24.pdf", "https://s3.example.com/presigned")

    @pytest.mark.asyncio
    async def test_list_uses_the_folder_prefix(self):
        client = MagicMock()
        modified = datetime(2024, 5, 2, tzinfo=timezone.utc)
        client.get_paginator.return_value.paginate.return_value = [
            {"Contents": [{"Key": "EASE/", "Size": 0}, {"Key": "EASE/EASE-0001-24.pdf", "Size": 3, "LastModified": modified}]},
            {},
        ]

        listed = await s3_store(client).list("EASE")

        client.get_paginator.assert_called_once_with("list_objects_v2")
        client.get_paginator.return_value.paginate.assert_called_once_with(Bucket="letters", Prefix="EASE/", Delimiter="/")
        assert [(m.name, m.size, m.last_modified) for m in listed] == [("EASE-0001-24.pdf", 3, modified)]

    @pytest.mark.asyncio
    async def test_missing_object_has_no_view_url(self):
        client = MagicMock()
        client.head_object.side_effect = ClientError(
            {"Error": {"Code": "404", "Message": "Not Found"}, "ResponseMetadata": {"HTTPStatusCode": 404}},
            "HeadObject",
        )
        with pytest.raises(StoreError) as info:
            await s3_store(client).get_view_url("EASE/missing.pdf")
        assert info.value.status_code == 404
        client.generate_presigned_url.assert_not_called()

    @pytest.mark.asyncio
    async def test_upload_failures_are_store_errors(self):
        client = MagicMock()
        client.put_object.side_effect = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
        with pytest.raises(StoreError, match="Failed to upload"):
            await s3_store(client).put("EASE/a.pdf", b"a", "application/pdf")

    @pytest.mark.asyncio
    async def test_delete(self):
        client = MagicMock()
        store = s3_store(client)
        await store.delete("EASE/a.pdf")
        await store.delete("")
        client.delete_object.assert_called_once_with(Bucket="letters", Key="EASE/a.pdf")

"""
stores/graph.py
---------------
Microsoft Graph backends: SharePoint lists as the record store, a
SharePoint document library (drive) as the blob store, and the tenant
directory for user search.

Authentication is app-only (client credentials). The access token is
cached until shortly before it expires.

Identifiers: list and drive names are resolved to ids through the site,
unless the configured value already looks like a GUID, in which case it
is used as-is and never auto-provisioned.
"""

import re
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import quote, urlparse

import httpx

from letter_numbering.core.errors import CollectionNotFound, StoreError
from letter_numbering.core.logging import get_logger
from letter_numbering.domain.mapping import parse_datetime
from letter_numbering.stores.base import (
    BlobMeta,
    ColumnSpec,
    DirectoryUser,
    StoredRecord,
    matches_filter,
    parse_order_by,
)

logger = get_logger(__name__)

GRAPH_SCOPE = "https://graph.microsoft.com/.default"
# Lets $filter/$orderby run on columns SharePoint has not indexed
NON_INDEXED_QUERY_HEADER = {"Prefer": "HonorNonIndexedQueriesWarningMayFailRandomly"}

_GUID_LIKE = re.compile(r"^[0-9a-fA-F-]{20,}$")


def looks_like_guid(value: Optional[str]) -> bool:
    return bool(value) and bool(_GUID_LIKE.match(value.strip()))


def encode_path(path: str) -> str:
    return quote(path.strip("/"), safe="/")


def column_definition(column: ColumnSpec) -> Dict[str, Any]:
    """Graph columnDefinition body for a ColumnSpec."""
    if column.kind == "number":
        return {"name": column.name, "number": {}}
    if column.kind == "dateTime":
        return {"name": column.name, "dateTime": {"format": "dateOnly"}}
    if column.kind == "multilineText":
        return {"name": column.name, "text": {"allowMultipleLines": True}}
    if column.kind == "choice":
        return {
            "name": column.name,
            "choice": {"choices": list(column.choices), "allowTextEntry": True},
        }
    return {"name": column.name, "text": {}}


def odata_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


# ── Token + transport ─────────────────────────────────────────────────────────

class GraphTokenProvider:
    """Client-credentials token, refreshed a minute before expiry."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        authority: str,
        tenant_id: str,
        client_id: str,
        client_secret: str,
    ) -> None:
        self._http = http
        self._token_url = f"{authority.rstrip('/')}/{tenant_id}/oauth2/v2.0/token"
        self._client_id = client_id
        self._client_secret = client_secret
        self._token: Optional[str] = None
        self._expires_at = 0.0

    async def token(self) -> str:
        if self._token and time.monotonic() < self._expires_at:
            return self._token
        try:
            response = await self._http.post(
                self._token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "scope": GRAPH_SCOPE,
                },
            )
        except httpx.HTTPError as exc:
            raise StoreError(f"Token request failed: {exc}") from exc
        if response.status_code >= 400:
            raise StoreError(
                f"Token request failed: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )
        data = response.json()
        self._token = data["access_token"]
        self._expires_at = time.monotonic() + int(data.get("expires_in", 3600)) - 60
        return self._token


class GraphClient:
    """
    Thin Graph transport: auth header, error mapping, paging and id lookups.

    Site, list and drive ids are cached for the life of the client.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        tokens: GraphTokenProvider,
        base_url: str,
        site_url: str,
    ) -> None:
        self._http = http
        self._tokens = tokens
        self._base_url = base_url.rstrip("/")
        self._site_url = site_url
        self._site_id: Optional[str] = None
        self._list_ids: Dict[str, str] = {}
        self._drive_ids: Dict[str, str] = {}

    @property
    def site_url(self) -> str:
        return self._site_url

    def url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        url: str,
        *,
        expected_missing: bool = False,
        **kwargs: Any,
    ) -> Optional[httpx.Response]:
        """
        Send an authenticated request.

        With expected_missing=True a 404 returns None instead of raising.
        """
        token = await self._tokens.token()
        headers = {"Authorization": f"Bearer {token}", **kwargs.pop("headers", {})}
        full_url = url if url.startswith("http") else self.url(url)
        try:
            response = await self._http.request(method, full_url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Graph transport error", method=method, url=full_url, error=str(exc))
            raise StoreError(f"Graph request failed: {exc}") from exc
        if response.status_code == 404 and expected_missing:
            return None
        if response.status_code >= 400:
            raise StoreError(
                f"Graph API error: {response.status_code} {response.reason_phrase} - {response.text}",
                status_code=response.status_code,
            )
        return response

    async def get_json(self, url: str, **kwargs: Any) -> Dict[str, Any]:
        response = await self.request("GET", url, **kwargs)
        return response.json()

    async def get_paged(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        fetch_all: bool = True,
    ) -> List[Dict[str, Any]]:
        aggregated: List[Dict[str, Any]] = []
        next_url: Optional[str] = url
        while next_url:
            response = await self.request("GET", next_url, params=params, headers=dict(headers or {}))
            data = response.json()
            aggregated.extend(data.get("value", []))
            next_url = data.get("@odata.nextLink") if fetch_all else None
            # nextLink already carries the query string
            params = None
        return aggregated

    async def site_id(self) -> str:
        if self._site_id is None:
            if not self._site_url:
                raise StoreError("SharePoint site URL is not configured")
            parsed = urlparse(self._site_url)
            data = await self.get_json(f"sites/{parsed.hostname}:{parsed.path or '/'}")
            self._site_id = data["id"]
        return self._site_id

    async def list_id(self, list_name: str) -> str:
        if looks_like_guid(list_name):
            return list_name
        if list_name not in self._list_ids:
            site = await self.site_id()
            lists = await self.get_paged(
                f"sites/{site}/lists", params={"$select": "id,displayName"}
            )
            found = next((l for l in lists if l.get("displayName") == list_name), None)
            if found is None:
                raise CollectionNotFound(list_name)
            self._list_ids[list_name] = found["id"]
        return self._list_ids[list_name]

    def forget_list(self, list_name: str) -> None:
        self._list_ids.pop(list_name, None)

    async def drive_id(self, drive_name: str) -> str:
        if looks_like_guid(drive_name):
            return drive_name
        if drive_name not in self._drive_ids:
            site = await self.site_id()
            drives = await self.get_paged(f"sites/{site}/drives", params={"$select": "id,name"})
            found = next((d for d in drives if d.get("name") == drive_name), None)
            if found is None:
                raise StoreError(f"Drive not found: {drive_name}", status_code=404)
            self._drive_ids[drive_name] = found["id"]
        return self._drive_ids[drive_name]


# ── Record store ──────────────────────────────────────────────────────────────

def _to_record(item: Mapping[str, Any]) -> StoredRecord:
    return StoredRecord(
        id=str(item["id"]),
        fields=dict(item.get("fields") or {}),
        created_at=parse_datetime(item.get("createdDateTime")),
        web_url=item.get("webUrl"),
    )


class GraphRecordStore:

    def __init__(self, client: GraphClient, page_size: int = 500) -> None:
        self._client = client
        self._page_size = page_size

    async def _items_url(self, collection: str) -> str:
        site = await self._client.site_id()
        list_id = await self._client.list_id(collection)
        return f"sites/{site}/lists/{list_id}/items"

    async def list(
        self,
        collection: str,
        filter: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
    ) -> List[StoredRecord]:
        url = await self._items_url(collection)
        params: Dict[str, Any] = {"$expand": "fields", "$top": self._page_size}
        if filter:
            params["$filter"] = " and ".join(
                f"fields/{key} eq {odata_literal(value)}" for key, value in filter.items()
            )
        field, descending = parse_order_by(order_by)
        if field:
            params["$orderby"] = f"fields/{field} {'desc' if descending else 'asc'}"
        try:
            items = await self._client.get_paged(url, params=params, headers=NON_INDEXED_QUERY_HEADER)
        except StoreError as exc:
            if exc.status_code == 404:
                self._client.forget_list(collection)
                raise CollectionNotFound(collection) from exc
            raise
        # The server applies the filter; re-checking keeps lenient tenants honest
        return [r for r in map(_to_record, items) if matches_filter(r, filter)]

    async def create(self, collection: str, fields: Mapping[str, Any]) -> StoredRecord:
        url = await self._items_url(collection)
        response = await self._client.request("POST", url, json={"fields": dict(fields)})
        return _to_record(response.json())

    async def update(
        self, collection: str, record_id: str, fields: Mapping[str, Any]
    ) -> StoredRecord:
        url = await self._items_url(collection)
        response = await self._client.request(
            "PATCH", f"{url}/{record_id}/fields", json=dict(fields)
        )
        return StoredRecord(id=str(record_id), fields=dict(response.json()))

    async def delete(self, collection: str, record_id: str) -> None:
        url = await self._items_url(collection)
        await self._client.request("DELETE", f"{url}/{record_id}")

    async def provision(self, collection: str, columns: Sequence[ColumnSpec]) -> None:
        if looks_like_guid(collection) or not self._client.site_url:
            return
        site = await self._client.site_id()
        response = await self._client.request(
            "POST",
            f"sites/{site}/lists",
            json={
                "displayName": collection,
                "description": "Auto-generated by Letter Numbering.",
                "list": {"template": "genericList"},
            },
        )
        created = response.json()
        self._client.forget_list(collection)
        logger.info("SharePoint list provisioned", list=collection, list_id=created.get("id"))
        for column in columns:
            try:
                await self._client.request(
                    "POST",
                    f"sites/{site}/lists/{created['id']}/columns",
                    json=column_definition(column),
                )
            except StoreError as exc:
                logger.warning("Failed to add column", list=collection, column=column.name, error=str(exc))

    async def ensure_columns(self, collection: str, columns: Sequence[ColumnSpec]) -> None:
        if not columns:
            return
        try:
            site = await self._client.site_id()
            list_id = await self._client.list_id(collection)
            data = await self._client.get_json(
                f"sites/{site}/lists/{list_id}/columns", params={"$select": "name"}
            )
        except StoreError as exc:
            logger.warning("Failed to read columns", list=collection, error=str(exc))
            return
        existing = {c.get("name") for c in data.get("value", [])}
        for column in columns:
            if column.name in existing:
                continue
            try:
                await self._client.request(
                    "POST",
                    f"sites/{site}/lists/{list_id}/columns",
                    json=column_definition(column),
                )
            except StoreError as exc:
                logger.warning("Failed to ensure column", list=collection, column=column.name, error=str(exc))


# ── Blob store ────────────────────────────────────────────────────────────────

class GraphBlobStore:

    def __init__(self, client: GraphClient, library_name: str) -> None:
        self._client = client
        self._library_name = library_name

    async def _drive(self) -> str:
        return await self._client.drive_id(self._library_name)

    async def _item_id(self, drive: str, path: str) -> str:
        if not path:
            return "root"
        data = await self._client.get_json(f"drives/{drive}/root:/{encode_path(path)}")
        return data["id"]

    async def ensure_folder(self, path: str) -> None:
        drive = await self._drive()
        current = ""
        for segment in [s for s in path.split("/") if s]:
            parent = current
            current = f"{current}/{segment}" if current else segment
            found = await self._client.request(
                "GET", f"drives/{drive}/root:/{encode_path(current)}", expected_missing=True
            )
            if found is not None:
                continue
            parent_id = await self._item_id(drive, parent)
            await self._client.request(
                "POST",
                f"drives/{drive}/items/{parent_id}/children",
                json={
                    "name": segment,
                    "folder": {},
                    "@microsoft.graph.conflictBehavior": "replace",
                },
            )
            logger.info("Drive folder created", path=current)

    async def put(self, path: str, content: bytes, content_type: str) -> BlobMeta:
        drive = await self._drive()
        response = await self._client.request(
            "PUT",
            f"drives/{drive}/root:/{encode_path(path)}:/content",
            content=content,
            headers={"Content-Type": content_type or "application/octet-stream"},
        )
        data = response.json()
        return BlobMeta(
            id=data.get("id") or path,
            name=data.get("name") or path.rsplit("/", 1)[-1],
            path=path.strip("/"),
            size=data.get("size", len(content)),
            url=data.get("webUrl"),
            last_modified=parse_datetime(data.get("lastModifiedDateTime")),
        )

    async def list(self, folder_path: str) -> List[BlobMeta]:
        drive = await self._drive()
        response = await self._client.request(
            "GET",
            f"drives/{drive}/root:/{encode_path(folder_path)}:/children",
            params={"$select": "id,name,size,lastModifiedDateTime,webUrl,file"},
            expected_missing=True,
        )
        if response is None:
            return []
        folder = folder_path.strip("/")
        return [
            BlobMeta(
                id=item["id"],
                name=item["name"],
                path=re.sub(r"/+", "/", f"{folder}/{item['name']}"),
                size=item.get("size"),
                url=item.get("webUrl"),
                last_modified=parse_datetime(item.get("lastModifiedDateTime")),
            )
            for item in response.json().get("value", [])
            if item.get("file") is not None
        ]

    async def get_view_url(self, path: str) -> str:
        drive = await self._drive()
        item_url = f"drives/{drive}/root:/{encode_path(path)}"
        item = await self._client.get_json(item_url)
        if item.get("webUrl"):
            return item["webUrl"]
        response = await self._client.request(
            "POST",
            f"drives/{drive}/items/{item['id']}/createLink",
            json={"type": "view", "scope": "organization"},
        )
        link = (response.json().get("link") or {}).get("webUrl")
        return link or self._client.url(item_url)

    async def delete(self, path: str) -> None:
        if not path:
            return
        drive = await self._drive()
        await self._client.request(
            "DELETE", f"drives/{drive}/root:/{encode_path(path)}", expected_missing=True
        )


# ── Directory ─────────────────────────────────────────────────────────────────

class GraphDirectory:

    def __init__(self, client: GraphClient) -> None:
        self._client = client

    async def search_users(self, prefix: str, limit: int = 10) -> List[DirectoryUser]:
        term = (prefix or "").strip().replace("'", "''")
        data = await self._client.get_json(
            "users",
            params={
                "$top": limit,
                "$select": "id,displayName,mail,userPrincipalName",
                "$filter": f"startsWith(mail,'{term}') or startsWith(userPrincipalName,'{term}')",
            },
        )
        return [
            DirectoryUser(
                id=user["id"],
                display_name=user.get("displayName") or user.get("userPrincipalName") or user.get("mail") or "",
                user_principal_name=user.get("userPrincipalName") or user.get("mail") or "",
                email=user.get("mail") or user.get("userPrincipalName") or "",
            )
            for user in data.get("value", [])
        ]

"""
dependencies.py
---------------
FastAPI dependency injection functions for identity, workspace and backends.

Flow:
  1. HTTPBearer extracts the Bearer token from the Authorization header.
  2. decode_access_token validates and parses the JWT (no store round-trip).
  3. get_current_principal pulls the lower-cased principal name from it.
  4. get_scope resolves the caller's AccessScope fresh from the workspace's
     current access entries on every request.

The workspace and the configured backends live on app.state; they are
created once in main.lifespan.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from letter_numbering.core.config import settings
from letter_numbering.core.logging import get_logger
from letter_numbering.core.security import decode_access_token, principal_from_claims
from letter_numbering.domain.scope import AccessScope
from letter_numbering.domain.state import Workspace
from letter_numbering.stores.base import BlobStore, DirectoryProvider, RecordStore

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_principal(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> str:
    """
    Decode the JWT and return the caller's principal name.
    Raises 401 if the token is missing, invalid, or names no principal.
    """
    if credentials is None or not credentials.credentials:
        raise _CREDENTIALS_EXCEPTION
    try:
        claims = decode_access_token(credentials.credentials)
    except JWTError as exc:
        logger.warning("JWT decode failed", error=str(exc))
        raise _CREDENTIALS_EXCEPTION

    principal = principal_from_claims(claims)
    if not principal:
        logger.warning("JWT carries no principal claim", claims=sorted(claims))
        raise _CREDENTIALS_EXCEPTION
    return principal


def get_workspace(request: Request) -> Workspace:
    return request.app.state.workspace


def get_record_store(request: Request) -> RecordStore:
    return request.app.state.backends.record_store


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.backends.blob_store


def get_directory(request: Request) -> DirectoryProvider:
    return request.app.state.backends.directory


async def get_scope(
    principal: Annotated[str, Depends(get_current_principal)],
    workspace: Annotated[Workspace, Depends(get_workspace)],
) -> AccessScope:
    return workspace.scope_for(principal, bootstrap_mode=settings.ACCESS_BOOTSTRAP_MODE)


# Shorthands for route signatures
WorkspaceDep = Annotated[Workspace, Depends(get_workspace)]
RecordStoreDep = Annotated[RecordStore, Depends(get_record_store)]
BlobStoreDep = Annotated[BlobStore, Depends(get_blob_store)]
DirectoryDep = Annotated[DirectoryProvider, Depends(get_directory)]
ScopeDep = Annotated[AccessScope, Depends(get_scope)]

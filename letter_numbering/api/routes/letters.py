"""
api/routes/letters.py
---------------------
Letter endpoints.

GET   /letters                                  — Letters in scope (?company_id=&year=)
GET   /letters/years                            — Year choices for filters
POST  /letters                                  — Issue a new reference (multipart)
GET   /letters/{id}                             — One letter
PATCH /letters/{id}                             — Partial update + attachments (multipart)
GET   /letters/{id}/attachments                 — Attachment list (loaded once)
GET   /letters/{id}/attachments/view-url?path=  — Link to open one attachment

Multipart bodies carry a JSON 'payload' form field plus any number of
'files'.
"""

from typing import Annotated, List, Optional, Type, TypeVar

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from letter_numbering.dependencies import BlobStoreDep, RecordStoreDep, ScopeDep, WorkspaceDep
from letter_numbering.schemas.letter import (
    AttachmentRead,
    AttachmentUpload,
    LetterCreate,
    LetterPatch,
    LetterRead,
    ViewUrl,
)
from letter_numbering.services.dashboard_service import DashboardService
from letter_numbering.services.letter_service import LetterService

router = APIRouter(prefix="/letters", tags=["Letters"])

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def parse_payload(model: Type[PayloadT], raw: Optional[str]) -> PayloadT:
    try:
        return model.model_validate_json(raw or "{}")
    except PydanticValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False),
        )


async def read_uploads(files: Optional[List[UploadFile]]) -> List[AttachmentUpload]:
    uploads = []
    for file in files or []:
        if not file.filename:
            continue
        uploads.append(
            AttachmentUpload(
                name=file.filename,
                content=await file.read(),
                content_type=file.content_type or "application/octet-stream",
            )
        )
    return uploads


@router.get("", response_model=list[LetterRead], summary="List letters in scope")
async def list_letters(
    workspace: WorkspaceDep,
    scope: ScopeDep,
    company_id: Optional[str] = Query(None),
    year: Optional[int] = Query(None, ge=1900, le=9999),
) -> list[LetterRead]:
    letters = LetterService.list_letters(workspace, scope, company_id=company_id, year=year)
    return [LetterRead.model_validate(letter) for letter in letters]


@router.get("/years", response_model=list[int], summary="Years available for filtering")
async def year_options(workspace: WorkspaceDep, scope: ScopeDep) -> list[int]:
    return DashboardService.year_options(workspace, scope)


@router.post(
    "",
    response_model=LetterRead,
    status_code=status.HTTP_201_CREATED,
    summary="Issue the next reference number for a company",
)
async def create_letter(
    workspace: WorkspaceDep,
    store: RecordStoreDep,
    blobs: BlobStoreDep,
    scope: ScopeDep,
    payload: Annotated[str, Form(description="JSON LetterCreate")],
    files: Annotated[Optional[List[UploadFile]], File()] = None,
) -> LetterRead:
    """
    The sequence number is always computed here; it cannot be supplied.
    If an upload fails after the record was written, the letter keeps its
    reference and the error message names it.
    """
    body = parse_payload(LetterCreate, payload)
    letter = await LetterService.create_letter(
        workspace, store, blobs, scope, body, attachments=await read_uploads(files)
    )
    return LetterRead.model_validate(letter)


@router.get("/{letter_id}", response_model=LetterRead, summary="Get a letter")
async def get_letter(letter_id: str, workspace: WorkspaceDep, scope: ScopeDep) -> LetterRead:
    return LetterRead.model_validate(LetterService.get_letter(workspace, scope, letter_id))


@router.patch("/{letter_id}", response_model=LetterRead, summary="Update a letter")
async def update_letter(
    letter_id: str,
    workspace: WorkspaceDep,
    store: RecordStoreDep,
    blobs: BlobStoreDep,
    scope: ScopeDep,
    payload: Annotated[Optional[str], Form(description="JSON LetterPatch")] = None,
    files: Annotated[Optional[List[UploadFile]], File()] = None,
) -> LetterRead:
    body = parse_payload(LetterPatch, payload)
    letter = await LetterService.update_letter(
        workspace,
        store,
        blobs,
        scope,
        letter_id,
        body.updates,
        attachments_to_add=await read_uploads(files),
        attachments_to_remove=body.remove_attachments,
    )
    return LetterRead.model_validate(letter)


@router.get(
    "/{letter_id}/attachments",
    response_model=list[AttachmentRead],
    summary="List a letter's attachments",
)
async def list_attachments(
    letter_id: str,
    workspace: WorkspaceDep,
    blobs: BlobStoreDep,
    scope: ScopeDep,
) -> list[AttachmentRead]:
    attachments = await LetterService.load_letter_attachments(workspace, blobs, scope, letter_id)
    return [AttachmentRead.model_validate(a) for a in attachments]


@router.get(
    "/{letter_id}/attachments/view-url",
    response_model=ViewUrl,
    summary="Get a link to view one attachment",
)
async def attachment_view_url(
    letter_id: str,
    workspace: WorkspaceDep,
    blobs: BlobStoreDep,
    scope: ScopeDep,
    path: str = Query(..., min_length=1),
) -> ViewUrl:
    url = await LetterService.attachment_view_url(workspace, blobs, scope, letter_id, path)
    return ViewUrl(url=url)

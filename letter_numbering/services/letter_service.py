"""
services/letter_service.py
--------------------------
Letter reads, creation, partial updates and attachment handling.

Creation order (each step fails before anything is written):
  permission → company in scope → company exists → year → sequence
  → reference → record write → attachment uploads

Creations for one (company, year) run one at a time inside the process.
With ALLOCATION_REFRESH_BEFORE_CREATE the letters are re-read from the
store under that lock, so writers in other processes are only missed
within the store round-trip. A duplicate sequence is logged, not repaired.

A record that was written before an upload failed stays in place; the
error names the reference that was issued.
"""

import re
from datetime import date
from typing import Collection, List, Optional, Sequence

from letter_numbering.core.config import settings
from letter_numbering.core.errors import AllocationError, NotFound, StoreError, ValidationError
from letter_numbering.core.logging import get_logger
from letter_numbering.domain.allocator import next_sequence
from letter_numbering.domain.entities import Attachment, Company, Letter
from letter_numbering.domain.mapping import (
    LETTER_COLUMNS,
    decode_letter,
    letter_fields,
    normalize_letter_date,
    parse_datetime,
)
from letter_numbering.domain.reference import (
    attachment_prefix,
    build_folder_path,
    build_stored_file_name,
    format_reference,
)
from letter_numbering.domain.scope import AccessScope
from letter_numbering.domain.state import (
    LetterAdded,
    LetterAttachmentsLoaded,
    LetterUpdated,
    Workspace,
)
from letter_numbering.schemas.letter import AttachmentUpload, LetterCreate, LetterUpdate
from letter_numbering.services.workspace_service import WorkspaceService
from letter_numbering.stores.base import BlobStore, RecordStore

logger = get_logger(__name__)

_UPDATABLE_FIELDS = {
    "recipient_company": "RecipientCompany",
    "subject": "Subject",
    "prepared_by": "PreparedBy",
    "notes": "Notes",
}


# ── Attachment paths ──────────────────────────────────────────────────────────

def letter_folder(abbreviation: str, name: str) -> str:
    return build_folder_path(abbreviation, name, settings.LETTER_LIBRARY_ROOT)


def belongs_to_letter(letter: Letter, path: str) -> bool:
    """True when *path* is one of this letter's files in its company folder."""
    folder, _, name = (path or "").strip("/").rpartition("/")
    return (
        folder == letter_folder(letter.company_abbreviation, letter.company_name)
        and name.lower().startswith(attachment_prefix(letter.reference_number))
    )


def unique_file_name(name: str, taken: Collection[str]) -> str:
    """EASE-0001-24.pdf, then EASE-0001-24-2.pdf, EASE-0001-24-3.pdf, ..."""
    lowered = {t.lower() for t in taken}
    if name.lower() not in lowered:
        return name
    match = re.match(r"^(.*?)(\.[^.]*)?$", name)
    stem, extension = match.group(1), match.group(2) or ""
    counter = 2
    while f"{stem}-{counter}{extension}".lower() in lowered:
        counter += 1
    return f"{stem}-{counter}{extension}"


async def upload_files(
    blobs: BlobStore,
    abbreviation: str,
    company_name: str,
    reference: str,
    files: Sequence[AttachmentUpload],
    existing: Sequence[Attachment] = (),
) -> List[Attachment]:
    """Upload one file at a time into the company folder, named after *reference*."""
    if not files:
        return []
    folder = letter_folder(abbreviation, company_name)
    await blobs.ensure_folder(folder)
    taken = [a.name for a in existing]
    uploaded: List[Attachment] = []
    for file in files:
        stored_name = unique_file_name(build_stored_file_name(reference, file.name), taken)
        taken.append(stored_name)
        path = f"{folder}/{stored_name}"
        meta = await blobs.put(path, file.content, file.content_type or "application/octet-stream")
        web_url = meta.url or await blobs.get_view_url(path)
        uploaded.append(
            Attachment(
                id=meta.id or path,
                name=meta.name or stored_name,
                path=path,
                size=meta.size if meta.size is not None else len(file.content),
                web_url=web_url,
                last_modified=meta.last_modified,
            )
        )
        logger.info("Attachment uploaded", reference=reference, path=path, size=len(file.content))
    return uploaded


class LetterService:

    # ── Reads ─────────────────────────────────────────────────────────────────

    @staticmethod
    def list_letters(
        workspace: Workspace,
        scope: AccessScope,
        company_id: Optional[str] = None,
        year: Optional[int] = None,
    ) -> List[Letter]:
        scope.require_ready()
        letters = scope.filter_letters(workspace.state.letters)
        if company_id:
            letters = [letter for letter in letters if letter.company_id == company_id]
        if year:
            letters = [letter for letter in letters if letter.year == year]
        return letters

    @staticmethod
    def get_letter(workspace: Workspace, scope: AccessScope, letter_id: str) -> Letter:
        scope.require_ready()
        letter = workspace.state.letter(letter_id)
        if letter is None or not scope.can_access_company(letter.company_id):
            raise NotFound("Letter not found.")
        return letter

    @staticmethod
    async def load_letter_attachments(
        workspace: Workspace,
        blobs: BlobStore,
        scope: AccessScope,
        letter_id: str,
    ) -> List[Attachment]:
        """List the letter's files once; later calls return the cached list."""
        letter = LetterService.get_letter(workspace, scope, letter_id)
        if letter.attachments_loaded:
            return list(letter.attachments)

        folder = letter_folder(letter.company_abbreviation, letter.company_name)
        prefix = attachment_prefix(letter.reference_number)
        matches: List[Attachment] = []
        for blob in await blobs.list(folder):
            if not blob.name or not blob.name.lower().startswith(prefix):
                continue
            matches.append(
                Attachment(
                    id=blob.id or blob.path,
                    name=blob.name,
                    path=blob.path,
                    size=blob.size,
                    web_url=blob.url or await blobs.get_view_url(blob.path),
                    last_modified=blob.last_modified,
                )
            )
        workspace.dispatch(LetterAttachmentsLoaded(letter_id, tuple(matches)))
        return matches

    @staticmethod
    async def attachment_view_url(
        workspace: Workspace,
        blobs: BlobStore,
        scope: AccessScope,
        letter_id: str,
        path: str,
    ) -> str:
        letter = LetterService.get_letter(workspace, scope, letter_id)
        if not belongs_to_letter(letter, path):
            raise NotFound("Attachment not found.")
        cached = next((a for a in letter.attachments if a.path == path.strip("/")), None)
        if cached is not None and cached.web_url:
            return cached.web_url
        return await blobs.get_view_url(path)

    # ── Creation ──────────────────────────────────────────────────────────────

    @staticmethod
    async def create_letter(
        workspace: Workspace,
        store: RecordStore,
        blobs: BlobStore,
        scope: AccessScope,
        data: LetterCreate,
        attachments: Sequence[AttachmentUpload] = (),
        today: Optional[date] = None,
    ) -> Letter:
        scope.require_edit_letters("create letters")
        company_id = (data.company_id or "").strip()
        if not company_id:
            raise ValidationError("Please choose a company.")
        scope.require_company(company_id, "You do not have access to this company.")
        company: Optional[Company] = workspace.state.company(company_id)
        if company is None:
            raise NotFound("Selected company was not found.")

        year = data.year or (data.letter_date or today or date.today()).year

        async with workspace.allocation_lock(company.id, year):
            if settings.ALLOCATION_REFRESH_BEFORE_CREATE:
                await WorkspaceService.load_letters(workspace, store)
            sequence = next_sequence(workspace.state, scope, company.id, year)
            if not sequence:
                raise AllocationError("Unable to determine the next sequence number.")
            reference = format_reference(company.abbreviation, sequence, year)

            await store.ensure_columns(settings.LETTER_LIST_NAME, LETTER_COLUMNS)
            record = await store.create(
                settings.LETTER_LIST_NAME,
                letter_fields(
                    company,
                    reference_number=reference,
                    sequence_number=sequence,
                    year=year,
                    letter_date=normalize_letter_date(data.letter_date),
                    recipient_company=data.recipient_company,
                    subject=data.subject,
                    prepared_by=data.prepared_by,
                    notes=data.notes,
                ),
            )
            letter = decode_letter(record).model_copy(
                update={"attachments_loaded": not attachments}
            )
            workspace.dispatch(LetterAdded(letter))

            clashes = [
                other.id
                for other in workspace.state.letters
                if other.id != letter.id
                and other.company_id == company.id
                and other.year == year
                and other.sequence_number == sequence
            ]
            if clashes:
                logger.warning(
                    "Duplicate sequence number issued",
                    reference=reference,
                    letter_id=letter.id,
                    clashing_ids=clashes,
                )

        logger.info(
            "Letter created",
            letter_id=letter.id,
            company_id=company.id,
            year=year,
            sequence=sequence,
            reference=reference,
        )

        if attachments:
            try:
                uploaded = await upload_files(
                    blobs, company.abbreviation, company.name, reference, attachments
                )
            except StoreError as e:
                logger.error("Attachment upload failed", reference=reference, error=e.message)
                raise StoreError(
                    f"Letter {reference} was created but uploading its attachments failed: {e.message}",
                    status_code=e.status_code,
                ) from e
            letter = letter.model_copy(update={"attachments": uploaded, "attachments_loaded": True})
            workspace.dispatch(LetterUpdated(letter))
        return letter

    # ── Update ────────────────────────────────────────────────────────────────

    @staticmethod
    async def update_letter(
        workspace: Workspace,
        store: RecordStore,
        blobs: BlobStore,
        scope: AccessScope,
        letter_id: str,
        updates: LetterUpdate,
        attachments_to_add: Sequence[AttachmentUpload] = (),
        attachments_to_remove: Sequence[str] = (),
    ) -> Letter:
        """
        Apply only the fields present in *updates*, remove attachments
        (best-effort), then upload new ones.

        Permission and scope are checked against the stored letter, never
        against the caller's payload.
        """
        scope.require_edit_letters("edit letters")
        existing = workspace.state.letter(letter_id)
        if existing is None:
            raise NotFound("Letter not found.")
        scope.require_company(existing.company_id, "You do not have access to this letter.")
        foreign = [p for p in attachments_to_remove if not belongs_to_letter(existing, p)]
        if foreign:
            raise ValidationError(f"Attachment does not belong to this letter: {foreign[0]}")

        changes = updates.model_dump(exclude_unset=True)
        fields = {
            column: changes[attr] or ""
            for attr, column in _UPDATABLE_FIELDS.items()
            if attr in changes
        }
        if "letter_date" in changes:
            fields["LetterDate"] = normalize_letter_date(
                changes["letter_date"] or existing.letter_date
            )
        if fields:
            await store.update(settings.LETTER_LIST_NAME, letter_id, fields)
            logger.info("Letter updated", letter_id=letter_id, fields=sorted(fields))

        merged = {
            attr: fields[column]
            for attr, column in _UPDATABLE_FIELDS.items()
            if column in fields
        }
        if "LetterDate" in fields:
            merged["letter_date"] = parse_datetime(fields["LetterDate"])

        if attachments_to_add or attachments_to_remove:
            current = await LetterService.load_letter_attachments(workspace, blobs, scope, letter_id)

            removed = {p.strip("/") for p in attachments_to_remove}
            for path in removed:
                try:
                    await blobs.delete(path)
                    logger.info("Attachment deleted", letter_id=letter_id, path=path)
                except StoreError as e:
                    logger.warning("Failed to delete attachment", path=path, error=e.message)
            current = [a for a in current if a.key not in removed]

            current += await upload_files(
                blobs,
                existing.company_abbreviation,
                existing.company_name,
                existing.reference_number,
                attachments_to_add,
                existing=current,
            )
            merged["attachments"] = current
            merged["attachments_loaded"] = True

        # Attachment loading may have replaced the cached letter; merge into that one
        base = workspace.state.letter(letter_id) or existing
        updated = base.model_copy(update=merged)
        workspace.dispatch(LetterUpdated(updated))
        return updated

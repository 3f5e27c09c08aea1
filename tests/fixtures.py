"""
Seed helpers shared by service and API tests.

Everything is written through the record store so that a workspace refresh
(including the one that runs before each letter creation) sees it.
"""

from typing import Iterable, Optional

from letter_numbering.core.config import settings
from letter_numbering.core.security import create_access_token
from letter_numbering.domain.entities import Role
from letter_numbering.domain.mapping import (
    COMPANY_COLUMNS,
    LETTER_COLUMNS,
    USER_ACCESS_COLUMNS,
    access_entry_fields,
    company_fields,
)
from letter_numbering.domain.reference import format_reference

COLLECTIONS = (
    (settings.COMPANY_LIST_NAME, COMPANY_COLUMNS),
    (settings.LETTER_LIST_NAME, LETTER_COLUMNS),
    (settings.USER_ACCESS_LIST_NAME, USER_ACCESS_COLUMNS),
)

ADMIN = "admin@contoso.com"
EDITOR = "editor@contoso.com"
VIEWER = "viewer@contoso.com"
STRANGER = "stranger@contoso.com"


async def provision_all(store) -> None:
    for name, columns in COLLECTIONS:
        await store.provision(name, columns)


async def create_company(store, name: str, abbreviation: str, starting_number: int = 1) -> str:
    record = await store.create(
        settings.COMPANY_LIST_NAME,
        company_fields(name, abbreviation, starting_number),
    )
    return record.id


async def create_letter_record(
    store,
    company_id: str,
    company_name: str,
    abbreviation: str,
    sequence: int,
    year: int,
    letter_date: Optional[str] = None,
    recipient: str = "",
    subject: str = "",
) -> str:
    reference = format_reference(abbreviation, sequence, year)
    record = await store.create(
        settings.LETTER_LIST_NAME,
        {
            "Title": subject or reference,
            "ReferenceNumber": reference,
            "CompanyItemId": company_id,
            "CompanyName": company_name,
            "CompanyAbbreviation": abbreviation,
            "SequenceNumber": sequence,
            "Year": year,
            "LetterDate": letter_date or f"{year}-01-15T00:00:00Z",
            "RecipientCompany": recipient,
            "Subject": subject,
            "PreparedBy": "",
            "Notes": "",
        },
    )
    return record.id


async def create_access_entry(
    store, principal: str, role: str, company_ids: Iterable[str] = ()
) -> str:
    record = await store.create(
        settings.USER_ACCESS_LIST_NAME,
        access_entry_fields(list(company_ids), [], principal, Role.parse(role)),
    )
    return record.id


def auth_headers_for(principal: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(principal)}"}

"""
domain/mapping.py
-----------------
Explicit translation between store records (free-form field maps keyed by
SharePoint-style column names) and typed entities.

One decode function per entity, each with defaults for absent fields, and
the fixed column schema each collection is provisioned with.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from letter_numbering.domain.entities import Company, Letter, Role, UserAccessEntry
from letter_numbering.domain.reference import format_reference, parse_sequence, parse_year
from letter_numbering.stores.base import ColumnSpec, StoredRecord

COMPANY_COLUMNS: List[ColumnSpec] = [
    ColumnSpec(name="Abbreviation"),
    ColumnSpec(name="StartingNumber", kind="number"),
    ColumnSpec(name="Color"),
]

LETTER_COLUMNS: List[ColumnSpec] = [
    ColumnSpec(name="ReferenceNumber"),
    ColumnSpec(name="CompanyItemId"),
    ColumnSpec(name="CompanyName"),
    ColumnSpec(name="CompanyAbbreviation"),
    ColumnSpec(name="SequenceNumber", kind="number"),
    ColumnSpec(name="Year", kind="number"),
    ColumnSpec(name="LetterDate", kind="dateTime"),
    ColumnSpec(name="RecipientCompany"),
    ColumnSpec(name="Subject"),
    ColumnSpec(name="PreparedBy"),
    ColumnSpec(name="Notes", kind="multilineText"),
]

USER_ACCESS_COLUMNS: List[ColumnSpec] = [
    ColumnSpec(name="UserPrincipalName"),
    ColumnSpec(name="Role", kind="choice", choices=[r.value for r in Role]),
    ColumnSpec(name="CompanyIds"),
    ColumnSpec(name="CompanyNames"),
]

DEFAULT_COMPANY_COLOR = "#2563eb"


# ── Value coercion ────────────────────────────────────────────────────────────

def to_int(value: Any) -> int:
    """Lenient int: SharePoint number columns arrive as floats or strings."""
    if value is None or value == "":
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_letter_date(value: Any, now: Optional[datetime] = None) -> str:
    """
    Store-ready ISO timestamp for a letter date.

    Absent → now (UTC); a bare date ("2024-03-01") → midnight UTC.
    """
    if value is None or value == "":
        return (now or datetime.now(timezone.utc)).isoformat()
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return f"{value.isoformat()}T00:00:00Z"
    text = str(value)
    if len(text) <= 10:
        return f"{text}T00:00:00Z"
    return text


def split_csv(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split(",")
    return [str(item).strip() for item in items if str(item).strip()]


def normalize_company_ids(company_ids: Optional[Iterable[Any]]) -> List[str]:
    return [str(cid).strip() for cid in (company_ids or []) if cid is not None and str(cid).strip()]


# ── Decoders ─────────────────────────────────────────────────────────────────

def decode_company(record: StoredRecord) -> Company:
    fields = record.fields
    starting = to_int(fields.get("StartingNumber") or fields.get("SequenceSeed")) or 1
    return Company(
        id=record.id,
        name=fields.get("Title") or fields.get("CompanyName") or "Unnamed Company",
        abbreviation=(
            fields.get("Abbreviation")
            or fields.get("CompanyAbbreviation")
            or fields.get("Code")
            or ""
        ),
        starting_number=starting,
        color=fields.get("Color") or DEFAULT_COMPANY_COLOR,
    )


def decode_letter(record: StoredRecord, today: Optional[date] = None) -> Letter:
    """
    Decode a letter record.

    The reference is taken verbatim when stored, otherwise rebuilt from
    abbreviation/sequence/year, otherwise the Title. Sequence and year fall
    back to what the reference string encodes.
    """
    fields = record.fields
    reference = (
        fields.get("ReferenceNumber")
        or format_reference(
            fields.get("CompanyAbbreviation") or "",
            to_int(fields.get("SequenceNumber")),
            to_int(fields.get("Year")),
        )
        or fields.get("Title")
        or ""
    )
    sequence = to_int(fields.get("SequenceNumber")) or parse_sequence(reference)
    year = (
        to_int(fields.get("Year"))
        or parse_year(reference, today=today)
        or (today or date.today()).year
    )
    return Letter(
        id=record.id,
        reference_number=reference,
        company_id=str(fields.get("CompanyItemId") or ""),
        company_name=fields.get("CompanyName") or "",
        company_abbreviation=fields.get("CompanyAbbreviation") or "",
        sequence_number=sequence,
        year=year,
        letter_date=parse_datetime(fields.get("LetterDate")) or record.created_at,
        recipient_company=fields.get("RecipientCompany") or "",
        subject=fields.get("Subject") or reference,
        prepared_by=fields.get("PreparedBy") or "",
        notes=fields.get("Notes") or "",
        web_url=record.web_url,
        created_at=record.created_at,
    )


def decode_access_entry(record: StoredRecord) -> UserAccessEntry:
    fields = record.fields
    return UserAccessEntry(
        id=record.id,
        title=fields.get("Title") or fields.get("UserPrincipalName") or "",
        user_principal_name=fields.get("UserPrincipalName") or "",
        role=Role.parse(fields.get("Role")),
        company_ids=split_csv(fields.get("CompanyIds")),
        company_names=split_csv(fields.get("CompanyNames")),
    )


# ── Encoders ─────────────────────────────────────────────────────────────────

def company_fields(
    name: str,
    abbreviation: str,
    starting_number: int = 1,
    color: Optional[str] = None,
) -> Dict[str, Any]:
    fields: Dict[str, Any] = {
        "Title": name,
        "Abbreviation": abbreviation,
        "StartingNumber": starting_number,
    }
    if color:
        fields["Color"] = color
    return fields


def letter_fields(
    company: Company,
    reference_number: str,
    sequence_number: int,
    year: int,
    letter_date: str,
    recipient_company: str = "",
    subject: str = "",
    prepared_by: str = "",
    notes: str = "",
) -> Dict[str, Any]:
    return {
        "Title": subject or reference_number,
        "ReferenceNumber": reference_number,
        "CompanyItemId": company.id,
        "CompanyName": company.name,
        "CompanyAbbreviation": company.abbreviation,
        "SequenceNumber": sequence_number,
        "Year": year,
        "LetterDate": letter_date,
        "RecipientCompany": recipient_company,
        "Subject": subject,
        "PreparedBy": prepared_by,
        "Notes": notes,
    }


def access_entry_fields(
    company_ids: List[str],
    company_names: List[str],
    user_principal_name: Optional[str] = None,
    role: Optional[Role] = None,
) -> Dict[str, Any]:
    """Fields for a create or partial update; company lists are always written."""
    fields: Dict[str, Any] = {}
    if user_principal_name is not None:
        fields["Title"] = user_principal_name
        fields["UserPrincipalName"] = user_principal_name
    if role is not None:
        fields["Role"] = role.value
    fields["CompanyIds"] = ",".join(company_ids)
    fields["CompanyNames"] = ", ".join(company_names)
    return fields

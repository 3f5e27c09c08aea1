"""
domain/reference.py
-------------------
Reference number codec and the blob-path helpers derived from it.

Canonical form:  {ABBR}/{SEQ:04d}/{YY}     e.g. "EASE/0042/24"

Everything here is pure. Malformed input degrades to "" or 0, never raises.
"""

import re
from datetime import date
from typing import Optional

_SEQUENCE_PATTERN = re.compile(r"^[^/]+/(\d+)/\d{2}$")
_YEAR_PATTERN = re.compile(r"/(\d{2})$")

# Characters SharePoint / most filesystems reject in a path segment
_UNSAFE_SEGMENT_CHARS = re.compile(r'[<>:"/\\|?*\r\n]+')
_WHITESPACE = re.compile(r"\s+")
_EXTENSION = re.compile(r"(\.[^.\s]{1,10})$")

# A reconstructed year further than this into the future belongs to the
# previous century.
CENTURY_ROLLOVER_WINDOW = 10


def two_digit_year(year: int) -> str:
    return str(year)[-2:]


def format_reference(abbreviation: str, sequence: int, year: int) -> str:
    """Render ABBR/SSSS/YY, or "" when any part is missing."""
    if not abbreviation or not sequence or not year:
        return ""
    return f"{abbreviation}/{str(sequence).zfill(4)}/{two_digit_year(year)}"


def parse_sequence(reference: Optional[str]) -> int:
    if not reference:
        return 0
    match = _SEQUENCE_PATTERN.match(reference)
    return int(match.group(1)) if match else 0


def parse_year(reference: Optional[str], today: Optional[date] = None) -> int:
    """
    Rebuild a four-digit year from the trailing YY of a reference.

    The current century is assumed, unless that lands more than
    CENTURY_ROLLOVER_WINDOW years in the future, in which case the
    previous century is used ("99" read in 2024 → 1999).
    """
    if not reference:
        return 0
    match = _YEAR_PATTERN.search(reference)
    if not match:
        return 0
    current_year = (today or date.today()).year
    century = (current_year // 100) * 100
    year = century + int(match.group(1))
    if year > current_year + CENTURY_ROLLOVER_WINDOW:
        year -= 100
    return year


def parse_abbreviation(reference: Optional[str]) -> str:
    if not reference or not _SEQUENCE_PATTERN.match(reference):
        return ""
    return reference.split("/", 1)[0]


# ── Blob path helpers ─────────────────────────────────────────────────────────

def sanitize_segment(value: Optional[str], fallback: str = "General") -> str:
    if not value or not isinstance(value, str):
        return fallback
    cleaned = _UNSAFE_SEGMENT_CHARS.sub("", value.strip())
    cleaned = _WHITESPACE.sub("-", cleaned)
    return cleaned or fallback


def build_folder_path(
    abbreviation: Optional[str],
    name: Optional[str],
    library_root: str = "",
) -> str:
    """Per-company folder: "<root>/<ABBR>" or just "<ABBR>" without a root."""
    company_segment = sanitize_segment(abbreviation or name, "Company")
    root = (library_root or "").strip()
    if root:
        return f"{sanitize_segment(root, 'Letters')}/{company_segment}"
    return company_segment


def reference_file_stem(reference: Optional[str]) -> str:
    """"EASE/0042/24" → "EASE-0042-24"."""
    flattened = re.sub(r"[/\\]", "-", reference or "REF")
    return sanitize_segment(flattened, "REF")


def build_stored_file_name(reference: Optional[str], original_name: Optional[str] = "document") -> str:
    match = _EXTENSION.search(original_name or "")
    extension = match.group(1) if match else ""
    return re.sub(r"-+", "-", f"{reference_file_stem(reference)}{extension}")


def attachment_prefix(reference: Optional[str]) -> str:
    """Lower-cased file-name prefix shared by every attachment of a letter."""
    return reference_file_stem(reference).lower()

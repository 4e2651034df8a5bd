"""CSV import and export of contacts.

Import is forgiving: the delimiter is guessed from the first lines, lines
are then read with standard CSV quoting (so quoted fields may contain the
delimiter), a remaining layer of single quotes is stripped, and only the
first two columns (name, email) are used.
"""

import csv
import io
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

CANDIDATE_DELIMITERS = (",", ";", "\t")
SNIFF_LINES = 5
SINGLE_QUOTE = "'"
EXPORT_HEADER = ("name", "email", "category")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class CsvRow:
    name: str
    email: str
    category_id: Optional[str] = None


@dataclass
class CsvRowError:
    row: int
    email: str
    reason: str


def sniff_delimiter(lines: Sequence[str]) -> str:
    """
    Pick the most frequent candidate delimiter in the first lines.

    Comma wins ties and is the default when no candidate occurs.
    """
    sample = lines[:SNIFF_LINES]
    best, best_count = ",", 0
    for delimiter in CANDIDATE_DELIMITERS:
        count = sum(line.count(delimiter) for line in sample)
        if count > best_count:
            best, best_count = delimiter, count
    return best


def _unquote(field: str) -> str:
    field = field.strip()
    if len(field) >= 2 and field[0] == field[-1] == SINGLE_QUOTE:
        return field[1:-1].replace(SINGLE_QUOTE * 2, SINGLE_QUOTE)
    return field


def _is_header(row: CsvRow) -> bool:
    joined = f"{row.name} {row.email}".lower()
    return "name" in joined and "mail" in joined


def parse_contacts_csv(text: str) -> List[CsvRow]:
    """
    Parse CSV text into ``(name, email)`` rows.

    Args:
        text (str): Decoded file contents.

    Returns:
        list[CsvRow]: Parsed rows with a header row and fully empty
        rows removed. Emails are not validated here.
    """
    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line]
    if not lines:
        return []

    delimiter = sniff_delimiter(lines)
    rows = []
    for record in csv.reader(lines, delimiter=delimiter, skipinitialspace=True):
        fields = [_unquote(field) for field in record]
        name = fields[0] if fields else ""
        email = fields[1] if len(fields) > 1 else ""
        rows.append(CsvRow(name=name, email=email))

    if len(rows) > 1 and _is_header(rows[0]):
        rows = rows[1:]

    return [row for row in rows if row.name or row.email]


def is_valid_email(email: str) -> bool:
    """Check the ``local@domain.tld`` shape."""
    return bool(EMAIL_RE.match(email))


def sanitize_email(email: str) -> str:
    return email.strip().lower()


def validate_rows(rows: Iterable[CsvRow]) -> Tuple[List[CsvRow], List[CsvRowError]]:
    """
    Split rows into importable ones and row-level errors.

    Emails are trimmed and lowercased; a missing name falls back to the
    email. Row numbers in errors start at 1.
    """
    valid: List[CsvRow] = []
    errors: List[CsvRowError] = []
    for number, row in enumerate(rows, start=1):
        email = sanitize_email(row.email)
        if not email:
            errors.append(CsvRowError(row=number, email=row.email, reason="Missing email"))
            continue
        if not is_valid_email(email):
            errors.append(CsvRowError(row=number, email=row.email, reason="Invalid email"))
            continue
        valid.append(
            CsvRow(name=row.name.strip() or email, email=email, category_id=row.category_id)
        )
    return valid, errors


def export_contacts_csv(
    contacts: Iterable, category_names: Optional[Dict[str, str]] = None
) -> str:
    """
    Serialize contacts as CSV with a header row.

    Every field is double-quoted and embedded quotes are doubled.

    Args:
        contacts: Objects with ``name``, ``email`` and ``category_id``.
        category_names: Mapping of category id to name.

    Returns:
        str: CSV text using ``\\n`` line endings.
    """
    category_names = category_names or {}
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    for contact in contacts:
        writer.writerow(
            (
                contact.name,
                contact.email,
                category_names.get(contact.category_id, "") if contact.category_id else "",
            )
        )
    return buffer.getvalue()

"""
Transaction records - parsing delimited text into typed records.

Input rows have five columns in a fixed order:

    Category,Subcategory,Value,TimeStamp,Extra

The first row is a header and is always skipped. Malformed rows are
dropped, unparseable values become 0 and unparseable timestamps are kept
as invalid (None) so they sort after every valid record.
"""

import csv
import io
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from .expr_parser import evaluate_value
from .logging_setup import get_logger

logger = get_logger(__name__)

HEADER = "Category,Subcategory,Value,TimeStamp,Extra"
NUM_FIELDS = 5

# Accepted in addition to ISO-8601 (datetime.fromisoformat)
DATE_FORMATS = (
    '%Y/%m/%d',
    '%Y/%m/%d %H:%M',
    '%Y/%m/%d %H:%M:%S',
    '%m/%d/%Y',
    '%m/%d/%Y %H:%M',
    '%m/%d/%Y %H:%M:%S',
)

# Record attribute for each accepted field name
FIELD_NAMES = {
    'category': 'category',
    'subcategory': 'subcategory',
    'value': 'value',
    'timestamp': 'timestamp',
    'note': 'note',
    'extra': 'note',
}


@dataclass(frozen=True)
class Record:
    """One normalized transaction row."""

    category: str
    subcategory: str
    value: float
    timestamp: Optional[datetime]  # UTC, None when the source was unparseable
    note: str = ""

    @property
    def has_valid_date(self) -> bool:
        return self.timestamp is not None

    def field(self, name: str):
        """Return the value of a field by its configuration name."""
        try:
            return getattr(self, FIELD_NAMES[name.lower()])
        except KeyError:
            raise KeyError(f"Unknown record field: {name!r}") from None


def number_text(value: float) -> str:
    """Render a number the way it would be typed in a cell ("1000", "12.5")."""
    value = float(value)
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def parse_timestamp(text) -> Optional[datetime]:
    """Parse a timestamp string into an aware UTC datetime.

    Naive values are taken to be UTC. Returns None when the string is not
    a recognizable date.
    """
    if isinstance(text, datetime):
        parsed = text
    else:
        text = str(text or '').strip()
        if not text:
            return None
        parsed = None
        try:
            parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
        except ValueError:
            for fmt in DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is None:
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        # Offset pushes the instant outside datetime's range
        return None


def _timestamp_sort_key(record: Record):
    # Invalid timestamps rank after every valid one; sorted() is stable
    if record.timestamp is None:
        return (1, 0.0)
    return (0, record.timestamp.timestamp())


def sort_records(records: List[Record]) -> List[Record]:
    """Return records ordered by timestamp, invalid timestamps last."""
    return sorted(records, key=_timestamp_sort_key)


def record_from_row(row: List[str]) -> Optional[Record]:
    """Build a Record from five raw fields, or None if the row is malformed."""
    if len(row) != NUM_FIELDS:
        return None
    category, subcategory, value, timestamp, note = (field.strip() for field in row)
    return Record(
        category=category,
        subcategory=subcategory,
        value=evaluate_value(value),
        timestamp=parse_timestamp(timestamp),
        note=note,
    )


def parse_records(text: str, separator: str = ',') -> List[Record]:
    """Parse raw delimited text into records sorted by timestamp.

    Args:
        text: Raw text including a header row
        separator: Single-character field separator (default: comma)

    Returns:
        List of Record, ascending by timestamp with invalid dates last
    """
    if not separator or len(separator) != 1:
        raise ValueError(f"Separator must be a single character, got {separator!r}")

    reader = csv.reader(io.StringIO(text or '', newline=''), delimiter=separator, quotechar='"')
    records = []
    dropped = 0
    invalid_dates = 0
    header_seen = False

    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            dropped += 1
            logger.debug("Skipping unreadable row near line %d: %s", reader.line_num, e)
            continue

        if not header_seen:
            header_seen = True
            continue

        # Blank lines
        if not row or (len(row) == 1 and not row[0].strip()):
            continue

        record = record_from_row(row)
        if record is None:
            dropped += 1
            logger.debug("Skipping row with %d fields at line %d", len(row), reader.line_num)
            continue
        if record.timestamp is None:
            invalid_dates += 1
        records.append(record)

    if dropped or invalid_dates:
        logger.debug("Parsed %d records (%d rows dropped, %d invalid dates)",
                     len(records), dropped, invalid_dates)

    return sort_records(records)


def format_row(record: Record, separator: str = ',') -> str:
    """Format a record back into one delimited line (quoting as needed)."""
    if record.timestamp is None:
        timestamp = ''
    else:
        timestamp = record.timestamp.strftime('%Y-%m-%dT%H:%M:%SZ')
    value = number_text(record.value)
    out = io.StringIO()
    writer = csv.writer(out, delimiter=separator, quotechar='"', lineterminator='')
    writer.writerow([record.category, record.subcategory, value, timestamp, record.note])
    return out.getvalue()

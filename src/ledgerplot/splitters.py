"""
Bucketing strategies - group records by a derived key.

Every splitter maps an ordered list of records to a dict of
bucket key -> records. Keys appear in the order they are first seen and
records keep their input order inside a bucket. Nothing is ever dropped:
a record whose date cannot be read lands in the "Invalid Date" bucket.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from .config_loader import ConfigurationError
from .records import FIELD_NAMES, Record, number_text, parse_timestamp

INVALID_DATE_KEY = "Invalid Date"
UNKNOWN_KEY = "Unknown"

KeyFunc = Callable[[Record, str], str]


@dataclass(frozen=True)
class Splitter:
    """A named bucketing strategy."""

    name: str
    help: str
    key_func: KeyFunc

    def split(self, records: Iterable[Record], key: str = 'timestamp') -> Dict[str, List[Record]]:
        """Group records into buckets keyed by key_func(record, key)."""
        if key.lower() not in FIELD_NAMES:
            raise ConfigurationError(
                f"Unknown data source key '{key}'. Valid keys: {', '.join(sorted(FIELD_NAMES))}"
            )
        buckets: Dict[str, List[Record]] = {}
        for record in records:
            buckets.setdefault(self.key_func(record, key), []).append(record)
        return buckets


SPLITTERS: Dict[str, Splitter] = {}

# Names used by older model tables
LEGACY_NAMES = {
    'splitBy': 'field',
    'splitByYear': 'year',
    'splitByYearMonth': 'year_month',
    'splitDailyDates': 'day',
    'splitByQuarter': 'quarter',
    'splitByWeek': 'week',
    'splitBySubcategory': 'subcategory',
    'splitByValueRange': 'value_range',
    'splitByCategory': 'category',
}


def splitter(name: str, help: str):
    """Register a key function as a named splitter."""
    def decorator(func: KeyFunc) -> KeyFunc:
        SPLITTERS[name] = Splitter(name=name, help=help, key_func=func)
        return func
    return decorator


def get_splitter(name: str) -> Splitter:
    """Look up a splitter by canonical or legacy name."""
    resolved = LEGACY_NAMES.get(name, name)
    try:
        return SPLITTERS[resolved]
    except KeyError:
        raise ConfigurationError(
            f"Unknown data source '{name}'. Available: {', '.join(SPLITTERS)}"
        ) from None


def _date_of(record: Record, key: str) -> Optional[datetime]:
    value = record.field(key)
    if isinstance(value, datetime) or isinstance(value, str):
        return parse_timestamp(value)
    return None


def month_key(d: datetime) -> str:
    return f"{d.year}-{d.month:02d}"


@splitter('field', "Split by custom key")
def _by_field(record: Record, key: str) -> str:
    value = record.field(key)
    if value is None:
        return INVALID_DATE_KEY
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, float):
        return number_text(value)
    return str(value)


@splitter('year', "Split by year")
def _by_year(record: Record, key: str) -> str:
    d = _date_of(record, key)
    return str(d.year) if d else INVALID_DATE_KEY


@splitter('year_month', "Split by year/month")
def _by_year_month(record: Record, key: str) -> str:
    d = _date_of(record, key)
    return month_key(d) if d else INVALID_DATE_KEY


@splitter('day', "Split by daily")
def _by_day(record: Record, key: str) -> str:
    d = _date_of(record, key)
    return f"{month_key(d)}-{d.day:02d}" if d else INVALID_DATE_KEY


@splitter('quarter', "Split by quarter (Q1, Q2, Q3, Q4)")
def _by_quarter(record: Record, key: str) -> str:
    d = _date_of(record, key)
    if not d:
        return INVALID_DATE_KEY
    return f"{d.year}-Q{(d.month - 1) // 3 + 1}"


@splitter('week', "Split by week (ISO week number)")
def _by_week(record: Record, key: str) -> str:
    d = _date_of(record, key)
    if not d:
        return INVALID_DATE_KEY
    # ISO year can differ from the calendar year around New Year
    iso_year, iso_week, _ = d.date().isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


@splitter('subcategory', "Split by subcategory")
def _by_subcategory(record: Record, key: str) -> str:
    return record.subcategory or UNKNOWN_KEY


@splitter('value_range', "Split by value ranges (Small: <100, Medium: 100-1000, Large: >1000)")
def _by_value_range(record: Record, key: str) -> str:
    value = abs(record.value or 0)
    if value < 100:
        return 'Small (<100)'
    if value <= 1000:
        return 'Medium (100-1000)'
    return 'Large (>1000)'


@splitter('category', "Split by category")
def _by_category(record: Record, key: str) -> str:
    return record.category or UNKNOWN_KEY

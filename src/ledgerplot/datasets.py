"""
Result structures handed to renderers: chart datasets and reports.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

FALLBACK_COLOR = "#1ac18f"


def _json_number(value):
    # NaN marks "no data"; JSON has no NaN so it becomes null
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


@dataclass(frozen=True)
class Palette:
    """Series colors, looked up by explicit index."""

    colors: Sequence[str] = ()
    fallback: str = FALLBACK_COLOR

    def color_at(self, index: int) -> str:
        if 0 <= index < len(self.colors):
            return self.colors[index]
        return self.fallback


@dataclass
class Series:
    """One named numeric sequence aligned to the dataset labels."""

    name: str
    values: List[float]
    color: Optional[str] = None
    point_colors: Optional[List[str]] = None  # Per-label colors (pie charts)

    @property
    def gaps(self) -> List[int]:
        """Indices with no data (NaN), as opposed to a real zero."""
        return [i for i, v in enumerate(self.values) if isinstance(v, float) and math.isnan(v)]

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'name': self.name,
            'values': [_json_number(v) for v in self.values],
            'color': self.color,
        }
        if self.point_colors is not None:
            result['point_colors'] = list(self.point_colors)
        return result


@dataclass
class Dataset:
    """Chartable multi-series dataset."""

    labels: List[str]
    series: List[Series] = field(default_factory=list)
    kind: str = 'line'
    begin_at_zero: bool = False
    value_format: str = 'money'

    def __post_init__(self):
        for s in self.series:
            if len(s.values) != len(self.labels):
                raise ValueError(
                    f"Series '{s.name}' has {len(s.values)} values for {len(self.labels)} labels"
                )

    def get(self, name: str) -> Optional[Series]:
        for s in self.series:
            if s.name == name:
                return s
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'labels': list(self.labels),
            'series': [s.to_dict() for s in self.series],
            'begin_at_zero': self.begin_at_zero,
            'value_format': self.value_format,
        }


@dataclass
class ReportEntry:
    """One row of a flat report: a single metric for a label."""

    label: str
    value: float
    date: str

    def to_dict(self) -> Dict[str, Any]:
        return {'label': self.label, 'value': _json_number(self.value), 'date': self.date}


@dataclass
class FlatReport:
    entries: List[ReportEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'entries': [e.to_dict() for e in self.entries]}


@dataclass
class EntityEntry:
    """Several metrics for one entity (e.g. a stock symbol)."""

    entity: str
    metric_labels: List[str]
    metric_values: List[float]
    format_hints: Optional[List[str]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def format_for(self, index: int, default: str) -> str:
        """Format hint for one metric, falling back to the model default."""
        if self.format_hints and index < len(self.format_hints) and self.format_hints[index]:
            return self.format_hints[index]
        return default

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'entity': self.entity,
            'metric_labels': list(self.metric_labels),
            'metric_values': [_json_number(v) for v in self.metric_values],
        }
        if self.format_hints is not None:
            result['format_hints'] = list(self.format_hints)
        if self.metadata:
            result['metadata'] = dict(self.metadata)
        return result


@dataclass
class ReportSummary:
    total_symbols: int
    total_value: float
    total_payments: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_symbols': self.total_symbols,
            'total_value': self.total_value,
            'total_payments': self.total_payments,
        }


@dataclass
class MultiEntityReport:
    entries: List[EntityEntry] = field(default_factory=list)
    summary: Optional[ReportSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {'entries': [e.to_dict() for e in self.entries]}
        if self.summary is not None:
            result['summary'] = self.summary.to_dict()
        return result

"""
Aggregation strategies - turn bucketed records into datasets and reports.

Each generator receives a GeneratorInput (the allowed categories, the
bucket mapping, the ordered bucket labels, optional comparison operands,
a target date and the color palette) and returns either a chartable
Dataset or one of the report shapes.

Chart generators:
    sum, daily_snapshot, sum_per_type, cumulative_sum,
    cumulative_sum_per_type, difference, cumulative_difference,
    sum_of_two, dividend_monthly_by_symbol, dividend_cumulative_by_symbol

Report generators:
    last_value_per_type (FlatReport), report_difference, report_sum,
    dividend_analysis (MultiEntityReport)

NaN in a series means "no data" for that bucket, which renderers draw as
a gap; 0.0 is a real value.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import accumulate
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .config_loader import ConfigurationError
from .datasets import (
    Dataset,
    EntityEntry,
    FlatReport,
    MultiEntityReport,
    Palette,
    ReportEntry,
    ReportSummary,
    Series,
)
from .logging_setup import get_logger
from .records import Record
from .splitters import month_key

logger = get_logger(__name__)

CHART = 'chart'
REPORT = 'report'

NAN = float('nan')

# Snapshot entries in this category are balances, not one-off values
PORTFOLIO_CATEGORY = "Portfolio"

DIVIDEND_METRICS = ['Total Dividends', 'Avg Monthly', 'Payment Count']
DIVIDEND_FORMATS = ['money', 'money', 'generic']


@dataclass
class GeneratorInput:
    """Everything a generator may read. Built fresh for every request."""

    categories: Sequence[str]
    buckets: Dict[str, List[Record]]
    labels: List[str]
    values: Optional[Tuple[str, str]] = None
    date: Optional[datetime] = None
    palette: Palette = field(default_factory=Palette)
    chart_kind: str = 'line'
    begin_at_zero: bool = False
    value_format: str = 'money'

    def records_in(self, label: str) -> List[Record]:
        return self.buckets.get(label, [])

    def is_allowed(self, record: Record) -> bool:
        return record.category in self.categories


@dataclass(frozen=True)
class Generator:
    """A named aggregation strategy."""

    name: str
    help: str
    kind: str
    func: Callable[[GeneratorInput], object]
    needs_operands: bool = False

    def run(self, inp: GeneratorInput):
        if self.needs_operands and not inp.values:
            raise ConfigurationError(
                f"Output '{self.name}' needs two comparison categories in 'values' (e.g. 'Income, Expenses')"
            )
        return self.func(inp)


GENERATORS: Dict[str, Generator] = {}

# Names used by older model tables
LEGACY_NAMES = {
    'generateSumDataSet': 'sum',
    'generateDailyDataSet': 'daily_snapshot',
    'generateSumDataSetPerTypes': 'sum_per_type',
    'generateCumulativeSumDataSet': 'cumulative_sum',
    'generateCumulativeSumDataSetPerTypes': 'cumulative_sum_per_type',
    'generateDifference': 'difference',
    'generateCumulativeDifference': 'cumulative_difference',
    'generateSum': 'sum_of_two',
    'getLastValuePerTypeForCurrentMonth': 'last_value_per_type',
    'reportDifference': 'report_difference',
    'reportSum': 'report_sum',
    'generateDividendMonthlyBySymbol': 'dividend_monthly_by_symbol',
    'generateCumulativeDividendBySymbol': 'dividend_cumulative_by_symbol',
    'reportDividendAnalysis': 'dividend_analysis',
}


def generator(name: str, help: str, kind: str = CHART, needs_operands: bool = False):
    """Register a function as a named generator."""
    def decorator(func):
        GENERATORS[name] = Generator(
            name=name, help=help, kind=kind, func=func, needs_operands=needs_operands
        )
        return func
    return decorator


def get_generator(name: str) -> Generator:
    """Look up a generator by canonical or legacy name."""
    resolved = LEGACY_NAMES.get(name, name)
    try:
        return GENERATORS[resolved]
    except KeyError:
        raise ConfigurationError(
            f"Unknown output '{name}'. Available: {', '.join(GENERATORS)}"
        ) from None


# ============================================================================
# HELPERS
# ============================================================================

def running_total(values: Sequence[float]) -> List[float]:
    """Value at i becomes the sum of values 0..i."""
    return list(accumulate(values))


def category_sums(inp: GeneratorInput, category: str) -> List[float]:
    """Per-label sum of values whose category equals `category`."""
    return [
        sum(r.value for r in inp.records_in(label) if r.category == category)
        for label in inp.labels
    ]


def build_dataset(inp: GeneratorInput, series: List[Tuple[str, List[float]]],
                  labels: Optional[List[str]] = None) -> Dataset:
    """Wrap (name, values) pairs into a Dataset, coloring series by index."""
    labels = list(inp.labels if labels is None else labels)
    out = []
    for index, (name, values) in enumerate(series):
        s = Series(name=name, values=list(values), color=inp.palette.color_at(index))
        if inp.chart_kind == 'pie':
            s.point_colors = [inp.palette.color_at(i) for i in range(len(labels))]
        out.append(s)
    return Dataset(
        labels=labels,
        series=out,
        kind=inp.chart_kind,
        begin_at_zero=inp.begin_at_zero,
        value_format=inp.value_format,
    )


def _operand_sums(inp: GeneratorInput):
    first, second = (v.strip() for v in inp.values)
    return first, second, category_sums(inp, first), category_sums(inp, second)


def _discover_symbols(inp: GeneratorInput) -> List[str]:
    """Distinct subcategories of allowed records, in first-seen order."""
    symbols = {}
    for label in inp.labels:
        for r in inp.records_in(label):
            if inp.is_allowed(r):
                symbols.setdefault(r.subcategory, None)
    return list(symbols)


def _symbol_sums(inp: GeneratorInput, symbol: str) -> List[float]:
    return [
        sum(r.value for r in inp.records_in(label)
            if inp.is_allowed(r) and r.subcategory == symbol)
        for label in inp.labels
    ]


# ============================================================================
# CHART GENERATORS
# ============================================================================

def _sum_by_category(inp: GeneratorInput) -> List[Tuple[str, List[float]]]:
    per_label = []
    for label in inp.labels:
        # category -> subcategory -> total
        totals = defaultdict(lambda: defaultdict(float))
        for r in inp.records_in(label):
            if inp.is_allowed(r):
                totals[r.category][r.subcategory] += r.value
        per_label.append(totals)

    return [
        (category, [sum(totals[category].values()) if category in totals else 0.0
                    for totals in per_label])
        for category in inp.categories
    ]


@generator('sum', "Generate Sum Dataset")
def generate_sum(inp: GeneratorInput) -> Dataset:
    return build_dataset(inp, _sum_by_category(inp))


@generator('cumulative_sum', "Generate Cumulative Sum Dataset")
def generate_cumulative_sum(inp: GeneratorInput) -> Dataset:
    return build_dataset(inp, [
        (name, running_total(values)) for name, values in _sum_by_category(inp)
    ])


@generator('daily_snapshot', "Generate Daily Dataset")
def generate_daily_snapshot(inp: GeneratorInput) -> Dataset:
    """Latest value per subcategory in each bucket, summed per category.

    Buckets whose snapshot total across all allowed categories is exactly
    zero are left out of the labels and of every series.
    """
    kept_labels = []
    snapshots = []
    for label in inp.labels:
        latest: Dict[Tuple[str, str], float] = {}
        for r in inp.records_in(label):
            if inp.is_allowed(r):
                latest[(r.category, r.subcategory)] = r.value
        if sum(latest.values()) == 0:
            continue
        kept_labels.append(label)
        snapshots.append(latest)

    pruned = len(inp.labels) - len(kept_labels)
    if pruned:
        logger.debug("daily_snapshot: pruned %d empty bucket(s)", pruned)

    series = []
    for category in inp.categories:
        values = []
        for latest in snapshots:
            found = [v for (c, _), v in latest.items() if c == category]
            values.append(sum(found) if found else NAN)
        series.append((category, values))

    return build_dataset(inp, series, labels=kept_labels)


@generator('sum_per_type', "Generate Sum Dataset Per Categories")
def generate_sum_per_type(inp: GeneratorInput) -> Dataset:
    return build_dataset(inp, [
        (category, category_sums(inp, category)) for category in inp.categories
    ])


@generator('cumulative_sum_per_type', "Generate Cumulative Sum Dataset Per Categories")
def generate_cumulative_sum_per_type(inp: GeneratorInput) -> Dataset:
    return build_dataset(inp, [
        (category, running_total(category_sums(inp, category))) for category in inp.categories
    ])


@generator('difference', "Minus(Category1 - Category2)", needs_operands=True)
def generate_difference(inp: GeneratorInput) -> Dataset:
    first, second, a, b = _operand_sums(inp)
    return build_dataset(inp, [(f"{first} - {second}", [x - y for x, y in zip(a, b)])])


@generator('cumulative_difference', "Minus(sum(Category1) - sum(Category2))", needs_operands=True)
def generate_cumulative_difference(inp: GeneratorInput) -> Dataset:
    first, second, a, b = _operand_sums(inp)
    return build_dataset(inp, [
        (f"{first} - {second}", running_total([x - y for x, y in zip(a, b)]))
    ])


@generator('sum_of_two', "Sum(Category1 + Category2)", needs_operands=True)
def generate_sum_of_two(inp: GeneratorInput) -> Dataset:
    first, second, a, b = _operand_sums(inp)
    return build_dataset(inp, [(f"{first} + {second}", [x + y for x, y in zip(a, b)])])


@generator('dividend_monthly_by_symbol', "Generate monthly dividend data per symbol (subcategory)")
def generate_dividend_by_symbol(inp: GeneratorInput) -> Dataset:
    return build_dataset(inp, [
        (symbol, _symbol_sums(inp, symbol)) for symbol in _discover_symbols(inp)
    ])


@generator('dividend_cumulative_by_symbol', "Generate cumulative dividend data per symbol (subcategory)")
def generate_cumulative_dividend_by_symbol(inp: GeneratorInput) -> Dataset:
    return build_dataset(inp, [
        (symbol, running_total(_symbol_sums(inp, symbol))) for symbol in _discover_symbols(inp)
    ])


# ============================================================================
# REPORT GENERATORS
# ============================================================================

@generator('last_value_per_type', "Get Last Value Per Category For Current Month", kind=REPORT)
def last_value_per_type(inp: GeneratorInput) -> FlatReport:
    """Sum of the latest values per category for the target month.

    Within the month, each (category, subcategory) keeps only its most
    recent record, except Portfolio records which all count.
    """
    target = inp.date or datetime.now(timezone.utc)
    label = month_key(target)

    selected = []
    seen = set()
    for r in reversed(inp.records_in(label)):
        key = (r.category, r.subcategory)
        if r.category == PORTFOLIO_CATEGORY or key not in seen:
            selected.append(r)
        seen.add(key)

    return FlatReport(entries=[
        ReportEntry(
            label=category,
            value=sum(r.value for r in selected if r.category == category),
            date=label,
        )
        for category in inp.categories
    ])


def _combined_report(inp: GeneratorInput, label: str, values: List[float]) -> MultiEntityReport:
    return MultiEntityReport(entries=[
        EntityEntry(entity=label, metric_labels=list(inp.labels), metric_values=values)
    ])


@generator('report_difference', "Report: Minus(Category1 - Category2)", kind=REPORT, needs_operands=True)
def report_difference(inp: GeneratorInput) -> MultiEntityReport:
    first, second, a, b = _operand_sums(inp)
    return _combined_report(inp, f"{first} - {second}", [x - y for x, y in zip(a, b)])


@generator('report_sum', "Report: Sum(Category1 + Category2)", kind=REPORT, needs_operands=True)
def report_sum(inp: GeneratorInput) -> MultiEntityReport:
    first, second, a, b = _operand_sums(inp)
    return _combined_report(inp, f"{first} + {second}", [x + y for x, y in zip(a, b)])


@generator('dividend_analysis', "Report: Comprehensive dividend analysis per symbol", kind=REPORT)
def dividend_analysis(inp: GeneratorInput) -> MultiEntityReport:
    """Per-symbol totals, average per active month and payment dates."""
    payments = [r for label in inp.labels for r in inp.records_in(label) if inp.is_allowed(r)]

    by_symbol: Dict[str, List[Record]] = {}
    for r in payments:
        by_symbol.setdefault(r.subcategory, []).append(r)

    entries = []
    for symbol, records in by_symbol.items():
        total = sum(r.value for r in records)
        dates = [r.timestamp for r in records if r.timestamp is not None]
        months = {month_key(d) for d in dates}
        avg_monthly = total / len(months) if months else 0.0

        entries.append(EntityEntry(
            entity=symbol,
            metric_labels=list(DIVIDEND_METRICS),
            metric_values=[total, avg_monthly, len(records)],
            format_hints=list(DIVIDEND_FORMATS),
            metadata={
                'first_payment': min(dates).date().isoformat() if dates else None,
                'last_payment': max(dates).date().isoformat() if dates else None,
                'total_value': total,
            },
        ))

    return MultiEntityReport(
        entries=entries,
        summary=ReportSummary(
            total_symbols=len(by_symbol),
            total_value=sum(r.value for r in payments),
            total_payments=len(payments),
        ),
    )

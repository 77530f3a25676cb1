"""Tests for aggregation strategies."""

import math
import pytest
from datetime import datetime, timezone

from ledgerplot.config_loader import ConfigurationError
from ledgerplot.datasets import FALLBACK_COLOR, Palette
from ledgerplot.generators import (
    GENERATORS,
    REPORT,
    GeneratorInput,
    get_generator,
    running_total,
)
from ledgerplot.records import Record, sort_records
from ledgerplot.splitters import get_splitter


def _rec(category, subcategory, value, ts):
    if ts is not None:
        ts = datetime.fromisoformat(ts).replace(tzinfo=timezone.utc)
    return Record(category, subcategory, float(value), ts)


def _input(records, data_source, categories, **kwargs):
    buckets = get_splitter(data_source).split(sort_records(records))
    return GeneratorInput(categories=tuple(categories), buckets=buckets, labels=list(buckets), **kwargs)


def _run(name, inp):
    return get_generator(name).run(inp)


@pytest.fixture
def monthly():
    """Income and expenses over two months."""
    return [
        _rec('Income', 'Salary', 1000, '2024-01-15'),
        _rec('Expenses', 'Food', 200, '2024-01-20'),
        _rec('Income', 'Salary', 1100, '2024-02-10'),
    ]


class TestRegistry:
    """Generator lookup."""

    def test_all_registered(self):
        """Every aggregation strategy is available by name."""
        assert set(GENERATORS) == {
            'sum', 'daily_snapshot', 'sum_per_type', 'cumulative_sum',
            'cumulative_sum_per_type', 'difference', 'cumulative_difference',
            'sum_of_two', 'dividend_monthly_by_symbol', 'dividend_cumulative_by_symbol',
            'last_value_per_type', 'report_difference', 'report_sum', 'dividend_analysis',
        }

    def test_legacy_names(self):
        """camelCase names from older model tables resolve."""
        assert get_generator('generateSumDataSetPerTypes').name == 'sum_per_type'
        assert get_generator('getLastValuePerTypeForCurrentMonth').kind == REPORT

    def test_unknown(self):
        """Unknown outputs are a configuration error."""
        with pytest.raises(ConfigurationError, match="Unknown output"):
            get_generator('generateMedian')

    def test_operands_required(self, monthly):
        """Comparison generators refuse to run without operands."""
        with pytest.raises(ConfigurationError):
            _run('difference', _input(monthly, 'year_month', ['Income', 'Expenses']))


class TestSums:
    """Per-category sums and their running totals."""

    def test_sum_per_type_example(self, monthly):
        """Two months of income and expenses bucketed by month."""
        dataset = _run('sum_per_type', _input(monthly, 'year_month', ['Income', 'Expenses']))
        assert dataset.labels == ['2024-01', '2024-02']
        assert dataset.get('Income').values == [1000, 1100]
        assert dataset.get('Expenses').values == [200, 0]

    def test_sum_matches_sum_per_type(self, monthly):
        """sum uses one series per allowed category."""
        inp = _input(monthly, 'year_month', ['Income', 'Expenses'])
        by_sub = _run('sum', inp)
        by_type = _run('sum_per_type', inp)
        assert [s.name for s in by_sub.series] == ['Income', 'Expenses']
        assert [s.values for s in by_sub.series] == [s.values for s in by_type.series]

    def test_disallowed_categories_ignored(self, monthly):
        """Records outside the allow-list never reach a series."""
        records = monthly + [_rec('Mortgage', 'Bank', 5000, '2024-01-01')]
        dataset = _run('sum', _input(records, 'year_month', ['Income']))
        assert [s.name for s in dataset.series] == ['Income']
        assert dataset.get('Income').values == [1000, 1100]

    def test_series_lengths_match_labels(self, monthly):
        """Every series has one value per label."""
        records = monthly + [_rec('Income', 'Bonus', 50, None)]
        for name in ('sum', 'sum_per_type', 'cumulative_sum', 'cumulative_sum_per_type'):
            dataset = _run(name, _input(records, 'year_month', ['Income', 'Expenses', 'Dividend']))
            assert all(len(s.values) == len(dataset.labels) for s in dataset.series)

    @pytest.mark.parametrize('raw_name,cumulative_name', [
        ('sum', 'cumulative_sum'),
        ('sum_per_type', 'cumulative_sum_per_type'),
    ])
    def test_cumulative_is_running_total(self, monthly, raw_name, cumulative_name):
        """cumulative[0] == raw[0] and cumulative[i] == cumulative[i-1] + raw[i]."""
        records = monthly + [_rec('Expenses', 'Rent', 700, '2024-03-01')]
        inp = _input(records, 'year_month', ['Income', 'Expenses'])
        raw = _run(raw_name, inp)
        cumulative = _run(cumulative_name, inp)
        for r, c in zip(raw.series, cumulative.series):
            assert c.values[0] == r.values[0]
            for i in range(1, len(r.values)):
                assert c.values[i] == c.values[i - 1] + r.values[i]

    def test_running_total(self):
        """running_total accumulates left to right."""
        assert running_total([1, 2, 3]) == [1, 3, 6]
        assert running_total([]) == []


class TestComparisons:
    """Two-operand comparisons."""

    def test_difference(self, monthly):
        """difference[i] == sumA[i] - sumB[i]."""
        inp = _input(monthly, 'year_month', ['Income', 'Expenses'], values=('Income', 'Expenses'))
        dataset = _run('difference', inp)
        assert [s.name for s in dataset.series] == ['Income - Expenses']
        assert dataset.series[0].values == [800, 1100]

    def test_cumulative_difference(self, monthly):
        """cumulative_difference is the running total of difference."""
        inp = _input(monthly, 'year_month', ['Income', 'Expenses'], values=('Income', 'Expenses'))
        assert _run('cumulative_difference', inp).series[0].values == [800, 1900]

    def test_sum_of_two(self, monthly):
        """sum_of_two adds the operand sums."""
        inp = _input(monthly, 'year_month', ['Income', 'Expenses'], values=('Income', 'Expenses'))
        dataset = _run('sum_of_two', inp)
        assert dataset.series[0].name == 'Income + Expenses'
        assert dataset.series[0].values == [1200, 1100]

    def test_operands_outside_allow_list(self, monthly):
        """Operands are summed even when not in the allow-list."""
        inp = _input(monthly, 'year_month', ['Income'], values=('Income', 'Expenses'))
        assert _run('difference', inp).series[0].values == [800, 1100]

    def test_report_difference(self, monthly):
        """The report form has one entity with a metric per bucket."""
        inp = _input(monthly, 'year_month', ['Income', 'Expenses'], values=('Income', 'Expenses'))
        report = _run('report_difference', inp)
        assert len(report.entries) == 1
        entry = report.entries[0]
        assert entry.entity == 'Income - Expenses'
        assert entry.metric_labels == ['2024-01', '2024-02']
        assert entry.metric_values == [800, 1100]

    def test_report_sum(self, monthly):
        """report_sum adds the operand sums per bucket."""
        inp = _input(monthly, 'quarter', ['Income', 'Expenses'], values=('Income', 'Expenses'))
        entry = _run('report_sum', inp).entries[0]
        assert entry.metric_labels == ['2024-Q1']
        assert entry.metric_values == [2300]


class TestDailySnapshot:
    """Latest value per subcategory, pruned when a bucket totals zero."""

    @pytest.fixture
    def snapshot(self):
        records = [
            _rec('Income', 'Salary', 100, '2024-01-01T08:00:00'),
            _rec('Income', 'Salary', 150, '2024-01-01T09:00:00'),
            _rec('Expenses', 'Food', 50, '2024-01-01T10:00:00'),
            _rec('Income', 'Salary', 0, '2024-01-02'),
            _rec('Mortgage', 'Bank', 500, '2024-01-02'),
            _rec('Income', 'Bonus', 20, '2024-01-03'),
            _rec('Expenses', 'Food', -20, '2024-01-03'),
            _rec('Expenses', 'Food', 0, '2024-01-04'),
            _rec('Income', 'Salary', 30, '2024-01-04'),
            _rec('Income', 'Salary', 10, '2024-01-05'),
        ]
        return _run('daily_snapshot', _input(records, 'day', ['Income', 'Expenses']))

    def test_latest_value_wins(self, snapshot):
        """Later records for the same subcategory replace earlier ones."""
        assert snapshot.get('Income').values[0] == 150
        assert snapshot.get('Expenses').values[0] == 50

    def test_zero_total_buckets_pruned(self, snapshot):
        """Buckets whose allowed total is zero vanish from labels and series."""
        assert snapshot.labels == ['2024-01-01', '2024-01-04', '2024-01-05']
        assert all(len(s.values) == 3 for s in snapshot.series)

    def test_missing_category_is_gap(self, snapshot):
        """A category with no entries in a kept bucket is NaN; a real 0 stays 0."""
        assert snapshot.get('Expenses').values[1] == 0
        assert math.isnan(snapshot.get('Expenses').values[2])
        assert snapshot.get('Expenses').gaps == [2]
        assert snapshot.get('Income').values == [150, 30, 10]

    def test_subcategories_summed(self):
        """Different subcategories of one category add up."""
        records = [
            _rec('Portfolio', 'ETF', 1000, '2024-01-01'),
            _rec('Portfolio', 'Bonds', 500, '2024-01-01'),
        ]
        dataset = _run('daily_snapshot', _input(records, 'day', ['Portfolio']))
        assert dataset.get('Portfolio').values == [1500]


class TestLastValuePerType:
    """Point-in-time monthly report."""

    @pytest.fixture
    def records(self):
        return [
            _rec('Portfolio', 'ETF', 100, '2024-01-05'),
            _rec('Income', 'Salary', 1000, '2024-01-10'),
            _rec('Portfolio', 'ETF', 200, '2024-01-20'),
            _rec('Income', 'Salary', 1200, '2024-01-25'),
            _rec('Income', 'Salary', 5000, '2024-02-01'),
        ]

    def test_portfolio_sums_and_others_dedup(self, records):
        """Portfolio rows all count; other categories keep the latest per subcategory."""
        inp = _input(records, 'year_month', ['Portfolio', 'Income', 'Expenses'],
                     date=datetime(2024, 1, 15, tzinfo=timezone.utc))
        report = _run('last_value_per_type', inp)
        assert [(e.label, e.value, e.date) for e in report.entries] == [
            ('Portfolio', 300, '2024-01'),
            ('Income', 1200, '2024-01'),
            ('Expenses', 0, '2024-01'),
        ]

    def test_month_without_data(self, records):
        """A month with no records reports zeros."""
        inp = _input(records, 'year_month', ['Income'], date=datetime(2023, 6, 1, tzinfo=timezone.utc))
        report = _run('last_value_per_type', inp)
        assert report.entries[0].value == 0
        assert report.entries[0].date == '2023-06'


class TestDividends:
    """Per-symbol dividend charts and the dividend analysis report."""

    @pytest.fixture
    def payments(self):
        return [
            _rec('Dividend', 'AAPL', 10, '2024-01-15'),
            _rec('Dividend', 'AAPL', 12, '2024-01-28'),
            _rec('Dividend', 'MSFT', 5, '2024-02-10'),
            _rec('Dividend', 'AAPL', 11, '2024-03-15'),
            _rec('Cotisation', 'Fund', 99, '2024-03-20'),
        ]

    def test_monthly_by_symbol(self, payments):
        """One series per symbol in first-seen order."""
        dataset = _run('dividend_monthly_by_symbol', _input(payments, 'year_month', ['Dividend']))
        assert dataset.labels == ['2024-01', '2024-02', '2024-03']
        assert [s.name for s in dataset.series] == ['AAPL', 'MSFT']
        assert dataset.get('AAPL').values == [22, 0, 11]
        assert dataset.get('MSFT').values == [0, 5, 0]

    def test_cumulative_by_symbol(self, payments):
        """Cumulative per-symbol series are running totals."""
        dataset = _run('dividend_cumulative_by_symbol', _input(payments, 'year_month', ['Dividend']))
        assert dataset.get('AAPL').values == [22, 22, 33]
        assert dataset.get('MSFT').values == [0, 5, 5]

    def test_analysis(self, payments):
        """Totals, average per active month, counts and payment dates."""
        records = payments + [_rec('Dividend', 'VT', 3, None)]
        report = _run('dividend_analysis', _input(records, 'year_month', ['Dividend']))

        assert [e.entity for e in report.entries] == ['AAPL', 'MSFT', 'VT']
        aapl, msft, vt = report.entries
        assert aapl.metric_labels == ['Total Dividends', 'Avg Monthly', 'Payment Count']
        assert aapl.metric_values == [33, 16.5, 3]
        assert aapl.format_hints == ['money', 'money', 'generic']
        assert aapl.metadata['first_payment'] == '2024-01-15'
        assert aapl.metadata['last_payment'] == '2024-03-15'
        assert msft.metric_values == [5, 5, 1]

        # No valid dates: no months to average over
        assert vt.metric_values == [3, 0, 1]
        assert vt.metadata['first_payment'] is None

        assert report.summary.total_symbols == 3
        assert report.summary.total_value == 41
        assert report.summary.total_payments == 5

    def test_analysis_empty(self):
        """No payments yields no entries and a zero summary."""
        report = _run('dividend_analysis', _input([], 'year_month', ['Dividend']))
        assert report.entries == []
        assert report.summary.total_symbols == 0
        assert report.summary.total_value == 0


class TestColors:
    """Series coloring by index."""

    def test_colors_by_index_with_fallback(self, monthly):
        """Series past the end of the palette use the fallback color."""
        inp = _input(monthly, 'year_month', ['Income', 'Expenses', 'Dividend'],
                     palette=Palette(('#111111', '#222222')))
        dataset = _run('sum_per_type', inp)
        assert [s.color for s in dataset.series] == ['#111111', '#222222', FALLBACK_COLOR]

    def test_each_call_starts_at_first_color(self, monthly):
        """Palette position is not carried over between calls."""
        inp = _input(monthly, 'year_month', ['Income'], palette=Palette(('#111111', '#222222')))
        first = _run('sum', inp)
        second = _run('sum', inp)
        assert first.series[0].color == second.series[0].color == '#111111'

    def test_pie_point_colors(self, monthly):
        """Pie charts color each label."""
        inp = _input(monthly, 'year_month', ['Income'], chart_kind='pie',
                     palette=Palette(('#111111', '#222222')))
        dataset = _run('sum_per_type', inp)
        assert dataset.kind == 'pie'
        assert dataset.series[0].point_colors == ['#111111', '#222222']

    def test_line_has_no_point_colors(self, monthly):
        """Line charts only color whole series."""
        dataset = _run('sum_per_type', _input(monthly, 'year_month', ['Income']))
        assert dataset.series[0].point_colors is None

"""
ledgerplot CLI - Command-line interface.

Usage:
    ledgerplot chart data.csv --model expenses_monthly          # Dataset as JSON
    ledgerplot chart a.csv b.csv --model net_monthly -f text    # Plain-text table
    ledgerplot report data.csv --model portfolio_report --date 2024-01-31
    ledgerplot models --config ./config                         # List models
    ledgerplot strategies                                       # List splitters/outputs
"""

import argparse
import json
import os
import sys

from . import __version__
from .config_loader import (
    DEFAULT_COLORS,
    DEFAULT_MODELS,
    ConfigurationError,
    find_config_dir,
    load_config,
)
from .datasets import Dataset, FlatReport
from .formatting import format_value
from .generators import GENERATORS
from .logging_setup import configure_logging, get_logger
from .pipeline import CHART_KINDS, build_chart, build_report
from .records import HEADER
from .splitters import SPLITTERS

logger = get_logger(__name__)


# Terminal color support
def _supports_color():
    """Check if the terminal supports color output."""
    if not sys.stdout.isatty():
        return False
    if os.environ.get('NO_COLOR'):
        return False
    if os.environ.get('FORCE_COLOR'):
        return True
    return os.environ.get('TERM', '') != 'dumb'


class _Colors:
    """ANSI color codes with automatic detection."""
    def __init__(self):
        if _supports_color():
            self.RESET = '\033[0m'
            self.BOLD = '\033[1m'
            self.DIM = '\033[2m'
            self.CYAN = '\033[36m'
        else:
            self.RESET = ''
            self.BOLD = ''
            self.DIM = ''
            self.CYAN = ''

C = _Colors()


def _fail(message):
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def load_csv_text(paths):
    """Read one or more CSV files into a single text with one header row."""
    lines = [HEADER]
    for path in paths:
        if not os.path.exists(path):
            raise FileNotFoundError(f"Data file not found: {path}")
        with open(path, 'r', encoding='utf-8', newline='') as f:
            content = f.read()
        # Drop this file's header; quoted newlines stay intact
        _, _, body = content.partition('\n')
        if body.strip():
            lines.append(body.rstrip('\r\n'))
    return '\n'.join(lines) + '\n'


def _load_settings(args):
    """Return (models, colors, separator) from --config or the defaults."""
    config_dir = args.config or find_config_dir()
    if not config_dir:
        return dict(DEFAULT_MODELS), DEFAULT_COLORS, args.separator or ','
    config = load_config(config_dir, args.settings)
    return config['models'], config['colors'], args.separator or config['csv_separator']


def _render_chart_text(dataset: Dataset):
    names = [s.name for s in dataset.series]
    rows = [[label] + [format_value(s.values[i], dataset.value_format) for s in dataset.series]
            for i, label in enumerate(dataset.labels)]
    _print_table(['Label'] + names, rows)


def _render_report_text(report, value_format, table):
    if isinstance(report, FlatReport):
        if table:
            _print_table(['Category', 'Value', 'Date'],
                         [[e.label, format_value(e.value, value_format), e.date] for e in report.entries])
        else:
            date = report.entries[0].date if report.entries else ''
            print(f"{C.BOLD}Report {date}{C.RESET}")
            for e in report.entries:
                print(f"  {e.label}: {format_value(e.value, value_format)}")
        return

    if table:
        rows = []
        for e in report.entries:
            for i, label in enumerate(e.metric_labels):
                rows.append([e.entity, label, format_value(e.metric_values[i], e.format_for(i, value_format))])
        _print_table(['Entity', 'Metric', 'Value'], rows)
    else:
        for e in report.entries:
            print(f"{C.BOLD}{e.entity}{C.RESET}")
            for i, label in enumerate(e.metric_labels):
                print(f"  {label}: {format_value(e.metric_values[i], e.format_for(i, value_format))}")
    if report.summary:
        s = report.summary
        print()
        print(f"{C.DIM}Symbols: {s.total_symbols}  Total: {format_value(s.total_value, 'money')}  "
              f"Payments: {s.total_payments}{C.RESET}")


def _print_table(headers, rows):
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(str(cell)))
    print('  '.join(f"{C.BOLD}{h:<{widths[i]}}{C.RESET}" for i, h in enumerate(headers)))
    for row in rows:
        print('  '.join(f"{str(cell):<{widths[i]}}" for i, cell in enumerate(row)))


def cmd_chart(args):
    """Handle the 'chart' subcommand."""
    try:
        models, colors, separator = _load_settings(args)
        text = load_csv_text(args.files)
        dataset = build_chart(text, args.model, models, colors, args.kind, separator)
    except (ConfigurationError, FileNotFoundError) as e:
        _fail(e)

    if args.format == 'json':
        print(json.dumps(dataset.to_dict(), indent=2))
    else:
        _render_chart_text(dataset)


def cmd_report(args):
    """Handle the 'report' subcommand."""
    try:
        models, _, separator = _load_settings(args)
        text = load_csv_text(args.files)
        report = build_report(text, args.model, models, args.date, separator)
    except (ConfigurationError, FileNotFoundError) as e:
        _fail(e)

    if args.format == 'json':
        print(json.dumps(report.to_dict(), indent=2))
    else:
        value_format = models[args.model].chart_label_type
        _render_report_text(report, value_format, table=args.format == 'table')


def cmd_models(args):
    """Handle the 'models' subcommand."""
    try:
        models, _, _ = _load_settings(args)
    except (ConfigurationError, FileNotFoundError) as e:
        _fail(e)

    if args.format == 'json':
        print(json.dumps({name: m.to_dict() for name, m in models.items()}, indent=2))
        return
    for name, model in sorted(models.items()):
        print(f"{C.CYAN}{name}{C.RESET}")
        print(f"  {model.data_source} -> {model.output}  [{', '.join(model.categories)}]")


def cmd_strategies(args):
    """Handle the 'strategies' subcommand."""
    print(f"{C.BOLD}Data sources{C.RESET}")
    for name, s in SPLITTERS.items():
        print(f"  {name:<32} {s.help}")
    print()
    print(f"{C.BOLD}Outputs{C.RESET}")
    for name, g in GENERATORS.items():
        print(f"  {name:<32} {g.help} ({g.kind})")


def _add_config_args(parser):
    parser.add_argument(
        '--config', '-c',
        help='Path to config directory (default: $LEDGERPLOT_CONFIG or ./config)'
    )
    parser.add_argument(
        '--settings', '-s',
        default='settings.yaml',
        help='Settings file name (default: settings.yaml)'
    )
    parser.add_argument(
        '--separator',
        help='CSV field separator (default: csv_separator from settings, or ",")'
    )


def main(argv=None):
    """Main entry point for ledgerplot CLI."""
    parser = argparse.ArgumentParser(
        prog='ledgerplot',
        description='Turn transaction CSV files into chart datasets and reports.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--version', action='version', version=f'ledgerplot {__version__}')
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Show debug logging (dropped rows, pruned buckets)'
    )

    subparsers = parser.add_subparsers(dest='command', title='commands', metavar='<command>')

    chart_parser = subparsers.add_parser('chart', help='Build a chart dataset from a model')
    chart_parser.add_argument('files', nargs='+', help='CSV files (Category,Subcategory,Value,TimeStamp,Extra)')
    chart_parser.add_argument('--model', '-m', required=True, help='Model name')
    chart_parser.add_argument(
        '--kind', '-k',
        choices=CHART_KINDS,
        default='line',
        help='Chart kind (default: line)'
    )
    chart_parser.add_argument(
        '--format', '-f',
        choices=['json', 'text'],
        default='json',
        help='Output format: json (default) or text'
    )
    _add_config_args(chart_parser)

    report_parser = subparsers.add_parser('report', help='Build a report from a model')
    report_parser.add_argument('files', nargs='+', help='CSV files (Category,Subcategory,Value,TimeStamp,Extra)')
    report_parser.add_argument('--model', '-m', required=True, help='Model name')
    report_parser.add_argument('--date', '-d', help='Target date for point-in-time reports (default: today)')
    report_parser.add_argument(
        '--format', '-f',
        choices=['json', 'text', 'table'],
        default='json',
        help='Output format: json (default), text or table'
    )
    _add_config_args(report_parser)

    models_parser = subparsers.add_parser('models', help='List configured models')
    models_parser.add_argument(
        '--format', '-f',
        choices=['text', 'json'],
        default='text',
        help='Output format: text (default) or json'
    )
    _add_config_args(models_parser)

    subparsers.add_parser('strategies', help='List data sources and outputs')

    args = parser.parse_args(argv)

    configure_logging('DEBUG' if args.verbose else None)

    if args.command == 'chart':
        cmd_chart(args)
    elif args.command == 'report':
        cmd_report(args)
    elif args.command == 'models':
        cmd_models(args)
    elif args.command == 'strategies':
        cmd_strategies(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()

"""
ledgerplot - chart datasets and reports from transaction CSV files.
"""

__version__ = "0.8.0"

from .config_loader import DEFAULT_COLORS, DEFAULT_MODELS, ConfigurationError, ModelConfig, load_config
from .datasets import Dataset, EntityEntry, FlatReport, MultiEntityReport, ReportEntry, ReportSummary, Series
from .expr_parser import evaluate_value
from .pipeline import build_chart, build_report, resolve_model
from .records import Record, parse_records

__all__ = [
    'ConfigurationError',
    'DEFAULT_COLORS',
    'DEFAULT_MODELS',
    'Dataset',
    'EntityEntry',
    'FlatReport',
    'ModelConfig',
    'MultiEntityReport',
    'Record',
    'ReportEntry',
    'ReportSummary',
    'Series',
    'build_chart',
    'build_report',
    'evaluate_value',
    'load_config',
    'parse_records',
    'resolve_model',
]

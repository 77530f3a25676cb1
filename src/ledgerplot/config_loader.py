"""
Configuration loader for chart and report models.

Loads settings from YAML config files. A settings file looks like:

    csv_separator: ","
    colors: ["#1ac18f", "#8ecae6"]
    models:
      net_monthly:
        data_source: year_month
        categories: [Income, Expenses]
        output: difference
        values: Income, Expenses
        chart_label_type: money

camelCase keys (dataSource, chartLabelType, types, ...) are accepted too,
so model tables exported by older tools load unchanged.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

VALUE_FORMATS = ('money', 'percent', 'generic', 'custom')

DEFAULT_COLORS = (
    "#1ac18f", "#EAE2B7", "#8ecae6", "#219ebc", "#026597", "#be37a5",
    "#fb8500", "#ffbe0b", "#fff5b8", "#ff006e", "#8338ec", "#3a86ff",
    "#390099", "#9e0059", "#8c3b56", "#ff5400", "#ffbd00", "#619b8a",
    "#7678ed", "#c2e83b", "#33658a", "#ce6a85", "#985277", "#5c374c",
    "#ba66ff", "#2176ff", "#33a1fd", "#7cd671", "#22def7",
)

DEFAULT_TYPES = (
    "Portfolio", "Income", "Mortgage", "Mortgage Rate", "Cotisation",
    "Dividend", "House Expenses", "Expenses", "Generic",
)

# Older model tables use these names for the same settings
_KEY_ALIASES = {
    'types': 'categories',
    'type': 'categories',
    'value_format': 'chart_label_type',
}


class ConfigurationError(ValueError):
    """A model or settings value does not resolve to something usable."""

    def __init__(self, message: str, model: Optional[str] = None):
        self.model = model
        if model:
            message = f"Model '{model}': {message}"
        super().__init__(message)


def _snake_case(key: str) -> str:
    return re.sub(r'(?<!^)(?=[A-Z])', '_', key).lower()


def _split_list(value) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = value.split(',')
    return tuple(str(v).strip() for v in value if str(v).strip())


_TRUE_STRINGS = ('true', 'yes', 'on', '1')
_FALSE_STRINGS = ('false', 'no', 'off', '0', '')


def _as_bool(value, key: str, model: Optional[str] = None) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ConfigurationError(f"{key} must be true or false, got {value!r}", model)


def parse_operands(value, model: Optional[str] = None) -> Optional[Tuple[str, str]]:
    """Parse comparison operands ("Income, Expenses") into a pair.

    Returns None when no operands are configured.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if not isinstance(value, (str, list, tuple)):
        raise ConfigurationError(f"values must be a list or comma-separated string, got {value!r}", model)
    operands = _split_list(value)
    if len(operands) != 2:
        raise ConfigurationError(
            f"values must name exactly two categories (e.g. 'Income, Expenses'), got {value!r}", model
        )
    return operands[0], operands[1]


@dataclass(frozen=True)
class ModelConfig:
    """A named combination of bucketing, category filter and aggregation."""

    name: str
    data_source: str  # Bucketing strategy name
    output: str  # Aggregation strategy name
    categories: Tuple[str, ...] = ()
    data_source_key: str = 'timestamp'
    begin_at_zero: bool = False
    chart_label_type: str = 'money'
    values: Optional[Tuple[str, str]] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, name: str, raw: Mapping[str, Any]) -> 'ModelConfig':
        """Build a ModelConfig from a settings mapping (snake or camel case keys)."""
        if isinstance(raw, ModelConfig):
            return raw
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"expected a mapping, got {type(raw).__name__}", name)

        data = {}
        for key, value in raw.items():
            key = _snake_case(str(key))
            data[_KEY_ALIASES.get(key, key)] = value

        for required in ('data_source', 'output'):
            if not data.get(required):
                raise ConfigurationError(f"missing '{required}'", name)

        label_type = str(data.get('chart_label_type') or 'money').lower()
        if label_type not in VALUE_FORMATS:
            raise ConfigurationError(
                f"chart_label_type must be one of {', '.join(VALUE_FORMATS)}, got {label_type!r}", name
            )

        known = {'data_source', 'output', 'categories', 'data_source_key',
                 'begin_at_zero', 'chart_label_type', 'values'}
        return cls(
            name=name,
            data_source=str(data['data_source']).strip(),
            output=str(data['output']).strip(),
            categories=_split_list(data.get('categories')),
            data_source_key=str(data.get('data_source_key') or 'timestamp').strip(),
            begin_at_zero=_as_bool(data.get('begin_at_zero', False), 'begin_at_zero', name),
            chart_label_type=label_type,
            values=parse_operands(data.get('values'), name),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'data_source': self.data_source,
            'data_source_key': self.data_source_key,
            'categories': list(self.categories),
            'output': self.output,
            'begin_at_zero': self.begin_at_zero,
            'chart_label_type': self.chart_label_type,
        }
        if self.values:
            result['values'] = ', '.join(self.values)
        return result


def build_models(raw_models: Optional[Mapping[str, Any]]) -> Dict[str, ModelConfig]:
    """Convert a mapping of model name -> settings into ModelConfig objects."""
    if raw_models is None:
        return {}
    if not isinstance(raw_models, Mapping):
        raise ConfigurationError(f"'models' must be a mapping of name to model, got {type(raw_models).__name__}")
    return {str(name): ModelConfig.from_dict(str(name), raw) for name, raw in raw_models.items()}


_EXPENSE_TYPES = ["Income", "House Expenses", "Expenses"]
_REPORT_TYPES = ["Portfolio", "Income", "Cotisation", "Expenses", "House Expenses", "Dividend"]

DEFAULT_MODELS = build_models({
    'expenses': {
        'data_source': 'day', 'categories': _EXPENSE_TYPES,
        'output': 'daily_snapshot', 'begin_at_zero': True,
    },
    'expenses_monthly': {
        'data_source': 'year_month', 'categories': _EXPENSE_TYPES,
        'output': 'sum', 'begin_at_zero': True,
    },
    'portfolio': {
        'data_source': 'day', 'categories': ['Portfolio'],
        'output': 'daily_snapshot', 'begin_at_zero': False,
    },
    'income_yearly': {
        'data_source': 'year', 'categories': ['Income'],
        'output': 'sum', 'begin_at_zero': True,
    },
    'income': {
        'data_source': 'day', 'categories': ['Income'],
        'output': 'daily_snapshot', 'begin_at_zero': True,
    },
    'all': {
        'data_source': 'day', 'categories': list(DEFAULT_TYPES[:-1]),
        'output': 'daily_snapshot', 'begin_at_zero': True,
    },
    'mortgage': {
        'data_source': 'day', 'categories': ['Mortgage'],
        'output': 'daily_snapshot', 'begin_at_zero': False,
    },
    'mortgage_rate': {
        'data_source': 'day', 'categories': ['Mortgage Rate'],
        'output': 'daily_snapshot', 'begin_at_zero': True, 'chart_label_type': 'percent',
    },
    'dividend': {
        'data_source': 'year_month', 'categories': ['Dividend', 'Cotisation'],
        'output': 'sum_per_type', 'begin_at_zero': True,
    },
    'portfolio_report': {
        'data_source': 'year_month', 'categories': _REPORT_TYPES,
        'output': 'last_value_per_type',
    },
    'cumulative_sum': {
        'data_source': 'year_month', 'categories': _REPORT_TYPES,
        'output': 'cumulative_sum', 'begin_at_zero': True,
    },
    'cumulative_sum_per_type': {
        'data_source': 'year_month', 'categories': _REPORT_TYPES,
        'output': 'cumulative_sum_per_type', 'begin_at_zero': True,
    },
    'net_monthly': {
        'data_source': 'year_month', 'categories': ['Income', 'Expenses'],
        'output': 'difference', 'values': 'Income, Expenses', 'begin_at_zero': True,
    },
    'expenses_quarterly': {
        'data_source': 'quarter', 'categories': _EXPENSE_TYPES,
        'output': 'sum', 'begin_at_zero': True,
    },
    'income_weekly': {
        'data_source': 'week', 'categories': ['Income'],
        'output': 'sum_per_type', 'begin_at_zero': True,
    },
    'portfolio_by_value_range': {
        'data_source': 'value_range', 'categories': ['Portfolio'],
        'output': 'sum_per_type', 'begin_at_zero': True,
    },
    'expenses_by_subcategory': {
        'data_source': 'subcategory', 'categories': ['Expenses'],
        'output': 'sum_per_type', 'begin_at_zero': True,
    },
    'all_categories_breakdown': {
        'data_source': 'category', 'categories': list(DEFAULT_TYPES[:-1]),
        'output': 'sum_per_type', 'begin_at_zero': True,
    },
    'portfolio_report_table': {
        'data_source': 'year_month', 'categories': ['Portfolio', 'Income', 'Expenses'],
        'output': 'last_value_per_type',
    },
    'quarterly_income_expense_report': {
        'data_source': 'quarter', 'categories': ['Income', 'Expenses'],
        'output': 'report_difference', 'values': 'Income, Expenses',
    },
    'weekly_expense_analysis': {
        'data_source': 'week', 'categories': ['Expenses', 'House Expenses'],
        'output': 'cumulative_sum', 'begin_at_zero': True,
    },
    'dividend_monthly_by_symbol': {
        'data_source': 'year_month', 'categories': ['Dividend'],
        'output': 'dividend_monthly_by_symbol', 'begin_at_zero': True,
    },
    'dividend_cumulative_by_symbol': {
        'data_source': 'year_month', 'categories': ['Dividend'],
        'output': 'dividend_cumulative_by_symbol', 'begin_at_zero': True,
    },
    'dividend_analysis_report': {
        'data_source': 'year_month', 'categories': ['Dividend'],
        'output': 'dividend_analysis',
    },
    'dividend_quarterly_by_symbol': {
        'data_source': 'quarter', 'categories': ['Dividend'],
        'output': 'dividend_monthly_by_symbol', 'begin_at_zero': True,
    },
})


def find_config_dir():
    """Find the config directory.

    Resolution order:
    1. LEDGERPLOT_CONFIG environment variable (if set and exists)
    2. ./config

    Returns None if no config directory is found.
    """
    env_config = os.environ.get('LEDGERPLOT_CONFIG')
    if env_config:
        env_path = os.path.abspath(env_config)
        if os.path.isdir(env_path):
            return env_path

    local = os.path.abspath('config')
    if os.path.isdir(local):
        return local

    return None


def load_settings(config_dir, settings_file='settings.yaml'):
    """Load the raw settings mapping from settings.yaml (or specified file)."""
    settings_path = os.path.join(config_dir, settings_file)

    if not os.path.exists(settings_path):
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with open(settings_path, 'r', encoding='utf-8') as f:
        settings = yaml.safe_load(f)

    if settings is None:
        return {}
    if not isinstance(settings, dict):
        raise ConfigurationError(f"Settings file must contain a mapping: {settings_path}")
    return settings


def resolve_settings(settings: Mapping[str, Any]) -> Dict[str, Any]:
    """Normalize a raw settings mapping.

    User models are merged over DEFAULT_MODELS (user definitions win).
    """
    settings = {_snake_case(str(k)): v for k, v in settings.items()}

    models = dict(DEFAULT_MODELS)
    models.update(build_models(settings.get('models')))

    colors = settings.get('colors') or DEFAULT_COLORS
    if isinstance(colors, str):
        colors = _split_list(colors)
    colors = tuple(str(c) for c in colors)

    separator = settings.get('csv_separator', ',')
    if separator == '\\t':
        separator = '\t'
    if not isinstance(separator, str) or len(separator) != 1:
        raise ConfigurationError(f"csv_separator must be a single character, got {separator!r}")

    return {
        'models': models,
        'colors': colors,
        'csv_separator': separator,
    }


def load_config(config_dir, settings_file='settings.yaml'):
    """Load all configuration.

    Args:
        config_dir: Path to config directory containing settings.yaml.
        settings_file: Name of the settings file to load (default: settings.yaml)

    Returns:
        dict with 'models', 'colors', 'csv_separator' and '_config_dir'
    """
    config_dir = os.path.abspath(config_dir)

    if not os.path.isdir(config_dir):
        raise FileNotFoundError(f"Config directory not found: {config_dir}")

    config = resolve_settings(load_settings(config_dir, settings_file))
    config['_config_dir'] = config_dir
    return config

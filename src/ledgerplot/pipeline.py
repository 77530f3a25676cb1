"""
Model resolution - raw CSV text + model name -> dataset or report.

    records = parse_records(text)                 # Record Parser
    buckets = splitter.split(records, key)        # Bucketing Strategy
    result  = generator.run(GeneratorInput(...))  # Aggregation Strategy

build_chart() and build_report() are the two entry points. Both take the
model table explicitly and check that the model's output belongs to the
family they produce.
"""

from datetime import datetime
from typing import Any, Mapping, Optional, Sequence, Union

from .config_loader import DEFAULT_COLORS, ConfigurationError, ModelConfig
from .datasets import Dataset, FlatReport, MultiEntityReport, Palette
from .generators import CHART, REPORT, GeneratorInput, get_generator
from .logging_setup import get_logger
from .records import parse_records, parse_timestamp
from .splitters import get_splitter

logger = get_logger(__name__)

CHART_KINDS = ('line', 'pie', 'radar')

Report = Union[FlatReport, MultiEntityReport]


def resolve_model(model_name: str, models: Mapping[str, Any]) -> ModelConfig:
    """Look up a model by name; plain mappings are converted to ModelConfig."""
    if models is None:
        raise ConfigurationError("No model table given")
    if not model_name or model_name not in models:
        available = ', '.join(sorted(models)) or '(none)'
        raise ConfigurationError(f"Model '{model_name}' not found. Available models: {available}")
    return ModelConfig.from_dict(model_name, models[model_name])


def _prepare(text, model: ModelConfig, separator, expected_kind, **extra) -> Any:
    if not isinstance(separator, str) or len(separator) != 1:
        raise ConfigurationError(f"Separator must be a single character, got {separator!r}")
    splitter = get_splitter(model.data_source)
    gen = get_generator(model.output)
    if gen.kind != expected_kind:
        raise ConfigurationError(
            f"output '{model.output}' produces a {gen.kind}, not a {expected_kind}", model.name
        )
    if gen.needs_operands and not model.values:
        raise ConfigurationError(
            f"output '{model.output}' needs 'values' with two categories (e.g. 'Income, Expenses')",
            model.name,
        )

    records = parse_records(text, separator)
    buckets = splitter.split(records, model.data_source_key)
    logger.debug("Model %s: %d records in %d buckets (%s -> %s)",
                  model.name, len(records), len(buckets), splitter.name, gen.name)

    inp = GeneratorInput(
        categories=tuple(model.categories),
        buckets=buckets,
        labels=list(buckets),
        values=model.values,
        begin_at_zero=model.begin_at_zero,
        value_format=model.chart_label_type,
        **extra,
    )
    return gen.run(inp)


def build_chart(text: str, model_name: str, models: Mapping[str, Any],
                colors: Sequence[str] = DEFAULT_COLORS, chart_kind: str = 'line',
                separator: str = ',') -> Dataset:
    """Build a chart dataset for a model.

    Args:
        text: Raw CSV text including the header row
        model_name: Name of the model in `models`
        models: Model table, e.g. DEFAULT_MODELS or load_config()['models']
        colors: Series color palette
        chart_kind: 'line', 'pie' or 'radar'
        separator: CSV field separator

    Raises:
        ConfigurationError: if the model, its strategies or its operands
            do not resolve, or the model produces a report.
    """
    if chart_kind not in CHART_KINDS:
        raise ConfigurationError(
            f"Unsupported chart kind '{chart_kind}'. Supported: {', '.join(CHART_KINDS)}"
        )
    model = resolve_model(model_name, models)
    return _prepare(
        text, model, separator, CHART,
        palette=Palette(tuple(colors or ())),
        chart_kind=chart_kind,
    )


def build_report(text: str, model_name: str, models: Mapping[str, Any],
                 date: Optional[Union[str, datetime]] = None, separator: str = ',') -> Report:
    """Build a report for a model.

    `date` (ISO string or datetime) selects the target month for
    point-in-time reports; it defaults to now.

    Raises:
        ConfigurationError: if the model or its strategies do not resolve,
            the model produces a chart, or the date cannot be parsed.
    """
    model = resolve_model(model_name, models)
    target = None
    if date:
        target = parse_timestamp(date)
        if target is None:
            raise ConfigurationError(f"Invalid report date: {date!r}", model.name)
    return _prepare(text, model, separator, REPORT, date=target)

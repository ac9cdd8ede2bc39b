"""Aggregation, selection and paired change computation."""

from .aggregator import TaxonAggregator, aggregate_taxa, pooled_label_stats, resolve_thresholds
from .selector import select_top_k, resolve_features, rank_scores
from .metrics import (
    ChangeMetric,
    Difference,
    RelativeChange,
    Log2FoldChange,
    Custom,
    FixedEpsilon,
    PerLabelHalfMinimum,
    get_metric,
)
from .pairing import (
    PairedChangeComputer,
    PairedChangeRecord,
    TimepointError,
    compute_paired_change,
    to_records,
)
from .summary import summarize_group_change
from .pipeline import LevelResult, run_paired_analysis

__all__ = [
    "TaxonAggregator",
    "aggregate_taxa",
    "pooled_label_stats",
    "resolve_thresholds",
    "select_top_k",
    "resolve_features",
    "rank_scores",
    "ChangeMetric",
    "Difference",
    "RelativeChange",
    "Log2FoldChange",
    "Custom",
    "FixedEpsilon",
    "PerLabelHalfMinimum",
    "get_metric",
    "PairedChangeComputer",
    "PairedChangeRecord",
    "TimepointError",
    "compute_paired_change",
    "to_records",
    "summarize_group_change",
    "LevelResult",
    "run_paired_analysis",
]

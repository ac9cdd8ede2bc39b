"""
Taxon Aggregation
=================

Collapses raw features that share a taxonomic label into one row per label.

Labels are filtered on statistics pooled over every (feature, sample) cell
that carries the label: the mean abundance of those cells and the fraction of
them that are nonzero. A label failing either threshold is dropped together
with all of its features before summation.
"""

import logging
from typing import Tuple

import numpy as np
import pandas as pd

from ..data.dataset import FeatureDataset, taxonomy_level
from ..data.preprocessing import check_data_type

logger = logging.getLogger(__name__)

UNCLASSIFIED = "Unclassified"


def resolve_thresholds(data_type: str,
                       has_explicit_features: bool,
                       has_top_k: bool,
                       prev_filter: float,
                       abund_filter: float) -> Tuple[float, float]:
    """
    Decide the prevalence/abundance thresholds actually applied.

    Filtering is switched off (0, 0) for unit-less data and whenever the
    caller already selects features explicitly or through top-k.

    Args:
        data_type: 'count', 'proportion' or 'other'
        has_explicit_features: Caller supplied a feature allow-list
        has_top_k: Caller supplied both a top-k count and a ranking function
        prev_filter: Requested prevalence threshold, in [0, 1]
        abund_filter: Requested mean abundance threshold, >= 0

    Returns:
        (prevalence threshold, abundance threshold)
    """
    check_data_type(data_type)
    if data_type == "other" or has_explicit_features or has_top_k:
        if prev_filter or abund_filter:
            logger.info("Prevalence/abundance filters disabled: features are selected explicitly "
                        "or the data type is 'other'")
        return 0, 0

    if not 0 <= prev_filter <= 1:
        raise ValueError(f"prev_filter must be in [0, 1], got {prev_filter}")
    if abund_filter < 0:
        raise ValueError(f"abund_filter must be >= 0, got {abund_filter}")
    return prev_filter, abund_filter


def _feature_labels(matrix: pd.DataFrame, taxonomy: pd.DataFrame, level: str) -> pd.Series:
    labels = taxonomy_level(taxonomy, level).reindex(matrix.index)
    return labels.fillna(UNCLASSIFIED)


def pooled_label_stats(matrix: pd.DataFrame, labels: pd.Series) -> pd.DataFrame:
    """
    Mean abundance and prevalence per label, pooled over features and samples.

    Args:
        matrix: Feature x sample abundances
        labels: Label of each feature (aligned to matrix rows)

    Returns:
        DataFrame indexed by label with columns mean_abundance, prevalence
    """
    n_samples = matrix.shape[1]
    per_feature = pd.DataFrame({
        "total": matrix.sum(axis=1),
        "nonzero": (matrix > 0).sum(axis=1),
    })
    pooled = per_feature.groupby(labels.to_numpy()).agg(
        total=("total", "sum"),
        nonzero=("nonzero", "sum"),
        n_features=("total", "size"),
    )
    n_cells = (pooled["n_features"] * n_samples).replace(0, np.nan)

    stats = pd.DataFrame({
        "mean_abundance": pooled["total"] / n_cells,
        "prevalence": pooled["nonzero"] / n_cells,
    })
    stats.index.name = labels.name
    return stats


def aggregate_taxa(matrix: pd.DataFrame,
                   taxonomy: pd.DataFrame,
                   level: str,
                   prev_filter: float = 0,
                   abund_filter: float = 0) -> pd.DataFrame:
    """
    Filter labels on pooled statistics and sum the surviving features per label.

    Args:
        matrix: Feature x sample abundances
        taxonomy: Feature x level annotations
        level: Taxonomy column to aggregate on, or 'original'
        prev_filter: Minimum pooled prevalence
        abund_filter: Minimum pooled mean abundance

    Returns:
        Label x sample table (labels sorted, columns in matrix order). May be empty.
    """
    labels = _feature_labels(matrix, taxonomy, level)
    stats = pooled_label_stats(matrix, labels)

    keep = stats[(stats["prevalence"] >= prev_filter) &
                 (stats["mean_abundance"] >= abund_filter)].index

    retained = labels.isin(keep).to_numpy()
    aggregated = matrix.loc[retained].groupby(labels[retained].to_numpy()).sum()
    aggregated = aggregated.reindex(columns=matrix.columns)
    aggregated.index.name = level

    logger.info(f"{level}: kept {len(aggregated)} of {len(stats)} labels "
                f"(prev_filter={prev_filter}, abund_filter={abund_filter})")
    return aggregated


def to_long(table: pd.DataFrame,
            value_name: str = "value",
            sample_name: str = "sample") -> pd.DataFrame:
    """Melt an aggregated table into (label, sample, value) rows."""
    level = table.index.name or "feature"
    return (table.rename_axis(index=level, columns=None)
                 .reset_index()
                 .melt(id_vars=level, var_name=sample_name, value_name=value_name))


class TaxonAggregator:
    """
    Aggregate one dataset at any requested level.

    Nothing is cached: every call recomputes from the dataset.

    Example:
        >>> aggregator = TaxonAggregator(dataset, prev_filter=0.01, abund_filter=0.01)
        >>> family = aggregator.aggregate("Family")
    """

    def __init__(self, dataset: FeatureDataset,
                 prev_filter: float = 0,
                 abund_filter: float = 0):
        self.dataset = dataset
        self.prev_filter = prev_filter
        self.abund_filter = abund_filter

    def aggregate(self, level: str) -> pd.DataFrame:
        return aggregate_taxa(
            self.dataset.matrix,
            self.dataset.taxonomy,
            level,
            prev_filter=self.prev_filter,
            abund_filter=self.abund_filter,
        )

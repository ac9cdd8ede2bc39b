"""
Paired Analysis Pipeline
========================

Runs, for each requested feature level:

    aggregate_taxa -> (optional) top-k selection -> paired change -> group summary

Levels share the same read-only inputs and are processed concurrently, one
task per level. Nothing is cached between levels or between calls.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

import pandas as pd

from ..config.manager import ConfigManager
from ..data.dataset import FeatureDataset, check_variables
from ..data.preprocessing import prepare_abundance
from .aggregator import aggregate_taxa, resolve_thresholds
from .metrics import PerLabelHalfMinimum, get_metric
from .pairing import compute_paired_change
from .selector import resolve_features
from .summary import summarize_group_change

logger = logging.getLogger(__name__)


@dataclass
class LevelResult:
    """Everything computed for one feature level."""

    level: str
    table: pd.DataFrame
    """Aggregated label x sample table."""

    features: Optional[List[str]]
    """Labels selected for reporting (None = all)."""

    paired_change: pd.DataFrame
    """Per label x subject change (half-minimum imputation for lfc)."""

    group_summary: pd.DataFrame
    """Per group x label mean change (epsilon imputation for lfc)."""

    prev_filter: float
    abund_filter: float


def _as_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def run_paired_analysis(dataset: FeatureDataset,
                        config: Union[ConfigManager, dict, None] = None,
                        normalizer=None) -> Dict[str, LevelResult]:
    """
    Run the paired analysis for every configured feature level.

    Args:
        dataset: Loaded inputs
        config: ConfigManager or plain dict merged over the defaults
        normalizer: Override for count normalization (default rarefy + TSS)

    Returns:
        Dict of LevelResult keyed by feature level, in configured order
    """
    if not isinstance(config, ConfigManager):
        config = ConfigManager(config)

    subject_var = config.get("analysis.subject_var")
    time_var = config.get("analysis.time_var")
    group_var = config.get("analysis.group_var")
    strata_var = config.get("analysis.strata_var")
    change_base = config.get("analysis.change_base")
    change_after = config.get("analysis.change_after")
    features_plot = config.get("analysis.features_plot")
    top_k_plot = config.get("analysis.top_k_plot")
    top_k_func = config.get("analysis.top_k_func")
    with_prevalence = config.get("analysis.with_prevalence", False)
    levels = _as_list(config.get("analysis.feature_level"))

    if not levels:
        raise ValueError("No feature level requested")
    unknown = [level for level in levels if level not in dataset.levels]
    if unknown:
        raise ValueError(f"Feature level(s) {unknown} not found in taxonomy; "
                         f"available: {dataset.levels}")
    check_variables(dataset.metadata, subject_var, time_var, group_var, strata_var)

    # Individual changes impute lfc zeros per label; the group summary switches to epsilon
    metric = get_metric(config.get("analysis.feature_change_func"),
                        imputation=PerLabelHalfMinimum())

    prev_filter, abund_filter = resolve_thresholds(
        dataset.data_type,
        has_explicit_features=features_plot is not None,
        has_top_k=top_k_plot is not None and top_k_func is not None,
        prev_filter=config.get("analysis.prev_filter", 0),
        abund_filter=config.get("analysis.abund_filter", 0),
    )

    matrix = prepare_abundance(dataset.matrix, dataset.data_type,
                               normalizer=normalizer,
                               depth=config.get("normalization.rarefy_depth"),
                               random_state=config.get("normalization.random_seed", 42))

    def analyze_level(level: str) -> LevelResult:
        table = aggregate_taxa(matrix, dataset.taxonomy, level,
                               prev_filter=prev_filter, abund_filter=abund_filter)
        features = resolve_features(table, features_plot, top_k_plot, top_k_func)

        paired = compute_paired_change(
            table, dataset.metadata,
            subject_var=subject_var,
            time_var=time_var,
            change_base=change_base,
            metric=metric,
            change_after=change_after,
            group_var=group_var,
            strata_var=strata_var,
            features=features,
            with_prevalence=with_prevalence,
        )
        summary = summarize_group_change(
            table, dataset.metadata,
            time_var=time_var,
            change_base=change_base,
            metric=metric,
            change_after=change_after,
            group_var=group_var,
            strata_var=strata_var,
            features=features,
        )
        logger.info(f"{level}: {len(paired)} paired records for "
                    f"{paired[level].nunique() if len(paired) else 0} labels")
        return LevelResult(level, table, features, paired, summary, prev_filter, abund_filter)

    max_workers = max(1, min(int(config.get("analysis.max_workers", 4)), len(levels)))
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {level: executor.submit(analyze_level, level) for level in levels}
        results = {level: future.result() for level, future in futures.items()}

    return results

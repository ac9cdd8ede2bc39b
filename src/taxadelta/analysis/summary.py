"""
Group-level change summary (dotplot data).

For every group and label: the mean abundance at baseline and follow-up over
all samples of the group, the change between the two means, and the change in
label prevalence between the two timepoints. Log2 fold change here always
uses epsilon imputation.

Output format:

| group | Family         | time1_mean_abundance | time2_mean_abundance | abundance_change | time1_prevalence | time2_prevalence | prevalence_change |
|:------|:---------------|---------------------:|---------------------:|-----------------:|-----------------:|-----------------:|------------------:|
| ALL   | Bacteroidaceae |                0.210 |                0.350 |            0.737 |             1.00 |             1.00 |              0.00 |
"""

import logging
from typing import Callable, Optional, Sequence, Union

import pandas as pd

from ..data.dataset import check_variables
from .metrics import ChangeMetric, get_metric
from .pairing import (SAMPLE_KEY, VALUE_KEY, join_metadata, label_prevalence_by_time,
                      resolve_timepoints, time_labels, with_fixed_epsilon)

logger = logging.getLogger(__name__)

DEFAULT_GROUP = "group"
ALL_SAMPLES = "ALL"
SUMMARY_COLUMNS = [
    "time1_mean_abundance", "time2_mean_abundance", "abundance_change",
    "time1_prevalence", "time2_prevalence", "prevalence_change",
]


def _wide_by_time(long: pd.DataFrame, index: list, time_var: str, value: str,
                  base: str, after: str, name: str) -> pd.DataFrame:
    # merge rather than pivot: missing group/strata values are keys too
    sides = []
    for time, prefix in ((base, "time1"), (after, "time2")):
        side = long.loc[long[time_var] == time, index + [value]]
        sides.append(side.rename(columns={value: f"{prefix}_{name}"}))
    wide = sides[0].merge(sides[1], on=index, how="outer")
    return wide.sort_values(index, kind="mergesort").reset_index(drop=True)


def summarize_group_change(table: pd.DataFrame,
                           metadata: pd.DataFrame,
                           time_var: str,
                           change_base,
                           metric: Union[str, Callable, ChangeMetric] = "lfc",
                           change_after=None,
                           group_var: Optional[str] = None,
                           strata_var: Optional[str] = None,
                           features: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Per-group mean abundance change and per-label prevalence change.

    Args:
        table: Aggregated label x sample table
        metadata: Sample metadata indexed by sample ID
        time_var: Metadata column holding the timepoint
        change_base: Baseline time value
        metric: Metric name, callable f(after, before), or ChangeMetric
        change_after: Follow-up time value; inferred if the data has two values
        group_var: Grouping column; all samples form group 'ALL' if None
        strata_var: Optional strata column, crossed with the group
        features: Restrict the output to these labels

    Returns:
        DataFrame with one row per (group[, strata], label)
    """
    check_variables(metadata, time_var, group_var, strata_var)
    metric = with_fixed_epsilon(get_metric(metric))
    level = table.index.name or "feature"

    in_table = metadata.index.astype(str).isin(table.columns.astype(str))
    base, after = resolve_timepoints(metadata.loc[in_table, time_var], change_base, change_after)

    group_cols = [group_var or DEFAULT_GROUP]
    if strata_var is not None and strata_var != group_var:
        group_cols.append(strata_var)

    requested = [v for v in (group_var, strata_var) if v is not None]
    long = join_metadata(table, metadata, [time_var] + requested)
    long[time_var] = time_labels(long[time_var])
    long = long[long[time_var].isin([base, after])].copy()
    if group_var is None:
        long[DEFAULT_GROUP] = ALL_SAMPLES

    if long.empty:
        logger.warning(f"{level}: nothing to summarize")
        return pd.DataFrame(columns=group_cols + [level] + SUMMARY_COLUMNS)

    n_missing = long.drop_duplicates(SAMPLE_KEY)[group_cols].isna().any(axis=1).sum()
    if n_missing:
        logger.warning(f"{n_missing} samples have no {'/'.join(group_cols)} value; "
                       f"they are summarized as a missing-value group")

    means = (long.groupby(group_cols + [level, time_var], sort=True, dropna=False)[VALUE_KEY]
                 .mean()
                 .rename("mean_abundance")
                 .reset_index())
    abundance = _wide_by_time(means, group_cols + [level], time_var, "mean_abundance",
                              base, after, "mean_abundance")
    abundance["abundance_change"] = metric.compute(
        abundance["time2_mean_abundance"].to_numpy(dtype=float),
        abundance["time1_mean_abundance"].to_numpy(dtype=float),
    )

    prevalence = _wide_by_time(label_prevalence_by_time(long, level, time_var), [level],
                               time_var, "prevalence", base, after, "prevalence")
    prevalence["prevalence_change"] = metric.compute(
        prevalence["time2_prevalence"].to_numpy(dtype=float),
        prevalence["time1_prevalence"].to_numpy(dtype=float),
    )

    summary = abundance.merge(prevalence, on=level, how="left")
    if features is not None:
        summary = summary[summary[level].isin(list(features))]

    logger.info(f"Summarized {summary[level].nunique()} labels across "
                f"{len(summary[group_cols].drop_duplicates())} groups")
    return summary.reset_index(drop=True)

"""
Paired Change Computation
=========================

Pairs the baseline and follow-up observations of every subject and scores
the change of each aggregated label between the two timepoints.

Output format (one row per label x subject observed at both timepoints):

| Family          | subject | sample_time_1 | sample_time_2 | value_time_1 | value_time_2 | value_diff |
|:----------------|:--------|:--------------|:--------------|-------------:|-------------:|-----------:|
| Bacteroidaceae  | S01     | S01_T1        | S01_T2        |        0.210 |        0.350 |      0.250 |
| Lachnospiraceae | S01     | S01_T1        | S01_T2        |        0.080 |        0.000 |     -1.000 |

Subjects or labels missing on either side are dropped (inner join).
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, Union
import numpy as np
import pandas as pd

from ..data.dataset import check_variables
from .aggregator import to_long
from .metrics import ChangeMetric, FixedEpsilon, Log2FoldChange, get_metric

logger = logging.getLogger(__name__)

# Join columns of the long table; never exposed, so metadata columns cannot clash
SAMPLE_KEY = "_sample_id"
VALUE_KEY = "_value"


class TimepointError(ValueError):
    """The time variable does not describe exactly one baseline/follow-up pair."""


@dataclass
class PairedChangeRecord:
    """One label x subject comparison."""

    label: str
    subject: str
    value_time_1: float
    value_time_2: float
    value_diff: float
    prevalence_time_1: Optional[float] = None
    prevalence_time_2: Optional[float] = None
    prevalence_change: Optional[float] = None


def time_label(value) -> str:
    """Text form of a time value; integral floats lose their '.0' (1.0 -> '1')."""
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    return str(value)


def time_labels(values: pd.Series) -> pd.Series:
    """time_label applied element-wise; missing values stay missing."""
    return values.map(time_label, na_action="ignore")


def resolve_timepoints(time_values: pd.Series,
                       change_base,
                       change_after=None) -> Tuple[str, str]:
    """
    Determine the baseline and follow-up time values.

    Without an explicit follow-up value the data must contain exactly two
    distinct time values, one of them the baseline.

    Returns:
        (baseline, follow-up) as strings
    """
    observed = list(pd.unique(time_labels(time_values.dropna())))
    base = time_label(change_base)

    if base not in observed:
        raise TimepointError(f"Baseline time value '{base}' not found; observed: {observed}")

    if change_after is not None:
        after = time_label(change_after)
        if after == base:
            raise TimepointError("Baseline and follow-up time values must differ")
        if after not in observed:
            raise TimepointError(f"Follow-up time value '{after}' not found; observed: {list(observed)}")
        return base, after

    others = [t for t in observed if t != base]
    if len(others) != 1:
        raise TimepointError(
            f"Expected exactly two distinct time values for a paired comparison, "
            f"found {len(observed)}: {list(observed)}. Pass change_after to pick the follow-up."
        )
    return base, others[0]


def join_metadata(table: pd.DataFrame,
                  metadata: pd.DataFrame,
                  columns: Sequence[str]) -> pd.DataFrame:
    """
    Long rows of an aggregated table (label, SAMPLE_KEY, VALUE_KEY) with the
    requested metadata columns attached. Samples without metadata are dropped.
    """
    meta = metadata.loc[:, list(dict.fromkeys(columns))].copy()
    meta.index = meta.index.astype(str)
    meta.index.name = SAMPLE_KEY

    long = to_long(table, value_name=VALUE_KEY, sample_name=SAMPLE_KEY)
    long[SAMPLE_KEY] = long[SAMPLE_KEY].astype(str)
    merged = long.merge(meta.reset_index(), on=SAMPLE_KEY, how="inner")

    n_unmatched = long[SAMPLE_KEY].nunique() - merged[SAMPLE_KEY].nunique()
    if n_unmatched:
        logger.warning(f"{n_unmatched} samples have no metadata and were skipped")
    return merged


def label_prevalence_by_time(long: pd.DataFrame, level: str, time_var: str) -> pd.DataFrame:
    """Fraction of samples with nonzero abundance per (label, time)."""
    present = (long[VALUE_KEY] > 0).rename("prevalence")
    return (present.groupby([long[level], long[time_var]], sort=False)
                   .mean()
                   .reset_index())


def with_fixed_epsilon(metric: ChangeMetric) -> ChangeMetric:
    """Log2 fold change switched to epsilon imputation; other metrics unchanged."""
    if isinstance(metric, Log2FoldChange):
        return Log2FoldChange(imputation=FixedEpsilon())
    return metric


def compute_paired_change(table: pd.DataFrame,
                          metadata: pd.DataFrame,
                          subject_var: str,
                          time_var: str,
                          change_base,
                          metric: Union[str, Callable, ChangeMetric] = "relative change",
                          change_after=None,
                          group_var: Optional[str] = None,
                          strata_var: Optional[str] = None,
                          features: Optional[Sequence[str]] = None,
                          with_prevalence: bool = False) -> pd.DataFrame:
    """
    Score the change of every label between baseline and follow-up per subject.

    Args:
        table: Aggregated label x sample table
        metadata: Sample metadata indexed by sample ID
        subject_var: Metadata column identifying subjects
        time_var: Metadata column holding the timepoint
        change_base: Baseline time value
        metric: Metric name, callable f(after, before), or ChangeMetric
        change_after: Follow-up time value; inferred if the data has two values
        group_var: Optional grouping column carried from the follow-up sample
        strata_var: Optional strata column carried from the follow-up sample
        features: Restrict the output to these labels
        with_prevalence: Add per-label prevalence at each time and its change

    Returns:
        DataFrame with one row per (label, subject) present at both times
    """
    check_variables(metadata, subject_var, time_var, group_var, strata_var)
    metric = get_metric(metric)
    level = table.index.name or "feature"

    in_table = metadata.index.astype(str).isin(table.columns.astype(str))
    base, after = resolve_timepoints(metadata.loc[in_table, time_var], change_base, change_after)
    logger.info(f"Pairing {time_var}='{base}' (baseline) with {time_var}='{after}'")

    extra_vars = list(dict.fromkeys(
        v for v in (group_var, strata_var) if v is not None and v not in (subject_var, time_var)
    ))
    long = join_metadata(table, metadata, [subject_var, time_var] + extra_vars)
    long[time_var] = time_labels(long[time_var])

    keep = [level, subject_var, SAMPLE_KEY, VALUE_KEY]
    data_time_1 = long.loc[long[time_var] == base, keep].rename(
        columns={SAMPLE_KEY: "sample_time_1", VALUE_KEY: "value_time_1"})
    data_time_2 = long.loc[long[time_var] == after, keep + extra_vars].rename(
        columns={SAMPLE_KEY: "sample_time_2", VALUE_KEY: "value_time_2"})

    combined = data_time_1.merge(data_time_2, on=[level, subject_var], how="inner")

    subjects_1 = set(data_time_1[subject_var])
    subjects_2 = set(data_time_2[subject_var])
    unpaired = subjects_1 ^ subjects_2
    if unpaired:
        logger.info(f"{len(unpaired)} subjects observed at only one timepoint were dropped")
    if combined.duplicated([level, subject_var]).any():
        logger.warning("Some subjects have several samples at one timepoint; all combinations are kept")

    combined["value_diff"] = metric.compute(
        combined["value_time_2"].to_numpy(dtype=float),
        combined["value_time_1"].to_numpy(dtype=float),
        labels=combined[level].to_numpy(),
    )

    if with_prevalence:
        prevalence = label_prevalence_by_time(long, level, time_var)
        wide = prevalence.pivot(index=level, columns=time_var, values="prevalence")
        wide = wide.reindex(columns=[base, after]).fillna(0.0)
        wide.columns = ["prevalence_time_1", "prevalence_time_2"]
        wide.index.name = level
        wide["prevalence_change"] = with_fixed_epsilon(metric).compute(
            wide["prevalence_time_2"].to_numpy(), wide["prevalence_time_1"].to_numpy()
        )
        combined = combined.merge(wide.reset_index(), on=level, how="left")

    if features is not None:
        combined = combined[combined[level].isin(list(features))]

    columns = [level, subject_var, "sample_time_1", "sample_time_2",
               "value_time_1", "value_time_2", "value_diff"] + extra_vars
    if with_prevalence:
        columns += ["prevalence_time_1", "prevalence_time_2", "prevalence_change"]

    result = combined[columns].sort_values([level, subject_var], kind="mergesort")
    return result.reset_index(drop=True)


def to_records(result: pd.DataFrame, subject_var: str) -> List[PairedChangeRecord]:
    """Convert a paired change table into PairedChangeRecord objects."""
    level = result.columns[0]
    has_prev = "prevalence_change" in result.columns
    records = []
    for row in result.to_dict("records"):
        records.append(PairedChangeRecord(
            label=row[level],
            subject=row[subject_var],
            value_time_1=row["value_time_1"],
            value_time_2=row["value_time_2"],
            value_diff=row["value_diff"],
            prevalence_time_1=row["prevalence_time_1"] if has_prev else None,
            prevalence_time_2=row["prevalence_time_2"] if has_prev else None,
            prevalence_change=row["prevalence_change"] if has_prev else None,
        ))
    return records


class PairedChangeComputer:
    """
    Reusable paired-change configuration.

    Example:
        >>> computer = PairedChangeComputer("subject", "time", change_base="1",
        ...                                 metric="lfc")
        >>> changes = computer.compute(family_table, metadata)
    """

    def __init__(self,
                 subject_var: str,
                 time_var: str,
                 change_base,
                 metric: Union[str, Callable, ChangeMetric] = "relative change",
                 change_after=None,
                 group_var: Optional[str] = None,
                 strata_var: Optional[str] = None):
        self.subject_var = subject_var
        self.time_var = time_var
        self.change_base = change_base
        self.metric = get_metric(metric)
        self.change_after = change_after
        self.group_var = group_var
        self.strata_var = strata_var

    def compute(self, table: pd.DataFrame, metadata: pd.DataFrame,
                features: Optional[Sequence[str]] = None,
                with_prevalence: bool = False) -> pd.DataFrame:
        return compute_paired_change(
            table, metadata,
            subject_var=self.subject_var,
            time_var=self.time_var,
            change_base=self.change_base,
            metric=self.metric,
            change_after=self.change_after,
            group_var=self.group_var,
            strata_var=self.strata_var,
            features=features,
            with_prevalence=with_prevalence,
        )

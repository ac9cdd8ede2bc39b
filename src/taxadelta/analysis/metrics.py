"""
Change Metrics
==============

Scores comparing a follow-up value against a baseline value.

Metrics form a closed set:
  - Difference:      after - before
  - RelativeChange:  (after - before) / (after + before), 0 when both are 0
  - Log2FoldChange:  log2(after) - log2(before) after zero imputation
  - Custom:          caller-supplied f(after, before), applied as is

Log2 fold change needs zeros imputed first, and two strategies exist:
  - FixedEpsilon:         add a small constant (1e-5) to every value
  - PerLabelHalfMinimum:  replace each zero with half the smallest nonzero
                          value of the same label at the same timepoint

The two strategies give different answers whenever a zero is present and
are selected explicitly by each caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Zero imputation
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class FixedEpsilon:
    """Shift both values by a constant before taking logs."""

    epsilon: float = 1e-5

    def impute(self, after: np.ndarray, before: np.ndarray,
               labels: Optional[np.ndarray] = None) -> Tuple[np.ndarray, np.ndarray]:
        return after + self.epsilon, before + self.epsilon


@dataclass(frozen=True)
class PerLabelHalfMinimum:
    """
    Replace zeros with half the minimum nonzero value of the same label,
    computed separately for the baseline and follow-up values.

    A label with no nonzero value on one side has nothing to impute from;
    its zeros become NaN.
    """

    def impute(self, after: np.ndarray, before: np.ndarray,
               labels: Optional[np.ndarray] = None) -> Tuple[np.ndarray, np.ndarray]:
        if labels is None:
            raise ValueError("Half-minimum imputation needs the label of every value")
        labels = np.asarray(labels)

        imputed = (self._impute_side(after, labels), self._impute_side(before, labels))
        logger.info("Imputation was performed using half the minimum nonzero proportion "
                    "for each taxon at different time points.")
        return imputed

    @staticmethod
    def _impute_side(values: np.ndarray, labels: np.ndarray) -> np.ndarray:
        values = np.asarray(values, dtype=float)
        nonzero = values > 0
        half_min = pd.Series(values[nonzero]).groupby(labels[nonzero]).min() / 2
        fill = pd.Series(labels).map(half_min).to_numpy(dtype=float)

        unfilled = (values == 0) & np.isnan(fill)
        if unfilled.any():
            missing = sorted(set(labels[unfilled].tolist()), key=str)
            logger.warning(f"No nonzero value to impute from for {len(missing)} labels: {missing[:5]}")

        return np.where(values == 0, fill, values)


ZeroImputation = Union[FixedEpsilon, PerLabelHalfMinimum]


# --------------------------------------------------------------------------- #
# Metrics
# --------------------------------------------------------------------------- #

class ChangeMetric:
    """Interface: two numeric arrays (follow-up, baseline) in, one array out."""

    name: str = ""

    def compute(self, after, before, labels=None) -> np.ndarray:
        raise NotImplementedError

    def axis_label(self, data_type: str = "proportion") -> str:
        """Axis title used by the rendering layer."""
        quantity = "Change in Abundance" if data_type == "other" else "Change in Relative Abundance"
        return f"{quantity} ({self.name})"


@dataclass(frozen=True)
class Difference(ChangeMetric):
    name: str = field(default="difference", init=False)

    def compute(self, after, before, labels=None) -> np.ndarray:
        return np.asarray(after, dtype=float) - np.asarray(before, dtype=float)


@dataclass(frozen=True)
class RelativeChange(ChangeMetric):
    name: str = field(default="relative change", init=False)

    def compute(self, after, before, labels=None) -> np.ndarray:
        after = np.asarray(after, dtype=float)
        before = np.asarray(before, dtype=float)
        both_zero = (after == 0) & (before == 0)
        with np.errstate(divide="ignore", invalid="ignore"):
            change = (after - before) / (after + before)
        return np.where(both_zero, 0.0, change)


@dataclass(frozen=True)
class Log2FoldChange(ChangeMetric):
    imputation: ZeroImputation = FixedEpsilon()
    name: str = field(default="lfc", init=False)

    def compute(self, after, before, labels=None) -> np.ndarray:
        after, before = self.imputation.impute(
            np.asarray(after, dtype=float), np.asarray(before, dtype=float), labels
        )
        with np.errstate(divide="ignore", invalid="ignore"):
            return np.log2(after) - np.log2(before)


@dataclass(frozen=True)
class Custom(ChangeMetric):
    """Caller-supplied f(after, before); no imputation is performed."""

    func: Callable = None
    name: str = field(default="custom function", init=False)

    def compute(self, after, before, labels=None) -> np.ndarray:
        change = np.asarray(self.func(np.asarray(after, dtype=float),
                                      np.asarray(before, dtype=float)), dtype=float)
        return np.broadcast_to(change, np.shape(after)).copy()


METRIC_NAMES = {
    "difference": Difference,
    "relative change": RelativeChange,
    "lfc": Log2FoldChange,
    "log2 fold change": Log2FoldChange,
}


def get_metric(metric: Union[str, Callable, ChangeMetric],
               imputation: Optional[ZeroImputation] = None) -> ChangeMetric:
    """
    Build a ChangeMetric from a name, a callable, or an existing metric.

    Args:
        metric: 'difference', 'relative change', 'lfc' / 'log2 fold change',
            a callable f(after, before), or a ChangeMetric
        imputation: Zero imputation for log2 fold change (default FixedEpsilon)

    Returns:
        ChangeMetric instance
    """
    if isinstance(metric, ChangeMetric):
        return metric
    if callable(metric):
        return Custom(func=metric)
    if metric not in METRIC_NAMES:
        raise ValueError(f"Unknown change metric {metric!r}; expected one of "
                         f"{list(METRIC_NAMES)} or a function")

    metric_cls = METRIC_NAMES[metric]
    if metric_cls is Log2FoldChange:
        return Log2FoldChange(imputation=imputation or FixedEpsilon())
    return metric_cls()

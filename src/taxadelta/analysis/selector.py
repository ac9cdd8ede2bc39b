"""Top-k feature selection on aggregated tables."""

import logging
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

RankFunction = Union[str, Callable[[pd.DataFrame], Sequence[float]]]


def _row_mean(table: pd.DataFrame) -> np.ndarray:
    return np.nanmean(table.to_numpy(dtype=float), axis=1)


def _row_sd(table: pd.DataFrame) -> np.ndarray:
    return np.nanstd(table.to_numpy(dtype=float), axis=1, ddof=1)


RANK_FUNCTIONS: Dict[str, Callable[[pd.DataFrame], np.ndarray]] = {
    "mean": _row_mean,
    "sd": _row_sd,
}


def rank_scores(table: pd.DataFrame, rank: RankFunction) -> pd.Series:
    """
    Score every row of an aggregated table.

    Args:
        table: Label x sample table
        rank: 'mean', 'sd', or a callable taking the table and returning one
            score per row (a Series is aligned on the table's index)

    Returns:
        Series of scores indexed like the table
    """
    if callable(rank):
        scores = rank(table)
        if isinstance(scores, pd.Series):
            return scores.reindex(table.index).astype(float)
    elif rank in RANK_FUNCTIONS:
        scores = RANK_FUNCTIONS[rank](table)
    else:
        raise ValueError(f"Invalid ranking function: {rank!r} (expected {list(RANK_FUNCTIONS)} or a callable)")

    scores = np.asarray(scores, dtype=float)
    if scores.shape != (len(table),):
        raise ValueError(f"Ranking function returned {scores.shape[0] if scores.ndim else 0} "
                         f"scores for {len(table)} rows")
    return pd.Series(scores, index=table.index)


def select_top_k(table: pd.DataFrame, rank: RankFunction, k: int) -> List[str]:
    """
    Return the k labels with the largest score, ties kept in row order.

    Returns min(k, number of rows) labels; rows scoring NaN sort last.
    """
    if k is None or int(k) < 1:
        raise ValueError(f"top_k_plot must be a positive integer, got {k!r}")

    scores = rank_scores(table, rank).to_numpy()
    order = np.argsort(-scores, kind="stable")
    selected = table.index[order[:min(int(k), len(order))]]

    if int(k) > len(order):
        logger.info(f"Requested top {k} features but only {len(order)} are available")
    return list(selected)


def resolve_features(table: pd.DataFrame,
                     features_plot: Optional[Sequence[str]] = None,
                     top_k_plot: Optional[int] = None,
                     top_k_func: Optional[RankFunction] = None) -> Optional[List[str]]:
    """
    Features to report: the explicit list if given, else the top-k selection
    when both count and ranking function are set, else None (all features).
    """
    if features_plot is not None:
        return list(features_plot)
    if top_k_plot is not None and top_k_func is not None:
        return select_top_k(table, top_k_func, top_k_plot)
    return None

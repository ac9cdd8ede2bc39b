"""Abundance normalization boundary: rarefaction and total-sum scaling."""

import logging
from typing import Callable, Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

FEATURE_DAT_TYPES = ("count", "proportion", "other")


def check_data_type(data_type: str) -> str:
    """Return the declared data type, rejecting anything but count/proportion/other."""
    if data_type not in FEATURE_DAT_TYPES:
        raise ValueError(
            f"feature_dat_type must be one of {FEATURE_DAT_TYPES}, got {data_type!r}"
        )
    return data_type


class MatrixNormalizer:
    """Normalize feature x sample abundance tables."""

    @staticmethod
    def is_rarefied(matrix: pd.DataFrame) -> bool:
        """True when every sample has the same library size."""
        col_sums = matrix.sum(axis=0).round(5)
        return col_sums.nunique() == 1

    @staticmethod
    def rarefy(matrix: pd.DataFrame,
               depth: Optional[int] = None,
               random_state: int = 42) -> pd.DataFrame:
        """
        Subsample every sample to the same depth without replacement.

        Args:
            matrix: Raw counts (features x samples)
            depth: Target library size. Defaults to the smallest library.
            random_state: Seed for the subsampling generator

        Returns:
            Rarefied counts; samples below the depth are dropped.
        """
        counts = matrix.round().astype(np.int64)
        col_sums = counts.sum(axis=0)
        if depth is None:
            depth = int(col_sums.min())

        keep = col_sums[col_sums >= depth].index
        dropped = len(col_sums) - len(keep)
        if dropped:
            logger.warning(f"{dropped} samples have fewer than {depth} reads and were removed")

        rng = np.random.default_rng(random_state)
        rarefied = {}
        for sample in keep:
            rarefied[sample] = rng.multivariate_hypergeometric(
                counts[sample].to_numpy(), depth
            )

        logger.info(f"Rarefied {len(keep)} samples to depth {depth}")
        return pd.DataFrame(rarefied, index=matrix.index, columns=keep).astype(float)

    @staticmethod
    def tss(matrix: pd.DataFrame) -> pd.DataFrame:
        """Total-sum scale each sample to proportions. Empty samples stay zero."""
        col_sums = matrix.sum(axis=0).replace(0, 1)
        return matrix.div(col_sums, axis=1)

    @classmethod
    def rarefy_tss(cls, matrix: pd.DataFrame,
                   depth: Optional[int] = None,
                   random_state: int = 42) -> pd.DataFrame:
        """Rarefy then convert to proportions."""
        return cls.tss(cls.rarefy(matrix, depth=depth, random_state=random_state))


def prepare_abundance(matrix: pd.DataFrame,
                      data_type: str,
                      normalizer: Optional[Callable[[pd.DataFrame], pd.DataFrame]] = None,
                      depth: Optional[int] = None,
                      random_state: int = 42) -> pd.DataFrame:
    """
    Route raw counts through the normalizer; pass proportions and custom data through.

    Without a normalizer, counts are rarefied and TSS-scaled. Counts that
    already share one library size (and no explicit depth) are only scaled.

    Args:
        matrix: Feature x sample table
        data_type: 'count', 'proportion' or 'other'
        normalizer: Callable applied to count data, replacing the default
        depth: Rarefaction depth for the default normalizer
        random_state: Rarefaction seed for the default normalizer

    Returns:
        Table ready for aggregation
    """
    check_data_type(data_type)
    if data_type != "count":
        return matrix

    if normalizer is not None:
        logger.info("Data declared as raw counts; applying the supplied normalizer")
        return normalizer(matrix)

    if depth is None and MatrixNormalizer.is_rarefied(matrix):
        logger.info("Counts already share one library size; applying TSS normalization only")
        return MatrixNormalizer.tss(matrix)

    logger.info(
        "Data declared as raw counts; applying Rarefy-TSS normalization before aggregation"
    )
    return MatrixNormalizer.rarefy_tss(matrix, depth=depth, random_state=random_state)

"""Container for a feature table with its taxonomy and sample metadata."""

import logging
from dataclasses import dataclass
from typing import List, Optional

import pandas as pd

from .preprocessing import check_data_type

logger = logging.getLogger(__name__)

ORIGINAL_LEVEL = "original"


@dataclass
class FeatureDataset:
    """
    Read-only inputs of a paired analysis.

    Example:
        >>> dataset = FeatureDataset(matrix, taxonomy, metadata, "proportion")
        >>> dataset.validate()
        >>> check_variables(dataset.metadata, "subject", "time")
    """

    matrix: pd.DataFrame
    """Abundances, features (index) x samples (columns)."""

    taxonomy: pd.DataFrame
    """Feature annotations, features (index) x taxonomic levels (columns)."""

    metadata: pd.DataFrame
    """Sample metadata indexed by sample ID."""

    data_type: str = "proportion"
    """One of 'count', 'proportion' or 'other'."""

    def validate(self) -> "FeatureDataset":
        """
        Check IDs and annotations line up.

        Raises:
            ValueError: On duplicated IDs, negative abundances, or features
                without a taxonomy row.
        """
        check_data_type(self.data_type)

        if self.matrix.index.has_duplicates:
            raise ValueError("Feature IDs in the abundance table must be unique")
        if self.matrix.columns.has_duplicates:
            raise ValueError("Sample IDs in the abundance table must be unique")
        if (self.matrix.to_numpy() < 0).any():
            raise ValueError("Abundance table contains negative values")

        missing_features = self.matrix.index.difference(self.taxonomy.index)
        if len(missing_features) > 0:
            raise ValueError(
                f"{len(missing_features)} features have no taxonomy annotation: "
                f"{list(missing_features[:5])}"
            )

        missing_samples = self.matrix.columns.difference(self.metadata.index)
        if len(missing_samples) > 0:
            logger.warning(
                f"{len(missing_samples)} samples have no metadata and will not be paired: "
                f"{list(missing_samples[:5])}"
            )
        return self

    @property
    def levels(self) -> List[str]:
        """Taxonomic levels available for aggregation."""
        return list(self.taxonomy.columns) + [ORIGINAL_LEVEL]


def check_variables(metadata: pd.DataFrame, *variables: Optional[str]) -> None:
    """
    Precondition check on metadata variable names; None entries are skipped.

    Raises:
        TypeError: If a variable name is not a string
        ValueError: If the metadata lacks the column
    """
    for var in variables:
        if var is None:
            continue
        if not isinstance(var, str):
            raise TypeError(f"Variable names should be character strings, got {var!r}")
        if var not in metadata.columns:
            raise ValueError(f"Metadata has no column '{var}'")


def taxonomy_level(taxonomy: pd.DataFrame, level: str) -> pd.Series:
    """
    Labels for one taxonomic level; 'original' maps each feature to its own ID.

    Raises:
        ValueError: If the level is not a taxonomy column.
    """
    if level == ORIGINAL_LEVEL and ORIGINAL_LEVEL not in taxonomy.columns:
        return pd.Series(taxonomy.index.astype(str), index=taxonomy.index, name=level)
    if level not in taxonomy.columns:
        raise ValueError(
            f"Feature level '{level}' not found in taxonomy; "
            f"available: {list(taxonomy.columns) + [ORIGINAL_LEVEL]}"
        )
    return taxonomy[level].rename(level)

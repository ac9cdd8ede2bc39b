"""Loaders for feature tables, taxonomy annotations and sample metadata."""

import polars as pl
import pandas as pd
from pathlib import Path
import logging

from .dataset import FeatureDataset

logger = logging.getLogger(__name__)


def _read_tsv(path: Path) -> pl.DataFrame:
    """Read a TSV with every column as text; casting is left to the caller."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input table not found: {path}")
    return pl.read_csv(path, separator="\t", infer_schema_length=0)


def _to_indexed_pandas(df: pl.DataFrame, index_name: str) -> pd.DataFrame:
    """Convert to pandas, using the first column as index."""
    id_col = df.columns[0]
    out = df.to_pandas().set_index(id_col)
    out.index.name = index_name
    return out


class FeatureTableLoader:
    """
    Load a feature x sample abundance table.

    Expected layout: first column holds feature IDs, every other column is a
    sample with numeric abundances. Empty cells are read as zero.
    """

    def __init__(self, table_path: Path):
        """
        Initialize loader.

        Args:
            table_path: Path to the abundance TSV
        """
        self.table_path = Path(table_path)

    def load(self) -> pd.DataFrame:
        """Load abundances as a float DataFrame indexed by feature ID."""
        df = _read_tsv(self.table_path)
        if len(df.columns) < 2:
            raise ValueError(f"Abundance table {self.table_path} has no sample columns")

        id_col = df.columns[0]
        df = df.with_columns(
            pl.col(c).cast(pl.Float64).fill_null(0.0) for c in df.columns if c != id_col
        )
        matrix = _to_indexed_pandas(df, "feature")
        logger.info(f"Loaded abundance table: {matrix.shape[0]} features x {matrix.shape[1]} samples")
        return matrix


class TaxonomyLoader:
    """Load feature annotations; first column feature IDs, one column per level."""

    def __init__(self, taxonomy_path: Path):
        self.taxonomy_path = Path(taxonomy_path)

    def load(self) -> pd.DataFrame:
        """Load taxonomy as a string DataFrame indexed by feature ID."""
        taxonomy = _to_indexed_pandas(_read_tsv(self.taxonomy_path), "feature")
        logger.info(f"Loaded taxonomy with levels: {list(taxonomy.columns)}")
        return taxonomy


class MetadataLoader:
    """
    Load sample metadata.

    All columns are kept as strings so time values compare exactly as written
    (e.g. baseline "1" rather than 1.0).
    """

    def __init__(self, metadata_path: Path):
        """
        Initialize metadata loader.

        Args:
            metadata_path: Path to metadata TSV file
        """
        self.metadata_path = Path(metadata_path)
        self.df = None

    def load(self) -> pd.DataFrame:
        """Load metadata from TSV, indexed by sample ID."""
        self.df = _to_indexed_pandas(_read_tsv(self.metadata_path), "sample")
        return self.df


def load_dataset(feature_path: Path,
                 taxonomy_path: Path,
                 metadata_path: Path,
                 data_type: str = "proportion") -> FeatureDataset:
    """
    Load and validate the three input tables.

    Args:
        feature_path: Abundance TSV (features x samples)
        taxonomy_path: Taxonomy TSV (features x levels)
        metadata_path: Metadata TSV (samples x variables)
        data_type: 'count', 'proportion' or 'other'

    Returns:
        Validated FeatureDataset
    """
    dataset = FeatureDataset(
        matrix=FeatureTableLoader(feature_path).load(),
        taxonomy=TaxonomyLoader(taxonomy_path).load(),
        metadata=MetadataLoader(metadata_path).load(),
        data_type=data_type,
    )
    return dataset.validate()

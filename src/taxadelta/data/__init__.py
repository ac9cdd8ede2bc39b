"""Data loading and normalization modules."""

from .dataset import FeatureDataset, check_variables, taxonomy_level
from .loader import FeatureTableLoader, TaxonomyLoader, MetadataLoader, load_dataset
from .preprocessing import MatrixNormalizer, check_data_type, prepare_abundance

__all__ = [
    "FeatureDataset",
    "check_variables",
    "taxonomy_level",
    "FeatureTableLoader",
    "TaxonomyLoader",
    "MetadataLoader",
    "load_dataset",
    "MatrixNormalizer",
    "check_data_type",
    "prepare_abundance",
]

"""
Pytest configuration and shared fixtures for taxadelta tests.

Provides temporary directories, paths to the TSV fixtures, and small
in-memory tables shared by the analysis tests.

Note: The taxadelta package must be installed in development mode first:
    pip install -e .
"""

import pytest
import tempfile
import shutil
from pathlib import Path

import pandas as pd

from taxadelta.data.dataset import FeatureDataset


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def fixtures_dir():
    """Return path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def feature_table_path(fixtures_dir):
    return fixtures_dir / "feature_table.tsv"


@pytest.fixture
def count_table_path(fixtures_dir):
    return fixtures_dir / "count_table.tsv"


@pytest.fixture
def taxonomy_path(fixtures_dir):
    return fixtures_dir / "taxonomy.tsv"


@pytest.fixture
def metadata_path(fixtures_dir):
    return fixtures_dir / "metadata.tsv"


@pytest.fixture
def dummy_config_path(fixtures_dir):
    """Return path to dummy config file."""
    return fixtures_dir / "test_config.yaml"


@pytest.fixture
def matrix():
    """
    Same values as fixtures/feature_table.tsv.

    Subjects S1 and S2 are sampled at times 1 and 2; S3 only at time 1.
    """
    return pd.DataFrame(
        {
            "S1_T1": [0.2, 0.1, 0.7, 0.0],
            "S1_T2": [0.3, 0.0, 0.7, 0.0],
            "S2_T1": [0.0, 0.2, 0.8, 0.0],
            "S2_T2": [0.1, 0.2, 0.5, 0.2],
            "S3_T1": [0.4, 0.1, 0.5, 0.0],
        },
        index=pd.Index(["OTU1", "OTU2", "OTU3", "OTU4"], name="feature"),
    )


@pytest.fixture
def taxonomy():
    return pd.DataFrame(
        {
            "Phylum": ["Firmicutes", "Firmicutes", "Bacteroidota", "Bacteroidota"],
            "Family": ["Lachnospiraceae", "Lachnospiraceae", "Bacteroidaceae", "Prevotellaceae"],
        },
        index=pd.Index(["OTU1", "OTU2", "OTU3", "OTU4"], name="feature"),
    )


@pytest.fixture
def metadata():
    return pd.DataFrame(
        {
            "subject": ["S1", "S1", "S2", "S2", "S3"],
            "time": ["1", "2", "1", "2", "1"],
            "group": ["control", "control", "treated", "treated", "treated"],
            "site": ["A", "A", "B", "B", "A"],
        },
        index=pd.Index(["S1_T1", "S1_T2", "S2_T1", "S2_T2", "S3_T1"], name="sample"),
    )


@pytest.fixture
def dataset(matrix, taxonomy, metadata):
    return FeatureDataset(matrix, taxonomy, metadata, data_type="proportion").validate()

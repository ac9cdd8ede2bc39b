"""
Tests for error handling and edge cases.

Validates that the pipeline fails loudly with clear error messages when
given invalid inputs, and degrades to empty results where that is allowed.
"""

import pytest
import pandas as pd

from taxadelta.analysis.aggregator import aggregate_taxa
from taxadelta.analysis.pairing import TimepointError, compute_paired_change
from taxadelta.analysis.pipeline import run_paired_analysis
from taxadelta.data.loader import MetadataLoader, load_dataset


class TestMissingFiles:
    """Test handling of missing or invalid file paths."""

    def test_missing_feature_table(self, temp_dir, taxonomy_path, metadata_path):
        with pytest.raises(FileNotFoundError):
            load_dataset(temp_dir / "missing.tsv", taxonomy_path, metadata_path)

    def test_missing_metadata_file(self):
        with pytest.raises(FileNotFoundError):
            MetadataLoader("nonexistent_metadata.tsv").load()


class TestMalformedData:
    """Test handling of malformed tables."""

    def test_non_numeric_abundance(self, temp_dir, taxonomy_path, metadata_path):
        bad = temp_dir / "bad.tsv"
        bad.write_text("feature\tS1_T1\nOTU1\tabc\n")

        with pytest.raises(Exception):  # polars raises on the float cast
            load_dataset(bad, taxonomy_path, metadata_path)

    def test_feature_missing_from_taxonomy(self, temp_dir, feature_table_path, metadata_path):
        partial = temp_dir / "taxonomy.tsv"
        partial.write_text("feature\tFamily\nOTU1\tLachnospiraceae\n")

        with pytest.raises(ValueError, match="taxonomy"):
            load_dataset(feature_table_path, partial, metadata_path)


class TestTimepoints:
    """The time variable must describe one baseline and one follow-up."""

    def test_single_timepoint(self, matrix, taxonomy, metadata):
        family = aggregate_taxa(matrix, taxonomy, "Family")
        baseline_only = family[["S1_T1", "S2_T1", "S3_T1"]]

        with pytest.raises(TimepointError):
            compute_paired_change(baseline_only, metadata, "subject", "time", "1")

    def test_three_timepoints_through_pipeline(self, dataset):
        dataset.metadata = dataset.metadata.copy()
        dataset.metadata.loc["S3_T1", "time"] = "3"

        with pytest.raises(TimepointError, match="change_after"):
            run_paired_analysis(dataset)


class TestEmptyResults:
    """Situations that yield empty tables rather than errors."""

    def test_no_subject_paired(self, matrix, taxonomy, metadata):
        metadata = metadata.copy()
        metadata["subject"] = ["a", "b", "c", "d", "e"]
        family = aggregate_taxa(matrix, taxonomy, "Family")

        result = compute_paired_change(family, metadata, "subject", "time", "1")
        assert result.empty

    def test_everything_filtered(self, dataset):
        results = run_paired_analysis(dataset, {"analysis": {"abund_filter": 5}})
        family = results["Family"]

        assert family.table.empty
        assert family.paired_change.empty
        assert family.group_summary.empty

    def test_unknown_metric(self, dataset):
        with pytest.raises(ValueError, match="Unknown change metric"):
            run_paired_analysis(dataset, {"analysis": {"feature_change_func": "ratio"}})

    def test_unknown_level(self, dataset):
        with pytest.raises(ValueError, match="Genus"):
            run_paired_analysis(dataset, {"analysis": {"feature_level": ["Genus"]}})

    def test_unknown_level_checked_before_work(self, dataset):
        with pytest.raises(ValueError, match="available: .*original"):
            run_paired_analysis(dataset, {"analysis": {"feature_level": ["Family", "Genus"]}})

    def test_samples_without_metadata_skipped(self, matrix, taxonomy, metadata):
        family = aggregate_taxa(matrix, taxonomy, "Family")
        result = compute_paired_change(family, metadata.drop(index="S2_T2"),
                                       "subject", "time", "1")
        assert set(result["subject"]) == {"S1"}
        assert isinstance(result, pd.DataFrame)

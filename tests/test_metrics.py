"""
Tests for change metrics and zero-imputation strategies.
"""

import math

import pytest
import numpy as np

from taxadelta.analysis.metrics import (
    Custom,
    Difference,
    FixedEpsilon,
    Log2FoldChange,
    PerLabelHalfMinimum,
    RelativeChange,
    get_metric,
)


class TestMetricValues:
    """Reference values for baseline 2 and follow-up 5."""

    def test_difference(self):
        assert Difference().compute([5.0], [2.0])[0] == pytest.approx(3.0)

    def test_relative_change(self):
        assert RelativeChange().compute([5.0], [2.0])[0] == pytest.approx(3 / 7)

    def test_log2_fold_change_epsilon(self):
        change = Log2FoldChange(FixedEpsilon()).compute([5.0], [2.0])[0]
        assert change == pytest.approx(math.log2(5.00001) - math.log2(2.00001))
        assert change == pytest.approx(1.3219, abs=1e-4)

    def test_relative_change_both_zero(self):
        change = RelativeChange().compute([0.0, 0.0, 1.0], [0.0, 1.0, 0.0])
        assert not np.isnan(change).any()
        np.testing.assert_allclose(change, [0.0, -1.0, 1.0])

    def test_custom_called_after_then_before(self):
        metric = Custom(func=lambda after, before: after / (before + 1))
        np.testing.assert_allclose(metric.compute([6.0, 0.0], [2.0, 0.0]), [2.0, 0.0])

    def test_custom_scalar_result_broadcast(self):
        metric = Custom(func=lambda after, before: 1.0)
        np.testing.assert_allclose(metric.compute([1.0, 2.0], [0.0, 0.0]), [1.0, 1.0])


class TestZeroImputation:
    """The two imputation strategies are distinct."""

    def test_half_minimum_per_label(self):
        after = np.array([0.0, 4.0, 0.0, 1.0])
        before = np.array([2.0, 2.0, 3.0, 0.0])
        labels = np.array(["x", "x", "y", "y"])

        imputed_after, imputed_before = PerLabelHalfMinimum().impute(after, before, labels)

        # x: min nonzero follow-up 4 -> 2; y: min nonzero follow-up 1 -> 0.5
        np.testing.assert_allclose(imputed_after, [2.0, 4.0, 0.5, 1.0])
        # y: min nonzero baseline 3 -> 1.5
        np.testing.assert_allclose(imputed_before, [2.0, 2.0, 3.0, 1.5])

    def test_half_minimum_without_nonzero(self):
        """Nothing to impute from: the zero becomes NaN."""
        after, _ = PerLabelHalfMinimum().impute(
            np.array([0.0, 0.0]), np.array([1.0, 1.0]), np.array(["x", "x"])
        )
        assert np.isnan(after).all()

    def test_half_minimum_requires_labels(self):
        with pytest.raises(ValueError):
            Log2FoldChange(PerLabelHalfMinimum()).compute([1.0], [1.0])

    def test_strategies_differ_with_zero(self):
        after, before, labels = [0.0, 4.0], [2.0, 2.0], ["x", "x"]
        epsilon = Log2FoldChange(FixedEpsilon()).compute(after, before, labels)
        half_min = Log2FoldChange(PerLabelHalfMinimum()).compute(after, before, labels)

        assert half_min[0] == pytest.approx(0.0)
        assert epsilon[0] < -15
        assert not np.allclose(epsilon, half_min)

    def test_strategies_agree_without_zero(self):
        after, before, labels = [4.0, 8.0, 0.5], [2.0, 2.0, 1.0], ["x", "x", "y"]
        epsilon = Log2FoldChange(FixedEpsilon()).compute(after, before, labels)
        half_min = Log2FoldChange(PerLabelHalfMinimum()).compute(after, before, labels)

        np.testing.assert_allclose(epsilon, half_min, atol=1e-4)
        np.testing.assert_allclose(half_min, [1.0, 2.0, -1.0])


class TestGetMetric:

    @pytest.mark.parametrize("name,cls", [
        ("difference", Difference),
        ("relative change", RelativeChange),
        ("lfc", Log2FoldChange),
        ("log2 fold change", Log2FoldChange),
    ])
    def test_names(self, name, cls):
        assert isinstance(get_metric(name), cls)

    def test_lfc_defaults_to_epsilon(self):
        assert get_metric("lfc").imputation == FixedEpsilon()

    def test_lfc_imputation_selected_explicitly(self):
        metric = get_metric("lfc", imputation=PerLabelHalfMinimum())
        assert isinstance(metric.imputation, PerLabelHalfMinimum)

    def test_callable(self):
        metric = get_metric(lambda a, b: a - b)
        assert isinstance(metric, Custom)

    def test_instance_passthrough(self):
        metric = RelativeChange()
        assert get_metric(metric) is metric

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown change metric"):
            get_metric("ratio")

    def test_axis_labels(self):
        assert get_metric("lfc").axis_label() == "Change in Relative Abundance (lfc)"
        assert get_metric(lambda a, b: a).axis_label("other") == \
            "Change in Abundance (custom function)"

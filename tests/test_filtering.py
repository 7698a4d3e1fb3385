"""
Tests for significance splitting and sample correlation.
"""

import numpy as np
import pandas as pd
import pytest

from exprdiff.core.biomatrix import BioMatrix
from exprdiff.stats.correlation import sample_correlation
from exprdiff.stats.filtering import split_by_significance


@pytest.fixture
def results():
    return pd.DataFrame(
        {
            "baseMean": [100.0, 50.0, 10.0, 300.0, 80.0, 20.0],
            "log2FoldChange": [2.0, 3.0, 5.0, -1.5, 1.0, -2.0],
            "padj": [0.01, 0.2, np.nan, 0.001, 0.04, 0.05],
        },
        index=["g1", "g2", "g3", "g4", "g5", "g6"],
    )


class TestSplitBySignificance:

    def test_ranked_by_padj_missing_last(self, results):
        split = split_by_significance(results)
        assert list(split.ranked.index) == ["g4", "g1", "g5", "g6", "g2", "g3"]

    def test_thresholds_are_strict(self, results):
        split = split_by_significance(results)
        # g6 sits exactly on alpha, g5 exactly on the fold-change bound
        assert list(split.significant.index) == ["g4", "g1", "g5"]
        assert list(split.up.index) == ["g1"]
        assert list(split.down.index) == ["g4"]
        assert list(split.fold_change_filtered.index) == ["g4", "g1"]

    def test_columns_preserved(self, results):
        split = split_by_significance(results)
        assert list(split.up.columns) == list(results.columns)

    def test_summary(self, results):
        assert split_by_significance(results).summary() == {
            "ranked": 6,
            "significant": 3,
            "fold_change_filtered": 2,
            "up": 1,
            "down": 1,
        }

    def test_custom_thresholds(self, results):
        split = split_by_significance(results, alpha=0.5, lfc_threshold=0.0)
        assert set(split.up.index) == {"g1", "g2", "g5"}
        assert set(split.down.index) == {"g4", "g6"}

    def test_partition(self):
        rng = np.random.default_rng(5)
        df = pd.DataFrame({
            "log2FoldChange": rng.normal(0, 2, size=500),
            "padj": rng.uniform(0, 0.2, size=500),
        })
        split = split_by_significance(df)
        assert set(split.up.index).isdisjoint(split.down.index)
        assert set(split.up.index) | set(split.down.index) == set(split.fold_change_filtered.index)
        assert set(split.fold_change_filtered.index) <= set(split.significant.index)
        assert (split.significant["padj"] < 0.05).all()

    def test_missing_column(self, results):
        with pytest.raises(KeyError):
            split_by_significance(results, padj_col="qvalue")

    def test_negative_threshold(self, results):
        with pytest.raises(ValueError):
            split_by_significance(results, lfc_threshold=-1)


class TestSampleCorrelation:

    def test_symmetric_with_unit_diagonal(self, group_expression):
        data, groups = group_expression
        samples = pd.Index([f"S{i}" for i in range(data.shape[1])])
        matrix = BioMatrix(
            data=data,
            feature_ids=pd.Index([f"g{i}" for i in range(data.shape[0])]),
            sample_ids=samples,
            sample_metadata=pd.DataFrame({"group": groups}, index=samples),
        )
        corr = sample_correlation(matrix)
        assert corr.shape == (8, 8)
        assert list(corr.index) == list(samples)
        np.testing.assert_allclose(np.diag(corr), 1.0)
        np.testing.assert_allclose(corr.values, corr.values.T)

    def test_spearman(self, raw_intensity_matrix):
        corr = sample_correlation(raw_intensity_matrix, method="spearman")
        assert corr.loc["S1", "S1"] == pytest.approx(1.0)

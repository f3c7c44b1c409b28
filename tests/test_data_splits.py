"""
Tests for data.splits module.

Coverage:
- Proportion validation
- Three-way stratified partition sizes and determinism
- Disjointness and coverage
- Per-class proportions close to the source
- Split summaries
"""

import numpy as np
import pandas as pd
import pytest
from wle_ml.data.dataset import Dataset
from wle_ml.data.splits import (
    Split,
    check_disjoint,
    class_proportion_table,
    compute_split_id,
    partition,
    summarize_split,
    validate_proportions,
)
from wle_ml.errors import InvalidPartition


def _toy_dataset(n=100, classes=("A", "B"), seed=0, name="toy"):
    rng = np.random.default_rng(seed)
    labels = pd.Series(np.array(list(classes) * (n // len(classes) + 1))[:n])
    return Dataset(
        features=pd.DataFrame({"roll_belt": rng.normal(size=n)}),
        labels=labels,
        name=name,
    )


class TestValidateProportions:
    @pytest.mark.parametrize("p_outer,p_inner", [(0.3, 0.7), (0.01, 0.99), (0.5, 0.5)])
    def test_valid(self, p_outer, p_inner):
        validate_proportions(p_outer, p_inner)

    @pytest.mark.parametrize(
        "p_outer,p_inner",
        [
            (0.0, 0.7),
            (1.0, 0.7),
            (0.3, 0.0),
            (0.3, 1.0),
            (-0.1, 0.5),
            (0.3, 1.5),
            (float("nan"), 0.5),
        ],
    )
    def test_invalid(self, p_outer, p_inner):
        with pytest.raises(InvalidPartition, match="strictly between 0 and 1"):
            validate_proportions(p_outer, p_inner)


class TestPartition:
    def test_sizes_for_reference_proportions(self, source_dataset):
        split = partition(source_dataset, p_outer=0.3, p_inner=0.7, seed=0)
        assert len(split.test) == 300
        assert len(split.validation) == 210
        assert len(split.train) == 490

    def test_disjoint_and_covering(self, source_dataset):
        split = partition(source_dataset, p_outer=0.3, p_inner=0.7, seed=1)
        train, val, test = (set(ds.index) for _, ds in split.items())
        assert not train & val
        assert not train & test
        assert not val & test
        assert train | val | test == set(source_dataset.index)

    @pytest.mark.parametrize("p_outer,p_inner", [(0.3, 0.7), (0.2, 0.6), (0.4, 0.8), (0.1, 0.5)])
    def test_union_equals_source_for_valid_proportions(self, source_dataset, p_outer, p_inner):
        split = partition(source_dataset, p_outer=p_outer, p_inner=p_inner, seed=3)
        total = len(split.train) + len(split.validation) + len(split.test)
        assert total == source_dataset.n_records
        check_disjoint(split, source=source_dataset)

    def test_stratification_within_two_points(self, source_dataset):
        split = partition(source_dataset, p_outer=0.3, p_inner=0.7, seed=0)
        table = class_proportion_table(split, source=source_dataset)
        for subset in ("train", "validation", "test"):
            diff = (table[subset] - table["source"]).abs()
            assert diff.max() <= 0.02

    def test_deterministic_for_fixed_seed(self, source_dataset):
        a = partition(source_dataset, 0.3, 0.7, seed=42)
        b = partition(source_dataset, 0.3, 0.7, seed=42)
        for (_, ds_a), (_, ds_b) in zip(a.items(), b.items(), strict=True):
            assert ds_a.index.equals(ds_b.index)

    def test_different_seeds_differ(self, source_dataset):
        a = partition(source_dataset, 0.3, 0.7, seed=0)
        b = partition(source_dataset, 0.3, 0.7, seed=1)
        assert not a.test.index.equals(b.test.index)

    def test_subset_names(self, wle_split):
        assert [ds.name for _, ds in wle_split.items()] == ["train", "validation", "test"]

    def test_column_order_preserved(self, source_dataset, wle_split):
        for _, ds in wle_split.items():
            assert ds.feature_names == source_dataset.feature_names

    def test_invalid_proportion_raises(self, source_dataset):
        with pytest.raises(InvalidPartition):
            partition(source_dataset, p_outer=1.0, p_inner=0.7)

    def test_unlabelled_raises(self):
        ds = Dataset(features=pd.DataFrame({"roll_belt": np.arange(10.0)}), name="scoring")
        with pytest.raises(InvalidPartition, match="no outcome labels"):
            partition(ds, 0.3, 0.7)

    def test_too_small_raises(self):
        with pytest.raises(InvalidPartition, match="need at least 3"):
            partition(_toy_dataset(n=2), 0.3, 0.7)

    def test_empty_subset_raises(self):
        # 10 records, p_outer=0.01 -> zero test records
        with pytest.raises(InvalidPartition, match="empty subset"):
            partition(_toy_dataset(n=10), p_outer=0.01, p_inner=0.7)

    def test_class_too_small_to_stratify(self):
        labels = ["A"] * 20 + ["B"]
        ds = Dataset(
            features=pd.DataFrame({"roll_belt": np.arange(21.0)}),
            labels=pd.Series(labels),
            name="rare",
        )
        with pytest.raises(InvalidPartition, match="cannot stratify"):
            partition(ds, 0.3, 0.7)

    def test_error_message_names_stage(self):
        with pytest.raises(InvalidPartition) as exc_info:
            partition(_toy_dataset(n=2), 0.3, 0.7)
        assert str(exc_info.value).startswith("[partition]")


class TestCheckDisjoint:
    def test_overlap_detected(self):
        ds = _toy_dataset(n=10)
        overlapping = Split(
            train=ds.take(ds.index[:6]),
            validation=ds.take(ds.index[5:8]),
            test=ds.take(ds.index[8:]),
            seed=0,
        )
        with pytest.raises(InvalidPartition, match="share 1 records"):
            check_disjoint(overlapping)

    def test_incomplete_coverage_detected(self):
        ds = _toy_dataset(n=10)
        partial = Split(
            train=ds.take(ds.index[:4]),
            validation=ds.take(ds.index[4:6]),
            test=ds.take(ds.index[6:9]),
            seed=0,
        )
        with pytest.raises(InvalidPartition, match="covers 9 records"):
            check_disjoint(partial, source=ds)


class TestSplitSummaries:
    def test_compute_split_id_order_independent(self):
        assert compute_split_id(np.array([3, 1, 2])) == compute_split_id(np.array([1, 2, 3]))
        assert len(compute_split_id(np.array([0, 1]))) == 12

    def test_summarize_split(self, wle_split):
        summary = summarize_split(wle_split)
        assert summary["seed"] == 0
        assert summary["n_train"] + summary["n_validation"] + summary["n_test"] == 1000
        assert set(summary["class_proportions_test"]) == {"A", "B", "C", "D", "E"}
        assert summary["split_id_train"] != summary["split_id_test"]

    def test_class_proportion_table_columns(self, wle_split, source_dataset):
        table = class_proportion_table(wle_split, source=source_dataset)
        assert list(table.columns) == ["source", "train", "validation", "test"]
        np.testing.assert_allclose(table.sum(axis=0), 1.0)

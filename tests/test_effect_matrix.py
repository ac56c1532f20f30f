"""
Tests for GeneEffectMatrix and the cell-line annotation lookups.
"""

import numpy as np
import pandas as pd
import pytest

from depcorr.core.annotations import LineageMap, MutationLevels
from depcorr.core.effect_matrix import GeneEffectMatrix


class TestConstruction:
    """Validation at construction time."""

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            GeneEffectMatrix(np.zeros((2, 3)), pd.Index(["A", "B", "C"]), pd.Index(["x", "y", "z"]))
        with pytest.raises(ValueError):
            GeneEffectMatrix(np.zeros((2, 3)), pd.Index(["A", "B"]), pd.Index(["x", "y"]))

    def test_wrong_types(self):
        with pytest.raises(TypeError):
            GeneEffectMatrix([[1.0]], pd.Index(["A"]), pd.Index(["x"]))
        with pytest.raises(TypeError):
            GeneEffectMatrix(np.zeros((1, 1)), ["A"], pd.Index(["x"]))

    def test_duplicate_genes_case_insensitive(self):
        with pytest.raises(ValueError):
            GeneEffectMatrix(np.zeros((2, 1)), pd.Index(["kras", "KRAS"]), pd.Index(["x"]))

    def test_duplicate_cell_lines(self):
        with pytest.raises(ValueError):
            GeneEffectMatrix(np.zeros((1, 2)), pd.Index(["A"]), pd.Index(["x", "x"]))

    def test_values_are_read_only_copy(self):
        source = np.ones((2, 2))
        matrix = GeneEffectMatrix(source, pd.Index(["A", "B"]), pd.Index(["x", "y"]))
        source[0, 0] = 5.0
        assert matrix.values[0, 0] == 1.0
        with pytest.raises(ValueError):
            matrix.values[0, 0] = 2.0


class TestEncoded:
    """Integer-encoded matrices with a missing-value sentinel."""

    def test_sentinel_becomes_nan(self):
        encoded = np.array([-1200, -32768, 0, 350], dtype=np.int16)
        matrix = GeneEffectMatrix.from_encoded(
            encoded, ["A", "B"], ["x", "y"], na_value=-32768, scale_factor=1000
        )
        assert matrix.values[0, 0] == pytest.approx(-1.2)
        assert np.isnan(matrix.values[0, 1])
        assert matrix.values[1, 0] == 0.0
        assert matrix.values[1, 1] == pytest.approx(0.35)

    def test_size_mismatch(self):
        with pytest.raises(ValueError):
            GeneEffectMatrix.from_encoded(np.zeros(5, dtype=np.int16), ["A", "B"], ["x", "y"], na_value=-1)

    def test_zero_scale_factor(self):
        with pytest.raises(ValueError):
            GeneEffectMatrix.from_encoded(
                np.zeros(4, dtype=np.int16), ["A", "B"], ["x", "y"], na_value=-1, scale_factor=0
            )


class TestLookup:
    """Gene and cell-line access."""

    def test_case_insensitive_lookup(self, tiny_matrix):
        assert tiny_matrix.gene_position("braf") == 1
        assert tiny_matrix.canonical_symbol("nras") == "NRAS"
        assert tiny_matrix.has_gene("Kras")
        assert not tiny_matrix.has_gene("TP53")

    def test_missing_gene(self, tiny_matrix):
        with pytest.raises(KeyError, match="Gene not found"):
            tiny_matrix.gene_position("TP53")

    def test_gene_values_subset(self, tiny_matrix):
        values = tiny_matrix.gene_values("NRAS", np.array([2, 3, 4]))
        assert values[0] == 4.0
        assert np.isnan(values[1])

    def test_dataframe_round_trip(self, tiny_matrix):
        frame = tiny_matrix.to_dataframe()
        rebuilt = GeneEffectMatrix.from_dataframe(frame)
        np.testing.assert_array_equal(rebuilt.values, tiny_matrix.values)
        assert list(rebuilt.gene_symbols) == list(tiny_matrix.gene_symbols)


class TestMutationLevels:
    """Hotspot mutation lookup."""

    def test_levels_clamped_and_defaulted(self):
        levels = MutationLevels({"KRAS": {"A": 1, "B": 4}})
        assert levels.level("KRAS", "A") == 1
        assert levels.level("KRAS", "B") == 2
        assert levels.level("KRAS", "C") == 0
        assert levels.levels_for("KRAS", ["C", "B", "A"]).tolist() == [0, 2, 1]

    def test_negative_level_rejected(self):
        with pytest.raises(ValueError):
            MutationLevels({"KRAS": {"A": -1}})

    def test_unknown_gene(self):
        levels = MutationLevels({"KRAS": {}})
        assert "KRAS" in levels
        with pytest.raises(KeyError):
            levels.levels_for("TP53", ["A"])

    def test_gene_lookup_ignores_case(self):
        levels = MutationLevels({"KRAS": {"A": 1, "B": 2}})
        assert "kras" in levels
        assert levels.canonical_gene("Kras") == "KRAS"
        assert levels.canonical_gene("TP53") is None
        assert levels.level("kras", "B") == 2
        assert levels.levels_for("kras", ["A", "C"]).tolist() == [1, 0]

    def test_genes_differing_only_in_case_rejected(self):
        with pytest.raises(ValueError):
            MutationLevels({"KRAS": {}, "kras": {}})


class TestLineageMap:
    """Lineage lookup."""

    def test_labels(self):
        lineages = LineageMap({"A": "Lung", "B": "Lung", "C": "Skin", "D": ""}, {"A": "NSCLC"})
        assert lineages.lineage("A") == "Lung"
        assert lineages.lineage("D") is None
        assert lineages.subtype("A") == "NSCLC"
        assert lineages.subtype("B") is None
        assert len(lineages) == 3

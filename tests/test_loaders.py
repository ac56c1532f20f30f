"""
Tests for depcorr.io.loaders: CSV matrices, annotation tables, gene
statistics and the compact encoded bundle.
"""

import gzip
import json

import numpy as np
import pytest

from depcorr.io.loaders import (
    clean_gene_symbol,
    load_encoded_bundle,
    load_gene_effect_csv,
    load_gene_statistics,
    load_lineage_table,
    load_mutation_table,
)


class TestCleanGeneSymbol:
    """Header cleaning."""

    @pytest.mark.parametrize("label,expected", [
        ("KRAS (3845)", "KRAS"),
        ("  TP53(7157) ", "TP53"),
        ("NRAS", "NRAS"),
        ("HLA-A (3105)", "HLA-A"),
    ])
    def test_symbols(self, label, expected):
        assert clean_gene_symbol(label) == expected


class TestLoadGeneEffectCsv:
    """Gene effect matrices from CSV."""

    def test_genes_as_rows(self, tmp_path):
        path = tmp_path / "effects.csv"
        path.write_text(
            "gene,ACH-000001,ACH-000002,ACH-000003\n"
            "KRAS,-1.2,-0.8,\n"
            "TP53,0.1,0.2,0.3\n"
        )
        matrix = load_gene_effect_csv(path)

        assert matrix.shape == (2, 3)
        assert list(matrix.gene_symbols) == ["KRAS", "TP53"]
        assert list(matrix.cell_line_ids) == ["ACH-000001", "ACH-000002", "ACH-000003"]
        assert np.isnan(matrix.values[0, 2])
        assert matrix.values[1, 2] == pytest.approx(0.3)

    def test_cell_lines_as_rows_with_id_headers(self, tmp_path):
        path = tmp_path / "CRISPRGeneEffect.csv"
        path.write_text(
            ",KRAS (3845),TP53 (7157)\n"
            "ACH-000001,-1.2,0.1\n"
            "ACH-000002,-0.8,\n"
        )
        matrix = load_gene_effect_csv(path, cell_lines_as_rows=True)

        assert list(matrix.gene_symbols) == ["KRAS", "TP53"]
        assert list(matrix.cell_line_ids) == ["ACH-000001", "ACH-000002"]
        assert matrix.values[0, 1] == pytest.approx(-0.8)
        assert np.isnan(matrix.values[1, 1])

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_gene_effect_csv(tmp_path / "absent.csv")

    def test_non_numeric(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("gene,A,B\nKRAS,-1.0,high\n")
        with pytest.raises(ValueError, match="non-numeric"):
            load_gene_effect_csv(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")
        with pytest.raises(ValueError):
            load_gene_effect_csv(path)


class TestLoadMutationTable:
    """Hotspot mutation counts."""

    def test_levels(self, tmp_path):
        path = tmp_path / "hotspots.csv"
        path.write_text(
            "ModelID,KRAS (3845),TP53 (7157)\n"
            "ACH-000001,1,0\n"
            "ACH-000002,3,2\n"
            "ACH-000003,0,\n"
        )
        levels = load_mutation_table(path)

        assert levels.genes == ["KRAS", "TP53"]
        assert levels.level("KRAS", "ACH-000001") == 1
        assert levels.level("KRAS", "ACH-000002") == 2
        assert levels.level("KRAS", "ACH-000003") == 0
        assert levels.level("TP53", "ACH-000003") == 0

    def test_unnamed_id_column(self, tmp_path):
        path = tmp_path / "hotspots.csv"
        path.write_text(",KRAS\nACH-000001,2\nACH-000002,0\n")
        levels = load_mutation_table(path)
        assert levels.level("KRAS", "ACH-000001") == 2

    def test_fractional_counts_rejected(self, tmp_path):
        path = tmp_path / "hotspots.csv"
        path.write_text("ModelID,KRAS\nACH-000001,1.5\n")
        with pytest.raises(ValueError, match="integers"):
            load_mutation_table(path)


class TestLoadLineageTable:
    """Per-cell-line lineage labels."""

    def test_detected_columns(self, tmp_path):
        path = tmp_path / "Model.csv"
        path.write_text(
            "ModelID,CellLineName,OncotreeLineage,OncotreePrimaryDisease\n"
            "ACH-000001,A549,Lung,Non-Small Cell Lung Cancer\n"
            "ACH-000002,MCF7,Breast,Invasive Breast Carcinoma\n"
            "ACH-000003,X1,,\n"
        )
        lineages = load_lineage_table(path)

        assert lineages.lineage("ACH-000001") == "Lung"
        assert lineages.subtype("ACH-000002") == "Invasive Breast Carcinoma"
        assert lineages.lineage("ACH-000003") is None
        assert len(lineages) == 2

    def test_explicit_columns(self, tmp_path):
        path = tmp_path / "annotations.csv"
        path.write_text("id,tissue\nACH-000001,Skin\n")
        lineages = load_lineage_table(path, cell_line_column="id", lineage_column="tissue")
        assert lineages.lineage("ACH-000001") == "Skin"

    def test_no_lineage_column(self, tmp_path):
        path = tmp_path / "annotations.csv"
        path.write_text("ModelID,Sex\nACH-000001,Female\n")
        with pytest.raises(ValueError, match="No lineage column"):
            load_lineage_table(path)

    def test_unknown_explicit_column(self, tmp_path):
        path = tmp_path / "annotations.csv"
        path.write_text("ModelID,OncotreeLineage\nACH-000001,Lung\n")
        with pytest.raises(ValueError, match="not found"):
            load_lineage_table(path, lineage_column="tissue")


class TestLoadGeneStatistics:
    """External per-gene statistics tables."""

    def test_tab_separated_with_bom(self, tmp_path):
        path = tmp_path / "screen.tsv"
        path.write_bytes(
            "\ufeffGene\tlog2FoldChange\tpadj\n"
            "kras\t1.5\t0.01\n"
            "BRAF\tNA\t0.2\n".encode("utf-8")
        )
        stats = load_gene_statistics(path)

        assert list(stats.index) == ["KRAS", "BRAF"]
        assert stats.at["KRAS", "lfc"] == pytest.approx(1.5)
        assert stats.at["KRAS", "fdr"] == pytest.approx(0.01)
        assert np.isnan(stats.at["BRAF", "lfc"])

    def test_comma_separated_without_fdr(self, tmp_path):
        path = tmp_path / "screen.csv"
        path.write_text("symbol,LFC\nKRAS,-2.0\nTP53,0.4\n")
        stats = load_gene_statistics(path)
        assert stats.at["TP53", "lfc"] == pytest.approx(0.4)
        assert stats["fdr"].isna().all()

    def test_no_gene_column(self, tmp_path):
        path = tmp_path / "screen.csv"
        path.write_text("a,b\n1,2\n")
        with pytest.raises(ValueError, match="No gene column"):
            load_gene_statistics(path)


def _write_bundle(directory, values, genes, cell_lines, na_value=-32768, scale=1000):
    directory.mkdir()
    (directory / "metadata.json").write_text(json.dumps({
        "genes": genes,
        "cellLines": cell_lines,
        "scaleFactor": scale,
        "naValue": na_value,
    }))
    encoded = np.asarray(values, dtype="<i2")
    with gzip.open(directory / "geneEffects.bin.gz", "wb") as f:
        f.write(encoded.tobytes())


class TestLoadEncodedBundle:
    """Compact gzip/int16 bundles."""

    def test_matrix_and_annotations(self, tmp_path):
        bundle = tmp_path / "web_data"
        _write_bundle(
            bundle,
            [[-1500, 200, -32768], [0, -700, 1000]],
            ["KRAS", "TP53"],
            ["ACH-1", "ACH-2", "ACH-3"],
        )
        (bundle / "mutations.json").write_text(json.dumps({
            "geneData": {"KRAS": {"mutations": {"ACH-1": 1, "ACH-3": 2}}},
        }))
        (bundle / "cellLineMetadata.json").write_text(json.dumps({
            "lineage": {"ACH-1": "Lung", "ACH-2": "Skin"},
            "lineageSubtype": {"ACH-1": "NSCLC"},
        }))

        matrix, mutation_levels, lineages = load_encoded_bundle(bundle)

        assert matrix.shape == (2, 3)
        assert matrix.values[0, 0] == pytest.approx(-1.5)
        assert np.isnan(matrix.values[0, 2])
        assert matrix.values[1, 0] == 0.0
        assert matrix.values[1, 2] == pytest.approx(1.0)
        assert mutation_levels.level("KRAS", "ACH-3") == 2
        assert mutation_levels.level("KRAS", "ACH-2") == 0
        assert lineages.lineage("ACH-2") == "Skin"
        assert lineages.subtype("ACH-1") == "NSCLC"

    def test_annotations_optional(self, tmp_path):
        bundle = tmp_path / "web_data"
        _write_bundle(bundle, [[1, 2]], ["KRAS"], ["ACH-1", "ACH-2"])
        matrix, mutation_levels, lineages = load_encoded_bundle(bundle)
        assert matrix.shape == (1, 2)
        assert mutation_levels is None
        assert lineages is None

    def test_size_mismatch(self, tmp_path):
        bundle = tmp_path / "web_data"
        _write_bundle(bundle, [1, 2, 3], ["KRAS"], ["ACH-1", "ACH-2"])
        with pytest.raises(ValueError):
            load_encoded_bundle(bundle)

    def test_missing_effects_file(self, tmp_path):
        bundle = tmp_path / "web_data"
        bundle.mkdir()
        (bundle / "metadata.json").write_text("{}")
        with pytest.raises(FileNotFoundError):
            load_encoded_bundle(bundle)

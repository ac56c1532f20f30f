"""
End-to-end tests for the analysis entry points in depcorr.analysis.

These run the full request path (validation, cell-line filtering, engines,
result assembly) on synthetic matrices with known module structure.
"""

import numpy as np
import pandas as pd
import pytest

from conftest import DEPENDENT_GENE, make_lineages, make_mutation_levels
from depcorr.analysis import (
    run_correlation_analysis,
    run_lineage_comparison,
    run_lineage_profile,
    run_mutation_analysis,
    run_mutation_comparison,
    summarize,
)
from depcorr.core.context import AnalysisContext, CellLineFilter, FilterParameters
from depcorr.exceptions import InvalidInputError
from depcorr.results import (
    CorrelationAnalysisResult,
    EmptyResultSet,
    MutationAnalysisResult,
    PairComparisonResult,
)
from depcorr.stats.correlation import SweepMode


@pytest.fixture
def large_context(large_matrix):
    n = large_matrix.n_cell_lines
    return AnalysisContext(
        matrix=large_matrix,
        mutation_levels=make_mutation_levels(n),
        lineages=make_lineages(n),
        parameters=FilterParameters(correlation_cutoff=0.5, min_slope=0.1, min_n=50),
    )


class TestCorrelationAnalysis:
    """run_correlation_analysis on full requests."""

    def test_twenty_gene_network(self, large_context):
        """Every retained edge passes the thresholds and every network gene has one cluster."""
        genes = [f"GENE{i:04d}" for i in range(20)]
        result = run_correlation_analysis(large_context, genes, "analysis")

        assert isinstance(result, CorrelationAnalysisResult)
        assert result.success
        assert result.edges
        for edge in result.edges:
            assert abs(edge.correlation) >= 0.5
            assert abs(edge.slope) >= 0.1
            assert edge.n >= 50

        network_genes = {g for e in result.edges for g in (e.gene_a, e.gene_b)}
        stats_by_gene = {s.gene: s for s in result.gene_stats}
        assert set(stats_by_gene) == network_genes
        assert len(result.gene_stats) == len(network_genes)

        for edge in result.edges:
            assert edge.cluster == stats_by_gene[edge.gene_a].cluster
            assert edge.cluster == stats_by_gene[edge.gene_b].cluster

    def test_modules_become_clusters(self, large_context):
        genes = [f"GENE{i:04d}" for i in range(20)]
        result = run_correlation_analysis(large_context, genes, "analysis")

        assert result.n_clusters == 4
        frame = result.clusters_dataframe()
        for cluster_id, group in frame.groupby('cluster'):
            indices = sorted(int(g[4:]) for g in group['gene'])
            assert len({i // 5 for i in indices}) == 1

    def test_gene_statistics_columns(self, small_context):
        genes = ["GENE0000", "GENE0001", "GENE0002"]
        lung = CellLineFilter(lineage="Lung")
        result = run_correlation_analysis(small_context, genes, "analysis", cell_filter=lung)

        assert result.is_filtered
        assert result.n_cell_lines == 40
        assert result.filter_description == "Lineage: Lung"

        values = small_context.matrix.gene_values("GENE0000")
        lung_columns = small_context.cell_line_indices(lung)
        stat = next(s for s in result.gene_stats if s.gene == "GENE0000")
        assert stat.mean_all == pytest.approx(np.nanmean(values))
        assert stat.sd_all == pytest.approx(np.nanstd(values))
        assert stat.n_all == int(np.sum(~np.isnan(values)))
        assert stat.mean_filtered == pytest.approx(np.nanmean(values[lung_columns]))
        assert stat.n_filtered <= 40
        assert stat.in_gene_list

    def test_unfiltered_run(self, small_context):
        result = run_correlation_analysis(small_context, ["GENE0000", "GENE0001"], "analysis")
        assert not result.is_filtered
        assert result.filter_description == ""
        assert result.n_cell_lines == small_context.matrix.n_cell_lines

    def test_design_mode_marks_input_genes(self, small_context):
        result = run_correlation_analysis(small_context, ["gene0000"], SweepMode.DESIGN)

        assert result.mode is SweepMode.DESIGN
        assert result.genes == ["GENE0000"]
        flags = {s.gene: s.in_gene_list for s in result.gene_stats}
        assert flags["GENE0000"] is True
        assert {"GENE0001", "GENE0002", "GENE0003", "GENE0004"} <= set(flags)
        assert not any(flags[g] for g in flags if g != "GENE0000")

    def test_external_gene_statistics_joined(self, small_context):
        gene_stats = pd.DataFrame(
            {"lfc": [1.5, -0.3], "fdr": [0.01, np.nan]},
            index=["GENE0000", "GENE0001"],
        )
        result = run_correlation_analysis(
            small_context, ["GENE0000", "GENE0001", "GENE0002"], "analysis", gene_stats=gene_stats
        )
        stats = {s.gene: s for s in result.gene_stats}
        assert stats["GENE0000"].lfc == 1.5
        assert stats["GENE0000"].fdr == 0.01
        assert stats["GENE0001"].fdr is None
        assert stats["GENE0002"].lfc is None

    def test_no_edges_returns_empty_result(self, small_context):
        context = small_context.with_parameters(correlation_cutoff=1.0)
        result = run_correlation_analysis(context, ["GENE0040", "GENE0041"], "analysis")

        assert isinstance(result, EmptyResultSet)
        assert not result.success
        assert "No correlations found above cutoff of 1.0" in result.reason

    def test_dataframes(self, small_context):
        result = run_correlation_analysis(
            small_context, ["GENE0006", "GENE0005", "GENE0007"], "analysis"
        )
        edges = result.edges_dataframe()
        assert list(edges.columns) == ['gene_a', 'gene_b', 'correlation', 'slope', 'n', 'cluster']
        assert len(edges) == len(result.edges)

        clusters = result.clusters_dataframe()
        assert list(clusters['gene']) == sorted(clusters['gene'])
        assert 'mean_filtered' in clusters.columns

    @pytest.mark.parametrize("genes,mode,message", [
        ([], "analysis", "at least one valid gene"),
        (["GENE0000"], "analysis", "at least 2 genes"),
        (["GENE0000", "gene0000"], "analysis", "at least 2 genes"),
        (["GENE0000", "NOTAGENE"], "analysis", "Genes not found in matrix: NOTAGENE"),
    ])
    def test_rejected_requests(self, small_context, genes, mode, message):
        with pytest.raises(InvalidInputError, match=message):
            run_correlation_analysis(small_context, genes, mode)

    def test_unknown_mode(self, small_context):
        with pytest.raises(ValueError):
            run_correlation_analysis(small_context, ["GENE0000", "GENE0001"], "network")

    def test_too_few_cell_lines_after_filter(self, small_context):
        context = small_context.with_parameters(min_cell_lines=50)
        with pytest.raises(InvalidInputError, match="Too few cell lines"):
            run_correlation_analysis(
                context, ["GENE0000", "GENE0001"], "analysis", cell_filter=CellLineFilter(lineage="Lung")
            )


class TestMutationAnalysis:
    """run_mutation_analysis on full requests."""

    def test_dependent_gene_is_top_hit(self, small_context):
        result = run_mutation_analysis(small_context, "KRAS")

        assert isinstance(result, MutationAnalysisResult)
        assert result.success
        assert result.hotspot_gene == "KRAS"
        assert result.significant[0].gene == DEPENDENT_GENE
        assert result.significant[0].diff_mut < 0

        p_values = [r.p_mut for r in result.significant]
        assert p_values == sorted(p_values)
        assert all(r.p_mut < 0.05 or r.p_2 < 0.05 for r in result.significant)

    def test_min_n_applies_to_wild_type(self, small_context):
        result = run_mutation_analysis(small_context, "KRAS")
        assert all(r.n_wt >= small_context.parameters.min_n for r in result.table.rows)

    def test_zero_significant_rows_is_success(self, small_context):
        context = small_context.with_parameters(p_value_threshold=1e-12)
        with pytest.warns(UserWarning, match="2\\+ TP53"):
            result = run_mutation_analysis(context, "TP53")

        assert result.success
        assert result.table.rows
        assert result.significant == []
        assert len(result.significant_dataframe()) == 0

    def test_too_few_mutant_lines(self, small_context):
        result = run_mutation_analysis(small_context, "RARE")
        assert isinstance(result, EmptyResultSet)
        assert "Not enough cell lines: WT=" in result.reason
        assert "Mutated=1" in result.reason

    def test_hotspot_gene_matched_case_insensitively(self, small_context):
        result = run_mutation_analysis(small_context, "kras")
        assert result.success
        assert result.hotspot_gene == "KRAS"
        assert result.significant[0].gene == DEPENDENT_GENE

    def test_unknown_hotspot_gene(self, small_context):
        with pytest.raises(InvalidInputError, match="No mutation data for EGFR"):
            run_mutation_analysis(small_context, "EGFR")

    def test_min_n_above_wild_type_count(self, small_context):
        context = small_context.with_parameters(min_n=500)
        result = run_mutation_analysis(context, "KRAS")
        assert isinstance(result, EmptyResultSet)

    def test_lineage_filter(self, small_context):
        result = run_mutation_analysis(small_context, "KRAS", cell_filter=CellLineFilter(lineage="Skin"))
        assert result.success
        assert result.filter_description == "Lineage: Skin"
        assert result.table.n_wt_lines + result.table.n_mut_lines == 40


class TestPairComparisons:
    """Lineage and hotspot stratified comparisons of one gene pair."""

    def test_lineage_comparison(self, small_context):
        result = run_lineage_comparison(small_context, "gene0000", "GENE0001", "KRAS")

        assert isinstance(result, PairComparisonResult)
        assert result.kind == "lineage"
        assert (result.gene_x, result.gene_y) == ("GENE0000", "GENE0001")
        assert {r.label for r in result.rows} <= {"Lung", "Breast", "Skin"}
        frame = result.to_dataframe()
        assert {'label', 'r_wt', 'r_mut', 'delta_r', 'p_r'} <= set(frame.columns)

    def test_lineage_comparison_needs_distinct_genes(self, small_context):
        with pytest.raises(InvalidInputError):
            run_lineage_comparison(small_context, "GENE0000", "gene0000", "KRAS")

    def test_lineage_comparison_hotspot_case(self, small_context):
        result = run_lineage_comparison(small_context, "GENE0000", "GENE0001", "Kras")
        assert result.hotspot_gene == "KRAS"

    def test_lineage_comparison_unknown_hotspot(self, small_context):
        with pytest.raises(InvalidInputError):
            run_lineage_comparison(small_context, "GENE0000", "GENE0001", "EGFR")

    def test_lineage_comparison_without_multi_hit_lines(self, small_context):
        result = run_lineage_comparison(small_context, "GENE0000", "GENE0001", "TP53")
        assert isinstance(result, EmptyResultSet)

    def test_lineage_profile(self, small_context):
        result = run_lineage_profile(small_context, "GENE0000", "GENE0001")
        assert result.kind == "profile"
        assert {r.lineage for r in result.rows} == {"Lung", "Breast", "Skin"}
        assert all(r.correlation > 0.5 for r in result.rows)
        frame = result.to_dataframe()
        assert list(frame.columns)[:3] == ['lineage', 'n', 'correlation']

    def test_lineage_profile_requires_annotations(self, small_matrix):
        context = AnalysisContext(matrix=small_matrix)
        with pytest.raises(InvalidInputError):
            run_lineage_profile(context, "GENE0000", "GENE0001")

    def test_mutation_comparison_skips_small_groups(self, small_context):
        result = run_mutation_comparison(small_context, "GENE0000", "GENE0001")
        assert result.kind == "mutation"
        assert [r.label for r in result.rows] == ["KRAS"]


class TestSummarize:
    """Plain-text summaries."""

    def test_correlation_summary(self, small_context):
        result = run_correlation_analysis(small_context, ["GENE0000", "GENE0001"], "analysis")
        text = summarize(result)
        assert text.startswith("Gene Correlation Analysis Summary")
        assert "Analysis Mode: Analysis (within gene list)" in text
        assert "Cell Line Filter: All cell lines" in text
        assert "- Number of clusters: 1" in text

    def test_mutation_summary(self, small_context):
        text = summarize(run_mutation_analysis(small_context, "KRAS"))
        assert text.startswith("Mutation Analysis Summary")
        assert "Hotspot Gene: KRAS" in text

    def test_pair_summary(self, small_context):
        text = summarize(run_lineage_profile(small_context, "GENE0000", "GENE0001"))
        assert text.startswith("GENE0000 / GENE0001: Correlation by lineage")

    def test_empty_summary(self):
        text = summarize(EmptyResultSet(reason="nothing left"))
        assert text == "Analysis produced no results\n\nnothing left\n"

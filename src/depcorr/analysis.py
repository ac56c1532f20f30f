"""
Analysis orchestration: validate a request, run the engines, assemble results.

Each entry point receives an AnalysisContext (matrix, annotations, filter
parameters) and an optional CellLineFilter, and returns one consolidated
result object or an EmptyResultSet. Caller mistakes (empty gene list, too few
cell lines after filtering, unknown genes) raise InvalidInputError before any
engine runs.

Workflow (correlation):
    1. Resolve the active cell-line subset from the filter
    2. Sweep pairs (analysis or design mode) and keep edges passing
       |r| >= cutoff, |slope| >= min_slope, n >= min_n
    3. Group edges into clusters (connected components)
    4. Summarise each network gene over all and over filtered cell lines

Examples:
    >>> from depcorr.analysis import run_correlation_analysis
    >>> result = run_correlation_analysis(context, ["KRAS", "BRAF", "NRAS"], "analysis")
    >>> if result.success:
    ...     print(result.edges_dataframe())
    ... else:
    ...     print(result.reason)
"""

from __future__ import annotations

import logging
import math
import time
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from depcorr.core.context import AnalysisContext, CellLineFilter
from depcorr.exceptions import InvalidInputError
from depcorr.network.clustering import assign_clusters
from depcorr.results import (
    AnalysisOutcome,
    CorrelationAnalysisResult,
    EmptyResultSet,
    GeneClusterStats,
    MutationAnalysisResult,
    PairComparisonResult,
)
from depcorr.stats.correlation import CorrelationThresholds, SweepMode, compute_correlation_edges
from depcorr.stats.differential import (
    MutationPartition,
    lineage_correlation_comparison,
    lineage_correlation_profile,
    mutation_correlation_comparison,
    mutation_effect_sweep,
)

logger = logging.getLogger(__name__)

__all__ = [
    'run_correlation_analysis',
    'run_mutation_analysis',
    'run_lineage_comparison',
    'run_lineage_profile',
    'run_mutation_comparison',
    'summarize',
]


# =============================================================================
# Request validation
# =============================================================================

def _active_cell_lines(context: AnalysisContext, cell_filter: Optional[CellLineFilter]) -> np.ndarray:
    indices = context.cell_line_indices(cell_filter)
    if indices.size < context.parameters.min_cell_lines:
        raise InvalidInputError(
            f"Too few cell lines match the filter ({indices.size} < "
            f"{context.parameters.min_cell_lines})"
        )
    return indices


def _require_genes(context: AnalysisContext, genes: Sequence[str]) -> List[str]:
    missing = [g for g in genes if not context.matrix.has_gene(g)]
    if missing:
        raise InvalidInputError(f"Genes not found in matrix: {', '.join(missing)}")
    resolved = []
    for g in genes:
        symbol = context.matrix.canonical_symbol(g)
        if symbol not in resolved:
            resolved.append(symbol)
    return resolved


def _require_hotspot(context: AnalysisContext, hotspot_gene: str) -> str:
    """Hotspot gene as stored in the mutation table (matched case-insensitively)."""
    canonical = None
    if context.mutation_levels is not None:
        canonical = context.mutation_levels.canonical_gene(hotspot_gene)
    if canonical is None:
        raise InvalidInputError(f"No mutation data for {hotspot_gene}")
    return canonical


def _filter_description(cell_filter: Optional[CellLineFilter]) -> str:
    if cell_filter is None or not cell_filter.is_active:
        return ""
    return cell_filter.describe()


# =============================================================================
# Correlation analysis
# =============================================================================

def _population_stats(values: np.ndarray):
    present = values[~np.isnan(values)]
    if present.size == 0:
        return math.nan, math.nan, 0
    return float(present.mean()), float(present.std()), int(present.size)


def _lookup_gene_stat(gene_stats: Optional[pd.DataFrame], gene: str, column: str) -> Optional[float]:
    if gene_stats is None or column not in gene_stats.columns or gene not in gene_stats.index:
        return None
    value = gene_stats.at[gene, column]
    if pd.isna(value):
        return None
    return float(value)


def run_correlation_analysis(
    context: AnalysisContext,
    genes: Sequence[str],
    mode: SweepMode | str,
    cell_filter: Optional[CellLineFilter] = None,
    gene_stats: Optional[pd.DataFrame] = None,
    show_progress: bool = False,
) -> AnalysisOutcome:
    """
    Build the correlation network for a gene list.

    Args:
        context: Matrix, annotations and filter parameters
        genes: Input gene symbols (case-insensitive, repeats collapsed)
        mode: "analysis" (pairs within the list) or "design" (each input gene
            against every matrix gene)
        cell_filter: Optional cell-line restriction
        gene_stats: Optional per-gene external statistics indexed by
            upper-case symbol, with "lfc" and/or "fdr" columns
        show_progress: Show a progress bar over design-mode chunks

    Returns:
        CorrelationAnalysisResult, or EmptyResultSet when no pair passes the
        thresholds

    Raises:
        InvalidInputError: Empty gene list, fewer than two genes in analysis
            mode, unknown genes, or too few cell lines after filtering
    """
    mode = SweepMode(mode)
    if not genes:
        raise InvalidInputError("Please enter at least one valid gene")
    genes = _require_genes(context, genes)
    if mode is SweepMode.ANALYSIS and len(genes) < 2:
        raise InvalidInputError("Analysis mode requires at least 2 genes")

    indices = _active_cell_lines(context, cell_filter)
    params = context.parameters
    thresholds = CorrelationThresholds(
        min_correlation=params.correlation_cutoff,
        min_slope=params.min_slope,
        min_n=params.min_n,
    )

    start = time.time()
    edges = compute_correlation_edges(
        context.matrix,
        genes,
        mode,
        thresholds,
        cell_line_indices=indices,
        show_progress=show_progress,
    )

    if not edges:
        return EmptyResultSet(
            reason=(
                f"No correlations found above cutoff of {params.correlation_cutoff} "
                f"(min slope {params.min_slope}, min n {params.min_n}, "
                f"{indices.size} cell lines). Try lowering the correlation cutoff, "
                f"the minimum slope or the minimum cell lines."
            )
        )

    clusters = assign_clusters(edges)
    input_genes = set(genes)
    values = context.matrix.values

    stats = []
    for gene in clusters.gene_order:
        row = context.matrix.gene_position(gene)
        mean_all, sd_all, n_all = _population_stats(values[row])
        mean_filt, sd_filt, n_filt = _population_stats(values[row, indices])
        stats.append(GeneClusterStats(
            gene=gene,
            cluster=clusters.cluster(gene),
            mean_all=mean_all,
            sd_all=sd_all,
            n_all=n_all,
            mean_filtered=mean_filt,
            sd_filtered=sd_filt,
            n_filtered=n_filt,
            in_gene_list=gene in input_genes,
            lfc=_lookup_gene_stat(gene_stats, gene.upper(), 'lfc'),
            fdr=_lookup_gene_stat(gene_stats, gene.upper(), 'fdr'),
        ))

    logger.info(
        f"Correlation analysis complete: {len(edges)} correlations, "
        f"{len(clusters.gene_order)} genes in network, {clusters.n_clusters} clusters "
        f"({time.time() - start:.2f}s)"
    )

    return CorrelationAnalysisResult(
        mode=mode,
        genes=genes,
        parameters=params,
        n_cell_lines=int(indices.size),
        is_filtered=bool(indices.size < context.matrix.n_cell_lines),
        filter_description=_filter_description(cell_filter),
        clusters=clusters,
        gene_stats=stats,
    )


# =============================================================================
# Mutation analysis
# =============================================================================

def run_mutation_analysis(
    context: AnalysisContext,
    hotspot_gene: str,
    cell_filter: Optional[CellLineFilter] = None,
) -> AnalysisOutcome:
    """
    Compare every gene's effect between WT and mutant cell lines.

    ``parameters.min_n`` is the minimum number of WT values per tested gene.

    Returns:
        MutationAnalysisResult (possibly with no significant rows), or
        EmptyResultSet when either group has fewer than three cell lines or
        no gene could be tested

    Raises:
        InvalidInputError: No mutation data for the hotspot gene, or too few
            cell lines after filtering
    """
    hotspot_gene = _require_hotspot(context, hotspot_gene)

    indices = _active_cell_lines(context, cell_filter)
    params = context.parameters
    partition = MutationPartition.build(
        context.matrix, context.mutation_levels, hotspot_gene, cell_line_indices=indices
    )

    if not partition.is_testable:
        return EmptyResultSet(
            reason=(
                f"Not enough cell lines: WT={partition.wild_type.size}, "
                f"Mutated={partition.mutant.size}. Try removing the lineage or "
                f"hotspot filters."
            )
        )

    table = mutation_effect_sweep(context.matrix, partition, min_wt_n=params.min_n)
    if not table.rows:
        return EmptyResultSet(
            reason=(
                f"No gene has at least {params.min_n} WT values. "
                f"Try lowering the minimum cell lines."
            )
        )

    significant = table.significant(params.p_value_threshold)
    logger.info(
        f"Mutation analysis complete: {len(significant)} genes with "
        f"p < {params.p_value_threshold}"
    )

    return MutationAnalysisResult(
        table=table,
        parameters=params,
        filter_description=_filter_description(cell_filter),
        significant=significant,
    )


# =============================================================================
# Gene-pair comparisons
# =============================================================================

def _pair(context: AnalysisContext, gene_x: str, gene_y: str):
    genes = _require_genes(context, [gene_x, gene_y])
    if len(genes) < 2:
        raise InvalidInputError("A gene pair needs two different genes")
    return genes[0], genes[1]


def run_lineage_comparison(
    context: AnalysisContext,
    gene_x: str,
    gene_y: str,
    hotspot_gene: str,
    cell_filter: Optional[CellLineFilter] = None,
) -> AnalysisOutcome:
    """Per-lineage WT vs 2+ correlation of a gene pair for one hotspot gene."""
    gene_x, gene_y = _pair(context, gene_x, gene_y)
    if context.lineages is None:
        raise InvalidInputError("Lineage comparison requires lineage annotations")
    hotspot_gene = _require_hotspot(context, hotspot_gene)

    indices = context.cell_line_indices(cell_filter)
    rows = lineage_correlation_comparison(
        context.matrix, gene_x, gene_y, context.mutation_levels, hotspot_gene,
        context.lineages, cell_line_indices=indices,
    )
    if not rows:
        return EmptyResultSet(
            reason=(
                f"No lineage has at least 3 WT and 3 multi-hit {hotspot_gene} cell lines "
                f"with data for {gene_x} and {gene_y}"
            )
        )
    return PairComparisonResult(
        kind="lineage", gene_x=gene_x, gene_y=gene_y, hotspot_gene=hotspot_gene, rows=rows,
    )


def run_lineage_profile(
    context: AnalysisContext,
    gene_x: str,
    gene_y: str,
    cell_filter: Optional[CellLineFilter] = None,
) -> AnalysisOutcome:
    """Correlation of a gene pair within each lineage."""
    gene_x, gene_y = _pair(context, gene_x, gene_y)
    if context.lineages is None:
        raise InvalidInputError("Lineage profile requires lineage annotations")

    indices = context.cell_line_indices(cell_filter)
    rows = lineage_correlation_profile(
        context.matrix, gene_x, gene_y, context.lineages, cell_line_indices=indices,
    )
    if not rows:
        return EmptyResultSet(
            reason=f"No lineage has at least 3 cell lines with data for {gene_x} and {gene_y}"
        )
    return PairComparisonResult(
        kind="profile", gene_x=gene_x, gene_y=gene_y, hotspot_gene=None, rows=rows,
    )


def run_mutation_comparison(
    context: AnalysisContext,
    gene_x: str,
    gene_y: str,
    cell_filter: Optional[CellLineFilter] = None,
) -> AnalysisOutcome:
    """WT vs 2+ correlation of a gene pair across every hotspot gene."""
    gene_x, gene_y = _pair(context, gene_x, gene_y)
    if context.mutation_levels is None:
        raise InvalidInputError("Mutation comparison requires mutation annotations")

    indices = context.cell_line_indices(cell_filter)
    rows = mutation_correlation_comparison(
        context.matrix, gene_x, gene_y, context.mutation_levels, cell_line_indices=indices,
    )
    if not rows:
        return EmptyResultSet(
            reason=(
                f"No hotspot gene has at least 3 WT and 3 multi-hit cell lines "
                f"with data for {gene_x} and {gene_y}"
            )
        )
    return PairComparisonResult(
        kind="mutation", gene_x=gene_x, gene_y=gene_y, hotspot_gene=None, rows=rows,
    )


# =============================================================================
# Text summary
# =============================================================================

def summarize(result: AnalysisOutcome) -> str:
    """Plain-text summary of one result, as written to summary.txt."""
    if not result.success:
        return f"Analysis produced no results\n\n{result.reason}\n"

    if isinstance(result, CorrelationAnalysisResult):
        params = result.parameters
        mode_text = (
            "Analysis (within gene list)"
            if result.mode is SweepMode.ANALYSIS
            else "Design (find correlated genes)"
        )
        lines = [
            "Gene Correlation Analysis Summary",
            "================================",
            f"Analysis Mode: {mode_text}",
            f"Correlation Cutoff: {params.correlation_cutoff}",
            f"Minimum Cell Lines: {params.min_n}",
            f"Minimum Slope: {params.min_slope}",
            f"Cell Line Filter: {result.filter_description or 'All cell lines'}",
            f"Cell Lines Used: {result.n_cell_lines}",
            "",
            f"Input Genes: {len(result.genes)}",
            ", ".join(result.genes),
            "",
            "Results:",
            f"- Total correlations found: {len(result.edges)}",
            f"- Genes in network: {len(result.gene_stats)}",
            f"- Number of clusters: {result.n_clusters}",
        ]
        return "\n".join(lines) + "\n"

    if isinstance(result, MutationAnalysisResult):
        table = result.table
        lines = [
            "Mutation Analysis Summary",
            "=========================",
            f"Hotspot Gene: {table.hotspot_gene}",
            f"Minimum WT Cell Lines: {result.parameters.min_n}",
            f"P-value Threshold: {result.parameters.p_value_threshold}",
            f"Cell Line Filter: {result.filter_description or 'All cell lines'}",
            "",
            f"WT cell lines: {table.n_wt_lines}",
            f"Mutant (1+2) cell lines: {table.n_mut_lines}",
            f"Multi-hit (2+) cell lines: {table.n_multi_lines}",
            "",
            "Results:",
            f"- Genes tested: {len(table.rows)}",
            f"- Significant genes: {len(result.significant)}",
        ]
        return "\n".join(lines) + "\n"

    title = {
        "lineage": f"WT vs 2+ {result.hotspot_gene} correlation by lineage",
        "mutation": "WT vs 2+ correlation by hotspot gene",
        "profile": "Correlation by lineage",
    }[result.kind]
    lines = [
        f"{result.gene_x} / {result.gene_y}: {title}",
        "=" * 40,
        f"Rows: {len(result.rows)}",
    ]
    return "\n".join(lines) + "\n"

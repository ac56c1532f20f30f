"""
Differential gene dependency between mutation- and lineage-defined subgroups.

Two families of comparison:

1. Mutation-level sweep (every gene in the matrix):
   Active cell lines are split by the hotspot mutation level of one gene into
   WT (0), single-hit (1) and multi-hit (2, two or more). For each gene the
   WT effects are compared with Welch's t-test against (1+2) combined and,
   when at least three multi-hit values exist, against multi-hit alone.
   Benjamini-Hochberg q-values are attached across the tested genes.

2. Correlation comparisons for one gene pair:
   - per lineage: WT (0) vs multi-hit (2+) correlation of the pair, with a
     Fisher z-test on the difference (single-hit lines are excluded)
   - per hotspot gene: the same WT vs 2+ comparison, across every hotspot
     gene of the mutation lookup instead of across lineages
   - lineage profile: correlation, slope and per-gene mean/sd of the pair
     within each lineage

Missing values are always dropped per group, never across the whole matrix.
A gene (or lineage, or hotspot gene) whose groups are too small is skipped,
it never fails the sweep.
"""

from __future__ import annotations

import logging
import math
import time
import warnings
from dataclasses import asdict, dataclass, replace
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from scipy.stats import false_discovery_control

from depcorr.core.annotations import LineageMap, MutationLevels, SINGLE_HIT, WILD_TYPE
from depcorr.core.effect_matrix import GeneEffectMatrix
from depcorr.stats.correlation import pearson_with_slope
from depcorr.stats.kernel import (
    fisher_z_diff_test,
    mean,
    sample_variance,
    welch_t_test,
)

logger = logging.getLogger(__name__)

__all__ = [
    'MIN_GROUP_SIZE',
    'GroupComparisonResult',
    'group_comparison',
    'MutationPartition',
    'MutationEffectRow',
    'MutationEffectTable',
    'mutation_effect_sweep',
    'GroupCorrelation',
    'CorrelationComparisonRow',
    'LineageProfileRow',
    'lineage_correlation_comparison',
    'mutation_correlation_comparison',
    'lineage_correlation_profile',
]

MIN_GROUP_SIZE = 3
UNKNOWN_LINEAGE = "Unknown"


# =============================================================================
# Generic group comparison
# =============================================================================

@dataclass(frozen=True)
class GroupComparisonResult:
    """Summary of one group and its Welch test against the reference group."""
    group_label: str
    n: int
    mean: float
    sd: float
    diff_vs_reference: float
    t_statistic: float
    degrees_of_freedom: float
    p_value: float


def group_comparison(
    groups: Mapping[str, Sequence[float]],
    reference: str,
) -> List[GroupComparisonResult]:
    """
    Compare every group against a reference group.

    Args:
        groups: Label -> values (NaN allowed, dropped per group)
        reference: Label of the reference group

    Returns:
        One result per group, in mapping order. The reference row has
        diff 0, t 0, df NaN and p 1.

    Raises:
        KeyError: If ``reference`` is not one of the groups
    """
    if reference not in groups:
        raise KeyError(f"Reference group {reference!r} not in groups {list(groups)}")

    cleaned = {label: _present(values) for label, values in groups.items()}
    ref_values = cleaned[reference]
    ref_mean = mean(ref_values)

    results = []
    for label, values in cleaned.items():
        group_mean = mean(values)
        if label == reference:
            t, df, p = 0.0, math.nan, 1.0
        else:
            test = welch_t_test(values, ref_values)
            t, df, p = test.t, test.df, test.p
        results.append(GroupComparisonResult(
            group_label=label,
            n=int(values.size),
            mean=group_mean,
            sd=math.sqrt(sample_variance(values)),
            diff_vs_reference=group_mean - ref_mean,
            t_statistic=t,
            degrees_of_freedom=df,
            p_value=p,
        ))
    return results


def _present(values: Sequence[float]) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64).ravel()
    return arr[~np.isnan(arr)]


# =============================================================================
# Mutation-level sweep
# =============================================================================

@dataclass(frozen=True)
class MutationPartition:
    """
    Active cell lines split by hotspot mutation level.

    Attributes:
        hotspot_gene: Gene whose mutation level defines the groups
        wild_type: Column indices with level 0
        single_hit: Column indices with level 1
        multi_hit: Column indices with level 2 (two or more)
    """
    hotspot_gene: str
    wild_type: np.ndarray
    single_hit: np.ndarray
    multi_hit: np.ndarray

    @classmethod
    def build(
        cls,
        matrix: GeneEffectMatrix,
        mutation_levels: MutationLevels,
        hotspot_gene: str,
        cell_line_indices: Optional[np.ndarray] = None,
    ) -> MutationPartition:
        """
        Raises:
            KeyError: If the hotspot gene has no mutation data
        """
        if cell_line_indices is None:
            cell_line_indices = np.arange(matrix.n_cell_lines)
        columns = np.asarray(cell_line_indices, dtype=np.intp)
        ids = [str(matrix.cell_line_ids[c]) for c in columns]
        levels = mutation_levels.levels_for(hotspot_gene, ids)

        return cls(
            hotspot_gene=hotspot_gene,
            wild_type=columns[levels == WILD_TYPE],
            single_hit=columns[levels == SINGLE_HIT],
            multi_hit=columns[levels > SINGLE_HIT],
        )

    @property
    def mutant(self) -> np.ndarray:
        """Single- and multi-hit columns combined (1+2)."""
        return np.concatenate([self.single_hit, self.multi_hit])

    @property
    def is_testable(self) -> bool:
        """At least three WT and three mutant cell lines."""
        return self.wild_type.size >= MIN_GROUP_SIZE and self.mutant.size >= MIN_GROUP_SIZE


@dataclass(frozen=True)
class MutationEffectRow:
    """Per-gene WT vs mutant comparison (diffs are mutant mean minus WT mean)."""
    gene: str
    n_wt: int
    mean_wt: float
    n_mut: int
    mean_mut: float
    diff_mut: float
    t_mut: float
    p_mut: float
    n_2: int
    mean_2: float
    diff_2: float
    p_2: float
    q_mut: float = math.nan
    q_2: float = math.nan


@dataclass(frozen=True)
class MutationEffectTable:
    """All tested genes of one mutation-level sweep."""
    hotspot_gene: str
    n_wt_lines: int
    n_mut_lines: int
    n_multi_lines: int
    rows: List[MutationEffectRow]

    def significant(self, p_value_threshold: float) -> List[MutationEffectRow]:
        """Rows with p_mut or p_2 below the threshold, most significant (p_mut) first."""
        hits = [r for r in self.rows if r.p_mut < p_value_threshold or r.p_2 < p_value_threshold]
        return sorted(hits, key=lambda r: r.p_mut)

    def to_dataframe(self) -> pd.DataFrame:
        columns = list(MutationEffectRow.__dataclass_fields__)
        return pd.DataFrame([asdict(r) for r in self.rows], columns=columns)


def _bh_qvalues(p_values: Sequence[float]) -> np.ndarray:
    p = np.asarray(p_values, dtype=np.float64)
    if p.size == 0:
        return p
    return false_discovery_control(p, method='bh')


def mutation_effect_sweep(
    matrix: GeneEffectMatrix,
    partition: MutationPartition,
    min_wt_n: int,
) -> MutationEffectTable:
    """
    Compare WT against mutant gene effects for every gene in the matrix.

    For each gene:
        - WT vs (1+2): Welch's t-test, always when the gene is tested
        - WT vs 2:     Welch's t-test when at least three multi-hit values
                       are present; otherwise p_2 = 1 and mean_2 = NaN

    Genes with fewer than ``min_wt_n`` present WT values, or fewer than three
    present mutant values, are skipped.

    Args:
        matrix: Gene effect matrix
        partition: Cell-line groups from :meth:`MutationPartition.build`
        min_wt_n: Minimum present WT values per tested gene

    Returns:
        MutationEffectTable in matrix row order, with BH q-values
    """
    start = time.time()

    if partition.multi_hit.size < MIN_GROUP_SIZE:
        warnings.warn(
            f"Only {partition.multi_hit.size} cell lines carry 2+ {partition.hotspot_gene} "
            f"hotspot mutations; the WT vs 2 contrast is skipped for every gene"
        )

    wt_block = matrix.values[:, partition.wild_type]
    mut_block = matrix.values[:, partition.mutant]
    multi_block = matrix.values[:, partition.multi_hit]
    symbols = [str(s) for s in matrix.gene_symbols]

    rows = []
    n_skipped = 0
    for g in range(matrix.n_genes):
        wt = _present(wt_block[g])
        mut = _present(mut_block[g])
        if wt.size < min_wt_n or mut.size < MIN_GROUP_SIZE:
            n_skipped += 1
            continue
        multi = _present(multi_block[g])

        mean_wt = mean(wt)
        mean_mut = mean(mut)
        test_mut = welch_t_test(wt, mut)

        mean_2, diff_2, p_2 = math.nan, math.nan, 1.0
        if multi.size >= MIN_GROUP_SIZE:
            mean_2 = mean(multi)
            diff_2 = mean_2 - mean_wt
            p_2 = welch_t_test(wt, multi).p

        rows.append(MutationEffectRow(
            gene=symbols[g],
            n_wt=int(wt.size),
            mean_wt=mean_wt,
            n_mut=int(mut.size),
            mean_mut=mean_mut,
            diff_mut=mean_mut - mean_wt,
            t_mut=test_mut.t,
            p_mut=test_mut.p,
            n_2=int(multi.size),
            mean_2=mean_2,
            diff_2=diff_2,
            p_2=p_2,
        ))

    rows = _attach_qvalues(rows)

    logger.info(
        f"Mutation sweep ({partition.hotspot_gene}): {len(rows)} genes tested, "
        f"{n_skipped} skipped (WT n < {min_wt_n} or mutant n < {MIN_GROUP_SIZE}), "
        f"{time.time() - start:.2f}s"
    )

    return MutationEffectTable(
        hotspot_gene=partition.hotspot_gene,
        n_wt_lines=int(partition.wild_type.size),
        n_mut_lines=int(partition.mutant.size),
        n_multi_lines=int(partition.multi_hit.size),
        rows=rows,
    )


def _attach_qvalues(rows: List[MutationEffectRow]) -> List[MutationEffectRow]:
    if not rows:
        return rows

    q_mut = _bh_qvalues([r.p_mut for r in rows])

    tested_2 = [i for i, r in enumerate(rows) if r.n_2 >= MIN_GROUP_SIZE]
    q_2 = np.full(len(rows), np.nan)
    if tested_2:
        q_2[tested_2] = _bh_qvalues([rows[i].p_2 for i in tested_2])

    return [
        replace(r, q_mut=float(q_mut[i]), q_2=float(q_2[i]))
        for i, r in enumerate(rows)
    ]


# =============================================================================
# Correlation comparisons for a gene pair
# =============================================================================

@dataclass(frozen=True)
class GroupCorrelation:
    """Correlation of a gene pair within one group of cell lines."""
    n: int
    correlation: float
    slope: float
    mean_x: float
    mean_y: float


@dataclass(frozen=True)
class CorrelationComparisonRow:
    """
    WT vs multi-hit correlation of a gene pair within one stratum.

    ``label`` is the lineage (lineage comparison) or the hotspot gene
    (mutation comparison). Deltas are mutant minus WT.
    """
    label: str
    wild_type: GroupCorrelation
    mutant: GroupCorrelation
    delta_r: float
    delta_slope: float
    z: float
    p_r: float

    def as_record(self) -> Dict[str, object]:
        return {
            'label': self.label,
            'n_wt': self.wild_type.n,
            'r_wt': self.wild_type.correlation,
            'slope_wt': self.wild_type.slope,
            'mean_x_wt': self.wild_type.mean_x,
            'mean_y_wt': self.wild_type.mean_y,
            'n_mut': self.mutant.n,
            'r_mut': self.mutant.correlation,
            'slope_mut': self.mutant.slope,
            'mean_x_mut': self.mutant.mean_x,
            'mean_y_mut': self.mutant.mean_y,
            'delta_r': self.delta_r,
            'delta_slope': self.delta_slope,
            'z': self.z,
            'p_r': self.p_r,
        }


@dataclass(frozen=True)
class LineageProfileRow:
    """Correlation of a gene pair within one lineage (sd uses the n denominator)."""
    lineage: str
    n: int
    correlation: float
    slope: float
    mean_x: float
    sd_x: float
    mean_y: float
    sd_y: float


def _paired_columns(
    matrix: GeneEffectMatrix,
    gene_x: str,
    gene_y: str,
    cell_line_indices: Optional[np.ndarray],
):
    """Columns where both genes are present, with their x and y values."""
    if cell_line_indices is None:
        cell_line_indices = np.arange(matrix.n_cell_lines)
    columns = np.asarray(cell_line_indices, dtype=np.intp)
    x = matrix.gene_values(gene_x, columns)
    y = matrix.gene_values(gene_y, columns)
    both = ~np.isnan(x) & ~np.isnan(y)
    return columns[both], x[both], y[both]


def _group_correlation(x: np.ndarray, y: np.ndarray) -> GroupCorrelation:
    stat = pearson_with_slope(x, y)
    return GroupCorrelation(
        n=int(x.size),
        correlation=stat.correlation,
        slope=stat.slope,
        mean_x=mean(x),
        mean_y=mean(y),
    )


def _compare_wt_vs_multi(
    label: str,
    x: np.ndarray,
    y: np.ndarray,
    levels: np.ndarray,
) -> Optional[CorrelationComparisonRow]:
    wt = levels == WILD_TYPE
    multi = levels > SINGLE_HIT
    if wt.sum() < MIN_GROUP_SIZE or multi.sum() < MIN_GROUP_SIZE:
        return None

    wt_stats = _group_correlation(x[wt], y[wt])
    mut_stats = _group_correlation(x[multi], y[multi])
    if math.isnan(wt_stats.correlation) or math.isnan(mut_stats.correlation):
        return None

    test = fisher_z_diff_test(wt_stats.correlation, wt_stats.n, mut_stats.correlation, mut_stats.n)
    return CorrelationComparisonRow(
        label=label,
        wild_type=wt_stats,
        mutant=mut_stats,
        delta_r=mut_stats.correlation - wt_stats.correlation,
        delta_slope=mut_stats.slope - wt_stats.slope,
        z=test.z,
        p_r=test.p,
    )


def lineage_correlation_comparison(
    matrix: GeneEffectMatrix,
    gene_x: str,
    gene_y: str,
    mutation_levels: MutationLevels,
    hotspot_gene: str,
    lineages: LineageMap,
    cell_line_indices: Optional[np.ndarray] = None,
) -> List[CorrelationComparisonRow]:
    """
    Per-lineage WT vs 2+ correlation of (gene_x, gene_y) for one hotspot gene.

    Only cell lines where both genes are present and that carry a lineage
    label take part. Lineages need at least three WT and three multi-hit
    lines; lineages where either group's correlation is undefined are
    skipped.

    Returns:
        Rows sorted by p(delta r) ascending

    Raises:
        KeyError: If a gene is not in the matrix or the hotspot gene has no
            mutation data
    """
    columns, x, y = _paired_columns(matrix, gene_x, gene_y, cell_line_indices)
    ids = [str(matrix.cell_line_ids[c]) for c in columns]
    levels = mutation_levels.levels_for(hotspot_gene, ids)
    labels = np.array([lineages.lineage(cl) or "" for cl in ids], dtype=object)

    rows = []
    for lineage in sorted(set(labels) - {""}):
        mask = labels == lineage
        row = _compare_wt_vs_multi(lineage, x[mask], y[mask], levels[mask])
        if row is not None:
            rows.append(row)

    logger.debug(
        f"Lineage comparison {gene_x}/{gene_y} by {hotspot_gene}: "
        f"{len(rows)} lineages with >= {MIN_GROUP_SIZE} lines per group"
    )
    return sorted(rows, key=lambda r: r.p_r)


def mutation_correlation_comparison(
    matrix: GeneEffectMatrix,
    gene_x: str,
    gene_y: str,
    mutation_levels: MutationLevels,
    cell_line_indices: Optional[np.ndarray] = None,
    exclude_genes: Sequence[str] = (),
) -> List[CorrelationComparisonRow]:
    """
    WT vs 2+ correlation of (gene_x, gene_y) for every hotspot gene.

    Returns:
        One row per hotspot gene with at least three lines in each group,
        sorted by p(delta r) ascending
    """
    columns, x, y = _paired_columns(matrix, gene_x, gene_y, cell_line_indices)
    ids = [str(matrix.cell_line_ids[c]) for c in columns]
    excluded = {str(g).upper() for g in exclude_genes}

    rows = []
    for hotspot_gene in mutation_levels.genes:
        if hotspot_gene.upper() in excluded:
            continue
        levels = mutation_levels.levels_for(hotspot_gene, ids)
        row = _compare_wt_vs_multi(hotspot_gene, x, y, levels)
        if row is not None:
            rows.append(row)

    return sorted(rows, key=lambda r: r.p_r)


def lineage_correlation_profile(
    matrix: GeneEffectMatrix,
    gene_x: str,
    gene_y: str,
    lineages: LineageMap,
    cell_line_indices: Optional[np.ndarray] = None,
) -> List[LineageProfileRow]:
    """
    Correlation of (gene_x, gene_y) within each lineage.

    Unlabelled cell lines are pooled under "Unknown". Lineages with fewer than
    three paired cell lines are skipped.

    Returns:
        Rows sorted by correlation, highest first (undefined correlations last)
    """
    columns, x, y = _paired_columns(matrix, gene_x, gene_y, cell_line_indices)
    ids = [str(matrix.cell_line_ids[c]) for c in columns]
    labels = np.array([lineages.lineage(cl) or UNKNOWN_LINEAGE for cl in ids], dtype=object)

    rows = []
    for lineage in sorted(set(labels)):
        mask = labels == lineage
        if mask.sum() < MIN_GROUP_SIZE:
            continue
        xs, ys = x[mask], y[mask]
        stat = pearson_with_slope(xs, ys)
        rows.append(LineageProfileRow(
            lineage=lineage,
            n=int(mask.sum()),
            correlation=stat.correlation,
            slope=stat.slope,
            mean_x=float(xs.mean()),
            sd_x=float(xs.std()),
            mean_y=float(ys.mean()),
            sd_y=float(ys.std()),
        ))

    return sorted(rows, key=lambda r: (math.isnan(r.correlation), -np.nan_to_num(r.correlation)))

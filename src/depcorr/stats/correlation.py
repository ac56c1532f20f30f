"""
Pairwise Pearson correlation and regression slope between gene effect profiles.

For a pair of genes (x, y) the statistics are computed only over cell lines
where both genes have a value, from the five running sums
sum(x), sum(y), sum(xy), sum(x^2), sum(y^2):

    r     = (Sxy - n*mx*my) / sqrt((Sxx - n*mx^2) * (Syy - n*my^2))
    slope = (Sxy - n*mx*my) / (Sxx - n*mx^2)        (y regressed on x)

Fewer than three jointly present cell lines, or a zero denominator (a
constant profile), leaves both statistics undefined (NaN) and the pair is
never retained.

Two sweep modes build the list of retained CorrelationEdges:

- analysis: candidates are the input genes themselves, unordered pairs i < j
- design: each input gene is correlated against every other gene in the
  matrix; a pair of two input genes is reported once, by the first anchor
  in input order that retains it

The sweeps evaluate the running sums for one anchor gene against a block of
candidate genes at once, and walk the gene universe in fixed-size chunks so
memory stays bounded on genome-wide matrices. Working memory per anchor is
about 18 bytes per (candidate, cell line) element of the current chunk.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np
from tqdm import tqdm

from depcorr.core.effect_matrix import GeneEffectMatrix
from depcorr.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

__all__ = [
    'SweepMode',
    'PairStatistic',
    'CorrelationThresholds',
    'CorrelationEdge',
    'pearson_with_slope',
    'pearson_with_slope_against',
    'compute_correlation_edges',
]

MIN_PAIRED_OBSERVATIONS = 3

# Relative tolerance under which a sum of squared deviations counts as zero.
# A floating-point cancellation guard only: a profile with a coefficient of
# variation above about 1e-7 is never treated as constant.
_DEGENERATE_RTOL = 64 * np.finfo(np.float64).eps

# Candidate genes per design-mode block; about 10 MB of working memory per
# anchor at 1,100 cell lines
DEFAULT_CHUNK_SIZE = 500


class SweepMode(str, Enum):
    """Candidate universe of a correlation sweep."""
    ANALYSIS = "analysis"
    DESIGN = "design"


@dataclass(frozen=True)
class PairStatistic:
    """Correlation, slope and number of jointly present observations."""
    correlation: float
    slope: float
    n: int

    @property
    def is_defined(self) -> bool:
        return not (math.isnan(self.correlation) or math.isnan(self.slope))


@dataclass(frozen=True)
class CorrelationThresholds:
    """
    Retention rule for a correlation edge.

    An edge is kept when n >= min_n, |r| >= min_correlation and
    |slope| >= min_slope. Undefined statistics are never kept.
    """
    min_correlation: float = 0.5
    min_slope: float = 0.0
    min_n: int = MIN_PAIRED_OBSERVATIONS

    def __post_init__(self):
        if not 0.0 <= self.min_correlation <= 1.0:
            raise InvalidInputError(f"min_correlation must be in [0, 1], got {self.min_correlation}")
        if self.min_slope < 0:
            raise InvalidInputError(f"min_slope must be >= 0, got {self.min_slope}")
        if self.min_n < MIN_PAIRED_OBSERVATIONS:
            raise InvalidInputError(f"min_n must be >= {MIN_PAIRED_OBSERVATIONS}, got {self.min_n}")

    def accepts(self, stat: PairStatistic) -> bool:
        if not stat.is_defined:
            return False
        return (
            stat.n >= self.min_n
            and abs(stat.correlation) >= self.min_correlation
            and abs(stat.slope) >= self.min_slope
        )

    def accepts_arrays(self, r: np.ndarray, slope: np.ndarray, n: np.ndarray) -> np.ndarray:
        """Vectorised :meth:`accepts`; NaN comparisons evaluate to False."""
        with np.errstate(invalid='ignore'):
            return (
                (n >= self.min_n)
                & (np.abs(r) >= self.min_correlation)
                & (np.abs(slope) >= self.min_slope)
            )


@dataclass(frozen=True)
class CorrelationEdge:
    """
    Retained correlation between two genes.

    ``slope`` regresses gene_b on gene_a. ``cluster`` is 0 until the edge list
    has been through :func:`depcorr.network.clustering.assign_clusters`.
    """
    gene_a: str
    gene_b: str
    correlation: float
    slope: float
    n: int
    cluster: int = 0

    @property
    def pair(self) -> frozenset:
        return frozenset((self.gene_a, self.gene_b))


def pearson_with_slope_against(anchor: np.ndarray, block: np.ndarray):
    """
    Correlation and slope of every row of ``block`` against ``anchor``.

    The anchor is the regressor (x); each block row is a response (y).
    Missing values (NaN) are excluded pairwise, independently per row.

    The anchor-side sums come from two matrix-vector products with the
    pairwise presence mask, so the block is never broadcast against the
    anchor. Peak working memory is about two float64 arrays the size of
    ``block`` (the zero-filled responses and the presence weights) plus a
    boolean mask, i.e. roughly 18 bytes per block element: a 500 × 1100
    block needs about 10 MB on top of the block itself.

    A profile whose sum of squared deviations is within
    ``_DEGENERATE_RTOL`` of its raw sum of squares is treated as constant.
    The one-pass sums lose that many relative digits to cancellation, so
    below it the deviation is rounding noise rather than signal.

    Args:
        anchor: 1D array of length n_cell_lines
        block: 2D array (n_candidates × n_cell_lines)

    Returns:
        (correlation, slope, n) arrays of length n_candidates; rows with
        n < 3 or a zero denominator have NaN correlation and slope, and
        rows with n < 3 report n = 0
    """
    anchor = np.asarray(anchor, dtype=np.float64)
    block = np.atleast_2d(np.asarray(block, dtype=np.float64))
    if block.shape[1] != anchor.shape[0]:
        raise ValueError(
            f"anchor length ({anchor.shape[0]}) must match block columns ({block.shape[1]})"
        )

    anchor_present = ~np.isnan(anchor)
    a = np.where(anchor_present, anchor, 0.0)

    valid = ~np.isnan(block)
    valid &= anchor_present[np.newaxis, :]
    y = np.where(valid, block, 0.0)
    weights = valid.astype(np.float64)

    n = valid.sum(axis=1)
    del valid
    sum_x = weights @ a
    sum_x2 = weights @ (a * a)
    del weights
    sum_y = y.sum(axis=1)
    sum_xy = y @ a
    sum_y2 = np.einsum('ij,ij->i', y, y)

    with np.errstate(divide='ignore', invalid='ignore'):
        mean_x = sum_x / n
        mean_y = sum_y / n
        numerator = sum_xy - n * mean_x * mean_y
        ss_x = sum_x2 - n * mean_x * mean_x
        ss_y = sum_y2 - n * mean_y * mean_y

        degenerate = (
            (n < MIN_PAIRED_OBSERVATIONS)
            | (ss_x <= _DEGENERATE_RTOL * sum_x2)
            | (ss_y <= _DEGENERATE_RTOL * sum_y2)
        )

        correlation = np.clip(numerator / (np.sqrt(ss_x) * np.sqrt(ss_y)), -1.0, 1.0)
        slope = numerator / ss_x

    correlation = np.where(degenerate, np.nan, correlation)
    slope = np.where(degenerate, np.nan, slope)
    n = np.where(n < MIN_PAIRED_OBSERVATIONS, 0, n)

    return correlation, slope, n


def pearson_with_slope(x: Sequence[float], y: Sequence[float]) -> PairStatistic:
    """
    Pearson correlation and OLS slope (y on x) over jointly present positions.

    Examples:
        >>> stat = pearson_with_slope([1, 2, 3, 4, 5], [2, 4, 6, 8, 10])
        >>> round(stat.correlation, 3), round(stat.slope, 3), stat.n
        (1.0, 2.0, 5)
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if x.shape != y.shape:
        raise ValueError(f"x and y must have equal length, got {x.shape} and {y.shape}")

    r, slope, n = pearson_with_slope_against(x, y[np.newaxis, :])
    return PairStatistic(correlation=float(r[0]), slope=float(slope[0]), n=int(n[0]))


def _unique_in_order(genes: Sequence[str]) -> List[str]:
    seen = set()
    ordered = []
    for g in genes:
        if g not in seen:
            seen.add(g)
            ordered.append(g)
    return ordered


def compute_correlation_edges(
    matrix: GeneEffectMatrix,
    genes: Sequence[str],
    mode: SweepMode | str,
    thresholds: CorrelationThresholds,
    cell_line_indices: Optional[np.ndarray] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    show_progress: bool = False,
) -> List[CorrelationEdge]:
    """
    Run a correlation sweep and return the retained edges.

    Edges are ordered by anchor (input order), then by candidate (input order
    in analysis mode, matrix row order in design mode). That order is what
    cluster id assignment depends on, so it is kept deterministic.

    Args:
        matrix: Gene effect matrix
        genes: Input gene symbols (resolved against the matrix); repeats are
            collapsed keeping the first occurrence
        mode: "analysis" or "design"
        thresholds: Retention rule
        cell_line_indices: Active cell-line columns (default: all)
        chunk_size: Candidate genes evaluated per block in design mode; working
            memory grows as chunk_size × n_cell_lines × 18 bytes
        show_progress: Show a tqdm progress bar over design-mode chunks

    Returns:
        Retained CorrelationEdges with cluster = 0

    Raises:
        KeyError: If an input gene is not in the matrix
    """
    mode = SweepMode(mode)
    genes = _unique_in_order([matrix.canonical_symbol(g) for g in genes])
    anchor_rows = np.array([matrix.gene_position(g) for g in genes], dtype=np.intp)

    if cell_line_indices is None:
        columns = np.arange(matrix.n_cell_lines)
    else:
        columns = np.asarray(cell_line_indices, dtype=np.intp)

    start = time.time()
    anchors = matrix.values[anchor_rows][:, columns]

    if mode is SweepMode.ANALYSIS:
        edges = _analysis_sweep(genes, anchors, thresholds)
        n_tested = len(genes) * (len(genes) - 1) // 2
    else:
        edges = _design_sweep(
            matrix, genes, anchor_rows, anchors, columns, thresholds, chunk_size, show_progress
        )
        n_tested = len(genes) * (matrix.n_genes - 1)

    logger.info(
        f"{mode.value} sweep: {len(genes)} input genes, {len(columns)} cell lines, "
        f"~{n_tested} pairs tested, {len(edges)} retained ({time.time() - start:.2f}s)"
    )
    return edges


def _analysis_sweep(
    genes: List[str],
    anchors: np.ndarray,
    thresholds: CorrelationThresholds,
) -> List[CorrelationEdge]:
    edges = []
    for i in range(len(genes) - 1):
        r, slope, n = pearson_with_slope_against(anchors[i], anchors[i + 1:])
        keep = thresholds.accepts_arrays(r, slope, n)
        for k in np.flatnonzero(keep):
            j = i + 1 + k
            edges.append(CorrelationEdge(
                gene_a=genes[i],
                gene_b=genes[j],
                correlation=float(r[k]),
                slope=float(slope[k]),
                n=int(n[k]),
            ))
    return edges


def _design_sweep(
    matrix: GeneEffectMatrix,
    genes: List[str],
    anchor_rows: np.ndarray,
    anchors: np.ndarray,
    columns: np.ndarray,
    thresholds: CorrelationThresholds,
    chunk_size: int,
    show_progress: bool,
) -> List[CorrelationEdge]:
    symbols = [str(s) for s in matrix.gene_symbols]
    chunk_size = max(1, chunk_size)

    per_anchor: List[List[CorrelationEdge]] = [[] for _ in genes]
    chunk_starts = range(0, matrix.n_genes, chunk_size)

    for chunk_start in tqdm(chunk_starts, desc="Correlating", unit="chunk", disable=not show_progress):
        chunk_stop = min(chunk_start + chunk_size, matrix.n_genes)
        block = matrix.values[chunk_start:chunk_stop][:, columns]

        for p, anchor_row in enumerate(anchor_rows):
            r, slope, n = pearson_with_slope_against(anchors[p], block)
            keep = thresholds.accepts_arrays(r, slope, n)
            for k in np.flatnonzero(keep):
                row = chunk_start + int(k)
                if row == anchor_row:
                    continue
                per_anchor[p].append(CorrelationEdge(
                    gene_a=genes[p],
                    gene_b=symbols[row],
                    correlation=float(r[k]),
                    slope=float(slope[k]),
                    n=int(n[k]),
                ))

    # A pair of two input genes is retained by the first anchor that kept it.
    # The slope is directional, so a later anchor may keep a pair an earlier
    # one rejected.
    edges = []
    seen = set()
    for anchor_edges in per_anchor:
        for edge in anchor_edges:
            if edge.pair in seen:
                continue
            seen.add(edge.pair)
            edges.append(edge)
    return edges

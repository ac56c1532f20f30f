"""
Result types published by one analysis run.

A run either completes and returns one consolidated result object, or
returns an EmptyResultSet explaining why nothing survived the filters. Both
carry a ``success`` flag so callers can branch without isinstance checks.

Every result exposes pandas DataFrame views for export; formatting those
tables for display is left to the caller.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import List, Optional, Union

import pandas as pd

from depcorr.core.context import FilterParameters
from depcorr.network.clustering import ClusterAssignment
from depcorr.stats.correlation import CorrelationEdge, SweepMode
from depcorr.stats.differential import (
    CorrelationComparisonRow,
    LineageProfileRow,
    MutationEffectRow,
    MutationEffectTable,
)

__all__ = [
    'EmptyResultSet',
    'GeneClusterStats',
    'CorrelationAnalysisResult',
    'MutationAnalysisResult',
    'PairComparisonResult',
    'AnalysisOutcome',
]


@dataclass(frozen=True)
class EmptyResultSet:
    """
    Nothing survived the filters.

    Attributes:
        reason: Human-readable explanation, including which thresholds to
            relax
    """
    reason: str
    success: bool = field(default=False, init=False)

    def __str__(self) -> str:
        return self.reason


@dataclass(frozen=True)
class GeneClusterStats:
    """
    Per-gene row of the cluster table.

    Means and standard deviations use the population (n) denominator. The
    ``_filtered`` columns cover the active cell-line subset; the others cover
    every cell line in the matrix. ``lfc``/``fdr`` come from an optional
    external statistics table.
    """
    gene: str
    cluster: int
    mean_all: float
    sd_all: float
    n_all: int
    mean_filtered: float
    sd_filtered: float
    n_filtered: int
    in_gene_list: bool
    lfc: Optional[float] = None
    fdr: Optional[float] = None


@dataclass(frozen=True)
class CorrelationAnalysisResult:
    """Retained edges, their clusters and the per-gene cluster table."""
    mode: SweepMode
    genes: List[str]
    parameters: FilterParameters
    n_cell_lines: int
    is_filtered: bool
    filter_description: str
    clusters: ClusterAssignment
    gene_stats: List[GeneClusterStats]
    success: bool = field(default=True, init=False)

    @property
    def edges(self) -> List[CorrelationEdge]:
        return self.clusters.edges

    @property
    def n_clusters(self) -> int:
        return self.clusters.n_clusters

    def edges_dataframe(self) -> pd.DataFrame:
        columns = ['gene_a', 'gene_b', 'correlation', 'slope', 'n', 'cluster']
        return pd.DataFrame([asdict(e) for e in self.edges], columns=columns)

    def clusters_dataframe(self) -> pd.DataFrame:
        """Cluster table sorted by cluster id, then gene."""
        columns = list(GeneClusterStats.__dataclass_fields__)
        frame = pd.DataFrame([asdict(s) for s in self.gene_stats], columns=columns)
        return frame.sort_values(['cluster', 'gene'], kind='stable').reset_index(drop=True)


@dataclass(frozen=True)
class MutationAnalysisResult:
    """Mutation-level sweep plus the rows passing the p-value threshold."""
    table: MutationEffectTable
    parameters: FilterParameters
    filter_description: str
    significant: List[MutationEffectRow]
    success: bool = field(default=True, init=False)

    @property
    def hotspot_gene(self) -> str:
        return self.table.hotspot_gene

    def significant_dataframe(self) -> pd.DataFrame:
        columns = list(MutationEffectRow.__dataclass_fields__)
        return pd.DataFrame([asdict(r) for r in self.significant], columns=columns)


@dataclass(frozen=True)
class PairComparisonResult:
    """
    Stratified statistics for one gene pair.

    ``kind`` is "lineage" (WT vs 2+ per lineage), "mutation" (WT vs 2+ per
    hotspot gene) or "profile" (correlation per lineage).
    """
    kind: str
    gene_x: str
    gene_y: str
    hotspot_gene: Optional[str]
    rows: List[Union[CorrelationComparisonRow, LineageProfileRow]]
    success: bool = field(default=True, init=False)

    def to_dataframe(self) -> pd.DataFrame:
        if self.kind == "profile":
            return pd.DataFrame(
                [asdict(r) for r in self.rows],
                columns=list(LineageProfileRow.__dataclass_fields__),
            )
        return pd.DataFrame([r.as_record() for r in self.rows])


AnalysisOutcome = Union[
    CorrelationAnalysisResult,
    MutationAnalysisResult,
    PairComparisonResult,
    EmptyResultSet,
]

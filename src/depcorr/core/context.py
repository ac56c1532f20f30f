"""
Explicit analysis context: the matrix, its annotations and the run parameters.

Every engine call receives what it needs through an AnalysisContext instead of
reaching into shared application state. The context is a plain value; two runs
with equal contexts produce equal results.

Cell-line selection (lineage, subtype and hotspot-level filters) is expressed
as a CellLineFilter that resolves to an ordered array of column indices of the
matrix. All engines operate on that index subset.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from depcorr.core.annotations import LineageMap, MutationLevels, WILD_TYPE, SINGLE_HIT
from depcorr.core.effect_matrix import GeneEffectMatrix
from depcorr.exceptions import InvalidInputError

__all__ = [
    'HOTSPOT_LEVELS',
    'FilterParameters',
    'CellLineFilter',
    'AnalysisContext',
]

HOTSPOT_LEVELS = ("all", "0", "1", "2", "1+2")


@dataclass(frozen=True)
class FilterParameters:
    """
    Thresholds applied by the correlation and differential sweeps.

    Attributes:
        correlation_cutoff: Minimum |r| for a retained edge, in [0, 1]
        min_slope: Minimum |slope| for a retained edge, >= 0
        min_n: Minimum jointly-present cell lines per edge; in mutation mode,
            minimum wild-type cell lines per tested gene. Integer >= 3.
        p_value_threshold: Significance threshold for mutation results, in (0, 1]
        min_cell_lines: Minimum cell lines left after filtering for a run
            to be attempted at all
    """
    correlation_cutoff: float = 0.5
    min_slope: float = 0.0
    min_n: int = 50
    p_value_threshold: float = 0.05
    min_cell_lines: int = 10

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Raises:
            InvalidInputError: If any parameter is out of range
        """
        if not 0.0 <= self.correlation_cutoff <= 1.0:
            raise InvalidInputError(
                f"correlation_cutoff must be in [0, 1], got {self.correlation_cutoff}"
            )
        if self.min_slope < 0:
            raise InvalidInputError(f"min_slope must be >= 0, got {self.min_slope}")
        if isinstance(self.min_n, bool) or not isinstance(self.min_n, (int, np.integer)):
            raise InvalidInputError(f"min_n must be an integer, got {self.min_n!r}")
        if self.min_n < 3:
            raise InvalidInputError(f"min_n must be >= 3, got {self.min_n}")
        if not 0.0 < self.p_value_threshold <= 1.0:
            raise InvalidInputError(
                f"p_value_threshold must be in (0, 1], got {self.p_value_threshold}"
            )
        if self.min_cell_lines < 1:
            raise InvalidInputError(f"min_cell_lines must be >= 1, got {self.min_cell_lines}")


@dataclass(frozen=True)
class CellLineFilter:
    """
    Restriction of the active cell-line set.

    Attributes:
        lineage: Keep only cell lines with this lineage label
        subtype: Keep only cell lines with this lineage subtype (requires lineage)
        hotspot_gene: Gene whose mutation level filters cell lines
        hotspot_level: One of "all", "0", "1", "2" (two or more) or
            "1+2" (one or more)
    """
    lineage: Optional[str] = None
    subtype: Optional[str] = None
    hotspot_gene: Optional[str] = None
    hotspot_level: str = "all"

    def __post_init__(self):
        if self.hotspot_level not in HOTSPOT_LEVELS:
            raise InvalidInputError(
                f"hotspot_level must be one of {HOTSPOT_LEVELS}, got {self.hotspot_level!r}"
            )
        if self.subtype and not self.lineage:
            raise InvalidInputError("subtype filter requires a lineage filter")

    @property
    def is_active(self) -> bool:
        return bool(self.lineage) or (bool(self.hotspot_gene) and self.hotspot_level != "all")

    def describe(self) -> str:
        parts = []
        if self.lineage:
            parts.append(f"Lineage: {self.lineage}")
        if self.subtype:
            parts.append(f"Subtype: {self.subtype}")
        if self.hotspot_gene and self.hotspot_level != "all":
            level_text = {"0": "WT", "1": "1 mut", "2": "2 mut", "1+2": "1+2 mut"}[self.hotspot_level]
            parts.append(f"{self.hotspot_gene}: {level_text}")
        return " | ".join(parts)

    def select(
        self,
        matrix: GeneEffectMatrix,
        mutation_levels: Optional[MutationLevels] = None,
        lineages: Optional[LineageMap] = None,
    ) -> np.ndarray:
        """
        Ordered column indices of the cell lines passing this filter.

        Raises:
            InvalidInputError: If a lineage filter is requested without lineage
                annotations, or the hotspot gene has no mutation data
        """
        cell_line_ids = [str(c) for c in matrix.cell_line_ids]
        keep = np.ones(len(cell_line_ids), dtype=bool)

        if self.lineage:
            if lineages is None:
                raise InvalidInputError("Lineage filter requested but no lineage annotations were provided")
            keep &= np.array([lineages.lineage(cl) == self.lineage for cl in cell_line_ids], dtype=bool)
            if self.subtype:
                keep &= np.array([lineages.subtype(cl) == self.subtype for cl in cell_line_ids], dtype=bool)

        if self.hotspot_gene and self.hotspot_level != "all":
            if mutation_levels is None or self.hotspot_gene not in mutation_levels:
                raise InvalidInputError(f"No mutation data for hotspot filter gene {self.hotspot_gene}")
            levels = mutation_levels.levels_for(self.hotspot_gene, cell_line_ids)
            if self.hotspot_level == "0":
                keep &= levels == WILD_TYPE
            elif self.hotspot_level == "1":
                keep &= levels == SINGLE_HIT
            elif self.hotspot_level == "2":
                keep &= levels > SINGLE_HIT
            else:
                keep &= levels > WILD_TYPE

        return np.flatnonzero(keep)


@dataclass(frozen=True)
class AnalysisContext:
    """Matrix, lookups and parameters passed into every engine call."""
    matrix: GeneEffectMatrix
    mutation_levels: Optional[MutationLevels] = None
    lineages: Optional[LineageMap] = None
    parameters: FilterParameters = field(default_factory=FilterParameters)

    def cell_line_indices(self, cell_filter: Optional[CellLineFilter] = None) -> np.ndarray:
        if cell_filter is None:
            return np.arange(self.matrix.n_cell_lines)
        return cell_filter.select(self.matrix, self.mutation_levels, self.lineages)

    def with_parameters(self, **changes) -> AnalysisContext:
        """Copy of this context with some filter parameters replaced."""
        values = {
            'correlation_cutoff': self.parameters.correlation_cutoff,
            'min_slope': self.parameters.min_slope,
            'min_n': self.parameters.min_n,
            'p_value_threshold': self.parameters.p_value_threshold,
            'min_cell_lines': self.parameters.min_cell_lines,
        }
        values.update(changes)
        return AnalysisContext(
            matrix=self.matrix,
            mutation_levels=self.mutation_levels,
            lineages=self.lineages,
            parameters=FilterParameters(**values),
        )

"""
Core data structures for dependency correlation analysis.

1. GeneEffectMatrix: read-only gene × cell-line effect matrix
2. MutationLevels / LineageMap: cell-line annotations
3. AnalysisContext: matrix + annotations + FilterParameters passed to engines
4. CellLineFilter: lineage / hotspot-level restriction of the active cell lines
"""

from depcorr.core.annotations import LineageMap, MutationLevels
from depcorr.core.context import AnalysisContext, CellLineFilter, FilterParameters
from depcorr.core.effect_matrix import GeneEffectMatrix

__all__ = [
    'GeneEffectMatrix',
    'MutationLevels',
    'LineageMap',
    'AnalysisContext',
    'CellLineFilter',
    'FilterParameters',
]

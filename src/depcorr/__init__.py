"""
DepCorr - Gene Dependency Correlation Analysis for CRISPR Screens

Correlation networks, hotspot-mutation differential effects and
lineage-stratified correlation comparisons over genome-wide gene effect
(dependency) matrices.
"""

__version__ = "0.1.0"

from depcorr.core.effect_matrix import GeneEffectMatrix
from depcorr.core.annotations import MutationLevels, LineageMap
from depcorr.core.context import AnalysisContext, CellLineFilter, FilterParameters
from depcorr.exceptions import InvalidInputError
from depcorr.results import EmptyResultSet

__all__ = [
    "GeneEffectMatrix",
    "MutationLevels",
    "LineageMap",
    "AnalysisContext",
    "CellLineFilter",
    "FilterParameters",
    "InvalidInputError",
    "EmptyResultSet",
]

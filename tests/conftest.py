"""
Pytest configuration and shared fixtures for the depcorr test suites.

This module provides synthetic gene effect data with known structure:
correlated gene modules, a hotspot gene whose mutant lines depend more
strongly on one target gene, and lineage labels.
"""

import numpy as np
import pandas as pd
import pytest

from depcorr.core.annotations import LineageMap, MutationLevels
from depcorr.core.context import AnalysisContext, FilterParameters
from depcorr.core.effect_matrix import GeneEffectMatrix

LINEAGES = ("Lung", "Breast", "Skin")
SUBTYPES = {"Lung": ("NSCLC", "SCLC"), "Breast": ("Luminal", "Basal"), "Skin": ("Melanoma",)}

# Gene whose effect is shifted in KRAS-mutant lines
DEPENDENT_GENE = "GENE0030"


def cell_line_ids(n_cell_lines: int):
    return [f"ACH-{i:06d}" for i in range(n_cell_lines)]


def kras_level(i: int) -> int:
    """Deterministic hotspot burden: every 7th line 2+, every 5th line 1."""
    if i % 7 == 0:
        return 2
    if i % 5 == 0:
        return 1
    return 0


def generate_synthetic_effect_matrix(
    n_genes: int,
    n_cell_lines: int,
    n_modules: int = 3,
    module_size: int = 5,
    missing_fraction: float = 0.02,
    mutant_shift: float = -1.0,
    seed: int = 42,
) -> GeneEffectMatrix:
    """
    Generate a synthetic gene effect matrix with realistic properties.

    Args:
        n_genes: Number of genes
        n_cell_lines: Number of cell lines
        n_modules: Number of co-dependent gene modules
        module_size: Genes per module
        missing_fraction: Fraction of values set to NaN
        mutant_shift: Effect shift of DEPENDENT_GENE in KRAS-mutant lines
        seed: Random seed for reproducibility

    Returns:
        GeneEffectMatrix with genes GENE0000.. and cell lines ACH-000000..

    Design:
        - Background effects ~ N(-0.2, 0.3)
        - Genes [m*module_size, (m+1)*module_size) share a module pattern
          with loadings in [0.6, 1.0], giving within-module r > 0.8
        - DEPENDENT_GENE is shifted in mutant lines (kras_level > 0)
    """
    rng = np.random.RandomState(seed)
    data = rng.normal(-0.2, 0.3, size=(n_genes, n_cell_lines))

    for m in range(n_modules):
        pattern = rng.randn(n_cell_lines)
        for g in range(m * module_size, min((m + 1) * module_size, n_genes)):
            loading = rng.uniform(0.6, 1.0)
            data[g] = -0.5 + loading * pattern + rng.normal(0, 0.15, size=n_cell_lines)

    genes = [f"GENE{i:04d}" for i in range(n_genes)]
    if DEPENDENT_GENE in genes:
        row = genes.index(DEPENDENT_GENE)
        mutant = np.array([kras_level(i) > 0 for i in range(n_cell_lines)])
        data[row, mutant] += mutant_shift

    n_missing = int(n_genes * n_cell_lines * missing_fraction)
    positions = rng.choice(n_genes * n_cell_lines, size=n_missing, replace=False)
    data.flat[positions] = np.nan

    return GeneEffectMatrix(data, pd.Index(genes), pd.Index(cell_line_ids(n_cell_lines)))


def make_mutation_levels(n_cell_lines: int) -> MutationLevels:
    ids = cell_line_ids(n_cell_lines)
    return MutationLevels({
        "KRAS": {cl: kras_level(i) for i, cl in enumerate(ids) if kras_level(i) > 0},
        "TP53": {cl: 1 for i, cl in enumerate(ids) if i % 2 == 1},
        "RARE": {ids[0]: 2},
    })


def make_lineages(n_cell_lines: int) -> LineageMap:
    ids = cell_line_ids(n_cell_lines)
    lineage = {}
    subtype = {}
    for i, cl in enumerate(ids):
        label = LINEAGES[i % len(LINEAGES)]
        lineage[cl] = label
        options = SUBTYPES[label]
        subtype[cl] = options[(i // len(LINEAGES)) % len(options)]
    return LineageMap(lineage, subtype)


@pytest.fixture
def small_matrix():
    """Small matrix (60 genes x 120 cell lines) for fast unit tests."""
    return generate_synthetic_effect_matrix(n_genes=60, n_cell_lines=120)


@pytest.fixture
def large_matrix():
    """Matrix with 600 cell lines (200 genes) for end-to-end tests."""
    return generate_synthetic_effect_matrix(
        n_genes=200, n_cell_lines=600, n_modules=4, module_size=5, seed=7
    )


@pytest.fixture
def small_context(small_matrix):
    """Context over small_matrix with mutation and lineage annotations."""
    n = small_matrix.n_cell_lines
    return AnalysisContext(
        matrix=small_matrix,
        mutation_levels=make_mutation_levels(n),
        lineages=make_lineages(n),
        parameters=FilterParameters(correlation_cutoff=0.5, min_slope=0.0, min_n=20),
    )


@pytest.fixture
def tiny_matrix():
    """Hand-written 4 genes x 6 cell lines matrix with one missing value."""
    values = np.array([
        [1.0, 2.0, 3.0, 4.0, 5.0, 6.0],
        [2.0, 4.0, 6.0, 8.0, 10.0, 12.0],
        [0.5, 0.5, 0.5, 0.5, 0.5, 0.5],
        [6.0, 5.0, 4.0, np.nan, 2.0, 1.0],
    ])
    return GeneEffectMatrix(
        values,
        pd.Index(["KRAS", "BRAF", "FLAT", "NRAS"]),
        pd.Index(cell_line_ids(6)),
    )

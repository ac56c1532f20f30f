"""Input loaders for gene effect matrices, annotations and gene statistics."""

from depcorr.io.loaders import (
    clean_gene_symbol,
    load_encoded_bundle,
    load_gene_effect_csv,
    load_gene_statistics,
    load_lineage_table,
    load_mutation_table,
)

__all__ = [
    'clean_gene_symbol',
    'load_gene_effect_csv',
    'load_mutation_table',
    'load_lineage_table',
    'load_gene_statistics',
    'load_encoded_bundle',
]

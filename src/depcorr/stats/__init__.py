"""
Statistics for dependency correlation analysis.

Exports:
- Scalar kernel: normal CDF, log-gamma, incomplete beta, t p-values,
  Welch's t-test, Fisher z-test for correlation differences
- Pairwise correlation/slope and the analysis/design sweeps
- Differential effect between mutation- and lineage-defined groups
"""

from .kernel import (
    WelchTestResult,
    FisherZResult,
    mean,
    sample_variance,
    standard_normal_cdf,
    log_gamma,
    regularized_incomplete_beta,
    student_t_two_tailed_pvalue,
    welch_t_test,
    fisher_z_diff_test,
    fisher_z_diff_pvalue,
)
from .correlation import (
    SweepMode,
    PairStatistic,
    CorrelationThresholds,
    CorrelationEdge,
    pearson_with_slope,
    pearson_with_slope_against,
    compute_correlation_edges,
)
from .differential import (
    GroupComparisonResult,
    group_comparison,
    MutationPartition,
    MutationEffectRow,
    MutationEffectTable,
    mutation_effect_sweep,
    GroupCorrelation,
    CorrelationComparisonRow,
    LineageProfileRow,
    lineage_correlation_comparison,
    mutation_correlation_comparison,
    lineage_correlation_profile,
)

__all__ = [
    "WelchTestResult",
    "FisherZResult",
    "mean",
    "sample_variance",
    "standard_normal_cdf",
    "log_gamma",
    "regularized_incomplete_beta",
    "student_t_two_tailed_pvalue",
    "welch_t_test",
    "fisher_z_diff_test",
    "fisher_z_diff_pvalue",
    "SweepMode",
    "PairStatistic",
    "CorrelationThresholds",
    "CorrelationEdge",
    "pearson_with_slope",
    "pearson_with_slope_against",
    "compute_correlation_edges",
    "GroupComparisonResult",
    "group_comparison",
    "MutationPartition",
    "MutationEffectRow",
    "MutationEffectTable",
    "mutation_effect_sweep",
    "GroupCorrelation",
    "CorrelationComparisonRow",
    "LineageProfileRow",
    "lineage_correlation_comparison",
    "mutation_correlation_comparison",
    "lineage_correlation_profile",
]

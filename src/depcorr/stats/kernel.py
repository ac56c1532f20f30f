"""
Scalar statistics kernel used by the correlation and differential sweeps.

Provides:
- Descriptive statistics (mean, sample variance)
- Standard normal CDF (Abramowitz & Stegun 7.1.26)
- Log-gamma (Lanczos, g=7) and the regularized incomplete beta function
  (Lentz continued fraction)
- Two-tailed Student-t p-values
- Welch's unequal-variance t-test
- Fisher z-test for the difference of two Pearson correlations

Every function here is called tens of thousands of times per analysis, once
per gene or gene pair. None of them raise on degenerate input: too few
observations, zero variance and NaN inputs all map to documented sentinel
values (p = 1, t = 0) so one pathological gene never aborts a sweep.

References:
    Abramowitz, M. & Stegun, I.A. (1964). Handbook of Mathematical Functions,
    formula 7.1.26.

    Lanczos, C. (1964). A precision approximation of the gamma function.
    SIAM Journal on Numerical Analysis, Series B, 1, 86-96.

    Press, W.H. et al. (2007). Numerical Recipes, 3rd ed., section 6.4
    (incomplete beta function, modified Lentz evaluation).

    Welch, B.L. (1947). The generalization of "Student's" problem when several
    different population variances are involved. Biometrika, 34(1-2), 28-35.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

__all__ = [
    'WelchTestResult',
    'FisherZResult',
    'mean',
    'sample_variance',
    'standard_normal_cdf',
    'log_gamma',
    'regularized_incomplete_beta',
    'student_t_two_tailed_pvalue',
    'welch_t_test',
    'fisher_z_diff_test',
    'fisher_z_diff_pvalue',
]

# Lanczos coefficients for g = 7, n = 9
_LANCZOS_G = 7
_LANCZOS_COEFFICIENTS = (
    0.99999999999980993,
    676.5203681218851,
    -1259.1392167224028,
    771.32342877765313,
    -176.61502916214059,
    12.507343278686905,
    -0.13857109526572012,
    9.9843695780195716e-6,
    1.5056327351493116e-7,
)

_BETA_CF_MAX_ITER = 100
_BETA_CF_EPS = 1e-10
_BETA_CF_TINY = 1e-30

# Above this many degrees of freedom the t distribution is replaced by the normal
_NORMAL_APPROX_DF = 100

# Keeps atanh finite for |r| == 1
_MAX_ABS_CORRELATION = 1.0 - 1e-7


@dataclass(frozen=True)
class WelchTestResult:
    """Result of Welch's t-test (t statistic, Welch-Satterthwaite df, two-tailed p)."""
    t: float
    df: float
    p: float


@dataclass(frozen=True)
class FisherZResult:
    """Fisher z-test for r2 - r1: standardized difference and two-tailed p."""
    z: float
    p: float


def _as_clean_array(values: Sequence[float]) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64).ravel()
    return arr[~np.isnan(arr)]


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; NaN for an empty sequence."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return math.nan
    return float(arr.mean())


def sample_variance(values: Sequence[float]) -> float:
    """Unbiased (n-1) variance; 0 when fewer than two values."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.size < 2:
        return 0.0
    return float(arr.var(ddof=1))


def standard_normal_cdf(z: float) -> float:
    """
    Standard normal CDF via the Abramowitz-Stegun rational approximation.

    Absolute error is below 1.5e-7 over the real line.
    """
    if math.isnan(z):
        return math.nan
    if z == 0:
        return 0.5

    a1, a2, a3 = 0.254829592, -0.284496736, 1.421413741
    a4, a5, p = -1.453152027, 1.061405429, 0.3275911

    sign = -1.0 if z < 0 else 1.0
    x = abs(z) / math.sqrt(2.0)
    t = 1.0 / (1.0 + p * x)
    y = 1.0 - (((((a5 * t + a4) * t) + a3) * t + a2) * t + a1) * t * math.exp(-x * x)
    return 0.5 * (1.0 + sign * y)


def log_gamma(x: float) -> float:
    """
    Natural log of |Gamma(x)| via the Lanczos approximation.

    Uses the reflection formula Gamma(x) Gamma(1-x) = pi / sin(pi x) for
    x < 0.5. Poles (non-positive integers) return +inf.
    """
    if x < 0.5:
        s = math.sin(math.pi * x)
        if s == 0:
            return math.inf
        return math.log(abs(math.pi / s)) - log_gamma(1.0 - x)

    x -= 1.0
    a = _LANCZOS_COEFFICIENTS[0]
    for i in range(1, _LANCZOS_G + 2):
        a += _LANCZOS_COEFFICIENTS[i] / (x + i)

    t = x + _LANCZOS_G + 0.5
    return 0.5 * math.log(2.0 * math.pi) + (x + 0.5) * math.log(t) - t + math.log(a)


def _beta_continued_fraction(x: float, a: float, b: float) -> float:
    """Continued fraction for I_x(a, b), modified Lentz's method."""
    qab = a + b
    qap = a + 1.0
    qam = a - 1.0

    c = 1.0
    d = 1.0 - qab * x / qap
    if abs(d) < _BETA_CF_TINY:
        d = _BETA_CF_TINY
    d = 1.0 / d
    h = d

    for m in range(1, _BETA_CF_MAX_ITER + 1):
        m2 = 2 * m

        # Even step
        aa = m * (b - m) * x / ((qam + m2) * (a + m2))
        d = 1.0 + aa * d
        if abs(d) < _BETA_CF_TINY:
            d = _BETA_CF_TINY
        c = 1.0 + aa / c
        if abs(c) < _BETA_CF_TINY:
            c = _BETA_CF_TINY
        d = 1.0 / d
        h *= d * c

        # Odd step
        aa = -(a + m) * (qab + m) * x / ((a + m2) * (qap + m2))
        d = 1.0 + aa * d
        if abs(d) < _BETA_CF_TINY:
            d = _BETA_CF_TINY
        c = 1.0 + aa / c
        if abs(c) < _BETA_CF_TINY:
            c = _BETA_CF_TINY
        d = 1.0 / d
        delta = d * c
        h *= delta

        if abs(delta - 1.0) < _BETA_CF_EPS:
            break

    return h


def regularized_incomplete_beta(x: float, a: float, b: float) -> float:
    """
    Regularized incomplete beta function I_x(a, b).

    The continued fraction converges quickly for x < (a+1)/(a+b+2); above
    that point the symmetry I_x(a, b) = 1 - I_{1-x}(b, a) is used instead.

    Args:
        x: Upper integration limit in [0, 1]
        a, b: Shape parameters (> 0)

    Returns:
        I_x(a, b); 0 for x <= 0 and 1 for x >= 1
    """
    if math.isnan(x):
        return math.nan
    if x <= 0:
        return 0.0
    if x >= 1:
        return 1.0

    bt = math.exp(
        log_gamma(a + b) - log_gamma(a) - log_gamma(b)
        + a * math.log(x) + b * math.log(1.0 - x)
    )

    if x < (a + 1.0) / (a + b + 2.0):
        return bt * _beta_continued_fraction(x, a, b) / a
    return 1.0 - bt * _beta_continued_fraction(1.0 - x, b, a) / b


def student_t_two_tailed_pvalue(t: float, df: float) -> float:
    """
    Two-tailed p-value of a Student t statistic.

    For df > 100 the normal approximation 2(1 - Phi(|t|)) is used. Otherwise
    the identity P(|T| > |t|) = I_{df/(df+t^2)}(df/2, 1/2) gives the
    two-tailed p-value directly.

    Returns:
        p in [0, 1]; 1 when df <= 0 or either argument is NaN
    """
    if math.isnan(t) or math.isnan(df) or df <= 0:
        return 1.0

    if df > _NORMAL_APPROX_DF:
        p = 2.0 * (1.0 - standard_normal_cdf(abs(t)))
    else:
        p = regularized_incomplete_beta(df / (df + t * t), df / 2.0, 0.5)

    return min(1.0, max(0.0, p))


def welch_t_test(group_a: Sequence[float], group_b: Sequence[float]) -> WelchTestResult:
    """
    Welch's unequal-variance two-sample t-test.

    t = (mean_a - mean_b) / sqrt(var_a/n_a + var_b/n_b), with
    Welch-Satterthwaite degrees of freedom. NaN values are dropped from each
    group independently.

    Degenerate cases:
        - Either group has n < 2: t = 0, df = NaN, p = 1
        - Standard error is 0 (both groups constant): t = 0, df = n_a + n_b - 2,
          p = 1. This hides a deterministic mean difference between two
          constant groups; the behaviour is kept as-is.
    """
    a = _as_clean_array(group_a)
    b = _as_clean_array(group_b)
    n_a, n_b = a.size, b.size

    if n_a < 2 or n_b < 2:
        return WelchTestResult(t=0.0, df=math.nan, p=1.0)

    mean_a, mean_b = float(a.mean()), float(b.mean())
    se_a = float(a.var(ddof=1)) / n_a
    se_b = float(b.var(ddof=1)) / n_b

    se = math.sqrt(se_a + se_b)
    if se == 0:
        return WelchTestResult(t=0.0, df=float(n_a + n_b - 2), p=1.0)

    t = (mean_a - mean_b) / se
    df = (se_a + se_b) ** 2 / (se_a ** 2 / (n_a - 1) + se_b ** 2 / (n_b - 1))
    p = student_t_two_tailed_pvalue(abs(t), df)

    return WelchTestResult(t=t, df=df, p=p)


def _fisher_z(r: float) -> float:
    r = min(max(r, -_MAX_ABS_CORRELATION), _MAX_ABS_CORRELATION)
    return math.atanh(r)


def fisher_z_diff_test(r1: float, n1: int, r2: float, n2: int) -> FisherZResult:
    """
    Fisher z-test for the difference between two independent correlations.

    z = (atanh(r2) - atanh(r1)) / sqrt(1/(n1-3) + 1/(n2-3)), two-tailed p
    from the standard normal. Requires n1, n2 > 3; otherwise, or when either
    correlation is NaN, returns z = 0, p = 1.
    """
    if n1 <= 3 or n2 <= 3 or math.isnan(r1) or math.isnan(r2):
        return FisherZResult(z=0.0, p=1.0)

    se = math.sqrt(1.0 / (n1 - 3) + 1.0 / (n2 - 3))
    z = (_fisher_z(r2) - _fisher_z(r1)) / se
    p = 2.0 * (1.0 - standard_normal_cdf(abs(z)))
    return FisherZResult(z=z, p=min(1.0, max(0.0, p)))


def fisher_z_diff_pvalue(r1: float, n1: int, r2: float, n2: int) -> float:
    """Two-tailed p-value of :func:`fisher_z_diff_test`."""
    return fisher_z_diff_test(r1, n1, r2, n2).p

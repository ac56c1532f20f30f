"""Shared argparse type validators for CLI parameter bounds checking.

These validators produce clear error messages when users pass invalid
values (e.g., ``--cutoff 1.5``, ``--min-n 2``).  They are intended to be
used as the ``type=`` argument in ``add_argument()``.
"""

from __future__ import annotations

import argparse


def _unit_interval(value: str) -> float:
    """argparse type for values in the closed interval [0, 1]."""
    fvalue = float(value)
    if not (0 <= fvalue <= 1):
        raise argparse.ArgumentTypeError(
            f"{value} is not in [0, 1]"
        )
    return fvalue


def _p_threshold(value: str) -> float:
    """argparse type for significance thresholds in (0, 1]."""
    fvalue = float(value)
    if not (0 < fvalue <= 1):
        raise argparse.ArgumentTypeError(
            f"{value} is not a valid p-value threshold (must be in (0, 1])"
        )
    return fvalue


def _non_negative_float(value: str) -> float:
    """argparse type for floats >= 0."""
    fvalue = float(value)
    if fvalue < 0:
        raise argparse.ArgumentTypeError(f"{value} is not a non-negative float")
    return fvalue


def _min_n(value: str) -> int:
    """argparse type for minimum cell-line counts (integer >= 3)."""
    ivalue = int(value)
    if ivalue < 3:
        raise argparse.ArgumentTypeError(f"{value} is too small (minimum cell lines must be >= 3)")
    return ivalue

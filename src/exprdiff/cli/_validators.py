"""Shared argparse type validators for CLI parameter bounds checking.

Used as the ``type=`` argument in ``add_argument()`` so that values such
as ``--alpha 2.0`` or ``--groups career:x`` fail with a clear message.
"""

from __future__ import annotations

import argparse

from exprdiff.io.metadata import parse_group_sizes


def _positive_int(value: str) -> int:
    """argparse type for positive integers (> 0)."""
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive integer")
    return ivalue


def _probability(value: str) -> float:
    """argparse type for values in the open interval (0, 1)."""
    fvalue = float(value)
    if not (0 < fvalue < 1):
        raise argparse.ArgumentTypeError(
            f"{value} is not a valid probability (must be in (0, 1))"
        )
    return fvalue


def _non_negative_float(value: str) -> float:
    """argparse type for floats >= 0."""
    fvalue = float(value)
    if fvalue < 0:
        raise argparse.ArgumentTypeError(f"{value} is not a non-negative number")
    return fvalue


def _group_size(value: str) -> tuple[str, int]:
    """argparse type for LABEL:SIZE group blocks."""
    try:
        ((label, n),) = parse_group_sizes([value])
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))
    if n <= 0:
        raise argparse.ArgumentTypeError(f"size in {value} must be positive")
    return label, n

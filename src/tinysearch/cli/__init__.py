"""Command line entry points."""

from __future__ import annotations

import argparse


def positive_int(value: str) -> int:
    """argparse type accepting integers >= 1."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    return parsed

#!/usr/bin/env python3
"""
Common utility functions for the spatialkit CLI stages.

This module provides shared helper functions used across multiple stages.
"""
from __future__ import annotations

from pathlib import Path
from typing import Union

import pandas as pd


TABLE_FORMATS = ('.csv', '.parquet')


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def load_table(path: Union[str, Path]) -> pd.DataFrame:
    """
    Load a tabular file (CSV or parquet).

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the extension is not supported.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Table not found: {path}")
    ext = path.suffix.lower()
    if ext == '.csv':
        return pd.read_csv(path)
    if ext == '.parquet':
        return pd.read_parquet(path)
    raise ValueError(f"Unsupported table format: {ext}. Supported: {', '.join(TABLE_FORMATS)}")


def save_table(df: pd.DataFrame, path: Union[str, Path]) -> Path:
    """Save a DataFrame as CSV or parquet, chosen by extension."""
    path = Path(path)
    ext = path.suffix.lower()
    if ext not in TABLE_FORMATS:
        raise ValueError(f"Unsupported table format: {ext}. Supported: {', '.join(TABLE_FORMATS)}")
    ensure_dir(path.parent)
    if ext == '.csv':
        df.to_csv(path, index=False)
    else:
        df.to_parquet(path, index=False)
    return path


def format_count(n: int, noun: str) -> str:
    """Format a count with a naively pluralized noun."""
    return f"{n:,} {noun}" if n == 1 else f"{n:,} {noun}s"

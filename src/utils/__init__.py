"""
Utilities package.

Provides shared utilities for the CLI stages:
- helpers: table loading/saving and small formatting helpers
"""
from .helpers import ensure_dir, load_table, save_table, format_count

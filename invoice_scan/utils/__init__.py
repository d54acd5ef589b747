"""
Utility Module for Invoice Scan Core.

This module provides common utilities used across all other modules:
    - Logging configuration
    - Custom exceptions
    - Common helpers
"""

from .logger import setup_logger, get_logger
from .helpers import ensure_directory, utc_now_iso, load_json_file

__all__ = [
    'setup_logger',
    'get_logger',
    'ensure_directory',
    'utc_now_iso',
    'load_json_file',
]

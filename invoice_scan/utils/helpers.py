"""
Helper Utilities Module.

This module provides small utility functions shared across invoice scan
core. Functions here should be generic and reusable across modules.

Functions:
    - ensure_directory: Create directory if it doesn't exist
    - utc_now_iso: ISO-8601 timestamp in UTC
    - validate_file_exists: Check for a regular file
    - load_json_file: Read a JSON document from disk
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Union

from .exceptions import InputError


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists.

    Returns:
        Path object pointing to the directory.

    Example:
        >>> ensure_directory("data")
        PosixPath('data')
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def utc_now_iso() -> str:
    """
    Current time as an ISO-8601 string in UTC with millisecond precision.

    Example:
        >>> utc_now_iso()
        '2026-01-21T14:30:22.123Z'
    """
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def validate_file_exists(filepath: Union[str, Path]) -> bool:
    """
    Check if a file exists and is a regular file.

    Args:
        filepath: Path to check.

    Returns:
        True if file exists and is a regular file.
    """
    path = Path(filepath)
    return path.exists() and path.is_file()


def load_json_file(filepath: Union[str, Path]) -> Any:
    """
    Load a JSON document from disk.

    Args:
        filepath: Path to a UTF-8 JSON file.

    Returns:
        Decoded JSON value.

    Raises:
        InputError: If the file is missing or is not valid JSON.
    """
    if not validate_file_exists(filepath):
        raise InputError(str(filepath), "file not found")

    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise InputError(str(filepath), str(e))

"""Input parsing utilities for CLI commands."""

import json
from pathlib import Path
from typing import Any


def parse_meta(value: str | None) -> dict[str, Any] | None:
    """Parse relation meta given inline as JSON, or as ``@path`` to a JSON file.

    Examples:
        '{"one_field": "articles"}' → {"one_field": "articles"}
        "@meta.json" → contents of meta.json

    Raises:
        ValueError: If the JSON is invalid or not an object
        FileNotFoundError: If an ``@path`` file doesn't exist
    """
    if value is None:
        return None

    if value.startswith("@"):
        file_path = Path(value[1:])
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")
        text = file_path.read_text()
    else:
        text = value

    try:
        meta = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid meta JSON: {e.msg}") from e

    if not isinstance(meta, dict):
        raise ValueError("Meta must be a JSON object")
    return meta

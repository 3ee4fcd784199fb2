from __future__ import annotations

import json
from typing import Any, Dict

from .exceptions import ManifestFormatError
from .utils import b64decode_text

SCHEMA_KEY = "$schema"


def decode_manifest(encoded: str) -> Dict[str, Any]:
    """Decodes the base64 Contents API payload of a cgmanifest.json into a dict."""
    try:
        text = b64decode_text(encoded)
    except (ValueError, UnicodeDecodeError) as e:
        raise ManifestFormatError(f"manifest is not valid base64/UTF-8: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestFormatError(f"manifest is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ManifestFormatError(f"manifest top level is {type(data).__name__}, expected an object")
    return data


def format_manifest(data: Dict[str, Any]) -> str:
    # Top-level keys only; nested registrations keep their authored order.
    ordered = {k: data[k] for k in sorted(data)}
    return json.dumps(ordered, indent=2, ensure_ascii=False) + "\n"


def add_schema(encoded: str, schema_url: str) -> str:
    """
    Returns the new text of a manifest with `$schema` set (or overwritten)
    to `schema_url`, formatted with sorted top-level keys.
    """
    data = decode_manifest(encoded)
    data[SCHEMA_KEY] = schema_url
    return format_manifest(data)

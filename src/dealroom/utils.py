"""
Utility helpers for the Dealroom pipeline.

uuid7() wraps fastuuid.uuid7() to return a stdlib uuid.UUID instance.
fastuuid.UUID is a Rust-backed type that is NOT isinstance-compatible with
uuid.UUID, so we roundtrip through the string representation.

extract_json_object() pulls the first balanced {...} object out of free-form
model output. It is a pure parsing primitive with no knowledge of the client.

format_millions() renders Decimal amounts for prompts and activity text.
"""

import json
from decimal import Decimal
from typing import Any
from uuid import UUID

import fastuuid


def uuid7() -> UUID:
    """Generate a UUIDv7 (time-sortable) as a stdlib uuid.UUID."""
    return UUID(str(fastuuid.uuid7()))


def find_balanced_object(text: str) -> str | None:
    """
    Return the first balanced ``{...}`` substring of ``text``, or None.

    Braces inside JSON string literals (including escaped quotes) do not
    count towards the nesting depth.
    """
    start = text.find('{')
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    # Unbalanced: no later opening brace can close either
    return None


def extract_json_object(text: str | None) -> dict[str, Any] | None:
    """
    Parse the first balanced JSON object embedded in ``text``.

    Returns:
        The decoded dict, or None when no object is present or it does not parse.
    """
    if not text:
        return None
    candidate = find_balanced_object(text)
    if candidate is None:
        return None
    try:
        parsed = json.loads(candidate)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def format_millions(value: Decimal, grouped: bool = False) -> str:
    """
    Render a $M amount as ``$50M`` (or ``$1,200M`` when grouped).

    Trailing zeros are dropped; exponent notation is never produced.
    """
    spec = ',f' if grouped else 'f'
    return f'${format(value.normalize(), spec)}M'

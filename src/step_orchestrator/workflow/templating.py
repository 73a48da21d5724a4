"""`${key}` placeholder substitution for step parameters."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def placeholder(key: str) -> str:
    return "${" + key + "}"


def resolve_value(value: str, context: Mapping[str, Any]) -> str:
    """Substitute every ``${k}`` in ``value`` for each key ``k`` in ``context``.

    ``None`` context values become the empty string. Placeholders naming keys
    that are absent from the context are left as-is.
    """

    resolved = value
    for key, ctx_value in context.items():
        token = placeholder(key)
        if token in resolved:
            resolved = resolved.replace(token, "" if ctx_value is None else str(ctx_value))
    return resolved


def resolve_parameters(
    parameters: Mapping[str, Any], context: Mapping[str, Any]
) -> dict[str, Any]:
    """Resolve a step's declared parameters against a context snapshot.

    Only top-level string values are templated. Numbers, lists and nested
    mappings pass through untouched (no recursive substitution).
    """

    resolved: dict[str, Any] = {}
    for name, value in parameters.items():
        resolved[name] = resolve_value(value, context) if isinstance(value, str) else value
    return resolved

"""Canonical schema for the persisted unified-finding artifact."""

from __future__ import annotations

from typing import Any

from jsonschema import validate as jsonschema_validate

from .models import SEVERITIES, TOOL_ORDER

FINDINGS_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "array",
    "items": {
        "type": "object",
        "required": ["path", "line", "tool", "severity", "ruleId", "message"],
        "properties": {
            "path": {"type": "string", "minLength": 1, "pattern": "^(?!\\./)(?!/)"},
            "line": {"type": ["integer", "null"], "minimum": 1},
            "tool": {"type": "string", "enum": list(TOOL_ORDER)},
            "severity": {"type": "string", "enum": list(SEVERITIES)},
            "ruleId": {"type": ["string", "null"]},
            "message": {"type": "string"},
        },
    },
}


def validate_findings(payload: Any) -> None:
    """Validate a unified-finding payload.

    Raises:
        jsonschema.ValidationError: If the payload does not match the schema.
    """
    jsonschema_validate(payload, FINDINGS_SCHEMA)

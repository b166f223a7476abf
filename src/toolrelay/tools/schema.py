"""Argument normalization and tool schema cleaning.

Pure functions over JSON values and JSON-Schema-like dicts. Nothing here
suspends or keeps state.

Model callers sometimes double-encode structured arguments, sending
``'{"path": "a"}'`` where an object was expected. Blindly reparsing every
JSON-looking string would corrupt tools that really take JSON text as a
string (a file writer, for instance), so parsing is driven by the schema:

- schema type ``string``: never parse
- schema type ``object`` / ``array``: parse and recurse
- field listed in ``STRINGIFIED_FIELDS``: parse (known provider bug)
- anything else: leave the value alone
"""

from __future__ import annotations

import copy
import json
import logging
import re
from typing import Any

_log = logging.getLogger("toolrelay.tools.schema")

# Fields some providers stringify even though they are always objects
# (OpenAI function calling, call_tool's "arguments")
STRINGIFIED_FIELDS = frozenset({"arguments"})

PERMISSIVE_OBJECT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}

_REF_PATTERN = re.compile(r"^#/(\$defs|definitions)/(.+)$")

# Keys a restricted provider rejects wherever they appear
_UNSUPPORTED_KEYS = frozenset({"oneOf", "anyOf", "allOf", "const", "required"})


def _schema_type(schema: Any) -> Any:
    return schema.get("type") if isinstance(schema, dict) else None


def _looks_like_json(text: str) -> bool:
    stripped = text.strip()
    return stripped.startswith("{") or stripped.startswith("[")


def normalize_arguments(
    value: Any,
    schema: dict[str, Any] | None = None,
    field_name: str | None = None,
) -> Any:
    """Recursively undo stringified JSON in tool arguments.

    Args:
        value: Argument value as received from the model
        schema: JSON Schema for ``value`` (optional)
        field_name: Name of the field ``value`` belongs to

    Returns:
        The normalized value. Inputs are never mutated.
    """
    if value is None:
        return None

    if isinstance(value, str):
        if not _looks_like_json(value):
            return value

        schema_type = _schema_type(schema)
        if schema_type == "string":
            return value

        if schema_type in ("object", "array"):
            try:
                parsed = json.loads(value)
            except ValueError:
                return value
            return normalize_arguments(parsed, schema, field_name)

        if field_name in STRINGIFIED_FIELDS:
            try:
                parsed = json.loads(value)
            except ValueError:
                # Leave it for schema validation to reject
                _log.warning("Failed to parse stringified %r field", field_name)
                return value
            _log.info(
                "Parsed stringified %r field (had schema: %s, parsed type: %s)",
                field_name,
                schema is not None,
                type(parsed).__name__,
            )
            return normalize_arguments(parsed, schema, field_name)

        return value

    if isinstance(value, list):
        item_schema = schema.get("items") if isinstance(schema, dict) else None
        if not isinstance(item_schema, dict):
            item_schema = None
        return [normalize_arguments(item, item_schema, field_name) for item in value]

    if isinstance(value, dict):
        properties = schema.get("properties") if isinstance(schema, dict) else None
        if not isinstance(properties, dict):
            properties = {}
        return {
            key: normalize_arguments(item, properties.get(key), key)
            for key, item in value.items()
        }

    return value


def resolve_schema_refs(
    schema: Any,
    defs: dict[str, dict[str, Any]] | None = None,
    _resolving: tuple[str, ...] = (),
) -> Any:
    """Inline ``#/$defs/...`` and ``#/definitions/...`` references.

    Sibling keys on a ``$ref`` node (a description, say) are layered over
    the inlined definition. References that cannot be resolved, or that
    would recurse into themselves, become ``{}`` which accepts anything.

    Args:
        schema: Schema (or fragment) to process
        defs: Definition maps keyed by section (``"$defs"``,
            ``"definitions"``); taken from the root schema when omitted

    Returns:
        A new schema with references inlined.
    """
    if isinstance(schema, list):
        return [resolve_schema_refs(item, defs, _resolving) for item in schema]
    if not isinstance(schema, dict):
        return schema

    if defs is None:
        defs = {
            section: schema[section]
            for section in ("$defs", "definitions")
            if isinstance(schema.get(section), dict)
        }

    ref = schema.get("$ref")
    if isinstance(ref, str):
        match = _REF_PATTERN.match(ref)
        section = defs.get(match.group(1), {}) if match else {}
        if match and match.group(2) in section and ref not in _resolving:
            resolved = resolve_schema_refs(section[match.group(2)], defs, _resolving + (ref,))
            siblings = {k: v for k, v in schema.items() if k != "$ref"}
            if isinstance(resolved, dict):
                return {**resolved, **resolve_schema_refs(siblings, defs, _resolving)}
            return resolved

        _log.warning(
            "Unresolved $ref %r in tool schema, using permissive schema (available defs: %s)",
            ref,
            sorted(f"#/{name}/{key}" for name, entries in defs.items() for key in entries),
        )
        return {}

    result: dict[str, Any] = {}
    for key, item in schema.items():
        if key in ("$defs", "definitions"):
            result[key] = item
        else:
            result[key] = resolve_schema_refs(item, defs, _resolving)
    return result


def restrict_schema(schema: Any) -> Any:
    """Strip constructs that schema-restricted providers reject.

    Removes ``oneOf``/``anyOf``/``allOf``/``const``/``required``, drops
    ``enum`` unless the node is string-typed, and gives every object node a
    ``properties`` map.
    """
    if isinstance(schema, list):
        return [restrict_schema(item) for item in schema]
    if not isinstance(schema, dict):
        return schema

    result: dict[str, Any] = {}
    for key, item in schema.items():
        if key in _UNSUPPORTED_KEYS:
            continue
        if key == "enum" and schema.get("type") != "string":
            continue
        if key == "properties" and isinstance(item, dict):
            # Property names are user data, only their schemas get cleaned
            result[key] = {name: restrict_schema(sub) for name, sub in item.items()}
            continue
        result[key] = restrict_schema(item)

    if result.get("type") == "object" and not isinstance(result.get("properties"), dict):
        result["properties"] = {}

    return result


def clean_tool_schema(
    schema: dict[str, Any] | None,
    restricted: bool = False,
) -> dict[str, Any]:
    """Prepare a tool input schema for the model-facing layer.

    Steps: deep copy, drop ``$schema``, inline references, drop the
    definitions maps, then apply ``restrict_schema`` when ``restricted``.

    Args:
        schema: Raw input schema from the tool server
        restricted: Target provider is schema-restricted

    Returns:
        Cleaned schema. ``None`` yields an empty object schema.
    """
    if schema is None:
        return copy.deepcopy(PERMISSIVE_OBJECT_SCHEMA)

    cleaned = copy.deepcopy(schema)
    cleaned.pop("$schema", None)

    resolved = resolve_schema_refs(cleaned)
    if not isinstance(resolved, dict):
        return copy.deepcopy(PERMISSIVE_OBJECT_SCHEMA)
    resolved.pop("$defs", None)
    resolved.pop("definitions", None)

    return restrict_schema(resolved) if restricted else resolved

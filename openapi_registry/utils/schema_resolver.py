"""
Schema reference utilities for generated documents.
Handles definition containers, $ref construction and resolution per dialect.
"""
import logging
from typing import Any, Dict, Iterator, Optional

from openapi_registry.services.settings import SchemaType

logger = logging.getLogger(__name__)

_NULL_SCHEMA = {"type": "null"}


def reference_prefix(schema_type: SchemaType) -> str:
    """Local $ref prefix under which definitions live for a dialect."""
    if schema_type is SchemaType.SWAGGER2:
        return "#/definitions/"
    return "#/components/schemas/"


def definitions_container(document: Dict[str, Any], schema_type: SchemaType) -> Dict[str, Any]:
    """
    Return the mutable mapping holding named schemas, creating it if needed.

    Swagger 2 keeps them under ``definitions``, OpenAPI 3 under
    ``components.schemas``.
    """
    if schema_type is SchemaType.SWAGGER2:
        return document.setdefault("definitions", {})
    return document.setdefault("components", {}).setdefault("schemas", {})


def nullable_keyword(schema_type: SchemaType) -> str:
    return "x-nullable" if schema_type is SchemaType.SWAGGER2 else "nullable"


def apply_nullable(schema: Any, schema_type: SchemaType) -> Any:
    """
    Rewrite JSON Schema ``anyOf [X, null]`` unions into the dialect's nullable form.

    Neither Swagger 2 nor OpenAPI 3.0 know the ``null`` type, so ``Optional[X]``
    becomes ``X`` flagged with ``x-nullable`` / ``nullable``.
    """
    if isinstance(schema, list):
        return [apply_nullable(item, schema_type) for item in schema]
    if not isinstance(schema, dict):
        return schema

    any_of = schema.get("anyOf")
    if isinstance(any_of, list) and _NULL_SCHEMA in any_of:
        non_null = [item for item in any_of if item != _NULL_SCHEMA]
        rest = {key: value for key, value in schema.items() if key != "anyOf"}
        if len(non_null) == 1:
            inner = non_null[0]
            if isinstance(inner, dict) and "$ref" in inner:
                # Siblings of $ref are ignored, wrap it instead
                schema = {**rest, "allOf": [inner]}
            else:
                schema = {**inner, **rest}
        else:
            schema = {**rest, "anyOf": non_null}
        schema[nullable_keyword(schema_type)] = True

    return {key: apply_nullable(value, schema_type) for key, value in schema.items()}


def iter_references(node: Any) -> Iterator[str]:
    """Yield every $ref string found anywhere in a document fragment."""
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str):
            yield ref
        for value in node.values():
            yield from iter_references(value)
    elif isinstance(node, list):
        for item in node:
            yield from iter_references(item)


def resolve_reference(ref: str, document: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Resolve a local reference (#/definitions/User, #/components/schemas/User).

    Args:
        ref: Reference string.
        document: Document the reference points into.

    Returns:
        The referenced schema, or None when it cannot be resolved.
    """
    if not ref.startswith("#/"):
        logger.warning(f"External reference '{ref}' is not supported. Only local references are supported.")
        return None

    resolved: Any = document
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        if not isinstance(resolved, dict):
            logger.warning(f"Failed to resolve $ref '{ref}': expected object at '{part}'")
            return None
        resolved = resolved.get(part)
        if resolved is None:
            logger.warning(f"Failed to resolve $ref '{ref}': missing key '{part}'")
            return None

    if not isinstance(resolved, dict):
        logger.warning(f"Failed to resolve $ref '{ref}': resolved value is not an object")
        return None
    return resolved

"""
Utility functions for filename generation.
"""
from openapi_registry.services.settings import SchemaType


def build_output_filename(document_name: str, schema_type: SchemaType) -> str:
    """
    Build a safe JSON filename for an exported document.

    Args:
        document_name: Registered document name.
        schema_type: Dialect of the document.

    Returns:
        Filename such as ``v1_openapi3.json``.
    """
    safe_stem = "".join(ch for ch in document_name if ch.isalnum() or ch in ("-", "_", ".")).lstrip(".") or "document"
    return f"{safe_stem}_{schema_type.value.lower()}.json"

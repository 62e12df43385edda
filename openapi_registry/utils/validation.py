"""
Structural validation of generated Swagger 2 / OpenAPI 3 documents.
"""
import logging
from typing import Any, Dict

from openapi_registry.config import OPENAPI3_VERSION, SWAGGER2_VERSION
from openapi_registry.services.settings import SchemaType
from openapi_registry.utils.schema_resolver import iter_references, resolve_reference

logger = logging.getLogger(__name__)


def validate_document(document: Dict[str, Any], schema_type: SchemaType) -> None:
    """
    Validate the structure of a fully processed document.

    Args:
        document: Generated document.
        schema_type: Dialect the document was generated for.

    Raises:
        ValueError: If the document is invalid.
    """
    if not isinstance(document, dict):
        raise ValueError(f"Generated document must be an object, got {type(document).__name__}")

    if schema_type is SchemaType.SWAGGER2:
        if document.get("swagger") != SWAGGER2_VERSION:
            raise ValueError(
                f"Invalid Swagger document: 'swagger' field must be '{SWAGGER2_VERSION}', "
                f"got {document.get('swagger')!r}"
            )
        if "openapi" in document:
            raise ValueError("Invalid Swagger document: unexpected 'openapi' field in a Swagger 2.0 document")
    else:
        version = document.get("openapi")
        if not isinstance(version, str) or not version.startswith("3."):
            raise ValueError(
                f"Invalid OpenAPI document: 'openapi' field must be a 3.x version (e.g. '{OPENAPI3_VERSION}'), "
                f"got {version!r}"
            )
        if "swagger" in document:
            raise ValueError("Invalid OpenAPI document: unexpected 'swagger' field in an OpenAPI 3 document")

    if "info" not in document:
        raise ValueError("Invalid document: missing required 'info' field")

    paths = document.get("paths")
    if not isinstance(paths, dict):
        raise ValueError("Invalid document: 'paths' must be an object")

    for path in paths.keys():
        if not path.startswith("/"):
            logger.warning(f"Path '{path}' does not start with '/'")

    for ref in iter_references(document):
        if resolve_reference(ref, document) is None:
            raise ValueError(f"Invalid document: unresolvable reference '{ref}'")

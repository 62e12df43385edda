"""
Ready-made processors for metadata most services add to their documents:
servers, security schemes and tag descriptions.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

from openapi_registry.services.processors import (
    DocumentProcessor,
    DocumentProcessorContext,
    OperationProcessor,
    OperationProcessorContext,
)
from openapi_registry.services.settings import SchemaType

logger = logging.getLogger(__name__)


class ServersDocumentProcessor(DocumentProcessor):
    """
    Advertise the base URLs the API is served from.

    OpenAPI 3 gets a ``servers`` list. Swagger 2 only supports one host, so
    ``host``, ``basePath`` and ``schemes`` are derived from the first URL.
    """

    def __init__(self, urls: Sequence[str], descriptions: Optional[Dict[str, str]] = None):
        if not urls:
            raise ValueError("At least one server URL is required")
        self.urls = list(urls)
        self.descriptions = descriptions or {}

    def apply(self, context: DocumentProcessorContext) -> None:
        document = context.document
        if context.settings.schema_type is SchemaType.OPENAPI3:
            servers: List[Dict[str, str]] = []
            for url in self.urls:
                server = {"url": url}
                if url in self.descriptions:
                    server["description"] = self.descriptions[url]
                servers.append(server)
            document["servers"] = servers
            return

        parsed = urlparse(self.urls[0])
        if parsed.netloc:
            document["host"] = parsed.netloc
        document["basePath"] = parsed.path or "/"
        schemes = []
        for url in self.urls:
            scheme = urlparse(url).scheme
            if scheme and scheme not in schemes:
                schemes.append(scheme)
        if schemes:
            document["schemes"] = schemes


class SecuritySchemeDocumentProcessor(DocumentProcessor):
    """Declare a security scheme and, optionally, require it for every operation."""

    def __init__(self, name: str, scheme: Dict[str, Any], required: bool = True):
        self.scheme_name = name
        self.scheme = scheme
        self.required = required

    def apply(self, context: DocumentProcessorContext) -> None:
        document = context.document
        if context.settings.schema_type is SchemaType.SWAGGER2:
            document.setdefault("securityDefinitions", {})[self.scheme_name] = dict(self.scheme)
        else:
            components = document.setdefault("components", {})
            components.setdefault("securitySchemes", {})[self.scheme_name] = dict(self.scheme)

        if self.required:
            security = document.setdefault("security", [])
            if {self.scheme_name: []} not in security:
                security.append({self.scheme_name: []})


class TagsDocumentProcessor(DocumentProcessor):
    """Build the document-level tag list in order of first use."""

    def __init__(self, descriptions: Optional[Dict[str, str]] = None):
        self.descriptions = descriptions or {}

    def apply(self, context: DocumentProcessorContext) -> None:
        document = context.document
        tags: List[Dict[str, str]] = []
        seen = set()
        for path_item in document.get("paths", {}).values():
            for operation in path_item.values():
                if not isinstance(operation, dict):
                    continue
                for tag in operation.get("tags", []):
                    if tag in seen:
                        continue
                    seen.add(tag)
                    entry = {"name": tag}
                    if tag in self.descriptions:
                        entry["description"] = self.descriptions[tag]
                    tags.append(entry)
        if tags:
            document["tags"] = tags


class DefaultTagOperationProcessor(OperationProcessor):
    """Assign a fallback tag to operations declared without one."""

    def __init__(self, tag: str = "API"):
        self.tag = tag

    def apply(self, context: OperationProcessorContext) -> None:
        if not context.operation.get("tags"):
            context.operation["tags"] = [self.tag]

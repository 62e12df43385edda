"""
Registration entry points used while the host service starts up.
"""
import logging
import warnings
from typing import Any, Dict, List, Optional

from openapi_registry.config import DEFAULT_DOCUMENT_NAME, RETRY_FAILED_GENERATION
from openapi_registry.services.exceptions import DocumentConfigurationError, DocumentGenerationError
from openapi_registry.services.generator import DocumentGenerator
from openapi_registry.services.registry import (
    DocumentCatalog,
    DocumentProvider,
    DocumentRegistration,
    DocumentRegistry,
    EndpointSource,
)
from openapi_registry.services.settings import ConfigureCallback, SchemaType, build_settings

logger = logging.getLogger(__name__)

_MISSING = object()


class DocumentServices:
    """
    Process-wide collection of document registrations, global processors and
    services that configure callbacks may resolve.

    Global processors are handed to every generator explicitly; they apply
    to documents no matter whether they were added before or after the
    document was declared, as long as that happens before the first build.
    """

    def __init__(
        self,
        endpoint_source: EndpointSource,
        retry_on_failure: Optional[bool] = None,
    ):
        self.endpoint_source = endpoint_source
        self.retry_on_failure = RETRY_FAILED_GENERATION if retry_on_failure is None else retry_on_failure
        self.registry = DocumentRegistry()
        self._document_processors: List[Any] = []
        self._operation_processors: List[Any] = []
        self._services: Dict[Any, Any] = {}
        self.document_provider = DocumentProvider(self.registry, default_document_name=DEFAULT_DOCUMENT_NAME)
        self.document_catalog = DocumentCatalog(self.registry)

    # Global processors

    def add_document_processor(self, processor: Any) -> "DocumentServices":
        if not callable(getattr(processor, "apply", None)):
            raise DocumentConfigurationError(f"Global document processor {processor!r} does not implement apply(context)")
        self._document_processors.append(processor)
        return self

    def add_operation_processor(self, processor: Any) -> "DocumentServices":
        if not callable(getattr(processor, "apply", None)):
            raise DocumentConfigurationError(f"Global operation processor {processor!r} does not implement apply(context)")
        self._operation_processors.append(processor)
        return self

    # Service resolution for configure callbacks

    def add_service(self, key: Any, service: Any) -> "DocumentServices":
        self._services[key] = service
        return self

    def get_service(self, key: Any, default: Any = None) -> Any:
        return self._services.get(key, default)

    def get_required_service(self, key: Any) -> Any:
        service = self._services.get(key, _MISSING)
        if service is _MISSING:
            raise LookupError(f"No service registered for {key!r}")
        return service

    # Document declarations

    def add_openapi_document(self, configure: Optional[ConfigureCallback] = None) -> "DocumentServices":
        """Declare a document generated as OpenAPI 3 unless the callback changes the dialect."""
        return self._add_document(SchemaType.OPENAPI3, configure)

    def add_swagger_document(self, configure: Optional[ConfigureCallback] = None) -> "DocumentServices":
        """Declare a document generated as Swagger 2 unless the callback changes the dialect."""
        return self._add_document(SchemaType.SWAGGER2, configure)

    def add_swagger(self, configure: Optional[ConfigureCallback] = None) -> "DocumentServices":
        """Deprecated alias of add_swagger_document()."""
        warnings.warn(
            "add_swagger() is deprecated, use add_swagger_document() instead.",
            DeprecationWarning,
            stacklevel=2,
        )
        return self.add_swagger_document(configure)

    def _add_document(self, schema_type: SchemaType, configure: Optional[ConfigureCallback]) -> "DocumentServices":
        settings = build_settings(schema_type, configure, services=self)
        generator = DocumentGenerator(
            global_document_processors=self._document_processors,
            global_operation_processors=self._operation_processors,
        )
        self.registry.add(
            DocumentRegistration(
                settings,
                generator,
                self.endpoint_source,
                retry_on_failure=self.retry_on_failure,
            )
        )
        return self

    def warm_up(self) -> Dict[str, DocumentGenerationError]:
        """
        Build every registered document now.

        Returns:
            Mapping of document name to the generation error for documents
            that failed; successful documents are cached as usual.
        """
        failures: Dict[str, DocumentGenerationError] = {}
        for name in self.registry.names():
            try:
                self.registry.get(name).get_document()
            except DocumentGenerationError as exc:
                logger.error(f"Warm-up of document '{name}' failed: {exc}", exc_info=True)
                failures[name] = exc
        return failures

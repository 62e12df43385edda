"""
Document registrations, the registry that owns them, and the two read-only
views consumers use to reach generated documents.
"""
import json
import logging
import threading
from enum import Enum
from typing import IO, Any, Callable, Dict, Iterable, List, Optional

from openapi_registry.services.exceptions import (
    DocumentGenerationError,
    DocumentNotFoundError,
    DuplicateDocumentError,
)
from openapi_registry.services.settings import DocumentSettings, SchemaType

logger = logging.getLogger(__name__)

EndpointSource = Callable[[], Iterable[Any]]


class BuildState(str, Enum):
    UNBUILT = "unbuilt"
    BUILDING = "building"
    BUILT = "built"
    FAILED = "failed"


class DocumentRegistration:
    """
    Binds a document name to its generator and a lazily populated cache slot.

    The document is generated at most once: concurrent first callers wait for
    the in-flight build and all receive the same object. A failed build is
    cached and re-raised to every caller unless ``retry_on_failure`` is set,
    in which case the next call tries again.
    """

    def __init__(
        self,
        settings: DocumentSettings,
        generator: Any,
        endpoint_source: EndpointSource,
        retry_on_failure: bool = False,
    ):
        self.settings = settings
        self.generator = generator
        self.endpoint_source = endpoint_source
        self.retry_on_failure = retry_on_failure
        self._lock = threading.Lock()
        self._state = BuildState.UNBUILT
        self._document: Optional[Dict[str, Any]] = None
        self._error: Optional[DocumentGenerationError] = None

    @property
    def document_name(self) -> str:
        return self.settings.document_name

    @property
    def schema_type(self) -> SchemaType:
        return self.settings.schema_type

    @property
    def state(self) -> BuildState:
        return self._state

    def get_document(self) -> Dict[str, Any]:
        """
        Return the generated document, building it on first access.

        Raises:
            DocumentGenerationError: If generation failed (now or earlier).
        """
        if self._state is BuildState.BUILT:
            return self._document

        with self._lock:
            if self._state is BuildState.BUILT:
                return self._document
            if self._state is BuildState.FAILED:
                if not self.retry_on_failure:
                    raise DocumentGenerationError(
                        str(self._error),
                        document_name=self.document_name,
                        processor=self._error.processor,
                    ) from self._error
                logger.warning(f"Retrying generation of document '{self.document_name}' after earlier failure")

            self._state = BuildState.BUILDING
            try:
                document = self.generator.generate(self.settings, self.endpoint_source())
            except DocumentGenerationError as exc:
                self._fail(exc)
                raise
            except Exception as exc:
                error = DocumentGenerationError(
                    f"Document '{self.document_name}': generation failed: {exc}",
                    document_name=self.document_name,
                )
                self._fail(error)
                raise error from exc

            self._document = document
            self._error = None
            self._state = BuildState.BUILT
            logger.info(
                f"Generated document '{self.document_name}' ({self.schema_type.value}) "
                f"with {len(document.get('paths', {}))} paths"
            )
            return document

    def _fail(self, error: DocumentGenerationError) -> None:
        self._error = error
        self._state = BuildState.FAILED
        logger.warning(f"Generation of document '{self.document_name}' failed: {error}")


class DocumentRegistry:
    """Process-wide mapping from document name to registration."""

    def __init__(self):
        self._registrations: Dict[str, DocumentRegistration] = {}

    def add(self, registration: DocumentRegistration) -> None:
        name = registration.document_name
        if name in self._registrations:
            raise DuplicateDocumentError(name)
        self._registrations[name] = registration
        logger.info(f"Registered document '{name}' ({registration.schema_type.value})")

    def get(self, document_name: str) -> DocumentRegistration:
        try:
            return self._registrations[document_name]
        except KeyError:
            raise DocumentNotFoundError(document_name) from None

    def names(self) -> List[str]:
        return list(self._registrations)

    def __contains__(self, document_name: object) -> bool:
        return document_name in self._registrations

    def __len__(self) -> int:
        return len(self._registrations)


class DocumentProvider:
    """Read-only view returning generated documents by name."""

    def __init__(self, registry: DocumentRegistry, default_document_name: Optional[str] = None):
        self._registry = registry
        self._default_document_name = default_document_name

    def get_document(self, document_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Return a generated document.

        Without a name, the only registered document is returned, falling
        back to the default document name when several are registered.
        """
        if document_name is None:
            names = self._registry.names()
            if len(names) == 1:
                document_name = names[0]
            elif self._default_document_name is not None:
                document_name = self._default_document_name
            else:
                raise DocumentNotFoundError("<default>")
        return self._registry.get(document_name).get_document()

    def get_documents(self) -> Dict[str, Dict[str, Any]]:
        return {name: self._registry.get(name).get_document() for name in self._registry.names()}


class DocumentCatalog:
    """Read-only view for tooling that enumerates and exports documents."""

    def __init__(self, registry: DocumentRegistry):
        self._registry = registry

    def list_document_names(self) -> List[str]:
        return self._registry.names()

    def schema_type(self, document_name: str) -> SchemaType:
        return self._registry.get(document_name).schema_type

    def write_document(self, document_name: str, stream: IO[str], indent: Optional[int] = 2) -> None:
        """Serialise a document as JSON into a text stream."""
        document = self._registry.get(document_name).get_document()
        json.dump(document, stream, indent=indent, ensure_ascii=False)

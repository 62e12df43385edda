"""
Document settings: the configuration value object for one generated document.
"""
import inspect
import logging
from dataclasses import FrozenInstanceError, dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence

from openapi_registry.config import (
    DEFAULT_DOCUMENT_NAME,
    DEFAULT_DOCUMENT_TITLE,
    DEFAULT_DOCUMENT_VERSION,
)
from openapi_registry.services.exceptions import DocumentConfigurationError

logger = logging.getLogger(__name__)


class SchemaType(str, Enum):
    """Output dialect of a generated document."""

    SWAGGER2 = "Swagger2"
    OPENAPI3 = "OpenApi3"


@dataclass
class DocumentSettings:
    """
    Settings controlling how one document is generated.

    Instances handed to configure callbacks are mutable. Registrations keep
    the result of ``freeze()``, which rejects further changes.
    """

    document_name: str = DEFAULT_DOCUMENT_NAME
    schema_type: SchemaType = SchemaType.SWAGGER2
    title: str = DEFAULT_DOCUMENT_TITLE
    version: str = DEFAULT_DOCUMENT_VERSION
    description: str = ""
    document_processors: Sequence[Any] = field(default_factory=list)
    operation_processors: Sequence[Any] = field(default_factory=list)
    post_process: Optional[Callable[[Dict[str, Any]], None]] = None
    schema_generator: Optional[Any] = None
    include_tags: Optional[Sequence[str]] = None

    _frozen = False

    def __setattr__(self, name: str, value: Any) -> None:
        if self._frozen:
            raise FrozenInstanceError(f"Settings of document '{self.document_name}' are frozen")
        super().__setattr__(name, value)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "DocumentSettings":
        """Return a read-only copy whose processor lists can no longer grow."""
        frozen = replace(
            self,
            document_processors=tuple(self.document_processors),
            operation_processors=tuple(self.operation_processors),
            include_tags=tuple(self.include_tags) if self.include_tags is not None else None,
        )
        object.__setattr__(frozen, "_frozen", True)
        return frozen


ConfigureCallback = Callable[..., None]


def _invoke_configure(configure: ConfigureCallback, settings: DocumentSettings, services: Any) -> None:
    # Callbacks may take (settings) or (settings, services)
    try:
        parameters = list(inspect.signature(configure).parameters.values())
    except (TypeError, ValueError):
        configure(settings, services)
        return

    if any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in parameters):
        configure(settings, services)
        return

    positional = [
        p for p in parameters
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    if len(positional) >= 2:
        configure(settings, services)
    else:
        configure(settings)


def validate_settings(settings: DocumentSettings) -> None:
    """
    Reject settings that cannot produce a document.

    Raises:
        DocumentConfigurationError: naming the offending document.
    """
    name = settings.document_name
    if not isinstance(name, str) or not name.strip():
        raise DocumentConfigurationError(f"Document name must be a non-empty string, got {name!r}")

    if not isinstance(settings.schema_type, SchemaType):
        raise DocumentConfigurationError(
            f"Document '{name}': unsupported schema type {settings.schema_type!r}. "
            f"Expected one of: {', '.join(t.value for t in SchemaType)}",
            document_name=name,
        )

    for kind, processors in (
        ("document", settings.document_processors),
        ("operation", settings.operation_processors),
    ):
        for processor in processors:
            if not callable(getattr(processor, "apply", None)):
                raise DocumentConfigurationError(
                    f"Document '{name}': {kind} processor {processor!r} does not implement apply(context)",
                    document_name=name,
                )

    if settings.post_process is not None and not callable(settings.post_process):
        raise DocumentConfigurationError(
            f"Document '{name}': post_process must be callable", document_name=name
        )

    if settings.schema_generator is not None and not callable(getattr(settings.schema_generator, "generate", None)):
        raise DocumentConfigurationError(
            f"Document '{name}': schema generator {settings.schema_generator!r} does not implement generate()",
            document_name=name,
        )

    if settings.include_tags is not None and isinstance(settings.include_tags, str):
        raise DocumentConfigurationError(
            f"Document '{name}': include_tags must be a list of tag names, not a string",
            document_name=name,
        )


def build_settings(
    schema_type: SchemaType,
    configure: Optional[ConfigureCallback] = None,
    services: Any = None,
) -> DocumentSettings:
    """
    Build frozen settings for one document declaration.

    Args:
        schema_type: Dialect default for this entry point.
        configure: Optional callback invoked exactly once with the mutable
            settings (and the service resolver when it accepts two arguments).
        services: Read-only service resolver passed to two-argument callbacks.

    Returns:
        Validated, frozen DocumentSettings.
    """
    settings = DocumentSettings(schema_type=schema_type)
    if configure is not None:
        _invoke_configure(configure, settings, services)

    validate_settings(settings)
    logger.debug(f"Built settings for document '{settings.document_name}' ({settings.schema_type.value})")
    return settings.freeze()

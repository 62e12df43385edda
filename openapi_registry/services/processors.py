"""
Document and operation processors and the composition of processor chains.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from openapi_registry.services.settings import DocumentSettings

logger = logging.getLogger(__name__)


@dataclass
class DocumentProcessorContext:
    """In-progress document handed to each document processor."""

    document: Dict[str, Any]
    settings: DocumentSettings
    endpoints: Sequence[Any]
    schema_generator: Any


@dataclass
class OperationProcessorContext:
    """In-progress operation together with the document that will own it."""

    document: Dict[str, Any]
    operation: Dict[str, Any]
    endpoint: Any
    path: str
    method: str
    settings: DocumentSettings
    schema_generator: Any


class DocumentProcessor(ABC):
    """Mutates the whole document in place."""

    @abstractmethod
    def apply(self, context: DocumentProcessorContext) -> None:
        raise NotImplementedError


class OperationProcessor(ABC):
    """Mutates a single operation in place. Returning False drops the operation."""

    @abstractmethod
    def apply(self, context: OperationProcessorContext) -> Optional[bool]:
        raise NotImplementedError


class ActionDocumentProcessor(DocumentProcessor):
    """Adapts a plain callable taking the context into a document processor."""

    def __init__(self, action: Callable[[DocumentProcessorContext], None], name: Optional[str] = None):
        self.action = action
        self.name = name or getattr(action, "__name__", "action")

    def apply(self, context: DocumentProcessorContext) -> None:
        self.action(context)

    def __repr__(self) -> str:
        return f"ActionDocumentProcessor({self.name})"


class ActionOperationProcessor(OperationProcessor):
    """Adapts a plain callable taking the context into an operation processor."""

    def __init__(self, action: Callable[[OperationProcessorContext], Optional[bool]], name: Optional[str] = None):
        self.action = action
        self.name = name or getattr(action, "__name__", "action")

    def apply(self, context: OperationProcessorContext) -> Optional[bool]:
        return self.action(context)

    def __repr__(self) -> str:
        return f"ActionOperationProcessor({self.name})"


def compose_document_processors(
    settings: DocumentSettings,
    global_processors: Optional[Iterable[Any]] = None,
) -> List[Any]:
    """
    Build the document processor chain for one document.

    Order: processors declared on the settings, then the post_process
    callback (if any), then globally registered processors.
    """
    chain: List[Any] = list(settings.document_processors)

    post_process = settings.post_process
    if post_process is not None:
        chain.append(ActionDocumentProcessor(lambda context: post_process(context.document), name="post_process"))

    chain.extend(global_processors or ())
    return chain


def compose_operation_processors(
    settings: DocumentSettings,
    global_processors: Optional[Iterable[Any]] = None,
) -> List[Any]:
    """Build the operation processor chain: local processors, then global ones."""
    chain: List[Any] = list(settings.operation_processors)
    chain.extend(global_processors or ())
    return chain


def describe_processor(processor: Any) -> str:
    """Human-readable processor name for log lines and error messages."""
    name = getattr(processor, "name", None)
    if isinstance(name, str):
        return name
    return type(processor).__name__

"""
Document registry exceptions.

Configuration errors are raised while documents are being registered and must
halt startup. Generation errors are scoped to a single document and surface to
whoever requested it. Lookup failures for unknown names are kept distinct from
both.
"""
from typing import Optional


class DocumentError(Exception):
    """Base exception for all document registry errors."""

    def __init__(self, message: str, document_name: Optional[str] = None):
        self.document_name = document_name
        super().__init__(message)


class DocumentConfigurationError(DocumentError):
    """
    Raised when a document declaration is invalid.

    This includes empty names, unknown dialects and processors that do not
    implement ``apply``.
    """
    pass


class DuplicateDocumentError(DocumentConfigurationError):
    """Raised when a second document is registered under an existing name."""

    def __init__(self, document_name: str):
        super().__init__(
            f"A document named '{document_name}' is already registered. "
            "Document names must be unique.",
            document_name=document_name,
        )


class DocumentGenerationError(DocumentError):
    """
    Raised when building a specific document fails.

    The underlying exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, document_name: Optional[str] = None, processor: Optional[str] = None):
        self.processor = processor
        super().__init__(message, document_name=document_name)


class DocumentNotFoundError(DocumentError, KeyError):
    """Raised when a consumer asks for a document name that was never registered."""

    def __init__(self, document_name: str):
        super().__init__(f"Unknown document '{document_name}'", document_name=document_name)

    def __str__(self) -> str:
        return self.args[0]

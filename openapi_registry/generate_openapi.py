"""
Generate and persist the registered documents of the application.

Used by automation/CI to write every document to OPENAPI_EXPORT_DIR.
"""
import logging

from openapi_registry.config import EXPORT_DIR
from openapi_registry.main import document_services
from openapi_registry.services.exporter import export_documents


def main() -> None:
    """Write each registered document to EXPORT_DIR as JSON."""
    logging.basicConfig(level=logging.INFO)
    for path in export_documents(document_services.document_catalog, EXPORT_DIR):
        print(f"Document generated: {path}")


if __name__ == "__main__":
    main()

"""
Export of generated documents to disk for CI and client generation tooling.
"""
import io
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from openapi_registry.services.registry import DocumentCatalog
from openapi_registry.utils.filename import build_output_filename

logger = logging.getLogger(__name__)


def export_documents(
    catalog: DocumentCatalog,
    output_dir: Path,
    document_names: Optional[Sequence[str]] = None,
) -> List[Path]:
    """
    Write registered documents as JSON files.

    Args:
        catalog: Catalog view of the document registry.
        output_dir: Target directory, created if missing.
        document_names: Subset to export. Defaults to every registered document.

    Returns:
        Paths of the written files, in export order.

    Raises:
        DocumentNotFoundError: If a requested name is not registered.
        DocumentGenerationError: If a document fails to build. Files already
            written are kept.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    names = list(document_names) if document_names is not None else catalog.list_document_names()
    written: List[Path] = []
    for name in names:
        out_path = output_dir / build_output_filename(name, catalog.schema_type(name))
        buffer = io.StringIO()
        catalog.write_document(name, buffer)
        out_path.write_text(buffer.getvalue() + "\n", encoding="utf-8")
        logger.info(f"Exported document '{name}' to {out_path}")
        written.append(out_path)
    return written

"""
API routes serving the registered documents.
"""
import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from openapi_registry.services.exceptions import DocumentGenerationError, DocumentNotFoundError
from openapi_registry.services.registration import DocumentServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/openapi", tags=["Documentation"])


def get_document_services(request: Request) -> DocumentServices:
    """Resolve the document services attached to the running application."""
    return request.app.state.document_services


@router.get(
    "",
    summary="List API documents",
    description="Names of every API description document registered by this service.",
)
def list_documents(services: DocumentServices = Depends(get_document_services)) -> Dict[str, List[str]]:
    return {"documents": services.document_catalog.list_document_names()}


@router.get(
    "/{document_name}.json",
    summary="Get API document",
    description="Return the generated Swagger 2.0 / OpenAPI 3 document registered under the given name.",
    response_description="Generated API description document",
)
def get_document(
    document_name: str,
    services: DocumentServices = Depends(get_document_services),
) -> JSONResponse:
    """
    Return a generated document, building it on first request.

    - **document_name**: Registered document name (e.g. `v1`)
    """
    try:
        document = services.document_provider.get_document(document_name)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DocumentGenerationError as e:
        logger.error(f"Error generating document '{document_name}': {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Document generation failed. Please check the logs for details.",
        )
    return JSONResponse(content=document)

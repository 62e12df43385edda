"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from typing import Dict

from fastapi import FastAPI

from openapi_registry.config import WARM_UP_DOCUMENTS
from openapi_registry.routers import documents
from openapi_registry.services.document_processors import DefaultTagOperationProcessor, TagsDocumentProcessor
from openapi_registry.services.endpoints import collect_fastapi_endpoints
from openapi_registry.services.exceptions import DocumentGenerationError
from openapi_registry.services.registration import DocumentServices
from openapi_registry.services.settings import DocumentSettings

logger = logging.getLogger(__name__)

APP_TITLE = "OpenAPI Document Registry"
APP_DESCRIPTION = "Registers, lazily generates and serves OpenAPI 3 and Swagger 2.0 descriptions of this service."
APP_VERSION = "1.0.0"


def warm_up_documents(services: DocumentServices) -> Dict[str, DocumentGenerationError]:
    """
    Build every registered document and log which ones failed.

    Failures stay scoped to their document: startup continues and requests
    for a failed document get its generation error.
    """
    failures = services.warm_up()
    if failures:
        logger.error(
            f"Warm-up finished with {len(failures)} failed document(s): {', '.join(sorted(failures))}"
        )
    else:
        logger.info(f"Warm-up finished, {len(services.registry)} document(s) generated")
    return failures


@asynccontextmanager
async def lifespan(app: FastAPI):
    if WARM_UP_DOCUMENTS:
        warm_up_documents(app.state.document_services)
    yield


# FastAPI's own schema endpoint is replaced by the registered documents
app = FastAPI(
    title=APP_TITLE,
    description=APP_DESCRIPTION,
    version=APP_VERSION,
    openapi_url=None,
    lifespan=lifespan,
)


def configure_openapi_document(settings: DocumentSettings) -> None:
    settings.document_name = "v1"
    settings.title = APP_TITLE
    settings.description = APP_DESCRIPTION
    settings.version = APP_VERSION


def configure_swagger_document(settings: DocumentSettings) -> None:
    settings.document_name = "swagger"
    settings.title = APP_TITLE
    settings.version = APP_VERSION


document_services = (
    DocumentServices(endpoint_source=lambda: collect_fastapi_endpoints(app))
    .add_operation_processor(DefaultTagOperationProcessor(tag="meta"))
    .add_document_processor(
        TagsDocumentProcessor({
            "Documentation": "Generated API description documents.",
            "meta": "Health and service information.",
        })
    )
    .add_openapi_document(configure_openapi_document)
    .add_swagger_document(configure_swagger_document)
)
app.state.document_services = document_services

app.include_router(documents.router)


@app.get("/health", summary="Health check")
def health_check() -> Dict[str, str]:
    """
    Report the current service health.

    Returns:
        dict: Health status payload.
    """
    return {"status": "healthy", "service": "openapi-registry"}

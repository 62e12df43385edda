"""
Shared fixtures: a small pet-store endpoint snapshot and order-recording processors.
"""
from typing import Dict, List, Optional

import pytest
from pydantic import BaseModel

from openapi_registry.services.endpoints import EndpointDescriptor, ParameterDescriptor, ResponseDescriptor
from openapi_registry.services.processors import DocumentProcessor, OperationProcessor
from openapi_registry.services.registration import DocumentServices


class Pet(BaseModel):
    id: int
    name: str
    tag: Optional[str] = None


class NewPet(BaseModel):
    name: str
    tag: Optional[str] = None


SAMPLE_ENDPOINTS = [
    EndpointDescriptor(
        method="get",
        path="/pets",
        parameters=(ParameterDescriptor("limit", "query", Optional[int], required=False, description="Max items"),),
        responses=(ResponseDescriptor("200", List[Pet], "Pet list"),),
        operation_id="list_pets",
        tags=("pets",),
    ),
    EndpointDescriptor(
        method="post",
        path="/pets",
        parameters=(ParameterDescriptor("pet", "body", NewPet),),
        responses=(ResponseDescriptor("201", Pet),),
        operation_id="create_pet",
        tags=("pets",),
    ),
    EndpointDescriptor(
        method="get",
        path="/pets/{pet_id}",
        parameters=(ParameterDescriptor("pet_id", "path", int),),
        responses=(ResponseDescriptor("200", Pet), ResponseDescriptor("404")),
        operation_id="get_pet",
        tags=("pets",),
    ),
    EndpointDescriptor(
        method="get",
        path="/admin/stats",
        responses=(ResponseDescriptor("200", Dict[str, int]),),
        operation_id="stats",
        tags=("admin",),
        deprecated=True,
    ),
]


class RecordingDocumentProcessor(DocumentProcessor):
    """Appends its label to a shared log when applied."""

    def __init__(self, label: str, log: List[str]):
        self.name = label
        self.log = log

    def apply(self, context) -> None:
        self.log.append(self.name)


class RecordingOperationProcessor(OperationProcessor):
    def __init__(self, label: str, log: List[str]):
        self.name = label
        self.log = log

    def apply(self, context) -> None:
        self.log.append(f"{self.name}:{context.method} {context.path}")


class FailingDocumentProcessor(DocumentProcessor):
    name = "failing"

    def __init__(self):
        self.calls = 0

    def apply(self, context) -> None:
        self.calls += 1
        raise RuntimeError("boom")


@pytest.fixture
def endpoints():
    return list(SAMPLE_ENDPOINTS)


@pytest.fixture
def services(endpoints):
    return DocumentServices(endpoint_source=lambda: endpoints, retry_on_failure=False)

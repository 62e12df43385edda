"""
Endpoint snapshot descriptors and the FastAPI adapter that produces them.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI
from fastapi.routing import APIRoute

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParameterDescriptor:
    name: str
    location: str  # path, query, header, cookie or body
    annotation: Any
    required: bool = True
    description: Optional[str] = None


@dataclass(frozen=True)
class ResponseDescriptor:
    status_code: str
    annotation: Any = None  # None means the response has no body
    description: Optional[str] = None


@dataclass(frozen=True)
class EndpointDescriptor:
    """One (method, path) pair exposed by the host service."""

    method: str
    path: str
    parameters: Tuple[ParameterDescriptor, ...] = ()
    responses: Tuple[ResponseDescriptor, ...] = ()
    operation_id: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: Tuple[str, ...] = ()
    deprecated: bool = False


def _field_descriptor(model_field: Any, location: str) -> ParameterDescriptor:
    field_info = model_field.field_info
    return ParameterDescriptor(
        name=model_field.alias or model_field.name,
        location=location,
        annotation=field_info.annotation,
        required=True if location == "path" else bool(model_field.required),
        description=field_info.description,
    )


_LOCATIONS = (
    ("path", "path_params"),
    ("query", "query_params"),
    ("header", "header_params"),
    ("cookie", "cookie_params"),
    ("body", "body_params"),
)


def _collect_fields(dependant: Any, fields: Dict[str, List[Any]]) -> None:
    # Parameters declared on sub-dependencies are part of the operation too
    for location, attribute in _LOCATIONS:
        fields[location].extend(getattr(dependant, attribute, None) or ())
    for sub_dependant in getattr(dependant, "dependencies", None) or ():
        _collect_fields(sub_dependant, fields)


def _route_parameters(route: APIRoute) -> Tuple[ParameterDescriptor, ...]:
    fields: Dict[str, List[Any]] = {location: [] for location, _ in _LOCATIONS}
    _collect_fields(route.dependant, fields)

    parameters: List[ParameterDescriptor] = []
    for location, _ in _LOCATIONS:
        seen = set()
        for model_field in fields[location]:
            descriptor = _field_descriptor(model_field, location)
            if descriptor.name in seen:
                continue
            seen.add(descriptor.name)
            parameters.append(descriptor)
    return tuple(parameters)


def _route_responses(route: APIRoute) -> Tuple[ResponseDescriptor, ...]:
    status_code = str(route.status_code or 200)
    responses = [
        ResponseDescriptor(
            status_code=status_code,
            annotation=route.response_model,
            description=route.response_description,
        )
    ]
    for code, extra in (route.responses or {}).items():
        if str(code) == status_code:
            continue
        extra = extra or {}
        responses.append(
            ResponseDescriptor(
                status_code=str(code),
                annotation=extra.get("model"),
                description=extra.get("description"),
            )
        )
    return tuple(responses)


def collect_fastapi_endpoints(app: FastAPI) -> List[EndpointDescriptor]:
    """
    Snapshot the operations currently registered on a FastAPI application.

    Args:
        app: Host application.

    Returns:
        One descriptor per (route, HTTP method), in route order with methods
        sorted alphabetically.
    """
    endpoints: List[EndpointDescriptor] = []
    for route in app.routes:
        if not isinstance(route, APIRoute) or not route.include_in_schema:
            continue

        parameters = _route_parameters(route)
        responses = _route_responses(route)
        methods = sorted(route.methods or ())
        for method in methods:
            operation_id = route.operation_id or route.unique_id
            if len(methods) > 1:
                operation_id = f"{operation_id}_{method.lower()}"
            endpoints.append(
                EndpointDescriptor(
                    method=method.lower(),
                    path=route.path_format,
                    parameters=parameters,
                    responses=responses,
                    operation_id=operation_id,
                    summary=route.summary,
                    description=route.description or None,
                    tags=tuple(str(tag) for tag in (route.tags or ())),
                    deprecated=bool(route.deprecated),
                )
            )

    logger.debug(f"Collected {len(endpoints)} endpoints from application routes")
    return endpoints

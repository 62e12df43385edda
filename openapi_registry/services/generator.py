"""
Document generator: turns an endpoint snapshot into a fully processed
Swagger 2 / OpenAPI 3 document.
"""
import logging
import re
from http import HTTPStatus
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, TypeAdapter

from openapi_registry.config import HTTP_METHODS, OPENAPI3_VERSION, SWAGGER2_VERSION
from openapi_registry.services.endpoints import EndpointDescriptor, ParameterDescriptor, ResponseDescriptor
from openapi_registry.services.exceptions import DocumentGenerationError
from openapi_registry.services.processors import (
    DocumentProcessorContext,
    OperationProcessorContext,
    compose_document_processors,
    compose_operation_processors,
    describe_processor,
)
from openapi_registry.services.settings import DocumentSettings, SchemaType
from openapi_registry.utils.schema_resolver import (
    apply_nullable,
    definitions_container,
    reference_prefix,
)
from openapi_registry.utils.validation import validate_document

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"


class PydanticSchemaGenerator:
    """
    Default type to schema reflection backed by pydantic.

    Named models are hoisted into the document's definitions and referenced
    with ``$ref``; everything else is returned inline. Two different models
    sharing a name never share a definition: the later one is stored under a
    qualified name and its references are rewritten to match.
    """

    def __init__(self, schema_type: SchemaType):
        self.schema_type = schema_type
        self.ref_prefix = reference_prefix(schema_type)
        self.ref_template = self.ref_prefix + "{model}"

    def generate(
        self,
        annotation: Any,
        definitions: Dict[str, Any],
        mode: str = "validation",
    ) -> Dict[str, Any]:
        """
        Describe a Python type as a schema of the generator's dialect.

        Args:
            annotation: Type to describe. None yields an empty schema.
            definitions: Document definitions that named models are added to.
            mode: "validation" for request data, "serialization" for response
                bodies (includes computed fields and serialization aliases).
        """
        if annotation is None:
            return {}

        schema = TypeAdapter(annotation).json_schema(ref_template=self.ref_template, mode=mode)
        local = {
            name: apply_nullable(definition, self.schema_type)
            for name, definition in schema.pop("$defs", {}).items()
        }

        qualifiers: Dict[str, str] = {}
        if "$ref" not in schema and isinstance(annotation, type) and issubclass(annotation, BaseModel):
            name = re.sub(r"[^A-Za-z0-9_.-]", "_", annotation.__name__)
            local[name] = apply_nullable(schema, self.schema_type)
            qualifiers[name] = re.sub(r"[^A-Za-z0-9_]", "_", annotation.__module__)
            schema = {"$ref": self.ref_prefix + name}
        else:
            schema = apply_nullable(schema, self.schema_type)

        renames = self._merge_definitions(local, definitions, qualifiers)
        return self._rename_references(schema, renames)

    def _merge_definitions(
        self,
        local: Dict[str, Any],
        definitions: Dict[str, Any],
        qualifiers: Dict[str, str],
    ) -> Dict[str, str]:
        # Renaming a model changes every schema referencing it, repeat until stable
        renames: Dict[str, str] = {}
        changed = True
        while changed:
            changed = False
            for name, definition in local.items():
                if name in renames:
                    continue
                candidate = self._rename_references(definition, renames)
                existing = definitions.get(name)
                if existing is not None and existing != candidate:
                    renames[name] = self._free_name(name, candidate, definitions, local, qualifiers.get(name))
                    changed = True

        for name, definition in local.items():
            target = renames.get(name, name)
            if target not in definitions:
                definitions[target] = self._rename_references(definition, renames)
            if name in renames:
                logger.debug(f"Schema name '{name}' is taken by another type, stored as '{target}'")
        return renames

    @staticmethod
    def _free_name(
        name: str,
        definition: Dict[str, Any],
        definitions: Dict[str, Any],
        local: Dict[str, Any],
        qualifier: Optional[str],
    ) -> str:
        candidates = []
        if qualifier:
            candidates.append(f"{qualifier}__{name}")
        candidates.extend(f"{name}_{index}" for index in range(2, len(definitions) + len(local) + 3))

        for candidate in candidates:
            if candidate in local:
                continue
            existing = definitions.get(candidate)
            if existing is None or existing == definition:
                return candidate
        raise DocumentGenerationError(f"No free schema name left for '{name}'")

    def _rename_references(self, node: Any, renames: Dict[str, str]) -> Any:
        if not renames:
            return node
        if isinstance(node, list):
            return [self._rename_references(item, renames) for item in node]
        if not isinstance(node, dict):
            return node

        result = {key: self._rename_references(value, renames) for key, value in node.items()}
        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith(self.ref_prefix):
            target = ref[len(self.ref_prefix):]
            if target in renames:
                result["$ref"] = self.ref_prefix + renames[target]
        return result


def _generate_response_schema(schema_generator: Any, annotation: Any, definitions: Dict[str, Any]) -> Dict[str, Any]:
    # Custom generators only take (annotation, definitions)
    if isinstance(schema_generator, PydanticSchemaGenerator):
        return schema_generator.generate(annotation, definitions, mode="serialization")
    return schema_generator.generate(annotation, definitions)


def create_document(settings: DocumentSettings) -> Dict[str, Any]:
    """Empty document skeleton for the settings' dialect."""
    info: Dict[str, Any] = {"title": settings.title, "version": settings.version}
    if settings.description:
        info["description"] = settings.description

    if settings.schema_type is SchemaType.SWAGGER2:
        return {"swagger": SWAGGER2_VERSION, "info": info, "paths": {}, "definitions": {}}
    return {"openapi": OPENAPI3_VERSION, "info": info, "paths": {}, "components": {"schemas": {}}}


def _status_phrase(status_code: str) -> str:
    try:
        return HTTPStatus(int(status_code)).phrase
    except ValueError:
        return "Response"


def _strip_title(schema: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in schema.items() if key != "title"}


def _inline_reference(schema: Dict[str, Any], definitions: Dict[str, Any]) -> Dict[str, Any]:
    # Swagger 2 non-body parameters cannot use $ref or allOf
    all_of = schema.get("allOf")
    if "$ref" not in schema and isinstance(all_of, list) and len(all_of) == 1 and "$ref" in all_of[0]:
        rest = {key: value for key, value in schema.items() if key != "allOf"}
        schema = {**rest, **all_of[0]}

    ref = schema.get("$ref")
    if isinstance(ref, str):
        target = definitions.get(ref.rsplit("/", 1)[-1], {})
        rest = {key: value for key, value in schema.items() if key != "$ref"}
        return {**_strip_title(target), **rest}
    return schema


def _is_included(endpoint: EndpointDescriptor, include_tags: Optional[Sequence[str]]) -> bool:
    if include_tags is None:
        return True
    return any(tag in include_tags for tag in endpoint.tags)


class DocumentGenerator:
    """
    Stateless document generator.

    Globally registered processors are injected explicitly and appended after
    each document's own processors at generation time.
    """

    def __init__(
        self,
        global_document_processors: Iterable[Any] = (),
        global_operation_processors: Iterable[Any] = (),
    ):
        self.global_document_processors = global_document_processors
        self.global_operation_processors = global_operation_processors

    def generate(self, settings: DocumentSettings, endpoints: Iterable[EndpointDescriptor]) -> Dict[str, Any]:
        """
        Generate one document.

        Args:
            settings: Frozen settings of the document.
            endpoints: Snapshot of the host service's operations.

        Returns:
            The fully processed document.

        Raises:
            DocumentGenerationError: If reflection, a processor or the final
                validation fails.
        """
        name = settings.document_name
        endpoints = list(endpoints)
        schema_generator = settings.schema_generator or PydanticSchemaGenerator(settings.schema_type)
        document_chain = compose_document_processors(settings, self.global_document_processors)
        operation_chain = compose_operation_processors(settings, self.global_operation_processors)

        document = create_document(settings)
        definitions = definitions_container(document, settings.schema_type)

        for endpoint in endpoints:
            method = endpoint.method.lower()
            if method not in HTTP_METHODS:
                logger.warning(f"Document '{name}': skipping unsupported method {endpoint.method} {endpoint.path}")
                continue
            if method == "trace" and settings.schema_type is SchemaType.SWAGGER2:
                logger.warning(f"Document '{name}': Swagger 2 has no trace operations, skipping {endpoint.path}")
                continue
            if not _is_included(endpoint, settings.include_tags):
                continue

            try:
                operation = self.build_operation(endpoint, settings.schema_type, schema_generator, definitions)
            except Exception as exc:
                raise DocumentGenerationError(
                    f"Document '{name}': failed to describe {method.upper()} {endpoint.path}: {exc}",
                    document_name=name,
                ) from exc

            context = OperationProcessorContext(
                document=document,
                operation=operation,
                endpoint=endpoint,
                path=endpoint.path,
                method=method,
                settings=settings,
                schema_generator=schema_generator,
            )
            if not self._run_operation_chain(operation_chain, context):
                logger.debug(f"Document '{name}': operation {method.upper()} {endpoint.path} removed by processor")
                continue

            document["paths"].setdefault(endpoint.path, {})[method] = context.operation

        document_context = DocumentProcessorContext(
            document=document,
            settings=settings,
            endpoints=endpoints,
            schema_generator=schema_generator,
        )
        for processor in document_chain:
            self._apply(processor, document_context, name)

        document = document_context.document
        self._drop_empty_definitions(document, settings.schema_type)

        try:
            validate_document(document, settings.schema_type)
        except ValueError as exc:
            raise DocumentGenerationError(f"Document '{name}': {exc}", document_name=name) from exc

        return document

    def _run_operation_chain(self, chain: List[Any], context: OperationProcessorContext) -> bool:
        for processor in chain:
            if self._apply(processor, context, context.settings.document_name) is False:
                return False
        return True

    @staticmethod
    def _apply(processor: Any, context: Any, document_name: str) -> Any:
        try:
            return processor.apply(context)
        except DocumentGenerationError:
            raise
        except Exception as exc:
            processor_name = describe_processor(processor)
            raise DocumentGenerationError(
                f"Document '{document_name}': processor {processor_name} failed: {exc}",
                document_name=document_name,
                processor=processor_name,
            ) from exc

    @staticmethod
    def _drop_empty_definitions(document: Dict[str, Any], schema_type: SchemaType) -> None:
        if schema_type is SchemaType.SWAGGER2:
            if not document.get("definitions"):
                document.pop("definitions", None)
            return
        components = document.get("components")
        if isinstance(components, dict):
            if not components.get("schemas"):
                components.pop("schemas", None)
            if not components:
                document.pop("components", None)

    def build_operation(
        self,
        endpoint: EndpointDescriptor,
        schema_type: SchemaType,
        schema_generator: Any,
        definitions: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Describe a single endpoint in the given dialect."""
        operation: Dict[str, Any] = {}
        if endpoint.tags:
            operation["tags"] = list(endpoint.tags)
        if endpoint.summary:
            operation["summary"] = endpoint.summary
        if endpoint.description:
            operation["description"] = endpoint.description
        if endpoint.operation_id:
            operation["operationId"] = endpoint.operation_id

        parameters: List[Dict[str, Any]] = []
        body_parameters: List[ParameterDescriptor] = []
        for parameter in endpoint.parameters:
            if parameter.location == "body":
                body_parameters.append(parameter)
                continue
            schema = schema_generator.generate(parameter.annotation, definitions)
            parameters.append(self._parameter_entry(parameter, schema, schema_type, definitions))

        if body_parameters:
            body_schema = self._body_schema(body_parameters, schema_generator, definitions)
            body_required = any(parameter.required for parameter in body_parameters)
            if schema_type is SchemaType.SWAGGER2:
                operation["consumes"] = [JSON_MEDIA_TYPE]
                parameters.append({
                    "name": body_parameters[0].name if len(body_parameters) == 1 else "body",
                    "in": "body",
                    "required": body_required,
                    "schema": body_schema,
                })
            else:
                operation["requestBody"] = {
                    "required": body_required,
                    "content": {JSON_MEDIA_TYPE: {"schema": body_schema}},
                }

        if parameters:
            operation["parameters"] = parameters

        operation["responses"] = self._responses(endpoint.responses, schema_type, schema_generator, definitions)
        if schema_type is SchemaType.SWAGGER2 and any(
            "schema" in response for response in operation["responses"].values()
        ):
            operation["produces"] = [JSON_MEDIA_TYPE]

        if endpoint.deprecated:
            operation["deprecated"] = True
        return operation

    @staticmethod
    def _parameter_entry(
        parameter: ParameterDescriptor,
        schema: Dict[str, Any],
        schema_type: SchemaType,
        definitions: Dict[str, Any],
    ) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "name": parameter.name,
            "in": parameter.location,
            "required": parameter.required,
        }
        if parameter.description:
            entry["description"] = parameter.description

        if schema_type is SchemaType.SWAGGER2:
            entry.update(_strip_title(_inline_reference(schema, definitions)))
        else:
            entry["schema"] = _strip_title(schema)
        return entry

    @staticmethod
    def _body_schema(
        body_parameters: List[ParameterDescriptor],
        schema_generator: Any,
        definitions: Dict[str, Any],
    ) -> Dict[str, Any]:
        if len(body_parameters) == 1:
            return schema_generator.generate(body_parameters[0].annotation, definitions)

        properties = {
            parameter.name: schema_generator.generate(parameter.annotation, definitions)
            for parameter in body_parameters
        }
        required = [parameter.name for parameter in body_parameters if parameter.required]
        schema: Dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            schema["required"] = required
        return schema

    @staticmethod
    def _responses(
        responses: Sequence[ResponseDescriptor],
        schema_type: SchemaType,
        schema_generator: Any,
        definitions: Dict[str, Any],
    ) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for response in responses or (ResponseDescriptor(status_code="200"),):
            entry: Dict[str, Any] = {"description": response.description or _status_phrase(response.status_code)}
            if response.annotation is not None:
                schema = _generate_response_schema(schema_generator, response.annotation, definitions)
                if schema_type is SchemaType.SWAGGER2:
                    entry["schema"] = schema
                else:
                    entry["content"] = {JSON_MEDIA_TYPE: {"schema": schema}}
            result[response.status_code] = entry
        return result

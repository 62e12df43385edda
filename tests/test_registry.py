import io
import json
import threading
import time
import traceback

import pytest

from openapi_registry.services.exceptions import (
    DocumentGenerationError,
    DocumentNotFoundError,
    DuplicateDocumentError,
)
from openapi_registry.services.processors import ActionDocumentProcessor
from openapi_registry.services.registration import DocumentServices
from openapi_registry.services.registry import BuildState, DocumentRegistration
from openapi_registry.services.settings import SchemaType, build_settings

from conftest import FailingDocumentProcessor, RecordingDocumentProcessor


def _named(name, *processors):
    def configure(settings):
        settings.document_name = name
        settings.document_processors.extend(processors)

    return configure


class CountingGenerator:
    """Generator stub that counts invocations and takes a while to finish."""

    def __init__(self, delay=0.05):
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def generate(self, settings, endpoints):
        with self._lock:
            self.calls += 1
        time.sleep(self.delay)
        return {"swagger": "2.0", "info": {"title": "t", "version": "1"}, "paths": {}}


class TestRegistration:
    def test_independent_settings_per_document(self, services):
        log_v1, log_v2 = [], []
        services.add_openapi_document(_named("v1", RecordingDocumentProcessor("one", log_v1)))
        services.add_openapi_document(_named("v2", RecordingDocumentProcessor("two", log_v2)))

        v1 = services.document_provider.get_document("v1")
        v2 = services.document_provider.get_document("v2")

        assert log_v1 == ["one"]
        assert log_v2 == ["two"]
        assert v1 is not v2
        assert services.registry.get("v1").settings.document_processors != services.registry.get("v2").settings.document_processors

    def test_duplicate_name_rejected_before_generation(self):
        calls = []
        services = DocumentServices(endpoint_source=lambda: calls.append("snapshot") or [])
        services.add_swagger_document(_named("v1"))
        with pytest.raises(DuplicateDocumentError) as exc_info:
            services.add_openapi_document(_named("v1"))
        assert exc_info.value.document_name == "v1"
        assert calls == []
        assert services.registry.get("v1").schema_type is SchemaType.SWAGGER2

    def test_configure_runs_once_across_requests(self, services):
        calls = []

        def configure(settings):
            calls.append(settings.document_name)

        services.add_swagger_document(configure)
        services.document_provider.get_document()
        services.document_provider.get_document()
        assert len(calls) == 1

    def test_configure_can_resolve_services(self, services):
        log = []
        services.add_service("audit", RecordingDocumentProcessor("audit", log))

        def configure(settings, resolver):
            settings.document_processors.append(resolver.get_required_service("audit"))

        services.add_openapi_document(configure)
        services.document_provider.get_document("v1")
        assert log == ["audit"]

    def test_missing_required_service(self, services):
        with pytest.raises(LookupError):
            services.get_required_service("nothing")
        assert services.get_service("nothing") is None

    def test_global_processors_registered_after_document_still_apply(self, services):
        log = []
        services.add_openapi_document(_named("v1", RecordingDocumentProcessor("A", log)))
        services.add_document_processor(RecordingDocumentProcessor("C", log))
        services.document_provider.get_document("v1")
        assert log == ["A", "C"]

    def test_global_post_process_order(self, services):
        log = []

        def configure(settings):
            settings.document_processors.append(RecordingDocumentProcessor("A", log))
            settings.post_process = lambda document: log.append("P")

        services.add_document_processor(RecordingDocumentProcessor("C", log))
        services.add_document_processor(RecordingDocumentProcessor("D", log))
        services.add_openapi_document(configure)
        services.document_provider.get_document("v1")
        assert log == ["A", "P", "C", "D"]


class TestDialectDefaults:
    def test_swagger_entry_point(self, endpoints):
        services = DocumentServices(endpoint_source=lambda: endpoints)
        services.add_swagger_document()
        document = services.document_provider.get_document()
        assert document["swagger"] == "2.0"

    def test_openapi_entry_point(self, endpoints):
        services = DocumentServices(endpoint_source=lambda: endpoints)
        services.add_openapi_document()
        document = services.document_provider.get_document()
        assert document["openapi"].startswith("3.")

    def test_deprecated_alias(self, endpoints):
        services = DocumentServices(endpoint_source=lambda: endpoints)
        with pytest.warns(DeprecationWarning):
            services.add_swagger()
        assert services.registry.get("v1").schema_type is SchemaType.SWAGGER2
        assert services.document_provider.get_document()["swagger"] == "2.0"


class TestLazyBuild:
    def test_not_built_until_requested(self, services):
        calls = []
        services.add_swagger_document(_named("v1", ActionDocumentProcessor(lambda context: calls.append(1))))
        registration = services.registry.get("v1")
        assert registration.state is BuildState.UNBUILT
        assert calls == []

        document = services.document_provider.get_document("v1")
        assert registration.state is BuildState.BUILT
        assert services.document_provider.get_document("v1") is document
        assert calls == [1]

    def test_concurrent_first_access_builds_once(self):
        generator = CountingGenerator()
        registration = DocumentRegistration(build_settings(SchemaType.SWAGGER2), generator, lambda: [])
        thread_count = 16
        barrier = threading.Barrier(thread_count)
        results = []
        results_lock = threading.Lock()

        def request_document():
            barrier.wait()
            document = registration.get_document()
            with results_lock:
                results.append(document)

        threads = [threading.Thread(target=request_document) for _ in range(thread_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert generator.calls == 1
        assert len(results) == thread_count
        assert all(document is results[0] for document in results)

    def test_concurrent_access_through_services(self, services):
        calls = []
        calls_lock = threading.Lock()

        def count(context):
            with calls_lock:
                calls.append(1)
            time.sleep(0.05)

        services.add_openapi_document(_named("v1", ActionDocumentProcessor(count)))
        results = []

        def request_document():
            results.append(services.document_provider.get_document("v1"))

        threads = [threading.Thread(target=request_document) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert len({id(document) for document in results}) == 1


class TestGenerationFailures:
    def test_failure_is_scoped_to_one_document(self, services):
        services.add_openapi_document(_named("broken", FailingDocumentProcessor()))
        services.add_openapi_document(_named("healthy"))

        with pytest.raises(DocumentGenerationError) as exc_info:
            services.document_provider.get_document("broken")
        assert exc_info.value.document_name == "broken"

        document = services.document_provider.get_document("healthy")
        assert document["openapi"].startswith("3.")

    def test_failure_is_cached(self, services):
        failing = FailingDocumentProcessor()
        services.add_openapi_document(_named("broken", failing))

        errors = []
        for _ in range(2):
            with pytest.raises(DocumentGenerationError) as exc_info:
                services.document_provider.get_document("broken")
            errors.append(exc_info.value)

        assert failing.calls == 1
        assert errors[1] is not errors[0]
        assert errors[1].__cause__ is errors[0]
        assert str(errors[1]) == str(errors[0])
        assert errors[1].document_name == "broken"
        assert errors[1].processor == errors[0].processor
        assert services.registry.get("broken").state is BuildState.FAILED

    def test_cached_failure_traceback_does_not_grow(self, services):
        services.add_openapi_document(_named("broken", FailingDocumentProcessor()))
        with pytest.raises(DocumentGenerationError):
            services.document_provider.get_document("broken")

        depths = []
        for _ in range(3):
            with pytest.raises(DocumentGenerationError) as exc_info:
                services.document_provider.get_document("broken")
            depths.append(len(traceback.extract_tb(exc_info.value.__cause__.__traceback__)))

        assert depths[0] == depths[1] == depths[2]

    def test_retry_policy_rebuilds_after_failure(self, endpoints):
        attempts = []

        def flaky(context):
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("first attempt fails")

        services = DocumentServices(endpoint_source=lambda: endpoints, retry_on_failure=True)
        services.add_openapi_document(_named("v1", ActionDocumentProcessor(flaky)))

        with pytest.raises(DocumentGenerationError):
            services.document_provider.get_document("v1")
        document = services.document_provider.get_document("v1")
        assert document["openapi"].startswith("3.")
        assert len(attempts) == 2

    def test_endpoint_source_failure_becomes_generation_error(self):
        def broken_source():
            raise RuntimeError("routes unavailable")

        services = DocumentServices(endpoint_source=broken_source)
        services.add_swagger_document()
        with pytest.raises(DocumentGenerationError) as exc_info:
            services.document_provider.get_document("v1")
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_warm_up_reports_failures(self, services):
        services.add_openapi_document(_named("broken", FailingDocumentProcessor()))
        services.add_openapi_document(_named("healthy"))
        failures = services.warm_up()
        assert list(failures) == ["broken"]
        assert services.registry.get("healthy").state is BuildState.BUILT


class TestConsumerViews:
    def test_unknown_name_is_not_found(self, services):
        services.add_openapi_document()
        with pytest.raises(DocumentNotFoundError) as exc_info:
            services.document_provider.get_document("missing")
        assert not isinstance(exc_info.value, DocumentGenerationError)
        assert isinstance(exc_info.value, KeyError)
        assert "missing" in str(exc_info.value)

    def test_list_document_names(self, services):
        services.add_openapi_document(_named("v1"))
        services.add_swagger_document(_named("v2"))
        assert set(services.document_catalog.list_document_names()) == {"v1", "v2"}
        assert len(services.document_catalog.list_document_names()) == 2

    def test_views_share_one_registry(self, services):
        services.add_openapi_document(_named("v1"))
        assert services.document_catalog.list_document_names() == ["v1"]
        services.add_openapi_document(_named("v2"))
        assert set(services.document_provider.get_documents()) == {"v1", "v2"}

    def test_default_document_when_several_registered(self, services):
        services.add_openapi_document(_named("v1"))
        services.add_swagger_document(_named("legacy"))
        assert services.document_provider.get_document()["openapi"].startswith("3.")

    def test_write_document(self, services):
        services.add_swagger_document()
        stream = io.StringIO()
        services.document_catalog.write_document("v1", stream)
        assert json.loads(stream.getvalue()) == services.document_provider.get_document("v1")

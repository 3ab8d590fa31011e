import pytest

from flowrun.clients.http import HttpResponse
from flowrun.engine.data import build_context
from flowrun.engine.errors import (
    FilterServiceError,
    MissingConfigError,
    TransformEvaluationError,
    TypeMismatchError,
)
from flowrun.engine.graph import Step
from flowrun.steps.base import StepContext
from flowrun.steps.filter_steps import FilterExecutor
from flowrun.steps.http_steps import HttpRequestExecutor
from flowrun.steps.registry import StepRegistry, build_registry
from flowrun.steps.transform_steps import TransformExecutor
from tests.fakes import FakeFilterClient, FakeHttpClient


def _context(resolved_input, results=None):
    results = results or {}
    return StepContext(bindings=build_context(resolved_input, results), results=results)


def _step(kind, step_id="s1", **config):
    return Step(id=step_id, kind=kind, label="Step One", config=config)


class TestHttpRequestExecutor:
    def test_get_never_sends_a_body(self):
        client = FakeHttpClient()
        step = _step("http_request", method="GET", url="https://api.test/x", headers={"X-Key": "1"})

        result = HttpRequestExecutor(client).execute(step, {"ignored": True}, _context({"ignored": True}))

        assert result == {"url": "https://api.test/x"}
        assert client.requests == [{
            "method": "GET",
            "url": "https://api.test/x",
            "headers": {"X-Key": "1"},
            "body": None,
        }]

    def test_post_sends_resolved_input(self):
        client = FakeHttpClient()
        step = _step("http_request", method="post", url="https://api.test/x")

        HttpRequestExecutor(client).execute(step, {"n": 1}, _context({"n": 1}))

        assert client.requests[0]["method"] == "POST"
        assert client.requests[0]["body"] == {"n": 1}

    def test_missing_url(self):
        with pytest.raises(MissingConfigError) as excinfo:
            HttpRequestExecutor(FakeHttpClient()).execute(_step("http_request"), None, _context(None))
        assert excinfo.value.message == "URL is required for HTTP request step"

    def test_error_status_is_a_transport_error(self):
        client = FakeHttpClient({
            "https://api.test/x": HttpResponse({"detail": "nope"}, 404, "Request failed with status code 404"),
        })
        with pytest.raises(Exception) as excinfo:
            HttpRequestExecutor(client).execute(_step("http_request", url="https://api.test/x"), None, _context(None))
        assert "Request failed with status code 404" in str(excinfo.value)

    def test_validate_reports_missing_url(self):
        assert HttpRequestExecutor(FakeHttpClient()).validate(_step("http_request")) == [
            "URL is required for HTTP request step"
        ]


class TestTransformExecutor:
    def test_expression(self):
        step = _step("transform", expression="data + 1")
        assert TransformExecutor().execute(step, 41, _context(41)) == 42

    def test_expression_takes_precedence_over_condition(self):
        step = _step("transform", expression="'expr'", condition="true", trueValue="t", falseValue="f")
        assert TransformExecutor().execute(step, None, _context(None)) == "expr"

    def test_condition_mode(self):
        step = _step("transform", condition="data > 10", trueValue="big", falseValue="small")
        assert TransformExecutor().execute(step, 5, _context(5)) == "small"
        assert TransformExecutor().execute(step, 50, _context(50)) == "big"

    def test_condition_values_may_be_falsy(self):
        step = _step("transform", condition="data", trueValue=0, falseValue="")
        assert TransformExecutor().execute(step, True, _context(True)) == 0
        assert TransformExecutor().execute(step, False, _context(False)) == ""

    def test_condition_without_both_values_passes_through(self):
        step = _step("transform", condition="data > 10", trueValue="big")
        assert TransformExecutor().execute(step, 5, _context(5)) == 5

    def test_empty_config_passes_through(self):
        assert TransformExecutor().execute(_step("transform"), [1, 2], _context([1, 2])) == [1, 2]

    def test_prior_results_are_visible(self):
        step = _step("transform", expression="data + http_1.count")
        context = _context(1, {"http-1": {"count": 2}})
        assert TransformExecutor().execute(step, 1, context) == 3

    def test_expression_error_is_wrapped(self):
        step = _step("transform", expression="nope + 1")
        with pytest.raises(TransformEvaluationError) as excinfo:
            TransformExecutor().execute(step, None, _context(None))
        assert excinfo.value.message == "Transform expression error: nope is not defined"
        assert excinfo.value.step_id == "s1"

    def test_condition_error_is_wrapped(self):
        step = _step("transform", condition="data.", trueValue=1, falseValue=2)
        with pytest.raises(TransformEvaluationError) as excinfo:
            TransformExecutor().execute(step, None, _context(None))
        assert excinfo.value.message.startswith("Transform condition error:")

    def test_validate_reports_syntax_errors(self):
        errors = TransformExecutor().validate(_step("transform", expression="1 +"))
        assert len(errors) == 1
        assert errors[0].startswith("Invalid expression:")


class TestFilterExecutor:
    def test_empty_condition_passes_through_without_calling_service(self):
        client = FakeFilterClient(result=["never"])
        step = _step("filter", type="array", condition="")
        assert FilterExecutor(client).execute(step, [1, 2], _context([1, 2])) == [1, 2]
        assert client.calls == []

    def test_array_filter_calls_service_with_context(self):
        client = FakeFilterClient(result=[1])
        step = _step("filter", type="array", condition="odd numbers")
        context = _context([1, 2], {"http-1": [1, 2]})

        assert FilterExecutor(client).execute(step, [1, 2], context) == [1]
        assert client.calls == [{
            "type": "array",
            "condition": "odd numbers",
            "data": [1, 2],
            "context": {"http-1": [1, 2], "data": [1, 2]},
        }]

    def test_array_filter_rejects_non_array(self):
        step = _step("filter", type="array", condition="x")
        with pytest.raises(TypeMismatchError) as excinfo:
            FilterExecutor(FakeFilterClient()).execute(step, {"a": 1}, _context({"a": 1}))
        assert excinfo.value.message == "Input data is not an array"

    def test_object_filter_rejects_non_object(self):
        step = _step("filter", type="object", condition="x")
        with pytest.raises(TypeMismatchError) as excinfo:
            FilterExecutor(FakeFilterClient()).execute(step, [1], _context([1]))
        assert excinfo.value.message == "Input data is not an object"

    def test_service_failure(self):
        step = _step("filter", type="array", condition="x")
        with pytest.raises(FilterServiceError) as excinfo:
            FilterExecutor(FakeFilterClient(error="unreachable")).execute(step, [1], _context([1]))
        assert excinfo.value.message == "Filter execution failed: unreachable"

    def test_keyword_fallback_by_default(self):
        step = _step("filter", type="array", condition="summer clothes")
        items = ["a warm dress", "a wool coat"]
        assert FilterExecutor().execute(step, items, _context(items)) == ["a warm dress"]


class TestRegistry:
    def test_every_kind_has_an_executor(self):
        registry = build_registry(http_client=FakeHttpClient())
        assert registry.list_step_kinds() == ["http_request", "transform", "filter"]
        assert registry.get_executor("transform").kind.value == "transform"
        assert registry.get_executor("teleport") is None

    def test_describe_includes_default_config(self):
        described = build_registry(http_client=FakeHttpClient()).describe()
        by_kind = {info["kind"]: info for info in described}
        assert by_kind["filter"]["default_config"] == {"type": "array", "condition": ""}
        assert by_kind["http_request"]["title"] == "HTTP Request"

    def test_registry_must_be_complete(self):
        with pytest.raises(ValueError):
            StepRegistry([TransformExecutor()])

    def test_registry_rejects_duplicates(self):
        with pytest.raises(ValueError):
            StepRegistry([TransformExecutor(), TransformExecutor()])

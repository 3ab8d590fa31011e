import threading

import pytest

from flowrun.clients.http import HttpResponse
from flowrun.engine.errors import (
    CyclicGraphError,
    MissingConfigError,
    StepExecutionError,
    TransformEvaluationError,
    TransportError,
    UnknownStepKindError,
)
from flowrun.engine.executor import WorkflowExecutor
from flowrun.engine.graph import StepKind
from flowrun.steps.base import StepExecutor
from flowrun.steps.registry import StepRegistry, build_registry
from flowrun.steps.filter_steps import FilterExecutor
from flowrun.steps.http_steps import HttpRequestExecutor
from tests.fakes import FakeHttpClient, make_graph


def test_transform_chain(executor):
    graph = make_graph(
        [
            ("seed", "transform", {"expression": "41"}),
            ("inc", "transform", {"expression": "data + 1"}),
        ],
        [("seed", "inc")],
    )
    assert executor.run(graph) == {"seed": 41, "inc": 42}


def test_condition_mode_picks_false_value(executor):
    graph = make_graph(
        [
            ("seed", "transform", {"expression": "5"}),
            ("size", "transform", {
                "condition": "data > 10",
                "trueValue": "big",
                "falseValue": "small",
            }),
        ],
        [("seed", "size")],
    )
    assert executor.run(graph)["size"] == "small"


def test_http_result_flows_into_filter(http_client):
    http_client.responses["https://shop.test/items"] = HttpResponse(
        body=["a warm dress", "a wool coat"], status=200
    )
    executor = WorkflowExecutor(registry=build_registry(http_client=http_client))
    graph = make_graph(
        [
            ("fetch", "http_request", {"method": "GET", "url": "https://shop.test/items"}),
            ("pick", "filter", {"type": "array", "condition": "summer clothes"}),
        ],
        [("fetch", "pick")],
    )
    results = executor.run(graph)
    assert results["pick"] == ["a warm dress"]
    assert http_client.requests[0]["body"] is None


def test_fan_in_input_and_context(executor):
    graph = make_graph(
        [
            ("a", "transform", {"expression": "1"}),
            ("b", "transform", {"expression": "2"}),
            ("sum", "transform", {"expression": "data.a + data.b + a"}),
        ],
        [("a", "sum"), ("b", "sum")],
    )
    assert executor.run(graph)["sum"] == 4


def test_prior_results_are_bound_by_sanitized_id(executor):
    graph = make_graph(
        [
            ("first-step", "transform", {"expression": "10"}),
            ("second", "transform", {"expression": "first_step * 2"}),
        ],
        [("first-step", "second")],
    )
    assert executor.run(graph)["second"] == 20


def test_failure_aborts_run_and_names_the_step(executor, http_client):
    graph = make_graph(
        [
            ("A", "http_request", {"method": "GET", "url": ""}),
            ("B", "transform", {"expression": "data.value * 2"}),
            ("C", "filter", {"type": "array", "condition": "summer"}),
        ],
        [("A", "B"), ("B", "C")],
    )
    with pytest.raises(StepExecutionError) as excinfo:
        executor.run(graph)

    error = excinfo.value
    assert isinstance(error, MissingConfigError)
    assert error.step_id == "A"
    assert error.label == "A"
    assert str(error) == "Error executing step A (A): URL is required for HTTP request step"
    assert http_client.requests == []


def test_transport_error_is_attributed():
    client = FakeHttpClient({"https://down.test": HttpResponse(None, 0, error="connection refused")})
    executor = WorkflowExecutor(registry=build_registry(http_client=client))
    graph = make_graph([("get", "http_request", {"url": "https://down.test"})])

    with pytest.raises(TransportError) as excinfo:
        executor.run(graph)
    assert excinfo.value.step_id == "get"
    assert "HTTP request failed: connection refused" in str(excinfo.value)


def test_unknown_kind_fails_at_dispatch(executor):
    graph = make_graph([("ok", "transform", {"expression": "1"}), ("odd", "teleport", {})])
    with pytest.raises(UnknownStepKindError) as excinfo:
        executor.run(graph)
    assert excinfo.value.step_id == "odd"
    assert excinfo.value.kind == "teleport"


def test_cycle_fails_before_any_step_runs(http_client):
    executor = WorkflowExecutor(registry=build_registry(http_client=http_client))
    graph = make_graph(
        [
            ("a", "http_request", {"url": "https://a.test"}),
            ("b", "http_request", {"url": "https://b.test"}),
        ],
        [("a", "b"), ("b", "a")],
    )
    with pytest.raises(CyclicGraphError):
        executor.run(graph)
    assert http_client.requests == []


def test_unexpected_executor_errors_are_wrapped():
    class ExplodingExecutor(StepExecutor):
        kind = StepKind.TRANSFORM

        def execute(self, step, resolved_input, context):
            raise ZeroDivisionError("boom")

    registry = StepRegistry([HttpRequestExecutor(FakeHttpClient()), ExplodingExecutor(), FilterExecutor()])
    executor = WorkflowExecutor(registry=registry)

    with pytest.raises(StepExecutionError) as excinfo:
        executor.run(make_graph([("x", "transform", {})]))
    assert isinstance(excinfo.value.cause, ZeroDivisionError)
    assert isinstance(excinfo.value.__cause__, ZeroDivisionError)


def test_independent_steps_run_concurrently():
    barrier = threading.Barrier(2, timeout=5)

    class WaitingHttpClient(FakeHttpClient):
        def request(self, method, url, headers=None, body=None):
            barrier.wait()
            return super().request(method, url, headers, body)

    executor = WorkflowExecutor(registry=build_registry(http_client=WaitingHttpClient()), max_workers=2)
    graph = make_graph([
        ("a", "http_request", {"url": "https://a.test"}),
        ("b", "http_request", {"url": "https://b.test"}),
    ])
    results = executor.run(graph)
    assert results == {"a": {"url": "https://a.test"}, "b": {"url": "https://b.test"}}


def test_results_are_recorded_in_schedule_order(executor):
    graph = make_graph(
        [("b", "transform", {"expression": "2"}), ("a", "transform", {"expression": "1"})],
    )
    result = executor.execute_workflow(graph)
    assert result.order == ["b", "a"]
    assert list(result.results) == ["b", "a"]
    assert result.total_steps == 2


def test_empty_graph_returns_empty_results(executor):
    assert executor.run(make_graph([])) == {}


def test_failing_sibling_aborts_parallel_level(http_client):
    executor = WorkflowExecutor(registry=build_registry(http_client=http_client), max_workers=2)
    graph = make_graph(
        [
            ("ok", "http_request", {"url": "https://ok.test"}),
            ("bad", "http_request", {"url": ""}),
            ("after", "http_request", {"url": "https://after.test"}),
        ],
        [("ok", "after"), ("bad", "after")],
    )
    with pytest.raises(MissingConfigError) as excinfo:
        executor.run(graph)

    assert excinfo.value.step_id == "bad"
    assert "https://after.test" not in [r["url"] for r in http_client.requests]


def test_parallel_failure_stops_every_later_level(http_client):
    executor = WorkflowExecutor(registry=build_registry(http_client=http_client), max_workers=2)
    graph = make_graph(
        [
            ("left", "transform", {"expression": "1"}),
            ("broken", "transform", {"expression": "missing + 1"}),
            ("next", "http_request", {"url": "https://next.test"}),
            ("last", "http_request", {"url": "https://last.test"}),
        ],
        [("left", "next"), ("next", "last")],
    )
    with pytest.raises(TransformEvaluationError) as excinfo:
        executor.run(graph)

    assert excinfo.value.step_id == "broken"
    assert http_client.requests == []


def test_dangling_connection_does_not_create_fan_in(executor):
    graph = make_graph(
        [
            ("a", "transform", {"expression": "7"}),
            ("b", "transform", {"expression": "data + 1"}),
        ],
        [("a", "b"), ("ghost", "b")],
    )
    assert executor.run(graph) == {"a": 7, "b": 8}


def test_host_arithmetic_failure_is_a_transform_error(executor):
    graph = make_graph([("calc", "transform", {"expression": "1e400 % 2"})])
    with pytest.raises(TransformEvaluationError) as excinfo:
        executor.run(graph)
    assert excinfo.value.step_id == "calc"

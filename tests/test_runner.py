"""Tests for the tool-calling chat loop."""

from __future__ import annotations

import time

import pytest

from fakes import ScriptedTransport, chat_payload, ok, raw, tool_call
from gptclient.chat import ChatCompletionRequest, ResponseFormat, ToolChoice
from gptclient.errors import (
    ConfigurationError,
    IterationLimitError,
    RateLimitError,
    RequestCanceledError,
    RequestRejectedError,
    ResponseUnusableError,
)
from gptclient.runner import ChatCompletionRunner, format_tool_calls
from gptclient.schema import ObjectSchema, StringSchema
from gptclient.tools import ToolDefinition


def _recording_tool(name, calls, output=None, delay=0.0):
    def callback(context):
        if delay:
            time.sleep(delay)
        calls.append((name, context.tool_call_id, context.arguments))
        return output if output is not None else f"{name} done"

    return ToolDefinition(
        name=name,
        description=f"{name} tool",
        callback=callback,
        parameters=ObjectSchema().with_property("city", StringSchema("City name"), required=False),
    )


def _request(*tools, **options):
    return ChatCompletionRequest(
        model="gpt-4o-mini",
        messages=({"role": "system", "content": "be brief"}, {"role": "user", "content": "weather?"}),
        tools=tools,
        **options,
    )


def test_loop_converges_after_two_tool_rounds(make_client):
    calls = []
    weather = _recording_tool("weather", calls)
    time_tool = _recording_tool("time", calls)
    transport = ScriptedTransport(
        ok(chat_payload(tool_calls=[tool_call("c1", "weather", {"city": "Oslo"}), tool_call("c2", "time")])),
        ok(chat_payload(tool_calls=[tool_call("c3", "weather", {"city": "Rome"})])),
        ok(chat_payload(content="Sunny everywhere")),
    )

    response = make_client(transport).chat(_request(weather, time_tool))

    assert response.content == "Sunny everywhere"
    assert transport.calls == 3
    assert calls == [
        ("weather", "c1", {"city": "Oslo"}),
        ("time", "c2", {}),
        ("weather", "c3", {"city": "Rome"}),
    ]


def test_iteration_cap_raises_after_exactly_cap_calls(make_client):
    calls = []
    transport = ScriptedTransport(ok(chat_payload(tool_calls=[tool_call("c", "weather")])))

    with pytest.raises(IterationLimitError) as excinfo:
        make_client(transport).chat(_request(_recording_tool("weather", calls)))

    assert excinfo.value.max_turns == 4
    assert transport.calls == 4
    assert len(calls) == 4


def test_iteration_cap_is_configurable(make_client):
    transport = ScriptedTransport(ok(chat_payload(tool_calls=[tool_call("c", "weather")])))
    client = make_client(transport, max_tool_turns=2)

    with pytest.raises(IterationLimitError):
        client.chat(_request(_recording_tool("weather", [])))

    assert transport.calls == 2


def test_refusal_short_circuits(make_client):
    calls = []
    transport = ScriptedTransport(
        ok(chat_payload(tool_calls=[tool_call("c", "weather")], refusal="I won't")),
        ok(chat_payload(content="never sent")),
    )

    response = make_client(transport).chat(_request(_recording_tool("weather", calls)))

    assert response.refusal == "I won't"
    assert transport.calls == 1
    assert calls == []


def test_unknown_tool_is_unusable_and_runs_no_callback(make_client):
    calls = []
    transport = ScriptedTransport(
        ok(chat_payload(tool_calls=[tool_call("c1", "weather"), tool_call("c2", "launch_rockets")]))
    )

    with pytest.raises(ResponseUnusableError) as excinfo:
        make_client(transport).chat(_request(_recording_tool("weather", calls)))

    assert excinfo.value.tool_name == "launch_rockets"
    assert calls == []
    assert transport.calls == 1


@pytest.mark.parametrize("arguments", ["{not json", "[1, 2]", ""])
def test_unparsable_arguments_are_unusable(make_client, arguments):
    calls = []
    transport = ScriptedTransport(ok(chat_payload(tool_calls=[tool_call("c1", "weather", arguments)])))

    with pytest.raises(ResponseUnusableError) as excinfo:
        make_client(transport).chat(_request(_recording_tool("weather", calls)))

    assert excinfo.value.tool_name == "weather"
    assert "weather" in str(excinfo.value)
    assert calls == []


def test_missing_tool_call_array_is_unusable(make_client):
    transport = ScriptedTransport(ok(chat_payload(finish_reason="tool_calls")))

    with pytest.raises(ResponseUnusableError):
        make_client(transport).chat(_request(_recording_tool("weather", [])))


def test_error_body_is_rejected(make_client):
    transport = ScriptedTransport(ok({"error": {"message": "bad things"}}))

    with pytest.raises(RequestRejectedError, match="bad things"):
        make_client(transport).chat(_request())


@pytest.mark.parametrize("workers", [1, 3])
def test_tool_messages_keep_invocation_order(make_client, workers):
    calls = []
    tools = [
        _recording_tool("a", calls, delay=0.03),
        _recording_tool("b", calls, delay=0.0),
        _recording_tool("c", calls, delay=0.01),
    ]
    transport = ScriptedTransport(
        ok(chat_payload(tool_calls=[tool_call("id-a", "a"), tool_call("id-b", "b"), tool_call("id-c", "c")])),
        ok(chat_payload(content="done")),
    )

    make_client(transport).chat(_request(*tools), max_tool_workers=workers)

    follow_up = transport.bodies()[1]["messages"]
    tool_messages = [msg for msg in follow_up if msg["role"] == "tool"]
    assert [msg["tool_call_id"] for msg in tool_messages] == ["id-a", "id-b", "id-c"]
    assert [msg["content"] for msg in tool_messages] == ["a done", "b done", "c done"]


def test_next_request_clones_configuration_and_extends_messages(make_client):
    weather = _recording_tool("weather", [], output="12C")
    schema = ObjectSchema().with_property("answer", StringSchema())
    initial = _request(
        weather,
        temperature=0.2,
        top_p=0.9,
        seed=7,
        stop=("END",),
        tool_choice=ToolChoice.AUTO,
        parallel_tool_calls=True,
        response_format=ResponseFormat.json_schema("Answer", schema),
        metadata={"run": "1"},
    )
    assistant = chat_payload(tool_calls=[tool_call("c1", "weather", {"city": "Oslo"})])
    transport = ScriptedTransport(ok(assistant), ok(chat_payload(content='{"answer": "12C"}')))

    response = make_client(transport).chat(initial)

    first, second = transport.bodies()
    assert {k: v for k, v in first.items() if k != "messages"} == {k: v for k, v in second.items() if k != "messages"}
    assert second["messages"][: len(first["messages"])] == first["messages"]
    appended = second["messages"][len(first["messages"]):]
    assert appended[0] == assistant["choices"][0]["message"]
    assert appended[1:] == [{"role": "tool", "tool_call_id": "c1", "content": "12C"}]
    assert response.request.temperature == 0.2
    assert response.request.messages == tuple(second["messages"])
    assert response.parsed() == {"answer": "12C"}
    assert initial.messages == tuple(first["messages"])


def test_backoff_mode_retries_inside_a_turn(make_client, sleeps):
    transport = ScriptedTransport(raw(429, {}), ok(chat_payload(content="hi")))

    response = make_client(transport).chat(_request(), use_backoff=True)

    assert response.content == "hi"
    assert transport.calls == 2
    assert sleeps == [0.1]


def test_plain_mode_surfaces_retryable_status(make_client, sleeps):
    transport = ScriptedTransport(raw(429, {}), ok(chat_payload(content="hi")))

    with pytest.raises(RateLimitError):
        make_client(transport).chat(_request())

    assert sleeps == []


def test_cancellation_is_checked_before_each_turn(make_client):
    state = {"turns": 0}

    def callback(context):
        state["turns"] += 1
        return "ok"

    tool = ToolDefinition(name="weather", description="w", callback=callback)
    transport = ScriptedTransport(ok(chat_payload(tool_calls=[tool_call("c", "weather")])))
    request = _request(tool, is_canceled=lambda: state["turns"] >= 1)

    with pytest.raises(RequestCanceledError):
        make_client(transport).chat(request)

    assert transport.calls == 1


def test_callback_exceptions_propagate(make_client):
    def explode(context):
        raise RuntimeError("tool broke")

    tool = ToolDefinition(name="weather", description="w", callback=explode)
    transport = ScriptedTransport(ok(chat_payload(tool_calls=[tool_call("c", "weather")])))

    with pytest.raises(RuntimeError, match="tool broke"):
        make_client(transport).chat(_request(tool))


def test_tool_result_dicts_are_reduced_to_output(make_client):
    tool = ToolDefinition(name="weather", description="w", callback=lambda ctx: {"output": "rainy", "error": False})
    transport = ScriptedTransport(
        ok(chat_payload(tool_calls=[tool_call("c", "weather")])),
        ok(chat_payload(content="bring an umbrella")),
    )

    make_client(transport).chat(_request(tool))

    assert transport.bodies()[1]["messages"][-1]["content"] == "rainy"


def test_duplicate_tool_names_fail_before_sending(make_client):
    transport = ScriptedTransport(ok(chat_payload(content="unused")))
    first = _recording_tool("weather", [])
    second = _recording_tool("weather", [])

    with pytest.raises(ConfigurationError, match="weather"):
        make_client(transport).chat(_request(first, second))

    assert transport.calls == 0


def test_runner_can_be_driven_by_any_sender():
    class Sender:
        def __init__(self):
            self.requests = []

        def send(self, request, use_backoff=False, guard=None):
            self.requests.append((request, use_backoff))
            return request.create_response(chat_payload(content="direct"))

    sender = Sender()
    response = ChatCompletionRunner(sender).submit(_request(), use_backoff=True)

    assert response.content == "direct"
    assert sender.requests[0][1] is True


def test_runner_rejects_non_positive_turn_cap():
    with pytest.raises(ValueError):
        ChatCompletionRunner(sender=None, max_turns=0)


def test_format_tool_calls():
    from gptclient.types import ToolInvocation

    invocations = [ToolInvocation("1", "view", "{}"), ToolInvocation("2", "grep", "{}")]
    assert format_tool_calls(invocations) == "view, grep"


def test_parallel_failure_skips_callbacks_not_yet_started(make_client):
    ran = []

    def explode(context):
        raise RuntimeError("a broke")

    def slow(context):
        time.sleep(0.05)
        ran.append(context.tool_name)
        return "ok"

    def quick(context):
        ran.append(context.tool_name)
        return "ok"

    tools = [
        ToolDefinition(name="a", description="a", callback=explode),
        ToolDefinition(name="b", description="b", callback=slow),
        ToolDefinition(name="c", description="c", callback=quick),
    ]
    transport = ScriptedTransport(
        ok(chat_payload(tool_calls=[tool_call("id-a", "a"), tool_call("id-b", "b"), tool_call("id-c", "c")]))
    )

    with pytest.raises(RuntimeError, match="a broke"):
        make_client(transport).chat(_request(*tools), max_tool_workers=2)

    assert ran == ["b"]
    assert transport.calls == 1


def test_failed_tool_results_are_marked_as_errors(make_client):
    tool = ToolDefinition(
        name="weather",
        description="w",
        callback=lambda ctx: {"output": "station offline", "error": True},
    )
    transport = ScriptedTransport(
        ok(chat_payload(tool_calls=[tool_call("c", "weather")])),
        ok(chat_payload(content="no data")),
    )

    make_client(transport).chat(_request(tool))

    assert transport.bodies()[1]["messages"][-1]["content"] == "error: station offline"

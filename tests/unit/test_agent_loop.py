import json
import re
import time

import pytest

from agent_runtime.core.agent import CORRECTION_PROMPT, Agent
from agent_runtime.core.context import RunContext
from agent_runtime.core.errors import (
    ConfigurationError,
    GenerationError,
    MaxTurnsExceededError,
    ProtocolError,
    RunCancelledError,
    SerializationError,
)
from agent_runtime.core.models import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    AgentDescriptor,
    ModelInput,
    ModelOutput,
    TaskHistory,
)
from agent_runtime.tools.registry import ToolRegistry, ToolSpec
from agent_runtime.tools.schemas import GetCurrentTimeInput, GetCurrentTimeOutput
from tests.support import ScriptedChatModel, agent_call_reply, final_reply, tool_call_reply


def _agent(model: ScriptedChatModel, registry: ToolRegistry, **kwargs) -> Agent:
    return Agent(name="assistant", model=model, registry=registry, context="Be helpful.", **kwargs)


def _user_input(text: str) -> ModelInput:
    return ModelInput(session_key="session-1", text=text)


def test_final_response_completes_task(registry: ToolRegistry, ctx: RunContext) -> None:
    model = ScriptedChatModel([final_reply("  Hello there  ")])
    history = TaskHistory.new(1)

    output = _agent(model, registry).run(ctx, history, _user_input("hi"))

    assert output.text == "Hello there"
    assert output.stats.total_token_count == 15
    assert history.status == STATUS_COMPLETED
    assert history.stats.total_token_count == 15
    assert len(model.calls) == 1
    assert [turn.role for turn in history.contents] == ["user", "assistant"]
    assert history.contents[0].content == "<user_input>hi</user_input>"


def test_in_progress_status_is_recorded(registry: ToolRegistry, ctx: RunContext) -> None:
    model = ScriptedChatModel([final_reply("Which city?", status="in_progress")])
    history = TaskHistory.new(1)

    _agent(model, registry).run(ctx, history, _user_input("weather please"))

    assert history.status == STATUS_IN_PROGRESS


def test_single_tool_call_runs_once_and_recurses(ctx: RunContext) -> None:
    executions = []

    def clock(run_ctx, payload):
        executions.append(payload.location)
        return GetCurrentTimeOutput(current_time="2024-01-01T00:00:00+00:00")

    registry = ToolRegistry(
        [
            ToolSpec(
                name="get_current_time",
                description="get current time",
                input_model=GetCurrentTimeInput,
                output_model=GetCurrentTimeOutput,
                fn=clock,
            )
        ]
    )
    model = ScriptedChatModel(
        [
            tool_call_reply("get_current_time", '{"location": "UTC"}'),
            final_reply("It is midnight."),
        ]
    )
    history = TaskHistory.new(1)

    output = _agent(model, registry, tools=["get_current_time"]).run(
        ctx, history, _user_input("time?")
    )

    assert executions == ["UTC"]
    assert output.text == "It is midnight."
    assert [turn.role for turn in history.contents] == ["user", "assistant", "user", "assistant"]
    feedback = history.contents[2].content
    assert feedback.startswith("<tool_result>") and feedback.endswith("</tool_result>")
    results = json.loads(feedback[len("<tool_result>") : -len("</tool_result>")])
    assert results == [
        {
            "name": "get_current_time",
            "output": '{"current_time":"2024-01-01T00:00:00+00:00"}',
        }
    ]
    # The feedback round sends no new input; the results are already in history.
    assert model.calls[1]["input"].text == ""
    assert model.calls[1]["history"][-1].content == feedback


def test_time_in_utc_scenario(registry: ToolRegistry, ctx: RunContext) -> None:
    def answer_with_time(transcript):
        body = transcript[-1].content[len("<tool_result>") : -len("</tool_result>")]
        tool_output = json.loads(json.loads(body)[0]["output"])
        return final_reply(f"The time is {tool_output['current_time']}")

    model = ScriptedChatModel(
        [tool_call_reply("get_current_time", '{"location":"UTC"}'), answer_with_time]
    )
    history = TaskHistory.new(1)

    output = _agent(model, registry, tools=["get_current_time"]).run(
        ctx, history, _user_input("What's the time in UTC?")
    )

    assert re.search(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\+00:00", output.text)
    assert history.status == STATUS_COMPLETED
    assert len(model.calls) == 2


def test_tool_error_is_fed_back_instead_of_aborting(ctx: RunContext) -> None:
    def broken(run_ctx, payload):
        raise RuntimeError("clock is broken")

    registry = ToolRegistry(
        [
            ToolSpec(
                name="get_current_time",
                description="",
                input_model=GetCurrentTimeInput,
                output_model=GetCurrentTimeOutput,
                fn=broken,
            )
        ]
    )
    model = ScriptedChatModel([tool_call_reply("get_current_time"), final_reply("Sorry.")])
    history = TaskHistory.new(1)

    output = _agent(model, registry, tools=["get_current_time"]).run(
        ctx, history, _user_input("time?")
    )

    assert output.text == "Sorry."
    assert '"output": "error: clock is broken"' in history.contents[2].content


def test_timed_out_tool_finishes_before_next_tool_starts(ctx: RunContext) -> None:
    events = []

    def slow(run_ctx, payload):
        time.sleep(0.3)
        events.append("slow_end")
        return GetCurrentTimeOutput(current_time="late")

    def fast(run_ctx, payload):
        events.append("fast_start")
        return GetCurrentTimeOutput(current_time="now")

    registry = ToolRegistry(
        [
            ToolSpec(
                name=name,
                description="",
                input_model=GetCurrentTimeInput,
                output_model=GetCurrentTimeOutput,
                fn=fn,
            )
            for name, fn in (("slow", slow), ("fast", fast))
        ]
    )
    model = ScriptedChatModel(
        [
            tool_call_reply("slow") + "\n" + tool_call_reply("fast"),
            final_reply("done"),
        ]
    )
    history = TaskHistory.new(1)

    _agent(model, registry, tools=["slow", "fast"], tool_timeout_s=0.05).run(
        ctx, history, _user_input("go")
    )

    assert events == ["slow_end", "fast_start"]
    feedback = history.contents[2].content
    results = json.loads(feedback[len("<tool_result>") : -len("</tool_result>")])
    assert results == [
        {"name": "slow", "output": "Tool 'slow' timed out after 0.05s"},
        {"name": "fast", "output": '{"current_time":"now"}'},
    ]


def test_unknown_tool_call_is_fed_back(registry: ToolRegistry, ctx: RunContext) -> None:
    model = ScriptedChatModel([tool_call_reply("teleport"), final_reply("Cannot do that.")])
    history = TaskHistory.new(1)

    _agent(model, registry).run(ctx, history, _user_input("beam me up"))

    assert "tool teleport not found" in history.contents[2].content


def test_unregistered_agent_is_fed_back(registry: ToolRegistry, ctx: RunContext) -> None:
    model = ScriptedChatModel(
        [agent_call_reply("ghost", "help me"), final_reply("No such helper.")]
    )
    history = TaskHistory.new(1)

    output = _agent(model, registry).run(ctx, history, _user_input("delegate"))

    assert output.text == "No such helper."
    feedback = history.contents[2].content
    assert feedback.startswith("<agent_result>")
    body = json.loads(feedback[len("<agent_result>") : -len("</agent_result>")])
    assert body == [{"name": "ghost", "output": "agent ghost not found"}]


def test_tool_results_take_priority_over_agent_results(
    registry: ToolRegistry, ctx: RunContext
) -> None:
    calls = []

    def handler(run_ctx, name, history, payload):
        calls.append(name)
        return ModelOutput(text="sub")

    model = ScriptedChatModel(
        [
            tool_call_reply("get_current_time") + agent_call_reply("helper", "x"),
            final_reply("done"),
        ]
    )
    history = TaskHistory.new(1)
    agent = _agent(
        model,
        registry,
        tools=["get_current_time"],
        agents=[AgentDescriptor(name="helper", description="")],
        agent_handler=handler,
    )

    agent.run(ctx, history, _user_input("go"))

    assert calls == ["helper"]
    assert history.contents[2].content.startswith("<tool_result>")
    assert not any(turn.content.startswith("<agent_result>") for turn in history.contents)


def test_missing_status_raises_protocol_error(registry: ToolRegistry, ctx: RunContext) -> None:
    model = ScriptedChatModel(["<response>half done</response>"])
    history = TaskHistory.new(1)
    history.status = "in_progress"

    with pytest.raises(ProtocolError) as exc_info:
        _agent(model, registry).run(ctx, history, _user_input("hi"))

    assert str(exc_info.value) == "error processing your request, please try again later"
    assert "task_status" in exc_info.value.detail
    assert history.status == "in_progress"
    # Turns recorded earlier in the round are kept.
    assert len(history.contents) == 2


def test_repeated_task_status_uses_the_last_one(registry: ToolRegistry, ctx: RunContext) -> None:
    model = ScriptedChatModel(
        [
            "<response>Part one</response><task_status>in_progress</task_status>\n"
            "<response>Part two</response><task_status>completed</task_status>"
        ]
    )
    history = TaskHistory.new(1)

    output = _agent(model, registry).run(ctx, history, _user_input("hi"))

    assert output.text == "Part one\nPart two"
    assert history.status == STATUS_COMPLETED


def test_unknown_status_raises_protocol_error(registry: ToolRegistry, ctx: RunContext) -> None:
    model = ScriptedChatModel([final_reply("ok", status="maybe")])

    with pytest.raises(ProtocolError):
        _agent(model, registry).run(ctx, TaskHistory.new(1), _user_input("hi"))


def test_missing_response_triggers_correction(registry: ToolRegistry, ctx: RunContext) -> None:
    model = ScriptedChatModel(["I forgot the tags", final_reply("fixed")])
    history = TaskHistory.new(1)

    output = _agent(model, registry).run(ctx, history, _user_input("hi"))

    assert output.text == "fixed"
    assert model.calls[1]["input"].text == CORRECTION_PROMPT
    assert history.contents[2].content == CORRECTION_PROMPT


def test_corrections_are_bounded(registry: ToolRegistry, ctx: RunContext) -> None:
    model = ScriptedChatModel(["no tags"] * 3)

    with pytest.raises(ProtocolError):
        _agent(model, registry, max_corrections=2).run(
            ctx, TaskHistory.new(1), _user_input("hi")
        )

    assert len(model.calls) == 3


def test_max_turns_exceeded(registry: ToolRegistry, ctx: RunContext) -> None:
    model = ScriptedChatModel([tool_call_reply("get_current_time")] * 3)

    with pytest.raises(MaxTurnsExceededError, match="exceeded max turns"):
        _agent(model, registry, tools=["get_current_time"], max_turns=3).run(
            ctx, TaskHistory.new(1), _user_input("loop")
        )

    assert len(model.calls) == 3


def test_generation_failure_propagates(registry: ToolRegistry, ctx: RunContext) -> None:
    model = ScriptedChatModel([RuntimeError("backend down")])
    history = TaskHistory.new(1)

    with pytest.raises(GenerationError, match="backend down"):
        _agent(model, registry).run(ctx, history, _user_input("hi"))

    assert history.contents == []


def test_malformed_parameters_abort_the_round(registry: ToolRegistry, ctx: RunContext) -> None:
    model = ScriptedChatModel([tool_call_reply("get_current_time", "{oops")])

    with pytest.raises(SerializationError):
        _agent(model, registry, tools=["get_current_time"]).run(
            ctx, TaskHistory.new(1), _user_input("hi")
        )


def test_cancelled_run_stops_before_model_call(registry: ToolRegistry) -> None:
    ctx = RunContext(session_key="session-1")
    ctx.cancel()
    model = ScriptedChatModel([final_reply("never")])

    with pytest.raises(RunCancelledError):
        _agent(model, registry).run(ctx, TaskHistory.new(1), _user_input("hi"))

    assert model.calls == []


def test_unknown_tool_fails_agent_construction(registry: ToolRegistry) -> None:
    with pytest.raises(ConfigurationError):
        _agent(ScriptedChatModel(), registry, tools=["does_not_exist"])


def test_previous_task_turns_are_sent_but_not_copied(
    registry: ToolRegistry, ctx: RunContext
) -> None:
    previous = TaskHistory.new(1)
    previous.append("user", "<user_input>earlier</user_input>")
    previous.append("assistant", final_reply("earlier answer"))
    history = TaskHistory.new(2)
    history.set_previous_task(previous)
    model = ScriptedChatModel([final_reply("now")])

    _agent(model, registry).run(ctx, history, _user_input("again"))

    assert [turn.content for turn in model.calls[0]["history"]] == [
        "<user_input>earlier</user_input>",
        final_reply("earlier answer"),
    ]
    assert len(history.contents) == 2


def test_labels_are_applied_to_context(registry: ToolRegistry, ctx: RunContext) -> None:
    model = ScriptedChatModel([final_reply("ok")])
    agent = Agent(
        name="greeter",
        model=model,
        registry=registry,
        context="Greet {{user_name}} politely.",
    )
    payload = ModelInput(session_key="s", text="hi", labels={"user_name": "Ada"})

    agent.run(ctx, TaskHistory.new(1), payload)

    assert "Greet Ada politely." in model.calls[0]["system_prompt"]

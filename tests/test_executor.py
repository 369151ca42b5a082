"""Tests for the ReAct executor: loop termination, conversation shape and step bookkeeping."""

import io

import pytest

from moles.errors import LLMError
from moles.executor import Executor, StepOutcome
from moles.models import Plan, PlanStep, StepStatus
from moles.reporter import Reporter
from moles.state import StateManager

from tests.fixtures import FakeLLMClient, text_response, tool_response


def _executor(client, memory, registry, **kwargs):
    kwargs.setdefault("reporter", Reporter(stream=io.StringIO()))
    return Executor(client=client, memory=memory, tools=registry, **kwargs)


def _step(step_id=1, target="index.ts"):
    return PlanStep(id=step_id, action="Analyze entry point", target=target, reason="Main entry")


# ---------------------------------------------------------------------------
# Inner loop
# ---------------------------------------------------------------------------

class TestExecuteStep:

    def test_clean_stop(self, memory, registry):
        client = FakeLLMClient([
            tool_response(("read_file", {"path": "index.ts"})),
            text_response("index.ts re-exports parse through main."),
        ])
        outcome = _executor(client, memory, registry).execute_step(_step())

        assert outcome == StepOutcome.CLEAN_STOP
        assert len(client.calls) == 2
        assert memory.codebase_understanding == "[index.ts] index.ts re-exports parse through main."

    def test_always_tool_calling_gateway_hits_cap(self, memory, registry):
        client = FakeLLMClient(default=tool_response(("list_files", {"path": "."})))
        outcome = _executor(client, memory, registry, max_react_iterations=5).execute_step(_step())

        assert outcome == StepOutcome.CAP_EXHAUSTED
        assert len(client.calls) == 5

    def test_length_finish_is_not_a_stop(self, memory, registry):
        client = FakeLLMClient([
            text_response("partial thought", finish_reason="length"),
            text_response("done"),
        ])
        outcome = _executor(client, memory, registry).execute_step(_step())

        assert outcome == StepOutcome.CLEAN_STOP
        assert len(client.calls) == 2
        second_call = client.calls[1]["messages"]
        assert [m.role for m in second_call] == ["user", "assistant"]
        assert second_call[1].content == "partial thought"

    def test_conversation_shape_after_tool_call(self, memory, registry):
        client = FakeLLMClient([
            tool_response(
                ("read_file", {"path": "lib/parse.ts"}),
                ("add_insight", {"insight": "Parsing is a pure function"}),
                content="Let me look at the parser.",
            ),
            text_response("Done."),
        ])
        _executor(client, memory, registry).execute_step(_step())

        messages = client.calls[1]["messages"]
        assert [m.role for m in messages] == ["user", "assistant", "tool", "tool"]
        assert messages[1].content == "Let me look at the parser."
        assert [tc["id"] for tc in messages[1].tool_calls] == ["call_1", "call_2"]
        assert messages[2].tool_call_id == "call_1"
        assert "export function parse" in messages[2].content
        assert messages[3].content == '"Insight recorded: Parsing is a pure function"'
        assert memory.insights == ["Parsing is a pure function"]

    def test_tool_errors_stay_in_conversation(self, memory, registry):
        client = FakeLLMClient([
            tool_response(("drop_tables", {})),
            tool_response(("read_file", {"path": "../../etc/passwd"})),
            text_response("Nothing to read."),
        ])
        outcome = _executor(client, memory, registry).execute_step(_step())

        assert outcome == StepOutcome.CLEAN_STOP
        observations = [m.content for m in client.calls[2]["messages"] if m.role == "tool"]
        assert observations[0] == "Error: Unknown tool: drop_tables"
        assert observations[1].startswith("Error: Path escapes the project root")

    def test_tool_catalog_sent_every_turn(self, memory, registry):
        client = FakeLLMClient([tool_response(("list_files", {"path": "."})), text_response("ok")])
        _executor(client, memory, registry).execute_step(_step())

        for call in client.calls:
            names = {t["function"]["name"] for t in call["tools"]}
            assert "write_doc" in names

    def test_gateway_error_propagates(self, memory, registry):
        class BrokenClient:
            def chat(self, messages, tools=None):
                raise LLMError("connection refused")

        with pytest.raises(LLMError):
            _executor(BrokenClient(), memory, registry).execute_step(_step())


class TestStepPrompt:

    def test_prompt_contents(self, memory, registry):
        memory.add_insight("Uses ES modules")
        prompt = _executor(FakeLLMClient(), memory, registry).build_step_prompt(_step())

        assert "Action: Analyze entry point" in prompt
        assert "Target: index.ts" in prompt
        assert "Reason: Main entry" in prompt
        assert "Uses ES modules" in prompt
        assert "write_doc" in prompt
        assert "Write all documentation in" not in prompt

    def test_language_directive(self, memory, registry):
        executor = _executor(FakeLLMClient(), memory, registry, language="French")
        assert "Write all documentation in French." in executor.build_step_prompt(_step())

    def test_summary_budget_applied(self, memory, registry):
        for i in range(200):
            memory.add_insight(f"insight number {i} " + "x" * 40)
        executor = _executor(FakeLLMClient(), memory, registry, summary_budget=500)
        prompt = executor.build_step_prompt(_step())
        assert "insight number 0 " not in prompt
        assert "insight number 199" in prompt


# ---------------------------------------------------------------------------
# Outer loop
# ---------------------------------------------------------------------------

class TestExecutePlan:

    def _plan(self):
        return Plan(overview="o", steps=[_step(1, "index.ts"), _step(2, "lib/parse.ts"), _step(3, "lib")])

    def test_all_steps_completed(self, memory, registry):
        plan = self._plan()
        client = FakeLLMClient(default=text_response("ok"))
        _executor(client, memory, registry).execute(plan)

        assert [s.status for s in plan.steps] == [StepStatus.COMPLETED] * 3
        assert plan.cursor == 3
        assert plan.is_finished()
        assert len(client.calls) == 3

    def test_skipped_steps_not_entered(self, memory, registry):
        plan = self._plan()
        plan.skip_step(2)
        client = FakeLLMClient(default=text_response("ok"))
        _executor(client, memory, registry).execute(plan)

        assert plan.steps[1].status == StepStatus.SKIPPED
        assert len(client.calls) == 2
        assert all("lib/parse.ts" not in c["messages"][0].content.split("## Current Plan Step")[1]
                   for c in client.calls)

    def test_steps_before_cursor_not_reentered(self, memory, registry):
        plan = self._plan()
        plan.steps[0].status = StepStatus.COMPLETED
        plan.cursor = 1
        client = FakeLLMClient(default=text_response("ok"))
        _executor(client, memory, registry).execute(plan)

        assert len(client.calls) == 2

    def test_cap_exhausted_step_still_completed(self, memory, registry):
        plan = Plan(overview="o", steps=[_step()])
        client = FakeLLMClient(default=tool_response(("list_files", {"path": "."})))
        _executor(client, memory, registry, max_react_iterations=3).execute(plan)

        assert plan.steps[0].status == StepStatus.COMPLETED

    def test_failed_step_stays_in_progress(self, memory, registry):
        plan = self._plan()

        class FailSecond:
            calls = 0

            def chat(self, messages, tools=None):
                FailSecond.calls += 1
                if FailSecond.calls == 2:
                    raise LLMError("boom")
                return text_response("ok")

        with pytest.raises(LLMError):
            _executor(FailSecond(), memory, registry).execute(plan)

        assert plan.steps[0].status == StepStatus.COMPLETED
        assert plan.steps[1].status == StepStatus.IN_PROGRESS
        assert plan.cursor == 1

    def test_state_flushed_after_each_step(self, memory, registry, target_repo):
        state = StateManager(target_repo)
        state.initialize()
        plan = self._plan()
        client = FakeLLMClient(default=text_response("ok"))
        _executor(client, memory, registry, state=state).execute(plan)

        assert "✅ Step 3" in state.plan_path.read_text()
        assert "[index.ts] ok" in state.memory_path.read_text()
        log = state.log_path.read_text()
        assert log.count("completed (clean-stop)") == 3

    def test_verbose_trace(self, memory, registry):
        stream = io.StringIO()
        client = FakeLLMClient([
            tool_response(("read_file", {"path": "index.ts"}), content="Reading entry."),
            text_response("ok"),
        ])
        plan = Plan(overview="o", steps=[_step()])
        _executor(client, memory, registry, reporter=Reporter(verbose=True, stream=stream)).execute(plan)

        output = stream.getvalue()
        assert "[Thought] Reading entry." in output
        assert '[Action] read_file({"path": "index.ts"})' in output
        assert "[Observation]" in output

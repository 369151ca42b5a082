"""
Executor: the ReAct (Reason + Act) engine.

For every pending plan step the executor runs a bounded loop:

  1. Thought       the model's free text for this turn
  2. Action        zero or more tool calls
  3. Observation   each tool result, fed back as a ``tool`` message

The loop ends when the model finishes a turn with no tool calls
(``CLEAN_STOP``) or when the iteration cap is reached (``CAP_EXHAUSTED``).
Both outcomes complete the step; hitting the cap is not an error. The
conversation is local to one step and discarded afterwards; only the
Knowledge Store carries knowledge across steps.
"""

import logging
from enum import Enum
from typing import List, Optional

from moles.config import DEFAULT_MAX_REACT_ITERATIONS
from moles.llm_client import LLMClient, LLMResponse, Message
from moles.memory import KnowledgeStore
from moles.models import Plan, PlanStep, StepStatus
from moles.reporter import Reporter
from moles.state import StateManager
from moles.tools import ToolRegistry

logger = logging.getLogger(__name__)

STEP_PROMPT = """You are a code documentation agent. Your task is to analyze code and generate documentation.

## Current Memory
{memory}

## Current Plan Step
- Action: {action}
- Target: {target}
- Reason: {reason}

## Instructions
1. Use the available tools to explore and understand the target
2. When you understand it well enough, use write_doc to save documentation
3. Be thorough but focused on this specific step only
4. When done with this step, stop calling tools and give a short summary of what you learned

Remember:
- Read files to understand their purpose
- Look for patterns, exports, and dependencies
- Call mark_file_analyzed for every file you have understood; skip files already listed in memory
- Record important discoveries with add_insight
- Write clear, helpful documentation
{language}
Begin your analysis."""


class StepOutcome(str, Enum):
    CLEAN_STOP = "clean-stop"
    CAP_EXHAUSTED = "cap-exhausted"


class Executor:
    """Runs the plan's pending steps against the LLM and the tool registry."""

    def __init__(
        self,
        client: LLMClient,
        memory: KnowledgeStore,
        tools: ToolRegistry,
        reporter: Optional[Reporter] = None,
        state: Optional[StateManager] = None,
        max_react_iterations: int = DEFAULT_MAX_REACT_ITERATIONS,
        language: Optional[str] = None,
        summary_budget: Optional[int] = None,
    ):
        self.client = client
        self.memory = memory
        self.tools = tools
        self.reporter = reporter or Reporter()
        self.state = state
        self.max_react_iterations = max_react_iterations
        self.language = language
        self.summary_budget = summary_budget

    def execute(self, plan: Plan) -> None:
        """Run every pending step from the cursor onwards.

        Steps that are not pending (completed or skipped) are passed over.
        Errors from the gateway propagate; the step stays ``in_progress``.
        """
        while plan.cursor < len(plan.steps):
            step = plan.steps[plan.cursor]

            if step.status != StepStatus.PENDING:
                plan.cursor += 1
                continue

            step.status = StepStatus.IN_PROGRESS
            self.reporter.step_start(step.id, step.action, step.target)
            self._flush(plan, f"Step {step.id} started: {step.action} -> {step.target}")

            outcome = self.execute_step(step)

            step.status = StepStatus.COMPLETED
            plan.cursor += 1
            self.reporter.step_complete(step.id, outcome.value)
            self._flush(plan, f"Step {step.id} completed ({outcome.value})")

    def execute_step(self, step: PlanStep) -> StepOutcome:
        """One bounded ReAct loop for a single step."""
        messages: List[Message] = [Message(role="user", content=self.build_step_prompt(step))]
        tool_definitions = self.tools.definitions()

        for iteration in range(1, self.max_react_iterations + 1):
            response = self.client.chat(messages, tool_definitions)

            if response.content:
                self.reporter.thought(response.content)

            if response.tool_calls:
                self._act(messages, response)
            elif response.content:
                messages.append(Message(role="assistant", content=response.content))

            if response.finish_reason == "stop" and not response.tool_calls:
                if response.content:
                    self.memory.add_understanding(f"[{step.target}] {response.content.strip()}")
                logger.debug("Step %d stopped cleanly after %d iterations", step.id, iteration)
                return StepOutcome.CLEAN_STOP

        logger.info("Step %d reached the %d-iteration cap", step.id, self.max_react_iterations)
        return StepOutcome.CAP_EXHAUSTED

    def _act(self, messages: List[Message], response: LLMResponse) -> None:
        """Record the assistant's tool calls and append one observation each."""
        messages.append(Message(
            role="assistant",
            content=response.content,
            tool_calls=response.raw_tool_calls,
        ))

        for call in response.tool_calls:
            self.reporter.action(call.name, call.arguments)
            result = self.tools.execute(call.name, call.arguments)
            observation = result.render()
            messages.append(Message(role="tool", content=observation, tool_call_id=call.id))
            self.reporter.observation(observation, is_error=not result.success)

    def build_step_prompt(self, step: PlanStep) -> str:
        language = ""
        if self.language:
            language = f"- Write all documentation in {self.language}.\n"
        return STEP_PROMPT.format(
            memory=self.memory.get_summary(self.summary_budget) or "(nothing recorded yet)",
            action=step.action,
            target=step.target,
            reason=step.reason,
            language=language,
        )

    def _flush(self, plan: Plan, entry: str) -> None:
        if self.state is None:
            return
        self.state.save_plan(plan)
        self.state.save_memory(self.memory)
        self.state.append_log(entry)

"""Shared test data and helpers for the agent test suite."""

import json
from pathlib import Path
from typing import Any, Dict

from moles.llm_client import LLMResponse, ToolCall


class FakeLLMClient:
    """Gateway double that replays scripted responses.

    ``script`` items are ``LLMResponse`` objects or callables taking the
    message list and returning one. When the script runs out, ``default``
    is returned (or, if unset, the test fails loudly).
    """

    def __init__(self, script=None, default=None):
        self.script = list(script or [])
        self.default = default
        self.calls = []

    def chat(self, messages, tools=None):
        self.calls.append({"messages": list(messages), "tools": tools})
        if self.script:
            item = self.script.pop(0)
        elif self.default is not None:
            item = self.default
        else:
            raise AssertionError(f"Unexpected LLM call #{len(self.calls)}")
        return item(messages) if callable(item) else item


def text_response(content, finish_reason: str = "stop") -> LLMResponse:
    """A model turn with no tool calls."""
    return LLMResponse(content=content, finish_reason=finish_reason)


def tool_response(*calls, content=None) -> LLMResponse:
    """A model turn calling tools. Each call is ``(name, arguments)``."""
    tool_calls = []
    raw = []
    for index, (name, arguments) in enumerate(calls, 1):
        call_id = f"call_{index}"
        tool_calls.append(ToolCall(id=call_id, name=name, arguments=arguments))
        raw.append({
            "id": call_id,
            "type": "function",
            "function": {"name": name, "arguments": json.dumps(arguments)},
        })
    return LLMResponse(
        content=content,
        tool_calls=tool_calls,
        raw_tool_calls=raw,
        finish_reason="tool_calls",
    )


def chat_completion(content=None, tool_calls=None, finish_reason="stop") -> Dict[str, Any]:
    """Raw ``/chat/completions`` body as an OpenAI-compatible server returns it."""
    message: Dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": message, "finish_reason": finish_reason}],
    }


def write_files(root: Path, files: Dict[str, str]) -> Path:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


SAMPLE_PROJECT = {
    "index.ts": (
        "import { parse } from './lib/parse';\n"
        "\n"
        "export function main(input: string) {\n"
        "  return parse(input);\n"
        "}\n"
    ),
    "lib/parse.ts": (
        "export function parse(input: string): string[] {\n"
        "  return input.split(',').map((s) => s.trim());\n"
        "}\n"
    ),
    "package.json": '{"name": "sample", "version": "1.0.0"}\n',
    "README.md": "# Sample\n",
    "node_modules/left-pad/index.js": "module.exports = function () {};\n",
    "tests/parse.test.ts": "test('parse', () => {});\n",
}

SAMPLE_PLAN = {
    "overview": "A tiny TypeScript CLI that splits comma separated input.",
    "steps": [
        {"id": 1, "action": "Analyze entry point", "target": "index.ts", "reason": "Main entry"},
        {"id": 2, "action": "Analyze parser", "target": "lib/parse.ts", "reason": "Core logic"},
    ],
    "focusAreas": ["entry point", "parsing"],
}

SAMPLE_PLAN_TEXT = (
    "Here is the plan you asked for:\n"
    "```json\n" + json.dumps(SAMPLE_PLAN, indent=2) + "\n```\n"
    "Let me know if you need changes."
)

COMPLETE_REFLECTION = json.dumps({
    "isComplete": True,
    "completeness": 90,
    "missingAreas": [],
    "suggestions": [],
    "shouldContinue": False,
})

CONTINUE_REFLECTION = json.dumps({
    "isComplete": False,
    "completeness": 40,
    "missingAreas": ["error handling", "configuration", "cli", "logging"],
    "suggestions": ["Document error paths"],
    "shouldContinue": True,
})

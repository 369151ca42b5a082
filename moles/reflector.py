"""
Reflector: asks the model whether the documentation gathered so far is enough.

Any malformed verdict is replaced by a fixed default that says "complete,
stop". A broken reflector therefore ends the run instead of looping it.
Transport failures from the gateway are not malformed verdicts and propagate.
"""

import logging
from typing import Any, Dict, List

from moles.errors import ResponseParseError
from moles.llm_client import LLMClient, Message
from moles.memory import KnowledgeStore
from moles.models import ReflectionResult
from moles.parsing import extract_json_object

logger = logging.getLogger(__name__)

DEFAULT_COMPLETENESS = 70

REFLECTION_PROMPT = """You are a documentation quality reviewer. Evaluate the following documentation progress and determine if it's complete.

## Directory Structure
{structure}

## Codebase Understanding
{understanding}

## Analyzed Files ({file_count})
{files}

## Generated Documentation Sections ({section_count})
{sections}

## Key Insights
{insights}

## Evaluation Criteria
1. Does the documentation cover the main modules?
2. Is there an overview/architecture section?
3. Are the key APIs documented?
4. Are there any obvious gaps?

## Your Task
Evaluate the documentation and respond with JSON in this exact format:
{{
  "isComplete": boolean,
  "completeness": number (0-100),
  "missingAreas": ["area1", "area2"],
  "suggestions": ["suggestion1", "suggestion2"],
  "shouldContinue": boolean
}}

Guidelines:
- completeness >= 80 and no critical missing areas → isComplete: true
- If important modules are not documented → shouldContinue: true
- Be specific about what's missing
- Max 3 iterations is usually enough for good docs

Respond ONLY with the JSON."""


def default_reflection(reason: str) -> ReflectionResult:
    return ReflectionResult(
        is_complete=True,
        completeness=DEFAULT_COMPLETENESS,
        missing_areas=[],
        suggestions=[reason],
        should_continue=False,
    )


def _string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(item) for item in value if str(item).strip()]
    return []


def _flag(value: Any, default: bool) -> bool:
    """Real booleans pass through; quoted "true"/"false" are honored."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
    return default


def _completeness(value: Any) -> int:
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return DEFAULT_COMPLETENESS
    return max(0, min(100, number))


def reflection_from_json(data: Dict[str, Any]) -> ReflectionResult:
    return ReflectionResult(
        is_complete=_flag(data.get("isComplete"), True),
        completeness=_completeness(data.get("completeness", DEFAULT_COMPLETENESS)),
        missing_areas=_string_list(data.get("missingAreas")),
        suggestions=_string_list(data.get("suggestions")),
        should_continue=_flag(data.get("shouldContinue"), False),
    )


class Reflector:
    """Produces a completeness verdict from the live Knowledge Store."""

    def __init__(self, client: LLMClient):
        self.client = client

    def reflect(self, memory: KnowledgeStore) -> ReflectionResult:
        response = self.client.chat([
            Message(role="user", content=self.build_prompt(memory)),
        ])

        if not response.content:
            logger.warning("Empty reflection response, using default verdict")
            return default_reflection("Empty reflection response, proceeding with generation")

        try:
            data = extract_json_object(response.content)
        except ResponseParseError as exc:
            logger.warning("Could not parse reflection (%s), using default verdict", exc)
            return default_reflection("Could not parse reflection, proceeding with generation")

        return reflection_from_json(data)

    @staticmethod
    def build_prompt(memory: KnowledgeStore) -> str:
        files = "\n".join(f"- {f.path}: {f.summary}" for f in memory.analyzed_files.values())
        sections = "\n".join(
            f"- [{s.category.value}] {s.title}" for s in memory.document_sections
        )
        insights = "\n".join(f"- {i}" for i in memory.insights)

        return REFLECTION_PROMPT.format(
            structure=memory.directory_structure,
            understanding=memory.codebase_understanding or "No understanding recorded yet",
            file_count=len(memory.analyzed_files),
            files=files or "No files analyzed yet",
            section_count=len(memory.document_sections),
            sections=sections or "No sections generated yet",
            insights=insights or "No insights recorded",
        )

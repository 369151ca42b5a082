"""
Tool registry: the agent's only interface to the target repository.

The tool set is closed (see ``ToolName``). Every tool declares a JSON-schema
parameter spec; the registry validates each parameter bag against it before
dispatch and rejects unknown tools, unknown fields, missing required fields
and wrongly typed values. Handlers may raise freely: the registry converts
every exception into ``ToolResult(success=False, error=...)`` so nothing
escapes into the ReAct loop except an observation the model can read.
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from moles.errors import ToolValidationError
from moles.memory import AnalyzedFile, DocCategory, KnowledgeStore
from moles.security import PathValidator

logger = logging.getLogger(__name__)

# Directories never listed or searched by the file tools
IGNORED_DIRS = {"node_modules", ".git", "dist", ".moles"}

MAX_SEARCH_FILES = 50
MAX_SEARCH_RESULTS = 20


class ToolName(str, Enum):
    LIST_FILES = "list_files"
    READ_FILE = "read_file"
    SEARCH_CODE = "search_code"
    WRITE_DOC = "write_doc"
    ADD_INSIGHT = "add_insight"
    MARK_FILE_ANALYZED = "mark_file_analyzed"


@dataclass
class ToolResult:
    success: bool
    data: Any = None
    error: Optional[str] = None

    def render(self) -> str:
        """Observation text fed back to the model."""
        if self.success:
            return json.dumps(self.data, indent=2, ensure_ascii=False)
        return f"Error: {self.error}"


@dataclass
class Tool:
    name: ToolName
    description: str
    parameters: Dict[str, Any]
    handler: Callable[[Dict[str, Any]], Any]

    def definition(self) -> Dict[str, Any]:
        """OpenAI-style function definition for the tool catalog."""
        return {
            "type": "function",
            "function": {
                "name": self.name.value,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


# ---------------------------------------------------------------------------
# Schema validation
# ---------------------------------------------------------------------------

def _type_matches(expected: str, value: Any) -> bool:
    if expected == "string":
        return isinstance(value, str)
    if expected == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "array":
        return isinstance(value, list)
    return False


def validate_params(schema: Dict[str, Any], params: Any) -> Dict[str, Any]:
    """Check a parameter bag against an object schema.

    Returns the bag unchanged when valid; raises ``ToolValidationError``
    naming the first problem otherwise.
    """
    if not isinstance(params, dict):
        raise ToolValidationError("Parameters must be a JSON object")

    properties = schema.get("properties", {})

    unknown = sorted(set(params) - set(properties))
    if unknown:
        raise ToolValidationError(f"Unknown parameters: {', '.join(unknown)}")

    missing = [name for name in schema.get("required", []) if params.get(name) is None]
    if missing:
        raise ToolValidationError(f"Missing required parameters: {', '.join(missing)}")

    for name, value in params.items():
        if value is None:
            continue
        spec = properties[name]
        if not _type_matches(spec["type"], value):
            raise ToolValidationError(f"Parameter '{name}' must be of type {spec['type']}")
        if "enum" in spec and value not in spec["enum"]:
            raise ToolValidationError(
                f"Parameter '{name}' must be one of: {', '.join(spec['enum'])}"
            )
        if spec["type"] == "array" and "items" in spec:
            item_type = spec["items"]["type"]
            if not all(_type_matches(item_type, item) for item in value):
                raise ToolValidationError(f"Every item of '{name}' must be of type {item_type}")

    return params


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class ToolRegistry:
    """Name → handler registry bound to one target directory and one store."""

    def __init__(self, target_dir: Path, memory: KnowledgeStore):
        self.target_dir = Path(target_dir).resolve()
        self.memory = memory
        self._tools: Dict[ToolName, Tool] = {}
        self._register_builtin_tools()

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def definitions(self) -> List[Dict[str, Any]]:
        return [tool.definition() for tool in self._tools.values()]

    def execute(self, name: str, params: Any) -> ToolResult:
        """Validate and run one tool call. Never raises."""
        try:
            tool = self._tools[ToolName(name)]
        except (ValueError, KeyError):
            return ToolResult(success=False, error=f"Unknown tool: {name}")

        try:
            validate_params(tool.parameters, params)
            data = tool.handler(params)
        except Exception as exc:
            logger.debug("Tool %s failed: %s", name, exc)
            return ToolResult(success=False, error=str(exc) or type(exc).__name__)

        return ToolResult(success=True, data=data)

    # ---- path helpers -----------------------------------------------------

    def _resolve(self, relative: str) -> Path:
        is_valid, error, resolved = PathValidator.resolve_within(self.target_dir, relative)
        if not is_valid:
            raise ToolValidationError(error)
        return resolved

    def _is_ignored(self, path: Path, base: Path) -> bool:
        return any(part in IGNORED_DIRS for part in path.relative_to(base).parts)

    def _is_contained(self, path: Path) -> bool:
        # Glob results are not resolved; a symlink may point outside the root
        rel = path.relative_to(self.target_dir).as_posix()
        is_valid, _, _ = PathValidator.resolve_within(self.target_dir, rel)
        return is_valid

    @staticmethod
    def _check_glob(pattern: str) -> str:
        if pattern.startswith("/") or ".." in Path(pattern).parts:
            raise ToolValidationError(f"Glob pattern must stay inside the project: {pattern}")
        return pattern

    # ---- handlers ---------------------------------------------------------

    def _list_files(self, params: Dict[str, Any]) -> List[str]:
        directory = self._resolve(params["path"])
        pattern = self._check_glob(params.get("pattern") or "*")
        if not directory.is_dir():
            raise NotADirectoryError(f"Not a directory: {params['path']}")

        entries = []
        for match in directory.glob(pattern):
            if self._is_ignored(match, directory) or not self._is_contained(match):
                continue
            rel = match.relative_to(directory).as_posix()
            entries.append(rel + "/" if match.is_dir() else rel)
        return sorted(entries)

    def _read_file(self, params: Dict[str, Any]) -> str:
        path = self._resolve(params["path"])
        content = path.read_text(encoding="utf-8")

        start_line = params.get("start_line")
        end_line = params.get("end_line")
        if start_line is None and end_line is None:
            return content

        lines = content.split("\n")
        start = max(0, (start_line or 1) - 1)
        end = end_line if end_line is not None else len(lines)
        return "\n".join(lines[start:end])

    def _search_code(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        regex = re.compile(params["pattern"], re.IGNORECASE)
        file_pattern = self._check_glob(params.get("file_pattern") or "**/*")

        files = sorted(
            p for p in self.target_dir.glob(file_pattern)
            if p.is_file()
            and not self._is_ignored(p, self.target_dir)
            and self._is_contained(p)
        )

        results: List[Dict[str, Any]] = []
        for path in files[:MAX_SEARCH_FILES]:
            try:
                lines = path.read_text(encoding="utf-8").split("\n")
            except (OSError, UnicodeDecodeError):
                continue
            for number, line in enumerate(lines, 1):
                if regex.search(line):
                    results.append({
                        "file": path.relative_to(self.target_dir).as_posix(),
                        "line": number,
                        "content": line.strip(),
                    })
                    if len(results) >= MAX_SEARCH_RESULTS:
                        return results
        return results

    def _write_doc(self, params: Dict[str, Any]) -> str:
        section = self.memory.add_doc_section(
            title=params["title"],
            content=params["content"],
            category=DocCategory(params["category"]),
        )
        return f'Documentation section "{section.title}" saved to memory'

    def _add_insight(self, params: Dict[str, Any]) -> str:
        insight = params["insight"]
        if self.memory.add_insight(insight):
            return f"Insight recorded: {insight}"
        return f"Insight already recorded: {insight}"

    def _mark_file_analyzed(self, params: Dict[str, Any]) -> str:
        entry = self.memory.mark_file_analyzed(AnalyzedFile(
            path=params["path"],
            summary=params["summary"],
            exports=params.get("exports"),
            dependencies=params.get("dependencies"),
        ))
        return f"File {entry.path} marked as analyzed"

    # ---- catalog ----------------------------------------------------------

    def _register_builtin_tools(self) -> None:
        self.register(Tool(
            name=ToolName.LIST_FILES,
            description=(
                "List files in a directory. Use pattern to filter by glob "
                "(e.g., '**/*.py' for all Python files)."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "Directory path relative to project root"},
                    "pattern": {"type": "string", "description": "Glob pattern to filter files (default: '*')"},
                },
                "required": ["path"],
            },
            handler=self._list_files,
        ))

        self.register(Tool(
            name=ToolName.READ_FILE,
            description="Read the contents of a file. Returns the full content or a specific line range.",
            parameters={
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "File path relative to project root"},
                    "start_line": {"type": "integer", "description": "Starting line number (1-indexed)"},
                    "end_line": {"type": "integer", "description": "Ending line number (inclusive)"},
                },
                "required": ["path"],
            },
            handler=self._read_file,
        ))

        self.register(Tool(
            name=ToolName.SEARCH_CODE,
            description="Search for a pattern (regex or string) across files. Returns matching lines.",
            parameters={
                "type": "object",
                "properties": {
                    "pattern": {"type": "string", "description": "Search pattern (regex supported)"},
                    "file_pattern": {"type": "string", "description": "Glob pattern to filter files (e.g., '**/*.py')"},
                },
                "required": ["pattern"],
            },
            handler=self._search_code,
        ))

        self.register(Tool(
            name=ToolName.WRITE_DOC,
            description=(
                "Save a documentation section to memory. Use this when you've "
                "understood something well enough to document it."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "title": {"type": "string", "description": "Section title"},
                    "content": {"type": "string", "description": "Documentation content in Markdown"},
                    "category": {
                        "type": "string",
                        "description": "Category: overview, architecture, module, api, guide, or other",
                        "enum": [c.value for c in DocCategory],
                    },
                },
                "required": ["title", "content", "category"],
            },
            handler=self._write_doc,
        ))

        self.register(Tool(
            name=ToolName.ADD_INSIGHT,
            description="Record a key insight about the codebase. Use this for important patterns or discoveries.",
            parameters={
                "type": "object",
                "properties": {
                    "insight": {"type": "string", "description": "The insight to record"},
                },
                "required": ["insight"],
            },
            handler=self._add_insight,
        ))

        self.register(Tool(
            name=ToolName.MARK_FILE_ANALYZED,
            description="Mark a file as analyzed with a summary. Helps avoid re-analyzing the same file.",
            parameters={
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "File path"},
                    "summary": {"type": "string", "description": "Brief summary of what the file does"},
                    "exports": {
                        "type": "array",
                        "description": "List of exports from the file",
                        "items": {"type": "string"},
                    },
                    "dependencies": {
                        "type": "array",
                        "description": "Modules or files this file depends on",
                        "items": {"type": "string"},
                    },
                },
                "required": ["path", "summary"],
            },
            handler=self._mark_file_analyzed,
        ))

"""
Planner: turns a filtered view of the target directory into a bounded plan.

The listing deliberately hides build output, dependencies, lock files,
config, docs and tests so the model spends its few plan steps on core code.
A plan that cannot be parsed is fatal: without steps there is nothing to
execute, so no fallback plan is invented.
"""

import fnmatch
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from moles.errors import PlanningError, ResponseParseError
from moles.llm_client import LLMClient, Message
from moles.models import Plan, PlanStep, ReflectionResult, StepStatus
from moles.parsing import extract_json_object
from moles.security import PromptInjectionDetector

logger = logging.getLogger(__name__)

MAX_STEPS = 8
MAX_ADJUSTMENT_STEPS = 3
ADJUSTMENT_REASON = "Identified as missing in reflection"

# Build output, dependencies and tooling caches
SKIP_DIRS = {
    "node_modules", ".git", "dist", "build", "coverage", ".next", ".nuxt",
    "__pycache__", ".venv", "venv", ".tox", ".mypy_cache", ".pytest_cache",
    ".moles", "test", "tests", "__tests__",
}
# Config, docs, lock files and tests, matched against the file name
SKIP_FILE_PATTERNS = [
    "*.json", "*.yaml", "*.yml", "*.toml", "*.lock", "*.md",
    ".env*", ".gitignore", "LICENSE",
    "*.test.*", "*.spec.*", "test_*.py", "*_test.py",
]

PLAN_PROMPT = """You are a code analysis expert. Create a FOCUSED exploration plan for documentation.

Directory structure:
{structure}

Create a JSON plan with EXACTLY this format:
{{
  "overview": "Brief description of what this project appears to be",
  "steps": [
    {{
      "id": 1,
      "action": "What to do",
      "target": "file or directory path",
      "reason": "Why this step is important"
    }}
  ],
  "focusAreas": ["area1", "area2", "area3"]
}}

CRITICAL GUIDELINES:
- Generate ONLY 5-8 steps total (not more!)
- Focus on CORE CODE only:
  * Entry points (main, index, cli, app)
  * Core modules and classes
  * Type definitions and data models
- SKIP config files, documentation, tests, lock files and build artifacts
- COMBINE related files into single steps (e.g. "Analyze agent module" for src/agent/)
- Prioritize: Entry Point → Core Modules → Types → APIs

Respond ONLY with the JSON, no other text."""


class Planner:
    """Creates the initial plan and extends it from reflection gaps."""

    def __init__(self, client: LLMClient):
        self.client = client
        self._detector = PromptInjectionDetector()

    # ------------------------------------------------------------------
    # Plan creation
    # ------------------------------------------------------------------

    def create_plan(self, target_dir: Path) -> Plan:
        """Ask the model for a plan over the filtered directory tree.

        Raises:
            PlanningError: the response is empty, has no JSON object, or the
                object carries no usable steps.
        """
        structure = self.build_directory_tree(target_dir)
        response = self.client.chat([
            Message(role="user", content=PLAN_PROMPT.format(structure=structure or "(empty)")),
        ])

        try:
            data = extract_json_object(response.content)
        except ResponseParseError as exc:
            raise PlanningError(f"Failed to parse plan: {exc}") from exc

        plan = self._plan_from_json(data)
        plan.directory_tree = structure
        logger.info("Plan created with %d steps", len(plan.steps))
        return plan

    def _plan_from_json(self, data: Dict[str, Any]) -> Plan:
        raw_steps = data.get("steps")
        if not isinstance(raw_steps, list) or not raw_steps:
            raise PlanningError("Plan contains no steps")

        steps: List[PlanStep] = []
        for raw in raw_steps[:MAX_STEPS]:
            if not isinstance(raw, dict):
                raise PlanningError(f"Plan step is not an object: {raw!r}")
            steps.append(PlanStep(
                id=len(steps) + 1,
                action=str(raw.get("action") or "").strip(),
                target=str(raw.get("target") or "").strip(),
                reason=str(raw.get("reason") or "").strip(),
                status=StepStatus.PENDING,
            ))

        if len(raw_steps) > MAX_STEPS:
            logger.debug("Truncated plan from %d to %d steps", len(raw_steps), MAX_STEPS)

        focus_areas = data.get("focusAreas") or []
        if not isinstance(focus_areas, list):
            focus_areas = [focus_areas]

        return Plan(
            overview=str(data.get("overview") or "").strip(),
            steps=steps,
            focus_areas=[str(area) for area in focus_areas],
            cursor=0,
        )

    # ------------------------------------------------------------------
    # Replanning
    # ------------------------------------------------------------------

    def adjust_plan(self, plan: Plan, reflection: ReflectionResult) -> List[PlanStep]:
        """Append one step per missing area.

        Only the first three reported areas are considered; blank entries among
        them are dropped rather than replaced by later ones.

        Existing steps are untouched; the cursor moves to the first pending
        step, which is the first appended one since earlier steps are done.
        """
        areas = [a.strip() for a in reflection.missing_areas[:MAX_ADJUSTMENT_STEPS]]
        new_steps = [
            plan.append_step(action=f"Analyze {area}", target=area, reason=ADJUSTMENT_REASON)
            for area in areas if area
        ]

        first_pending = next(
            (i for i, s in enumerate(plan.steps) if s.status == StepStatus.PENDING),
            None,
        )
        if first_pending is not None:
            plan.cursor = max(plan.cursor, first_pending)
        else:
            plan.cursor = max(plan.cursor, len(plan.steps))
        return new_steps

    # ------------------------------------------------------------------
    # Directory tree
    # ------------------------------------------------------------------

    def list_source_files(self, target_dir: Path) -> List[str]:
        """Relative posix paths of every file that survives the filters."""
        root = Path(target_dir).resolve()
        files: List[str] = []
        for current, dirs, names in os.walk(root):
            dirs[:] = [d for d in dirs if d not in SKIP_DIRS]
            for name in names:
                if any(fnmatch.fnmatch(name, pattern) for pattern in SKIP_FILE_PATTERNS):
                    continue
                rel = Path(current, name).relative_to(root).as_posix()
                files.append(rel)
        return sorted(files)

    def build_directory_tree(self, target_dir: Path) -> str:
        """Filtered listing rendered as an indented ``├──`` tree."""
        tree: Dict[str, Optional[dict]] = {}
        for rel in self.list_source_files(target_dir):
            node = tree
            parts = rel.split("/")
            for part in parts[:-1]:
                node = node.setdefault(part, {})
            node[parts[-1]] = None
        # Names are sanitized on output only; two raw names may render alike
        return format_tree(tree, rename=self._detector.sanitize_filename)


def format_tree(
    tree: Dict[str, Optional[dict]],
    prefix: str = "",
    rename: Optional[Callable[[str], str]] = None,
) -> str:
    """Directories first, then files, each group alphabetical.

    ``rename`` maps each raw name to the text shown on its line.
    """
    entries = sorted(tree.items(), key=lambda item: (item[1] is None, item[0]))
    lines: List[str] = []
    for index, (name, children) in enumerate(entries):
        is_last = index == len(entries) - 1
        label = rename(name) if rename else name
        lines.append(prefix + ("└── " if is_last else "├── ") + label)
        if children is not None:
            child_prefix = prefix + ("    " if is_last else "│   ")
            sub = format_tree(children, child_prefix, rename)
            if sub:
                lines.append(sub)
    return "\n".join(lines)

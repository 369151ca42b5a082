"""Human-readable run state under ``<target>/.moles/``.

Files managed:
  plan.md       current plan with a status glyph per step
  memory.json   raw Knowledge Store snapshot
  progress.log  timestamped execution log

These files exist so a person can watch a run; they are never read back.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path

from moles.memory import KnowledgeStore
from moles.models import Plan, StepStatus

logger = logging.getLogger(__name__)

STATE_DIR_NAME = ".moles"

STATUS_ICONS = {
    StepStatus.COMPLETED: "✅",
    StepStatus.IN_PROGRESS: "🔄",
    StepStatus.SKIPPED: "⏭️",
    StepStatus.PENDING: "⏳",
}


class StateManager:
    """Write-only sink for plan, memory and progress log."""

    def __init__(self, target_dir: Path):
        self.state_dir = Path(target_dir) / STATE_DIR_NAME
        self.plan_path = self.state_dir / "plan.md"
        self.memory_path = self.state_dir / "memory.json"
        self.log_path = self.state_dir / "progress.log"

    def initialize(self) -> None:
        """Create the state directory and start a fresh progress log."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        started = datetime.now(timezone.utc).isoformat()
        self.log_path.write_text(
            f"# Moles Progress Log\nStarted: {started}\n\n", encoding="utf-8"
        )

    def save_plan(self, plan: Plan) -> None:
        self.plan_path.write_text(format_plan_markdown(plan), encoding="utf-8")

    def save_memory(self, memory: KnowledgeStore) -> None:
        self.memory_path.write_text(memory.to_json(), encoding="utf-8")

    def append_log(self, entry: str) -> None:
        timestamp = datetime.now().strftime("%H:%M:%S")
        with self.log_path.open("a", encoding="utf-8") as fh:
            fh.write(f"[{timestamp}] {entry}\n")
        logger.debug("progress: %s", entry)


def format_plan_markdown(plan: Plan) -> str:
    lines = [
        "# Moles Analysis Plan",
        "",
        f"> {plan.overview}",
        "",
        "## Focus Areas",
        *[f"- {area}" for area in plan.focus_areas],
        "",
        "## Steps",
        "",
    ]

    for step in plan.steps:
        icon = STATUS_ICONS.get(step.status, "⏳")
        suffix = " *(in progress)*" if step.status == StepStatus.IN_PROGRESS else ""
        lines.append(f"### {icon} Step {step.id}: {step.action}{suffix}")
        lines.append("")
        lines.append(f"- **Target:** {step.target}")
        lines.append(f"- **Reason:** {step.reason}")
        lines.append(f"- **Status:** {step.status.value}")
        lines.append("")

    lines.append("---")
    lines.append(f"*Last updated: {datetime.now(timezone.utc).isoformat()}*")
    return "\n".join(lines)

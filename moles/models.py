"""Plan and reflection value types shared by the agent phases."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    # Administrative only: set through Plan.skip_step, never by the executor
    SKIPPED = "skipped"


@dataclass
class PlanStep:
    id: int
    action: str
    target: str
    reason: str
    status: StepStatus = StepStatus.PENDING


@dataclass
class Plan:
    """Exploration plan for one run.

    ``steps`` is append-only and ``cursor`` points at the next step to run.
    Everything before the cursor has been handled and is never re-entered.
    """

    overview: str
    steps: List[PlanStep] = field(default_factory=list)
    focus_areas: List[str] = field(default_factory=list)
    cursor: int = 0
    directory_tree: str = ""

    @property
    def next_step_id(self) -> int:
        return max((s.id for s in self.steps), default=0) + 1

    def current_step(self) -> Optional[PlanStep]:
        if self.cursor < len(self.steps):
            return self.steps[self.cursor]
        return None

    def pending_steps(self) -> List[PlanStep]:
        return [s for s in self.steps if s.status == StepStatus.PENDING]

    def append_step(self, action: str, target: str, reason: str) -> PlanStep:
        step = PlanStep(id=self.next_step_id, action=action, target=target, reason=reason)
        self.steps.append(step)
        return step

    def skip_step(self, step_id: int) -> bool:
        """Mark a not-yet-started step as skipped. Returns False otherwise."""
        for step in self.steps:
            if step.id == step_id and step.status == StepStatus.PENDING:
                step.status = StepStatus.SKIPPED
                return True
        return False

    def is_finished(self) -> bool:
        return self.cursor >= len(self.steps)


@dataclass
class ReflectionResult:
    is_complete: bool
    completeness: int
    missing_areas: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    should_continue: bool = False

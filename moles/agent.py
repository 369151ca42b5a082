"""
Agent coordinator: the Plan → Execute → Reflect → Generate state machine.

    planning → executing → reflecting ─┬→ executing   (reflection wants more)
                                       └→ generating → done

Each phase handler runs once per loop turn and sets the next phase. After
every turn the iteration counter goes up; once it reaches ``max_iterations``
any phase other than generating/done is overridden with generating, so a run
always ends in ``done`` after at most ``max_iterations + 1`` turns.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from moles.config import AgentConfig
from moles.errors import ExecutionError
from moles.executor import Executor
from moles.generator import Generator, MarkdownGenerator
from moles.llm_client import LLMClient
from moles.memory import KnowledgeStore
from moles.model_config import resolve_model_config
from moles.models import Plan, ReflectionResult
from moles.planner import Planner
from moles.reflector import Reflector
from moles.reporter import Reporter
from moles.state import StateManager
from moles.tools import ToolRegistry

logger = logging.getLogger(__name__)


class AgentPhase(str, Enum):
    PLANNING = "planning"
    EXECUTING = "executing"
    REFLECTING = "reflecting"
    GENERATING = "generating"
    DONE = "done"


@dataclass
class AgentState:
    phase: AgentPhase = AgentPhase.PLANNING
    plan: Optional[Plan] = None
    memory: KnowledgeStore = field(default_factory=KnowledgeStore)
    iterations: int = 0
    last_reflection: Optional[ReflectionResult] = None
    output_path: Optional[Path] = None


class Agent:
    """Drives one documentation run over ``config.target_dir``.

    Collaborators can be injected (tests pass a scripted client); anything
    left out is built from the config.
    """

    def __init__(
        self,
        config: AgentConfig,
        client: Optional[LLMClient] = None,
        generator: Optional[Generator] = None,
        reporter: Optional[Reporter] = None,
        state_manager: Optional[StateManager] = None,
    ):
        self.config = config
        self.client = client or LLMClient.from_config(config)
        self.generator = generator or MarkdownGenerator(config.output_dir)
        self.reporter = reporter or Reporter(verbose=config.verbose)
        self.state_manager = state_manager or StateManager(config.target_dir)

        self.state = AgentState()
        self.model_config = resolve_model_config(config.model)

        self.planner = Planner(self.client)
        self.reflector = Reflector(self.client)
        self.tools = ToolRegistry(config.target_dir, self.state.memory)
        self.executor = Executor(
            client=self.client,
            memory=self.state.memory,
            tools=self.tools,
            reporter=self.reporter,
            state=self.state_manager,
            max_react_iterations=config.max_react_iterations,
            language=config.language,
            summary_budget=self.model_config.summary_char_budget,
        )

    @property
    def memory(self) -> KnowledgeStore:
        return self.state.memory

    def run(self) -> AgentState:
        """Run the loop to completion. Every fatal error is logged, then re-raised."""
        self.state_manager.initialize()
        self.state_manager.append_log("Agent started")
        logger.info("Model %s (%s)", self.config.model, self.model_config)

        try:
            while self.state.phase != AgentPhase.DONE:
                self.state_manager.append_log(f"Phase: {self.state.phase.value}")
                self._run_phase(self.state.phase)
                self.state.iterations += 1

                if (
                    self.state.iterations >= self.config.max_iterations
                    and self.state.phase not in (AgentPhase.GENERATING, AgentPhase.DONE)
                ):
                    self.reporter.warn(
                        f"Reached {self.config.max_iterations} iterations, generating documentation"
                    )
                    self.state_manager.append_log("Iteration cap reached, forcing generation")
                    self.state.phase = AgentPhase.GENERATING
        except Exception as exc:
            self.state_manager.append_log(f"Error: {exc}")
            raise

        self.state_manager.append_log("Agent finished")
        return self.state

    def _run_phase(self, phase: AgentPhase) -> None:
        handlers = {
            AgentPhase.PLANNING: self._plan,
            AgentPhase.EXECUTING: self._execute,
            AgentPhase.REFLECTING: self._reflect,
            AgentPhase.GENERATING: self._generate,
        }
        handlers[phase]()

    # ---- phases ---------------------------------------------------------

    def _plan(self) -> None:
        self.reporter.phase("Planning", "Analyzing codebase structure...")

        plan = self.planner.create_plan(self.config.target_dir)
        self.state.plan = plan
        self.memory.set_directory_structure(plan.overview)
        self.state_manager.save_plan(plan)
        self.state_manager.append_log(f"Plan created with {len(plan.steps)} steps")

        self.reporter.info(f"Plan created with {len(plan.steps)} steps")
        self.reporter.info(f"Overview: {plan.overview}")
        self.state.phase = AgentPhase.EXECUTING

    def _execute(self) -> None:
        plan = self.state.plan
        if plan is None:
            raise ExecutionError("No plan to execute")

        self.reporter.phase("Executing", f"Running {len(plan.pending_steps())} pending step(s)")
        self.reporter.set_total_steps(len(plan.steps))
        self.executor.execute(plan)

        self.reporter.summary(self.memory.stats())
        self.state.phase = AgentPhase.REFLECTING

    def _reflect(self) -> None:
        self.reporter.phase("Reflecting", "Evaluating documentation completeness...")

        reflection = self.reflector.reflect(self.memory)
        self.state.last_reflection = reflection
        self.reporter.info(f"Completeness: {reflection.completeness}%")
        self.state_manager.append_log(
            f"Reflection: completeness={reflection.completeness} "
            f"continue={reflection.should_continue}"
        )

        if reflection.should_continue and self.state.plan is not None:
            if reflection.missing_areas:
                self.reporter.info(f"Missing: {', '.join(reflection.missing_areas)}")
            new_steps = self.planner.adjust_plan(self.state.plan, reflection)
            self.state_manager.save_plan(self.state.plan)
            self.state_manager.append_log(f"Plan adjusted with {len(new_steps)} new step(s)")
            self.state.phase = AgentPhase.EXECUTING
        else:
            self.state.phase = AgentPhase.GENERATING

    def _generate(self) -> None:
        self.reporter.phase("Generating", "Writing documentation...")

        output = self.generator.generate(self.memory)
        self.state.output_path = output
        self.state_manager.save_memory(self.memory)
        self.state_manager.append_log(f"Documentation written to {output}")

        self.reporter.info(f"Documentation written to {output}")
        self.state.phase = AgentPhase.DONE

"""Console progress output.

Two modes:
  - Normal: one line per phase and per plan step.
  - Verbose: the full ReAct trace (Thought / Action / Observation).

Diagnostics go through ``logging``; this module only prints what a person
watching the run wants to see.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional, TextIO

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"


def setup_logging(verbose: bool = False) -> None:
    """Configure root logging. Verbose runs also show debug diagnostics."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    # urllib3 is chatty at debug level
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


class Reporter:
    """Prints ``[Tag]``-prefixed progress lines."""

    def __init__(self, verbose: bool = False, stream: Optional[TextIO] = None):
        self.verbose = verbose
        self.stream = stream or sys.stdout
        self.total_steps = 0

    def _print(self, line: str) -> None:
        print(line, file=self.stream, flush=True)

    def set_total_steps(self, total: int) -> None:
        self.total_steps = total

    # ---- phase level (always shown) -----------------------------------------

    def phase(self, name: str, message: str) -> None:
        self._print(f"\n[{name}] {message}")

    def info(self, message: str) -> None:
        self._print(f"   {message}")

    def warn(self, message: str) -> None:
        self._print(f"[Warning] {message}")

    def error(self, message: str) -> None:
        self._print(f"[Error] {message}")

    def summary(self, stats: Dict[str, int]) -> None:
        self._print("-" * 40)
        self._print(f"   Files analyzed:     {stats['files']}")
        self._print(f"   Sections generated: {stats['sections']}")
        self._print(f"   Insights captured:  {stats['insights']}")
        self._print("-" * 40)

    # ---- step level -----------------------------------------------------------

    def step_start(self, step_id: int, action: str, target: str) -> None:
        if self.verbose:
            self._print("=" * 60)
            self._print(f"[Step {step_id}/{self.total_steps}] {action}")
            self._print(f"   Target: {target}")
            self._print("=" * 60)
        else:
            self._print(f"[Step {step_id}/{self.total_steps}] {action} -> {target}")

    def step_complete(self, step_id: int, outcome: str) -> None:
        self._print(f"   [Done] Step {step_id} ({outcome})")

    # ---- ReAct trace (verbose only) -------------------------------------------

    def thought(self, content: str) -> None:
        if self.verbose:
            self._print(f"\n   [Thought] {_truncate(content, 200)}")

    def action(self, name: str, arguments: Dict[str, Any]) -> None:
        if self.verbose:
            args = json.dumps(arguments, ensure_ascii=False)
            self._print(f"   [Action] {name}({_truncate(args, 100)})")

    def observation(self, result: str, is_error: bool = False) -> None:
        if self.verbose:
            tag = "Observation Error" if is_error else "Observation"
            self._print(f"   [{tag}] {_truncate(result, 300)}")

"""Runtime configuration for the documentation agent.

Values come from the environment (a ``.env`` file is honoured via
python-dotenv) and can be overridden by CLI flags. Resolution order for each
field: explicit override → primary env var → fallback env var → default.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from moles.errors import ConfigError

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OUTPUT_DIR = "./docs"
DEFAULT_MAX_ITERATIONS = 10
DEFAULT_MAX_REACT_ITERATIONS = 20


def _env(*names: str, default: Optional[str] = None) -> Optional[str]:
    """Return the first non-empty environment variable among ``names``."""
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


@dataclass
class AgentConfig:
    """Everything the agent needs to know about one run."""

    target_dir: Path
    model: str
    output_dir: Path = field(default_factory=lambda: Path(DEFAULT_OUTPUT_DIR))
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    verbose: bool = False
    language: Optional[str] = None
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    max_react_iterations: int = DEFAULT_MAX_REACT_ITERATIONS
    timeout: int = 120
    max_retries: int = 3

    def __post_init__(self):
        self.target_dir = Path(self.target_dir).resolve()
        self.output_dir = Path(self.output_dir)
        if not self.model:
            raise ConfigError(
                "No model configured. Set MOLES_MODEL in .env or pass --model."
            )
        if self.max_iterations < 1:
            raise ConfigError("max_iterations must be at least 1")
        if self.max_react_iterations < 1:
            raise ConfigError("max_react_iterations must be at least 1")

    @classmethod
    def from_env(cls, target_dir: Path, **overrides: Any) -> "AgentConfig":
        """Build a config from environment variables plus explicit overrides.

        ``None`` overrides are ignored so CLI flags that were not given fall
        through to the environment.
        """
        load_dotenv()

        values: dict[str, Any] = {
            "model": _env("MOLES_MODEL", "LLM_MODEL", default=""),
            "output_dir": Path(_env("OUTPUT_DIR", default=DEFAULT_OUTPUT_DIR)),
            "api_key": _env("LLM_API_KEY", "OPENAI_API_KEY"),
            "base_url": _env("LLM_BASE_URL", "OPENAI_BASE_URL", default=DEFAULT_BASE_URL),
            "language": _env("MOLES_LANGUAGE"),
            "max_iterations": _env_int("MOLES_MAX_ITERATIONS", DEFAULT_MAX_ITERATIONS),
            "timeout": _env_int("LLM_TIMEOUT", 120),
        }

        known = {f.name for f in fields(cls)}
        for key, value in overrides.items():
            if key not in known:
                raise ConfigError(f"Unknown config option: {key}")
            if value is not None:
                values[key] = value

        return cls(target_dir=target_dir, **values)

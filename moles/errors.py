"""Exception hierarchy for the documentation agent.

Phase failures (planning, execution, reflection, generation) propagate out of
``Agent.run()`` and abort the run. Tool failures never raise past the tool
registry; they come back as ``ToolResult(success=False)`` instead.
"""


class MolesError(Exception):
    """Base class for every error raised by the agent."""


class ConfigError(MolesError):
    """Required configuration is missing or invalid."""


class LLMError(MolesError):
    """The LLM gateway could not complete a request."""


class LLMResponseError(LLMError):
    """The LLM answered, but the payload could not be decoded."""


class ResponseParseError(MolesError):
    """Free-text model output did not contain a usable JSON object."""


class PlanningError(MolesError):
    """No valid plan could be produced from the model response."""


class ExecutionError(MolesError):
    """The executor was asked to run without a usable plan."""


class ToolValidationError(MolesError):
    """A tool parameter bag does not match the tool's schema."""

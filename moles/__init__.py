"""Moles: an autonomous Plan → Execute → Reflect → Generate documentation agent."""

from moles.agent import Agent, AgentPhase, AgentState
from moles.config import AgentConfig
from moles.memory import DocCategory, KnowledgeStore

__version__ = "0.1.0"

__all__ = [
    "Agent",
    "AgentConfig",
    "AgentPhase",
    "AgentState",
    "DocCategory",
    "KnowledgeStore",
]

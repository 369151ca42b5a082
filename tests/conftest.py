"""Shared fixtures for the agent test suite.

All tests run with zero API calls and zero network access. The LLM gateway
is replaced by a scripted fake; HTTP-level tests mock ``requests`` through
the responses library.
"""

import sys
from pathlib import Path

import pytest

# Ensure the repo root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from moles.config import AgentConfig  # noqa: E402
from moles.memory import KnowledgeStore  # noqa: E402
from moles.tools import ToolRegistry  # noqa: E402

from tests.fixtures import SAMPLE_PROJECT, write_files  # noqa: E402


@pytest.fixture
def target_repo(tmp_path):
    """Temp directory holding a small TypeScript project."""
    repo = tmp_path / "project"
    repo.mkdir()
    return write_files(repo, SAMPLE_PROJECT)


@pytest.fixture
def memory():
    return KnowledgeStore()


@pytest.fixture
def registry(target_repo, memory):
    return ToolRegistry(target_repo, memory)


@pytest.fixture
def config(target_repo, tmp_path):
    return AgentConfig(
        target_dir=target_repo,
        model="deepseek-chat",
        output_dir=tmp_path / "docs",
        base_url="http://llm.test/v1",
    )

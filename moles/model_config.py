"""
Context limits of the configured model.

The executor injects a summary of the Knowledge Store into every step prompt;
how much of it fits depends on the model's context window. Limits come from,
in order:

1. ``MODEL_OVERRIDES``, for models litellm misreports or does not know
2. ``litellm.get_model_info``
3. ``DEFAULT_MODEL_CONFIG``, a deliberately small window
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

import litellm

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
# Share of the context window the memory summary may take
SUMMARY_SHARE = 0.25


@dataclass(frozen=True)
class ModelConfig:
    context_window: int        # input tokens
    max_output_tokens: int
    supports_tool_calling: bool

    @property
    def summary_char_budget(self) -> int:
        """Characters of Knowledge Store summary allowed in one step prompt."""
        return int(self.context_window * SUMMARY_SHARE * CHARS_PER_TOKEN)

    def __str__(self) -> str:
        tools = "tools" if self.supports_tool_calling else "no tools"
        return f"{self.context_window:,} ctx / {self.max_output_tokens:,} out / {tools}"


# Keys are model names without the provider routing prefix
MODEL_OVERRIDES: Dict[str, ModelConfig] = {
    "deepseek-chat": ModelConfig(65_536, 8_192, True),
    "moonshotai/kimi-k2.5": ModelConfig(131_072, 8_192, True),
    "qwen3-coder:30b": ModelConfig(32_768, 8_192, True),
}

DEFAULT_MODEL_CONFIG = ModelConfig(32_768, 4_096, True)

PROVIDER_PREFIXES = ("openrouter/", "ollama/", "openai/", "litellm_proxy/", "hosted_vllm/")


def strip_provider_prefix(model: str) -> str:
    """``openrouter/moonshotai/kimi-k2.5`` → ``moonshotai/kimi-k2.5``."""
    for prefix in PROVIDER_PREFIXES:
        if model.startswith(prefix):
            return model[len(prefix):]
    return model


def _from_registry(info: Dict[str, Any]) -> ModelConfig:
    context = (
        info.get("max_input_tokens")
        or info.get("max_tokens")
        or DEFAULT_MODEL_CONFIG.context_window
    )
    output = info.get("max_output_tokens") or DEFAULT_MODEL_CONFIG.max_output_tokens
    # Some registry entries report an output limit above the window
    if output > context:
        output = context // 2
    return ModelConfig(
        context_window=context,
        max_output_tokens=output,
        supports_tool_calling=bool(info.get("supports_function_calling", True)),
    )


def resolve_model_config(model: str) -> ModelConfig:
    bare = strip_provider_prefix(model)
    if bare in MODEL_OVERRIDES:
        return MODEL_OVERRIDES[bare]

    try:
        info = litellm.get_model_info(model)
    except Exception as exc:
        # litellm raises for anything missing from its registry
        logger.debug("No litellm entry for %s (%s), using defaults", model, exc)
        return DEFAULT_MODEL_CONFIG

    return _from_registry(info) if info else DEFAULT_MODEL_CONFIG

"""Security helpers for moles."""

from .validators import TargetValidator, PathValidator
from .prompt_safety import PromptInjectionDetector

__all__ = ["TargetValidator", "PathValidator", "PromptInjectionDetector"]

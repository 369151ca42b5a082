"""Keeps file names from the target repository from steering the planner.

Names end up verbatim in the directory tree embedded in the planning prompt,
so a file called ``ignore previous instructions.md`` is a prompt of its own.
"""

import logging
import re

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_UNSAFE_CHARS = re.compile(r"[^\w.\-/]")


class PromptInjectionDetector:
    """Flags and neutralizes instruction-like text in repository names."""

    INJECTION_PATTERNS = [
        r"ignore\s+(previous|above|all)\s+instructions",
        r"disregard\s+",
        r"forget\s+everything",
        r"new\s+instructions?:",
        r"system\s*:",
        r"you\s+are\s+now",
        r"roleplay\s+as",
        r"pretend\s+you",
    ]

    def __init__(self):
        self._patterns = [re.compile(p, re.IGNORECASE) for p in self.INJECTION_PATTERNS]

    def detect_injection(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self._patterns)

    def sanitize_filename(self, filename: str) -> str:
        """Return a name that is safe to place in a tree line of a prompt.

        Control characters are dropped (a newline would forge extra tree
        lines), the length is capped, and names that read like instructions
        have every non-word character replaced with ``_``.
        """
        name = _CONTROL_CHARS.sub("", filename)[:MAX_NAME_LENGTH]
        if self.detect_injection(name):
            logger.warning("Suspicious file name neutralized: %r", name)
            name = _UNSAFE_CHARS.sub("_", name)
        return name

"""Chat-completions client for OpenAI-compatible endpoints.

Deep module: callers pass a conversation and an optional tool catalog in,
get one decoded model turn back. Retry logic, auth headers and tool-call
argument decoding are handled internally. The client is stateless; the
conversation lives with the caller.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from moles.config import AgentConfig
from moles.errors import LLMError, LLMResponseError

logger = logging.getLogger(__name__)


@dataclass
class Message:
    """One role-tagged conversation entry."""

    role: str  # system | user | assistant | tool
    content: Optional[str]
    tool_call_id: Optional[str] = None
    tool_calls: Optional[List[Dict[str, Any]]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_call_id:
            payload["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            payload["tool_calls"] = self.tool_calls
        return payload


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: Dict[str, Any]


@dataclass
class LLMResponse:
    content: Optional[str]
    tool_calls: List[ToolCall] = field(default_factory=list)
    raw_tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    finish_reason: str = "stop"


class LLMClient:
    """Client for an OpenAI-compatible ``/chat/completions`` endpoint.

    Args:
        model: Model identifier sent with every request.
        base_url: API root, e.g. ``https://api.openai.com/v1``.
        api_key: Bearer token. When empty, requests are sent without auth
                 (local servers such as Ollama or llama.cpp).
        timeout: Per-request timeout in seconds.
        max_retries: Attempts before giving up on transport failures.
    """

    def __init__(
        self,
        model: str,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: int = 120,
        max_retries: int = 3,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key or ""
        self.timeout = timeout
        self.max_retries = max_retries

    @classmethod
    def from_config(cls, config: AgentConfig) -> "LLMClient":
        return cls(
            model=config.model,
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    def _headers(self) -> Dict[str, str]:
        """Build request headers, including auth if a key is configured."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def chat(
        self,
        messages: List[Message],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> LLMResponse:
        """Send one conversation turn and decode the reply.

        Raises:
            LLMError: every attempt failed at the transport level.
            LLMResponseError: the reply could not be decoded.
        """
        endpoint = f"{self.base_url}/chat/completions"
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
        }
        if tools:
            payload["tools"] = tools

        data = self._post_with_retry(endpoint, payload)
        return self._parse_response(data)

    # ----- internal --------------------------------------------------------

    def _post_with_retry(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        for attempt in range(self.max_retries):
            try:
                logger.debug("POST %s (attempt %d/%d)", endpoint, attempt + 1, self.max_retries)
                response = requests.post(
                    endpoint,
                    json=payload,
                    timeout=self.timeout,
                    headers=self._headers(),
                )
                response.raise_for_status()
                return response.json()

            except requests.exceptions.RequestException as exc:
                logger.warning("LLM request failed: %s: %s", type(exc).__name__, exc)

                if attempt < self.max_retries - 1:
                    wait = 2 ** attempt
                    logger.info("Retrying in %ds", wait)
                    time.sleep(wait)
                else:
                    logger.error("All %d attempts failed", self.max_retries)
                    raise LLMError(
                        f"LLM request failed after {self.max_retries} attempts: {exc}"
                    ) from exc

            except ValueError as exc:
                raise LLMResponseError(f"LLM returned a non-JSON body: {exc}") from exc

        raise LLMError("LLM client configured with max_retries < 1")

    def _parse_response(self, data: Dict[str, Any]) -> LLMResponse:
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise LLMResponseError(f"Unexpected response shape: {data!r:.200}")

        choice = choices[0]
        message = choice.get("message") or {}

        tool_calls: List[ToolCall] = []
        raw_tool_calls: List[Dict[str, Any]] = []
        for tc in message.get("tool_calls") or []:
            if tc.get("type", "function") != "function":
                continue
            function = tc.get("function") or {}
            name = function.get("name", "")
            arguments_text = function.get("arguments") or "{}"
            try:
                arguments = json.loads(arguments_text)
            except json.JSONDecodeError as exc:
                raise LLMResponseError(
                    f"Could not decode arguments for tool call {name}: {exc}"
                ) from exc

            raw_tool_calls.append({
                "id": tc.get("id", ""),
                "type": "function",
                "function": {"name": name, "arguments": arguments_text},
            })
            tool_calls.append(ToolCall(id=tc.get("id", ""), name=name, arguments=arguments))

        return LLMResponse(
            content=message.get("content"),
            tool_calls=tool_calls,
            raw_tool_calls=raw_tool_calls,
            finish_reason=choice.get("finish_reason") or "stop",
        )

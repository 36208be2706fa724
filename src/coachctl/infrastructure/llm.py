"""Model backend: the ModelInvoker protocol and an OpenAI-compatible client.

The pipeline only ever sees :class:`ModelInvoker`. The latency bound lives
here (``timeout_seconds``), not in the orchestrator.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from coachctl.domain.messages import ChatMessage

if TYPE_CHECKING:
    from coachctl.config.models import ModelConfig

logger = logging.getLogger(__name__)


class ModelInvocationError(Exception):
    """The model backend failed to produce a reply."""


class ModelInvoker(Protocol):
    """Anything that turns a chat message list into raw reply text."""

    async def invoke(self, messages: Sequence[ChatMessage]) -> str: ...


class OpenAIChatInvoker:
    """POST ``{model, messages, temperature}`` to ``{base_url}/chat/completions``.

    Non-2xx responses, transport failures, timeouts and replies without
    ``choices[0].message.content`` raise :class:`ModelInvocationError`.
    Pass *transport* (e.g. ``httpx.MockTransport``) to stub the network.
    """

    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        api_key: str | None = None,
        temperature: float = 0.1,
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._api_key = api_key
        self._temperature = temperature
        self._timeout = timeout_seconds
        self._transport = transport

    @classmethod
    def from_config(
        cls, config: ModelConfig, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> OpenAIChatInvoker:
        """Build from a ``[model]`` config section; the key is read from its env var."""
        return cls(
            base_url=config.base_url,
            model=config.model,
            api_key=os.environ.get(config.api_key_env),
            temperature=config.temperature,
            timeout_seconds=config.timeout_seconds,
            transport=transport,
        )

    @property
    def model(self) -> str:
        return self._model

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _payload(self, messages: Sequence[ChatMessage]) -> dict[str, Any]:
        return {
            "model": self._model,
            "messages": [{"role": str(m.role), "content": m.content} for m in messages],
            "temperature": self._temperature,
        }

    async def invoke(self, messages: Sequence[ChatMessage]) -> str:
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(
                    "/chat/completions",
                    json=self._payload(messages),
                    headers=self._headers(),
                )
                response.raise_for_status()
            except httpx.TimeoutException as exc:
                msg = f"Request to {self._base_url} timed out after {self._timeout}s"
                raise ModelInvocationError(msg) from exc
            except httpx.HTTPStatusError as exc:
                msg = f"HTTP error from {self._base_url}: {exc.response.status_code}"
                raise ModelInvocationError(msg) from exc
            except httpx.HTTPError as exc:
                msg = f"Error calling {self._base_url}: {exc}"
                raise ModelInvocationError(msg) from exc

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ModelInvocationError("Malformed completion response") from exc
        if not isinstance(content, str):
            raise ModelInvocationError("Completion response has no text content")
        logger.debug("Model %s replied with %d chars", self._model, len(content))
        return content

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from openai import APIConnectionError, APIStatusError, AsyncOpenAI, AuthenticationError, NotFoundError

from pagepilot.config import CONFIG
from pagepilot.exceptions import CompletionFailure, ModelUnavailable
from pagepilot.llm.base import BaseMessage, ProgressCallback

logger = logging.getLogger(__name__)


class OpenAIChatBackend:
    """LLMEngine backend for any OpenAI-compatible chat completions endpoint (OpenAI, vLLM, Ollama)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        verify_model: bool = False,
        extra_body: Optional[Dict[str, Any]] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key if api_key is not None else CONFIG.OPENAI_API_KEY
        self.base_url = base_url if base_url is not None else CONFIG.OPENAI_BASE_URL
        self.verify_model = verify_model
        self.extra_body = extra_body
        self._client = client

    def check_support(self) -> None:
        # Local servers accept any key, hosted OpenAI needs one
        if self._client is None and not self.api_key and not self.base_url:
            raise ModelUnavailable("No OPENAI_API_KEY or OPENAI_BASE_URL configured for the OpenAI backend.")

    async def load(self, model_id: str, progress: ProgressCallback) -> None:
        progress(0.0)
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key or "EMPTY", base_url=self.base_url)
        if self.verify_model:
            try:
                await self._client.models.retrieve(model_id)
            except AuthenticationError as e:
                raise ModelUnavailable(f"Authentication failed for {model_id}: {e}") from e
            except NotFoundError as e:
                raise CompletionFailure(f"Model not served by endpoint: {model_id}") from e
        progress(1.0)

    async def chat(self, messages: List[BaseMessage], *, model_id: str, temperature: float, max_tokens: int) -> str:
        try:
            completion = await self._client.chat.completions.create(
                model=model_id,
                messages=[m.model_dump() for m in messages],
                temperature=temperature,
                max_tokens=max_tokens,
                stream=False,
                extra_body=self.extra_body,
            )
        except (APIConnectionError, APIStatusError) as e:
            raise CompletionFailure(f"chat completion failed: {type(e).__name__}: {e}") from e

        if not completion.choices:
            return ""
        return (completion.choices[0].message.content or "").strip()

    async def chat_stream(
        self, messages: List[BaseMessage], *, model_id: str, temperature: float, max_tokens: int
    ) -> AsyncIterator[str]:
        try:
            stream = await self._client.chat.completions.create(
                model=model_id,
                messages=[m.model_dump() for m in messages],
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
                extra_body=self.extra_body,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content or ""
                if content:
                    yield content
        except (APIConnectionError, APIStatusError) as e:
            raise CompletionFailure(f"streaming chat completion failed: {type(e).__name__}: {e}") from e

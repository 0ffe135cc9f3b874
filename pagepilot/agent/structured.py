from __future__ import annotations

import json
import logging
import re
from typing import Callable, Generic, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from pagepilot.agent.prompts import SystemPrompt, schema_correction_message
from pagepilot.exceptions import CompletionFailure, ModelUnavailable, SchemaViolation
from pagepilot.llm.base import ModelProvider, TranscriptEntry, supports_streaming

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=BaseModel)

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json_object(text: str) -> Optional[str]:
    """Return the outermost `{...}` block of a reply, ignoring code fences and surrounding prose."""
    if not text:
        return None
    fenced = _CODE_FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1)
    start = text.find("{")
    end = text.rfind("}") + 1
    if start == -1 or end <= start:
        return None
    return text[start:end]


class StructuredAgent(Generic[T]):
    """
    One model role: a system prompt, an output contract and a private transcript.

    `invoke` sends the system prompt, every previous exchange of this role and the new
    prompt to the provider, and validates the reply against `output_model`. Provider
    errors surface as CompletionFailure (ModelUnavailable passes through unchanged);
    replies that do not fit the contract surface as SchemaViolation.
    """

    def __init__(
        self,
        name: str,
        system_prompt: SystemPrompt,
        output_model: Type[T],
        provider: ModelProvider,
        schema_retries: int = 0,
        stream_callback: Optional[Callable[[str], None]] = None,
    ):
        self.name = name
        self.system_prompt = system_prompt
        self.output_model = output_model
        self.provider = provider
        self.schema_retries = schema_retries
        self.stream_callback = stream_callback
        self._transcript: List[TranscriptEntry] = []

    @property
    def transcript(self) -> Tuple[TranscriptEntry, ...]:
        return tuple(self._transcript)

    def reset(self) -> None:
        self._transcript.clear()

    async def invoke(self, prompt: str) -> T:
        system_message = self.system_prompt.get_system_message()
        context = list(self._transcript)
        turn_prompt = prompt

        for attempt in range(self.schema_retries + 1):
            raw = await self._complete(system_message, context, turn_prompt)
            try:
                parsed = self.parse(raw)
            except SchemaViolation as e:
                logger.warning(f"[{self.name}] output did not match schema (attempt {attempt + 1}/{self.schema_retries + 1}): {e}")
                if attempt >= self.schema_retries:
                    raise
                # The bad exchange is only shown to the retry, never kept in the transcript
                context = list(self._transcript) + [TranscriptEntry(prompt=prompt, output=raw)]
                turn_prompt = schema_correction_message(str(e))
                continue

            self._transcript.append(TranscriptEntry(prompt=prompt, output=raw))
            return parsed

        raise SchemaViolation(f"{self.name} produced no valid output")

    async def _complete(self, system_message: str, transcript: List[TranscriptEntry], prompt: str) -> str:
        try:
            if self.stream_callback is not None and supports_streaming(self.provider):
                chunks = []
                async for chunk in self.provider.complete_streaming(system_message, transcript, prompt):
                    chunks.append(chunk)
                    self.stream_callback(chunk)
                text = "".join(chunks)
                if not text:
                    raise CompletionFailure(f"{self.name} completion failed: empty streamed response")
                return text
            return await self.provider.complete(system_message, transcript, prompt)
        except (ModelUnavailable, CompletionFailure):
            raise
        except Exception as e:
            raise CompletionFailure(f"{self.name} completion failed: {type(e).__name__}: {e}") from e

    def parse(self, raw: str) -> T:
        if not raw or not raw.strip():
            raise SchemaViolation("Empty response from model", raw_output=raw)

        blob = extract_json_object(raw)
        if blob is None:
            raise SchemaViolation("No JSON object found in model output", raw_output=raw)

        try:
            data = json.loads(blob)
        except json.JSONDecodeError as e:
            raise SchemaViolation(f"Malformed JSON in model output: {e}", raw_output=raw) from e

        try:
            return self.output_model.model_validate(data)
        except ValidationError as e:
            raise SchemaViolation(
                f"Model output does not match {self.output_model.__name__}: {e.error_count()} validation error(s): "
                + "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()),
                raw_output=raw,
            ) from e

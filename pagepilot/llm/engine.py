from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, Dict, List, Optional, Protocol, Sequence

from pydantic import BaseModel

from pagepilot.config import CONFIG
from pagepilot.exceptions import CompletionFailure, ModelUnavailable
from pagepilot.llm.base import BaseMessage, ProgressCallback, TranscriptEntry, build_messages

logger = logging.getLogger(__name__)


class ChatBackend(Protocol):
    """Inference backend driven by LLMEngine.

    Backends may also define `check_support()` (raise ModelUnavailable when the host
    cannot run any model) and `chat_stream(...)` yielding text chunks.
    """

    async def load(self, model_id: str, progress: ProgressCallback) -> None: ...

    async def chat(self, messages: List[BaseMessage], *, model_id: str, temperature: float, max_tokens: int) -> str: ...


class LLMEngineState(BaseModel):
    is_loading: bool = False
    load_progress: float = 0.0
    current_model: Optional[str] = None
    error: Optional[str] = None


class LLMEngine:
    """
    Model lifecycle manager and ModelProvider implementation.

    Loads the requested model, falling back through the configured fallback models,
    and fans loading progress out to subscribers. Concurrent `initialize` calls for
    the same model share one load.
    """

    def __init__(
        self,
        backend: ChatBackend,
        fallback_models: Optional[Sequence[str]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self._backend = backend
        self.fallback_models = list(fallback_models) if fallback_models is not None else CONFIG.PAGEPILOT_FALLBACK_MODELS
        self.temperature = temperature if temperature is not None else CONFIG.PAGEPILOT_TEMPERATURE
        self.max_tokens = max_tokens if max_tokens is not None else CONFIG.PAGEPILOT_MAX_TOKENS
        self._state = LLMEngineState()
        self._loaded = False
        self._progress_callbacks: Dict[int, ProgressCallback] = {}
        self._next_callback_id = 0
        self._init_task: Optional[asyncio.Future] = None
        self._init_model: Optional[str] = None
        self._generation = 0

    async def initialize(self, model_id: Optional[str] = None) -> None:
        model_id = model_id or CONFIG.PAGEPILOT_MODEL

        if self._init_task is not None and not self._init_task.done() and self._init_model == model_id:
            await asyncio.shield(self._init_task)
            return

        if self._loaded and self._init_model == model_id:
            return

        # A newer request supersedes any load still in flight
        self._generation += 1
        self._loaded = False
        self._init_model = model_id
        self._init_task = asyncio.ensure_future(self._do_initialize(model_id, self._generation))
        await self._init_task

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _do_initialize(self, model_id: str, generation: int) -> None:
        if self._is_current(generation):
            self._state.is_loading = True
            self._state.error = None
            self._state.load_progress = 0.0

        check_support = getattr(self._backend, 'check_support', None)
        if callable(check_support):
            try:
                check_support()
            except ModelUnavailable as e:
                self._record_failure(generation, e)
                raise

        models_to_try = [model_id] + [m for m in self.fallback_models if m != model_id]

        def on_progress(progress: float) -> None:
            if self._is_current(generation):
                self._on_backend_progress(progress)

        for i, model in enumerate(models_to_try):
            try:
                logger.info(f"Initializing model: {model}")
                await self._backend.load(model, on_progress)
            except ModelUnavailable as e:
                self._record_failure(generation, e)
                raise
            except Exception as e:
                logger.error(f"Failed to load {model}: {e}")
                if i == len(models_to_try) - 1:
                    self._record_failure(generation, e)
                    raise
                if not self._is_current(generation):
                    raise CompletionFailure(f"Load of {model_id} superseded by {self._init_model}") from e
                logger.info("Trying fallback model...")
                continue

            if not self._is_current(generation):
                logger.info(f"Discarding load of {model}: superseded by a request for {self._init_model}")
                return

            self._state.current_model = model
            self._state.is_loading = False
            self._state.load_progress = 1.0
            self._loaded = True
            self._notify_progress(1.0)
            logger.info(f"Successfully loaded: {model}")
            return

    def _record_failure(self, generation: int, error: BaseException) -> None:
        # State belongs to the newest request only
        if not self._is_current(generation):
            return
        self._state.error = str(error)
        self._state.is_loading = False

    def _on_backend_progress(self, progress: float) -> None:
        self._state.load_progress = progress
        logger.debug(f"Loading: {round(progress * 100)}%")
        self._notify_progress(progress)

    async def complete(self, system_prompt: str, transcript: Sequence[TranscriptEntry], prompt: str) -> str:
        return await self.chat(build_messages(system_prompt, transcript, prompt))

    async def complete_streaming(
        self, system_prompt: str, transcript: Sequence[TranscriptEntry], prompt: str
    ) -> AsyncIterator[str]:
        messages = build_messages(system_prompt, transcript, prompt)
        self._require_ready()
        chat_stream = getattr(self._backend, 'chat_stream', None)
        if not callable(chat_stream):
            yield await self.chat(messages)
            return
        async for chunk in chat_stream(
            messages,
            model_id=self._state.current_model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        ):
            if chunk:
                yield chunk

    async def chat(
        self,
        messages: List[BaseMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send a chat completion and return the full reply text."""
        self._require_ready()
        content = await self._backend.chat(
            messages,
            model_id=self._state.current_model,
            temperature=self.temperature if temperature is None else temperature,
            max_tokens=self.max_tokens if max_tokens is None else max_tokens,
        )
        if not content:
            raise CompletionFailure('Empty response from LLM')
        return content

    def _require_ready(self) -> None:
        if not self.is_ready():
            raise CompletionFailure('LLM engine not initialized. Call initialize() first.')

    def is_ready(self) -> bool:
        return self._loaded and not self._state.is_loading

    def get_state(self) -> LLMEngineState:
        return self._state.model_copy()

    def on_progress(self, callback: ProgressCallback) -> Callable[[], None]:
        callback_id = self._next_callback_id
        self._next_callback_id += 1
        self._progress_callbacks[callback_id] = callback

        def unsubscribe() -> None:
            self._progress_callbacks.pop(callback_id, None)

        return unsubscribe

    def _notify_progress(self, progress: float) -> None:
        for callback in list(self._progress_callbacks.values()):
            try:
                callback(progress)
            except Exception:
                logger.error("Progress callback error", exc_info=True)

    def reset(self) -> None:
        """Forget the loaded model; the next `initialize` loads again. A load still in flight is discarded."""
        self._generation += 1
        self._state = LLMEngineState()
        self._loaded = False
        self._init_task = None
        self._init_model = None

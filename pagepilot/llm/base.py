from __future__ import annotations

from typing import AsyncIterator, Callable, List, Literal, Optional, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, ConfigDict

ProgressCallback = Callable[[float], None]


class BaseMessage(BaseModel):
    role: Literal['system', 'user', 'assistant']
    content: str

    model_config = ConfigDict(frozen=True)


class SystemMessage(BaseMessage):
    role: Literal['system'] = 'system'


class UserMessage(BaseMessage):
    role: Literal['user'] = 'user'


class AssistantMessage(BaseMessage):
    role: Literal['assistant'] = 'assistant'


class TranscriptEntry(BaseModel):
    """One completed exchange of a role: the prompt it sent and the raw text it got back."""
    prompt: str
    output: str

    model_config = ConfigDict(frozen=True)


def build_messages(system_prompt: str, transcript: Sequence[TranscriptEntry], prompt: str) -> List[BaseMessage]:
    """System prompt, then the transcript as alternating user/assistant turns, then the new prompt."""
    messages: List[BaseMessage] = [SystemMessage(content=system_prompt)]
    for entry in transcript:
        messages.append(UserMessage(content=entry.prompt))
        messages.append(AssistantMessage(content=entry.output))
    messages.append(UserMessage(content=prompt))
    return messages


@runtime_checkable
class ModelProvider(Protocol):
    """What the agents need from a language model.

    `initialize` raises `ModelUnavailable` when the model cannot run on this host at all,
    anything else is a generic failure. `complete_streaming` is optional; callers check
    for it with `supports_streaming`.
    """

    async def initialize(self, model_id: Optional[str] = None) -> None: ...

    async def complete(self, system_prompt: str, transcript: Sequence[TranscriptEntry], prompt: str) -> str: ...

    def on_progress(self, callback: ProgressCallback) -> Callable[[], None]: ...


@runtime_checkable
class StreamingModelProvider(ModelProvider, Protocol):
    def complete_streaming(
        self, system_prompt: str, transcript: Sequence[TranscriptEntry], prompt: str
    ) -> AsyncIterator[str]: ...


def supports_streaming(provider: object) -> bool:
    return callable(getattr(provider, 'complete_streaming', None))

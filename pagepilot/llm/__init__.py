from pagepilot.llm.base import (
	AssistantMessage,
	BaseMessage,
	ModelProvider,
	StreamingModelProvider,
	SystemMessage,
	TranscriptEntry,
	UserMessage,
	build_messages,
	supports_streaming,
)
from pagepilot.llm.engine import ChatBackend, LLMEngine, LLMEngineState

# OpenAIChatBackend is imported from pagepilot.llm.openai_chat so the openai client
# is only loaded when it is actually used.

__all__ = [
	'AssistantMessage',
	'BaseMessage',
	'ChatBackend',
	'LLMEngine',
	'LLMEngineState',
	'ModelProvider',
	'StreamingModelProvider',
	'SystemMessage',
	'TranscriptEntry',
	'UserMessage',
	'build_messages',
	'supports_streaming',
]

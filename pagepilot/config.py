"""
Environment-driven configuration for pagepilot.

Values are read lazily on every attribute access so tests and host processes can
change the environment after import.
"""
from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_MODEL = 'Qwen2.5-1.5B-Instruct-q4f16_1-MLC'
DEFAULT_FALLBACK_MODELS = 'Llama-3.2-1B-Instruct-q4f16_1-MLC,SmolLM2-360M-Instruct-q4f16_1-MLC'


def _env_bool(name: str, default: bool) -> bool:
	raw = os.getenv(name)
	if raw is None:
		return default
	return raw.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
	"""Lazy view over the PAGEPILOT_* / OPENAI_* environment variables."""

	@property
	def PAGEPILOT_LOGGING_LEVEL(self) -> str:
		return os.getenv('PAGEPILOT_LOGGING_LEVEL', 'info').lower()

	@property
	def PAGEPILOT_SETUP_LOGGING(self) -> bool:
		return _env_bool('PAGEPILOT_SETUP_LOGGING', True)

	@property
	def PAGEPILOT_MODEL(self) -> str:
		return os.getenv('PAGEPILOT_MODEL', DEFAULT_MODEL)

	@property
	def PAGEPILOT_FALLBACK_MODELS(self) -> list[str]:
		raw = os.getenv('PAGEPILOT_FALLBACK_MODELS', DEFAULT_FALLBACK_MODELS)
		return [m.strip() for m in raw.split(',') if m.strip()]

	@property
	def PAGEPILOT_TEMPERATURE(self) -> float:
		return float(os.getenv('PAGEPILOT_TEMPERATURE', '0.7'))

	@property
	def PAGEPILOT_MAX_TOKENS(self) -> int:
		return int(os.getenv('PAGEPILOT_MAX_TOKENS', '2048'))

	@property
	def OPENAI_API_KEY(self) -> str:
		return os.getenv('OPENAI_API_KEY', '')

	@property
	def OPENAI_BASE_URL(self) -> str | None:
		return os.getenv('OPENAI_BASE_URL') or None


CONFIG = Config()

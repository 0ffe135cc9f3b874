import os

from pagepilot.logging_config import setup_logging

# Only set up logging if not explicitly disabled by the host process
if os.environ.get('PAGEPILOT_SETUP_LOGGING', 'true').lower() != 'false':
	logger = setup_logging()
else:
	import logging

	logger = logging.getLogger('pagepilot')


# --- Lightweight, lazy re-exports ---
# Avoid importing pydantic models and the openai client at package import time.

_LAZY_EXPORTS = {
	# Agent core
	'Executor': ('pagepilot.agent.executor', 'Executor'),
	'ExecutorSettings': ('pagepilot.agent.settings', 'ExecutorSettings'),
	'PlannerAgent': ('pagepilot.agent.planner', 'PlannerAgent'),
	'NavigatorAgent': ('pagepilot.agent.navigator', 'NavigatorAgent'),
	'StructuredAgent': ('pagepilot.agent.structured', 'StructuredAgent'),
	'Action': ('pagepilot.agent.views', 'Action'),
	'ActionResult': ('pagepilot.agent.views', 'ActionResult'),
	'AgentContext': ('pagepilot.agent.views', 'AgentContext'),
	'Plan': ('pagepilot.agent.views', 'Plan'),
	# Page state
	'PageSnapshot': ('pagepilot.browser.views', 'PageSnapshot'),
	'InteractiveElement': ('pagepilot.browser.views', 'InteractiveElement'),
	# Model providers
	'LLMEngine': ('pagepilot.llm.engine', 'LLMEngine'),
	'OpenAIChatBackend': ('pagepilot.llm.openai_chat', 'OpenAIChatBackend'),
}


def __getattr__(name: str):
	entry = _LAZY_EXPORTS.get(name)
	if not entry:
		raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
	module_path, attr_name = entry
	try:
		from importlib import import_module
		module = import_module(module_path)
		attr = getattr(module, attr_name)
		# Cache for future lookups
		globals()[name] = attr
		return attr
	except Exception as e:
		raise ImportError(f"Failed to import {name} from {module_path}: {e}") from e


__all__ = list(_LAZY_EXPORTS.keys()) + ['setup_logging']

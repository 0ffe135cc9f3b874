from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
	from pagepilot.agent.settings import ExecutorSettings
	from pagepilot.agent.views import AgentContext, AgentStep
	from pagepilot.browser.views import InteractiveElement, PageSnapshot


PLANNER_SYSTEM_PROMPT = """You are a strategic planning agent for web automation tasks.

Your role is to:
1. Analyze the user's task and break it into clear, actionable steps
2. Consider what information you might encounter on web pages
3. Define clear success criteria for task completion

You understand common web navigation patterns:
- Search engines (Google, Bing, DuckDuckGo) have search boxes and result links
- Wikipedia has a search box, article content, and navigation sidebar
- Most sites have navigation menus, buttons, and form inputs
- Forms typically have labeled input fields and submit buttons
- Pages may have pagination, popups, modals, or dynamic content
- Content is often in main/article elements or divs with class names like "content"

General guidance:
- Be specific about what actions need to be taken
- Don't assume exact page structures - describe what to look for
- Consider alternative approaches if the primary one fails
- Keep steps atomic and verifiable"""

PLANNER_OUTPUT_SCHEMA = """{
  "current_state": {
    "analysis": "string - Your analysis of the task requirements and challenges",
    "memory": ["string - Key facts to remember during execution"]
  },
  "plan": {
    "thought": "string - Your strategic reasoning about how to approach this task",
    "steps": ["string - Ordered list of high-level steps to accomplish the task"],
    "success_criteria": "string - How to determine when the task is complete"
  }
}"""

NAVIGATOR_SYSTEM_PROMPT = """You are a tactical web navigation agent that executes browser actions.

Your role is to:
1. Analyze the current page state and identify relevant elements
2. Choose the next best action to progress toward the goal
3. Use the element selectors provided in the page state

AVAILABLE ACTIONS:
- navigate: Go to a URL
  Parameters: {"url": "https://example.com"}
- click: Click an element
  Parameters: {"selector": "#submit-btn"}
- type: Type text into an input field
  Parameters: {"selector": "input[name='q']", "text": "search query"}
- extract: Extract text content from an element
  Parameters: {"selector": ".result-text"} or {"selector": "body"} for the full page
- scroll: Scroll the page
  Parameters: {"direction": "down", "amount": "500"} (amount in pixels)
- wait: Wait for an element to appear or for a delay
  Parameters: {"selector": ".loading"} or {"timeout": "2000"} (timeout in ms)
- done: Task is complete
  Parameters: {"result": "The extracted information or confirmation of completion"}
- fail: Cannot continue with the task
  Parameters: {"reason": "Why the task cannot be completed"}

GUIDELINES:
- Use the element index numbers [N] from the page state to find elements, and act on their selectors
- Prefer specific selectors (id, name) over generic ones
- For forms, look for submit buttons or press enter after typing
- If you can't find an expected element, try scrolling or waiting
- When extracting content, target specific containers rather than the whole body
- Call "done" with the result when you have achieved the task goal
- Call "fail" only when you are certain the task cannot be completed"""

NAVIGATOR_OUTPUT_SCHEMA = """{
  "current_state": {
    "page_summary": "string - Brief description of what's on the current page",
    "relevant_elements": ["string - Elements relevant to the current goal"],
    "progress": "string - How far along you are toward completing the task"
  },
  "action": {
    "thought": "string - Your reasoning for choosing this action",
    "action_type": "navigate | click | type | extract | scroll | wait | done | fail",
    "parameters": {
      "key": "value - The parameters for the action (depends on action_type)"
    }
  }
}"""


class SystemPrompt:
	"""Role prompt followed by the output contract the model must follow."""

	def __init__(self, role_prompt: str, output_schema: str, extend_system_message: Optional[str] = None):
		self.role_prompt = role_prompt
		self.output_schema = output_schema
		prompt = role_prompt
		if extend_system_message:
			prompt += f'\n{extend_system_message}'
		prompt += (
			'\n\nRESPONSE FORMAT:\n'
			'Reply with a single JSON object of exactly this shape and nothing else '
			'(no markdown, no commentary):\n'
			f'{output_schema}'
		)
		self.system_message = prompt

	def get_system_message(self) -> str:
		return self.system_message


def truncate(text: str, limit: int, ellipsis: str = '') -> str:
	if len(text) <= limit:
		return text
	return text[:limit] + ellipsis


class PlannerPrompt:
	"""User messages for the planner role."""

	@staticmethod
	def create_plan(task: str) -> str:
		return (
			'Create a plan for the following web automation task:\n\n'
			f'TASK: {task}\n\n'
			'Analyze this task and provide a strategic plan with clear steps.\n'
			"Consider what web pages you'll need to visit and what actions you'll need to take."
		)

	@staticmethod
	def format_history(history: list['AgentStep']) -> str:
		if not history:
			return 'No actions were taken yet.'
		lines = []
		for i, step in enumerate(history):
			outcome = 'SUCCESS' if step.result.success else f'FAILED: {step.result.error}'
			lines.append(f'Step {i + 1}: {step.action.describe()} -> {outcome}')
		return '\n'.join(lines)

	@staticmethod
	def replan(context: 'AgentContext', failure_reason: str) -> str:
		if context.plan is not None:
			prev_plan = f'Previous Plan:\n{context.plan.numbered_steps()}'
		else:
			prev_plan = 'No previous plan.'
		return (
			'The previous plan encountered an issue. Please create a revised plan.\n\n'
			f'ORIGINAL TASK: {context.task}\n\n'
			f'{prev_plan}\n\n'
			'ACTIONS TAKEN:\n'
			f'{PlannerPrompt.format_history(context.history)}\n\n'
			f'FAILURE REASON: {failure_reason}\n\n'
			'Create a new plan that:\n'
			'1. Addresses the issue that caused the failure\n'
			'2. Builds on any progress made so far\n'
			'3. Uses an alternative approach if the original one is blocked'
		)


class NavigatorMessagePrompt:
	"""Renders task, plan, recent history and the page snapshot into one navigator turn.

	Every section is truncated; the limits come from ExecutorSettings.
	"""

	def __init__(self, context: 'AgentContext', snapshot: 'PageSnapshot', settings: 'ExecutorSettings'):
		self.context = context
		self.snapshot = snapshot
		self.settings = settings

	def _plan_description(self) -> str:
		plan = self.context.plan
		if plan is None:
			return 'No plan available - proceed based on the task.'
		return f'CURRENT PLAN:\n{plan.numbered_steps()}\n\nSuccess Criteria: {plan.success_criteria}'

	def _history_description(self) -> str:
		window = self.settings.history_window
		recent = self.context.history[-window:] if window > 0 else []
		if not recent:
			return 'No actions taken yet.'
		lines = []
		for step in recent:
			if step.result.success:
				outcome = 'OK'
				if step.result.data:
					outcome += ': ' + step.result.data[: self.settings.history_data_chars]
			else:
				outcome = f'FAILED: {step.result.error}'
			lines.append(f'- {step.action.describe()} -> {outcome}')
		return 'RECENT ACTIONS:\n' + '\n'.join(lines)

	def _element_description(self, el: 'InteractiveElement') -> str:
		limit = self.settings.attribute_value_chars
		attrs = ' '.join(f'{k}="{v[:limit]}"' for k, v in el.attributes.items())
		type_part = f' type="{el.type}"' if el.type else ''
		attr_part = f' {attrs}' if attrs else ''
		text = el.text[: self.settings.element_text_chars]
		return f'[{el.index}] <{el.tag}{type_part}{attr_part}> "{text}" -> selector: {el.selector}'

	def _elements_description(self) -> str:
		elements = self.snapshot.interactive_elements[: self.settings.max_interactive_elements]
		if not elements:
			return 'No interactive elements found on this page.'
		return '\n'.join(self._element_description(el) for el in elements)

	def page_text_excerpt(self) -> str:
		return truncate(self.snapshot.page_text, self.settings.page_text_excerpt_chars, '...')

	def get_user_message(self) -> str:
		return (
			f'TASK: {self.context.task}\n\n'
			f'{self._plan_description()}\n\n'
			f'{self._history_description()}\n\n'
			'CURRENT PAGE STATE:\n'
			f'URL: {self.snapshot.url}\n'
			f'Title: {self.snapshot.title}\n\n'
			'INTERACTIVE ELEMENTS (use these selectors):\n'
			f'{self._elements_description()}\n\n'
			'PAGE TEXT (excerpt):\n'
			f'{self.page_text_excerpt()}\n\n'
			'Based on the current state, determine the next action to take to progress toward the goal.\n'
			'If you have achieved the goal, use the "done" action with the result.'
		)


def schema_correction_message(error: str) -> str:
	"""Follow-up turn sent after a reply that did not match the output contract."""
	return (
		'Your previous reply could not be parsed.\n'
		f'Error: {error}\n'
		'Reply again with only the JSON object in the required format.'
	)

"""
Shared fakes for the unit tests.

No network and no real model: providers replay scripted replies.
"""

import json
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Union

import pytest

# Ensure the repo root is on sys.path so `import pagepilot` works without installation
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from pagepilot.agent.views import ActionResult  # noqa: E402
from pagepilot.browser.views import InteractiveElement, PageSnapshot  # noqa: E402

Reply = Union[str, BaseException]


def plan_reply(steps: Sequence[str] = ("Open the page", "Read the answer"), criteria: str = "answer found") -> str:
    return json.dumps(
        {
            "current_state": {"analysis": "simple lookup", "memory": ["be quick"]},
            "plan": {"thought": "go step by step", "steps": list(steps), "success_criteria": criteria},
        }
    )


def action_reply(action_type: str, **parameters) -> str:
    return json.dumps(
        {
            "current_state": {"page_summary": "a page", "relevant_elements": [], "progress": "some"},
            "action": {"thought": f"do {action_type}", "action_type": action_type, "parameters": parameters},
        }
    )


class ScriptedProvider:
    """Model provider that replays replies per role.

    Planner and Navigator calls are told apart by their system prompt. A reply that is
    an exception instance is raised instead of returned.
    """

    def __init__(
        self,
        planner_replies: Optional[List[Reply]] = None,
        navigator_replies: Optional[List[Reply]] = None,
        progress_values: Sequence[float] = (),
        init_error: Optional[BaseException] = None,
    ):
        self.planner_replies = list(planner_replies or [])
        self.navigator_replies = list(navigator_replies or [])
        self.progress_values = list(progress_values)
        self.init_error = init_error
        self.initialized_with: List[Optional[str]] = []
        self.planner_calls: List[dict] = []
        self.navigator_calls: List[dict] = []
        self._progress_callbacks = []

    async def initialize(self, model_id=None):
        self.initialized_with.append(model_id)
        for value in self.progress_values:
            for cb in list(self._progress_callbacks):
                cb(value)
        if self.init_error is not None:
            raise self.init_error

    def on_progress(self, callback):
        self._progress_callbacks.append(callback)

        def unsubscribe():
            if callback in self._progress_callbacks:
                self._progress_callbacks.remove(callback)

        return unsubscribe

    async def complete(self, system_prompt, transcript, prompt):
        call = {"system_prompt": system_prompt, "transcript": tuple(transcript), "prompt": prompt}
        if "strategic planning agent" in system_prompt:
            self.planner_calls.append(call)
            queue = self.planner_replies
            fallback = plan_reply()
        else:
            self.navigator_calls.append(call)
            queue = self.navigator_replies
            fallback = action_reply("wait", timeout="10")
        reply = queue.pop(0) if queue else fallback
        if isinstance(reply, BaseException):
            raise reply
        return reply


class RecordingActions:
    """Action provider that records calls and answers from a script (default: success)."""

    def __init__(self, results: Optional[List[Union[ActionResult, BaseException]]] = None):
        self.results = list(results or [])
        self.calls = []

    async def __call__(self, action_type, parameters):
        self.calls.append((action_type, dict(parameters)))
        if self.results:
            result = self.results.pop(0)
        else:
            result = ActionResult(success=True, data=f"{action_type} ok")
        if isinstance(result, BaseException):
            raise result
        return result


def simple_snapshot(page_text: str = "Hello world", elements: Optional[List[InteractiveElement]] = None) -> PageSnapshot:
    return PageSnapshot(
        url="https://example.com/",
        title="Example",
        interactive_elements=elements if elements is not None else [],
        page_text=page_text,
    )


@pytest.fixture
def make_provider():
    return ScriptedProvider


@pytest.fixture
def make_actions():
    return RecordingActions


@pytest.fixture
def replies():
    """Builders for model replies: `replies.plan(...)`, `replies.action(...)`."""

    class _Replies:
        plan = staticmethod(plan_reply)
        action = staticmethod(action_reply)

    return _Replies


@pytest.fixture
def snapshot_provider():
    async def _provider():
        return simple_snapshot()

    return _provider


@pytest.fixture
def events():
    """List that can be passed to `executor.on_event(events.append)`."""
    return []

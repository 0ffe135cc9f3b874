from __future__ import annotations

import pytest

from pagepilot.agent.navigator import NavigatorAgent
from pagepilot.agent.planner import PlannerAgent
from pagepilot.agent.prompts import NavigatorMessagePrompt, PlannerPrompt
from pagepilot.agent.settings import ExecutorSettings
from pagepilot.agent.views import Action, ActionResult, AgentContext, AgentStep, Plan
from pagepilot.browser.views import InteractiveElement, PageSnapshot


def _step(action_type, success=True, data=None, error=None, **params):
    return AgentStep(
        action=Action(action_type=action_type, parameters=params),
        result=ActionResult(success=success, data=data, error=error),
    )


@pytest.mark.asyncio
async def test_create_plan_returns_plan(make_provider, replies):
    provider = make_provider(planner_replies=[replies.plan(["Search", "Open result"], "page opened")])
    planner = PlannerAgent(provider)

    plan = await planner.create_plan("open the first result")

    assert plan.steps == ["Search", "Open result"]
    assert plan.success_criteria == "page opened"
    assert plan.memory == ["be quick"]
    assert "TASK: open the first result" in provider.planner_calls[0]["prompt"]
    assert len(planner.agent.transcript) == 1


@pytest.mark.asyncio
async def test_replan_starts_a_fresh_conversation(make_provider):
    provider = make_provider()
    planner = PlannerAgent(provider)
    await planner.create_plan("t")

    ctx = AgentContext(task="t", plan=Plan(steps=["a"]))
    ctx.history.append(_step("click", success=False, error="Element not found: #a", selector="#a"))
    await planner.replan(ctx, "Element not found: #a")

    call = provider.planner_calls[1]
    assert call["transcript"] == ()
    assert "ORIGINAL TASK: t" in call["prompt"]
    assert 'Step 1: click({"selector": "#a"}) -> FAILED: Element not found: #a' in call["prompt"]
    assert len(planner.agent.transcript) == 1


def test_replan_prompt_without_plan():
    prompt = PlannerPrompt.replan(AgentContext(task="t"), "why")
    assert "No previous plan." in prompt
    assert "No actions were taken yet." in prompt


def test_planner_system_message_extension(make_provider):
    planner = PlannerAgent(make_provider(), ExecutorSettings(extend_planner_system_message="Prefer Wikipedia."))
    assert "Prefer Wikipedia." in planner.agent.system_prompt.get_system_message()


def test_navigator_prompt_without_plan_or_history():
    ctx = AgentContext(task="read the title")
    snap = PageSnapshot(url="https://example.com/", title="Example")
    prompt = NavigatorMessagePrompt(ctx, snap, ExecutorSettings()).get_user_message()

    assert prompt.startswith("TASK: read the title")
    assert "No plan available - proceed based on the task." in prompt
    assert "No actions taken yet." in prompt
    assert "No interactive elements found on this page." in prompt
    assert "URL: https://example.com/\nTitle: Example" in prompt


def test_navigator_prompt_truncates_every_section():
    settings = ExecutorSettings(history_window=2, max_interactive_elements=2)
    ctx = AgentContext(task="t", plan=Plan(steps=["one", "two"], success_criteria="ok"))
    for i in range(4):
        ctx.history.append(_step("extract", data=f"{i}" + "d" * 300, selector=f"#s{i}"))
    elements = [
        InteractiveElement(
            index=i,
            tag="input",
            type="text",
            text="t" * 80,
            selector=f"#e{i}",
            attributes={"placeholder": "p" * 40},
        )
        for i in range(3)
    ]
    snap = PageSnapshot(url="u", title="T", interactive_elements=elements, page_text="x" * 10)

    prompt = NavigatorMessagePrompt(ctx, snap, settings).get_user_message()

    assert "CURRENT PLAN:\n1. one\n2. two\n\nSuccess Criteria: ok" in prompt
    assert "#s0" not in prompt and "#s1" not in prompt
    assert '- extract({"selector": "#s3"}) -> OK: 3' + "d" * 99 + "\n" in prompt
    assert f'[1] <input type="text" placeholder="{"p" * 30}"> "{"t" * 50}" -> selector: #e1' in prompt
    assert "#e2" not in prompt
    assert "x" * 10 + "\n" in prompt
    assert "..." not in prompt


def test_navigator_prompt_shows_failures():
    ctx = AgentContext(task="t")
    ctx.history.append(_step("click", success=False, error="timeout", selector="#b"))
    snap = PageSnapshot(url="u")
    prompt = NavigatorMessagePrompt(ctx, snap, ExecutorSettings()).get_user_message()
    assert '- click({"selector": "#b"}) -> FAILED: timeout' in prompt


@pytest.mark.asyncio
async def test_navigator_keeps_transcript_until_reset(make_provider, replies):
    provider = make_provider(navigator_replies=[replies.action("click", selector="#a"), replies.action("done", result="r")])
    navigator = NavigatorAgent(provider)
    ctx = AgentContext(task="t")
    snap = PageSnapshot(url="u")

    first = await navigator.get_next_action(ctx, snap)
    second = await navigator.get_next_action(ctx, snap)

    assert first.action.action_type == "click"
    assert second.action.parameters == {"result": "r"}
    assert len(provider.navigator_calls[1]["transcript"]) == 1

    navigator.reset()
    assert navigator.agent.transcript == ()


def test_default_history_window_shows_last_five_actions():
    ctx = AgentContext(task="t")
    for i in range(7):
        ctx.history.append(_step("click", selector=f"#b{i}"))
    snap = PageSnapshot(url="u")

    prompt = NavigatorMessagePrompt(ctx, snap, ExecutorSettings()).get_user_message()

    shown = [i for i in range(7) if f'"#b{i}"' in prompt]
    assert shown == [2, 3, 4, 5, 6]

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from pagepilot.agent.prompts import PLANNER_OUTPUT_SCHEMA, PLANNER_SYSTEM_PROMPT, PlannerPrompt, SystemPrompt
from pagepilot.agent.structured import StructuredAgent
from pagepilot.agent.views import Plan, PlannerOutput

if TYPE_CHECKING:
    from pagepilot.agent.settings import ExecutorSettings
    from pagepilot.agent.views import AgentContext
    from pagepilot.llm.base import ModelProvider

logger = logging.getLogger(__name__)


class PlannerAgent:
    """
    Strategic role: turns a task into an ordered plan with a success criterion, and
    rewrites that plan when execution runs into trouble.
    """

    def __init__(self, provider: ModelProvider, settings: Optional[ExecutorSettings] = None):
        schema_retries = settings.schema_retries if settings else 0
        extend = settings.extend_planner_system_message if settings else None
        self.agent: StructuredAgent[PlannerOutput] = StructuredAgent(
            name="Planner",
            system_prompt=SystemPrompt(PLANNER_SYSTEM_PROMPT, PLANNER_OUTPUT_SCHEMA, extend),
            output_model=PlannerOutput,
            provider=provider,
            schema_retries=schema_retries,
        )

    async def create_plan(self, task: str) -> Plan:
        output = await self.agent.invoke(PlannerPrompt.create_plan(task))
        plan = output.to_plan()
        logger.info(f"Plan created with {len(plan.steps)} steps")
        return plan

    async def replan(self, context: AgentContext, failure_reason: str) -> Plan:
        """Plan again from the full action history. Earlier planning dialogue is dropped first."""
        prompt = PlannerPrompt.replan(context, failure_reason)
        self.reset()
        output = await self.agent.invoke(prompt)
        plan = output.to_plan()
        logger.info(f"Revised plan has {len(plan.steps)} steps (reason: {failure_reason})")
        return plan

    def reset(self) -> None:
        self.agent.reset()

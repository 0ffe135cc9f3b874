from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from pagepilot.agent.prompts import NAVIGATOR_OUTPUT_SCHEMA, NAVIGATOR_SYSTEM_PROMPT, NavigatorMessagePrompt, SystemPrompt
from pagepilot.agent.settings import ExecutorSettings
from pagepilot.agent.structured import StructuredAgent
from pagepilot.agent.views import NavigatorOutput

if TYPE_CHECKING:
    from pagepilot.agent.views import AgentContext
    from pagepilot.browser.views import PageSnapshot
    from pagepilot.llm.base import ModelProvider

logger = logging.getLogger(__name__)


class NavigatorAgent:
    """Tactical role: looks at the page and picks exactly one next action."""

    def __init__(self, provider: ModelProvider, settings: Optional[ExecutorSettings] = None):
        self.settings = settings or ExecutorSettings()
        self.agent: StructuredAgent[NavigatorOutput] = StructuredAgent(
            name="Navigator",
            system_prompt=SystemPrompt(
                NAVIGATOR_SYSTEM_PROMPT,
                NAVIGATOR_OUTPUT_SCHEMA,
                self.settings.extend_navigator_system_message,
            ),
            output_model=NavigatorOutput,
            provider=provider,
            schema_retries=self.settings.schema_retries,
        )

    def build_prompt(self, context: AgentContext, snapshot: PageSnapshot) -> str:
        return NavigatorMessagePrompt(context, snapshot, self.settings).get_user_message()

    async def get_next_action(self, context: AgentContext, snapshot: PageSnapshot) -> NavigatorOutput:
        output = await self.agent.invoke(self.build_prompt(context, snapshot))
        logger.debug(f"Navigator chose {output.action.action_type}: {output.action.thought}")
        return output

    def reset(self) -> None:
        self.agent.reset()

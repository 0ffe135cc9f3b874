from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from pagepilot.config import CONFIG


class ExecutorSettings(BaseModel):
    """Budgets and prompt truncation limits for one Executor."""

    model_id: str = Field(default_factory=lambda: CONFIG.PAGEPILOT_MODEL, description="Model requested from the provider at task start.")
    max_steps: int = Field(25, ge=1, description="Hard cap on navigation iterations per task.")
    max_replans: int = Field(3, ge=0, description="Replans allowed per task before a replan trigger becomes fatal.")
    max_consecutive_failures: int = Field(3, ge=1, description="Failed actions in a row that trigger a replan.")
    # Navigator prompt budget
    history_window: int = Field(5, ge=0, description="Most recent history entries shown to the navigator.")
    max_interactive_elements: int = Field(50, ge=0)
    page_text_excerpt_chars: int = Field(1500, ge=0)
    element_text_chars: int = 50
    attribute_value_chars: int = 30
    history_data_chars: int = 100
    # Structured output
    schema_retries: int = Field(0, ge=0, description="Re-prompts after an output that does not match the schema.")
    extend_planner_system_message: Optional[str] = Field(None, description="Additional text for the planner's system message.")
    extend_navigator_system_message: Optional[str] = Field(None, description="Additional text for the navigator's system message.")

    model_config = ConfigDict(validate_assignment=True, protected_namespaces=())

from __future__ import annotations

import enum
import json
import logging
import traceback
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from typing_extensions import Literal

from pagepilot.exceptions import SchemaViolation
from pagepilot.timing import now_utc

logger = logging.getLogger(__name__)

ActionType = Literal['navigate', 'click', 'type', 'extract', 'scroll', 'wait', 'done', 'fail']
TERMINAL_ACTIONS = frozenset({'done', 'fail'})


class ExecutorStatus(enum.Enum):
    IDLE = "IDLE"
    INITIALIZING_MODEL = "INITIALIZING_MODEL"
    PLANNING = "PLANNING"
    STEPPING = "STEPPING"
    REPLANNING = "REPLANNING"
    TERMINATED = "TERMINATED"


class Action(BaseModel):
    """One concrete instruction for the environment, or a terminal verdict."""
    action_type: ActionType
    parameters: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @field_validator('action_type', mode='before')
    @classmethod
    def _normalize_action_type(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator('parameters', mode='before')
    @classmethod
    def _stringify_parameters(cls, v):
        """Small models often emit numbers or booleans ("amount": 500); keep the mapping str -> str."""
        if v is None:
            return {}
        if not isinstance(v, dict):
            return v
        out = {}
        for key, value in v.items():
            if value is None:
                continue
            if isinstance(value, str):
                out[str(key)] = value
            elif isinstance(value, bool):
                out[str(key)] = 'true' if value else 'false'
            elif isinstance(value, (int, float)):
                out[str(key)] = str(value)
            else:
                out[str(key)] = json.dumps(value)
        return out

    @property
    def is_terminal(self) -> bool:
        return self.action_type in TERMINAL_ACTIONS

    def describe(self) -> str:
        """`action_type({"k": "v"})`, the form used in history renderings."""
        return f"{self.action_type}({json.dumps(self.parameters)})"


class ActionResult(BaseModel):
    """Outcome of applying one action. `data` is meaningful on success, `error` on failure."""
    success: bool
    data: Optional[str] = None
    error: Optional[str] = None


class AgentStep(BaseModel):
    action: Action
    result: ActionResult
    timestamp: datetime = Field(default_factory=now_utc)

    model_config = ConfigDict(frozen=True)


class Plan(BaseModel):
    analysis: str = ""
    memory: List[str] = Field(default_factory=list)
    thought: str = ""
    steps: List[str] = Field(default_factory=list)
    success_criteria: str = ""

    def numbered_steps(self) -> str:
        return "\n".join(f"{i + 1}. {s}" for i, s in enumerate(self.steps))


class AgentContext(BaseModel):
    """Everything the agents may read about the running task. Only the Executor writes to it."""
    task: str = Field(frozen=True)
    plan: Optional[Plan] = None
    history: List[AgentStep] = Field(default_factory=list)


# --- Model reply shapes ---


def _as_str_list(v: Any) -> Any:
    if v is None:
        return []
    if isinstance(v, str):
        return [v] if v.strip() else []
    return v


class PlannerState(BaseModel):
    analysis: str = ""
    memory: List[str] = Field(default_factory=list)

    @field_validator('memory', mode='before')
    @classmethod
    def _coerce_memory(cls, v):
        return _as_str_list(v)


class PlanDetails(BaseModel):
    thought: str = ""
    steps: List[str] = Field(min_length=1)
    success_criteria: str = ""

    @field_validator('steps', mode='before')
    @classmethod
    def _coerce_steps(cls, v):
        return _as_str_list(v)


class PlannerOutput(BaseModel):
    current_state: PlannerState = Field(default_factory=PlannerState)
    plan: PlanDetails

    def to_plan(self) -> Plan:
        return Plan(
            analysis=self.current_state.analysis,
            memory=list(self.current_state.memory),
            thought=self.plan.thought,
            steps=list(self.plan.steps),
            success_criteria=self.plan.success_criteria,
        )


class NavigatorState(BaseModel):
    page_summary: str = ""
    relevant_elements: List[str] = Field(default_factory=list)
    progress: str = ""

    @field_validator('relevant_elements', mode='before')
    @classmethod
    def _coerce_elements(cls, v):
        return _as_str_list(v)


class ActionDecision(Action):
    """The navigator's chosen action together with its reasoning."""
    thought: str = ""

    def to_action(self) -> Action:
        return Action(action_type=self.action_type, parameters=dict(self.parameters))


class NavigatorOutput(BaseModel):
    current_state: NavigatorState = Field(default_factory=NavigatorState)
    action: ActionDecision


class AgentError:
    """Uniform error strings for events and logs"""

    VALIDATION_ERROR = 'Invalid model output format. Please follow the correct schema.'

    @staticmethod
    def format_error(error: BaseException, include_trace: bool = False) -> str:
        if isinstance(error, (ValidationError, SchemaViolation)):
            return f'{AgentError.VALIDATION_ERROR}\nDetails: {str(error)}'
        if include_trace:
            return f'{str(error)}\nStacktrace:\n{traceback.format_exc()}'
        return f'{str(error)}'

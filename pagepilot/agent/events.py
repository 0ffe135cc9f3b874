from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ExecutorEvent:
    """Base class for executor lifecycle events. `type` is the tag observers switch on."""
    type: ClassVar[str] = "EVENT"
    timestamp: float = field(default_factory=time.monotonic, kw_only=True)


@dataclass
class InitStart(ExecutorEvent):
    type: ClassVar[str] = "INIT_START"


@dataclass
class InitProgress(ExecutorEvent):
    """Model loading progress in [0, 1]."""
    type: ClassVar[str] = "INIT_PROGRESS"
    progress: float = 0.0


@dataclass
class InitComplete(ExecutorEvent):
    type: ClassVar[str] = "INIT_COMPLETE"


@dataclass
class PlanStart(ExecutorEvent):
    type: ClassVar[str] = "PLAN_START"


@dataclass
class PlanComplete(ExecutorEvent):
    """Emitted after the initial plan and after every replan."""
    type: ClassVar[str] = "PLAN_COMPLETE"
    steps: List[str] = field(default_factory=list)


@dataclass
class StepStart(ExecutorEvent):
    type: ClassVar[str] = "STEP_START"
    step_number: int = 0


@dataclass
class StepAction(ExecutorEvent):
    type: ClassVar[str] = "STEP_ACTION"
    action_type: str = ""
    params: Dict[str, str] = field(default_factory=dict)


@dataclass
class StepResult(ExecutorEvent):
    type: ClassVar[str] = "STEP_RESULT"
    success: bool = False
    data: Optional[str] = None


@dataclass
class Replan(ExecutorEvent):
    type: ClassVar[str] = "REPLAN"
    reason: str = ""


@dataclass
class TaskComplete(ExecutorEvent):
    type: ClassVar[str] = "TASK_COMPLETE"
    result: str = ""


@dataclass
class TaskFailed(ExecutorEvent):
    type: ClassVar[str] = "TASK_FAILED"
    error: str = ""


EventListener = Callable[[ExecutorEvent], None]


class EventBus:
    """
    Synchronous publish/subscribe fan-out.

    Listeners are called in registration order. A listener that raises is logged
    and skipped; delivery to the remaining listeners continues.
    """

    def __init__(self):
        # dict keeps insertion order and makes unsubscribe O(1)
        self._listeners: Dict[int, EventListener] = {}
        self._next_token = 0

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = listener

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def emit(self, event: ExecutorEvent) -> None:
        logger.debug(f"Event: {event.type}")
        for listener in list(self._listeners.values()):
            try:
                listener(event)
            except Exception:
                logger.error(f"Event listener failed while handling {event.type}", exc_info=True)

    def __len__(self) -> int:
        return len(self._listeners)

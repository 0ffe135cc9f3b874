from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING, Callable, Optional

from pagepilot.agent.events import (
    EventBus,
    EventListener,
    ExecutorEvent,
    InitComplete,
    InitProgress,
    InitStart,
    PlanComplete,
    PlanStart,
    Replan,
    StepAction,
    StepResult,
    StepStart,
    TaskComplete,
    TaskFailed,
)
from pagepilot.agent.navigator import NavigatorAgent
from pagepilot.agent.planner import PlannerAgent
from pagepilot.agent.settings import ExecutorSettings
from pagepilot.agent.views import (
    Action,
    ActionResult,
    AgentContext,
    AgentError,
    AgentStep,
    ExecutorStatus,
)
from pagepilot.browser.views import PageSnapshot
from pagepilot.exceptions import (
    ActionFailure,
    AlreadyRunning,
    BudgetExceeded,
    CompletionFailure,
    ModelUnavailable,
    ObservationFailure,
    SchemaViolation,
    TaskCancelled,
)
from pagepilot.logging_config import RESULT_LEVEL

if TYPE_CHECKING:
    from pagepilot.browser.types import ActionProvider, SnapshotProvider
    from pagepilot.llm.base import ModelProvider

logger = logging.getLogger(__name__)

DEFAULT_DONE_RESULT = 'Task completed successfully'
DEFAULT_FAIL_REASON = 'Unknown failure'
DEFAULT_STREAK_REASON = 'Multiple consecutive failures'
CANCELLED_MESSAGE = 'Task cancelled by user'


def executor_log(level: int, task_id: Optional[str], step: int, message: str, **kwargs):
    log_extras = {'task_id': task_id, 'step': step}
    logger.log(level, message, extra=log_extras, **kwargs)


class Executor:
    """
    Runs one task at a time: loads the model, asks the Planner for a plan, then loops
    snapshot -> Navigator decision -> action -> history until the Navigator says `done`,
    a budget runs out, or the task is cancelled.

    Navigator errors, `fail` actions and streaks of failed actions trigger a replan while
    the replan budget lasts. Every phase change is published on the event bus.
    """

    def __init__(
        self,
        provider: ModelProvider,
        settings: Optional[ExecutorSettings] = None,
        planner: Optional[PlannerAgent] = None,
        navigator: Optional[NavigatorAgent] = None,
    ):
        self.provider = provider
        self.settings = settings or ExecutorSettings()
        self.planner = planner or PlannerAgent(provider, self.settings)
        self.navigator = navigator or NavigatorAgent(provider, self.settings)
        self._bus = EventBus()
        self._context: Optional[AgentContext] = None
        self._is_running = False
        self._should_cancel = False
        self._failure_reported = False
        self._replans = 0
        self._step = 0
        self.task_id: Optional[str] = None
        self.status = ExecutorStatus.IDLE

    # --- public API ---

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def context(self) -> Optional[AgentContext]:
        return self._context

    @property
    def replans_used(self) -> int:
        return self._replans

    def on_event(self, listener: EventListener) -> Callable[[], None]:
        """Subscribe to lifecycle events. Returns the unsubscribe function."""
        return self._bus.subscribe(listener)

    def cancel(self) -> None:
        """Request cancellation. Takes effect at the top of the next iteration."""
        if self._is_running:
            executor_log(logging.INFO, self.task_id, self._step, "Cancellation requested")
        self._should_cancel = True

    async def execute_task(
        self,
        task: str,
        snapshot_provider: SnapshotProvider,
        action_provider: ActionProvider,
    ) -> str:
        """Run `task` to completion and return the `done` result.

        Raises the terminating error (BudgetExceeded, TaskCancelled, ModelUnavailable,
        CompletionFailure, ...) when the task does not succeed.
        """
        if self._is_running:
            raise AlreadyRunning('Executor is already running a task')

        self._is_running = True
        self._should_cancel = False
        self._failure_reported = False
        self._replans = 0
        self._step = 0
        self.task_id = str(uuid.uuid4())

        try:
            await self._initialize_model()

            self._context = AgentContext(task=task)
            await self._create_plan()

            return await self._run_steps(snapshot_provider, action_provider)
        except asyncio.CancelledError:
            if not self._failure_reported:
                self._fail(CANCELLED_MESSAGE)
            raise
        except Exception as e:
            # Exactly one TASK_FAILED per fatal exit
            if not self._failure_reported:
                self._fail(AgentError.format_error(e))
            raise
        finally:
            self._is_running = False
            self.status = ExecutorStatus.TERMINATED
            self.reset()

    def reset(self) -> None:
        """Clear both agents' transcripts and drop the task context."""
        self.planner.reset()
        self.navigator.reset()
        self._context = None

    # --- phases ---

    async def _initialize_model(self) -> None:
        self.status = ExecutorStatus.INITIALIZING_MODEL
        self._emit(InitStart())

        unsubscribe = None
        on_progress = getattr(self.provider, 'on_progress', None)
        if callable(on_progress):
            unsubscribe = on_progress(lambda progress: self._emit(InitProgress(progress=progress)))

        try:
            await self.provider.initialize(self.settings.model_id)
        except ModelUnavailable as e:
            self._fail(f'LLM initialization failed: {e}')
            raise
        except Exception as e:
            self._fail(f'LLM initialization failed: {e}')
            if isinstance(e, CompletionFailure):
                raise
            raise CompletionFailure(f'LLM initialization failed: {e}') from e
        finally:
            if unsubscribe is not None:
                unsubscribe()

        self._emit(InitComplete())

    async def _create_plan(self) -> None:
        self.status = ExecutorStatus.PLANNING
        self._emit(PlanStart())
        try:
            plan = await self.planner.create_plan(self._context.task)
        except Exception as e:
            self._fail(f'Planning failed: {e}')
            raise
        self._context.plan = plan
        self._emit(PlanComplete(steps=list(plan.steps)))
        executor_log(logging.INFO, self.task_id, 0, f"Plan created: {plan.steps}")

    async def _run_steps(self, snapshot_provider: SnapshotProvider, action_provider: ActionProvider) -> str:
        self.status = ExecutorStatus.STEPPING
        consecutive_failures = 0
        max_steps = self.settings.max_steps

        for step in range(1, max_steps + 1):
            self._step = step
            if self._should_cancel:
                self._fail(CANCELLED_MESSAGE)
                raise TaskCancelled(CANCELLED_MESSAGE)

            self._emit(StepStart(step_number=step))
            snapshot = await self._observe(snapshot_provider)

            try:
                decision = await self.navigator.get_next_action(self._context, snapshot)
            except (CompletionFailure, SchemaViolation) as e:
                executor_log(logging.WARNING, self.task_id, step, f"Navigator error: {e}")
                await self._replan(f'Navigator error: {e}')
                continue

            action = decision.action.to_action()
            self._emit(StepAction(action_type=action.action_type, params=dict(action.parameters)))
            executor_log(logging.INFO, self.task_id, step, f"Step {step}: {action.describe()}")

            if action.action_type == 'done':
                result = action.parameters.get('result') or DEFAULT_DONE_RESULT
                self._emit(TaskComplete(result=result))
                executor_log(RESULT_LEVEL, self.task_id, step, f"Task complete: {result}")
                return result

            if action.action_type == 'fail':
                reason = action.parameters.get('reason') or DEFAULT_FAIL_REASON
                await self._replan(reason)
                consecutive_failures = 0
                continue

            result = await self._act(action_provider, action)
            self._emit(StepResult(success=result.success, data=result.data))
            self._context.history.append(AgentStep(action=action, result=result))

            if result.success:
                consecutive_failures = 0
                continue

            consecutive_failures += 1
            executor_log(
                logging.WARNING,
                self.task_id,
                step,
                f"Action {action.action_type} failed ({consecutive_failures} in a row): {result.error}",
            )
            if consecutive_failures >= self.settings.max_consecutive_failures and self._replans < self.settings.max_replans:
                await self._replan(result.error or DEFAULT_STREAK_REASON)
                consecutive_failures = 0
            # Below the threshold the navigator sees the failure in its history window and adapts

        if self._should_cancel:
            self._fail(CANCELLED_MESSAGE)
            raise TaskCancelled(CANCELLED_MESSAGE)

        message = f'Maximum steps ({max_steps}) exceeded without completing task'
        self._fail(message)
        raise BudgetExceeded(message)

    async def _observe(self, snapshot_provider: SnapshotProvider) -> PageSnapshot:
        try:
            snapshot = await snapshot_provider()
            if not isinstance(snapshot, PageSnapshot):
                snapshot = PageSnapshot.model_validate(snapshot)
            return snapshot
        except ObservationFailure as e:
            executor_log(logging.WARNING, self.task_id, self._step, f"Snapshot unavailable, continuing with placeholder: {e}")
            return PageSnapshot.placeholder()
        except Exception as e:
            executor_log(logging.ERROR, self.task_id, self._step, f"Failed to get page state, continuing with placeholder: {e}", exc_info=True)
            return PageSnapshot.placeholder()

    async def _act(self, action_provider: ActionProvider, action: Action) -> ActionResult:
        try:
            result = await action_provider(action.action_type, dict(action.parameters))
            if not isinstance(result, ActionResult):
                result = ActionResult.model_validate(result)
            return result
        except ActionFailure as e:
            return ActionResult(success=False, error=str(e) or type(e).__name__)
        except Exception as e:
            executor_log(logging.WARNING, self.task_id, self._step, f"Action provider raised for {action.action_type}: {e}")
            return ActionResult(success=False, error=str(e) or type(e).__name__)

    async def _replan(self, reason: str) -> None:
        """Spend one replan on `reason`, or end the task if the budget is gone."""
        if self._replans >= self.settings.max_replans:
            self._fail(reason)
            raise BudgetExceeded(reason)

        self._replans += 1
        self.status = ExecutorStatus.REPLANNING
        self._emit(Replan(reason=reason))
        executor_log(
            logging.INFO,
            self.task_id,
            self._step,
            f"Replanning ({self._replans}/{self.settings.max_replans}): {reason}",
        )
        self.navigator.reset()

        try:
            plan = await self.planner.replan(self._context, reason)
        except Exception as e:
            self._fail(f'Replanning failed: {e}')
            raise

        self._context.plan = plan
        self._emit(PlanComplete(steps=list(plan.steps)))
        self.status = ExecutorStatus.STEPPING

    # --- events ---

    def _emit(self, event: ExecutorEvent) -> None:
        self._bus.emit(event)

    def _fail(self, error: str) -> None:
        self._failure_reported = True
        executor_log(logging.ERROR, self.task_id, self._step, f"Task failed: {error}")
        self._emit(TaskFailed(error=error))

from pagepilot.agent.executor import Executor
from pagepilot.agent.navigator import NavigatorAgent
from pagepilot.agent.planner import PlannerAgent
from pagepilot.agent.settings import ExecutorSettings
from pagepilot.agent.structured import StructuredAgent

__all__ = ['Executor', 'ExecutorSettings', 'NavigatorAgent', 'PlannerAgent', 'StructuredAgent']

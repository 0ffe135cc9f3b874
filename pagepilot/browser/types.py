from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable, Dict

if TYPE_CHECKING:
    from pagepilot.agent.views import ActionResult
    from pagepilot.browser.views import PageSnapshot

# Reads the current page. Should return a best-effort result even on partial DOM failure.
SnapshotProvider = Callable[[], Awaitable["PageSnapshot"]]

# Applies one operational action. Expected failures (missing element, timeout)
# come back as ActionResult(success=False, error=...), not as exceptions.
ActionProvider = Callable[[str, Dict[str, str]], Awaitable["ActionResult"]]

from pagepilot.browser.types import ActionProvider, SnapshotProvider
from pagepilot.browser.views import InteractiveElement, PageSnapshot

__all__ = ['ActionProvider', 'SnapshotProvider', 'InteractiveElement', 'PageSnapshot']

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class InteractiveElement(BaseModel):
    """One addressable element of the page as reported by the snapshot provider."""
    index: int
    tag: str
    type: Optional[str] = None
    text: str = ""
    selector: str
    attributes: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class PageSnapshot(BaseModel):
    """Point-in-time, already truncated view of the page."""
    url: str
    title: str = ""
    interactive_elements: List[InteractiveElement] = Field(default_factory=list)
    page_text: str = ""

    @classmethod
    def placeholder(cls) -> "PageSnapshot":
        """Degraded snapshot used when the provider fails, so the step can still run."""
        return cls(
            url="unknown",
            title="Error getting page state",
            interactive_elements=[],
            page_text="",
        )

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class PageType(str, Enum):
    portfolio = "portfolio"
    case_study = "case-study"
    complete = "complete"  # Portfolio followed by every case study


class PageFormat(str, Enum):
    """
    Paper sizes understood by the Chromium renderer.
    Dimensions are in inches (width, height).
    """
    a4 = "A4"          # 8.27" × 11.7"
    a3 = "A3"          # 11.7" × 16.54"
    letter = "Letter"  # 8.5" × 11"
    legal = "Legal"    # 8.5" × 14"


PAPER_DIMENSIONS = {
    PageFormat.a4: (8.27, 11.7),
    PageFormat.a3: (11.7, 16.54),
    PageFormat.letter: (8.5, 11.0),
    PageFormat.legal: (8.5, 14.0),
}


class PortfolioContent(BaseModel):
    """The parts of a portfolio document that change its rendered output."""

    title: str | None = None
    content: dict[str, Any] = Field(default_factory=dict)
    styling: dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime | None = None
    case_studies: dict[str, Any] = Field(default_factory=dict)


class ExportRequest(BaseModel):
    template_id: str | None = None
    page_type: PageType = PageType.portfolio
    format: PageFormat = PageFormat.a4
    landscape: bool = False
    include_case_studies: bool = False
    # Rendered instead of the published page when given
    html: str | None = None
    filename: str | None = None
    portfolio: PortfolioContent = Field(default_factory=PortfolioContent)

    def key_options(self, content_hash: str) -> dict[str, Any]:
        """Rendering options that take part in the cache fingerprint."""
        return {
            "page_type": self.page_type.value,
            "format": self.format.value,
            "landscape": self.landscape,
            "include_case_studies": self.include_case_studies,
            "content_hash": content_hash,
        }

"""Cache-through PDF export of portfolios."""

import logging
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlencode

from app.exceptions import InvalidExportRequestError
from app.schemas.pdf import ExportRequest, PageType
from app.services.cache import PDFCache
from app.services.renderer import RendererClient, RenderRequest

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """A rendered (or cached) PDF ready to be sent to the client."""

    content: bytes
    filename: str
    cached: bool
    key: str
    duration_ms: float = 0.0


@dataclass
class PDFExportService:
    """
    Serve portfolio PDFs from the cache, rendering on a miss.

    Parameters
    ----------
    cache : PDFCache
        Process-wide PDF cache.
    renderer : RendererClient
        Client for the Chromium rendering service.
    site_base_url : str
        Base URL of the published portfolio pages.
    """

    cache: PDFCache
    renderer: RendererClient
    site_base_url: str = "http://localhost:5173"

    async def export_portfolio_pdf(self, portfolio_id: str, request: ExportRequest) -> ExportResult:
        """
        Export a portfolio as PDF.

        Raises
        ------
        InvalidExportRequestError
            If the request asks for case studies the portfolio does not have.
        RendererUnavailableError, RenderError
            If rendering is needed and fails.
        """
        start = time.perf_counter()

        content_hash = self.cache.generate_content_hash(request.portfolio)
        key = self.cache.generate_key(portfolio_id, request.template_id, request.key_options(content_hash))
        filename = request.filename or self._default_filename(portfolio_id, request.page_type)

        pdf_bytes = self.cache.get(key)
        cached = pdf_bytes is not None

        if pdf_bytes is None:
            pdf_bytes = await self.renderer.render_many(
                self._build_render_requests(portfolio_id, request),
                title=request.portfolio.title,
            )
            self.cache.set(
                key,
                pdf_bytes,
                {
                    "portfolio_id": portfolio_id,
                    "template_id": request.template_id,
                    "filename": filename,
                },
            )

        duration_ms = round((time.perf_counter() - start) * 1000, 1)
        logger.info(
            "PDF export completed for %s in %.0fms (cached=%s)",
            portfolio_id,
            duration_ms,
            cached,
            extra={
                "portfolio_id": portfolio_id,
                "duration_ms": duration_ms,
                "cached": cached,
                "size_kb": round(len(pdf_bytes) / 1024),
            },
        )
        return ExportResult(content=pdf_bytes, filename=filename, cached=cached, key=key, duration_ms=duration_ms)

    def invalidate_portfolio_cache(self, portfolio_id: str) -> dict[str, Any]:
        """Drop every cached PDF of a portfolio, e.g. after it was edited."""
        invalidated = self.cache.invalidate_portfolio(portfolio_id)
        return {"portfolio_id": portfolio_id, "entries_invalidated": invalidated}

    def cleanup(self, clear_cache: bool = False) -> dict[str, Any]:
        """Optionally clear the cache, then sweep expired entries."""
        cleared = self.cache.clear() if clear_cache else 0
        expired = self.cache.cleanup_expired()
        stats = self.cache.get_stats()

        return {
            "message": "PDF cleanup completed",
            "entries_cleared": cleared,
            "entries_expired": expired,
            "stats": {
                "cache_size": stats["size"],
                "cache_memory_mb": stats["memory_used_mb"],
                "evictions": stats["evictions"],
            },
        }

    def get_performance_stats(self) -> dict[str, Any]:
        return {
            "cache": self.cache.get_stats(),
            "renderer": {
                "base_url": self.renderer.base_url,
                "timeout_seconds": self.renderer.timeout,
            },
        }

    def _build_render_requests(self, portfolio_id: str, request: ExportRequest) -> list[RenderRequest]:
        if request.html:
            return [RenderRequest(html=request.html, format=request.format, landscape=request.landscape)]

        base = f"{self.site_base_url.rstrip('/')}/portfolio/{quote(portfolio_id, safe='')}"
        query = f"?{urlencode({'template': request.template_id})}" if request.template_id else ""
        case_study_urls = [
            f"{base}/case-study/{quote(str(case_study_id), safe='')}{query}"
            for case_study_id in request.portfolio.case_studies
        ]

        if request.page_type == PageType.case_study:
            if not case_study_urls:
                raise InvalidExportRequestError(f"portfolio '{portfolio_id}' has no case studies")
            urls = case_study_urls
        elif request.page_type == PageType.complete or request.include_case_studies:
            urls = [f"{base}{query}", *case_study_urls]
        else:
            urls = [f"{base}{query}"]

        return [RenderRequest(url=url, format=request.format, landscape=request.landscape) for url in urls]

    @staticmethod
    def _default_filename(portfolio_id: str, page_type: PageType) -> str:
        if page_type == PageType.portfolio:
            return f"{portfolio_id}.pdf"
        return f"{portfolio_id}-{page_type.value}.pdf"

"""API routes for portfolio PDF export and cache management."""

from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, Path, Query, Request, Response

from app.schemas.pdf import ExportRequest
from app.services.cache import PDFCache
from app.services.exporter import PDFExportService

router = APIRouter()

PortfolioId = Annotated[str, Path(min_length=1, max_length=64, pattern="^[A-Za-z0-9_-]+$")]


def content_disposition(filename: str) -> str:
    """Build an inline Content-Disposition header that is safe for any filename."""
    # Plain filename= must be printable ASCII without quotes or backslashes
    fallback = "".join(c if " " <= c <= "~" and c not in "\"\\" else "_" for c in filename) or "portfolio.pdf"
    return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def get_export_service(request: Request) -> PDFExportService:
    return request.app.state.export_service


def get_pdf_cache(request: Request) -> PDFCache:
    return request.app.state.pdf_cache


@router.post("/pdf/portfolios/{portfolio_id}")
async def export_portfolio(
    portfolio_id: PortfolioId,
    export_request: ExportRequest,
    service: Annotated[PDFExportService, Depends(get_export_service)],
):
    """Export a portfolio as PDF, served from the cache when possible."""
    result = await service.export_portfolio_pdf(portfolio_id, export_request)

    return Response(
        result.content,
        headers={
            "Content-Disposition": content_disposition(result.filename),
            "X-Cache": "HIT" if result.cached else "MISS",
        },
        media_type="application/pdf",
    )


@router.get("/pdf/cache/stats")
async def cache_stats(service: Annotated[PDFExportService, Depends(get_export_service)]):
    """Cache counters together with renderer settings."""
    return service.get_performance_stats()


@router.get("/pdf/cache/entries")
async def cache_entries(cache: Annotated[PDFCache, Depends(get_pdf_cache)]):
    """List cached PDFs for monitoring."""
    entries = cache.get_cache_metadata()
    return {"count": len(entries), "entries": entries}


@router.delete("/pdf/cache/portfolios/{portfolio_id}")
async def invalidate_portfolio(
    portfolio_id: PortfolioId,
    service: Annotated[PDFExportService, Depends(get_export_service)],
):
    """Drop every cached PDF of a portfolio."""
    return service.invalidate_portfolio_cache(portfolio_id)


@router.post("/pdf/cache/cleanup")
async def cleanup_cache(
    service: Annotated[PDFExportService, Depends(get_export_service)],
    clear_cache: Annotated[bool, Query()] = False,
):
    """Sweep expired entries, optionally clearing the whole cache first."""
    return service.cleanup(clear_cache=clear_cache)


@router.delete("/pdf/cache")
async def clear_cache(cache: Annotated[PDFCache, Depends(get_pdf_cache)]):
    """Clear all cached PDFs."""
    return {"entries_cleared": cache.clear()}


@router.get("/health")
async def health_check(cache: Annotated[PDFCache, Depends(get_pdf_cache)]):
    """Health check endpoint with cache stats."""
    return {
        "status": "healthy",
        "cache": cache.get_stats(),
    }

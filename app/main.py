"""Main application module for the portfolio PDF export service."""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.api import router
from app.config import Settings
from app.exceptions import (
    InvalidExportRequestError,
    PortfolioPDFException,
    RenderError,
    RendererUnavailableError,
)
from app.logging_config import setup_logging
from app.services.cache import PDFCache
from app.services.exporter import PDFExportService
from app.services.renderer import RendererClient
from app.tasks.scheduler import start_scheduler, stop_scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    scheduler = None
    if settings.cache.enabled:
        scheduler = start_scheduler(app.state.pdf_cache, settings.cache.cleanup_interval_seconds)
    yield
    if scheduler is not None:
        stop_scheduler(scheduler)


# Exception handlers
async def invalid_request_handler(request: Request, exc: InvalidExportRequestError):
    """Handle export requests that cannot be rendered."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "invalid_request",
            "message": exc.message,
        },
    )


async def renderer_unavailable_handler(request: Request, exc: RendererUnavailableError):
    """Handle an unreachable rendering service."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "renderer_unavailable",
            "message": exc.message,
        },
    )


async def render_error_handler(request: Request, exc: RenderError):
    """Handle PDF generation errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "pdf_generation_failed",
            "message": exc.message,
            "original_status": exc.original_status,
        },
    )


async def portfolio_pdf_exception_handler(request: Request, exc: PortfolioPDFException):
    """Handle generic export exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "pdf_export_error",
            "message": exc.message,
        },
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application and its process-wide services.

    Parameters
    ----------
    settings : Settings | None
        Resolved settings. Read from the environment when omitted.
    """
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Portfolio PDF",
        description="Export portfolios as PDF documents",
        version="1.0.0",
        lifespan=lifespan,
    )

    pdf_cache = PDFCache.from_settings(settings.cache)
    app.state.settings = settings
    app.state.pdf_cache = pdf_cache
    app.state.export_service = PDFExportService(
        cache=pdf_cache,
        renderer=RendererClient.from_settings(settings.renderer),
        site_base_url=settings.renderer.site_base_url,
    )

    app.add_exception_handler(InvalidExportRequestError, invalid_request_handler)
    app.add_exception_handler(RendererUnavailableError, renderer_unavailable_handler)
    app.add_exception_handler(RenderError, render_error_handler)
    app.add_exception_handler(PortfolioPDFException, portfolio_pdf_exception_handler)

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    """Instantiate the application webserver"""
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True, reload_dirs=["app"])

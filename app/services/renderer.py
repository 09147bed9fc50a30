"""Client for the external Chromium rendering service."""

import io
import logging
from dataclasses import dataclass, field

import httpx
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from app.config import RendererSettings
from app.exceptions import InvalidExportRequestError, RenderError, RendererUnavailableError
from app.schemas.pdf import PAPER_DIMENSIONS, PageFormat

logger = logging.getLogger(__name__)

PRODUCER = "portfolio-pdf"


@dataclass
class RenderRequest:
    """
    A single page to render.

    Exactly one of ``url`` or ``html`` must be set.
    """

    url: str | None = None
    html: str | None = None
    format: PageFormat = PageFormat.a4
    landscape: bool = False
    print_background: bool = True

    def form_fields(self) -> dict[str, str]:
        width, height = PAPER_DIMENSIONS[self.format]
        fields = {
            "paperWidth": str(width),
            "paperHeight": str(height),
            "landscape": str(self.landscape).lower(),
            "printBackground": str(self.print_background).lower(),
            "preferCssPageSize": "true",
        }
        for side in ("marginTop", "marginBottom", "marginLeft", "marginRight"):
            fields[side] = "0"
        if self.url:
            fields["url"] = self.url
        return fields


@dataclass
class RendererClient:
    """
    Render pages to PDF through a Gotenberg-compatible Chromium service.

    Parameters
    ----------
    base_url : str
        Base URL of the rendering service.
    timeout : float
        Timeout in seconds for a single render call.
    """

    base_url: str = "http://localhost:3000"
    timeout: float = 30.0
    URL_ENDPOINT: str = field(default="/forms/chromium/convert/url", repr=False)
    HTML_ENDPOINT: str = field(default="/forms/chromium/convert/html", repr=False)

    @classmethod
    def from_settings(cls, settings: RendererSettings) -> "RendererClient":
        return cls(base_url=settings.base_url.rstrip("/"), timeout=settings.timeout_seconds)

    async def render(self, request: RenderRequest, title: str | None = None) -> bytes:
        """
        Render a single page.

        Returns
        -------
        bytes
            PDF document with title and producer metadata set.

        Raises
        ------
        InvalidExportRequestError
            If neither or both of ``url`` and ``html`` are set.
        RendererUnavailableError
            If the rendering service cannot be reached.
        RenderError
            If the service fails or returns something that is not a PDF.
        """
        return await self.render_many([request], title=title)

    async def render_many(self, requests: list[RenderRequest], title: str | None = None) -> bytes:
        """Render several pages and merge them into one document, in order."""
        if not requests:
            raise InvalidExportRequestError("nothing to render")

        documents = [await self.__post(request) for request in requests]

        try:
            writer = PdfWriter()
            for document in documents:
                writer.append(PdfReader(io.BytesIO(document)))

            writer.add_metadata({"/Title": title or "Portfolio", "/Producer": PRODUCER})

            with io.BytesIO() as file:
                writer.write(file)
                return file.getvalue()

        except PyPdfError as e:
            raise RenderError(f"Renderer returned an invalid PDF: {e}") from e

    async def __post(self, request: RenderRequest) -> bytes:
        """
        Send one render call.

        Raises
        ------
        RendererUnavailableError
            On timeout or network failure.
        RenderError
            If the service answers with a non-200 status.
        """
        if bool(request.url) == bool(request.html):
            raise InvalidExportRequestError("exactly one of url or html must be given")

        if request.url:
            url = f"{self.base_url}{self.URL_ENDPOINT}"
            files = None
        else:
            url = f"{self.base_url}{self.HTML_ENDPOINT}"
            files = {"files": ("index.html", request.html.encode("utf-8"), "text/html")}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(url, data=request.form_fields(), files=files)
            except httpx.TimeoutException as e:
                raise RendererUnavailableError("Request timed out. Please try again.") from e
            except httpx.RequestError as e:
                raise RendererUnavailableError(f"Network error: {str(e)}") from e

        if response.status_code != 200:
            logger.warning("Renderer returned status %s for %s", response.status_code, request.url or "inline html")
            raise RenderError(
                f"Renderer returned status {response.status_code}",
                original_status=response.status_code,
            )

        return response.content

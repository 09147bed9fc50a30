import io

import httpx
import pytest
from pypdf import PdfReader

from app.config import RendererSettings
from app.exceptions import InvalidExportRequestError, RenderError, RendererUnavailableError
from app.schemas.pdf import PageFormat
from app.services.renderer import RendererClient, RenderRequest

from conftest import make_pdf


@pytest.fixture
def mock_renderer(monkeypatch):
    """Route every httpx.AsyncClient through a MockTransport with the given handler."""

    def install(handler):
        orig = httpx.AsyncClient

        def patched_async_client(*args, **kwargs):
            kwargs["transport"] = httpx.MockTransport(handler)
            return orig(*args, **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", patched_async_client)

    return install


@pytest.mark.asyncio
async def test_render_url_success(mock_renderer):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        assert request.method == "POST"
        assert request.url.path == "/forms/chromium/convert/url"
        body = request.read()
        assert b"landscape=true" in body
        assert b"paperWidth=8.5" in body
        return httpx.Response(200, content=make_pdf())

    mock_renderer(handler)
    client = RendererClient(base_url="http://renderer.test", timeout=5.0)

    out = await client.render(
        RenderRequest(url="http://site.test/portfolio/p1", format=PageFormat.letter, landscape=True),
        title="My Portfolio",
    )

    reader = PdfReader(io.BytesIO(out))
    assert len(reader.pages) == 1
    assert reader.metadata.title == "My Portfolio"
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_render_html_uses_html_endpoint(mock_renderer):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/forms/chromium/convert/html"
        body = request.read()
        assert b'filename="index.html"' in body
        assert b"<h1>Hi</h1>" in body
        return httpx.Response(200, content=make_pdf())

    mock_renderer(handler)
    client = RendererClient(base_url="http://renderer.test", timeout=5.0)

    out = await client.render(RenderRequest(html="<h1>Hi</h1>"))
    assert out.startswith(b"%PDF")


@pytest.mark.asyncio
async def test_render_many_merges_in_order(mock_renderer):
    page_counts = iter([1, 2])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=make_pdf(pages=next(page_counts)))

    mock_renderer(handler)
    client = RendererClient(base_url="http://renderer.test", timeout=5.0)

    out = await client.render_many(
        [RenderRequest(url="http://site.test/a"), RenderRequest(url="http://site.test/b")]
    )
    assert len(PdfReader(io.BytesIO(out)).pages) == 3


@pytest.mark.asyncio
async def test_render_http_error_raises(mock_renderer):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    mock_renderer(handler)
    client = RendererClient(base_url="http://renderer.test", timeout=5.0)

    with pytest.raises(RenderError) as exc_info:
        await client.render(RenderRequest(url="http://site.test/a"))
    assert exc_info.value.original_status == 500
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_render_timeout_raises_unavailable(mock_renderer):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    mock_renderer(handler)
    client = RendererClient(base_url="http://renderer.test", timeout=5.0)

    with pytest.raises(RendererUnavailableError):
        await client.render(RenderRequest(url="http://site.test/a"))


@pytest.mark.asyncio
async def test_render_connect_error_raises_unavailable(mock_renderer):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    mock_renderer(handler)
    client = RendererClient(base_url="http://renderer.test", timeout=5.0)

    with pytest.raises(RendererUnavailableError):
        await client.render(RenderRequest(url="http://site.test/a"))


@pytest.mark.asyncio
async def test_render_invalid_pdf_raises(mock_renderer):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"not a pdf")

    mock_renderer(handler)
    client = RendererClient(base_url="http://renderer.test", timeout=5.0)

    with pytest.raises(RenderError):
        await client.render(RenderRequest(url="http://site.test/a"))


@pytest.mark.asyncio
async def test_render_requires_exactly_one_source():
    client = RendererClient(base_url="http://renderer.test", timeout=5.0)

    with pytest.raises(InvalidExportRequestError):
        await client.render(RenderRequest())
    with pytest.raises(InvalidExportRequestError):
        await client.render(RenderRequest(url="http://site.test/a", html="<p></p>"))
    with pytest.raises(InvalidExportRequestError):
        await client.render_many([])


def test_from_settings_strips_trailing_slash():
    client = RendererClient.from_settings(RendererSettings(base_url="http://renderer.test/", timeout_seconds=12))
    assert client.base_url == "http://renderer.test"
    assert client.timeout == 12

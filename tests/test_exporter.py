import pytest

from app.exceptions import InvalidExportRequestError, RendererUnavailableError
from app.schemas.pdf import ExportRequest, PageType, PortfolioContent
from app.services.cache import PDFCache
from app.services.exporter import PDFExportService

from conftest import FakeRenderer


def _service(renderer, clock, **cache_kwargs):
    cache = PDFCache(clock=clock, **cache_kwargs)
    return PDFExportService(cache=cache, renderer=renderer, site_base_url="http://site.test/")


def _request(**overrides):
    data = {
        "template_id": "echolon",
        "portfolio": PortfolioContent(title="My Work", case_studies={"cs1": {}, "cs2": {}}),
    }
    data.update(overrides)
    return ExportRequest(**data)


@pytest.mark.asyncio
async def test_second_export_is_served_from_cache(fake_renderer, clock):
    service = _service(fake_renderer, clock)

    first = await service.export_portfolio_pdf("p1", _request())
    second = await service.export_portfolio_pdf("p1", _request())

    assert first.cached is False
    assert second.cached is True
    assert second.content == first.content
    assert second.key == first.key
    assert len(fake_renderer.calls) == 1
    assert first.filename == "p1.pdf"


@pytest.mark.asyncio
async def test_content_change_renders_again(fake_renderer, clock):
    service = _service(fake_renderer, clock)

    await service.export_portfolio_pdf("p1", _request())
    result = await service.export_portfolio_pdf(
        "p1", _request(portfolio=PortfolioContent(title="Renamed", case_studies={"cs1": {}, "cs2": {}}))
    )

    assert result.cached is False
    assert len(fake_renderer.calls) == 2


@pytest.mark.asyncio
async def test_portfolio_page_url(fake_renderer, clock):
    service = _service(fake_renderer, clock)
    await service.export_portfolio_pdf("p1", _request(landscape=True))

    requests, title = fake_renderer.calls[0]
    assert [r.url for r in requests] == ["http://site.test/portfolio/p1?template=echolon"]
    assert requests[0].landscape is True
    assert title == "My Work"


@pytest.mark.asyncio
async def test_include_case_studies_renders_every_page(fake_renderer, clock):
    service = _service(fake_renderer, clock)
    result = await service.export_portfolio_pdf("p1", _request(page_type=PageType.complete, template_id=None))

    requests, _ = fake_renderer.calls[0]
    assert [r.url for r in requests] == [
        "http://site.test/portfolio/p1",
        "http://site.test/portfolio/p1/case-study/cs1",
        "http://site.test/portfolio/p1/case-study/cs2",
    ]
    assert result.filename == "p1-complete.pdf"


@pytest.mark.asyncio
async def test_case_study_export_without_case_studies_is_rejected(fake_renderer, clock):
    service = _service(fake_renderer, clock)

    with pytest.raises(InvalidExportRequestError):
        await service.export_portfolio_pdf(
            "p1", _request(page_type=PageType.case_study, portfolio=PortfolioContent(title="x"))
        )
    assert fake_renderer.calls == []


@pytest.mark.asyncio
async def test_inline_html_export(fake_renderer, clock):
    service = _service(fake_renderer, clock)
    await service.export_portfolio_pdf("p1", _request(html="<h1>Hi</h1>", filename="resume.pdf"))

    requests, _ = fake_renderer.calls[0]
    assert len(requests) == 1
    assert requests[0].html == "<h1>Hi</h1>"
    assert requests[0].url is None


@pytest.mark.asyncio
async def test_render_failure_propagates_and_caches_nothing(clock):
    renderer = FakeRenderer(error=RendererUnavailableError("down"))
    service = _service(renderer, clock)

    with pytest.raises(RendererUnavailableError):
        await service.export_portfolio_pdf("p1", _request())
    assert len(service.cache) == 0


@pytest.mark.asyncio
async def test_disabled_cache_always_renders(fake_renderer, clock):
    service = _service(fake_renderer, clock, enabled=False)

    await service.export_portfolio_pdf("p1", _request())
    result = await service.export_portfolio_pdf("p1", _request())

    assert result.cached is False
    assert len(fake_renderer.calls) == 2


@pytest.mark.asyncio
async def test_invalidate_portfolio_cache(fake_renderer, clock):
    service = _service(fake_renderer, clock)
    await service.export_portfolio_pdf("p1", _request())
    await service.export_portfolio_pdf("p1", _request(landscape=True))
    await service.export_portfolio_pdf("p2", _request())

    assert service.invalidate_portfolio_cache("p1") == {"portfolio_id": "p1", "entries_invalidated": 2}

    result = await service.export_portfolio_pdf("p2", _request())
    assert result.cached is True


@pytest.mark.asyncio
async def test_cleanup_sweeps_and_optionally_clears(fake_renderer, clock):
    service = _service(fake_renderer, clock, ttl_seconds=60)
    await service.export_portfolio_pdf("p1", _request())
    clock.advance(61)
    await service.export_portfolio_pdf("p2", _request())

    summary = service.cleanup()
    assert summary["entries_expired"] == 1
    assert summary["stats"]["cache_size"] == 1

    summary = service.cleanup(clear_cache=True)
    assert summary["entries_cleared"] == 1
    assert summary["stats"]["cache_size"] == 0


def test_performance_stats(fake_renderer, clock):
    service = _service(fake_renderer, clock)
    stats = service.get_performance_stats()

    assert stats["cache"]["enabled"] is True
    assert stats["renderer"]["base_url"] == "http://renderer.test"

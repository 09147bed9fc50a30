import io

import pytest
from pypdf import PdfWriter


class FakeClock:
    """Manually advanced time source for TTL tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_pdf(pages: int = 1) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=595, height=842)
    with io.BytesIO() as file:
        writer.write(file)
        return file.getvalue()


class FakeRenderer:
    """Stands in for RendererClient; records every render call."""

    base_url = "http://renderer.test"
    timeout = 5.0

    def __init__(self, pdf: bytes = b"%PDF-1.7 fake", error: Exception | None = None):
        self.pdf = pdf
        self.error = error
        self.calls = []

    async def render_many(self, requests, title=None):
        self.calls.append((requests, title))
        if self.error is not None:
            raise self.error
        return self.pdf


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_renderer():
    return FakeRenderer()

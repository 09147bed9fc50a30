"""Custom exception classes for the portfolio PDF service."""


class PortfolioPDFException(Exception):
    """Base exception for PDF export errors."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class InvalidExportRequestError(PortfolioPDFException):
    """Raised when an export request cannot be rendered as given."""

    def __init__(self, message: str):
        super().__init__(
            message=f"Invalid export request: {message}",
            status_code=400,
        )


class RendererUnavailableError(PortfolioPDFException):
    """Raised when the rendering service cannot be reached."""

    def __init__(self, message: str):
        super().__init__(
            message=f"Renderer unavailable: {message}",
            status_code=503,
        )


class RenderError(PortfolioPDFException):
    """Raised when the rendering service fails to produce a PDF."""

    def __init__(self, message: str, original_status: int | None = None):
        super().__init__(
            message=f"PDF generation failed: {message}",
            status_code=502 if original_status is not None else 500,
        )
        self.original_status = original_status

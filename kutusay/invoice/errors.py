"""Exceptions raised by the invoice extraction engine and its OCR collaborators."""

from __future__ import annotations


class InvoiceExtractionError(RuntimeError):
    """Base class for extraction failures."""


class OcrProviderError(InvoiceExtractionError):
    """Raised when an OCR provider cannot produce a result.

    `mode` is set by the orchestrator to the extraction tier that was running
    ("coordinate" or "fallback") when the provider failed.
    """

    mode: str | None = None


class ProviderUnavailable(OcrProviderError):
    """Raised when no OCR provider is configured (e.g. missing API key)."""


class ProviderNetworkError(OcrProviderError):
    """Raised when the provider stays unreachable after all retries."""


class ProviderResponseError(OcrProviderError):
    """Raised for a non-2xx provider response."""

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"OCR provider error {status_code}: {body[:200]}")
        self.status_code = status_code
        self.body = body

    @property
    def retryable(self) -> bool:
        return 500 <= self.status_code <= 599


class ProviderParseError(OcrProviderError):
    """Raised when the provider response body cannot be decoded."""


class ImageLoadError(InvoiceExtractionError):
    """Raised when the source image cannot be decoded."""


class ExtractionEmpty(InvoiceExtractionError):
    """Raised when OCR recognized no text at all. Terminal for the image."""


class ValidationRejected(InvoiceExtractionError):
    """Coordinate extraction failed validation; the caller should fall back."""

    def __init__(self, reasons: list[str]) -> None:
        super().__init__("; ".join(reasons) if reasons else "validation rejected")
        self.reasons = list(reasons)

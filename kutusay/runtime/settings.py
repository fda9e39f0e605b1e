"""OCR provider settings read from the environment.

Environment variables:
    KUTUSAY_CLOUD_VISION_API_KEY: Google Cloud Vision API key. Empty disables the cloud provider.
    KUTUSAY_OCR_SERVICE_URL: Local OCR service base URL. Default: http://localhost:8001
    KUTUSAY_OCR_TIMEOUT: Per-request timeout in seconds. Default: 60
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_OCR_SERVICE_URL = "http://localhost:8001"
DEFAULT_OCR_TIMEOUT = 60.0
MAX_RETRY_COUNT = 3
RETRY_DELAY_SECONDS = 1.0


@dataclass(frozen=True)
class OcrSettings:
    """Configuration for OCR provider selection and retries."""

    cloud_vision_api_key: str = ""
    ocr_service_url: str = DEFAULT_OCR_SERVICE_URL
    timeout: float = DEFAULT_OCR_TIMEOUT
    max_retries: int = MAX_RETRY_COUNT
    retry_delay: float = RETRY_DELAY_SECONDS

    @property
    def cloud_vision_configured(self) -> bool:
        return bool(self.cloud_vision_api_key)


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_ocr_settings(ocr_service_url: str | None = None) -> OcrSettings:
    """Build settings from the environment; an explicit service URL wins over the env var."""
    service_url = ocr_service_url or os.environ.get("KUTUSAY_OCR_SERVICE_URL", "").strip() or DEFAULT_OCR_SERVICE_URL
    return OcrSettings(
        cloud_vision_api_key=os.environ.get("KUTUSAY_CLOUD_VISION_API_KEY", "").strip(),
        ocr_service_url=service_url.rstrip("/"),
        timeout=_float_env("KUTUSAY_OCR_TIMEOUT", DEFAULT_OCR_TIMEOUT),
    )

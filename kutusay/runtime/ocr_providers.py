"""OCR provider implementations: Google Cloud Vision and the local OCR service."""

from __future__ import annotations

import asyncio
import base64
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from kutusay.invoice.errors import (
    OcrProviderError,
    ProviderNetworkError,
    ProviderParseError,
    ProviderResponseError,
    ProviderUnavailable,
)
from kutusay.invoice.layout import group_tokens_into_rows, rows_to_text
from kutusay.invoice.ocr_helpers import (
    CLOUD_VISION_JPEG_QUALITY,
    CLOUD_VISION_MAX_DIMENSION,
    OCR_IMAGE_PADDING,
    encode_jpeg,
    load_image,
    prepare_ocr_service_image,
    resize_image,
    tokens_from_ocr_service_result,
    tokens_from_vision_response,
)
from kutusay.invoice.table_extractor import LayoutResult, OcrProvider
from kutusay.runtime.logging import get_logger
from kutusay.runtime.settings import MAX_RETRY_COUNT, RETRY_DELAY_SECONDS, OcrSettings

logger = get_logger(__name__)

VISION_API_URL = "https://vision.googleapis.com/v1/images:annotate"

__all__ = [
    "CloudVisionProvider",
    "FailoverOcrProvider",
    "LayoutResult",
    "OcrProvider",
    "OcrServiceProvider",
    "select_ocr_provider",
]


async def _send_with_retry(
    send: Callable[[], Awaitable[httpx.Response]],
    *,
    provider_name: str,
    max_retries: int,
    retry_delay: float,
) -> httpx.Response:
    """
    Send a request, retrying transport errors and 5xx responses with linear backoff.

    Raises:
        ProviderResponseError: Immediately, for a non-retryable (4xx) response.
        ProviderNetworkError: When every attempt failed transiently.
    """
    attempts = max(1, max_retries)
    last_error: Exception | None = None

    for attempt in range(1, attempts + 1):
        try:
            response = await send()
        except httpx.TransportError as exc:
            last_error = exc
            logger.warning("%s network error on attempt %d/%d: %s", provider_name, attempt, attempts, exc)
        else:
            if response.is_success:
                return response
            error = ProviderResponseError(response.status_code, response.text)
            if not error.retryable:
                # TODO(security): Response bodies may echo OCR text; redact before non-localhost deployment.
                logger.error("%s error: %s - %s", provider_name, response.status_code, response.text[:200])
                raise error
            last_error = error
            logger.warning(
                "%s server error on attempt %d/%d: %s", provider_name, attempt, attempts, response.status_code
            )

        if attempt < attempts:
            await asyncio.sleep(retry_delay * attempt)

    logger.error("%s failed after %d attempts: %s", provider_name, attempts, last_error)
    raise ProviderNetworkError(f"{provider_name} failed after {attempts} attempts: {last_error}") from last_error


def _json_body(response: httpx.Response, provider_name: str) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise ProviderParseError(f"{provider_name} returned invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ProviderParseError(f"{provider_name} returned {type(payload).__name__}, expected an object")
    return payload


class CloudVisionProvider:
    """Google Cloud Vision DOCUMENT_TEXT_DETECTION over the images:annotate REST API."""

    name = "Cloud Vision"
    supports_layout = True

    def __init__(
        self,
        api_key: str,
        *,
        timeout: float = 60.0,
        max_retries: int = MAX_RETRY_COUNT,
        retry_delay: float = RETRY_DELAY_SECONDS,
        endpoint: str = VISION_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.endpoint = endpoint
        self._transport = transport

    async def _annotate(self, jpeg_bytes: bytes) -> dict[str, Any]:
        if not self.api_key:
            raise ProviderUnavailable("Cloud Vision API key not configured")

        body = {
            "requests": [
                {
                    "image": {"content": base64.b64encode(jpeg_bytes).decode("ascii")},
                    "features": [{"type": "DOCUMENT_TEXT_DETECTION", "maxResults": 1}],
                }
            ]
        }
        logger.debug("Cloud Vision request: %d KB image", len(jpeg_bytes) // 1024)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            start_time = time.time()
            response = await _send_with_retry(
                lambda: client.post(self.endpoint, params={"key": self.api_key}, json=body),
                provider_name=self.name,
                max_retries=self.max_retries,
                retry_delay=self.retry_delay,
            )
            logger.info("Cloud Vision returned in %.2f seconds", time.time() - start_time)

        payload = _json_body(response, self.name)
        responses = payload.get("responses") or []
        if responses and isinstance(responses[0], dict) and responses[0].get("error"):
            message = responses[0]["error"].get("message", "unknown error")
            raise OcrProviderError(f"Cloud Vision rejected the image: {message}")
        return payload

    async def recognize_with_layout(self, image_bytes: bytes) -> LayoutResult:
        if not self.api_key:
            raise ProviderUnavailable("Cloud Vision API key not configured")

        image = load_image(image_bytes)
        resized = resize_image(image, CLOUD_VISION_MAX_DIMENSION)
        if resized is not image:
            image.close()
        try:
            payload = await self._annotate(encode_jpeg(resized, CLOUD_VISION_JPEG_QUALITY))
            tokens, raw_text = tokens_from_vision_response(payload)
        except BaseException:
            resized.close()
            raise

        logger.debug("Cloud Vision: %d words with coordinates", len(tokens))
        # Coordinates refer to the resized image, so that is the one handed back.
        return LayoutResult(tokens=tuple(tokens), raw_text=raw_text, image=resized)

    async def recognize_plain_text(self, image_bytes: bytes) -> str:
        layout = await self.recognize_with_layout(image_bytes)
        if layout.image is not None:
            layout.image.close()
        return layout.raw_text


class OcrServiceProvider:
    """The local PaddleOCR HTTP service (`POST {url}/ocr`)."""

    name = "OCR service"
    supports_layout = True

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        max_retries: int = MAX_RETRY_COUNT,
        retry_delay: float = RETRY_DELAY_SECONDS,
        padding: int = OCR_IMAGE_PADDING,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.padding = padding
        self._transport = transport

    async def _detect(self, jpeg_bytes: bytes) -> dict[str, Any]:
        logger.info("Sending invoice to OCR service at %s...", self.base_url)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            start_time = time.time()
            response = await _send_with_retry(
                lambda: client.post(
                    f"{self.base_url}/ocr",
                    files={"file": ("invoice.jpg", jpeg_bytes, "image/jpeg")},
                ),
                provider_name=self.name,
                max_retries=self.max_retries,
                retry_delay=self.retry_delay,
            )
            logger.info("OCR service returned in %.2f seconds", time.time() - start_time)
        return _json_body(response, self.name)

    async def recognize_with_layout(self, image_bytes: bytes) -> LayoutResult:
        image = load_image(image_bytes)
        try:
            jpeg_bytes, scale = prepare_ocr_service_image(image, padding=self.padding)
            raw_result = await self._detect(jpeg_bytes)
            tokens = tokens_from_ocr_service_result(raw_result, padding=self.padding, scale=scale)
        except BaseException:
            image.close()
            raise

        raw_text = rows_to_text(group_tokens_into_rows(tokens))
        logger.debug("OCR service: %d detections kept", len(tokens))
        return LayoutResult(tokens=tuple(tokens), raw_text=raw_text, image=image)

    async def recognize_plain_text(self, image_bytes: bytes) -> str:
        layout = await self.recognize_with_layout(image_bytes)
        if layout.image is not None:
            layout.image.close()
        return layout.raw_text


class FailoverOcrProvider:
    """
    Use `primary` until it fails, then demote it for good and use `secondary`.

    Client errors (4xx) are not a reason to switch: the same request would be
    rejected again, so they propagate.
    """

    def __init__(self, primary: OcrProvider, secondary: OcrProvider) -> None:
        self.primary = primary
        self.secondary = secondary
        self.demoted = False

    @property
    def active(self) -> OcrProvider:
        return self.secondary if self.demoted else self.primary

    @property
    def supports_layout(self) -> bool:
        return self.active.supports_layout

    def _should_fail_over(self, exc: OcrProviderError) -> bool:
        if self.demoted:
            return False
        if isinstance(exc, ProviderResponseError) and not exc.retryable:
            return False
        return True

    async def recognize_with_layout(self, image_bytes: bytes) -> LayoutResult:
        try:
            return await self.active.recognize_with_layout(image_bytes)
        except OcrProviderError as exc:
            if not self._should_fail_over(exc):
                raise
            logger.warning("Primary OCR provider failed (%s); switching to fallback provider", exc)
            self.demoted = True
        return await self.secondary.recognize_with_layout(image_bytes)

    async def recognize_plain_text(self, image_bytes: bytes) -> str:
        try:
            return await self.active.recognize_plain_text(image_bytes)
        except OcrProviderError as exc:
            if not self._should_fail_over(exc):
                raise
            logger.warning("Primary OCR provider failed (%s); switching to fallback provider", exc)
            self.demoted = True
        return await self.secondary.recognize_plain_text(image_bytes)


def select_ocr_provider(settings: OcrSettings) -> OcrProvider:
    """Cloud Vision backed by the local service when an API key is configured, else the local service alone."""
    local = OcrServiceProvider(
        settings.ocr_service_url,
        timeout=settings.timeout,
        max_retries=settings.max_retries,
        retry_delay=settings.retry_delay,
    )
    if not settings.cloud_vision_configured:
        logger.debug("Cloud Vision not configured; using OCR service at %s", settings.ocr_service_url)
        return local

    cloud = CloudVisionProvider(
        settings.cloud_vision_api_key,
        timeout=settings.timeout,
        max_retries=settings.max_retries,
        retry_delay=settings.retry_delay,
    )
    return FailoverOcrProvider(cloud, local)

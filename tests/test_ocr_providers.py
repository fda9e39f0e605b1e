import asyncio
import base64
import io
import json

import httpx
import pytest
from PIL import Image

from kutusay.invoice.errors import (
    ImageLoadError,
    OcrProviderError,
    ProviderNetworkError,
    ProviderParseError,
    ProviderResponseError,
    ProviderUnavailable,
)
from kutusay.invoice.table_extractor import LayoutResult
from kutusay.runtime.ocr_providers import (
    CloudVisionProvider,
    FailoverOcrProvider,
    OcrServiceProvider,
    select_ocr_provider,
)
from kutusay.runtime.settings import OcrSettings

VISION_PAYLOAD = {
    "responses": [
        {
            "textAnnotations": [
                {"description": "4AD APRANAX"},
                {
                    "description": "4AD",
                    "boundingPoly": {
                        "vertices": [{"x": 10, "y": 20}, {"x": 50, "y": 20}, {"x": 50, "y": 40}, {"x": 10, "y": 40}]
                    },
                },
                {
                    "description": "APRANAX",
                    "boundingPoly": {"vertices": [{"x": 60}, {"x": 120}, {"x": 120, "y": 18}, {"x": 60, "y": 18}]},
                },
            ],
            "fullTextAnnotation": {"text": "4AD APRANAX\n"},
        }
    ]
}


def _png_bytes(size: tuple[int, int] = (200, 100)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, "white").save(buffer, format="PNG")
    return buffer.getvalue()


def _cloud(handler, **kwargs) -> CloudVisionProvider:
    return CloudVisionProvider("secret", retry_delay=0, transport=httpx.MockTransport(handler), **kwargs)


def test_cloud_vision_layout() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=VISION_PAYLOAD)

    layout = asyncio.run(_cloud(handler).recognize_with_layout(_png_bytes()))

    assert [token.text for token in layout.tokens] == ["4AD", "APRANAX"]
    assert (layout.tokens[0].min_x, layout.tokens[0].min_y, layout.tokens[0].max_x, layout.tokens[0].max_y) == (
        10,
        20,
        50,
        40,
    )
    assert layout.tokens[1].min_y == 0
    assert layout.raw_text == "4AD APRANAX\n"
    assert layout.image is not None and layout.image.size == (200, 100)
    layout.image.close()

    request = requests[0]
    assert request.url.params["key"] == "secret"
    body = json.loads(request.content)
    assert body["requests"][0]["features"][0]["type"] == "DOCUMENT_TEXT_DETECTION"
    assert base64.b64decode(body["requests"][0]["image"]["content"]).startswith(b"\xff\xd8")


def test_cloud_vision_downscales_large_images() -> None:
    layout = asyncio.run(
        _cloud(lambda request: httpx.Response(200, json=VISION_PAYLOAD)).recognize_with_layout(
            _png_bytes((2048, 1024))
        )
    )

    assert layout.image is not None and layout.image.size == (1024, 512)
    layout.image.close()


def test_cloud_vision_plain_text() -> None:
    provider = _cloud(lambda request: httpx.Response(200, json=VISION_PAYLOAD))
    text = asyncio.run(provider.recognize_plain_text(_png_bytes()))

    assert text == "4AD APRANAX\n"


def test_server_errors_are_retried() -> None:
    statuses = [503, 503, 200]

    def handler(request: httpx.Request) -> httpx.Response:
        status = statuses.pop(0)
        return httpx.Response(status, json=VISION_PAYLOAD if status == 200 else {"error": "busy"})

    layout = asyncio.run(_cloud(handler, max_retries=3).recognize_with_layout(_png_bytes()))

    assert statuses == []
    assert len(layout.tokens) == 2


def test_client_errors_are_not_retried() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(400, text="bad request")

    with pytest.raises(ProviderResponseError) as excinfo:
        asyncio.run(_cloud(handler, max_retries=3).recognize_with_layout(_png_bytes()))

    assert excinfo.value.status_code == 400
    assert len(calls) == 1


def test_persistent_network_failure() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderNetworkError):
        asyncio.run(_cloud(handler, max_retries=3).recognize_with_layout(_png_bytes()))

    assert len(calls) == 3


def test_exhausted_server_errors_are_network_errors() -> None:
    with pytest.raises(ProviderNetworkError):
        asyncio.run(_cloud(lambda request: httpx.Response(500), max_retries=2).recognize_with_layout(_png_bytes()))


def test_invalid_json_is_a_parse_error() -> None:
    with pytest.raises(ProviderParseError):
        asyncio.run(
            _cloud(lambda request: httpx.Response(200, content=b"not json")).recognize_with_layout(_png_bytes())
        )


def test_per_image_error_is_reported() -> None:
    payload = {"responses": [{"error": {"code": 3, "message": "Bad image data."}}]}

    with pytest.raises(OcrProviderError, match="Bad image data"):
        asyncio.run(_cloud(lambda request: httpx.Response(200, json=payload)).recognize_with_layout(_png_bytes()))


def test_missing_api_key() -> None:
    provider = CloudVisionProvider("", transport=httpx.MockTransport(lambda request: httpx.Response(200)))

    with pytest.raises(ProviderUnavailable):
        asyncio.run(provider.recognize_with_layout(_png_bytes()))


def test_undecodable_image() -> None:
    with pytest.raises(ImageLoadError):
        asyncio.run(_cloud(lambda request: httpx.Response(200, json=VISION_PAYLOAD)).recognize_with_layout(b"nope"))


def test_ocr_service_layout() -> None:
    requests: list[httpx.Request] = []
    detections = [
        [[[60, 70], [100, 70], [100, 90], [60, 90]], ["4AD", 0.95]],
        [[[110, 70], [200, 70], [200, 90], [110, 90]], ["APRANAX", 0.9]],
        [[[0, 0], [5, 0], [5, 5], [0, 5]], ["x", 0.99]],
        [[[0, 0], [50, 0], [50, 5], [0, 5]], ["noise", 0.3]],
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"detections": detections})

    provider = OcrServiceProvider("http://ocr.local:8001/", retry_delay=0, transport=httpx.MockTransport(handler))
    layout = asyncio.run(provider.recognize_with_layout(_png_bytes()))

    assert requests[0].url == httpx.URL("http://ocr.local:8001/ocr")
    assert requests[0].headers["content-type"].startswith("multipart/form-data")
    assert [token.text for token in layout.tokens] == ["4AD", "APRANAX"]
    first = layout.tokens[0]
    assert (first.min_x, first.min_y, first.max_x, first.max_y) == (10, 20, 50, 40)
    assert first.confidence == 0.95
    assert layout.raw_text == "4AD APRANAX"
    assert layout.image is not None and layout.image.size == (200, 100)
    layout.image.close()


class _StubProvider:
    def __init__(self, name: str, error: Exception | None = None, supports_layout: bool = True) -> None:
        self.name = name
        self.error = error
        self.supports_layout = supports_layout
        self.calls = 0

    async def recognize_with_layout(self, image_bytes: bytes) -> LayoutResult:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return LayoutResult(tokens=(), raw_text=self.name)

    async def recognize_plain_text(self, image_bytes: bytes) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.name


def test_failover_demotes_primary_for_good() -> None:
    primary = _StubProvider("cloud", error=ProviderNetworkError("down"))
    secondary = _StubProvider("local", supports_layout=False)
    provider = FailoverOcrProvider(primary, secondary)

    assert provider.supports_layout is True
    assert asyncio.run(provider.recognize_with_layout(b"img")).raw_text == "local"
    assert provider.demoted is True
    assert provider.supports_layout is False
    assert asyncio.run(provider.recognize_plain_text(b"img")) == "local"
    assert primary.calls == 1
    assert secondary.calls == 2


def test_failover_propagates_client_errors() -> None:
    primary = _StubProvider("cloud", error=ProviderResponseError(403, "forbidden"))
    secondary = _StubProvider("local")
    provider = FailoverOcrProvider(primary, secondary)

    with pytest.raises(ProviderResponseError):
        asyncio.run(provider.recognize_plain_text(b"img"))

    assert provider.demoted is False
    assert secondary.calls == 0


def test_failover_secondary_errors_propagate() -> None:
    provider = FailoverOcrProvider(
        _StubProvider("cloud", error=ProviderUnavailable("no key")),
        _StubProvider("local", error=ProviderNetworkError("down")),
    )

    with pytest.raises(ProviderNetworkError):
        asyncio.run(provider.recognize_with_layout(b"img"))


def test_select_provider() -> None:
    local_only = select_ocr_provider(OcrSettings(ocr_service_url="http://ocr.local:9000"))
    assert isinstance(local_only, OcrServiceProvider)
    assert local_only.base_url == "http://ocr.local:9000"

    with_cloud = select_ocr_provider(OcrSettings(cloud_vision_api_key="secret"))
    assert isinstance(with_cloud, FailoverOcrProvider)
    assert isinstance(with_cloud.primary, CloudVisionProvider)
    assert isinstance(with_cloud.secondary, OcrServiceProvider)

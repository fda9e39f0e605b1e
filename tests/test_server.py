import pytest
from fastapi.testclient import TestClient

from kutusay.invoice.errors import ProviderNetworkError
from kutusay.invoice.table_extractor import LayoutResult
from kutusay.runtime import invoice_server as server

TRANSCRIPT = "4AD APRANAX 275 MG FTB 10 04/27\n6BD AZITRO 500MG TB 5 05/28\nTOPLAM 2 KALEM 15 ADET\n"


class TextOnlyProvider:
    supports_layout = False

    def __init__(self, text: str = TRANSCRIPT, error: Exception | None = None) -> None:
        self.text = text
        self.error = error

    async def recognize_with_layout(self, image_bytes: bytes) -> LayoutResult:
        raise AssertionError("layout not supported")

    async def recognize_plain_text(self, image_bytes: bytes) -> str:
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def client(kutusay_home, vocabulary, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(server, "get_vocabulary", lambda: vocabulary)
    monkeypatch.setattr(server, "get_ocr_provider", lambda: TextOnlyProvider())
    with TestClient(server.app) as test_client:
        yield test_client


def _upload(client: TestClient, **data):
    return client.post("/invoices", files={"file": ("invoice.jpg", b"image", "image/jpeg")}, data=data)


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_lifespan_creates_invoice_directories(client: TestClient, kutusay_home) -> None:
    assert (kutusay_home / "invoices" / "scanned").is_dir()
    assert (kutusay_home / "invoices" / "ocr_json").is_dir()


def test_upload_extracts_items(client: TestClient) -> None:
    response = _upload(client)

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "success"
    assert payload["mode"] == "fallback"
    assert payload["declared_total_qty"] == 15
    assert [(item["name"], item["quantity"]) for item in payload["items"]] == [
        ("APRANAX 275 MG FTB", 10),
        ("AZITRO 500MG TB", 5),
    ]
    assert "saved_filename" not in payload


def test_upload_can_save_for_review(client: TestClient, kutusay_home) -> None:
    response = _upload(client, save="true", invoice_id="5")

    saved_filename = response.json()["saved_filename"]
    assert saved_filename.startswith("invoice_5_")
    assert (kutusay_home / "invoices" / "scanned" / saved_filename).exists()


def test_upload_without_file(client: TestClient) -> None:
    response = client.post("/invoices", data={"note": "no image"})

    assert response.status_code == 400


def test_upload_of_blank_image(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(server, "get_ocr_provider", lambda: TextOnlyProvider(text="  "))

    response = _upload(client)

    assert response.status_code == 422
    assert response.json()["reason"] == "empty"


def test_upload_with_provider_down(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(server, "get_ocr_provider", lambda: TextOnlyProvider(error=ProviderNetworkError("down")))

    response = _upload(client)

    assert response.status_code == 503
    assert response.json()["reason"] == "ocr_unavailable"


def test_compare(client: TestClient) -> None:
    response = client.post(
        "/compare",
        json={
            "invoice_number": "A12345",
            "items": [{"name": "DELIX", "quantity": 2}],
            "box_counts": [{"item_name": "delix", "count": 1}, {"count": 1}],
        },
    )

    payload = response.json()
    assert response.status_code == 200
    assert payload["is_matched"] is True
    assert payload["item_comparisons"][0]["is_matched"] is False
    assert "Invoice No: A12345" in payload["report"]


def test_compare_with_invalid_body(client: TestClient) -> None:
    response = client.post("/compare", json=[1, 2, 3])

    assert response.status_code == 400

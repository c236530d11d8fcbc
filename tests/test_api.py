import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from relayout.api.translate import router
from relayout.errors import ExhaustedRetries, InvalidInput
from relayout.services.translate_service import ImageResult, MarkdownResult, TextFromImageResult, get_translate_service

from conftest import png_bytes


class StubService:
    def __init__(self, error=None):
        self.error = error
        self.languages = []

    async def translate_to_image(self, image_bytes, target_language):
        self.languages.append(target_language)
        if self.error:
            raise self.error
        return ImageResult(uri_image="data:image/png;base64,AAAA", paragraphs=2, time_ms=5)

    async def translate_to_markdown(self, image_bytes, target_language):
        return MarkdownResult(markdown="# Menu", time_ms=3)

    async def translate_text_from_image(self, image_bytes, target_language):
        return TextFromImageResult(uri_image="data:image/png;base64,AAAA", sentences=[("밥", "rice")], time_ms=1)

    async def download_image(self, image_url):
        raise InvalidInput("failed to download image: 404")


@pytest.fixture
def make_client():
    def build(service):
        app = FastAPI()
        app.include_router(router)
        app.dependency_overrides[get_translate_service] = lambda: service
        return TestClient(app)
    return build


def upload(name="menu.png", content_type="image/png"):
    return {"file": (name, png_bytes(10, 10), content_type)}


def test_health(make_client):
    response = make_client(StubService()).get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_translate_image_success(make_client):
    service = StubService()
    response = make_client(service).post(
        "/api/v1/translate/image", files=upload(), data={"target_language": "ko-KR"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["paragraphs"] == 2
    assert service.languages == ["ko-KR"]


def test_non_image_upload_is_rejected(make_client):
    response = make_client(StubService()).post(
        "/api/v1/translate/image", files=upload("notes.txt", "text/plain")
    )
    assert response.status_code == 400


def test_invalid_input_is_bad_request(make_client):
    response = make_client(StubService(error=InvalidInput("failed to decode image"))).post(
        "/api/v1/translate/image", files=upload()
    )
    assert response.status_code == 400
    assert "decode" in response.json()["detail"]


def test_pipeline_failure_is_error_envelope(make_client):
    response = make_client(StubService(error=ExhaustedRetries("batch 0: gave up", attempts=5))).post(
        "/api/v1/translate/image", files=upload()
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["error_type"] == "ExhaustedRetries"
    assert body["data"] is None


def test_unexpected_failure_is_error_envelope(make_client):
    response = make_client(StubService(error=RuntimeError("google-genai not installed"))).post(
        "/api/v1/translate/image", files=upload()
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["error_type"] == "RuntimeError"
    assert "google-genai" in body["error"]


def test_markdown_endpoint(make_client):
    response = make_client(StubService()).post("/api/v1/translate/markdown", files=upload())
    assert response.json()["data"]["markdown"] == "# Menu"


def test_text_endpoint(make_client):
    response = make_client(StubService()).post("/api/v1/translate/text", files=upload())
    assert response.json()["data"]["sentences"] == [{"text": "밥", "translated": "rice"}]


def test_url_endpoint_download_failure(make_client):
    response = make_client(StubService()).post(
        "/api/v1/translate/image/url", json={"image_url": "https://example.com/missing.png"}
    )
    assert response.status_code == 400

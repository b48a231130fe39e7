import json

import httpx
import pytest

from src.thumbnails.errors import ModeratorAPIError
from src.thumbnails.moderator import ContentModeratorClient
from tests.thumbnails.factories import IMAGE_URL, classification_payload, faces_payload, text_payload

BASE_URL = "https://westus.api.cognitive.microsoft.com"


def make_client(handler):
    return ContentModeratorClient(
        base_url=BASE_URL + "/",
        subscription_key="secret-key",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_evaluate_request_shape():
    requests = []

    def handler(request: httpx.Request):
        requests.append(request)
        return httpx.Response(200, json=classification_payload(adult=0.8, is_adult=True))

    async with make_client(handler) as client:
        result = await client.evaluate(f" {IMAGE_URL}\n")

    request = requests[0]
    assert request.method == "POST"
    assert request.url.path == "/contentmoderator/moderate/v1.0/ProcessImage/Evaluate"
    assert request.url.params["CacheImage"] == "true"
    assert request.headers["Ocp-Apim-Subscription-Key"] == "secret-key"
    assert json.loads(request.content) == {"DataRepresentation": "URL", "Value": IMAGE_URL}

    assert result.adult_score == 0.8
    assert result.is_adult
    assert result.advanced_info[0].key == "ImageDownloadTimeInMs"


@pytest.mark.asyncio
async def test_detect_text_passes_language():
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["language"] = request.url.params["language"]
        return httpx.Response(200, json=text_payload("HELLO", ["HELLO"]))

    async with make_client(handler) as client:
        result = await client.detect_text(IMAGE_URL, "eng")

    assert seen == {"path": "/contentmoderator/moderate/v1.0/ProcessImage/OCR", "language": "eng"}
    assert result.text == "HELLO"
    assert result.all_text == ["HELLO", "HELLO"]


@pytest.mark.asyncio
async def test_find_faces():
    def handler(request: httpx.Request):
        assert request.url.path.endswith("/FindFaces")
        return httpx.Response(200, json=faces_payload(2))

    async with make_client(handler) as client:
        result = await client.find_faces(IMAGE_URL)

    assert result.count == 2
    assert result.face_count == 2
    assert result.faces[1].bottom == 51


@pytest.mark.asyncio
async def test_error_status_raises():
    def handler(request: httpx.Request):
        return httpx.Response(401, json={"error": {"code": "401", "message": "Access denied"}})

    async with make_client(handler) as client:
        with pytest.raises(ModeratorAPIError) as excinfo:
            await client.evaluate(IMAGE_URL)

    assert excinfo.value.status == 401
    assert excinfo.value.response_json["error"]["code"] == "401"


@pytest.mark.asyncio
async def test_malformed_body_raises():
    def handler(request: httpx.Request):
        return httpx.Response(200, content=b"<html>gateway</html>")

    async with make_client(handler) as client:
        with pytest.raises(ModeratorAPIError, match="Malformed"):
            await client.find_faces(IMAGE_URL)


@pytest.mark.asyncio
async def test_context_manager_closes_client():
    client = make_client(lambda request: httpx.Response(200, json={}))
    async with client:
        pass
    assert client._client.is_closed

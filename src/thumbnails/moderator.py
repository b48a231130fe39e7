"""Content Moderator image API wrapper.

Only the three image operations the pipeline needs are exposed: adult/racy
evaluation, OCR and face detection. Images are always submitted by URL.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from src.thumbnails.errors import ModeratorAPIError
from src.thumbnails.models import ClassificationResult, FaceDetection, TextDetection

logger = logging.getLogger(__name__)

PROCESS_IMAGE_PATH = "/contentmoderator/moderate/v1.0/ProcessImage"


class ContentModeratorClient:
    """Minimal async client for the Content Moderator image endpoints.

    Use it as an async context manager so the underlying connection pool is
    released when the run ends:

        async with ContentModeratorClient(base_url=..., subscription_key=...) as client:
            evaluation = await client.evaluate(url)
    """

    def __init__(
        self,
        *,
        base_url: str,
        subscription_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") + PROCESS_IMAGE_PATH
        self._headers = {
            "Ocp-Apim-Subscription-Key": subscription_key,
            "Content-Type": "application/json",
        }
        self._client = httpx.AsyncClient(timeout=timeout, headers=self._headers, transport=transport)

    async def __aenter__(self) -> "ContentModeratorClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def evaluate(self, image_url: str) -> ClassificationResult:
        """Score the image for adult and racy content."""
        data = await self._post("Evaluate", image_url)
        return ClassificationResult.model_validate(data)

    async def detect_text(self, image_url: str, language: str = "eng") -> TextDetection:
        """Detect and extract text."""
        data = await self._post("OCR", image_url, {"language": language})
        return TextDetection.model_validate(data)

    async def find_faces(self, image_url: str) -> FaceDetection:
        data = await self._post("FindFaces", image_url)
        return FaceDetection.model_validate(data)

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _post(self, operation: str, image_url: str, params: Optional[Dict[str, str]] = None) -> dict[str, Any]:
        url = f"{self._base_url}/{operation}"
        query = {"CacheImage": "true", **(params or {})}
        body = {"DataRepresentation": "URL", "Value": image_url.strip()}
        logger.debug("POST %s -> %s", url, body["Value"])

        resp = await self._client.post(url, params=query, json=body)
        if resp.status_code >= 400:
            try:
                err_json = resp.json()
            except ValueError:
                err_json = None
            raise ModeratorAPIError(resp.status_code, resp.text, err_json)
        try:
            return resp.json()
        except ValueError as e:
            raise ModeratorAPIError(resp.status_code, f"Malformed response body: {e}") from e

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from src.thumbnails.errors import EvaluationError
from src.thumbnails.models import ModerationResult
from src.thumbnails.pacing import CallPacer

logger = logging.getLogger(__name__)

STAGE_CLASSIFICATION = "classification"
STAGE_TEXT = "text_detection"
STAGE_FACES = "face_detection"


class ImageEvaluator:
    """Runs the three moderation checks for one image, one after another."""

    def __init__(
        self,
        client: Any,
        pacer: Optional[CallPacer] = None,
        timeout: Optional[float] = 30.0,
        language: str = "eng",
    ):
        """
        Args:
            client: ContentModeratorClient (or anything with the same three coroutines)
            pacer: Gap enforced between calls; defaults to one second
            timeout: Per-call limit in seconds, None for no limit
            language: OCR language code
        """
        self.client = client
        self.pacer = pacer or CallPacer()
        self.timeout = timeout
        self.language = language

    async def evaluate(self, image_url: str) -> ModerationResult:
        """
        Classify, OCR and face-detect the image.

        Raises EvaluationError naming the failed stage; nothing is returned
        unless all three calls succeeded.
        """
        url = image_url.strip()

        classification = await self._call(STAGE_CLASSIFICATION, self.client.evaluate, url)
        text_detection = await self._call(STAGE_TEXT, self.client.detect_text, url, self.language)
        face_detection = await self._call(STAGE_FACES, self.client.find_faces, url)

        return ModerationResult(
            image_url=url,
            classification=classification,
            text_detection=text_detection,
            face_detection=face_detection,
        )

    async def _call(self, stage: str, fn: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        async with self.pacer.slot():
            logger.debug(f"Moderation stage {stage} for {args[0]}")
            try:
                if self.timeout is None:
                    return await fn(*args)
                return await asyncio.wait_for(fn(*args), self.timeout)
            except asyncio.TimeoutError as e:
                raise EvaluationError(stage, TimeoutError(f"no response within {self.timeout}s")) from e
            except Exception as e:
                raise EvaluationError(stage, e) from e

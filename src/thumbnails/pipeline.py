import asyncio
import logging
from pathlib import PurePosixPath
from typing import Any, Callable, Optional, Union
from urllib.parse import unquote, urlparse

from src.thumbnails.audit import AuditStore
from src.thumbnails.errors import PipelineError, TransformError, WriteError
from src.thumbnails.evaluator import ImageEvaluator
from src.thumbnails.models import (
    BLOB_CREATED_EVENT_TYPE,
    ApprovalDecision,
    BlobCreatedEvent,
    RunOutcome,
    RunState,
    ThumbnailSpec,
)
from src.thumbnails.moderator import ContentModeratorClient
from src.thumbnails.pacing import CallPacer
from src.thumbnails.policy import ApprovalPolicy
from src.thumbnails.settings import PipelineSettings
from src.thumbnails.storage import LocalBlobStore, blob_name_from_url
from src.thumbnails.thumbnail import ThumbnailTransformer, encoder_for

logger = logging.getLogger(__name__)


def url_extension(url: str) -> str:
    """Extension of the last path segment of a URL ('' if none)."""
    return PurePosixPath(unquote(urlparse(url.strip()).path)).suffix


class ThumbnailPipeline:
    """Moderates a newly uploaded image and, if approved, stores its thumbnail.

    One call to handle() is one run:

        received -> evaluating -> decided -> skipped
                                          -> transforming -> written
        (any stage) -> failed

    Skips are normal endings and only log. Failures are logged with their
    stage and re-raised so the event delivery can retry or dead-letter.
    """

    def __init__(
        self,
        settings: PipelineSettings,
        store: Optional[LocalBlobStore] = None,
        audit: Optional[AuditStore] = None,
        policy: Optional[ApprovalPolicy] = None,
        transformer: Optional[ThumbnailTransformer] = None,
        client_factory: Optional[Callable[[], Any]] = None,
        pacer_factory: Optional[Callable[[], CallPacer]] = None,
    ):
        self.settings = settings
        self.store = store or LocalBlobStore(settings.storage_root)
        self.audit = audit or AuditStore(settings.audit_db_path)
        self.policy = policy or ApprovalPolicy(settings.policy)
        self.transformer = transformer or ThumbnailTransformer()
        self.client_factory = client_factory or self._default_client
        self.pacer_factory = pacer_factory or (lambda: CallPacer(settings.call_interval))

    def _default_client(self) -> ContentModeratorClient:
        return ContentModeratorClient(
            base_url=self.settings.moderator_base_url,
            subscription_key=self.settings.moderator_key,
            timeout=self.settings.call_timeout,
        )

    async def handle_payload(self, payload: Union[dict, list]) -> RunOutcome:
        """Handle a raw Event Grid payload (a single event or a one-element array)."""
        if isinstance(payload, list):
            if len(payload) != 1:
                raise ValueError(f"Expected exactly one event, got {len(payload)}")
            payload = payload[0]
        return await self.handle(BlobCreatedEvent.model_validate(payload))

    async def handle(self, event: BlobCreatedEvent) -> RunOutcome:
        outcome = RunOutcome(source_url=event.url)

        if event.event_type != BLOB_CREATED_EVENT_TYPE:
            logger.info(f"Ignoring event {event.id} of type {event.event_type}")
            return self._skip(outcome, f"unsupported event type {event.event_type}")

        image_format = encoder_for(url_extension(event.url))
        if image_format is None:
            logger.info(f"No encoder support for: {event.url}")
            return self._skip(outcome, "no encoder for extension")

        try:
            blob_name = blob_name_from_url(event.url)
            decision = await self._evaluate(event.url, outcome)
            if not decision.approved:
                logger.info(f"Rejected {event.url}: {'; '.join(decision.reasons)}")
                return self._skip(outcome, "rejected by moderation")

            spec = ThumbnailSpec(width=self.settings.thumbnail_width, image_format=image_format)
            await self._write_thumbnail(event.url, blob_name, spec, outcome)
            return outcome
        except asyncio.CancelledError:
            logger.warning(f"Run for {event.url} cancelled during {outcome.state.value}")
            outcome.advance(RunState.FAILED)
            raise
        except Exception as e:
            stage = outcome.state.value
            outcome.advance(RunState.FAILED)
            outcome.reason = str(e)
            if isinstance(e, PipelineError):
                e.outcome = outcome
            logger.error(f"Pipeline failed at {stage} for {event.url}: {e}", exc_info=True)
            raise

    async def _evaluate(self, url: str, outcome: RunOutcome) -> ApprovalDecision:
        outcome.advance(RunState.EVALUATING)
        async with self.client_factory() as client:
            evaluator = ImageEvaluator(
                client,
                pacer=self.pacer_factory(),
                timeout=self.settings.call_timeout,
                language=self.settings.ocr_language,
            )
            result = await evaluator.evaluate(url)

        decision = self.policy.decide(result)
        outcome.advance(RunState.DECIDED)
        outcome.decision = decision

        record_id = await asyncio.to_thread(self.audit.record, decision)
        logger.info(f"Moderation of {url}: approved={decision.approved} (audit #{record_id})")
        return decision

    async def _write_thumbnail(self, url: str, blob_name: str, spec: ThumbnailSpec, outcome: RunOutcome) -> None:
        outcome.advance(RunState.TRANSFORMING)
        try:
            data = await asyncio.to_thread(self.store.read_url, url)
        except OSError as e:
            raise TransformError("read", url, str(e)) from e

        thumbnail = await asyncio.to_thread(self.transformer.transform, data, spec, url)

        container = self.settings.thumbnail_container
        destination = f"{container}/{blob_name}"
        try:
            await asyncio.to_thread(self.store.write, container, blob_name, thumbnail)
        except OSError as e:
            raise WriteError(url, destination, e) from e

        outcome.advance(RunState.WRITTEN)
        outcome.destination = destination
        logger.info(f"Thumbnail of {url} written to {destination} ({len(thumbnail)} bytes)")

    @staticmethod
    def _skip(outcome: RunOutcome, reason: str) -> RunOutcome:
        outcome.advance(RunState.SKIPPED)
        outcome.reason = reason
        return outcome


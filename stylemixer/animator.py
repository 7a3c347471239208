"""Video animation via Veo: submits the composite and polls for completion."""

import asyncio
import base64
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx

from stylemixer.cancellation import CancellationToken
from stylemixer.config import (
    DOWNLOAD_MAX_REDIRECTS,
    DOWNLOAD_TIMEOUT,
    GEMINI_BASE_URL,
    POLL_BACKOFF,
    POLL_INTERVAL,
    POLL_MAX_ATTEMPTS,
    POLL_MAX_INTERVAL,
    POLL_MAX_WAIT,
    REQUEST_TIMEOUT,
    VIDEO_ASPECT_RATIO,
    VIDEO_COUNT,
    VIDEO_MODEL,
    VIDEO_RESOLUTION,
)
from stylemixer.errors import (
    AuthenticationError,
    ContentRefusalError,
    GenerationTimeoutError,
    Origin,
    ProtocolError,
    TransportError,
    classify,
)
from stylemixer.prompts import build_motion_prompt

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class AnimationJob:
    """One video generation job. Only the poller mutates it."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.PENDING
    operation_name: Optional[str] = None
    result_bytes: Optional[bytes] = None
    mime_type: Optional[str] = None
    poll_count: int = 0


def _video_uri(operation: dict) -> Optional[str]:
    response = operation.get("response") or {}
    video_response = response.get("generateVideoResponse") or response
    samples = video_response.get("generatedSamples") or video_response.get("generatedVideos") or []
    if not samples:
        return None
    return (samples[0].get("video") or {}).get("uri")


def _filtered_reasons(operation: dict) -> list[str]:
    response = operation.get("response") or {}
    video_response = response.get("generateVideoResponse") or response
    return video_response.get("raiMediaFilteredReasons") or []


class AnimationJobPoller:
    """Submits the composite to Veo and waits for the clip.

    Polling backs off from ``poll_interval`` by ``backoff`` up to
    ``max_interval``. The job fails with ``GenerationTimeoutError`` once
    ``max_attempts`` polls are spent or the next wait would push the total
    past ``max_wait`` seconds.
    """

    def __init__(
        self,
        model: str = VIDEO_MODEL,
        base_url: str = GEMINI_BASE_URL,
        poll_interval: float = POLL_INTERVAL,
        backoff: float = POLL_BACKOFF,
        max_interval: float = POLL_MAX_INTERVAL,
        max_wait: float = POLL_MAX_WAIT,
        max_attempts: int = POLL_MAX_ATTEMPTS,
        request_timeout: float = REQUEST_TIMEOUT,
        download_timeout: float = DOWNLOAD_TIMEOUT,
        max_redirects: int = DOWNLOAD_MAX_REDIRECTS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self.backoff = backoff
        self.max_interval = max_interval
        self.max_wait = max_wait
        self.max_attempts = max_attempts
        self.request_timeout = request_timeout
        self.download_timeout = download_timeout
        self.max_redirects = max_redirects
        self.transport = transport
        self._sleep = sleep

    def build_payload(self, source_image: bytes, mime_type: str, scene_description: str) -> dict:
        return {
            "instances": [
                {
                    "prompt": build_motion_prompt(scene_description),
                    "image": {
                        "bytesBase64Encoded": base64.b64encode(source_image).decode("utf-8"),
                        "mimeType": mime_type,
                    },
                }
            ],
            "parameters": {
                "sampleCount": VIDEO_COUNT,
                "resolution": VIDEO_RESOLUTION,
                "aspectRatio": VIDEO_ASPECT_RATIO,
            },
        }

    async def animate(
        self,
        source_image: bytes,
        scene_description: str,
        api_key: Optional[str],
        mime_type: str = "image/png",
        job: Optional[AnimationJob] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AnimationJob:
        """Turn a composite image into a short clip.

        Args:
            source_image: Composite image bytes
            scene_description: Drives the motion prompt; blank falls back to
                keeping the original atmosphere
            api_key: Credential for the submit, poll and download calls
            mime_type: Mime type of ``source_image``
            job: Job record to fill in; a new one is created if omitted
            cancel_token: Checked at every poll boundary

        Returns:
            The succeeded job with ``result_bytes`` set

        Raises:
            GenerationError: classified failure; ``job.status`` is FAILED
        """
        job = job or AnimationJob()
        if not api_key:
            job.status = JobStatus.FAILED
            raise AuthenticationError("No API key selected", Origin.VIDEO)

        try:
            async with httpx.AsyncClient(
                timeout=self.request_timeout, transport=self.transport
            ) as client:
                if cancel_token:
                    cancel_token.raise_if_cancelled()
                operation = await self._submit(
                    client, api_key, self.build_payload(source_image, mime_type, scene_description)
                )
                job.operation_name = operation.get("name")
                if not job.operation_name:
                    raise ProtocolError("No operation name returned", Origin.VIDEO)
                job.status = JobStatus.RUNNING
                logger.info(f"Animation task started: {job.operation_name}")

                operation = await self._wait_for_completion(client, api_key, job, operation, cancel_token)
                uri = self._result_uri(operation)

                if cancel_token:
                    cancel_token.raise_if_cancelled()
                job.result_bytes, job.mime_type = await self._download(client, api_key, uri)
        except Exception as e:
            job.status = JobStatus.FAILED
            error = classify(e, Origin.VIDEO)
            logger.error(f"Animation failed ({error.kind.value}): {error}")
            if error is e:
                raise
            raise error from e

        job.status = JobStatus.SUCCEEDED
        logger.info(f"Animation complete after {job.poll_count} polls ({len(job.result_bytes)} bytes)")
        return job

    async def _submit(self, client: httpx.AsyncClient, api_key: str, payload: dict) -> dict:
        response = await client.post(
            f"{self.base_url}/models/{self.model}:predictLongRunning",
            headers={"x-goog-api-key": api_key},
            json=payload,
        )
        response.raise_for_status()
        return response.json()

    async def _wait_for_completion(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        job: AnimationJob,
        operation: dict,
        cancel_token: Optional[CancellationToken],
    ) -> dict:
        delay = self.poll_interval
        waited = 0.0

        while not operation.get("done"):
            if job.poll_count >= self.max_attempts or waited + delay > self.max_wait:
                raise GenerationTimeoutError(
                    f"Video not ready after {job.poll_count} polls ({waited:.0f}s)", Origin.VIDEO
                )
            if cancel_token:
                cancel_token.raise_if_cancelled()
            await self._sleep(delay)
            waited += delay
            if cancel_token:
                cancel_token.raise_if_cancelled()

            response = await client.get(
                f"{self.base_url}/{job.operation_name}", headers={"x-goog-api-key": api_key}
            )
            response.raise_for_status()
            operation = response.json()
            job.poll_count += 1
            logger.debug(f"Poll {job.poll_count}: done={bool(operation.get('done'))}")

            delay = min(delay * self.backoff, self.max_interval)

        return operation

    def _result_uri(self, operation: dict) -> str:
        failure = operation.get("error")
        if failure:
            message = failure.get("message") if isinstance(failure, dict) else str(failure)
            raise TransportError(f"Video generation failed: {message}", Origin.VIDEO)

        uri = _video_uri(operation)
        if uri:
            return uri

        reasons = _filtered_reasons(operation)
        if reasons:
            raise ContentRefusalError(" ".join(reasons), Origin.VIDEO)
        raise ProtocolError("No video URI found", Origin.VIDEO)

    async def _download(self, client: httpx.AsyncClient, api_key: str, uri: str) -> tuple[bytes, str]:
        # Only the first hop carries the key
        response = await client.get(
            uri, headers={"x-goog-api-key": api_key}, timeout=self.download_timeout
        )
        redirects = 0
        while response.is_redirect:
            if redirects >= self.max_redirects:
                raise httpx.TooManyRedirects(
                    f"Video download exceeded {self.max_redirects} redirects", request=response.request
                )
            location = response.url.join(response.headers["location"])
            response = await client.get(location, timeout=self.download_timeout)
            redirects += 1
        response.raise_for_status()
        mime_type = response.headers.get("content-type", "video/mp4").split(";")[0]
        return response.content, mime_type

"""Tests for stylemixer.animator — Veo job submission, polling and retrieval.

The video endpoint is a scripted fake behind ``httpx.MockTransport`` and the
poll sleep is replaced by a recorder, so nothing here waits for real.
"""

import asyncio
import base64
import json

import httpx
import pytest

from stylemixer.animator import AnimationJob, AnimationJobPoller, JobStatus
from stylemixer.cancellation import CancellationToken
from stylemixer.errors import (
    AuthenticationError,
    ContentRefusalError,
    GenerationCancelledError,
    GenerationTimeoutError,
    ProtocolError,
    TransportError,
)
from stylemixer.prompts import MOTION_FALLBACK


BASE_URL = "https://gemini.test/v1beta"
OPERATION = "models/test-video-model/operations/op-123"
VIDEO_URI = "https://gemini.test/v1beta/files/vid-1:download?alt=media"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _done_operation(uri: str = VIDEO_URI) -> dict:
    return {
        "name": OPERATION,
        "done": True,
        "response": {"generateVideoResponse": {"generatedSamples": [{"video": {"uri": uri}}]}},
    }


class FakeVeo:
    """Scripted Veo endpoint: submit, N pending polls, then ``final``."""

    def __init__(self, pending_polls: int = 0, final: dict = None, submit_status: int = 200):
        self.pending_polls = pending_polls
        self.final = final if final is not None else _done_operation()
        self.submit_status = submit_status
        self.submissions = []
        self.polls = 0
        self.downloads = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith(":predictLongRunning"):
            self.submissions.append(json.loads(request.content))
            if self.submit_status != 200:
                return httpx.Response(self.submit_status, json={"error": {"message": "Requested entity was not found."}})
            return httpx.Response(200, json={"name": OPERATION})
        if path.endswith(OPERATION):
            self.polls += 1
            if self.polls <= self.pending_polls:
                return httpx.Response(200, json={"name": OPERATION, "done": False})
            return httpx.Response(200, json=self.final)
        if path.endswith("vid-1:download"):
            self.downloads.append(request)
            return httpx.Response(200, content=b"mp4-bytes", headers={"content-type": "video/mp4"})
        return httpx.Response(404)


class SleepRecorder:
    def __init__(self, on_sleep=None):
        self.delays = []
        self.on_sleep = on_sleep

    async def __call__(self, delay: float):
        self.delays.append(delay)
        if self.on_sleep:
            self.on_sleep()


def _poller(fake, sleep=None, **kwargs) -> AnimationJobPoller:
    return AnimationJobPoller(
        model="test-video-model",
        base_url=BASE_URL,
        transport=httpx.MockTransport(fake),
        sleep=sleep or SleepRecorder(),
        **kwargs,
    )


def _animate(poller, scene="Snowy market", api_key="test-key", **kwargs) -> AnimationJob:
    return asyncio.run(poller.animate(b"composite-png", scene, api_key, **kwargs))


# ---------------------------------------------------------------------------
# Polling protocol
# ---------------------------------------------------------------------------

class TestPolling:
    def test_done_on_third_poll(self):
        """done=false twice then done=true: 3 polls, 1 download."""
        fake = FakeVeo(pending_polls=2)
        job = _animate(_poller(fake))

        assert fake.polls == 3
        assert len(fake.downloads) == 1
        assert job.poll_count == 3
        assert job.status == JobStatus.SUCCEEDED
        assert job.result_bytes == b"mp4-bytes"
        assert job.mime_type == "video/mp4"

    @pytest.mark.parametrize("n", [1, 4, 7])
    def test_exactly_n_polls(self, n):
        fake = FakeVeo(pending_polls=n - 1)
        _animate(_poller(fake))
        assert fake.polls == n
        assert len(fake.downloads) == 1

    def test_backoff_is_capped(self):
        sleep = SleepRecorder()
        fake = FakeVeo(pending_polls=5)
        _animate(_poller(fake, sleep=sleep, poll_interval=5, backoff=2, max_interval=20))
        assert sleep.delays == [5, 10, 20, 20, 20, 20]

    def test_never_done_times_out_on_attempts(self):
        fake = FakeVeo(pending_polls=10_000)
        job = AnimationJob()
        with pytest.raises(GenerationTimeoutError):
            _animate(_poller(fake, max_attempts=4), job=job)
        assert fake.polls == 4
        assert fake.downloads == []
        assert job.status == JobStatus.FAILED

    def test_never_done_times_out_on_total_wait(self):
        sleep = SleepRecorder()
        fake = FakeVeo(pending_polls=10_000)
        with pytest.raises(GenerationTimeoutError):
            _animate(_poller(fake, sleep=sleep, poll_interval=5, backoff=1, max_wait=12))
        assert sum(sleep.delays) <= 12
        assert fake.polls == 2

    def test_cancel_at_poll_boundary(self):
        token = CancellationToken()
        fake = FakeVeo(pending_polls=10_000)
        sleep = SleepRecorder(on_sleep=token.cancel)
        with pytest.raises(GenerationCancelledError):
            _animate(_poller(fake, sleep=sleep), cancel_token=token)
        assert fake.polls == 0


# ---------------------------------------------------------------------------
# Submission payload
# ---------------------------------------------------------------------------

class TestSubmission:
    def test_payload(self):
        fake = FakeVeo()
        _animate(_poller(fake), mime_type="image/jpeg")

        instance = fake.submissions[0]["instances"][0]
        assert "Snowy market" in instance["prompt"]
        assert base64.b64decode(instance["image"]["bytesBase64Encoded"]) == b"composite-png"
        assert instance["image"]["mimeType"] == "image/jpeg"
        assert fake.submissions[0]["parameters"] == {
            "sampleCount": 1,
            "resolution": "720p",
            "aspectRatio": "9:16",
        }

    def test_blank_scene_uses_fallback(self):
        fake = FakeVeo()
        _animate(_poller(fake), scene="  ")
        assert MOTION_FALLBACK in fake.submissions[0]["instances"][0]["prompt"]

    def test_download_carries_key(self):
        fake = FakeVeo()
        _animate(_poller(fake))
        request = fake.downloads[0]
        assert request.headers["x-goog-api-key"] == "test-key"
        assert request.url.params["alt"] == "media"

    def test_missing_key(self):
        fake = FakeVeo()
        with pytest.raises(AuthenticationError):
            _animate(_poller(fake), api_key="")
        assert fake.submissions == []


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

class TestFailures:
    def test_done_without_uri_is_protocol_error(self):
        fake = FakeVeo(pending_polls=1, final={"name": OPERATION, "done": True, "response": {}})
        with pytest.raises(ProtocolError):
            _animate(_poller(fake))
        assert fake.downloads == []

    def test_filtered_is_refusal(self):
        final = {
            "name": OPERATION,
            "done": True,
            "response": {"generateVideoResponse": {"raiMediaFilteredReasons": ["Unsafe content."]}},
        }
        with pytest.raises(ContentRefusalError) as exc_info:
            _animate(_poller(FakeVeo(final=final)))
        assert exc_info.value.text == "Unsafe content."

    def test_operation_error_is_transport(self):
        final = {"name": OPERATION, "done": True, "error": {"code": 13, "message": "Internal"}}
        with pytest.raises(TransportError):
            _animate(_poller(FakeVeo(final=final)))

    def test_operation_error_not_found_is_auth(self):
        final = {"name": OPERATION, "done": True, "error": {"code": 5, "message": "Requested entity was not found."}}
        with pytest.raises(AuthenticationError):
            _animate(_poller(FakeVeo(final=final)))

    def test_submit_not_found_is_auth(self):
        with pytest.raises(AuthenticationError):
            _animate(_poller(FakeVeo(submit_status=404)))

    def test_missing_operation_name(self):
        def handler(request):
            return httpx.Response(200, json={})

        with pytest.raises(ProtocolError):
            _animate(_poller(handler))

    def test_wrong_shape_is_protocol(self):
        final = {"name": OPERATION, "done": True, "response": ["not", "an", "object"]}
        with pytest.raises(ProtocolError):
            _animate(_poller(FakeVeo(final=final)))


# ---------------------------------------------------------------------------
# Download redirects
# ---------------------------------------------------------------------------

STORAGE_URI = "https://storage.test/signed/clip.mp4"


class RedirectingVeo(FakeVeo):
    """Download answers with a redirect to another host."""

    def __init__(self, hops: int = 1, **kwargs):
        super().__init__(**kwargs)
        self.hops = hops
        self.storage_requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("vid-1:download"):
            self.downloads.append(request)
            return httpx.Response(302, headers={"location": STORAGE_URI})
        if request.url.host == "storage.test":
            self.storage_requests.append(request)
            if len(self.storage_requests) < self.hops:
                return httpx.Response(302, headers={"location": STORAGE_URI})
            return httpx.Response(200, content=b"mp4-bytes", headers={"content-type": "video/mp4"})
        return super().__call__(request)


class TestDownloadRedirects:
    def test_key_not_forwarded_to_redirect_target(self):
        fake = RedirectingVeo()
        job = _animate(_poller(fake))

        assert job.result_bytes == b"mp4-bytes"
        assert fake.downloads[0].headers["x-goog-api-key"] == "test-key"
        assert len(fake.storage_requests) == 1
        assert "x-goog-api-key" not in fake.storage_requests[0].headers

    def test_redirect_loop_is_transport(self):
        fake = RedirectingVeo(hops=100)
        with pytest.raises(TransportError):
            _animate(_poller(fake, max_redirects=3))
        assert len(fake.storage_requests) == 3

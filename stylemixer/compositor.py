"""Garment-on-subject composite via the Gemini image model (REST, no SDK)."""

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from stylemixer.assets import GenerationRequest
from stylemixer.cancellation import CancellationToken
from stylemixer.config import (
    COMPOSE_TIMEOUT,
    GEMINI_BASE_URL,
    IMAGE_ASPECT_RATIO,
    IMAGE_MODEL,
    IMAGE_SIZE,
    REQUEST_TIMEOUT,
)
from stylemixer.errors import (
    AuthenticationError,
    ContentRefusalError,
    EmptyResponseError,
    Origin,
    ProtocolError,
    classify,
)
from stylemixer.prompts import build_composite_prompt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompositeResult:
    image_bytes: bytes
    mime_type: str = "image/png"

    def data_url(self) -> str:
        encoded = base64.b64encode(self.image_bytes).decode("utf-8")
        return f"data:{self.mime_type};base64,{encoded}"


def _inline_part(asset) -> dict:
    return {
        "inline_data": {
            "mime_type": asset.mime_type,
            "data": base64.b64encode(asset.data).decode("utf-8"),
        }
    }


def extract_image(data: dict) -> CompositeResult:
    """Pull the first inline image out of a generateContent response.

    Raises:
        ContentRefusalError: only text came back
        EmptyResponseError: neither image nor text came back
        ProtocolError: the body is not a generateContent response
    """
    if not isinstance(data, dict):
        raise ProtocolError("Response body is not a JSON object", Origin.IMAGE)

    candidates = data.get("candidates") or []
    parts = []
    if candidates:
        parts = (candidates[0].get("content") or {}).get("parts") or []

    for part in parts:
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data"):
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            return CompositeResult(
                image_bytes=base64.b64decode(inline["data"]),
                mime_type=mime_type,
            )

    text = next((part["text"] for part in parts if part.get("text")), None)
    if text:
        logger.warning("Model returned text instead of image")
        raise ContentRefusalError(text, Origin.IMAGE)

    block_reason = (data.get("promptFeedback") or {}).get("blockReason")
    if block_reason:
        raise ContentRefusalError(f"Request blocked: {block_reason}", Origin.IMAGE)

    raise EmptyResponseError("No image data found in response", Origin.IMAGE)


class CompositionService:
    """Single round trip to the image model: prompt, garment, subject."""

    def __init__(
        self,
        model: str = IMAGE_MODEL,
        base_url: str = GEMINI_BASE_URL,
        timeout: float = COMPOSE_TIMEOUT,
        request_timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.request_timeout = request_timeout
        self.transport = transport

    def build_payload(self, request: GenerationRequest) -> dict:
        # The prompt addresses the images by position: Image 1 = garment, Image 2 = subject
        return {
            "contents": [
                {
                    "parts": [
                        {"text": build_composite_prompt(request.scene_description)},
                        _inline_part(request.garment),
                        _inline_part(request.subject),
                    ]
                }
            ],
            "generationConfig": {
                "responseModalities": ["TEXT", "IMAGE"],
                "imageConfig": {
                    "imageSize": IMAGE_SIZE,
                    "aspectRatio": IMAGE_ASPECT_RATIO,
                },
            },
        }

    async def compose(
        self,
        request: GenerationRequest,
        api_key: Optional[str],
        cancel_token: Optional[CancellationToken] = None,
    ) -> CompositeResult:
        """Generate the composite image.

        Args:
            request: Garment, subject and scene description
            api_key: Credential for this call
            cancel_token: Checked before the request is sent; the request
                itself is not interruptible

        Returns:
            CompositeResult with the first returned image

        Raises:
            GenerationError: classified failure
        """
        if not api_key:
            raise AuthenticationError("No API key selected", Origin.IMAGE)
        if cancel_token:
            cancel_token.raise_if_cancelled()

        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = self.build_payload(request)
        logger.info(f"Requesting composite from {self.model}")

        try:
            data = await asyncio.wait_for(
                self._post(url, payload, api_key), timeout=self.timeout
            )
            result = extract_image(data)
        except Exception as e:
            error = classify(e, Origin.IMAGE)
            logger.error(f"Composite generation failed ({error.kind.value}): {error}")
            if error is e:
                raise
            raise error from e

        logger.info(f"Composite ready ({len(result.image_bytes)} bytes, {result.mime_type})")
        return result

    async def _post(self, url: str, payload: dict, api_key: str) -> dict:
        async with httpx.AsyncClient(
            timeout=self.request_timeout, transport=self.transport
        ) as client:
            response = await client.post(url, headers={"x-goog-api-key": api_key}, json=payload)
            response.raise_for_status()
        return response.json()

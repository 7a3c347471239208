"""Failure taxonomy for the image and video generation services.

Every failure that leaves a service is one of the ``GenerationError``
subclasses below. ``classify`` turns whatever the transport layer raised
into one of them; it has no side effects, so callers decide what to do
with an ``AuthenticationError`` (the controller resets the session auth
state).
"""

import asyncio
from enum import Enum
from typing import Optional

import httpx

from stylemixer.config import ENTITY_NOT_FOUND_SIGNATURE, INVALID_KEY_SIGNATURE


class ErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    CONTENT_REFUSAL = "content_refusal"
    EMPTY_RESPONSE = "empty_response"
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class Origin(str, Enum):
    """Which remote call produced a failure."""

    IMAGE = "image"
    VIDEO = "video"


class GenerationError(Exception):
    """Base class for classified generation failures."""

    kind = ErrorKind.TRANSPORT

    def __init__(self, message: str = "", origin: Optional[Origin] = None):
        super().__init__(message)
        self.origin = origin

    @property
    def user_message(self) -> str:
        if self.origin == Origin.VIDEO:
            return "Failed to generate video. Please try again."
        return "Something went wrong during generation. Please try again."


class AuthenticationError(GenerationError):
    """Credential missing, invalid or expired. Reconnect required."""

    kind = ErrorKind.AUTHENTICATION

    @property
    def user_message(self) -> str:
        if self.origin == Origin.VIDEO:
            return "API Session expired during video generation. Please reconnect."
        return "API Session expired or invalid. Please reconnect."


class ContentRefusalError(GenerationError):
    """The model answered with text instead of the requested media."""

    kind = ErrorKind.CONTENT_REFUSAL

    def __init__(self, text: str, origin: Optional[Origin] = None):
        super().__init__(text, origin)
        self.text = text

    @property
    def user_message(self) -> str:
        return self.text


class EmptyResponseError(GenerationError):
    kind = ErrorKind.EMPTY_RESPONSE


class TransportError(GenerationError):
    """Network or service failure. Safe to retry on user action."""

    kind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str = "",
        origin: Optional[Origin] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, origin)
        self.status_code = status_code


class ProtocolError(GenerationError):
    """The service answered with a shape we cannot use."""

    kind = ErrorKind.PROTOCOL


class GenerationTimeoutError(GenerationError):
    kind = ErrorKind.TIMEOUT


class GenerationCancelledError(GenerationError):
    kind = ErrorKind.CANCELLED

    @property
    def user_message(self) -> str:
        return "Generation cancelled."


class AuthConnectError(Exception):
    """The credential selection flow is unavailable or failed."""


def _error_text(raw: BaseException) -> str:
    """Message of ``raw`` plus the response body for HTTP status errors."""
    text = str(raw)
    if isinstance(raw, httpx.HTTPStatusError):
        try:
            text = f"{text}\n{raw.response.text}"
        except httpx.ResponseNotRead:
            pass
    return text


def is_auth_signature(raw: BaseException) -> bool:
    """True when the failure says the remote entity/key was not found."""
    return ENTITY_NOT_FOUND_SIGNATURE in _error_text(raw)


def classify(raw: BaseException, origin: Optional[Origin] = None) -> GenerationError:
    """Map a raw failure from either service onto the taxonomy.

    The entity-not-found signature always wins, even over an error that was
    already classified (a refusal whose text carries the signature is an
    authentication failure).
    """
    if is_auth_signature(raw):
        if isinstance(raw, AuthenticationError):
            return raw
        error = AuthenticationError(str(raw), origin or getattr(raw, "origin", None))
        error.__cause__ = raw
        return error

    if isinstance(raw, GenerationError):
        return raw

    if isinstance(raw, httpx.HTTPStatusError):
        status_code = raw.response.status_code
        if status_code in (401, 403) or INVALID_KEY_SIGNATURE in _error_text(raw):
            error = AuthenticationError(str(raw), origin)
        else:
            error = TransportError(str(raw), origin, status_code=status_code)
    elif isinstance(raw, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        error = GenerationTimeoutError(str(raw) or "Request timed out", origin)
    elif isinstance(raw, httpx.HTTPError):
        error = TransportError(str(raw), origin)
    elif isinstance(raw, (ValueError, KeyError, TypeError, AttributeError, IndexError)):
        error = ProtocolError(f"Malformed response: {raw}", origin)
    else:
        error = TransportError(str(raw), origin)

    error.__cause__ = raw
    return error

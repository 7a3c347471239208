"""Style Mixer generation engine.

Takes a garment image, a subject image and a scene description, produces a
composite via the Gemini image model, and can animate the composite into a
short clip via Veo.
"""

from stylemixer.assets import AssetStore, GenerationRequest, Slot, UploadedAsset
from stylemixer.auth import AuthGate, EnvCredentialProvider, InteractiveCredentialProvider, SessionAuthState
from stylemixer.cancellation import CancellationToken
from stylemixer.compositor import CompositeResult, CompositionService
from stylemixer.animator import AnimationJob, AnimationJobPoller, JobStatus
from stylemixer.controller import OrchestrationController, OrchestrationStatus
from stylemixer.errors import (
    AuthConnectError,
    AuthenticationError,
    ContentRefusalError,
    EmptyResponseError,
    GenerationCancelledError,
    GenerationError,
    GenerationTimeoutError,
    ProtocolError,
    TransportError,
    classify,
)

__all__ = [
    "AssetStore",
    "GenerationRequest",
    "Slot",
    "UploadedAsset",
    "AuthGate",
    "EnvCredentialProvider",
    "InteractiveCredentialProvider",
    "SessionAuthState",
    "CancellationToken",
    "CompositeResult",
    "CompositionService",
    "AnimationJob",
    "AnimationJobPoller",
    "JobStatus",
    "OrchestrationController",
    "OrchestrationStatus",
    "AuthConnectError",
    "AuthenticationError",
    "ContentRefusalError",
    "EmptyResponseError",
    "GenerationCancelledError",
    "GenerationError",
    "GenerationTimeoutError",
    "ProtocolError",
    "TransportError",
    "classify",
]

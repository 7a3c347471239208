"""Orchestration Controller

STATE MACHINE:
    IDLE -> GENERATING -> SUCCESS | ERROR

Animation is layered on a SUCCESS composite through the separate
``animating`` flag. A failed animation leaves the status at SUCCESS and
is reported through ``animation_error`` instead.

RULES:
- One composition and one animation in flight at a time; extra requests
  are ignored and leave state untouched
- Auth is checked before every remote call
- An authentication failure from either service resets the session auth
  state, forcing a reconnect before the next attempt
- Nothing is retried automatically
- A cancelled run ends in IDLE (composition) or just clears ``animating``,
  whatever the call itself returned or raised afterwards
"""

import logging
from enum import Enum
from typing import Optional

from stylemixer.animator import AnimationJob, AnimationJobPoller
from stylemixer.assets import AssetStore
from stylemixer.auth import AuthGate
from stylemixer.cancellation import CancellationToken
from stylemixer.compositor import CompositeResult, CompositionService
from stylemixer.errors import (
    AuthenticationError,
    GenerationCancelledError,
    GenerationError,
    Origin,
    classify,
)

logger = logging.getLogger(__name__)


class OrchestrationStatus(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    SUCCESS = "success"
    ERROR = "error"


class OrchestrationController:
    """Sequences auth check, composition and the optional animation job."""

    def __init__(
        self,
        assets: Optional[AssetStore] = None,
        auth_gate: Optional[AuthGate] = None,
        compositor: Optional[CompositionService] = None,
        animator: Optional[AnimationJobPoller] = None,
    ):
        self.assets = assets or AssetStore()
        self.auth_gate = auth_gate or AuthGate()
        self.compositor = compositor or CompositionService()
        self.animator = animator or AnimationJobPoller()

        self.status = OrchestrationStatus.IDLE
        self.animating = False
        self.result: Optional[CompositeResult] = None
        self.error: Optional[GenerationError] = None
        self.animation_job: Optional[AnimationJob] = None
        self.animation_error: Optional[GenerationError] = None

        self._result_revision: Optional[int] = None
        self._compose_token: Optional[CancellationToken] = None
        self._animate_token: Optional[CancellationToken] = None

    @property
    def auth_state(self):
        return self.auth_gate.state

    @property
    def result_is_stale(self) -> bool:
        """True when the assets changed after the current result was made."""
        return self.result is not None and self._result_revision != self.assets.revision

    @property
    def error_message(self) -> Optional[str]:
        """Text for the presentation layer: composition error or animation notice."""
        error = self.error or self.animation_error
        return error.user_message if error else None

    def _ensure_credential(self, origin: Origin) -> str:
        if not self.auth_state.has_credential:
            self.auth_gate.check()
        api_key = self.auth_gate.api_key() if self.auth_state.has_credential else None
        if not api_key:
            self.auth_state.has_credential = False
            raise AuthenticationError("No credential selected", origin)
        return api_key

    def _handle_failure(self, error: GenerationError):
        if isinstance(error, AuthenticationError):
            self.auth_gate.invalidate()

    async def generate(self) -> Optional[CompositeResult]:
        """Run one composition.

        Returns:
            The composite on success. None when the request was ignored
            (not ready, or another operation in flight), cancelled, or failed;
            see ``status`` and ``error``.
        """
        if self.status == OrchestrationStatus.GENERATING or self.animating:
            logger.warning("Generation request ignored: another operation is in flight")
            return None
        if not self.assets.current_request_ready():
            logger.warning("Generation request ignored: garment, subject and scene are required")
            return None

        request = self.assets.build_request()
        revision = self.assets.revision

        self.status = OrchestrationStatus.GENERATING
        self.result = None
        self._result_revision = None
        self.error = None
        self.animation_job = None
        self.animation_error = None
        token = self._compose_token = CancellationToken()
        logger.info("Status: generating")

        try:
            api_key = self._ensure_credential(Origin.IMAGE)
            result = await self.compositor.compose(request, api_key, cancel_token=token)
            # The request can't be interrupted mid-flight; drop its result instead
            token.raise_if_cancelled()
        except Exception as e:
            error = classify(e, Origin.IMAGE)
            self._handle_failure(error)
            if token.cancelled or isinstance(error, GenerationCancelledError):
                self.status = OrchestrationStatus.IDLE
                logger.info(f"Generation cancelled ({error.kind.value})")
                return None
            self.error = error
            self.status = OrchestrationStatus.ERROR
            logger.error(f"Status: error ({error.kind.value})")
            return None
        finally:
            self._compose_token = None

        self.result = result
        self._result_revision = revision
        self.status = OrchestrationStatus.SUCCESS
        logger.info("Status: success")
        return result

    async def animate(self) -> Optional[AnimationJob]:
        """Animate the current composite.

        Returns:
            The finished job, or None when ignored, cancelled or failed
            (see ``animation_error``). The top-level status is never changed.
        """
        if self.status != OrchestrationStatus.SUCCESS or self.result is None:
            logger.warning("Animation request ignored: no composite to animate")
            return None
        if self.animating:
            logger.warning("Animation request ignored: animation already in flight")
            return None

        result = self.result
        scene_description = self.assets.scene_description

        self.animating = True
        self.animation_job = AnimationJob()
        self.animation_error = None
        token = self._animate_token = CancellationToken()
        logger.info("Animating")

        try:
            api_key = self._ensure_credential(Origin.VIDEO)
            job = await self.animator.animate(
                result.image_bytes,
                scene_description,
                api_key,
                mime_type=result.mime_type,
                job=self.animation_job,
                cancel_token=token,
            )
            token.raise_if_cancelled()
        except Exception as e:
            error = classify(e, Origin.VIDEO)
            self._handle_failure(error)
            if token.cancelled or isinstance(error, GenerationCancelledError):
                logger.info(f"Animation cancelled ({error.kind.value})")
                return None
            self.animation_error = error
            logger.error(f"Animation failed ({error.kind.value}); composite kept")
            return None
        finally:
            self.animating = False
            self._animate_token = None

        return job

    def cancel(self):
        """Cancel whatever is in flight at its next suspension point."""
        for token in (self._compose_token, self._animate_token):
            if token:
                token.cancel()

    def reset(self):
        """Return to the pre-generation state, e.g. after the user disconnects.

        An in-flight composition is cancelled, and the status stays GENERATING
        until that call unwinds to IDLE, so no second composition can start
        alongside it. An in-flight animation likewise keeps ``animating`` set
        until it unwinds.
        """
        self.cancel()
        if self.status != OrchestrationStatus.GENERATING:
            self.status = OrchestrationStatus.IDLE
        self.result = None
        self._result_revision = None
        self.error = None
        self.animation_job = None
        self.animation_error = None
        logger.info(f"Status: {self.status.value} (reset)")

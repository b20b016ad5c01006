"""
Restoration session - the state machine behind one restoration workflow.

``transition`` is a pure function of (state, event). ``RestorationSession``
applies it, runs the remote call between "started" and "finished" events and
tells a single observer about every state change.
"""

import logging
import time
from collections import OrderedDict
from typing import Callable, Hashable, Optional, Protocol, Tuple

from .errors import RestorationError, ValidationError
from .models import (
    Failed,
    HasImage,
    Idle,
    ImageAcquired,
    Processing,
    ResetRequested,
    RestorationFailed,
    RestorationResult,
    RestorationStarted,
    RestorationSucceeded,
    SessionEvent,
    SessionState,
    SourceImage,
    Success,
)

logger = logging.getLogger(__name__)

RESTORATION_PROMPT = (
    "Act as a team of expert photo restorers. Restore this old photograph. "
    "Remove all scratches, stains, tears and general wear. "
    "Preserve the facial details and the original texture as much as possible. "
    "Improve sharpness and contrast. Photorealistic, high-resolution style."
)

INTERRUPTED_MESSAGE = "The restoration was interrupted. Please try again."


class Restorer(Protocol):
    async def restore(self, image: SourceImage, instruction: str) -> SourceImage:
        ...


StateObserver = Callable[[SessionState], None]


def transition(state: SessionState, event: SessionEvent) -> SessionState:
    """Return the state that follows ``state`` once ``event`` happened."""
    if isinstance(event, ResetRequested):
        return Idle()

    if isinstance(event, ImageAcquired):
        return HasImage(image=event.image)

    if isinstance(event, RestorationStarted):
        # Only one request in flight; a second start is ignored, not queued
        if isinstance(state, (HasImage, Failed)):
            return Processing(image=state.image, attempt=event.attempt)
        return state

    if isinstance(event, (RestorationSucceeded, RestorationFailed)):
        # Results of superseded attempts are dropped
        if not isinstance(state, Processing) or state.attempt != event.attempt:
            return state
        if isinstance(event, RestorationSucceeded):
            return Success(result=RestorationResult(original=state.image, restored=event.restored))
        return Failed(image=state.image, message=event.message)

    raise TypeError(f"Unknown session event: {event!r}")


class RestorationSession:
    """One user's restoration workflow."""

    def __init__(
        self,
        restorer: Restorer,
        instruction: str = RESTORATION_PROMPT,
        on_change: Optional[StateObserver] = None,
    ):
        self._restorer = restorer
        self._instruction = instruction
        self._on_change = on_change
        self._state: SessionState = Idle()
        self._attempts = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def image(self) -> Optional[SourceImage]:
        return getattr(self._state, "image", None)

    @property
    def result(self) -> Optional[RestorationResult]:
        return getattr(self._state, "result", None)

    @property
    def error(self) -> Optional[str]:
        return getattr(self._state, "message", None)

    @property
    def attempts(self) -> int:
        """Number of attempts started so far; the latest one is the current one."""
        return self._attempts

    @property
    def is_processing(self) -> bool:
        return isinstance(self._state, Processing)

    def _dispatch(self, event: SessionEvent) -> bool:
        """Apply ``event``; return True when the state actually changed."""
        previous = self._state
        new_state = transition(previous, event)
        if new_state == previous:
            logger.debug("Session event %s ignored in state %s", type(event).__name__, previous.status.value)
            return False

        self._state = new_state
        logger.debug("Session %s -> %s", previous.status.value, new_state.status.value)
        if self._on_change is not None:
            self._on_change(new_state)
        return True

    def acquire_image(self, data: bytes, mime_type: str) -> SessionState:
        """
        Take a new source image, dropping any previous image, result or error.

        Raises:
            ValidationError: ``mime_type`` is not an image type or ``data`` is empty.
                The state is left untouched.
        """
        image = SourceImage(data=bytes(data), mime_type=(mime_type or "").strip().lower())
        if not image.is_image:
            raise ValidationError("Please upload an image file.")
        if not image.data:
            raise ValidationError("The uploaded file is empty.")

        self._dispatch(ImageAcquired(image=image))
        return self._state

    async def start_restoration(self) -> SessionState:
        """
        Run one restoration attempt for the held image.

        Does nothing unless the session holds an image and no attempt is in flight.
        """
        attempt = self._attempts + 1
        if not self._dispatch(RestorationStarted(attempt=attempt)):
            return self._state
        self._attempts = attempt

        image = self._state.image
        logger.info("Restoration attempt #%d started (%s)", attempt, image.mime_type)
        try:
            restored = await self._restorer.restore(image, self._instruction)
        except RestorationError as e:
            logger.error("Restoration attempt #%d failed: %s", attempt, e.message)
            applied = self._dispatch(RestorationFailed(attempt=attempt, message=e.message))
        except BaseException as e:
            # Cancelled or crashed: the attempt still ends in Failed
            logger.error("Restoration attempt #%d aborted: %r", attempt, e)
            self._dispatch(RestorationFailed(attempt=attempt, message=INTERRUPTED_MESSAGE))
            raise
        else:
            logger.info("Restoration attempt #%d succeeded", attempt)
            applied = self._dispatch(RestorationSucceeded(attempt=attempt, restored=restored))

        if not applied:
            logger.info("Discarded stale result of restoration attempt #%d", attempt)
        return self._state

    def reset(self) -> SessionState:
        """Back to Idle. An in-flight attempt keeps running but its result is discarded."""
        self._dispatch(ResetRequested())
        return self._state


class SessionStore:
    """
    Sessions keyed by workflow (chat id, web session id), sharing one restorer.

    A session untouched for ``ttl`` seconds expires. When more than
    ``max_sessions`` are held, the least recently used one is evicted.
    Expired sessions are swept whenever the store is accessed.
    """

    def __init__(
        self,
        restorer: Restorer,
        instruction: str = RESTORATION_PROMPT,
        ttl: Optional[float] = 3600.0,
        max_sessions: Optional[int] = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl is not None and ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_sessions is not None and max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.restorer = restorer
        self.instruction = instruction
        self.ttl = ttl
        self.max_sessions = max_sessions
        self._clock = clock
        # key -> (session, last access), least recently used first
        self._sessions: "OrderedDict[Hashable, Tuple[RestorationSession, float]]" = OrderedDict()

    def __contains__(self, key: Hashable) -> bool:
        self._sweep()
        return key in self._sessions

    def __len__(self) -> int:
        self._sweep()
        return len(self._sessions)

    def _sweep(self) -> None:
        if self.ttl is None:
            return
        deadline = self._clock() - self.ttl
        while self._sessions:
            key, (_, last_access) = next(iter(self._sessions.items()))
            if last_access > deadline:
                break
            del self._sessions[key]
            logger.debug("Expired restoration session %s", key)

    def _touch(self, key: Hashable, session: RestorationSession) -> None:
        self._sessions[key] = (session, self._clock())
        self._sessions.move_to_end(key)

    def get(self, key: Hashable) -> Optional[RestorationSession]:
        self._sweep()
        entry = self._sessions.get(key)
        if entry is None:
            return None
        self._touch(key, entry[0])
        return entry[0]

    def get_or_create(self, key: Hashable) -> RestorationSession:
        session = self.get(key)
        if session is None:
            session = RestorationSession(self.restorer, instruction=self.instruction)
            self._touch(key, session)
            logger.debug("Created restoration session %s", key)
            while self.max_sessions is not None and len(self._sessions) > self.max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.info("Evicted restoration session %s (limit %d)", evicted, self.max_sessions)
        return session

    def discard(self, key: Hashable) -> bool:
        return self._sessions.pop(key, None) is not None

"""
Data model of a restoration workflow.

- SourceImage / RestorationRequest / RestorationResult: immutable values
- Idle / HasImage / Processing / Success / Failed: the session states
- ImageAcquired / RestorationStarted / ...: events fed to the transition function
"""

import base64
import binascii
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .errors import ValidationError

DATA_URI_PREFIX = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,", re.IGNORECASE)


@dataclass(frozen=True)
class SourceImage:
    """Encoded image bytes together with their declared media type."""

    data: bytes
    mime_type: str

    def __repr__(self):
        return f"<SourceImage(mime_type='{self.mime_type}', size={len(self.data)})>"

    @property
    def is_image(self) -> bool:
        return self.mime_type.lower().startswith("image/")

    @classmethod
    def from_base64(cls, payload: str, mime_type: Optional[str] = None) -> "SourceImage":
        """
        Decode a raw base64 string or a ``data:<type>;base64,`` URI.

        The media type declared in a data URI prefix wins over ``mime_type``.
        """
        payload = payload.strip()
        match = DATA_URI_PREFIX.match(payload)
        if match:
            mime_type = match.group("mime").lower()
            payload = payload[match.end():]

        if not mime_type:
            raise ValidationError("The image media type is missing.")

        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError("The uploaded file is not valid base64 data.") from e

        return cls(data=data, mime_type=mime_type)

    def to_base64(self) -> str:
        """Raw base64 without any prefix."""
        return base64.b64encode(self.data).decode("utf-8")

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


@dataclass(frozen=True)
class RestorationRequest:
    image: SourceImage
    instruction: str


@dataclass(frozen=True)
class RestorationResult:
    original: SourceImage
    restored: SourceImage


class SessionStatus(str, Enum):
    IDLE = "idle"
    HAS_IMAGE = "has_image"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


# ============================================================================
# Session states
# ============================================================================

@dataclass(frozen=True)
class Idle:
    status = SessionStatus.IDLE


@dataclass(frozen=True)
class HasImage:
    image: SourceImage
    status = SessionStatus.HAS_IMAGE


@dataclass(frozen=True)
class Processing:
    image: SourceImage
    attempt: int
    status = SessionStatus.PROCESSING


@dataclass(frozen=True)
class Success:
    result: RestorationResult
    status = SessionStatus.SUCCESS


@dataclass(frozen=True)
class Failed:
    image: SourceImage
    message: str
    status = SessionStatus.FAILED


SessionState = Union[Idle, HasImage, Processing, Success, Failed]


# ============================================================================
# Events
# ============================================================================

@dataclass(frozen=True)
class ImageAcquired:
    image: SourceImage


@dataclass(frozen=True)
class RestorationStarted:
    attempt: int


@dataclass(frozen=True)
class RestorationSucceeded:
    attempt: int
    restored: SourceImage


@dataclass(frozen=True)
class RestorationFailed:
    attempt: int
    message: str


@dataclass(frozen=True)
class ResetRequested:
    pass


SessionEvent = Union[
    ImageAcquired,
    RestorationStarted,
    RestorationSucceeded,
    RestorationFailed,
    ResetRequested,
]

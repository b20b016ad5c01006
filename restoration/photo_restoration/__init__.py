"""
Photo Restoration module - restoring old photos with a hosted image model.

The module provides:
- the per-workflow restoration session (state machine)
- the Gemini image client
- PNG/JPEG/WEBP export
"""

from .errors import EmptyResultError, RestorationError, TransportError, ValidationError
from .export import ExportFormat, export_filename, export_image
from .image_client import ImageRestorationClient
from .models import (
    Failed,
    HasImage,
    Idle,
    Processing,
    RestorationResult,
    SessionStatus,
    SourceImage,
    Success,
)
from .service import create_restoration_client, create_session_store
from .session import RESTORATION_PROMPT, RestorationSession, SessionStore, transition

__all__ = [
    # Session
    "RestorationSession",
    "SessionStore",
    "transition",
    "RESTORATION_PROMPT",
    # States & values
    "SessionStatus",
    "Idle",
    "HasImage",
    "Processing",
    "Success",
    "Failed",
    "SourceImage",
    "RestorationResult",
    # Clients
    "ImageRestorationClient",
    "create_restoration_client",
    "create_session_store",
    # Export
    "ExportFormat",
    "export_image",
    "export_filename",
    # Errors
    "RestorationError",
    "ValidationError",
    "TransportError",
    "EmptyResultError",
]

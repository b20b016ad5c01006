"""
Restoration - photo restoration through a hosted image model

Modules:
- photo_restoration: sessions, the Gemini client and image export
- service: HTTP API for the single-page UI
"""

from .photo_restoration import (
    ImageRestorationClient,
    RestorationSession,
    SessionStore,
    create_session_store,
)

__all__ = [
    "ImageRestorationClient",
    "RestorationSession",
    "SessionStore",
    "create_session_store",
]

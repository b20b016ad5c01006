"""
Wiring of the restoration pieces from configuration.

- create_restoration_client: Gemini client built from RestorationConfig
- create_session_store: store of per-workflow sessions sharing that client
"""

import logging
from typing import Optional

from restoration.config import RestorationConfig, load_config

from .image_client import ImageRestorationClient
from .session import RESTORATION_PROMPT, SessionStore

logger = logging.getLogger(__name__)


def create_restoration_client(config: Optional[RestorationConfig] = None) -> ImageRestorationClient:
    """
    Build the Gemini client.

    A missing API key is not an error here: every restoration attempt will
    fail with a validation message instead, so the UI stays usable.
    """
    config = config or load_config()
    if not config.api_key:
        logger.warning("⚠️ IMAGE_GEN_API_KEY is not set, restorations will fail")

    logger.info(f"🎨 Restoration model: {config.model} ({config.base_url})")
    return ImageRestorationClient(
        api_key=config.api_key,
        model=config.model,
        base_url=config.base_url,
        timeout=config.timeout,
    )


def create_session_store(
    client: Optional[ImageRestorationClient] = None,
    config: Optional[RestorationConfig] = None,
) -> SessionStore:
    config = config or load_config()
    return SessionStore(
        client or create_restoration_client(config),
        instruction=RESTORATION_PROMPT,
        ttl=config.session_ttl,
        max_sessions=config.max_sessions,
    )

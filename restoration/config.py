import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# In Docker the variables come from docker-compose.yml, so .env is optional
env_file = Path(__file__).parent.parent / ".env"
if env_file.exists():
    load_dotenv(env_file)
else:
    load_dotenv(override=False)


@dataclass
class RestorationConfig:
    """Settings for the remote restoration model and the HTTP service."""

    # Gemini
    api_key: Optional[str] = None
    model: str = "gemini-2.5-flash-image"
    base_url: str = "https://generativelanguage.googleapis.com"
    timeout: float = 120.0

    # HTTP service
    api_secret_key: str = ""
    port: int = 9000

    # Sessions
    session_ttl: float = 3600.0
    max_sessions: int = 1000

    log_level: str = "INFO"

    def __post_init__(self):
        if self.timeout <= 0:
            raise ValueError("IMAGE_GEN_TIMEOUT must be positive")
        if self.session_ttl <= 0:
            raise ValueError("SESSION_TTL must be positive")
        if self.max_sessions < 1:
            raise ValueError("MAX_SESSIONS must be at least 1")


def load_config() -> RestorationConfig:
    """Build the configuration from environment variables."""
    api_key = (
        os.getenv("IMAGE_GEN_API_KEY")
        or os.getenv("GEMINI_API_KEY")
        or os.getenv("API_KEY")
    )
    return RestorationConfig(
        api_key=api_key.strip() if api_key else None,
        model=os.getenv("IMAGE_GEN_MODEL") or "gemini-2.5-flash-image",
        base_url=os.getenv("IMAGE_GEN_BASE_URL") or "https://generativelanguage.googleapis.com",
        timeout=float(os.getenv("IMAGE_GEN_TIMEOUT", "120.0")),
        api_secret_key=os.getenv("API_SECRET_KEY", ""),
        port=int(os.getenv("SERVICE_PORT", "9000")),
        session_ttl=float(os.getenv("SESSION_TTL", "3600")),
        max_sessions=int(os.getenv("MAX_SESSIONS", "1000")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )

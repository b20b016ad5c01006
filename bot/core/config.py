import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Load .env only when present; in Docker the variables come from docker-compose.yml
env_file = os.path.join(os.path.dirname(__file__), '..', '..', '.env')
if os.path.exists(env_file):
    load_dotenv(env_file)
else:
    # Fall back to the current directory for local runs
    load_dotenv(override=False)  # override=False keeps variables that are already set


@dataclass
class BotConfig:
    """Bot configuration"""

    # Telegram Bot
    bot_token: str

    # Settings
    log_level: str = "INFO"
    debug: bool = False

    def __post_init__(self):
        """Validate the configuration after init"""
        if not self.bot_token:
            raise ValueError("BOT_TOKEN is not set in the environment")


def load_config() -> BotConfig:
    """Load the configuration from environment variables"""
    bot_token = os.getenv("BOT_TOKEN", "").strip()
    return BotConfig(
        bot_token=bot_token,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        debug=os.getenv("DEBUG", "false").lower() == "true",
    )

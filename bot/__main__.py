import asyncio
import logging
from aiogram import Bot, Dispatcher

from bot.core.config import BotConfig, load_config
from bot.middleware.session import RestorationSessionMiddleware
from bot.middleware.error_handler import ErrorHandlerMiddleware, LoggingMiddleware
from bot.handlers.commands import router as commands_router
from bot.handlers.photo_restoration import router as photo_restoration_router
from restoration.photo_restoration import create_session_store

logger = logging.getLogger(__name__)


def create_dispatcher(store) -> Dispatcher:
    """Dispatcher with middlewares and routers attached."""
    dp = Dispatcher()

    # The session middleware must run before the handlers that use `restoration`
    dp.message.middleware(RestorationSessionMiddleware(store))
    dp.callback_query.middleware(RestorationSessionMiddleware(store))

    dp.message.middleware(ErrorHandlerMiddleware())
    dp.callback_query.middleware(ErrorHandlerMiddleware())
    dp.message.middleware(LoggingMiddleware())
    dp.callback_query.middleware(LoggingMiddleware())

    dp.include_router(commands_router)
    dp.include_router(photo_restoration_router)
    return dp


def resolve_log_level(config: BotConfig) -> int:
    """DEBUG wins over LOG_LEVEL; an unknown level name falls back to INFO."""
    if config.debug:
        return logging.DEBUG
    return getattr(logging, config.log_level.upper(), logging.INFO)


async def main():
    config = load_config()

    logging.basicConfig(
        level=resolve_log_level(config),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    store = create_session_store()
    bot = Bot(token=config.bot_token)
    dp = create_dispatcher(store)

    logger.info("Bot started...")
    try:
        await dp.start_polling(bot)
    finally:
        await bot.session.close()
        await store.restorer.close()


if __name__ == "__main__":
    asyncio.run(main())

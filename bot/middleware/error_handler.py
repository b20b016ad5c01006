import logging
import time
from typing import Callable, Dict, Any, Awaitable
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject, Message, CallbackQuery, User

logger = logging.getLogger(__name__)


class ErrorHandlerMiddleware(BaseMiddleware):
    """Last line of defence: log anything a handler let escape."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        try:
            return await handler(event, data)
        except Exception as e:
            user: User | None = data.get("event_from_user")
            logger.error(
                f"❌ Unhandled error for user {user.id if user else None}: {e}",
                exc_info=True
            )
            if isinstance(event, Message):
                await event.answer("An unexpected error occurred. Please try again.")
            elif isinstance(event, CallbackQuery):
                await event.answer("An unexpected error occurred.", show_alert=True)
            return None


class LoggingMiddleware(BaseMiddleware):
    """Logs every update with the time it took to handle."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        user: User | None = data.get("event_from_user")
        start = time.monotonic()
        result = await handler(event, data)
        elapsed = time.monotonic() - start

        if isinstance(event, CallbackQuery):
            logger.info(f"🔘 Callback '{event.data}' from user {user.id if user else None} ({elapsed:.2f}s)")
        elif isinstance(event, Message):
            kind = "photo" if event.photo else "document" if event.document else "text"
            logger.info(f"💬 Message ({kind}) from user {user.id if user else None} ({elapsed:.2f}s)")
        return result

"""
Helpers for talking to Telegram safely and rendering session states as text.
"""

import functools
import html
import inspect
import logging
from typing import Any, Optional

from aiogram.exceptions import TelegramAPIError
from aiogram.types import CallbackQuery, Message

from restoration.photo_restoration import SessionStatus, RestorationSession

logger = logging.getLogger(__name__)

GENERIC_ERROR_TEXT = "Something went wrong. Please try again a bit later."

STATUS_TEXTS = {
    SessionStatus.IDLE: "📷 Send me an old photo (as a photo or as an image file) to get started.",
    SessionStatus.HAS_IMAGE: "🖼️ <b>Photo received.</b>\n\nPress <b>Restore photo</b> when you are ready.",
    SessionStatus.PROCESSING: "🔮 <b>Restoring details...</b>\n\nThis might take a few seconds.",
    SessionStatus.SUCCESS: "✨ <b>Done!</b> Here is your photo before and after restoration.",
}


def render_session(session: RestorationSession) -> str:
    """Text shown to the user for the session's current state."""
    status = session.state.status
    if status is SessionStatus.FAILED:
        return (
            "⚠️ <b>Restoration failed</b>\n\n"
            f"{html.escape(session.error or '')}\n\n"
            "You can try again or send another photo."
        )
    return STATUS_TEXTS[status]


async def safe_send_message(
    message: Message,
    text: str,
    user_id: Optional[int] = None,
    **kwargs: Any,
) -> Optional[Message]:
    """Send a reply, logging instead of raising when Telegram refuses it."""
    try:
        return await message.answer(text, **kwargs)
    except TelegramAPIError as e:
        logger.error(f"❌ Failed to send message to user {user_id}: {e}")
        return None


def handle_telegram_errors(handler):
    """
    Log unexpected handler errors and tell the user something went wrong.
    """
    params = inspect.signature(handler).parameters
    accepts_any = any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params.values())

    @functools.wraps(handler)
    async def wrapper(event, *args, **kwargs):
        # aiogram passes the whole context to a **kwargs callback
        if not accepts_any:
            kwargs = {k: v for k, v in kwargs.items() if k in params}
        try:
            return await handler(event, *args, **kwargs)
        except TelegramAPIError as e:
            logger.error(f"❌ Telegram API error in {handler.__name__}: {e}")
        except Exception as e:
            logger.error(f"❌ Unexpected error in {handler.__name__}: {e}", exc_info=True)
            if isinstance(event, CallbackQuery):
                try:
                    await event.answer(GENERIC_ERROR_TEXT, show_alert=True)
                except TelegramAPIError:
                    logger.warning("Could not answer callback after error")
            elif isinstance(event, Message):
                await safe_send_message(event, GENERIC_ERROR_TEXT, user_id=event.from_user.id if event.from_user else None)
    return wrapper

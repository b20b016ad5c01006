from typing import Callable, Dict, Any, Awaitable
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject, Chat

from restoration.photo_restoration import SessionStore


class RestorationSessionMiddleware(BaseMiddleware):
    """Injects the chat's restoration session as ``restoration``."""

    def __init__(self, store: SessionStore):
        super().__init__()
        self.store = store

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        # Aiogram's context middleware populates 'event_chat'
        chat: Chat | None = data.get("event_chat")

        # Events outside a chat have no workflow
        if not chat:
            return await handler(event, data)

        data["restoration"] = self.store.get_or_create(chat.id)
        return await handler(event, data)

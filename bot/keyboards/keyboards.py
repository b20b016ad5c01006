from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder

from restoration.photo_restoration import ExportFormat

DOWNLOAD_LABELS = {
    ExportFormat.PNG: "PNG · lossless",
    ExportFormat.JPEG: "JPG · smaller",
    ExportFormat.WEBP: "WEBP · modern",
}


def main_menu_keyboard() -> InlineKeyboardMarkup:
    """
    The main menu keyboard.
    """
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="📸 Restore a photo", callback_data="start_photo_restoration")],
    ])


def create_photo_upload_keyboard() -> InlineKeyboardMarkup:
    """The keyboard while waiting for a photo."""
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🔙 Cancel", callback_data="cancel_photo_restoration")]
    ])


def create_restore_keyboard(retry: bool = False) -> InlineKeyboardMarkup:
    """The keyboard once a photo is held, before or after a failed attempt."""
    action = "🔁 Try again" if retry else "🪄 Restore photo"
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=action, callback_data="restore_photo")],
        [InlineKeyboardButton(text="🔙 Cancel", callback_data="cancel_photo_restoration")],
    ])


def create_result_keyboard() -> InlineKeyboardMarkup:
    """Download buttons for every export format plus a fresh start."""
    builder = InlineKeyboardBuilder()
    for fmt, label in DOWNLOAD_LABELS.items():
        builder.button(text=f"⬇️ {label}", callback_data=f"download:{fmt.value}")
    builder.button(text="📷 New photo", callback_data="new_photo")
    builder.adjust(1)
    return builder.as_markup()

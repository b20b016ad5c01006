import logging
from aiogram import Router
from aiogram.types import Message
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext

from bot.core.states import PhotoRestorationStates
from bot.keyboards.keyboards import main_menu_keyboard, create_photo_upload_keyboard
from bot.utils.formatters import safe_send_message, render_session
from restoration.photo_restoration import RestorationSession

logger = logging.getLogger(__name__)
router = Router()


@router.message(Command("start"))
async def start_command(message: Message, state: FSMContext, restoration: RestorationSession):
    """
    Handles the /start command and drops any unfinished workflow.
    """
    restoration.reset()
    await state.clear()

    user_name = message.from_user.first_name
    text = (
        f"Hello, {user_name}!\n\n"
        "I bring old, damaged or blurry photos back to life. "
        "Send me a picture and I will remove scratches, stains and wear, "
        "then give you the restored version to download."
    )

    await safe_send_message(
        message,
        text,
        user_id=message.from_user.id,
        reply_markup=main_menu_keyboard(),
        parse_mode="HTML"
    )


@router.message(Command("restore"))
async def restore_command(message: Message, state: FSMContext, restoration: RestorationSession):
    """
    Shortcut for the 'Restore a photo' button.
    """
    restoration.reset()
    await state.set_state(PhotoRestorationStates.restoring)
    await safe_send_message(
        message,
        render_session(restoration),
        user_id=message.from_user.id,
        reply_markup=create_photo_upload_keyboard()
    )


@router.message(Command("help"))
async def help_command(message: Message):
    """
    Handles the /help command.
    """
    text = (
        "<b>How it works</b>\n\n"
        "1. Press <b>Restore a photo</b> or send /restore.\n"
        "2. Send the photo. Send it as a file to keep the full quality.\n"
        "3. Press <b>Restore photo</b> and wait a few seconds.\n"
        "4. Compare before and after, then download PNG, JPG or WEBP.\n\n"
        "If a restoration fails you can try again with the same photo."
    )
    await safe_send_message(
        message,
        text,
        user_id=message.from_user.id,
        parse_mode="HTML"
    )


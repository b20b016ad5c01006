"""
Photo Restoration Handler - restoring old photos through the image model.

Button:
- 📸 Restore a photo (main menu)
"""

import logging
from aiogram import Router, F, Bot
from aiogram.types import (
    Message,
    CallbackQuery,
    BufferedInputFile,
    InputMediaPhoto,
)
from aiogram.filters import StateFilter
from aiogram.fsm.context import FSMContext

from bot.core.states import PhotoRestorationStates
from bot.keyboards.keyboards import (
    main_menu_keyboard,
    create_photo_upload_keyboard,
    create_restore_keyboard,
    create_result_keyboard,
)
from bot.utils.formatters import (
    safe_send_message,
    handle_telegram_errors,
    render_session,
    STATUS_TEXTS,
)
from restoration.photo_restoration import (
    ExportFormat,
    Failed,
    RestorationSession,
    SessionStatus,
    SourceImage,
    Success,
    ValidationError,
    export_filename,
    export_image,
)

logger = logging.getLogger(__name__)

router = Router()

# Telegram re-encodes every photo as JPEG
TELEGRAM_PHOTO_MIME = "image/jpeg"


def _input_file(image: SourceImage, name: str) -> BufferedInputFile:
    extension = image.mime_type.split("/")[-1]
    return BufferedInputFile(image.data, filename=f"{name}.{extension}")


# ============================================================================
# Callback start_photo_restoration - start the workflow
# ============================================================================

@router.callback_query(F.data == "start_photo_restoration")
@handle_telegram_errors
async def callback_start_photo_restoration(callback: CallbackQuery, state: FSMContext, restoration: RestorationSession):
    """Start a fresh restoration workflow in this chat."""
    telegram_id = callback.from_user.id

    logger.info(f"📸 User {telegram_id} started photo restoration")

    restoration.reset()
    await state.set_state(PhotoRestorationStates.restoring)

    await callback.message.edit_text(
        "🕰️ <b>Restore your memories</b>\n\n" + render_session(restoration),
        parse_mode="HTML",
        reply_markup=create_photo_upload_keyboard()
    )
    await callback.answer()


# ============================================================================
# Photo intake
# ============================================================================

async def _acquire(message: Message, restoration: RestorationSession, data: bytes, mime_type: str):
    telegram_id = message.from_user.id
    try:
        restoration.acquire_image(data, mime_type)
    except ValidationError as e:
        logger.info(f"🚫 User {telegram_id} sent an unsupported file ({mime_type}): {e.message}")
        await safe_send_message(
            message,
            f"❗️ {e.message}",
            user_id=telegram_id,
            reply_markup=create_photo_upload_keyboard()
        )
        return

    logger.info(f"📥 Photo received from user {telegram_id} ({mime_type}, {len(data)} bytes)")
    await safe_send_message(
        message,
        render_session(restoration),
        user_id=telegram_id,
        parse_mode="HTML",
        reply_markup=create_restore_keyboard()
    )


@router.message(StateFilter(PhotoRestorationStates.restoring), F.photo)
@handle_telegram_errors
async def process_photo(message: Message, bot: Bot, restoration: RestorationSession):
    """A compressed Telegram photo."""
    photo = message.photo[-1]
    buffer = await bot.download(photo)
    await _acquire(message, restoration, buffer.getvalue(), TELEGRAM_PHOTO_MIME)


@router.message(StateFilter(PhotoRestorationStates.restoring), F.document)
@handle_telegram_errors
async def process_document(message: Message, bot: Bot, restoration: RestorationSession):
    """An image sent as a file keeps its original quality and type."""
    document = message.document
    buffer = await bot.download(document)
    await _acquire(message, restoration, buffer.getvalue(), document.mime_type or "")


@router.message(StateFilter(PhotoRestorationStates.restoring))
@handle_telegram_errors
async def process_photo_error(message: Message):
    """Anything that is not a photo."""
    await safe_send_message(
        message,
        "This doesn't look like a photo. Please send an image.",
        user_id=message.from_user.id,
        reply_markup=create_photo_upload_keyboard()
    )


# ============================================================================
# Callback restore_photo - run (or retry) a restoration
# ============================================================================

@router.callback_query(F.data == "restore_photo")
@handle_telegram_errors
async def callback_restore_photo(callback: CallbackQuery, restoration: RestorationSession):
    """Send the held photo to the model and show the outcome."""
    telegram_id = callback.from_user.id

    if restoration.is_processing:
        await callback.answer("Already restoring, hang on...")
        return
    if restoration.image is None:
        await callback.answer("Send a photo first!", show_alert=True)
        return

    await callback.answer()
    processing_message = await safe_send_message(
        callback.message,
        STATUS_TEXTS[SessionStatus.PROCESSING],
        user_id=telegram_id,
        parse_mode="HTML"
    )

    attempt = restoration.attempts + 1
    try:
        outcome = await restoration.start_restoration()
    finally:
        if processing_message:
            await processing_message.delete()

    if restoration.attempts != attempt:
        # A newer attempt owns the chat now
        logger.info(f"⏭️ Restoration attempt #{attempt} for user {telegram_id} superseded")
    elif isinstance(outcome, Success):
        logger.info(f"✅ Photo restored for user {telegram_id}")
        await callback.message.answer_media_group([
            InputMediaPhoto(media=_input_file(outcome.result.original, "original"), caption="Before"),
            InputMediaPhoto(media=_input_file(outcome.result.restored, "restored"), caption="After"),
        ])
        await safe_send_message(
            callback.message,
            render_session(restoration) + "\n\nPick a format to download the restored photo.",
            user_id=telegram_id,
            parse_mode="HTML",
            reply_markup=create_result_keyboard()
        )
    elif isinstance(outcome, Failed):
        await safe_send_message(
            callback.message,
            render_session(restoration),
            user_id=telegram_id,
            parse_mode="HTML",
            reply_markup=create_restore_keyboard(retry=True)
        )
    else:
        # Cancelled or replaced by another photo while running
        logger.info(f"⏭️ Restoration attempt #{attempt} for user {telegram_id} discarded")


# ============================================================================
# Callback download:<format> - export the restored photo
# ============================================================================

@router.callback_query(F.data.startswith("download:"))
@handle_telegram_errors
async def callback_download(callback: CallbackQuery, restoration: RestorationSession):
    """Send the restored photo as a file in the chosen format."""
    result = restoration.result
    if result is None:
        await callback.answer("There is no restored photo to download.", show_alert=True)
        return

    try:
        fmt = ExportFormat(callback.data.split(":", 1)[1])
    except ValueError:
        await callback.answer("Unknown format.", show_alert=True)
        return

    exported = export_image(result.restored, fmt)
    await callback.message.answer_document(
        BufferedInputFile(exported.data, filename=export_filename(fmt)),
        caption=f"Restored photo ({fmt.value.upper()})"
    )
    await callback.answer()


# ============================================================================
# Callbacks new_photo / cancel_photo_restoration
# ============================================================================

@router.callback_query(F.data == "new_photo")
@handle_telegram_errors
async def callback_new_photo(callback: CallbackQuery, state: FSMContext, restoration: RestorationSession):
    """Drop the current photo and wait for another one."""
    restoration.reset()
    await state.set_state(PhotoRestorationStates.restoring)

    await safe_send_message(
        callback.message,
        render_session(restoration),
        user_id=callback.from_user.id,
        reply_markup=create_photo_upload_keyboard()
    )
    await callback.answer()


@router.callback_query(F.data == "cancel_photo_restoration")
@handle_telegram_errors
async def callback_cancel_photo_restoration(callback: CallbackQuery, state: FSMContext, restoration: RestorationSession):
    """Cancel the workflow and go back to the main menu."""
    telegram_id = callback.from_user.id

    logger.info(f"🔚 User {telegram_id} cancelled photo restoration")

    restoration.reset()
    await state.clear()

    await callback.message.edit_text(
        "Okay, cancelled. You are back in the main menu.",
        reply_markup=main_menu_keyboard()
    )
    await callback.answer()

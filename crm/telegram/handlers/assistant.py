"""
Assistant Handlers.

Text, voice and image messages are turned into text and answered by the
assistant. A typing indicator runs while the model works.
"""

import asyncio
import contextlib
from html import escape

from aiogram import Bot, F, Router
from aiogram.enums import ChatAction
from aiogram.exceptions import TelegramAPIError
from aiogram.types import BufferedInputFile, Message

from crm.backend.agents.assistant.service import AssistantReply, AssistantService
from crm.backend.core.config import get_app_config
from crm.backend.core.exceptions import ExternalServiceError
from crm.backend.core.logging import get_logger, log_with_source
from crm.telegram.services.notifications import NotificationService

logger = get_logger(__name__)

router = Router(name="assistant")

APOLOGY = "Désolé, une erreur est survenue. Réessayez dans un instant."


async def keep_typing(bot: Bot, chat_id: int, interval: float) -> None:
    """Repeat the typing action until cancelled."""
    while True:
        try:
            await bot.send_chat_action(chat_id, ChatAction.TYPING)
        except TelegramAPIError as e:
            logger.debug("Typing indicator failed", extra={"chat_id": chat_id, "error": str(e)})
            return
        await asyncio.sleep(interval)


async def send_reply(bot: Bot, chat_id: int, reply: AssistantReply) -> None:
    config = get_app_config().assistant
    await NotificationService(bot, config.telegram_message_limit).send_text(chat_id, reply.text)
    for attachment in reply.attachments:
        await bot.send_document(
            chat_id,
            BufferedInputFile(attachment.content, filename=attachment.filename),
            caption=attachment.caption,
        )


async def answer_with_assistant(
    message: Message,
    bot: Bot,
    assistant: AssistantService,
    text: str,
) -> None:
    chat_id = message.chat.id
    author = message.from_user.full_name if message.from_user else "Telegram"
    interval = get_app_config().assistant.typing_interval_seconds
    typing = asyncio.create_task(keep_typing(bot, chat_id, interval))
    try:
        reply = await assistant.reply(chat_id, text, author_name=author)
    except Exception as e:
        log_with_source(
            logger, "telegram", "error", "Assistant reply failed",
            chat_id=chat_id, error=str(e), error_type=type(e).__name__,
        )
        reply = AssistantReply(APOLOGY)
    finally:
        typing.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await typing

    await send_reply(bot, chat_id, reply)


async def _download(bot: Bot, file_id: str) -> bytes:
    buffer = await bot.download(file_id)
    if buffer is None:
        raise ExternalServiceError("Téléchargement du fichier impossible")
    return buffer.read()


@router.message(F.text & ~F.text.startswith("/"))
async def on_text(message: Message, bot: Bot, assistant: AssistantService) -> None:
    await answer_with_assistant(message, bot, assistant, message.text)


@router.message(F.voice | F.audio)
async def on_voice(message: Message, bot: Bot, assistant: AssistantService) -> None:
    if not get_app_config().features.assistant_voice_enabled:
        await message.answer("Les messages vocaux ne sont pas activés.")
        return
    media = message.voice or message.audio
    filename = getattr(media, "file_name", None) or "voice.ogg"
    try:
        text = await assistant.transcribe(await _download(bot, media.file_id), filename)
    except (ExternalServiceError, TelegramAPIError) as e:
        log_with_source(logger, "telegram", "error", "Voice transcription failed", error=str(e))
        await message.answer(APOLOGY, parse_mode=None)
        return
    if not text:
        await message.answer("Je n'ai rien compris dans ce message vocal.")
        return
    await message.answer(f"🎤 <i>{escape(text)}</i>")
    await answer_with_assistant(message, bot, assistant, text)


async def _describe_and_answer(
    message: Message,
    bot: Bot,
    assistant: AssistantService,
    file_id: str,
    mime_type: str,
) -> None:
    if not get_app_config().features.assistant_vision_enabled:
        await message.answer("L'analyse d'images n'est pas activée.")
        return
    try:
        description = await assistant.describe_image(
            await _download(bot, file_id), mime_type, message.caption,
        )
    except (ExternalServiceError, TelegramAPIError) as e:
        log_with_source(logger, "telegram", "error", "Image description failed", error=str(e))
        await message.answer(APOLOGY, parse_mode=None)
        return
    text = f"[Image reçue] {description}"
    if message.caption:
        text += f"\n\nDemande: {message.caption}"
    await answer_with_assistant(message, bot, assistant, text)


@router.message(F.photo)
async def on_photo(message: Message, bot: Bot, assistant: AssistantService) -> None:
    await _describe_and_answer(message, bot, assistant, message.photo[-1].file_id, "image/jpeg")


@router.message(F.document)
async def on_document(message: Message, bot: Bot, assistant: AssistantService) -> None:
    document = message.document
    mime_type = document.mime_type or ""
    if mime_type.startswith("image/"):
        await _describe_and_answer(message, bot, assistant, document.file_id, mime_type)
        return
    text = f"[Document reçu: {document.file_name or 'sans nom'}]"
    if message.caption:
        text += f" {message.caption}"
    await answer_with_assistant(message, bot, assistant, text)

"""
Common Handlers.

/start, /help and /reset. Everything else goes to the assistant.
"""

from html import escape

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message, User

from crm.backend.agents.assistant.service import AssistantService
from crm.backend.core.logging import get_logger

logger = get_logger(__name__)

router = Router(name="common")

HELP_TEXT = (
    "<b>Assistant CRM</b>\n\n"
    "Écrivez-moi en langage naturel, par exemple:\n"
    "• <i>Crée un devis pour Dupont: 10 jours de dev à 80€</i>\n"
    "• <i>Quelles factures sont impayées ?</i>\n"
    "• <i>Rappelle-moi demain 15h de relancer Martin</i>\n"
    "• <i>Qu'est-ce que j'ai à l'agenda cette semaine ?</i>\n\n"
    "Les messages vocaux et les photos de documents sont aussi compris.\n\n"
    "/reset - Oublier la conversation en cours\n"
    "/help - Afficher cette aide"
)


@router.message(CommandStart())
async def cmd_start(message: Message, telegram_user: User) -> None:
    await message.answer(f"Bonjour <b>{escape(telegram_user.first_name)}</b> !\n\n{HELP_TEXT}")
    logger.info(
        "User started bot",
        extra={"user_id": telegram_user.id, "username": telegram_user.username},
    )


@router.message(Command("help"))
async def cmd_help(message: Message) -> None:
    await message.answer(HELP_TEXT)


@router.message(Command("reset"))
async def cmd_reset(message: Message, assistant: AssistantService) -> None:
    await assistant.reset(message.chat.id)
    await message.answer("Conversation réinitialisée.")

"""
Assistant Service.

Entry point used by the Telegram handlers: resolves the tenant settings and
the chat's history, runs the tool-calling loop and records the exchange.
"""

from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crm.backend.agents.assistant.conversation import ConversationStore, get_conversation_store
from crm.backend.agents.assistant.llm import ChatModel, create_chat_model
from crm.backend.agents.assistant.loop import generate_reply
from crm.backend.agents.assistant.prompts import build_system_prompt
from crm.backend.agents.assistant.tools import Attachment, ToolContext
from crm.backend.core.config import get_app_config
from crm.backend.core.database import session_scope
from crm.backend.core.logging import get_logger, log_with_source
from crm.backend.core.utils import local_now
from crm.backend.repositories.tenant import TenantRepository, UserRepository
from crm.backend.services.settings import SettingsRegistry, TenantSettings, get_settings_registry

logger = get_logger(__name__)


@dataclass
class AssistantReply:
    text: str
    attachments: list[Attachment] = field(default_factory=list)


class AssistantService:
    def __init__(
        self,
        tenant_id: int,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        model: ChatModel | None = None,
        registry: SettingsRegistry | None = None,
        conversations: ConversationStore | None = None,
    ) -> None:
        self.tenant_id = tenant_id
        self.session_factory = session_factory
        self._model = model
        self.registry = registry or get_settings_registry()
        self.conversations = conversations or get_conversation_store()
        self.config = get_app_config().assistant

    async def settings(self) -> TenantSettings:
        async with session_scope(self.session_factory) as session:
            return await self.registry.get(session, self.tenant_id)

    def model_for(self, settings: TenantSettings) -> ChatModel:
        if self._model is None:
            self._model = create_chat_model(settings)
        return self._model

    async def reply(self, chat_id: int, text: str, author_name: str = "Assistant") -> AssistantReply:
        async with session_scope(self.session_factory) as session:
            settings = await self.registry.get(session, self.tenant_id)
            tenant = await TenantRepository(session).get_by_id(self.tenant_id)
            user = await UserRepository(session, self.tenant_id).get_by_telegram_chat(chat_id)
            history = await self.conversations.load(session, chat_id)

        now = local_now(self.config.timezone)
        ctx = ToolContext(
            tenant_id=self.tenant_id,
            settings=settings,
            session_factory=self.session_factory,
            timezone=self.config.timezone,
            user_id=user.id if user else None,
            chat_id=chat_id,
            author_name=author_name,
            default_event_duration_minutes=self.config.default_event_duration_minutes,
        )
        prompt = build_system_prompt(now, self.config.timezone, tenant.name, settings.default_vat_rate)
        answer = await generate_reply(self.model_for(settings), prompt, history, text, ctx)

        async with session_scope(self.session_factory) as session:
            await self.conversations.append(
                session, chat_id, self.tenant_id,
                {"role": "user", "content": text},
                {"role": "assistant", "content": answer},
            )

        log_with_source(
            logger, "assistant", "info", "Assistant replied",
            chat_id=chat_id, tenant_id=self.tenant_id, attachments=len(ctx.attachments),
        )
        return AssistantReply(answer, ctx.attachments)

    async def reset(self, chat_id: int) -> None:
        async with session_scope(self.session_factory) as session:
            await self.conversations.reset(session, chat_id)

    async def transcribe(self, audio: bytes, filename: str) -> str:
        return await self.model_for(await self.settings()).transcribe(audio, filename)

    async def describe_image(self, image: bytes, mime_type: str, caption: str | None = None) -> str:
        return await self.model_for(await self.settings()).describe_image(image, mime_type, caption)

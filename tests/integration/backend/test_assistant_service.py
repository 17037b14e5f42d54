"""
Integration Tests for the assistant service.

Covers the persisted conversation history, the settings registry and a
full reply with a scripted chat model that requests one tool.
"""

import json

import pytest
from sqlalchemy import func, select

from crm.backend.agents.assistant.conversation import ConversationStore
from crm.backend.agents.assistant.llm import ChatResponse, ToolRequest
from crm.backend.agents.assistant.service import AssistantService
from crm.backend.core.cache import TTLCache
from crm.backend.core.exceptions import ValidationError
from crm.backend.models.billing import Quote
from crm.backend.models.conversation import TelegramConversation
from crm.backend.models.tenant import Tenant
from crm.backend.services.settings import SettingsRegistry


class ScriptedModel:
    def __init__(self, *responses: ChatResponse) -> None:
        self.responses = list(responses)
        self.calls: list[dict] = []

    async def complete(self, messages, tools=None):
        self.calls.append({"messages": list(messages), "tools": tools})
        return self.responses.pop(0)


def _store(max_history: int = 20) -> ConversationStore:
    return ConversationStore(TTLCache(maxsize=10, ttl=600), max_history=max_history)


def _registry() -> SettingsRegistry:
    return SettingsRegistry(TTLCache(maxsize=10, ttl=600))


class TestConversationStore:
    async def test_history_survives_a_new_store(self, seed, db_session_factory):
        async with db_session_factory() as session:
            await _store().append(
                session, 111, seed.tenant.id,
                {"role": "user", "content": "Bonjour"},
                {"role": "assistant", "content": "Bonjour, que puis-je faire ?"},
            )
            await session.commit()

        async with db_session_factory() as session:
            history = await _store().load(session, 111)

        assert [m["role"] for m in history] == ["user", "assistant"]
        assert history[1]["content"] == "Bonjour, que puis-je faire ?"

    async def test_history_is_trimmed(self, seed, db_session_factory):
        store = _store(max_history=4)
        async with db_session_factory() as session:
            for i in range(5):
                await store.append(
                    session, 111, seed.tenant.id,
                    {"role": "user", "content": f"question {i}"},
                    {"role": "assistant", "content": f"réponse {i}"},
                )
            await session.commit()

        async with db_session_factory() as session:
            history = await _store(max_history=4).load(session, 111)

        assert [m["content"] for m in history] == ["question 3", "réponse 3", "question 4", "réponse 4"]

    async def test_reset_clears_history(self, seed, db_session_factory):
        store = _store()
        async with db_session_factory() as session:
            await store.append(session, 111, seed.tenant.id, {"role": "user", "content": "Bonjour"})
            await store.reset(session, 111)
            await session.commit()

        async with db_session_factory() as session:
            assert await store.load(session, 111) == []
            assert await _store().load(session, 111) == []

    async def test_unreadable_history_starts_over(self, db_session_factory):
        async with db_session_factory() as session:
            session.add(TelegramConversation(chat_id=222, history="{pas du json"))
            await session.commit()

        async with db_session_factory() as session:
            assert await _store().load(session, 222) == []


class TestSettingsRegistry:
    async def test_legacy_keys_are_read(self, seed, db_session_factory):
        async with db_session_factory() as session:
            settings = await _registry().get(session, seed.tenant.id)

        assert settings.smtp_host == "smtp.agence.test"
        assert settings.allowed_telegram_users == [111]

    async def test_update_section_invalidates_cache(self, seed, db_session_factory):
        registry = _registry()
        async with db_session_factory() as session:
            before = await registry.get(session, seed.tenant.id)
            await registry.update_section(session, seed.tenant.id, "invoice", {"invoicePrefix": "INV"})
            await session.commit()

        async with db_session_factory() as session:
            after = await registry.get(session, seed.tenant.id)
            tenant = await session.get(Tenant, seed.tenant.id)

        assert before.invoice_prefix == "FAC"
        assert after.invoice_prefix == "INV"
        assert json.loads(tenant.settings)["invoicePrefix"] == "INV"

    async def test_email_section_keeps_stored_password(self, seed, db_session_factory):
        registry = _registry()
        async with db_session_factory() as session:
            await registry.update_section(session, seed.tenant.id, "email", {"smtpPassword": "secret"})
            settings = await registry.update_section(
                session, seed.tenant.id, "email", {"smtpHost": "smtp.example.fr"},
            )

        assert settings.smtp_host == "smtp.example.fr"
        assert settings.smtp_password == "secret"

    async def test_unknown_section(self, seed, db_session_factory):
        async with db_session_factory() as session:
            with pytest.raises(ValidationError):
                await _registry().update_section(session, seed.tenant.id, "nope", {})


class TestAssistantReply:
    async def test_tool_round_creates_quote_and_records_history(self, seed, db_session_factory):
        model = ScriptedModel(
            ChatResponse(
                content=None,
                tool_calls=[ToolRequest(
                    id="call_1",
                    name="create_quote",
                    arguments=json.dumps({
                        "clientName": "Dupont",
                        "items": [{"description": "Audit", "quantity": 2, "unitPrice": 400}],
                    }),
                )],
            ),
            ChatResponse(content="Devis créé pour Dupont SARL : 960,00 € TTC."),
        )
        service = AssistantService(
            seed.tenant.id,
            session_factory=db_session_factory,
            model=model,
            registry=_registry(),
            conversations=_store(),
        )

        reply = await service.reply(111, "Fais un devis pour Dupont, 2 jours d'audit à 400", "Alice")

        assert reply.text == "Devis créé pour Dupont SARL : 960,00 € TTC."
        assert reply.attachments == []
        assert len(model.calls) == 2
        assert model.calls[1]["tools"] is None

        tool_message = model.calls[1]["messages"][-1]
        assert tool_message["role"] == "tool"
        assert json.loads(tool_message["content"])["totalTtc"] == 960.0

        async with db_session_factory() as session:
            quotes = (await session.execute(select(func.count()).select_from(Quote))).scalar_one()
            history = await _store().load(session, 111)

        assert quotes == 1
        assert [m["role"] for m in history] == ["user", "assistant"]
        assert history[0]["content"].startswith("Fais un devis")

    async def test_system_prompt_names_the_tenant(self, seed, db_session_factory):
        model = ScriptedModel(ChatResponse(content="Bonjour"))
        service = AssistantService(
            seed.tenant.id,
            session_factory=db_session_factory,
            model=model,
            registry=_registry(),
            conversations=_store(),
        )

        await service.reply(111, "Bonjour")

        system = model.calls[0]["messages"][0]
        assert system["role"] == "system"
        assert "Agence Test" in system["content"]

    async def test_reset_forgets_previous_turns(self, seed, db_session_factory):
        store = _store()
        service = AssistantService(
            seed.tenant.id,
            session_factory=db_session_factory,
            model=ScriptedModel(ChatResponse(content="Un"), ChatResponse(content="Deux")),
            registry=_registry(),
            conversations=store,
        )

        await service.reply(111, "premier")
        await service.reset(111)
        await service.reply(111, "second")

        async with db_session_factory() as session:
            history = await _store().load(session, 111)

        assert [m["content"] for m in history] == ["second", "Deux"]

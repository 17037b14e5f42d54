"""
Unit Tests for the tool-calling loop.

The chat model is a scripted fake; tool execution is patched so no
database is involved.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from crm.backend.agents.assistant.conversation import trim_history
from crm.backend.agents.assistant.llm import ChatResponse, ToolRequest, dump_tool_result
from crm.backend.agents.assistant.loop import EMPTY_REPLY, generate_reply
from crm.backend.agents.assistant.tools import ToolContext
from crm.backend.services.settings import TenantSettings


class ScriptedModel:
    """Returns the queued responses in order and records every call."""

    def __init__(self, *responses: ChatResponse) -> None:
        self.responses = list(responses)
        self.calls: list[dict] = []

    async def complete(self, messages, tools=None):
        self.calls.append({"messages": list(messages), "tools": tools})
        return self.responses.pop(0)


@pytest.fixture
def ctx() -> ToolContext:
    return ToolContext(tenant_id=1, settings=TenantSettings())


class TestGenerateReply:
    async def test_plain_answer_uses_one_call(self, ctx):
        model = ScriptedModel(ChatResponse(content="Bonjour !"))

        with patch("crm.backend.agents.assistant.loop.execute_tool_call", new=AsyncMock()) as execute:
            reply = await generate_reply(model, "system", [], "Salut", ctx)

        assert reply == "Bonjour !"
        assert len(model.calls) == 1
        assert model.calls[0]["tools"]
        execute.assert_not_called()

    async def test_history_sits_between_system_and_user(self, ctx):
        model = ScriptedModel(ChatResponse(content="ok"))
        history = [{"role": "user", "content": "avant"}, {"role": "assistant", "content": "réponse"}]

        await generate_reply(model, "system", history, "maintenant", ctx)

        roles = [m["role"] for m in model.calls[0]["messages"]]
        assert roles == ["system", "user", "assistant", "user"]
        assert model.calls[0]["messages"][-1]["content"] == "maintenant"

    async def test_tool_round_makes_exactly_two_calls(self, ctx):
        model = ScriptedModel(
            ChatResponse(
                content=None,
                tool_calls=[
                    ToolRequest(id="call_1", name="list_unpaid_invoices", arguments="{}"),
                    ToolRequest(id="call_2", name="search_clients", arguments='{"query": "Dupont"}'),
                ],
            ),
            ChatResponse(content="Vous avez 2 factures impayées."),
        )
        execute = AsyncMock(side_effect=[{"count": 2}, [{"id": 1, "name": "Dupont"}]])

        with patch("crm.backend.agents.assistant.loop.execute_tool_call", new=execute):
            reply = await generate_reply(model, "system", [], "Factures impayées ?", ctx)

        assert reply == "Vous avez 2 factures impayées."
        assert len(model.calls) == 2
        assert execute.await_count == 2
        execute.assert_any_await("list_unpaid_invoices", "{}", ctx)
        execute.assert_any_await("search_clients", '{"query": "Dupont"}', ctx)

        second = model.calls[1]
        assert second["tools"] is None
        assistant_turn = second["messages"][-3]
        assert assistant_turn["role"] == "assistant"
        assert [c["id"] for c in assistant_turn["tool_calls"]] == ["call_1", "call_2"]
        tool_turns = second["messages"][-2:]
        assert [t["tool_call_id"] for t in tool_turns] == ["call_1", "call_2"]
        assert json.loads(tool_turns[0]["content"]) == {"count": 2}

    async def test_tool_error_is_passed_to_the_model(self, ctx):
        model = ScriptedModel(
            ChatResponse(content=None, tool_calls=[ToolRequest(id="c", name="inconnu", arguments="{}")]),
            ChatResponse(content="Désolé, je ne peux pas."),
        )
        execute = AsyncMock(return_value={"error": "Outil inconnu: inconnu"})

        with patch("crm.backend.agents.assistant.loop.execute_tool_call", new=execute):
            reply = await generate_reply(model, "system", [], "?", ctx)

        assert reply == "Désolé, je ne peux pas."
        assert "Outil inconnu" in model.calls[1]["messages"][-1]["content"]

    async def test_empty_final_answer_falls_back(self, ctx):
        model = ScriptedModel(
            ChatResponse(content=None, tool_calls=[ToolRequest(id="c", name="list_clients", arguments="{}")]),
            ChatResponse(content=None),
        )

        with patch("crm.backend.agents.assistant.loop.execute_tool_call", new=AsyncMock(return_value=[])):
            reply = await generate_reply(model, "system", [], "?", ctx)

        assert reply == EMPTY_REPLY


class TestToolResultEncoding:
    def test_keeps_accents(self):
        assert dump_tool_result({"client": "Société Générale"}) == '{"client": "Société Générale"}'


class TestTrimHistory:
    def _turns(self, count: int) -> list[dict]:
        return [
            {"role": "user" if i % 2 == 0 else "assistant", "content": str(i)}
            for i in range(count)
        ]

    def test_keeps_last_messages(self):
        history = self._turns(6)
        trimmed = trim_history(history, 4)
        assert [m["content"] for m in trimmed] == ["2", "3", "4", "5"]

    def test_never_starts_with_assistant(self):
        trimmed = trim_history(self._turns(5), 4)
        assert trimmed[0]["role"] == "user"
        assert [m["content"] for m in trimmed] == ["2", "3", "4"]

    def test_zero_keeps_nothing(self):
        assert trim_history(self._turns(4), 0) == []

    def test_short_history_unchanged(self):
        history = self._turns(2)
        assert trim_history(history, 20) == history

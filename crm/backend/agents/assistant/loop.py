"""
Tool-Calling Loop.

One reply is at most two model calls: the first with the tool schemas,
and, when the model asked for tools, a second one without tools that
turns the tool results into the final text.
"""

from typing import Any

from crm.backend.agents.assistant.llm import ChatModel, dump_tool_result
from crm.backend.agents.assistant.tools import ToolContext, execute_tool_call, tool_schemas
from crm.backend.core.logging import get_logger, log_with_source

logger = get_logger(__name__)

EMPTY_REPLY = "Je n'ai pas pu formuler de réponse. Pouvez-vous reformuler ?"


async def generate_reply(
    model: ChatModel,
    system_prompt: str,
    history: list[dict[str, Any]],
    user_message: str,
    ctx: ToolContext,
) -> str:
    messages: list[dict[str, Any]] = [
        {"role": "system", "content": system_prompt},
        *history,
        {"role": "user", "content": user_message},
    ]

    first = await model.complete(messages, tools=tool_schemas())
    if not first.tool_calls:
        return first.content or EMPTY_REPLY

    messages.append(first.as_message())
    for call in first.tool_calls:
        result = await execute_tool_call(call.name, call.arguments, ctx)
        messages.append({
            "role": "tool",
            "tool_call_id": call.id,
            "content": dump_tool_result(result),
        })

    log_with_source(
        logger, "assistant", "info", "Tools executed",
        tenant_id=ctx.tenant_id, tools=[c.name for c in first.tool_calls],
    )
    final = await model.complete(messages)
    return final.content or EMPTY_REPLY

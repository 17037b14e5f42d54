"""
Assistant tools.

Importing this package registers every tool module in ``TOOLS``.
"""

from crm.backend.agents.assistant.tools import (  # noqa: F401
    billing,
    calendar,
    clients,
    exports,
    notes,
    portfolio,
    stats,
    tasks,
    tickets,
    treasury,
)
from crm.backend.agents.assistant.tools.base import (
    TOOLS,
    Attachment,
    ToolContext,
    execute_tool_call,
    tool_schemas,
)

__all__ = ["TOOLS", "Attachment", "ToolContext", "execute_tool_call", "tool_schemas"]

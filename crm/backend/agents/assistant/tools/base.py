"""
Assistant Tool Registry.

Every business operation the assistant can perform is registered here
with its OpenAI function-calling schema. ``execute_tool_call`` is the
single entry point used by the conversation loop: it decodes the model's
arguments, runs the handler inside its own transaction and always returns
a JSON-serialisable value, turning failures into ``{"error": message}``.
"""

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crm.backend.agents.assistant.dates import parse_datetime
from crm.backend.core.database import session_scope
from crm.backend.core.exceptions import ApplicationError, ValidationError
from crm.backend.core.logging import get_logger, log_with_source
from crm.backend.core.utils import local_now, local_to_utc, utc_to_local
from crm.backend.models.client import Client
from crm.backend.services.client import ClientService
from crm.backend.services.settings import TenantSettings

logger = get_logger(__name__)


# =============================================================================
# Context
# =============================================================================


@dataclass(frozen=True)
class Attachment:
    """File produced by a tool and sent after the text reply."""

    filename: str
    content: bytes
    caption: str | None = None


@dataclass
class ToolContext:
    """Per-message state shared by the tool calls of one reply."""

    tenant_id: int
    settings: TenantSettings
    session_factory: async_sessionmaker[AsyncSession] | None = None
    timezone: str = "Europe/Paris"
    user_id: int | None = None
    chat_id: int | None = None
    author_name: str = "Assistant"
    default_event_duration_minutes: int = 60
    attachments: list[Attachment] = field(default_factory=list)
    clock: Callable[[], datetime] | None = None

    def now(self) -> datetime:
        """Current wall-clock time in the assistant's timezone."""
        return self.clock() if self.clock else local_now(self.timezone)


@dataclass
class ToolCall:
    """Arguments of one call plus the session it runs in."""

    args: dict[str, Any]
    ctx: ToolContext
    session: AsyncSession

    @property
    def tenant_id(self) -> int:
        return self.ctx.tenant_id

    def get(self, name: str, default: Any = None) -> Any:
        value = self.args.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            return default
        return value.strip() if isinstance(value, str) else value

    def require(self, name: str) -> Any:
        value = self.get(name)
        if value is None:
            raise ValidationError(f"Paramètre requis: {name}")
        return value

    def int_arg(self, name: str) -> int | None:
        value = self.get(name)
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"{name} doit être un entier") from e

    def local_datetime(self, name: str, required: bool = False) -> datetime | None:
        """Parse a French date argument into wall-clock time."""
        raw = self.require(name) if required else self.get(name)
        if raw is None:
            return None
        parsed = parse_datetime(str(raw), now=self.ctx.now(), tz=self.ctx.timezone)
        if parsed is None:
            raise ValidationError(f"Date invalide: {raw}")
        return parsed

    def datetime_arg(self, name: str, required: bool = False) -> datetime | None:
        """Parse a French date argument into naive UTC for storage."""
        parsed = self.local_datetime(name, required)
        return local_to_utc(parsed, self.ctx.timezone) if parsed else None

    def now_utc(self) -> datetime:
        return local_to_utc(self.ctx.now(), self.ctx.timezone)

    def to_local(self, value: datetime | None) -> datetime | None:
        return utc_to_local(value, self.ctx.timezone) if value else None

    async def client(self, required: bool = True) -> Client | None:
        """Resolve ``clientId`` or ``clientName``."""
        client_id = self.int_arg("clientId")
        client_name = self.get("clientName")
        if client_id is None and client_name is None and not required:
            return None
        return await ClientService(self.session, self.tenant_id).resolve(client_id, client_name)


Handler = Callable[[ToolCall], Awaitable[Any]]


# =============================================================================
# Registry
# =============================================================================


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    parameters: dict[str, Any]
    handler: Handler


TOOLS: dict[str, Tool] = {}


def string(description: str) -> dict[str, Any]:
    return {"type": "string", "description": description}


def integer(description: str) -> dict[str, Any]:
    return {"type": "integer", "description": description}


def number(description: str) -> dict[str, Any]:
    return {"type": "number", "description": description}


def boolean(description: str) -> dict[str, Any]:
    return {"type": "boolean", "description": description}


def enum(values: tuple[str, ...], description: str) -> dict[str, Any]:
    return {"type": "string", "enum": list(values), "description": description}


CLIENT_REF = {
    "clientId": integer("Identifiant du client"),
    "clientName": string("Nom de la société ou du contact"),
}

LINE_ITEMS = {
    "type": "array",
    "description": "Lignes du document",
    "items": {
        "type": "object",
        "properties": {
            "description": string("Libellé de la ligne"),
            "quantity": number("Quantité"),
            "unitPrice": number("Prix unitaire HT en euros"),
            "vatRate": number("Taux de TVA en %, 20 par défaut"),
            "unit": string("Unité (heure, jour, forfait...)"),
        },
        "required": ["description", "unitPrice"],
    },
}


def tool(
    name: str,
    description: str,
    properties: dict[str, Any] | None = None,
    required: tuple[str, ...] = (),
) -> Callable[[Handler], Handler]:
    """Register an async handler under ``name``."""

    def decorator(handler: Handler) -> Handler:
        if name in TOOLS:
            raise ValueError(f"Tool already registered: {name}")
        TOOLS[name] = Tool(
            name=name,
            description=description,
            parameters={
                "type": "object",
                "properties": properties or {},
                "required": list(required),
            },
            handler=handler,
        )
        return handler

    return decorator


def tool_schemas() -> list[dict[str, Any]]:
    """Tool list in the OpenAI ``tools`` format."""
    return [
        {
            "type": "function",
            "function": {
                "name": t.name,
                "description": t.description,
                "parameters": t.parameters,
            },
        }
        for t in TOOLS.values()
    ]


# =============================================================================
# Dispatch
# =============================================================================


def to_jsonable(value: Any) -> Any:
    """Coerce Decimal, datetime and nested containers for json.dumps."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]
    return value


def _decode_arguments(arguments: str | dict[str, Any] | None) -> dict[str, Any]:
    if arguments is None or arguments == "":
        return {}
    if isinstance(arguments, dict):
        return arguments
    try:
        decoded = json.loads(arguments)
    except ValueError as e:
        raise ValidationError("Arguments JSON invalides") from e
    if not isinstance(decoded, dict):
        raise ValidationError("Les arguments doivent être un objet JSON")
    return decoded


async def execute_tool_call(
    name: str,
    arguments: str | dict[str, Any] | None,
    ctx: ToolContext,
) -> Any:
    """
    Run one tool call in its own transaction.

    Returns the handler's result, or ``{"error": message}`` when the tool is
    unknown, the arguments are malformed or the handler raises.
    """
    registered = TOOLS.get(name)
    if registered is None:
        log_with_source(logger, "assistant", "warning", "Unknown tool requested", tool=name)
        return {"error": f"Outil inconnu: {name}"}

    try:
        args = _decode_arguments(arguments)
        async with session_scope(ctx.session_factory) as session:
            result = to_jsonable(await registered.handler(ToolCall(args, ctx, session)))
    except ApplicationError as e:
        log_with_source(
            logger, "assistant", "info", "Tool call rejected",
            tool=name, tenant_id=ctx.tenant_id, error=e.message,
        )
        return {"error": e.message}
    except Exception as e:
        logger.exception("Tool call failed", extra={"tool": name, "tenant_id": ctx.tenant_id})
        return {"error": str(e) or e.__class__.__name__}

    log_with_source(logger, "assistant", "info", "Tool call executed", tool=name, tenant_id=ctx.tenant_id)
    return result

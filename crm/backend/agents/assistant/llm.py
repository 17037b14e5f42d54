"""
Chat Model Client.

Thin wrapper over the OpenAI SDK covering the three calls the assistant
makes: chat completions with tools, Whisper transcription and image
description. The loop depends on the ``ChatModel`` protocol only, so tests
substitute a scripted fake.
"""

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Protocol

from openai import AsyncOpenAI, OpenAIError

from crm.backend.core.concurrency import get_semaphore
from crm.backend.core.config import get_app_config, get_settings
from crm.backend.core.exceptions import ExternalServiceError
from crm.backend.core.logging import get_logger, log_with_source
from crm.backend.services.settings import TenantSettings

logger = get_logger(__name__)


@dataclass(frozen=True)
class ToolRequest:
    id: str
    name: str
    arguments: str


@dataclass
class ChatResponse:
    content: str | None
    tool_calls: list[ToolRequest] = field(default_factory=list)

    def as_message(self) -> dict[str, Any]:
        """The assistant turn, echoed back before the tool results."""
        message: dict[str, Any] = {"role": "assistant", "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in self.tool_calls
            ]
        return message


class ChatModel(Protocol):
    async def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> ChatResponse: ...

    async def transcribe(self, audio: bytes, filename: str = "voice.ogg") -> str: ...

    async def describe_image(
        self, image: bytes, mime_type: str = "image/jpeg", caption: str | None = None,
    ) -> str: ...


class OpenAIChatModel:
    """
    OpenAI-backed ``ChatModel``.

    Every request goes through the ``llm`` semaphore from concurrency.yaml.
    SDK failures surface as ``ExternalServiceError``.
    """

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        config = get_app_config().assistant
        self.config = config
        self.model = model or config.model
        self.client = client or AsyncOpenAI(api_key=api_key)

    async def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> ChatResponse:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        try:
            async with get_semaphore("llm"):
                response = await self.client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            log_with_source(logger, "assistant", "error", "Chat completion failed", error=str(e))
            raise ExternalServiceError(f"OpenAI: {e}") from e

        message = response.choices[0].message
        calls = [
            ToolRequest(id=c.id, name=c.function.name, arguments=c.function.arguments or "{}")
            for c in message.tool_calls or []
        ]
        log_with_source(
            logger, "assistant", "debug", "Chat completion received",
            model=self.model, tool_calls=[c.name for c in calls],
        )
        return ChatResponse(content=message.content, tool_calls=calls)

    async def transcribe(self, audio: bytes, filename: str = "voice.ogg") -> str:
        """Speech to text with Whisper, French by default."""
        try:
            async with get_semaphore("llm"):
                result = await self.client.audio.transcriptions.create(
                    model=self.config.transcription_model,
                    file=(filename, audio),
                    language="fr",
                )
        except OpenAIError as e:
            log_with_source(logger, "assistant", "error", "Transcription failed", error=str(e))
            raise ExternalServiceError(f"OpenAI: {e}") from e
        return result.text.strip()

    async def describe_image(self, image: bytes, mime_type: str = "image/jpeg", caption: str | None = None) -> str:
        """Describe an image so it can be handled as text."""
        encoded = base64.b64encode(image).decode("ascii")
        prompt = (
            "Décris précisément cette image en français. S'il s'agit d'un document "
            "(facture, devis, carte de visite, ticket), extrais toutes les informations utiles."
        )
        if caption:
            prompt += f"\nLégende de l'utilisateur: {caption}"
        try:
            async with get_semaphore("llm"):
                response = await self.client.chat.completions.create(
                    model=self.config.vision_model,
                    messages=[{
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                        ],
                    }],
                    max_tokens=self.config.max_tokens,
                )
        except OpenAIError as e:
            log_with_source(logger, "assistant", "error", "Image description failed", error=str(e))
            raise ExternalServiceError(f"OpenAI: {e}") from e
        return (response.choices[0].message.content or "").strip()


def create_chat_model(settings: TenantSettings) -> OpenAIChatModel:
    """
    Model for one tenant.

    The tenant's own OpenAI key wins over the deployment key in config/.env.
    """
    api_key = settings.openai_api_key if settings.openai_enabled and settings.openai_api_key else ""
    api_key = api_key or get_settings().openai_api_key
    if not api_key:
        raise ExternalServiceError("OpenAI non configuré")
    model = settings.openai_model if settings.openai_enabled and settings.openai_api_key else None
    return OpenAIChatModel(api_key, model=model)


def dump_tool_result(result: Any) -> str:
    return json.dumps(result, ensure_ascii=False, default=str)

"""
Telegram Conversation Model.

Rolling chat history of the assistant, one row per Telegram chat.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from crm.backend.core.utils import utc_now
from crm.backend.models.base import Base, BigId, IdMixin, TimestampMixin


class TelegramConversation(IdMixin, TimestampMixin, Base):
    """History is a JSON array of {"role", "content"} objects."""

    __tablename__ = "telegram_conversations"

    chat_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    tenant_id: Mapped[int | None] = mapped_column(
        BigId, ForeignKey("tenants.id", ondelete="CASCADE"),
    )
    history: Mapped[str] = mapped_column(Text, default="[]", nullable=False)
    last_activity: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

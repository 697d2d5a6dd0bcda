"""
Models dos colaboradores externos: notificações e histórico de pontuação.
"""

import uuid
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from bookrelay.db.session import Base
from bookrelay.models.base import UUIDMixin, TimestampMixin


class Notification(Base, UUIDMixin, TimestampMixin):
    """
    Notificação in-app para um membro.

    Attributes:
        id: UUID único
        user_id: Destinatário
        type: Tipo (ver NotificationType)
        title: Título curto
        message: Texto
        link: Caminho relativo no front-end
        is_read: Lida pelo destinatário
    """
    __tablename__ = "notifications"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_notifications_user_unread", "user_id", "is_read"),
    )

    def __repr__(self) -> str:
        return f"<Notification {self.type} -> {self.user_id}>"


class SuccessScoreHistory(Base, UUIDMixin, TimestampMixin):
    """
    Registro de cada ajuste na pontuação de um membro.

    Attributes:
        id: UUID único
        user_id: Membro afetado
        change_amount: Variação (positiva ou negativa)
        reason: Motivo legível
        reference_type: Tipo da entidade de origem (book, idea, review...)
        reference_id: ID da entidade de origem
    """
    __tablename__ = "success_score_history"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    change_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    reference_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<SuccessScoreHistory {self.user_id} {self.change_amount:+d}>"

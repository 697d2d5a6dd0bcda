"""
Models da negociação de entrega: HandoverThread e HandoverMessage.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, ForeignKey, DateTime, Index, Text, Enum as SQLEnum, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookrelay.db.session import Base
from bookrelay.models.base import UUIDMixin, TimestampMixin, utcnow
from bookrelay.models.enums import BookStatus, HandoverStatus, enum_values

if TYPE_CHECKING:
    from bookrelay.models.book import Book


class HandoverThread(Base, UUIDMixin, TimestampMixin):
    """
    Conversa entre o portador atual e o próximo portador de um livro.

    Fluxo de estados:
        ACTIVE -> COMPLETED (entrega confirmada ou leitura sem sucessor)
        ACTIVE -> CANCELLED (cancelada por um dos participantes)

    Regras de negócio:
        - No máximo uma conversa ACTIVE por livro - índice único parcial
        - Somente current_holder_id e next_holder_id podem agir

    Attributes:
        id: UUID único da conversa
        book_id: FK para o livro
        current_holder_id: Quem entrega
        next_holder_id: Quem recebe
        reading_history_id: Histórico que será fechado (se aberto pela varredura)
        previous_book_status: Status do livro antes da aprovação (restaurado no cancelamento)
        status: ACTIVE, COMPLETED ou CANCELLED
        handover_due_date: Prazo para a entrega
        completed_at: Quando a conversa foi encerrada
        messages: Mensagens em ordem cronológica
    """
    __tablename__ = "handover_threads"

    book_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("books.id", ondelete="CASCADE"),
        nullable=False,
    )
    current_holder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    next_holder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    reading_history_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("reading_history.id", ondelete="SET NULL"),
        nullable=True,
    )
    previous_book_status: Mapped[Optional[BookStatus]] = mapped_column(
        SQLEnum(
            BookStatus,
            name="book_status",
            create_type=False,
            values_callable=enum_values,
        ),
        nullable=True,
    )
    status: Mapped[HandoverStatus] = mapped_column(
        SQLEnum(
            HandoverStatus,
            name="handover_status",
            create_type=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=HandoverStatus.ACTIVE,
    )
    handover_due_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    book: Mapped["Book"] = relationship("Book", lazy="selectin")
    messages: Mapped[List["HandoverMessage"]] = relationship(
        "HandoverMessage",
        back_populates="thread",
        lazy="selectin",
        order_by="HandoverMessage.created_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_handover_threads_current_holder", "current_holder_id"),
        Index("ix_handover_threads_next_holder", "next_holder_id"),
        # Uma única conversa ativa por livro
        Index(
            "uq_handover_threads_active_per_book",
            "book_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<HandoverThread {self.id} - {self.status.value}>"

    @property
    def is_active(self) -> bool:
        """Retorna True se a conversa ainda está aberta."""
        return self.status == HandoverStatus.ACTIVE

    def is_participant(self, user_id: uuid.UUID) -> bool:
        """Retorna True se o usuário é uma das duas partes."""
        return user_id in (self.current_holder_id, self.next_holder_id)

    def other_participant(self, user_id: uuid.UUID) -> uuid.UUID:
        """Retorna a outra parte da conversa."""
        if user_id == self.next_holder_id:
            return self.current_holder_id
        return self.next_holder_id


class HandoverMessage(Base, UUIDMixin):
    """
    Mensagem de uma conversa de entrega. Somente inclusão, sem edição.

    Attributes:
        id: UUID único da mensagem
        thread_id: FK para a conversa
        user_id: Autor (em mensagens de sistema, a parte que originou o evento)
        message: Texto
        is_system_message: True se gerada pelo sistema
        created_at: Data/hora de criação (ordem da conversa)
    """
    __tablename__ = "handover_messages"

    thread_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("handover_threads.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_system_message: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    thread: Mapped["HandoverThread"] = relationship(
        "HandoverThread",
        back_populates="messages",
    )

    __table_args__ = (
        Index("ix_handover_messages_thread_created", "thread_id", "created_at"),
    )

    def __repr__(self) -> str:
        kind = "system" if self.is_system_message else "user"
        return f"<HandoverMessage {self.id} - {kind}>"

"""
Model de pedido de livro.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Float, ForeignKey, DateTime, Index, Enum as SQLEnum, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookrelay.db.session import Base
from bookrelay.models.base import UUIDMixin, TimestampMixin, utcnow
from bookrelay.models.enums import RequestStatus, enum_values

if TYPE_CHECKING:
    from bookrelay.models.user import User
    from bookrelay.models.book import Book


class BookRequest(Base, UUIDMixin, TimestampMixin):
    """
    Pedido de um membro para ser o próximo leitor de um livro.

    Fluxo de estados:
        1. PENDING: criado pelo membro
        2. APPROVED: aprovado pela administração (final)
        3. REJECTED: rejeitado pela administração ou em cascata (final)

    Regras de negócio:
        - No máximo um pedido PENDING por (livro, usuário) - índice único parcial
        - Fila ordenada por priority_score desc, requested_at asc

    Attributes:
        id: UUID único do pedido
        book_id: FK para o livro
        user_id: FK para o solicitante
        status: Status atual
        priority_score: Prioridade calculada na criação (maior = primeiro)
        interest_match_score: Componente de interesse da prioridade
        distance_km: Distância até o portador (quando conhecida)
        requested_at: Data/hora do pedido (desempate da fila)
        processed_at: Data/hora da aprovação/rejeição
        due_date: Prazo de entrega definido na aprovação
    """
    __tablename__ = "book_requests"

    book_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("books.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[RequestStatus] = mapped_column(
        SQLEnum(
            RequestStatus,
            name="request_status",
            create_type=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=RequestStatus.PENDING,
    )
    priority_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    interest_match_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    distance_km: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    due_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    book: Mapped["Book"] = relationship("Book", lazy="selectin")
    user: Mapped["User"] = relationship("User", lazy="selectin")

    __table_args__ = (
        Index("ix_book_requests_user_id", "user_id"),
        # Fila de um livro ordenada por prioridade
        Index(
            "ix_book_requests_book_queue",
            "book_id",
            "status",
            "priority_score",
            "requested_at",
        ),
        # Um único pedido pendente por (livro, usuário)
        Index(
            "uq_book_requests_pending_per_user",
            "book_id",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<BookRequest {self.id} - {self.status.value}>"

    @property
    def is_pending(self) -> bool:
        """Retorna True se o pedido ainda aguarda decisão."""
        return self.status == RequestStatus.PENDING
